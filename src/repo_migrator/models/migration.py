"""Batch, source and migration audit models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Supported source systems."""

    GITHUB = 'github'
    AZURE_DEVOPS = 'azuredevops'


class Source(BaseModel):
    """A configured source system with its credentials."""

    id: int = Field(..., description='Source ID')
    name: str = Field(..., description='Display name')
    type: SourceType = Field(..., description='Source system type')
    base_url: str = Field(..., description='Source base URL')
    token: str = Field(..., description='Source access token')
    organization: Optional[str] = Field(
        default=None, description='Organization (Azure DevOps)'
    )
    is_active: bool = Field(default=True, description='Source may be used')

    def is_github(self) -> bool:
        return self.type == SourceType.GITHUB

    def is_azure_devops(self) -> bool:
        return self.type == SourceType.AZURE_DEVOPS


class Batch(BaseModel):
    """Group of repositories migrated together, with shared overrides."""

    id: int = Field(..., description='Batch ID')
    name: str = Field(..., description='Batch name')
    destination_org: Optional[str] = Field(
        default=None, description='Destination organization override'
    )
    exclude_releases: bool = Field(default=False, description='Skip releases')
    exclude_attachments: bool = Field(default=False, description='Skip attachments')


class HistoryStatus(str, Enum):
    """Status of a migration history record."""

    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'


class MigrationHistory(BaseModel):
    """One migration or dry-run attempt of a repository."""

    id: Optional[int] = Field(default=None, description='History ID')
    repository_id: int = Field(..., description='Repository ID')
    status: HistoryStatus = Field(
        default=HistoryStatus.IN_PROGRESS, description='Attempt status'
    )
    phase: str = Field(..., description='migration or dry_run')
    error_message: Optional[str] = Field(default=None, description='Failure text')
    started_at: datetime = Field(default_factory=datetime.now, description='Start')
    completed_at: Optional[datetime] = Field(default=None, description='End')


class MigrationLog(BaseModel):
    """Append-only audit entry written at phase boundaries."""

    id: Optional[int] = Field(default=None, description='Log ID')
    repository_id: int = Field(..., description='Repository ID')
    history_id: Optional[int] = Field(default=None, description='History ID')
    level: str = Field(..., description='INFO, WARN or ERROR')
    phase: str = Field(..., description='Migration phase')
    operation: str = Field(..., description='Operation within the phase')
    message: str = Field(..., description='Log message')
    details: Optional[str] = Field(default=None, description='Extra details')
    timestamp: datetime = Field(default_factory=datetime.now, description='Time')
