"""Repository models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RepositoryStatus(str, Enum):
    """Lifecycle status of a repository migration."""

    PENDING = 'pending'
    PRE_MIGRATION = 'pre_migration'
    ARCHIVE_GENERATING = 'archive_generating'
    MIGRATING_CONTENT = 'migrating_content'
    MIGRATION_COMPLETE = 'migration_complete'
    MIGRATION_FAILED = 'migration_failed'
    DRY_RUN_IN_PROGRESS = 'dry_run_in_progress'
    DRY_RUN_COMPLETE = 'dry_run_complete'
    DRY_RUN_FAILED = 'dry_run_failed'
    COMPLETE = 'complete'


class RepositoryProfile(BaseModel):
    """Snapshot of the characteristics compared after a migration."""

    default_branch: Optional[str] = Field(default=None, description='Default branch')
    commit_count: int = Field(default=0, description='Commit count')
    branch_count: int = Field(default=0, description='Branch count')
    tag_count: int = Field(default=0, description='Tag count')
    last_commit_sha: Optional[str] = Field(
        default=None, description='Head commit SHA of the default branch'
    )
    has_wiki: bool = Field(default=False, description='Wiki enabled')
    has_pages: bool = Field(default=False, description='Pages enabled')
    has_discussions: bool = Field(default=False, description='Discussions enabled')
    has_actions: bool = Field(default=False, description='Actions enabled')
    branch_protections: int = Field(
        default=0, description='Number of protected branches'
    )
    total_size: Optional[int] = Field(default=None, description='Size in bytes')
    is_archived: bool = Field(default=False, description='Repository is archived')


class Repository(BaseModel):
    """Repository tracked for migration."""

    id: int = Field(..., description='Repository ID')
    full_name: str = Field(
        ..., description='org/repo, or org/project/repo for Azure DevOps'
    )
    source_url: str = Field(..., description='Source repository URL')
    source_id: Optional[int] = Field(
        default=None, description='ID of the source this repository belongs to'
    )
    visibility: str = Field(default='private', description='Source visibility')
    status: RepositoryStatus = Field(
        default=RepositoryStatus.PENDING, description='Migration status'
    )

    # Azure DevOps project marker
    ado_project: Optional[str] = Field(
        default=None, description='Azure DevOps project name'
    )

    # Size information
    total_size: Optional[int] = Field(default=None, description='Size in bytes')
    largest_file: Optional[str] = Field(default=None, description='Largest file path')
    largest_file_size: Optional[int] = Field(
        default=None, description='Largest file size in bytes'
    )
    has_oversized_repository: bool = Field(
        default=False, description='Exceeds the destination size limit'
    )

    # Characteristics from discovery
    default_branch: Optional[str] = Field(default=None, description='Default branch')
    branch_count: int = Field(default=0, description='Branch count')
    commit_count: int = Field(default=0, description='Commit count')
    tag_count: int = Field(default=0, description='Tag count')
    last_commit_sha: Optional[str] = Field(default=None, description='Last commit SHA')
    last_commit_date: Optional[datetime] = Field(
        default=None, description='Last push date'
    )
    has_wiki: bool = Field(default=False, description='Wiki enabled')
    has_pages: bool = Field(default=False, description='Pages enabled')
    has_discussions: bool = Field(default=False, description='Discussions enabled')
    has_actions: bool = Field(default=False, description='Actions enabled')
    branch_protections: int = Field(
        default=0, description='Number of protected branches'
    )
    is_archived: bool = Field(default=False, description='Repository is archived')

    # Migration options
    exclude_releases: bool = Field(default=False, description='Skip releases')
    exclude_attachments: bool = Field(default=False, description='Skip attachments')

    # Source lock state
    source_migration_id: Optional[int] = Field(
        default=None, description='Source export job used to lock the repository'
    )
    is_source_locked: bool = Field(default=False, description='Source is locked')

    # Destination
    destination_full_name: Optional[str] = Field(
        default=None, description='Destination org/repo'
    )
    destination_url: Optional[str] = Field(
        default=None, description='Destination repository URL'
    )

    # Post-migration validation
    validation_status: Optional[str] = Field(
        default=None, description='passed or failed'
    )
    validation_details: Optional[str] = Field(
        default=None, description='Validation report JSON'
    )
    destination_data: Optional[str] = Field(
        default=None, description='Destination profile JSON'
    )

    # Timestamps
    migrated_at: Optional[datetime] = Field(
        default=None, description='Production migration completion time'
    )
    last_dry_run_at: Optional[datetime] = Field(
        default=None, description='Last dry run completion time'
    )
    updated_at: Optional[datetime] = Field(default=None, description='Last update')

    @property
    def organization(self) -> str:
        """Source organization (first segment of the full name)."""
        return self.full_name.split('/')[0]

    @property
    def name(self) -> str:
        """Repository name (last segment of the full name)."""
        return self.full_name.split('/')[-1]

    def is_azure_devops(self) -> bool:
        """Check whether the repository comes from Azure DevOps."""
        return bool(self.ado_project)

    def profile(self) -> RepositoryProfile:
        """Build the characteristic snapshot used for validation.

        Returns:
            Characteristic snapshot of this repository
        """
        return RepositoryProfile(
            default_branch=self.default_branch,
            commit_count=self.commit_count,
            branch_count=self.branch_count,
            tag_count=self.tag_count,
            last_commit_sha=self.last_commit_sha,
            has_wiki=self.has_wiki,
            has_pages=self.has_pages,
            has_discussions=self.has_discussions,
            has_actions=self.has_actions,
            branch_protections=self.branch_protections,
            total_size=self.total_size,
            is_archived=self.is_archived,
        )
