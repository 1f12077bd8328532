"""Per-attempt migration state."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Batch, Repository


class ArchiveIdentifiers(BaseModel):
    """IDs of the two archive exports started on the source."""

    git_archive_id: int = Field(..., description='Git-only export job ID')
    metadata_archive_id: int = Field(..., description='Metadata-only export job ID')


class ArchiveURLs(BaseModel):
    """Single-use download URLs of the exported archives."""

    git_source: str = Field(..., description='Git archive URL')
    metadata: str = Field(..., description='Metadata archive URL')


class MigrationContext(BaseModel):
    """State of one ``execute_migration`` call, threaded through every phase."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repository: Repository = Field(..., description='Repository being migrated')
    batch: Optional[Batch] = Field(default=None, description='Batch overrides')
    dry_run: bool = Field(default=False, description='Dry run without locking')
    history_id: Optional[int] = Field(default=None, description='History record ID')

    # Computed once when the context is created
    exclude_releases: bool = Field(default=False, description='Skip releases')
    exclude_attachments: bool = Field(default=False, description='Skip attachments')
    lock_repositories: bool = Field(default=False, description='Lock the source')
    source_locked: bool = Field(
        default=False, description='Source was locked by this attempt'
    )

    # Filled in by the phases
    archive_ids: Optional[ArchiveIdentifiers] = Field(
        default=None, description='Archive export job IDs'
    )
    archive_urls: Optional[ArchiveURLs] = Field(
        default=None, description='Archive download URLs'
    )
    migration_id: Optional[str] = Field(
        default=None, description='Destination migration ID'
    )

    @classmethod
    def create(
        cls,
        repository: Repository,
        batch: Optional[Batch] = None,
        dry_run: bool = False,
    ) -> 'MigrationContext':
        """Create a context with exclusion and lock flags computed.

        Exclusions are enabled when either the repository or the batch asks
        for them. Only production runs lock the source.
        """
        return cls(
            repository=repository,
            batch=batch,
            dry_run=dry_run,
            exclude_releases=repository.exclude_releases
            or bool(batch and batch.exclude_releases),
            exclude_attachments=repository.exclude_attachments
            or bool(batch and batch.exclude_attachments),
            lock_repositories=not dry_run,
        )

    @property
    def phase_name(self) -> str:
        return 'dry_run' if self.dry_run else 'migration'
