"""Concurrent migration of many repositories."""

import asyncio
from datetime import datetime
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..models import Batch, Repository, RepositoryStatus
from .exceptions import DestinationExistsError
from .factory import ExecutorFactory


class MigrationResult(BaseModel):
    """Outcome of one repository migration."""

    full_name: str = Field(..., description='Source repository full name')
    success: bool = Field(..., description='Whether the migration succeeded')
    skipped: bool = Field(
        default=False, description='Destination existed and the policy was skip'
    )
    status: RepositoryStatus = Field(..., description='Final repository status')
    destination_url: Optional[str] = Field(default=None, description='Destination URL')
    error_message: Optional[str] = Field(default=None, description='Failure text')
    started_at: datetime = Field(..., description='Start time')
    completed_at: datetime = Field(..., description='End time')

    @property
    def duration(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class MigrationSummary(BaseModel):
    """Summary of migration results."""

    total: int = Field(..., description='Repositories processed')
    successful: int = Field(..., description='Successful migrations')
    failed: int = Field(..., description='Failed migrations')
    skipped: int = Field(..., description='Skipped because the destination existed')
    dry_run: bool = Field(default=False, description='Whether this was a dry run')

    started_at: datetime = Field(..., description='Run start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Run completion time'
    )

    results: List[MigrationResult] = Field(
        default_factory=list, description='Per-repository results'
    )


class MigrationOrchestrator:
    """Runs repository migrations concurrently through an ExecutorFactory."""

    def __init__(self, factory: ExecutorFactory):
        """Initialize migration orchestrator.

        Args:
            factory: Factory providing executors per source
        """
        self.factory = factory
        self.logger = logger.bind(component='MigrationOrchestrator')

    async def execute(
        self,
        repositories: List[Repository],
        batch: Optional[Batch] = None,
        dry_run: bool = False,
        max_concurrent: int = 5,
    ) -> MigrationSummary:
        """Migrate repositories with a concurrency limit.

        One repository failing never stops the others.

        Args:
            repositories: Repositories to migrate; updated in place
            batch: Optional batch overrides applied to every repository
            dry_run: Run dry runs instead of production migrations
            max_concurrent: Maximum migrations in flight

        Returns:
            Migration summary with per-repository results
        """
        run = 'dry run' if dry_run else 'migration'
        self.logger.info(
            f'Starting {run} of {len(repositories)} repositories '
            f'(max_concurrent: {max_concurrent})'
        )
        started_at = datetime.now()

        semaphore = asyncio.Semaphore(max_concurrent)

        async def migrate_one(repository: Repository) -> MigrationResult:
            async with semaphore:
                return await self._migrate_repository(repository, batch, dry_run)

        tasks = [migrate_one(repository) for repository in repositories]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results = []
        for repository, outcome in zip(repositories, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                self.logger.error(
                    f'Migration task for {repository.full_name} crashed: {outcome}'
                )
                outcome = MigrationResult(
                    full_name=repository.full_name,
                    success=False,
                    status=repository.status,
                    error_message=str(outcome),
                    started_at=started_at,
                    completed_at=datetime.now(),
                )
            results.append(outcome)

        summary = MigrationSummary(
            total=len(results),
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success and not r.skipped),
            skipped=sum(1 for r in results if r.skipped),
            dry_run=dry_run,
            started_at=started_at,
            completed_at=datetime.now(),
            results=results,
        )

        self.logger.info(
            f'Completed {run}: {summary.successful} successful, '
            f'{summary.failed} failed, {summary.skipped} skipped'
        )
        return summary

    async def _migrate_repository(
        self, repository: Repository, batch: Optional[Batch], dry_run: bool
    ) -> MigrationResult:
        started_at = datetime.now()
        error_message = None
        skipped = False

        try:
            await self.factory.execute_migration(repository, batch, dry_run)
        except DestinationExistsError as e:
            skipped = e.skipped
            error_message = str(e)
        except Exception as e:
            error_message = str(e)

        if error_message:
            self.logger.warning(f'{repository.full_name}: {error_message}')

        return MigrationResult(
            full_name=repository.full_name,
            success=error_message is None,
            skipped=skipped,
            status=repository.status,
            destination_url=repository.destination_url,
            error_message=error_message,
            started_at=started_at,
            completed_at=datetime.now(),
        )
