"""Migration engine - main entry point for migration operations."""

from typing import List, Optional

from ..api.client import GitHubClientFactory
from ..config.config import Config, GitHubInstanceConfig
from ..config.provider import FileSettingsProvider
from ..models import Batch, Repository, Source
from ..storage.base import Storage
from ..utils.logging import get_logger
from .factory import ExecutorFactory
from .orchestrator import MigrationOrchestrator, MigrationSummary


def sources_from_config(config: Config) -> List[Source]:
    """Convert configured sources into storage records."""
    return [
        Source(
            id=source.id,
            name=source.name,
            type=source.type,
            base_url=source.url,
            token=source.token,
            organization=source.organization,
            is_active=source.is_active,
        )
        for source in config.sources
    ]


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(
        self, config: Config, storage: Storage, config_path: Optional[str] = None
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            storage: Storage holding sources and repositories
            config_path: Config file to re-read migration settings from
                before each repository
        """
        self.config = config
        self.storage = storage
        self.logger = get_logger('MigrationEngine')

        self.destination_client = GitHubClientFactory.create_client(config.destination)

        settings_provider = None
        if config_path:
            settings_provider = FileSettingsProvider(
                config_path, fallback=config.migration
            )

        self.factory = ExecutorFactory(
            storage=storage,
            dest_client=self.destination_client,
            settings=config.migration,
            settings_provider=settings_provider,
        )
        self.orchestrator = MigrationOrchestrator(self.factory)

    async def migrate(
        self, repositories: List[Repository], batch: Optional[Batch] = None
    ) -> MigrationSummary:
        """Migrate repositories.

        Args:
            repositories: Repositories to migrate
            batch: Optional batch overrides

        Returns:
            Migration summary
        """
        return await self._run(repositories, batch, dry_run=False)

    async def dry_run(
        self, repositories: List[Repository], batch: Optional[Batch] = None
    ) -> MigrationSummary:
        """Perform a dry run of the migration.

        Args:
            repositories: Repositories to dry-run
            batch: Optional batch overrides

        Returns:
            Migration summary (dry run results)
        """
        return await self._run(repositories, batch, dry_run=True)

    async def _run(
        self, repositories: List[Repository], batch: Optional[Batch], dry_run: bool
    ) -> MigrationSummary:
        run = 'dry run' if dry_run else 'migration'
        self.logger.info(f'Starting repository {run}')

        try:
            self._test_connectivity()

            summary = await self.orchestrator.execute(
                repositories,
                batch=batch,
                dry_run=dry_run,
                max_concurrent=self.config.migration.max_concurrent,
            )

            self.logger.info(f'Repository {run} finished')
            return summary

        except Exception as e:
            self.logger.error(f'Repository {run} failed: {e}')
            raise
        finally:
            self.factory.invalidate_all_caches()
            self.destination_client.close()

    def _test_connectivity(self) -> None:
        """Test connectivity to the destination and active GitHub sources.

        Raises:
            ConnectionError: If connectivity test fails
        """
        self.logger.info('Testing connectivity to GitHub instances')

        if not self.destination_client.test_connection():
            raise ConnectionError('Cannot connect to destination GitHub instance')

        for source in self.config.sources:
            if source.type != 'github' or not source.is_active:
                continue
            client = GitHubClientFactory.create_client(
                GitHubInstanceConfig(url=source.url, token=source.token)
            )
            try:
                if not client.test_connection():
                    raise ConnectionError(
                        f'Cannot connect to source GitHub instance {source.name}'
                    )
            finally:
                client.close()

        self.logger.info('Connectivity tests passed')
