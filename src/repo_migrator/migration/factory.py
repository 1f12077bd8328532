"""Per-source executor construction and caching."""

import threading
from typing import Callable, Dict, Optional

from loguru import logger

from ..api.client import GitHubClient, GitHubClientFactory
from ..config.config import GitHubInstanceConfig, MigrationSettings
from ..config.provider import SettingsProvider
from ..models import Batch, Repository, Source
from ..storage.base import Storage
from .cache import ExecutorCaches
from .exceptions import ConfigurationError
from .executor import Executor, ExecutorConfig
from .polling import AdaptivePoller

ClientBuilder = Callable[[GitHubInstanceConfig], GitHubClient]


class ExecutorFactory:
    """Builds executors wired with the right credentials for each source.

    Without a settings provider, executors are cached per source ID. With one,
    a fresh executor is built on every call so setting changes apply to the
    next migration, while source clients and lookup caches stay cached.
    """

    def __init__(
        self,
        storage: Storage,
        dest_client: GitHubClient,
        settings: Optional[MigrationSettings] = None,
        settings_provider: Optional[SettingsProvider] = None,
        client_builder: Optional[ClientBuilder] = None,
        archive_poller: Optional[AdaptivePoller] = None,
        migration_poller: Optional[AdaptivePoller] = None,
    ):
        """Initialize executor factory.

        Args:
            storage: Storage backend shared by all executors
            dest_client: Destination GitHub client shared by all executors
            settings: Default migration settings
            settings_provider: Source of live settings, re-read per executor
            client_builder: Builds source clients from instance configuration
            archive_poller: Poller override for archive exports
            migration_poller: Poller override for destination migrations

        Raises:
            ConfigurationError: If storage or the destination client is missing
        """
        if storage is None:
            raise ConfigurationError('storage is required')
        if dest_client is None:
            raise ConfigurationError('destination client is required')

        self.storage = storage
        self.dest_client = dest_client
        self.settings = settings or MigrationSettings()
        self.settings_provider = settings_provider
        self.client_builder = client_builder or GitHubClientFactory.create_client
        self.archive_poller = archive_poller
        self.migration_poller = migration_poller

        self._lock = threading.RLock()
        self._executors: Dict[int, Executor] = {}
        self._clients: Dict[int, GitHubClient] = {}
        self._caches: Dict[int, ExecutorCaches] = {}

        self.logger = logger.bind(component='ExecutorFactory')

    async def get_executor_for_repository(self, repository: Repository) -> Executor:
        """Get an executor for the repository's source.

        Args:
            repository: Repository to migrate

        Returns:
            Executor configured for the repository's source

        Raises:
            ConfigurationError: If the source is missing, inactive or unsupported
        """
        if repository.source_id is None:
            raise ConfigurationError(
                f'repository {repository.full_name} has no source_id'
            )

        source = await self.storage.get_source(repository.source_id)
        if source is None:
            raise ConfigurationError(
                f'source {repository.source_id} not found for repository '
                f'{repository.full_name}'
            )
        if not source.is_active:
            raise ConfigurationError(f'source {source.name} is not active')
        if not (source.is_github() or source.is_azure_devops()):
            raise ConfigurationError(f'unsupported source type: {source.type}')

        if self.settings_provider is not None:
            return self._build_executor(source, self.settings_provider.get_settings())

        executor = self._executors.get(source.id)
        if executor is not None:
            return executor

        with self._lock:
            executor = self._executors.get(source.id)
            if executor is None:
                executor = self._build_executor(source, self.settings)
                self._executors[source.id] = executor
                self.logger.info(
                    f'Created executor for source {source.name} (id: {source.id})'
                )
            return executor

    async def execute_migration(
        self,
        repository: Repository,
        batch: Optional[Batch] = None,
        dry_run: bool = False,
    ) -> None:
        """Migrate a repository with the executor for its source."""
        executor = await self.get_executor_for_repository(repository)
        await executor.execute_migration(repository, batch, dry_run)

    def invalidate_cache(self, source_id: int) -> None:
        """Drop the executor, client and lookup caches held for one source.

        Call this after a source's credentials change.
        """
        with self._lock:
            self._executors.pop(source_id, None)
            caches = self._caches.pop(source_id, None)
            client = self._clients.pop(source_id, None)

        if caches is not None:
            caches.clear()
        if client is not None:
            client.close()
        self.logger.info(f'Invalidated executor cache for source {source_id}')

    def invalidate_all_caches(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._executors.clear()
            self._clients.clear()
            self._caches.clear()

        for client in clients:
            client.close()
        self.logger.info('Invalidated all executor caches')

    def _build_executor(self, source: Source, settings: MigrationSettings) -> Executor:
        config = ExecutorConfig(
            dest_client=self.dest_client,
            storage=self.storage,
            settings=settings,
            archive_poller=self.archive_poller,
            migration_poller=self.migration_poller,
            caches=self._source_caches(source),
        )

        if source.is_github():
            config.source_client = self._source_client(source)
        else:
            config.ado_token = source.token

        return Executor(config)

    def _source_caches(self, source: Source) -> ExecutorCaches:
        with self._lock:
            caches = self._caches.get(source.id)
            if caches is None:
                caches = ExecutorCaches()
                self._caches[source.id] = caches
            return caches

    def _source_client(self, source: Source) -> GitHubClient:
        with self._lock:
            client = self._clients.get(source.id)
            if client is None:
                client = self.client_builder(
                    GitHubInstanceConfig(url=source.base_url, token=source.token)
                )
                self._clients[source.id] = client
            return client
