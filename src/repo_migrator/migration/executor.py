"""Phased migration executor."""

from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..api.azure_devops import AZURE_DEVOPS_BASE_URL, AzureDevOpsClient
from ..api.exceptions import GitHubAPIError, GitHubNotFoundError
from ..config.config import MigrationSettings
from ..models import (
    Batch,
    HistoryStatus,
    MigrationHistory,
    MigrationLog,
    Repository,
    RepositoryStatus,
)
from .cache import ExecutorCaches
from .context import MigrationContext
from .exceptions import (
    ConfigurationError,
    DestinationExistsError,
    MigrationError,
    MigrationFailedError,
    PollingFailedError,
    PreMigrationError,
)
from .polling import AdaptivePoller, PollResult, PollState
from .strategy import MigrationStrategy, StrategyRegistry
from .validation import DestinationProfiler, ValidationComparator

GIB = 1024 * 1024 * 1024
MIB = 1024 * 1024

LARGE_FILE_WARNING_SIZE = 100 * MIB
LARGE_REPOSITORY_WARNING_SIZE = 50 * GIB

MIGRATION_SUCCEEDED = 'SUCCEEDED'
MIGRATION_FAILED_STATES = ('FAILED', 'FAILED_VALIDATION')
MIGRATION_IN_PROGRESS_STATES = ('IN_PROGRESS', 'QUEUED', 'PENDING_VALIDATION')

ARCHIVE_SOURCE_TYPE = 'GITHUB_ARCHIVE'
AZURE_DEVOPS_SOURCE_TYPE = 'AZURE_DEVOPS'

PUBLIC_TARGETS = ('public', 'internal', 'private')
INTERNAL_TARGETS = ('internal', 'private')

# Status and message for each outcome, keyed by dry_run
STATUS_BY_OUTCOME: Dict[bool, Dict[str, RepositoryStatus]] = {
    False: {
        'failed': RepositoryStatus.MIGRATION_FAILED,
        'complete': RepositoryStatus.COMPLETE,
    },
    True: {
        'failed': RepositoryStatus.DRY_RUN_FAILED,
        'complete': RepositoryStatus.DRY_RUN_COMPLETE,
    },
}
MESSAGE_BY_OUTCOME: Dict[bool, Dict[str, str]] = {
    False: {
        'start': 'Starting migration',
        'failed': 'Migration failed',
        'complete': 'Migration completed successfully',
    },
    True: {
        'start': 'Starting dry run',
        'failed': 'Dry run failed',
        'complete': 'Dry run completed successfully',
    },
}


class ExecutorConfig(BaseModel):
    """Collaborators and policies of an Executor."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dest_client: Any = Field(default=None, description='Destination GitHub client')
    storage: Any = Field(default=None, description='Storage backend')
    source_client: Any = Field(
        default=None, description='Source GitHub client (GitHub sources only)'
    )
    ado_token: Optional[str] = Field(
        default=None, description='Azure DevOps PAT (Azure DevOps sources only)'
    )
    ado_client: Any = Field(
        default=None, description='Azure DevOps client, built from ado_token if unset'
    )
    settings: MigrationSettings = Field(
        default_factory=MigrationSettings, description='Migration policies'
    )
    archive_poller: Optional[AdaptivePoller] = Field(
        default=None, description='Poller for archive exports'
    )
    migration_poller: Optional[AdaptivePoller] = Field(
        default=None, description='Poller for destination migrations'
    )
    caches: Optional[ExecutorCaches] = Field(
        default=None, description='Lookup caches shared across executors of a source'
    )


class Executor:
    """Runs one repository migration through seven ordered phases.

    Source validation, pre-migration checks, archive preparation, migration
    start and migration polling abort the run on failure and go through
    recovery: the history record and repository status are marked failed
    and a source locked by this attempt is unlocked. Post-migration
    validation only ever warns. Completion errors propagate.
    """

    def __init__(self, config: ExecutorConfig):
        """Initialize executor.

        Args:
            config: Executor collaborators and policies

        Raises:
            ConfigurationError: If the destination client or storage is missing
        """
        if config.dest_client is None:
            raise ConfigurationError('destination client is required')
        if config.storage is None:
            raise ConfigurationError('storage is required')

        self.dest_client = config.dest_client
        self.storage = config.storage
        self.source_client = config.source_client
        self.ado_token = config.ado_token
        self.ado_client = config.ado_client
        if self.ado_client is None and config.ado_token:
            self.ado_client = AzureDevOpsClient(config.ado_token)
        self.settings = config.settings

        self.archive_poller = config.archive_poller or AdaptivePoller.for_archives()
        self.migration_poller = (
            config.migration_poller or AdaptivePoller.for_migrations()
        )

        self.comparator = ValidationComparator()
        self.profiler = DestinationProfiler(self.dest_client)
        self.strategies = StrategyRegistry.default(self)

        self.caches = config.caches or ExecutorCaches()

        self.logger = logger.bind(component='Executor')

    async def execute_migration(
        self,
        repository: Repository,
        batch: Optional[Batch] = None,
        dry_run: bool = False,
    ) -> None:
        """Migrate a repository, or dry-run its migration.

        Args:
            repository: Repository to migrate; updated in place
            batch: Optional batch overrides
            dry_run: Run without locking the source

        Raises:
            MigrationError: If a phase fails
        """
        strategy = self.strategies.get_strategy(repository)
        if strategy is None:
            raise MigrationError(
                f'no migration strategy supports repository {repository.full_name}'
            )

        mc = MigrationContext.create(repository, batch, dry_run)
        messages = MESSAGE_BY_OUTCOME[dry_run]

        self.logger.info(
            f'{messages["start"]} for {repository.full_name} using '
            f'{strategy.name} strategy (exclude_releases: {mc.exclude_releases}, '
            f'exclude_attachments: {mc.exclude_attachments}, '
            f'lock_repositories: {mc.lock_repositories})'
        )

        mc.history_id = await self._create_history(mc)
        await self.log_operation(
            mc, 'INFO', 'initialization', 'start', f'{messages["start"]} ({strategy.name})'
        )
        await self.log_operation(
            mc,
            'INFO',
            'initialization',
            'flags',
            f'Migration flags: exclude_releases={mc.exclude_releases}, '
            f'exclude_attachments={mc.exclude_attachments}, '
            f'lock_repositories={mc.lock_repositories}',
        )

        try:
            await self._phase_source_validation(mc, strategy)
            await self._phase_pre_migration(mc)
            await self._phase_archive_preparation(mc, strategy)
            await self._phase_migration_start(mc, strategy)
            await self._phase_migration_polling(mc)
        except Exception as e:
            await self._recover_from_failure(mc, strategy, e)
            raise

        await self._phase_post_migration(mc)
        await self._phase_completion(mc, strategy)

    # Phases

    async def _phase_source_validation(
        self, mc: MigrationContext, strategy: MigrationStrategy
    ) -> None:
        self.logger.info(f'Validating source for {mc.repository.full_name}')
        await self.log_operation(
            mc, 'INFO', 'source_validation', 'validate', 'Validating source repository'
        )
        await strategy.validate_source(mc.repository)

    async def _phase_pre_migration(self, mc: MigrationContext) -> None:
        repository = mc.repository

        self.logger.info(f'Running pre-migration validation for {repository.full_name}')
        await self.log_operation(
            mc, 'INFO', 'pre_migration', 'validate', 'Running pre-migration validation'
        )

        if not mc.dry_run:
            if self.source_client is not None and not repository.is_azure_devops():
                await self.log_operation(
                    mc,
                    'INFO',
                    'pre_migration',
                    'discovery',
                    'Refreshing repository characteristics',
                )
                try:
                    await self._refresh_source_metrics(repository)
                except Exception as e:
                    self.logger.warning(
                        f'Pre-migration discovery failed for {repository.full_name}, '
                        f'continuing with existing data: {e}'
                    )
                    await self.log_operation(
                        mc,
                        'WARN',
                        'pre_migration',
                        'discovery',
                        'Pre-migration discovery failed',
                        details=str(e),
                    )
            else:
                self.logger.debug(
                    f'Skipping discovery refresh for {repository.full_name} '
                    '(no GitHub source client)'
                )

        await self._validate_pre_migration(mc)

        await self.set_status(mc, RepositoryStatus.PRE_MIGRATION)
        await self.log_operation(
            mc, 'INFO', 'pre_migration', 'complete', 'Pre-migration validation passed'
        )

    async def _phase_archive_preparation(
        self, mc: MigrationContext, strategy: MigrationStrategy
    ) -> None:
        self.logger.info(f'Preparing archives for {mc.repository.full_name}')
        await self.log_operation(
            mc, 'INFO', 'archive_generation', 'prepare', 'Preparing migration source'
        )
        await strategy.prepare_archives(mc)

    async def _phase_migration_start(
        self, mc: MigrationContext, strategy: MigrationStrategy
    ) -> None:
        await self.log_operation(
            mc, 'INFO', 'migration', 'start', 'Starting migration on destination'
        )

        mc.migration_id = await strategy.start_migration(mc)

        self.logger.info(
            f'Migration {mc.migration_id} started for {mc.repository.full_name}'
        )
        await self.log_operation(
            mc, 'INFO', 'migration', 'start', f'Migration started (ID: {mc.migration_id})'
        )
        await self.set_status(mc, RepositoryStatus.MIGRATING_CONTENT)

    async def _phase_migration_polling(self, mc: MigrationContext) -> None:
        repository = mc.repository
        last_state = {'state': ''}

        async def check() -> PollResult:
            migration = await self.dest_client.get_repository_migration(
                mc.migration_id
            )
            state = migration.get('state', '')
            last_state['state'] = state
            self.logger.debug(f'Migration state for {repository.full_name}: {state}')

            if state == MIGRATION_SUCCEEDED:
                return PollResult(PollState.READY, state)
            if state in MIGRATION_FAILED_STATES:
                return PollResult(
                    PollState.FAILED,
                    detail=migration.get('failure_reason') or 'unknown reason',
                )
            if state in MIGRATION_IN_PROGRESS_STATES:
                return PollResult(PollState.IN_PROGRESS, detail=state)
            return PollResult(PollState.UNRECOGNIZED, detail=state)

        async def on_progress(elapsed: float, next_interval: float) -> None:
            await self.log_operation(
                mc,
                'INFO',
                'migration',
                'poll',
                f'Migration in progress (state: {last_state["state"]}, '
                f'next_poll: {next_interval:.0f}s)',
            )

        await self.log_operation(
            mc, 'INFO', 'migration', 'poll', 'Waiting for migration to complete'
        )

        try:
            await self.migration_poller.wait_for(
                check, 'repository migration', on_progress=on_progress
            )
        except PollingFailedError as e:
            raise MigrationFailedError(
                f'migration failed: {e}', failure_reason=str(e)
            ) from e
        except GitHubAPIError as e:
            raise MigrationFailedError(f'failed to query migration status: {e}') from e

        dest_org = self.destination_org(repository, mc.batch)
        dest_name = self.destination_repo_name(repository)
        repository.destination_full_name = f'{dest_org}/{dest_name}'
        repository.destination_url = self.dest_client.repository_url(
            repository.destination_full_name
        )

        self.logger.info(
            f'Migration completed successfully for {repository.full_name} -> '
            f'{repository.destination_full_name}'
        )
        await self.set_status(mc, RepositoryStatus.MIGRATION_COMPLETE)
        await self.log_operation(
            mc,
            'INFO',
            'migration',
            'complete',
            f'Migration completed on destination: {repository.destination_url}',
        )

    async def _phase_post_migration(self, mc: MigrationContext) -> None:
        if not self.should_run_post_migration(mc.dry_run):
            self.logger.info(
                f'Skipping post-migration validation for {mc.repository.full_name} '
                f'(mode: {self.settings.post_migration_mode})'
            )
            return

        await self.log_operation(
            mc, 'INFO', 'post_migration', 'validate', 'Running post-migration validation'
        )
        try:
            await self._validate_post_migration(mc)
        except Exception as e:
            self.logger.warning(
                f'Post-migration validation failed for {mc.repository.full_name}: {e}'
            )
            await self.log_operation(
                mc,
                'WARN',
                'post_migration',
                'validate',
                'Post-migration validation failed',
                details=str(e),
            )

    async def _phase_completion(
        self, mc: MigrationContext, strategy: MigrationStrategy
    ) -> None:
        repository = mc.repository

        if (
            strategy.should_unlock_source()
            and mc.source_locked
            and repository.source_migration_id is not None
        ):
            await self.unlock_source(repository)

        message = MESSAGE_BY_OUTCOME[mc.dry_run]['complete']
        self.logger.info(f'{message}: {repository.full_name}')
        await self.log_operation(mc, 'INFO', 'migration', 'complete', message)
        await self._update_history(mc, HistoryStatus.COMPLETED)

        repository.status = STATUS_BY_OUTCOME[mc.dry_run]['complete']
        if mc.dry_run:
            repository.last_dry_run_at = datetime.now()
        else:
            repository.migrated_at = datetime.now()

        await self.storage.update_repository(repository)

    async def _recover_from_failure(
        self, mc: MigrationContext, strategy: MigrationStrategy, error: Exception
    ) -> None:
        """Record a failed phase and release the source lock taken by this attempt."""
        repository = mc.repository
        message = MESSAGE_BY_OUTCOME[mc.dry_run]['failed']

        self.logger.error(f'{message} for {repository.full_name}: {error}')
        await self.log_operation(
            mc, 'ERROR', 'migration', 'failed', message, details=str(error)
        )
        await self._update_history(mc, HistoryStatus.FAILED, str(error))

        repository.status = STATUS_BY_OUTCOME[mc.dry_run]['failed']

        if (
            strategy.should_unlock_source()
            and mc.source_locked
            and repository.source_migration_id is not None
        ):
            await self.unlock_source(repository)

        try:
            await self.storage.update_repository(repository)
        except Exception as e:
            self.logger.error(
                f'Failed to persist failed status for {repository.full_name}: {e}'
            )

    # Pre-migration helpers

    async def _refresh_source_metrics(self, repository: Repository) -> None:
        """Refresh size, branch, tag and commit data from the source API."""
        owner, name = repository.organization, repository.name
        self.logger.info(f'Refreshing repository characteristics for {repository.full_name}')

        data = await self.source_client.get_repository(owner, name)

        repository.total_size = (data.get('size') or 0) * 1024
        repository.default_branch = data.get('default_branch') or None
        repository.has_wiki = bool(data.get('has_wiki'))
        repository.has_pages = bool(data.get('has_pages'))
        repository.is_archived = bool(data.get('archived'))
        if data.get('pushed_at'):
            repository.last_commit_date = datetime.fromisoformat(
                data['pushed_at'].replace('Z', '+00:00')
            )

        try:
            branches = await self.source_client.list_branches(owner, name)
            repository.branch_count = len(branches)
        except GitHubAPIError as e:
            self.logger.debug(f'Could not list branches for {repository.full_name}: {e}')

        if repository.default_branch:
            try:
                branch = await self.source_client.get_branch(
                    owner, name, repository.default_branch
                )
                sha = (branch.get('commit') or {}).get('sha')
                if sha:
                    repository.last_commit_sha = sha
            except GitHubAPIError as e:
                self.logger.debug(
                    f'Could not read default branch of {repository.full_name}: {e}'
                )

        try:
            tags = await self.source_client.list_tags(owner, name)
            repository.tag_count = len(tags)
        except GitHubAPIError as e:
            self.logger.debug(f'Could not list tags for {repository.full_name}: {e}')

        try:
            await self.storage.update_repository(repository)
        except Exception as e:
            self.logger.warning(
                f'Failed to update {repository.full_name} after discovery: {e}'
            )

        self.logger.info(
            f'Pre-migration discovery complete for {repository.full_name} '
            f'(size: {repository.total_size}, branches: {repository.branch_count}, '
            f'tags: {repository.tag_count})'
        )

    async def _validate_pre_migration(self, mc: MigrationContext) -> None:
        """Blocking checks that must pass before anything changes on the source.

        Raises:
            PreMigrationError: If the repository is oversized
            DestinationExistsError: If the destination exists and the policy
                is fail or skip
        """
        repository = mc.repository

        if repository.has_oversized_repository:
            raise PreMigrationError(
                "repository exceeds GitHub's 40 GiB size limit and requires "
                'remediation before migration (reduce repository size using Git '
                'LFS or history rewriting)'
            )

        issues = []
        if (
            repository.largest_file_size
            and repository.largest_file_size > LARGE_FILE_WARNING_SIZE
        ):
            issues.append(
                f'Very large file detected: {repository.largest_file} '
                f'({repository.largest_file_size // MIB} MB)'
            )
        if repository.total_size and repository.total_size > LARGE_REPOSITORY_WARNING_SIZE:
            issues.append(f'Very large repository: {repository.total_size // GIB} GB')
        if repository.is_archived:
            issues.append('Repository is archived')

        dest_org = self.destination_org(repository, mc.batch)
        dest_name = self.destination_repo_name(repository)
        action = self.settings.dest_repo_exists_action
        self.logger.info(
            f'Checking destination repository {dest_org}/{dest_name} '
            f'for {repository.full_name} (action: {action})'
        )

        existing = None
        try:
            existing = await self.dest_client.get_repository(dest_org, dest_name)
        except GitHubNotFoundError:
            self.logger.info(
                f'Destination repository {dest_org}/{dest_name} does not exist, '
                'ready for migration'
            )
        except GitHubAPIError as e:
            self.logger.warning(
                f'Unable to check destination repository {dest_org}/{dest_name}: {e}'
            )

        if existing is not None:
            existing_name = (existing or {}).get('full_name') or f'{dest_org}/{dest_name}'
            self.logger.warning(
                f'Destination repository already exists: {existing_name} '
                f'(action: {action})'
            )

            if action != 'delete':
                if action == 'skip':
                    self.logger.info(
                        f'Skipping migration of {repository.full_name}: '
                        'destination repository exists'
                    )
                raise DestinationExistsError(existing_name, action)

            try:
                await self.dest_client.delete_repository(dest_org, dest_name)
            except GitHubAPIError as e:
                raise PreMigrationError(
                    f'failed to delete existing destination repository: {e}'
                ) from e

            self.logger.info(f'Deleted existing destination repository {existing_name}')
            await self.log_operation(
                mc,
                'WARN',
                'pre_migration',
                'delete_destination',
                f'Deleted existing destination repository {existing_name}',
            )

        if issues:
            self.logger.warning(
                f'Pre-migration validation warnings for {repository.full_name}: '
                f'{"; ".join(issues)}'
            )
            await self.log_operation(
                mc,
                'WARN',
                'pre_migration',
                'validate',
                'Pre-migration validation warnings',
                details='; '.join(issues),
            )

    # Post-migration helpers

    def should_run_post_migration(self, dry_run: bool) -> bool:
        mode = self.settings.post_migration_mode
        if mode == 'never':
            return False
        if mode == 'always':
            return True
        if mode == 'dry_run_only':
            return dry_run
        return not dry_run

    async def _validate_post_migration(self, mc: MigrationContext) -> None:
        repository = mc.repository
        dest_full_name = (
            repository.destination_full_name
            or f'{self.destination_org(repository, mc.batch)}/'
            f'{self.destination_repo_name(repository)}'
        )

        dest_profile = await self.profiler.profile(dest_full_name)
        result = self.comparator.compare(repository.profile(), dest_profile)

        repository.validation_status = result.status
        repository.validation_details = result.report_json()
        repository.destination_data = dest_profile.model_dump_json()

        await self.storage.update_repository_validation(
            repository.full_name,
            repository.validation_status,
            repository.validation_details,
            repository.destination_data,
        )

        if not result.mismatches:
            self.logger.info(f'Post-migration validation passed for {repository.full_name}')
            await self.log_operation(
                mc, 'INFO', 'post_migration', 'validate', 'Validation passed'
            )
            return

        summary = ', '.join(m.field for m in result.mismatches)
        level = 'WARN' if result.has_critical else 'INFO'
        self.logger.warning(
            f'Post-migration validation found {len(result.mismatches)} mismatches '
            f'({result.critical_count} critical) for {repository.full_name}: {summary}'
        )
        await self.log_operation(
            mc,
            level,
            'post_migration',
            'validate',
            f'Validation found {len(result.mismatches)} mismatches '
            f'({result.critical_count} critical)',
            details=repository.validation_details,
        )

    # Shared services for strategies

    async def set_status(self, mc: MigrationContext, status: RepositoryStatus) -> None:
        """Persist an intermediate status; dry runs report dry_run_in_progress."""
        mc.repository.status = (
            RepositoryStatus.DRY_RUN_IN_PROGRESS if mc.dry_run else status
        )
        await self.storage.update_repository(mc.repository)

    async def log_operation(
        self,
        mc: MigrationContext,
        level: str,
        phase: str,
        operation: str,
        message: str,
        details: Optional[str] = None,
    ) -> None:
        """Append a migration log entry; write failures are only logged."""
        entry = MigrationLog(
            repository_id=mc.repository.id,
            history_id=mc.history_id,
            level=level,
            phase=phase,
            operation=operation,
            message=message,
            details=details,
        )
        try:
            await self.storage.create_migration_log(entry)
        except Exception as e:
            self.logger.warning(f'Failed to write migration log entry: {e}')

    async def unlock_source(self, repository: Repository) -> None:
        """Unlock the source repository; failures are logged for manual follow-up."""
        if repository.source_migration_id is None:
            return
        if self.source_client is None:
            self.logger.warning(
                f'Cannot unlock {repository.full_name}: no source client configured'
            )
            return

        self.logger.info(
            f'Unlocking source repository {repository.full_name} '
            f'(migration {repository.source_migration_id})'
        )
        try:
            await self.source_client.unlock_repository(
                repository.organization,
                repository.source_migration_id,
                repository.name,
            )
        except GitHubAPIError as e:
            self.logger.error(
                f'Failed to unlock source repository {repository.full_name} '
                f'(can be unlocked manually): {e}'
            )
            return

        repository.source_migration_id = None
        repository.is_source_locked = False
        self.logger.info(f'Unlocked source repository {repository.full_name}')

    def destination_org(self, repository: Repository, batch: Optional[Batch]) -> str:
        """Destination organization: repository override, then batch, then source org."""
        if repository.destination_full_name and '/' in repository.destination_full_name:
            return repository.destination_full_name.split('/', 1)[0]
        if batch is not None and batch.destination_org:
            return batch.destination_org
        return repository.organization

    def destination_repo_name(self, repository: Repository) -> str:
        if repository.destination_full_name and '/' in repository.destination_full_name:
            name = repository.destination_full_name.split('/', 1)[1]
        else:
            name = repository.name
        return name.replace(' ', '-')

    def target_visibility(self, source_visibility: Optional[str]) -> str:
        """Map a source visibility onto the destination, defaulting to private."""
        visibility = (source_visibility or '').lower()
        handling = self.settings.visibility_handling

        if visibility == 'public':
            if handling.public_repos in PUBLIC_TARGETS:
                return handling.public_repos
            self.logger.warning(
                f'Invalid public_repos visibility {handling.public_repos!r}, '
                'using private'
            )
            return 'private'

        if visibility == 'internal':
            if handling.internal_repos in INTERNAL_TARGETS:
                return handling.internal_repos
            self.logger.warning(
                f'Invalid internal_repos visibility {handling.internal_repos!r}, '
                'using private'
            )
            return 'private'

        if visibility != 'private':
            self.logger.warning(
                f'Unknown source visibility {source_visibility!r}, using private'
            )
        return 'private'

    async def get_organization_id(self, org: str) -> str:
        return await self.caches.organization_ids.get_or_create(
            org, lambda: self.dest_client.get_organization_id(org)
        )

    async def get_archive_migration_source(self, owner_id: str) -> str:
        if self.source_client is None:
            raise ConfigurationError('archive migrations require a source client')

        source_url = self.source_client.web_url
        return await self.caches.archive_sources.get_or_create(
            owner_id,
            lambda: self.dest_client.create_migration_source(
                f'Migration from {source_url}', source_url, owner_id, ARCHIVE_SOURCE_TYPE
            ),
        )

    async def get_ado_migration_source(self, owner_id: str) -> str:
        # Migration sources belong to an organization, so the owner is part of the key
        return await self.caches.ado_sources.get_or_create(
            (AZURE_DEVOPS_BASE_URL, owner_id),
            lambda: self.dest_client.create_migration_source(
                'Azure DevOps', AZURE_DEVOPS_BASE_URL, owner_id, AZURE_DEVOPS_SOURCE_TYPE
            ),
        )

    # History

    async def _create_history(self, mc: MigrationContext) -> int:
        history = MigrationHistory(
            repository_id=mc.repository.id,
            phase=mc.phase_name,
            status=HistoryStatus.IN_PROGRESS,
        )
        try:
            return await self.storage.create_migration_history(history)
        except Exception as e:
            raise MigrationError(f'failed to create migration history: {e}') from e

    async def _update_history(
        self,
        mc: MigrationContext,
        status: HistoryStatus,
        error_message: Optional[str] = None,
    ) -> None:
        if mc.history_id is None:
            return
        try:
            await self.storage.update_migration_history(
                mc.history_id, status, error_message
            )
        except Exception as e:
            self.logger.warning(f'Failed to update migration history: {e}')
