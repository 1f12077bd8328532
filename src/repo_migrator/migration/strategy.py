"""Migration strategy interfaces and implementations."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

from ..api.azure_devops import AZURE_DEVOPS_BASE_URL
from ..api.client import ArchiveOptions
from ..api.exceptions import AzureDevOpsAPIError, GitHubAPIError
from ..models import Repository, RepositoryStatus
from .context import ArchiveIdentifiers, ArchiveURLs, MigrationContext
from .exceptions import (
    ArchiveGenerationError,
    MigrationStartError,
    PollingFailedError,
    PollingTimeoutError,
    SourceValidationError,
)
from .polling import PollResult, PollState

if TYPE_CHECKING:
    from .executor import Executor

# Releases are left out of metadata archives above this size
RELEASES_SIZE_LIMIT = 10 * 1024 * 1024 * 1024

ARCHIVE_READY = 'exported'
ARCHIVE_FAILED = 'failed'
ARCHIVE_IN_PROGRESS = ('pending', 'exporting')

MIN_ADO_TOKEN_LENGTH = 40
CLASSIC_TOKEN_PREFIXES = ('ghp_', 'gho_')
FINE_GRAINED_TOKEN_PREFIX = 'github_pat_'
ADO_HOSTS = ('dev.azure.com', 'visualstudio.com')


class MigrationStrategy(ABC):
    """Source-system specific steps of a repository migration."""

    name = 'base'

    def __init__(self, executor: 'Executor'):
        """Initialize migration strategy.

        Args:
            executor: Executor providing clients, storage, caches and policies
        """
        self.executor = executor
        self.logger = logger.bind(component=self.__class__.__name__)

    @abstractmethod
    def supports_repository(self, repository: Repository) -> bool:
        """Check whether this strategy handles the repository.

        Args:
            repository: Repository to check

        Returns:
            True if this strategy should migrate the repository
        """
        pass

    @abstractmethod
    async def validate_source(self, repository: Repository) -> None:
        """Verify the source repository is reachable with current credentials.

        Raises:
            SourceValidationError: If the source cannot be accessed
        """
        pass

    @abstractmethod
    async def prepare_archives(self, mc: MigrationContext) -> None:
        """Produce whatever the destination needs to pull the repository.

        Args:
            mc: Migration context, updated with archive IDs and URLs
        """
        pass

    @abstractmethod
    async def start_migration(self, mc: MigrationContext) -> str:
        """Start the destination-side migration.

        Args:
            mc: Migration context

        Returns:
            Destination migration ID
        """
        pass

    @abstractmethod
    def should_unlock_source(self) -> bool:
        """Whether the source supports locking and must be unlocked afterwards."""
        pass


class GitHubMigrationStrategy(MigrationStrategy):
    """Migrates from GitHub Enterprise Server through two archive exports.

    Git data and metadata are exported separately so each archive stays
    smaller and can fail independently.
    """

    name = 'GitHub'

    def supports_repository(self, repository: Repository) -> bool:
        # Every repository without an Azure DevOps project is a GitHub
        # repository, so this strategy matches whatever others do not.
        return not repository.is_azure_devops()

    def should_unlock_source(self) -> bool:
        return True

    async def validate_source(self, repository: Repository) -> None:
        source_client = self.executor.source_client
        if source_client is None:
            raise SourceValidationError(
                f'No source client configured for {repository.full_name}'
            )

        try:
            data = await source_client.get_repository(
                repository.organization, repository.name
            )
        except GitHubAPIError as e:
            raise SourceValidationError(
                f'source repository not found or inaccessible: {e}'
            ) from e

        if data and data.get('archived'):
            self.logger.warning(f'Source repository {repository.full_name} is archived')

        self.logger.info(f'Source repository verified: {repository.full_name}')

    async def prepare_archives(self, mc: MigrationContext) -> None:
        executor = self.executor
        repository = mc.repository

        mc.archive_ids = await self._start_archive_exports(mc)

        await executor.set_status(mc, RepositoryStatus.ARCHIVE_GENERATING)
        await executor.log_operation(
            mc,
            'INFO',
            'archive_generation',
            'initiate',
            f'Archive generation started (git: {mc.archive_ids.git_archive_id}, '
            f'metadata: {mc.archive_ids.metadata_archive_id})',
        )

        await executor.log_operation(
            mc,
            'INFO',
            'archive_generation',
            'poll',
            'Waiting for archives to be ready',
        )
        mc.archive_urls = await self._wait_for_archives(mc)

        self.logger.info(f'Both archives ready for {repository.full_name}')
        await executor.log_operation(
            mc, 'INFO', 'archive_generation', 'complete', 'Archives ready'
        )

    async def _start_archive_exports(self, mc: MigrationContext) -> ArchiveIdentifiers:
        """Start the git-only and metadata-only exports.

        The git export locks the source in production runs; its job ID is
        persisted before the metadata export is requested so a later failure
        can still unlock the repository.
        """
        repository = mc.repository
        source_client = self.executor.source_client

        exclude_releases = mc.exclude_releases
        if (
            not exclude_releases
            and repository.total_size
            and repository.total_size > RELEASES_SIZE_LIMIT
        ):
            exclude_releases = True
            self.logger.info(
                f'Excluding releases for {repository.full_name} due to repository '
                f'size ({repository.total_size} bytes)'
            )

        self.logger.info(
            f'Generating git and metadata archives for {repository.full_name} '
            f'(lock: {mc.lock_repositories}, exclude_releases: {exclude_releases}, '
            f'exclude_attachments: {mc.exclude_attachments})'
        )

        git_options = ArchiveOptions(
            repositories=[repository.name],
            lock_repositories=mc.lock_repositories,
            exclude_metadata=True,
            exclude_owner_projects=True,
        )
        try:
            git_export = await source_client.start_migration(
                repository.organization, git_options
            )
        except GitHubAPIError as e:
            raise ArchiveGenerationError(
                f'failed to start git archive generation for repository '
                f'{repository.full_name}: {e}'
            ) from e

        git_archive_id = git_export['id']
        self.logger.info(
            f'Git archive generation started for {repository.full_name} '
            f'(id: {git_archive_id})'
        )

        if mc.lock_repositories:
            repository.source_migration_id = git_archive_id
            repository.is_source_locked = True
            mc.source_locked = True
            try:
                await self.executor.storage.update_repository(repository)
            except Exception as e:
                # The ID is still held in memory for unlocking
                self.logger.error(
                    f'Failed to persist source migration ID {git_archive_id} for '
                    f'{repository.full_name}: {e}'
                )

        metadata_options = ArchiveOptions(
            repositories=[repository.name],
            lock_repositories=False,
            exclude_git_data=True,
            exclude_attachments=mc.exclude_attachments,
            exclude_releases=exclude_releases,
            exclude_owner_projects=True,
        )
        try:
            metadata_export = await source_client.start_migration(
                repository.organization, metadata_options
            )
        except GitHubAPIError as e:
            raise ArchiveGenerationError(
                f'failed to start metadata archive generation for repository '
                f'{repository.full_name}: {e}'
            ) from e

        self.logger.info(
            f'Metadata archive generation started for {repository.full_name} '
            f'(id: {metadata_export["id"]})'
        )

        return ArchiveIdentifiers(
            git_archive_id=git_archive_id, metadata_archive_id=metadata_export['id']
        )

    async def _wait_for_archives(self, mc: MigrationContext) -> ArchiveURLs:
        """Poll both exports until both are ready or either fails."""
        repository = mc.repository
        source_client = self.executor.source_client
        org = repository.organization

        pending: Dict[str, int] = {
            'git': mc.archive_ids.git_archive_id,
            'metadata': mc.archive_ids.metadata_archive_id,
        }
        urls: Dict[str, str] = {}

        async def check() -> PollResult:
            unrecognized: List[str] = []

            for kind, archive_id in list(pending.items()):
                state = await source_client.get_migration_status(org, archive_id)
                self.logger.debug(
                    f'{kind} archive {archive_id} for {repository.full_name}: {state}'
                )

                if state == ARCHIVE_READY:
                    urls[kind] = await source_client.get_migration_archive_url(
                        org, archive_id
                    )
                    del pending[kind]
                    self.logger.info(f'{kind} archive ready for {repository.full_name}')
                elif state == ARCHIVE_FAILED:
                    return PollResult(
                        PollState.FAILED,
                        detail=f'{kind} archive generation failed for repository '
                        f'{repository.full_name} (migration ID: {archive_id})',
                    )
                elif state not in ARCHIVE_IN_PROGRESS:
                    unrecognized.append(f'{kind}={state}')

            if not pending:
                return PollResult(
                    PollState.READY,
                    ArchiveURLs(git_source=urls['git'], metadata=urls['metadata']),
                )
            if unrecognized:
                return PollResult(PollState.UNRECOGNIZED, detail=', '.join(unrecognized))
            return PollResult(PollState.IN_PROGRESS)

        async def on_progress(elapsed: float, next_interval: float) -> None:
            await self.executor.log_operation(
                mc,
                'INFO',
                'archive_generation',
                'poll',
                f'Archive generation in progress (git: {"git" not in pending}, '
                f'metadata: {"metadata" not in pending}, '
                f'next_poll: {next_interval:.0f}s)',
            )

        try:
            return await self.executor.archive_poller.wait_for(
                check, 'archive generation', on_progress=on_progress
            )
        except (PollingFailedError, PollingTimeoutError) as e:
            raise ArchiveGenerationError(str(e)) from e
        except GitHubAPIError as e:
            raise ArchiveGenerationError(
                f'failed to check archive status for {repository.full_name}: {e}'
            ) from e

    async def start_migration(self, mc: MigrationContext) -> str:
        executor = self.executor
        repository = mc.repository

        if mc.archive_urls is None:
            raise MigrationStartError(
                f'No archive URLs available for {repository.full_name}'
            )

        dest_org = executor.destination_org(repository, mc.batch)
        visibility = executor.target_visibility(repository.visibility)
        self.logger.info(
            f'Applying visibility transformation for {repository.full_name}: '
            f'{repository.visibility} -> {visibility}'
        )

        try:
            owner_id = await executor.get_organization_id(dest_org)
            source_id = await executor.get_archive_migration_source(owner_id)

            migration_input = {
                'sourceId': source_id,
                'ownerId': owner_id,
                'repositoryName': executor.destination_repo_name(repository),
                'continueOnError': True,
                'targetRepoVisibility': visibility,
                'sourceRepositoryUrl': repository.source_url,
                'gitArchiveUrl': mc.archive_urls.git_source,
                'metadataArchiveUrl': mc.archive_urls.metadata,
                'accessToken': executor.source_client.token,
                'githubPat': executor.dest_client.token,
            }
            if mc.exclude_releases:
                migration_input['skipReleases'] = True
                self.logger.info(
                    f'Excluding releases from migration of {repository.full_name}'
                )

            return await executor.dest_client.start_repository_migration(
                migration_input
            )
        except GitHubAPIError as e:
            raise MigrationStartError(f'failed to start migration via GraphQL: {e}') from e


class AzureDevOpsMigrationStrategy(MigrationStrategy):
    """Migrates from Azure DevOps.

    The importer pulls straight from Azure DevOps with the supplied PAT, so no
    archives are produced and there is no source lock to release.
    """

    name = 'AzureDevOps'

    def supports_repository(self, repository: Repository) -> bool:
        return repository.is_azure_devops()

    def should_unlock_source(self) -> bool:
        return False

    async def validate_source(self, repository: Repository) -> None:
        ado_client = self.executor.ado_client
        if ado_client is None:
            raise SourceValidationError(
                f'No Azure DevOps token configured for {repository.full_name}'
            )

        try:
            await ado_client.validate_repository_access(repository.source_url)
        except AzureDevOpsAPIError as e:
            raise SourceValidationError(
                f'Azure DevOps repository access check failed: {e}'
            ) from e

        self.logger.info(f'Azure DevOps access verified for {repository.full_name}')

    async def prepare_archives(self, mc: MigrationContext) -> None:
        self.logger.info(
            f'Skipping archive generation for {mc.repository.full_name}: '
            'the importer pulls directly from Azure DevOps'
        )

    async def start_migration(self, mc: MigrationContext) -> str:
        executor = self.executor
        repository = mc.repository

        ado_token = self._check_tokens(executor.ado_token, executor.dest_client.token)
        source_url = self._clean_source_url(repository.source_url)

        dest_org = executor.destination_org(repository, mc.batch)
        visibility = executor.target_visibility(repository.visibility)

        try:
            owner_id = await executor.get_organization_id(dest_org)
            source_id = await executor.get_ado_migration_source(owner_id)

            migration_input = {
                'sourceId': source_id,
                'ownerId': owner_id,
                'repositoryName': executor.destination_repo_name(repository),
                'continueOnError': True,
                'targetRepoVisibility': visibility,
                'sourceRepositoryUrl': source_url,
                'accessToken': ado_token,
                'githubPat': executor.dest_client.token,
            }

            return await executor.dest_client.start_repository_migration(
                migration_input
            )
        except GitHubAPIError as e:
            raise MigrationStartError(self._explain_start_failure(e)) from e

    def _check_tokens(self, ado_token: Optional[str], github_token: str) -> str:
        """Reject tokens the importer is known not to accept.

        Returns:
            The Azure DevOps token
        """
        if not ado_token:
            raise MigrationStartError(
                'Azure DevOps PAT is required (accessToken) but is not configured'
            )
        if len(ado_token) < MIN_ADO_TOKEN_LENGTH:
            raise MigrationStartError(
                f'Azure DevOps PAT looks invalid: expected at least '
                f'{MIN_ADO_TOKEN_LENGTH} characters, got {len(ado_token)}'
            )
        if github_token.startswith(FINE_GRAINED_TOKEN_PREFIX):
            raise MigrationStartError(
                'Fine-grained personal access tokens are not supported for '
                'Azure DevOps migrations; use a classic PAT with repo, admin:org '
                'and workflow scopes (githubPat)'
            )
        if not github_token.startswith(CLASSIC_TOKEN_PREFIXES):
            self.logger.warning(
                'Destination token is not a classic personal access token '
                '(ghp_ or gho_); the importer may reject it'
            )
        return ado_token

    def _clean_source_url(self, source_url: str) -> str:
        """Validate an Azure DevOps repository URL and strip credentials."""
        if '/_git/' not in source_url:
            raise MigrationStartError(
                f'Invalid Azure DevOps repository URL (sourceRepositoryUrl): '
                f'{source_url}; expected https://dev.azure.com/{{org}}/{{project}}/_git/{{repo}}'
            )

        parts = urlsplit(source_url)
        host = parts.hostname or ''
        if not any(host == h or host.endswith('.' + h) for h in ADO_HOSTS):
            self.logger.warning(
                f'Source URL host {host} is not an Azure DevOps host; '
                'the importer may reject it'
            )

        netloc = parts.netloc.rsplit('@', 1)[-1]
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, ''))

    @staticmethod
    def _explain_start_failure(error: GitHubAPIError) -> str:
        message = str(error)
        hint = ''
        if 'githubPat' in message:
            hint = (
                'The destination GitHub token was rejected; use a classic PAT with '
                'repo, admin:org and workflow scopes'
            )
        elif 'accessToken' in message:
            hint = (
                'The Azure DevOps PAT was rejected; it needs Code (Read) access to '
                'the project'
            )
        elif 'sourceRepositoryUrl' in message:
            hint = (
                'The Azure DevOps repository URL was rejected; expected '
                f'{AZURE_DEVOPS_BASE_URL}/{{org}}/{{project}}/_git/{{repo}}'
            )
        elif 'preflight' in message.lower():
            hint = (
                'Importer preflight checks failed; verify both tokens and that the '
                'repository is reachable from GitHub'
            )

        text = f'failed to start Azure DevOps migration: {message}'
        return f'{text}. {hint}' if hint else text


class StrategyRegistry:
    """Ordered collection of strategies; the first match wins."""

    def __init__(self, strategies: Optional[List[MigrationStrategy]] = None):
        self._strategies: List[MigrationStrategy] = list(strategies or [])

    @classmethod
    def default(cls, executor: 'Executor') -> 'StrategyRegistry':
        return cls(
            [GitHubMigrationStrategy(executor), AzureDevOpsMigrationStrategy(executor)]
        )

    @property
    def strategies(self) -> List[MigrationStrategy]:
        return list(self._strategies)

    def register(self, strategy: MigrationStrategy) -> None:
        self._strategies.append(strategy)

    def get_strategy(self, repository: Repository) -> Optional[MigrationStrategy]:
        for strategy in self._strategies:
            if strategy.supports_repository(repository):
                return strategy
        return None
