"""GitHub API client implementation (REST and GraphQL)."""

import json
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel, Field

from ..config.config import GitHubInstanceConfig
from .exceptions import (
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
)
from .rate_limiter import RateLimiter

USER_AGENT = 'repo-migrator/0.1.0'
API_VERSION = '2022-11-28'

# Organization migrations API preview media type
MIGRATIONS_ACCEPT = 'application/vnd.github.wyandotte-preview+json'

ORGANIZATION_ID_QUERY = """
query($login: String!) {
  organization(login: $login) { id }
}
"""

CREATE_MIGRATION_SOURCE_MUTATION = """
mutation($name: String!, $url: String!, $ownerId: ID!, $type: MigrationSourceType!) {
  createMigrationSource(input: {name: $name, url: $url, ownerId: $ownerId, type: $type}) {
    migrationSource { id name url type }
  }
}
"""

START_REPOSITORY_MIGRATION_MUTATION = """
mutation($input: StartRepositoryMigrationInput!) {
  startRepositoryMigration(input: $input) {
    repositoryMigration {
      id
      state
      sourceUrl
      migrationSource { id name type }
    }
  }
}
"""

MIGRATION_STATUS_QUERY = """
query($id: ID!) {
  node(id: $id) {
    ... on Migration {
      id
      state
      failureReason
      repositoryName
      migrationSource { name }
    }
  }
}
"""


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class ArchiveOptions(BaseModel):
    """Options for an organization migration archive export."""

    repositories: List[str] = Field(..., description='Repositories to export')
    lock_repositories: bool = Field(default=False, description='Lock the source')
    exclude_metadata: bool = Field(default=False, description='Git data only')
    exclude_git_data: bool = Field(default=False, description='Metadata only')
    exclude_attachments: bool = Field(default=False, description='Skip attachments')
    exclude_releases: bool = Field(default=False, description='Skip releases')
    exclude_owner_projects: bool = Field(
        default=False, description='Skip organization projects'
    )


class GitHubClient:
    """GitHub API client for github.com, GHE.com and GitHub Enterprise Server."""

    def __init__(self, config: GitHubInstanceConfig):
        """Initialize GitHub client.

        Args:
            config: GitHub instance configuration

        Raises:
            GitHubAuthenticationError: If no token is configured
        """
        if not config.token:
            raise GitHubAuthenticationError('No authentication token provided')

        self.config = config
        self.web_url, self.base_url, self.graphql_url = self._derive_urls(config)
        self.rate_limiter = RateLimiter(config.rate_limit_per_second)
        self.timeout = aiohttp.ClientTimeout(total=config.timeout)

        self.session = requests.Session()
        self.session.headers.update(self._headers())

        logger.info(f'Initialized GitHub client for {config.url}')

    @staticmethod
    def _derive_urls(config: GitHubInstanceConfig):
        """Derive web, REST and GraphQL URLs from the configured URL.

        Returns:
            Tuple of (web URL, REST API URL, GraphQL URL)
        """
        web_url = config.url
        host = urlparse(config.url).netloc.lower()

        if config.api_url:
            api_url = config.api_url
            if api_url.endswith('/api/v3'):
                graphql_url = api_url[: -len('/v3')] + '/graphql'
            else:
                graphql_url = api_url + '/graphql'
        elif host in ('github.com', 'www.github.com', 'api.github.com'):
            web_url = 'https://github.com'
            api_url = 'https://api.github.com'
            graphql_url = 'https://api.github.com/graphql'
        elif host.endswith('.ghe.com'):
            api_url = f'https://api.{host}'
            graphql_url = f'https://api.{host}/graphql'
        else:
            api_url = config.url + '/api/v3'
            graphql_url = config.url + '/api/graphql'

        return web_url, api_url, graphql_url

    @property
    def token(self) -> str:
        return self.config.token

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': API_VERSION,
            'User-Agent': USER_AGENT,
        }

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full API URL
        """
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    @staticmethod
    def _error_for_status(
        status: int, headers: Dict[str, str], data: Any
    ) -> Optional[GitHubAPIError]:
        """Map an HTTP error status to an API exception.

        Returns:
            Exception to raise, or None for successful statuses
        """
        if status < 400:
            return None

        message = f'HTTP {status}'
        if isinstance(data, dict) and data.get('message'):
            message = data['message']
        elif isinstance(data, str) and data:
            message = f'HTTP {status}: {data}'

        if status == 429 or (
            status == 403 and headers.get('X-RateLimit-Remaining') == '0'
        ):
            retry_after = int(headers.get('Retry-After', 60))
            return GitHubRateLimitError(
                f'Rate limit exceeded. Retry after {retry_after} seconds',
                retry_after=retry_after,
                status_code=status,
            )
        if status == 401:
            return GitHubAuthenticationError(
                'Authentication failed', status_code=status
            )
        if status == 403:
            return GitHubPermissionError(
                f'Permission denied: {message}', status_code=status, response_data=data
            )
        if status == 404:
            return GitHubNotFoundError('Resource not found', status_code=status)

        return GitHubAPIError(
            f'API request failed: {message}', status_code=status, response_data=data
        )

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Args:
            response: Raw HTTP response

        Returns:
            Standardized API response

        Raises:
            GitHubAPIError: For various API errors
        """
        headers = dict(response.headers)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        error = self._error_for_status(response.status_code, headers, data)
        if error:
            raise error

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    async def _make_request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_redirects: bool = True,
    ) -> APIResponse:
        """Make asynchronous API request.

        Args:
            method: HTTP method
            endpoint: API endpoint or absolute URL
            params: Query parameters
            data: Request body data
            headers: Extra request headers
            allow_redirects: Follow redirects

        Returns:
            API response
        """
        url = endpoint if endpoint.startswith('http') else self._build_url(endpoint)

        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        await self.rate_limiter.acquire()

        async with aiohttp.ClientSession(
            headers=request_headers, timeout=self.timeout
        ) as session:
            try:
                async with session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    allow_redirects=allow_redirects,
                ) as response:
                    response_headers = dict(response.headers)

                    try:
                        response_text = await response.text()
                        response_data = (
                            json.loads(response_text) if response_text else None
                        )
                    except ValueError:
                        response_data = response_text

                    error = self._error_for_status(
                        response.status, response_headers, response_data
                    )
                    if error:
                        raise error

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

            except aiohttp.ClientError as e:
                logger.error(f'Network error during API request: {e}')
                raise GitHubAPIError(f'Network error: {e}') from e

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request.

        Args:
            endpoint: API endpoint
            params: Query parameters
            **kwargs: Additional request arguments

        Returns:
            API response
        """
        url = self._build_url(endpoint)

        try:
            self.rate_limiter.acquire_sync()
            response = self.session.get(url, params=params, **kwargs)
            return self._handle_response(response)
        except requests.RequestException as e:
            logger.error(f'Network error during GET request: {e}')
            raise GitHubAPIError(f'Network error: {e}') from e

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        return await self._make_request_async('GET', endpoint, params=params, **kwargs)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        return await self._make_request_async('POST', endpoint, data=data, **kwargs)

    async def delete_async(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._make_request_async('DELETE', endpoint, **kwargs)

    async def get_paginated_async(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated endpoint.

        Args:
            endpoint: API endpoint
            params: Query parameters
            per_page: Items per page

        Returns:
            List of all items from all pages
        """
        all_items: List[Dict[str, Any]] = []
        page = 1
        params = dict(params or {})
        params['per_page'] = per_page

        while True:
            params['page'] = page
            response = await self.get_async(endpoint, params=params)

            items = response.data
            if not items:
                break

            all_items.extend(items)

            if len(items) < per_page:
                break

            page += 1

        logger.debug(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    async def graphql(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Execute a GraphQL query or mutation.

        Args:
            query: GraphQL document
            variables: Query variables

        Returns:
            The ``data`` member of the response

        Raises:
            GitHubGraphQLError: If the response contains errors
        """
        response = await self._make_request_async(
            'POST', self.graphql_url, data={'query': query, 'variables': variables or {}}
        )
        payload = response.data or {}

        errors = payload.get('errors')
        if errors:
            messages = '; '.join(error.get('message', str(error)) for error in errors)
            raise GitHubGraphQLError(
                f'GraphQL request failed: {messages}',
                errors=errors,
                status_code=response.status_code,
                response_data=payload,
            )

        return payload.get('data') or {}

    # Repositories

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        response = await self.get_async(f'repos/{owner}/{repo}')
        return response.data

    async def delete_repository(self, owner: str, repo: str) -> None:
        await self.delete_async(f'repos/{owner}/{repo}')
        logger.info(f'Deleted repository {owner}/{repo}')

    async def list_branches(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self.get_paginated_async(f'repos/{owner}/{repo}/branches')

    async def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        response = await self.get_async(f'repos/{owner}/{repo}/branches/{branch}')
        return response.data

    async def list_tags(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self.get_paginated_async(f'repos/{owner}/{repo}/tags')

    async def list_contributors(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self.get_paginated_async(
            f'repos/{owner}/{repo}/contributors', params={'anon': 'true'}
        )

    async def get_actions_permissions(self, owner: str, repo: str) -> Dict[str, Any]:
        response = await self.get_async(f'repos/{owner}/{repo}/actions/permissions')
        return response.data or {}

    def repository_url(self, full_name: str) -> str:
        return f'{self.web_url}/{full_name}'

    # Organization migrations (source side)

    async def start_migration(self, org: str, options: ArchiveOptions) -> Dict[str, Any]:
        """Start an organization migration archive export.

        Args:
            org: Source organization
            options: Export options

        Returns:
            Migration record, including its ``id`` and ``state``
        """
        response = await self.post_async(
            f'orgs/{org}/migrations',
            data=options.model_dump(),
            headers={'Accept': MIGRATIONS_ACCEPT},
        )
        migration = response.data
        if not isinstance(migration, dict) or migration.get('id') is None:
            raise GitHubAPIError(
                'Invalid migration response: missing migration ID',
                status_code=response.status_code,
                response_data=migration,
            )
        return migration

    async def get_migration_status(self, org: str, migration_id: int) -> str:
        """Get the state of an archive export.

        Returns:
            One of pending, exporting, exported or failed
        """
        response = await self.get_async(
            f'orgs/{org}/migrations/{migration_id}',
            headers={'Accept': MIGRATIONS_ACCEPT},
        )
        return (response.data or {}).get('state', '')

    async def get_migration_archive_url(self, org: str, migration_id: int) -> str:
        """Get the pre-signed download URL of an exported archive.

        The endpoint answers with a redirect to the archive; the redirect
        target is returned without downloading it.
        """
        response = await self.get_async(
            f'orgs/{org}/migrations/{migration_id}/archive',
            headers={'Accept': MIGRATIONS_ACCEPT},
            allow_redirects=False,
        )
        location = response.headers.get('Location') or response.headers.get(
            'location'
        )
        if not location:
            raise GitHubAPIError(
                f'Archive URL not available for migration {migration_id}',
                status_code=response.status_code,
            )
        return location

    async def unlock_repository(self, org: str, migration_id: int, repo: str) -> None:
        await self.delete_async(
            f'orgs/{org}/migrations/{migration_id}/repos/{repo}/lock',
            headers={'Accept': MIGRATIONS_ACCEPT},
        )
        logger.info(f'Unlocked repository {org}/{repo} (migration {migration_id})')

    # Enterprise Importer (destination side)

    async def get_organization_id(self, login: str) -> str:
        data = await self.graphql(ORGANIZATION_ID_QUERY, {'login': login})
        organization = data.get('organization')
        if not organization or not organization.get('id'):
            raise GitHubNotFoundError(f'Organization not found: {login}')
        return organization['id']

    async def create_migration_source(
        self, name: str, url: str, owner_id: str, source_type: str
    ) -> str:
        """Create a migration source.

        Args:
            name: Display name
            url: Source base URL
            owner_id: Destination organization node ID
            source_type: GITHUB_ARCHIVE or AZURE_DEVOPS

        Returns:
            Migration source node ID
        """
        data = await self.graphql(
            CREATE_MIGRATION_SOURCE_MUTATION,
            {'name': name, 'url': url, 'ownerId': owner_id, 'type': source_type},
        )
        return data['createMigrationSource']['migrationSource']['id']

    async def start_repository_migration(self, migration_input: Dict[str, Any]) -> str:
        """Start a repository migration.

        Args:
            migration_input: StartRepositoryMigrationInput fields

        Returns:
            Migration node ID
        """
        data = await self.graphql(
            START_REPOSITORY_MIGRATION_MUTATION, {'input': migration_input}
        )
        migration = data['startRepositoryMigration']['repositoryMigration']
        logger.info(
            f'Repository migration {migration["id"]} started for '
            f'{migration_input.get("repositoryName")}'
        )
        return migration['id']

    async def get_repository_migration(self, migration_id: str) -> Dict[str, Any]:
        """Get state and failure reason of a repository migration."""
        data = await self.graphql(MIGRATION_STATUS_QUERY, {'id': migration_id})
        node = data.get('node') or {}
        return {
            'state': node.get('state', ''),
            'failure_reason': node.get('failureReason') or '',
            'repository_name': node.get('repositoryName'),
        }

    def test_connection(self) -> bool:
        """Test connection to the GitHub instance.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            response = self.get('/user')
            return response.success
        except Exception as e:
            logger.error(f'Connection test failed: {e}')
            return False

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.debug('GitHub client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class GitHubClientFactory:
    """Factory for creating GitHub API clients."""

    @staticmethod
    def create_client(config: GitHubInstanceConfig) -> GitHubClient:
        """Create GitHub client from configuration.

        Args:
            config: GitHub instance configuration

        Returns:
            Configured GitHub client
        """
        return GitHubClient(config)
