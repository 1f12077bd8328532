"""Tests for GitHub and Azure DevOps API clients."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch
import aiohttp
import requests

from repo_migrator.api.azure_devops import AzureDevOpsClient, parse_repository_url
from repo_migrator.api.client import (
    APIResponse,
    ArchiveOptions,
    GitHubClient,
    GitHubClientFactory,
)
from repo_migrator.api.exceptions import (
    AzureDevOpsAPIError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
)
from repo_migrator.api.rate_limiter import RateLimiter
from repo_migrator.config.config import GitHubInstanceConfig


def mock_response(status=200, body=None, headers=None):
    """Build an aiohttp-style response usable as an async context manager."""
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    text = body if isinstance(body, str) else json.dumps(body) if body is not None else ''
    response.text = AsyncMock(return_value=text)
    response.__aenter__.return_value = response
    response.__aexit__.return_value = None
    return response


def mock_session(*responses):
    """Build an aiohttp-style session returning the given responses in order."""
    session = MagicMock()
    session.request.side_effect = list(responses)
    session.get.side_effect = list(responses)
    session.__aenter__.return_value = session
    session.__aexit__.return_value = None
    return session


class TestAPIResponse:
    """Test API response model."""

    def test_api_response_creation(self):
        """Test API response creation."""
        response = APIResponse(
            status_code=200,
            data={'id': 1, 'name': 'test'},
            headers={'Content-Type': 'application/json'},
            success=True,
        )

        assert response.status_code == 200
        assert response.data == {'id': 1, 'name': 'test'}
        assert response.success is True


class TestGitHubClient:
    """Test GitHub API client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = GitHubInstanceConfig(
            url='https://ghes.example.com',
            token='test-token',
            timeout=30,
            rate_limit_per_second=100,
        )

    def test_client_initialization(self):
        """Test client initialization."""
        client = GitHubClient(self.config)

        assert client.config == self.config
        assert client.base_url == 'https://ghes.example.com/api/v3'
        assert client.graphql_url == 'https://ghes.example.com/api/graphql'
        assert client.session.headers['Authorization'] == 'Bearer test-token'
        assert client.token == 'test-token'

    @pytest.mark.parametrize(
        'url,web_url,base_url,graphql_url',
        [
            (
                'https://github.com',
                'https://github.com',
                'https://api.github.com',
                'https://api.github.com/graphql',
            ),
            (
                'https://api.github.com',
                'https://github.com',
                'https://api.github.com',
                'https://api.github.com/graphql',
            ),
            (
                'https://acme.ghe.com',
                'https://acme.ghe.com',
                'https://api.acme.ghe.com',
                'https://api.acme.ghe.com/graphql',
            ),
        ],
    )
    def test_url_derivation(self, url, web_url, base_url, graphql_url):
        client = GitHubClient(GitHubInstanceConfig(url=url, token='t'))

        assert client.web_url == web_url
        assert client.base_url == base_url
        assert client.graphql_url == graphql_url

    def test_explicit_api_url(self):
        config = GitHubInstanceConfig(
            url='https://ghes.example.com',
            api_url='https://api.ghes.example.com/api/v3',
            token='t',
        )
        client = GitHubClient(config)

        assert client.base_url == 'https://api.ghes.example.com/api/v3'
        assert client.graphql_url == 'https://api.ghes.example.com/api/graphql'

    def test_build_url(self):
        """Test URL building."""
        client = GitHubClient(self.config)

        assert client._build_url('/user') == 'https://ghes.example.com/api/v3/user'
        assert (
            client._build_url('repos/acme/widgets')
            == 'https://ghes.example.com/api/v3/repos/acme/widgets'
        )

    def test_repository_url(self):
        client = GitHubClient(self.config)

        assert client.repository_url('acme/widgets') == (
            'https://ghes.example.com/acme/widgets'
        )

    @patch('requests.Session.get')
    def test_get_request_success(self, mock_get):
        """Test successful GET request."""
        response = Mock()
        response.status_code = 200
        response.json.return_value = {'login': 'octocat'}
        response.headers = {'Content-Type': 'application/json'}
        response.content = b'{"login": "octocat"}'
        mock_get.return_value = response

        client = GitHubClient(self.config)
        result = client.get('/user')

        assert result.success is True
        assert result.data == {'login': 'octocat'}
        mock_get.assert_called_once()

    @pytest.mark.parametrize(
        'status,headers,error',
        [
            (401, {}, GitHubAuthenticationError),
            (403, {}, GitHubPermissionError),
            (403, {'X-RateLimit-Remaining': '0'}, GitHubRateLimitError),
            (404, {}, GitHubNotFoundError),
            (429, {'Retry-After': '30'}, GitHubRateLimitError),
            (500, {}, GitHubAPIError),
        ],
    )
    @patch('requests.Session.get')
    def test_get_request_errors(self, mock_get, status, headers, error):
        response = Mock()
        response.status_code = status
        response.headers = headers
        response.content = b''
        mock_get.return_value = response

        client = GitHubClient(self.config)

        with pytest.raises(error):
            client.get('/user')

    @patch('requests.Session.get')
    def test_rate_limit_retry_after(self, mock_get):
        response = Mock()
        response.status_code = 429
        response.headers = {'Retry-After': '30'}
        response.content = b''
        mock_get.return_value = response

        client = GitHubClient(self.config)

        with pytest.raises(GitHubRateLimitError) as exc_info:
            client.get('/user')

        assert exc_info.value.retry_after == 30

    @patch('requests.Session.get')
    def test_test_connection_success(self, mock_get):
        """Test successful connection test."""
        response = Mock()
        response.status_code = 200
        response.json.return_value = {'login': 'octocat'}
        response.headers = {}
        response.content = b'{"login": "octocat"}'
        mock_get.return_value = response

        client = GitHubClient(self.config)

        assert client.test_connection() is True
        mock_get.assert_called_once_with(
            'https://ghes.example.com/api/v3/user', params=None
        )

    @patch('requests.Session.get')
    def test_test_connection_failure(self, mock_get):
        """Test failed connection test."""
        mock_get.side_effect = requests.RequestException('Connection failed')

        client = GitHubClient(self.config)

        assert client.test_connection() is False

    def test_context_manager(self):
        """Test client as context manager."""
        with patch.object(GitHubClient, 'close') as mock_close:
            with GitHubClient(self.config) as client:
                assert isinstance(client, GitHubClient)
            mock_close.assert_called_once()


class TestGitHubClientFactory:
    """Test GitHub client factory."""

    def test_create_client(self):
        config = GitHubInstanceConfig(url='https://github.com', token='test-token')

        client = GitHubClientFactory.create_client(config)

        assert isinstance(client, GitHubClient)
        assert client.config == config


class TestAsyncMethods:
    """Test asynchronous REST and GraphQL methods."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = GitHubInstanceConfig(
            url='https://ghes.example.com',
            token='test-token',
            rate_limit_per_second=100,
        )
        self.client = GitHubClient(self.config)

    @pytest.mark.asyncio
    async def test_get_repository(self):
        session = mock_session(mock_response(body={'full_name': 'acme/widgets'}))

        with patch('aiohttp.ClientSession', return_value=session):
            repo = await self.client.get_repository('acme', 'widgets')

        assert repo == {'full_name': 'acme/widgets'}
        kwargs = session.request.call_args.kwargs
        assert kwargs['method'] == 'GET'
        assert kwargs['url'] == 'https://ghes.example.com/api/v3/repos/acme/widgets'

    @pytest.mark.asyncio
    async def test_get_async_404(self):
        session = mock_session(mock_response(status=404, body={'message': 'Not Found'}))

        with patch('aiohttp.ClientSession', return_value=session):
            with pytest.raises(GitHubNotFoundError):
                await self.client.get_async('repos/acme/missing')

    @pytest.mark.asyncio
    async def test_network_error(self):
        session = MagicMock()
        session.request.side_effect = aiohttp.ClientError('connection reset')
        session.__aenter__.return_value = session
        session.__aexit__.return_value = None

        with patch('aiohttp.ClientSession', return_value=session):
            with pytest.raises(GitHubAPIError, match='Network error'):
                await self.client.get_async('user')

    @pytest.mark.asyncio
    async def test_paginated(self):
        first_page = [{'name': f'b{i}'} for i in range(100)]
        session = mock_session(
            mock_response(body=first_page), mock_response(body=[{'name': 'last'}])
        )

        with patch('aiohttp.ClientSession', return_value=session):
            branches = await self.client.list_branches('acme', 'widgets')

        assert len(branches) == 101
        assert session.request.call_count == 2
        assert session.request.call_args.kwargs['params']['page'] == 2

    @pytest.mark.asyncio
    async def test_start_migration(self):
        session = mock_session(
            mock_response(status=201, body={'id': 77, 'state': 'pending'})
        )
        options = ArchiveOptions(repositories=['widgets'], lock_repositories=True)

        with patch('aiohttp.ClientSession', return_value=session):
            migration = await self.client.start_migration('acme', options)

        assert migration['id'] == 77
        kwargs = session.request.call_args.kwargs
        assert kwargs['method'] == 'POST'
        assert kwargs['url'].endswith('/orgs/acme/migrations')
        assert kwargs['json']['lock_repositories'] is True
        assert kwargs['json']['repositories'] == ['widgets']

    @pytest.mark.asyncio
    async def test_start_migration_missing_id(self):
        session = mock_session(mock_response(status=201, body={'state': 'pending'}))
        options = ArchiveOptions(repositories=['widgets'])

        with patch('aiohttp.ClientSession', return_value=session):
            with pytest.raises(GitHubAPIError, match='missing migration ID'):
                await self.client.start_migration('acme', options)

    @pytest.mark.asyncio
    async def test_get_migration_archive_url(self):
        session = mock_session(
            mock_response(status=302, headers={'Location': 'https://s3/archive.tar.gz'})
        )

        with patch('aiohttp.ClientSession', return_value=session):
            url = await self.client.get_migration_archive_url('acme', 77)

        assert url == 'https://s3/archive.tar.gz'
        assert session.request.call_args.kwargs['allow_redirects'] is False

    @pytest.mark.asyncio
    async def test_unlock_repository(self):
        session = mock_session(mock_response(status=204))

        with patch('aiohttp.ClientSession', return_value=session):
            await self.client.unlock_repository('acme', 77, 'widgets')

        kwargs = session.request.call_args.kwargs
        assert kwargs['method'] == 'DELETE'
        assert kwargs['url'].endswith('/orgs/acme/migrations/77/repos/widgets/lock')

    @pytest.mark.asyncio
    async def test_get_organization_id(self):
        session = mock_session(
            mock_response(body={'data': {'organization': {'id': 'O_123'}}})
        )

        with patch('aiohttp.ClientSession', return_value=session):
            org_id = await self.client.get_organization_id('acme')

        assert org_id == 'O_123'
        kwargs = session.request.call_args.kwargs
        assert kwargs['url'] == 'https://ghes.example.com/api/graphql'
        assert kwargs['json']['variables'] == {'login': 'acme'}

    @pytest.mark.asyncio
    async def test_graphql_errors(self):
        session = mock_session(
            mock_response(body={'errors': [{'message': 'Could not resolve'}]})
        )

        with patch('aiohttp.ClientSession', return_value=session):
            with pytest.raises(GitHubGraphQLError, match='Could not resolve'):
                await self.client.get_organization_id('acme')

    @pytest.mark.asyncio
    async def test_get_repository_migration(self):
        body = {
            'data': {
                'node': {
                    'id': 'RM_1',
                    'state': 'FAILED',
                    'failureReason': 'bad archive',
                    'repositoryName': 'widgets',
                }
            }
        }
        session = mock_session(mock_response(body=body))

        with patch('aiohttp.ClientSession', return_value=session):
            migration = await self.client.get_repository_migration('RM_1')

        assert migration == {
            'state': 'FAILED',
            'failure_reason': 'bad archive',
            'repository_name': 'widgets',
        }

    @pytest.mark.asyncio
    async def test_start_repository_migration(self):
        body = {
            'data': {
                'startRepositoryMigration': {
                    'repositoryMigration': {'id': 'RM_9', 'state': 'QUEUED'}
                }
            }
        }
        session = mock_session(mock_response(body=body))

        with patch('aiohttp.ClientSession', return_value=session):
            migration_id = await self.client.start_repository_migration(
                {'repositoryName': 'widgets'}
            )

        assert migration_id == 'RM_9'


class TestRateLimiter:
    """Test token bucket rate limiter."""

    def test_can_proceed(self):
        limiter = RateLimiter(requests_per_second=2)

        assert limiter.can_proceed() is True
        limiter.acquire_sync()
        limiter.acquire_sync()
        assert limiter.can_proceed() is False

    @pytest.mark.asyncio
    async def test_acquire_waits_for_token(self):
        limiter = RateLimiter(requests_per_second=50)

        for _ in range(51):
            await limiter.acquire()

        assert limiter.tokens < 1


class TestAzureDevOps:
    """Test Azure DevOps URL parsing and access checks."""

    @pytest.mark.parametrize(
        'url,expected',
        [
            (
                'https://dev.azure.com/contoso/payments/_git/api',
                ('contoso', 'payments', 'api'),
            ),
            (
                'https://user@dev.azure.com/contoso/payments/_git/api',
                ('contoso', 'payments', 'api'),
            ),
            (
                'https://contoso.visualstudio.com/payments/_git/api',
                ('contoso', 'payments', 'api'),
            ),
            (
                'git@ssh.dev.azure.com:v3/contoso/payments/api',
                ('contoso', 'payments', 'api'),
            ),
            ('https://github.com/acme/widgets', None),
        ],
    )
    def test_parse_repository_url(self, url, expected):
        parsed = parse_repository_url(url)

        assert (tuple(parsed) if parsed else None) == expected

    def test_basic_auth_header(self):
        client = AzureDevOpsClient('secret')

        # base64(':secret')
        assert client._headers()['Authorization'] == 'Basic OnNlY3JldA=='

    @pytest.mark.asyncio
    async def test_validate_access_ok(self):
        session = mock_session(mock_response(status=200))
        client = AzureDevOpsClient('secret')

        with patch('aiohttp.ClientSession', return_value=session):
            await client.validate_repository_access(
                'https://dev.azure.com/contoso/payments/_git/api'
            )

        url = session.get.call_args.args[0]
        assert url == (
            'https://dev.azure.com/contoso/payments/_apis/git/repositories/api'
            '?api-version=7.0'
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status', [401, 403, 404, 500])
    async def test_validate_access_errors(self, status):
        session = mock_session(mock_response(status=status))
        client = AzureDevOpsClient('secret')

        with patch('aiohttp.ClientSession', return_value=session):
            with pytest.raises(AzureDevOpsAPIError) as exc_info:
                await client.validate_repository_access(
                    'https://dev.azure.com/contoso/payments/_git/api'
                )

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_validate_access_bad_url(self):
        client = AzureDevOpsClient('secret')

        with pytest.raises(AzureDevOpsAPIError, match='Could not parse'):
            await client.validate_repository_access('https://example.com/repo')
