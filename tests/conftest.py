"""Shared fixtures and fake collaborators."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from repo_migrator.api.client import ArchiveOptions
from repo_migrator.api.exceptions import GitHubAPIError, GitHubNotFoundError
from repo_migrator.migration.polling import AdaptivePoller
from repo_migrator.models import Repository, Source, SourceType
from repo_migrator.storage.memory import InMemoryStorage

SOURCE_TOKEN = 'ghp_' + 's' * 36
DEST_TOKEN = 'ghp_' + 'd' * 36
ADO_TOKEN = 'a' * 52


async def no_sleep(delay: float) -> None:
    pass


def fast_poller(**kwargs) -> AdaptivePoller:
    """Poller that never sleeps for real."""
    params = dict(
        initial=0.01, fast_phase=1.0, maximum=0.05, timeout=60.0, sleep=no_sleep
    )
    params.update(kwargs)
    return AdaptivePoller(**params)


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient, used for both source and destination."""

    def __init__(self, web_url: str = 'https://github.com', token: str = DEST_TOKEN):
        self.web_url = web_url
        self.token = token

        self.repositories: Dict[str, Dict[str, Any]] = {}
        self.branches: Dict[str, List[Dict[str, Any]]] = {}
        self.tags: Dict[str, List[Dict[str, Any]]] = {}
        self.contributors: Dict[str, List[Dict[str, Any]]] = {}
        self.repository_errors: Dict[str, Exception] = {}

        # Source archive exports
        self.export_options: List[ArchiveOptions] = []
        self.export_states: Dict[int, List[str]] = {}
        self.export_errors: List[Optional[Exception]] = []
        self.unlock_calls: List[tuple] = []
        self.unlock_error: Optional[Exception] = None

        # Destination
        self.deleted: List[str] = []
        self.delete_error: Optional[Exception] = None
        self.organization_id_calls: List[str] = []
        self.migration_source_calls: List[tuple] = []
        self.migration_inputs: List[Dict[str, Any]] = []
        self.start_migration_error: Optional[Exception] = None
        self.migration_states: List[Dict[str, Any]] = [{'state': 'SUCCEEDED'}]
        self.migration_status_calls = 0

        self.closed = False

    def add_repository(self, full_name: str, **data) -> None:
        owner, name = full_name.split('/')
        record = {
            'full_name': full_name,
            'name': name,
            'owner': {'login': owner},
            'size': 1024,
            'default_branch': 'main',
            'has_wiki': False,
            'has_pages': False,
            'archived': False,
            'pushed_at': '2024-01-02T03:04:05Z',
        }
        record.update(data)
        self.repositories[full_name] = record
        self.branches.setdefault(
            full_name, [{'name': 'main', 'protected': False, 'commit': {'sha': 'abc123'}}]
        )
        self.tags.setdefault(full_name, [])
        self.contributors.setdefault(full_name, [{'login': 'dev', 'contributions': 10}])

    # Repository reads

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        full_name = f'{owner}/{repo}'
        if full_name in self.repository_errors:
            raise self.repository_errors[full_name]
        if full_name not in self.repositories:
            raise GitHubNotFoundError(f'Resource not found: {full_name}', status_code=404)
        return dict(self.repositories[full_name])

    async def delete_repository(self, owner: str, repo: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        full_name = f'{owner}/{repo}'
        self.deleted.append(full_name)
        self.repositories.pop(full_name, None)

    async def list_branches(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return list(self.branches.get(f'{owner}/{repo}', []))

    async def get_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        for item in self.branches.get(f'{owner}/{repo}', []):
            if item['name'] == branch:
                return item
        raise GitHubNotFoundError(f'Branch not found: {branch}', status_code=404)

    async def list_tags(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return list(self.tags.get(f'{owner}/{repo}', []))

    async def list_contributors(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return list(self.contributors.get(f'{owner}/{repo}', []))

    async def get_actions_permissions(self, owner: str, repo: str) -> Dict[str, Any]:
        return {'enabled': False}

    def repository_url(self, full_name: str) -> str:
        return f'{self.web_url}/{full_name}'

    # Source migrations

    async def start_migration(self, org: str, options: ArchiveOptions) -> Dict[str, Any]:
        index = len(self.export_options)
        self.export_options.append(options)
        if index < len(self.export_errors) and self.export_errors[index] is not None:
            raise self.export_errors[index]
        export_id = 100 + index
        self.export_states.setdefault(export_id, ['exporting', 'exported'])
        return {'id': export_id, 'state': 'pending'}

    async def get_migration_status(self, org: str, migration_id: int) -> str:
        states = self.export_states[migration_id]
        return states.pop(0) if len(states) > 1 else states[0]

    async def get_migration_archive_url(self, org: str, migration_id: int) -> str:
        return f'https://archives.example.com/{migration_id}.tar.gz'

    async def unlock_repository(self, org: str, migration_id: int, repo: str) -> None:
        self.unlock_calls.append((org, migration_id, repo))
        if self.unlock_error is not None:
            raise self.unlock_error

    # Destination migrations

    async def get_organization_id(self, login: str) -> str:
        self.organization_id_calls.append(login)
        await asyncio.sleep(0)
        return f'ORG_{login}'

    async def create_migration_source(
        self, name: str, url: str, owner_id: str, source_type: str
    ) -> str:
        self.migration_source_calls.append((name, url, owner_id, source_type))
        await asyncio.sleep(0)
        return f'MS_{len(self.migration_source_calls)}'

    async def start_repository_migration(self, migration_input: Dict[str, Any]) -> str:
        self.migration_inputs.append(migration_input)
        if self.start_migration_error is not None:
            raise self.start_migration_error
        return 'RM_1'

    async def get_repository_migration(self, migration_id: str) -> Dict[str, Any]:
        self.migration_status_calls += 1
        states = self.migration_states
        migration = states.pop(0) if len(states) > 1 else states[0]
        return {
            'state': migration['state'],
            'failure_reason': migration.get('failure_reason', ''),
            'repository_name': 'repo',
        }

    def test_connection(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True


class FakeAzureDevOpsClient:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.checked: List[str] = []

    async def validate_repository_access(self, source_url: str) -> None:
        self.checked.append(source_url)
        if self.error is not None:
            raise self.error


@pytest.fixture
def source_client():
    client = FakeGitHubClient(web_url='https://ghes.example.com', token=SOURCE_TOKEN)
    client.add_repository('acme/widgets')
    return client


@pytest.fixture
def dest_client():
    return FakeGitHubClient()


@pytest.fixture
def github_repository():
    return Repository(
        id=1,
        full_name='acme/widgets',
        source_url='https://ghes.example.com/acme/widgets',
        source_id=1,
        visibility='private',
    )


@pytest.fixture
def ado_repository():
    return Repository(
        id=2,
        full_name='contoso/payments/api',
        source_url='https://dev.azure.com/contoso/payments/_git/api',
        source_id=2,
        ado_project='payments',
    )


@pytest.fixture
def sources():
    return [
        Source(
            id=1,
            name='ghes',
            type=SourceType.GITHUB,
            base_url='https://ghes.example.com',
            token=SOURCE_TOKEN,
        ),
        Source(
            id=2,
            name='ado',
            type=SourceType.AZURE_DEVOPS,
            base_url='https://dev.azure.com',
            token=ADO_TOKEN,
            organization='contoso',
        ),
    ]


@pytest.fixture
def storage(sources, github_repository, ado_repository):
    return InMemoryStorage(
        sources=sources, repositories=[github_repository, ado_repository]
    )


def api_error(message: str = 'boom', status_code: int = 500) -> GitHubAPIError:
    return GitHubAPIError(message, status_code=status_code)
