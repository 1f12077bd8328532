"""GitHub and Azure DevOps API clients."""

from .azure_devops import AzureDevOpsClient, parse_repository_url
from .client import APIResponse, ArchiveOptions, GitHubClient, GitHubClientFactory
from .exceptions import (
    AzureDevOpsAPIError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
)

__all__ = [
    'APIResponse',
    'ArchiveOptions',
    'AzureDevOpsClient',
    'GitHubClient',
    'GitHubClientFactory',
    'parse_repository_url',
    'AzureDevOpsAPIError',
    'GitHubAPIError',
    'GitHubAuthenticationError',
    'GitHubGraphQLError',
    'GitHubNotFoundError',
    'GitHubPermissionError',
    'GitHubRateLimitError',
]
