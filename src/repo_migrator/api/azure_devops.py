"""Azure DevOps API client."""

import base64
import re
from typing import NamedTuple, Optional
from urllib.parse import quote

import aiohttp
from loguru import logger

from .exceptions import AzureDevOpsAPIError

AZURE_DEVOPS_BASE_URL = 'https://dev.azure.com'

_DEV_AZURE_PATTERN = re.compile(
    r'^https?://(?:[^@/]+@)?dev\.azure\.com/([^/]+)/([^/]+)/_git/([^/?#]+)'
)
_VISUALSTUDIO_PATTERN = re.compile(
    r'^https?://(?:[^@/]+@)?([^./]+)\.visualstudio\.com/(?:DefaultCollection/)?'
    r'([^/]+)/_git/([^/?#]+)'
)
_SSH_PATTERN = re.compile(r'^git@ssh\.dev\.azure\.com:v3/([^/]+)/([^/]+)/([^/?#]+)')


class AzureDevOpsRepository(NamedTuple):
    """Coordinates of an Azure DevOps repository."""

    organization: str
    project: str
    repository: str


def parse_repository_url(url: str) -> Optional[AzureDevOpsRepository]:
    """Parse an Azure DevOps repository URL.

    Supports ``https://dev.azure.com/{org}/{project}/_git/{repo}``,
    ``https://{org}.visualstudio.com/{project}/_git/{repo}`` and
    ``git@ssh.dev.azure.com:v3/{org}/{project}/{repo}``.

    Args:
        url: Repository URL

    Returns:
        Parsed coordinates, or None if the URL is not an Azure DevOps URL
    """
    for pattern in (_DEV_AZURE_PATTERN, _VISUALSTUDIO_PATTERN, _SSH_PATTERN):
        match = pattern.match(url.strip())
        if match:
            organization, project, repository = match.groups()
            return AzureDevOpsRepository(organization, project, repository)
    return None


class AzureDevOpsClient:
    """Minimal Azure DevOps REST client used for credential checks."""

    def __init__(
        self, token: str, base_url: str = AZURE_DEVOPS_BASE_URL, timeout: int = 30
    ):
        """Initialize Azure DevOps client.

        Args:
            token: Azure DevOps personal access token
            base_url: Azure DevOps base URL
            timeout: Request timeout in seconds
        """
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _headers(self):
        credentials = base64.b64encode(f':{self.token}'.encode()).decode()
        return {'Authorization': f'Basic {credentials}', 'Accept': 'application/json'}

    async def validate_repository_access(self, source_url: str) -> None:
        """Check that the token can read the repository.

        Args:
            source_url: Azure DevOps repository URL

        Raises:
            AzureDevOpsAPIError: If the URL is invalid or access is denied
        """
        coordinates = parse_repository_url(source_url)
        if coordinates is None:
            raise AzureDevOpsAPIError(
                f'Could not parse Azure DevOps repository URL: {source_url}'
            )

        url = (
            f'{self.base_url}/{quote(coordinates.organization)}/'
            f'{quote(coordinates.project)}/_apis/git/repositories/'
            f'{quote(coordinates.repository)}?api-version=7.0'
        )
        logger.debug(f'Validating Azure DevOps access to {url}')

        async with aiohttp.ClientSession(
            headers=self._headers(), timeout=self.timeout
        ) as session:
            try:
                async with session.get(url) as response:
                    status = response.status
            except aiohttp.ClientError as e:
                raise AzureDevOpsAPIError(
                    f'Failed to reach Azure DevOps API: {e}'
                ) from e

        if status == 200:
            return
        if status == 401:
            raise AzureDevOpsAPIError(
                'Azure DevOps PAT authentication failed (401 Unauthorized). '
                'Verify the token is valid and not expired',
                status_code=status,
            )
        if status == 403:
            raise AzureDevOpsAPIError(
                'Azure DevOps PAT lacks permission to read the repository '
                '(403 Forbidden). Grant the Code (Read) scope',
                status_code=status,
            )
        if status == 404:
            raise AzureDevOpsAPIError(
                f'Azure DevOps repository not found (404): '
                f'{coordinates.organization}/{coordinates.project}/'
                f'{coordinates.repository}. Verify the organization, project and '
                f'repository names and that the PAT can access the organization',
                status_code=status,
            )
        raise AzureDevOpsAPIError(
            f'Unexpected status from Azure DevOps API: {status}', status_code=status
        )
