"""Post-migration comparison of source and destination repositories."""

import json
from typing import Any, List

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitHubClient
from ..api.exceptions import GitHubAPIError
from ..models import RepositoryProfile

VALIDATION_PASSED = 'passed'
VALIDATION_FAILED = 'failed'


class ValidationMismatch(BaseModel):
    """A characteristic that differs between source and destination."""

    field: str = Field(..., description='Characteristic name')
    source_value: Any = Field(default=None, description='Source value')
    dest_value: Any = Field(default=None, description='Destination value')
    critical: bool = Field(default=False, description='Affects migration fidelity')


class ValidationResult(BaseModel):
    """Ordered mismatches plus the aggregate critical flag."""

    mismatches: List[ValidationMismatch] = Field(default_factory=list)
    has_critical: bool = Field(default=False)

    @property
    def status(self) -> str:
        return VALIDATION_FAILED if self.mismatches else VALIDATION_PASSED

    @property
    def critical_count(self) -> int:
        return sum(1 for m in self.mismatches if m.critical)

    def report_json(self) -> str:
        """Serialize the result for storage."""
        return json.dumps(
            {
                'total_mismatches': len(self.mismatches),
                'critical_mismatches': self.critical_count,
                'mismatches': [m.model_dump() for m in self.mismatches],
            }
        )


class ValidationComparator:
    """Compares a source snapshot against a freshly profiled destination.

    Default branch, commit count, branch count and last commit SHA are
    critical. Tags, feature flags and branch protections are advisory.
    Default branch and last commit SHA are only compared when both sides
    know them.
    """

    def compare(
        self, source: RepositoryProfile, dest: RepositoryProfile
    ) -> ValidationResult:
        """Diff two snapshots.

        Args:
            source: Source characteristics from discovery
            dest: Destination characteristics

        Returns:
            Mismatches in a fixed field order
        """
        mismatches: List[ValidationMismatch] = []

        def check(field: str, critical: bool, only_if_known: bool = False) -> None:
            source_value = getattr(source, field)
            dest_value = getattr(dest, field)
            if only_if_known and (not source_value or not dest_value):
                return
            if source_value != dest_value:
                mismatches.append(
                    ValidationMismatch(
                        field=field,
                        source_value=source_value,
                        dest_value=dest_value,
                        critical=critical,
                    )
                )

        check('default_branch', critical=True, only_if_known=True)
        check('commit_count', critical=True)
        check('branch_count', critical=True)
        check('tag_count', critical=False)
        check('last_commit_sha', critical=True, only_if_known=True)
        check('has_wiki', critical=False)
        check('has_pages', critical=False)
        check('has_discussions', critical=False)
        check('has_actions', critical=False)
        check('branch_protections', critical=False)

        return ValidationResult(
            mismatches=mismatches,
            has_critical=any(m.critical for m in mismatches),
        )


class DestinationProfiler:
    """Builds a RepositoryProfile from the destination's read-only API."""

    def __init__(self, client: GitHubClient):
        self.client = client
        self.logger = logger.bind(component='DestinationProfiler')

    async def profile(self, full_name: str) -> RepositoryProfile:
        """Profile a destination repository.

        Args:
            full_name: Destination org/repo

        Returns:
            Destination characteristics

        Raises:
            ValueError: If the full name is not org/repo
            GitHubAPIError: If the repository cannot be read
        """
        parts = full_name.split('/')
        if len(parts) != 2:
            raise ValueError(f'invalid repository full name: {full_name}')
        owner, name = parts

        repo = await self.client.get_repository(owner, name)
        profile = RepositoryProfile(
            default_branch=repo.get('default_branch') or None,
            total_size=(repo.get('size') or 0) * 1024,
            has_wiki=bool(repo.get('has_wiki')),
            has_pages=bool(repo.get('has_pages')),
            has_discussions=bool(repo.get('has_discussions')),
            is_archived=bool(repo.get('archived')),
        )

        branches = await self.client.list_branches(owner, name)
        profile.branch_count = len(branches)
        profile.branch_protections = sum(1 for b in branches if b.get('protected'))

        if profile.default_branch:
            branch = await self.client.get_branch(owner, name, profile.default_branch)
            profile.last_commit_sha = (branch.get('commit') or {}).get('sha')

        # Contributor totals approximate the commit count
        contributors = await self.client.list_contributors(owner, name)
        profile.commit_count = sum(c.get('contributions', 0) for c in contributors)

        tags = await self.client.list_tags(owner, name)
        profile.tag_count = len(tags)

        try:
            permissions = await self.client.get_actions_permissions(owner, name)
            profile.has_actions = bool(permissions.get('enabled'))
        except GitHubAPIError as e:
            self.logger.debug(f'Could not read Actions settings for {full_name}: {e}')

        self.logger.info(
            f'Profiled destination {full_name}: {profile.branch_count} branches, '
            f'{profile.tag_count} tags, ~{profile.commit_count} commits'
        )
        return profile
