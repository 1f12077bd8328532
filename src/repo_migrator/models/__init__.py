"""Data models for repositories, sources and migration records."""

from .repository import Repository, RepositoryProfile, RepositoryStatus
from .migration import (
    Batch,
    HistoryStatus,
    MigrationHistory,
    MigrationLog,
    Source,
    SourceType,
)

__all__ = [
    'Repository',
    'RepositoryProfile',
    'RepositoryStatus',
    'Batch',
    'HistoryStatus',
    'MigrationHistory',
    'MigrationLog',
    'Source',
    'SourceType',
]
