"""Migration engine, strategies and supporting machinery."""

from .engine import MigrationEngine
from .exceptions import (
    ArchiveGenerationError,
    ConfigurationError,
    DestinationExistsError,
    MigrationError,
    MigrationFailedError,
    MigrationStartError,
    PollingFailedError,
    PollingTimeoutError,
    PreMigrationError,
    SourceValidationError,
)
from .executor import Executor, ExecutorConfig
from .factory import ExecutorFactory
from .orchestrator import MigrationOrchestrator, MigrationResult, MigrationSummary
from .polling import AdaptivePoller, PollResult, PollState
from .strategy import (
    AzureDevOpsMigrationStrategy,
    GitHubMigrationStrategy,
    MigrationStrategy,
    StrategyRegistry,
)
from .validation import ValidationComparator, ValidationResult

__all__ = [
    'MigrationEngine',
    'Executor',
    'ExecutorConfig',
    'ExecutorFactory',
    'MigrationOrchestrator',
    'MigrationResult',
    'MigrationSummary',
    'AdaptivePoller',
    'PollResult',
    'PollState',
    'MigrationStrategy',
    'GitHubMigrationStrategy',
    'AzureDevOpsMigrationStrategy',
    'StrategyRegistry',
    'ValidationComparator',
    'ValidationResult',
    'MigrationError',
    'ConfigurationError',
    'SourceValidationError',
    'PreMigrationError',
    'DestinationExistsError',
    'ArchiveGenerationError',
    'MigrationStartError',
    'MigrationFailedError',
    'PollingFailedError',
    'PollingTimeoutError',
]
