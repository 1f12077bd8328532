"""Migration engine exceptions."""

from typing import Optional


class MigrationError(Exception):
    """Base exception for migration failures."""

    pass


class ConfigurationError(MigrationError):
    """Invalid executor or factory configuration."""

    pass


class SourceValidationError(MigrationError):
    """Source repository is unreachable or credentials are insufficient."""

    pass


class PreMigrationError(MigrationError):
    """A blocking pre-migration check failed."""

    pass


class DestinationExistsError(PreMigrationError):
    """Destination repository already exists and the policy forbids continuing."""

    def __init__(self, full_name: str, action: str):
        super().__init__(
            f'destination repository already exists: {full_name} (action: {action})'
        )
        self.full_name = full_name
        self.action = action

    @property
    def skipped(self) -> bool:
        return self.action == 'skip'


class ArchiveGenerationError(MigrationError):
    """An archive export could not be started or failed on the source."""

    pass


class MigrationStartError(MigrationError):
    """The destination rejected the start of a repository migration."""

    pass


class MigrationFailedError(MigrationError):
    """The destination reported a failed migration."""

    def __init__(self, message: str, failure_reason: Optional[str] = None):
        super().__init__(message)
        self.failure_reason = failure_reason


class PollingFailedError(MigrationError):
    """A polled job reported a terminal failure."""

    pass


class PollingTimeoutError(MigrationError):
    """A polled job did not finish before its deadline."""

    pass
