"""Storage interface used by the migration engine."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import HistoryStatus, MigrationHistory, MigrationLog, Repository, Source


class Storage(ABC):
    """Persistence for repositories, sources and migration audit records."""

    @abstractmethod
    async def get_source(self, source_id: int) -> Optional[Source]:
        """Get a source by ID.

        Args:
            source_id: Source ID

        Returns:
            Source, or None if it does not exist
        """
        pass

    @abstractmethod
    async def update_repository(self, repository: Repository) -> None:
        """Persist the current state of a repository.

        Args:
            repository: Repository to save
        """
        pass

    @abstractmethod
    async def update_repository_validation(
        self,
        full_name: str,
        status: str,
        details: Optional[str],
        destination_data: Optional[str],
    ) -> None:
        """Persist post-migration validation results.

        Args:
            full_name: Repository full name
            status: passed or failed
            details: Validation report JSON
            destination_data: Destination profile JSON
        """
        pass

    @abstractmethod
    async def create_migration_history(self, history: MigrationHistory) -> int:
        """Create a migration history record.

        Args:
            history: History record to create

        Returns:
            ID of the created record
        """
        pass

    @abstractmethod
    async def update_migration_history(
        self,
        history_id: int,
        status: HistoryStatus,
        error_message: Optional[str] = None,
    ) -> None:
        """Update the status of a migration history record.

        Args:
            history_id: History ID
            status: New status
            error_message: Failure text, if any
        """
        pass

    @abstractmethod
    async def create_migration_log(self, log: MigrationLog) -> None:
        """Append a migration log entry.

        Args:
            log: Log entry
        """
        pass
