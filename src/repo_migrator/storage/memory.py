"""In-memory storage backed by an optional YAML inventory file."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from loguru import logger

from ..models import HistoryStatus, MigrationHistory, MigrationLog, Repository, Source
from .base import Storage


class InMemoryStorage(Storage):
    """Storage keeping every record in process memory.

    Repositories are stored as copies, so callers only observe changes they
    explicitly persist with ``update_repository``.
    """

    def __init__(
        self,
        sources: Optional[List[Source]] = None,
        repositories: Optional[List[Repository]] = None,
    ):
        self.sources: Dict[int, Source] = {}
        self.repositories: Dict[str, Repository] = {}
        self.histories: Dict[int, MigrationHistory] = {}
        self.logs: List[MigrationLog] = []
        self.status_transitions: Dict[str, List[str]] = {}
        self.logger = logger.bind(component='InMemoryStorage')

        for source in sources or []:
            self.add_source(source)
        for repository in repositories or []:
            self.add_repository(repository)

    def add_source(self, source: Source) -> None:
        self.sources[source.id] = source

    def add_repository(self, repository: Repository) -> None:
        self.repositories[repository.full_name] = repository.model_copy(deep=True)
        self.status_transitions[repository.full_name] = [repository.status.value]

    def get_repository(self, full_name: str) -> Optional[Repository]:
        stored = self.repositories.get(full_name)
        return stored.model_copy(deep=True) if stored else None

    def list_repositories(self) -> List[Repository]:
        return [repo.model_copy(deep=True) for repo in self.repositories.values()]

    def logs_for(self, repository_id: int) -> List[MigrationLog]:
        return [log for log in self.logs if log.repository_id == repository_id]

    async def get_source(self, source_id: int) -> Optional[Source]:
        return self.sources.get(source_id)

    async def update_repository(self, repository: Repository) -> None:
        repository.updated_at = datetime.now()
        self.repositories[repository.full_name] = repository.model_copy(deep=True)

        transitions = self.status_transitions.setdefault(repository.full_name, [])
        if not transitions or transitions[-1] != repository.status.value:
            transitions.append(repository.status.value)

    async def update_repository_validation(
        self,
        full_name: str,
        status: str,
        details: Optional[str],
        destination_data: Optional[str],
    ) -> None:
        stored = self.repositories.get(full_name)
        if stored is None:
            raise KeyError(f'Repository not found: {full_name}')

        stored.validation_status = status
        stored.validation_details = details
        stored.destination_data = destination_data

    async def create_migration_history(self, history: MigrationHistory) -> int:
        history_id = len(self.histories) + 1
        self.histories[history_id] = history.model_copy(update={'id': history_id})
        return history_id

    async def update_migration_history(
        self,
        history_id: int,
        status: HistoryStatus,
        error_message: Optional[str] = None,
    ) -> None:
        history = self.histories.get(history_id)
        if history is None:
            raise KeyError(f'Migration history not found: {history_id}')

        history.status = status
        history.error_message = error_message
        if status != HistoryStatus.IN_PROGRESS:
            history.completed_at = datetime.now()

    async def create_migration_log(self, log: MigrationLog) -> None:
        self.logs.append(log.model_copy(update={'id': len(self.logs) + 1}))

    @classmethod
    def from_inventory(
        cls, inventory_path: str, sources: Optional[List[Source]] = None
    ) -> 'InMemoryStorage':
        """Load repositories from a YAML inventory file.

        Args:
            inventory_path: Path to a YAML file with a ``repositories`` list
            sources: Sources repositories may refer to

        Returns:
            Storage seeded with the inventory

        Raises:
            FileNotFoundError: If the inventory file does not exist
        """
        inventory_file = Path(inventory_path)

        if not inventory_file.exists():
            raise FileNotFoundError(f'Inventory file not found: {inventory_path}')

        with open(inventory_file, 'r', encoding='utf-8') as f:
            inventory = yaml.safe_load(f) or {}

        repositories = [
            Repository(**item) for item in inventory.get('repositories', [])
        ]

        logger.info(
            f'Loaded {len(repositories)} repositories from inventory {inventory_path}'
        )
        return cls(sources=sources, repositories=repositories)

    def save_inventory(self, inventory_path: str) -> None:
        """Write all repositories back to a YAML inventory file."""
        inventory_file = Path(inventory_path)
        inventory_file.parent.mkdir(parents=True, exist_ok=True)

        inventory = {
            'repositories': [
                repo.model_dump(mode='json', exclude_none=True)
                for repo in self.repositories.values()
            ]
        }

        with open(inventory_file, 'w', encoding='utf-8') as f:
            yaml.dump(inventory, f, default_flow_style=False, indent=2, sort_keys=False)
