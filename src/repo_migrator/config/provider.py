"""Live migration settings providers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from .config import MigrationSettings


class SettingsProvider(ABC):
    """Supplies the current migration settings on every call."""

    @abstractmethod
    def get_settings(self) -> MigrationSettings:
        """Get the current migration settings.

        Returns:
            Migration settings in effect right now
        """
        pass


class FileSettingsProvider(SettingsProvider):
    """Re-reads the ``migration`` section of a YAML config file on each call.

    Operators can edit the file while migrations run; the next migration picks
    up the change. When the file is missing or invalid the last good settings
    are returned.
    """

    def __init__(self, config_path: str, fallback: Optional[MigrationSettings] = None):
        self.config_path = Path(config_path)
        self._last_good = fallback or MigrationSettings()
        self.logger = logger.bind(component='FileSettingsProvider')

    def get_settings(self) -> MigrationSettings:
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            self._last_good = MigrationSettings(**data.get('migration', {}))
        except (OSError, yaml.YAMLError, ValueError) as e:
            self.logger.warning(
                f'Could not reload migration settings from {self.config_path}, '
                f'keeping previous settings: {e}'
            )
        return self._last_good
