"""Configuration management for the Repository Migration Tool."""

from typing import Any, Dict, List, Optional
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator
import yaml
from dotenv import load_dotenv


POST_MIGRATION_MODES = ('never', 'production_only', 'dry_run_only', 'always')
DEST_REPO_EXISTS_ACTIONS = ('fail', 'skip', 'delete')
SOURCE_TYPES = ('github', 'azuredevops')


class GitHubInstanceConfig(BaseModel):
    """Configuration for a GitHub instance."""

    url: str = Field(..., description='GitHub web URL')
    token: str = Field(..., description='Personal access token')
    api_url: Optional[str] = Field(
        default=None, description='REST API URL (derived from url when unset)'
    )
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='API requests per second limit'
    )

    @field_validator('url', 'api_url')
    @classmethod
    def validate_url(cls, v):
        """Validate URL format."""
        if v is None:
            return v
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        """Validate that a token is provided."""
        if not v or not v.strip():
            raise ValueError('token must be provided')
        return v.strip()

    @field_validator('rate_limit_per_second')
    @classmethod
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v


class SourceConfig(BaseModel):
    """A source system repositories are migrated from."""

    id: int = Field(..., description='Source ID referenced by repositories')
    name: str = Field(..., description='Display name')
    type: str = Field(default='github', description='github or azuredevops')
    url: str = Field(..., description='Source base URL')
    token: str = Field(..., description='Source access token')
    organization: Optional[str] = Field(
        default=None, description='Azure DevOps organization'
    )
    is_active: bool = Field(default=True, description='Source may be used')

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        """Validate source type."""
        v = v.lower()
        if v not in SOURCE_TYPES:
            raise ValueError(f'Source type must be one of: {list(SOURCE_TYPES)}')
        return v

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Validate URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')


class VisibilityHandling(BaseModel):
    """Target visibility for public and internal source repositories.

    Values are checked when a migration starts, where unsupported values
    fall back to private.
    """

    public_repos: str = Field(
        default='private', description='public, internal or private'
    )
    internal_repos: str = Field(default='private', description='internal or private')

    @field_validator('public_repos', 'internal_repos')
    @classmethod
    def normalize(cls, v):
        return v.strip().lower()


class MigrationSettings(BaseModel):
    """Migration behaviour that operators may change between runs."""

    post_migration_mode: str = Field(
        default='production_only',
        description='When to validate: never, production_only, dry_run_only, always',
    )
    dest_repo_exists_action: str = Field(
        default='fail',
        description='When the destination exists: fail, skip or delete',
    )
    visibility_handling: VisibilityHandling = Field(
        default_factory=VisibilityHandling, description='Visibility mapping'
    )
    max_concurrent: int = Field(
        default=5, description='Repositories migrated concurrently'
    )
    dry_run: bool = Field(default=False, description='Perform dry run without changes')

    @field_validator('post_migration_mode')
    @classmethod
    def validate_post_migration_mode(cls, v):
        """Validate post-migration mode."""
        v = v.lower()
        if v not in POST_MIGRATION_MODES:
            raise ValueError(
                f'post_migration_mode must be one of: {list(POST_MIGRATION_MODES)}'
            )
        return v

    @field_validator('dest_repo_exists_action')
    @classmethod
    def validate_dest_repo_exists_action(cls, v):
        """Validate destination-exists action."""
        v = v.lower()
        if v not in DEST_REPO_EXISTS_ACTIONS:
            raise ValueError(
                f'dest_repo_exists_action must be one of: {list(DEST_REPO_EXISTS_ACTIONS)}'
            )
        return v

    @field_validator('max_concurrent')
    @classmethod
    def validate_max_concurrent(cls, v):
        """Validate concurrency is positive."""
        if v <= 0:
            raise ValueError('max_concurrent must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for the Repository Migration Tool."""

    model_config = ConfigDict(extra='forbid')

    destination: GitHubInstanceConfig = Field(
        ..., description='Destination GitHub instance'
    )
    sources: List[SourceConfig] = Field(
        default_factory=list, description='Source systems'
    )
    migration: MigrationSettings = Field(
        default_factory=MigrationSettings, description='Migration settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @field_validator('sources')
    @classmethod
    def validate_unique_source_ids(cls, v):
        """Validate source IDs are unique."""
        ids = [source.id for source in v]
        if len(ids) != len(set(ids)):
            raise ValueError('Source IDs must be unique')
        return v

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        sources = []
        if os.getenv('SOURCE_GITHUB_URL'):
            sources.append(
                {
                    'id': 1,
                    'name': 'github',
                    'type': 'github',
                    'url': os.getenv('SOURCE_GITHUB_URL'),
                    'token': os.getenv('SOURCE_GITHUB_TOKEN'),
                }
            )
        if os.getenv('SOURCE_ADO_ORGANIZATION'):
            sources.append(
                {
                    'id': 2,
                    'name': 'azure-devops',
                    'type': 'azuredevops',
                    'url': os.getenv('SOURCE_ADO_URL', 'https://dev.azure.com'),
                    'token': os.getenv('SOURCE_ADO_TOKEN'),
                    'organization': os.getenv('SOURCE_ADO_ORGANIZATION'),
                }
            )

        config_data = {
            'destination': {
                'url': os.getenv('DEST_GITHUB_URL', 'https://github.com'),
                'token': os.getenv('DEST_GITHUB_TOKEN'),
            },
            'sources': sources,
            'migration': {
                'post_migration_mode': os.getenv(
                    'MIGRATION_POST_MIGRATION_MODE', 'production_only'
                ),
                'dest_repo_exists_action': os.getenv(
                    'MIGRATION_DEST_REPO_EXISTS_ACTION', 'fail'
                ),
                'visibility_handling': {
                    'public_repos': os.getenv('MIGRATION_PUBLIC_REPOS', 'private'),
                    'internal_repos': os.getenv('MIGRATION_INTERNAL_REPOS', 'private'),
                },
                'max_concurrent': int(os.getenv('MIGRATION_MAX_CONCURRENT', 5)),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Any) -> Any:
        """Recursively remove None values from nested dictionaries and lists."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        if isinstance(data, list):
            return [Config._remove_none_values(item) for item in data]
        return data

    def get_source(self, source_id: int) -> Optional[SourceConfig]:
        """Get a configured source by ID."""
        for source in self.sources:
            if source.id == source_id:
                return source
        return None

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.model_dump(exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config: Dict[str, Any] = {
            'destination': {
                'url': 'https://github.com',
                'token': 'your-destination-classic-personal-access-token',
                'timeout': 30,
            },
            'sources': [
                {
                    'id': 1,
                    'name': 'ghes',
                    'type': 'github',
                    'url': 'https://ghes.example.com',
                    'token': 'your-source-personal-access-token',
                },
                {
                    'id': 2,
                    'name': 'azure-devops',
                    'type': 'azuredevops',
                    'url': 'https://dev.azure.com',
                    'token': 'your-azure-devops-personal-access-token',
                    'organization': 'your-ado-organization',
                },
            ],
            'migration': {
                'post_migration_mode': 'production_only',
                'dest_repo_exists_action': 'fail',
                'visibility_handling': {
                    'public_repos': 'private',
                    'internal_repos': 'private',
                },
                'max_concurrent': 5,
                'dry_run': False,
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
