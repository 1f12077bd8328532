"""Tests for configuration management."""

import pytest
import tempfile
import os
from pathlib import Path

import yaml

from repo_migrator.config.config import (
    Config,
    GitHubInstanceConfig,
    MigrationSettings,
    SourceConfig,
    VisibilityHandling,
)


class TestGitHubInstanceConfig:
    """Test GitHub instance configuration."""

    def test_valid_config(self):
        """Test valid configuration creation."""
        config = GitHubInstanceConfig(
            url='https://ghes.example.com',
            token='test-token',
            timeout=30,
            rate_limit_per_second=10,
        )

        assert config.url == 'https://ghes.example.com'
        assert config.token == 'test-token'
        assert config.api_url is None
        assert config.timeout == 30
        assert config.rate_limit_per_second == 10

    def test_url_validation(self):
        """Test URL validation."""
        valid_urls = [
            'https://github.com',
            'https://ghes.example.com',
            'http://localhost:8080',
        ]

        for url in valid_urls:
            config = GitHubInstanceConfig(url=url, token='test')
            assert config.url == url

        assert GitHubInstanceConfig(url='https://github.com/', token='t').url == (
            'https://github.com'
        )

        with pytest.raises(ValueError):
            GitHubInstanceConfig(url='github.com', token='test')

    def test_missing_token(self):
        """Test that missing token raises validation error."""
        with pytest.raises(ValueError):
            GitHubInstanceConfig(url='https://github.com')

    def test_blank_token(self):
        with pytest.raises(ValueError):
            GitHubInstanceConfig(url='https://github.com', token='   ')

    def test_rate_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            GitHubInstanceConfig(
                url='https://github.com', token='t', rate_limit_per_second=0
            )


class TestSourceConfig:
    """Test source configuration."""

    def test_type_normalized(self):
        source = SourceConfig(
            id=1, name='ado', type='AzureDevOps', url='https://dev.azure.com', token='t'
        )

        assert source.type == 'azuredevops'
        assert source.is_active is True

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            SourceConfig(
                id=1, name='bb', type='bitbucket', url='https://bitbucket.org', token='t'
            )


class TestMigrationSettings:
    """Test migration settings validation."""

    def test_defaults(self):
        settings = MigrationSettings()

        assert settings.post_migration_mode == 'production_only'
        assert settings.dest_repo_exists_action == 'fail'
        assert settings.visibility_handling.public_repos == 'private'
        assert settings.visibility_handling.internal_repos == 'private'
        assert settings.max_concurrent == 5

    def test_values_normalized(self):
        settings = MigrationSettings(
            post_migration_mode='ALWAYS', dest_repo_exists_action='Skip'
        )

        assert settings.post_migration_mode == 'always'
        assert settings.dest_repo_exists_action == 'skip'

    @pytest.mark.parametrize(
        'kwargs',
        [
            {'post_migration_mode': 'sometimes'},
            {'dest_repo_exists_action': 'overwrite'},
            {'max_concurrent': 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            MigrationSettings(**kwargs)

    def test_visibility_normalized(self):
        handling = VisibilityHandling(public_repos=' Public ', internal_repos='INTERNAL')

        assert handling.public_repos == 'public'
        assert handling.internal_repos == 'internal'


class TestConfig:
    """Test main configuration class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config_dict = {
            'destination': {'url': 'https://github.com', 'token': 'dest-token'},
            'sources': [
                {
                    'id': 1,
                    'name': 'ghes',
                    'url': 'https://ghes.example.com',
                    'token': 'source-token',
                },
                {
                    'id': 2,
                    'name': 'ado',
                    'type': 'azuredevops',
                    'url': 'https://dev.azure.com',
                    'token': 'ado-token',
                    'organization': 'contoso',
                },
            ],
            'migration': {'dest_repo_exists_action': 'skip'},
        }

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config = Config(**self.config_dict)

        assert config.destination.url == 'https://github.com'
        assert len(config.sources) == 2
        assert config.migration.dest_repo_exists_action == 'skip'
        assert config.logging.level == 'INFO'

    def test_get_source(self):
        config = Config(**self.config_dict)

        assert config.get_source(2).organization == 'contoso'
        assert config.get_source(3) is None

    def test_duplicate_source_ids(self):
        self.config_dict['sources'][1]['id'] = 1

        with pytest.raises(ValueError, match='unique'):
            Config(**self.config_dict)

    def test_unknown_keys_rejected(self):
        self.config_dict['source'] = {'url': 'https://ghes.example.com', 'token': 't'}

        with pytest.raises(ValueError):
            Config(**self.config_dict)

    def test_config_file_operations(self):
        """Test saving and loading configuration files."""
        config = Config(**self.config_dict)

        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, 'nested', 'config.yaml')

            config.to_file(config_path)
            assert Path(config_path).exists()

            loaded = Config.from_file(config_path)
            assert loaded.destination.url == config.destination.url
            assert loaded.get_source(1).token == 'source-token'
            assert loaded.migration.dest_repo_exists_action == 'skip'

    def test_config_file_not_found(self):
        """Test loading non-existent configuration file."""
        with pytest.raises(FileNotFoundError):
            Config.from_file('non_existent_config.yaml')

    def test_create_template(self, tmp_path):
        """Test configuration template creation."""
        template_path = tmp_path / 'template.yaml'

        Config.create_template(str(template_path))

        with open(template_path, 'r') as f:
            data = yaml.safe_load(f)

        assert set(data) == {'destination', 'sources', 'migration', 'logging'}
        assert [s['type'] for s in data['sources']] == ['github', 'azuredevops']

        config = Config.from_file(str(template_path))
        assert config.migration.post_migration_mode == 'production_only'

    def test_from_env(self, monkeypatch, tmp_path):
        """Test configuration loading from environment variables."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('DEST_GITHUB_TOKEN', 'dest-token')
        monkeypatch.setenv('SOURCE_GITHUB_URL', 'https://ghes.example.com')
        monkeypatch.setenv('SOURCE_GITHUB_TOKEN', 'source-token')
        monkeypatch.setenv('SOURCE_ADO_ORGANIZATION', 'contoso')
        monkeypatch.setenv('SOURCE_ADO_TOKEN', 'ado-token')
        monkeypatch.setenv('MIGRATION_DEST_REPO_EXISTS_ACTION', 'delete')
        monkeypatch.setenv('MIGRATION_MAX_CONCURRENT', '3')
        monkeypatch.setenv('LOG_LEVEL', 'debug')
        monkeypatch.delenv('DEST_GITHUB_URL', raising=False)
        monkeypatch.delenv('SOURCE_ADO_URL', raising=False)

        config = Config.from_env()

        assert config.destination.url == 'https://github.com'
        assert config.destination.token == 'dest-token'
        assert [s.type for s in config.sources] == ['github', 'azuredevops']
        assert config.get_source(2).url == 'https://dev.azure.com'
        assert config.migration.dest_repo_exists_action == 'delete'
        assert config.migration.max_concurrent == 3
        assert config.logging.level == 'DEBUG'

    def test_from_env_without_token(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv('DEST_GITHUB_TOKEN', raising=False)

        with pytest.raises(ValueError):
            Config.from_env()
