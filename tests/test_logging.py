"""Tests for logging setup."""

from loguru import logger

from repo_migrator.utils.logging import get_logger, setup_logging


class TestLogging:
    """Test loguru configuration."""

    def teardown_method(self):
        """Drop sinks bound to captured streams."""
        logger.remove()

    def test_component_in_output(self, capsys):
        setup_logging('DEBUG')
        get_logger('Executor').debug('phase started')
        logger.info('unbound message')

        lines = capsys.readouterr().err.splitlines()
        assert any('Executor' in line and 'phase started' in line for line in lines)
        assert any('main' in line and 'unbound message' in line for line in lines)

    def test_level_filters_output(self, capsys):
        setup_logging('WARNING')
        get_logger('Executor').info('hidden')
        get_logger('Executor').warning('shown')

        err = capsys.readouterr().err
        assert 'hidden' not in err
        assert 'shown' in err

    def test_log_file_directory_created(self, tmp_path):
        log_file = tmp_path / 'logs' / 'migration.log'

        setup_logging('INFO', log_file=str(log_file))

        assert log_file.parent.is_dir()
