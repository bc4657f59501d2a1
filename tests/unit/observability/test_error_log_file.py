"""Tests for error log file handler."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jobrelay.observability.error_log_file import get_error_log_handler, setup_error_log_file


@pytest.fixture
def mock_config(tmp_path: Path):
    """Create a mock config with error log settings."""
    config = MagicMock()
    config.error_log_file_enabled = True
    config.error_log_file_path = str(tmp_path / "logs" / "errors.log")
    config.error_log_level = "WARNING"
    config.error_log_max_bytes = 1024 * 1024
    config.error_log_backup_count = 3
    return config


@pytest.fixture(autouse=True)
def cleanup_handlers():
    """Remove handlers added during a test."""
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if "errors.log" in str(getattr(handler, "baseFilename", "")):
            root_logger.removeHandler(handler)
            handler.close()


class TestSetupErrorLogFile:
    def test_creates_log_file_and_directory(self, mock_config, tmp_path):
        handler = setup_error_log_file(mock_config)

        assert handler is not None
        assert (tmp_path / "logs").is_dir()
        assert handler in logging.getLogger().handlers
        assert get_error_log_handler() is handler

    def test_returns_none_when_disabled(self, mock_config):
        mock_config.error_log_file_enabled = False

        assert setup_error_log_file(mock_config) is None

    def test_only_warnings_and_above_are_written(self, mock_config, tmp_path):
        handler = setup_error_log_file(mock_config)
        logger = logging.getLogger("jobrelay.test_error_log")
        logger.setLevel(logging.DEBUG)

        logger.info("publish started")
        logger.warning("relay of messenger_message failed")
        handler.flush()

        content = (tmp_path / "logs" / "errors.log").read_text()
        assert "relay of messenger_message failed" in content
        assert "publish started" not in content

    def test_repeated_setup_replaces_handler(self, mock_config):
        first = setup_error_log_file(mock_config)
        second = setup_error_log_file(mock_config)

        handlers = logging.getLogger().handlers
        assert second in handlers
        assert first not in handlers

    def test_unwritable_path_returns_none(self, mock_config, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        mock_config.error_log_file_path = str(blocker / "errors.log")

        assert setup_error_log_file(mock_config) is None
