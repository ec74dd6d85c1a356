"""Tests for logging setup."""

import sys

import pytest
from loguru import logger

from chatlayer.config.schema import ChatConfig, LoggingConfig
from chatlayer.utils.logging import configure_logging_from


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestConfigureLogging:
    """Test configure_logging_from."""

    def test_file_sink_from_config(self, tmp_path, restore_logger):
        """Test the logging section of ChatConfig adds a file sink at DEBUG."""
        log_file = tmp_path / "logs" / "chatlayer.log"
        config = ChatConfig(logging=LoggingConfig(level="WARNING", log_file=str(log_file)))

        configure_logging_from(config.logging)
        logger.debug("[room-1] attaching messages")
        logger.complete()
        logger.remove()

        assert log_file.exists()
        assert "[room-1] attaching messages" in log_file.read_text()

    def test_no_file_sink_when_unset(self, tmp_path, restore_logger):
        """Test an empty log_file configures the console only."""
        config = ChatConfig(logging=LoggingConfig(verbose=True))

        configure_logging_from(config.logging)
        logger.trace("[room-1] RoomLifecycleManager.attach()")

        assert list(tmp_path.iterdir()) == []
