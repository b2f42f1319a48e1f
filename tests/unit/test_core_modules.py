"""
Unit tests for core modules.

Covers logging configuration and the database session helpers.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import LogFormatEnum, LogLevelEnum, settings
from app.core.logging import JsonFormatter, setup_logging
from app.database import AsyncSessionLocal, get_db, get_session_factory


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestLogging:
    """Test logging setup."""

    def test_json_formatter(self):
        record = logging.LogRecord("app.realtime.gateway", logging.INFO, __file__, 1, "Joined %s", ("chat-1",), None)

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "app.realtime.gateway"
        assert payload["message"] == "Joined chat-1"
        assert "timestamp" in payload

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("app", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        payload = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in payload["exc_info"]

    def test_setup_logging_json(self, restore_root_logger):
        with patch.object(settings, "log_format", LogFormatEnum.json), patch.object(
            settings, "log_level", LogLevelEnum.WARNING
        ):
            setup_logging()

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
        assert restore_root_logger.level == logging.WARNING

    def test_setup_logging_simple(self, restore_root_logger):
        """Test that repeated setup replaces rather than stacks handlers."""
        with patch.object(settings, "log_format", LogFormatEnum.simple):
            setup_logging()
            setup_logging()

        assert len(restore_root_logger.handlers) == 1
        assert not isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)


class TestDatabaseModule:
    """Test database module functions."""

    @pytest.mark.asyncio
    async def test_get_db_function(self):
        """Test that get_db yields one session and then finishes."""
        db_gen = get_db()
        db_session = await db_gen.__anext__()

        assert isinstance(db_session, AsyncSession)

        with pytest.raises(StopAsyncIteration):
            await db_gen.__anext__()

    def test_session_factory(self):
        assert get_session_factory() is AsyncSessionLocal
