"""Tests for database setup."""

import logging
from unittest.mock import patch

import pytest

from versioned import database
from versioned.config import settings


class TestInitDb:
    @pytest.mark.asyncio
    async def test_file_backed_sqlite_warns_on_init(self, engine, caplog):
        with patch.object(database, "engine", engine), \
                patch.object(settings, "database_url", "sqlite+aiosqlite:///./versions.db"), \
                caplog.at_level(logging.WARNING, logger="versioned.database"):
            await database.init_db()

        assert "single-writer lock" in caplog.text

    @pytest.mark.asyncio
    async def test_in_memory_sqlite_is_quiet(self, engine, caplog):
        url = "sqlite+aiosqlite:///file:versions?mode=memory&cache=shared&uri=true"
        with patch.object(database, "engine", engine), \
                patch.object(settings, "database_url", url), \
                caplog.at_level(logging.WARNING, logger="versioned.database"):
            await database.init_db()

        assert caplog.records == []
