"""Lifecycle tests: startup wiring and the Redis pool."""

import logging
from contextlib import aclosing

import pytest
import structlog
from sqlalchemy import func, select

from spellbuddy.config import Settings
from spellbuddy.database import get_engine, get_session
from spellbuddy.db.models import Achievement
from spellbuddy.lifecycle import lifespan
from spellbuddy.redis_client import close_redis, get_redis, init_redis


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestRedisClient:
    """Connection pool management."""

    @pytest.mark.asyncio
    async def test_unconfigured_returns_none(self):
        assert get_redis() is None

    @pytest.mark.asyncio
    async def test_init_and_close(self):
        # from_url does not connect until the first command
        await init_redis("redis://localhost:6379/0")
        assert get_redis() is not None
        await close_redis()
        assert get_redis() is None


class TestLifespan:
    """Startup creates tables and seeds the catalog; shutdown closes the engine."""

    @pytest.mark.asyncio
    async def test_startup_and_shutdown(self, tmp_path, restore_logging):
        settings = Settings(
            _env_file=None,
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'lifespan.db'}",
            redis_url="",
            log_format="console",
        )
        async with lifespan(settings):
            assert get_redis() is None
            async with aclosing(get_session()) as sessions:
                async for db in sessions:
                    count = (await db.execute(select(func.count()).select_from(Achievement))).scalar_one()
                    break
            assert count == 20

        with pytest.raises(RuntimeError):
            get_engine()

    @pytest.mark.asyncio
    async def test_restart_does_not_duplicate_catalog(self, tmp_path, restore_logging):
        settings = Settings(
            _env_file=None,
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'lifespan.db'}",
            log_format="console",
        )
        async with lifespan(settings):
            pass
        async with lifespan(settings):
            async with aclosing(get_session()) as sessions:
                async for db in sessions:
                    count = (await db.execute(select(func.count()).select_from(Achievement))).scalar_one()
                    break
        assert count == 20
