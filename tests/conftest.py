"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from spellbuddy.config import get_settings
from spellbuddy.database import close_db, create_tables, get_session, init_db
from spellbuddy.db.models import User
from spellbuddy.users.service import create_user


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch):
    """Pin settings that affect day boundaries."""
    monkeypatch.setenv("SPELLBUDDY_STREAK_TIMEZONE", "UTC")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """A session on a fresh SQLite database with all tables created."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'spellbuddy_test.db'}")
    await create_tables()
    sessions = get_session()
    session = await anext(sessions)
    yield session
    await sessions.aclose()
    await close_db()


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    """A freshly registered learner."""
    created = await create_user(
        db_session,
        "elsa",
        "elsa@example.se",
        now=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    )
    await db_session.commit()
    return created


@pytest.fixture
def day():
    """Build an aware UTC datetime on a given March 2026 day."""

    def _day(n: int, hour: int = 12, minute: int = 0) -> datetime:
        return datetime(2026, 3, n, hour, minute, tzinfo=timezone.utc)

    return _day
