"""Startup and shutdown for processes embedding the engine."""

import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing, asynccontextmanager

from spellbuddy.config import Settings, get_settings
from spellbuddy.database import close_db, create_tables, get_session, init_db
from spellbuddy.gamification.seed import seed_achievements
from spellbuddy.logging_setup import setup_logging
from spellbuddy.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[None, None]:
    """Configure logging, open the database and Redis, and seed the catalog."""
    if settings is None:
        settings = get_settings()
    setup_logging(settings)

    await init_db(settings.database_url)
    await create_tables()
    if settings.redis_url:
        await init_redis(settings.redis_url)

    # Seed achievement definitions (idempotent)
    try:
        async with aclosing(get_session()) as sessions:
            async for db in sessions:
                await seed_achievements(db)
                break
    except Exception:
        logger.warning("Achievement seeding failed", exc_info=True)

    try:
        yield
    finally:
        await close_db()
        await close_redis()
