import logging
import os

from sqlalchemy import text

from ..config import Settings
from ..database import create_engine_for, init_db
from .base import DataStore, Filter, Row, eq, neq, gt, in_
from .memory import MemoryStore
from .sql import SQLAlchemyStore

logger = logging.getLogger(__name__)


async def open_store(settings: Settings) -> DataStore:
    """Connect to the configured database, falling back to the in-memory store."""
    if settings.demo_mode:
        logger.info("Demo mode enabled, using in-memory store")
        return MemoryStore()

    url = os.environ.get("DATABASE_URL", settings.database_url)
    engine = None
    try:
        engine = create_engine_for(url, echo=settings.debug)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        await init_db(engine)
        logger.info("Database connection successful")
        return SQLAlchemyStore(engine)
    except Exception as e:
        logger.warning(f"Database unavailable, running on in-memory store: {e}")
        if engine is not None:
            await engine.dispose()
        return MemoryStore()


__all__ = [
    "DataStore",
    "Filter",
    "Row",
    "eq",
    "neq",
    "gt",
    "in_",
    "MemoryStore",
    "SQLAlchemyStore",
    "open_store",
]
