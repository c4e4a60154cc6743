"""Database session and engine management."""
from typing import Any, Dict

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from vocab_progress.config import settings
from vocab_progress.db.base import LocalBase


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Keep objects usable after commit
)

local_engine = create_engine(
    settings.OFFLINE_QUEUE_URL, **_engine_options(settings.OFFLINE_QUEUE_URL)
)

LocalSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=local_engine,
    expire_on_commit=False,
)


def init_local_store(bind: Engine | None = None) -> None:
    """Create the offline queue tables if they do not exist yet."""

    target = bind or local_engine
    LocalBase.metadata.create_all(bind=target)
    logger.debug("Offline queue store ready", url=str(target.url))
