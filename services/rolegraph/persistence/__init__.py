"""
Persistence layer for Rolegraph.

Provides init_persistence() / close_persistence() for app lifespan and
get_persistence() for everything that needs the configured backend.
"""

from __future__ import annotations

from rolegraph.config import PersistenceBackend, settings
from rolegraph.logging_config import get_logger
from rolegraph.persistence.protocol import Persistence

logger = get_logger(__name__)

# Module-level persistence instance
_persistence: Persistence | None = None


async def init_persistence() -> Persistence:
    """Initialize the persistence backend based on configuration.

    Called during app startup (lifespan).
    """
    global _persistence  # noqa: PLW0603
    cfg = settings.persistence

    match cfg.backend:
        case PersistenceBackend.MEMORY:
            from rolegraph.persistence.memory import MemoryPersistence

            _persistence = MemoryPersistence()
            logger.warning("Persistence initialized", backend="memory", durable=False)

        case PersistenceBackend.POSTGRES:
            from rolegraph.db.session import init_db
            from rolegraph.persistence.postgres import PostgresPersistence

            session_factory = await init_db()
            _persistence = PostgresPersistence(session_factory)
            logger.info("Persistence initialized", backend="postgres")

    return get_persistence()


async def close_persistence() -> None:
    """Close the persistence backend and release resources.

    Called during app shutdown (lifespan).
    """
    global _persistence  # noqa: PLW0603
    if _persistence is not None:
        await _persistence.close()
        _persistence = None
        logger.info("Persistence closed")


def get_persistence() -> Persistence:
    """Return the persistence backend. Raises if not initialized."""
    if _persistence is None:
        raise RuntimeError("Persistence not initialized; call init_persistence() first")
    return _persistence


def get_persistence_or_none() -> Persistence | None:
    """Return the persistence backend if initialized, otherwise None."""
    return _persistence
