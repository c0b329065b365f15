"""
Bootstrap script for seeding the built-in system roles.

Idempotent: roles that already exist are left untouched.
Run via: python -m rolegraph.cli.bootstrap

Reads configuration from environment variables:
  DATABASE_URL - PostgreSQL connection URL (falls back to ROLEGRAPH_DATABASE_URL)
"""

import asyncio
import logging
import os
import sys

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from rolegraph.auth.builtin_roles import seed_builtin_roles
from rolegraph.db.session import make_session_factory
from rolegraph.persistence.postgres import PostgresPersistence

# stdlib logging: structlog is not configured during bootstrap
logger = logging.getLogger("rolegraph.bootstrap")
logging.basicConfig(level=logging.INFO, format="%(message)s")


async def bootstrap() -> None:
    database_url = (
        os.environ.get("DATABASE_URL") or os.environ.get("ROLEGRAPH_DATABASE_URL") or ""
    ).strip()

    if not database_url:
        logger.error("DATABASE_URL is required")
        sys.exit(1)

    # Ensure async driver
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        logger.info("Connected to database")

    persistence = PostgresPersistence(make_session_factory(engine))
    try:
        existing = {role.name for role in await persistence.fetch_all_roles()}
        seeded = await seed_builtin_roles(persistence, existing)
    finally:
        await engine.dispose()

    if seeded:
        for role in seeded:
            logger.info("Created system role: %s", role.name)
    else:
        logger.info("All system roles already exist, skipping")
    logger.info("Bootstrap complete")


if __name__ == "__main__":
    asyncio.run(bootstrap())
