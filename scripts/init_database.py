#!/usr/bin/env python3
"""Create database tables and seed the package catalog."""

import argparse
import asyncio
import sys

from loguru import logger

from tierpay.config.database import create_engine, create_session_maker
from tierpay.models import Base
from tierpay.services.catalog import seed_packages

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database(create_tables: bool) -> None:
    """Create tables (unless migrations own the schema) and seed packages."""
    engine = create_engine()

    if create_tables:
        async with engine.begin() as conn:
            logger.info("Creating tables (checkfirst=True)...")
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    async with create_session_maker(engine)() as session:
        await seed_packages(session)

    await engine.dispose()
    logger.success("Database initialized")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--seed-only",
        action="store_true",
        help="Only seed packages; use after `alembic upgrade head`",
    )
    args = parser.parse_args()
    asyncio.run(init_database(create_tables=not args.seed_only))


if __name__ == "__main__":
    main()
