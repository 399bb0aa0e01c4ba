#!/usr/bin/env python3
"""Create all database tables directly with SQLAlchemy."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import create_async_engine

from repuestos.config.database import Base, engine_options
from repuestos.config.settings import settings
import repuestos.models  # noqa: F401  registers every table on Base.metadata


async def create_tables():
    """Create every table that does not exist yet."""
    print(f"Connecting to database: {settings.database_url[:50]}...")

    engine = create_async_engine(
        settings.database_url,
        echo=True,
        **engine_options(settings.database_url),
    )

    async with engine.begin() as conn:
        print("\nCreating tables...")
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()
    print(f"\nDone: {len(Base.metadata.tables)} tables checked.")


if __name__ == "__main__":
    asyncio.run(create_tables())
