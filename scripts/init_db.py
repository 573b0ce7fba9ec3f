#!/usr/bin/env python3
"""Initialize the database schema.

Run from the repository root: python -m scripts.init_db [--reset]
"""

import asyncio
import sys

from cropwatch.database import Base, engine
from cropwatch.models import (  # noqa: F401 - imports needed for table creation
    AirData,
    Device,
    DeviceGateway,
    DeviceType,
    Location,
    SoilData,
)


async def init_db() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully.")


async def drop_db() -> None:
    """Drop all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    print("Database tables dropped.")


async def reset_db() -> None:
    await drop_db()
    await init_db()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        asyncio.run(reset_db())
    else:
        asyncio.run(init_db())
