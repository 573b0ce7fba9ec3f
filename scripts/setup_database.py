#!/usr/bin/env python3
"""One-shot database setup: init tables, seed devices, generate history.

Run from the repository root: python -m scripts.setup_database
"""

import asyncio

from scripts.generate_data import generate_all_data
from scripts.init_db import init_db
from scripts.seed_devices import seed_devices


async def setup_all() -> None:
    """Run all setup steps."""
    print("=== Setting up CropWatch database ===")
    print()

    print("Step 1: Creating tables...")
    await init_db()
    print()

    print("Step 2: Seeding device types, locations and devices...")
    await seed_devices()
    print()

    print("Step 3: Generating uplink history (48h)...")
    await generate_all_data()
    print()

    print("=== Setup complete! ===")
    print("Start the server with: uvicorn cropwatch.main:app --reload --port 8000")


if __name__ == "__main__":
    asyncio.run(setup_all())
