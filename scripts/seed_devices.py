#!/usr/bin/env python3
"""Seed device types, locations and devices into the database."""

import asyncio
from datetime import UTC, datetime

from sqlalchemy import select

from cropwatch.database import get_session
from cropwatch.models import Device, DeviceGateway, DeviceType, Location

DEVICE_TYPES = [
    {
        "id": 1,
        "name": "CW-AIR-TH",
        "primary_data": "temperature_c",
        "secondary_data": "humidity",
        "primary_data_notation": "°C",
        "secondary_data_notation": "%",
        "default_upload_interval": 10,
        "data_table_v2": "cw_air_data",
    },
    {
        "id": 2,
        "name": "CW-AIR-CO2",
        # Legacy labels kept for older clients; v2 labels reflect the firmware
        "primary_data": "temperature_c",
        "secondary_data": "co2",
        "primary_data_v2": "temperature_f",
        "secondary_data_v2": "co2_ppm",
        "primary_data_notation": "°F",
        "secondary_data_notation": "ppm",
        "data_table": "cw_air_data",
    },
    {
        "id": 3,
        "name": "CW-SOIL",
        "primary_data_v2": "temperature_c",
        "secondary_data_v2": "moisture",
        "primary_data_notation": "°C",
        "secondary_data_notation": "%",
        "default_upload_interval": 60,
        "data_table_v2": "cw_soil_data",
    },
]

LOCATIONS = [
    {
        "location_id": 1,
        "name": "Greenhouse A",
        "description": "Tomatoes and peppers",
        "lat": 35.6812,
        "long": 139.7671,
        "owner_id": "3f0b9c2e-farm-north",
    },
    {
        "location_id": 2,
        "name": "Greenhouse B",
        "description": "Seedlings",
        "lat": 35.6815,
        "long": 139.7680,
        "owner_id": "3f0b9c2e-farm-north",
    },
    {
        "location_id": 3,
        "name": "Cold Storage",
        "description": None,
        "lat": None,
        "long": None,
        "owner_id": "71aa04d1-packhouse",
    },
]

DEVICES = [
    {"dev_eui": "0025CA0A00001001", "name": "GH-A Air 1", "type": 1, "location_id": 1},
    {"dev_eui": "0025CA0A00001002", "name": "GH-A Air 2", "type": 1, "location_id": 1},
    {"dev_eui": "0025CA0A00001003", "name": "GH-A CO2", "type": 2, "location_id": 1},
    {"dev_eui": "0025CA0A00001004", "name": "GH-A Soil", "type": 3, "location_id": 1},
    {"dev_eui": "0025CA0A00002001", "name": "GH-B Air", "type": 1, "location_id": 2},
    {"dev_eui": "0025CA0A00002002", "name": "GH-B Soil 1", "type": 3, "location_id": 2},
    {"dev_eui": "0025CA0A00002003", "name": "GH-B Soil 2", "type": 3, "location_id": 2},
    {
        "dev_eui": "0025CA0A00003001",
        "name": "Cold Store Air",
        "type": 1,
        "location_id": 3,
        "upload_interval": 5,
    },
]

# Gateways covering each greenhouse; the cold store sits between both
GATEWAYS = {
    1: [("gw-north-01", -78.0, 9.5)],
    2: [("gw-north-01", -96.0, 2.0), ("gw-south-01", -84.0, 6.5)],
    3: [("gw-south-01", -108.0, -4.0), ("gw-north-01", -112.0, -7.5)],
}


async def seed_devices() -> None:
    """Seed reference rows, devices and gateway links (idempotent)."""
    async with get_session() as session:
        result = await session.execute(select(DeviceType).limit(1))
        if result.scalar_one_or_none():
            print("Device types already seeded, skipping.")
        else:
            session.add_all(DeviceType(**data) for data in DEVICE_TYPES)
            session.add_all(Location(**data) for data in LOCATIONS)
            await session.commit()
            print(f"Seeded {len(DEVICE_TYPES)} device types and {len(LOCATIONS)} locations.")

        result = await session.execute(select(Device).limit(1))
        if result.scalar_one_or_none():
            print("Devices already seeded, skipping.")
        else:
            installed_at = datetime.now(UTC).replace(tzinfo=None)  # Use naive UTC for SQLite
            session.add_all(Device(**data, installed_at=installed_at) for data in DEVICES)
            await session.commit()
            print(f"Seeded {len(DEVICES)} devices.")

        result = await session.execute(select(DeviceGateway).limit(1))
        if result.scalar_one_or_none():
            print("Gateway links already seeded, skipping.")
        else:
            last_update = datetime.now(UTC).replace(tzinfo=None)
            links = [
                DeviceGateway(
                    dev_eui=device["dev_eui"],
                    gateway_id=gateway_id,
                    rssi=rssi,
                    snr=snr,
                    last_update=last_update,
                )
                for device in DEVICES
                for gateway_id, rssi, snr in GATEWAYS[device["location_id"]]
            ]
            session.add_all(links)
            await session.commit()
            print(f"Seeded {len(links)} gateway links.")


if __name__ == "__main__":
    asyncio.run(seed_devices())
