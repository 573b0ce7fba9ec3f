#!/usr/bin/env python3
"""Generate 48 hours of uplink history for every seeded device.

Each device's row is left holding its latest reading, in the units its
device type declares, so listings and history agree.
"""

import asyncio
import random
import sys
from datetime import UTC, datetime, timedelta

from sqlalchemy import select

from cropwatch.database import get_session, row_to_dict
from cropwatch.models import AirData, Device, DeviceType, SoilData
from cropwatch.services.device_service import history_table_name

# Fixed seed for reproducibility
RANDOM_SEED = 42

HOURS_TO_GENERATE = 48
DEFAULT_INTERVAL_MINUTES = 15

# Greenhouse air swings with the sun; soil lags behind and varies less
AIR_BASELINE = {"temperature_c": 22.0, "humidity": 65.0, "co2": 520.0}
SOIL_BASELINE = {"temperature_c": 18.0, "moisture": 34.0, "ec": 1.2, "ph": 6.4}


def _daylight(ts: datetime) -> float:
    """0 at night, peaking at 1 around 13:00."""
    hour = ts.hour + ts.minute / 60
    return max(0.0, 1 - abs(hour - 13) / 7)


def generate_air_rows(dev_eui: str, start_time: datetime, end_time: datetime, step: timedelta):
    rows = []
    battery = random.uniform(85, 100)
    current_time = start_time
    while current_time <= end_time:
        sun = _daylight(current_time)
        rows.append(
            AirData(
                dev_eui=dev_eui,
                created_at=current_time,
                temperature_c=round(AIR_BASELINE["temperature_c"] + 8 * sun + random.uniform(-0.5, 0.5), 1),
                humidity=round(AIR_BASELINE["humidity"] - 15 * sun + random.uniform(-2, 2), 1),
                # Plants draw CO2 down during the day
                co2=round(AIR_BASELINE["co2"] - 120 * sun + random.uniform(-25, 25)),
                battery_level=round(battery, 1),
            )
        )
        battery = max(0.0, battery - 0.01)
        current_time += step
    return rows


def generate_soil_rows(dev_eui: str, start_time: datetime, end_time: datetime, step: timedelta):
    rows = []
    battery = random.uniform(70, 100)
    moisture = SOIL_BASELINE["moisture"]
    current_time = start_time
    while current_time <= end_time:
        # Irrigation at 06:00 tops moisture back up
        if current_time.hour == 6 and current_time.minute < step.total_seconds() / 60:
            moisture = SOIL_BASELINE["moisture"] + 6
        moisture = max(10.0, moisture - 0.05 - 0.1 * _daylight(current_time))
        rows.append(
            SoilData(
                dev_eui=dev_eui,
                created_at=current_time,
                temperature_c=round(SOIL_BASELINE["temperature_c"] + 3 * _daylight(current_time), 1),
                moisture=round(moisture, 1),
                ec=round(SOIL_BASELINE["ec"] + random.uniform(-0.1, 0.1), 2),
                ph=round(SOIL_BASELINE["ph"] + random.uniform(-0.2, 0.2), 2),
                battery_level=round(battery, 1),
            )
        )
        battery = max(0.0, battery - 0.02)
        current_time += step
    return rows


def _device_values(device_type: DeviceType | None, row: AirData | SoilData) -> tuple[float, float]:
    """Primary/secondary values as the device itself would report them."""
    primary = row.temperature_c
    secondary = getattr(row, "humidity", None) or getattr(row, "moisture", None)
    if device_type is not None:
        if (device_type.primary_data_v2 or "").endswith("_f"):
            primary = round(primary * 1.8 + 32, 1)
        if "co2" in (device_type.secondary_data_v2 or device_type.secondary_data or ""):
            secondary = row.co2
    return primary, secondary


async def generate_all_data() -> None:
    """Generate history for every device and update its latest reading."""
    random.seed(RANDOM_SEED)

    end_time = datetime.now(UTC).replace(tzinfo=None, second=0, microsecond=0)
    start_time = end_time - timedelta(hours=HOURS_TO_GENERATE)

    print(f"Generating data from {start_time} to {end_time}")

    async with get_session() as session:
        result = await session.execute(select(AirData).limit(1))
        if result.scalar_one_or_none():
            print("Data already exists. Run with --reset to regenerate.")
            return

        result = await session.execute(
            select(Device, DeviceType).outerjoin(DeviceType, Device.type == DeviceType.id)
        )
        devices = result.all()

        total_rows = 0
        for device, device_type in devices:
            interval = device.upload_interval or (
                device_type.default_upload_interval if device_type else None
            )
            step = timedelta(minutes=interval or DEFAULT_INTERVAL_MINUTES)
            table = history_table_name(row_to_dict(device_type) if device_type else None)

            if table == SoilData.__tablename__:
                rows = generate_soil_rows(device.dev_eui, start_time, end_time, step)
            else:
                rows = generate_air_rows(device.dev_eui, start_time, end_time, step)

            session.add_all(rows)
            total_rows += len(rows)

            latest = rows[-1]
            device.primary_data, device.secondary_data = _device_values(device_type, latest)
            device.last_data_updated_at = latest.created_at

        await session.commit()
        print(f"Generated {total_rows} history rows for {len(devices)} devices.")


async def clear_history() -> None:
    """Clear all history rows."""
    async with get_session() as session:
        await session.execute(AirData.__table__.delete())
        await session.execute(SoilData.__table__.delete())
        await session.commit()
    print("Cleared all history.")


async def reset_and_generate() -> None:
    await clear_history()
    await generate_all_data()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        asyncio.run(reset_and_generate())
    else:
        asyncio.run(generate_all_data())
