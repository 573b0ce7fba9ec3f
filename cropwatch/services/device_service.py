"""Device service layer: paginated listing, reference lookups and device writes."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropwatch.config import DEFAULT_HISTORY_TABLE, DEFAULT_PAGE_LIMIT, INITIAL_PAGE_LIMIT
from cropwatch.database import AuthTokens, row_to_dict
from cropwatch.models import Device, DeviceType, Location
from cropwatch.schemas import (
    AppState,
    DeviceCreate,
    DevicePage,
    FacilityRecord,
    LocationRecord,
    UplinkRequest,
)
from cropwatch.services._registry import get_history_config
from cropwatch.services.normalizer import map_facility, map_location, normalize_device

__all__ = [
    "fetch_page",
    "load_initial_app_state",
    "get_device_row",
    "get_device_type_row",
    "get_location_row",
    "history_table_name",
    "register_device",
    "record_uplink",
]

logger = logging.getLogger(__name__)


async def fetch_page(
    session: AsyncSession,
    limit: int = DEFAULT_PAGE_LIMIT,
    cursor: str | None = None,
    location_id: int | None = None,
    now: datetime | None = None,
) -> DevicePage:
    """Fetch one keyset page of normalized devices, ordered by DevEUI.

    One extra row is read past ``limit``; its DevEUI becomes ``next_cursor``
    and is the first device of the following page.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    query = (
        select(Device, Location, DeviceType)
        .outerjoin(Location, Device.location_id == Location.location_id)
        .outerjoin(DeviceType, Device.type == DeviceType.id)
        .order_by(Device.dev_eui)
        .limit(limit + 1)
    )
    if cursor:
        query = query.where(Device.dev_eui >= cursor)
    if location_id is not None:
        query = query.where(Device.location_id == location_id)

    result = await session.execute(query)
    rows = result.all()

    page_rows = rows[:limit]
    next_cursor = rows[limit][0].dev_eui if len(rows) > limit else None

    devices = []
    locations: dict[str, LocationRecord] = {}
    facilities: dict[str, FacilityRecord] = {}

    for device, location, device_type in page_rows:
        location_row = row_to_dict(location) if location else None
        devices.append(
            normalize_device(
                row_to_dict(device),
                row_to_dict(device_type) if device_type else None,
                location_row,
                now=now,
            )
        )
        if location_row:
            mapped = map_location(location_row)
            locations[mapped.id] = mapped
            facilities[mapped.facility_id] = map_facility(location_row)

    return DevicePage(
        devices=devices,
        locations=list(locations.values()),
        facilities=list(facilities.values()),
        next_cursor=next_cursor,
    )


async def load_initial_app_state(
    session: AsyncSession,
    tokens: AuthTokens | None = None,
) -> AppState:
    """First page of devices for a fresh page load, with the login flag set."""
    page = await fetch_page(session, limit=INITIAL_PAGE_LIMIT)
    return AppState(**page.model_dump(), is_logged_in=tokens is not None)


# --- Reference lookups ---


async def get_device_row(session: AsyncSession, dev_eui: str) -> dict[str, Any] | None:
    device = await session.get(Device, dev_eui)
    return row_to_dict(device) if device else None


async def get_device_type_row(session: AsyncSession, type_id: int) -> dict[str, Any] | None:
    device_type = await session.get(DeviceType, type_id)
    return row_to_dict(device_type) if device_type else None


async def get_location_row(session: AsyncSession, location_id: int) -> dict[str, Any] | None:
    location = await session.get(Location, location_id)
    return row_to_dict(location) if location else None


def history_table_name(device_type: dict[str, Any] | None) -> str:
    """History table a device type writes to, v2 name first."""
    if not device_type:
        return DEFAULT_HISTORY_TABLE
    return device_type.get("data_table_v2") or device_type.get("data_table") or DEFAULT_HISTORY_TABLE


# --- Writes ---


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)  # Use naive UTC for SQLite


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


async def register_device(session: AsyncSession, payload: DeviceCreate) -> dict[str, Any]:
    """Insert a device row and return it as a plain dict.

    Raises ValueError if the DevEUI is already registered.
    """
    dev_eui = payload.dev_eui.upper()
    if await session.get(Device, dev_eui) is not None:
        raise ValueError(f"Device {dev_eui} already exists")

    device = Device(
        dev_eui=dev_eui,
        name=payload.name,
        type=payload.type,
        location_id=payload.location_id,
        upload_interval=payload.upload_interval,
        installed_at=_naive_utc(payload.installed_at) if payload.installed_at else _utcnow(),
    )
    session.add(device)
    await session.commit()
    logger.info(f"Registered device {dev_eui} at location {payload.location_id}")
    return row_to_dict(device)


async def record_uplink(
    session: AsyncSession,
    dev_eui: str,
    payload: UplinkRequest,
) -> dict[str, Any] | None:
    """Store an uplink's readings on the device row and in its history table.

    Returns the updated device row, or None if the device is unknown.
    History is only written for registered tables; readings for columns
    the table does not have are dropped.
    """
    dev_eui = dev_eui.upper()
    device = await session.get(Device, dev_eui)
    if device is None:
        return None

    received_at = _naive_utc(payload.received_at) if payload.received_at else _utcnow()
    device.primary_data = payload.primary_data
    device.secondary_data = payload.secondary_data
    device.last_data_updated_at = received_at

    device_type = await session.get(DeviceType, device.type) if device.type is not None else None
    table_name = history_table_name(row_to_dict(device_type) if device_type else None)
    config = get_history_config(table_name)

    if config is not None and config.model is not None and payload.readings:
        values = {k: v for k, v in payload.readings.items() if k in config.columns}
        dropped = set(payload.readings) - set(values)
        if dropped:
            logger.warning(f"Uplink for {dev_eui}: {table_name} has no columns {sorted(dropped)}")
        values.pop("id", None)
        values[config.device_column] = dev_eui
        values[config.timestamp_column] = received_at
        session.add(config.model(**values))
    elif payload.readings:
        logger.warning(f"Uplink for {dev_eui}: no writable history table {table_name!r}")

    await session.commit()
    return row_to_dict(device)
