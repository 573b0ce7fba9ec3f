"""Compare service layer: latest reading and gateway coverage per device."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cropwatch.database import row_to_dict
from cropwatch.models import Device, DeviceGateway, DeviceType
from cropwatch.schemas import CompareDevice, CompareResponse, GatewayRecord, HistoryPoint
from cropwatch.services._registry import CANONICAL_COLUMNS, resolve_history_table
from cropwatch.services.classifier import classify, resolve_kind
from cropwatch.services.device_service import history_table_name
from cropwatch.services.history_service import bind_column
from cropwatch.services.normalizer import (
    derive_status,
    effective_upload_interval,
    format_timestamp,
    kind_labels,
    normalize_history_row,
    normalize_reading,
    resolve_last_seen,
)

__all__ = ["fetch_compare_devices", "fetch_latest_reading", "fetch_gateways"]

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


async def fetch_latest_reading(
    session_factory: SessionFactory,
    dev_eui: str,
    device_type: dict[str, Any] | None,
) -> HistoryPoint | None:
    """Newest history row for one device, in its own session.

    Primary/secondary are bound from the device type's kind labels, the
    same way the history view reads them.
    """
    async with session_factory() as session:
        config = await resolve_history_table(session, history_table_name(device_type))
        if config is None:
            return None

        table = config.table
        timestamp = table.c[config.timestamp_column]
        result = await session.execute(
            select(table)
            .where(table.c[config.device_column] == dev_eui)
            .order_by(timestamp.desc())
            .limit(1)
        )
        row = result.mappings().first()
        if row is None:
            return None

        primary_label, secondary_label = kind_labels(device_type)
        return normalize_history_row(
            dict(row),
            primary=bind_column(primary_label, config.columns),
            secondary=bind_column(secondary_label, config.columns),
            timestamp_column=config.timestamp_column,
            battery_column=config.battery_column,
        )


async def _safe_latest_reading(
    session_factory: SessionFactory,
    dev_eui: str,
    device_type: dict[str, Any] | None,
) -> HistoryPoint | None:
    try:
        return await fetch_latest_reading(session_factory, dev_eui, device_type)
    except Exception:
        logger.exception(f"Error fetching latest reading for {dev_eui}")
        return None


async def fetch_gateways(
    session: AsyncSession,
    dev_euis: Sequence[str],
) -> dict[str, list[GatewayRecord]]:
    """Gateway links for the given devices in one query, grouped by DevEUI."""
    if not dev_euis:
        return {}

    result = await session.execute(
        select(DeviceGateway)
        .where(DeviceGateway.dev_eui.in_(set(dev_euis)))
        .order_by(DeviceGateway.dev_eui, DeviceGateway.gateway_id)
    )
    gateways: dict[str, list[GatewayRecord]] = defaultdict(list)
    for link in result.scalars():
        gateways[link.dev_eui].append(
            GatewayRecord(
                id=link.gateway_id,
                rssi=link.rssi,
                snr=link.snr,
                last_update=format_timestamp(link.last_update) or None,
            )
        )
    return dict(gateways)


def strongest_signal(gateways: Sequence[GatewayRecord]) -> float | None:
    """Best RSSI across a device's gateways, None when none reported one."""
    readings = [g.rssi for g in gateways if g.rssi is not None]
    return max(readings) if readings else None


def _kind_readings(
    device_type: dict[str, Any] | None,
    latest: HistoryPoint | None,
) -> dict[str, float]:
    """Latest values keyed by kind; each kind takes the first slot resolving to it."""
    if latest is None:
        return {}

    readings: dict[str, float] = {}
    for label, value in zip(kind_labels(device_type), (latest.primary, latest.secondary)):
        kind = resolve_kind(classify(label))
        if kind and value is not None:
            readings.setdefault(kind, value)

    # Kinds the type does not declare fall back to their conventional column
    for kind, column in CANONICAL_COLUMNS.items():
        if kind not in readings:
            value = normalize_reading(column, latest.raw.get(column))
            if value is not None:
                readings[kind] = value
    return readings


def _build_compare_device(
    device: dict[str, Any],
    device_type: dict[str, Any] | None,
    latest: HistoryPoint | None,
    gateways: list[GatewayRecord],
    now: datetime | None,
) -> CompareDevice:
    # The latest history row wins over the device row's last update
    last_seen = latest.timestamp if latest and latest.timestamp else resolve_last_seen(device)
    readings = _kind_readings(device_type, latest)

    return CompareDevice(
        id=device["dev_eui"],
        name=device.get("name") or device["dev_eui"],
        type=(device_type or {}).get("name") or "Unknown",
        type_id=device.get("type"),
        temperature_c=readings.get("temperature", 0),
        humidity=readings.get("humidity", 0),
        co2=latest.co2 if latest else None,
        battery=latest.battery if latest else None,
        last_seen=last_seen,
        status=derive_status(last_seen, effective_upload_interval(device, device_type), now),
        gateway_count=len(gateways),
        strongest_signal=strongest_signal(gateways),
        gateways=gateways,
    )


async def fetch_compare_devices(
    session: AsyncSession,
    session_factory: SessionFactory,
    dev_euis: Sequence[str] | None = None,
    now: datetime | None = None,
) -> CompareResponse:
    """List devices with their latest reading for side-by-side comparison.

    Latest readings are fetched in parallel, one session per device; a
    failed fetch leaves that device without a reading. Gateway links come
    from a single query, and a failure there leaves every device without
    gateways.
    """
    query = select(Device, DeviceType).outerjoin(DeviceType, Device.type == DeviceType.id)
    if dev_euis:
        query = query.where(Device.dev_eui.in_({dev_eui.upper() for dev_eui in dev_euis}))
    query = query.order_by(Device.dev_eui)

    result = await session.execute(query)
    rows = [
        (row_to_dict(device), row_to_dict(device_type) if device_type else None)
        for device, device_type in result.all()
    ]
    if not rows:
        return CompareResponse(devices=[], device_types=[])

    try:
        gateways = await fetch_gateways(session, [device["dev_eui"] for device, _ in rows])
    except SQLAlchemyError:
        logger.exception("Error fetching gateway links")
        gateways = {}

    latest_readings = await asyncio.gather(
        *(
            _safe_latest_reading(session_factory, device["dev_eui"], device_type)
            for device, device_type in rows
        )
    )

    devices = [
        _build_compare_device(
            device, device_type, latest, gateways.get(device["dev_eui"], []), now
        )
        for (device, device_type), latest in zip(rows, latest_readings)
    ]
    device_types = list(dict.fromkeys(d.type for d in devices if d.type))
    return CompareResponse(devices=devices, device_types=device_types)
