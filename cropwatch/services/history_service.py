"""History service layer: time-bounded samples from a device type's history table."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cropwatch.config import (
    HISTORY_DEFAULT_HOURS,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_LIMIT,
    METRIC_HISTORY_DEFAULT_DAYS,
)
from cropwatch.schemas import DeviceHistory, DeviceRecord, Metric, MetricHistory, MetricPoint
from cropwatch.services._registry import CANONICAL_COLUMNS, HistoryTableConfig, resolve_history_table
from cropwatch.services.classifier import classify, resolve_kind
from cropwatch.services.device_service import (
    get_device_row,
    get_device_type_row,
    get_location_row,
    history_table_name,
)
from cropwatch.services.normalizer import (
    ColumnBinding,
    format_timestamp,
    kind_labels,
    normalize_device,
    normalize_history_row,
)

__all__ = [
    "fetch_device_history",
    "fetch_device_record",
    "fetch_metric_history",
    "bind_column",
    "clamp_limit",
]

logger = logging.getLogger(__name__)


def clamp_limit(limit: int) -> int:
    """Row limit for history queries, capped at HISTORY_MAX_LIMIT."""
    if limit < 1:
        raise ValueError("limit must be at least 1")
    return min(limit, HISTORY_MAX_LIMIT)


def _time_range(
    start: datetime | None,
    end: datetime | None,
    default_span: timedelta,
) -> tuple[datetime, datetime]:
    end = end or datetime.now(UTC)
    start = start or end - default_span
    if end.tzinfo is None:
        end = end.replace(tzinfo=UTC)
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)
    if start >= end:
        raise ValueError("start must be before end")
    return start, end


def _naive(value: datetime) -> datetime:
    return value.astimezone(UTC).replace(tzinfo=None)  # Use naive UTC for SQLite


def bind_column(label: str | None, columns: set[str]) -> ColumnBinding | None:
    """Bind a kind label to the history column holding its values.

    A label naming a real column is read from that column. Otherwise the
    conventional column for the label's kind is used, if the table has it.
    """
    if not label:
        return None
    if label in columns:
        return ColumnBinding(column=label, label=label)

    kind = resolve_kind(classify(label))
    canonical = CANONICAL_COLUMNS.get(kind) if kind else None
    if canonical and canonical in columns:
        return ColumnBinding(column=canonical, label=canonical)
    return None


async def _load_reference(
    session: AsyncSession,
    dev_eui: str,
) -> tuple[dict[str, Any], dict[str, Any] | None] | None:
    # DevEUIs are stored uppercase
    device = await get_device_row(session, dev_eui.upper())
    if device is None:
        return None

    device_type = None
    if device.get("type") is not None:
        device_type = await get_device_type_row(session, device["type"])
        if device_type is None:
            logger.warning(f"Device {dev_eui} references missing device type {device['type']}")
    return device, device_type


async def _select_rows(
    session: AsyncSession,
    config: HistoryTableConfig,
    dev_eui: str,
    start: datetime,
    end: datetime,
    limit: int,
) -> list[dict[str, Any]]:
    table = config.table
    timestamp = table.c[config.timestamp_column]
    query = (
        select(table)
        .where(
            and_(
                table.c[config.device_column] == dev_eui,
                timestamp >= _naive(start),
                timestamp <= _naive(end),
            )
        )
        .order_by(timestamp)
        .limit(limit)
    )
    result = await session.execute(query)
    return [dict(row) for row in result.mappings()]


async def _read_history(
    session: AsyncSession,
    dev_eui: str,
    device_type: dict[str, Any] | None,
    start: datetime,
    end: datetime,
    limit: int,
) -> DeviceHistory:
    table_name = history_table_name(device_type)
    config = await resolve_history_table(session, table_name)
    if config is None:
        return DeviceHistory(dev_eui=dev_eui, table=table_name, start=start, end=end, points=[])

    primary_label, secondary_label = kind_labels(device_type)
    primary = bind_column(primary_label, config.columns)
    secondary = bind_column(secondary_label, config.columns)

    rows = await _select_rows(session, config, dev_eui, start, end, limit)
    points = [
        normalize_history_row(
            row,
            primary=primary,
            secondary=secondary,
            timestamp_column=config.timestamp_column,
            battery_column=config.battery_column,
        )
        for row in rows
    ]

    return DeviceHistory(
        dev_eui=dev_eui,
        table=table_name,
        primary_column=primary.column if primary else None,
        secondary_column=secondary.column if secondary else None,
        start=start,
        end=end,
        points=points,
    )


async def fetch_device_history(
    session: AsyncSession,
    dev_eui: str,
    start: datetime | None = None,
    end: datetime | None = None,
    hours_back: int = HISTORY_DEFAULT_HOURS,
    limit: int = HISTORY_DEFAULT_LIMIT,
) -> DeviceHistory | None:
    """
    Fetch normalized history samples for one device, oldest first.

    The history table and which of its columns are "primary"/"secondary"
    come from the device's type. Returns None for an unknown device; a
    history table that cannot be resolved yields no points.
    """
    start, end = _time_range(start, end, timedelta(hours=hours_back))
    limit = clamp_limit(limit)

    reference = await _load_reference(session, dev_eui)
    if reference is None:
        return None
    device, device_type = reference

    return await _read_history(session, device["dev_eui"], device_type, start, end, limit)


async def fetch_device_record(
    session: AsyncSession,
    dev_eui: str,
    include_history: bool = False,
    start: datetime | None = None,
    end: datetime | None = None,
    hours_back: int = HISTORY_DEFAULT_HOURS,
    limit: int = HISTORY_DEFAULT_LIMIT,
    now: datetime | None = None,
) -> DeviceRecord | None:
    """Canonical record for one device, with its history in ``data`` on request."""
    if include_history:
        start, end = _time_range(start, end, timedelta(hours=hours_back))
        limit = clamp_limit(limit)

    reference = await _load_reference(session, dev_eui)
    if reference is None:
        return None
    device, device_type = reference

    location = None
    if device.get("location_id") is not None:
        location = await get_location_row(session, device["location_id"])
    record = normalize_device(device, device_type, location, now)
    if not include_history:
        return record

    history = await _read_history(session, device["dev_eui"], device_type, start, end, limit)
    return record.model_copy(update={"data": history.points})


def _metric_binding(
    metric: Metric,
    device_type: dict[str, Any] | None,
    columns: set[str],
) -> ColumnBinding | None:
    """The device type's slot for ``metric`` if it declares one, else convention."""
    for label in kind_labels(device_type):
        if resolve_kind(classify(label)) == metric:
            binding = bind_column(label, columns)
            if binding is not None:
                return binding

    canonical = CANONICAL_COLUMNS[metric]
    if canonical in columns:
        return ColumnBinding(column=canonical, label=canonical)
    return None


async def fetch_metric_history(
    session: AsyncSession,
    dev_eui: str,
    metric: Metric = "temperature",
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = HISTORY_DEFAULT_LIMIT,
) -> MetricHistory | None:
    """Single-metric series for one device, nulls dropped. Defaults to the last 7 days."""
    if metric not in CANONICAL_COLUMNS:
        raise ValueError(f"Invalid metric: {metric}")

    start, end = _time_range(start, end, timedelta(days=METRIC_HISTORY_DEFAULT_DAYS))
    limit = clamp_limit(limit)

    reference = await _load_reference(session, dev_eui)
    if reference is None:
        return None
    device, device_type = reference
    dev_eui = device["dev_eui"]

    config = await resolve_history_table(session, history_table_name(device_type))
    binding = _metric_binding(metric, device_type, config.columns) if config else None
    if config is None or binding is None:
        return MetricHistory(
            dev_eui=dev_eui,
            metric=metric,
            column=binding.column if binding else CANONICAL_COLUMNS[metric],
            start=start,
            end=end,
            points=[],
            count=0,
        )

    rows = await _select_rows(session, config, dev_eui, start, end, limit)
    points = []
    for row in rows:
        value = binding.read(row)
        if value is None:
            continue
        points.append(
            MetricPoint(timestamp=format_timestamp(row.get(config.timestamp_column)), value=value)
        )

    return MetricHistory(
        dev_eui=dev_eui,
        metric=metric,
        column=binding.column,
        start=start,
        end=end,
        points=points,
        count=len(points),
    )
