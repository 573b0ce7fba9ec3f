"""Value normalizer: turns raw device rows into canonical device records.

Every path that produces a :class:`DeviceRecord` (page listing, live
merge) goes through :func:`normalize_device`, and every path that reads
history rows goes through :func:`normalize_history_row`. Nothing here
touches the database; inputs are plain row mappings.

Malformed input never raises: numbers that cannot be read become
``None`` (then ``0`` on the record), unreadable timestamps make a device
``offline``.
"""

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from cropwatch.config import DEFAULT_UPLOAD_INTERVAL_MINUTES
from cropwatch.schemas import DeviceRecord, DeviceStatus, FacilityRecord, HistoryPoint, LocationRecord
from cropwatch.services.classifier import classify, resolve_kind

__all__ = [
    "ColumnBinding",
    "CO2_LOOKUPS",
    "coerce_number",
    "derive_status",
    "effective_upload_interval",
    "format_timestamp",
    "kind_labels",
    "lookup_co2",
    "map_facility",
    "map_location",
    "normalize_device",
    "normalize_history_row",
    "normalize_reading",
    "normalize_temperature",
    "parse_timestamp",
]

DEFAULT_PRIMARY_KIND = "temperature_c"
DEFAULT_SECONDARY_KIND = "humidity"
UNKNOWN_LOCATION_ID = "unknown"
UNKNOWN_LOCATION_NAME = "Unknown location"

RawRow = Mapping[str, Any]


# --- Numbers and units ---


def coerce_number(value: Any) -> float | None:
    """Read a finite float out of whatever the store handed back, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32) / 1.8


def kelvin_to_celsius(value: float) -> float:
    return value - 273.15


def normalize_temperature(label: str | None, value: Any) -> float | None:
    """Convert a temperature reading to Celsius using the unit its label implies."""
    number = coerce_number(value)
    if number is None:
        return None

    unit = classify(label).unit
    if unit == "fahrenheit":
        return fahrenheit_to_celsius(number)
    if unit == "kelvin":
        return kelvin_to_celsius(number)
    return number


def normalize_reading(label: str | None, value: Any) -> float | None:
    """Normalize one reading according to the kind its label resolves to."""
    if resolve_kind(classify(label)) == "temperature":
        return normalize_temperature(label, value)
    return coerce_number(value)


# --- CO2 lookup ---

Co2Lookup = Callable[[RawRow, str | None], float | None]


def _co2_from_declared_key(row: RawRow, declared_key: str | None) -> float | None:
    if declared_key is None:
        return None
    return coerce_number(row.get(declared_key))


def _co2_from_any_key(row: RawRow, declared_key: str | None) -> float | None:
    for key, value in row.items():
        if key == declared_key or "co2" not in str(key).lower():
            continue
        number = coerce_number(value)
        if number is not None:
            return number
    return None


# Evaluated in order; the first finite value wins.
CO2_LOOKUPS: tuple[Co2Lookup, ...] = (_co2_from_declared_key, _co2_from_any_key)


def lookup_co2(
    row: RawRow,
    declared_key: str | None = "co2",
    lookups: tuple[Co2Lookup, ...] = CO2_LOOKUPS,
) -> float | None:
    """Find a CO2 reading in a row, trying each lookup strategy in turn."""
    for lookup in lookups:
        value = lookup(row, declared_key)
        if value is not None:
            return value
    return None


# --- Timestamps and status ---


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes from SQLite are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass a datetime through) as aware UTC."""
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def format_timestamp(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return _as_utc(value).isoformat()
    return str(value)


def resolve_last_seen(row: RawRow) -> str:
    """Last data update, else install time, else empty string."""
    for key in ("last_data_updated_at", "installed_at"):
        value = row.get(key)
        if value is not None:
            return format_timestamp(value)
    return ""


def effective_upload_interval(row: RawRow, device_type: RawRow | None = None) -> float:
    """Device interval, else its type's default, else the global fallback (minutes)."""
    candidates = [row.get("upload_interval")]
    if device_type:
        candidates.append(device_type.get("default_upload_interval"))

    for candidate in candidates:
        minutes = coerce_number(candidate)
        if minutes is not None:
            return minutes
    return DEFAULT_UPLOAD_INTERVAL_MINUTES


def derive_status(
    last_seen: Any,
    interval_minutes: float,
    now: datetime | None = None,
) -> DeviceStatus:
    """Online while the last upload is within the allowed reporting interval."""
    seen = parse_timestamp(last_seen)
    if seen is None:
        return "offline"

    current = _as_utc(now) if now is not None else datetime.now(UTC)
    elapsed_seconds = (current - seen).total_seconds()
    return "offline" if elapsed_seconds > interval_minutes * 60 else "online"


# --- Locations and facilities ---


def _facility_id(location: RawRow | None) -> str:
    if location and location.get("owner_id"):
        return str(location["owner_id"])
    location_id = location.get("location_id") if location else None
    return f"facility-{location_id if location_id is not None else UNKNOWN_LOCATION_ID}"


def map_location(location: RawRow) -> LocationRecord:
    return LocationRecord(
        id=str(location["location_id"]),
        name=location.get("name") or UNKNOWN_LOCATION_NAME,
        facility_id=_facility_id(location),
    )


def map_facility(location: RawRow) -> FacilityRecord:
    """Synthesize the facility a location belongs to."""
    facility_id = _facility_id(location)
    return FacilityRecord(
        id=facility_id,
        name=f"Facility {facility_id}",
        code=f"F-{facility_id[:4]}",
    )


# --- Devices ---


def kind_labels(device_type: RawRow | None) -> tuple[str, str]:
    """Primary/secondary kind labels, v2 columns first, legacy second."""
    if not device_type:
        return DEFAULT_PRIMARY_KIND, DEFAULT_SECONDARY_KIND

    primary = device_type.get("primary_data_v2") or device_type.get("primary_data")
    secondary = device_type.get("secondary_data_v2") or device_type.get("secondary_data")
    return primary or DEFAULT_PRIMARY_KIND, secondary or DEFAULT_SECONDARY_KIND


def normalize_device(
    row: RawRow,
    device_type: RawRow | None = None,
    location: RawRow | None = None,
    now: datetime | None = None,
) -> DeviceRecord:
    """Build the canonical record for a raw device row.

    Each of the two raw slots is assigned to at most one kind, and each
    kind takes the first slot that resolves to it.
    """
    primary_label, secondary_label = kind_labels(device_type)

    readings: dict[str, float | None] = {}
    co2_key: str | None = None
    for column, label in (("primary_data", primary_label), ("secondary_data", secondary_label)):
        kind = resolve_kind(classify(label))
        if kind is None:
            continue
        if kind == "co2":
            co2_key = co2_key or column
        elif kind not in readings:
            readings[kind] = normalize_reading(label, row.get(column))

    dev_eui = str(row.get("dev_eui") or "")
    last_seen = resolve_last_seen(row)
    temperature = readings.get("temperature")
    humidity = readings.get("humidity")

    return DeviceRecord(
        id=dev_eui,
        name=row.get("name") or dev_eui,
        location_id=str(location["location_id"]) if location else UNKNOWN_LOCATION_ID,
        facility_id=_facility_id(location),
        temperature_c=temperature if temperature is not None else 0,
        humidity=humidity if humidity is not None else 0,
        co2=lookup_co2(row, co2_key),
        last_seen=last_seen,
        status=derive_status(last_seen, effective_upload_interval(row, device_type), now),
        has_alert=False,
    )


# --- History rows ---


@dataclass(frozen=True)
class ColumnBinding:
    """A history-table column and the kind label its values are read with."""

    column: str
    label: str

    def read(self, row: RawRow) -> float | None:
        return normalize_reading(self.label, row.get(self.column))


def normalize_history_row(
    row: RawRow,
    primary: ColumnBinding | None = None,
    secondary: ColumnBinding | None = None,
    timestamp_column: str = "created_at",
    battery_column: str | None = "battery_level",
) -> HistoryPoint:
    return HistoryPoint(
        timestamp=format_timestamp(row.get(timestamp_column)),
        primary=primary.read(row) if primary else None,
        secondary=secondary.read(row) if secondary else None,
        co2=lookup_co2(row),
        battery=coerce_number(row.get(battery_column)) if battery_column else None,
        raw={
            key: format_timestamp(value) if isinstance(value, datetime) else value
            for key, value in row.items()
        },
    )
