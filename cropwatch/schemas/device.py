"""Pydantic schemas for the canonical device model and listings."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DeviceStatus = Literal["online", "offline"]


class HistoryPoint(BaseModel):
    """One historical sample, normalized, with the source row kept alongside."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    primary: float | None = None
    secondary: float | None = None
    co2: float | None = None
    battery: float | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class DeviceRecord(BaseModel):
    """Canonical, unit-consistent device representation."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    location_id: str = Field(serialization_alias="locationId")
    facility_id: str = Field(serialization_alias="facilityId")
    temperature_c: float = Field(0, serialization_alias="temperatureC")
    humidity: float = 0
    co2: float | None = None
    last_seen: str = Field("", serialization_alias="lastSeen")
    status: DeviceStatus
    has_alert: bool = Field(False, serialization_alias="hasAlert")
    data: list[HistoryPoint] | None = None


class LocationRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    facility_id: str = Field(serialization_alias="facilityId")


class FacilityRecord(BaseModel):
    """Facility synthesized from a location's owner."""

    id: str
    name: str
    code: str


class DevicePage(BaseModel):
    """One keyset page of devices with the locations/facilities they reference."""

    model_config = ConfigDict(populate_by_name=True)

    devices: list[DeviceRecord]
    locations: list[LocationRecord]
    facilities: list[FacilityRecord]
    next_cursor: str | None = Field(None, serialization_alias="nextCursor")


class AppState(DevicePage):
    """First page of devices wrapped with the caller's login state."""

    is_logged_in: bool = Field(False, serialization_alias="isLoggedIn")


class DeviceCreate(BaseModel):
    """Request body for registering a device."""

    dev_eui: str = Field(..., pattern=r"^[0-9A-Fa-f]{16}$")
    name: str = Field(..., min_length=1, max_length=100)
    type: int | None = None
    location_id: int | None = None
    upload_interval: int | None = Field(None, ge=1)
    installed_at: datetime | None = None


class UplinkRequest(BaseModel):
    """Decoded uplink for a device.

    ``primary_data``/``secondary_data`` update the device row; ``readings``
    is written to the device type's history table column by column.
    """

    primary_data: float | None = None
    secondary_data: float | None = None
    readings: dict[str, float | None] = Field(default_factory=dict)
    received_at: datetime | None = None


class GatewayRecord(BaseModel):
    """A gateway that heard a device, with its last reported signal."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    rssi: float | None = None
    snr: float | None = None
    last_update: str | None = Field(None, serialization_alias="lastUpdate")


class CompareDevice(BaseModel):
    """Latest reading for one device in the comparison view."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: str
    type_id: int | None = Field(None, serialization_alias="typeId")
    temperature_c: float = Field(0, serialization_alias="temperatureC")
    humidity: float = 0
    co2: float | None = None
    battery: float | None = None
    last_seen: str = Field("", serialization_alias="lastSeen")
    status: DeviceStatus
    gateway_count: int = Field(0, serialization_alias="gatewayCount")
    strongest_signal: float | None = Field(None, serialization_alias="strongestSignal")
    gateways: list[GatewayRecord] = Field(default_factory=list)


class CompareResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    devices: list[CompareDevice]
    device_types: list[str] = Field(serialization_alias="deviceTypes")
