"""SQLAlchemy models."""

from cropwatch.models.device import Device
from cropwatch.models.device_type import DeviceType
from cropwatch.models.gateway import DeviceGateway
from cropwatch.models.history import AirData, SoilData
from cropwatch.models.location import Location

__all__ = [
    "Location",
    "DeviceType",
    "Device",
    "AirData",
    "SoilData",
    "DeviceGateway",
]
