"""Pydantic schemas for API request/response models."""

from cropwatch.schemas.device import (
    AppState,
    CompareDevice,
    CompareResponse,
    DeviceCreate,
    DevicePage,
    DeviceRecord,
    DeviceStatus,
    FacilityRecord,
    GatewayRecord,
    HistoryPoint,
    LocationRecord,
    UplinkRequest,
)
from cropwatch.schemas.history import DeviceHistory, Metric, MetricHistory, MetricPoint

__all__ = [
    # Device schemas
    "AppState",
    "DeviceCreate",
    "DevicePage",
    "DeviceRecord",
    "DeviceStatus",
    "FacilityRecord",
    "LocationRecord",
    "UplinkRequest",
    "CompareDevice",
    "CompareResponse",
    "GatewayRecord",
    # History schemas
    "HistoryPoint",
    "DeviceHistory",
    "Metric",
    "MetricHistory",
    "MetricPoint",
]
