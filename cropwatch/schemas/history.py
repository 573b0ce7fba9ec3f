"""Pydantic schemas for device history and metric series."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cropwatch.schemas.device import HistoryPoint

Metric = Literal["temperature", "humidity", "co2"]


class DeviceHistory(BaseModel):
    """Time-bounded samples for one device, oldest first."""

    model_config = ConfigDict(populate_by_name=True)

    dev_eui: str = Field(serialization_alias="devEui")
    table: str
    primary_column: str | None = Field(None, serialization_alias="primaryColumn")
    secondary_column: str | None = Field(None, serialization_alias="secondaryColumn")
    start: datetime
    end: datetime
    points: list[HistoryPoint]


class MetricPoint(BaseModel):
    timestamp: str
    value: float


class MetricHistory(BaseModel):
    """Single-metric series for charting."""

    model_config = ConfigDict(populate_by_name=True)

    dev_eui: str = Field(serialization_alias="devEui")
    metric: Metric
    column: str
    start: datetime
    end: datetime
    points: list[MetricPoint]
    count: int
