"""Gateway links: which gateways heard a device, and how well."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropwatch.database import Base


class DeviceGateway(Base):
    """Latest signal a gateway reported for a device."""

    __tablename__ = "cw_device_gateway"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dev_eui: Mapped[str] = mapped_column(String(16), nullable=False)
    gateway_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rssi: Mapped[float | None] = mapped_column(Float, nullable=True)
    snr: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_device_gateway_dev_eui", "dev_eui"),)
