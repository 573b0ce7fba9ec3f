"""Device model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropwatch.database import Base


class Device(Base):
    """LoRaWAN device, keyed by its DevEUI, holding its latest raw readings."""

    __tablename__ = "cw_devices"

    dev_eui: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[int | None] = mapped_column(Integer, ForeignKey("cw_device_type.id"), nullable=True)
    location_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("cw_locations.location_id"), nullable=True
    )
    upload_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)
    primary_data: Mapped[float | None] = mapped_column(Float, nullable=True)
    secondary_data: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_data_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    installed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    location: Mapped["Location"] = relationship(back_populates="devices")


# Import here to avoid circular imports
from cropwatch.models.location import Location  # noqa: E402, F401
