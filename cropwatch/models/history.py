"""Per-device-type history tables."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropwatch.database import Base


class AirData(Base):
    """Air sensor uplinks: temperature, humidity and CO2."""

    __tablename__ = "cw_air_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dev_eui: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    humidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    co2: Mapped[float | None] = mapped_column(Float, nullable=True)
    battery_level: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (Index("ix_air_data_dev_time", "dev_eui", "created_at"),)


class SoilData(Base):
    """Soil sensor uplinks: temperature, moisture, conductivity and pH."""

    __tablename__ = "cw_soil_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dev_eui: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    moisture: Mapped[float | None] = mapped_column(Float, nullable=True)
    ec: Mapped[float | None] = mapped_column(Float, nullable=True)
    ph: Mapped[float | None] = mapped_column(Float, nullable=True)
    battery_level: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (Index("ix_soil_data_dev_time", "dev_eui", "created_at"),)
