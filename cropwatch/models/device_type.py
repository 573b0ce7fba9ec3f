"""Device type model."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cropwatch.database import Base


class DeviceType(Base):
    """Reference data declaring what a device's two raw reading columns mean.

    The ``*_data`` columns hold free-text kind labels such as
    ``temperature_f`` or ``co2_ppm``. The ``_v2`` variants supersede the
    legacy ones when both are set.
    """

    __tablename__ = "cw_device_type"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    primary_data: Mapped[str | None] = mapped_column(String(50), nullable=True)
    secondary_data: Mapped[str | None] = mapped_column(String(50), nullable=True)
    primary_data_v2: Mapped[str | None] = mapped_column(String(50), nullable=True)
    secondary_data_v2: Mapped[str | None] = mapped_column(String(50), nullable=True)
    primary_data_notation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    secondary_data_notation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    default_upload_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data_table: Mapped[str | None] = mapped_column(String(63), nullable=True)
    data_table_v2: Mapped[str | None] = mapped_column(String(63), nullable=True)
