"""History table registry: resolves a device type's history table by name."""

import logging
import re
import weakref
from dataclasses import dataclass

from sqlalchemy import Engine, MetaData, Table
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from cropwatch.models import AirData, SoilData

logger = logging.getLogger(__name__)

# Column each semantic kind is stored under when a history table follows convention
CANONICAL_COLUMNS: dict[str, str] = {
    "temperature": "temperature_c",
    "humidity": "humidity",
    "co2": "co2",
}

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

# Tables reflected on first use, one MetaData per engine
_reflected: "weakref.WeakKeyDictionary[Engine, MetaData]" = weakref.WeakKeyDictionary()


@dataclass(frozen=True)
class HistoryTableConfig:
    """How to read one history table."""

    table: Table
    model: type | None = None
    timestamp_column: str = "created_at"
    device_column: str = "dev_eui"
    battery_column: str | None = "battery_level"

    @property
    def columns(self) -> set[str]:
        return {c.key for c in self.table.columns}


HISTORY_TABLE_REGISTRY: dict[str, HistoryTableConfig] = {
    AirData.__tablename__: HistoryTableConfig(table=AirData.__table__, model=AirData),
    SoilData.__tablename__: HistoryTableConfig(table=SoilData.__table__, model=SoilData),
}


def get_history_config(table_name: str) -> HistoryTableConfig | None:
    """Get configuration for a known history table."""
    return HISTORY_TABLE_REGISTRY.get(table_name)


def clear_reflected_tables(table_name: str | None = None) -> None:
    """Forget reflected tables so the next lookup reads the schema again.

    Drops ``table_name`` on every engine, or everything when no name is given.
    """
    for metadata in list(_reflected.values()):
        if table_name is None:
            metadata.clear()
        elif table_name in metadata.tables:
            metadata.remove(metadata.tables[table_name])


def _reflect(sync_session: Session, table_name: str) -> Table:
    connection = sync_session.connection()
    metadata = _reflected.setdefault(connection.engine, MetaData())
    if table_name in metadata.tables:
        return metadata.tables[table_name]
    return Table(table_name, metadata, autoload_with=connection)


async def resolve_history_table(session: AsyncSession, table_name: str) -> HistoryTableConfig | None:
    """Registered config for ``table_name``, else reflect it from the database.

    Returns None for names that are not plain identifiers or do not exist.
    """
    config = get_history_config(table_name)
    if config is not None:
        return config

    if not _TABLE_NAME.match(table_name):
        logger.warning(f"Refusing to reflect history table with invalid name: {table_name!r}")
        return None

    try:
        table = await session.run_sync(_reflect, table_name)
    except NoSuchTableError:
        logger.warning(f"History table not found: {table_name}")
        return None

    columns = {c.key for c in table.columns}
    if "dev_eui" not in columns or "created_at" not in columns:
        logger.warning(f"History table {table_name} lacks dev_eui/created_at columns")
        return None

    return HistoryTableConfig(
        table=table,
        battery_column="battery_level" if "battery_level" in columns else None,
    )
