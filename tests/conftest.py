"""Shared fixtures: a throwaway SQLite database seeded with a small device fleet."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cropwatch.database import Base, get_db, get_session_factory
from cropwatch.live import LiveHub, get_live_hub
from cropwatch.main import app
from cropwatch.models import AirData, Device, DeviceGateway, DeviceType, Location, SoilData

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

TH_SENSOR = "0025CA0A00000001"
FAHRENHEIT_SENSOR = "0025CA0A00000002"
SOIL_SENSOR = "0025CA0A00000003"
ORPHAN_SENSOR = "0025CA0A00000004"


def naive(dt: datetime) -> datetime:
    return dt.astimezone(UTC).replace(tzinfo=None)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """Three device types, two locations, four devices, gateway links and some history."""
    async with session_factory() as session:
        session.add_all(
            [
                DeviceType(
                    id=1,
                    name="CW-AIR-TH",
                    primary_data="temperature_c",
                    secondary_data="humidity",
                    default_upload_interval=10,
                    data_table_v2="cw_air_data",
                ),
                DeviceType(
                    id=2,
                    name="CW-AIR-CO2",
                    primary_data="temperature_c",
                    primary_data_v2="temperature_f",
                    secondary_data_v2="co2_ppm",
                    data_table="cw_air_data",
                ),
                DeviceType(
                    id=3,
                    name="CW-SOIL",
                    primary_data_v2="temperature_c",
                    secondary_data_v2="moisture",
                    default_upload_interval=60,
                    data_table_v2="cw_soil_data",
                ),
                Location(location_id=1, name="Greenhouse A", owner_id="user-abc123"),
                Location(location_id=2, name=None, owner_id=None),
            ]
        )
        session.add_all(
            [
                Device(
                    dev_eui=TH_SENSOR,
                    name="TH-01",
                    type=1,
                    location_id=1,
                    primary_data=21.5,
                    secondary_data=55.0,
                    last_data_updated_at=naive(NOW - timedelta(minutes=5)),
                ),
                Device(
                    dev_eui=FAHRENHEIT_SENSOR,
                    name="CO2-01",
                    type=2,
                    location_id=1,
                    primary_data=212.0,
                    secondary_data=612.0,
                    last_data_updated_at=naive(NOW - timedelta(minutes=40)),
                ),
                Device(
                    dev_eui=SOIL_SENSOR,
                    name="Soil-01",
                    type=3,
                    location_id=2,
                    primary_data=18.0,
                    secondary_data=33.0,
                    last_data_updated_at=naive(NOW - timedelta(minutes=50)),
                ),
                Device(
                    dev_eui=ORPHAN_SENSOR,
                    name="Orphan",
                    type=None,
                    location_id=99,
                    primary_data=5.0,
                    secondary_data=80.0,
                    installed_at=naive(NOW - timedelta(hours=1)),
                ),
            ]
        )
        for hours, temperature, humidity, co2 in [
            (3, 20.0, 50.0, 410.0),
            (2, 21.0, 52.0, None),
            (1, 22.0, 54.0, 430.0),
        ]:
            session.add(
                AirData(
                    dev_eui=TH_SENSOR,
                    created_at=naive(NOW - timedelta(hours=hours)),
                    temperature_c=temperature,
                    humidity=humidity,
                    co2=co2,
                    battery_level=90.0,
                )
            )
        session.add(
            AirData(
                dev_eui=FAHRENHEIT_SENSOR,
                created_at=naive(NOW - timedelta(minutes=40)),
                temperature_c=100.0,
                co2=612.0,
            )
        )
        session.add(
            SoilData(
                dev_eui=SOIL_SENSOR,
                created_at=naive(NOW - timedelta(minutes=50)),
                temperature_c=18.0,
                moisture=33.0,
                battery_level=77.0,
            )
        )
        session.add_all(
            [
                DeviceGateway(
                    dev_eui=TH_SENSOR,
                    gateway_id="gw-north",
                    rssi=-101.0,
                    snr=-3.5,
                    last_update=naive(NOW - timedelta(minutes=5)),
                ),
                DeviceGateway(
                    dev_eui=TH_SENSOR,
                    gateway_id="gw-south",
                    rssi=-87.0,
                    snr=7.25,
                    last_update=naive(NOW - timedelta(minutes=6)),
                ),
                DeviceGateway(dev_eui=FAHRENHEIT_SENSOR, gateway_id="gw-north", rssi=None),
            ]
        )
        await session.commit()


@pytest.fixture
async def hub(session_factory, seeded):
    hub = LiveHub(session_factory)
    await hub.start()
    yield hub
    hub.stop()


@pytest.fixture
async def client(session_factory, hub):
    """Test client wired to the throwaway database and live hub."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_live_hub] = lambda: hub

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
