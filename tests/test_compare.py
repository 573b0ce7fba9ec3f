"""Tests for the device comparison view."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from cropwatch.schemas import GatewayRecord
from cropwatch.services import fetch_compare_devices, fetch_device_history
from cropwatch.services.compare_service import fetch_latest_reading, strongest_signal
from tests.conftest import FAHRENHEIT_SENSOR, NOW, ORPHAN_SENSOR, SOIL_SENSOR, TH_SENSOR

AIR_TH = {
    "name": "CW-AIR-TH",
    "primary_data": "temperature_c",
    "secondary_data": "humidity",
    "data_table_v2": "cw_air_data",
}


@pytest.fixture
async def fahrenheit_table(session, seeded):
    """Point the CW-AIR-TH type at an unregistered table storing fahrenheit."""
    await session.execute(
        text(
            "CREATE TABLE cw_fahrenheit_data ("
            "id INTEGER PRIMARY KEY, dev_eui TEXT, created_at DATETIME, "
            "temperature_f FLOAT, humidity FLOAT)"
        )
    )
    await session.execute(
        text(
            "INSERT INTO cw_fahrenheit_data (dev_eui, created_at, temperature_f, humidity) "
            "VALUES (:dev_eui, '2026-03-01 11:30:00.000000', 212.0, 40.0)"
        ),
        {"dev_eui": TH_SENSOR},
    )
    await session.execute(
        text(
            "UPDATE cw_device_type SET data_table_v2 = 'cw_fahrenheit_data', "
            "primary_data_v2 = 'temperature_f' WHERE id = 1"
        )
    )
    await session.commit()


@pytest.mark.asyncio
async def test_latest_reading(session_factory, seeded):
    latest = await fetch_latest_reading(session_factory, TH_SENSOR, AIR_TH)

    assert latest.primary == 22.0
    assert latest.secondary == 54.0
    assert latest.co2 == 430.0
    assert latest.battery == 90.0


@pytest.mark.asyncio
async def test_latest_reading_without_rows(session_factory, seeded):
    assert await fetch_latest_reading(session_factory, ORPHAN_SENSOR, None) is None


@pytest.mark.asyncio
async def test_latest_reading_converts_fahrenheit_column(session_factory, fahrenheit_table):
    device_type = {**AIR_TH, "primary_data_v2": "temperature_f", "data_table_v2": "cw_fahrenheit_data"}

    latest = await fetch_latest_reading(session_factory, TH_SENSOR, device_type)

    assert latest.primary == pytest.approx(100.0)
    assert latest.secondary == 40.0
    assert latest.raw["temperature_f"] == 212.0


def test_strongest_signal():
    gateways = [
        GatewayRecord(id="a", rssi=-110.0),
        GatewayRecord(id="b", rssi=None),
        GatewayRecord(id="c", rssi=-92.5),
    ]
    assert strongest_signal(gateways) == -92.5
    assert strongest_signal([GatewayRecord(id="b")]) is None
    assert strongest_signal([]) is None


class TestFetchCompareDevices:
    """Tests for fetch_compare_devices."""

    @pytest.mark.asyncio
    async def test_all_devices(self, session, session_factory, seeded):
        result = await fetch_compare_devices(session, session_factory, now=NOW)
        devices = {d.id: d for d in result.devices}

        assert [d.id for d in result.devices] == [
            TH_SENSOR,
            FAHRENHEIT_SENSOR,
            SOIL_SENSOR,
            ORPHAN_SENSOR,
        ]
        assert result.device_types == ["CW-AIR-TH", "CW-AIR-CO2", "CW-SOIL", "Unknown"]

        th = devices[TH_SENSOR]
        assert th.type == "CW-AIR-TH"
        assert th.type_id == 1
        assert th.temperature_c == 22.0
        assert th.humidity == 54.0
        assert th.co2 == 430.0
        assert th.battery == 90.0
        # Latest history row is an hour old against a 10 minute interval
        assert th.last_seen == NOW.replace(hour=11).isoformat()
        assert th.status == "offline"

        # temperature_f label read from the table's temperature_c column
        co2 = devices[FAHRENHEIT_SENSOR]
        assert co2.temperature_c == 100.0
        assert co2.humidity == 0
        assert co2.co2 == 612.0

        soil = devices[SOIL_SENSOR]
        assert soil.temperature_c == 18.0
        assert soil.humidity == 0
        assert soil.battery == 77.0
        assert soil.status == "online"

    @pytest.mark.asyncio
    async def test_fahrenheit_history_column_is_converted(
        self, session, session_factory, fahrenheit_table
    ):
        result = await fetch_compare_devices(session, session_factory, dev_euis=[TH_SENSOR], now=NOW)
        history = await fetch_device_history(
            session, TH_SENSOR, start=NOW - timedelta(hours=1), end=NOW
        )

        [th] = result.devices
        assert th.temperature_c == pytest.approx(100.0)
        assert th.temperature_c == pytest.approx(history.points[0].primary)
        assert th.humidity == 40.0
        assert th.last_seen == (NOW - timedelta(minutes=30)).isoformat()

    @pytest.mark.asyncio
    async def test_gateways_are_grouped_per_device(self, session, session_factory, seeded):
        result = await fetch_compare_devices(session, session_factory, now=NOW)
        devices = {d.id: d for d in result.devices}

        th = devices[TH_SENSOR]
        assert th.gateway_count == 2
        assert th.strongest_signal == -87.0
        assert [g.id for g in th.gateways] == ["gw-north", "gw-south"]
        assert th.gateways[1].snr == 7.25
        assert th.gateways[0].last_update == (NOW - timedelta(minutes=5)).isoformat()

        # One gateway that never reported a signal
        co2 = devices[FAHRENHEIT_SENSOR]
        assert co2.gateway_count == 1
        assert co2.strongest_signal is None
        assert co2.gateways[0].last_update is None

        soil = devices[SOIL_SENSOR]
        assert soil.gateway_count == 0
        assert soil.strongest_signal is None
        assert soil.gateways == []

    @pytest.mark.asyncio
    async def test_failed_gateway_query_leaves_devices_without_gateways(
        self, session, session_factory, seeded
    ):
        with patch(
            "cropwatch.services.compare_service.fetch_gateways",
            new_callable=AsyncMock,
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        ):
            result = await fetch_compare_devices(session, session_factory, now=NOW)

        assert len(result.devices) == 4
        assert all(d.gateway_count == 0 for d in result.devices)
        assert result.devices[0].temperature_c == 22.0

    @pytest.mark.asyncio
    async def test_device_without_history_uses_device_row(self, session, session_factory, seeded):
        result = await fetch_compare_devices(
            session, session_factory, dev_euis=[ORPHAN_SENSOR], now=NOW
        )

        [orphan] = result.devices
        assert orphan.type == "Unknown"
        assert orphan.type_id is None
        assert orphan.temperature_c == 0
        assert orphan.co2 is None
        assert orphan.last_seen == NOW.replace(hour=11).isoformat()
        assert orphan.status == "offline"

    @pytest.mark.asyncio
    async def test_selection_is_ordered_by_dev_eui(self, session, session_factory, seeded):
        result = await fetch_compare_devices(
            session, session_factory, dev_euis=[SOIL_SENSOR, TH_SENSOR, SOIL_SENSOR], now=NOW
        )
        assert [d.id for d in result.devices] == [TH_SENSOR, SOIL_SENSOR]
        assert result.device_types == ["CW-AIR-TH", "CW-SOIL"]

    @pytest.mark.asyncio
    async def test_selection_ignores_dev_eui_case(self, session, session_factory, seeded):
        result = await fetch_compare_devices(
            session, session_factory, dev_euis=[TH_SENSOR.lower()], now=NOW
        )
        assert [d.id for d in result.devices] == [TH_SENSOR]

    @pytest.mark.asyncio
    async def test_no_matching_devices(self, session, session_factory, seeded):
        result = await fetch_compare_devices(session, session_factory, dev_euis=["FFFFFFFFFFFFFFFF"])
        assert result.devices == []
        assert result.device_types == []

    @pytest.mark.asyncio
    async def test_failed_reading_leaves_device_without_data(
        self, session, session_factory, seeded
    ):
        async def flaky(factory, dev_eui, device_type):
            if dev_eui == TH_SENSOR:
                raise RuntimeError("database is locked")
            return await fetch_latest_reading(factory, dev_eui, device_type)

        with patch("cropwatch.services.compare_service.fetch_latest_reading", side_effect=flaky):
            result = await fetch_compare_devices(session, session_factory, now=NOW)

        devices = {d.id: d for d in result.devices}
        assert len(devices) == 4
        assert devices[TH_SENSOR].co2 is None
        assert devices[TH_SENSOR].temperature_c == 0
        # Falls back to the device row's last update, five minutes ago
        assert devices[TH_SENSOR].status == "online"
        assert devices[TH_SENSOR].gateway_count == 2
        assert devices[SOIL_SENSOR].battery == 77.0


@pytest.mark.asyncio
async def test_compare_endpoint(client):
    response = await client.get(
        "/api/compare", params=[("dev_eui", TH_SENSOR), ("dev_eui", FAHRENHEIT_SENSOR)]
    )

    assert response.status_code == 200
    data = response.json()
    assert [d["id"] for d in data["devices"]] == [TH_SENSOR, FAHRENHEIT_SENSOR]
    assert data["deviceTypes"] == ["CW-AIR-TH", "CW-AIR-CO2"]
    assert data["devices"][1]["typeId"] == 2
    assert "lastSeen" in data["devices"][0]

    th = data["devices"][0]
    assert th["gatewayCount"] == 2
    assert th["strongestSignal"] == -87.0
    assert th["gateways"][0]["id"] == "gw-north"
    assert th["gateways"][0]["lastUpdate"] == (NOW - timedelta(minutes=5)).isoformat()
    assert data["devices"][1]["strongestSignal"] is None
