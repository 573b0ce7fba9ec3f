"""Device API routes."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cropwatch.config import (
    DEFAULT_PAGE_LIMIT,
    HISTORY_DEFAULT_HOURS,
    HISTORY_DEFAULT_LIMIT,
    MAX_PAGE_LIMIT,
)
from cropwatch.database import AuthTokens, get_db
from cropwatch.live import ChangeEvent, LiveHub, get_live_hub
from cropwatch.schemas import (
    AppState,
    DeviceCreate,
    DeviceHistory,
    DevicePage,
    DeviceRecord,
    Metric,
    MetricHistory,
    UplinkRequest,
)
from cropwatch.services import (
    fetch_device_history,
    fetch_device_record,
    fetch_metric_history,
    fetch_page,
    load_initial_app_state,
    record_uplink,
    register_device,
)
from cropwatch.services.device_service import get_device_type_row, get_location_row
from cropwatch.services.normalizer import normalize_device

logger = logging.getLogger(__name__)

# Maximum look-back for the history endpoint
MAX_HISTORY_HOURS = 24 * 30

router = APIRouter(prefix="/api", tags=["devices"])


def get_auth_tokens(request: Request) -> AuthTokens | None:
    """Session tokens from the auth cookies, if both are present."""
    access_token = request.cookies.get("sb-access-token")
    refresh_token = request.cookies.get("sb-refresh-token")
    if access_token and refresh_token:
        return AuthTokens(access_token=access_token, refresh_token=refresh_token)
    return None


async def _normalize_row(session: AsyncSession, row: dict) -> DeviceRecord:
    device_type = None
    if row.get("type") is not None:
        device_type = await get_device_type_row(session, row["type"])
    location = None
    if row.get("location_id") is not None:
        location = await get_location_row(session, row["location_id"])
    return normalize_device(row, device_type, location)


@router.get("/app-state", response_model=AppState)
async def app_state(
    session: AsyncSession = Depends(get_db),
    tokens: AuthTokens | None = Depends(get_auth_tokens),
) -> AppState:
    """First page of devices plus locations, facilities and login state."""
    if tokens is not None:
        session.info["auth_tokens"] = tokens
    return await load_initial_app_state(session, tokens)


@router.get("/devices", response_model=DevicePage)
async def list_devices(
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Page size"),
    cursor: str | None = Query(None, description="nextCursor from the previous page"),
    location_id: int | None = Query(None, description="Filter by location"),
    session: AsyncSession = Depends(get_db),
) -> DevicePage:
    """Get one page of normalized devices, ordered by DevEUI."""
    return await fetch_page(session, limit=limit, cursor=cursor, location_id=location_id)


@router.post("/devices", response_model=DeviceRecord, status_code=201)
async def create_device(
    payload: DeviceCreate,
    session: AsyncSession = Depends(get_db),
    hub: LiveHub = Depends(get_live_hub),
) -> DeviceRecord:
    """Register a device and announce it to live subscribers."""
    try:
        row = await register_device(session, payload)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    hub.feed.publish(ChangeEvent(type="INSERT", record=row))
    return await _normalize_row(session, row)


@router.post("/devices/{dev_eui}/uplink", response_model=DeviceRecord)
async def post_uplink(
    dev_eui: str,
    payload: UplinkRequest,
    session: AsyncSession = Depends(get_db),
    hub: LiveHub = Depends(get_live_hub),
) -> DeviceRecord:
    """Record a decoded uplink and announce the updated device."""
    row = await record_uplink(session, dev_eui, payload)
    if row is None:
        raise HTTPException(status_code=404, detail="Device not found")

    hub.feed.publish(ChangeEvent(type="UPDATE", record=row))
    return await _normalize_row(session, row)


@router.get("/devices/{dev_eui}", response_model=DeviceRecord)
async def get_device(
    dev_eui: str,
    include_history: bool = Query(False, description="Fill data with history samples"),
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    hours_back: int = Query(HISTORY_DEFAULT_HOURS, ge=1, le=MAX_HISTORY_HOURS),
    limit: int = Query(HISTORY_DEFAULT_LIMIT, ge=1, description="Max rows; capped at 5000"),
    session: AsyncSession = Depends(get_db),
) -> DeviceRecord:
    """Get one normalized device, optionally with its recent history."""
    try:
        result = await fetch_device_record(
            session,
            dev_eui,
            include_history=include_history,
            start=start,
            end=end,
            hours_back=hours_back,
            limit=limit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if result is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return result


@router.get("/devices/{dev_eui}/history", response_model=DeviceHistory)
async def get_history(
    dev_eui: str,
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    hours_back: int = Query(HISTORY_DEFAULT_HOURS, ge=1, le=MAX_HISTORY_HOURS),
    limit: int = Query(HISTORY_DEFAULT_LIMIT, ge=1, description="Max rows; capped at 5000"),
    session: AsyncSession = Depends(get_db),
) -> DeviceHistory:
    """Get normalized history samples for a device."""
    try:
        result = await fetch_device_history(
            session, dev_eui, start=start, end=end, hours_back=hours_back, limit=limit
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if result is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return result


@router.get("/devices/{dev_eui}/metrics/{metric}", response_model=MetricHistory)
async def get_metric_history(
    dev_eui: str,
    metric: Metric,
    start: datetime | None = Query(None, description="Start of time range (ISO format)"),
    end: datetime | None = Query(None, description="End of time range (ISO format)"),
    limit: int = Query(HISTORY_DEFAULT_LIMIT, ge=1, description="Max rows; capped at 5000"),
    session: AsyncSession = Depends(get_db),
) -> MetricHistory:
    """Get a single-metric series (temperature, humidity or co2) for a device."""
    try:
        result = await fetch_metric_history(session, dev_eui, metric, start=start, end=end, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if result is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return result
