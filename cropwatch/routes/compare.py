"""Device comparison route."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cropwatch.database import get_db, get_session_factory
from cropwatch.schemas import CompareResponse
from cropwatch.services import fetch_compare_devices

router = APIRouter(prefix="/api", tags=["compare"])


@router.get("/compare", response_model=CompareResponse)
async def compare_devices(
    dev_eui: list[str] | None = Query(None, description="Devices to compare; all when omitted"),
    session: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CompareResponse:
    """Latest reading for each device, side by side."""
    return await fetch_compare_devices(session, session_factory, dev_euis=dev_eui)
