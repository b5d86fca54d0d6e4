"""HTTP API for the swap-station map."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status

from app.domain import (
    AnalyticsSummary,
    Battery,
    ScanEvent,
    ScanResult,
    Station,
    StationMetadata,
    TokenStatus,
    TokenUpdate,
)
from app.service import SwapService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="app/api")


def get_service(request: Request) -> SwapService:
    """Return the service owned by the running application."""
    return request.app.state.service


router = APIRouter(prefix="/api")


@router.get("/stations", response_model=List[Station])
async def list_stations(service: SwapService = Depends(get_service)):
    """All stations with live availability."""
    return await service.get_stations()


@router.get("/stations/{station_id}", response_model=Station)
async def get_station(station_id: str, service: SwapService = Depends(get_service)):
    """One station by supplier id."""
    return await service.get_station(station_id)


@router.get("/battery/{battery_id}", response_model=Battery)
async def get_battery(battery_id: str, service: SwapService = Depends(get_service)):
    """Rental info for an external battery id."""
    return await service.get_battery(battery_id)


@router.post("/battery/{battery_id}", response_model=ScanResult)
async def create_scan(
    battery_id: str,
    manufacture_id: Optional[str] = Header(default=None, convert_underscores=False),
    sticker_type: Optional[str] = Header(default=None, convert_underscores=False),
    user_agent: Optional[str] = Header(default=None),
    service: SwapService = Depends(get_service),
):
    """Record a QR scan for an external battery id."""
    logger.debug(f"Scan for {battery_id} (sticker_type={sticker_type!r})")
    return await service.record_scan(
        battery_id,
        manufacture_id=manufacture_id,
        sticker_type=sticker_type or "type one",
        user_agent=user_agent,
    )


@router.get("/admin/stations", response_model=List[StationMetadata])
def list_station_metadata(service: SwapService = Depends(get_service)):
    """Static metadata for every configured station."""
    return service.list_metadata()


@router.post("/admin/stations", response_model=StationMetadata)
def upsert_station_metadata(meta: StationMetadata, service: SwapService = Depends(get_service)):
    """Add or replace metadata for one station."""
    return service.upsert_metadata(meta)


@router.delete("/admin/stations/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_station_metadata(station_id: str, service: SwapService = Depends(get_service)):
    """Remove metadata for one station."""
    service.remove_metadata(station_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/energo-token", response_model=TokenStatus)
def get_token(service: SwapService = Depends(get_service)):
    """Masked Supplier B token state."""
    return service.token_status()


@router.post("/energo-token", response_model=TokenStatus)
def set_token(body: TokenUpdate, service: SwapService = Depends(get_service)):
    """Set the Supplier B token by hand."""
    return service.set_token(body.token)


@router.get("/analytics", response_model=List[ScanEvent])
def list_analytics(service: SwapService = Depends(get_service)):
    """Every recorded scan event."""
    return service.analytics.events()


@router.get("/analytics/summary", response_model=AnalyticsSummary)
def analytics_summary(service: SwapService = Depends(get_service)):
    """Aggregated scan counts."""
    return service.analytics.summary()
