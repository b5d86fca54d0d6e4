"""Join supplier live status with static station metadata."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Tuple

from app.domain import Station, StationMetadata, StationStatus
from app.hours import is_open


def default_name(station_id: str) -> str:
    """Display name used when neither metadata nor the supplier names a station."""
    return f"Station {station_id}"


def _coordinates(status: StationStatus, meta: StationMetadata) -> Tuple[float, float]:
    if "coordinates" in meta.model_fields_set or status.coordinates is None:
        return meta.coordinates
    return status.coordinates


def merge_station(
    status: StationStatus,
    meta: Optional[StationMetadata],
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> Station:
    """Build the map-facing Station from live status plus optional metadata.

    Name and coordinates come from metadata when it sets them, then from the
    supplier, then from the defaults.
    """
    if meta is None:
        return Station(
            id=status.id,
            name=status.name or default_name(status.id),
            address="",
            coordinates=status.coordinates or (0.0, 0.0),
            hours=None,
            is_open=True,
            available=status.available,
            occupied=status.occupied,
            error=status.error,
            supplier=status.supplier,
        )

    return Station(
        id=status.id,
        name=meta.name or status.name or default_name(status.id),
        address=meta.address,
        coordinates=_coordinates(status, meta),
        hours=meta.hours,
        is_open=is_open(meta.hours, now=now, tz=tz),
        available=status.available,
        occupied=status.occupied,
        error=status.error,
        supplier=status.supplier,
    )


def merge_stations(
    statuses: Iterable[StationStatus],
    metadata: Mapping[str, StationMetadata],
    *,
    now: datetime | None = None,
    tz: str = "UTC",
) -> List[Station]:
    """Merge every status, sorted by station id."""
    merged = [merge_station(s, metadata.get(s.id), now=now, tz=tz) for s in statuses]
    return sorted(merged, key=lambda s: s.id)
