"""Client for Supplier A: an open JSON API without authentication.

Payloads are wrapped as ``{"success": bool, "data": ...}``. Station counts
come back as strings or numbers depending on the endpoint, so everything is
coerced through ``to_int``.

``GET /stations`` serves both the id listing and live status. A station poll
asks for ids and then for status right after, so the listing is kept as a
short-lived snapshot and both calls read the same payload.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.app_types import Clock
from app.domain import BatteryRecord, StationStatus, Supplier
from app.errors import UpstreamError
from app.suppliers.base import HttpSupplierClient, format_duration, parse_duration, to_float, to_int
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="suppliers/supplier_a")

LISTING_MAX_AGE_SECONDS = 5.0


def station_coordinates(raw: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    """(lon, lat) from a listing entry, or None when missing or out of range."""
    lon, lat = to_float(raw.get("longitude")), to_float(raw.get("latitude"))
    if lon is None or lat is None:
        return None
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        return None
    return lon, lat


class SupplierAClient(HttpSupplierClient):
    """Stations, batteries and scan records from Supplier A."""

    supplier = Supplier.SUPPLIER_A

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        listing_max_age: float = LISTING_MAX_AGE_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.listing_max_age = listing_max_age
        self._clock = clock or time.monotonic
        self._listing: List[Dict[str, Any]] | None = None
        self._listing_at = 0.0

    def _unwrap(self, payload: Any) -> Any:
        if not isinstance(payload, dict) or not payload.get("success"):
            raise UpstreamError("supplier_a returned an unsuccessful response", supplier=self.supplier.value)
        return payload.get("data")

    async def _all_stations(self, *, reuse: bool = False) -> List[Dict[str, Any]]:
        """The station listing; with `reuse`, a snapshot younger than `listing_max_age` is returned."""
        if reuse and self._listing is not None and self._clock() - self._listing_at < self.listing_max_age:
            return self._listing
        resp = await self._send("GET", "/stations")
        data = self._unwrap(self._json(resp)) or []
        self._listing, self._listing_at = data, self._clock()
        return data

    async def list_station_ids(self) -> List[str]:
        """Return every station id Supplier A lists."""
        return [str(s["id"]) for s in await self._all_stations() if s.get("id") is not None]

    async def fetch_stations(self, station_ids: Sequence[str]) -> List[StationStatus]:
        """Keep the requested ids from the listing, reusing a fresh snapshot."""
        wanted = set(station_ids)
        out: List[StationStatus] = []
        for raw in await self._all_stations(reuse=True):
            sid = str(raw.get("id"))
            if sid not in wanted:
                continue
            out.append(
                StationStatus(
                    id=sid,
                    supplier=self.supplier,
                    available=to_int(raw.get("available_batteries")),
                    occupied=to_int(raw.get("occupied_slots")),
                    error=to_int(raw.get("error_slots")),
                    name=raw.get("title") or None,
                    coordinates=station_coordinates(raw),
                )
            )
        logger.debug(f"Supplier A returned {len(out)} of {len(wanted)} requested stations")
        return out

    async def fetch_battery(self, real_id: str) -> Optional[BatteryRecord]:
        """Return battery rental info; 404 or success=false mean unknown."""
        resp = await self._send("GET", f"/battery/{real_id}")
        if resp.status_code == 404:
            return None
        payload = self._json(resp)
        if not isinstance(payload, dict) or not payload.get("success") or not payload.get("data"):
            return None
        data = payload["data"]
        return BatteryRecord(
            real_id=real_id,
            supplier=self.supplier,
            duration=format_duration(parse_duration(data.get("duration"))),
            amount_paid=float(data.get("amountPaid") or 0),
            manufacture_id=data.get("manufacture_id"),
            raw=data,
        )

    async def record_scan(self, real_id: str, *, manufacture_id: str | None, sticker_type: str) -> Dict[str, Any]:
        """Create a scan record upstream."""
        resp = await self._send(
            "POST",
            f"/battery/{real_id}",
            json={},
            headers={"manufacture_id": manufacture_id or "", "sticker_type": sticker_type},
        )
        return self._unwrap(self._json(resp)) or {}

    async def fetch_pending_orders(self) -> List[Dict[str, Any]]:
        """Supplier A exposes no order feed."""
        return []
