"""Interfaces and shared HTTP plumbing for supplier API clients."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from app.domain import BatteryRecord, StationStatus, Supplier
from app.errors import UpstreamError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="suppliers/base")


class SupplierClient(Protocol):
    """Interface for a vendor backend that owns stations and batteries."""

    supplier: Supplier

    async def list_station_ids(self) -> List[str]:
        """Return the station ids the supplier can enumerate itself."""
        ...

    async def fetch_stations(self, station_ids: Sequence[str]) -> List[StationStatus]:
        """Return live status for the given ids; unknown ids are omitted."""
        ...

    async def fetch_battery(self, real_id: str) -> Optional[BatteryRecord]:
        """Return the battery record, or None if the supplier does not know it."""
        ...

    async def record_scan(self, real_id: str, *, manufacture_id: str | None, sticker_type: str) -> Dict[str, Any]:
        """Create a scan record upstream and return the supplier's payload."""
        ...

    async def fetch_pending_orders(self) -> List[Dict[str, Any]]:
        """Return pending rental orders."""
        ...

    async def health_check(self) -> bool:
        """Return True when the supplier answers its health endpoint."""
        ...

    async def keep_alive(self) -> bool:
        """Keep any auth session alive; returns True if something was refreshed."""
        ...

    async def aclose(self) -> None:
        """Release the underlying HTTP client."""
        ...


def format_duration(total_seconds: int | float | None) -> str:
    """Format seconds as HH:MM:SS (hours may exceed 24)."""
    seconds = max(int(total_seconds or 0), 0)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def parse_duration(value: str | None) -> int:
    """Parse HH:MM:SS into seconds; anything malformed counts as zero."""
    if not value:
        return 0
    parts = str(value).split(":")
    if len(parts) != 3:
        return 0
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return 0
    return hours * 3600 + minutes * 60 + seconds


def to_int(value: Any, default: int = 0) -> int:
    """Coerce supplier numerics (often strings) to int."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


class HttpSupplierClient:
    """Owns an httpx.AsyncClient and turns transport failures into UpstreamError."""

    supplier: Supplier
    health_path = "/health"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request; transport errors become UpstreamError."""
        try:
            return await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"{self.supplier.value} {method} {path} failed: {exc!r}")
            raise UpstreamError(f"{self.supplier.value} request failed: {exc}", supplier=self.supplier.value) from exc

    def _json(self, resp: httpx.Response) -> Any:
        """Raise for non-2xx and decode the JSON body."""
        if resp.is_error:
            raise UpstreamError(
                f"{self.supplier.value} returned HTTP {resp.status_code} for {resp.request.url.path}",
                supplier=self.supplier.value,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{self.supplier.value} returned non-JSON response: {resp.text[:200]}",
                supplier=self.supplier.value,
            ) from exc

    async def health_check(self) -> bool:
        """GET the health endpoint; any failure counts as unhealthy."""
        try:
            resp = await self._send("GET", self.health_path)
        except UpstreamError:
            return False
        return resp.is_success

    async def keep_alive(self) -> bool:
        return False

    async def aclose(self) -> None:
        await self.http_client.aclose()


def to_float(value: Any) -> Optional[float]:
    """Coerce a supplier numeric to float; None when missing or malformed."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
