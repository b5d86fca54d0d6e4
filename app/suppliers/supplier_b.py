"""Client for Supplier B: a token-authenticated cabinet API.

Every response is ``{"code": int, "msg": str, "data": ...}`` where ``code == 0``
means success. Cabinets report per-slot status, which we count into the
available/occupied/error totals the map shows.

Auth: ``POST /auth/login`` returns a bearer token. Tokens expire after a short
idle period, so the poller calls :meth:`SupplierBClient.keep_alive` on a fixed
interval. A token may also be pasted in manually through the admin API when no
credentials are configured.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.domain import BatteryRecord, StationStatus, Supplier, TokenStatus
from app.errors import AuthenticationError, UpstreamError
from app.suppliers.base import HttpSupplierClient, format_duration, to_int
from utils.logging_utils import get_tagged_logger, mask_secret

logger = get_tagged_logger(__name__, tag="suppliers/supplier_b")

SLOT_AVAILABLE = "available"
SLOT_OCCUPIED = "occupied"
SLOT_ERROR = "error"
# Non-zero response codes that mean "no such battery" rather than a failure.
NOT_FOUND_CODES = frozenset({404, 1004})


def count_slots(slots: Sequence[Dict[str, Any]]) -> tuple[int, int, int]:
    """Count (available, occupied, error) slots; unknown statuses are ignored."""
    available = occupied = error = 0
    for slot in slots or []:
        status = str(slot.get("status", "")).lower()
        if status == SLOT_AVAILABLE:
            available += 1
        elif status == SLOT_OCCUPIED:
            occupied += 1
        elif status == SLOT_ERROR:
            error += 1
    return available, occupied, error


def _is_not_found(payload: Any) -> bool:
    """True for a well-formed reply saying the battery does not exist."""
    if not isinstance(payload, dict) or payload.get("code") == 0:
        return False
    if payload.get("code") in NOT_FOUND_CODES:
        return True
    return "not found" in str(payload.get("msg") or "").lower()


class SupplierBClient(HttpSupplierClient):
    """Cabinets, batteries and pending orders from Supplier B."""

    supplier = Supplier.SUPPLIER_B
    health_path = "/ping"

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.username = username
        self.password = password
        self._token: str | None = None
        self._token_source: str | None = None
        self._token_updated_at: datetime | None = None
        if token:
            self.set_token(token, source="config")

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str, *, source: str = "manual") -> None:
        """Replace the bearer token."""
        self._token = token
        self._token_source = source
        self._token_updated_at = datetime.now(timezone.utc)
        logger.info(f"Supplier B token set from {source}: {mask_secret(token)}")

    def token_status(self) -> TokenStatus:
        """Masked token state for the admin API."""
        return TokenStatus(
            has_token=self._token is not None,
            token=mask_secret(self._token),
            source=self._token_source,
            updated_at=self._token_updated_at,
        )

    async def login(self) -> str:
        """Exchange credentials for a fresh token."""
        if not self.has_credentials:
            raise AuthenticationError("Supplier B credentials are not configured", supplier=self.supplier.value)
        resp = await self._send("POST", "/auth/login", json={"username": self.username, "password": self.password})
        if resp.status_code in (401, 403):
            raise AuthenticationError("Supplier B rejected credentials", supplier=self.supplier.value)
        payload = self._json(resp)
        if not isinstance(payload, dict):
            raise AuthenticationError("Supplier B login returned an unexpected payload", supplier=self.supplier.value)
        token = (payload.get("data") or {}).get("token")
        if payload.get("code") != 0 or not token:
            raise AuthenticationError(f"Supplier B login failed: {payload.get('msg')}", supplier=self.supplier.value)
        self.set_token(token, source="login")
        return token

    async def _authorized(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send with the bearer token, logging in first or once more on 401."""
        if self._token is None:
            await self.login()
        headers = {**kwargs.pop("headers", {}), "Authorization": f"Bearer {self._token}"}
        resp = await self._send(method, path, headers=headers, **kwargs)
        if resp.status_code != 401:
            return resp
        if not self.has_credentials:
            raise AuthenticationError("Supplier B token rejected", supplier=self.supplier.value)
        logger.info("Supplier B token rejected; logging in again")
        await self.login()
        headers["Authorization"] = f"Bearer {self._token}"
        return await self._send(method, path, headers=headers, **kwargs)

    async def keep_alive(self) -> bool:
        """Re-authenticate, or ping with the manual token when there are no credentials."""
        if self.has_credentials:
            await self.login()
            return True
        if self._token is None:
            logger.debug("Supplier B keep-alive skipped: no credentials or token")
            return False
        resp = await self._authorized("GET", "/ping")
        self._json(resp)
        return True

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def _data(self, payload: Any) -> Any:
        if not isinstance(payload, dict) or payload.get("code") != 0:
            msg = payload.get("msg") if isinstance(payload, dict) else None
            raise UpstreamError(f"Supplier B error: {msg}", supplier=self.supplier.value)
        return payload.get("data")

    async def list_station_ids(self) -> List[str]:
        """Supplier B cannot enumerate cabinets; ids come from the metadata registry."""
        return []

    async def _fetch_cabinet(self, station_id: str) -> Optional[StationStatus]:
        resp = await self._authorized("GET", f"/cabinet/{station_id}")
        if resp.status_code == 404:
            logger.warning(f"Supplier B does not know cabinet {station_id}")
            return None
        data = self._data(self._json(resp)) or {}
        available, occupied, error = count_slots(data.get("slots", []))
        return StationStatus(
            id=station_id,
            supplier=self.supplier,
            available=available,
            occupied=occupied,
            error=error,
        )

    async def fetch_stations(self, station_ids: Sequence[str]) -> List[StationStatus]:
        """Fetch cabinets concurrently; unknown or failing cabinets are omitted.

        If every cabinet fails, the first failure is raised.
        """
        if not station_ids:
            return []
        results = await asyncio.gather(
            *(self._fetch_cabinet(sid) for sid in station_ids), return_exceptions=True
        )
        statuses: List[StationStatus] = []
        failures: List[Exception] = []
        for station_id, result in zip(station_ids, results):
            if isinstance(result, Exception):
                logger.warning(f"Supplier B cabinet {station_id} failed: {result}")
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                statuses.append(result)
        if failures and len(failures) == len(station_ids):
            raise failures[0]
        return statuses

    async def fetch_battery(self, real_id: str) -> Optional[BatteryRecord]:
        """Return battery rental info; None only when Supplier B says the battery is unknown."""
        resp = await self._authorized("GET", f"/battery/{real_id}")
        if resp.status_code == 404:
            return None
        payload = self._json(resp)
        if _is_not_found(payload):
            return None
        data = self._data(payload)
        if not data:
            return None
        return BatteryRecord(
            real_id=real_id,
            supplier=self.supplier,
            duration=format_duration(to_int(data.get("rentSeconds"))),
            amount_paid=to_int(data.get("paidCents")) / 100.0,
            manufacture_id=data.get("manufactureNo"),
            raw=data,
        )

    async def record_scan(self, real_id: str, *, manufacture_id: str | None, sticker_type: str) -> Dict[str, Any]:
        """Create a scan record upstream."""
        resp = await self._authorized(
            "POST",
            f"/battery/{real_id}/scan",
            json={"manufactureNo": manufacture_id, "stickerType": sticker_type},
        )
        return self._data(self._json(resp)) or {}

    async def fetch_pending_orders(self) -> List[Dict[str, Any]]:
        """Return orders still waiting on a battery return."""
        resp = await self._authorized("GET", "/orders", params={"status": "pending"})
        return self._data(self._json(resp)) or []
