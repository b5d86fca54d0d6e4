"""The station service: owns the cache, adapter, pollers and analytics.

One `SwapService` is created per application and stored on `app.state`;
request handlers receive it through a FastAPI dependency. `start()` runs the
startup health check and launches the background loops, `stop()` stops them
and flushes analytics.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from app.adapter import SupplierAdapter
from app.analytics import AnalyticsTracker
from app.cache import STATIONS_KEY, TTLCache, battery_key
from app.config import Settings
from app.domain import Battery, Station, StationMetadata, Supplier, ScanResult, TokenStatus
from app.errors import NotFoundError, UpstreamError, ValidationError
from app.merge import merge_stations
from app.metadata import BatteryMap, StationMetadataStore
from app.poller import PollerGroup
from app.suppliers import build_suppliers
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="service")

STATION_POLL = "station_poll"
ORDER_POLL = "order_poll"
TOKEN_KEEPALIVE = "token_keepalive"


class SwapService:
    """Everything the HTTP handlers need, with an explicit lifecycle."""

    def __init__(
        self,
        settings: Settings,
        adapter: SupplierAdapter,
        battery_map: BatteryMap,
        analytics: AnalyticsTracker,
        cache: TTLCache | None = None,
    ) -> None:
        self.settings = settings
        self.adapter = adapter
        self.metadata: StationMetadataStore = adapter.metadata
        self.battery_map = battery_map
        self.analytics = analytics
        self.cache = cache or TTLCache(ttl_seconds=settings.cache_ttl_seconds)
        self.poller: PollerGroup | None = None
        self.healthy: Optional[bool] = None
        self.supplier_health: Dict[str, bool] = {}
        self.pending_orders: Dict[str, List[Dict[str, Any]]] = {}
        self._startup_task: asyncio.Task | None = None
        self._stopping: asyncio.Event | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SwapService":
        """Wire up suppliers and file-backed stores from configuration."""
        metadata = StationMetadataStore.from_file(settings.station_metadata_file)
        adapter = SupplierAdapter(build_suppliers(settings), metadata, settings.supplier_b_station_pattern)
        return cls(
            settings,
            adapter,
            BatteryMap.from_file(settings.battery_map_file),
            AnalyticsTracker.from_file(settings.analytics_file, settings.analytics_flush_threshold),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _build_poller(self) -> PollerGroup:
        group = PollerGroup()
        group.add(STATION_POLL, self.settings.station_poll_interval_seconds, self.refresh_stations)
        group.add(ORDER_POLL, self.settings.order_poll_interval_seconds, self.poll_orders)
        group.add(TOKEN_KEEPALIVE, self.settings.token_keepalive_interval_seconds, self.keep_alive)
        return group

    async def check_health(self) -> bool:
        """Check every supplier; healthy means all of them answered."""
        try:
            self.supplier_health = await self.adapter.health_check()
        except Exception as exc:
            logger.exception(f"Health check raised: {exc}")
            self.supplier_health = {}
            self.healthy = False
            return False
        self.healthy = bool(self.supplier_health) and all(self.supplier_health.values())
        logger.info(f"Health check: {'healthy' if self.healthy else 'unhealthy'} {self.supplier_health}")
        return self.healthy

    async def start(self) -> None:
        """Health-check once, then start the loops now or after one delayed retry."""
        self._stopping = asyncio.Event()
        self.poller = self._build_poller()
        if not self.settings.polling_enabled:
            logger.info("Polling disabled; background loops not started")
            return

        if await self.check_health():
            self.poller.start()
            return

        delay = self.settings.health_retry_delay_seconds
        logger.warning(f"Suppliers unhealthy at startup; retrying health check in {delay:g}s")
        self._startup_task = asyncio.create_task(self._delayed_start(delay), name="poller:delayed_start")

    async def _delayed_start(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            return
        except asyncio.TimeoutError:
            pass
        if not await self.check_health():
            logger.error("Suppliers still unhealthy after retry; starting background loops anyway")
        self.poller.start()

    async def stop(self) -> None:
        """Stop scheduling ticks, let in-flight ticks finish, flush analytics."""
        if self._stopping is not None:
            self._stopping.set()
        if self._startup_task is not None:
            await self._startup_task
            self._startup_task = None
        if self.poller is not None:
            await self.poller.stop()
        self.analytics.flush()
        await self.adapter.aclose()
        logger.info("Service stopped")

    # ------------------------------------------------------------------
    # Poll callbacks
    # ------------------------------------------------------------------

    async def refresh_stations(self) -> List[Station]:
        """Fetch every station, merge with metadata and refresh the cache entry."""
        ids = await self.adapter.list_station_ids()
        statuses = await self.adapter.fetch_station_statuses(ids)
        index = {m.id: m for m in self.metadata.all()}
        stations = merge_stations(statuses, index, tz=self.settings.station_timezone)
        self.cache.set(STATIONS_KEY, stations)
        logger.debug(f"Refreshed {len(stations)} stations")
        return stations

    async def poll_orders(self) -> None:
        """Pull pending orders for monitoring."""
        self.pending_orders = await self.adapter.fetch_pending_orders()
        total = sum(len(v) for v in self.pending_orders.values())
        logger.info(f"{total} pending battery orders", extra={"by_supplier": {k: len(v) for k, v in self.pending_orders.items()}})

    async def keep_alive(self) -> None:
        """Keep the Supplier B token from expiring."""
        await self.adapter.keep_alive()

    # ------------------------------------------------------------------
    # Request-facing operations
    # ------------------------------------------------------------------

    async def get_stations(self) -> List[Station]:
        """Cached station list, refreshed on a miss."""
        cached = self.cache.get(STATIONS_KEY)
        if cached is not None:
            return cached
        return await self.refresh_stations()

    async def get_station(self, station_id: str) -> Station:
        for station in await self.get_stations():
            if station.id == station_id:
                return station
        raise NotFoundError(f"Station '{station_id}' not found")

    async def get_battery(self, battery_id: str) -> Battery:
        """Resolve the external id (no network on failure), then cache or supplier.

        The cache holds the supplier record; the external id is applied per request.
        """
        mapping = self.battery_map.resolve(battery_id)
        key = battery_key(mapping.supplier, mapping.real_id)
        record = self.cache.get(key)
        if record is None:
            record = await self.adapter.get_battery(mapping)
            if record is None:
                raise NotFoundError(f"Battery '{battery_id}' not found")
            self.cache.set(key, record)

        return Battery(
            battery_id=battery_id,
            duration=record.duration,
            amount_paid=record.amount_paid,
            manufacture_id=record.manufacture_id,
            supplier=record.supplier,
        )

    async def record_scan(
        self,
        battery_id: str,
        *,
        manufacture_id: str | None = None,
        sticker_type: str = "type one",
        user_agent: str | None = None,
    ) -> ScanResult:
        """Record a QR scan locally; forwarding upstream is best effort."""
        mapping = self.battery_map.resolve(battery_id)
        self.analytics.record(battery_id, sticker_type=sticker_type, user_agent=user_agent)
        if self.analytics.flush_due:
            await self.analytics.aflush()
        try:
            upstream = await self.adapter.record_scan(mapping, manufacture_id=manufacture_id, sticker_type=sticker_type)
        except UpstreamError as exc:
            logger.warning(f"Scan for {battery_id} recorded locally; upstream failed: {exc}")
            upstream = None
        return ScanResult(battery_id=battery_id, recorded=True, upstream=upstream)

    # Admin --------------------------------------------------------------

    def list_metadata(self) -> List[StationMetadata]:
        return self.metadata.all()

    def upsert_metadata(self, meta: StationMetadata) -> StationMetadata:
        """Store metadata and drop the cached station list so the edit shows up."""
        saved = self.metadata.upsert(meta)
        self.cache.delete(STATIONS_KEY)
        return saved

    def remove_metadata(self, station_id: str) -> None:
        if not self.metadata.remove(station_id):
            raise NotFoundError(f"Station '{station_id}' has no metadata")
        self.cache.delete(STATIONS_KEY)

    def _token_client(self):
        return self.adapter.suppliers[Supplier.SUPPLIER_B]

    def token_status(self) -> TokenStatus:
        return self._token_client().token_status()

    def set_token(self, token: str) -> TokenStatus:
        token = token.strip()
        if not token:
            raise ValidationError("Token must not be blank")
        self._token_client().set_token(token, source="manual")
        return self.token_status()

    def status(self) -> Dict[str, Any]:
        """Service and poller status for the health endpoint."""
        return {
            "healthy": self.healthy,
            "suppliers": self.supplier_health,
            "pollers": self.poller.status() if self.poller else {},
            "cacheEntries": len(self.cache),
            "pendingOrders": {k: len(v) for k, v in self.pending_orders.items()},
            "pendingAnalytics": self.analytics.pending,
        }
