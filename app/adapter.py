"""Route station and battery requests to the one supplier that owns them."""

from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from app.domain import BatteryMapping, BatteryRecord, StationStatus, Supplier
from app.errors import UpstreamError
from app.metadata import StationMetadataStore
from app.suppliers.base import SupplierClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="adapter")


def _failed(result: Any) -> bool:
    """True for an Exception returned by gather; cancellation is re-raised."""
    if isinstance(result, Exception):
        return True
    if isinstance(result, BaseException):
        raise result
    return False


class SupplierAdapter:
    """Normalizes two supplier APIs behind one station/battery interface.

    Ownership of a station id is decided by the metadata registry first, then
    by the Supplier B id pattern; everything else belongs to Supplier A.
    Results are only ever taken from the owning supplier.
    """

    def __init__(
        self,
        suppliers: Mapping[Supplier, SupplierClient],
        metadata: StationMetadataStore,
        supplier_b_pattern: str,
    ) -> None:
        missing = {Supplier.SUPPLIER_A, Supplier.SUPPLIER_B} - set(suppliers)
        if missing:
            raise ValueError(f"Missing supplier clients: {sorted(s.value for s in missing)}")
        self.suppliers = dict(suppliers)
        self.metadata = metadata
        self._b_pattern = re.compile(supplier_b_pattern)

    def owner_of(self, station_id: str) -> Supplier:
        """Return the single supplier responsible for a station id."""
        registered = self.metadata.supplier_for(station_id)
        if registered is not None:
            return registered
        if self._b_pattern.match(station_id):
            return Supplier.SUPPLIER_B
        return Supplier.SUPPLIER_A

    def group_by_owner(self, station_ids: Sequence[str]) -> Dict[Supplier, List[str]]:
        """Split ids into per-supplier batches, preserving order."""
        groups: Dict[Supplier, List[str]] = {}
        for sid in dict.fromkeys(station_ids):
            groups.setdefault(self.owner_of(sid), []).append(sid)
        return groups

    async def list_station_ids(self) -> List[str]:
        """Union of supplier-enumerated ids and the metadata registry.

        A supplier whose listing fails is logged and skipped.
        """
        ids: List[str] = list(self.metadata.ids())
        order = list(self.suppliers)
        results = await asyncio.gather(
            *(self.suppliers[s].list_station_ids() for s in order), return_exceptions=True
        )
        for supplier, result in zip(order, results):
            if _failed(result):
                logger.warning(f"Listing stations from {supplier.value} failed: {result}")
                continue
            ids.extend(result)
        return list(dict.fromkeys(ids))

    async def fetch_station_statuses(self, station_ids: Sequence[str]) -> List[StationStatus]:
        """Fetch live status from each owning supplier.

        One supplier failing does not hide the other's stations. If every
        supplier asked fails, UpstreamError is raised.
        """
        groups = self.group_by_owner(station_ids)
        if not groups:
            return []

        order = list(groups)
        results = await asyncio.gather(
            *(self.suppliers[s].fetch_stations(groups[s]) for s in order), return_exceptions=True
        )

        statuses: List[StationStatus] = []
        failures: List[str] = []
        for supplier, result in zip(order, results):
            if _failed(result):
                logger.warning(f"Fetching stations from {supplier.value} failed: {result}")
                failures.append(supplier.value)
                continue
            wanted = set(groups[supplier])
            for status in result:
                if status.id in wanted and status.supplier == supplier:
                    statuses.append(status)
                else:
                    logger.warning(f"Dropping station {status.id} reported by {status.supplier.value}; owner is {supplier.value}")

        if failures and len(failures) == len(order):
            raise UpstreamError(f"All suppliers failed: {', '.join(failures)}")
        return statuses

    async def get_battery(self, mapping: BatteryMapping) -> Optional[BatteryRecord]:
        """Ask only the mapped supplier; None means that supplier does not know the battery."""
        record = await self.suppliers[mapping.supplier].fetch_battery(mapping.real_id)
        if record is not None and record.supplier != mapping.supplier:
            logger.error(f"Battery {mapping.custom_id} answered by {record.supplier.value}, expected {mapping.supplier.value}")
            return None
        return record

    async def record_scan(
        self, mapping: BatteryMapping, *, manufacture_id: str | None, sticker_type: str
    ) -> Dict[str, Any]:
        """Forward a scan record to the battery's supplier."""
        return await self.suppliers[mapping.supplier].record_scan(
            mapping.real_id, manufacture_id=manufacture_id, sticker_type=sticker_type
        )

    async def fetch_pending_orders(self) -> Dict[str, List[Dict[str, Any]]]:
        """Pending orders per supplier; raises UpstreamError if any supplier fails."""
        order = list(self.suppliers)
        results = await asyncio.gather(
            *(self.suppliers[s].fetch_pending_orders() for s in order), return_exceptions=True
        )
        orders: Dict[str, List[Dict[str, Any]]] = {}
        errors: List[str] = []
        for supplier, result in zip(order, results):
            if _failed(result):
                errors.append(f"{supplier.value}: {result}")
                continue
            orders[supplier.value] = result
        if errors:
            raise UpstreamError(f"Fetching pending orders failed ({'; '.join(errors)})")
        return orders

    async def health_check(self) -> Dict[str, bool]:
        """Health per supplier."""
        order = list(self.suppliers)
        results = await asyncio.gather(*(self.suppliers[s].health_check() for s in order))
        return {s.value: bool(ok) for s, ok in zip(order, results)}

    async def keep_alive(self) -> None:
        """Refresh auth sessions for suppliers that need it."""
        for supplier, client in self.suppliers.items():
            if await client.keep_alive():
                logger.debug(f"Keep-alive refreshed {supplier.value}")

    async def aclose(self) -> None:
        """Close every supplier client."""
        for client in self.suppliers.values():
            await client.aclose()
