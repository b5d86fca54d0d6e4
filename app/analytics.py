"""QR-scan analytics buffered in memory and flushed to a flat JSON file.

Request handlers record events and, once `flush_threshold` are pending, flush
through `aflush()` in a worker thread so the event loop never waits on disk.
Shutdown uses the blocking `flush()`.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.domain import AnalyticsSummary, ScanEvent
from app.storage import load_json, write_json_atomic
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="analytics")


class AnalyticsTracker:
    """Keeps every scan event in memory; unsaved events are flushed in batches."""

    def __init__(self, path: Path | None = None, flush_threshold: int = 20) -> None:
        self.path = Path(path) if path else None
        self.flush_threshold = max(flush_threshold, 1)
        self._events: List[ScanEvent] = []
        self._pending = 0
        self._flushing = False

    @classmethod
    def from_file(cls, path: Path, flush_threshold: int = 20) -> "AnalyticsTracker":
        """Load previously flushed events from `path`."""
        tracker = cls(path, flush_threshold)
        for item in load_json(path, default=[]):
            try:
                tracker._events.append(ScanEvent.model_validate(item))
            except PydanticValidationError as exc:
                logger.error(f"Skipping invalid analytics event {item!r}: {exc}")
        logger.info(f"Loaded {len(tracker._events)} analytics events from {path}")
        return tracker

    @property
    def pending(self) -> int:
        """Events recorded since the last flush."""
        return self._pending

    @property
    def flush_due(self) -> bool:
        """True once `flush_threshold` events are waiting to be written."""
        return self._pending >= self.flush_threshold

    def record(
        self,
        battery_id: str,
        *,
        sticker_type: str = "type one",
        user_agent: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ScanEvent:
        """Record a scan in memory; callers flush when `flush_due`."""
        event = ScanEvent(
            battery_id=battery_id,
            timestamp=timestamp or datetime.now(timezone.utc),
            sticker_type=sticker_type,
            user_agent=user_agent,
        )
        self._events.append(event)
        self._pending += 1
        return event

    def _snapshot(self):
        """(serialized events, pending count), or None when nothing needs writing."""
        if not self._pending:
            return None
        if self.path is None:
            self._pending = 0
            return None
        return [e.model_dump(mode="json", by_alias=True) for e in self._events], self._pending

    def _write(self, data: list, count: int) -> bool:
        try:
            write_json_atomic(self.path, data)
        except OSError as exc:
            logger.error(f"Failed to flush {count} analytics events to {self.path}: {exc}")
            return False
        logger.info(f"Flushed {count} analytics events to {self.path}")
        return True

    def flush(self) -> bool:
        """Write all events to disk now if anything is pending; returns True if written."""
        snapshot = self._snapshot()
        if snapshot is None:
            return False
        data, count = snapshot
        if not self._write(data, count):
            return False
        self._pending -= count
        return True

    async def aflush(self) -> bool:
        """Like `flush()`, but the file write runs in a worker thread.

        Events recorded while the write is in flight stay pending. A call made
        while another write is running returns False.
        """
        if self._flushing:
            return False
        snapshot = self._snapshot()
        if snapshot is None:
            return False
        data, count = snapshot
        self._flushing = True
        try:
            written = await asyncio.to_thread(self._write, data, count)
        finally:
            self._flushing = False
        if written:
            self._pending -= count
        return written

    def events(self) -> List[ScanEvent]:
        return list(self._events)

    def summary(self) -> AnalyticsSummary:
        """Totals, per-battery and per-day (UTC) counts."""
        by_battery = Counter(e.battery_id for e in self._events)
        by_day = Counter(e.timestamp.astimezone(timezone.utc).date().isoformat() for e in self._events)
        timestamps = [e.timestamp for e in self._events]
        return AnalyticsSummary(
            total_scans=len(self._events),
            unique_batteries=len(by_battery),
            by_battery=dict(by_battery.most_common()),
            by_day=dict(sorted(by_day.items())),
            first_scan=min(timestamps) if timestamps else None,
            last_scan=max(timestamps) if timestamps else None,
        )
