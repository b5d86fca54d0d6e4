"""Static station metadata and the external battery id map."""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.domain import BatteryMapping, StationMetadata, Supplier
from app.errors import ValidationError
from app.storage import load_json, write_json_atomic
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="metadata")

_BATTERY_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class StationMetadataStore:
    """Station id -> StationMetadata, backed by a JSON file.

    The file holds a list of metadata objects. Admin edits are written back
    atomically when a path is configured.
    """

    def __init__(self, path: Path | None = None, entries: Iterable[StationMetadata] = ()) -> None:
        self.path = Path(path) if path else None
        self._entries: Dict[str, StationMetadata] = {m.id: m for m in entries}

    @classmethod
    def from_file(cls, path: Path) -> "StationMetadataStore":
        """Load metadata from `path`; invalid records are logged and skipped."""
        store = cls(path)
        raw = load_json(path, default=[])
        if isinstance(raw, dict):
            raw = [{"id": key, **value} for key, value in raw.items()]
        for item in raw:
            try:
                meta = StationMetadata.model_validate(item)
            except PydanticValidationError as exc:
                logger.error(f"Skipping invalid station metadata {item!r}: {exc}")
                continue
            store._entries[meta.id] = meta
        logger.info(f"Loaded metadata for {len(store._entries)} stations from {path}")
        return store

    def _save(self) -> None:
        if self.path is None:
            return
        data = [m.model_dump(mode="json", exclude_unset=True, exclude_none=True) for m in self.all()]
        write_json_atomic(self.path, data)

    def all(self) -> List[StationMetadata]:
        """Return metadata sorted by station id."""
        return [self._entries[k] for k in sorted(self._entries)]

    def get(self, station_id: str) -> Optional[StationMetadata]:
        return self._entries.get(station_id)

    def upsert(self, meta: StationMetadata) -> StationMetadata:
        """Insert or replace metadata for `meta.id` and persist."""
        created = meta.id not in self._entries
        self._entries[meta.id] = meta
        self._save()
        logger.info(f"{'Added' if created else 'Updated'} station metadata for {meta.id}")
        return meta

    def remove(self, station_id: str) -> bool:
        """Remove metadata; returns False when the id was unknown."""
        if self._entries.pop(station_id, None) is None:
            return False
        self._save()
        logger.info(f"Removed station metadata for {station_id}")
        return True

    def supplier_for(self, station_id: str) -> Optional[Supplier]:
        """Supplier registered for a station id, if any."""
        meta = self._entries.get(station_id)
        return meta.supplier if meta else None

    def ids(self) -> List[str]:
        return sorted(self._entries)


class BatteryMap:
    """External sticker id -> real supplier battery id.

    File format::

        {"STK001": {"realId": "BAT-88213", "supplier": "supplier_a"},
         "STK002": "BAT-11092"}

    A bare string value is a Supplier A battery.
    """

    def __init__(self, mappings: Iterable[BatteryMapping] = ()) -> None:
        self._mappings: Dict[str, BatteryMapping] = {}
        for mapping in mappings:
            self.add(mapping)

    def add(self, mapping: BatteryMapping) -> None:
        """Register a mapping; the external id must differ from the real id."""
        if mapping.custom_id == mapping.real_id:
            raise ValueError(f"Battery id '{mapping.custom_id}' maps to itself")
        self._mappings[mapping.custom_id] = mapping

    @classmethod
    def from_file(cls, path: Path) -> "BatteryMap":
        """Load the map from `path`; bad entries are logged and skipped."""
        battery_map = cls()
        raw = load_json(path, default={})
        for custom_id, value in raw.items():
            try:
                if isinstance(value, str):
                    mapping = BatteryMapping(custom_id, value, Supplier.SUPPLIER_A)
                else:
                    mapping = BatteryMapping(
                        custom_id,
                        str(value["realId"]),
                        Supplier(value.get("supplier", Supplier.SUPPLIER_A.value)),
                    )
                battery_map.add(mapping)
            except (KeyError, TypeError, ValueError) as exc:
                logger.error(f"Skipping invalid battery mapping '{custom_id}': {exc}")
        logger.info(f"Loaded {len(battery_map)} battery mappings from {path}")
        return battery_map

    def resolve(self, custom_id: str) -> BatteryMapping:
        """Return the mapping for an external id or raise ValidationError."""
        if not custom_id or not _BATTERY_ID_RE.match(custom_id):
            raise ValidationError("Invalid battery id")
        mapping = self._mappings.get(custom_id)
        if mapping is None:
            raise ValidationError(f"Unknown battery id '{custom_id}'")
        return mapping

    def __contains__(self, custom_id: str) -> bool:
        return custom_id in self._mappings

    def __len__(self) -> int:
        return len(self._mappings)
