"""Domain vocabulary and API schemas for stations, batteries and scans.

Supplier clients produce the plain dataclasses (`StationStatus`,
`BatteryRecord`); the adapter and merge logic turn those into the Pydantic
models that the HTTP API returns. JSON field names follow the map front-end
(camelCase), Python attribute names stay snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.hours import validate_hours


class Supplier(str, Enum):
    """Vendor backends that own stations and batteries."""
    SUPPLIER_A = "supplier_a"
    SUPPLIER_B = "supplier_b"


HoursSpec = Union[str, Dict[str, str]]


class _ApiModel(BaseModel):
    """Base model accepting both attribute names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# Supplier-level records
# ---------------------------------------------------------------------------


@dataclass
class StationStatus:
    """Live availability for one station as reported by its supplier."""
    id: str
    supplier: Supplier
    available: int = 0
    occupied: int = 0
    error: int = 0
    name: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = None  # (lon, lat)


@dataclass
class BatteryRecord:
    """Rental state for one real battery id as reported by its supplier."""
    real_id: str
    supplier: Supplier
    duration: str = "00:00:00"
    amount_paid: float = 0.0
    manufacture_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class BatteryMapping:
    """External sticker id -> real supplier battery id."""
    custom_id: str
    real_id: str
    supplier: Supplier


# ---------------------------------------------------------------------------
# API models
# ---------------------------------------------------------------------------


class StationMetadata(_ApiModel):
    """Static location data for a station, edited through the admin API."""
    id: str = Field(min_length=1)
    name: Optional[str] = None
    address: str = ""
    coordinates: Tuple[float, float] = (0.0, 0.0)
    hours: Optional[HoursSpec] = None
    supplier: Optional[Supplier] = None

    @field_validator("id", mode="after")
    @classmethod
    def strip_id(cls, v: str) -> str:
        """Station ids are compared verbatim, so trim stray whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("id must not be blank")
        return v

    @field_validator("coordinates", mode="after")
    @classmethod
    def check_coordinates(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Coordinates are [longitude, latitude]."""
        lon, lat = v
        if not -180.0 <= lon <= 180.0:
            raise ValueError(f"longitude out of range: {lon}")
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"latitude out of range: {lat}")
        return v

    @field_validator("hours", mode="after")
    @classmethod
    def check_hours(cls, v: Optional[HoursSpec]) -> Optional[HoursSpec]:
        """Reject opening hours we would not be able to evaluate."""
        if v is None:
            return v
        return validate_hours(v)


class Station(_ApiModel):
    """Merged station shown on the map."""
    id: str
    name: str
    address: str = ""
    coordinates: Tuple[float, float] = (0.0, 0.0)
    hours: Optional[HoursSpec] = None
    is_open: bool = Field(default=True, alias="isOpen")
    available: int = 0
    occupied: int = 0
    error: int = 0
    supplier: Supplier


class Battery(_ApiModel):
    """Battery rental info keyed by the external sticker id."""
    battery_id: str = Field(alias="batteryId")
    duration: str
    amount_paid: float = Field(alias="amountPaid")
    manufacture_id: Optional[str] = Field(default=None, alias="manufactureId")
    supplier: Supplier


class ScanEvent(_ApiModel):
    """A single QR-sticker scan."""
    battery_id: str = Field(alias="batteryId")
    timestamp: datetime
    sticker_type: str = Field(default="type one", alias="stickerType")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")


class ScanResult(_ApiModel):
    """Response for a recorded scan."""
    battery_id: str = Field(alias="batteryId")
    recorded: bool = True
    upstream: Optional[Dict[str, Any]] = None


class AnalyticsSummary(_ApiModel):
    """Aggregated scan counts."""
    total_scans: int = Field(alias="totalScans")
    unique_batteries: int = Field(alias="uniqueBatteries")
    by_battery: Dict[str, int] = Field(default_factory=dict, alias="byBattery")
    by_day: Dict[str, int] = Field(default_factory=dict, alias="byDay")
    first_scan: Optional[datetime] = Field(default=None, alias="firstScan")
    last_scan: Optional[datetime] = Field(default=None, alias="lastScan")


class TokenStatus(_ApiModel):
    """Masked view of the Supplier B token."""
    has_token: bool = Field(alias="hasToken")
    token: str = ""
    source: Optional[str] = None
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class TokenUpdate(_ApiModel):
    """Incoming manual token."""
    token: str = Field(min_length=1)
