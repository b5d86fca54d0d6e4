"""In-memory supplier doubles shared by the adapter, service and API tests."""

from app.adapter import SupplierAdapter
from app.analytics import AnalyticsTracker
from app.config import Settings
from app.domain import BatteryMapping, BatteryRecord, StationStatus, Supplier, TokenStatus
from app.errors import UpstreamError
from app.metadata import BatteryMap, StationMetadataStore
from app.service import SwapService

SUPPLIER_B_PATTERN = r"^[A-Z]{2,4}\d{6,}$"


class FakeSupplier:
    """Records every call; behaviour is set through attributes."""

    def __init__(self, supplier, stations=None, batteries=None, listed_ids=None):
        self.supplier = supplier
        self.stations = dict(stations or {})      # id -> (available, occupied, error)
        self.batteries = dict(batteries or {})    # real id -> BatteryRecord
        self.listed_ids = list(listed_ids or [])
        self.orders = []
        self.healthy = True
        self.fail_stations = False
        self.fail_orders = False
        self.calls = []
        self.token = None
        self.keep_alive_calls = 0
        self.closed = False

    async def list_station_ids(self):
        self.calls.append(("list_station_ids",))
        return list(self.listed_ids)

    async def fetch_stations(self, station_ids):
        self.calls.append(("fetch_stations", tuple(station_ids)))
        if self.fail_stations:
            raise UpstreamError(f"{self.supplier.value} down", supplier=self.supplier.value)
        out = []
        for sid in station_ids:
            if sid in self.stations:
                available, occupied, error = self.stations[sid]
                out.append(StationStatus(sid, self.supplier, available, occupied, error))
        return out

    async def fetch_battery(self, real_id):
        self.calls.append(("fetch_battery", real_id))
        return self.batteries.get(real_id)

    async def record_scan(self, real_id, *, manufacture_id, sticker_type):
        self.calls.append(("record_scan", real_id, manufacture_id, sticker_type))
        return {"scanId": f"scan-{real_id}"}

    async def fetch_pending_orders(self):
        self.calls.append(("fetch_pending_orders",))
        if self.fail_orders:
            raise UpstreamError("orders down", supplier=self.supplier.value)
        return list(self.orders)

    async def health_check(self):
        self.calls.append(("health_check",))
        return self.healthy

    async def keep_alive(self):
        self.keep_alive_calls += 1
        return True

    def set_token(self, token, *, source="manual"):
        self.token = token

    def token_status(self):
        return TokenStatus(has_token=self.token is not None, token="***" if self.token else "", source="manual")

    async def aclose(self):
        self.closed = True


def make_battery(real_id, supplier, duration="00:12:30", amount_paid=2.5, manufacture_id="MFG-1"):
    return BatteryRecord(real_id, supplier, duration, amount_paid, manufacture_id)


def make_suppliers():
    supplier_a = FakeSupplier(
        Supplier.SUPPLIER_A,
        stations={"A-1": (3, 5, 0), "A-2": (0, 8, 1)},
        batteries={"BAT-1": make_battery("BAT-1", Supplier.SUPPLIER_A)},
        listed_ids=["A-1", "A-2"],
    )
    supplier_b = FakeSupplier(
        Supplier.SUPPLIER_B,
        stations={"RL123456": (2, 2, 2)},
        batteries={"DTA999": make_battery("DTA999", Supplier.SUPPLIER_B, "01:00:00", 4.0, "MFG-B")},
    )
    return supplier_a, supplier_b


def make_battery_map():
    return BatteryMap([
        BatteryMapping("STK1", "BAT-1", Supplier.SUPPLIER_A),
        BatteryMapping("STK2", "DTA999", Supplier.SUPPLIER_B),
        BatteryMapping("STK3", "BAT-GONE", Supplier.SUPPLIER_A),
    ])


def make_service(settings=None, metadata=None, analytics=None):
    """Service over fake suppliers; returns (service, supplier_a, supplier_b)."""
    settings = settings or Settings(polling_enabled=False)
    supplier_a, supplier_b = make_suppliers()
    adapter = SupplierAdapter(
        {Supplier.SUPPLIER_A: supplier_a, Supplier.SUPPLIER_B: supplier_b},
        metadata or StationMetadataStore(),
        SUPPLIER_B_PATTERN,
    )
    service = SwapService(settings, adapter, make_battery_map(), analytics or AnalyticsTracker())
    return service, supplier_a, supplier_b
