import unittest

from app.adapter import SupplierAdapter
from app.domain import BatteryMapping, StationMetadata, StationStatus, Supplier
from app.errors import UpstreamError
from app.metadata import StationMetadataStore
from supplier_fakes import SUPPLIER_B_PATTERN, make_battery, make_suppliers


def _adapter(metadata=None):
    supplier_a, supplier_b = make_suppliers()
    adapter = SupplierAdapter(
        {Supplier.SUPPLIER_A: supplier_a, Supplier.SUPPLIER_B: supplier_b},
        metadata or StationMetadataStore(),
        SUPPLIER_B_PATTERN,
    )
    return adapter, supplier_a, supplier_b


class TestOwnership(unittest.TestCase):
    def test_pattern_routes_to_supplier_b(self):
        adapter, _, _ = _adapter()
        self.assertEqual(adapter.owner_of("RL123456"), Supplier.SUPPLIER_B)
        self.assertEqual(adapter.owner_of("A-1"), Supplier.SUPPLIER_A)
        self.assertEqual(adapter.owner_of("rl123456"), Supplier.SUPPLIER_A)

    def test_registry_wins_over_pattern(self):
        store = StationMetadataStore(entries=[StationMetadata(id="RL000001", supplier=Supplier.SUPPLIER_A)])
        adapter, _, _ = _adapter(store)
        self.assertEqual(adapter.owner_of("RL000001"), Supplier.SUPPLIER_A)

    def test_group_by_owner_dedupes(self):
        adapter, _, _ = _adapter()
        groups = adapter.group_by_owner(["A-1", "RL123456", "A-1", "A-2"])
        self.assertEqual(groups, {Supplier.SUPPLIER_A: ["A-1", "A-2"], Supplier.SUPPLIER_B: ["RL123456"]})

    def test_requires_both_suppliers(self):
        supplier_a, _ = make_suppliers()
        with self.assertRaises(ValueError):
            SupplierAdapter({Supplier.SUPPLIER_A: supplier_a}, StationMetadataStore(), SUPPLIER_B_PATTERN)


class TestSupplierAdapter(unittest.IsolatedAsyncioTestCase):
    async def test_list_station_ids_unions_registry_and_listing(self):
        store = StationMetadataStore(entries=[StationMetadata(id="RL123456"), StationMetadata(id="A-1")])
        adapter, _, _ = _adapter(store)
        self.assertEqual(await adapter.list_station_ids(), ["A-1", "RL123456", "A-2"])

    async def test_each_supplier_only_asked_for_its_stations(self):
        adapter, supplier_a, supplier_b = _adapter()
        statuses = await adapter.fetch_station_statuses(["A-1", "RL123456", "A-2"])
        self.assertEqual(sorted(s.id for s in statuses), ["A-1", "A-2", "RL123456"])
        self.assertIn(("fetch_stations", ("A-1", "A-2")), supplier_a.calls)
        self.assertIn(("fetch_stations", ("RL123456",)), supplier_b.calls)
        by_id = {s.id: s for s in statuses}
        self.assertEqual(by_id["RL123456"].supplier, Supplier.SUPPLIER_B)
        self.assertEqual((by_id["A-2"].available, by_id["A-2"].error), (0, 1))

    async def test_stations_from_the_wrong_supplier_are_dropped(self):
        adapter, supplier_a, _ = _adapter()

        async def leaky(station_ids):
            return [StationStatus("A-1", Supplier.SUPPLIER_A, 1), StationStatus("RL123456", Supplier.SUPPLIER_A, 9)]

        supplier_a.fetch_stations = leaky
        statuses = await adapter.fetch_station_statuses(["A-1", "RL123456"])
        rl = [s for s in statuses if s.id == "RL123456"]
        self.assertEqual(len(rl), 1)
        self.assertEqual(rl[0].supplier, Supplier.SUPPLIER_B)
        self.assertEqual(rl[0].available, 2)

    async def test_partial_failure_keeps_other_supplier(self):
        adapter, _, supplier_b = _adapter()
        supplier_b.fail_stations = True
        statuses = await adapter.fetch_station_statuses(["A-1", "RL123456"])
        self.assertEqual([s.id for s in statuses], ["A-1"])

    async def test_all_suppliers_failing_raises(self):
        adapter, supplier_a, supplier_b = _adapter()
        supplier_a.fail_stations = True
        supplier_b.fail_stations = True
        with self.assertRaises(UpstreamError):
            await adapter.fetch_station_statuses(["A-1", "RL123456"])

    async def test_no_ids_means_no_calls(self):
        adapter, supplier_a, supplier_b = _adapter()
        self.assertEqual(await adapter.fetch_station_statuses([]), [])
        self.assertEqual(supplier_a.calls, [])
        self.assertEqual(supplier_b.calls, [])

    async def test_battery_only_from_mapped_supplier(self):
        adapter, supplier_a, supplier_b = _adapter()
        record = await adapter.get_battery(BatteryMapping("STK2", "DTA999", Supplier.SUPPLIER_B))
        self.assertEqual(record.manufacture_id, "MFG-B")
        self.assertEqual(supplier_a.calls, [])

        # BAT-1 exists at Supplier A, but the mapping says Supplier B
        self.assertIsNone(await adapter.get_battery(BatteryMapping("STK9", "BAT-1", Supplier.SUPPLIER_B)))
        self.assertNotIn(("fetch_battery", "BAT-1"), supplier_a.calls)

    async def test_battery_answered_with_wrong_supplier_is_rejected(self):
        adapter, supplier_a, _ = _adapter()
        supplier_a.batteries["BAT-X"] = make_battery("BAT-X", Supplier.SUPPLIER_B)
        self.assertIsNone(await adapter.get_battery(BatteryMapping("STK9", "BAT-X", Supplier.SUPPLIER_A)))

    async def test_record_scan_goes_to_owner(self):
        adapter, supplier_a, supplier_b = _adapter()
        result = await adapter.record_scan(
            BatteryMapping("STK2", "DTA999", Supplier.SUPPLIER_B), manufacture_id="M", sticker_type="type two"
        )
        self.assertEqual(result, {"scanId": "scan-DTA999"})
        self.assertEqual(supplier_b.calls, [("record_scan", "DTA999", "M", "type two")])
        self.assertEqual(supplier_a.calls, [])

    async def test_pending_orders(self):
        adapter, supplier_a, supplier_b = _adapter()
        supplier_b.orders = [{"orderId": "o-1"}]
        orders = await adapter.fetch_pending_orders()
        self.assertEqual(orders, {"supplier_a": [], "supplier_b": [{"orderId": "o-1"}]})

        supplier_b.fail_orders = True
        with self.assertRaises(UpstreamError):
            await adapter.fetch_pending_orders()

    async def test_health_keep_alive_and_close(self):
        adapter, supplier_a, supplier_b = _adapter()
        supplier_b.healthy = False
        self.assertEqual(await adapter.health_check(), {"supplier_a": True, "supplier_b": False})
        await adapter.keep_alive()
        self.assertEqual((supplier_a.keep_alive_calls, supplier_b.keep_alive_calls), (1, 1))
        await adapter.aclose()
        self.assertTrue(supplier_a.closed and supplier_b.closed)


if __name__ == "__main__":
    unittest.main()
