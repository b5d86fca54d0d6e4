import unittest

from app.config import Settings
from app.domain import Supplier
from app.suppliers import build_suppliers
from app.suppliers.supplier_a import SupplierAClient
from app.suppliers.supplier_b import SupplierBClient


class TestSupplierFactory(unittest.IsolatedAsyncioTestCase):
    async def test_builds_both_clients(self):
        settings = Settings(supplier_b_username="ops", supplier_b_password="pw")
        suppliers = build_suppliers(settings)
        try:
            self.assertIsInstance(suppliers[Supplier.SUPPLIER_A], SupplierAClient)
            self.assertIsInstance(suppliers[Supplier.SUPPLIER_B], SupplierBClient)
            self.assertTrue(suppliers[Supplier.SUPPLIER_B].has_credentials)
        finally:
            for client in suppliers.values():
                await client.aclose()

    async def test_configured_token_is_used(self):
        suppliers = build_suppliers(Settings(supplier_b_token="abcdefghijkl"))
        try:
            status = suppliers[Supplier.SUPPLIER_B].token_status()
            self.assertTrue(status.has_token)
            self.assertEqual(status.source, "config")
        finally:
            for client in suppliers.values():
                await client.aclose()

    def test_missing_base_url_raises(self):
        with self.assertRaises(ValueError):
            build_suppliers(Settings(supplier_a_base_url=""))
        with self.assertRaises(ValueError):
            build_suppliers(Settings(supplier_b_base_url=""))


if __name__ == "__main__":
    unittest.main()
