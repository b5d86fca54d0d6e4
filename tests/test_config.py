import os
import unittest

from pydantic import ValidationError

from app.config import Settings


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        previous = os.environ.pop("SWAP_SUPPLIER_A_BASE_URL", None)
        try:
            s = Settings()
            self.assertEqual(s.supplier_a_base_url, "https://api.cuub.tech")
            self.assertEqual(s.cache_ttl_seconds, 10)
            self.assertEqual(s.station_poll_interval_seconds, 30)
            self.assertEqual(s.order_poll_interval_seconds, 60)
            self.assertEqual(s.token_keepalive_interval_seconds, 60)
            self.assertEqual(s.health_retry_delay_seconds, 30)
        finally:
            if previous is not None:
                os.environ["SWAP_SUPPLIER_A_BASE_URL"] = previous

    def test_settings_env_override(self):
        previous = os.environ.get("SWAP_SUPPLIER_A_BASE_URL")
        try:
            os.environ["SWAP_SUPPLIER_A_BASE_URL"] = "http://example.com/api/"
            s = Settings()
            self.assertEqual(s.supplier_a_base_url, "http://example.com/api")
        finally:
            if previous is None:
                os.environ.pop("SWAP_SUPPLIER_A_BASE_URL", None)
            else:
                os.environ["SWAP_SUPPLIER_A_BASE_URL"] = previous

    def test_poll_interval_override(self):
        previous = os.environ.get("SWAP_STATION_POLL_INTERVAL_SECONDS")
        try:
            os.environ["SWAP_STATION_POLL_INTERVAL_SECONDS"] = "5"
            s = Settings()
            self.assertEqual(s.station_poll_interval_seconds, 5)
        finally:
            if previous is None:
                os.environ.pop("SWAP_STATION_POLL_INTERVAL_SECONDS", None)
            else:
                os.environ["SWAP_STATION_POLL_INTERVAL_SECONDS"] = previous

    def test_environment_flag(self):
        self.assertTrue(Settings(environment=" Development ").is_development)
        self.assertFalse(Settings(environment="production").is_development)

    def test_bad_station_pattern_rejected(self):
        with self.assertRaises(ValidationError):
            Settings(supplier_b_station_pattern="([unclosed")


if __name__ == "__main__":
    unittest.main()
