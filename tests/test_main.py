import unittest

from app.main import app, _MAP_PAGE, _STATIC_DIR


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "SwapMap")
        self.assertTrue(_STATIC_DIR.exists())
        self.assertTrue(_MAP_PAGE.exists())


if __name__ == "__main__":
    unittest.main()
