# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from src.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants."""

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_max_retries_is_positive(self) -> None:
        """MAX_RETRIES must be >= 1."""
        self.assertGreaterEqual(Settings.MAX_RETRIES, 1)

    def test_retry_delay_is_positive_float(self) -> None:
        """RETRY_DELAY must be a positive number."""
        self.assertIsInstance(Settings.RETRY_DELAY, float)
        self.assertGreater(Settings.RETRY_DELAY, 0)

    def test_budget_floor(self) -> None:
        """Numbers under 50 are never treated as budgets."""
        self.assertEqual(Settings.MIN_BUDGET, 50)

    def test_history_scan_within_history_limit(self) -> None:
        """The history scan never looks past the loaded window."""
        self.assertLessEqual(
            Settings.HISTORY_SCAN_TURNS, Settings.HISTORY_LIMIT
        )
        self.assertLessEqual(
            Settings.HISTORY_LIMIT, Settings.MAX_HISTORY_SIZE
        )

    def test_listing_sizes(self) -> None:
        """Templates offer between MIN_VARIANTS and LISTING_SIZE lines."""
        self.assertGreaterEqual(Settings.MIN_VARIANTS, 1)
        self.assertGreaterEqual(
            Settings.LISTING_SIZE, Settings.MIN_VARIANTS
        )

    def test_price_tolerances(self) -> None:
        """Absolute and relative price tolerances are positive."""
        self.assertGreater(Settings.PRICE_TOLERANCE_ABS, 0)
        self.assertGreater(Settings.PRICE_TOLERANCE_PCT, 0)
        self.assertLess(Settings.PRICE_TOLERANCE_PCT, 1)

    def test_fixed_replies_are_non_empty(self) -> None:
        """Sentinel replies must carry text."""
        self.assertTrue(Settings.SAFETY_BLOCK_REPLY.strip())
        self.assertTrue(Settings.GENERATION_FAILED_REPLY.strip())

    def test_gemini_endpoint_is_https(self) -> None:
        """The generator endpoint must be an HTTPS URL."""
        self.assertTrue(Settings.GEMINI_ENDPOINT.startswith("https://"))
        self.assertTrue(Settings.GEMINI_MODEL)

    def test_impersonate_browser_is_string(self) -> None:
        """IMPERSONATE_BROWSER must be a non-empty string."""
        self.assertIsInstance(
            Settings.IMPERSONATE_BROWSER, str
        )
        self.assertTrue(len(Settings.IMPERSONATE_BROWSER) > 0)

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)
        self.assertEqual(Settings.LOGS_DIR.parent, Settings.BASE_DIR)


if __name__ == "__main__":
    unittest.main()
