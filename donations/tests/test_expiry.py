from datetime import timedelta
from types import SimpleNamespace

from django.test import SimpleTestCase

from donations.services.expiry import ExpiryCategory, classify_expiry, days_until_expiry, expiry_summary
from donations.tests.helpers import aware


class ExpiryClassifierTests(SimpleTestCase):
    def setUp(self):
        self.now = aware(2025, 3, 1, 12)

    def test_boundaries(self):
        cases = [
            (timedelta(days=-1), ExpiryCategory.EXPIRED),
            (timedelta(days=3), ExpiryCategory.CRITICAL),
            (timedelta(days=4), ExpiryCategory.URGENT),
            (timedelta(days=7), ExpiryCategory.URGENT),
            (timedelta(days=8), ExpiryCategory.WARNING),
            (timedelta(days=14), ExpiryCategory.WARNING),
            (timedelta(days=15), ExpiryCategory.GOOD),
        ]
        for delta, expected in cases:
            with self.subTest(delta=delta):
                self.assertEqual(classify_expiry(self.now + delta, self.now), expected)

    def test_partial_days_round_up(self):
        self.assertEqual(days_until_expiry(self.now + timedelta(days=3, hours=1), self.now), 4)
        self.assertEqual(classify_expiry(self.now + timedelta(days=3, hours=1), self.now), ExpiryCategory.URGENT)

    def test_missing_expiry_is_unknown(self):
        self.assertEqual(classify_expiry(None, self.now), ExpiryCategory.UNKNOWN)
        self.assertIsNone(days_until_expiry(None, self.now))

    def test_accepts_iso_strings(self):
        self.assertEqual(classify_expiry("2025-03-03T12:00:00+00:00", self.now), ExpiryCategory.CRITICAL)

    def test_is_deterministic(self):
        expiry = self.now + timedelta(days=5)
        self.assertEqual(classify_expiry(expiry, self.now), classify_expiry(expiry, self.now))

    def test_summary_counts_stored_units_only(self):
        units = [
            SimpleNamespace(storage_status="stored", expiry_date=self.now + timedelta(days=2)),
            SimpleNamespace(storage_status="stored", expiry_date=self.now + timedelta(days=30)),
            SimpleNamespace(storage_status="stored", expiry_date=self.now - timedelta(days=2)),
            SimpleNamespace(storage_status="used", expiry_date=self.now + timedelta(days=2)),
        ]
        summary = expiry_summary(units, self.now)
        self.assertEqual(summary["total"], 3)
        self.assertEqual(summary["critical"], 1)
        self.assertEqual(summary["good"], 1)
        self.assertEqual(summary["expired"], 1)
        self.assertEqual(summary["urgent"], 0)
