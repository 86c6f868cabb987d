import json
import os
import tempfile
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from donations.models import Booking, DonorProfile, Event, Unit
from donations.services import reconciler
from donations.services.status import DonationStatus
from inventory.models import Hospital, StockEntry

EXPORT = {
    "hospitals": {
        "h-1": {
            "name": "City General",
            "bloodStock": {"A+": {"quantity": 7, "thresholds": {"low": 10, "medium": 30, "high": 50}}},
        },
        "h-2": {"name": "Private Clinic", "isTracked": False},
    },
    "blood_drive_events": {
        "ev-1": {"title": "Spring Drive", "location": "Town Hall", "startDate": "2025-03-01", "assignedHospitalId": "h-1"},
        "ev-2": {"title": "Clinic Drive", "hospitalId": "h-2"},
    },
    "donor_profiles": [{"id": "p1", "user_id": "user-1", "full_name": "Dana Donor", "blood_group": "A+"}],
    "donations": {
        "don-1": {
            "donor_id": "user-1",
            "bloodType": "A+",
            "serialNumber": "SN-1",
            "amount_ml": 450,
            "donation_date": "2025-03-01T11:00:00Z",
            "expiry_date": "2025-04-05T00:00:00Z",
            "status": "stored",
        },
    },
    "slot_bookings": {
        "b-1": {"userId": "user-1", "bookingDate": "2025-03-01", "bookingStatus": "completed", "donationId": "don-1"},
        "b-2": {"userId": "user-2", "eventId": "ev-1", "bookingDate": "2025-03-01", "bookingStatus": "confirmed"},
        "b-3": {"userId": "user-3", "eventId": "ev-2", "bookingDate": "2025-03-01"},
        "b-4": {"userId": "user-4"},
    },
}


class ImportDocumentsCommandTests(TestCase):
    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix=".json")
        with os.fdopen(handle, "w", encoding="utf-8") as export_file:
            json.dump(EXPORT, export_file)
        self.addCleanup(os.remove, self.path)

    def _import(self):
        out = StringIO()
        call_command("import_documents", self.path, stdout=out)
        return out.getvalue()

    def test_import_builds_records(self):
        output = self._import()
        self.assertIn("Import complete", output)
        self.assertEqual(Hospital.objects.count(), 2)
        self.assertEqual(StockEntry.objects.get(blood_type="A+").quantity, 7)
        self.assertEqual(DonorProfile.objects.get().full_name, "Dana Donor")
        self.assertEqual(Booking.objects.count(), 3)

        records = {r.donor_id: r for r in reconciler.list_records()}
        self.assertEqual(set(records), {"user-1", "user-2"})
        self.assertEqual(records["user-1"].status, DonationStatus.COMPLETED)
        self.assertEqual(records["user-1"].unit.serial_number, "SN-1")
        self.assertEqual(records["user-2"].status, DonationStatus.CONFIRMED)

    def test_reimport_is_idempotent(self):
        self._import()
        self._import()
        self.assertEqual(Hospital.objects.count(), 2)
        self.assertEqual(Event.objects.count(), 2)
        self.assertEqual(Unit.objects.count(), 1)
        self.assertEqual(Booking.objects.count(), 3)
        self.assertEqual(StockEntry.objects.get(blood_type="A+").quantity, 7)


class SeedDemoDataCommandTests(TestCase):
    def test_seed_creates_consistent_stock(self):
        out = StringIO()
        call_command("seed_demo_data", donors=8, bookings=30, seed=7, stdout=out)
        self.assertIn("Seed complete", out.getvalue())

        stored = Unit.objects.filter(storage_status=Unit.StorageStatus.STORED).count()
        total_stock = sum(StockEntry.objects.values_list("quantity", flat=True))
        self.assertEqual(total_stock, stored)
        self.assertTrue(reconciler.list_records())
