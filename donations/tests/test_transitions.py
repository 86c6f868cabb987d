from datetime import timedelta
from unittest import mock

from django.test import TestCase, override_settings

from donationledger import errors
from donations.models import Booking, Unit
from donations.services import reconciler, transitions
from donations.services.status import DonationStatus
from donations.tests.helpers import RecordFixturesMixin, aware
from inventory.models import StockEntry


class CompleteTransitionTests(RecordFixturesMixin, TestCase):
    def setUp(self):
        self.now = aware(2025, 3, 1, 12)
        self.hospital = self._create_hospital()
        self.booking = self._create_booking(raw_status="confirmed", donor_blood_type="B+")

    def _complete(self, **payload):
        data = {"serial_number": "SN-100", "amount_ml": 450, "expiry_date": "2025-04-05"}
        data.update(payload)
        return transitions.transition(self.booking.pk, "complete", data, now=self.now)

    def test_complete_then_list_shows_completed_stored_unit(self):
        record = self._complete()
        self.assertEqual(record.status, DonationStatus.COMPLETED)

        listed = {r.booking_id: r for r in reconciler.list_records(now=self.now)}[self.booking.pk]
        self.assertEqual(listed.status, DonationStatus.COMPLETED)
        self.assertEqual(listed.unit.storage_status, Unit.StorageStatus.STORED)
        self.assertEqual(listed.unit.blood_type, "B+")
        self.assertEqual(self._quantity(self.hospital, "B+"), 1)

        unit = Unit.objects.get(pk=listed.unit.unit_id)
        self.assertEqual(unit.hospital, self.hospital)
        self.assertEqual(unit.donation_date, self.now)

    def test_payload_blood_type_wins(self):
        record = self._complete(blood_type="o-")
        self.assertEqual(record.unit.blood_type, "O-")
        self.assertEqual(self._quantity(self.hospital, "O-"), 1)

    def test_validation_errors_are_reported_per_field(self):
        with self.assertRaises(errors.ValidationError) as ctx:
            self._complete(serial_number=" ", amount_ml=1001, expiry_date="2025-03-01")
        self.assertEqual(set(ctx.exception.fields), {"serial_number", "amount_ml", "expiry_date"})
        self.assertFalse(Unit.objects.exists())
        self.assertFalse(StockEntry.objects.exists())

    def test_amount_bounds(self):
        for amount in (0, -5, "abc", 12.5):
            with self.subTest(amount=amount):
                with self.assertRaises(errors.ValidationError) as ctx:
                    self._complete(amount_ml=amount)
                self.assertIn("amount_ml", ctx.exception.fields)
        record = self._complete(amount_ml="1000")
        self.assertEqual(record.unit.amount_ml, 1000)

    def test_unknown_blood_type_fails_validation(self):
        self.booking.donor_blood_type = ""
        self.booking.save()
        with self.assertRaises(errors.ValidationError) as ctx:
            self._complete()
        self.assertIn("blood_type", ctx.exception.fields)

    def test_cannot_complete_from_terminal_status(self):
        self.booking.raw_status = "rejected"
        self.booking.save()
        with self.assertRaises(errors.PreconditionError):
            self._complete()

    def test_ledger_failure_rolls_back_unit_and_booking(self):
        with mock.patch("donations.services.transitions.ledger.issue", side_effect=errors.NotFoundError("boom")):
            with self.assertRaises(errors.NotFoundError):
                self._complete()
        self.assertFalse(Unit.objects.exists())
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.raw_status, "confirmed")
        self.assertIsNone(self.booking.unit_id)


class MarkUsedTransitionTests(RecordFixturesMixin, TestCase):
    def setUp(self):
        self.now = aware(2025, 3, 10, 12)
        self.hospital = self._create_hospital()
        self.unit = self._create_unit(blood_type="O+", hospital=self.hospital)
        self.booking = self._create_booking(unit=self.unit, raw_status="completed")

    def test_mark_used_twice_consumes_once(self):
        self._set_stock(self.hospital, "O+", 3)
        record = transitions.transition(self.booking.pk, "markUsed", now=self.now)
        self.assertEqual(record.display_status, "Used")
        self.assertEqual(self._quantity(self.hospital, "O+"), 2)

        with self.assertRaises(errors.PreconditionError):
            transitions.transition(self.booking.pk, "markUsed", now=self.now)
        self.assertEqual(self._quantity(self.hospital, "O+"), 2)

        self.unit.refresh_from_db()
        self.assertEqual(self.unit.used_at, self.now)
        self.assertEqual(self.unit.used_hospital, self.hospital)

    def test_insufficient_stock_leaves_unit_stored(self):
        self._set_stock(self.hospital, "O+", 0)
        with self.assertRaises(errors.InsufficientStockError):
            transitions.transition(self.booking.pk, "markUsed", now=self.now)
        self.unit.refresh_from_db()
        self.assertEqual(self.unit.storage_status, Unit.StorageStatus.STORED)

    def test_expired_unit_cannot_be_used(self):
        self._set_stock(self.hospital, "O+", 3)
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(self.booking.pk, "markUsed", now=self.unit.expiry_date + timedelta(hours=1))
        self.assertEqual(self._quantity(self.hospital, "O+"), 3)

    def test_non_completed_record_cannot_be_used(self):
        event_booking = self._create_booking(
            donor_id="d2", event=self._create_event(hospital=self.hospital), raw_status="confirmed"
        )
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(event_booking.pk, "markUsed", now=self.now)


class EditMetadataTransitionTests(RecordFixturesMixin, TestCase):
    def setUp(self):
        self.now = aware(2025, 3, 10, 12)
        self.hospital = self._create_hospital()
        self.unit = self._create_unit(blood_type="A+", hospital=self.hospital)
        self.booking = self._create_booking(unit=self.unit, raw_status="completed")

    def test_blood_type_change_transfers_stock(self):
        self._set_stock(self.hospital, "A+", 5)
        self._set_stock(self.hospital, "O-", 2)
        record = transitions.transition(self.booking.pk, "editMetadata", {"blood_type": "O-"}, now=self.now)
        self.assertEqual(record.unit.blood_type, "O-")
        self.assertEqual(self._quantity(self.hospital, "A+"), 4)
        self.assertEqual(self._quantity(self.hospital, "O-"), 3)

    def test_failed_transfer_does_not_apply_edit(self):
        self._set_stock(self.hospital, "A+", 0)
        self._set_stock(self.hospital, "O-", 2)
        with self.assertRaises(errors.InsufficientStockError):
            transitions.transition(
                self.booking.pk, "editMetadata", {"blood_type": "O-", "notes": "typo fix"}, now=self.now
            )
        self.unit.refresh_from_db()
        self.booking.refresh_from_db()
        self.assertEqual(self.unit.blood_type, "A+")
        self.assertEqual(self.booking.notes, "")
        self.assertEqual(self._quantity(self.hospital, "O-"), 2)

    def test_blood_type_change_on_used_unit_has_no_ledger_effect(self):
        self.unit.storage_status = Unit.StorageStatus.USED
        self.unit.save()
        self._set_stock(self.hospital, "A+", 5)
        transitions.transition(self.booking.pk, "editMetadata", {"blood_type": "B-"}, now=self.now)
        self.assertEqual(self._quantity(self.hospital, "A+"), 5)
        self.assertEqual(self._quantity(self.hospital, "B-"), 0)

    def test_booking_fields_edit_on_terminal_record(self):
        cancelled = self._create_booking(donor_id="d2", raw_status="cancelled")
        record = transitions.transition(cancelled.pk, "editMetadata", {"donor_name": "Corrected Name"}, now=self.now)
        self.assertEqual(record.donor_name, "Corrected Name")
        self.assertEqual(record.status, DonationStatus.CANCELLED)

    def test_unit_fields_without_unit_are_rejected(self):
        pending = self._create_booking(donor_id="d2")
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(pending.pk, "editMetadata", {"serial_number": "X"}, now=self.now)

    def test_empty_edit_is_rejected(self):
        with self.assertRaises(errors.ValidationError):
            transitions.transition(self.booking.pk, "editMetadata", {}, now=self.now)


class EventBookingWithSameDayUnitTests(RecordFixturesMixin, TestCase):
    """Event bookings keep their raw status even when a same-day unit is on file."""

    def setUp(self):
        self.now = aware(2025, 3, 10, 12)
        self.hospital = self._create_hospital()
        self.unit = self._create_unit(blood_type="A+", hospital=self.hospital)
        self.booking = self._create_booking(
            event=self._create_event(hospital=self.hospital), raw_status="confirmed"
        )
        self._set_stock(self.hospital, "A+", 5)
        self._set_stock(self.hospital, "O-", 2)

    def test_record_is_confirmed_with_matched_unit(self):
        record = reconciler.get_record(self.booking.pk, self.now)
        self.assertEqual(record.status, DonationStatus.CONFIRMED)
        self.assertEqual(record.unit.unit_id, self.unit.pk)

    def test_blood_type_edit_transfers_stock(self):
        record = transitions.transition(self.booking.pk, "editMetadata", {"blood_type": "O-"}, now=self.now)
        self.assertEqual(record.unit.blood_type, "O-")
        self.assertEqual(self._quantity(self.hospital, "A+"), 4)
        self.assertEqual(self._quantity(self.hospital, "O-"), 3)

    def test_complete_links_matched_unit_without_issuing(self):
        record = transitions.transition(self.booking.pk, "complete", {}, now=self.now)
        self.assertEqual(record.status, DonationStatus.COMPLETED)
        self.assertEqual(record.unit.unit_id, self.unit.pk)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.unit_id, self.unit.pk)
        self.assertEqual(Unit.objects.count(), 1)
        self.assertEqual(self._quantity(self.hospital, "A+"), 5)

    def test_complete_with_directly_linked_unit_is_rejected(self):
        self.booking.unit = self.unit
        self.booking.save()
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(self.booking.pk, "complete", {}, now=self.now)
        self.assertEqual(self._quantity(self.hospital, "A+"), 5)

    def test_delete_leaves_stored_unit_counted(self):
        self.assertIsNone(transitions.transition(self.booking.pk, "delete", now=self.now))
        self.unit.refresh_from_db()
        self.assertEqual(self.unit.storage_status, Unit.StorageStatus.STORED)
        stored = Unit.objects.filter(storage_status=Unit.StorageStatus.STORED, blood_type="A+").count()
        self.assertEqual(stored, 1)
        self.assertEqual(self._quantity(self.hospital, "A+"), 5)


class StatusTransitionTests(RecordFixturesMixin, TestCase):
    def setUp(self):
        self.now = aware(2025, 3, 10, 12)
        self.hospital = self._create_hospital()

    def test_pending_to_registered_to_confirmed(self):
        booking = self._create_booking()
        record = transitions.transition(booking.pk, "register", now=self.now)
        self.assertEqual(record.status, DonationStatus.REGISTERED)
        record = transitions.transition(booking.pk, "confirm", now=self.now)
        self.assertEqual(record.status, DonationStatus.CONFIRMED)

    def test_reasons_default_when_missing(self):
        booking = self._create_booking()
        transitions.transition(booking.pk, "reject", now=self.now)
        booking.refresh_from_db()
        self.assertEqual(booking.raw_status, "rejected")
        self.assertEqual(booking.reject_reason, "No reason provided")

    def test_no_show_stores_reason(self):
        booking = self._create_booking(raw_status="confirmed")
        record = transitions.transition(booking.pk, "markNoShow", {"reason": "Did not arrive"}, now=self.now)
        self.assertEqual(record.status, DonationStatus.NO_SHOW)
        booking.refresh_from_db()
        self.assertEqual(booking.no_show_reason, "Did not arrive")

    def test_disallowed_transition_changes_nothing(self):
        booking = self._create_booking()
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(booking.pk, "markNoShow", now=self.now)
        booking.refresh_from_db()
        self.assertEqual(booking.raw_status, "pending")

    def test_unknown_action(self):
        booking = self._create_booking()
        with self.assertRaises(errors.ValidationError):
            transitions.transition(booking.pk, "archive", now=self.now)

    def test_delete_completed_record_is_rejected(self):
        booking = self._create_booking(unit=self._create_unit(), raw_status="completed")
        with self.assertRaises(errors.PreconditionError):
            transitions.transition(booking.pk, "delete", now=self.now)
        self.assertTrue(Booking.objects.filter(pk=booking.pk).exists())

    def test_delete_keeps_units(self):
        unit = self._create_unit()
        booking = self._create_booking(
            event=self._create_event(hospital=self.hospital), unit=unit, raw_status="cancelled"
        )
        self.assertIsNone(transitions.transition(booking.pk, "delete", now=self.now))
        self.assertFalse(Booking.objects.filter(pk=booking.pk).exists())
        self.assertTrue(Unit.objects.filter(pk=unit.pk).exists())

    def test_missing_booking(self):
        with self.assertRaises(errors.NotFoundError):
            transitions.transition(123456, "confirm", now=self.now)


class WalkInTests(RecordFixturesMixin, TestCase):
    def setUp(self):
        self.now = aware(2025, 3, 10, 12)
        self.hospital = self._create_hospital()

    def test_completed_walk_in_creates_unit_and_issues_stock(self):
        record = transitions.create_walk_in(
            {"name": "Walk In Wendy", "date": "2025-03-09", "status": "Completed", "blood_type": "AB+"},
            now=self.now,
        )
        self.assertEqual(record.status, DonationStatus.COMPLETED)
        self.assertTrue(record.display_id.startswith("DON-WALK-IN-"))
        self.assertTrue(record.event.confirmation_code.startswith("WALK-IN-"))
        self.assertEqual(record.unit.amount_ml, 450)
        self.assertTrue(record.unit.serial_number.startswith("DON-"))
        self.assertEqual(record.unit.expiry_date, aware(2025, 4, 13))
        self.assertEqual(self._quantity(self.hospital, "AB+"), 1)

    def test_pending_walk_in_has_no_unit(self):
        record = transitions.create_walk_in({"name": "Pat", "date": "2025-03-12"}, now=self.now)
        self.assertEqual(record.status, DonationStatus.PENDING)
        self.assertIsNone(record.unit)
        self.assertFalse(StockEntry.objects.exists())

    def test_profile_fills_missing_details(self):
        self._create_profile(donor_id="donor-77", full_name="Riya Rao", blood_group="O+", address="5 Lake Road")
        record = transitions.create_walk_in(
            {"donor_id": "donor-77", "date": "2025-03-09", "status": "completed"}, now=self.now
        )
        self.assertEqual(record.donor_name, "Riya Rao")
        self.assertEqual(record.unit.blood_type, "O+")
        self.assertEqual(self._quantity(self.hospital, "O+"), 1)

    def test_missing_name_and_date(self):
        with self.assertRaises(errors.ValidationError) as ctx:
            transitions.create_walk_in({}, now=self.now)
        self.assertEqual(set(ctx.exception.fields), {"name", "date"})

    @override_settings(DONATION_DEFAULT_SHELF_LIFE_DAYS=5)
    def test_completed_walk_in_with_past_expiry_is_rejected(self):
        with self.assertRaises(errors.ValidationError):
            transitions.create_walk_in(
                {"name": "Late Larry", "date": "2025-03-01", "status": "Completed", "blood_type": "A+"},
                now=self.now,
            )
        self.assertFalse(Booking.objects.exists())
