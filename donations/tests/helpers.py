from datetime import datetime

from django.utils import timezone

from donations.models import Booking, DonorProfile, Event, Unit
from inventory.models import Hospital, StockEntry


def aware(*args):
    return timezone.make_aware(datetime(*args), timezone.get_current_timezone())


class RecordFixturesMixin:
    """Factory helpers shared by the donation record tests."""

    def _create_hospital(self, name="City General", **kwargs):
        return Hospital.objects.create(name=name, **kwargs)

    def _create_event(self, hospital=None, **kwargs):
        kwargs.setdefault("title", "Spring Blood Drive")
        kwargs.setdefault("location", "Town Hall")
        kwargs.setdefault("event_date", aware(2025, 3, 1, 9))
        return Event.objects.create(assigned_hospital=hospital, **kwargs)

    def _create_profile(self, donor_id="donor-d1", **kwargs):
        kwargs.setdefault("full_name", "Dana Donor")
        kwargs.setdefault("blood_group", "A+")
        return DonorProfile.objects.create(donor_id=donor_id, **kwargs)

    def _create_booking(self, donor_id="donor-d1", scheduled=None, raw_status="pending", **kwargs):
        kwargs.setdefault("donor_name", "Dana Donor")
        return Booking.objects.create(
            donor_id=donor_id,
            scheduled_date=scheduled or aware(2025, 3, 1, 10),
            raw_status=raw_status,
            **kwargs,
        )

    def _create_unit(self, donor_id="donor-d1", donation_date=None, blood_type="A+", **kwargs):
        kwargs.setdefault("serial_number", f"SN-{Unit.objects.count() + 1}")
        kwargs.setdefault("amount_ml", 450)
        kwargs.setdefault("expiry_date", aware(2025, 4, 5))
        return Unit.objects.create(
            donor_id=donor_id,
            donation_date=donation_date or aware(2025, 3, 1, 11),
            blood_type=blood_type,
            **kwargs,
        )

    def _set_stock(self, hospital, blood_type, quantity):
        entry, _ = StockEntry.objects.update_or_create(
            hospital=hospital, blood_type=blood_type, defaults={"quantity": quantity}
        )
        return entry

    def _quantity(self, hospital, blood_type):
        entry = StockEntry.objects.filter(hospital=hospital, blood_type=blood_type).first()
        return entry.quantity if entry else 0
