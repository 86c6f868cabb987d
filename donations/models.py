from django.conf import settings
from django.db import models
from django.utils import timezone

from inventory.models import BLOOD_TYPE_CHOICES, Hospital


def walk_in_donor_id() -> str:
    return getattr(settings, "DONATION_WALK_IN_DONOR_ID", "walk_in")


class DonorProfile(models.Model):
    donor_id = models.CharField(max_length=64, unique=True)
    full_name = models.CharField(max_length=120, blank=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES, blank=True)
    address = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)

    class Meta:
        ordering = ['full_name', 'id']

    def __str__(self):
        return self.full_name or self.donor_id


class Event(models.Model):
    external_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    title = models.CharField(max_length=160)
    location = models.CharField(max_length=255, blank=True)
    event_date = models.DateTimeField(null=True, blank=True)
    # May point at a hospital outside the tracked set.
    assigned_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='events'
    )
    assigned_hospital_name = models.CharField(max_length=160, blank=True)

    class Meta:
        ordering = ['-event_date', 'id']

    def __str__(self):
        return self.title


class Unit(models.Model):
    """A physical donation of blood."""

    class StorageStatus(models.TextChoices):
        STORED = "stored", "Stored"
        USED = "used", "Used"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        NO_SHOW = "no-show", "No-show"

    external_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    donor_id = models.CharField(max_length=64, db_index=True)
    donor_name = models.CharField(max_length=120, blank=True)
    blood_type = models.CharField(max_length=8, blank=True)
    serial_number = models.CharField(max_length=64)
    amount_ml = models.PositiveIntegerField()
    donation_date = models.DateTimeField(default=timezone.now)
    expiry_date = models.DateTimeField(null=True, blank=True)
    storage_status = models.CharField(
        max_length=12, choices=StorageStatus.choices, default=StorageStatus.STORED, db_index=True
    )
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='issued_units'
    )
    used_at = models.DateTimeField(null=True, blank=True)
    used_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='used_units'
    )
    donation_type = models.CharField(max_length=20, blank=True)
    created_by = models.CharField(max_length=60, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.serial_number} ({self.blood_type or 'Unknown'}) - {self.storage_status}"


class Booking(models.Model):
    """A donor's scheduled or walk-in slot."""

    class RawStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        REGISTERED = "registered", "Registered"
        SCHEDULED = "scheduled", "Scheduled"
        CONFIRMED = "confirmed", "Confirmed"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        NO_SHOW = "no-show", "No-show"
        COMPLETED = "completed", "Completed"

    class EntryType(models.TextChoices):
        APPOINTMENT = "appointment", "Appointment"
        EVENT = "event", "Event"
        WALK_IN = "walk_in", "Walk-in"

    external_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    donor_id = models.CharField(max_length=64, default=walk_in_donor_id, db_index=True)
    event = models.ForeignKey(Event, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings')
    scheduled_date = models.DateTimeField()
    # Free text on purpose: legacy rows carry values outside RawStatus.
    raw_status = models.CharField(max_length=20, default=RawStatus.PENDING)
    unit = models.ForeignKey(Unit, null=True, blank=True, on_delete=models.PROTECT, related_name='bookings')

    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='bookings')
    hospital_name = models.CharField(max_length=160, blank=True)
    location = models.CharField(max_length=255, blank=True)

    entry_type = models.CharField(max_length=12, choices=EntryType.choices, default=EntryType.APPOINTMENT)
    event_title = models.CharField(max_length=160, blank=True)
    selected_time = models.CharField(max_length=40, blank=True)
    confirmation_code = models.CharField(max_length=40, blank=True)

    donor_name = models.CharField(max_length=120, blank=True)
    donor_address = models.CharField(max_length=255, blank=True)
    donor_blood_type = models.CharField(max_length=8, blank=True)

    reject_reason = models.CharField(max_length=255, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)
    no_show_reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    created_by = models.CharField(max_length=60, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-scheduled_date', '-id']

    def __str__(self):
        return f"Booking {self.pk} - {self.donor_name or self.donor_id} ({self.raw_status})"

    @property
    def is_walk_in_donor(self) -> bool:
        return not self.donor_id or self.donor_id == walk_in_donor_id()
