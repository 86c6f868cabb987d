"""Canonical lifecycle status of a donation record.

The status is a pure function of the booking's raw status, whether the booking
was sourced from an event, and whether a physical unit was matched to it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from django.db import models
from django.utils import timezone


class DonationStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    REGISTERED = "Registered", "Registered"
    CONFIRMED = "Confirmed", "Confirmed"
    REJECTED = "Rejected", "Rejected"
    CANCELLED = "Cancelled", "Cancelled"
    NO_SHOW = "No-show", "No-show"
    COMPLETED = "Completed", "Completed"


# Display-only refinements of a Completed record.
USED = "Used"
EXPIRED = "Expired"
COMPLETED_DISPLAY_STATUSES = frozenset({DonationStatus.COMPLETED.value, USED, EXPIRED})

RAW_STATUS_MAP = {
    "pending": DonationStatus.PENDING,
    "registered": DonationStatus.REGISTERED,
    "scheduled": DonationStatus.REGISTERED,
    "confirmed": DonationStatus.CONFIRMED,
    "rejected": DonationStatus.REJECTED,
    "cancelled": DonationStatus.CANCELLED,
    "no-show": DonationStatus.NO_SHOW,
    "completed": DonationStatus.COMPLETED,
}

STATUS_TRANSITIONS = {
    DonationStatus.PENDING: frozenset({
        DonationStatus.REGISTERED,
        DonationStatus.CONFIRMED,
        DonationStatus.REJECTED,
        DonationStatus.CANCELLED,
        DonationStatus.COMPLETED,
    }),
    DonationStatus.REGISTERED: frozenset({
        DonationStatus.CONFIRMED,
        DonationStatus.COMPLETED,
        DonationStatus.NO_SHOW,
    }),
    DonationStatus.CONFIRMED: frozenset({
        DonationStatus.COMPLETED,
        DonationStatus.NO_SHOW,
    }),
    DonationStatus.COMPLETED: frozenset(),
    DonationStatus.REJECTED: frozenset(),
    DonationStatus.CANCELLED: frozenset(),
    DonationStatus.NO_SHOW: frozenset(),
}


def map_raw_status(raw_status: Optional[str]) -> DonationStatus:
    if not raw_status:
        return DonationStatus.PENDING
    return RAW_STATUS_MAP.get(raw_status.strip().lower(), DonationStatus.PENDING)


def derive_status(raw_status: Optional[str], *, has_event: bool, has_matched_unit: bool) -> DonationStatus:
    # An appointment with a physical donation on file is completed whatever its raw status says.
    if not has_event and has_matched_unit:
        return DonationStatus.COMPLETED
    return map_raw_status(raw_status)


def refine_status(
    status: DonationStatus,
    storage_status: Optional[str],
    expiry_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> str:
    """Status as surfaced to the admin: Completed splits into Used / Expired."""

    if status != DonationStatus.COMPLETED or storage_status is None:
        return status.value
    if storage_status == "used":
        return USED
    if storage_status == "stored" and expiry_date is not None and expiry_date < (now or timezone.now()):
        return EXPIRED
    return status.value


def can_transition(current: DonationStatus, target: DonationStatus) -> bool:
    return target in STATUS_TRANSITIONS.get(current, frozenset())
