"""Canonical donation records derived from bookings and units.

A ``DonationRecord`` is never stored. Every read re-projects it from the
current booking, its matched unit (if any) and the resolved hospital, so the
result is deterministic for a given snapshot of the store.
"""

from __future__ import annotations

import logging
from collections import Counter, OrderedDict, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from django.utils import timezone

from donationledger import errors
from donations.models import Booking, DonorProfile, Unit
from inventory.models import BLOOD_TYPES, Hospital
from . import expiry
from .dates import local_day
from .hospitals import HospitalResolver
from .matcher import match_unit
from .status import COMPLETED_DISPLAY_STATUSES, DonationStatus, derive_status, refine_status

logger = logging.getLogger(__name__)

SOURCE_EVENT = "event_booking"
SOURCE_APPOINTMENT = "appointment_booking"


@dataclass(frozen=True)
class UnitDetail:
    unit_id: int
    serial_number: str
    amount_ml: int
    blood_type: str
    donation_date: Optional[datetime]
    expiry_date: Optional[datetime]
    storage_status: str
    used_at: Optional[datetime]
    used_hospital_id: Optional[int]
    expiry_category: str


@dataclass(frozen=True)
class EventInfo:
    event_id: Optional[int]
    title: str
    location: str
    time: str
    confirmation_code: str


@dataclass(frozen=True)
class DonationRecord:
    booking_id: int
    display_id: str
    donor_id: str
    donor_name: str
    donor_address: str
    donor_blood_type: str
    hospital_id: int
    hospital_name: str
    status: DonationStatus
    display_status: str
    source: str
    raw_date: Optional[date]
    effective_date: datetime
    event: EventInfo
    unit: Optional[UnitDetail] = None

    @property
    def is_completed(self) -> bool:
        return self.status == DonationStatus.COMPLETED

    def as_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class RecordFilter:
    """Optional filters for ``list_records``; blank fields do not filter."""

    status: Optional[str] = None
    month: Optional[int] = None
    year: Optional[int] = None
    search: Optional[str] = None
    hospital_id: Optional[int] = None
    source: Optional[str] = None

    def matches(self, record: DonationRecord) -> bool:
        if self.status and self.status.lower() != "all":
            if record.status.value.lower() != self.status.strip().lower():
                return False
        if self.month or self.year:
            if record.raw_date is None:
                return False
            if self.month and record.raw_date.month != int(self.month):
                return False
            if self.year and record.raw_date.year != int(self.year):
                return False
        if self.hospital_id and record.hospital_id != int(self.hospital_id):
            return False
        if self.source and record.source != self.source:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = [
                record.display_id,
                record.donor_name,
                record.donor_address,
                record.event.title,
                record.event.confirmation_code,
                record.unit.serial_number if record.unit else "",
                record.donor_id,
                record.hospital_name,
            ]
            if not any(needle in (value or "").lower() for value in haystack):
                return False
        return True


def _display_id(booking: Booking) -> str:
    if booking.is_walk_in_donor:
        return f"DON-WALK-IN-{booking.pk}"
    return f"DON-{booking.donor_id[:7].upper()}"


def _unit_detail(unit: Unit, now: datetime) -> UnitDetail:
    return UnitDetail(
        unit_id=unit.pk,
        serial_number=unit.serial_number,
        amount_ml=unit.amount_ml,
        blood_type=unit.blood_type or "Unknown",
        donation_date=unit.donation_date,
        expiry_date=unit.expiry_date,
        storage_status=unit.storage_status,
        used_at=unit.used_at,
        used_hospital_id=unit.used_hospital_id,
        expiry_category=expiry.classify_expiry(unit.expiry_date, now).value,
    )


def resolve_blood_type(booking: Booking, unit: Optional[Unit] = None, profile: Optional[DonorProfile] = None) -> str:
    """Best known blood type: the unit's, then the booking snapshot, then the donor profile."""

    for candidate in (
        unit.blood_type if unit else None,
        booking.donor_blood_type,
        profile.blood_group if profile else None,
    ):
        if candidate in BLOOD_TYPES:
            return candidate
    return "Unknown"


def project(
    booking: Booking,
    unit: Optional[Unit],
    hospital: Hospital,
    *,
    profile: Optional[DonorProfile] = None,
    now: Optional[datetime] = None,
) -> DonationRecord:
    """Merge one booking and its matched unit into a ``DonationRecord``."""

    now = now or timezone.now()
    has_event = booking.event_id is not None
    status = derive_status(booking.raw_status, has_event=has_event, has_matched_unit=unit is not None)
    display_status = refine_status(
        status,
        unit.storage_status if unit else None,
        unit.expiry_date if unit else None,
        now,
    )

    effective = booking.scheduled_date
    if status == DonationStatus.COMPLETED and unit is not None and unit.donation_date:
        effective = unit.donation_date

    event = booking.event if has_event else None
    return DonationRecord(
        booking_id=booking.pk,
        display_id=_display_id(booking),
        donor_id=booking.donor_id,
        donor_name=booking.donor_name or (profile.full_name if profile else "") or booking.donor_id or "Unknown Donor",
        donor_address=booking.donor_address or (profile.address if profile else "") or "Address not available",
        donor_blood_type=resolve_blood_type(booking, unit, profile),
        hospital_id=hospital.pk,
        hospital_name=hospital.name,
        status=status,
        display_status=display_status,
        source=SOURCE_EVENT if has_event else SOURCE_APPOINTMENT,
        raw_date=local_day(booking.scheduled_date),
        effective_date=effective,
        event=EventInfo(
            event_id=booking.event_id,
            title=booking.event_title or (event.title if event else "From Appointment"),
            location=booking.location or (event.location if event else "Hospital Appointment"),
            time=booking.selected_time or "Scheduled Time",
            confirmation_code=booking.confirmation_code,
        ),
        unit=_unit_detail(unit, now) if unit is not None else None,
    )


@dataclass
class _Snapshot:
    resolver: HospitalResolver
    units_by_id: Dict[int, Unit] = field(default_factory=dict)
    units_by_donor: Dict[str, List[Unit]] = field(default_factory=lambda: defaultdict(list))
    linked_ids: Dict[int, int] = field(default_factory=dict)
    # unit id -> booking id, for units handed out by the same-day fallback
    date_claims: Dict[int, int] = field(default_factory=dict)
    profiles: Dict[str, DonorProfile] = field(default_factory=dict)

    def add_units(self, units: Iterable[Unit]) -> None:
        for unit in units:
            self.units_by_id[unit.pk] = unit
            self.units_by_donor[unit.donor_id].append(unit)

    def claimed_for(self, booking: Booking) -> set:
        claims = list(self.linked_ids.items()) + list(self.date_claims.items())
        return {unit_id for unit_id, booking_id in claims if booking_id != booking.pk}

    def match(self, booking: Booking) -> Optional[Unit]:
        """Match in booking id order; a same-day unit goes to the first booking that claims it."""

        unit = match_unit(
            booking,
            self.units_by_donor.get(booking.donor_id, ()),
            units_by_id=self.units_by_id,
            claimed_ids=self.claimed_for(booking),
        )
        if unit is not None and unit.pk not in self.linked_ids:
            self.date_claims.setdefault(unit.pk, booking.pk)
        return unit

    def build(self, booking: Booking, now: datetime):
        unit = self.match(booking)
        hospital = self.resolver.resolve(booking)
        record = project(booking, unit, hospital, profile=self.profiles.get(booking.donor_id), now=now)
        return record, unit, hospital


def _bookings_queryset():
    return Booking.objects.select_related("event", "hospital").order_by("id")


def list_records(filters: Optional[RecordFilter] = None, now: Optional[datetime] = None) -> List[DonationRecord]:
    """Every resolvable booking as a canonical record, newest effective date first.

    Bookings with no resolvable hospital are left out, never raised.
    """

    now = now or timezone.now()
    bookings = list(_bookings_queryset())

    snapshot = _Snapshot(resolver=HospitalResolver())
    snapshot.add_units(Unit.objects.order_by("id"))
    snapshot.linked_ids = {b.unit_id: b.pk for b in bookings if b.unit_id}
    donor_ids = {b.donor_id for b in bookings}
    snapshot.profiles = {p.donor_id: p for p in DonorProfile.objects.filter(donor_id__in=donor_ids)}

    records: List[DonationRecord] = []
    matched_unit_ids = set()
    for booking in bookings:
        try:
            record, unit, _ = snapshot.build(booking, now)
        except errors.ResolutionError as exc:
            logger.debug("Omitting booking %s from records: %s", booking.pk, exc.message)
            continue
        if unit is not None:
            matched_unit_ids.add(unit.pk)
        records.append(record)

    records.sort(key=lambda r: (r.effective_date, r.booking_id), reverse=True)

    unlinked = len(snapshot.units_by_id) - len(matched_unit_ids)
    sources = Counter(r.source for r in records)
    logger.info(
        "Reconciled %s records (%s event, %s appointment); %s units not linked to any booking",
        len(records), sources.get(SOURCE_EVENT, 0), sources.get(SOURCE_APPOINTMENT, 0), unlinked,
    )

    if filters is not None:
        records = [r for r in records if filters.matches(r)]
    return records


def load_record(booking_id, now: Optional[datetime] = None, *, for_update: bool = False):
    """Project a single booking. Returns ``(record, booking, unit, hospital)``.

    Raises ``NotFoundError`` for an unknown booking and ``ResolutionError``
    when no tracked hospital applies.
    """

    now = now or timezone.now()
    queryset = _bookings_queryset()
    if for_update:
        queryset = queryset.select_for_update(of=("self",))
    try:
        booking = queryset.get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise errors.NotFoundError(f"Booking {booking_id} not found")

    snapshot = _Snapshot(resolver=HospitalResolver())
    donor_units = list(Unit.objects.filter(donor_id=booking.donor_id).order_by("id"))
    snapshot.add_units(donor_units)
    if booking.unit_id and booking.unit_id not in snapshot.units_by_id:
        snapshot.add_units(Unit.objects.filter(pk=booking.unit_id))
    snapshot.linked_ids = dict(
        Booking.objects.filter(unit_id__in=list(snapshot.units_by_id))
        .values_list("unit_id", "pk")
    )
    snapshot.profiles = {p.donor_id: p for p in DonorProfile.objects.filter(donor_id=booking.donor_id)}
    if not booking.is_walk_in_donor:
        # Replay earlier bookings so same-day claims agree with list_records.
        earlier = Booking.objects.filter(donor_id=booking.donor_id, pk__lt=booking.pk, unit__isnull=True)
        for other in earlier.order_by("id"):
            snapshot.match(other)

    record, unit, hospital = snapshot.build(booking, now)
    return record, booking, unit, hospital


def get_record(booking_id, now: Optional[datetime] = None) -> DonationRecord:
    return load_record(booking_id, now)[0]


def record_stats(records: Sequence[DonationRecord]) -> Dict[str, int]:
    """Counts per status as shown to the admin; Used and Expired count as completed."""

    stats = OrderedDict(
        total=len(records),
        completed=0,
        registered=0,
        confirmed=0,
        pending=0,
        rejected=0,
        cancelled=0,
        noshow=0,
    )
    for record in records:
        shown = record.display_status
        if shown in COMPLETED_DISPLAY_STATUSES:
            stats["completed"] += 1
        elif shown == DonationStatus.NO_SHOW:
            stats["noshow"] += 1
        else:
            key = shown.lower()
            stats[key if key in stats else "pending"] += 1
    return stats


def can_mark_as_used(record: DonationRecord, now: Optional[datetime] = None) -> bool:
    return not mark_used_blockers(record, now)


def mark_used_blockers(record: DonationRecord, now: Optional[datetime] = None) -> List[str]:
    """Reasons a record cannot be marked used; empty when it can."""

    now = now or timezone.now()
    blockers: List[str] = []
    if record.status != DonationStatus.COMPLETED:
        blockers.append(f"Record is {record.status.value}, not Completed")
    if record.unit is None:
        blockers.append("No donation unit is attached to this record")
        return blockers
    if record.unit.storage_status != Unit.StorageStatus.STORED:
        blockers.append(f"Unit is {record.unit.storage_status}, not stored")
    if record.unit.expiry_date is not None and record.unit.expiry_date < now:
        blockers.append("Unit has expired")
    if record.donor_blood_type not in BLOOD_TYPES:
        blockers.append("Blood type is unknown")
    return blockers
