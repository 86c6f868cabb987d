"""Admin actions on donation records.

``transition`` is the only way bookings, units and stock counters change
together. Each action runs inside one ``transaction.atomic`` block; any
validation, precondition or ledger failure raises and rolls back every write
made so far.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from donationledger import errors
from donations.models import Booking, DonorProfile, Unit, walk_in_donor_id
from inventory.models import BLOOD_TYPES, Hospital
from inventory.services import ledger
from . import reconciler
from .dates import to_datetime
from .hospitals import HospitalResolver
from .status import DonationStatus, can_transition, map_raw_status

logger = logging.getLogger(__name__)

DEFAULT_AMOUNT_ML = 450
NO_REASON = "No reason provided"

# action -> (target status, raw status written, booking field holding the reason)
STATUS_ACTIONS = {
    "register": (DonationStatus.REGISTERED, Booking.RawStatus.REGISTERED, None),
    "confirm": (DonationStatus.CONFIRMED, Booking.RawStatus.CONFIRMED, None),
    "reject": (DonationStatus.REJECTED, Booking.RawStatus.REJECTED, "reject_reason"),
    "cancel": (DonationStatus.CANCELLED, Booking.RawStatus.CANCELLED, "cancel_reason"),
    "markNoShow": (DonationStatus.NO_SHOW, Booking.RawStatus.NO_SHOW, "no_show_reason"),
}

BOOKING_EDIT_FIELDS = ("donor_name", "donor_address", "hospital_name", "location", "selected_time", "event_title", "notes")
UNIT_EDIT_FIELDS = ("serial_number", "amount_ml", "expiry_date", "blood_type")


class _Context:
    def __init__(self, record, booking, unit, hospital, payload, now):
        self.record = record
        self.booking = booking
        self.unit = unit
        self.hospital = hospital
        self.payload = payload
        self.now = now

    @property
    def stock_hospital(self) -> Hospital:
        # Stock moves where the unit was issued; older units may not record it.
        if self.unit is not None and self.unit.hospital_id:
            return self.unit.hospital
        return self.hospital


def _max_amount() -> int:
    return int(getattr(settings, "DONATION_MAX_AMOUNT_ML", 1000))


def _require_transition(record, target: DonationStatus) -> None:
    if not can_transition(record.status, target):
        raise errors.PreconditionError(
            f"Cannot move a {record.status.value} record to {target.value}"
        )


def _clean_serial(value, field_errors: Dict[str, str]) -> str:
    serial = str(value or "").strip()
    if not serial:
        field_errors["serial_number"] = "Serial number is required"
    return serial


def _clean_amount(value, field_errors: Dict[str, str]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        field_errors["amount_ml"] = "Amount donated is required"
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        field_errors["amount_ml"] = "Please enter a valid amount"
        return None
    if not math.isfinite(amount) or amount <= 0:
        field_errors["amount_ml"] = "Please enter a valid amount"
    elif amount > _max_amount():
        field_errors["amount_ml"] = f"Amount should not exceed {_max_amount()}ml"
    elif amount != int(amount):
        field_errors["amount_ml"] = "Amount must be a whole number of ml"
    else:
        return int(amount)
    return None


def _clean_expiry(value, now: datetime, field_errors: Dict[str, str], *, future: bool = True) -> Optional[datetime]:
    if value is None or value == "":
        field_errors["expiry_date"] = "Expiry date is required"
        return None
    expiry = to_datetime(value)
    if expiry is None:
        field_errors["expiry_date"] = "Expiry date is not a valid date"
        return None
    if future and expiry <= now:
        field_errors["expiry_date"] = "Expiry date must be in the future"
        return None
    return expiry


def _clean_blood_type(value, field_errors: Dict[str, str]) -> str:
    blood_type = str(value or "").strip().upper()
    if blood_type not in BLOOD_TYPES:
        field_errors["blood_type"] = "Blood type is unknown"
    return blood_type


def _create_unit(booking: Booking, hospital: Hospital, *, serial, amount, expiry, blood_type, donor_name, donation_date, donation_type="") -> Unit:
    unit = Unit.objects.create(
        donor_id=booking.donor_id,
        donor_name=donor_name,
        blood_type=blood_type,
        serial_number=serial,
        amount_ml=amount,
        donation_date=donation_date,
        expiry_date=expiry,
        storage_status=Unit.StorageStatus.STORED,
        hospital=hospital,
        donation_type=donation_type,
        created_by="admin",
    )
    ledger.issue(hospital, blood_type, 1)
    return unit


# ---------------------------------------------------------------------------
# Action handlers


def _status_action(action: str) -> Callable[[_Context], None]:
    target, raw_status, reason_field = STATUS_ACTIONS[action]

    def handler(ctx: _Context) -> None:
        _require_transition(ctx.record, target)
        ctx.booking.raw_status = raw_status
        update_fields = ["raw_status", "updated_at"]
        if reason_field:
            reason = str(ctx.payload.get("reason") or "").strip() or NO_REASON
            setattr(ctx.booking, reason_field, reason)
            update_fields.append(reason_field)
        ctx.booking.save(update_fields=update_fields)

    return handler


def _complete(ctx: _Context) -> None:
    _require_transition(ctx.record, DonationStatus.COMPLETED)
    if ctx.booking.unit_id:
        raise errors.PreconditionError(
            f"Booking {ctx.booking.pk} already has donation unit {ctx.booking.unit_id}"
        )
    if ctx.unit is not None:
        # Same-day unit is already on file and counted in stock; link it, issue nothing.
        ctx.booking.unit = ctx.unit
        ctx.booking.raw_status = Booking.RawStatus.COMPLETED
        ctx.booking.save(update_fields=["unit", "raw_status", "updated_at"])
        return

    payload = ctx.payload
    field_errors: Dict[str, str] = {}
    serial = _clean_serial(payload.get("serial_number"), field_errors)
    amount = _clean_amount(payload.get("amount_ml"), field_errors)
    expiry = _clean_expiry(payload.get("expiry_date"), ctx.now, field_errors)
    blood_type = _clean_blood_type(payload.get("blood_type") or ctx.record.donor_blood_type, field_errors)
    if field_errors:
        raise errors.ValidationError(field_errors)

    unit = _create_unit(
        ctx.booking,
        ctx.hospital,
        serial=serial,
        amount=amount,
        expiry=expiry,
        blood_type=blood_type,
        donor_name=ctx.record.donor_name,
        donation_date=ctx.now,
    )
    ctx.booking.unit = unit
    ctx.booking.raw_status = Booking.RawStatus.COMPLETED
    ctx.booking.save(update_fields=["unit", "raw_status", "updated_at"])


def _mark_used(ctx: _Context) -> None:
    blockers = reconciler.mark_used_blockers(ctx.record, ctx.now)
    if blockers:
        raise errors.PreconditionError("; ".join(blockers))

    unit = Unit.objects.select_for_update().get(pk=ctx.unit.pk)
    if unit.storage_status != Unit.StorageStatus.STORED:
        raise errors.PreconditionError(f"Unit is {unit.storage_status}, not stored")

    hospital = ctx.stock_hospital
    ledger.consume(hospital, ctx.record.donor_blood_type, 1)

    unit.storage_status = Unit.StorageStatus.USED
    unit.used_at = ctx.now
    unit.used_hospital = hospital
    unit.save(update_fields=["storage_status", "used_at", "used_hospital"])
    ctx.booking.save(update_fields=["updated_at"])


def _edit_metadata(ctx: _Context) -> None:
    payload = ctx.payload
    field_errors: Dict[str, str] = {}

    booking_updates = {}
    for name in BOOKING_EDIT_FIELDS:
        if name in payload:
            booking_updates[name] = str(payload[name] or "").strip()
    if "scheduled_date" in payload:
        scheduled = to_datetime(payload["scheduled_date"])
        if scheduled is None:
            field_errors["scheduled_date"] = "Scheduled date is not a valid date"
        booking_updates["scheduled_date"] = scheduled

    unit_updates = {}
    requested_unit_fields = [name for name in UNIT_EDIT_FIELDS if name in payload]
    if requested_unit_fields and ctx.unit is None:
        raise errors.PreconditionError("No donation unit is attached to this record")
    if "serial_number" in payload:
        unit_updates["serial_number"] = _clean_serial(payload["serial_number"], field_errors)
    if "amount_ml" in payload:
        unit_updates["amount_ml"] = _clean_amount(payload["amount_ml"], field_errors)
    if "expiry_date" in payload:
        unit_updates["expiry_date"] = _clean_expiry(payload["expiry_date"], ctx.now, field_errors, future=False)
    if "blood_type" in payload:
        unit_updates["blood_type"] = _clean_blood_type(payload["blood_type"], field_errors)

    if field_errors:
        raise errors.ValidationError(field_errors)
    if not booking_updates and not unit_updates:
        raise errors.ValidationError({"payload": "Nothing to update"})

    if unit_updates:
        unit = Unit.objects.select_for_update().get(pk=ctx.unit.pk)
        old_type = unit.blood_type
        new_type = unit_updates.get("blood_type", old_type)
        # Every stored unit is counted in stock, whatever its record's status.
        if (
            new_type != old_type
            and unit.storage_status == Unit.StorageStatus.STORED
            and old_type in BLOOD_TYPES
        ):
            ledger.transfer(ctx.stock_hospital, old_type, new_type, 1)
        for name, value in unit_updates.items():
            setattr(unit, name, value)
        unit.save(update_fields=list(unit_updates))

    for name, value in booking_updates.items():
        setattr(ctx.booking, name, value)
    ctx.booking.save(update_fields=list(booking_updates) + ["updated_at"])


def _delete(ctx: _Context) -> None:
    if ctx.record.status == DonationStatus.COMPLETED:
        raise errors.PreconditionError("Completed donations cannot be deleted")
    # Units are never deleted; a stored one stays on file and stays counted.
    ctx.booking.delete()


HANDLERS: Dict[str, Callable[[_Context], None]] = {
    "register": _status_action("register"),
    "confirm": _status_action("confirm"),
    "reject": _status_action("reject"),
    "cancel": _status_action("cancel"),
    "markNoShow": _status_action("markNoShow"),
    "complete": _complete,
    "markUsed": _mark_used,
    "editMetadata": _edit_metadata,
    "delete": _delete,
}

ACTIONS = tuple(HANDLERS)


def transition(booking_id, action: str, payload: Optional[dict] = None, now: Optional[datetime] = None):
    """Apply an admin action to a booking's donation record.

    Returns the re-projected ``DonationRecord``, or ``None`` after ``delete``.
    """

    handler = HANDLERS.get(action)
    if handler is None:
        raise errors.ValidationError({"action": f"Unsupported action '{action}'"})
    if payload is not None and not isinstance(payload, dict):
        raise errors.ValidationError({"payload": "Payload must be an object"})
    now = now or timezone.now()

    with transaction.atomic():
        record, booking, unit, hospital = reconciler.load_record(booking_id, now, for_update=True)
        handler(_Context(record, booking, unit, hospital, payload or {}, now))
        result = None if action == "delete" else reconciler.get_record(booking.pk, now)

    logger.info(
        "Booking %s: %s applied (%s -> %s)",
        booking_id, action, record.status.value, result.display_status if result else "deleted",
    )
    return result


def _confirmation_code(now: datetime) -> str:
    millis = str(int(now.timestamp() * 1000))
    return f"WALK-IN-{millis[-6:]}"


def _generated_serial(now: datetime) -> str:
    return f"DON-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:5].upper()}"


def create_walk_in(payload: dict, now: Optional[datetime] = None) -> reconciler.DonationRecord:
    """Record an admin-entered walk-in visit, optionally already completed."""

    payload = payload or {}
    now = now or timezone.now()
    field_errors: Dict[str, str] = {}

    donor_id = str(payload.get("donor_id") or "").strip() or walk_in_donor_id()
    profile = None
    if donor_id != walk_in_donor_id():
        profile = DonorProfile.objects.filter(donor_id=donor_id).first()

    name = str(payload.get("name") or "").strip() or (profile.full_name if profile else "")
    if not name:
        field_errors["name"] = "Name is required"
    visit = to_datetime(payload.get("date"))
    if visit is None:
        field_errors["date"] = "Date is required"

    status = map_raw_status(payload.get("status"))
    completed = status == DonationStatus.COMPLETED

    hospital_id = payload.get("hospital_id")
    hospital = None
    if hospital_id:
        try:
            hospital = Hospital.objects.filter(pk=int(hospital_id), is_tracked=True).first()
        except (TypeError, ValueError):
            hospital = None
        if hospital is None:
            raise errors.NotFoundError(f"Hospital {hospital_id} not found")

    blood_type = str(payload.get("blood_type") or "").strip().upper()
    if blood_type not in BLOOD_TYPES and profile and profile.blood_group:
        blood_type = profile.blood_group

    if completed and visit is not None:
        serial = _clean_serial(payload.get("serial_number") or _generated_serial(now), field_errors)
        amount = _clean_amount(payload.get("amount_ml") or DEFAULT_AMOUNT_ML, field_errors)
        shelf_life = int(getattr(settings, "DONATION_DEFAULT_SHELF_LIFE_DAYS", 35))
        expiry = _clean_expiry(payload.get("expiry_date") or visit + timedelta(days=shelf_life), now, field_errors)
        blood_type = _clean_blood_type(blood_type, field_errors)
    if field_errors:
        raise errors.ValidationError(field_errors)

    with transaction.atomic():
        booking = Booking(
            donor_id=donor_id,
            scheduled_date=visit,
            raw_status=status.value.lower(),
            hospital=hospital,
            location=str(payload.get("location") or "").strip() or "Walk-in Center",
            entry_type=Booking.EntryType.WALK_IN,
            event_title="Walk-in Donation",
            selected_time="N/A",
            confirmation_code=_confirmation_code(now),
            donor_name=name,
            donor_address=str(payload.get("address") or "").strip() or (profile.address if profile else "") or "Address not provided",
            donor_blood_type=blood_type if blood_type in BLOOD_TYPES else "",
            notes="Added as walk-in by administrator",
            created_by="Admin",
        )
        resolved = HospitalResolver().resolve(booking)
        booking.save()
        if completed:
            booking.unit = _create_unit(
                booking,
                resolved,
                serial=serial,
                amount=amount,
                expiry=expiry,
                blood_type=blood_type,
                donor_name=name,
                donation_date=visit,
                donation_type="walk_in",
            )
            booking.save(update_fields=["unit", "updated_at"])
        record = reconciler.get_record(booking.pk, now)

    logger.info("Walk-in booking %s recorded as %s at %s", booking.pk, record.status.value, resolved.name)
    return record
