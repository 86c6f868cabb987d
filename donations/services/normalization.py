"""Map historical document field spellings onto the canonical schema.

Exported documents from the old document store spell the same field several
ways (``bloodType`` / ``blood_type`` / ``blood_group`` and so on). These helpers
run once at the import boundary and return plain dicts keyed by model field
names; references to other documents are kept as external ids
(``*_external_id``) for the importer to resolve.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from donations.models import walk_in_donor_id
from inventory.models import BLOOD_TYPES
from .dates import to_datetime


def _first(doc: Mapping[str, Any], *names: str, default=None):
    for name in names:
        value = doc.get(name)
        if value is not None and value != "":
            return value
    return default


def _text(doc: Mapping[str, Any], *names: str, default: str = "") -> str:
    value = _first(doc, *names)
    if value is None:
        return default
    return str(value).strip()


def _ref(doc: Mapping[str, Any], *names: str) -> Optional[str]:
    value = _first(doc, *names)
    return str(value) if value is not None else None


def _blood_type(doc: Mapping[str, Any], *names: str) -> str:
    value = _text(doc, *names).upper()
    return value if value in BLOOD_TYPES else ""


def _amount(value) -> int:
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _storage_status(doc: Mapping[str, Any]) -> str:
    status = _text(doc, "status", "storage_status").lower()
    if doc.get("used") is True or status == "used":
        return "used"
    if status in ("stored", "rejected", "cancelled", "no-show"):
        return status
    return "stored"


def normalize_hospital_document(doc: Mapping[str, Any], doc_id: Optional[str] = None) -> dict:
    tracked = _first(doc, "isTracked", "is_tracked", "tracked", default=True)
    return {
        "external_id": str(doc_id or _first(doc, "id", default="")) or None,
        "name": _text(doc, "name", "hospitalName", "hospital_name"),
        "is_tracked": bool(tracked),
    }


def normalize_event_document(doc: Mapping[str, Any], doc_id: Optional[str] = None) -> dict:
    return {
        "external_id": str(doc_id or _first(doc, "id", default="")) or None,
        "title": _text(doc, "title", "eventTitle", "name"),
        "location": _text(doc, "location", "eventLocation", "venue"),
        "event_date": to_datetime(_first(doc, "startDate", "date", "eventDate", "start_date")),
        "assigned_hospital_external_id": _ref(
            doc, "assignedHospitalId", "hospitalId", "hospital_id", "assigned_hospital_id"
        ),
        "assigned_hospital_name": _text(doc, "assignedHospitalName", "hospitalName", "hospital_name"),
    }


def normalize_unit_document(doc: Mapping[str, Any], doc_id: Optional[str] = None) -> dict:
    """A ``donations`` document as ``Unit`` fields."""

    return {
        "external_id": str(doc_id or _first(doc, "id", default="")) or None,
        "donor_id": _text(doc, "donor_id", "userId", "donorId"),
        "donor_name": _text(doc, "donor_name", "donorName", "name"),
        "blood_type": _blood_type(doc, "blood_type", "bloodType", "blood_group"),
        "serial_number": _text(doc, "serial_number", "serialNumber", "serial_no"),
        "amount_ml": _amount(_first(doc, "amount_ml", "amountMl", "amount", default=0)),
        "donation_date": to_datetime(_first(doc, "donation_date", "donationDate", "created_at", "createdAt")),
        "expiry_date": to_datetime(_first(doc, "expiry_date", "expiryDate")),
        "storage_status": _storage_status(doc),
        "hospital_external_id": _ref(doc, "hospitalId", "hospital_id"),
        "used_at": to_datetime(_first(doc, "used_at", "usedAt")),
        "used_hospital_external_id": _ref(doc, "used_hospital_id", "usedHospitalId"),
        "donation_type": _text(doc, "donation_type", "donationType"),
        "created_by": _text(doc, "created_by", "createdBy", "collected_by"),
    }


def normalize_booking_document(doc: Mapping[str, Any], doc_id: Optional[str] = None) -> dict:
    """A ``slot_bookings`` document as ``Booking`` fields."""

    # bookingDate is the day the donor chose; bookedAt is when the slot was taken.
    scheduled = to_datetime(_first(doc, "bookingDate", "booking_date"))
    if scheduled is None:
        scheduled = to_datetime(_first(doc, "bookedAt", "booked_at", "createdAt"))

    entry_type = _text(doc, "entryType", "entry_type").lower()
    event_ref = _ref(doc, "eventId", "event_id")
    if not entry_type:
        entry_type = "event" if event_ref else "appointment"

    return {
        "external_id": str(doc_id or _first(doc, "id", default="")) or None,
        "donor_id": _text(doc, "userId", "donor_id", "donorId", default=walk_in_donor_id()),
        "event_external_id": event_ref,
        "unit_external_id": _ref(doc, "donationId", "donation_id"),
        "hospital_external_id": _ref(doc, "hospitalId", "hospital_id"),
        "scheduled_date": scheduled,
        "raw_status": _text(doc, "bookingStatus", "status", default="pending").lower(),
        "hospital_name": _text(doc, "hospitalName", "hospital_name"),
        "location": _text(doc, "eventLocation", "location"),
        "entry_type": entry_type,
        "event_title": _text(doc, "eventTitle", "event_title"),
        "selected_time": _text(doc, "selectedTime", "selected_time"),
        "confirmation_code": _text(doc, "confirmationCode", "confirmation_code"),
        "donor_name": _text(doc, "donorName", "userName", "donor_name"),
        "donor_address": _text(doc, "donorAddress", "userAddress", "address"),
        "donor_blood_type": _blood_type(doc, "donorBloodType", "blood_type", "bloodType", "blood_group"),
        "reject_reason": _text(doc, "rejectReason", "reject_reason"),
        "cancel_reason": _text(doc, "cancelReason", "cancel_reason"),
        "no_show_reason": _text(doc, "noShowReason", "no_show_reason"),
        "notes": _text(doc, "notes"),
        "created_by": _text(doc, "createdBy", "created_by"),
    }


def normalize_stock_document(doc: Mapping[str, Any], blood_type: Optional[str] = None) -> dict:
    """A hospital ``bloodStock`` document (keyed by blood type) as ``StockEntry`` fields."""

    thresholds = doc.get("thresholds") or {}
    return {
        "blood_type": (blood_type or _text(doc, "bloodType", "blood_type")).upper(),
        "quantity": _amount(_first(doc, "quantity", default=0)),
        "threshold_low": _amount(thresholds.get("low", 10)),
        "threshold_medium": _amount(thresholds.get("medium", 30)),
        "threshold_high": _amount(thresholds.get("high", 50)),
    }


def normalize_donor_profile_document(doc: Mapping[str, Any], doc_id: Optional[str] = None) -> dict:
    return {
        "donor_id": _text(doc, "user_id", "userId", "donor_id", default=str(doc_id or "")),
        "full_name": _text(doc, "full_name", "fullName", "name"),
        "blood_group": _blood_type(doc, "blood_group", "bloodType", "blood_type"),
        "address": _text(doc, "address"),
        "email": _text(doc, "email"),
        "phone": _text(doc, "phone", "phoneNumber", "mobile"),
    }
