"""Typed failures raised by the donation lifecycle and inventory ledger services."""

from __future__ import annotations

from typing import Dict, Optional


class LifecycleError(Exception):
    """Base class for every failure reported to callers of the services."""

    code = "error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(LifecycleError):
    """Missing or malformed input, reported per field."""

    code = "validation"
    status_code = 400

    def __init__(self, fields: Dict[str, str], message: str = "Invalid input"):
        super().__init__(message)
        self.fields = dict(fields)

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["fields"] = self.fields
        return data


class PreconditionError(LifecycleError):
    """The record is in the wrong state for the requested action."""

    code = "precondition"
    status_code = 409


class NotFoundError(LifecycleError):
    """A referenced booking, unit or hospital does not exist."""

    code = "not_found"
    status_code = 404


class InsufficientStockError(LifecycleError):
    """Consuming would drive a stock entry below zero."""

    code = "insufficient_stock"
    status_code = 409

    def __init__(self, hospital_id, blood_type: str, available: int, requested: int):
        super().__init__(
            f"Insufficient {blood_type} stock at hospital {hospital_id}: "
            f"{available} available, {requested} requested"
        )
        self.hospital_id = hospital_id
        self.blood_type = blood_type
        self.available = available
        self.requested = requested


class ResolutionError(LifecycleError):
    """No tracked hospital could be determined for a booking."""

    code = "unresolved_hospital"
    status_code = 422

    def __init__(self, message: str = "", booking_id: Optional[int] = None):
        super().__init__(message)
        self.booking_id = booking_id
