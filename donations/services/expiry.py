"""Shelf-life classification for stored units."""

from __future__ import annotations

import math
from collections import OrderedDict
from datetime import datetime
from typing import Iterable, Optional

from django.db import models
from django.utils import timezone

from .dates import to_datetime

SECONDS_PER_DAY = 24 * 60 * 60


class ExpiryCategory(models.TextChoices):
    UNKNOWN = "Unknown", "Unknown"
    EXPIRED = "Expired", "Expired"
    CRITICAL = "Critical", "Critical (0-3 days)"
    URGENT = "Urgent", "Urgent (4-7 days)"
    WARNING = "Warning", "Warning (8-14 days)"
    GOOD = "Good", "Good (15+ days)"


def days_until_expiry(expiry, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days left, rounded up, so any part of a day counts as a day."""

    expiry = to_datetime(expiry)
    if expiry is None:
        return None
    now = now or timezone.now()
    return math.ceil((expiry - now).total_seconds() / SECONDS_PER_DAY)


def classify_expiry(expiry, now: Optional[datetime] = None) -> ExpiryCategory:
    days = days_until_expiry(expiry, now)
    if days is None:
        return ExpiryCategory.UNKNOWN
    if days < 0:
        return ExpiryCategory.EXPIRED
    if days <= 3:
        return ExpiryCategory.CRITICAL
    if days <= 7:
        return ExpiryCategory.URGENT
    if days <= 14:
        return ExpiryCategory.WARNING
    return ExpiryCategory.GOOD


def expiry_summary(units: Iterable, now: Optional[datetime] = None) -> dict:
    """Count stored units per expiry category."""

    now = now or timezone.now()
    summary = OrderedDict((category.value.lower(), 0) for category in ExpiryCategory)
    total = 0
    for unit in units:
        if unit.storage_status != "stored":
            continue
        total += 1
        summary[classify_expiry(unit.expiry_date, now).value.lower()] += 1
    summary["total"] = total
    return summary
