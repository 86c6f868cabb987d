import logging

from celery import shared_task
from django.utils import timezone

from donations.models import Unit
from donations.services.expiry import ExpiryCategory, classify_expiry
from inventory.services import ledger


logger = logging.getLogger(__name__)

ALERT_CATEGORIES = (ExpiryCategory.CRITICAL, ExpiryCategory.EXPIRED)


@shared_task
def sweep_stock_alerts() -> dict:
    """Log LOW stock entries and stored units that are about to expire or already have."""

    now = timezone.now()

    low_entries = ledger.low_stock_entries()
    for entry in low_entries:
        logger.warning(
            "Low stock at %s: %s has %s units (low threshold %s)",
            entry.hospital.name, entry.blood_type, entry.quantity, entry.threshold_low,
        )

    expiring = 0
    expired = 0
    stored = Unit.objects.filter(storage_status=Unit.StorageStatus.STORED, expiry_date__isnull=False)
    for unit in stored.select_related('hospital').order_by('expiry_date', 'id'):
        category = classify_expiry(unit.expiry_date, now)
        if category not in ALERT_CATEGORIES:
            continue
        if category == ExpiryCategory.EXPIRED:
            expired += 1
        else:
            expiring += 1
        logger.warning(
            "Unit %s (%s) at %s is %s, expiry %s",
            unit.serial_number, unit.blood_type or 'Unknown',
            unit.hospital.name if unit.hospital else 'unknown hospital',
            category.value, unit.expiry_date.isoformat(),
        )

    summary = {'low_stock': len(low_entries), 'critical_units': expiring, 'expired_units': expired}
    logger.info("Stock alert sweep finished: %s", summary)
    return summary
