from django.conf import settings
from django.db import models
from django.utils import timezone

BLOOD_TYPES = ["O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"]
BLOOD_TYPE_CHOICES = [(t, t) for t in BLOOD_TYPES]


def default_thresholds() -> dict:
    configured = getattr(settings, "DONATION_DEFAULT_THRESHOLDS", None) or {}
    thresholds = {"low": 10, "medium": 30, "high": 50}
    thresholds.update({k: int(v) for k, v in configured.items() if k in thresholds})
    return thresholds


class Hospital(models.Model):
    name = models.CharField(max_length=160)
    # Identifier in the upstream document store, kept for idempotent imports.
    external_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    # Hospitals outside the tracked set can still be referenced by events.
    is_tracked = models.BooleanField(default=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return self.name


class StockEntry(models.Model):
    class Level(models.TextChoices):
        LOW = "LOW", "Low"
        MEDIUM = "MEDIUM", "Medium"
        HIGH = "HIGH", "High"

    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='stock_entries')
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    quantity = models.PositiveIntegerField(default=0)
    threshold_low = models.PositiveIntegerField(default=10)
    threshold_medium = models.PositiveIntegerField(default=30)
    threshold_high = models.PositiveIntegerField(default=50)
    last_updated = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['hospital_id', 'blood_type']
        verbose_name = "Stock Entry"
        verbose_name_plural = "Stock Entries"
        constraints = [
            models.UniqueConstraint(fields=['hospital', 'blood_type'], name='unique_stock_per_hospital_type'),
            models.CheckConstraint(condition=models.Q(quantity__gte=0), name='stock_quantity_non_negative'),
        ]

    def __str__(self):
        return f"{self.hospital} - {self.blood_type}: {self.quantity}"

    @property
    def thresholds(self) -> dict:
        return {
            "low": self.threshold_low,
            "medium": self.threshold_medium,
            "high": self.threshold_high,
        }

    @property
    def level(self) -> str:
        from inventory.services.ledger import derive_level

        return derive_level(self)
