"""Per-hospital, per-blood-type stock counters.

Every mutation is a single read-modify-write against one ``StockEntry`` row,
executed inside ``transaction.atomic``. The row is locked with
``select_for_update`` where the backend supports it and the quantity change
itself is a conditional ``UPDATE`` built on ``F`` expressions, so concurrent
callers can never lose an update or drive a counter below zero.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Union

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from donationledger import errors
from inventory.models import BLOOD_TYPES, Hospital, StockEntry, default_thresholds

logger = logging.getLogger(__name__)

HospitalRef = Union[Hospital, int, str]


def _get_hospital(hospital: HospitalRef) -> Hospital:
	if isinstance(hospital, Hospital):
		return hospital
	try:
		return Hospital.objects.get(pk=hospital)
	except (Hospital.DoesNotExist, ValueError, TypeError):
		raise errors.NotFoundError(f"Hospital {hospital} not found")


def _check_amount(n) -> int:
	if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
		raise errors.ValidationError({"quantity": "Quantity must be a positive whole number"})
	return n


def _check_blood_type(blood_type: str) -> str:
	if blood_type not in BLOOD_TYPES:
		raise errors.ValidationError({"blood_type": f"Unknown blood type '{blood_type}'"})
	return blood_type


def _locked_entry(hospital: Hospital, blood_type: str) -> StockEntry:
	"""Materialize the entry if absent, then lock it. Must run inside ``atomic``."""

	thresholds = default_thresholds()
	StockEntry.objects.get_or_create(
		hospital=hospital,
		blood_type=blood_type,
		defaults={
			"quantity": 0,
			"threshold_low": thresholds["low"],
			"threshold_medium": thresholds["medium"],
			"threshold_high": thresholds["high"],
		},
	)
	return StockEntry.objects.select_for_update().get(hospital=hospital, blood_type=blood_type)


def issue(hospital: HospitalRef, blood_type: str, n: int = 1) -> StockEntry:
	"""Add ``n`` units to the (hospital, blood type) counter."""

	hospital = _get_hospital(hospital)
	_check_blood_type(blood_type)
	_check_amount(n)

	with transaction.atomic():
		entry = _locked_entry(hospital, blood_type)
		old_quantity = entry.quantity
		StockEntry.objects.filter(pk=entry.pk).update(
			quantity=F("quantity") + n,
			last_updated=timezone.now(),
		)
		entry.refresh_from_db()

	logger.info(
		"Stock issued at hospital %s: %s %s -> %s (+%s)",
		hospital.pk, blood_type, old_quantity, entry.quantity, n,
	)
	return entry


def consume(hospital: HospitalRef, blood_type: str, n: int = 1) -> StockEntry:
	"""Remove ``n`` units, failing fast with ``InsufficientStockError`` instead of going negative."""

	hospital = _get_hospital(hospital)
	_check_blood_type(blood_type)
	_check_amount(n)

	with transaction.atomic():
		entry = _locked_entry(hospital, blood_type)
		updated = StockEntry.objects.filter(pk=entry.pk, quantity__gte=n).update(
			quantity=F("quantity") - n,
			last_updated=timezone.now(),
		)
		if not updated:
			entry.refresh_from_db()
			logger.warning(
				"Insufficient %s stock at hospital %s: %s available, %s requested",
				blood_type, hospital.pk, entry.quantity, n,
			)
			# Raising inside atomic also discards a freshly materialized entry.
			raise errors.InsufficientStockError(hospital.pk, blood_type, entry.quantity, n)
		old_quantity = entry.quantity
		entry.refresh_from_db()

	logger.info(
		"Stock consumed at hospital %s: %s %s -> %s (-%s)",
		hospital.pk, blood_type, old_quantity, entry.quantity, n,
	)
	return entry


def transfer(hospital: HospitalRef, old_type: str, new_type: str, n: int = 1):
	"""Move ``n`` units between blood types at one hospital.

	The consume half runs first; if it fails the issue half never runs and the
	whole transfer is rolled back.
	"""

	hospital = _get_hospital(hospital)
	_check_blood_type(old_type)
	_check_blood_type(new_type)
	_check_amount(n)
	if old_type == new_type:
		entry = StockEntry.objects.filter(hospital=hospital, blood_type=old_type).first()
		return entry, entry

	with transaction.atomic():
		source = consume(hospital, old_type, n)
		target = issue(hospital, new_type, n)
	return source, target


def derive_level(entry) -> str:
	"""Classify a stock entry (or an absent one, as ``None``) as LOW / MEDIUM / HIGH."""

	if entry is None:
		quantity = 0
		thresholds = default_thresholds()
	else:
		quantity = entry.quantity
		thresholds = entry.thresholds

	if quantity <= thresholds["low"]:
		return StockEntry.Level.LOW
	if quantity <= thresholds["medium"]:
		return StockEntry.Level.MEDIUM
	return StockEntry.Level.HIGH


def get_stock_summary(hospital: HospitalRef) -> Dict[str, dict]:
	"""Quantity and level for every blood type at a hospital, without materializing entries."""

	hospital = _get_hospital(hospital)
	entries = {e.blood_type: e for e in StockEntry.objects.filter(hospital=hospital)}

	summary: Dict[str, dict] = OrderedDict()
	for blood_type in BLOOD_TYPES:
		entry = entries.get(blood_type)
		summary[blood_type] = {
			"quantity": entry.quantity if entry else 0,
			"level": str(derive_level(entry)),
		}
	return summary


def low_stock_entries():
	"""Materialized entries currently at LOW level."""

	return [
		entry
		for entry in StockEntry.objects.select_related("hospital").order_by("hospital_id", "blood_type")
		if derive_level(entry) == StockEntry.Level.LOW
	]
