import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from donations.models import Booking, DonorProfile, Event, Unit
from donations.services import normalization
from inventory.models import BLOOD_TYPES, Hospital, StockEntry

COLLECTION_ALIASES = {
    "hospitals": ("hospitals",),
    "events": ("blood_drive_events", "events"),
    "profiles": ("donor_profiles", "profiles"),
    "units": ("donations", "units"),
    "bookings": ("slot_bookings", "bookings"),
}


def _documents(export, key):
    """Yield ``(doc_id, doc)`` pairs; a collection may be a list or an id-keyed mapping."""

    for name in COLLECTION_ALIASES[key]:
        collection = export.get(name)
        if not collection:
            continue
        if isinstance(collection, dict):
            for doc_id, doc in collection.items():
                yield str(doc_id), doc
        else:
            for doc in collection:
                yield str(doc.get("id", "")) or None, doc


class Command(BaseCommand):
    help = (
        "Import a JSON export of the legacy document store (hospitals, events, donor profiles, "
        "donations and slot bookings). Re-running with the same export updates rows in place."
    )

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the JSON export")
        parser.add_argument(
            "--skip-stock",
            action="store_true",
            help="Do not import the bloodStock counters embedded in hospital documents",
        )

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.exists():
            raise CommandError(f"Export file not found: {path}")
        try:
            with path.open(encoding="utf-8") as handle:
                export = json.load(handle)
        except ValueError as exc:
            raise CommandError(f"Export file is not valid JSON: {exc}")
        if not isinstance(export, dict):
            raise CommandError("Export must be a JSON object keyed by collection name")

        self.counts = {"hospitals": 0, "stock": 0, "events": 0, "profiles": 0, "units": 0, "bookings": 0, "skipped": 0}
        with transaction.atomic():
            hospitals = self._import_hospitals(export, with_stock=not options["skip_stock"])
            events = self._import_events(export, hospitals)
            self._import_profiles(export)
            units = self._import_units(export, hospitals)
            self._import_bookings(export, hospitals, events, units)

        summary = ", ".join(f"{count} {name}" for name, count in self.counts.items())
        self.stdout.write(self.style.SUCCESS(f"Import complete: {summary}."))

    # ------------------------------------------------------------------
    def _import_hospitals(self, export, with_stock):
        by_external_id = {}
        for doc_id, doc in _documents(export, "hospitals"):
            fields = normalization.normalize_hospital_document(doc, doc_id)
            external_id = fields.pop("external_id")
            if not external_id:
                self.counts["skipped"] += 1
                continue
            hospital, _ = Hospital.objects.update_or_create(external_id=external_id, defaults=fields)
            by_external_id[external_id] = hospital
            self.counts["hospitals"] += 1

            if with_stock:
                for blood_type, stock_doc in (doc.get("bloodStock") or {}).items():
                    stock = normalization.normalize_stock_document(stock_doc, blood_type)
                    if stock["blood_type"] not in BLOOD_TYPES:
                        self.stdout.write(self.style.WARNING(
                            f"Skipping stock for unknown blood type '{blood_type}' at {hospital.name}"
                        ))
                        continue
                    StockEntry.objects.update_or_create(
                        hospital=hospital,
                        blood_type=stock.pop("blood_type"),
                        defaults=stock,
                    )
                    self.counts["stock"] += 1
        return by_external_id

    def _import_events(self, export, hospitals):
        by_external_id = {}
        for doc_id, doc in _documents(export, "events"):
            fields = normalization.normalize_event_document(doc, doc_id)
            external_id = fields.pop("external_id")
            hospital_ref = fields.pop("assigned_hospital_external_id")
            if not external_id:
                self.counts["skipped"] += 1
                continue
            fields["assigned_hospital"] = self._hospital(hospitals, hospital_ref)
            event, _ = Event.objects.update_or_create(external_id=external_id, defaults=fields)
            by_external_id[external_id] = event
            self.counts["events"] += 1
        return by_external_id

    def _import_profiles(self, export):
        for doc_id, doc in _documents(export, "profiles"):
            fields = normalization.normalize_donor_profile_document(doc, doc_id)
            donor_id = fields.pop("donor_id")
            if not donor_id:
                self.counts["skipped"] += 1
                continue
            DonorProfile.objects.update_or_create(donor_id=donor_id, defaults=fields)
            self.counts["profiles"] += 1

    def _import_units(self, export, hospitals):
        by_external_id = {}
        for doc_id, doc in _documents(export, "units"):
            fields = normalization.normalize_unit_document(doc, doc_id)
            external_id = fields.pop("external_id")
            hospital_ref = fields.pop("hospital_external_id")
            used_hospital_ref = fields.pop("used_hospital_external_id")
            if not external_id or fields["donation_date"] is None:
                self.counts["skipped"] += 1
                continue
            fields["hospital"] = self._hospital(hospitals, hospital_ref)
            fields["used_hospital"] = self._hospital(hospitals, used_hospital_ref)
            unit, _ = Unit.objects.update_or_create(external_id=external_id, defaults=fields)
            by_external_id[external_id] = unit
            self.counts["units"] += 1
        return by_external_id

    def _import_bookings(self, export, hospitals, events, units):
        for doc_id, doc in _documents(export, "bookings"):
            fields = normalization.normalize_booking_document(doc, doc_id)
            external_id = fields.pop("external_id")
            event_ref = fields.pop("event_external_id")
            unit_ref = fields.pop("unit_external_id")
            hospital_ref = fields.pop("hospital_external_id")
            if not external_id or fields["scheduled_date"] is None:
                self.counts["skipped"] += 1
                continue
            fields["event"] = events.get(event_ref) or (Event.objects.filter(external_id=event_ref).first() if event_ref else None)
            fields["unit"] = units.get(unit_ref) or (Unit.objects.filter(external_id=unit_ref).first() if unit_ref else None)
            fields["hospital"] = self._hospital(hospitals, hospital_ref)
            Booking.objects.update_or_create(external_id=external_id, defaults=fields)
            self.counts["bookings"] += 1

    def _hospital(self, hospitals, external_id):
        if not external_id:
            return None
        if external_id not in hospitals:
            hospitals[external_id] = Hospital.objects.filter(external_id=external_id).first()
        return hospitals[external_id]
