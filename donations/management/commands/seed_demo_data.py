import random
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from faker import Faker

from donations.models import Booking, DonorProfile, Event, Unit
from donations.services import transitions
from inventory.models import BLOOD_TYPES, Hospital, StockEntry
from inventory.services import ledger

DONATION_AMOUNTS = [350, 400, 450, 450, 450, 500]
BOOKING_STATUSES = ["pending", "registered", "confirmed", "rejected", "cancelled", "no-show", "completed"]
STATUS_WEIGHTS = [2, 2, 2, 1, 1, 1, 6]
TIME_SLOTS = ["09:00 AM", "10:30 AM", "12:00 PM", "02:00 PM", "03:30 PM"]


class Command(BaseCommand):
    help = "Generate demo hospitals, events, donors, bookings and donation units; completed bookings issue stock"

    def add_arguments(self, parser):
        parser.add_argument("--hospitals", type=int, default=3, help="Number of tracked hospitals (default 3)")
        parser.add_argument("--donors", type=int, help="Number of donors to create (default random between 30-50)")
        parser.add_argument("--bookings", type=int, help="Number of bookings to create (default 3 per donor)")
        parser.add_argument("--seed", type=int, help="Random seed for deterministic runs")
        parser.add_argument("--purge", action="store_true", help="Delete existing bookings, units, events and stock before seeding")

    def handle(self, *args, **options):
        faker = Faker()
        if options.get("seed") is not None:
            Faker.seed(options["seed"])
            random.seed(options["seed"])

        hospital_target = max(1, options.get("hospitals") or 3)
        donor_target = options.get("donors") or random.randint(30, 50)
        booking_target = options.get("bookings") or donor_target * 3

        if options.get("purge"):
            self._purge_existing()

        now = timezone.now()
        with transaction.atomic():
            hospitals = self._create_hospitals(hospital_target, faker)
            events = self._create_events(hospitals, faker, now)
            donors = self._create_donors(donor_target, faker)
            completed = self._create_bookings(booking_target, donors, hospitals, events, faker, now)
            used = self._use_some_units(completed, now)

        summary = (
            f"Seed complete: {len(hospitals)} hospitals, {len(events)} events, {len(donors)} donors, "
            f"{booking_target} bookings ({len(completed)} completed, {used} units used)."
        )
        self.stdout.write(self.style.SUCCESS(summary))

    # ------------------------------------------------------------------
    def _purge_existing(self):
        self.stdout.write("Purging existing bookings, units, events and stock…")
        Booking.objects.all().delete()
        Unit.objects.all().delete()
        Event.objects.all().delete()
        StockEntry.objects.all().delete()
        self.stdout.write(self.style.WARNING("Existing demo records removed."))

    def _create_hospitals(self, count, faker):
        hospitals = []
        for _ in range(count):
            hospitals.append(Hospital.objects.create(name=f"{faker.city()} General Hospital"))
        # One partner hospital outside the tracked set; its events never show up in records.
        Hospital.objects.create(name=f"{faker.city()} Private Clinic", is_tracked=False)
        return hospitals

    def _create_events(self, hospitals, faker, now):
        events = []
        for _ in range(max(2, len(hospitals))):
            hospital = random.choice(hospitals)
            events.append(
                Event.objects.create(
                    title=f"{faker.city()} Blood Drive",
                    location=faker.street_address(),
                    event_date=now + timedelta(days=random.randint(-60, 30)),
                    assigned_hospital=hospital,
                    assigned_hospital_name=hospital.name,
                )
            )
        return events

    def _create_donors(self, count, faker):
        donors = []
        for _ in range(count):
            donors.append(
                DonorProfile.objects.create(
                    donor_id=faker.unique.bothify(text="????????##??").lower(),
                    full_name=faker.name(),
                    blood_group=random.choice(BLOOD_TYPES),
                    address=faker.address().replace("\n", ", "),
                    email=faker.unique.email(),
                    phone=faker.msisdn()[:12],
                )
            )
        return donors

    def _create_bookings(self, count, donors, hospitals, events, faker, now):
        shelf_life = int(getattr(settings, "DONATION_DEFAULT_SHELF_LIFE_DAYS", 35))
        completed = []
        for _ in range(count):
            donor = random.choice(donors)
            event = random.choice(events) if random.random() < 0.4 else None
            hospital = event.assigned_hospital if event else random.choice(hospitals)
            raw_status = random.choices(BOOKING_STATUSES, weights=STATUS_WEIGHTS)[0]
            if event:
                scheduled = event.event_date
            else:
                scheduled = now - timedelta(days=random.randint(0, 40), hours=random.randint(0, 8))
            # Completions cannot be in the future.
            if raw_status == "completed" and scheduled > now:
                scheduled = now - timedelta(days=random.randint(0, 10))

            booking = Booking.objects.create(
                donor_id=donor.donor_id,
                event=event,
                scheduled_date=scheduled,
                raw_status=raw_status,
                hospital_name="" if event else hospital.name,
                location=event.location if event else faker.street_address(),
                entry_type=Booking.EntryType.EVENT if event else Booking.EntryType.APPOINTMENT,
                event_title=event.title if event else "",
                selected_time=random.choice(TIME_SLOTS),
                confirmation_code=faker.bothify(text="CONF-#####").upper(),
                donor_name=donor.full_name,
                donor_address=donor.address,
                donor_blood_type=donor.blood_group,
                reject_reason="Low hemoglobin" if raw_status == "rejected" else "",
                created_by="seed",
            )
            if raw_status != "completed":
                continue

            unit = Unit.objects.create(
                donor_id=donor.donor_id,
                donor_name=donor.full_name,
                blood_type=donor.blood_group,
                serial_number=faker.unique.bothify(text="DON-########-?????").upper(),
                amount_ml=random.choice(DONATION_AMOUNTS),
                donation_date=scheduled,
                expiry_date=scheduled + timedelta(days=shelf_life),
                hospital=hospital,
                created_by="seed",
            )
            booking.unit = unit
            booking.save(update_fields=["unit"])
            ledger.issue(hospital, unit.blood_type, 1)
            completed.append(booking)
        return completed

    def _use_some_units(self, completed, now):
        used = 0
        for booking in random.sample(completed, k=len(completed) // 4):
            if booking.unit.expiry_date <= now:
                continue
            transitions.transition(booking.pk, "markUsed", now=now)
            used += 1
        return used
