"""Work out which tracked hospital a booking belongs to."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from donationledger import errors
from donations.models import Booking
from inventory.models import Hospital

logger = logging.getLogger(__name__)


MIN_PARTIAL_WORDS = 2


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def _contains_words(words: List[str], part: List[str]) -> bool:
    size = len(part)
    return any(words[i:i + size] == part for i in range(len(words) - size + 1))


def _names_match(hospital_name: str, hint: str) -> bool:
    """Equal names, or one name appearing word for word inside the other.

    A partial match needs at least two words, so a lone "City" or "General"
    never picks a hospital.
    """

    left, right = _words(hospital_name), _words(hint)
    if not left or not right:
        return False
    if left == right:
        return True
    shorter, longer = sorted((left, right), key=len)
    return len(shorter) >= MIN_PARTIAL_WORDS and _contains_words(longer, shorter)


class HospitalResolver:
    """Resolves bookings against a fixed snapshot of tracked hospitals.

    Order: the booking's own hospital, then the event's assigned hospital (an
    untracked one rejects the booking), then a whole-word name match on the
    booking's hospital/location text, then the first tracked hospital.
    """

    def __init__(self, hospitals: Optional[Iterable[Hospital]] = None):
        if hospitals is None:
            hospitals = Hospital.objects.filter(is_tracked=True).order_by("id")
        self.hospitals = [h for h in hospitals if h.is_tracked]
        self._by_id = {h.pk: h for h in self.hospitals}

    def resolve(self, booking: Booking) -> Hospital:
        if booking.hospital_id:
            hospital = self._by_id.get(booking.hospital_id)
            if hospital is None:
                raise errors.ResolutionError(
                    f"Booking {booking.pk} references untracked hospital {booking.hospital_id}",
                    booking_id=booking.pk,
                )
            return hospital

        if booking.event_id:
            event = booking.event
            hospital = self._by_id.get(event.assigned_hospital_id) if event.assigned_hospital_id else None
            if hospital is None:
                raise errors.ResolutionError(
                    f"Event {event.pk} for booking {booking.pk} has no tracked hospital",
                    booking_id=booking.pk,
                )
            return hospital

        for hint in (booking.hospital_name, booking.location):
            if not hint:
                continue
            for hospital in self.hospitals:
                if _names_match(hospital.name, hint):
                    return hospital

        if self.hospitals:
            fallback = self.hospitals[0]
            logger.debug("No hospital match for booking %s; falling back to %s", booking.pk, fallback.name)
            return fallback

        raise errors.ResolutionError("No tracked hospitals available", booking_id=booking.pk)
