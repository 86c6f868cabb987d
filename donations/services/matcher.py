from __future__ import annotations

from typing import Collection, Mapping, Optional, Sequence

from donations.models import Booking, Unit
from .dates import local_day


def match_unit(
    booking: Booking,
    donor_units: Sequence[Unit],
    units_by_id: Optional[Mapping[int, Unit]] = None,
    claimed_ids: Collection[int] = (),
) -> Optional[Unit]:
    """Find the physical unit behind a booking.

    An explicit link on the booking wins. Otherwise fall back to a unit from the
    same donor donated on the booking's calendar day; when several qualify the
    lowest unit id is taken. Units in ``claimed_ids`` are linked to another
    booking and never match by date.
    """

    if booking.unit_id:
        if units_by_id is not None:
            linked = units_by_id.get(booking.unit_id)
        else:
            linked = Unit.objects.filter(pk=booking.unit_id).first()
        if linked is not None:
            return linked

    # The walk-in sentinel does not identify a donor.
    if booking.is_walk_in_donor:
        return None

    booking_day = local_day(booking.scheduled_date)
    if booking_day is None:
        return None

    candidates = [
        unit
        for unit in donor_units
        if unit.donor_id == booking.donor_id
        and unit.pk not in claimed_ids
        and local_day(unit.donation_date) == booking_day
    ]
    return min(candidates, key=lambda u: u.pk, default=None)
