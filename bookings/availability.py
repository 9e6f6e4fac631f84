from dataclasses import dataclass
from decimal import Decimal

from django.db import models
from django.utils import timezone

from .expiry import sweep_expired
from .models import BookingSlot, BookingStatus, GroundSettings, SlotStatus
from .rates import HOURS_PER_DAY, rate_for, slot_label, validate_hour


class Availability(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    PENDING = 'pending', 'Pending approval'
    BOOKED = 'booked', 'Booked'
    PAST = 'past', 'Past'


# Legacy data may hold several live rows for one hour; the confirmed one wins.
OCCUPANT_PRIORITY = {
    BookingStatus.APPROVED: 0,
    BookingStatus.COMPLETED: 1,
    BookingStatus.PENDING: 2,
}


@dataclass(frozen=True)
class SlotAvailability:
    hour: int
    label: str
    status: Availability
    rate: Decimal
    is_night: bool

    @property
    def is_available(self):
        return self.status == Availability.AVAILABLE

    def as_dict(self):
        return {
            'hour': self.hour,
            'label': self.label,
            'status': self.status.value,
            'is_available': self.is_available,
            'rate': self.rate,
            'is_night': self.is_night,
        }


def is_past(day, hour, now):
    today = timezone.localdate(now)
    if day != today:
        return day < today
    # The hour in progress can no longer be booked.
    return hour <= timezone.localtime(now).hour


def occupying_slots(day, hours=None, lock=False):
    """Slot rows for ``day`` whose booking still holds them."""
    queryset = (
        BookingSlot.objects.filter(slot_date=day)
        .exclude(status=SlotStatus.CANCELLED)
        .exclude(booking__status=BookingStatus.CANCELLED)
        .select_related('booking')
    )
    if hours is not None:
        queryset = queryset.filter(slot_hour__in=list(hours))
    if lock:
        # Only the slot rows; booking rows are locked by the lifecycle services.
        queryset = queryset.select_for_update(of=('self',))
    return queryset


def occupant_status(slot, now):
    booking = slot.booking
    if booking.is_hold_expired(now):
        return Availability.AVAILABLE
    if booking.status in (BookingStatus.APPROVED, BookingStatus.COMPLETED):
        return Availability.BOOKED
    if booking.status == BookingStatus.PENDING:
        return Availability.PENDING
    return Availability.AVAILABLE


def occupied_hours(day, hours, now, lock=False):
    return sorted({
        slot.slot_hour
        for slot in occupying_slots(day, hours, lock=lock)
        if occupant_status(slot, now) != Availability.AVAILABLE
    })


def pick_occupants(slots):
    """Map each hour to the slot row that decides its status."""
    occupants = {}
    for slot in slots:
        current = occupants.get(slot.slot_hour)
        if current is None or _priority(slot) < _priority(current):
            occupants[slot.slot_hour] = slot
    return occupants


def available_slots(day, now=None, config=None):
    now = now or timezone.now()
    sweep_expired(now)
    config = config or GroundSettings.current()
    occupants = pick_occupants(occupying_slots(day))

    result = []
    for hour in range(HOURS_PER_DAY):
        if is_past(day, hour, now):
            status = Availability.PAST
        elif hour in occupants:
            status = occupant_status(occupants[hour], now)
        else:
            status = Availability.AVAILABLE

        rate = rate_for(hour, config)
        result.append(SlotAvailability(
            hour=hour,
            label=slot_label(hour),
            status=status,
            rate=rate.amount,
            is_night=rate.is_night,
        ))
    return result


def find_conflicts(day, hours, now=None):
    """Hours from ``hours`` that cannot be booked right now, without locking."""
    now = now or timezone.now()
    for hour in hours:
        validate_hour(hour)
    sweep_expired(now)
    past = {hour for hour in hours if is_past(day, hour, now)}
    return sorted(past | set(occupied_hours(day, hours, now)))


def _priority(slot):
    return OCCUPANT_PRIORITY.get(slot.booking.status, len(OCCUPANT_PRIORITY))
