import logging

from django.db import transaction
from django.utils import timezone

from .models import Booking, BookingSlot, BookingStatus, SlotStatus

logger = logging.getLogger(__name__)

EXPIRED_HOLD_REASON = 'Automatic cancellation - hold expired before approval'


def sweep_expired(now=None):
    """Cancel pending bookings whose hold has lapsed and release their slots.

    Returns the number of bookings cancelled. Safe to call repeatedly.
    """
    now = now or timezone.now()

    with transaction.atomic():
        expired_ids = list(
            Booking.objects.select_for_update()
            .filter(status=BookingStatus.PENDING, pending_expires_at__lt=now)
            .values_list('id', flat=True)
        )
        if not expired_ids:
            return 0

        Booking.objects.filter(id__in=expired_ids).update(
            status=BookingStatus.CANCELLED,
            cancelled_at=now,
            cancelled_reason=EXPIRED_HOLD_REASON,
            updated_at=now,
        )
        BookingSlot.objects.filter(booking_id__in=expired_ids).update(
            status=SlotStatus.CANCELLED,
            updated_at=now,
        )

    logger.info("Released %d expired pending booking(s)", len(expired_ids))
    return len(expired_ids)
