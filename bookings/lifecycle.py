import logging

from django.db import transaction
from django.utils import timezone

from .exceptions import NotFoundError, StateError, ValidationError
from .expiry import sweep_expired
from .models import SLOT_STATUS_FOR, Booking, BookingStatus, NotificationType
from .notifications import emit

logger = logging.getLogger(__name__)


def lock_booking(booking_id):
    try:
        return Booking.objects.select_for_update().select_related('customer').get(id=booking_id)
    except Booking.DoesNotExist:
        raise NotFoundError('Booking not found', details={'booking_id': booking_id})


def transition(booking, status, now, update_fields=()):
    """Move ``booking`` to ``status`` and carry its slots along with it."""
    if not booking.can_transition_to(status):
        raise StateError(
            f'Cannot move booking {booking.booking_number} from {booking.status} to {status}',
            details={'current_status': booking.status, 'requested_status': str(status)},
        )
    booking.status = status
    booking.save(update_fields=['status', 'updated_at', *update_fields])
    booking.slots.update(status=SLOT_STATUS_FOR[status], updated_at=now)


def approve_booking(booking_id, admin_notes=None, approved_by=None, now=None):
    now = now or timezone.now()
    # An expired hold must not be approved after its slots were offered again.
    sweep_expired(now)

    with transaction.atomic():
        booking = lock_booking(booking_id)
        if booking.status != BookingStatus.PENDING:
            raise StateError(
                f'Booking {booking.booking_number} is {booking.status}; only pending bookings can be approved',
                details={'current_status': booking.status},
            )

        booking.approved_at = now
        booking.approved_by = approved_by
        booking.pending_expires_at = None
        if admin_notes:
            booking.admin_notes = admin_notes
        transition(
            booking, BookingStatus.APPROVED, now,
            update_fields=['approved_at', 'approved_by', 'pending_expires_at', 'admin_notes'],
        )

        emit(
            NotificationType.BOOKING_APPROVED,
            'Booking Approved',
            f'Booking #{booking.booking_number} has been approved.',
            booking=booking,
            priority='high',
        )

    logger.info("Approved booking %s", booking.booking_number)
    return booking


def reject_booking(booking_id, reason, now=None):
    now = now or timezone.now()
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('A cancellation reason is required')

    with transaction.atomic():
        booking = lock_booking(booking_id)
        booking.cancelled_at = now
        booking.cancelled_reason = reason
        booking.pending_expires_at = None
        transition(
            booking, BookingStatus.CANCELLED, now,
            update_fields=['cancelled_at', 'cancelled_reason', 'pending_expires_at'],
        )

        emit(
            NotificationType.BOOKING_CANCELLED,
            'Booking Cancelled',
            f'Booking #{booking.booking_number} has been cancelled. Reason: {reason}',
            booking=booking,
            priority='high',
        )

    logger.info("Cancelled booking %s: %s", booking.booking_number, reason)
    return booking
