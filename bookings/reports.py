"""
Read-only views of the booking book for the admin panel: the filtered
booking list and the calendar feed.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from django.db.models import Count, Prefetch, Q

from .exceptions import ValidationError
from .models import Booking, BookingSlot, BookingStatus
from .rates import slot_label

SORT_FIELDS = ('created_at', 'booking_date', 'booking_number', 'total_amount', 'remaining_due')
PAYMENT_FILTERS = ('paid', 'pending')
DEFAULT_LIMIT = 100
MAX_LIMIT = 500
CALENDAR_DAYS = 30


@dataclass(frozen=True)
class BookingPage:
    bookings: list
    summary: dict
    limit: int
    offset: int

    @property
    def total(self):
        return self.summary['total']

    @property
    def has_more(self):
        return self.offset + self.limit < self.total


def with_slots(queryset):
    return queryset.select_related('customer').prefetch_related(
        Prefetch('slots', queryset=BookingSlot.objects.order_by('slot_hour'))
    )


def _check_status(status):
    if status not in BookingStatus.values:
        raise ValidationError(
            f'Unknown booking status: {status}',
            details={'allowed_statuses': list(BookingStatus.values)},
        )


def list_bookings(status=None, payment_status=None, search=None, date_from=None, date_to=None,
                  remaining_only=False, sort_by='created_at', sort_order='desc',
                  limit=DEFAULT_LIMIT, offset=0):
    """
    Filtered, paginated booking list with a status summary.

    ``remaining_only`` narrows the list to approved bookings that still owe
    money, the counter staff's view, and ignores the status and payment
    filters. The summary counts the whole filtered set, not just the page.
    """
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f'Cannot sort by {sort_by}', details={'allowed_sort_fields': list(SORT_FIELDS)})
    if sort_order not in ('asc', 'desc'):
        raise ValidationError('sort_order must be asc or desc')
    if limit < 1 or offset < 0:
        raise ValidationError('limit must be positive and offset zero or more')
    limit = min(limit, MAX_LIMIT)

    bookings = Booking.objects.all()
    if remaining_only:
        bookings = bookings.filter(status=BookingStatus.APPROVED, remaining_due__gt=0)
    else:
        if status and status != 'all':
            _check_status(status)
            bookings = bookings.filter(status=status)
        if payment_status == 'paid':
            bookings = bookings.filter(remaining_due=0)
        elif payment_status == 'pending':
            bookings = bookings.filter(remaining_due__gt=0)
        elif payment_status not in (None, '', 'all'):
            raise ValidationError(f'Unknown payment status filter: {payment_status}')

    search = (search or '').strip()
    if search:
        bookings = bookings.filter(
            Q(booking_number__icontains=search)
            | Q(customer__name__icontains=search)
            | Q(customer__phone__icontains=search)
        )
    if date_from:
        bookings = bookings.filter(booking_date__gte=date_from)
    if date_to:
        bookings = bookings.filter(booking_date__lte=date_to)

    summary = bookings.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BookingStatus.PENDING)),
        approved=Count('id', filter=Q(status=BookingStatus.APPROVED)),
        completed=Count('id', filter=Q(status=BookingStatus.COMPLETED)),
        cancelled=Count('id', filter=Q(status=BookingStatus.CANCELLED)),
        fully_paid=Count('id', filter=Q(remaining_due=0)),
        partially_paid=Count('id', filter=Q(remaining_due__gt=0)),
    )

    ordering = sort_by if sort_order == 'asc' else f'-{sort_by}'
    page = list(with_slots(bookings).order_by(ordering, '-id')[offset:offset + limit])
    return BookingPage(bookings=page, summary=summary, limit=limit, offset=offset)


def format_slot_ranges(hours):
    """``[14, 15, 18]`` -> ``'14:00-16:00, 18:00-19:00'``."""
    ranges = []
    for hour in sorted(hours):
        if ranges and ranges[-1][1] == hour:
            ranges[-1][1] = hour + 1
        else:
            ranges.append([hour, hour + 1])
    return ', '.join(f'{slot_label(start)}-{slot_label(end)}' for start, end in ranges)


def calendar_events(start, end, status=None):
    """One event per booking played between ``start`` and ``end`` inclusive.

    Cancelled bookings are left out unless asked for by ``status``.
    """
    if end < start:
        raise ValidationError('end must not be before start', details={'start': start, 'end': end})

    bookings = with_slots(Booking.objects.filter(booking_date__range=(start, end)))
    if status:
        _check_status(status)
        bookings = bookings.filter(status=status)
    else:
        bookings = bookings.exclude(status=BookingStatus.CANCELLED)

    events = []
    for booking in bookings.order_by('booking_date', 'id'):
        hours = [slot.slot_hour for slot in booking.slots.all()]
        if not hours:
            continue
        starts_at = datetime.combine(booking.booking_date, time(hours[0]))
        ends_at = starts_at + timedelta(hours=hours[-1] - hours[0] + 1)
        events.append({
            'id': booking.id,
            'booking_number': booking.booking_number,
            'title': f'{booking.customer.name} - {format_slot_ranges(hours)}',
            'start': starts_at.isoformat(),
            'end': ends_at.isoformat(),
            'status': booking.status,
            'customer_name': booking.customer.name,
            'customer_phone': booking.customer.phone,
            'slot_hours': hours,
            'total_hours': booking.total_hours,
            'total_amount': booking.total_amount,
            'advance_amount': booking.advance_amount,
            'remaining_due': booking.remaining_due,
            'pending_expires_at': booking.pending_expires_at,
            'customer_notes': booking.customer_notes,
            'admin_notes': booking.admin_notes,
        })
    return events
