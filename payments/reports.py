from decimal import Decimal

from django.db.models import Count, Prefetch, Q, Sum
from django.utils import timezone

from bookings.models import Booking, BookingSlot, BookingStatus

from .models import ExtraCharge, OnlineMethod, Payment

ZERO = Decimal('0')
RECENT_BOOKINGS = 10
EARNING_STATUSES = (BookingStatus.APPROVED, BookingStatus.COMPLETED)


def _money(value):
    return value if value is not None else ZERO


def dashboard_stats(now=None, recent=RECENT_BOOKINGS):
    """
    Booking counts and money collected, split by how it was paid.

    Only approved and completed bookings count as revenue. Collected money is
    read from the payment ledger, so advances and final settlements are both
    included and each is attributed to cash or to its online method.
    """
    now = now or timezone.now()
    today = timezone.localdate(now)

    counts = Booking.objects.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=BookingStatus.PENDING)),
        approved=Count('id', filter=Q(status=BookingStatus.APPROVED)),
        completed=Count('id', filter=Q(status=BookingStatus.COMPLETED)),
        cancelled=Count('id', filter=Q(status=BookingStatus.CANCELLED)),
        today=Count('id', filter=Q(booking_date=today) & ~Q(status=BookingStatus.CANCELLED)),
        upcoming=Count('id', filter=Q(booking_date__gt=today) & ~Q(status=BookingStatus.CANCELLED)),
    )

    ledger = Payment.objects.filter(booking__status__in=EARNING_STATUSES).aggregate(
        collected=Sum('amount'),
        cash=Sum('cash_amount'),
        online=Sum('online_amount'),
        **{
            method: Sum('online_amount', filter=Q(online_method=method))
            for method in OnlineMethod.values
        },
    )
    booked = Booking.objects.filter(status__in=EARNING_STATUSES).aggregate(
        booked_value=Sum('total_amount'),
        discounts=Sum('discount_amount'),
        outstanding=Sum('remaining_due', filter=Q(status=BookingStatus.APPROVED)),
    )
    extras = ExtraCharge.objects.filter(booking__status__in=EARNING_STATUSES).aggregate(total=Sum('amount'))

    recent_bookings = list(
        Booking.objects.select_related('customer')
        .prefetch_related(Prefetch('slots', queryset=BookingSlot.objects.order_by('slot_hour')))
        .order_by('-created_at', '-id')[:recent]
    )

    return {
        'bookings': counts,
        'revenue': {
            'collected': _money(ledger['collected']),
            'cash': _money(ledger['cash']),
            'online': _money(ledger['online']),
            'by_online_method': {method: _money(ledger[method]) for method in OnlineMethod.values},
            'booked_value': _money(booked['booked_value']),
            'outstanding': _money(booked['outstanding']),
            'discounts': _money(booked['discounts']),
            'extra_charges': _money(extras['total']),
        },
        'recent_bookings': recent_bookings,
    }
