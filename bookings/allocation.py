import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .availability import is_past, occupied_hours
from .exceptions import ConflictError, StorageError, ValidationError
from .expiry import sweep_expired
from .models import Booking, BookingSlot, BookingStatus, Customer, GroundSettings, NotificationType, SlotStatus
from .notifications import emit
from .rates import quote, rate_for, to_money, validate_hour

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal('1')
BOOKING_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True)
class Reservation:
    booking_id: int
    booking_number: str
    total_amount: Decimal
    advance_amount: Decimal
    remaining_due: Decimal
    expires_at: datetime


def reserve(customer_name, booking_date, slot_hours, advance_amount, advance_method,
            advance_proof='', customer_phone='', customer_notes='', total_amount=None,
            now=None, config=None):
    """
    Place a pending hold on ``slot_hours`` of ``booking_date``.

    Runs as one transaction: the conflict check locks the occupying slot rows,
    and the partial unique index on (slot_date, slot_hour) rejects any insert
    that slipped past it. Either the customer, booking and every slot are
    written, or nothing is.
    """
    now = now or timezone.now()
    config = config or GroundSettings.current()
    customer_name = (customer_name or '').strip()
    customer_phone = (customer_phone or '').strip()
    if not customer_name:
        raise ValidationError('Customer name is required')
    hours = _validate_hours(booking_date, slot_hours, now)
    total = quote(hours, config)
    advance_amount = _validate_amounts(total, advance_amount, total_amount, config)

    try:
        with transaction.atomic():
            sweep_expired(now)

            conflicts = _locked_conflicts(booking_date, hours, now)
            if conflicts:
                raise ConflictError(
                    'Some selected slots are no longer available',
                    conflicting_slots=conflicts,
                )

            customer = _upsert_customer(customer_name, customer_phone)
            booking = _create_booking(
                customer=customer,
                booking_date=booking_date,
                total_hours=len(hours),
                total_amount=total,
                advance_amount=advance_amount,
                advance_method=advance_method or '',
                advance_proof=advance_proof or '',
                remaining_due=total - advance_amount,
                customer_notes=customer_notes or '',
                status=BookingStatus.PENDING,
                pending_expires_at=now + timedelta(minutes=config.pending_hold_minutes),
                now=now,
            )

            BookingSlot.objects.bulk_create([
                BookingSlot(
                    booking=booking,
                    slot_date=booking_date,
                    slot_hour=hour,
                    hourly_rate=rate_for(hour, config).amount,
                    is_night_rate=rate_for(hour, config).is_night,
                    status=SlotStatus.PENDING,
                )
                for hour in hours
            ])

            if advance_amount > 0:
                _record_advance(booking)

            emit(
                NotificationType.NEW_BOOKING,
                'New Booking Request',
                f'New booking request #{booking.booking_number} received from {customer.name}.',
                booking=booking,
                priority='high',
            )
    except IntegrityError as exc:
        taken = occupied_hours(booking_date, hours, now)
        logger.warning("Lost slot race on %s for hours %s: %s", booking_date, hours, exc)
        raise ConflictError(
            'One or more slots were just booked by another customer',
            conflicting_slots=taken or hours,
        ) from exc
    except DatabaseError as exc:
        logger.exception("Reservation on %s failed", booking_date)
        raise StorageError(f'Could not save booking: {exc}') from exc

    logger.info(
        "Reserved %s for %s on %s hours %s (expires %s)",
        booking.booking_number, customer.name, booking_date, hours, booking.pending_expires_at,
    )
    return Reservation(
        booking_id=booking.id,
        booking_number=booking.booking_number,
        total_amount=booking.total_amount,
        advance_amount=booking.advance_amount,
        remaining_due=booking.remaining_due,
        expires_at=booking.pending_expires_at,
    )


def _validate_hours(booking_date, slot_hours, now):
    if not slot_hours:
        raise ValidationError('Select at least one slot')
    hours = [validate_hour(hour) for hour in slot_hours]
    if len(set(hours)) != len(hours):
        duplicates = sorted({hour for hour in hours if hours.count(hour) > 1})
        raise ValidationError('Duplicate slot hours in request', details={'duplicate_slots': duplicates})
    past = [hour for hour in hours if is_past(booking_date, hour, now)]
    if past:
        raise ValidationError('Cannot book past time slots', details={'past_slots': sorted(past)})
    return sorted(hours)


def _validate_amounts(total, advance_amount, claimed_total, config):
    advance_amount = to_money(advance_amount, 'advance_amount')
    claimed_total = to_money(claimed_total, 'total_amount')
    if claimed_total is not None and abs(claimed_total - total) >= AMOUNT_TOLERANCE:
        raise ValidationError(
            'Total amount does not match current rates',
            details={'expected_total': total, 'provided_total': claimed_total},
        )
    if advance_amount is None:
        raise ValidationError('Advance amount is required')
    if advance_amount < 0:
        raise ValidationError('Advance amount cannot be negative')
    if advance_amount > total:
        raise ValidationError(
            'Advance amount cannot exceed the booking total',
            details={'total_amount': total, 'advance_amount': advance_amount},
        )
    minimum = min(config.advance_minimum, total)
    if advance_amount < minimum:
        raise ValidationError(
            f'Advance payment of at least {minimum} is required',
            details={'advance_minimum': minimum},
        )
    return advance_amount


def _locked_conflicts(booking_date, hours, now):
    return occupied_hours(booking_date, hours, now, lock=True)


def _upsert_customer(name, phone):
    if phone:
        customer = Customer.objects.select_for_update().filter(phone=phone).order_by('id').first()
        if customer:
            if customer.name != name:
                customer.name = name
                customer.save(update_fields=['name', 'updated_at'])
            return customer
    return Customer.objects.create(name=name, phone=phone)


def _next_booking_number(now):
    prefix = f"BK-{timezone.localdate(now):%Y%m%d}-"
    sequence = Booking.objects.filter(booking_number__startswith=prefix).count() + 1
    return prefix, sequence


def _create_booking(now, **fields):
    prefix, sequence = _next_booking_number(now)
    for attempt in range(BOOKING_NUMBER_ATTEMPTS):
        try:
            with transaction.atomic():
                return Booking.objects.create(booking_number=f"{prefix}{sequence + attempt:03d}", **fields)
        except IntegrityError:
            if attempt == BOOKING_NUMBER_ATTEMPTS - 1:
                raise


def _record_advance(booking):
    # Imported here: payments depends on bookings, not the other way round.
    from payments.models import OnlineMethod, Payment, PaymentType

    online = booking.advance_method in OnlineMethod.values
    Payment.objects.create(
        booking=booking,
        payment_type=PaymentType.ADVANCE,
        amount=booking.advance_amount,
        method=booking.advance_method,
        proof=booking.advance_proof,
        cash_amount=Decimal('0') if online else booking.advance_amount,
        online_amount=booking.advance_amount if online else Decimal('0'),
        online_method=booking.advance_method if online else '',
    )
