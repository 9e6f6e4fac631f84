"""
Final settlement of an approved booking.

The amount the admin must collect is

    expected = remaining_due + sum(extra charges) - discount

and the collected amount must land strictly within one currency unit of it,
which absorbs rounding on the counter. The discount may cover any part of the
payable amount, extra charges included.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.utils import timezone

from bookings.exceptions import (
    AmountMismatchError,
    MissingOnlineMethodError,
    SplitMismatchError,
    StateError,
    StorageError,
    ValidationError,
)
from bookings.lifecycle import lock_booking, transition
from bookings.models import BookingStatus, NotificationType
from bookings.notifications import emit
from bookings.rates import to_money

from .models import ExtraCharge, OnlineMethod, Payment, PaymentMethod, PaymentType

logger = logging.getLogger(__name__)

TOLERANCE = Decimal('1')
ZERO = Decimal('0')


@dataclass(frozen=True)
class Split:
    cash_amount: Decimal
    online_amount: Decimal
    online_method: str


@dataclass(frozen=True)
class PaymentResult:
    booking_id: int
    booking_number: str
    remaining_due: Decimal
    extra_total: Decimal
    discount: Decimal
    expected: Decimal
    paid: Decimal
    new_total: Decimal
    cash_amount: Decimal
    online_amount: Decimal
    online_method: str

    def as_dict(self):
        return {
            'success': True,
            'booking_id': self.booking_id,
            'booking_number': self.booking_number,
            'original_remaining': self.remaining_due,
            'total_extra_charges': self.extra_total,
            'discount': self.discount,
            'expected_payment': self.expected,
            'final_payment': self.paid,
            'new_total_amount': self.new_total,
            'cash_amount': self.cash_amount,
            'online_amount': self.online_amount,
            'online_method': self.online_method or None,
        }


def normalize_extra_charges(extra_charges):
    charges = []
    for index, charge in enumerate(extra_charges or ()):
        category = str(charge.get('category') or '').strip()
        amount = to_money(charge.get('amount'), 'extra_charges.amount')
        if not category:
            raise ValidationError('Every extra charge needs a category', details={'extra_charge_index': index})
        if amount is None or amount <= 0:
            raise ValidationError(
                'Extra charge amounts must be greater than zero',
                details={'extra_charge_index': index},
            )
        charges.append((category, amount))
    return charges


def payment_breakdown(remaining_due, extra_total, discount):
    """Return ``(total_payable, expected_payment)`` or raise on a bad discount."""
    total_payable = remaining_due + extra_total
    if discount < 0 or discount > total_payable:
        raise ValidationError(
            f'Discount (Rs {discount}) must be between 0 and the total payable (Rs {total_payable})',
            reason='invalid_discount',
            details={'discount': discount, 'total_payable': total_payable},
        )
    return total_payable, total_payable - discount


def check_amount(amount, remaining_due, extra_total, total_payable, discount, expected):
    if abs(amount - expected) < TOLERANCE:
        return
    difference = amount - expected
    message = (
        'Payment amount mismatch.\n'
        f'- Remaining payment: Rs {remaining_due:.2f}\n'
        f'- Extra charges: Rs {extra_total:.2f}\n'
        f'- Total payable: Rs {total_payable:.2f}\n'
        f'- Discount applied: Rs {discount:.2f}\n'
        f'- Expected payment: Rs {expected:.2f}\n'
        f'- Received payment: Rs {amount:.2f}\n'
        f'Difference: Rs {difference:.2f}'
    )
    raise AmountMismatchError(message, details={
        'remaining_due': remaining_due,
        'extra_total': extra_total,
        'total_payable': total_payable,
        'discount': discount,
        'expected': expected,
        'provided': amount,
        'difference': difference,
    })


def resolve_split(amount, payment_method, cash_amount=None, online_amount=None, online_method=None):
    online_method = (online_method or '').strip()
    if not online_method and payment_method in OnlineMethod.values:
        online_method = payment_method

    if cash_amount is None and online_amount is None:
        if payment_method == PaymentMethod.SPLIT:
            raise SplitMismatchError('Split payments need a cash or an online portion')
        if payment_method == PaymentMethod.CASH:
            cash_amount, online_amount = amount, ZERO
        else:
            cash_amount, online_amount = ZERO, amount
    elif cash_amount is None:
        cash_amount = amount - online_amount
    elif online_amount is None:
        online_amount = amount - cash_amount
    elif abs(cash_amount + online_amount - amount) >= TOLERANCE:
        raise SplitMismatchError(
            f'Cash (Rs {cash_amount}) and online (Rs {online_amount}) portions must add up to Rs {amount}',
            details={'cash_amount': cash_amount, 'online_amount': online_amount, 'payment_amount': amount},
        )

    # Absorb a rounding gap into one portion so the two always sum exactly.
    if online_amount > 0:
        online_amount = amount - cash_amount
    else:
        cash_amount = amount - online_amount

    if cash_amount < 0 or online_amount < 0:
        raise SplitMismatchError(
            'Payment portions cannot be negative',
            details={'cash_amount': cash_amount, 'online_amount': online_amount, 'payment_amount': amount},
        )

    if online_amount > 0 and not online_method:
        raise MissingOnlineMethodError(
            'Select the online payment method for the online portion',
            details={'online_amount': online_amount},
        )
    if online_method and online_method not in OnlineMethod.values:
        raise ValidationError(
            f'Unknown online payment method: {online_method}',
            details={'allowed_online_methods': list(OnlineMethod.values)},
        )
    if online_amount == 0:
        online_method = ''
    return Split(cash_amount=cash_amount, online_amount=online_amount, online_method=online_method)


def complete_payment(booking_id, payment_method, amount, extra_charges=(), discount_amount=0,
                     cash_amount=None, online_amount=None, online_method=None, payment_proof='',
                     admin_notes=None, completed_by=None, now=None):
    now = now or timezone.now()
    if payment_method not in PaymentMethod.values:
        raise ValidationError(
            f'Unknown payment method: {payment_method}',
            details={'allowed_methods': list(PaymentMethod.values)},
        )
    amount = to_money(amount, 'amount')
    if amount is None or amount < 0:
        raise ValidationError('Payment amount must be zero or more')
    discount = to_money(discount_amount, 'discount_amount') or ZERO
    cash_amount = to_money(cash_amount, 'cash_amount')
    online_amount = to_money(online_amount, 'online_amount')
    charges = normalize_extra_charges(extra_charges)

    try:
        with transaction.atomic():
            booking = lock_booking(booking_id)
            if booking.status != BookingStatus.APPROVED:
                raise StateError(
                    f'Booking {booking.booking_number} is {booking.status}; only approved bookings can be completed',
                    details={'current_status': booking.status},
                )
            remaining_due = booking.remaining_due
            if remaining_due <= 0:
                raise StateError(
                    'No remaining payment due for this booking',
                    reason='nothing_due',
                    details={'remaining_due': remaining_due},
                )

            extra_total = sum((charge_amount for _, charge_amount in charges), ZERO)
            total_payable, expected = payment_breakdown(remaining_due, extra_total, discount)
            check_amount(amount, remaining_due, extra_total, total_payable, discount, expected)
            split = resolve_split(amount, payment_method, cash_amount, online_amount, online_method)

            ExtraCharge.objects.bulk_create([
                ExtraCharge(booking=booking, category=category, amount=charge_amount, created_by=completed_by)
                for category, charge_amount in charges
            ])

            booking.remaining_paid_amount += amount
            booking.remaining_due = ZERO
            booking.discount_amount = discount
            booking.total_amount += extra_total - discount
            booking.remaining_method = payment_method
            booking.remaining_proof = payment_proof or ''
            booking.remaining_cash_amount = split.cash_amount
            booking.remaining_online_amount = split.online_amount
            booking.remaining_online_method = split.online_method
            booking.completed_at = now
            booking.completed_by = completed_by
            if admin_notes:
                booking.admin_notes = admin_notes
            transition(booking, BookingStatus.COMPLETED, now, update_fields=[
                'remaining_paid_amount', 'remaining_due', 'discount_amount', 'total_amount',
                'remaining_method', 'remaining_proof', 'remaining_cash_amount',
                'remaining_online_amount', 'remaining_online_method', 'completed_at',
                'completed_by', 'admin_notes',
            ])

            Payment.objects.create(
                booking=booking,
                payment_type=PaymentType.REMAINING,
                amount=amount,
                method=payment_method,
                proof=payment_proof or '',
                cash_amount=split.cash_amount,
                online_amount=split.online_amount,
                online_method=split.online_method,
                received_by=completed_by,
                notes=admin_notes or '',
            )

            emit(
                NotificationType.PAYMENT_COMPLETED,
                'Payment Completed',
                f'Booking #{booking.booking_number} fully paid: Rs {amount:.2f} received.',
                booking=booking,
            )
    except DatabaseError as exc:
        logger.exception("Completing payment for booking %s failed", booking_id)
        raise StorageError(f'Could not save payment: {exc}') from exc

    logger.info(
        "Completed payment for %s: remaining %s + extra %s - discount %s = %s",
        booking.booking_number, remaining_due, extra_total, discount, amount,
    )
    return PaymentResult(
        booking_id=booking.id,
        booking_number=booking.booking_number,
        remaining_due=remaining_due,
        extra_total=extra_total,
        discount=discount,
        expected=expected,
        paid=amount,
        new_total=booking.total_amount,
        cash_amount=split.cash_amount,
        online_amount=split.online_amount,
        online_method=split.online_method,
    )
