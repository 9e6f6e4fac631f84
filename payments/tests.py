from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch
from zoneinfo import ZoneInfo
import json

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import TestCase, Client

from bookings.allocation import reserve
from bookings.exceptions import (
    AmountMismatchError,
    MissingOnlineMethodError,
    NotFoundError,
    SplitMismatchError,
    StateError,
    StorageError,
    ValidationError,
)
from bookings.lifecycle import approve_booking
from bookings.models import Booking, BookingStatus, Notification, NotificationType, SlotStatus
from .models import ExtraCharge, Payment, PaymentType
from .reconciliation import complete_payment, resolve_split
from .reports import dashboard_stats

KARACHI = ZoneInfo('Asia/Karachi')
PLAY_DATE = date(2026, 2, 5)
BEFORE_PLAY = datetime(2026, 2, 4, 10, 0, tzinfo=KARACHI)

User = get_user_model()


def approved_booking(hours=(14, 15), advance='1000', phone='03001234567'):
    """Total 3000 at the day rate, 1000 paid up front, 2000 still due."""
    reservation = reserve(
        customer_name='Ali Khan',
        customer_phone=phone,
        booking_date=PLAY_DATE,
        slot_hours=list(hours),
        advance_amount=Decimal(advance),
        advance_method='easypaisa',
        now=BEFORE_PLAY,
    )
    approve_booking(reservation.booking_id, now=BEFORE_PLAY)
    return Booking.objects.get(id=reservation.booking_id)


class CompletePaymentTest(TestCase):
    def setUp(self):
        self.booking = approved_booking()
        self.balls = [{'category': 'Balls', 'amount': '500'}]

    def assert_untouched(self):
        booking = Booking.objects.get(id=self.booking.id)
        self.assertEqual(booking.status, BookingStatus.APPROVED)
        self.assertEqual(booking.remaining_due, Decimal('2000'))
        self.assertEqual(booking.total_amount, Decimal('3000'))
        self.assertEqual(booking.discount_amount, Decimal('0'))
        self.assertFalse(ExtraCharge.objects.filter(booking=booking).exists())
        self.assertFalse(booking.payments.filter(payment_type=PaymentType.REMAINING).exists())

    def test_extras_and_discount_settle_booking(self):
        result = complete_payment(
            self.booking.id, 'cash', Decimal('2300'),
            extra_charges=self.balls, discount_amount=Decimal('200'),
        )

        self.assertEqual(result.expected, Decimal('2300'))
        self.assertEqual(result.extra_total, Decimal('500'))
        self.assertEqual(result.new_total, Decimal('3300'))
        self.assertEqual(result.cash_amount, Decimal('2300'))
        self.assertEqual(result.online_amount, Decimal('0'))

        booking = Booking.objects.get(id=self.booking.id)
        self.assertEqual(booking.status, BookingStatus.COMPLETED)
        self.assertEqual(booking.remaining_due, Decimal('0'))
        self.assertEqual(booking.remaining_paid_amount, Decimal('2300'))
        self.assertEqual(booking.discount_amount, Decimal('200'))
        self.assertEqual(booking.total_amount, Decimal('3300'))
        self.assertEqual(booking.remaining_method, 'cash')
        self.assertIsNotNone(booking.completed_at)
        self.assertTrue(all(slot.status == SlotStatus.COMPLETED for slot in booking.slots.all()))

        self.assertEqual(booking.extra_charges.get().category, 'Balls')
        self.assertEqual(
            list(booking.payments.values_list('payment_type', flat=True)),
            [PaymentType.ADVANCE, PaymentType.REMAINING],
        )
        self.assertTrue(Notification.objects.filter(
            booking=booking, notification_type=NotificationType.PAYMENT_COMPLETED).exists())

    def test_amount_one_unit_off_is_rejected(self):
        with self.assertRaises(AmountMismatchError) as ctx:
            complete_payment(self.booking.id, 'cash', Decimal('2301'),
                             extra_charges=self.balls, discount_amount=Decimal('200'))

        details = ctx.exception.details
        self.assertEqual(details['expected'], Decimal('2300'))
        self.assertEqual(details['difference'], Decimal('1'))
        self.assertIn('Expected payment: Rs 2300.00', ctx.exception.message)
        self.assert_untouched()

    def test_short_payment_is_rejected(self):
        with self.assertRaises(AmountMismatchError):
            complete_payment(self.booking.id, 'cash', Decimal('2250'),
                             extra_charges=self.balls, discount_amount=Decimal('200'))
        self.assert_untouched()

    def test_rounding_within_one_unit_is_accepted(self):
        result = complete_payment(self.booking.id, 'cash', Decimal('1999.50'))
        self.assertEqual(result.paid, Decimal('1999.50'))
        self.assertEqual(result.cash_amount, Decimal('1999.50'))

    def test_only_approved_bookings_can_be_completed(self):
        reservation = reserve('Sara', PLAY_DATE, [20], Decimal('500'), 'cash', now=BEFORE_PLAY)
        with self.assertRaises(StateError) as ctx:
            complete_payment(reservation.booking_id, 'cash', Decimal('1500'))
        self.assertEqual(ctx.exception.reason, 'wrong_status')

        complete_payment(self.booking.id, 'cash', Decimal('2000'))
        with self.assertRaises(StateError):
            complete_payment(self.booking.id, 'cash', Decimal('0'))

    def test_fully_prepaid_booking_has_nothing_due(self):
        prepaid = approved_booking(hours=(9,), advance='1500', phone='03119999999')
        with self.assertRaises(StateError) as ctx:
            complete_payment(prepaid.id, 'cash', Decimal('0'))
        self.assertEqual(ctx.exception.reason, 'nothing_due')

    def test_discount_bounds(self):
        with self.assertRaises(ValidationError) as ctx:
            complete_payment(self.booking.id, 'cash', Decimal('0'),
                             extra_charges=self.balls, discount_amount=Decimal('2600'))
        self.assertEqual(ctx.exception.reason, 'invalid_discount')

        with self.assertRaises(ValidationError) as ctx:
            complete_payment(self.booking.id, 'cash', Decimal('2001'), discount_amount=Decimal('-1'))
        self.assertEqual(ctx.exception.reason, 'invalid_discount')
        self.assert_untouched()

    def test_discount_may_exceed_extra_charges(self):
        result = complete_payment(self.booking.id, 'cash', Decimal('1500'), discount_amount=Decimal('500'))
        self.assertEqual(result.new_total, Decimal('2500'))

    def test_full_discount_with_zero_payment(self):
        result = complete_payment(self.booking.id, 'cash', Decimal('0'), discount_amount=Decimal('2000'))
        self.assertEqual(result.new_total, Decimal('1000'))
        self.assertEqual(Booking.objects.get(id=self.booking.id).status, BookingStatus.COMPLETED)

    def test_invalid_extra_charges(self):
        for charge in ({'category': '', 'amount': '100'}, {'category': 'Water', 'amount': '0'}):
            with self.subTest(charge=charge):
                with self.assertRaises(ValidationError):
                    complete_payment(self.booking.id, 'cash', Decimal('2100'), extra_charges=[charge])
        self.assert_untouched()

    def test_unknown_booking_and_method(self):
        with self.assertRaises(NotFoundError):
            complete_payment(999999, 'cash', Decimal('100'))
        with self.assertRaises(ValidationError):
            complete_payment(self.booking.id, 'cheque', Decimal('2000'))
        with self.assertRaises(ValidationError):
            complete_payment(self.booking.id, 'cash', Decimal('-5'))

    def test_non_finite_amounts_rejected(self):
        cases = (
            {'amount': 'NaN'},
            {'amount': 'Infinity'},
            {'amount': 'two thousand'},
            {'amount': '2000', 'discount_amount': 'NaN'},
            {'amount': '2000', 'cash_amount': '-Infinity'},
        )
        for case in cases:
            with self.subTest(case=case):
                with self.assertRaises(ValidationError):
                    complete_payment(self.booking.id, 'cash', **case)
        self.assert_untouched()

    def test_storage_failure_rolls_back(self):
        with patch.object(Payment.objects, 'create', side_effect=OperationalError('disk I/O error')):
            with self.assertRaises(StorageError) as ctx:
                complete_payment(self.booking.id, 'cash', Decimal('2500'), extra_charges=self.balls)

        self.assertEqual(ctx.exception.status_code, 500)
        self.assert_untouched()
        self.assertFalse(Notification.objects.filter(notification_type=NotificationType.PAYMENT_COMPLETED).exists())


class SplitPaymentTest(TestCase):
    def setUp(self):
        self.booking = approved_booking()

    def test_split_between_cash_and_online(self):
        result = complete_payment(
            self.booking.id, 'split', Decimal('2000'),
            cash_amount=Decimal('1200'), online_amount=Decimal('800'), online_method='sadapay',
        )
        self.assertEqual(result.cash_amount, Decimal('1200'))
        self.assertEqual(result.online_amount, Decimal('800'))

        payment = Payment.objects.get(booking=self.booking, payment_type=PaymentType.REMAINING)
        self.assertEqual(payment.online_method, 'sadapay')
        self.assertEqual(payment.cash_amount + payment.online_amount, payment.amount)

    def test_portions_must_add_up(self):
        with self.assertRaises(SplitMismatchError):
            complete_payment(
                self.booking.id, 'split', Decimal('2000'),
                cash_amount=Decimal('1000'), online_amount=Decimal('500'), online_method='easypaisa',
            )
        self.assertEqual(Booking.objects.get(id=self.booking.id).status, BookingStatus.APPROVED)

    def test_missing_portion_is_derived(self):
        result = complete_payment(
            self.booking.id, 'split', Decimal('2000'),
            cash_amount=Decimal('1500'), online_method='bank_transfer',
        )
        self.assertEqual(result.online_amount, Decimal('500'))
        self.assertEqual(result.online_method, 'bank_transfer')

    def test_online_portion_needs_method(self):
        with self.assertRaises(MissingOnlineMethodError):
            complete_payment(
                self.booking.id, 'split', Decimal('2000'),
                cash_amount=Decimal('500'), online_amount=Decimal('1500'),
            )

    def test_split_without_portions(self):
        with self.assertRaises(SplitMismatchError):
            complete_payment(self.booking.id, 'split', Decimal('2000'))

    def test_online_method_follows_payment_method(self):
        result = complete_payment(self.booking.id, 'easypaisa', Decimal('2000'))
        self.assertEqual(result.cash_amount, Decimal('0'))
        self.assertEqual(result.online_amount, Decimal('2000'))
        self.assertEqual(result.online_method, 'easypaisa')

    def test_rounding_gap_is_absorbed(self):
        split = resolve_split(Decimal('2000.50'), 'split', Decimal('1000'), Decimal('1000'), 'sadapay')
        self.assertEqual(split.cash_amount + split.online_amount, Decimal('2000.50'))

    def test_negative_portion(self):
        with self.assertRaises(SplitMismatchError):
            resolve_split(Decimal('2000'), 'split', Decimal('2500'), None, 'sadapay')

    def test_portion_driven_negative_by_rounding(self):
        # Within tolerance of the total, but folding the gap would leave -0.4 online.
        with self.assertRaises(SplitMismatchError):
            resolve_split(Decimal('1'), 'split', Decimal('1.4'), Decimal('0.4'), 'sadapay')
        with self.assertRaises(SplitMismatchError):
            resolve_split(Decimal('1'), 'split', Decimal('-0.4'), Decimal('1.4'), 'sadapay')

    def test_cash_only_clears_online_method(self):
        split = resolve_split(Decimal('2000'), 'split', Decimal('2000'), Decimal('0'), 'sadapay')
        self.assertEqual(split.online_method, '')


class DashboardTest(TestCase):
    def setUp(self):
        self.completed = approved_booking()
        complete_payment(
            self.completed.id, 'split', Decimal('2000'),
            cash_amount=Decimal('1200'), online_amount=Decimal('800'), online_method='sadapay',
        )
        self.approved = approved_booking(hours=(9,), advance='500', phone='03119999999')
        reserve('Sara', PLAY_DATE, [20], Decimal('500'), 'cash', now=BEFORE_PLAY)

    def test_booking_counts(self):
        counts = dashboard_stats(now=BEFORE_PLAY)['bookings']
        self.assertEqual(counts['total'], 3)
        self.assertEqual(counts['pending'], 1)
        self.assertEqual(counts['approved'], 1)
        self.assertEqual(counts['completed'], 1)
        self.assertEqual(counts['cancelled'], 0)
        self.assertEqual(counts['today'], 0)
        self.assertEqual(counts['upcoming'], 3)

    def test_revenue_comes_from_payment_ledger(self):
        revenue = dashboard_stats(now=BEFORE_PLAY)['revenue']

        # Pending holds are not revenue yet.
        self.assertEqual(revenue['collected'], Decimal('3500'))
        self.assertEqual(revenue['cash'], Decimal('1200'))
        self.assertEqual(revenue['online'], Decimal('2300'))
        self.assertEqual(revenue['by_online_method'], {
            'easypaisa': Decimal('1500'),
            'sadapay': Decimal('800'),
            'bank_transfer': Decimal('0'),
        })
        self.assertEqual(revenue['cash'] + revenue['online'], revenue['collected'])
        self.assertEqual(revenue['booked_value'], Decimal('4500'))
        self.assertEqual(revenue['outstanding'], Decimal('1000'))
        self.assertEqual(revenue['extra_charges'], Decimal('0'))

    def test_recent_bookings_newest_first(self):
        recent = dashboard_stats(now=BEFORE_PLAY, recent=2)['recent_bookings']
        self.assertEqual(len(recent), 2)
        self.assertEqual(recent[0].customer.name, 'Sara')


class PaymentApiTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.booking = approved_booking()
        self.admin = User.objects.create_user('admin', password='secret', is_staff=True)

    def post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def complete_url(self):
        return f'/api/payments/bookings/{self.booking.id}/complete/'

    def test_requires_staff(self):
        response = self.post(self.complete_url(), {'payment_method': 'cash', 'amount': '2000'})
        self.assertEqual(response.status_code, 401)

    def test_complete_payment(self):
        self.client.force_login(self.admin)
        response = self.post(self.complete_url(), {
            'payment_method': 'cash',
            'amount': '2300',
            'extra_charges': [{'category': 'Balls', 'amount': '500'}],
            'discount_amount': '200',
            'admin_notes': 'Paid at the counter',
        })

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(Decimal(data['expected_payment']), Decimal('2300'))
        self.assertEqual(Decimal(data['new_total_amount']), Decimal('3300'))
        self.assertIsNone(data['online_method'])

        booking = Booking.objects.get(id=self.booking.id)
        self.assertEqual(booking.completed_by, self.admin)
        self.assertEqual(booking.admin_notes, 'Paid at the counter')

    def test_amount_mismatch_response(self):
        self.client.force_login(self.admin)
        response = self.post(self.complete_url(), {'payment_method': 'cash', 'amount': '1900'})

        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertFalse(data['success'])
        self.assertEqual(data['reason'], 'amount_mismatch')
        self.assertEqual(Decimal(data['expected']), Decimal('2000'))

    def test_invalid_payload(self):
        self.client.force_login(self.admin)
        response = self.post(self.complete_url(), {'payment_method': 'cheque', 'amount': '2000'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'invalid_input')

    def test_payment_ledger(self):
        complete_payment(self.booking.id, 'cash', Decimal('2000'))
        self.client.force_login(self.admin)

        response = self.client.get(f'/api/payments/bookings/{self.booking.id}/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'completed')
        self.assertEqual([p['payment_type'] for p in data['payments']], ['advance', 'remaining'])

    def test_unknown_booking(self):
        self.client.force_login(self.admin)
        response = self.post('/api/payments/bookings/999999/complete/', {'payment_method': 'cash', 'amount': '10'})
        self.assertEqual(response.status_code, 404)

    def test_dashboard(self):
        self.assertEqual(self.client.get('/api/payments/dashboard/').status_code, 401)

        self.client.force_login(self.admin)
        response = self.client.get('/api/payments/dashboard/')
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['bookings']['approved'], 1)
        self.assertEqual(Decimal(data['revenue']['collected']), Decimal('1000'))
        self.assertEqual(Decimal(data['revenue']['by_online_method']['easypaisa']), Decimal('1000'))
        self.assertEqual(Decimal(data['revenue']['outstanding']), Decimal('2000'))
        self.assertEqual(data['recent_bookings'][0]['slot_hours'], [14, 15])
