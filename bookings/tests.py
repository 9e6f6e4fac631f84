from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch, MagicMock
from zoneinfo import ZoneInfo
import json

import requests
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import OperationalError
from django.test import TestCase, Client, override_settings
from django.utils import timezone

from .allocation import reserve
from .availability import Availability, available_slots, find_conflicts, occupying_slots, pick_occupants
from .exceptions import ConflictError, NotFoundError, StateError, StorageError, ValidationError
from .expiry import EXPIRED_HOLD_REASON, sweep_expired
from .lifecycle import approve_booking, reject_booking
from .models import (
    Booking,
    BookingSlot,
    BookingStatus,
    Customer,
    GroundSettings,
    Notification,
    NotificationType,
    SlotStatus,
)
from .notifications import deliver, emit, list_notifications, mark_all_read, mark_read, unread_count
from .rates import GroundConfig, quote, rate_for, to_money
from .reports import calendar_events, format_slot_ranges, list_bookings

KARACHI = ZoneInfo('Asia/Karachi')
PLAY_DATE = date(2026, 2, 5)
BEFORE_PLAY = datetime(2026, 2, 4, 10, 0, tzinfo=KARACHI)

User = get_user_model()


def book(hours, now=BEFORE_PLAY, day=PLAY_DATE, name='Ali Khan', phone='03001234567', advance='500'):
    return reserve(
        customer_name=name,
        customer_phone=phone,
        booking_date=day,
        slot_hours=hours,
        advance_amount=Decimal(advance),
        advance_method='easypaisa',
        advance_proof='proofs/advance.png',
        now=now,
    )


class RateCalculatorTest(TestCase):
    def setUp(self):
        self.config = GroundConfig(
            day_rate=Decimal('1500'),
            night_rate=Decimal('2000'),
            night_start_hour=17,
            night_end_hour=7,
        )

    def test_night_window_wraps_past_midnight(self):
        self.assertEqual(rate_for(17, self.config).amount, Decimal('2000'))
        self.assertTrue(rate_for(23, self.config).is_night)
        self.assertTrue(rate_for(0, self.config).is_night)
        self.assertTrue(rate_for(6, self.config).is_night)
        self.assertFalse(rate_for(7, self.config).is_night)
        self.assertEqual(rate_for(16, self.config).amount, Decimal('1500'))

    def test_non_wrapping_window(self):
        config = GroundConfig(Decimal('1000'), Decimal('1200'), night_start_hour=8, night_end_hour=10)
        self.assertTrue(rate_for(8, config).is_night)
        self.assertTrue(rate_for(9, config).is_night)
        self.assertFalse(rate_for(10, config).is_night)
        self.assertFalse(rate_for(7, config).is_night)

    def test_equal_bounds_mean_no_night_hours(self):
        config = GroundConfig(Decimal('1000'), Decimal('1200'), night_start_hour=5, night_end_hour=5)
        self.assertFalse(any(rate_for(hour, config).is_night for hour in range(24)))

    def test_invalid_hours_rejected(self):
        for hour in (-1, 24, 3.5, '4', True):
            with self.assertRaises(ValidationError):
                rate_for(hour, self.config)

    def test_quote_sums_hourly_rates(self):
        self.assertEqual(quote([15, 16, 17], self.config), Decimal('5000'))

    def test_money_parsing(self):
        self.assertEqual(to_money('1500.50', 'amount'), Decimal('1500.50'))
        self.assertEqual(to_money(200, 'amount'), Decimal('200'))
        self.assertIsNone(to_money('', 'amount'))
        for value in ('NaN', 'sNaN', '-Infinity', 'twelve'):
            with self.assertRaises(ValidationError):
                to_money(value, 'amount')

    def test_defaults_come_from_django_settings(self):
        config = GroundSettings.current()
        self.assertEqual(config.day_rate, Decimal('1500'))
        self.assertEqual(config.night_rate, Decimal('2000'))
        self.assertEqual(config.pending_hold_minutes, 30)

    def test_saved_settings_override_defaults(self):
        GroundSettings.objects.create(
            day_rate=Decimal('1800'),
            night_rate=Decimal('2500'),
            night_start_hour=18,
            night_end_hour=6,
            advance_minimum=Decimal('1000'),
            pending_hold_minutes=15,
        )
        config = GroundSettings.current()
        self.assertEqual(config.day_rate, Decimal('1800'))
        self.assertEqual(config.night_start_hour, 18)
        self.assertEqual(GroundSettings.objects.get().pk, 1)


class AvailabilityTest(TestCase):
    def test_free_day_lists_24_available_slots(self):
        slots = available_slots(PLAY_DATE, now=BEFORE_PLAY)

        self.assertEqual([slot.hour for slot in slots], list(range(24)))
        self.assertTrue(all(slot.status == Availability.AVAILABLE for slot in slots))
        self.assertEqual(slots[14].label, '14:00')
        self.assertEqual(slots[14].rate, Decimal('1500'))
        self.assertTrue(slots[20].is_night)
        self.assertEqual(slots[20].rate, Decimal('2000'))

    def test_pending_and_booked_slots(self):
        pending = book([10, 11])
        approved = book([14], phone='03110000000')
        approve_booking(approved.booking_id, now=BEFORE_PLAY)

        slots = available_slots(PLAY_DATE, now=BEFORE_PLAY + timedelta(minutes=5))

        self.assertEqual(slots[10].status, Availability.PENDING)
        self.assertEqual(slots[11].status, Availability.PENDING)
        self.assertEqual(slots[14].status, Availability.BOOKED)
        self.assertEqual(slots[12].status, Availability.AVAILABLE)
        self.assertTrue(Booking.objects.filter(id=pending.booking_id, status=BookingStatus.PENDING).exists())

    def test_expired_hold_is_released(self):
        reservation = book([14, 15])

        slots = available_slots(PLAY_DATE, now=BEFORE_PLAY + timedelta(minutes=31))

        self.assertEqual(slots[14].status, Availability.AVAILABLE)
        self.assertEqual(slots[15].status, Availability.AVAILABLE)
        booking = Booking.objects.get(id=reservation.booking_id)
        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(booking.cancelled_reason, EXPIRED_HOLD_REASON)

    def test_current_and_earlier_hours_are_past_today(self):
        approved = book([0], now=datetime(2026, 2, 4, 22, 0, tzinfo=KARACHI))
        approve_booking(approved.booking_id, now=datetime(2026, 2, 4, 22, 5, tzinfo=KARACHI))

        slots = available_slots(PLAY_DATE, now=datetime(2026, 2, 5, 1, 20, tzinfo=KARACHI))

        self.assertEqual(slots[0].status, Availability.PAST)
        self.assertEqual(slots[1].status, Availability.PAST)
        self.assertEqual(slots[2].status, Availability.AVAILABLE)
        self.assertEqual(slots[23].status, Availability.AVAILABLE)

    def test_earlier_dates_are_entirely_past(self):
        slots = available_slots(PLAY_DATE - timedelta(days=1), now=BEFORE_PLAY + timedelta(days=1))
        self.assertTrue(all(slot.status == Availability.PAST for slot in slots))

    def test_cancelled_booking_frees_its_slots(self):
        reservation = book([9])
        reject_booking(reservation.booking_id, 'Customer called to cancel', now=BEFORE_PLAY)

        slots = available_slots(PLAY_DATE, now=BEFORE_PLAY)
        self.assertEqual(slots[9].status, Availability.AVAILABLE)

    def test_find_conflicts_reports_occupied_and_past_hours(self):
        approved = book([14])
        approve_booking(approved.booking_id, now=BEFORE_PLAY)
        now = datetime(2026, 2, 5, 9, 30, tzinfo=KARACHI)
        self.assertEqual(find_conflicts(PLAY_DATE, [8, 9, 10, 14], now=now), [8, 9, 14])
        self.assertEqual(find_conflicts(PLAY_DATE, [10, 11], now=now), [])

    def test_find_conflicts_counts_live_holds_only(self):
        book([16])
        self.assertEqual(find_conflicts(PLAY_DATE, [15, 16], now=BEFORE_PLAY + timedelta(minutes=10)), [16])
        self.assertEqual(find_conflicts(PLAY_DATE, [15, 16], now=BEFORE_PLAY + timedelta(minutes=31)), [])

    def test_confirmed_booking_outranks_other_rows_for_the_hour(self):
        def row(hour, status):
            return BookingSlot(slot_hour=hour, booking=Booking(status=status))

        pending = row(10, BookingStatus.PENDING)
        completed = row(10, BookingStatus.COMPLETED)
        approved = row(10, BookingStatus.APPROVED)
        other = row(11, BookingStatus.PENDING)

        occupants = pick_occupants([pending, completed, approved, other])
        self.assertIs(occupants[10], approved)
        self.assertIs(occupants[11], other)
        self.assertIs(pick_occupants([pending, completed])[10], completed)

    def test_slot_lock_leaves_booking_rows_alone(self):
        queryset = occupying_slots(PLAY_DATE, [10], lock=True)
        self.assertTrue(queryset.query.select_for_update)
        self.assertEqual(queryset.query.select_for_update_of, ('self',))


class ReservationAllocatorTest(TestCase):
    def test_reserve_creates_pending_booking_with_slots(self):
        reservation = book([15, 14], advance='1000')

        booking = Booking.objects.get(id=reservation.booking_id)
        self.assertEqual(booking.booking_number, 'BK-20260204-001')
        self.assertEqual(booking.status, BookingStatus.PENDING)
        self.assertEqual(booking.pending_expires_at, BEFORE_PLAY + timedelta(minutes=30))
        self.assertEqual(booking.total_hours, 2)
        self.assertEqual(booking.total_amount, Decimal('3000'))
        self.assertEqual(booking.advance_amount, Decimal('1000'))
        self.assertEqual(booking.remaining_due, Decimal('2000'))
        self.assertEqual(booking.total_amount, booking.advance_amount + booking.remaining_due)

        slots = list(booking.slots.all())
        self.assertEqual([slot.slot_hour for slot in slots], [14, 15])
        self.assertTrue(all(slot.status == SlotStatus.PENDING for slot in slots))
        self.assertTrue(all(slot.hourly_rate == Decimal('1500') for slot in slots))

        self.assertEqual(booking.payments.get().amount, Decimal('1000'))
        notification = Notification.objects.get(booking=booking)
        self.assertEqual(notification.notification_type, NotificationType.NEW_BOOKING)

    def test_booking_numbers_follow_daily_sequence(self):
        first = book([8])
        second = book([9], phone='03111111111')
        self.assertEqual(first.booking_number, 'BK-20260204-001')
        self.assertEqual(second.booking_number, 'BK-20260204-002')

    def test_conflict_with_approved_booking(self):
        existing = book([14])
        approve_booking(existing.booking_id, now=BEFORE_PLAY)
        bookings_before = Booking.objects.count()
        customers_before = Customer.objects.count()

        with self.assertRaises(ConflictError) as ctx:
            book([13, 14], phone='03220000000', now=BEFORE_PLAY + timedelta(minutes=1))

        self.assertEqual(ctx.exception.conflicting_slots, [14])
        self.assertEqual(ctx.exception.reason, 'slot_conflict')
        self.assertEqual(Booking.objects.count(), bookings_before)
        self.assertEqual(Customer.objects.count(), customers_before)
        self.assertFalse(BookingSlot.objects.filter(slot_hour=13).exists())

    def test_conflict_with_live_pending_hold(self):
        book([20])
        with self.assertRaises(ConflictError):
            book([20], phone='03220000000', now=BEFORE_PLAY + timedelta(minutes=10))

    def test_lost_race_rolls_back_everything(self):
        existing = book([14])
        approve_booking(existing.booking_id, now=BEFORE_PLAY)
        counts = (Booking.objects.count(), BookingSlot.objects.count(), Customer.objects.count(),
                  Notification.objects.count())

        # Pretend the locked check ran before the competing insert landed.
        with patch('bookings.allocation._locked_conflicts', return_value=[]):
            with self.assertRaises(ConflictError) as ctx:
                book([13, 14], phone='03330000000', now=BEFORE_PLAY + timedelta(minutes=1))

        self.assertEqual(ctx.exception.conflicting_slots, [14])
        self.assertEqual(
            (Booking.objects.count(), BookingSlot.objects.count(), Customer.objects.count(),
             Notification.objects.count()),
            counts,
        )

    def test_expired_hold_does_not_block(self):
        stale = book([14, 15])
        fresh = book([15, 16], phone='03440000000', now=BEFORE_PLAY + timedelta(minutes=31))

        self.assertEqual(Booking.objects.get(id=stale.booking_id).status, BookingStatus.CANCELLED)
        self.assertEqual(Booking.objects.get(id=fresh.booking_id).status, BookingStatus.PENDING)
        self.assertEqual(
            BookingSlot.objects.filter(slot_date=PLAY_DATE, slot_hour=15).exclude(status=SlotStatus.CANCELLED).get().booking_id,
            fresh.booking_id,
        )

    def test_repeat_customer_matched_by_phone(self):
        book([8], name='Ali')
        book([9], name='Ali Raza')

        customer = Customer.objects.get(phone='03001234567')
        self.assertEqual(customer.name, 'Ali Raza')
        self.assertEqual(customer.bookings.count(), 2)

    def test_customers_without_phone_are_not_merged(self):
        book([8], name='Walk-in', phone='')
        book([9], name='Walk-in', phone='')
        self.assertEqual(Customer.objects.filter(name='Walk-in').count(), 2)

    def test_invalid_requests(self):
        cases = [
            dict(hours=[]),
            dict(hours=[24]),
            dict(hours=[-1]),
            dict(hours=[10, 10]),
            dict(hours=[10], advance='100'),
            dict(hours=[10], advance='2000'),
            dict(hours=[10], name='  '),
        ]
        for case in cases:
            with self.subTest(case=case):
                with self.assertRaises(ValidationError):
                    book(case['hours'], advance=case.get('advance', '500'), name=case.get('name', 'Ali'))
        self.assertEqual(Booking.objects.count(), 0)

    def test_past_hours_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            book([9, 10, 11], now=datetime(2026, 2, 5, 10, 5, tzinfo=KARACHI))
        self.assertEqual(ctx.exception.details['past_slots'], [9, 10])

    def test_claimed_total_must_match_rates(self):
        with self.assertRaises(ValidationError):
            reserve('Ali', PLAY_DATE, [14], Decimal('500'), 'cash', total_amount=Decimal('1000'), now=BEFORE_PLAY)

        reservation = reserve('Ali', PLAY_DATE, [14], Decimal('500'), 'cash', total_amount=Decimal('1500'), now=BEFORE_PLAY)
        self.assertEqual(reservation.total_amount, Decimal('1500'))

    def test_non_numeric_amounts_rejected(self):
        for advance, total in (('NaN', None), ('Infinity', None), ('abc', None), (None, None), ('500', 'NaN')):
            with self.subTest(advance=advance, total=total):
                with self.assertRaises(ValidationError):
                    reserve('Ali', PLAY_DATE, [14], advance, 'cash', total_amount=total, now=BEFORE_PLAY)
        self.assertEqual(Booking.objects.count(), 0)

    def test_storage_failure_writes_nothing(self):
        counts = (Booking.objects.count(), BookingSlot.objects.count(), Customer.objects.count())

        with patch.object(BookingSlot.objects, 'bulk_create', side_effect=OperationalError('disk I/O error')):
            with self.assertRaises(StorageError) as ctx:
                book([14, 15])

        self.assertEqual(ctx.exception.reason, 'storage_error')
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual((Booking.objects.count(), BookingSlot.objects.count(), Customer.objects.count()), counts)

    def test_advance_recorded_against_its_method(self):
        reservation = book([14])
        payment = Booking.objects.get(id=reservation.booking_id).payments.get()
        self.assertEqual(payment.online_amount, Decimal('500'))
        self.assertEqual(payment.online_method, 'easypaisa')
        self.assertEqual(payment.cash_amount, Decimal('0'))


class ExpirySweeperTest(TestCase):
    def test_sweep_is_idempotent(self):
        reservation = book([14, 15])
        later = BEFORE_PLAY + timedelta(minutes=45)

        self.assertEqual(sweep_expired(later), 1)
        self.assertEqual(sweep_expired(later), 0)

        booking = Booking.objects.get(id=reservation.booking_id)
        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(booking.cancelled_at, later)
        self.assertTrue(all(slot.status == SlotStatus.CANCELLED for slot in booking.slots.all()))

    def test_sweep_leaves_live_and_approved_bookings(self):
        live = book([10])
        approved = book([11], phone='03550000000')
        approve_booking(approved.booking_id, now=BEFORE_PLAY)

        self.assertEqual(sweep_expired(BEFORE_PLAY + timedelta(minutes=29)), 0)
        self.assertEqual(sweep_expired(BEFORE_PLAY + timedelta(hours=5)), 1)
        self.assertEqual(Booking.objects.get(id=live.booking_id).status, BookingStatus.CANCELLED)
        self.assertEqual(Booking.objects.get(id=approved.booking_id).status, BookingStatus.APPROVED)

    def test_management_command(self):
        out = StringIO()
        call_command('sweep_expired_holds', stdout=out)
        self.assertIn('No expired holds found', out.getvalue())


class BookingLifecycleTest(TestCase):
    def setUp(self):
        self.reservation = book([14, 15])

    def test_approve_pending_booking(self):
        admin = User.objects.create_user('admin', password='x', is_staff=True)
        booking = approve_booking(self.reservation.booking_id, admin_notes='Paid via EasyPaisa',
                                  approved_by=admin, now=BEFORE_PLAY + timedelta(minutes=5))

        booking.refresh_from_db()
        self.assertEqual(booking.status, BookingStatus.APPROVED)
        self.assertIsNone(booking.pending_expires_at)
        self.assertEqual(booking.approved_by, admin)
        self.assertEqual(booking.admin_notes, 'Paid via EasyPaisa')
        self.assertTrue(all(slot.status == SlotStatus.BOOKED for slot in booking.slots.all()))
        self.assertTrue(Notification.objects.filter(
            booking=booking, notification_type=NotificationType.BOOKING_APPROVED).exists())

    def test_expired_hold_cannot_be_approved(self):
        with self.assertRaises(StateError):
            approve_booking(self.reservation.booking_id, now=BEFORE_PLAY + timedelta(minutes=31))
        self.assertEqual(Booking.objects.get(id=self.reservation.booking_id).status, BookingStatus.CANCELLED)

    def test_approving_twice_is_rejected(self):
        approve_booking(self.reservation.booking_id, now=BEFORE_PLAY)
        with self.assertRaises(StateError) as ctx:
            approve_booking(self.reservation.booking_id, now=BEFORE_PLAY)
        self.assertEqual(ctx.exception.reason, 'wrong_status')

    def test_reject_releases_slots(self):
        booking = reject_booking(self.reservation.booking_id, 'Advance proof invalid', now=BEFORE_PLAY)

        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(booking.cancelled_reason, 'Advance proof invalid')
        self.assertTrue(all(slot.status == SlotStatus.CANCELLED for slot in booking.slots.all()))
        book([14, 15], phone='03660000000')

    def test_reject_approved_booking(self):
        approve_booking(self.reservation.booking_id, now=BEFORE_PLAY)
        booking = reject_booking(self.reservation.booking_id, 'Rain', now=BEFORE_PLAY)
        self.assertEqual(booking.status, BookingStatus.CANCELLED)

    def test_reject_requires_reason(self):
        with self.assertRaises(ValidationError):
            reject_booking(self.reservation.booking_id, '   ', now=BEFORE_PLAY)

    def test_cancelled_is_terminal(self):
        reject_booking(self.reservation.booking_id, 'Duplicate', now=BEFORE_PLAY)
        with self.assertRaises(StateError):
            reject_booking(self.reservation.booking_id, 'Again', now=BEFORE_PLAY)

    def test_unknown_booking(self):
        with self.assertRaises(NotFoundError):
            approve_booking(999999, now=BEFORE_PLAY)

    def test_transition_table(self):
        booking = Booking.objects.get(id=self.reservation.booking_id)
        self.assertTrue(booking.can_transition_to(BookingStatus.APPROVED))
        self.assertFalse(booking.can_transition_to(BookingStatus.COMPLETED))
        booking.status = BookingStatus.COMPLETED
        self.assertFalse(booking.can_transition_to(BookingStatus.CANCELLED))


class NotificationDeliveryTest(TestCase):
    @override_settings(NOTIFICATIONS_WEBHOOK_URL='https://hooks.example.com/notify')
    @patch('bookings.notifications.requests.post')
    def test_delivered_after_commit(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)

        with self.captureOnCommitCallbacks(execute=True):
            reservation = book([14])

        self.assertEqual(mock_post.call_count, 1)
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['type'], 'new_booking')
        self.assertEqual(payload['booking_id'], reservation.booking_id)

    @override_settings(NOTIFICATIONS_WEBHOOK_URL='https://hooks.example.com/notify')
    @patch('bookings.notifications.requests.post')
    def test_delivery_failure_is_not_fatal(self, mock_post):
        mock_post.side_effect = requests.ConnectionError('down')
        notification = emit(NotificationType.BOOKING_APPROVED, 'Title', 'Body')
        self.assertFalse(deliver(notification))

    def test_no_webhook_configured(self):
        notification = emit(NotificationType.BOOKING_APPROVED, 'Title', 'Body')
        self.assertFalse(deliver(notification))


class NotificationInboxTest(TestCase):
    def setUp(self):
        self.first = emit(NotificationType.NEW_BOOKING, 'New Booking Request', 'First')
        self.second = emit(NotificationType.BOOKING_APPROVED, 'Booking Approved', 'Second')

    def test_mark_single_notification_read(self):
        self.assertEqual(unread_count(), 2)

        mark_read(self.first.id)
        mark_read(self.first.id)

        self.assertEqual(unread_count(), 1)
        self.assertTrue(Notification.objects.get(id=self.first.id).is_read)
        self.assertEqual([n.id for n in list_notifications(is_read=False)], [self.second.id])
        self.assertEqual([n.id for n in list_notifications(is_read=True)], [self.first.id])
        self.assertEqual(len(list_notifications()), 2)

    def test_mark_all_read(self):
        mark_read(self.second.id)
        self.assertEqual(mark_all_read(), 1)
        self.assertEqual(unread_count(), 0)
        self.assertEqual(mark_all_read(), 0)

    def test_unknown_notification(self):
        with self.assertRaises(NotFoundError):
            mark_read(424242)


class BookingReportsTest(TestCase):
    def setUp(self):
        self.pending = book([14, 15])
        self.approved = book([18], name='Bilal Ahmed', phone='03125550000')
        approve_booking(self.approved.booking_id, now=BEFORE_PLAY)
        self.cancelled = book([9], name='Sara', phone='03335550000')
        reject_booking(self.cancelled.booking_id, 'Duplicate request', now=BEFORE_PLAY)
        self.prepaid = book([10], day=PLAY_DATE + timedelta(days=1), name='Zain', phone='03455550000', advance='1500')
        approve_booking(self.prepaid.booking_id, now=BEFORE_PLAY)

    def ids(self, page):
        return [booking.id for booking in page.bookings]

    def test_summary_counts_whole_filtered_set(self):
        page = list_bookings(limit=2)

        self.assertEqual(page.total, 4)
        self.assertEqual(len(page.bookings), 2)
        self.assertTrue(page.has_more)
        self.assertEqual(page.summary['pending'], 1)
        self.assertEqual(page.summary['approved'], 2)
        self.assertEqual(page.summary['cancelled'], 1)
        self.assertEqual(page.summary['fully_paid'], 1)
        self.assertEqual(page.summary['partially_paid'], 3)

    def test_filters(self):
        self.assertEqual(
            sorted(self.ids(list_bookings(status='approved'))),
            sorted([self.approved.booking_id, self.prepaid.booking_id]),
        )
        self.assertEqual(self.ids(list_bookings(remaining_only=True)), [self.approved.booking_id])
        self.assertEqual(self.ids(list_bookings(payment_status='paid')), [self.prepaid.booking_id])
        self.assertEqual(self.ids(list_bookings(search='bilal')), [self.approved.booking_id])
        self.assertEqual(len(list_bookings(search='5550000').bookings), 3)
        self.assertEqual(self.ids(list_bookings(search=self.pending.booking_number)), [self.pending.booking_id])
        self.assertEqual(self.ids(list_bookings(date_from=PLAY_DATE + timedelta(days=1))), [self.prepaid.booking_id])
        self.assertEqual(len(list_bookings(date_to=PLAY_DATE).bookings), 3)

    def test_sorting(self):
        page = list_bookings(sort_by='booking_date', sort_order='asc')
        self.assertEqual(page.bookings[-1].id, self.prepaid.booking_id)
        page = list_bookings(sort_by='booking_date', sort_order='desc')
        self.assertEqual(page.bookings[0].id, self.prepaid.booking_id)

    def test_bad_list_arguments(self):
        for kwargs in ({'sort_by': 'customer_id'}, {'sort_order': 'up'}, {'status': 'archived'},
                       {'payment_status': 'overdue'}, {'limit': 0}):
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError):
                    list_bookings(**kwargs)

    def test_calendar_events(self):
        events = calendar_events(PLAY_DATE, PLAY_DATE + timedelta(days=1))

        self.assertEqual(
            [event['id'] for event in events],
            [self.pending.booking_id, self.approved.booking_id, self.prepaid.booking_id],
        )
        first = events[0]
        self.assertEqual(first['title'], 'Ali Khan - 14:00-16:00')
        self.assertEqual(first['start'], '2026-02-05T14:00:00')
        self.assertEqual(first['end'], '2026-02-05T16:00:00')
        self.assertEqual(first['slot_hours'], [14, 15])
        self.assertEqual(events[1]['status'], BookingStatus.APPROVED)

    def test_calendar_status_filter_and_range(self):
        events = calendar_events(PLAY_DATE, PLAY_DATE, status='cancelled')
        self.assertEqual([event['id'] for event in events], [self.cancelled.booking_id])

        with self.assertRaises(ValidationError):
            calendar_events(PLAY_DATE, PLAY_DATE - timedelta(days=1))

    def test_slot_ranges(self):
        self.assertEqual(format_slot_ranges([18, 14, 15, 23]), '14:00-16:00, 18:00-19:00, 23:00-24:00')
        self.assertEqual(format_slot_ranges([7]), '07:00-08:00')


class BookingApiTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.play_date = timezone.localdate() + timedelta(days=10)
        self.admin = User.objects.create_user('admin', password='secret', is_staff=True)

    def post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def booking_payload(self, hours, phone='03001234567'):
        return {
            'customer_name': 'Ali Khan',
            'customer_phone': phone,
            'booking_date': self.play_date.isoformat(),
            'slot_hours': hours,
            'advance_amount': '500',
            'advance_method': 'easypaisa',
            'advance_proof': 'proofs/ali.png',
        }

    def test_list_slots(self):
        response = self.client.get('/api/bookings/slots/', {'date': self.play_date.isoformat()})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data['slots']), 24)
        self.assertEqual(data['slots'][14]['status'], 'available')
        self.assertEqual(data['slots'][14]['label'], '14:00')

    def test_list_slots_requires_valid_date(self):
        response = self.client.get('/api/bookings/slots/', {'date': 'tomorrow'})
        self.assertEqual(response.status_code, 400)

    def test_create_booking(self):
        response = self.post('/api/bookings/', self.booking_payload([14, 15]))

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(Decimal(data['remaining_due']), Decimal('2500'))
        self.assertTrue(data['booking_number'].startswith('BK-'))

        slots = self.client.get('/api/bookings/slots/', {'date': self.play_date.isoformat()}).json()['slots']
        self.assertEqual(slots[14]['status'], 'pending')

    def test_conflicting_booking_returns_409(self):
        self.post('/api/bookings/', self.booking_payload([14]))
        response = self.post('/api/bookings/', self.booking_payload([13, 14], phone='03119999999'))

        self.assertEqual(response.status_code, 409)
        data = response.json()
        self.assertEqual(data['reason'], 'slot_conflict')
        self.assertEqual(data['conflicting_slots'], [14])

    def test_invalid_booking_request(self):
        payload = self.booking_payload([])
        response = self.post('/api/bookings/', payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'invalid_input')

        response = self.post('/api/bookings/', self.booking_payload([30]))
        self.assertEqual(response.status_code, 400)

    def test_conflict_check(self):
        self.post('/api/bookings/', self.booking_payload([14]))
        response = self.post('/api/bookings/slots/conflict-check/', {
            'booking_date': self.play_date.isoformat(),
            'slot_hours': [13, 14],
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'available': False, 'conflicting_slots': [14]})

    def test_search_by_phone(self):
        self.post('/api/bookings/', self.booking_payload([14]))
        response = self.client.get('/api/bookings/search/', {'phone': '1234567'})
        self.assertEqual(response.status_code, 200)
        bookings = response.json()['bookings']
        self.assertEqual(len(bookings), 1)
        self.assertEqual(bookings[0]['slot_hours'], [14])

    def test_search_requires_criteria(self):
        response = self.client.get('/api/bookings/search/')
        self.assertEqual(response.status_code, 400)

    def test_admin_endpoints_require_staff(self):
        booking_id = self.post('/api/bookings/', self.booking_payload([14])).json()['booking_id']

        response = self.post(f'/api/bookings/{booking_id}/approve/', {})
        self.assertEqual(response.status_code, 401)

        User.objects.create_user('viewer', password='secret')
        self.client.login(username='viewer', password='secret')
        response = self.post(f'/api/bookings/{booking_id}/approve/', {})
        self.assertEqual(response.status_code, 403)

    def test_admin_approves_and_rejects(self):
        first = self.post('/api/bookings/', self.booking_payload([14])).json()['booking_id']
        second = self.post('/api/bookings/', self.booking_payload([16], phone='03118888888')).json()['booking_id']
        self.client.force_login(self.admin)

        response = self.post(f'/api/bookings/{first}/approve/', {'admin_notes': 'Advance verified'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'approved')

        response = self.post(f'/api/bookings/{first}/approve/', {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['reason'], 'wrong_status')

        response = self.post(f'/api/bookings/{second}/reject/', {'reason': 'Fake proof'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Booking.objects.get(id=second).status, BookingStatus.CANCELLED)

        detail = self.client.get(f'/api/bookings/{first}/').json()
        self.assertEqual(detail['status'], 'approved')
        self.assertEqual(detail['admin_notes'], 'Advance verified')
        self.assertEqual(len(detail['slots']), 1)

    def test_unknown_booking_returns_404(self):
        self.client.force_login(self.admin)
        response = self.post('/api/bookings/424242/approve/', {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['reason'], 'not_found')

    def test_sweep_endpoint(self):
        self.client.force_login(self.admin)
        response = self.post('/api/bookings/sweep/', {})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'released': 0})

    def test_ground_settings_round_trip(self):
        self.client.force_login(self.admin)
        response = self.client.get('/api/bookings/settings/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['night_start_hour'], 17)

        response = self.client.put('/api/bookings/settings/', data=json.dumps({
            'day_rate': '1800',
            'night_rate': '2400',
            'night_start_hour': 18,
            'night_end_hour': 6,
            'advance_minimum': '1000',
            'pending_hold_minutes': 45,
        }), content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(GroundSettings.current().day_rate, Decimal('1800'))

        response = self.client.put('/api/bookings/settings/', data=json.dumps({
            'day_rate': '1800',
            'night_rate': '2400',
            'night_start_hour': 25,
            'night_end_hour': 6,
            'advance_minimum': '1000',
            'pending_hold_minutes': 45,
        }), content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_admin_booking_list(self):
        self.post('/api/bookings/', self.booking_payload([14]))
        self.post('/api/bookings/', self.booking_payload([16], phone='03118888888'))

        self.assertEqual(self.client.get('/api/bookings/list/').status_code, 401)

        self.client.force_login(self.admin)
        response = self.client.get('/api/bookings/list/', {'status': 'pending', 'limit': 1})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data['bookings']), 1)
        self.assertEqual(data['summary']['pending'], 2)
        self.assertEqual(data['pagination'], {'total': 2, 'limit': 1, 'offset': 0, 'has_more': True})

        response = self.client.get('/api/bookings/list/', {'search': '8888888'})
        self.assertEqual([b['slot_hours'] for b in response.json()['bookings']], [[16]])

        response = self.client.get('/api/bookings/list/', {'sort_by': 'customer_id'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], 'invalid_input')

    def test_calendar_feed(self):
        self.post('/api/bookings/', self.booking_payload([14, 15]))
        self.client.force_login(self.admin)

        response = self.client.get('/api/bookings/calendar/', {
            'start': self.play_date.isoformat(),
            'end': self.play_date.isoformat(),
        })
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['count'], 1)
        self.assertEqual(data['events'][0]['title'], 'Ali Khan - 14:00-16:00')
        self.assertEqual(data['filters']['start'], self.play_date.isoformat())

        response = self.client.get('/api/bookings/calendar/', {
            'start': self.play_date.isoformat(),
            'end': (self.play_date - timedelta(days=1)).isoformat(),
        })
        self.assertEqual(response.status_code, 400)

    def test_notification_inbox(self):
        self.post('/api/bookings/', self.booking_payload([14]))
        self.post('/api/bookings/', self.booking_payload([16], phone='03118888888'))

        self.assertEqual(self.client.get('/api/bookings/notifications/').status_code, 401)

        self.client.force_login(self.admin)
        data = self.client.get('/api/bookings/notifications/').json()
        self.assertEqual(data['unread_count'], 2)
        self.assertEqual(data['notifications'][0]['notification_type'], 'new_booking')
        self.assertTrue(data['notifications'][0]['booking_number'].startswith('BK-'))

        first = data['notifications'][0]['id']
        response = self.post(f'/api/bookings/notifications/{first}/read/', {})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['notification']['is_read'])

        unread = self.client.get('/api/bookings/notifications/', {'is_read': 'false'}).json()
        self.assertEqual(len(unread['notifications']), 1)
        self.assertEqual(unread['unread_count'], 1)

        response = self.post('/api/bookings/notifications/mark-all-read/', {})
        self.assertEqual(response.json()['count'], 1)
        self.assertEqual(Notification.objects.filter(is_read=False).count(), 0)

        response = self.post('/api/bookings/notifications/424242/read/', {})
        self.assertEqual(response.status_code, 404)
