from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from .rates import GroundConfig

MONEY = dict(max_digits=10, decimal_places=2)


class BookingStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class SlotStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    PENDING = 'pending', 'Pending'
    BOOKED = 'booked', 'Booked'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class NotificationType(models.TextChoices):
    NEW_BOOKING = 'new_booking', 'New booking'
    BOOKING_APPROVED = 'booking_approved', 'Booking approved'
    BOOKING_CANCELLED = 'booking_cancelled', 'Booking cancelled'
    PAYMENT_COMPLETED = 'payment_completed', 'Payment completed'


ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Slot status that follows each booking status.
SLOT_STATUS_FOR = {
    BookingStatus.PENDING: SlotStatus.PENDING,
    BookingStatus.APPROVED: SlotStatus.BOOKED,
    BookingStatus.COMPLETED: SlotStatus.COMPLETED,
    BookingStatus.CANCELLED: SlotStatus.CANCELLED,
}


class Customer(models.Model):
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings_customer'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.phone})" if self.phone else self.name


class Booking(models.Model):
    booking_number = models.CharField(max_length=32, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='bookings')
    booking_date = models.DateField(db_index=True)
    total_hours = models.PositiveIntegerField()
    total_amount = models.DecimalField(**MONEY)

    advance_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    advance_method = models.CharField(max_length=32, blank=True)
    advance_proof = models.CharField(max_length=500, blank=True)

    remaining_due = models.DecimalField(default=Decimal('0'), **MONEY)
    remaining_paid_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    remaining_method = models.CharField(max_length=32, blank=True)
    remaining_proof = models.CharField(max_length=500, blank=True)
    remaining_cash_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    remaining_online_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    remaining_online_method = models.CharField(max_length=32, blank=True)
    discount_amount = models.DecimalField(default=Decimal('0'), **MONEY)

    status = models.CharField(
        max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING, db_index=True
    )
    pending_expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_reason = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )

    customer_notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings_booking'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=Q(advance_amount__gte=0), name='booking_advance_non_negative'),
            models.CheckConstraint(condition=Q(remaining_due__gte=0), name='booking_remaining_non_negative'),
            models.CheckConstraint(condition=Q(discount_amount__gte=0), name='booking_discount_non_negative'),
        ]

    def __str__(self):
        return f"{self.booking_number} - {self.booking_date} - {self.status}"

    def can_transition_to(self, status):
        return status in ALLOWED_TRANSITIONS[BookingStatus(self.status)]

    def is_hold_expired(self, now):
        return (
            self.status == BookingStatus.PENDING
            and self.pending_expires_at is not None
            and self.pending_expires_at < now
        )


class BookingSlot(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='slots')
    slot_date = models.DateField()
    slot_hour = models.PositiveSmallIntegerField()
    hourly_rate = models.DecimalField(**MONEY)
    is_night_rate = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=SlotStatus.choices, default=SlotStatus.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings_slot'
        ordering = ['slot_date', 'slot_hour']
        indexes = [models.Index(fields=['slot_date', 'slot_hour'], name='slot_date_hour_idx')]
        constraints = [
            models.UniqueConstraint(
                fields=['slot_date', 'slot_hour'],
                condition=~Q(status='cancelled'),
                name='unique_active_slot',
            ),
            models.CheckConstraint(condition=Q(slot_hour__lte=23), name='slot_hour_in_day'),
        ]

    def __str__(self):
        return f"{self.slot_date} {self.slot_hour:02d}:00 ({self.status})"


class Notification(models.Model):
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
    ]

    notification_type = models.CharField(max_length=32, choices=NotificationType.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()
    booking = models.ForeignKey(
        Booking, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications'
    )
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bookings_notification'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.notification_type}: {self.title}"


class GroundSettings(models.Model):
    day_rate = models.DecimalField(**MONEY)
    night_rate = models.DecimalField(**MONEY)
    night_start_hour = models.PositiveSmallIntegerField()
    night_end_hour = models.PositiveSmallIntegerField()
    advance_minimum = models.DecimalField(**MONEY)
    pending_hold_minutes = models.PositiveIntegerField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bookings_ground_settings'
        verbose_name_plural = 'ground settings'
        constraints = [
            models.CheckConstraint(condition=Q(night_start_hour__lte=23), name='night_start_in_day'),
            models.CheckConstraint(condition=Q(night_end_hour__lte=23), name='night_end_in_day'),
        ]

    def __str__(self):
        return f"Day {self.day_rate} / Night {self.night_rate}"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @staticmethod
    def defaults():
        return GroundConfig(
            day_rate=Decimal(settings.GROUND_DAY_RATE),
            night_rate=Decimal(settings.GROUND_NIGHT_RATE),
            night_start_hour=settings.GROUND_NIGHT_START_HOUR,
            night_end_hour=settings.GROUND_NIGHT_END_HOUR,
            advance_minimum=Decimal(settings.GROUND_ADVANCE_MINIMUM),
            pending_hold_minutes=settings.GROUND_PENDING_HOLD_MINUTES,
        )

    @classmethod
    def current(cls):
        row = cls.objects.filter(pk=1).first()
        if row is None:
            return cls.defaults()
        return row.as_config()

    def as_config(self):
        return GroundConfig(
            day_rate=self.day_rate,
            night_rate=self.night_rate,
            night_start_hour=self.night_start_hour,
            night_end_hour=self.night_end_hour,
            advance_minimum=self.advance_minimum,
            pending_hold_minutes=self.pending_hold_minutes,
        )
