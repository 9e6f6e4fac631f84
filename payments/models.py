from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from bookings.models import MONEY, Booking


class PaymentType(models.TextChoices):
    ADVANCE = 'advance', 'Advance'
    REMAINING = 'remaining', 'Remaining'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    EASYPAISA = 'easypaisa', 'EasyPaisa'
    SADAPAY = 'sadapay', 'SadaPay'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
    SPLIT = 'split', 'Cash + online'


class OnlineMethod(models.TextChoices):
    EASYPAISA = 'easypaisa', 'EasyPaisa'
    SADAPAY = 'sadapay', 'SadaPay'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'


class ExtraCharge(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='extra_charges')
    category = models.CharField(max_length=100)
    amount = models.DecimalField(**MONEY)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments_extra_charge'
        ordering = ['created_at', 'id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='extra_charge_positive'),
        ]

    def __str__(self):
        return f"{self.category}: {self.amount}"


class Payment(models.Model):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='payments')
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices)
    amount = models.DecimalField(**MONEY)
    method = models.CharField(max_length=32, blank=True)
    proof = models.CharField(max_length=500, blank=True)
    cash_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    online_amount = models.DecimalField(default=Decimal('0'), **MONEY)
    online_method = models.CharField(max_length=32, blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments_payment'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.payment_type} {self.amount} for {self.booking.booking_number}"
