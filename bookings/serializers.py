from rest_framework import serializers

from .models import Booking, BookingSlot, BookingStatus, GroundSettings, Notification
from .reports import DEFAULT_LIMIT, MAX_LIMIT, SORT_FIELDS

MONEY = dict(max_digits=10, decimal_places=2)

ADVANCE_METHOD_CHOICES = ['cash', 'easypaisa', 'sadapay', 'bank_transfer']


class ReservationRequestSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=255)
    customer_phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    booking_date = serializers.DateField()
    slot_hours = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    advance_amount = serializers.DecimalField(**MONEY)
    advance_method = serializers.ChoiceField(choices=ADVANCE_METHOD_CHOICES)
    advance_proof = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    total_amount = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class ConflictCheckSerializer(serializers.Serializer):
    booking_date = serializers.DateField()
    slot_hours = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class ApproveSerializer(serializers.Serializer):
    admin_notes = serializers.CharField(required=False, allow_blank=True, default='')


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField()


class BookingSlotSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingSlot
        fields = ['slot_date', 'slot_hour', 'hourly_rate', 'is_night_rate', 'status']


class BookingSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True)
    slots = BookingSlotSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id', 'booking_number', 'customer_name', 'customer_phone', 'booking_date',
            'total_hours', 'total_amount', 'advance_amount', 'advance_method', 'advance_proof',
            'remaining_due', 'remaining_paid_amount', 'remaining_method', 'remaining_proof',
            'remaining_cash_amount', 'remaining_online_amount', 'remaining_online_method',
            'discount_amount', 'status', 'pending_expires_at', 'approved_at', 'cancelled_at',
            'cancelled_reason', 'completed_at', 'customer_notes', 'admin_notes', 'created_at',
            'slots',
        ]
        read_only_fields = fields


class PublicBookingSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    slot_hours = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            'booking_number', 'customer_name', 'booking_date', 'total_hours', 'total_amount',
            'advance_amount', 'remaining_due', 'status', 'slot_hours', 'created_at',
        ]
        read_only_fields = fields

    def get_slot_hours(self, obj):
        return sorted(slot.slot_hour for slot in obj.slots.all())


class GroundSettingsSerializer(serializers.ModelSerializer):
    night_start_hour = serializers.IntegerField(min_value=0, max_value=23)
    night_end_hour = serializers.IntegerField(min_value=0, max_value=23)
    day_rate = serializers.DecimalField(min_value=0, **MONEY)
    night_rate = serializers.DecimalField(min_value=0, **MONEY)
    advance_minimum = serializers.DecimalField(min_value=0, **MONEY)
    pending_hold_minutes = serializers.IntegerField(min_value=1)

    class Meta:
        model = GroundSettings
        fields = [
            'day_rate', 'night_rate', 'night_start_hour', 'night_end_hour',
            'advance_minimum', 'pending_hold_minutes',
        ]


class BookingListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['all', *BookingStatus.values], required=False)
    payment_status = serializers.ChoiceField(choices=['all', 'paid', 'pending'], required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    remaining_only = serializers.BooleanField(required=False, default=False)
    sort_by = serializers.ChoiceField(choices=SORT_FIELDS, required=False, default='created_at')
    sort_order = serializers.ChoiceField(choices=['asc', 'desc'], required=False, default='desc')
    limit = serializers.IntegerField(min_value=1, max_value=MAX_LIMIT, required=False, default=DEFAULT_LIMIT)
    offset = serializers.IntegerField(min_value=0, required=False, default=0)


class CalendarQuerySerializer(serializers.Serializer):
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=BookingStatus.values, required=False)


class NotificationQuerySerializer(serializers.Serializer):
    is_read = serializers.ChoiceField(choices=['true', 'false'], required=False)
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False, default=50)
    offset = serializers.IntegerField(min_value=0, required=False, default=0)


class NotificationSerializer(serializers.ModelSerializer):
    booking_number = serializers.CharField(source='booking.booking_number', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'title', 'message', 'priority', 'is_read',
            'booking', 'booking_number', 'created_at',
        ]
        read_only_fields = fields
