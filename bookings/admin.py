from django.contrib import admin
from .models import Booking, BookingSlot, Customer, GroundSettings, Notification


class BookingSlotInline(admin.TabularInline):
    model = BookingSlot
    extra = 0
    readonly_fields = ['slot_date', 'slot_hour', 'hourly_rate', 'is_night_rate', 'status']
    can_delete = False


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'created_at']
    search_fields = ['name', 'phone']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['booking_number', 'customer', 'booking_date', 'total_hours', 'total_display', 'remaining_display', 'status', 'created_at']
    list_filter = ['status', 'booking_date', 'created_at']
    search_fields = ['booking_number', 'customer__name', 'customer__phone']
    raw_id_fields = ['customer']
    inlines = [BookingSlotInline]
    readonly_fields = [
        'booking_number', 'status', 'pending_expires_at', 'approved_at', 'approved_by',
        'cancelled_at', 'completed_at', 'completed_by', 'created_at', 'updated_at',
    ]

    fieldsets = (
        ('Booking', {
            'fields': ('booking_number', 'customer', 'booking_date', 'total_hours', 'status', 'pending_expires_at')
        }),
        ('Advance Payment', {
            'fields': ('total_amount', 'advance_amount', 'advance_method', 'advance_proof')
        }),
        ('Remaining Payment', {
            'fields': (
                'remaining_due', 'remaining_paid_amount', 'remaining_method', 'remaining_proof',
                'remaining_cash_amount', 'remaining_online_amount', 'remaining_online_method',
                'discount_amount',
            )
        }),
        ('Admin', {
            'fields': ('approved_at', 'approved_by', 'cancelled_at', 'cancelled_reason', 'completed_at', 'completed_by', 'admin_notes', 'customer_notes')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    def total_display(self, obj):
        return f"Rs {obj.total_amount:,.2f}"
    total_display.short_description = 'Total'

    def remaining_display(self, obj):
        if obj.remaining_due:
            return f"Rs {obj.remaining_due:,.2f}"
        return '-'
    remaining_display.short_description = 'Remaining'


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'notification_type', 'title', 'booking', 'priority', 'is_read', 'created_at']
    list_filter = ['notification_type', 'priority', 'is_read']
    search_fields = ['title', 'message', 'booking__booking_number']
    raw_id_fields = ['booking']


@admin.register(GroundSettings)
class GroundSettingsAdmin(admin.ModelAdmin):
    list_display = ['day_rate', 'night_rate', 'night_start_hour', 'night_end_hour', 'advance_minimum', 'pending_hold_minutes', 'updated_at']

    def has_add_permission(self, request):
        return not GroundSettings.objects.exists()
