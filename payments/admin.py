from django.contrib import admin
from .models import ExtraCharge, Payment


@admin.register(ExtraCharge)
class ExtraChargeAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'category', 'amount_display', 'created_by', 'created_at']
    list_filter = ['category', 'created_at']
    search_fields = ['category', 'booking__booking_number']
    readonly_fields = ['created_at']
    raw_id_fields = ['booking']

    def amount_display(self, obj):
        return f"Rs {obj.amount:,.2f}"
    amount_display.short_description = 'Amount'


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'payment_type', 'amount_display', 'method', 'split_display', 'received_by', 'created_at']
    list_filter = ['payment_type', 'method', 'online_method', 'created_at']
    search_fields = ['booking__booking_number', 'proof', 'notes']
    readonly_fields = ['created_at']
    raw_id_fields = ['booking']

    fieldsets = (
        ('Booking', {
            'fields': ('booking', 'payment_type')
        }),
        ('Payment Details', {
            'fields': ('amount', 'method', 'proof')
        }),
        ('Split', {
            'fields': ('cash_amount', 'online_amount', 'online_method')
        }),
        ('Audit', {
            'fields': ('received_by', 'notes', 'created_at')
        }),
    )

    def amount_display(self, obj):
        return f"Rs {obj.amount:,.2f}"
    amount_display.short_description = 'Amount'

    def split_display(self, obj):
        if obj.cash_amount and obj.online_amount:
            return f"Rs {obj.cash_amount:,.2f} cash + Rs {obj.online_amount:,.2f} {obj.online_method}"
        return '-'
    split_display.short_description = 'Split'
