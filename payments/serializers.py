from rest_framework import serializers

from .models import ExtraCharge, Payment, PaymentMethod

MONEY = dict(max_digits=10, decimal_places=2)


class ExtraChargeInputSerializer(serializers.Serializer):
    category = serializers.CharField(max_length=100)
    amount = serializers.DecimalField(**MONEY)


class CompletePaymentSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount = serializers.DecimalField(**MONEY)
    extra_charges = ExtraChargeInputSerializer(many=True, required=False, default=list)
    discount_amount = serializers.DecimalField(required=False, default=0, **MONEY)
    cash_amount = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)
    online_amount = serializers.DecimalField(required=False, allow_null=True, default=None, **MONEY)
    online_method = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    payment_proof = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    admin_notes = serializers.CharField(required=False, allow_blank=True, default='')


class ExtraChargeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExtraCharge
        fields = ['id', 'category', 'amount', 'created_at']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'id', 'payment_type', 'amount', 'method', 'proof', 'cash_amount',
            'online_amount', 'online_method', 'notes', 'created_at',
        ]
        read_only_fields = fields
