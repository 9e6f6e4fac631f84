import json

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from bookings.auth import admin_required
from bookings.exceptions import BookingError
from bookings.models import Booking
from bookings.serializers import PublicBookingSerializer

from .reconciliation import complete_payment
from .reports import dashboard_stats
from .serializers import CompletePaymentSerializer, ExtraChargeSerializer, PaymentSerializer


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def complete_booking_payment(request, booking_id):
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    serializer = CompletePaymentSerializer(data=data)
    if not serializer.is_valid():
        return JsonResponse({
            'success': False,
            'reason': 'invalid_input',
            'error': 'Invalid request',
            'details': serializer.errors,
        }, status=400)
    payload = serializer.validated_data

    try:
        result = complete_payment(
            booking_id,
            payment_method=payload['payment_method'],
            amount=payload['amount'],
            extra_charges=payload['extra_charges'],
            discount_amount=payload['discount_amount'],
            cash_amount=payload['cash_amount'],
            online_amount=payload['online_amount'],
            online_method=payload['online_method'],
            payment_proof=payload['payment_proof'],
            admin_notes=payload['admin_notes'] or None,
            completed_by=request.user,
        )
    except BookingError as exc:
        return JsonResponse(exc.to_dict(), status=exc.status_code)

    return JsonResponse(result.as_dict())


@require_http_methods(["GET"])
@admin_required
def get_booking_payments(request, booking_id):
    try:
        booking = Booking.objects.get(id=booking_id)
    except Booking.DoesNotExist:
        return JsonResponse({'error': 'Booking not found'}, status=404)

    return JsonResponse({
        'booking_id': booking.id,
        'booking_number': booking.booking_number,
        'status': booking.status,
        'total_amount': booking.total_amount,
        'advance_amount': booking.advance_amount,
        'remaining_due': booking.remaining_due,
        'remaining_paid_amount': booking.remaining_paid_amount,
        'discount_amount': booking.discount_amount,
        'extra_charges': ExtraChargeSerializer(booking.extra_charges.all(), many=True).data,
        'payments': PaymentSerializer(booking.payments.all(), many=True).data,
    })


@require_http_methods(["GET"])
@admin_required
def dashboard(request):
    stats = dashboard_stats()
    stats['recent_bookings'] = PublicBookingSerializer(stats['recent_bookings'], many=True).data
    return JsonResponse({'success': True, 'data': stats})
