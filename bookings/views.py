import json
from datetime import date, timedelta

from django.db.models import Prefetch
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .allocation import reserve
from .auth import admin_required
from .availability import available_slots, find_conflicts
from .exceptions import BookingError
from .expiry import sweep_expired
from .lifecycle import approve_booking, reject_booking
from .models import Booking, BookingSlot, GroundSettings
from .notifications import list_notifications, mark_all_read, mark_read, unread_count
from .reports import CALENDAR_DAYS, calendar_events, list_bookings
from .serializers import (
    ApproveSerializer,
    BookingListQuerySerializer,
    BookingSerializer,
    CalendarQuerySerializer,
    ConflictCheckSerializer,
    GroundSettingsSerializer,
    NotificationQuerySerializer,
    NotificationSerializer,
    PublicBookingSerializer,
    RejectSerializer,
    ReservationRequestSerializer,
)

SEARCH_LIMIT = 20


def error_response(exc):
    return JsonResponse(exc.to_dict(), status=exc.status_code)


def invalid_input(errors):
    return JsonResponse({
        'success': False,
        'reason': 'invalid_input',
        'error': 'Invalid request',
        'details': errors,
    }, status=400)


def parse_json(request):
    try:
        return json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        return None


@require_http_methods(["GET"])
def list_slots(request):
    raw_date = request.GET.get('date')
    try:
        day = date.fromisoformat(raw_date)
    except (TypeError, ValueError):
        return JsonResponse({'error': 'date query parameter must be YYYY-MM-DD'}, status=400)

    slots = available_slots(day)
    return JsonResponse({
        'date': day.isoformat(),
        'slots': [slot.as_dict() for slot in slots],
    })


@csrf_exempt
@require_http_methods(["POST"])
def check_conflicts(request):
    data = parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    serializer = ConflictCheckSerializer(data=data)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)

    try:
        conflicts = find_conflicts(
            serializer.validated_data['booking_date'],
            serializer.validated_data['slot_hours'],
        )
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'available': not conflicts,
        'conflicting_slots': conflicts,
    })


@csrf_exempt
@require_http_methods(["POST"])
def create_booking(request):
    data = parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    serializer = ReservationRequestSerializer(data=data)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)
    payload = serializer.validated_data

    try:
        reservation = reserve(
            customer_name=payload['customer_name'],
            customer_phone=payload['customer_phone'],
            booking_date=payload['booking_date'],
            slot_hours=payload['slot_hours'],
            advance_amount=payload['advance_amount'],
            advance_method=payload['advance_method'],
            advance_proof=payload['advance_proof'],
            customer_notes=payload['notes'],
            total_amount=payload['total_amount'],
        )
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'success': True,
        'booking_id': reservation.booking_id,
        'booking_number': reservation.booking_number,
        'status': 'pending',
        'total_amount': reservation.total_amount,
        'advance_amount': reservation.advance_amount,
        'remaining_due': reservation.remaining_due,
        'expires_at': reservation.expires_at.isoformat(),
    }, status=201)


@require_http_methods(["GET"])
def search_bookings(request):
    name = request.GET.get('name', '').strip()
    phone = request.GET.get('phone', '').strip()
    if not name and not phone:
        return JsonResponse({'error': 'Name or phone number is required'}, status=400)

    bookings = Booking.objects.select_related('customer').prefetch_related(
        Prefetch('slots', queryset=BookingSlot.objects.order_by('slot_hour'))
    )
    if name:
        bookings = bookings.filter(customer__name__icontains=name)
    if phone:
        bookings = bookings.filter(customer__phone__icontains=phone)

    return JsonResponse({
        'success': True,
        'bookings': PublicBookingSerializer(bookings[:SEARCH_LIMIT], many=True).data,
    })


@require_http_methods(["GET"])
@admin_required
def get_booking(request, booking_id):
    try:
        booking = Booking.objects.select_related('customer').prefetch_related('slots').get(id=booking_id)
    except Booking.DoesNotExist:
        return JsonResponse({'error': 'Booking not found'}, status=404)
    return JsonResponse(BookingSerializer(booking).data)


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def approve(request, booking_id):
    data = parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    serializer = ApproveSerializer(data=data)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)

    try:
        booking = approve_booking(
            booking_id,
            admin_notes=serializer.validated_data['admin_notes'] or None,
            approved_by=request.user,
        )
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'success': True,
        'booking_number': booking.booking_number,
        'status': booking.status,
        'message': 'Booking approved successfully',
    })


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def reject(request, booking_id):
    data = parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    serializer = RejectSerializer(data=data)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)

    try:
        booking = reject_booking(booking_id, serializer.validated_data['reason'])
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'success': True,
        'booking_number': booking.booking_number,
        'status': booking.status,
        'message': 'Booking cancelled successfully',
    })


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def sweep(request):
    released = sweep_expired()
    return JsonResponse({'released': released})


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@admin_required
def ground_settings(request):
    if request.method == 'GET':
        config = GroundSettings.current()
        return JsonResponse(GroundSettingsSerializer(config).data)

    data = parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    instance = GroundSettings.objects.filter(pk=1).first()
    serializer = GroundSettingsSerializer(instance, data=data)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)
    serializer.save()
    return JsonResponse(serializer.data)


@require_http_methods(["GET"])
@admin_required
def admin_bookings(request):
    serializer = BookingListQuerySerializer(data=request.GET)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)
    params = serializer.validated_data

    try:
        page = list_bookings(
            status=params.get('status'),
            payment_status=params.get('payment_status'),
            search=params.get('search'),
            date_from=params.get('date_from'),
            date_to=params.get('date_to'),
            remaining_only=params['remaining_only'],
            sort_by=params['sort_by'],
            sort_order=params['sort_order'],
            limit=params['limit'],
            offset=params['offset'],
        )
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'success': True,
        'bookings': BookingSerializer(page.bookings, many=True).data,
        'summary': page.summary,
        'pagination': {
            'total': page.total,
            'limit': page.limit,
            'offset': page.offset,
            'has_more': page.has_more,
        },
    })


@require_http_methods(["GET"])
@admin_required
def calendar(request):
    serializer = CalendarQuerySerializer(data=request.GET)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)
    params = serializer.validated_data
    start = params.get('start') or timezone.localdate()
    end = params.get('end') or start + timedelta(days=CALENDAR_DAYS)

    try:
        events = calendar_events(start, end, status=params.get('status'))
    except BookingError as exc:
        return error_response(exc)

    return JsonResponse({
        'success': True,
        'events': events,
        'count': len(events),
        'filters': {'start': start, 'end': end, 'status': params.get('status')},
    })


@require_http_methods(["GET"])
@admin_required
def notifications(request):
    serializer = NotificationQuerySerializer(data=request.GET)
    if not serializer.is_valid():
        return invalid_input(serializer.errors)
    params = serializer.validated_data
    is_read = {'true': True, 'false': False}.get(params.get('is_read'))

    items = list_notifications(is_read=is_read, limit=params['limit'], offset=params['offset'])
    return JsonResponse({
        'success': True,
        'notifications': NotificationSerializer(items, many=True).data,
        'unread_count': unread_count(),
    })


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def read_notification(request, notification_id):
    try:
        notification = mark_read(notification_id)
    except BookingError as exc:
        return error_response(exc)
    return JsonResponse({'success': True, 'notification': NotificationSerializer(notification).data})


@csrf_exempt
@require_http_methods(["POST"])
@admin_required
def read_all_notifications(request):
    count = mark_all_read()
    return JsonResponse({
        'success': True,
        'count': count,
        'message': f'{count} notification(s) marked as read',
    })
