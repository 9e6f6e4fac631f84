import logging

import requests
from django.conf import settings
from django.db import transaction

from .exceptions import NotFoundError
from .models import Notification

logger = logging.getLogger(__name__)


def emit(notification_type, title, message, booking=None, priority='normal'):
    """
    Record a notification inside the caller's transaction.

    Delivery is left to an external service: once the surrounding transaction
    commits, the record is forwarded to NOTIFICATIONS_WEBHOOK_URL. A rolled
    back booking therefore never produces a delivered notification.
    """
    notification = Notification.objects.create(
        notification_type=notification_type,
        title=title,
        message=message,
        booking=booking,
        priority=priority,
    )
    transaction.on_commit(lambda: deliver(notification))
    return notification


def deliver(notification):
    if not settings.NOTIFICATIONS_WEBHOOK_URL:
        return False

    payload = {
        'notification_id': notification.id,
        'type': notification.notification_type,
        'title': notification.title,
        'message': notification.message,
        'priority': notification.priority,
        'booking_id': notification.booking_id,
    }
    try:
        response = requests.post(settings.NOTIFICATIONS_WEBHOOK_URL, json=payload, timeout=5)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Notification %s delivery failed: %s", notification.id, exc)
        return False
    return True


def list_notifications(is_read=None, limit=50, offset=0):
    notifications = Notification.objects.select_related('booking').order_by('-created_at', '-id')
    if is_read is not None:
        notifications = notifications.filter(is_read=is_read)
    return list(notifications[offset:offset + limit])


def unread_count():
    return Notification.objects.filter(is_read=False).count()


def mark_read(notification_id):
    try:
        notification = Notification.objects.get(id=notification_id)
    except Notification.DoesNotExist:
        raise NotFoundError('Notification not found', details={'notification_id': notification_id})
    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=['is_read'])
    return notification


def mark_all_read():
    count = Notification.objects.filter(is_read=False).update(is_read=True)
    logger.info("Marked %d notification(s) as read", count)
    return count
