from typing import Optional

from rest_framework.exceptions import NotFound

from portal.models import Notification


def create_notification(*, user_id: int, title: str, message: str, type: str = Notification.TYPE_GENERAL,
                        metadata: Optional[dict] = None) -> Notification:
    return Notification.objects.create(
        user_id=user_id, title=title, message=message, type=type, metadata=metadata or {}, read=False,
    )


def list_unread(user):
    return Notification.objects.filter(user=user, read=False).order_by('-created_at')


def mark_read(user, notification_id: int) -> Notification:
    n = Notification.objects.filter(pk=notification_id, user=user).first()
    if n is None:
        raise NotFound('Notification not found')
    if not n.read:
        n.read = True
        n.save(update_fields=['read'])
    return n
