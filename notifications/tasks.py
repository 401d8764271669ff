"""Background tasks using Celery."""

import logging
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def send_notification(user_id, kind, context):
    """
    Store and deliver one customer notification.

    Args:
        user_id: UUID of the recipient
        kind: notification kind (see Notification.Kind)
        context: template values, including order_id when relevant
    """
    from notifications.models import Notification
    from notifications.services import render
    from users.models import User

    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        logger.error(f"Notification {kind} dropped: user {user_id} not found")
        return False

    title, body = render(kind, context)
    notification = Notification.objects.create(
        user=user,
        order_id=context.get('order_id'),
        kind=kind,
        title=title,
        body=body,
        data=context,
    )

    if not user.email_notifications:
        notification.status = Notification.Status.SKIPPED
        notification.save(update_fields=['status'])
        logger.info(f"Notification {kind} for user {user_id} kept in-app only (email turned off)")
        return False

    try:
        send_mail(
            title,
            f"Hi {user.get_short_name()},\n\n{body}",
            settings.DEFAULT_FROM_EMAIL,
            [user.email],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Failed to email {kind} notification {notification.id}: {str(e)}")
        notification.status = Notification.Status.FAILED
        notification.error = str(e)
        notification.save(update_fields=['status', 'error'])
        return False

    notification.status = Notification.Status.SENT
    notification.sent_at = timezone.now()
    notification.save(update_fields=['status', 'sent_at'])
    logger.info(f"Notification {kind} sent to user {user_id} (order {context.get('order_id')})")
    return True
