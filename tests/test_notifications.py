import pytest
from django.core import mail

from notifications.models import Notification
from notifications.services import notify, order_context, render
from notifications.tasks import send_notification

pytestmark = pytest.mark.django_db


class TestRender:
    def test_fills_template(self):
        title, body = render('order_partial', {'quantity': '1000', 'service': 'Instagram Followers', 'progress': '60'})

        assert title == 'Order Partially Delivered'
        assert '60%' in body
        assert '1000 Instagram Followers' in body

    def test_missing_values_render_empty(self):
        _, body = render('order_cancelled', {'quantity': '10', 'service': 'Likes'})
        assert body.endswith('has been cancelled.')

    def test_order_context_stringifies(self, make_order):
        order = make_order(amount='1950.00')

        context = order_context(order, progress=75)

        assert context['order_id'] == str(order.id)
        assert context['price'] == '1950.00'
        assert context['progress'] == '75'


class TestNotify:
    def test_queued_after_commit(self, customer, make_order, mocker, django_capture_on_commit_callbacks):
        delay = mocker.patch('notifications.tasks.send_notification.delay')
        context = order_context(make_order())

        with django_capture_on_commit_callbacks(execute=True):
            notify(customer.id, 'payment_received', context)

        delay.assert_called_once_with(str(customer.id), 'payment_received', context)

    def test_not_queued_before_commit(self, customer, mocker, django_capture_on_commit_callbacks):
        delay = mocker.patch('notifications.tasks.send_notification.delay')

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            notify(customer.id, 'payment_received', {})

        assert len(callbacks) == 1
        delay.assert_not_called()

    def test_anonymous_order_is_skipped(self, mocker, django_capture_on_commit_callbacks):
        delay = mocker.patch('notifications.tasks.send_notification.delay')

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            notify(None, 'payment_received', {'order_id': 'x'})

        assert callbacks == []
        delay.assert_not_called()

    def test_broker_failure_does_not_raise(self, customer, mocker, django_capture_on_commit_callbacks):
        mocker.patch('notifications.tasks.send_notification.delay', side_effect=ConnectionError('broker down'))

        with django_capture_on_commit_callbacks(execute=True):
            notify(customer.id, 'payment_received', {})


class TestSendNotification:
    def test_sends_and_records(self, customer, make_order):
        order = make_order()

        assert send_notification(str(customer.id), 'order_completed', order_context(order)) is True

        notification = Notification.objects.get()
        assert notification.status == Notification.Status.SENT
        assert notification.order_id == order.id
        assert notification.sent_at is not None
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [customer.email]
        assert mail.outbox[0].subject == 'Order Completed'

    def test_delivery_failure_is_recorded(self, customer, make_order, mocker):
        mocker.patch('notifications.tasks.send_mail', side_effect=OSError('smtp down'))

        assert send_notification(str(customer.id), 'order_completed', order_context(make_order())) is False

        notification = Notification.objects.get()
        assert notification.status == Notification.Status.FAILED
        assert 'smtp down' in notification.error

    def test_unknown_user(self):
        assert send_notification('00000000-0000-0000-0000-000000000000', 'order_completed', {}) is False
        assert not Notification.objects.exists()

    def test_email_greets_by_short_name(self, customer, make_order):
        send_notification(str(customer.id), 'order_completed', order_context(make_order()))

        assert mail.outbox[0].body.startswith('Hi customer,\n\n')

    def test_email_turned_off_keeps_in_app_record(self, customer, make_order):
        customer.email_notifications = False
        customer.save(update_fields=['email_notifications'])

        assert send_notification(str(customer.id), 'order_completed', order_context(make_order())) is False

        assert Notification.objects.get().status == Notification.Status.SKIPPED
        assert mail.outbox == []
