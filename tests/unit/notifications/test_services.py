"""Unit tests for NotificationService.send_once."""

from unittest.mock import patch

import pytest
from django.core import mail

from modules.notifications.constants import EmailKind, EmailStatus
from modules.notifications.models import EmailLog
from modules.notifications.services import NotificationService, order_context

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(make_order):
    return make_order()


class TestSendOnce:
    def test_sends_and_logs(self, order):
        sent = NotificationService().send_once(
            EmailKind.ORDER_PAID_CLIENT, order, order.email
        )

        assert sent is True
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [order.email]
        assert mail.outbox[0].alternatives
        log = EmailLog.objects.get(order_id=order.pk)
        assert log.status == EmailStatus.SENT
        assert log.kind == EmailKind.ORDER_PAID_CLIENT

    def test_second_send_is_a_no_op(self, order):
        service = NotificationService()
        service.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email)
        again = service.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email)

        assert again is False
        assert len(mail.outbox) == 1

    def test_kinds_are_gated_independently(self, order):
        service = NotificationService()
        service.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email)
        service.send_once(EmailKind.ORDER_PAID_SELLER, order, "autor@example.com")

        assert len(mail.outbox) == 2

    def test_failure_is_recorded_not_raised(self, order):
        with patch(
            "modules.notifications.services.send_mail", side_effect=OSError("smtp down")
        ):
            sent = NotificationService().send_once(
                EmailKind.ORDER_PAID_CLIENT, order, order.email
            )

        assert sent is False
        log = EmailLog.objects.get(order_id=order.pk)
        assert log.status == EmailStatus.FAILED
        assert "smtp down" in log.error_message

    def test_failed_attempt_does_not_block_a_retry(self, order):
        service = NotificationService()
        with patch("modules.notifications.services.send_mail", side_effect=OSError("x")):
            service.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email)

        assert service.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email) is True
        assert len(mail.outbox) == 1

    def test_missing_recipient_is_skipped(self, order):
        assert NotificationService().send_once(EmailKind.ORDER_PAID_SELLER, order, "") is False
        assert EmailLog.objects.count() == 0


def test_order_context(order):
    ctx = order_context(order)
    assert ctx["order_id"] == order.pk
    assert ctx["customer_name"] == "Maria Silva"
    assert ctx["items"][0]["quantity"] == 1
    assert ctx["payment_method_label"] == "PIX"
