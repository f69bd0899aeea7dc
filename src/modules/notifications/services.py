"""Transactional email delivery with a per-order, per-kind send gate."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import structlog
from django.conf import settings
from django.core.mail import send_mail

from modules.notifications.constants import EmailStatus
from modules.notifications.models import EmailLog
from modules.notifications.rendering import render_email
from modules.orders.models import Order

logger = structlog.get_logger(__name__)


def _address_line(order: Order) -> str:
    if not order.street:
        return ""
    parts = [order.street]
    if order.number:
        parts.append(f", nº {order.number}")
    if order.complement:
        parts.append(f" - {order.complement}")
    if order.district:
        parts.append(f" - {order.district}")
    parts.append(f", {order.city} - {order.state}, CEP {order.cep}")
    return "".join(parts)


def order_context(order: Order) -> Dict[str, Any]:
    return {
        "order_id": order.pk,
        "customer_name": order.customer_name,
        "email": order.email,
        "phone": order.phone,
        "payment_method_label": order.get_payment_method_display(),
        "items": [
            {"title": item.title, "quantity": item.quantity, "price": item.price}
            for item in order.items.all()
        ],
        "shipping": order.shipping,
        "total": order.total,
        "discount_amount": order.discount_amount,
        "coupon_code": order.coupon_code,
        "address_line": _address_line(order),
        "note": order.note,
    }


class NotificationService:
    def already_sent(self, kind: str, order_id: int) -> bool:
        return EmailLog.objects.filter(
            order_id=order_id, kind=kind, status=EmailStatus.SENT
        ).exists()

    def send_once(
        self,
        kind: str,
        order: Order,
        to_email: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Send ``kind`` for ``order`` unless a SENT row already exists.

        Returns ``True`` only when this call delivered the email.  Delivery
        errors are logged and recorded as FAILED, never raised.
        """
        log = logger.bind(order_id=order.pk, kind=str(kind))
        if not to_email:
            log.info("email.skipped", reason="no_recipient")
            return False
        if self.already_sent(kind, order.pk):
            log.info("email.skipped", reason="already_sent")
            return False

        email = render_email(kind, {**order_context(order), **(context or {})})
        try:
            send_mail(
                email.subject,
                email.text,
                settings.DEFAULT_FROM_EMAIL,
                [to_email],
                html_message=email.html,
            )
        except Exception as exc:
            EmailLog.objects.create(
                order_id=order.pk,
                kind=kind,
                to_email=to_email,
                status=EmailStatus.FAILED,
                error_message=str(exc)[:2000],
            )
            log.exception("email.failed", error=str(exc))
            return False

        EmailLog.objects.create(
            order_id=order.pk, kind=kind, to_email=to_email, status=EmailStatus.SENT
        )
        log.info("email.sent")
        return True
