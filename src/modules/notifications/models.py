"""Email delivery log.

One row per delivery attempt.  A SENT row for ``(order_id, kind)`` is
what makes ``NotificationService.send_once`` a no-op on redelivery.
"""

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.notifications.constants import EmailKind, EmailStatus


class EmailLog(BaseModel):
    order_id: models.BigIntegerField = models.BigIntegerField(db_index=True)
    kind: models.CharField = models.CharField(max_length=40, choices=EmailKind.choices)
    to_email: models.CharField = models.CharField(max_length=255)
    status: models.CharField = models.CharField(
        max_length=10, choices=EmailStatus.choices, default=EmailStatus.SENT
    )
    error_message: models.TextField = models.TextField(blank=True, default="")
    sent_at: models.DateTimeField = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "email_logs"
        ordering = ["-sent_at"]
        indexes = [
            models.Index(fields=["order_id", "kind", "status"], name="email_logs_gate_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.kind} #{self.order_id} -> {self.to_email} ({self.status})"
