"""Inbound webhook audit log.

Every webhook body is stored once, as received, before it is acted on.
Rows are never updated: ``processing_status`` records how the body was
classified at receipt (auditable, ignored, unparseable).
"""

from django.db import models

from modules.core.models import BaseModel
from modules.payments.constants import WebhookProcessingStatus, WebhookProvider


class WebhookEvent(BaseModel):
    provider: models.CharField = models.CharField(
        max_length=10, choices=WebhookProvider.choices
    )
    reference: models.CharField = models.CharField(
        max_length=64, blank=True, default="", db_index=True
    )
    status: models.CharField = models.CharField(max_length=50, blank=True, default="")
    raw_body: models.TextField = models.TextField(blank=True, default="")
    path: models.CharField = models.CharField(max_length=255, blank=True, default="")
    processing_status: models.CharField = models.CharField(
        max_length=20,
        choices=WebhookProcessingStatus.choices,
        default=WebhookProcessingStatus.RECEIVED,
    )
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "payment_webhook_events"
        ordering = ["-received_at"]
        indexes = [
            models.Index(
                fields=["provider", "received_at"], name="webhook_provider_recv_idx"
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("WebhookEvent rows are append-only.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.provider} {self.reference} {self.status} ({self.processing_status})"
