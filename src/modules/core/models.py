"""Base abstract model and the transactional outbox.

Provides:
- ``BaseModel``: UUIDv7 primary key + created_at / updated_at timestamps.
- ``OutboxEvent``: durable record of a committed fact (e.g. "order paid")
  whose side effects run after commit, at least once.

The outbox replaces best-effort post-commit callbacks: the event row is
written in the same transaction as the state change, so a crash between
commit and side effect leaves a PENDING row that the periodic sweep picks
up again.
"""

from __future__ import annotations

from datetime import timedelta

import uuid6
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

# ---------------------------------------------------------------------------
# BaseModel
# ---------------------------------------------------------------------------


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and timestamp bookkeeping."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Transactional Outbox
# ---------------------------------------------------------------------------


class EventStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    PUBLISHED = "PUBLISHED", "Published"
    FAILED = "FAILED", "Failed"


class OutboxEventQuerySet(models.QuerySet):
    def dispatchable(self, max_retries: int, stale_after: timedelta):
        """Events a sweep should (re)dispatch.

        PENDING rows, FAILED rows still under the retry budget, and
        PROCESSING rows whose worker died (no update for ``stale_after``).
        """
        stale_before = timezone.now() - stale_after
        return self.filter(
            Q(status=EventStatus.PENDING)
            | Q(status=EventStatus.FAILED, retry_count__lt=max_retries)
            | Q(status=EventStatus.PROCESSING, updated_at__lt=stale_before)
        ).order_by("created_at")


class OutboxEvent(BaseModel):
    """Transactional Outbox for reliable post-commit side effects.

    Workflow:
    1. A service writes ``OutboxEvent`` inside ``transaction.atomic()``.
    2. ``on_commit`` enqueues the dispatch task for the new row.
    3. The task ``claim()``s the row (conditional UPDATE); a second worker
       claiming the same row gets ``False`` and stops.
    4. On success → ``mark_as_published()``.
    5. On failure → ``mark_as_failed(error)`` increments ``retry_count``.
    """

    event_type = models.CharField(max_length=100)
    payload = models.JSONField()
    aggregate_id = models.CharField(max_length=255)
    topic = models.CharField(max_length=100)
    status = models.CharField(
        max_length=20,
        choices=EventStatus.choices,
        default=EventStatus.PENDING,
    )
    correlation_id = models.CharField(max_length=64, blank=True, default="")
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    error_message = models.TextField(null=True, blank=True, default=None)  # noqa: DJ01
    retry_count = models.PositiveIntegerField(default=0)

    objects = OutboxEventQuerySet.as_manager()

    class Meta:
        db_table = "outbox_events"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["event_type"],
                name="outbox_event_type_idx",
            ),
            models.Index(
                fields=["aggregate_id"],
                name="outbox_aggregate_id_idx",
            ),
            models.Index(
                fields=["status", "created_at"],
                name="outbox_status_created_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    @classmethod
    def claim(cls, event_id, stale_after: timedelta) -> bool:
        """Atomically move the event to PROCESSING.

        Only one caller wins; everyone else sees zero affected rows.
        """
        now = timezone.now()
        rows = (
            cls.objects.filter(pk=event_id)
            .filter(
                Q(status__in=[EventStatus.PENDING, EventStatus.FAILED])
                | Q(
                    status=EventStatus.PROCESSING,
                    updated_at__lt=now - stale_after,
                )
            )
            .update(status=EventStatus.PROCESSING, updated_at=now)
        )
        return rows == 1

    def mark_as_published(self) -> None:
        """Mark event as successfully published."""
        self.status = EventStatus.PUBLISHED
        self.processed_at = timezone.now()
        self.error_message = None
        self.save(update_fields=["status", "processed_at", "error_message"])

    def mark_as_failed(self, error: str) -> None:
        """Mark event as failed and record the error."""
        OutboxEvent.objects.filter(pk=self.pk).update(
            status=EventStatus.FAILED,
            error_message=error,
            retry_count=F("retry_count") + 1,
            updated_at=timezone.now(),
        )
        self.refresh_from_db(fields=["status", "error_message", "retry_count"])

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.event_type} [{self.status}] ({self.aggregate_id})"
