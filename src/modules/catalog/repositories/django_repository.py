"""Django ORM implementation of the inventory store.

``try_reserve`` is a single ``UPDATE books SET stock = stock - %s
WHERE id = %s AND stock >= %s``: the database serializes concurrent
decrements on the row, so no application-level lock is taken.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import structlog
from django.db.models import F
from django.utils import timezone

from modules.catalog.models import Book
from modules.catalog.repositories.interfaces import IInventoryStore

logger = structlog.get_logger(__name__)


class BookDjangoRepository(IInventoryStore):
    """Concrete inventory store backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Book]:
        return Book.objects.filter(id=id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None):
        queryset = Book.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_many(self, book_ids: Iterable[str]) -> Dict[str, Book]:
        books = Book.objects.filter(id__in=list(book_ids), active=True)
        return {book.id: book for book in books}

    def get_stock(self, book_id: str) -> Optional[int]:
        return Book.objects.filter(id=book_id).values_list("stock", flat=True).first()

    def try_reserve(self, book_id: str, quantity: int) -> int:
        if quantity < 1:
            raise ValueError("Reservation quantity must be at least 1.")
        rows = Book.objects.filter(id=book_id, stock__gte=quantity).update(
            stock=F("stock") - quantity, updated_at=timezone.now()
        )
        logger.info(
            "inventory.try_reserve",
            book_id=book_id,
            quantity=quantity,
            reserved=bool(rows),
        )
        return rows

    def release(self, book_id: str, quantity: int) -> int:
        rows = Book.objects.filter(id=book_id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        logger.info(
            "inventory.released", book_id=book_id, quantity=quantity, rows=rows
        )
        return rows
