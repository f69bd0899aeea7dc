"""Inventory reservation use cases.

Business rules enforced:
- A reservation is all-or-nothing per order: callers run ``reserve`` inside
  ``transaction.atomic()`` so a failed line rolls back earlier decrements.
- ``OutOfStock`` is never retried silently.
- Lines are reserved sorted by book id so concurrent multi-line orders
  touch rows in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Sequence

import structlog

from modules.catalog.exceptions import BookNotFound, OutOfStock

if TYPE_CHECKING:
    from modules.catalog.models import Book
    from modules.catalog.repositories.interfaces import IInventoryStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    """A (book, quantity) pair to reserve or release."""

    book_id: str
    quantity: int


def merge_lines(lines: Iterable[StockLine]) -> List[StockLine]:
    """Collapse repeated books into one line each, sorted by book id."""
    totals: Dict[str, int] = {}
    for line in lines:
        totals[line.book_id] = totals.get(line.book_id, 0) + line.quantity
    return [StockLine(book_id, qty) for book_id, qty in sorted(totals.items())]


class InventoryService:
    """Application service over the inventory reservation store."""

    def __init__(self, store: IInventoryStore) -> None:
        self._store = store

    def load_books(self, lines: Sequence[StockLine]) -> Dict[str, Book]:
        """Resolve every line to an active book.

        Raises:
            BookNotFound: a line references an unknown or inactive book.
        """
        books = self._store.get_many(line.book_id for line in lines)
        for line in lines:
            if line.book_id not in books:
                raise BookNotFound(line.book_id)
        return books

    def validate_stock(self, lines: Sequence[StockLine]) -> Dict[str, Book]:
        """Fast precheck against current stock; reserves nothing.

        Returns the resolved books keyed by id.

        Raises:
            BookNotFound: unknown book.
            OutOfStock: requested quantity above current stock.
        """
        books = self.load_books(lines)
        for line in merge_lines(lines):
            available = books[line.book_id].stock
            if available < line.quantity:
                raise OutOfStock(line.book_id, line.quantity, available)
        return books

    def reserve(self, lines: Sequence[StockLine]) -> None:
        """Reserve every line or raise on the first one that does not fit.

        Must run inside the caller's transaction: earlier decrements are
        undone by the rollback that follows ``OutOfStock``.

        Raises:
            OutOfStock: a conditional decrement affected zero rows.
        """
        for line in merge_lines(lines):
            if self._store.try_reserve(line.book_id, line.quantity) != 1:
                available = self._store.get_stock(line.book_id)
                logger.warning(
                    "inventory.out_of_stock",
                    book_id=line.book_id,
                    requested=line.quantity,
                    available=available,
                )
                raise OutOfStock(line.book_id, line.quantity, available)

    def release(self, lines: Sequence[StockLine]) -> None:
        """Give every line back to stock."""
        for line in merge_lines(lines):
            self._store.release(line.book_id, line.quantity)
