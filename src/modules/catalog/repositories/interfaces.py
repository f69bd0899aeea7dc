"""Inventory store interface.

The reservation contract is two single-statement operations; callers
never read-modify-write the stock counter themselves.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.models import Book


class IInventoryStore(IRepository["Book"]):
    @abstractmethod
    def try_reserve(self, book_id: str, quantity: int) -> int:
        """Decrement stock by ``quantity`` only if enough is available.

        Returns the number of affected rows: 1 on success, 0 when the
        stock is insufficient (or the book does not exist).
        """

    @abstractmethod
    def release(self, book_id: str, quantity: int) -> int:
        """Unconditionally give ``quantity`` back to the stock counter."""

    @abstractmethod
    def get_many(self, book_ids: Iterable[str]) -> Dict[str, "Book"]:
        """Active books keyed by id (missing ids are simply absent)."""

    @abstractmethod
    def get_stock(self, book_id: str) -> Optional[int]:
        """Current stock, or ``None`` for an unknown book."""
