"""Catalog domain exceptions."""

from __future__ import annotations


class BookNotFound(Exception):
    """A cart line references a book that does not exist or is inactive."""

    def __init__(self, book_id: str) -> None:
        self.book_id = book_id
        super().__init__(f"Book {book_id} not found.")


class OutOfStock(Exception):
    """A reservation affected zero rows: not enough stock for the request.

    Always a hard stop for the checkout; never retried automatically.
    """

    def __init__(self, book_id: str, requested: int, available: int | None = None) -> None:
        self.book_id = book_id
        self.requested = requested
        self.available = available
        detail = f"Book {book_id}: requested {requested}"
        if available is not None:
            detail += f", available {available}"
        super().__init__(detail + ".")
