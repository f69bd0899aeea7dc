"""Book catalog model.

Only the fields the checkout core needs live here: identity, price and
the stock counter that the reservation store decrements atomically.
Descriptions, covers and categories belong to the static catalog.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class Book(models.Model):
    """A sellable book.

    ``id`` is the catalog's own string identifier (the storefront sends it
    back in the cart).  ``stock`` is protected by a CHECK constraint so a
    bug that bypasses the conditional update still cannot go negative.
    """

    id: models.CharField = models.CharField(primary_key=True, max_length=64)
    title: models.CharField = models.CharField(max_length=255)
    author: models.CharField = models.CharField(max_length=255, blank=True, default="")
    price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    stock: models.IntegerField = models.IntegerField(default=0)
    active: models.BooleanField = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "books"
        ordering = ["title"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="books_stock_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.id})"
