"""Order, OrderItem, and OrderStatusHistory models.

Rules encoded at the schema level:
- ``paid`` implies status CONFIRMED, REFUNDED or PARTIALLY_REFUNDED
  (CHECK constraint).
- ``total`` is server-computed; the client-submitted total is never stored.
- ``txid`` (PIX) and ``charge_id`` (card) are unique when present, so a
  gateway reference always resolves to at most one order.
- ``stock_reserved`` records whether this order currently holds stock;
  every release flips it with a conditional UPDATE so stock is given back
  at most once.
- OrderItem rows are owned by the order (CASCADE).
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from modules.core.models import BaseModel
from modules.orders.constants import (
    FINAL_STATES,
    PAID_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    StatusSource,
)
from shared.domain.events import DomainEventMixin


class Order(DomainEventMixin, models.Model):
    """Order aggregate root.

    Identity is a numeric auto-increment id: it is what customers see in
    emails and what payout references are derived from (``P{id}``).
    Customer/shipping fields are opaque to the checkout core.
    """

    id = models.BigAutoField(primary_key=True)

    # Customer / shipping
    first_name: models.CharField = models.CharField(max_length=100)
    last_name: models.CharField = models.CharField(max_length=100, blank=True, default="")
    email: models.EmailField = models.EmailField()
    cpf: models.CharField = models.CharField(max_length=14, blank=True, default="")
    phone: models.CharField = models.CharField(max_length=20, blank=True, default="")
    cep: models.CharField = models.CharField(max_length=9, blank=True, default="")
    street: models.CharField = models.CharField(max_length=255, blank=True, default="")
    number: models.CharField = models.CharField(max_length=20, blank=True, default="")
    complement: models.CharField = models.CharField(max_length=255, blank=True, default="")
    district: models.CharField = models.CharField(max_length=100, blank=True, default="")
    city: models.CharField = models.CharField(max_length=100, blank=True, default="")
    state: models.CharField = models.CharField(max_length=2, blank=True, default="")
    note: models.TextField = models.TextField(blank=True, default="")

    # Money
    shipping: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    discount_amount: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    coupon_code: models.CharField = models.CharField(
        max_length=50, blank=True, default=""
    )

    # Payment
    payment_method: models.CharField = models.CharField(
        max_length=10, choices=PaymentMethod.choices
    )
    txid: models.CharField = models.CharField(
        max_length=64, unique=True, null=True, blank=True
    )
    charge_id: models.CharField = models.CharField(
        max_length=64, unique=True, null=True, blank=True
    )
    installments: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        default=1
    )
    qr_code: models.TextField = models.TextField(blank=True, default="")
    qr_code_base64: models.TextField = models.TextField(blank=True, default="")
    paid: models.BooleanField = models.BooleanField(default=False)
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Lifecycle
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.NEW,
    )
    reserve_expires_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    stock_reserved: models.BooleanField = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(
                fields=["status", "reserve_expires_at"], name="orders_reserve_idx"
            ),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(paid=False) | Q(status__in=sorted(PAID_STATES)),
                name="orders_paid_implies_paid_status",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def reference(self) -> str | None:
        """Gateway reference for this order's payment method."""
        if self.payment_method == PaymentMethod.PIX:
            return self.txid
        return self.charge_id

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"Order #{self.pk} ({self.status})"


class OrderItem(models.Model):
    """Line item snapshot: ``price`` is the catalog price at checkout time."""

    order: models.ForeignKey = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    book_id: models.CharField = models.CharField(max_length=64)
    title: models.CharField = models.CharField(max_length=255)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
    )
    price: models.DecimalField = models.DecimalField(max_digits=10, decimal_places=2)
    image_url: models.CharField = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def __str__(self) -> str:
        return f"{self.title} x{self.quantity}"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    ``source`` tells which trigger (checkout, webhook, poller, sweep,
    admin) caused the change.
    """

    order: models.ForeignKey = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    source: models.CharField = models.CharField(
        max_length=20, choices=StatusSource.choices, default=StatusSource.CHECKOUT
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
