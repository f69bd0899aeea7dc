"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderReserved(DomainEvent):
    """Stock reserved and the payment window opened (status WAITING)."""

    payment_method: str = ""
    reserve_expires_at: str = ""


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Payment confirmed exactly once (status CONFIRMED)."""

    payment_method: str = ""
    reference: str = ""
    total: str = "0.00"
    source: str = ""


@dataclass(frozen=True)
class OrderExpired(DomainEvent):
    """Payment window closed without payment; stock given back."""

    reason: str = ""


@dataclass(frozen=True)
class LatePaymentReceived(DomainEvent):
    """Money arrived after the reservation lapsed (status REFUNDED)."""

    reference: str = ""
    total: str = "0.00"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Provider-driven secondary status change."""

    old_status: str = ""
    new_status: str = ""
