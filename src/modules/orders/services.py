"""Order service layer (Use Cases).

The ``OrderService`` is the only component that writes ``Order.status``.
Webhooks, the PIX poller, the reservation sweep and admin actions all
request transitions through it.

Concurrency model:
- Every transition is a conditional UPDATE guarded by the expected
  current status (and ``paid = false`` where money matters); the row
  count decides the winner.  Losing callers get a no-op, never an error.
- Stock is given back only by the caller that flips ``stock_reserved``
  from True to False, so a racing sweep and gateway-failure rollback
  cannot double-release.
- Domain events are written to the outbox inside the same transaction
  as the transition they describe.
"""

from __future__ import annotations

import enum
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from modules.catalog.services import StockLine
from modules.orders.constants import (
    FINAL_STATES,
    HOLDING_STATUSES,
    OrderStatus,
    StatusSource,
)
from modules.orders.events import (
    LatePaymentReceived,
    OrderExpired,
    OrderPaid,
    OrderReserved,
    OrderStatusChanged,
)
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound

if TYPE_CHECKING:
    from modules.catalog.services import InventoryService
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class ConfirmationOutcome(str, enum.Enum):
    """Result of a payment confirmation attempt.

    Only ``CONFIRMED`` means this call performed the transition; every
    other value is a reconciliation no-op.
    """

    CONFIRMED = "CONFIRMED"
    ALREADY_PAID = "ALREADY_PAID"
    NOT_FOUND = "NOT_FOUND"
    NOT_WAITING = "NOT_WAITING"
    LATE_PAYMENT = "LATE_PAYMENT"

    @property
    def settled(self) -> bool:
        """Nothing more to poll for: the order's payment state is decided."""
        return self is not ConfirmationOutcome.NOT_FOUND


def order_lines(order: Order) -> List[StockLine]:
    return [StockLine(item.book_id, item.quantity) for item in order.items.all()]


class OrderService:
    """Application service for Order use-cases.

    Receives the repository and the inventory service via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        inventory_service: InventoryService,
    ) -> None:
        self._order_repo = order_repository
        self._inventory = inventory_service

    # ------------------------------------------------------------------
    # Checkout lifecycle
    # ------------------------------------------------------------------

    def create_pending(
        self, data: Dict[str, Any], items: List[Dict[str, Any]]
    ) -> Order:
        """Persist a NEW order with its items (no stock touched yet)."""
        return self._order_repo.create(data, items)

    @transaction.atomic
    def reserve_and_mark_waiting(self, order: Order, ttl_seconds: int) -> Order:
        """Reserve every item and open the payment window.

        Runs in one transaction: if any line is out of stock the earlier
        decrements roll back together with the exception.

        Raises:
            OutOfStock: a line could not be reserved.
            InvalidOrderStatus: the order is no longer NEW.
        """
        self._inventory.reserve(order_lines(order))

        expires_at = timezone.now() + timedelta(seconds=ttl_seconds)
        changed = self._order_repo.transition(
            order.pk,
            from_statuses=[OrderStatus.NEW],
            to_status=OrderStatus.WAITING,
            fields={"reserve_expires_at": expires_at, "stock_reserved": True},
        )
        if not changed:
            raise InvalidOrderStatus(f"Order {order.pk} is no longer NEW.")

        self._order_repo.add_history(
            order.pk, OrderStatus.NEW, OrderStatus.WAITING, StatusSource.CHECKOUT,
            f"Stock reserved for {ttl_seconds}s",
        )
        order.status = OrderStatus.WAITING
        order.reserve_expires_at = expires_at
        order.stock_reserved = True
        order.add_domain_event(
            OrderReserved(
                aggregate_id=order.pk,
                payment_method=order.payment_method,
                reserve_expires_at=expires_at.isoformat(),
            )
        )
        self._order_repo.record_events(order)

        logger.info(
            "order.reserved",
            order_id=order.pk,
            reserve_expires_at=expires_at.isoformat(),
        )
        return order

    @transaction.atomic
    def cancel_unreserved(self, order_id: int, reason: str) -> bool:
        """NEW -> CANCELED for an order whose reservation failed."""
        changed = self._order_repo.transition(
            order_id,
            from_statuses=[OrderStatus.NEW],
            to_status=OrderStatus.CANCELED,
        )
        if changed:
            self._order_repo.add_history(
                order_id, OrderStatus.NEW, OrderStatus.CANCELED,
                StatusSource.CHECKOUT, reason,
            )
            logger.info("order.canceled_unreserved", order_id=order_id, reason=reason)
        return changed

    def attach_pix_charge(
        self, order_id: int, txid: str, qr_code: str, qr_code_base64: str
    ) -> None:
        self._order_repo.update_fields(
            order_id, txid=txid, qr_code=qr_code, qr_code_base64=qr_code_base64
        )
        logger.info("order.pix_charge_attached", order_id=order_id, txid=txid)

    def attach_card_charge(self, order_id: int, charge_id: str) -> None:
        self._order_repo.update_fields(order_id, charge_id=charge_id)
        logger.info("order.card_charge_attached", order_id=order_id, charge_id=charge_id)

    @transaction.atomic
    def expire_reservation(
        self, order_id: int, source: str = StatusSource.SWEEP, reason: str = ""
    ) -> bool:
        """Close an unpaid payment window and give the stock back.

        Re-reads the row under lock and only moves WAITING/UNPAID orders
        with ``paid = false``: a payment that committed first wins and
        this call becomes a no-op.
        """
        order = self._order_repo.get_for_update(order_id)
        if order is None:
            return False

        log = logger.bind(order_id=order_id, status=order.status, source=source)
        old_status = order.status
        changed = self._order_repo.transition(
            order_id,
            from_statuses=HOLDING_STATUSES,
            to_status=OrderStatus.EXPIRED,
            require_unpaid=True,
            fields={"reserve_expires_at": None},
        )
        if not changed:
            log.info("order.expire_skipped", paid=order.paid)
            return False

        released = self._release_stock(order)
        self._order_repo.add_history(
            order_id, old_status, OrderStatus.EXPIRED, source, reason
        )
        order.add_domain_event(OrderExpired(aggregate_id=order_id, reason=reason))
        self._order_repo.record_events(order)
        log.info("order.expired", stock_released=released, reason=reason)
        return True

    # ------------------------------------------------------------------
    # Payment confirmation
    # ------------------------------------------------------------------

    @transaction.atomic
    def confirm_payment(
        self,
        *,
        txid: Optional[str] = None,
        charge_id: Optional[str] = None,
        source: str = StatusSource.WEBHOOK,
    ) -> ConfirmationOutcome:
        """Mark the order behind a gateway reference as paid, at most once.

        1. Unknown reference -> NOT_FOUND.
        2. Already paid -> ALREADY_PAID.
        3. Not WAITING (expired, canceled, ...) -> NOT_WAITING.
        4. Window closed -> REFUNDED with ``paid = true`` (money received
           too late); stock is left for the sweep -> LATE_PAYMENT.
        5. Otherwise WAITING -> CONFIRMED and an ``OrderPaid`` outbox event
           in the same transaction -> CONFIRMED.

        The final write is conditional on ``status = WAITING AND
        paid = false``, so of N concurrent callers exactly one gets
        CONFIRMED.
        """
        reference = txid or charge_id
        log = logger.bind(reference=reference, source=source)

        order = self._order_repo.get_by_reference(
            txid=txid, charge_id=charge_id, for_update=True
        )
        if order is None:
            log.info("payment.confirm_noop", reason="not_found")
            return ConfirmationOutcome.NOT_FOUND

        log = log.bind(order_id=order.pk)
        if order.paid:
            log.info("payment.confirm_noop", reason="already_paid")
            return ConfirmationOutcome.ALREADY_PAID

        if order.status != OrderStatus.WAITING:
            log.info("payment.confirm_noop", reason="not_waiting", status=order.status)
            return ConfirmationOutcome.NOT_WAITING

        now = timezone.now()
        if order.reserve_expires_at is not None and now > order.reserve_expires_at:
            changed = self._order_repo.transition(
                order.pk,
                from_statuses=[OrderStatus.WAITING],
                to_status=OrderStatus.REFUNDED,
                require_unpaid=True,
                fields={"paid": True, "paid_at": now},
            )
            if not changed:
                log.info("payment.confirm_noop", reason="lost_race")
                return ConfirmationOutcome.ALREADY_PAID
            self._order_repo.add_history(
                order.pk, OrderStatus.WAITING, OrderStatus.REFUNDED, source,
                "Payment received after reservation expired",
            )
            order.add_domain_event(
                LatePaymentReceived(
                    aggregate_id=order.pk,
                    reference=reference or "",
                    total=str(order.total),
                )
            )
            self._order_repo.record_events(order, topic="payments")
            log.warning(
                "payment.late",
                reserve_expires_at=order.reserve_expires_at.isoformat(),
            )
            return ConfirmationOutcome.LATE_PAYMENT

        changed = self._order_repo.transition(
            order.pk,
            from_statuses=[OrderStatus.WAITING],
            to_status=OrderStatus.CONFIRMED,
            require_unpaid=True,
            fields={"paid": True, "paid_at": now},
        )
        if not changed:
            log.info("payment.confirm_noop", reason="lost_race")
            return ConfirmationOutcome.ALREADY_PAID

        self._order_repo.add_history(
            order.pk, OrderStatus.WAITING, OrderStatus.CONFIRMED, source,
            "Payment confirmed",
        )
        order.add_domain_event(
            OrderPaid(
                aggregate_id=order.pk,
                payment_method=order.payment_method,
                reference=reference or "",
                total=str(order.total),
                source=str(source),
            )
        )
        self._order_repo.record_events(order, topic="payments")
        log.info("payment.confirmed", total=str(order.total))
        return ConfirmationOutcome.CONFIRMED

    @transaction.atomic
    def apply_provider_status(
        self,
        new_status: str,
        *,
        txid: Optional[str] = None,
        charge_id: Optional[str] = None,
        source: str = StatusSource.WEBHOOK,
    ) -> bool:
        """Apply a non-paid provider status (refund, cancel, decline, ...).

        Never touches ``paid``.  Final orders are left alone, and so is
        any transition the state machine does not allow.  Leaving a
        stock-holding state for a final one gives the stock back.
        """
        order = self._order_repo.get_by_reference(
            txid=txid, charge_id=charge_id, for_update=True
        )
        log = logger.bind(reference=txid or charge_id, new_status=new_status)
        if order is None:
            log.info("order.provider_status_noop", reason="not_found")
            return False

        log = log.bind(order_id=order.pk, status=order.status)
        if order.is_final or order.status == new_status:
            log.info("order.provider_status_noop", reason="final_or_same")
            return False
        if not order.can_transition_to(new_status):
            log.info("order.provider_status_noop", reason="invalid_transition")
            return False

        old_status = order.status
        leaves_hold = (
            old_status in HOLDING_STATUSES
            and not order.paid
            and new_status in FINAL_STATES
        )
        fields = {"reserve_expires_at": None} if leaves_hold else None
        changed = self._order_repo.transition(
            order.pk,
            from_statuses=[old_status],
            to_status=new_status,
            fields=fields,
        )
        if not changed:
            log.info("order.provider_status_noop", reason="lost_race")
            return False

        if leaves_hold:
            self._release_stock(order)
        self._order_repo.add_history(
            order.pk, old_status, new_status, source, "Provider status update"
        )
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.pk, old_status=old_status, new_status=new_status
            )
        )
        self._order_repo.record_events(order)
        log.info("order.provider_status_applied")
        return True

    @transaction.atomic
    def release_lapsed_late_payment(self, order_id: int) -> bool:
        """Give back stock still held by a REFUNDED late payment."""
        order = self._order_repo.get_for_update(order_id)
        if order is None or order.status != OrderStatus.REFUNDED:
            return False
        released = self._release_stock(order)
        if released:
            self._order_repo.update_fields(order_id, reserve_expires_at=None)
            logger.info("order.late_payment_stock_released", order_id=order_id)
        return released

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int | str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _release_stock(self, order: Order) -> bool:
        if not self._order_repo.claim_stock_release(order.pk):
            logger.info("order.stock_already_released", order_id=order.pk)
            return False
        self._inventory.release(order_lines(order))
        logger.info("order.stock_released", order_id=order.pk)
        return True


def build_order_service() -> OrderService:
    """Default wiring with the Django repositories."""
    from modules.catalog.repositories.django_repository import BookDjangoRepository
    from modules.catalog.services import InventoryService
    from modules.orders.repositories.django_repository import OrderDjangoRepository

    return OrderService(
        order_repository=OrderDjangoRepository(),
        inventory_service=InventoryService(BookDjangoRepository()),
    )
