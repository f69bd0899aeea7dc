"""Checkout orchestrators for PIX and card.

Both methods share the same steps and differ only in the gateway call:

1. Precheck stock for every cart line (nothing reserved yet).
2. Price the cart from the catalog plus shipping; client totals are ignored.
3. Apply the coupon, if any, from the coupon's own rule.
4. Reject totals below ``MIN_ORDER_TOTAL``.
5. Persist the order as NEW and reserve stock atomically; on
   ``OutOfStock`` the order is canceled and nothing else happens.
6. Open the payment window (WAITING + ``reserve_expires_at``).
7. Create the charge at the gateway; on failure the reservation is
   expired (stock released) and the error is re-raised.
8. Return the payment artifact with the TTL and warning thresholds.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from django.conf import settings

from modules.catalog.exceptions import OutOfStock
from modules.catalog.services import InventoryService, StockLine
from modules.coupons.exceptions import InvalidCoupon
from modules.coupons.services import CouponService, CouponValidation
from modules.orders.constants import OrderStatus, PaymentMethod, StatusSource
from modules.orders.models import Order
from modules.orders.services import ConfirmationOutcome, OrderService, build_order_service
from modules.payments.dtos import CardCheckoutDTO, CheckoutDTO, PixCheckoutDTO
from modules.payments.exceptions import CheckoutValidationError, GatewayError
from modules.payments.gateways import (
    CardChargeRequest,
    CardGateway,
    PixGateway,
    get_card_gateway,
    get_pix_gateway,
)
from modules.payments.status import is_paid_status, map_provider_status
from modules.payments.watcher import PixWatcher

logger = structlog.get_logger(__name__)

CARD_REJECTED_STATUSES = frozenset(
    {OrderStatus.DECLINED, OrderStatus.CANCELED, OrderStatus.UNPAID}
)


@dataclass(frozen=True)
class CheckoutWindow:
    ttl_seconds: int
    warning_at_seconds: int
    security_warning_at_seconds: int


@dataclass
class CheckoutResult:
    order_id: int
    payment_method: str
    status: str
    total: Decimal
    discount_amount: Decimal
    reserve_expires_at: Optional[datetime]
    ttl_seconds: int
    warning_at_seconds: int
    security_warning_at_seconds: int
    txid: Optional[str] = None
    qr_code: str = ""
    qr_code_base64: str = ""
    charge_id: Optional[str] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PricedCart:
    original_total: Decimal
    total: Decimal
    discount_amount: Decimal
    coupon: Optional[CouponValidation]
    items: List[Dict[str, Any]]


class BaseCheckoutService:
    """Steps 1-8 shared by every payment method.

    Subclasses implement ``window`` and ``_start_payment``.
    """

    payment_method: str = ""

    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        inventory_service: Optional[InventoryService] = None,
        coupon_service: Optional[CouponService] = None,
    ) -> None:
        if inventory_service is None:
            from modules.catalog.repositories import BookDjangoRepository

            inventory_service = InventoryService(BookDjangoRepository())
        self._inventory = inventory_service
        self._order_service = order_service or build_order_service()
        self._coupons = coupon_service or CouponService()

    def window(self) -> CheckoutWindow:
        raise NotImplementedError

    def checkout(self, request: CheckoutDTO) -> CheckoutResult:
        """Run the checkout for ``request``.

        Raises:
            BookNotFound: a line references an unknown book.
            OutOfStock: stock precheck or reservation failed.
            CheckoutValidationError: invalid coupon or total below minimum.
            GatewayError: the charge could not be created (stock released).
        """
        log = logger.bind(
            payment_method=self.payment_method, email=request.customer.email
        )
        lines = [StockLine(item.id, item.quantity) for item in request.items]
        books = self._inventory.validate_stock(lines)

        priced = self._price(request, books)
        order = self._order_service.create_pending(
            self._order_data(request, priced), priced.items
        )
        log = log.bind(order_id=order.pk, total=str(priced.total))

        window = self.window()
        try:
            self._order_service.reserve_and_mark_waiting(order, window.ttl_seconds)
        except OutOfStock as exc:
            self._order_service.cancel_unreserved(order.pk, f"Out of stock: {exc}")
            log.warning("checkout.out_of_stock", book_id=exc.book_id)
            raise
        log.info("checkout.order_reserved", ttl_seconds=window.ttl_seconds)

        try:
            result = self._start_payment(order, request, window)
        except GatewayError as exc:
            self._order_service.expire_reservation(
                order.pk,
                source=StatusSource.CHECKOUT,
                reason=f"Gateway failure: {exc}",
            )
            log.error(
                "checkout.gateway_failed",
                status_code=exc.status_code,
                reference=exc.reference,
                error=str(exc),
            )
            raise

        if priced.coupon is not None:
            self._coupons.register_usage(order, priced.coupon, priced.original_total)
        log.info("checkout.completed", status=result.status)
        return result

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def _price(self, request: CheckoutDTO, books) -> PricedCart:
        items: List[Dict[str, Any]] = []
        subtotal = Decimal("0.00")
        for line in request.items:
            book = books[line.id]
            subtotal += book.price * line.quantity
            items.append(
                {
                    "book_id": book.id,
                    "title": book.title,
                    "quantity": line.quantity,
                    "price": book.price,
                    "image_url": line.image_url,
                }
            )

        original_total = (subtotal + request.shipping).quantize(Decimal("0.01"))
        total = original_total
        discount = Decimal("0.00")
        validation = None
        if request.coupon_code:
            try:
                validation = self._coupons.validate(
                    request.coupon_code, original_total, request.customer.email
                )
            except InvalidCoupon as exc:
                raise CheckoutValidationError(
                    exc.reason, code="invalid_coupon", attr="coupon_code"
                ) from exc
            discount = validation.discount_amount
            total = validation.final_total

        minimum = Decimal(str(settings.MIN_ORDER_TOTAL))
        if total < minimum:
            raise CheckoutValidationError(
                f"Order total {total} is below the minimum of {minimum}.",
                code="total_below_minimum",
                attr="total",
            )
        return PricedCart(
            original_total=original_total,
            total=total,
            discount_amount=discount,
            coupon=validation,
            items=items,
        )

    def _order_data(self, request: CheckoutDTO, priced: PricedCart) -> Dict[str, Any]:
        data = request.customer.order_fields()
        data.update(
            shipping=request.shipping,
            total=priced.total,
            discount_amount=priced.discount_amount,
            coupon_code=priced.coupon.coupon.code if priced.coupon else "",
            payment_method=self.payment_method,
        )
        return data

    def _result(self, order: Order, window: CheckoutWindow, **kwargs) -> CheckoutResult:
        return CheckoutResult(
            order_id=order.pk,
            payment_method=order.payment_method,
            status=order.status,
            total=order.total,
            discount_amount=order.discount_amount,
            reserve_expires_at=order.reserve_expires_at,
            ttl_seconds=window.ttl_seconds,
            warning_at_seconds=window.warning_at_seconds,
            security_warning_at_seconds=window.security_warning_at_seconds,
            **kwargs,
        )

    def _start_payment(
        self, order: Order, request: CheckoutDTO, window: CheckoutWindow
    ) -> CheckoutResult:
        raise NotImplementedError


def new_pix_txid() -> str:
    return uuid.uuid4().hex[:35]


class PixCheckoutService(BaseCheckoutService):
    payment_method = PaymentMethod.PIX

    def __init__(
        self,
        gateway: Optional[PixGateway] = None,
        watcher: Optional[PixWatcher] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._gateway = gateway or get_pix_gateway()
        self._watcher = watcher or PixWatcher()

    def window(self) -> CheckoutWindow:
        return CheckoutWindow(
            ttl_seconds=settings.PIX_RESERVATION_TTL_SECONDS,
            warning_at_seconds=settings.PIX_WARNING_AT_SECONDS,
            security_warning_at_seconds=settings.PIX_SECURITY_WARNING_AT_SECONDS,
        )

    def checkout(self, request: PixCheckoutDTO) -> CheckoutResult:
        return super().checkout(request)

    def _start_payment(
        self, order: Order, request: CheckoutDTO, window: CheckoutWindow
    ) -> CheckoutResult:
        txid = new_pix_txid()
        collection = self._gateway.create_collection(
            txid, order.total, f"Pedido {order.pk}", window.ttl_seconds
        )
        self._order_service.attach_pix_charge(
            order.pk, collection.txid, collection.qr_code, collection.qr_code_base64
        )
        order.txid = collection.txid
        self._watcher.start(order.pk, collection.txid, order.reserve_expires_at)
        return self._result(
            order,
            window,
            txid=collection.txid,
            qr_code=collection.qr_code,
            qr_code_base64=collection.qr_code_base64,
            message="Aguardando pagamento PIX",
        )


class CardCheckoutService(BaseCheckoutService):
    payment_method = PaymentMethod.CARD

    def __init__(self, gateway: Optional[CardGateway] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self._gateway = gateway or get_card_gateway()

    def window(self) -> CheckoutWindow:
        return CheckoutWindow(
            ttl_seconds=settings.CARD_RESERVATION_TTL_SECONDS,
            warning_at_seconds=settings.CARD_WARNING_AT_SECONDS,
            security_warning_at_seconds=settings.CARD_SECURITY_WARNING_AT_SECONDS,
        )

    def checkout(self, request: CardCheckoutDTO) -> CheckoutResult:
        return super().checkout(request)

    def _order_data(self, request: CardCheckoutDTO, priced: PricedCart) -> Dict[str, Any]:
        data = super()._order_data(request, priced)
        data["installments"] = request.installments
        return data

    def _start_payment(
        self, order: Order, request: CardCheckoutDTO, window: CheckoutWindow
    ) -> CheckoutResult:
        customer = request.customer
        charge = self._gateway.create_charge(
            CardChargeRequest(
                order_id=order.pk,
                amount=order.total,
                payment_token=request.payment_token,
                installments=request.installments,
                customer={
                    "name": order.customer_name,
                    "email": customer.email,
                    "cpf": customer.cpf,
                    "phone_number": customer.phone,
                },
                billing_address={
                    "street": customer.street,
                    "number": customer.number,
                    "neighborhood": customer.district,
                    "zipcode": customer.cep,
                    "city": customer.city,
                    "state": customer.state,
                },
                items=list(order.items.values("title", "price", "quantity")),
                shipping=order.shipping,
                discount=order.discount_amount,
            )
        )
        if not charge.charge_id:
            raise GatewayError(
                "Card charge created without charge_id", reference=f"order-{order.pk}"
            )

        self._order_service.attach_card_charge(order.pk, charge.charge_id)
        order.charge_id = charge.charge_id
        log = logger.bind(order_id=order.pk, charge_id=charge.charge_id)

        message = "Pagamento em análise"
        if is_paid_status(charge.status, PaymentMethod.CARD):
            outcome = self._order_service.confirm_payment(
                charge_id=charge.charge_id, source=StatusSource.CHECKOUT
            )
            log.info("checkout.card_paid_immediately", outcome=outcome.value)
            if outcome is ConfirmationOutcome.CONFIRMED:
                message = "Pagamento aprovado"
        else:
            mapped = map_provider_status(charge.status)
            if mapped in CARD_REJECTED_STATUSES:
                self._order_service.apply_provider_status(
                    mapped, charge_id=charge.charge_id, source=StatusSource.CHECKOUT
                )
                message = "Pagamento recusado"
                log.info("checkout.card_rejected", provider_status=charge.status)

        order.refresh_from_db(fields=["status", "reserve_expires_at", "paid"])
        return self._result(order, window, charge_id=charge.charge_id, message=message)
