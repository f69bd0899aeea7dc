from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import LatePaymentReceived, OrderPaid
        from modules.orders.handlers import (
            late_payment_handler,
            order_paid_realtime_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderPaid, order_paid_realtime_handler)
        event_bus.subscribe(LatePaymentReceived, late_payment_handler)
