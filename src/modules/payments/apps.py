from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.payments"
    label = "payments"

    def ready(self) -> None:
        from modules.core.outbox import register_handler
        from modules.payments.confirmation import on_late_payment, on_order_paid

        register_handler("OrderPaid", on_order_paid)
        register_handler("LatePaymentReceived", on_late_payment)
