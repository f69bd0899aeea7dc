from django.contrib import admin

from modules.payouts.models import Payout, Seller


@admin.register(Seller)
class SellerAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "active", "created_at")
    list_filter = ("active",)
    search_fields = ("name", "email")


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """Read-only: payouts only change through the trigger and the reconciler."""

    list_display = (
        "order",
        "status",
        "amount_gross",
        "amount_net",
        "provider_ref",
        "source",
        "sent_at",
        "confirmed_at",
    )
    list_filter = ("status", "source")
    search_fields = ("provider_ref", "end_to_end_id", "order__id")

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False
