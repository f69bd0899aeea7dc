from django.contrib import admin

from modules.coupons.models import Coupon, OrderCoupon


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "discount_type",
        "discount_value",
        "usage_limit",
        "valid_until",
        "active",
    )
    list_filter = ("discount_type", "active")
    search_fields = ("code", "name")


@admin.register(OrderCoupon)
class OrderCouponAdmin(admin.ModelAdmin):
    list_display = ("order", "coupon", "customer_email", "discount_amount", "final_total")
    search_fields = ("customer_email", "coupon__code")
