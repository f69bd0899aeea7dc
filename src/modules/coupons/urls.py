from django.urls import path

from modules.coupons.views import CouponValidateView

urlpatterns = [
    path("coupons/validate", CouponValidateView.as_view(), name="coupon_validate"),
]
