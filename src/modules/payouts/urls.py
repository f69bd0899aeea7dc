from django.urls import path

from modules.payouts.views import ManualPayoutTriggerView

urlpatterns = [
    path("payouts/trigger", ManualPayoutTriggerView.as_view(), name="payout_trigger"),
]
