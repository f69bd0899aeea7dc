"""Staff-only payout endpoints."""

from __future__ import annotations

import structlog
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.payouts.serializers import PayoutResultSerializer, PayoutTriggerSerializer
from modules.payouts.services import PayoutTriggerService

logger = structlog.get_logger(__name__)

MANUAL_SOURCE = "MANUAL"


class ManualPayoutTriggerView(APIView):
    """POST /api/v1/payouts/trigger

    Re-runs the payout for one order.  This is the recovery path for
    payouts that FAILED (below minimum, provider error); a payout that is
    already SENT or CONFIRMED is reported without a second send.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(request=PayoutTriggerSerializer, responses=PayoutResultSerializer)
    def post(self, request: Request) -> Response:
        serializer = PayoutTriggerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PayoutTriggerService().try_trigger(
            str(data["order_id"]),
            external_id=data["external_id"] or f"manual-{data['order_id']}",
            source=MANUAL_SOURCE,
            override_pix_key=data["pix_key"] or None,
        )
        logger.info(
            "payout.manual_trigger",
            order_id=data["order_id"],
            status=result.status,
            user=request.user.get_username(),
        )
        return Response(PayoutResultSerializer(result.to_dict()).data)
