from rest_framework import serializers


class PayoutTriggerSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    pix_key = serializers.CharField(
        max_length=140, required=False, allow_blank=True, default=""
    )
    external_id = serializers.CharField(
        max_length=64, required=False, allow_blank=True, default=""
    )


class PayoutResultSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(allow_null=True)
    status = serializers.CharField()
    message = serializers.CharField(allow_null=True)
    amount_gross = serializers.CharField(allow_null=True)
    amount_net = serializers.CharField(allow_null=True)
    min_send = serializers.CharField(allow_null=True)
    pix_key = serializers.CharField(allow_null=True)
    provider_ref = serializers.CharField(allow_null=True)
