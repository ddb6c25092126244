from rest_framework import serializers


class ErrorResponseSerializer(serializers.Serializer):
    """Standard error body"""

    error = serializers.CharField(help_text="Error code")
    detail = serializers.CharField(help_text="Message safe to show the user")


class CheckoutLaunchResponseSerializer(serializers.Serializer):
    """Response for beginning a checkout"""

    order_id = serializers.UUIDField()
    gateway_order_id = serializers.CharField()
    launch_params = serializers.DictField(help_text="Parameters for the gateway payment UI")
    amount = serializers.CharField(help_text="Settlement amount, major units")
    amount_minor = serializers.IntegerField(help_text="Settlement amount, minor units")
    currency = serializers.CharField()
    listing_amount = serializers.CharField()
    listing_currency = serializers.CharField()
    rate_is_stale = serializers.BooleanField()


class OrderOutcomeResponseSerializer(serializers.Serializer):
    """Order status after a callback or cancellation"""

    order_id = serializers.UUIDField()
    status = serializers.CharField()
    failure_reason = serializers.CharField(allow_null=True)
    refund_required = serializers.BooleanField()
    shipping_booking_failed = serializers.BooleanField()
    awb_code = serializers.CharField(allow_null=True)
    tracking_url = serializers.CharField(allow_null=True)


class CourierQuoteSerializer(serializers.Serializer):
    courier_name = serializers.CharField()
    rate = serializers.CharField()
    eta = serializers.CharField(allow_null=True)
    eta_days = serializers.IntegerField(allow_null=True)
    courier_id = serializers.IntegerField(allow_null=True)


class ShippingChoiceResponseSerializer(serializers.Serializer):
    """Response for choosing a shipping method"""

    order_id = serializers.UUIDField()
    method = serializers.CharField()
    quote = CourierQuoteSerializer(allow_null=True)
    options = CourierQuoteSerializer(many=True)
    pickup_only = serializers.BooleanField(help_text="True when no courier serves this route")


class TrackingResponseSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    awb_code = serializers.CharField()
    courier_name = serializers.CharField()
    tracking_url = serializers.CharField()
    status = serializers.CharField()
    last_update = serializers.CharField(allow_null=True)
    location = serializers.CharField(allow_null=True)


class ExchangeRateStatusResponseSerializer(serializers.Serializer):
    base_currency = serializers.CharField()
    settlement_currency = serializers.CharField()
    source = serializers.CharField()
    fetched_at = serializers.CharField()
    age_seconds = serializers.FloatField()
    is_stale = serializers.BooleanField()
    currencies = serializers.ListField(child=serializers.CharField())
