from rest_framework import serializers

from marketplace.ordering.domain.models import Order


class BeginCheckoutRequestSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(help_text="Product to buy")


class PaymentCallbackRequestSerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField(max_length=100, help_text="Gateway order id returned by begin checkout")
    payment_id = serializers.CharField(max_length=100, help_text="Payment id reported by the payment UI")
    signature = serializers.CharField(max_length=256, help_text="Gateway signature over order id and payment id")


class DeliveryAddressSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    address = serializers.CharField(max_length=500)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    pincode = serializers.CharField(max_length=12)


class ChooseShippingRequestSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=[Order.SHIPPING_PICKUP, Order.SHIPPING_DELIVERY])
    address = DeliveryAddressSerializer(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs["method"] == Order.SHIPPING_DELIVERY and not attrs.get("address"):
            raise serializers.ValidationError({"address": "A delivery address is required for carrier delivery."})
        return attrs
