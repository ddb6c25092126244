from rest_framework import serializers


class CampaignPurchaseRequestSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(help_text="Listing to sponsor")
    days = serializers.IntegerField(min_value=1, help_text="Campaign length in days")
    start_date = serializers.DateField(required=False, help_text="First sponsored day, defaults to today")


class CampaignConfirmRequestSerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField(max_length=100)
    payment_id = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=256)


class CampaignPurchaseResponseSerializer(serializers.Serializer):
    campaign_id = serializers.UUIDField()
    gateway_order_id = serializers.CharField()
    launch_params = serializers.DictField()
    total_budget = serializers.CharField()
    currency = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class CampaignResponseSerializer(serializers.Serializer):
    campaign_id = serializers.UUIDField()
    product_id = serializers.UUIDField()
    status = serializers.CharField(help_text="pending, scheduled, active, completed or cancelled")
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    total_budget = serializers.CharField()
    currency = serializers.CharField()
    impressions = serializers.IntegerField()
    clicks = serializers.IntegerField()
    click_through_rate = serializers.CharField(help_text="Percent, two places")
