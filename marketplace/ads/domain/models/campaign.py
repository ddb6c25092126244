import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.catalog.domain.models.catalog import Product

User = get_user_model()


class AdCampaign(models.Model):
    """
    Sponsored placement for a product over a date range.

    impressions and clicks only ever move through the counter service,
    which increments them at the database.
    """

    STATUS_PENDING = "pending"
    STATUS_ACTIVE = "active"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending Payment"),
        (STATUS_ACTIVE, "Active"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Derived for display only, never stored
    STATUS_SCHEDULED = "scheduled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="campaigns")
    seller = models.ForeignKey(User, on_delete=models.CASCADE, related_name="ad_campaigns")

    start_date = models.DateField()
    end_date = models.DateField()
    days = models.PositiveIntegerField()

    daily_rate = models.DecimalField(max_digits=12, decimal_places=2)
    total_budget = models.DecimalField(max_digits=14, decimal_places=2)
    total_spent = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3)

    impressions = models.PositiveBigIntegerField(default=0)
    clicks = models.PositiveBigIntegerField(default=0)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    gateway_order_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    gateway_payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    gateway_signature = models.CharField(max_length=256, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    activated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["status", "start_date", "end_date"], name="campaign_status_dates_idx"),
            models.Index(fields=["seller", "-created_at"], name="campaign_seller_created_idx"),
        ]

    @property
    def click_through_rate(self) -> Decimal:
        """Clicks per impression as a percentage, two places."""
        if not self.impressions:
            return Decimal("0.00")
        return (Decimal(self.clicks) * 100 / Decimal(self.impressions)).quantize(Decimal("0.01"))

    def __str__(self):
        return f"Campaign {str(self.id)[:8]} for {self.product_id} [{self.status}]"
