import uuid

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

User = get_user_model()


class Product(models.Model):
    STATUS_AVAILABLE = "available"
    STATUS_PENDING = "pending"
    STATUS_SOLD = "sold"

    STATUS_CHOICES = [
        (STATUS_AVAILABLE, "Available"),
        (STATUS_PENDING, "Pending Review"),
        (STATUS_SOLD, "Sold"),  # Set only by the sell transition or an admin edit
    ]

    SHIPPING_PICKUP = "pickup"
    SHIPPING_DELIVERY = "delivery"

    SHIPPING_METHOD_CHOICES = [
        (SHIPPING_PICKUP, "Pickup"),
        (SHIPPING_DELIVERY, "Carrier Delivery"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    seller = models.ForeignKey(User, on_delete=models.CASCADE, related_name="products")

    # Pricing, in the currency the seller listed it in
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    currency = models.CharField(max_length=3, default="USD")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    buyer = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="purchased_products"
    )
    sold_at = models.DateTimeField(null=True, blank=True)

    # Shipping
    shipping_method = models.CharField(max_length=20, choices=SHIPPING_METHOD_CHOICES, default=SHIPPING_PICKUP)
    weight_kg = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True, help_text="Weight in kg")

    # Seller pickup address (required for carrier delivery)
    seller_name = models.CharField(max_length=200, blank=True)
    seller_phone = models.CharField(max_length=30, blank=True)
    seller_address = models.TextField(blank=True)
    seller_city = models.CharField(max_length=100, blank=True)
    seller_state = models.CharField(max_length=100, blank=True)
    seller_pincode = models.CharField(max_length=12, blank=True)
    seller_country = models.CharField(max_length=100, blank=True, default="India")

    # Soft retire; products referenced by orders are never hard-deleted
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["status", "is_active"], name="product_status_active_idx"),
            models.Index(fields=["seller", "status"], name="product_seller_status_idx"),
        ]

    def save(self, *args, **kwargs):
        self.currency = (self.currency or "").upper()
        super().save(*args, **kwargs)

    def clean(self):
        super().clean()
        if self.requires_carrier and not self.has_pickup_address:
            raise ValidationError(
                {"seller_pincode": "A pickup address with postal code is required for carrier delivery."}
            )

    @property
    def requires_carrier(self) -> bool:
        return self.shipping_method == self.SHIPPING_DELIVERY

    @property
    def has_pickup_address(self) -> bool:
        return bool(self.seller_address and self.seller_pincode)

    @property
    def is_sellable(self) -> bool:
        return self.status == self.STATUS_AVAILABLE and self.is_active

    def __str__(self):
        return self.name
