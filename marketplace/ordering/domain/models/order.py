import uuid

from django.contrib.auth import get_user_model
from django.db import models

from marketplace.catalog.domain.models.catalog import Product

User = get_user_model()


class Order(models.Model):
    STATUS_CREATED = "created"
    STATUS_PAID = "paid"
    STATUS_SHIPMENT_BOOKED = "shipment_booked"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_CREATED, "Created"),  # Gateway order exists, awaiting payment
        (STATUS_PAID, "Paid"),  # Set only by the sell transition
        (STATUS_SHIPMENT_BOOKED, "Shipment Booked"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    FAILURE_SIGNATURE_INVALID = "signature_invalid"
    FAILURE_ALREADY_SOLD = "already_sold"
    FAILURE_CANCELLED = "cancelled"
    FAILURE_EXPIRED = "expired"

    FAILURE_REASON_CHOICES = [
        (FAILURE_SIGNATURE_INVALID, "Signature Invalid"),
        (FAILURE_ALREADY_SOLD, "Already Sold"),
        (FAILURE_CANCELLED, "Cancelled by Buyer"),
        (FAILURE_EXPIRED, "Payment Window Expired"),
    ]

    SHIPPING_PICKUP = Product.SHIPPING_PICKUP
    SHIPPING_DELIVERY = Product.SHIPPING_DELIVERY

    OPEN_STATUSES = (STATUS_CREATED,)
    SOLD_STATUSES = (STATUS_PAID, STATUS_SHIPMENT_BOOKED, STATUS_COMPLETED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="orders")
    buyer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="orders")
    seller = models.ForeignKey(User, on_delete=models.PROTECT, related_name="sales")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CREATED)
    failure_reason = models.CharField(max_length=30, choices=FAILURE_REASON_CHOICES, blank=True)

    # Settlement
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    amount_minor = models.BigIntegerField(help_text="Settlement amount in minor units as sent to the gateway")
    currency = models.CharField(max_length=3)

    # Pricing audit: what the listing said and which rate produced the amount
    listing_amount = models.DecimalField(max_digits=12, decimal_places=2)
    listing_currency = models.CharField(max_length=3)
    exchange_rate = models.DecimalField(max_digits=20, decimal_places=10, default=1)
    rate_source = models.CharField(max_length=30, blank=True)
    rate_is_stale = models.BooleanField(default=False)

    # Gateway references. Unique so a replayed callback can never bind twice.
    gateway_order_id = models.CharField(max_length=100, unique=True)
    gateway_payment_id = models.CharField(max_length=100, unique=True, null=True, blank=True)
    gateway_signature = models.CharField(max_length=256, blank=True)
    refund_required = models.BooleanField(default=False)

    # Shipping
    shipping_method = models.CharField(
        max_length=20, choices=Product.SHIPPING_METHOD_CHOICES, default=Product.SHIPPING_PICKUP
    )
    buyer_name = models.CharField(max_length=200, blank=True)
    buyer_email = models.EmailField(blank=True)
    buyer_phone = models.CharField(max_length=30, blank=True)
    delivery_address = models.TextField(blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_state = models.CharField(max_length=100, blank=True)
    delivery_pincode = models.CharField(max_length=12, blank=True)
    shipping_quote = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    courier_id = models.PositiveIntegerField(null=True, blank=True, help_text="Carrier courier quoted to the buyer")
    carrier_order_id = models.CharField(max_length=100, blank=True)
    carrier_shipment_id = models.CharField(max_length=100, blank=True)
    awb_code = models.CharField(max_length=100, blank=True)
    courier_name = models.CharField(max_length=100, blank=True)
    tracking_url = models.URLField(max_length=500, blank=True)
    shipping_booking_failed = models.BooleanField(default=False)
    shipping_error = models.TextField(blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipment_booked_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        app_label = "marketplace"
        indexes = [
            models.Index(fields=["product", "status"], name="order_product_status_idx"),
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["buyer", "-created_at"], name="order_buyer_created_idx"),
        ]
        constraints = [
            # At most one order per product may ever hold the sale.
            models.UniqueConstraint(
                fields=["product"],
                condition=models.Q(status__in=["paid", "shipment_booked", "completed"]),
                name="order_single_sale_per_product",
            ),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    @property
    def is_sold(self) -> bool:
        return self.status in self.SOLD_STATUSES

    @property
    def wants_delivery(self) -> bool:
        return self.shipping_method == self.SHIPPING_DELIVERY

    @property
    def has_delivery_address(self) -> bool:
        return bool(self.delivery_address and self.delivery_city and self.delivery_pincode)

    def __str__(self):
        return f"Order {str(self.id)[:8]} for {self.product_id} [{self.status}]"
