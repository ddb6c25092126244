import uuid
from datetime import timedelta
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.utils import timezone
from faker import Faker

from marketplace.models import AdCampaign, Order, Product
from payment_system.models import ExchangeRate

User = get_user_model()
fake = Faker()


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user_{n}")
    email = factory.Sequence(lambda n: f"user_{n}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    password = factory.PostGenerationMethodCall("set_password", "defaultpassword")
    is_active = True


class SellerFactory(UserFactory):
    username = factory.Sequence(lambda n: f"seller_{n}")
    email = factory.Sequence(lambda n: f"seller_{n}@example.com")


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"Product {n}")
    description = factory.Faker("paragraph", nb_sentences=3)
    price = Decimal("50.00")
    currency = "USD"
    status = Product.STATUS_AVAILABLE
    shipping_method = Product.SHIPPING_PICKUP
    is_active = True

    seller = factory.SubFactory(SellerFactory)


class ShippableProductFactory(ProductFactory):
    shipping_method = Product.SHIPPING_DELIVERY
    weight_kg = Decimal("1.200")
    seller_name = factory.Faker("name")
    seller_phone = "9876543210"
    seller_address = factory.LazyFunction(lambda: fake.street_address())
    seller_city = "Mumbai"
    seller_state = "Maharashtra"
    seller_pincode = "400001"


class OrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Order

    product = factory.SubFactory(ProductFactory)
    buyer = factory.SubFactory(UserFactory)
    seller = factory.LazyAttribute(lambda o: o.product.seller)
    status = Order.STATUS_CREATED
    amount = Decimal("4150.00")
    amount_minor = 415000
    currency = "INR"
    listing_amount = factory.LazyAttribute(lambda o: o.product.price)
    listing_currency = factory.LazyAttribute(lambda o: o.product.currency)
    exchange_rate = Decimal("83.00")
    rate_source = "static"
    gateway_order_id = factory.LazyFunction(lambda: f"order_{uuid.uuid4().hex[:14]}")
    shipping_method = factory.LazyAttribute(lambda o: o.product.shipping_method)
    buyer_name = factory.LazyAttribute(lambda o: o.buyer.get_full_name())
    buyer_email = factory.LazyAttribute(lambda o: o.buyer.email)


class DeliveryOrderFactory(OrderFactory):
    product = factory.SubFactory(ShippableProductFactory)
    shipping_method = Order.SHIPPING_DELIVERY
    buyer_phone = "9123456780"
    delivery_address = factory.LazyFunction(lambda: fake.street_address())
    delivery_city = "Bengaluru"
    delivery_state = "Karnataka"
    delivery_pincode = "560001"
    shipping_quote = Decimal("49.00")


class AdCampaignFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AdCampaign

    product = factory.SubFactory(ProductFactory)
    seller = factory.LazyAttribute(lambda o: o.product.seller)
    start_date = factory.LazyFunction(timezone.localdate)
    days = 7
    end_date = factory.LazyAttribute(lambda o: o.start_date + timedelta(days=o.days - 1))
    daily_rate = Decimal("100.00")
    total_budget = factory.LazyAttribute(lambda o: o.daily_rate * o.days)
    currency = "INR"
    status = AdCampaign.STATUS_ACTIVE


class ExchangeRateFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ExchangeRate

    base_currency = "USD"
    target_currency = "INR"
    rate = Decimal("83.12000000")
    source = "test"
    created_at = factory.LazyFunction(timezone.now)
