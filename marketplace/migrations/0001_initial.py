from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('status', models.CharField(choices=[('available', 'Available'), ('pending', 'Pending Review'), ('sold', 'Sold')], default='available', max_length=20)),
                ('sold_at', models.DateTimeField(blank=True, null=True)),
                ('shipping_method', models.CharField(choices=[('pickup', 'Pickup'), ('delivery', 'Carrier Delivery')], default='pickup', max_length=20)),
                ('weight_kg', models.DecimalField(blank=True, decimal_places=3, help_text='Weight in kg', max_digits=8, null=True)),
                ('seller_name', models.CharField(blank=True, max_length=200)),
                ('seller_phone', models.CharField(blank=True, max_length=30)),
                ('seller_address', models.TextField(blank=True)),
                ('seller_city', models.CharField(blank=True, max_length=100)),
                ('seller_state', models.CharField(blank=True, max_length=100)),
                ('seller_pincode', models.CharField(blank=True, max_length=12)),
                ('seller_country', models.CharField(blank=True, default='India', max_length=100)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('buyer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='purchased_products', to=settings.AUTH_USER_MODEL)),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'is_active'], name='product_status_active_idx'),
                    models.Index(fields=['seller', 'status'], name='product_seller_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('created', 'Created'), ('paid', 'Paid'), ('shipment_booked', 'Shipment Booked'), ('completed', 'Completed'), ('failed', 'Failed')], default='created', max_length=20)),
                ('failure_reason', models.CharField(blank=True, choices=[('signature_invalid', 'Signature Invalid'), ('already_sold', 'Already Sold'), ('cancelled', 'Cancelled by Buyer'), ('expired', 'Payment Window Expired')], max_length=30)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('amount_minor', models.BigIntegerField(help_text='Settlement amount in minor units as sent to the gateway')),
                ('currency', models.CharField(max_length=3)),
                ('listing_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('listing_currency', models.CharField(max_length=3)),
                ('exchange_rate', models.DecimalField(decimal_places=10, default=1, max_digits=20)),
                ('rate_source', models.CharField(blank=True, max_length=30)),
                ('rate_is_stale', models.BooleanField(default=False)),
                ('gateway_order_id', models.CharField(max_length=100, unique=True)),
                ('gateway_payment_id', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('gateway_signature', models.CharField(blank=True, max_length=256)),
                ('refund_required', models.BooleanField(default=False)),
                ('shipping_method', models.CharField(choices=[('pickup', 'Pickup'), ('delivery', 'Carrier Delivery')], default='pickup', max_length=20)),
                ('buyer_name', models.CharField(blank=True, max_length=200)),
                ('buyer_email', models.EmailField(blank=True, max_length=254)),
                ('buyer_phone', models.CharField(blank=True, max_length=30)),
                ('delivery_address', models.TextField(blank=True)),
                ('delivery_city', models.CharField(blank=True, max_length=100)),
                ('delivery_state', models.CharField(blank=True, max_length=100)),
                ('delivery_pincode', models.CharField(blank=True, max_length=12)),
                ('shipping_quote', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('carrier_order_id', models.CharField(blank=True, max_length=100)),
                ('carrier_shipment_id', models.CharField(blank=True, max_length=100)),
                ('awb_code', models.CharField(blank=True, max_length=100)),
                ('courier_name', models.CharField(blank=True, max_length=100)),
                ('tracking_url', models.URLField(blank=True, max_length=500)),
                ('shipping_booking_failed', models.BooleanField(default=False)),
                ('shipping_error', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('shipment_booked_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('failed_at', models.DateTimeField(blank=True, null=True)),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='marketplace.product')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='sales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['product', 'status'], name='order_product_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
                    models.Index(fields=['buyer', '-created_at'], name='order_buyer_created_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status__in', ['paid', 'shipment_booked', 'completed'])), fields=('product',), name='order_single_sale_per_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AdCampaign',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('days', models.PositiveIntegerField()),
                ('daily_rate', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_budget', models.DecimalField(decimal_places=2, max_digits=14)),
                ('total_spent', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('currency', models.CharField(max_length=3)),
                ('impressions', models.PositiveBigIntegerField(default=0)),
                ('clicks', models.PositiveBigIntegerField(default=0)),
                ('status', models.CharField(choices=[('pending', 'Pending Payment'), ('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('gateway_order_id', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('gateway_payment_id', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('gateway_signature', models.CharField(blank=True, max_length=256)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('activated_at', models.DateTimeField(blank=True, null=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='campaigns', to='marketplace.product')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ad_campaigns', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'start_date', 'end_date'], name='campaign_status_dates_idx'),
                    models.Index(fields=['seller', '-created_at'], name='campaign_seller_created_idx'),
                ],
            },
        ),
    ]
