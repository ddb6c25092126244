from django.contrib import admin

from .models import AdCampaign, Order, Product


class OrderInline(admin.TabularInline):
    model = Order
    fk_name = "product"
    extra = 0
    can_delete = False
    fields = ('buyer', 'status', 'failure_reason', 'amount', 'currency', 'created_at')
    readonly_fields = fields


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'seller', 'price', 'currency', 'status', 'shipping_method', 'is_active', 'created_at')
    list_filter = ('status', 'shipping_method', 'is_active', 'currency')
    search_fields = ('name', 'seller__username', 'seller_pincode')
    readonly_fields = ('buyer', 'sold_at', 'created_at', 'updated_at')
    inlines = [OrderInline]

    fieldsets = (
        (None, {
            'fields': ('name', 'description', 'seller')
        }),
        ('Pricing & Status', {
            'fields': ('price', 'currency', 'status', 'is_active', 'buyer', 'sold_at')
        }),
        ('Shipping', {
            'fields': ('shipping_method', 'weight_kg', 'seller_name', 'seller_phone', 'seller_address',
                       'seller_city', 'seller_state', 'seller_pincode', 'seller_country')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )

    def has_delete_permission(self, request, obj=None):
        # Soft retire through is_active; orders keep referencing the product
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'product', 'buyer', 'status', 'failure_reason', 'amount', 'currency',
                    'refund_required', 'shipping_booking_failed', 'created_at')
    list_filter = ('status', 'failure_reason', 'refund_required', 'shipping_booking_failed', 'shipping_method')
    search_fields = ('id', 'gateway_order_id', 'gateway_payment_id', 'awb_code', 'buyer__username')
    readonly_fields = (
        'id', 'product', 'buyer', 'seller', 'status', 'failure_reason',
        'amount', 'amount_minor', 'currency', 'listing_amount', 'listing_currency',
        'exchange_rate', 'rate_source', 'rate_is_stale',
        'gateway_order_id', 'gateway_payment_id', 'gateway_signature',
        'created_at', 'updated_at', 'paid_at', 'shipment_booked_at', 'completed_at', 'failed_at',
    )

    fieldsets = (
        (None, {
            'fields': ('id', 'product', 'buyer', 'seller', 'status', 'failure_reason', 'refund_required')
        }),
        ('Settlement', {
            'fields': ('amount', 'amount_minor', 'currency', 'listing_amount', 'listing_currency',
                       'exchange_rate', 'rate_source', 'rate_is_stale')
        }),
        ('Gateway', {
            'fields': ('gateway_order_id', 'gateway_payment_id', 'gateway_signature')
        }),
        ('Shipping', {
            'fields': ('shipping_method', 'buyer_name', 'buyer_email', 'buyer_phone', 'delivery_address',
                       'delivery_city', 'delivery_state', 'delivery_pincode', 'shipping_quote', 'courier_id',
                       'carrier_order_id', 'carrier_shipment_id', 'awb_code', 'courier_name', 'tracking_url',
                       'shipping_booking_failed', 'shipping_error')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'paid_at', 'shipment_booked_at', 'completed_at', 'failed_at'),
            'classes': ('collapse',)
        })
    )


@admin.register(AdCampaign)
class AdCampaignAdmin(admin.ModelAdmin):
    list_display = ('id', 'product', 'seller', 'status', 'start_date', 'end_date',
                    'impressions', 'clicks', 'click_through_rate', 'total_budget', 'currency')
    list_filter = ('status', 'start_date')
    search_fields = ('product__name', 'seller__username', 'gateway_order_id')
    readonly_fields = ('impressions', 'clicks', 'gateway_order_id', 'gateway_payment_id', 'gateway_signature',
                       'created_at', 'updated_at', 'activated_at')

    def click_through_rate(self, obj):
        return f"{obj.click_through_rate}%"
    click_through_rate.short_description = "CTR"
