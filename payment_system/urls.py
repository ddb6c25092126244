from django.urls import path

from payment_system.api.views import checkout_views

app_name = "payment_system"

urlpatterns = [
    # Checkout
    path("begin/", checkout_views.begin_checkout, name="begin_checkout"),
    path("callback/", checkout_views.payment_callback, name="payment_callback"),
    # Order actions while awaiting payment / after shipping
    path("orders/<uuid:order_id>/shipping/", checkout_views.choose_shipping, name="choose_shipping"),
    path("orders/<uuid:order_id>/cancel/", checkout_views.cancel_checkout, name="cancel_checkout"),
    path("orders/<uuid:order_id>/tracking/", checkout_views.order_tracking, name="order_tracking"),
    # Exchange rates
    path("exchange-rates/status/", checkout_views.exchange_rate_status, name="exchange_rate_status"),
]
