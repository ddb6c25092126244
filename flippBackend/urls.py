"""
URL configuration for the Flipp backend.

Checkout and sponsored-listing endpoints plus the OpenAPI schema.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

from marketplace.api.views.prometheus_metrics import prometheus_metrics


urlpatterns = [
    path("admin/", admin.site.urls),
    # API Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    # API endpoints
    path("api/checkout/", include("payment_system.urls", namespace="payment_system")),
    path("api/ads/", include("marketplace.urls", namespace="marketplace")),
    # Prometheus metrics endpoint
    path("metrics/", prometheus_metrics, name="prometheus-metrics"),
]
