import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from infrastructure.container import container
from payment_system.api.responses import result_response, validation_error_response
from payment_system.api.serializers.request_serializers import (
    BeginCheckoutRequestSerializer,
    ChooseShippingRequestSerializer,
    PaymentCallbackRequestSerializer,
)
from payment_system.api.serializers.response_serializers import (
    CheckoutLaunchResponseSerializer,
    ErrorResponseSerializer,
    ExchangeRateStatusResponseSerializer,
    OrderOutcomeResponseSerializer,
    ShippingChoiceResponseSerializer,
    TrackingResponseSerializer,
)
from payment_system.security import get_client_ip

logger = logging.getLogger(__name__)


@extend_schema(
    operation_id="checkout_begin",
    summary="Begin checkout",
    description="Price the product in the settlement currency and create a gateway order for the payment UI.",
    request=BeginCheckoutRequestSerializer,
    responses={
        201: CheckoutLaunchResponseSerializer,
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Amount too small or own product"),
        404: ErrorResponseSerializer,
        409: OpenApiResponse(response=ErrorResponseSerializer, description="Product no longer available"),
        503: OpenApiResponse(response=ErrorResponseSerializer, description="Payment provider unavailable"),
    },
    tags=["Checkout"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def begin_checkout(request):
    """Start a checkout for one product. Safe to retry."""
    serializer = BeginCheckoutRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    result = container.checkout_service().begin_checkout(serializer.validated_data["product_id"], request.user)
    return result_response(result, success_status=status.HTTP_201_CREATED)


@extend_schema(
    operation_id="checkout_payment_callback",
    summary="Submit payment callback",
    description=(
        "Verify the gateway signature and settle the order. Replays return the current status. "
        "A verified payment for an item that sold meanwhile is flagged for refund."
    ),
    request=PaymentCallbackRequestSerializer,
    responses={
        200: OrderOutcomeResponseSerializer,
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Signature could not be verified"),
        404: ErrorResponseSerializer,
        409: OpenApiResponse(response=ErrorResponseSerializer, description="Item already sold, refund pending"),
    },
    tags=["Checkout"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def payment_callback(request):
    serializer = PaymentCallbackRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = container.checkout_service().submit_payment_callback(
        data["gateway_order_id"], data["payment_id"], data["signature"],
        ip_address=get_client_ip(request),
        caller=request.user,
    )
    return result_response(result)


@extend_schema(
    operation_id="checkout_choose_shipping",
    summary="Choose shipping method",
    description="Pickup, or carrier delivery to an address. Falls back to pickup when no courier serves the route.",
    request=ChooseShippingRequestSerializer,
    responses={
        200: ShippingChoiceResponseSerializer,
        400: ErrorResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        409: ErrorResponseSerializer,
        503: OpenApiResponse(response=ErrorResponseSerializer, description="Carrier unavailable"),
    },
    tags=["Checkout"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def choose_shipping(request, order_id):
    serializer = ChooseShippingRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = container.checkout_service().choose_shipping(order_id, request.user, data["method"], data.get("address"))
    return result_response(result)


@extend_schema(
    operation_id="checkout_cancel",
    summary="Cancel checkout",
    description="Buyer abandoned the payment UI. The product stays available.",
    request=None,
    responses={
        200: OrderOutcomeResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        409: OpenApiResponse(response=ErrorResponseSerializer, description="Order already paid"),
    },
    tags=["Checkout"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def cancel_checkout(request, order_id):
    result = container.checkout_service().cancel_checkout(order_id, request.user)
    return result_response(result)


@extend_schema(
    operation_id="checkout_tracking",
    summary="Shipment tracking",
    responses={
        200: TrackingResponseSerializer,
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Order not shipped by carrier"),
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        503: OpenApiResponse(response=ErrorResponseSerializer, description="Tracking temporarily unavailable"),
    },
    tags=["Checkout"],
)
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def order_tracking(request, order_id):
    result = container.fulfillment_service().track_order(order_id, request.user)
    return result_response(result)


@extend_schema(
    operation_id="checkout_exchange_rate_status",
    summary="Exchange rate snapshot status",
    description="Source, fetch time and staleness of the rates checkout is currently pricing with.",
    responses={200: ExchangeRateStatusResponseSerializer},
    tags=["Checkout"],
)
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def exchange_rate_status(request):
    return Response(container.currency_service().snapshot_status())
