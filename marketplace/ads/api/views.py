from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from infrastructure.container import container
from marketplace.ads.api.serializers import (
    CampaignConfirmRequestSerializer,
    CampaignPurchaseRequestSerializer,
    CampaignPurchaseResponseSerializer,
    CampaignResponseSerializer,
)
from payment_system.api.responses import result_response, validation_error_response
from payment_system.api.serializers.response_serializers import ErrorResponseSerializer
from payment_system.security import get_client_ip


@extend_schema(
    operation_id="ads_campaign_purchase",
    summary="Purchase a sponsored listing campaign",
    request=CampaignPurchaseRequestSerializer,
    responses={
        201: CampaignPurchaseResponseSerializer,
        400: OpenApiResponse(response=ErrorResponseSerializer, description="Invalid duration"),
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        409: ErrorResponseSerializer,
        503: ErrorResponseSerializer,
    },
    tags=["Ads"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def purchase_campaign(request):
    serializer = CampaignPurchaseRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = container.campaign_service().purchase_campaign(
        data["product_id"], request.user, data["days"], start_date=data.get("start_date")
    )
    return result_response(result, success_status=status.HTTP_201_CREATED)


@extend_schema(
    operation_id="ads_campaign_confirm",
    summary="Confirm campaign payment",
    request=CampaignConfirmRequestSerializer,
    responses={200: CampaignResponseSerializer, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer},
    tags=["Ads"],
)
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def confirm_campaign(request):
    serializer = CampaignConfirmRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.validated_data
    result = container.campaign_service().confirm_campaign_payment(
        data["gateway_order_id"], data["payment_id"], data["signature"], ip_address=get_client_ip(request)
    )
    return result_response(result)


@extend_schema(
    operation_id="ads_campaign_impression",
    summary="Record a sponsored listing impression",
    request=None,
    responses={204: OpenApiResponse(description="Always, counting is best-effort")},
    tags=["Ads"],
    auth=[],
)
@api_view(["POST"])
@permission_classes([AllowAny])
def record_impression(request, campaign_id):
    container.campaign_counter_service().record_impression(campaign_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    operation_id="ads_campaign_click",
    summary="Record a sponsored listing click",
    request=None,
    responses={204: OpenApiResponse(description="Always, counting is best-effort")},
    tags=["Ads"],
    auth=[],
)
@api_view(["POST"])
@permission_classes([AllowAny])
def record_click(request, campaign_id):
    container.campaign_counter_service().record_click(campaign_id)
    return Response(status=status.HTTP_204_NO_CONTENT)
