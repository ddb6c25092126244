"""
ServiceResult -> DRF Response translation shared by the checkout and ads views.

Body shape on failure: {"error": <code>, "detail": <message>}; on success the
value itself (after as_dict() when the value has one).
"""

from rest_framework import status
from rest_framework.response import Response

from marketplace.services.base import ErrorCodes, ServiceResult

GENERIC_UPSTREAM_MESSAGE = "Something went wrong on our side. Please try again in a moment."

ERROR_STATUS = {
    # Validation
    ErrorCodes.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.AMOUNT_TOO_SMALL: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.UNSUPPORTED_CURRENCY: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.OWN_PRODUCT: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.INVALID_CAMPAIGN_DURATION: status.HTTP_400_BAD_REQUEST,
    ErrorCodes.NOT_SHIPPED: status.HTTP_400_BAD_REQUEST,
    # Security, generic message
    ErrorCodes.SIGNATURE_INVALID: status.HTTP_400_BAD_REQUEST,
    # Not found
    ErrorCodes.PRODUCT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCodes.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCodes.CAMPAIGN_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    # Ownership
    ErrorCodes.NOT_ORDER_OWNER: status.HTTP_403_FORBIDDEN,
    ErrorCodes.NOT_PRODUCT_OWNER: status.HTTP_403_FORBIDDEN,
    # Conflict
    ErrorCodes.PRODUCT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCodes.ALREADY_SOLD: status.HTTP_409_CONFLICT,
    ErrorCodes.INVALID_ORDER_STATE: status.HTTP_409_CONFLICT,
    # Upstream
    ErrorCodes.PAYMENT_PROVIDER_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCodes.SHIPPING_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCodes.TRACKING_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(error_code: str) -> int:
    return ERROR_STATUS.get(error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _serialize(value):
    return value.as_dict() if hasattr(value, "as_dict") else value


def result_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> Response:
    """Build the HTTP response for a service result."""
    if result.ok:
        return Response(_serialize(result.value), status=success_status)

    http_status = status_for(result.error)
    detail = result.error_detail
    if http_status == status.HTTP_500_INTERNAL_SERVER_ERROR:
        detail = GENERIC_UPSTREAM_MESSAGE

    body = {"error": result.error, "detail": detail}
    if result.value is not None:
        body["order"] = _serialize(result.value)
    return Response(body, status=http_status)


def validation_error_response(errors) -> Response:
    return Response(
        {"error": ErrorCodes.VALIDATION_ERROR, "detail": "Invalid request", "fields": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )
