"""
CampaignService - Sponsored listing purchase and lifecycle

A seller buys a campaign for one of their available products for a number of
days. Campaigns are paid through the same payment gateway as checkout and
become active once the gateway callback signature verifies.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from infrastructure.payments import PaymentException, PaymentGatewayUnavailable, PaymentValidationError
from marketplace.ads.domain.models import AdCampaign
from marketplace.catalog.domain.models import Product
from marketplace.infra.observability.metrics import campaign_purchases_total
from marketplace.services.base import BaseService, ErrorCodes, ServiceResult, service_err, service_ok
from payment_system.domain.events.definitions import CampaignActivated
from payment_system.domain.services.currency_service import quantize_amount, to_minor_units
from payment_system.security import PaymentAuditLogger


class CampaignService(BaseService):
    """
    Service for ad campaign purchase and scheduling.

    Responsibilities:
    - Price and reserve a campaign (days x daily rate, settlement currency)
    - Activate a campaign when its payment callback verifies
    - Report which campaigns are currently sponsoring a listing

    Dependencies:
    - PaymentGatewayInterface: campaign payment orders and callback signatures
    - EventBus: campaign activation events
    """

    def __init__(self, gateway, event_bus):
        super().__init__()
        self.gateway = gateway
        self.event_bus = event_bus

    @property
    def daily_rate(self) -> Decimal:
        return Decimal(str(getattr(settings, "AD_CAMPAIGN_DAILY_RATE", 100)))

    @property
    def min_days(self) -> int:
        return int(getattr(settings, "AD_CAMPAIGN_MIN_DAYS", 7))

    @property
    def max_days(self) -> int:
        return int(getattr(settings, "AD_CAMPAIGN_MAX_DAYS", 180))

    @property
    def currency(self) -> str:
        return getattr(settings, "SETTLEMENT_CURRENCY", "INR").upper()

    @BaseService.log_performance
    def purchase_campaign(self, product_id, seller, days: int, start_date: Optional[date] = None) -> ServiceResult[dict]:
        """
        Create a pending campaign and its gateway payment order.

        Args:
            product_id: Product to sponsor (must belong to seller and be available)
            seller: Requesting user
            days: Campaign length, AD_CAMPAIGN_MIN_DAYS..AD_CAMPAIGN_MAX_DAYS
            start_date: First sponsored day, defaults to today

        Returns:
            ServiceResult with campaign id, budget and gateway launch parameters
        """
        try:
            days = int(days)
        except (TypeError, ValueError):
            return service_err(ErrorCodes.INVALID_CAMPAIGN_DURATION, "Campaign length must be a whole number of days")
        if not self.min_days <= days <= self.max_days:
            return service_err(
                ErrorCodes.INVALID_CAMPAIGN_DURATION,
                f"Campaigns run between {self.min_days} and {self.max_days} days",
            )

        product = Product.objects.filter(pk=product_id).first()
        if product is None:
            return service_err(ErrorCodes.PRODUCT_NOT_FOUND, "Product not found")
        if product.seller_id != seller.pk:
            return service_err(ErrorCodes.NOT_PRODUCT_OWNER, "You can only promote your own listings")
        if not product.is_sellable:
            return service_err(ErrorCodes.PRODUCT_UNAVAILABLE, "Only available listings can be promoted")

        start = start_date or timezone.localdate()
        daily_rate = quantize_amount(self.daily_rate, self.currency)
        total_budget = quantize_amount(daily_rate * days, self.currency)
        amount_minor = to_minor_units(total_budget, self.currency)

        metadata = {
            "receipt": f"ad_{str(product.pk).replace('-', '')[:24]}",
            "description": f"Sponsored listing: {product.name}"[:255],
            "notes": {"product_id": str(product.pk), "days": str(days), "purpose": "ad_campaign"},
            "prefill": {"name": seller.get_full_name() or seller.get_username(), "email": seller.email},
        }

        try:
            gateway_order = self.gateway.create_order(amount_minor, self.currency, metadata)
        except PaymentValidationError as e:
            return service_err(ErrorCodes.AMOUNT_TOO_SMALL, str(e))
        except (PaymentGatewayUnavailable, PaymentException) as e:
            self.logger.error(f"[ADS] Gateway order creation failed for campaign on {product.pk}: {e}")
            campaign_purchases_total.labels(status="gateway_error").inc()
            return service_err(
                ErrorCodes.PAYMENT_PROVIDER_ERROR,
                "We could not reach the payment provider. Please try again in a moment.",
            )

        campaign = AdCampaign.objects.create(
            product=product,
            seller=seller,
            start_date=start,
            end_date=start + timedelta(days=days - 1),
            days=days,
            daily_rate=daily_rate,
            total_budget=total_budget,
            currency=self.currency,
            status=AdCampaign.STATUS_PENDING,
            gateway_order_id=gateway_order.gateway_order_id,
        )
        campaign_purchases_total.labels(status="pending").inc()
        self.logger.info(f"[ADS] Campaign {campaign.pk} pending payment of {total_budget} {self.currency}")

        return service_ok(
            {
                "campaign_id": str(campaign.pk),
                "gateway_order_id": gateway_order.gateway_order_id,
                "launch_params": gateway_order.launch_params,
                "total_budget": str(total_budget),
                "currency": self.currency,
                "start_date": campaign.start_date.isoformat(),
                "end_date": campaign.end_date.isoformat(),
            }
        )

    @BaseService.log_performance
    def confirm_campaign_payment(
        self, gateway_order_id: str, payment_id: str, signature: str, ip_address: Optional[str] = None
    ) -> ServiceResult[dict]:
        """
        Activate a pending campaign after its payment callback verifies.

        Replaying the same callback returns the campaign unchanged.
        """
        campaign = AdCampaign.objects.filter(gateway_order_id=gateway_order_id).first()
        if campaign is None:
            return service_err(ErrorCodes.CAMPAIGN_NOT_FOUND, "Campaign not found")

        try:
            verification = self.gateway.verify_callback(
                {"gateway_order_id": gateway_order_id, "payment_id": payment_id, "signature": signature}
            )
        except PaymentValidationError as e:
            return service_err(ErrorCodes.VALIDATION_ERROR, str(e))

        if not verification.verified:
            PaymentAuditLogger.log_security_event(
                "campaign_signature_mismatch",
                ip_address=ip_address,
                user_id=campaign.seller_id,
                details={"campaign_id": str(campaign.pk), "gateway_order_id": gateway_order_id, "signature": signature},
            )
            return service_err(ErrorCodes.SIGNATURE_INVALID, "We could not confirm this payment. Please try again.")

        now = timezone.now()
        activated = AdCampaign.objects.filter(pk=campaign.pk, status=AdCampaign.STATUS_PENDING).update(
            status=AdCampaign.STATUS_ACTIVE,
            gateway_payment_id=payment_id,
            gateway_signature=signature,
            activated_at=now,
            updated_at=now,
        )
        campaign.refresh_from_db()

        if activated:
            campaign_purchases_total.labels(status="active").inc()
            self.logger.info(f"[ADS] Campaign {campaign.pk} activated")
            event = CampaignActivated(
                campaign_id=str(campaign.pk),
                product_id=str(campaign.product_id),
                seller_id=str(campaign.seller_id),
                start_date=campaign.start_date.isoformat(),
                end_date=campaign.end_date.isoformat(),
                occurred_at=now,
            )
            self.event_bus.publish(event.event_type, event.to_payload())
        elif campaign.gateway_payment_id != payment_id:
            self.logger.warning(
                f"[ADS] Payment {payment_id} for campaign {campaign.pk} arrived in status {campaign.status}"
            )

        return service_ok(self.describe(campaign))

    @staticmethod
    def effective_status(campaign: AdCampaign, today: Optional[date] = None) -> str:
        """Status as shown to the seller: paid campaigns are 'scheduled' before start and 'completed' after end."""
        today = today or timezone.localdate()
        if campaign.status != AdCampaign.STATUS_ACTIVE:
            return campaign.status
        if today < campaign.start_date:
            return AdCampaign.STATUS_SCHEDULED
        if today > campaign.end_date:
            return AdCampaign.STATUS_COMPLETED
        return AdCampaign.STATUS_ACTIVE

    def sponsored_campaigns(self, today: Optional[date] = None) -> List[AdCampaign]:
        """Campaigns that should be sponsoring a listing today."""
        today = today or timezone.localdate()
        return list(
            AdCampaign.objects.select_related("product")
            .filter(
                status=AdCampaign.STATUS_ACTIVE,
                start_date__lte=today,
                end_date__gte=today,
                product__status=Product.STATUS_AVAILABLE,
                product__is_active=True,
            )
            .order_by("start_date")
        )

    def describe(self, campaign: AdCampaign, today: Optional[date] = None) -> dict:
        return {
            "campaign_id": str(campaign.pk),
            "product_id": str(campaign.product_id),
            "status": self.effective_status(campaign, today),
            "start_date": campaign.start_date.isoformat(),
            "end_date": campaign.end_date.isoformat(),
            "total_budget": str(campaign.total_budget),
            "currency": campaign.currency,
            "impressions": campaign.impressions,
            "clicks": campaign.clicks,
            "click_through_rate": str(campaign.click_through_rate),
        }
