from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from infrastructure.container import container
from marketplace.models import AdCampaign, Product
from marketplace.services.base import ErrorCodes
from marketplace.tests.factories import AdCampaignFactory, ProductFactory, SellerFactory, UserFactory
from payment_system.domain.events.definitions import CAMPAIGN_ACTIVATED


@override_settings(AD_CAMPAIGN_DAILY_RATE=100, AD_CAMPAIGN_MIN_DAYS=7, AD_CAMPAIGN_MAX_DAYS=180, SETTLEMENT_CURRENCY="INR")
class CampaignServiceTest(TestCase):
    def setUp(self):
        container.configure_for_testing()
        self.gateway = container.payment_gateway()
        self.service = container.campaign_service()
        self.seller = SellerFactory()
        self.product = ProductFactory(seller=self.seller)

    def tearDown(self):
        container.reset()

    def purchase(self, days=7, start_date=None):
        result = self.service.purchase_campaign(self.product.pk, self.seller, days, start_date=start_date)
        self.assertTrue(result.ok, result.error_detail)
        return result.value

    def confirm(self, purchase, payment_id="pay_ad_1"):
        gateway_order_id = purchase["gateway_order_id"]
        return self.service.confirm_campaign_payment(
            gateway_order_id, payment_id, self.gateway.sign(gateway_order_id, payment_id)
        )

    def test_purchase_prices_days_times_rate(self):
        purchase = self.purchase(days=10, start_date=date(2030, 1, 1))

        self.assertEqual(purchase["total_budget"], "1000.00")
        self.assertEqual(purchase["currency"], "INR")
        self.assertEqual(purchase["end_date"], "2030-01-10")
        self.assertEqual(self.gateway.created_orders[0].amount_minor, 100000)

        campaign = AdCampaign.objects.get(pk=purchase["campaign_id"])
        self.assertEqual(campaign.status, AdCampaign.STATUS_PENDING)
        self.assertEqual(campaign.days, 10)

    def test_duration_limits(self):
        for days in (6, 181, "seven"):
            result = self.service.purchase_campaign(self.product.pk, self.seller, days)
            self.assertEqual(result.error, ErrorCodes.INVALID_CAMPAIGN_DURATION)
        self.assertFalse(AdCampaign.objects.exists())

    def test_only_owner_can_promote(self):
        result = self.service.purchase_campaign(self.product.pk, UserFactory(), 7)

        self.assertEqual(result.error, ErrorCodes.NOT_PRODUCT_OWNER)

    def test_sold_product_cannot_be_promoted(self):
        self.product.status = Product.STATUS_SOLD
        self.product.save()

        result = self.service.purchase_campaign(self.product.pk, self.seller, 7)

        self.assertEqual(result.error, ErrorCodes.PRODUCT_UNAVAILABLE)

    def test_confirm_activates_once(self):
        purchase = self.purchase()

        first = self.confirm(purchase)
        replay = self.confirm(purchase)

        self.assertTrue(first.ok)
        self.assertEqual(first.value["status"], AdCampaign.STATUS_ACTIVE)
        self.assertTrue(replay.ok)
        self.assertEqual(len(container.event_bus().events_of_type(CAMPAIGN_ACTIVATED)), 1)

    def test_future_campaign_reports_scheduled(self):
        purchase = self.purchase(start_date=timezone.localdate() + timedelta(days=3))

        result = self.confirm(purchase)

        self.assertEqual(result.value["status"], AdCampaign.STATUS_SCHEDULED)

    def test_bad_signature_leaves_campaign_pending(self):
        purchase = self.purchase()

        result = self.service.confirm_campaign_payment(purchase["gateway_order_id"], "pay_ad_1", "forged")

        self.assertEqual(result.error, ErrorCodes.SIGNATURE_INVALID)
        self.assertEqual(AdCampaign.objects.get(pk=purchase["campaign_id"]).status, AdCampaign.STATUS_PENDING)

    def test_unknown_campaign(self):
        result = self.service.confirm_campaign_payment("order_none", "pay", "sig")

        self.assertEqual(result.error, ErrorCodes.CAMPAIGN_NOT_FOUND)

    def test_sponsored_campaigns_today(self):
        today = timezone.localdate()
        running = AdCampaignFactory(start_date=today - timedelta(days=1))
        AdCampaignFactory(start_date=today + timedelta(days=2))
        AdCampaignFactory(start_date=today - timedelta(days=30))
        AdCampaignFactory(status=AdCampaign.STATUS_PENDING)
        sold = AdCampaignFactory(product=ProductFactory(status=Product.STATUS_SOLD))

        sponsored = self.service.sponsored_campaigns(today)

        self.assertEqual([c.pk for c in sponsored], [running.pk])
        self.assertNotIn(sold.pk, [c.pk for c in sponsored])


class AdsEndpointsTest(TestCase):
    def setUp(self):
        container.configure_for_testing()
        self.client = APIClient()
        self.seller = SellerFactory()
        self.product = ProductFactory(seller=self.seller)

    def tearDown(self):
        container.reset()

    def test_purchase_and_confirm(self):
        self.client.force_authenticate(user=self.seller)

        response = self.client.post(
            reverse("marketplace:purchase_campaign"), {"product_id": str(self.product.pk), "days": 7}, format="json"
        )

        self.assertEqual(response.status_code, 201)
        gateway_order_id = response.data["gateway_order_id"]
        signature = container.payment_gateway().sign(gateway_order_id, "pay_ad_9")

        response = self.client.post(
            reverse("marketplace:confirm_campaign"),
            {"gateway_order_id": gateway_order_id, "payment_id": "pay_ad_9", "signature": signature},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], AdCampaign.STATUS_ACTIVE)

    def test_purchase_requires_login(self):
        response = self.client.post(
            reverse("marketplace:purchase_campaign"), {"product_id": str(self.product.pk), "days": 7}, format="json"
        )

        self.assertIn(response.status_code, (401, 403))

    def test_invalid_duration(self):
        self.client.force_authenticate(user=self.seller)

        response = self.client.post(
            reverse("marketplace:purchase_campaign"), {"product_id": str(self.product.pk), "days": 3}, format="json"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], ErrorCodes.INVALID_CAMPAIGN_DURATION)

    def test_counters_are_anonymous_and_always_accepted(self):
        campaign = AdCampaignFactory(product=self.product)

        impression = self.client.post(reverse("marketplace:campaign_impression", args=[campaign.pk]))
        click = self.client.post(reverse("marketplace:campaign_click", args=[campaign.pk]))
        missing = self.client.post(
            reverse("marketplace:campaign_click", args=["5b0c2f3e-8f0f-4e43-9d4c-1d7c7a4f2b10"])
        )

        self.assertEqual(impression.status_code, 204)
        self.assertEqual(click.status_code, 204)
        self.assertEqual(missing.status_code, 204)

        campaign.refresh_from_db()
        self.assertEqual((campaign.impressions, campaign.clicks), (1, 1))
        self.assertEqual(campaign.click_through_rate, Decimal("100.00"))
