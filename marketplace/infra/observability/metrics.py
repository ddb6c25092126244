from prometheus_client import Counter


# Sell transition Metrics
sell_transitions_total = Counter("marketplace_sell_transitions_total", "Sell transition attempts", ["result"])

# Campaign Metrics
campaign_counter_failures_total = Counter(
    "marketplace_campaign_counter_failures_total", "Campaign counter increments that failed", ["counter"]
)
campaign_purchases_total = Counter("marketplace_campaign_purchases_total", "Ad campaign purchases", ["status"])
