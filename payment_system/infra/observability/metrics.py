from prometheus_client import Counter, Histogram


# Checkout Metrics
checkout_outcomes_total = Counter(
    "checkout_outcomes_total", "Checkout attempts by final outcome", ["outcome"]
)
checkout_settlement_value = Histogram(
    "checkout_settlement_value",
    "Settlement amount distribution (major units)",
    ["currency"],
    buckets=[100, 500, 1000, 2500, 5000, 10000, 25000, 50000, 100000, float("inf")],
)

# Payment Metrics
signature_verifications_total = Counter(
    "checkout_signature_verifications_total", "Payment callback signature checks", ["result"]
)
sell_conflicts_total = Counter("checkout_sell_conflicts_total", "Verified payments that lost the sell race")
refund_signals_total = Counter("checkout_refund_signals_total", "Refund-required signals emitted", ["reason"])

# Shipping Metrics
shipment_bookings_total = Counter("checkout_shipment_bookings_total", "Shipment booking attempts", ["status"])
tracking_lookups_total = Counter("checkout_tracking_lookups_total", "Tracking lookups", ["status"])

# Exchange Rate Metrics
exchange_rate_snapshot_loads = Counter(
    "exchange_rate_snapshot_loads_total", "Exchange-rate snapshots installed, by source", ["source"]
)
