from prometheus_client import Counter
# Prometheus metrics definitions

# Metered chart analyses accepted by the API
analysis_requests_total = Counter(
    "analysis_requests_total", "Total chart analysis requests"
)

# Requests denied because the free daily allowance was used up
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests"
)

# Daily counters zeroed at a day boundary (lazy, manual or cron)
usage_reset_total = Counter(
    "usage_reset_total", "Number of usage counter resets"
)

# Persistence failures surfaced as 503
storage_error_total = Counter(
    "storage_error_total", "Total usage storage failures"
)

support_tickets_total = Counter(
    "support_tickets_total", "Support tickets created", ["priority"]
)

billing_events_total = Counter(
    "billing_events_total", "Billing webhook events received", ["type"]
)

# Webhook rejects (signature or secret)
webhook_forbidden_total = Counter(
    "webhook_forbidden_total", "Total forbidden webhook requests"
)

__all__ = [
    "analysis_requests_total",
    "quota_reject_total",
    "usage_reset_total",
    "storage_error_total",
    "support_tickets_total",
    "billing_events_total",
    "webhook_forbidden_total",
]
