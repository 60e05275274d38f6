"""
Prometheus metrics for the document relay.
"""

from prometheus_client import Counter, Histogram, Gauge


# ── Intake ───────────────────────────────────────────────────
submissions_created_total = Counter(
    "submissions_created_total",
    "Total ledger records created at intake",
)

submissions_abandoned_total = Counter(
    "submissions_abandoned_total",
    "Total submissions marked abandoned",
    ["reason"],
)

inbound_messages_total = Counter(
    "inbound_messages_total",
    "Total inbound WhatsApp messages handled",
    ["message_type"],
)

# ── Callbacks ────────────────────────────────────────────────
callbacks_received_total = Counter(
    "callbacks_received_total",
    "Total scanner callbacks received",
    ["status"],
)

callback_outcomes_total = Counter(
    "callback_outcomes_total",
    "Scanner callbacks by correlation outcome",
    ["outcome"],
)

callbacks_uncorrelated_total = Counter(
    "callbacks_uncorrelated_total",
    "Callbacks for a job_id the ledger does not know",
    ["status"],
)

# ── Delivery ─────────────────────────────────────────────────
delivery_attempts_total = Counter(
    "delivery_attempts_total",
    "Delivery guard decisions and their results",
    ["outcome"],
)

dispatch_failures_total = Counter(
    "dispatch_failures_total",
    "Notification sends that failed",
    ["kind"],
)

# ── Ledger ───────────────────────────────────────────────────
submissions_by_status = Gauge(
    "submissions_by_status",
    "Current number of ledger records per status",
    ["status"],
)

# ── External APIs ────────────────────────────────────────────
external_api_latency_seconds = Histogram(
    "external_api_latency_seconds",
    "Latency of external API calls",
    ["service", "operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30, 60],
)

external_api_errors_total = Counter(
    "external_api_errors_total",
    "Failed external API calls",
    ["service", "operation"],
)
