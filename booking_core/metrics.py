"""
Prometheus metrics for booking lifecycle, ledger, rewards and the sweeper.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from booking_core.metrics import booking_transitions
    >>> booking_transitions.labels(action="accept", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

booking_transitions = Counter(
    "booking_transitions_total",
    "Booking lifecycle operations by action and outcome",
    ["action", "status"],
)
"""
Counter for booking state machine operations.

Labels:
    action: create, accept, pay, check_in, check_out, cancel, expire, refund
    status: success or the error code that rejected the action
"""

booking_conflicts = Counter(
    "booking_conflicts_total",
    "Booking requests rejected because the dates overlap an active booking",
    ["stage"],
)
"""
Labels:
    stage: create or accept
"""

# =============================================================================
# Ledger Metrics
# =============================================================================

ledger_postings = Counter(
    "booking_ledger_postings_total",
    "Ledger entries posted",
    ["kind"],
)

payment_mismatches = Counter(
    "booking_payment_mismatches_total",
    "Payments rejected because credits would exceed debits or the booking was already paid",
)

# =============================================================================
# Rewards Metrics
# =============================================================================

points_movements = Counter(
    "booking_rewards_points_total",
    "Loyalty points moved, by transaction type",
    ["type"],
)

# =============================================================================
# Sweeper Metrics
# =============================================================================

sweeper_runs = Counter(
    "booking_sweeper_runs_total",
    "Expiration sweeper passes",
    ["status"],
)
"""
Labels:
    status: completed or skipped (another pass was already running)
"""

sweeper_cancellations = Counter(
    "booking_sweeper_cancellations_total",
    "Bookings cancelled because their payment deadline passed",
)

sweeper_failures = Counter(
    "booking_sweeper_failures_total",
    "Overdue bookings the sweeper failed to cancel",
)

sweeper_duration = Histogram(
    "booking_sweeper_duration_seconds",
    "Duration of one sweeper pass in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# =============================================================================
# Collaborator Metrics
# =============================================================================

collaborator_requests = Counter(
    "booking_collaborator_requests_total",
    "HTTP requests made to collaborator services",
    ["service", "status_code"],
)
"""
Labels:
    service: property or notification
    status_code: HTTP status code, or "error" when no response was received
"""

collaborator_latency = Histogram(
    "booking_collaborator_latency_seconds",
    "Collaborator HTTP request latency in seconds",
    ["service"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
