"""Payments bounded context — Payments, Stored Payment Methods, and Webhooks.

Handles charging orders through the gateway port, refunds at the provider,
webhook reconciliation, and the stored payment-method lifecycle including
the two-phase card authentication (setup intent) flow. Payment outcomes are
published as events that the Sales context consumes.
"""

import structlog
from protean.domain import Domain

payments = Domain(name="payments")

logger = structlog.get_logger(__name__)
