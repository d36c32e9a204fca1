"""Sales bounded context — Orders, Shopping Carts, and Variant Stock.

Handles the order lifecycle (CQRS aggregate with a guarded state machine),
cart management, variant stock levels, and the checkout coordinator that
turns a cart into an order in a single unit of work. Payment outcomes from
the Payments context flow in as external events.
"""

import structlog
from protean.domain import Domain

sales = Domain(name="sales")

logger = structlog.get_logger(__name__)
