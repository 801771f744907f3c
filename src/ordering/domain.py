"""Ordering bounded context — Order Desk.

Stores storefront orders, resolves line-item pricing from property overrides,
reconciles product stock on verification, and streams newly placed orders
to operator dashboards.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging

configure_logging()

ordering = Domain(name="ordering")
