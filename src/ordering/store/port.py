"""Order store port.

Everything above the store (feed poller, query service, reconciler) talks to
this interface and receives plain order payloads (see
``ordering.order.serializers.order_payload``), never live aggregates.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


class StoreUnavailable(Exception):
    """The backing store could not serve a request."""


@dataclass(frozen=True)
class OrderFilter:
    """Predicate shared by a page query and its counts.

    ``search_text`` matches customer name or email case-insensitively.
    """

    search_text: str | None = None
    status: str | None = None
    verified: bool | None = None


@dataclass
class OrderPage:
    items: list[dict] = field(default_factory=list)
    total: int = 0


class OrderStore(ABC):
    @abstractmethod
    def find_orders_created_after(self, created_after: datetime | None, limit: int) -> list[dict]:
        """Orders with ``created_at`` strictly after the given instant.

        Ascending by creation time, ties broken by id. ``None`` means from
        the beginning.
        """

    @abstractmethod
    def find_orders_page(self, order_filter: OrderFilter, page: int, page_size: int, descending: bool) -> OrderPage:
        """One page of orders matching the filter, sorted by creation time."""

    @abstractmethod
    def count_orders(self, order_filter: OrderFilter) -> int: ...

    @abstractmethod
    def get_order(self, order_id: str) -> dict:
        """Raises ObjectNotFoundError when the order does not exist."""

    @abstractmethod
    def update_order(self, order_id: str, patch: dict, expected_verified: bool | None = None) -> dict:
        """Apply customer-field, status or verification changes and return the order.

        With ``expected_verified`` the flag is only written if it still holds
        that value, otherwise ``VerificationConflict`` is raised.
        """

    @abstractmethod
    def delete_orders(self, order_ids: list[str]) -> list[str]:
        """Delete all given orders or none of them."""

    @abstractmethod
    def find_products(self, product_ids) -> dict[str, dict]:
        """Catalog entries keyed by product id; unknown ids are omitted."""

    @abstractmethod
    def adjust_stock(self, product_id: str, delta: int, reason: str) -> int:
        """Move a product's stock count and return the new count."""
