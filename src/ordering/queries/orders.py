"""Order listings for the operator dashboard.

Listings are paginated, searchable (customer name/email) and filterable by
status or by the verified/unverified partition. Each returned order carries
catalog data for its line items and prices resolved from its selected
properties; the stored order is not modified. Dashboard statistics (product
popularity, orders per day) cover every stored order.
"""

import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

from ordering.order.order import OrderStatus
from ordering.pricing.resolver import order_total, resolve_line
from ordering.store import get_store
from ordering.store.port import OrderFilter, OrderStore
from ordering.utils.settings import Settings

logger = structlog.get_logger(__name__)

FILTERS = {
    "completed": OrderFilter(status=OrderStatus.COMPLETED.value),
    "pending": OrderFilter(status=OrderStatus.PENDING.value),
    "canceled": OrderFilter(status=OrderStatus.CANCELED.value),
    "verified": OrderFilter(verified=True),
    "unverified": OrderFilter(verified=False),
}

SORT_DIRECTIONS = ("asc", "desc")


@dataclass
class OrderListing:
    data: list[dict] = field(default_factory=list)
    total_items: int = 0
    total_pages: int = 0
    current_page: int = 1
    aggregates: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "data": self.data,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "aggregates": self.aggregates,
        }


def reprice_order(order: dict, products: dict[str, dict]) -> dict:
    """Attach catalog data to each line item and recompute prices in place."""
    line_items = order["meta_data"]["line_items"]
    for item in line_items:
        product = products.get(str(item["product_id"]))
        if product is not None:
            item["product_image"] = item.get("product_image") or product.get("image_url")
            item["product_properties"] = product.get("properties")
        resolved = resolve_line(
            item["base_price"],
            item.get("selected_properties"),
            item.get("product_properties"),
            product_id=str(item["product_id"]),
            item_id=str(item.get("id")),
        )
        item["unit_price"] = resolved.unit_price

    order["meta_data"]["total_price"] = order_total((item["quantity"], item["unit_price"]) for item in line_items)
    return order


def _resolve_filter(status_filter: str | None, search_text: str | None) -> OrderFilter:
    search_text = (search_text or "").strip() or None
    if not status_filter or status_filter.strip().lower() == "all":
        return OrderFilter(search_text=search_text)

    base = FILTERS.get(status_filter.strip().lower())
    if base is None:
        raise ValidationError(
            {"filterKey": [f"Unknown filter '{status_filter}'; expected one of Completed, Pending, Canceled, Verified, UnVerified"]}
        )
    return OrderFilter(search_text=search_text, status=base.status, verified=base.verified)


class OrderQueryService:
    def __init__(self, store: OrderStore | None = None, settings: Settings | None = None) -> None:
        self._store = store
        self.settings = settings or Settings.from_env()

    @property
    def store(self) -> OrderStore:
        return self._store or get_store()

    def enrich(self, orders: list[dict]) -> list[dict]:
        product_ids = {str(item["product_id"]) for order in orders for item in order["meta_data"]["line_items"]}
        products = self.store.find_products(product_ids) if product_ids else {}
        return [reprice_order(order, products) for order in orders]

    def get(self, order_id: str) -> dict:
        return self.enrich([self.store.get_order(order_id)])[0]

    def aggregates(self) -> dict:
        """Statistics over all orders, independent of search and filter."""
        store = self.store
        return {
            "totalOrders": store.count_orders(OrderFilter()),
            "completed": store.count_orders(FILTERS["completed"]),
            "pending": store.count_orders(FILTERS["pending"]),
            "canceled": store.count_orders(FILTERS["canceled"]),
            "verified": store.count_orders(FILTERS["verified"]),
            "unverified": store.count_orders(FILTERS["unverified"]),
        }

    def _all_orders(self):
        store = self.store
        page_size = self.settings.max_page_size
        page = 1
        while True:
            result = store.find_orders_page(OrderFilter(), page, page_size, descending=False)
            yield from result.items
            if page * page_size >= result.total or not result.items:
                return
            page += 1

    def product_popularity(self) -> list[dict]:
        """Ordered quantity per product, most ordered first."""
        quantities: dict[str, int] = defaultdict(int)
        fallback: dict[str, dict] = {}
        for order in self._all_orders():
            for item in order["meta_data"]["line_items"]:
                product_id = str(item["product_id"])
                quantities[product_id] += item["quantity"]
                fallback.setdefault(product_id, item)

        products = self.store.find_products(quantities) if quantities else {}
        popularity = []
        for product_id, quantity in quantities.items():
            product = products.get(product_id)
            item = fallback[product_id]
            popularity.append(
                {
                    "productId": product_id,
                    "name": product["name"] if product else item.get("product_name"),
                    "imageUrl": product["image_url"] if product else item.get("product_image"),
                    "price": product["price"] if product else item.get("base_price"),
                    "quantity": quantity,
                }
            )
        return sorted(popularity, key=lambda entry: (-entry["quantity"], entry["name"] or ""))

    def orders_per_day(self) -> dict[str, int]:
        """Order counts keyed by UTC creation date."""
        counts: Counter = Counter()
        for order in self._all_orders():
            if not order.get("created_at"):
                continue
            created_at = datetime.fromisoformat(order["created_at"])
            if created_at.tzinfo is not None:
                created_at = created_at.astimezone(UTC)
            counts[created_at.date().isoformat()] += 1
        return dict(sorted(counts.items()))

    def statistics(self) -> dict:
        return {"productPopularity": self.product_popularity(), "ordersPerDay": self.orders_per_day()}

    def query(
        self,
        page: int = 1,
        page_size: int | None = None,
        search_text: str | None = None,
        status_filter: str | None = None,
        sort_direction: str = "desc",
    ) -> OrderListing:
        page_size = self.settings.page_size if page_size is None else page_size
        errors = {}
        if page < 1:
            errors["page"] = ["Page must be at least 1"]
        if not 1 <= page_size <= self.settings.max_page_size:
            errors["pageSize"] = [f"Page size must be between 1 and {self.settings.max_page_size}"]
        direction = (sort_direction or "desc").strip().lower()
        if direction not in SORT_DIRECTIONS:
            errors["sort"] = ["Sort must be 'asc' or 'desc'"]
        if errors:
            raise ValidationError(errors)

        order_filter = _resolve_filter(status_filter, search_text)
        result = self.store.find_orders_page(order_filter, page, page_size, descending=direction == "desc")

        listing = OrderListing(
            data=self.enrich(result.items),
            total_items=result.total,
            total_pages=math.ceil(result.total / page_size),
            current_page=page,
            aggregates=self.aggregates(),
        )
        logger.debug(
            "Orders listed",
            page=page,
            page_size=page_size,
            returned=len(listing.data),
            total_items=listing.total_items,
        )
        return listing
