"""Order store backed by the ordering domain's Protean repositories.

Every call pushes the domain's own context, so the adapter can be used from
worker threads (``asyncio.to_thread``) and from request handlers alike.
Writes go through domain commands; reads use repository DAOs directly.
"""

import json
from contextlib import contextmanager
from datetime import datetime

from protean.utils.globals import current_domain
from protean.utils.query import Q
from sqlalchemy.exc import SQLAlchemyError

from ordering.order.deletion import DeleteOrders
from ordering.order.editing import UpdateOrderDetails
from ordering.order.order import EDITABLE_FIELDS, Order
from ordering.order.serializers import order_payload
from ordering.order.verification import RecordVerification
from ordering.product.product import Product
from ordering.store.port import OrderFilter, OrderPage, OrderStore, StoreUnavailable

_PATCHABLE = {*EDITABLE_FIELDS, "status", "verified"}


def _product_payload(product) -> dict:
    return {
        "id": str(product.id),
        "name": product.name,
        "price": product.price,
        "image_url": product.image_url,
        "properties": product.menu,
        "stock_count": product.stock_count,
    }


class ProteanOrderStore(OrderStore):
    def __init__(self, domain=None) -> None:
        if domain is None:
            from ordering.domain import ordering as domain
        self._domain = domain

    @contextmanager
    def _session(self):
        with self._domain.domain_context():
            try:
                yield
            except SQLAlchemyError as exc:
                raise StoreUnavailable(str(exc)) from exc

    def _orders(self, order_filter: OrderFilter):
        query = current_domain.repository_for(Order)._dao.query
        if order_filter.search_text:
            text = order_filter.search_text.strip()
            query = query.filter(Q(name__icontains=text) | Q(email__icontains=text))
        if order_filter.status:
            query = query.filter(status=order_filter.status)
        if order_filter.verified is not None:
            query = query.filter(verified=order_filter.verified)
        return query

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def find_orders_created_after(self, created_after: datetime | None, limit: int) -> list[dict]:
        with self._session():
            query = current_domain.repository_for(Order)._dao.query
            if created_after is not None:
                query = query.filter(created_at__gt=created_after)
            results = query.order_by(["created_at", "id"]).limit(limit).all()
            return [order_payload(order) for order in results.items]

    def find_orders_page(self, order_filter: OrderFilter, page: int, page_size: int, descending: bool) -> OrderPage:
        with self._session():
            ordering_key = ["-created_at", "-id"] if descending else ["created_at", "id"]
            results = self._orders(order_filter).order_by(ordering_key).offset((page - 1) * page_size).limit(page_size).all()
            return OrderPage(items=[order_payload(order) for order in results.items], total=results.total)

    def count_orders(self, order_filter: OrderFilter) -> int:
        with self._session():
            return self._orders(order_filter).all().total

    def get_order(self, order_id: str) -> dict:
        with self._session():
            return order_payload(current_domain.repository_for(Order).get(order_id))

    def find_products(self, product_ids) -> dict[str, dict]:
        product_ids = sorted({str(product_id) for product_id in product_ids})
        if not product_ids:
            return {}
        with self._session():
            results = (
                current_domain.repository_for(Product)
                ._dao.query.filter(id__in=product_ids)
                .limit(len(product_ids))
                .all()
            )
            return {str(product.id): _product_payload(product) for product in results.items}

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def update_order(self, order_id: str, patch: dict, expected_verified: bool | None = None) -> dict:
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Unsupported order fields: {', '.join(sorted(unknown))}")

        with self._session():
            details = {name: patch[name] for name in (*EDITABLE_FIELDS, "status") if patch.get(name) is not None}
            if details:
                current_domain.process(UpdateOrderDetails(order_id=order_id, **details), asynchronous=False)
            if "verified" in patch:
                current_domain.process(
                    RecordVerification(
                        order_id=order_id,
                        verified=bool(patch["verified"]),
                        expected_verified=expected_verified,
                    ),
                    asynchronous=False,
                )
            return order_payload(current_domain.repository_for(Order).get(order_id))

    def delete_orders(self, order_ids: list[str]) -> list[str]:
        with self._session():
            return current_domain.process(DeleteOrders(order_ids=json.dumps(list(order_ids))), asynchronous=False)

    def adjust_stock(self, product_id: str, delta: int, reason: str) -> int:
        with self._session():
            repo = current_domain.repository_for(Product)
            product = repo.get(product_id)
            product.adjust_stock(delta, reason)
            repo.add(product)
            return product.stock_count
