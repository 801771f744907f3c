"""Verification/stock reconciler.

Verifying an order consumes stock for its line items; un-verifying restores
it. The flag flip and the stock movement succeed or fail together:

- stock for a product is adjusted under that product's lock, with locks
  taken in sorted product-id order;
- a second toggle of the same order while one is in flight is a conflict;
- only products on the order can be moved;
- verifying with insufficient stock is rejected before any stock moves;
- the flag is written only if nobody flipped it since it was read;
- if a later step fails, stock already moved is put back.
"""

import threading
from collections import defaultdict
from contextlib import ExitStack, contextmanager

import structlog
from protean.exceptions import ValidationError

from ordering.order.verification import VerificationConflict
from ordering.store import get_store
from ordering.store.port import OrderStore

logger = structlog.get_logger(__name__)


class KeyedLocks:
    """One lock per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def holding(self, keys):
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.lock_for(key))
            yield


def _requested_quantities(line_item_quantities) -> dict[str, int]:
    """Sum ``[{productId, quantity}]`` entries per product."""
    totals: dict[str, int] = defaultdict(int)
    for entry in line_item_quantities:
        if not isinstance(entry, dict):
            raise ValidationError({"line_items": ["Each entry needs a productId and a quantity"]})
        product_id = entry.get("productId", entry.get("product_id"))
        quantity = entry.get("quantity")
        if not product_id:
            raise ValidationError({"line_items": ["Each entry needs a productId"]})
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"line_items": [f"Quantity for {product_id} must be a positive integer"]})
        totals[str(product_id)] += quantity
    return dict(totals)


class StockReconciler:
    def __init__(self, store: OrderStore | None = None) -> None:
        self._store = store
        self._product_locks = KeyedLocks()
        self._inflight_guard = threading.Lock()
        self._inflight: set[str] = set()

    @property
    def store(self) -> OrderStore:
        return self._store or get_store()

    @contextmanager
    def _exclusive(self, order_id: str):
        with self._inflight_guard:
            if order_id in self._inflight:
                raise VerificationConflict(f"Verification of order {order_id} is already in progress")
            self._inflight.add(order_id)
        try:
            yield
        finally:
            with self._inflight_guard:
                self._inflight.discard(order_id)

    def toggle_verification(self, order_id, line_item_quantities=None, expected_verified=None) -> dict:
        """Flip the order's verified flag and move stock accordingly.

        ``line_item_quantities`` is a list of ``{productId, quantity}``; when
        empty, the order's own line items are used. Returns the updated order.
        """
        order_id = str(order_id)
        store = self.store
        with self._exclusive(order_id):
            order = store.get_order(order_id)
            currently_verified = bool(order["verified"])
            if expected_verified is not None and bool(expected_verified) != currently_verified:
                raise VerificationConflict(
                    f"Order {order_id} is {'verified' if currently_verified else 'not verified'}; refresh and retry"
                )

            if not line_item_quantities:
                line_item_quantities = [
                    {"productId": item["product_id"], "quantity": item["quantity"]}
                    for item in order["meta_data"]["line_items"]
                ]
            requested = _requested_quantities(line_item_quantities)
            on_order = {str(item["product_id"]) for item in order["meta_data"]["line_items"]}
            foreign = sorted(set(requested) - on_order)
            if foreign:
                raise ValidationError({"line_items": [f"Products not on order {order_id}: {', '.join(foreign)}"]})

            verifying = not currently_verified
            sign = -1 if verifying else 1
            reason = f"order {order_id} {'verified' if verifying else 'unverified'}"

            with self._product_locks.holding(requested):
                products = store.find_products(requested)
                unknown = sorted(set(requested) - set(products))
                if unknown:
                    raise ValidationError({"line_items": [f"Unknown products: {', '.join(unknown)}"]})
                if verifying:
                    short = [
                        f"{products[pid]['name']}: {products[pid]['stock_count']} available, {quantity} requested"
                        for pid, quantity in sorted(requested.items())
                        if (products[pid]["stock_count"] or 0) < quantity
                    ]
                    if short:
                        raise ValidationError({"stock_count": [f"Insufficient stock ({'; '.join(short)})"]})

                updated = self._apply(store, order_id, requested, sign, reason, not currently_verified)

        logger.info(
            "Order verification toggled",
            order_id=order_id,
            verified=updated["verified"],
            products=len(requested),
        )
        return updated

    def _apply(self, store, order_id, requested, sign, reason, verified):
        applied = []
        try:
            for product_id, quantity in sorted(requested.items()):
                store.adjust_stock(product_id, sign * quantity, reason)
                applied.append((product_id, sign * quantity))
            return store.update_order(order_id, {"verified": verified}, expected_verified=not verified)
        except Exception:
            logger.error("Rolling back stock after failed verification toggle", order_id=order_id, applied=len(applied))
            for product_id, delta in reversed(applied):
                store.adjust_stock(product_id, -delta, f"rollback of {reason}")
            raise


_current_reconciler: StockReconciler | None = None


def get_reconciler() -> StockReconciler:
    global _current_reconciler
    if _current_reconciler is None:
        _current_reconciler = StockReconciler()
    return _current_reconciler


def reset_reconciler() -> None:
    global _current_reconciler
    _current_reconciler = None
