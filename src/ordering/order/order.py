"""Order aggregate (CQRS) — a storefront order as seen by the operator desk.

Orders are created by checkout, edited by operators (customer fields, status,
line-item quantities), verified or un-verified, and deleted.

The order total lives in OrderMetaData and is derived: every change to a line
item quantity or resolved unit price replaces the metadata with a freshly
computed Σ quantity × unit_price.
"""

import json
import threading
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    LineItemQuantityChanged,
    OrderDetailsUpdated,
    OrderPlaced,
    OrderStatusChanged,
    OrderVerificationChanged,
)
from ordering.pricing.overrides import OverrideDecodeError, decode_overrides, encode_override, split_entries
from ordering.pricing.resolver import order_total, resolve_line


class OrderStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"

    @classmethod
    def parse(cls, raw):
        if isinstance(raw, cls):
            return raw
        normalized = str(raw or "").strip().upper()
        if normalized == "CANCELLED":
            normalized = cls.CANCELED.value
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {raw}"]}) from None


EDITABLE_FIELDS = ("name", "email", "phone", "address", "house_number", "city", "postal_code")

_stamp_lock = threading.Lock()
_last_stamp = None


def _creation_stamp():
    """Strictly increasing creation time for orders placed by this process.

    The change feed pages on created_at, so two orders must never share one.
    """
    global _last_stamp
    with _stamp_lock:
        now = datetime.now(UTC)
        if _last_stamp is not None and now <= _last_stamp:
            now = _last_stamp + timedelta(microseconds=1)
        _last_stamp = now
        return now


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class OrderMetaData:
    """Currency and derived total of an order."""

    currency = String(max_length=3, default="USD")
    total_price = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class LineItem:
    """One product entry of an order.

    ``base_price`` is the catalog price captured at checkout; ``unit_price``
    is the base plus the surcharges of the selected properties.
    ``selected_properties`` holds a JSON array of encoded overrides.
    """

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_image = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)
    base_price = Float(required=True, min_value=0.0)
    unit_price = Float(required=True)
    selected_properties = Text(default="[]")

    def selections(self):
        try:
            return list(decode_overrides(split_entries(self.selected_properties)))
        except OverrideDecodeError:
            return []


def _encode_selections(entries, product_id):
    try:
        return json.dumps([encode_override(entry) for entry in split_entries(entries)])
    except OverrideDecodeError as exc:
        raise ValidationError({"selected_properties": [f"Invalid property for product {product_id}: {exc}"]}) from exc


def _build_line_item(data):
    product_id = data.get("product_id")
    quantity = data.get("quantity", 1)
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError({"quantity": [f"Quantity must be a positive integer for product {product_id}"]})

    selected = _encode_selections(data.get("selected_properties"), product_id)
    resolved = resolve_line(
        data.get("base_price"),
        selected,
        data.get("product_properties"),
        product_id=str(product_id),
    )
    return LineItem(
        product_id=product_id,
        product_name=data.get("product_name"),
        product_image=data.get("product_image"),
        quantity=quantity,
        base_price=resolved.base_price,
        unit_price=resolved.unit_price,
        selected_properties=selected,
    )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    name = String(required=True, max_length=255)
    email = String(max_length=255)
    phone = String(max_length=50)
    address = String(max_length=500)
    house_number = String(max_length=50)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    verified = Boolean(default=False)
    meta_data = ValueObject(OrderMetaData)
    line_items = HasMany(LineItem)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, customer, line_items, currency="USD"):
        """Create an order from checkout data.

        Args:
            customer: Dict with name, email, phone, address, house_number,
                      city and postal_code.
            line_items: List of dicts with product_id, product_name,
                        product_image, quantity, base_price,
                        selected_properties and (optionally) the catalog
                        product_properties used to validate selections.
        """
        if not line_items:
            raise ValidationError({"line_items": ["An order needs at least one line item"]})

        items = [_build_line_item(data) for data in line_items]
        now = _creation_stamp()
        order = cls(
            **{name: customer.get(name) for name in EDITABLE_FIELDS},
            status=OrderStatus.PENDING.value,
            verified=False,
            meta_data=OrderMetaData(
                currency=currency or "USD",
                total_price=order_total((item.quantity, item.unit_price) for item in items),
            ),
            created_at=now,
            updated_at=now,
        )
        with atomic_change(order):
            for item in items:
                order.add_line_items(item)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                name=order.name,
                email=order.email,
                item_count=len(items),
                total_price=order.meta_data.total_price,
                currency=order.meta_data.currency,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    @property
    def currency(self):
        return self.meta_data.currency if self.meta_data else "USD"

    @property
    def total_price(self):
        return self.meta_data.total_price if self.meta_data else 0.0

    def _recalculate_total(self):
        self.meta_data = OrderMetaData(
            currency=self.currency,
            total_price=order_total((item.quantity, item.unit_price) for item in self.line_items),
        )

    # -------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------
    def find_line_item(self, item_id):
        item = next((i for i in self.line_items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Line item not found in order"]})
        return item

    def _apply_quantity(self, item, new_quantity):
        previous = item.quantity
        if previous == new_quantity:
            return
        with atomic_change(self):
            item.quantity = new_quantity
            self._recalculate_total()
            self.updated_at = datetime.now(UTC)

        self.raise_(
            LineItemQuantityChanged(
                order_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous,
                new_quantity=new_quantity,
                new_total_price=self.total_price,
            )
        )

    def adjust_line_item_quantity(self, item_id, delta):
        """Increment or decrement a quantity; decrements stop at 1."""
        item = self.find_line_item(item_id)
        self._apply_quantity(item, max(1, item.quantity + int(delta)))

    def set_line_item_quantity(self, item_id, quantity):
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
        self._apply_quantity(self.find_line_item(item_id), quantity)

    # -------------------------------------------------------------------
    # Operator edits
    # -------------------------------------------------------------------
    def update_details(self, **changes):
        """Update customer fields; ``None`` values are left untouched."""
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError({"fields": [f"Unknown order fields: {', '.join(sorted(unknown))}"]})
        if "name" in changes and changes["name"] is not None and not str(changes["name"]).strip():
            raise ValidationError({"name": ["Customer name cannot be blank"]})

        changed = [name for name, value in changes.items() if value is not None and getattr(self, name) != value]
        if not changed:
            return

        now = datetime.now(UTC)
        for name in changed:
            setattr(self, name, changes[name])
        self.updated_at = now

        self.raise_(
            OrderDetailsUpdated(
                order_id=str(self.id),
                changed_fields=json.dumps(changed),
                updated_at=now,
            )
        )

    def change_status(self, new_status):
        target = OrderStatus.parse(new_status)
        previous = OrderStatus(self.status)
        if target == previous:
            return

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous.value,
                new_status=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------
    def toggle_verification(self):
        """Flip the verified flag and return the new state."""
        now = datetime.now(UTC)
        self.verified = not self.verified
        self.updated_at = now

        self.raise_(
            OrderVerificationChanged(
                order_id=str(self.id),
                verified=self.verified,
                changed_at=now,
            )
        )
        return self.verified
