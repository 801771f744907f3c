"""Domain events for the Order aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A storefront checkout produced a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    name = String(required=True)
    email = String()
    item_count = Integer(required=True)
    total_price = Float(required=True)
    currency = String(default="USD")
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDetailsUpdated:
    """An operator edited the customer fields of an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    changed_fields = Text(required=True)  # JSON: list of field names
    updated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class LineItemQuantityChanged:
    """A line item quantity changed and the order total was recomputed."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    new_total_price = Float(required=True)


@ordering.event(part_of="Order")
class OrderVerificationChanged:
    """The order was verified or un-verified by an operator."""

    __version__ = 1

    order_id = Identifier(required=True)
    verified = Boolean(required=True)
    changed_at = DateTime(required=True)
