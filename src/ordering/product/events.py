"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductRegistered:
    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock_count = Integer(required=True)
    registered_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockAdjusted:
    """Stock moved because an order was verified or un-verified."""

    __version__ = 1

    product_id = Identifier(required=True)
    delta = Integer(required=True)
    previous_count = Integer(required=True)
    new_count = Integer(required=True)
    reason = String(required=True)
    adjusted_at = DateTime(required=True)
