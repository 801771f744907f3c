"""Order placement — the checkout write path.

Line items are priced against the catalog when the product is known, and
their selected properties are stored in the canonical encoding.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.product.product import Product

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    name = String(required=True, max_length=255)
    email = String(max_length=255)
    phone = String(max_length=50)
    address = String(max_length=500)
    house_number = String(max_length=50)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    items = Text(required=True)  # JSON: list of item dicts
    currency = String(max_length=3, default="USD")


def _catalog_line(data, repo):
    """Merge checkout item data with the catalog entry of its product."""
    if not isinstance(data, dict):
        raise ValidationError({"items": ["Every item must be an object"]})
    product_id = data.get("product_id")
    if not product_id:
        raise ValidationError({"items": ["Every item needs a product_id"]})

    line = {
        "product_id": product_id,
        "product_name": data.get("product_name"),
        "product_image": data.get("product_image"),
        "quantity": data.get("quantity", 1),
        "base_price": data.get("base_price", data.get("price")),
        "selected_properties": data.get("selected_properties"),
    }
    try:
        product = repo.get(product_id)
    except ObjectNotFoundError:
        logger.info("Placing item for product outside the catalog", product_id=product_id)
    else:
        line["product_name"] = line["product_name"] or product.name
        line["product_image"] = line["product_image"] or product.image_url
        line["base_price"] = product.price
        line["product_properties"] = product.menu

    if not line["product_name"]:
        raise ValidationError({"items": [f"Missing product name for {product_id}"]})
    if line["base_price"] is None:
        raise ValidationError({"items": [f"Missing price for {product_id}"]})
    return line


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        if not isinstance(items_data, list):
            raise ValidationError({"items": ["Items must be a list"]})

        product_repo = current_domain.repository_for(Product)
        lines = [_catalog_line(data, product_repo) for data in items_data]

        order = Order.place(
            customer={
                "name": command.name,
                "email": command.email,
                "phone": command.phone,
                "address": command.address,
                "house_number": command.house_number,
                "city": command.city,
                "postal_code": command.postal_code,
            },
            line_items=lines,
            currency=command.currency or "USD",
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            item_count=len(lines),
            total_price=order.total_price,
        )
        return str(order.id)
