"""Product aggregate — the slice of the catalog that orders depend on.

Orders read a product's image and option menu when they are listed, and
verification moves the product's stock count.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text

from ordering.domain import ordering
from ordering.pricing.resolver import parse_catalog_menu
from ordering.product.events import ProductRegistered, StockAdjusted


def _normalize_menu(properties):
    """Validate an option menu and return it as JSON text (or ``None``)."""
    if properties is None or properties == "" or properties == []:
        return None
    if isinstance(properties, str):
        try:
            properties = json.loads(properties)
        except ValueError:
            raise ValidationError({"properties": ["Product properties must be valid JSON"]}) from None
    if not isinstance(properties, list):
        raise ValidationError({"properties": ["Product properties must be a list of options"]})
    for entry in properties:
        if not isinstance(entry, dict) or not entry.get("label"):
            raise ValidationError({"properties": ["Every product property needs a label"]})
        if not isinstance(entry.get("values", []), list):
            raise ValidationError({"properties": [f"Values of '{entry['label']}' must be a list"]})
    return json.dumps(properties)


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=1024)
    properties = Text()  # JSON: [{label, values: [{value, changePrice, newPrice}]}]
    stock_count = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, name, price, image_url=None, properties=None, stock_count=0):
        if stock_count is None or stock_count < 0:
            raise ValidationError({"stock_count": ["Stock count cannot be negative"]})

        now = datetime.now(UTC)
        product = cls(
            name=name,
            price=price,
            image_url=image_url,
            properties=_normalize_menu(properties),
            stock_count=stock_count,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=product.name,
                price=product.price,
                stock_count=product.stock_count,
                registered_at=now,
            )
        )
        return product

    @property
    def menu(self):
        """Option menu as a list, or ``None`` when the product has none."""
        if not self.properties:
            return None
        try:
            menu = json.loads(self.properties)
        except ValueError:
            return None
        return menu if isinstance(menu, list) else None

    def property_definitions(self):
        return parse_catalog_menu(self.menu)

    def adjust_stock(self, delta, reason):
        """Move stock by ``delta``; the count never drops below zero."""
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})
        previous = self.stock_count or 0
        new_count = previous + int(delta)
        if new_count < 0:
            raise ValidationError(
                {"stock_count": [f"Insufficient stock for {self.name}: {previous} available, {-int(delta)} requested"]}
            )
        if delta == 0:
            return

        now = datetime.now(UTC)
        self.stock_count = new_count
        self.updated_at = now

        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                delta=int(delta),
                previous_count=previous,
                new_count=new_count,
                reason=reason,
                adjusted_at=now,
            )
        )
