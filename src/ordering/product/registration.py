"""Product registration — command and handler."""

from protean import handle
from protean.fields import Float, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.product.product import Product


@ordering.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=1024)
    properties = Text()  # JSON: option menu
    stock_count = Integer(default=0)


@ordering.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            price=command.price,
            image_url=command.image_url,
            properties=command.properties,
            stock_count=command.stock_count or 0,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
