"""Operator edits — customer details, status and line-item quantities."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class UpdateOrderDetails:
    """Edit an order from the dashboard. Omitted fields stay as they are."""

    order_id = Identifier(required=True)
    name = String(max_length=255)
    email = String(max_length=255)
    phone = String(max_length=50)
    address = String(max_length=500)
    house_number = String(max_length=50)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    status = String(max_length=20)
    line_item_quantities = Text()  # JSON: {item_id: quantity}


@ordering.command(part_of="Order")
class ChangeLineItemQuantity:
    """Increment or decrement one line item; the quantity never drops below 1."""

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    delta = Integer(required=True)


@ordering.command_handler(part_of=Order)
class EditOrderHandler:
    @handle(UpdateOrderDetails)
    def update_order_details(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        order.update_details(
            name=command.name,
            email=command.email,
            phone=command.phone,
            address=command.address,
            house_number=command.house_number,
            city=command.city,
            postal_code=command.postal_code,
        )
        if command.status:
            order.change_status(command.status)

        if command.line_item_quantities:
            quantities = json.loads(command.line_item_quantities)
            if not isinstance(quantities, dict):
                raise ValidationError({"line_item_quantities": ["Expected a mapping of item id to quantity"]})
            for item_id, quantity in quantities.items():
                order.set_line_item_quantity(item_id, quantity)

        repo.add(order)

    @handle(ChangeLineItemQuantity)
    def change_line_item_quantity(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.adjust_line_item_quantity(command.item_id, command.delta)
        repo.add(order)
        return order.find_line_item(command.item_id).quantity
