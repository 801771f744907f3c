"""Order deletion — single and bulk."""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class DeleteOrders:
    order_ids = Text(required=True)  # JSON: list of order ids


@ordering.command_handler(part_of=Order)
class DeleteOrdersHandler:
    @handle(DeleteOrders)
    def delete_orders(self, command):
        order_ids = json.loads(command.order_ids)
        if not isinstance(order_ids, list) or not order_ids:
            raise ValidationError({"order_ids": ["At least one order id is required"]})

        # Unique ids, first occurrence order
        order_ids = list(dict.fromkeys(str(order_id) for order_id in order_ids))

        repo = current_domain.repository_for(Order)
        orders = []
        missing = []
        for order_id in order_ids:
            try:
                orders.append(repo.get(order_id))
            except ObjectNotFoundError:
                missing.append(order_id)
        if missing:
            raise ObjectNotFoundError(f"Orders not found: {', '.join(missing)}")

        for order in orders:
            repo._dao.delete(order)

        logger.info("Orders deleted", count=len(order_ids), order_ids=order_ids)
        return order_ids
