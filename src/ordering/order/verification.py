"""Order verification flag — command and handler.

Stock movement that accompanies a toggle lives in ``ordering.order.reconciler``.
"""

from protean import handle
from protean.exceptions import InvalidOperationError
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


class VerificationConflict(InvalidOperationError):
    """Concurrent toggle or stale ``expected_verified``."""


@ordering.command(part_of="Order")
class RecordVerification:
    order_id = Identifier(required=True)
    verified = Boolean(required=True)
    # Flag value the caller read before moving stock; checked at write time
    expected_verified = Boolean()


@ordering.command_handler(part_of=Order)
class VerificationHandler:
    @handle(RecordVerification)
    def record_verification(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.expected_verified is not None and bool(order.verified) != command.expected_verified:
            raise VerificationConflict(
                f"Order {command.order_id} changed verification while stock was being moved; refresh and retry"
            )
        if bool(order.verified) != command.verified:
            order.toggle_verification()
            repo.add(order)
        return bool(order.verified)
