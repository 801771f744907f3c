"""Wire representation of orders shared by the API and the change feed."""

from ordering.pricing.overrides import OverrideDecodeError, split_entries


def _isoformat(value):
    return value.isoformat() if value is not None else None


def _stored_entries(selected_properties):
    try:
        return split_entries(selected_properties)
    except OverrideDecodeError:
        return []


def line_item_payload(item) -> dict:
    return {
        "id": str(item.id),
        "product_id": str(item.product_id),
        "product_name": item.product_name,
        "product_image": item.product_image,
        "quantity": item.quantity,
        "base_price": item.base_price,
        "unit_price": item.unit_price,
        "selected_properties": _stored_entries(item.selected_properties),
        "product_properties": None,
    }


def order_payload(order) -> dict:
    """Plain-dict view of an Order; line items sit under ``meta_data``."""
    return {
        "id": str(order.id),
        "name": order.name,
        "email": order.email,
        "phone": order.phone,
        "address": order.address,
        "house_number": order.house_number,
        "city": order.city,
        "postal_code": order.postal_code,
        "status": order.status,
        "verified": bool(order.verified),
        "created_at": _isoformat(order.created_at),
        "updated_at": _isoformat(order.updated_at),
        "meta_data": {
            "currency": order.currency,
            "total_price": order.total_price,
            "line_items": [line_item_payload(item) for item in order.line_items],
        },
    }
