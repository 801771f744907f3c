"""Tests for the Order aggregate."""

import json

import pytest
from ordering.order.events import (
    LineItemQuantityChanged,
    OrderDetailsUpdated,
    OrderPlaced,
    OrderStatusChanged,
    OrderVerificationChanged,
)
from ordering.order.order import Order, OrderStatus
from protean.exceptions import ValidationError

CUSTOMER = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "address": "Marylebone Road",
    "house_number": "12",
    "city": "London",
    "postal_code": "NW1",
}


def _lines():
    return [
        {
            "product_id": "p1",
            "product_name": "Canvas Tote",
            "quantity": 2,
            "base_price": 100.0,
            "selected_properties": [{"key": "Color", "value": "Red", "changePrice": True, "price": 20}],
        },
        {"product_id": "p2", "product_name": "Enamel Mug", "quantity": 1, "base_price": 50.0},
    ]


def _order():
    order = Order.place(customer=CUSTOMER, line_items=_lines())
    order._events.clear()
    return order


class TestPlaceOrder:
    def test_prices_are_resolved_at_checkout(self):
        order = Order.place(customer=CUSTOMER, line_items=_lines())

        tote, mug = order.line_items
        assert (tote.unit_price, mug.unit_price) == (120.0, 50.0)
        assert order.total_price == 290.0
        assert order.currency == "USD"

    def test_defaults(self):
        order = Order.place(customer=CUSTOMER, line_items=_lines())
        assert order.status == OrderStatus.PENDING.value
        assert order.verified is False
        assert order.created_at is not None
        assert order.created_at == order.updated_at

    def test_selected_properties_are_stored_canonically(self):
        lines = _lines()
        lines[0]["selected_properties"] = [json.dumps(json.dumps({"key": "Color", "value": "Red", "price": 20}))]
        order = Order.place(customer=CUSTOMER, line_items=lines)

        stored = json.loads(order.line_items[0].selected_properties)
        assert stored == ['{"key":"color","value":"Red","price":20.0}']

    def test_raises_order_placed(self):
        order = Order.place(customer=CUSTOMER, line_items=_lines())

        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 2
        assert event.total_price == 290.0

    def test_creation_times_strictly_increase(self):
        first = Order.place(customer=CUSTOMER, line_items=_lines())
        second = Order.place(customer=CUSTOMER, line_items=_lines())
        assert second.created_at > first.created_at

    def test_requires_line_items(self):
        with pytest.raises(ValidationError) as exc_info:
            Order.place(customer=CUSTOMER, line_items=[])
        assert "line_items" in exc_info.value.messages

    def test_rejects_zero_quantity(self):
        lines = _lines()
        lines[1]["quantity"] = 0
        with pytest.raises(ValidationError):
            Order.place(customer=CUSTOMER, line_items=lines)

    def test_rejects_malformed_property(self):
        lines = _lines()
        lines[0]["selected_properties"] = ["{broken"]
        with pytest.raises(ValidationError) as exc_info:
            Order.place(customer=CUSTOMER, line_items=lines)
        assert "selected_properties" in exc_info.value.messages

    def test_catalog_menu_drops_stale_selection(self, tote_menu):
        lines = _lines()
        lines[0]["product_properties"] = tote_menu
        lines[0]["selected_properties"] = [{"key": "Material", "value": "Silk", "price": 40}]
        order = Order.place(customer=CUSTOMER, line_items=lines)
        assert order.line_items[0].unit_price == 100.0


class TestLineItemQuantity:
    def test_increment_recomputes_total(self):
        order = _order()
        tote = order.line_items[0]

        order.adjust_line_item_quantity(tote.id, 1)

        assert tote.quantity == 3
        assert order.total_price == 3 * 120.0 + 50.0

    def test_decrement_stops_at_one(self):
        order = _order()
        mug = order.line_items[1]

        order.adjust_line_item_quantity(mug.id, -5)

        assert mug.quantity == 1
        assert order.total_price == 290.0
        assert order._events == []

    def test_change_raises_event(self):
        order = _order()
        tote = order.line_items[0]

        order.adjust_line_item_quantity(tote.id, -1)

        event = order._events[-1]
        assert isinstance(event, LineItemQuantityChanged)
        assert (event.previous_quantity, event.new_quantity) == (2, 1)
        assert event.new_total_price == 170.0

    def test_set_quantity(self):
        order = _order()
        order.set_line_item_quantity(order.line_items[1].id, 4)
        assert order.total_price == 2 * 120.0 + 4 * 50.0

    def test_set_quantity_below_one_is_rejected(self):
        order = _order()
        with pytest.raises(ValidationError):
            order.set_line_item_quantity(order.line_items[1].id, 0)

    def test_unknown_item(self):
        order = _order()
        with pytest.raises(ValidationError):
            order.adjust_line_item_quantity("missing", 1)


class TestOperatorEdits:
    def test_update_details(self):
        order = _order()
        order.update_details(city="Paris", postal_code="75001", phone=None)

        assert order.city == "Paris"
        assert order.phone == "555-0100"
        event = order._events[-1]
        assert isinstance(event, OrderDetailsUpdated)
        assert json.loads(event.changed_fields) == ["city", "postal_code"]

    def test_unchanged_details_raise_nothing(self):
        order = _order()
        order.update_details(city="London")
        assert order._events == []

    def test_blank_name_is_rejected(self):
        with pytest.raises(ValidationError):
            _order().update_details(name="  ")

    def test_unknown_field_is_rejected(self):
        with pytest.raises(ValidationError):
            _order().update_details(status="COMPLETED")

    def test_change_status(self):
        order = _order()
        order.change_status("Completed")

        assert order.status == OrderStatus.COMPLETED.value
        event = order._events[-1]
        assert isinstance(event, OrderStatusChanged)
        assert (event.previous_status, event.new_status) == ("PENDING", "COMPLETED")

    def test_cancelled_spelling_is_accepted(self):
        order = _order()
        order.change_status("cancelled")
        assert order.status == OrderStatus.CANCELED.value

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            _order().change_status("SHIPPED")

    def test_toggle_verification(self):
        order = _order()

        assert order.toggle_verification() is True
        assert order.toggle_verification() is False
        assert [e.verified for e in order._events if isinstance(e, OrderVerificationChanged)] == [True, False]
