"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import Order
from ordering.store import get_store
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalog():
    """Product ids by name, filled in by Given steps."""
    return {}


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Shared Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def _(catalog, register_product, name, price, stock):
    catalog[name] = register_product(name=name, price=price, stock_count=stock)


@given(
    parsers.cfparse('a product "{name}" priced {price:f} where "{label}" "{value}" costs {surcharge:f} more'),
)
def _(catalog, register_product, name, price, label, value, surcharge):
    menu = [{"label": label, "values": [{"value": value, "changePrice": True, "newPrice": surcharge}]}]
    catalog[name] = register_product(name=name, price=price, properties=menu)


@given(parsers.cfparse('an order for {quantity:d} "{name}"'), target_fixture="order_id")
def _(catalog, place_order, quantity, name):
    return place_order([{"product_id": catalog[name], "quantity": quantity}])


# ---------------------------------------------------------------------------
# Shared Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {amount:f}"))
def _(order_id, amount):
    assert current_domain.repository_for(Order).get(order_id).total_price == amount


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(catalog, name, stock):
    assert get_store().find_products([catalog[name]])[catalog[name]]["stock_count"] == stock


@then("the request is rejected")
def _(error):
    assert isinstance(error["exc"], ValidationError)
