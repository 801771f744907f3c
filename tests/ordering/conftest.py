import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    bed = DomainFixture(ordering)
    bed.setup()
    setup_db(ordering)
    yield bed
    drop_db(ordering)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    from ordering.order.reconciler import reset_reconciler
    from ordering.store import reset_store

    with ordering_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

    reset_store()
    reset_reconciler()


@pytest.fixture()
def tote_menu():
    """Option menu with one price-changing value per label."""
    return [
        {
            "label": "Color",
            "values": [
                {"value": "Red", "changePrice": True, "newPrice": 20},
                {"value": "Blue", "changePrice": False},
            ],
        },
        {
            "label": "Size",
            "values": [
                {"value": "S"},
                {"value": "L", "changePrice": True, "newPrice": 5},
            ],
        },
    ]


@pytest.fixture()
def register_product():
    """Register a catalog product through its command and return the id."""
    from ordering.product.registration import RegisterProduct

    def _register(name="Canvas Tote", price=100.0, stock_count=10, properties=None, image_url=None):
        return current_domain.process(
            RegisterProduct(
                name=name,
                price=price,
                image_url=image_url,
                properties=json.dumps(properties) if properties else None,
                stock_count=stock_count,
            ),
            asynchronous=False,
        )

    return _register


@pytest.fixture()
def place_order():
    """Place an order through the checkout command and return the id."""
    from ordering.order.placement import PlaceOrder

    def _place(items, name="Ada Lovelace", email="ada@example.com", **customer):
        return current_domain.process(
            PlaceOrder(name=name, email=email, items=json.dumps(items), **customer),
            asynchronous=False,
        )

    return _place
