"""Order Desk management CLI.

Usage:
    python src/manage.py setup-db           # Create all tables
    python src/manage.py drop-db            # Drop all tables
    python src/manage.py seed --orders 10   # Register demo products and place orders
"""

import argparse
import json
import random
import sys

DEMO_PRODUCTS = [
    {
        "name": "Canvas Tote",
        "price": 250.0,
        "image_url": "https://cdn.example.com/tote.jpg",
        "stock_count": 40,
        "properties": [
            {
                "label": "Color",
                "values": [
                    {"value": "Red", "changePrice": True, "newPrice": 20},
                    {"value": "Blue", "changePrice": False},
                ],
            },
            {
                "label": "Strap",
                "values": [
                    {"value": "Leather", "changePrice": True, "newPrice": 15},
                    {"value": "Cotton", "changePrice": False},
                ],
            },
        ],
    },
    {
        "name": "Enamel Mug",
        "price": 12.5,
        "image_url": "https://cdn.example.com/mug.jpg",
        "stock_count": 120,
        "properties": [],
    },
]

DEMO_CUSTOMERS = [
    ("Ada Lovelace", "ada@example.com", "London"),
    ("Grace Hopper", "grace@example.com", "Arlington"),
    ("Katherine Johnson", "katherine@example.com", "Hampton"),
]


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    from ordering.utils.db import setup_db

    domain = _domain()
    print("Creating ordering database schema...")
    prepared = setup_db(domain)
    print(f"  schema ready ({', '.join(prepared) or 'no SQL providers configured'}).")


def drop_database():
    from ordering.utils.db import drop_db

    domain = _domain()
    print("Dropping ordering database schema...")
    dropped = drop_db(domain)
    print(f"  schema dropped ({', '.join(dropped) or 'no SQL providers configured'}).")


def seed(domain, orders=5, seed_value=None):
    """Register the demo catalog and place ``orders`` orders against it.

    Returns ``(product_ids, order_ids)``.
    """
    from ordering.order.placement import PlaceOrder
    from ordering.product.registration import RegisterProduct

    rng = random.Random(seed_value)
    with domain.domain_context():
        product_ids = [
            domain.process(
                RegisterProduct(
                    name=product["name"],
                    price=product["price"],
                    image_url=product["image_url"],
                    properties=json.dumps(product["properties"]) if product["properties"] else None,
                    stock_count=product["stock_count"],
                ),
                asynchronous=False,
            )
            for product in DEMO_PRODUCTS
        ]

        order_ids = []
        for _ in range(orders):
            name, email, city = rng.choice(DEMO_CUSTOMERS)
            items = [{"product_id": product_ids[1], "quantity": rng.randint(1, 3)}]
            if rng.random() < 0.7:
                color, strap = rng.choice(["Red", "Blue"]), rng.choice(["Leather", "Cotton"])
                items.append(
                    {
                        "product_id": product_ids[0],
                        "quantity": 1,
                        "selected_properties": [
                            {"key": "Color", "value": color, "changePrice": color == "Red"},
                            {"key": "Strap", "value": strap, "changePrice": strap == "Leather"},
                        ],
                    }
                )
            order_ids.append(
                domain.process(
                    PlaceOrder(name=name, email=email, city=city, items=json.dumps(items)),
                    asynchronous=False,
                )
            )
    return product_ids, order_ids


def main():
    parser = argparse.ArgumentParser(description="Order Desk management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    seed_parser = subparsers.add_parser("seed", help="Register demo products and place demo orders")
    seed_parser.add_argument("--orders", type=int, default=5, help="Number of orders to place (default: 5)")
    seed_parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed":
        product_ids, order_ids = seed(_domain(), orders=args.orders, seed_value=args.seed)
        print(f"Registered {len(product_ids)} products and placed {len(order_ids)} orders.")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
