"""Pydantic request/response schemas for the Order Desk API.

These are external contracts — separate from internal Protean commands.
Query parameters and the listing envelope keep the dashboard's camelCase
names; order payloads use snake_case.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class OrderLineItemSchema(BaseModel):
    product_id: str
    product_name: str | None = None
    product_image: str | None = None
    quantity: int = Field(ge=1, default=1)
    base_price: float | None = Field(ge=0, default=None)
    selected_properties: list[Any] = Field(default_factory=list)


class PropertyValueSchema(BaseModel):
    value: str
    changePrice: bool = False
    newPrice: float | None = None


class PropertyDefinitionSchema(BaseModel):
    label: str
    values: list[PropertyValueSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    house_number: str | None = None
    city: str | None = None
    postal_code: str | None = None
    currency: str = Field(default="USD", max_length=3)
    items: list[OrderLineItemSchema] = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Ada Lovelace",
                    "email": "ada@example.com",
                    "phone": "+44 20 7946 0000",
                    "address": "Marylebone Road",
                    "house_number": "12",
                    "city": "London",
                    "postal_code": "NW1 5LR",
                    "items": [
                        {
                            "product_id": "prod-001",
                            "quantity": 2,
                            "selected_properties": [
                                {"key": "Color", "value": "Red", "changePrice": True, "price": 20},
                            ],
                        }
                    ],
                }
            ]
        }
    }


class UpdateOrderRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    house_number: str | None = None
    city: str | None = None
    postal_code: str | None = None
    status: str | None = None
    line_item_quantities: dict[str, int] | None = None


class VerificationLineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(ge=1)


class QuantityDeltaRequest(BaseModel):
    delta: int

    model_config = {"json_schema_extra": {"examples": [{"delta": 1}, {"delta": -1}]}}


# ---------------------------------------------------------------------------
# Product Request Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    image_url: str | None = None
    properties: list[PropertyDefinitionSchema] | None = None
    stock_count: int = Field(ge=0, default=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Canvas Tote",
                    "price": 250,
                    "image_url": "https://cdn.example.com/tote.jpg",
                    "properties": [
                        {
                            "label": "Color",
                            "values": [
                                {"value": "Red", "changePrice": True, "newPrice": 20},
                                {"value": "Blue"},
                            ],
                        }
                    ],
                    "stock_count": 40,
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class ProductIdResponse(BaseModel):
    product_id: str


class LineItemQuantityResponse(BaseModel):
    order_id: str
    item_id: str
    quantity: int


class DeleteOrdersResponse(BaseModel):
    deletedCount: int
    deletedIds: list[str]


class OrderListResponse(BaseModel):
    data: list[dict[str, Any]]
    totalItems: int
    totalPages: int
    currentPage: int
    aggregates: dict[str, int]
