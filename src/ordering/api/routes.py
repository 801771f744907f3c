"""FastAPI routes for the Order Desk — orders, the order stream and products."""

import asyncio
import json
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ordering.api.schemas import (
    DeleteOrdersResponse,
    LineItemQuantityResponse,
    OrderIdResponse,
    OrderListResponse,
    PlaceOrderRequest,
    ProductIdResponse,
    QuantityDeltaRequest,
    RegisterProductRequest,
    UpdateOrderRequest,
    VerificationLineItem,
)
from ordering.feed.change_feed import ChangeFeed
from ordering.order.editing import ChangeLineItemQuantity, UpdateOrderDetails
from ordering.order.placement import PlaceOrder
from ordering.order.reconciler import VerificationConflict, get_reconciler
from ordering.product.registration import RegisterProduct
from ordering.queries.orders import OrderQueryService
from ordering.store import get_store
from ordering.store.port import StoreUnavailable

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_verification_items = TypeAdapter(list[VerificationLineItem])


def get_query_service() -> OrderQueryService:
    return OrderQueryService()


def get_change_feed(request: Request) -> ChangeFeed:
    feed = getattr(request.app.state, "change_feed", None)
    if feed is None or not feed.running:
        raise HTTPException(status_code=503, detail="Order stream is not running")
    return feed


def _validate(adapter_or_model, payload):
    try:
        return adapter_or_model.validate_python(payload)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/stream")
async def stream_orders(feed: Annotated[ChangeFeed, Depends(get_change_feed)]) -> StreamingResponse:
    subscription = feed.subscribe()
    return StreamingResponse(subscription.frames(), media_type="text/event-stream", headers=STREAM_HEADERS)


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    service: Annotated[OrderQueryService, Depends(get_query_service)],
    page: int = 1,
    pageSize: int | None = None,
    searchQuery: str | None = None,
    filterKey: str | None = None,
    sort: str = "desc",
) -> dict:
    try:
        listing = service.query(
            page=page,
            page_size=pageSize,
            search_text=searchQuery,
            status_filter=filterKey,
            sort_direction=sort,
        )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Order store unavailable, try again shortly") from exc
    return listing.to_dict()


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        name=body.name,
        email=body.email,
        phone=body.phone,
        address=body.address,
        house_number=body.house_number,
        city=body.city,
        postal_code=body.postal_code,
        currency=body.currency,
        items=json.dumps([item.model_dump() for item in body.items]),
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.delete("", response_model=DeleteOrdersResponse)
def delete_orders(
    orderId: Annotated[str | None, Query()] = None,
    orderIds: Annotated[str | None, Query()] = None,
) -> DeleteOrdersResponse:
    if orderId:
        order_ids, bulk = [orderId], False
    elif orderIds:
        order_ids, bulk = [value.strip() for value in orderIds.split(",") if value.strip()], True
        if not order_ids:
            raise HTTPException(status_code=400, detail="orderIds must list at least one order id")
    else:
        raise HTTPException(status_code=400, detail="Provide orderId or orderIds")

    try:
        deleted = get_store().delete_orders(order_ids)
    except ObjectNotFoundError as exc:
        if bulk:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        raise
    return DeleteOrdersResponse(deletedCount=len(deleted), deletedIds=deleted)


@order_router.get("/statistics")
def order_statistics(service: Annotated[OrderQueryService, Depends(get_query_service)]) -> dict:
    try:
        return service.statistics()
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail="Order store unavailable, try again shortly") from exc


@order_router.get("/{order_id}")
def get_order(order_id: str, service: Annotated[OrderQueryService, Depends(get_query_service)]) -> dict:
    return service.get(order_id)


@order_router.put("/{order_id}")
async def update_order(
    order_id: str,
    service: Annotated[OrderQueryService, Depends(get_query_service)],
    body: Annotated[Any, Body()] = None,
    updateVerification: bool = False,
    expectedVerified: bool | None = None,
) -> dict:
    if updateVerification:
        items = _validate(_verification_items, body or [])
        try:
            await asyncio.to_thread(
                get_reconciler().toggle_verification,
                order_id,
                [{"productId": item.product_id, "quantity": item.quantity} for item in items],
                expectedVerified,
            )
        except VerificationConflict as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return service.get(order_id)

    changes = _validate(TypeAdapter(UpdateOrderRequest), body or {})
    command = UpdateOrderDetails(
        order_id=order_id,
        name=changes.name,
        email=changes.email,
        phone=changes.phone,
        address=changes.address,
        house_number=changes.house_number,
        city=changes.city,
        postal_code=changes.postal_code,
        status=changes.status,
        line_item_quantities=json.dumps(changes.line_item_quantities) if changes.line_item_quantities else None,
    )
    current_domain.process(command, asynchronous=False)
    return service.get(order_id)


@order_router.put("/{order_id}/line-items/{item_id}/quantity", response_model=LineItemQuantityResponse)
async def change_line_item_quantity(order_id: str, item_id: str, body: QuantityDeltaRequest) -> LineItemQuantityResponse:
    command = ChangeLineItemQuantity(order_id=order_id, item_id=item_id, delta=body.delta)
    quantity = current_domain.process(command, asynchronous=False)
    return LineItemQuantityResponse(order_id=order_id, item_id=item_id, quantity=quantity)


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    menu = [entry.model_dump(exclude_unset=True) for entry in body.properties or []]
    command = RegisterProduct(
        name=body.name,
        price=body.price,
        image_url=body.image_url,
        properties=json.dumps(menu) if menu else None,
        stock_count=body.stock_count,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)
