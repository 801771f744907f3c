"""Order Desk FastAPI application.

Serves the operator dashboard: order listings and edits, verification with
stock reconciliation, and the live order stream.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay (memory stores under "test").
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.domain import ordering
from ordering.utils.logging import add_context, clear_context

ordering.init()

from ordering.api.routes import order_router, product_router  # noqa: E402
from ordering.feed.change_feed import ChangeFeed  # noqa: E402

_DOMAIN_PREFIXES = ("/orders", "/products")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run one change-feed poller for the lifetime of the process."""
    feed = ChangeFeed()
    await feed.start()
    app.state.change_feed = feed
    try:
        yield
    finally:
        await feed.stop()
        app.state.change_feed = None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Order Desk API",
    description="Storefront order management — listings, verification and live order stream",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context and bind request fields for logging."""
    clear_context()
    add_context(request_id=request.headers.get("x-request-id") or uuid4().hex, path=request.url.path)
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with ordering.domain_context():
            return await call_next(request)
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(order_router)
app.include_router(product_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health(request: Request):
    feed = getattr(request.app.state, "change_feed", None)
    return JSONResponse(
        content={
            "status": "ok",
            "domain": ordering.name,
            "stream": {
                "running": bool(feed and feed.running),
                "subscribers": feed.broadcaster.subscriber_count if feed else 0,
            },
        }
    )
