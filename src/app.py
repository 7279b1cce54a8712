"""WearMart ordering FastAPI application.

Web server that processes cart, order, inventory and payment commands
synchronously via HTTP. Every request runs inside the ordering domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Logging and domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the configuration overlay and the log renderer.
from ordering.utils.logging import add_context, clear_context, configure_logging

configure_logging()

from uuid import uuid4  # noqa: E402

import structlog  # noqa: E402
from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from ordering.config import get_settings  # noqa: E402
from ordering.domain import ordering  # noqa: E402

ordering.init()

logger = structlog.get_logger(__name__)
settings = get_settings()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="WearMart Ordering API",
    description="Carts, checkout, orders, inventory and payments",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context and bind request-scoped log fields."""
    request_id = request.headers.get("x-request-id") or uuid4().hex
    clear_context()
    add_context(request_id=request_id, method=request.method, path=request.url.path)

    with ordering.domain_context():
        response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    logger.info("Request handled", status_code=response.status_code)
    return response


# ---------------------------------------------------------------------------
# Routers and error envelope
# ---------------------------------------------------------------------------
from ordering.api import cart_router, inventory_router, order_router, payment_router  # noqa: E402
from ordering.api.errors import register_exception_handlers  # noqa: E402

register_exception_handlers(app)

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(inventory_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.environment,
            "domains": {"ordering": {"name": ordering.name}},
        }
    )
