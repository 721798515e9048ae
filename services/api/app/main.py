"""Storefront API service entrypoint."""

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.errors import ApiError, api_error_handler
from services.api.app.logger import configure_logging
from services.api.app.routers.audit import router as audit_router
from services.api.app.routers.email import router as email_router
from services.api.app.routers.failed_order import router as failed_order_router
from services.api.app.routers.order import router as order_router
from services.api.app.routers.payment import router as payment_router
from services.api.app.routers.pricing import router as pricing_router

app = FastAPI(title="Storefront API")

app.add_exception_handler(ApiError, api_error_handler)

app.include_router(pricing_router)
app.include_router(payment_router)
# /v1/orders/failed must be matched before /v1/orders/{order_id}.
app.include_router(failed_order_router)
app.include_router(order_router)
app.include_router(email_router)
app.include_router(audit_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
