"""Juice storefront cart/checkout API entrypoint."""

import logging
import os

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.routers.audit import router as audit_router
from services.api.app.routers.cart import router as cart_router
from services.api.app.routers.checkout import router as checkout_router
from services.api.app.routers.pricing import router as pricing_router

logging.basicConfig(
    level=os.getenv("JUICE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Juice Storefront API")

app.include_router(pricing_router)
app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(audit_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
