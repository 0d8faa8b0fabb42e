"""Voltcart checkout service entrypoint."""

import logging
import os

from fastapi import FastAPI

from services.checkout.app.db.init_db import init_db
from services.checkout.app.routers.attempts import router as attempts_router
from services.checkout.app.routers.cart import router as cart_router
from services.checkout.app.routers.checkout import router as checkout_router
from services.checkout.app.routers.confirmation import router as confirmation_router

logging.basicConfig(
    level=os.getenv("VOLTCART_LOG_LEVEL", "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Voltcart Checkout API")

app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(confirmation_router)
app.include_router(attempts_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
