from __future__ import annotations

import os

from services.checkout.app.backend.base import BackendClient
from services.checkout.app.backend.fake import FakeBackendClient


def get_backend_client() -> BackendClient:
    """Select the commerce backend client based on env vars.

    Defaults to the in-memory fake so tests and local dev are deterministic unless
    explicitly configured otherwise.
    """

    mode = os.getenv("VOLTCART_BACKEND", "fake").strip().lower()

    if mode == "fake":
        return FakeBackendClient(currency=os.getenv("VOLTCART_CURRENCY", "NGN").strip().upper())

    if mode == "http":
        from services.checkout.app.backend.http_client import HttpBackendClient

        return HttpBackendClient.from_env()

    raise ValueError(f"Unknown VOLTCART_BACKEND={mode!r}. Expected fake or http.")
