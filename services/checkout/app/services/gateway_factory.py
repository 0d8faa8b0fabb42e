from __future__ import annotations

import os

from services.checkout.app.services.gateway_base import GatewayAdapter
from services.checkout.app.services.gateway_mock import MockGateway


def get_gateway_adapter() -> GatewayAdapter:
    """Select a payment gateway adapter based on env vars.

    Defaults to the mock gateway so tests and local dev never need a provider key.
    """

    mode = os.getenv("VOLTCART_GATEWAY_ADAPTER", "mock").strip().lower()

    if mode == "mock":
        return MockGateway()

    if mode == "paystack":
        from services.checkout.app.services.gateway_hosted import HostedWidgetGateway

        return HostedWidgetGateway.from_env()

    raise ValueError(f"Unknown VOLTCART_GATEWAY_ADAPTER={mode!r}. Expected mock or paystack.")
