from __future__ import annotations

import os
from dataclasses import replace

from services.checkout.app.services.gateway_base import (
    CloseCallback,
    GatewayConfig,
    GatewayHandle,
    GatewayKeyMissingError,
    SuccessCallback,
)


class HostedWidgetGateway:
    """Paystack inline widget.

    The widget itself runs in the storefront. ``open`` only prepares the payload
    the storefront hands to the widget; the widget's callbacks come back through
    the checkout callback routes and are delivered to the returned handle.
    """

    provider = "PAYSTACK"

    def __init__(self, public_key: str) -> None:
        if not public_key:
            raise GatewayKeyMissingError()
        self.public_key = public_key

    @classmethod
    def from_env(cls) -> HostedWidgetGateway:
        return cls(public_key=os.getenv("VOLTCART_PAYSTACK_PUBLIC_KEY", "").strip())

    def open(
        self,
        config: GatewayConfig,
        *,
        on_success: SuccessCallback,
        on_close: CloseCallback,
    ) -> GatewayHandle:
        return GatewayHandle(
            replace(config, public_key=self.public_key),
            on_success=on_success,
            on_close=on_close,
            provider=self.provider,
        )
