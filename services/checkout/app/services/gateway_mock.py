from __future__ import annotations

from dataclasses import replace

from services.checkout.app.services.gateway_base import (
    CloseCallback,
    GatewayConfig,
    GatewayHandle,
    SuccessCallback,
)


class MockGateway:
    """Deterministic gateway for tests and local dev.

    With ``auto="success"`` or ``auto="close"`` the matching callback fires as
    soon as the widget is opened. Otherwise callbacks wait for the callback routes.
    """

    provider = "MOCK"

    def __init__(self, auto: str | None = None, public_key: str = "pk_test_mock") -> None:
        if auto not in (None, "success", "close"):
            raise ValueError(f"Unknown mock gateway outcome {auto!r}")
        self.auto = auto
        self.public_key = public_key
        self.opened: list[GatewayConfig] = []

    def open(
        self,
        config: GatewayConfig,
        *,
        on_success: SuccessCallback,
        on_close: CloseCallback,
    ) -> GatewayHandle:
        config = replace(config, public_key=self.public_key)
        self.opened.append(config)

        handle = GatewayHandle(
            config, on_success=on_success, on_close=on_close, provider=self.provider
        )
        if self.auto == "success":
            handle.success(config.reference)
        elif self.auto == "close":
            handle.close()
        return handle
