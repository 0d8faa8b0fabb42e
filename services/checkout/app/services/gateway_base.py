from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[str], Any]
CloseCallback = Callable[[], Any]


class GatewayError(Exception):
    """Base class for payment gateway adapter errors."""


class GatewayKeyMissingError(GatewayError):
    def __init__(self) -> None:
        super().__init__(
            "Paystack public key is not configured. Set VOLTCART_PAYSTACK_PUBLIC_KEY "
            "or use VOLTCART_GATEWAY_ADAPTER=mock."
        )


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    reference: str
    payer_email: str
    amount_minor_units: int
    currency: str
    public_key: str = ""

    def widget_payload(self) -> dict[str, Any]:
        return {
            "reference": self.reference,
            "email": self.payer_email,
            "amount": self.amount_minor_units,
            "publicKey": self.public_key,
            "currency": self.currency,
        }


class GatewayHandle:
    """One widget interaction.

    The widget reports either success or close. Whichever kind arrives first
    wins; the other kind is dropped. Repeated success callbacks are passed
    through to ``on_success``.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        on_success: SuccessCallback,
        on_close: CloseCallback,
        provider: str,
    ) -> None:
        self.config = config
        self.provider = provider
        self.outcome: str | None = None
        self._on_success = on_success
        self._on_close = on_close

    @property
    def widget(self) -> dict[str, Any]:
        return self.config.widget_payload()

    def success(self, gateway_reference: str) -> Any:
        if self.outcome == "closed":
            logger.warning(
                "Dropping success callback for %s: widget already closed", self.config.reference
            )
            return None

        if self.outcome == "success":
            logger.info("Repeated success callback for %s", self.config.reference)
        else:
            logger.info("Gateway success for %s (%s)", self.config.reference, self.provider)
        self.outcome = "success"
        return self._on_success(gateway_reference)

    def close(self) -> Any:
        if self.outcome is not None:
            logger.warning(
                "Dropping close callback for %s: outcome already %s",
                self.config.reference,
                self.outcome,
            )
            return None

        logger.info("Gateway closed for %s (%s)", self.config.reference, self.provider)
        self.outcome = "closed"
        return self._on_close()


class GatewayAdapter(Protocol):
    provider: str

    def open(
        self,
        config: GatewayConfig,
        *,
        on_success: SuccessCallback,
        on_close: CloseCallback,
    ) -> GatewayHandle: ...
