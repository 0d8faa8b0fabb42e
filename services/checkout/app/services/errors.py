from __future__ import annotations

GENERIC_NETWORK_MESSAGE = "Network error. Please check your internet connection."


class CheckoutError(Exception):
    """Base class for user-visible checkout errors."""


class ValidationError(CheckoutError):
    """Input is incomplete or the cart cannot be checked out as-is.

    ``step`` names the checkout step the user is sent back to.
    """

    def __init__(
        self, message: str, *, step: str = "CART_REVIEW", fields: list[str] | None = None
    ) -> None:
        super().__init__(message)
        self.step = step
        self.fields = fields or []


class PricingError(CheckoutError):
    def __init__(self, payable: object, *, line_id: str | None = None) -> None:
        super().__init__(
            "Unable to compute a payable amount for this checkout. Please contact support. "
            f"payable={payable}"
        )
        self.payable = payable
        self.line_id = line_id


class SessionInitError(CheckoutError):
    """Backend refused to create a payment session. The gateway was not opened."""


class VerificationError(CheckoutError):
    def __init__(self, message: str, *, reference: str) -> None:
        super().__init__(message)
        self.reference = reference


class VerificationInFlight(CheckoutError):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Verification already in progress for reference {reference}")
        self.reference = reference


class InvalidTransition(CheckoutError):
    def __init__(self, state: str, event: str) -> None:
        super().__init__(f"Event {event} is not allowed in state {state}")
        self.state = state
        self.event = event


class NotFoundError(CheckoutError):
    pass
