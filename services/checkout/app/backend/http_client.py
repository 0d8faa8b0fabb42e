from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from typing import Any
from urllib.parse import quote

from services.checkout.app.backend.base import (
    BackendError,
    CustomerPreOrderRecord,
    OrderRecord,
    OrderSessionResponse,
    OrderVerifyResponse,
    PayTokenResponse,
    PreOrderPaymentVerifyResponse,
    PreOrderSessionResponse,
    PreOrderVerifyResponse,
    RemainingBalanceSessionResponse,
)
from services.checkout.app.backend.normalize import (
    extract_message,
    normalize_customer_preorder,
    normalize_order_record,
    normalize_order_session,
    normalize_order_verify,
    normalize_pay_token,
    normalize_preorder_payment_verify,
    normalize_preorder_session,
    normalize_preorder_verify,
    normalize_remaining_balance_session,
)

logger = logging.getLogger(__name__)

ORDERS_PATH = "orders"
CUSTOMER_PREORDERS_PATH = "customer-pre-orders"


def default_backend_url() -> str:
    return os.getenv("VOLTCART_BACKEND_URL", "http://localhost:8000/api").strip().rstrip("/")


def default_timeout_seconds() -> float:
    return float(os.getenv("VOLTCART_BACKEND_TIMEOUT_SECONDS", "30"))


class HttpBackendClient:
    """Commerce backend over HTTP.

    Verify calls are sent without a timeout: the charge may already be
    captured, so the call is left to complete rather than abandoned.
    """

    def __init__(self, *, base_url: str, timeout_seconds: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_env(cls) -> HttpBackendClient:
        return cls(base_url=default_backend_url(), timeout_seconds=default_timeout_seconds())

    def create_order_session(self, payload: dict) -> OrderSessionResponse:
        data = self._request("POST", f"{ORDERS_PATH}/initialize-payment-session", body=payload)
        return normalize_order_session(data)

    def create_preorder_session(self, payload: dict) -> PreOrderSessionResponse:
        data = self._request(
            "POST", f"{CUSTOMER_PREORDERS_PATH}/initialize-payment-session", body=payload
        )
        return normalize_preorder_session(data)

    def create_remaining_balance_session(self, payload: dict) -> RemainingBalanceSessionResponse:
        data = self._request("POST", f"{CUSTOMER_PREORDERS_PATH}/initialize-payment", body=payload)
        return normalize_remaining_balance_session(data)

    def verify_order(self, reference: str) -> OrderVerifyResponse:
        data = self._request(
            "POST",
            f"{ORDERS_PATH}/verify-payment-and-create",
            body={"reference": reference},
            wait_forever=True,
        )
        return normalize_order_verify(data)

    def verify_preorder(self, reference: str) -> PreOrderVerifyResponse:
        data = self._request(
            "POST",
            f"{CUSTOMER_PREORDERS_PATH}/verify-payment-and-create",
            body={"reference": reference},
            wait_forever=True,
        )
        return normalize_preorder_verify(data)

    def verify_preorder_payment(self, reference: str) -> PreOrderPaymentVerifyResponse:
        data = self._request(
            "POST",
            f"{CUSTOMER_PREORDERS_PATH}/verify-payment",
            body={"reference": reference},
            wait_forever=True,
        )
        return normalize_preorder_payment_verify(data)

    def exchange_pay_token(self, token: str) -> PayTokenResponse:
        path = f"{CUSTOMER_PREORDERS_PATH}/pay-ticket/{quote(token, safe='')}"
        return normalize_pay_token(self._request("GET", path))

    def get_order(self, order_number: str) -> OrderRecord:
        path = f"{ORDERS_PATH}/by-number/{quote(order_number, safe='')}"
        return normalize_order_record(self._request("GET", path))

    def get_customer_preorder(self, pre_order_number: str) -> CustomerPreOrderRecord:
        path = f"{CUSTOMER_PREORDERS_PATH}/{quote(pre_order_number, safe='')}"
        return normalize_customer_preorder(self._request("GET", path))

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict | None = None,
        wait_forever: bool = False,
    ) -> Any:
        url = f"{self.base_url}/{path}"
        data = json.dumps(body).encode("utf-8") if body is not None else None

        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")

        kwargs: dict[str, Any] = {} if wait_forever else {"timeout": self.timeout_seconds}

        try:
            with urllib.request.urlopen(req, **kwargs) as resp:
                return _decode(resp.read())
        except urllib.error.HTTPError as e:
            payload = _decode(e.read())
            message = extract_message(payload)
            logger.warning("Backend %s %s returned HTTP %s", method, path, e.code)
            if message:
                raise BackendError(message, status_code=e.code, payload=payload) from e
            raise BackendError(status_code=e.code, payload=payload) from e
        except (urllib.error.URLError, OSError) as e:
            logger.warning("Backend %s %s unreachable: %s", method, path, e)
            raise BackendError() from e


def _decode(raw: bytes) -> Any:
    try:
        return json.loads(raw.decode("utf-8", errors="replace"))
    except ValueError:
        return None
