"""Shared payment attempt event schema (v1).

Voltcart keeps an append-only event log per payment reference. The storefront
and support tooling consume these events to render an attempt's history.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AttemptStatusV1(str, Enum):
    PENDING = "pending"
    GATEWAY_SUCCESS = "gateway_success"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    ABANDONED = "abandoned"


class EventTypeV1(str, Enum):
    SESSION_CREATED = "SESSION_CREATED"
    GATEWAY_SUCCESS = "GATEWAY_SUCCESS"
    GATEWAY_CLOSED = "GATEWAY_CLOSED"
    VERIFY_STARTED = "VERIFY_STARTED"
    VERIFY_CONFIRMED = "VERIFY_CONFIRMED"
    VERIFY_FAILED = "VERIFY_FAILED"


class EventV1(BaseModel):
    id: str
    reference: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
