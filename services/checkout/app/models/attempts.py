from __future__ import annotations

from packages.shared.schemas.events import EventV1
from pydantic import BaseModel, Field


class AttemptListItem(BaseModel):
    reference: str
    kind: str
    status: str
    amount_minor_units: int
    currency: str
    payment_type: str | None = None
    settled_identifier: str | None = None

    created_at: str
    updated_at: str


class AttemptDetail(AttemptListItem):
    checkout_id: str | None = None
    payer_email: str
    error_message: str | None = None

    events: list[EventV1] = Field(default_factory=list)
