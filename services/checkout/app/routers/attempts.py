from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.events import EventV1
from services.checkout.app.models.attempts import AttemptDetail, AttemptListItem
from services.checkout.app.routers.http_errors import runtime
from services.checkout.app.services.store import Runtime

router = APIRouter()


@router.get("/v1/attempts", response_model=list[AttemptListItem])
def list_attempts(email: str, rt: Runtime = Depends(runtime)) -> list[AttemptListItem]:
    rows = rt.journal.list_for_email(email)

    return [
        AttemptListItem(
            reference=a.reference,
            kind=a.kind,
            status=a.status,
            amount_minor_units=a.amount_minor_units,
            currency=a.currency,
            payment_type=a.payment_type,
            settled_identifier=a.settled_identifier,
            created_at=a.created_at.isoformat(),
            updated_at=a.updated_at.isoformat(),
        )
        for a in rows
    ]


@router.get("/v1/attempts/{reference}", response_model=AttemptDetail)
def get_attempt(reference: str, rt: Runtime = Depends(runtime)) -> AttemptDetail:
    attempt = rt.journal.get(reference)
    if attempt is None:
        raise HTTPException(status_code=404, detail="Attempt not found")

    return AttemptDetail(
        reference=attempt.reference,
        kind=attempt.kind,
        status=attempt.status,
        amount_minor_units=attempt.amount_minor_units,
        currency=attempt.currency,
        payment_type=attempt.payment_type,
        settled_identifier=attempt.settled_identifier,
        created_at=attempt.created_at.isoformat(),
        updated_at=attempt.updated_at.isoformat(),
        checkout_id=attempt.checkout_id,
        payer_email=attempt.payer_email,
        error_message=attempt.error_message,
        events=[
            EventV1(
                id=e.id,
                reference=e.reference,
                event_type=e.event_type,
                payload=e.event_payload_json,
                created_at=e.created_at.isoformat(),
            )
            for e in rt.journal.events(reference)
        ],
    )
