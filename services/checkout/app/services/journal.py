from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import uuid4

from packages.shared.schemas.events import AttemptStatusV1, EventTypeV1
from services.checkout.app.db.database import db_session
from services.checkout.app.db.models import EventLog, PaymentAttempt
from services.checkout.app.services.intents import PaymentSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

RECONCILABLE_STATUSES = (AttemptStatusV1.GATEWAY_SUCCESS.value, AttemptStatusV1.VERIFYING.value)


class AttemptJournal:
    """Append-only record of payment attempts.

    Every session is journaled before the gateway opens and moved to
    ``verifying`` before verify is called, so a charge captured while voltcart
    was down can still be matched to an attempt and re-verified.
    """

    def __init__(self, session_factory: Callable[[], Session] = db_session) -> None:
        self._session_factory = session_factory

    def record_session(self, session: PaymentSession, *, checkout_id: str | None = None) -> None:
        intent = session.intent
        payment_type = getattr(intent, "payment_type", None)
        db = self._session_factory()
        try:
            db.add(
                PaymentAttempt(
                    reference=session.reference,
                    kind=intent.kind.value,
                    checkout_id=checkout_id,
                    payer_email=intent.payer_email.strip().lower(),
                    amount_minor_units=session.amount_minor_units,
                    currency=session.currency,
                    payment_type=payment_type.value if payment_type else None,
                    status=AttemptStatusV1.PENDING.value,
                )
            )
            _log_event(
                db,
                reference=session.reference,
                event_type=EventTypeV1.SESSION_CREATED,
                event_payload={
                    "amount": str(session.amount),
                    "currency": session.currency,
                    "checkout_id": checkout_id,
                },
            )
            db.commit()
        finally:
            db.close()

    def mark_gateway_success(self, reference: str) -> None:
        self._update(
            reference,
            status=AttemptStatusV1.GATEWAY_SUCCESS,
            event_type=EventTypeV1.GATEWAY_SUCCESS,
            only_from=(AttemptStatusV1.PENDING.value,),
        )

    def mark_verifying(self, reference: str) -> None:
        self._update(
            reference, status=AttemptStatusV1.VERIFYING, event_type=EventTypeV1.VERIFY_STARTED
        )

    def mark_confirmed(self, reference: str, identifier: str) -> None:
        self._update(
            reference,
            status=AttemptStatusV1.CONFIRMED,
            event_type=EventTypeV1.VERIFY_CONFIRMED,
            payload={"identifier": identifier},
            settled_identifier=identifier,
        )

    def mark_failed(self, reference: str, message: str) -> None:
        self._update(
            reference,
            status=AttemptStatusV1.FAILED,
            event_type=EventTypeV1.VERIFY_FAILED,
            payload={"error": message},
            error_message=message,
        )

    def mark_abandoned(self, reference: str) -> None:
        self._update(
            reference,
            status=AttemptStatusV1.ABANDONED,
            event_type=EventTypeV1.GATEWAY_CLOSED,
            only_from=(AttemptStatusV1.PENDING.value,),
        )

    def get(self, reference: str) -> PaymentAttempt | None:
        db = self._session_factory()
        try:
            return db.get(PaymentAttempt, reference)
        finally:
            db.close()

    def events(self, reference: str) -> list[EventLog]:
        db = self._session_factory()
        try:
            return (
                db.query(EventLog)
                .filter(EventLog.reference == reference)
                .order_by(EventLog.created_at.asc())
                .all()
            )
        finally:
            db.close()

    def list_for_email(self, email: str, *, limit: int = 200) -> list[PaymentAttempt]:
        db = self._session_factory()
        try:
            return (
                db.query(PaymentAttempt)
                .filter(PaymentAttempt.payer_email == email.strip().lower())
                .order_by(PaymentAttempt.created_at.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    def stale_attempts(self, older_than: timedelta) -> list[PaymentAttempt]:
        cutoff = datetime.utcnow() - older_than
        db = self._session_factory()
        try:
            return (
                db.query(PaymentAttempt)
                .filter(PaymentAttempt.status.in_(RECONCILABLE_STATUSES))
                .filter(PaymentAttempt.updated_at <= cutoff)
                .order_by(PaymentAttempt.updated_at.asc())
                .all()
            )
        finally:
            db.close()

    def _update(
        self,
        reference: str,
        *,
        status: AttemptStatusV1,
        event_type: EventTypeV1,
        payload: dict | None = None,
        only_from: tuple[str, ...] | None = None,
        settled_identifier: str | None = None,
        error_message: str | None = None,
    ) -> None:
        db = self._session_factory()
        try:
            attempt = db.get(PaymentAttempt, reference)
            if attempt is None:
                logger.warning("No journaled attempt %s (%s)", reference, event_type.value)
                return

            if only_from is not None and attempt.status not in only_from:
                logger.info(
                    "Attempt %s stays %s; not moving to %s", reference, attempt.status, status.value
                )
            else:
                attempt.status = status.value
                attempt.updated_at = datetime.utcnow()
                if settled_identifier is not None:
                    attempt.settled_identifier = settled_identifier
                if error_message is not None:
                    attempt.error_message = error_message

            _log_event(db, reference=reference, event_type=event_type, event_payload=payload or {})
            db.commit()
        finally:
            db.close()


def _log_event(
    db: Session,
    *,
    reference: str,
    event_type: EventTypeV1,
    event_payload: dict,
) -> None:
    db.add(
        EventLog(
            id=uuid4().hex,
            reference=reference,
            event_type=event_type.value,
            event_payload_json=event_payload,
        )
    )
