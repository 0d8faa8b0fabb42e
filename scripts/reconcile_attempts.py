from __future__ import annotations

import argparse
from datetime import timedelta

from services.checkout.app.backend.factory import get_backend_client
from services.checkout.app.db.init_db import init_db
from services.checkout.app.services.errors import VerificationError, VerificationInFlight
from services.checkout.app.services.intents import IntentKind
from services.checkout.app.services.journal import AttemptJournal
from services.checkout.app.services.verification import VerificationCoordinator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Re-verify payment attempts stuck after a gateway success"
    )
    parser.add_argument("--older-than-minutes", type=int, default=15)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    init_db()

    journal = AttemptJournal()
    stale = journal.stale_attempts(timedelta(minutes=args.older_than_minutes))
    if not stale:
        print("No stale attempts")
        return 0

    coordinator = VerificationCoordinator(get_backend_client(), journal=journal)
    failures = 0
    for attempt in stale:
        if args.dry_run:
            print(f"{attempt.reference} {attempt.kind} {attempt.status} would re-verify")
            continue

        try:
            result = coordinator.verify_and_settle(attempt.reference, IntentKind(attempt.kind))
        except (VerificationError, VerificationInFlight) as e:
            failures += 1
            print(f"{attempt.reference} {attempt.kind} failed: {e}")
            continue

        print(f"{attempt.reference} {attempt.kind} confirmed {result.identifier}")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
