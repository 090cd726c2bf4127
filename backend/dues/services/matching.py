"""
Matching entry points.

A deposit can arrive before or after the application it pays for, so
each ingestion direction ranks the new item against the pending pool on
the other side. Both directions end in ``ledger.commit``.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from dues.errors import ConflictError, NotFoundError
from dues.models.activity_log import ActivityLogType
from dues.models.application import Application, ApplicationStatus
from dues.models.deposit import Deposit, DepositStatus
from dues.models.match import Match, MatchResultType
from dues.services import ledger, store
from dues.services.scoring import MatchDecision, rank_for_application, rank_for_deposit

logger = logging.getLogger(__name__)

MANUAL_CONFIDENCE = 100

# candidate names kept in a failed-match log entry
LOGGED_CANDIDATE_NAMES = 3


def _record_failure(db: Session, decision: MatchDecision, subject: dict, now: datetime | None) -> None:
    details = dict(subject)
    details["reason"] = decision.reason
    # names from the side opposite the ingested item
    details["candidates"] = [
        c.application.name if "depositId" in subject else c.deposit.depositor_name
        for c in decision.candidates[:LOGGED_CANDIDATE_NAMES]
    ]
    with store.transaction(db):
        store.append_log(db, ActivityLogType.PAYMENT_MATCH_FAILED, details, now=now)


def _commit_auto(db: Session, decision: MatchDecision, subject: dict, now: datetime | None) -> MatchDecision:
    if not decision.is_auto:
        logger.info("manual review required: %s", decision.reason)
        _record_failure(db, decision, subject, now)
        return decision

    best = decision.best
    try:
        decision.match = ledger.commit(
            db,
            best.application.id,
            best.deposit.id,
            MatchResultType.AUTO,
            best.confidence,
            best.reason,
            now=now,
        )
    except (ConflictError, NotFoundError) as exc:
        # lost the race to another commit or a delete; the proposal is simply dropped
        logger.warning("auto match discarded: %s", exc)
        _record_failure(db, decision, subject, now)
    return decision


def on_deposit_ingested(db: Session, deposit: Deposit, now: datetime | None = None) -> MatchDecision:
    pool = store.list_applications(db, ApplicationStatus.PENDING)
    decision = rank_for_deposit(deposit, pool)
    subject = {"depositId": deposit.id, "depositorName": deposit.depositor_name}
    return _commit_auto(db, decision, subject, now)


def on_application_ingested(db: Session, application: Application, now: datetime | None = None) -> MatchDecision:
    pool = store.list_deposits(db, DepositStatus.PENDING)
    decision = rank_for_application(application, pool)
    subject = {"submissionId": application.id, "name": application.name}
    return _commit_auto(db, decision, subject, now)


def candidates_for_deposit(db: Session, deposit_id: str) -> MatchDecision:
    """Re-rank a pending deposit against the current pending applications, without committing."""
    deposit = store.get_deposit(db, deposit_id)
    if deposit is None:
        raise NotFoundError(f"deposit {deposit_id} not found")
    if deposit.status != DepositStatus.PENDING:
        raise ConflictError(f"deposit {deposit_id} already processed ({deposit.status.value})")
    return rank_for_deposit(deposit, store.list_applications(db, ApplicationStatus.PENDING))


def candidates_for_application(db: Session, application_id: str) -> MatchDecision:
    application = store.get_application(db, application_id)
    if application is None:
        raise NotFoundError(f"application {application_id} not found")
    if application.status != ApplicationStatus.PENDING:
        raise ConflictError(f"application {application_id} already processed ({application.status.value})")
    return rank_for_application(application, store.list_deposits(db, DepositStatus.PENDING))


def manual_match(
    db: Session,
    application_id: str,
    deposit_id: str,
    operator_id: str,
    now: datetime | None = None,
) -> Match:
    application = store.get_application(db, application_id)
    if application is None:
        raise NotFoundError(f"application {application_id} not found")
    deposit = store.get_deposit(db, deposit_id)
    if deposit is None:
        raise NotFoundError(f"deposit {deposit_id} not found")

    if application.status != ApplicationStatus.PENDING:
        raise ConflictError(f"application {application_id} already processed ({application.status.value})")
    if deposit.status != DepositStatus.PENDING:
        raise ConflictError(f"deposit {deposit_id} already processed ({deposit.status.value})")

    match = ledger.commit(
        db,
        application_id,
        deposit_id,
        MatchResultType.MANUAL,
        MANUAL_CONFIDENCE,
        f"manual override by {operator_id}",
        matched_by=operator_id,
        now=now,
    )
    logger.info("manual match %s by %s", match.id, operator_id)
    return match
