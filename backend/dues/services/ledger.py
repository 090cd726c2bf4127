"""
State controller: the single commit path for matches.

Every match, automatic or manual, goes through ``commit``. Preconditions
are checked again here rather than trusted from scoring time, and the
status transitions are conditional writes, so a commit that loses a race
fails with ConflictError instead of overwriting the winner.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from dues.core.clock import utcnow
from dues.errors import ConflictError, NotFoundError
from dues.models.activity_log import ActivityLogType
from dues.models.application import Application, ApplicationStatus
from dues.models.deposit import Deposit, DepositStatus
from dues.models.match import Match, MatchResultType, new_match_id
from dues.models.outbox import OutboxEvent, APPLICATION_MATCHED
from dues.services import store
from dues.services.scoring import time_diff_minutes

logger = logging.getLogger(__name__)

MATCH_LOG_TYPES = {
    MatchResultType.AUTO: ActivityLogType.PAYMENT_MATCH_AUTO,
    MatchResultType.MANUAL: ActivityLogType.PAYMENT_MATCH_MANUAL,
}


def _claim(db: Session, application: Application, deposit: Deposit, match_id: str, now: datetime) -> None:
    """Move both pending entities to matched, or raise ConflictError."""
    if not store.transition_application(
        db,
        application.id,
        ApplicationStatus.PENDING,
        status=ApplicationStatus.MATCHED,
        matched_deposit_id=deposit.id,
        matched_at=now,
        updated_at=now,
    ):
        raise ConflictError(f"application {application.id} already processed")

    if not store.transition_deposit(
        db,
        deposit.id,
        DepositStatus.PENDING,
        status=DepositStatus.MATCHED,
        matched_submission_id=application.id,
        matched_at=now,
        updated_at=now,
    ):
        raise ConflictError(f"deposit {deposit.id} already processed")

    db.add(OutboxEvent(
        kind=APPLICATION_MATCHED,
        application_id=application.id,
        match_id=match_id,
        created_at=now,
    ))


def commit(
    db: Session,
    application_id: str,
    deposit_id: str,
    result_type: MatchResultType,
    confidence: int,
    reason: str,
    matched_by: str | None = None,
    now: datetime | None = None,
) -> Match:
    now = now or utcnow()

    with store.transaction(db):
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

        match = store.append_match(db, Match(
            id=new_match_id(),
            submission_id=application_id,
            deposit_id=deposit_id,
            result_type=result_type,
            confidence=confidence,
            reason=reason,
            time_difference_minutes=time_diff_minutes(application, deposit),
            matched_by=matched_by,
            created_at=now,
        ))
        _claim(db, application, deposit, match.id, now)
        store.append_log(
            db,
            MATCH_LOG_TYPES[result_type],
            {
                "matchId": match.id,
                "submissionId": application_id,
                "depositId": deposit_id,
                "confidence": confidence,
                "reason": reason,
                "submissionName": application.name,
                "depositorName": deposit.depositor_name,
                "amount": deposit.amount,
            },
            actor=matched_by,
            now=now,
        )

    logger.info(
        "committed %s match %s: %s <-> %s (confidence %s)",
        result_type.value, match.id, application_id, deposit_id, confidence,
    )
    return match


def _release_application(db: Session, application: Application, now: datetime) -> bool:
    return store.transition_application(
        db,
        application.id,
        application.status,
        status=ApplicationStatus.PENDING,
        matched_deposit_id=None,
        matched_at=None,
        invited_at=None,
        joined_at=None,
        updated_at=now,
    )


def _release_deposit(db: Session, deposit: Deposit, now: datetime) -> bool:
    return store.transition_deposit(
        db,
        deposit.id,
        DepositStatus.MATCHED,
        status=DepositStatus.PENDING,
        matched_submission_id=None,
        matched_at=None,
        updated_at=now,
    )


def unmatch(
    db: Session,
    application_id: str,
    operator_id: str | None = None,
    now: datetime | None = None,
) -> Match:
    """Revert an application and its deposit to pending.

    The original commit stays in the ledger; a new ``unmatch`` row is
    appended that supersedes it.
    """
    now = now or utcnow()

    with store.transaction(db):
        application = store.get_application(db, application_id)
        if application is None:
            raise NotFoundError(f"application {application_id} not found")
        if application.status == ApplicationStatus.PENDING:
            raise ConflictError(f"application {application_id} is not matched")

        active = store.active_match_for_application(db, application_id)
        deposit_id = application.matched_deposit_id or (active.deposit_id if active else None)

        marker = store.append_match(db, Match(
            id=new_match_id(),
            submission_id=application_id,
            deposit_id=deposit_id or "",
            result_type=MatchResultType.UNMATCH,
            confidence=0,
            reason=f"unmatched by {operator_id or 'system'}",
            time_difference_minutes=active.time_difference_minutes if active else 0,
            matched_by=operator_id,
            supersedes_match_id=active.id if active else None,
            created_at=now,
        ))

        if not _release_application(db, application, now):
            raise ConflictError(f"application {application_id} changed concurrently")
        store.append_log(db, ActivityLogType.PAYMENT_UNMATCH, {
            "matchId": marker.id,
            "supersedesMatchId": marker.supersedes_match_id,
            "submissionId": application_id,
            "depositId": deposit_id,
        }, actor=operator_id, now=now)

        deposit = store.get_deposit(db, deposit_id) if deposit_id else None
        if (
            deposit is not None
            and deposit.status == DepositStatus.MATCHED
            and deposit.matched_submission_id == application_id
        ):
            _release_deposit(db, deposit, now)

    logger.info("unmatched application %s from deposit %s by %s", application_id, deposit_id, operator_id)
    return marker


def reconcile_incomplete_commits(db: Session, now: datetime | None = None) -> dict:
    """Repair ledger rows whose entity transitions never landed.

    An active commit whose application or deposit is still pending is
    completed when both sides are still free (or already point at each
    other); otherwise it is voided with an ``unmatch`` marker and any side
    that does point at it is released.
    """
    now = now or utcnow()
    completed, voided = [], []

    for match in store.active_matches(db):
        application = store.get_application(db, match.submission_id)
        deposit = store.get_deposit(db, match.deposit_id)

        app_pending = application is not None and application.status == ApplicationStatus.PENDING
        dep_pending = deposit is not None and deposit.status == DepositStatus.PENDING
        if not app_pending and not dep_pending:
            continue

        app_linked = application is not None and application.matched_deposit_id == match.deposit_id
        dep_linked = deposit is not None and deposit.matched_submission_id == match.submission_id

        with store.transaction(db):
            if (app_pending or app_linked) and (dep_pending or dep_linked):
                if app_pending and not store.transition_application(
                    db, application.id, ApplicationStatus.PENDING,
                    status=ApplicationStatus.MATCHED, matched_deposit_id=deposit.id,
                    matched_at=now, updated_at=now,
                ):
                    raise ConflictError(f"application {application.id} changed concurrently")
                if dep_pending and not store.transition_deposit(
                    db, deposit.id, DepositStatus.PENDING,
                    status=DepositStatus.MATCHED, matched_submission_id=application.id,
                    matched_at=now, updated_at=now,
                ):
                    raise ConflictError(f"deposit {deposit.id} changed concurrently")
                if app_pending:
                    db.add(OutboxEvent(
                        kind=APPLICATION_MATCHED,
                        application_id=application.id,
                        match_id=match.id,
                        created_at=now,
                    ))
                completed.append(match.id)
                logger.warning("reconciliation completed match %s", match.id)
            else:
                store.append_match(db, Match(
                    id=new_match_id(),
                    submission_id=match.submission_id,
                    deposit_id=match.deposit_id,
                    result_type=MatchResultType.UNMATCH,
                    confidence=0,
                    reason="voided by reconciliation",
                    time_difference_minutes=match.time_difference_minutes,
                    supersedes_match_id=match.id,
                    created_at=now,
                ))
                if app_linked:
                    _release_application(db, application, now)
                if dep_linked and deposit.status == DepositStatus.MATCHED:
                    _release_deposit(db, deposit, now)
                voided.append(match.id)
                logger.warning("reconciliation voided match %s", match.id)

    return {"completed": completed, "voided": voided}
