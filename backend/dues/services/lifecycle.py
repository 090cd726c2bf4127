"""Forward-only transitions outside the match commit, and admin deletes."""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from dues.core.clock import as_utc, utcnow
from dues.errors import ConflictError, NotFoundError
from dues.models.activity_log import ActivityLogType
from dues.models.application import Application, ApplicationStatus
from dues.models.deposit import Deposit, DepositStatus
from dues.services import store
from dues.services.scoring import MAX_TIME_DIFF_MINUTES

logger = logging.getLogger(__name__)


def delete_application(db: Session, application_id: str, operator_id: str | None = None) -> Application:
    with store.transaction(db):
        application = store.get_application(db, application_id)
        if application is None:
            raise NotFoundError(f"application {application_id} not found")
        if application.status != ApplicationStatus.PENDING:
            raise ConflictError("only pending applications can be deleted")
        store.delete_application(db, application)
        store.append_log(db, ActivityLogType.SUBMISSION_DELETE, {
            "submissionId": application_id,
            "name": application.name,
            "studentId": application.student_id,
        }, actor=operator_id)
    logger.info("application deleted: %s", application_id)
    return application


def delete_deposit(db: Session, deposit_id: str, operator_id: str | None = None) -> Deposit:
    with store.transaction(db):
        deposit = store.get_deposit(db, deposit_id)
        if deposit is None:
            raise NotFoundError(f"deposit {deposit_id} not found")
        if deposit.status != DepositStatus.PENDING:
            raise ConflictError("only pending deposits can be deleted")
        store.delete_deposit(db, deposit)
        store.append_log(db, ActivityLogType.DEPOSIT_DELETE, {
            "depositId": deposit_id,
            "depositorName": deposit.depositor_name,
            "amount": deposit.amount,
        }, actor=operator_id)
    logger.info("deposit deleted: %s", deposit_id)
    return deposit


def mark_joined(db: Session, application_id: str, now: datetime | None = None) -> Application:
    now = now or utcnow()
    with store.transaction(db):
        application = store.get_application(db, application_id)
        if application is None:
            raise NotFoundError(f"application {application_id} not found")
        if application.status != ApplicationStatus.INVITED:
            raise ConflictError(f"application {application_id} is {application.status.value}, not invited")
        if not store.transition_application(
            db,
            application_id,
            ApplicationStatus.INVITED,
            status=ApplicationStatus.JOINED,
            joined_at=now,
            updated_at=now,
        ):
            raise ConflictError(f"application {application_id} changed concurrently")
    logger.info("application joined: %s", application_id)
    return application


def expire_stale_deposits(db: Session, now: datetime | None = None) -> list[str]:
    """Pending deposits too old to ever be auto-matched become expired."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=MAX_TIME_DIFF_MINUTES)

    expired = []
    with store.transaction(db):
        for deposit in store.list_deposits(db, DepositStatus.PENDING):
            if as_utc(deposit.timestamp) < cutoff and store.transition_deposit(
                db,
                deposit.id,
                DepositStatus.PENDING,
                status=DepositStatus.EXPIRED,
                updated_at=now,
            ):
                expired.append(deposit.id)
    if expired:
        logger.info("expired %d stale deposits", len(expired))
    return expired
