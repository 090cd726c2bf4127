"""
Persistence contract used by the matching engine.

The engine only needs key-value style access: get by id, put, list by
status, append to the match ledger, and a conditional status transition
(``UPDATE ... WHERE id = :id AND status = :expected``) which is the
engine's only concurrency guard.
"""
import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import update, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from dues.core.clock import utcnow
from dues.errors import PersistenceError
from dues.models.activity_log import ActivityLog, ActivityLogType, SYSTEM_ACTOR, new_log_id
from dues.models.application import Application, ApplicationStatus
from dues.models.deposit import Deposit, DepositStatus
from dues.models.match import Match, COMMIT_RESULT_TYPES

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session):
    """Commit on success, roll back on any error.

    Store failures are re-raised as PersistenceError so callers can treat
    them as retryable.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store failure, rolled back: %s", exc)
        raise PersistenceError("store unavailable, retry later") from exc
    except Exception:
        db.rollback()
        raise


# --- applications ---

def get_application(db: Session, application_id: str) -> Application | None:
    return db.get(Application, application_id)


def put_application(db: Session, application: Application) -> Application:
    db.add(application)
    return application


def list_applications(db: Session, status: ApplicationStatus | None = None) -> list[Application]:
    query = db.query(Application)
    if status is not None:
        query = query.filter(Application.status == status)
    return query.order_by(Application.submitted_at, Application.id).all()


def transition_application(db: Session, application_id: str, expected: ApplicationStatus, **values) -> bool:
    result = db.execute(
        update(Application)
        .where(Application.id == application_id, Application.status == expected)
        .values(**values)
    )
    return result.rowcount == 1


def delete_application(db: Session, application: Application) -> None:
    db.delete(application)


# --- deposits ---

def get_deposit(db: Session, deposit_id: str) -> Deposit | None:
    return db.get(Deposit, deposit_id)


def put_deposit(db: Session, deposit: Deposit) -> Deposit:
    db.add(deposit)
    return deposit


def list_deposits(db: Session, status: DepositStatus | None = None) -> list[Deposit]:
    query = db.query(Deposit)
    if status is not None:
        query = query.filter(Deposit.status == status)
    return query.order_by(Deposit.timestamp, Deposit.id).all()


def transition_deposit(db: Session, deposit_id: str, expected: DepositStatus, **values) -> bool:
    result = db.execute(
        update(Deposit)
        .where(Deposit.id == deposit_id, Deposit.status == expected)
        .values(**values)
    )
    return result.rowcount == 1


def delete_deposit(db: Session, deposit: Deposit) -> None:
    db.delete(deposit)


# --- match ledger (append-only) ---

def append_match(db: Session, match: Match) -> Match:
    db.add(match)
    return match


def get_match(db: Session, match_id: str) -> Match | None:
    return db.get(Match, match_id)


def list_matches(db: Session) -> list[Match]:
    return db.query(Match).order_by(Match.created_at.desc(), Match.id).all()


def _active_commits():
    superseding = aliased(Match)
    superseded_ids = select(superseding.supersedes_match_id).where(
        superseding.supersedes_match_id.is_not(None)
    )
    return select(Match).where(
        Match.result_type.in_(COMMIT_RESULT_TYPES),
        Match.id.not_in(superseded_ids),
    )


def active_matches(db: Session) -> list[Match]:
    stmt = _active_commits().order_by(Match.created_at, Match.id)
    return list(db.scalars(stmt))


def active_match_for_application(db: Session, application_id: str) -> Match | None:
    stmt = _active_commits().where(Match.submission_id == application_id)
    return db.scalars(stmt).first()


# --- activity log ---

def append_log(
    db: Session,
    log_type: ActivityLogType,
    details: dict,
    actor: str | None = None,
    now: datetime | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        id=new_log_id(),
        type=log_type,
        actor=actor or SYSTEM_ACTOR,
        details=details,
        created_at=now or utcnow(),
    )
    db.add(entry)
    return entry


def list_logs(db: Session, log_type: ActivityLogType | None = None, limit: int = 50) -> list[ActivityLog]:
    query = db.query(ActivityLog)
    if log_type is not None:
        query = query.filter(ActivityLog.type == log_type)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id).limit(limit).all()
