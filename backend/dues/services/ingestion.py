import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from dues.core.clock import parse_timestamp, utcnow
from dues.core.config import settings
from dues.models.activity_log import ActivityLogType
from dues.models.application import Application, ApplicationStatus, new_application_id
from dues.models.deposit import Deposit, DepositStatus, new_deposit_id
from dues.services import store
from dues.services.canonicalizer import (
    ParseError,
    canonicalize_application,
    parse_deposit_notification,
    raw_notification,
)
from dues.services.matching import on_application_ingested, on_deposit_ingested
from dues.services.scoring import MatchDecision

logger = logging.getLogger(__name__)


@dataclass
class DepositIngestion:
    deposit: Deposit | None = None
    decision: MatchDecision | None = None
    ignored: ParseError | None = None


@dataclass
class ApplicationIngestion:
    application: Application
    decision: MatchDecision


def ingest_deposit_notification(db: Session, payload: dict, now: datetime | None = None) -> DepositIngestion:
    """Parse, store and try to match one deposit notification.

    Irrelevant or malformed notifications are logged and dropped; nothing
    is written for them.
    """
    now = now or utcnow()
    title = payload.get("title") or ""
    text = payload.get("text") or ""
    if not isinstance(title, str) or not isinstance(text, str):
        return DepositIngestion(ignored=ParseError("title and text must be strings"))

    parsed = parse_deposit_notification(
        title,
        text,
        account_marker=settings.TARGET_ACCOUNT_MARKER,
        withdrawal_keyword=settings.WITHDRAWAL_KEYWORD,
        currency_marker=settings.CURRENCY_MARKER,
    )
    if isinstance(parsed, ParseError):
        logger.info("deposit notification ignored (%s): %r | %r", parsed.reason, title, text)
        return DepositIngestion(ignored=parsed)

    timestamp = now
    if payload.get("timestamp"):
        try:
            timestamp = parse_timestamp(payload["timestamp"])
        except ValueError:
            reason = ParseError(f"invalid timestamp: {payload['timestamp']!r}")
            logger.info("deposit notification ignored (%s)", reason.reason)
            return DepositIngestion(ignored=reason)

    with store.transaction(db):
        deposit = store.put_deposit(db, Deposit(
            id=new_deposit_id(),
            depositor_name=parsed.depositor_name,
            amount=parsed.amount,
            timestamp=timestamp,
            raw_notification=raw_notification(title, text),
            status=DepositStatus.PENDING,
            created_at=now,
        ))
        store.append_log(db, ActivityLogType.DEPOSIT_RECEIVE, {
            "depositId": deposit.id,
            "depositorName": deposit.depositor_name,
            "amount": deposit.amount,
        }, now=now)
    logger.info("deposit received: %s %s (%s)", deposit.depositor_name, deposit.amount, deposit.id)

    decision = on_deposit_ingested(db, deposit, now=now)
    return DepositIngestion(deposit=deposit, decision=decision)


def ingest_application(db: Session, payload: dict, now: datetime | None = None) -> ApplicationIngestion:
    """Store a form submission and try to match it against pending deposits.

    Raises ValidationError when name or studentId is missing.
    """
    now = now or utcnow()
    submission = canonicalize_application(payload)

    with store.transaction(db):
        application = store.put_application(db, Application(
            id=new_application_id(),
            name=submission.name,
            student_id=submission.student_id,
            email=submission.email,
            department=submission.department,
            phone=submission.phone,
            status=ApplicationStatus.PENDING,
            submitted_at=submission.submitted_at or now,
            extra_fields=submission.metadata,
            created_at=now,
        ))
        store.append_log(db, ActivityLogType.SUBMISSION_RECEIVE, {
            "submissionId": application.id,
            "name": application.name,
            "studentId": application.student_id,
        }, now=now)
    logger.info("application received: %s (%s) %s", application.name, application.student_id, application.id)

    decision = on_application_ingested(db, application, now=now)
    return ApplicationIngestion(application=application, decision=decision)
