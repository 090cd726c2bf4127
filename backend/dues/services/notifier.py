"""
Invitation delivery.

Commits never talk to the outside world. They leave an
``application_matched`` outbox event behind, and ``deliver_outbox`` turns
those into invitations through an ``InviteNotifier``.
"""
import logging
from datetime import datetime
from functools import lru_cache

import httpx
from sqlalchemy.orm import Session

from dues.core.clock import utcnow
from dues.core.config import settings
from dues.errors import ConflictError, NotFoundError, ValidationError
from dues.models.activity_log import ActivityLogType
from dues.models.application import Application, ApplicationStatus
from dues.models.outbox import OutboxEvent, APPLICATION_MATCHED
from dues.services import store

logger = logging.getLogger(__name__)

OUTCOME_SENT = "sent"
OUTCOME_SKIPPED = "skipped"
# sent, but the match was undone before the status could move to invited
OUTCOME_STALE = "stale"


class InviteNotifier:
    """Posts invitation requests to the configured invite webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        invite_link: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.invite_link = invite_link
        self.timeout = timeout
        self.transport = transport

    async def send_invite(self, application: Application) -> bool:
        if not self.webhook_url:
            logger.warning("INVITE_WEBHOOK_URL is not set; invite for %s not sent", application.id)
            return False

        payload = {
            "application_id": application.id,
            "name": application.name,
            "email": application.email,
            "invite_link": self.invite_link,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to send invite for %s: %s", application.id, e)
            return False
        return True


@lru_cache(maxsize=1)
def get_notifier() -> InviteNotifier:
    return InviteNotifier(
        webhook_url=settings.INVITE_WEBHOOK_URL,
        invite_link=settings.INVITE_LINK,
        timeout=settings.NOTIFIER_TIMEOUT_SECONDS,
    )


def _close_pending_events(db: Session, application_id: str, outcome: str, now: datetime) -> None:
    for event in (
        db.query(OutboxEvent)
        .filter(OutboxEvent.application_id == application_id, OutboxEvent.delivered_at.is_(None))
        .all()
    ):
        event.delivered_at = now
        event.outcome = outcome


def _log_invite(db: Session, application: Application, sent: bool, now: datetime, actor: str | None = None) -> None:
    store.append_log(
        db,
        ActivityLogType.INVITE_EMAIL_SENT if sent else ActivityLogType.INVITE_EMAIL_FAILED,
        {"submissionId": application.id, "email": application.email, "name": application.name},
        actor=actor,
        now=now,
    )


async def deliver_outbox(db: Session, notifier: InviteNotifier, now: datetime | None = None) -> dict:
    """Send invitations for every undelivered match event.

    Failed sends stay in the outbox with ``attempts`` bumped. Events whose
    match has since been unmatched, or whose application has no email, are
    closed as skipped. A send that lands after the match was undone is
    closed as stale.
    """
    now = now or utcnow()
    report = {OUTCOME_SENT: [], OUTCOME_SKIPPED: [], OUTCOME_STALE: [], "failed": []}

    events = (
        db.query(OutboxEvent)
        .filter(OutboxEvent.kind == APPLICATION_MATCHED, OutboxEvent.delivered_at.is_(None))
        .order_by(OutboxEvent.created_at, OutboxEvent.id)
        .all()
    )

    for event in events:
        application = store.get_application(db, event.application_id)
        active = store.active_match_for_application(db, event.application_id) if application else None

        if (
            application is None
            or application.status != ApplicationStatus.MATCHED
            or active is None
            or active.id != event.match_id
            or not application.email
        ):
            with store.transaction(db):
                event.delivered_at = now
                event.outcome = OUTCOME_SKIPPED
            report[OUTCOME_SKIPPED].append(event.application_id)
            continue

        sent = await notifier.send_invite(application)
        outcome = "failed"
        with store.transaction(db):
            _log_invite(db, application, sent, now)
            if sent:
                # the application may have been unmatched while the request was in flight
                invited = store.transition_application(
                    db,
                    application.id,
                    ApplicationStatus.MATCHED,
                    status=ApplicationStatus.INVITED,
                    invited_at=now,
                    updated_at=now,
                )
                outcome = OUTCOME_SENT if invited else OUTCOME_STALE
                event.delivered_at = now
                event.outcome = outcome
            else:
                event.attempts = (event.attempts or 0) + 1
        if outcome == OUTCOME_STALE:
            logger.warning("invite sent to %s after it was unmatched", application.id)
        report[outcome].append(event.application_id)

    return report


async def send_invite(
    db: Session,
    notifier: InviteNotifier,
    application_id: str,
    operator_id: str | None = None,
    now: datetime | None = None,
) -> bool:
    """Operator-triggered (re)send. Works for matched and invited applications."""
    now = now or utcnow()

    application = store.get_application(db, application_id)
    if application is None:
        raise NotFoundError(f"application {application_id} not found")
    if application.status not in (ApplicationStatus.MATCHED, ApplicationStatus.INVITED):
        raise ConflictError(f"application {application_id} is {application.status.value}, not matched")
    if not application.email:
        raise ValidationError(f"application {application_id} has no email address")

    sent = await notifier.send_invite(application)

    with store.transaction(db):
        _log_invite(db, application, sent, now, actor=operator_id)
        if sent:
            outcome = OUTCOME_SENT
            if not store.transition_application(
                db,
                application_id,
                ApplicationStatus.MATCHED,
                status=ApplicationStatus.INVITED,
                invited_at=now,
                updated_at=now,
            ):
                db.refresh(application)
                if application.status != ApplicationStatus.INVITED:
                    outcome = OUTCOME_STALE
                    logger.warning("invite sent to %s after it was unmatched", application_id)
            _close_pending_events(db, application_id, outcome, now)
    if sent:
        logger.info("invite sent to %s", application_id)
    return sent
