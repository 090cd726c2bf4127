import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from dues.core.config import settings
from dues.database import SessionLocal
from dues.deps import get_db, notifier_dependency, verify_form_webhook, verify_payment_webhook
from dues.services.ingestion import ingest_application, ingest_deposit_notification
from dues.services.notifier import InviteNotifier, deliver_outbox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


# =========================
# SAFE JSON PARSER
# =========================
def safe_json_load(body: bytes):
    """
    Handles cases where the forwarder app sends extra characters.
    Extracts the outermost JSON object only.
    """
    text = body.decode("utf-8", errors="ignore").strip()

    # Find first { and last }
    start = text.find("{")
    end = text.rfind("}") + 1

    if start == -1 or end == 0:
        return None

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


async def deliver_invites_in_background(notifier: InviteNotifier):
    db: Session = SessionLocal()
    try:
        report = await deliver_outbox(db, notifier)
        logger.info("background invite delivery: %s", report)
    finally:
        db.close()


def _summary(decision) -> dict:
    # review candidates carry applicant names and are only served to operators
    return {
        "outcome": decision.outcome,
        "confidence": decision.confidence,
        "matched": decision.match is not None,
        "match_id": decision.match.id if decision.match is not None else None,
    }


def _schedule_invites(background_tasks: BackgroundTasks, decision, notifier: InviteNotifier):
    if settings.AUTO_SEND_INVITES and decision is not None and decision.match is not None:
        background_tasks.add_task(deliver_invites_in_background, notifier)


# =========================
# DEPOSIT NOTIFICATIONS
# =========================
@router.post("/deposits", dependencies=[Depends(verify_payment_webhook)])
async def deposit_webhook(
    req: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: InviteNotifier = Depends(notifier_dependency),
):
    body = await req.body()

    data = safe_json_load(body)
    if not data:
        return {"status": "ignored", "reason": "invalid_json"}

    result = ingest_deposit_notification(db, data)
    if result.ignored is not None:
        return {"status": "ignored", "reason": result.ignored.reason}

    _schedule_invites(background_tasks, result.decision, notifier)

    return {
        "status": "stored",
        "deposit_id": result.deposit.id,
        **_summary(result.decision),
    }


# =========================
# APPLICATION SUBMISSIONS
# =========================
@router.post("/applications", dependencies=[Depends(verify_form_webhook)])
def application_webhook(
    payload: dict,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: InviteNotifier = Depends(notifier_dependency),
):
    result = ingest_application(db, payload)

    _schedule_invites(background_tasks, result.decision, notifier)

    return {
        "status": "stored",
        "application_id": result.application.id,
        **_summary(result.decision),
    }
