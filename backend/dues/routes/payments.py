from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from dues.deps import get_current_operator, get_db, notifier_dependency
from dues.errors import NotFoundError
from dues.models.activity_log import ActivityLogType
from dues.models.application import ApplicationStatus
from dues.models.deposit import DepositStatus
from dues.models.operator import Operator
from dues.schemas.activity_log import ActivityLogRead
from dues.schemas.application import ApplicationRead
from dues.schemas.deposit import DepositRead
from dues.schemas.match import ApplicationRef, DecisionRead, ManualMatchRequest, MatchRead
from dues.schemas.stats import PaymentStats
from dues.services import ledger, lifecycle, store
from dues.services.matching import candidates_for_application, candidates_for_deposit, manual_match
from dues.services.notifier import InviteNotifier, deliver_outbox, send_invite
from dues.services.stats import payment_stats

router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
    dependencies=[Depends(get_current_operator)],
)


# --- applications ---

@router.get("/applications", response_model=list[ApplicationRead])
def list_applications(status: ApplicationStatus | None = None, db: Session = Depends(get_db)):
    return store.list_applications(db, status)


@router.get("/applications/{application_id}", response_model=ApplicationRead)
def get_application(application_id: str, db: Session = Depends(get_db)):
    application = store.get_application(db, application_id)
    if application is None:
        raise NotFoundError(f"application {application_id} not found")
    return application


@router.get("/applications/{application_id}/candidates", response_model=DecisionRead)
def application_candidates(application_id: str, db: Session = Depends(get_db)):
    return DecisionRead.from_decision(candidates_for_application(db, application_id))


@router.delete("/applications/{application_id}")
def delete_application(
    application_id: str,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    lifecycle.delete_application(db, application_id, operator.username)
    return {"success": True, "application_id": application_id}


@router.post("/applications/{application_id}/joined", response_model=ApplicationRead)
def mark_joined(application_id: str, db: Session = Depends(get_db)):
    return lifecycle.mark_joined(db, application_id)


# --- deposits ---

@router.get("/deposits", response_model=list[DepositRead])
def list_deposits(status: DepositStatus | None = None, db: Session = Depends(get_db)):
    return store.list_deposits(db, status)


@router.get("/deposits/{deposit_id}", response_model=DepositRead)
def get_deposit(deposit_id: str, db: Session = Depends(get_db)):
    deposit = store.get_deposit(db, deposit_id)
    if deposit is None:
        raise NotFoundError(f"deposit {deposit_id} not found")
    return deposit


@router.get("/deposits/{deposit_id}/candidates", response_model=DecisionRead)
def deposit_candidates(deposit_id: str, db: Session = Depends(get_db)):
    return DecisionRead.from_decision(candidates_for_deposit(db, deposit_id))


@router.delete("/deposits/{deposit_id}")
def delete_deposit(
    deposit_id: str,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    lifecycle.delete_deposit(db, deposit_id, operator.username)
    return {"success": True, "deposit_id": deposit_id}


@router.post("/deposits/expire")
def expire_deposits(db: Session = Depends(get_db)):
    expired = lifecycle.expire_stale_deposits(db)
    return {"expired": expired}


# --- matching ---

@router.get("/matches", response_model=list[MatchRead])
def list_matches(db: Session = Depends(get_db)):
    return store.list_matches(db)


@router.post("/match", response_model=MatchRead)
def create_manual_match(
    payload: ManualMatchRequest,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    return manual_match(db, payload.application_id, payload.deposit_id, operator.username)


@router.post("/unmatch", response_model=MatchRead)
def unmatch(
    payload: ApplicationRef,
    db: Session = Depends(get_db),
    operator: Operator = Depends(get_current_operator),
):
    return ledger.unmatch(db, payload.application_id, operator.username)


@router.post("/reconcile")
def reconcile(db: Session = Depends(get_db)):
    return ledger.reconcile_incomplete_commits(db)


# --- invitations ---

@router.post("/invite")
async def invite(
    payload: ApplicationRef,
    db: Session = Depends(get_db),
    notifier: InviteNotifier = Depends(notifier_dependency),
    operator: Operator = Depends(get_current_operator),
):
    if not await send_invite(db, notifier, payload.application_id, operator.username):
        raise HTTPException(status_code=502, detail="Failed to send invite")
    return {"success": True, "application_id": payload.application_id}


@router.post("/outbox/deliver")
async def deliver_invites(
    db: Session = Depends(get_db),
    notifier: InviteNotifier = Depends(notifier_dependency),
):
    return await deliver_outbox(db, notifier)


# --- activity log ---

@router.get("/logs", response_model=list[ActivityLogRead])
def list_logs(
    type: ActivityLogType | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return store.list_logs(db, type, limit)


# --- stats ---

@router.get("/stats", response_model=PaymentStats)
def get_stats(db: Session = Depends(get_db)):
    return payment_stats(db)
