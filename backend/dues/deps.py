from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from dues.core.config import settings
from dues.core.security import decode_access_token, secret_matches
from dues.database import SessionLocal
from dues.models.operator import Operator
from dues.services.notifier import InviteNotifier, get_notifier


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_operator(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Operator:
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    payload = decode_access_token(authorization)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    operator = db.query(Operator).filter(Operator.username == payload["sub"]).first()
    if not operator or not operator.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Operator not found")
    return operator


def verify_payment_webhook(x_webhook_secret: str | None = Header(default=None)):
    if not secret_matches(settings.PAYMENT_WEBHOOK_SECRET, x_webhook_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")


def verify_form_webhook(x_webhook_secret: str | None = Header(default=None)):
    if not secret_matches(settings.FORM_WEBHOOK_SECRET, x_webhook_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")


def notifier_dependency() -> InviteNotifier:
    return get_notifier()
