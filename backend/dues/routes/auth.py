from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dues.core.security import create_access_token, hash_password, verify_password
from dues.deps import get_current_operator, get_db
from dues.models.operator import Operator
from dues.schemas.operator import OperatorCreate, OperatorLogin, OperatorRead, Token

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=Token)
def login(credentials: OperatorLogin, db: Session = Depends(get_db)):
    operator = db.query(Operator).filter(Operator.username == credentials.username).first()
    if not operator or not operator.is_active or not verify_password(credentials.password, operator.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    token = create_access_token({"sub": operator.username})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=OperatorRead)
def me(current_operator: Operator = Depends(get_current_operator)):
    return current_operator


@router.post("/logout")
def logout():
    return {"message": "Logout successful. Remove token on client side."}


# --- operator management (operators only) ---
@router.post("/operators", response_model=OperatorRead)
def create_operator(
    operator_in: OperatorCreate,
    db: Session = Depends(get_db),
    current_operator: Operator = Depends(get_current_operator),
):
    existing = db.query(Operator).filter(Operator.username == operator_in.username).first()
    if existing:
        raise HTTPException(status_code=400, detail="Username already registered")
    operator = Operator(
        username=operator_in.username,
        hashed_password=hash_password(operator_in.password),
    )
    db.add(operator)
    db.commit()
    db.refresh(operator)
    return operator
