# dues/models/match.py
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Integer, Enum, ForeignKey
from sqlalchemy.sql import func
from dues.database import Base


class MatchResultType(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"
    UNMATCH = "unmatch"  # terminal marker, supersedes an earlier commit


COMMIT_RESULT_TYPES = (MatchResultType.AUTO, MatchResultType.MANUAL)


def new_match_id() -> str:
    return f"match_{uuid.uuid4()}"


class Match(Base):
    """Append-only ledger row. Never updated or deleted."""

    __tablename__ = "matches"

    id = Column(String, primary_key=True, default=new_match_id)

    submission_id = Column(String, nullable=False, index=True)
    deposit_id = Column(String, nullable=False, index=True)

    result_type = Column(Enum(MatchResultType, name="match_result_type"), nullable=False)
    confidence = Column(Integer, nullable=False)
    reason = Column(String, nullable=False, default="")
    time_difference_minutes = Column(Integer, nullable=False, default=0)
    matched_by = Column(String, nullable=True)

    supersedes_match_id = Column(String, ForeignKey("matches.id"), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
