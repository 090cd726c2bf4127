from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from dues.models.match import MatchResultType


class MatchRead(BaseModel):
    id: str
    submission_id: str
    deposit_id: str
    result_type: MatchResultType
    confidence: int
    reason: str
    time_difference_minutes: int
    matched_by: Optional[str] = None
    supersedes_match_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class CandidateRead(BaseModel):
    application_id: str
    application_name: str
    deposit_id: str
    depositor_name: str
    confidence: int
    reason: str
    time_diff_minutes: int


class DecisionRead(BaseModel):
    outcome: str  # auto | manual_required
    confidence: int
    reason: str
    candidates: list[CandidateRead] = []
    match_id: Optional[str] = None

    @classmethod
    def from_decision(cls, decision) -> "DecisionRead":
        return cls(
            outcome=decision.outcome,
            confidence=decision.confidence,
            reason=decision.reason,
            candidates=[
                CandidateRead(
                    application_id=c.application.id,
                    application_name=c.application.name,
                    deposit_id=c.deposit.id,
                    depositor_name=c.deposit.depositor_name,
                    confidence=c.confidence,
                    reason=c.reason,
                    time_diff_minutes=c.time_diff_minutes,
                )
                for c in decision.candidates
            ],
            match_id=decision.match.id if decision.match is not None else None,
        )


# --- operator requests (camelCase on the wire, like the ingestion payloads) ---

class ManualMatchRequest(BaseModel):
    application_id: str = Field(alias="applicationId")
    deposit_id: str = Field(alias="depositId")


class ApplicationRef(BaseModel):
    application_id: str = Field(alias="applicationId")
