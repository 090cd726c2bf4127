"""
Scorer and candidate ranker.

A (application, deposit) pair gets a 0-100 confidence from two signals:
how well the normalized names agree and how close the deposit landed to
the form submission. Pairs with no name overlap, or more than a week
apart, are excluded outright rather than scored low.

The ranker only commits without a human when the best candidate clears
AUTO_MATCH_THRESHOLD; everything else becomes a manual review item.
"""
from dataclasses import dataclass, field
from typing import Iterable

from dues.core.clock import as_utc
from dues.models.application import Application
from dues.models.deposit import Deposit
from dues.services.names import normalize_name

EXACT_NAME_CONFIDENCE = 90
PARTIAL_NAME_CONFIDENCE = 60
AUTO_MATCH_THRESHOLD = 80

MAX_TIME_DIFF_MINUTES = 60 * 24 * 7
TIME_BONUS_1H = 10
TIME_BONUS_24H = 5

# best candidate plus up to four runners-up
MAX_REVIEW_CANDIDATES = 5

OUTCOME_AUTO = "auto"
OUTCOME_MANUAL_REQUIRED = "manual_required"


@dataclass(frozen=True)
class Candidate:
    application: Application
    deposit: Deposit
    confidence: int
    reason: str
    time_diff_minutes: int


@dataclass
class MatchDecision:
    outcome: str
    confidence: int
    reason: str
    best: Candidate | None = None
    candidates: list[Candidate] = field(default_factory=list)
    # set once the decision has been committed
    match: object | None = None

    @property
    def is_auto(self) -> bool:
        return self.outcome == OUTCOME_AUTO


def time_diff_minutes(application: Application, deposit: Deposit) -> int:
    delta = as_utc(deposit.timestamp) - as_utc(application.submitted_at)
    return int(abs(delta.total_seconds()) // 60)


def score_pair(application: Application, deposit: Deposit) -> Candidate | None:
    """Score one pair. Returns None when the pair is excluded."""
    depositor = normalize_name(deposit.depositor_name)
    applicant = normalize_name(application.name)
    if not depositor or not applicant:
        return None

    if depositor == applicant:
        confidence = EXACT_NAME_CONFIDENCE
        reasons = ["exact name match"]
    elif depositor in applicant or applicant in depositor:
        confidence = PARTIAL_NAME_CONFIDENCE
        reasons = ["partial name match"]
    else:
        return None

    minutes = time_diff_minutes(application, deposit)
    if minutes > MAX_TIME_DIFF_MINUTES:
        return None

    if minutes <= 60:
        confidence += TIME_BONUS_1H
        reasons.append(f"{minutes} min apart (within 1h, +{TIME_BONUS_1H})")
    elif minutes <= 60 * 24:
        confidence += TIME_BONUS_24H
        reasons.append(f"{minutes} min apart (within 24h, +{TIME_BONUS_24H})")
    else:
        reasons.append(f"{minutes} min apart (no time bonus)")

    return Candidate(
        application=application,
        deposit=deposit,
        confidence=min(confidence, 100),
        reason=", ".join(reasons),
        time_diff_minutes=minutes,
    )


def rank(candidates: Iterable[Candidate | None], empty_reason: str) -> MatchDecision:
    """Order surviving candidates and decide auto vs. manual review.

    ``sorted`` is stable, so candidates tied on confidence and time
    difference keep the order in which the pool was enumerated.
    """
    ranked = sorted(
        (c for c in candidates if c is not None),
        key=lambda c: (-c.confidence, c.time_diff_minutes),
    )
    if not ranked:
        return MatchDecision(outcome=OUTCOME_MANUAL_REQUIRED, confidence=0, reason=empty_reason)

    best = ranked[0]
    if best.confidence >= AUTO_MATCH_THRESHOLD:
        return MatchDecision(
            outcome=OUTCOME_AUTO,
            confidence=best.confidence,
            reason=best.reason,
            best=best,
            candidates=[best],
        )

    return MatchDecision(
        outcome=OUTCOME_MANUAL_REQUIRED,
        confidence=best.confidence,
        reason=f"confidence {best.confidence} below auto-match threshold {AUTO_MATCH_THRESHOLD} ({best.reason})",
        best=best,
        candidates=ranked[:MAX_REVIEW_CANDIDATES],
    )


def rank_for_deposit(deposit: Deposit, applications: list[Application]) -> MatchDecision:
    if not applications:
        return rank([], "no pending applications")
    return rank(
        (score_pair(application, deposit) for application in applications),
        "no pending application matches the depositor name within 7 days",
    )


def rank_for_application(application: Application, deposits: list[Deposit]) -> MatchDecision:
    if not deposits:
        return rank([], "no pending deposits")
    return rank(
        (score_pair(application, deposit) for deposit in deposits),
        "no pending deposit matches the applicant name within 7 days",
    )
