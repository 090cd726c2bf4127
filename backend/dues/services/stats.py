from sqlalchemy import func
from sqlalchemy.orm import Session

from dues.models.application import Application, ApplicationStatus
from dues.models.deposit import Deposit, DepositStatus
from dues.models.match import Match, MatchResultType


def _counts_by_status(db: Session, column, statuses) -> dict[str, int]:
    rows = db.query(column, func.count()).group_by(column).all()
    counts = {status.value: 0 for status in statuses}
    for status, count in rows:
        counts[status.value] += count
    return counts


def payment_stats(db: Session) -> dict:
    """
    Dashboard aggregates:
    - applications and deposits counted by status
    - total amount over every stored deposit
    - auto-match rate: auto commits / all commits in the ledger, as a percentage
    """
    applications_by_status = _counts_by_status(db, Application.status, ApplicationStatus)
    deposits_by_status = _counts_by_status(db, Deposit.status, DepositStatus)

    total_amount = int(db.query(func.coalesce(func.sum(Deposit.amount), 0)).scalar() or 0)

    commits = dict(
        db.query(Match.result_type, func.count())
        .filter(Match.result_type.in_([MatchResultType.AUTO, MatchResultType.MANUAL]))
        .group_by(Match.result_type)
        .all()
    )
    auto_matches = commits.get(MatchResultType.AUTO, 0)
    manual_matches = commits.get(MatchResultType.MANUAL, 0)
    total_matches = auto_matches + manual_matches
    auto_match_rate = round(auto_matches / total_matches * 100) if total_matches else 0

    return {
        "total_applications": sum(applications_by_status.values()),
        "applications_by_status": applications_by_status,
        "total_deposits": sum(deposits_by_status.values()),
        "deposits_by_status": deposits_by_status,
        "total_amount": total_amount,
        "total_matches": total_matches,
        "auto_matches": auto_matches,
        "manual_matches": manual_matches,
        "auto_match_rate": auto_match_rate,
    }
