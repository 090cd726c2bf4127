"""Tests for dues/services/stats.py"""

from dues.models.application import ApplicationStatus
from dues.models.match import MatchResultType
from dues.services import ledger
from dues.services.stats import payment_stats


def test_empty_store(db):
    stats = payment_stats(db)
    assert stats["total_applications"] == 0
    assert stats["total_deposits"] == 0
    assert stats["total_amount"] == 0
    assert stats["auto_match_rate"] == 0
    assert stats["applications_by_status"] == {s.value: 0 for s in ApplicationStatus}


def test_counts_and_rate(db, make_application, make_deposit):
    a1 = make_application(student_id="1")
    a2 = make_application(student_id="2")
    a3 = make_application(student_id="3")
    make_application(student_id="4")
    d1, d2, d3 = make_deposit(amount=30000), make_deposit(amount=30000), make_deposit(amount=15000)
    make_deposit(amount=5000)

    ledger.commit(db, a1.id, d1.id, MatchResultType.AUTO, 100, "x")
    ledger.commit(db, a2.id, d2.id, MatchResultType.AUTO, 95, "x")
    ledger.commit(db, a3.id, d3.id, MatchResultType.MANUAL, 100, "x", matched_by="opAlice")
    # the unmatch marker is not a commit and must not move the rate
    ledger.unmatch(db, a3.id, "opAlice")

    stats = payment_stats(db)

    assert stats["total_applications"] == 4
    assert stats["applications_by_status"]["matched"] == 2
    assert stats["applications_by_status"]["pending"] == 2
    assert stats["total_deposits"] == 4
    assert stats["deposits_by_status"]["matched"] == 2
    assert stats["total_amount"] == 80000
    assert stats["total_matches"] == 3
    assert stats["auto_matches"] == 2
    assert stats["manual_matches"] == 1
    assert stats["auto_match_rate"] == 67
