"""Tests for dues/services/lifecycle.py"""

import pytest

from conftest import T0, minutes
from dues.errors import ConflictError, NotFoundError
from dues.models.activity_log import ActivityLogType
from dues.models.application import ApplicationStatus
from dues.models.deposit import DepositStatus
from dues.models.match import MatchResultType
from dues.services import ledger, lifecycle, store


def _matched_pair(db, make_application, make_deposit):
    app, dep = make_application(), make_deposit()
    ledger.commit(db, app.id, dep.id, MatchResultType.AUTO, 100, "test", now=T0)
    return app, dep


class TestDeletes:
    def test_delete_pending_application(self, db, make_application):
        app = make_application()
        lifecycle.delete_application(db, app.id, "opAlice")
        assert store.get_application(db, app.id) is None
        (entry,) = store.list_logs(db, ActivityLogType.SUBMISSION_DELETE)
        assert entry.actor == "opAlice"
        assert entry.details == {"submissionId": app.id, "name": "Kim Minjun", "studentId": "20231234"}

    def test_delete_pending_deposit(self, db, make_deposit):
        dep = make_deposit()
        lifecycle.delete_deposit(db, dep.id)
        assert store.get_deposit(db, dep.id) is None
        (entry,) = store.list_logs(db, ActivityLogType.DEPOSIT_DELETE)
        assert entry.actor == "system"
        assert entry.details["amount"] == 30000

    def test_matched_entities_cannot_be_deleted(self, db, make_application, make_deposit):
        app, dep = _matched_pair(db, make_application, make_deposit)
        with pytest.raises(ConflictError):
            lifecycle.delete_application(db, app.id)
        with pytest.raises(ConflictError):
            lifecycle.delete_deposit(db, dep.id)
        assert store.get_application(db, app.id) is not None
        assert store.list_logs(db, ActivityLogType.SUBMISSION_DELETE) == []

    def test_missing(self, db):
        with pytest.raises(NotFoundError):
            lifecycle.delete_application(db, "app_missing")
        with pytest.raises(NotFoundError):
            lifecycle.delete_deposit(db, "dep_missing")


class TestMarkJoined:
    def test_invited_becomes_joined(self, db, make_application, make_deposit):
        app, _ = _matched_pair(db, make_application, make_deposit)
        store.transition_application(db, app.id, ApplicationStatus.MATCHED, status=ApplicationStatus.INVITED)
        db.commit()

        lifecycle.mark_joined(db, app.id, now=T0 + minutes(60))

        db.expire_all()
        app = store.get_application(db, app.id)
        assert app.status == ApplicationStatus.JOINED
        assert app.joined_at is not None

    def test_must_be_invited_first(self, db, make_application, make_deposit):
        app, _ = _matched_pair(db, make_application, make_deposit)
        with pytest.raises(ConflictError):
            lifecycle.mark_joined(db, app.id)

    def test_missing(self, db):
        with pytest.raises(NotFoundError):
            lifecycle.mark_joined(db, "app_missing")


class TestExpireStaleDeposits:
    def test_only_old_pending_deposits_expire(self, db, make_application, make_deposit):
        now = T0 + minutes(20000)
        stale = make_deposit(timestamp=T0)
        fresh = make_deposit(timestamp=now - minutes(60))
        app = make_application(name="Someone", submitted_at=T0)
        matched = make_deposit(depositor_name="Someone", timestamp=T0)
        ledger.commit(db, app.id, matched.id, MatchResultType.MANUAL, 100, "test", now=T0)

        expired = lifecycle.expire_stale_deposits(db, now=now)

        assert expired == [stale.id]
        db.expire_all()
        assert store.get_deposit(db, stale.id).status == DepositStatus.EXPIRED
        assert store.get_deposit(db, fresh.id).status == DepositStatus.PENDING
        assert store.get_deposit(db, matched.id).status == DepositStatus.MATCHED

    def test_nothing_to_expire(self, db, make_deposit):
        make_deposit(timestamp=T0)
        assert lifecycle.expire_stale_deposits(db, now=T0 + minutes(10)) == []
