"""Tests for dues/services/notifier.py: outbox delivery against a mocked invite webhook."""

import asyncio
import json

import httpx
import pytest

from conftest import T0
from dues.errors import ConflictError, ValidationError
from dues.models.activity_log import ActivityLogType
from dues.models.application import ApplicationStatus
from dues.models.match import MatchResultType
from dues.models.outbox import OutboxEvent
from dues.services import ledger, store
from dues.services.notifier import InviteNotifier, deliver_outbox, send_invite

WEBHOOK = "https://hooks.example.com/invite"


class RecordingTransport:
    def __init__(self, status_code=200, on_request=None):
        self.status_code = status_code
        self.on_request = on_request
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request()
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    def notifier(self, url=WEBHOOK) -> InviteNotifier:
        return InviteNotifier(url, "https://chat.example.com/join", transport=httpx.MockTransport(self))


@pytest.fixture
def matched(db, make_application, make_deposit):
    app, dep = make_application(), make_deposit()
    match = ledger.commit(db, app.id, dep.id, MatchResultType.AUTO, 100, "test", now=T0)
    return app, match


class TestInviteNotifier:
    def test_posts_invite_payload(self, matched):
        app, _ = matched
        transport = RecordingTransport()

        assert asyncio.run(transport.notifier().send_invite(app)) is True

        body = json.loads(transport.requests[0].content)
        assert body["application_id"] == app.id
        assert body["email"] == "applicant@example.com"
        assert body["invite_link"] == "https://chat.example.com/join"

    def test_http_error_is_reported_not_raised(self, matched):
        app, _ = matched
        assert asyncio.run(RecordingTransport(status_code=500).notifier().send_invite(app)) is False

    def test_unconfigured_webhook(self, matched):
        app, _ = matched
        transport = RecordingTransport()
        assert asyncio.run(transport.notifier(url=None).send_invite(app)) is False
        assert transport.requests == []


class TestDeliverOutbox:
    def test_sends_and_marks_invited(self, db, matched):
        app, _ = matched
        transport = RecordingTransport()

        report = asyncio.run(deliver_outbox(db, transport.notifier(), now=T0))

        assert report["sent"] == [app.id]
        db.expire_all()
        assert store.get_application(db, app.id).status == ApplicationStatus.INVITED
        event = db.query(OutboxEvent).one()
        assert event.outcome == "sent"
        assert event.delivered_at is not None

        (entry,) = store.list_logs(db, ActivityLogType.INVITE_EMAIL_SENT)
        assert entry.actor == "system"
        assert entry.details == {"submissionId": app.id, "email": "applicant@example.com", "name": "Kim Minjun"}

        # already delivered, nothing left to send
        assert asyncio.run(deliver_outbox(db, transport.notifier()))["sent"] == []
        assert len(transport.requests) == 1

    def test_failure_stays_in_outbox(self, db, matched):
        app, _ = matched

        report = asyncio.run(deliver_outbox(db, RecordingTransport(status_code=503).notifier()))

        assert report["failed"] == [app.id]
        db.expire_all()
        event = db.query(OutboxEvent).one()
        assert event.delivered_at is None
        assert event.attempts == 1
        assert store.get_application(db, app.id).status == ApplicationStatus.MATCHED
        assert len(store.list_logs(db, ActivityLogType.INVITE_EMAIL_FAILED)) == 1

    def test_unmatched_during_send_is_stale(self, db, matched):
        app, _ = matched
        # an operator undoes the match while the invite request is in flight
        transport = RecordingTransport(on_request=lambda: ledger.unmatch(db, app.id, "opAlice"))

        report = asyncio.run(deliver_outbox(db, transport.notifier(), now=T0))

        assert report["stale"] == [app.id]
        assert report["sent"] == []
        db.expire_all()
        assert store.get_application(db, app.id).status == ApplicationStatus.PENDING
        assert store.get_application(db, app.id).invited_at is None
        event = db.query(OutboxEvent).one()
        assert event.outcome == "stale"
        assert event.delivered_at is not None
        # the email did go out
        assert len(store.list_logs(db, ActivityLogType.INVITE_EMAIL_SENT)) == 1

    def test_unmatched_event_is_skipped(self, db, matched):
        app, _ = matched
        ledger.unmatch(db, app.id, "opAlice")
        transport = RecordingTransport()

        report = asyncio.run(deliver_outbox(db, transport.notifier()))

        assert report["skipped"] == [app.id]
        assert transport.requests == []

    def test_stale_event_after_rematch_is_skipped(self, db, matched, make_deposit):
        app, _ = matched
        ledger.unmatch(db, app.id, "opAlice")
        other = make_deposit()
        ledger.commit(db, app.id, other.id, MatchResultType.MANUAL, 100, "again", matched_by="opAlice")
        transport = RecordingTransport()

        report = asyncio.run(deliver_outbox(db, transport.notifier()))

        assert report["skipped"] == [app.id]
        assert report["sent"] == [app.id]
        assert len(transport.requests) == 1


class TestSendInvite:
    def test_resend_to_invited_application(self, db, matched):
        app, _ = matched
        transport = RecordingTransport()
        asyncio.run(deliver_outbox(db, transport.notifier()))

        assert asyncio.run(send_invite(db, transport.notifier(), app.id)) is True
        assert len(transport.requests) == 2

    def test_closes_pending_events(self, db, matched):
        app, _ = matched

        assert asyncio.run(send_invite(db, RecordingTransport().notifier(), app.id)) is True

        db.expire_all()
        assert store.get_application(db, app.id).status == ApplicationStatus.INVITED
        assert db.query(OutboxEvent).filter(OutboxEvent.delivered_at.is_(None)).count() == 0

    def test_pending_application_conflicts(self, db, make_application):
        app = make_application()
        with pytest.raises(ConflictError):
            asyncio.run(send_invite(db, RecordingTransport().notifier(), app.id))

    def test_missing_email(self, db, make_application, make_deposit):
        app, dep = make_application(email=None), make_deposit()
        ledger.commit(db, app.id, dep.id, MatchResultType.AUTO, 100, "test")
        with pytest.raises(ValidationError):
            asyncio.run(send_invite(db, RecordingTransport().notifier(), app.id))

    def test_unmatched_during_send_is_stale(self, db, matched):
        app, _ = matched
        transport = RecordingTransport(on_request=lambda: ledger.unmatch(db, app.id, "opBob"))

        assert asyncio.run(send_invite(db, transport.notifier(), app.id, operator_id="opAlice")) is True

        db.expire_all()
        assert store.get_application(db, app.id).status == ApplicationStatus.PENDING
        assert db.query(OutboxEvent).one().outcome == "stale"

    def test_logs_operator(self, db, matched):
        app, _ = matched

        asyncio.run(send_invite(db, RecordingTransport().notifier(), app.id, operator_id="opAlice"))
        asyncio.run(send_invite(db, RecordingTransport(status_code=500).notifier(), app.id, operator_id="opAlice"))

        (sent,) = store.list_logs(db, ActivityLogType.INVITE_EMAIL_SENT)
        (failed,) = store.list_logs(db, ActivityLogType.INVITE_EMAIL_FAILED)
        assert sent.actor == failed.actor == "opAlice"
        assert failed.details["submissionId"] == app.id
