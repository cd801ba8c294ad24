"""Tests for the stuck message sweep, its Celery task and its HTTP endpoints."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from kombu.exceptions import OperationalError as BrokerError

from conftest import auth_headers

from crm.core.config import settings
from crm.models import EmailMessage, MessageStatus, SmsMessage
from crm.services.message_retry import process_stuck_messages
from crm.services.sms_service import SMSService
from crm.tasks import message_tasks


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeSms:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    def send_sms(self, to_number, message, from_number=None):
        self.sent.append(to_number)
        if to_number in self.fail_for:
            return {"success": False, "message_sid": None, "error": "Twilio error 21610"}
        return {"success": True, "message_sid": f"SM{len(self.sent)}", "error": None}


class FakeEmail:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_email(self, to_email, subject, html_content, text_content=None):
        self.sent.append(to_email)
        if self.succeed:
            return {"success": True}
        return {"success": False, "error": "Connection refused"}


def add_sms(db, to_number, minutes_old, status=MessageStatus.QUEUED):
    msg = SmsMessage(
        to_number=to_number,
        from_number="+15550001111",
        body="Your proposal is ready",
        status=status,
        created_at=NOW - timedelta(minutes=minutes_old),
        updated_at=NOW - timedelta(minutes=minutes_old),
    )
    db.add(msg)
    db.commit()
    return msg


def add_email(db, to_email, minutes_old, status=MessageStatus.SENDING):
    msg = EmailMessage(
        to_email=to_email,
        subject="Follow-up",
        body_html="<p>Hi</p>",
        status=status,
        created_at=NOW - timedelta(minutes=minutes_old),
        updated_at=NOW - timedelta(minutes=minutes_old),
    )
    db.add(msg)
    db.commit()
    return msg


class TestProcessStuckMessages:
    def test_retries_only_stale_pending_rows(self, db):
        stale = add_sms(db, "+15551110001", minutes_old=10)
        fresh = add_sms(db, "+15551110002", minutes_old=1)
        done = add_sms(db, "+15551110003", minutes_old=30, status=MessageStatus.SENT)
        sms = FakeSms()

        result = process_stuck_messages(db, sms_service=sms, email_service=FakeEmail(), now=NOW)

        assert sms.sent == ["+15551110001"]
        assert result["processed"] == 1
        assert result["succeeded"] == 1
        assert result["failed"] == 0
        assert result["success"] is True
        assert result["timestamp"] == NOW.isoformat()
        db.refresh(stale)
        db.refresh(fresh)
        db.refresh(done)
        assert stale.status == MessageStatus.SENT
        assert stale.message_sid == "SM1"
        assert fresh.status == MessageStatus.QUEUED
        assert done.status == MessageStatus.SENT

    def test_failures_are_recorded_per_message(self, db):
        ok = add_sms(db, "+15551110001", minutes_old=10)
        bad = add_sms(db, "+15551110002", minutes_old=11)
        email = add_email(db, "client@example.com", minutes_old=20)

        result = process_stuck_messages(
            db, sms_service=FakeSms(fail_for={"+15551110002"}), email_service=FakeEmail(succeed=False), now=NOW
        )

        assert result["processed"] == 3
        assert result["succeeded"] == 1
        assert result["failed"] == 2
        db.refresh(ok)
        db.refresh(bad)
        db.refresh(email)
        assert ok.status == MessageStatus.SENT
        assert bad.status == MessageStatus.FAILED
        assert bad.error_message == "Twilio error 21610"
        assert email.status == MessageStatus.FAILED
        assert email.error_message == "Connection refused"

    def test_batch_size_limits_each_kind(self, db, monkeypatch):
        monkeypatch.setattr(settings, "stuck_message_batch_size", 2)
        for i in range(4):
            add_sms(db, f"+1555111000{i}", minutes_old=10 + i)
        sms = FakeSms()

        result = process_stuck_messages(db, sms_service=sms, email_service=FakeEmail(), now=NOW)

        assert result["processed"] == 2
        # Oldest first
        assert sms.sent == ["+15551110003", "+15551110002"]

    def test_nothing_stuck(self, db):
        result = process_stuck_messages(db, sms_service=FakeSms(), email_service=FakeEmail(), now=NOW)

        assert result["processed"] == 0

    def test_twilio_unreachable_fails_every_row(self, db):
        rows = [add_sms(db, f"+1555111000{i}", minutes_old=10 + i) for i in range(3)]
        client = MagicMock()
        client.messages.create.side_effect = requests.exceptions.ConnectionError("reset")

        result = process_stuck_messages(db, sms_service=SMSService(client=client), email_service=FakeEmail(), now=NOW)

        assert result["processed"] == 3
        assert result["failed"] == 3
        assert client.messages.create.call_count == 3
        for row in rows:
            db.refresh(row)
            assert row.status == MessageStatus.FAILED
            assert row.error_message == "Twilio request failed"

    def test_recently_claimed_row_is_left_to_its_worker(self, db):
        claimed = add_sms(db, "+15551110001", minutes_old=30, status=MessageStatus.SENDING)
        claimed.updated_at = NOW - timedelta(minutes=1)
        db.commit()
        sms = FakeSms()

        result = process_stuck_messages(db, sms_service=sms, email_service=FakeEmail(), now=NOW)

        assert result["processed"] == 0
        assert sms.sent == []
        db.refresh(claimed)
        assert claimed.status == MessageStatus.SENDING

    def test_abandoned_claim_is_taken_over(self, db):
        abandoned = add_sms(db, "+15551110001", minutes_old=30, status=MessageStatus.SENDING)

        result = process_stuck_messages(db, sms_service=FakeSms(), email_service=FakeEmail(), now=NOW)

        assert result["succeeded"] == 1
        db.refresh(abandoned)
        assert abandoned.status == MessageStatus.SENT

    def test_second_sweep_skips_batch_being_sent(self, db):
        for i in range(3):
            add_sms(db, f"+1555111000{i}", minutes_old=10 + i)
        overlapping = []

        class OverlappingSms(FakeSms):
            def send_sms(self, to_number, message, from_number=None):
                if not overlapping:
                    overlapping.append(
                        process_stuck_messages(db, sms_service=FakeSms(), email_service=FakeEmail(), now=NOW)
                    )
                return super().send_sms(to_number, message, from_number)

        sms = OverlappingSms()
        result = process_stuck_messages(db, sms_service=sms, email_service=FakeEmail(), now=NOW)

        assert result["processed"] == 3
        assert overlapping[0]["processed"] == 0
        assert len(sms.sent) == 3


def test_celery_task_runs_sweep_with_its_own_session(db, monkeypatch):
    calls = []

    def fake_sweep(session):
        calls.append(session)
        return {"success": True, "processed": 0, "succeeded": 0, "failed": 0, "timestamp": NOW.isoformat()}

    monkeypatch.setattr(message_tasks, "run_stuck_message_sweep", fake_sweep)

    result = message_tasks.process_stuck_messages.apply().get()

    assert result["processed"] == 0
    assert len(calls) == 1


def test_task_is_routed_to_messages_queue():
    from crm.tasks.celery_app import celery_app

    route = celery_app.conf.task_routes["crm.tasks.message_tasks.process_stuck_messages"]
    assert route["queue"] == "messages"
    schedule = celery_app.conf.beat_schedule["process-stuck-messages"]
    assert schedule["schedule"] == settings.message_processor_interval_seconds


class TestProcessBackgroundEndpoint:
    def test_requires_session(self, client, monkeypatch):
        queued = []
        monkeypatch.setattr(message_tasks.process_stuck_messages, "delay", lambda: queued.append(1))

        response = client.post("/api/messages/process-background")

        assert response.status_code == 401
        assert queued == []

    def test_queues_one_run(self, client, monkeypatch):
        queued = []

        def fake_delay():
            queued.append(1)
            return SimpleNamespace(id="task-123")

        monkeypatch.setattr(message_tasks.process_stuck_messages, "delay", fake_delay)

        response = client.post("/api/messages/process-background", headers=auth_headers("user_any"))

        assert response.status_code == 202
        assert response.json() == {"success": True, "taskId": "task-123", "status": "queued"}
        assert queued == [1]

    def test_broker_down_is_unavailable(self, client, monkeypatch):
        def broken_delay():
            raise BrokerError("Connection refused")

        monkeypatch.setattr(message_tasks.process_stuck_messages, "delay", broken_delay)

        response = client.post("/api/messages/process-background", headers=auth_headers("user_any"))

        assert response.status_code == 503
        assert "refused" not in response.text

    @pytest.mark.parametrize("state, outcome, expected", [
        ("PENDING", None, {"taskId": "t1", "state": "PENDING"}),
        ("SUCCESS", {"processed": 2}, {"taskId": "t1", "state": "SUCCESS", "result": {"processed": 2}}),
        ("FAILURE", RuntimeError("db password wrong"),
         {"taskId": "t1", "state": "FAILURE", "error": "Message processing failed"}),
    ])
    def test_reports_task_state(self, client, monkeypatch, state, outcome, expected):
        from crm.api import messages

        fake_app = SimpleNamespace(AsyncResult=lambda task_id: SimpleNamespace(state=state, result=outcome))
        monkeypatch.setattr(messages, "celery_app", fake_app)

        response = client.get("/api/messages/process-background/t1", headers=auth_headers("user_any"))

        assert response.status_code == 200
        assert response.json() == expected
