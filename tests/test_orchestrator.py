"""
Flow-level tests for the capture and dashboard orchestrators.

The parser is reached through a real ParseRequestClient over an
httpx.MockTransport; storage is the in-memory backend.
"""

import asyncio
import json
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.config import ParserSettings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.expense import ExpenseRecord, ReviewDecision, TimeWindow
from expense_tracker.models.notification import NotificationInbox, NotificationVariant
from expense_tracker.orchestrator import DashboardFlow, ExpenseCaptureFlow
from expense_tracker.services.audio import MicrophoneDevice, RecordedClipDevice
from expense_tracker.services.auth import AuthRequiredError, StaticAuthProvider
from expense_tracker.services.parser import ParseRequestClient
from expense_tracker.services.storage import InMemoryExpenseStorage, PersistenceError
from expense_tracker.validation import ConfidenceGate


TODAY = date(2025, 10, 19)


def parser_reply(amount, confidence, **parsed):
    return {
        "ok": True,
        "expense_id": "exp-1",
        "ai_confidence": confidence,
        "parsed": {"amount": amount, "currency": "INR", **parsed},
    }


class FakeParser:
    """Maps the request text (or "audio") to a JSON reply."""

    def __init__(self, replies, status_code=200, delays=None):
        self.replies = replies
        self.status_code = status_code
        self.delays = delays or {}
        self.requests = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        key = body.get("text", "audio")
        await asyncio.sleep(self.delays.get(key, 0))
        return httpx.Response(self.status_code, json=self.replies.get(key, {"ok": True}))


class StreamingMicrophone(MicrophoneDevice):
    """Live microphone stand-in: a chunk every few milliseconds, never ends."""

    async def acquire(self):
        pass

    async def read_chunk(self):
        await asyncio.sleep(0.005)
        return b"ab"

    async def release(self):
        pass


class FailingStorage(InMemoryExpenseStorage):

    def __init__(self, fail_save=False, fail_list=False, fail_delete=False, **kwargs):
        super().__init__(**kwargs)
        self.fail_save = fail_save
        self.fail_list = fail_list
        self.fail_delete = fail_delete

    async def save_expense(self, record):
        if self.fail_save:
            raise PersistenceError("Failed to save expense")
        return await super().save_expense(record)

    async def list_expenses(self, *args, **kwargs):
        if self.fail_list:
            raise PersistenceError("sheet unavailable")
        return await super().list_expenses(*args, **kwargs)

    async def delete_expense(self, expense_id, owner_id):
        if self.fail_delete:
            raise PersistenceError("sheet unavailable")
        return await super().delete_expense(expense_id, owner_id)


def make_capture_flow(parser, storage=None, owner_id="user-1", max_seconds=5, audit_logger=None):
    inbox = NotificationInbox()
    client = ParseRequestClient(
        settings=ParserSettings(endpoint_url="https://parser.test/webhook"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(parser)),
    )
    flow = ExpenseCaptureFlow(
        auth=StaticAuthProvider(owner_id),
        parser_client=client,
        storage=storage if storage is not None else InMemoryExpenseStorage(),
        gate=ConfidenceGate(0.70),
        audit_logger=audit_logger or AuditLogger(),
        notifier=inbox,
        default_currency="INR",
        max_recording_seconds=max_seconds,
        today=lambda: TODAY,
    )
    return flow, inbox


def make_dashboard_flow(storage, owner_id="user-1", interval=10.0):
    inbox = NotificationInbox()
    flow = DashboardFlow(
        auth=StaticAuthProvider(owner_id),
        storage=storage,
        audit_logger=AuditLogger(),
        notifier=inbox,
        window=TimeWindow.ALL,
        refresh_interval_seconds=interval,
        query_limit=100,
        today=lambda: TODAY,
    )
    return flow, inbox


def titles(inbox: NotificationInbox) -> list[str]:
    return [n.title for n in inbox.items]


class TestTextCapture:

    def test_low_confidence_requires_review_but_saves(self):
        parser = FakeParser({"coffee 120": parser_reply(120, 0.55)})
        storage = InMemoryExpenseStorage()
        flow, inbox = make_capture_flow(parser, storage)

        async def scenario():
            draft = await flow.submit_text("coffee 120")
            assert flow.requires_review
            saved = await flow.save()
            stored = await storage.list_expenses("user-1", today=TODAY)
            return draft, saved, stored

        draft, saved, stored = asyncio.run(scenario())
        assert draft.amount == Decimal("120")
        assert "Low confidence" in titles(inbox)
        assert saved.amount == Decimal("120")
        assert saved.currency == "INR"
        assert saved.date == TODAY
        assert saved.description == "coffee 120"
        assert saved.ai_confidence == 0.55
        assert stored == [saved]

    def test_save_clears_draft_and_notifies(self):
        parser = FakeParser({"coffee 120": parser_reply(120, 0.92)})
        flow, inbox = make_capture_flow(parser)

        async def scenario():
            await flow.submit_text("coffee 120")
            await flow.save()

        asyncio.run(scenario())
        assert flow.draft is None
        assert flow.message == ""
        assert inbox.items[-1].title == "Success"

    def test_high_confidence_auto_accepts(self):
        parser = FakeParser({"rent 12000 Oct 2025": parser_reply(
            12000, 0.92, category="Rent", date="2025-10-01",
        )})
        flow, inbox = make_capture_flow(parser)

        draft = asyncio.run(flow.submit_text("rent 12000 Oct 2025"))
        assert flow.decision == ReviewDecision.AUTO_ACCEPT
        assert draft.category == "Rent"
        assert draft.date == date(2025, 10, 1)
        assert "Low confidence" not in titles(inbox)

    def test_request_payload(self):
        parser = FakeParser({"coffee 120": parser_reply(120, 0.9)})
        flow, _ = make_capture_flow(parser)

        asyncio.run(flow.submit_text("  coffee 120  "))
        body = parser.requests[0]
        assert body["text"] == "coffee 120"
        assert body["user_id"] == "user-1"
        assert "audio" not in body

    def test_blank_text_is_ignored(self):
        parser = FakeParser({})
        flow, inbox = make_capture_flow(parser)

        assert asyncio.run(flow.submit_text("   ")) is None
        assert parser.requests == []
        assert inbox.items == []

    def test_missing_parsed_block(self):
        parser = FakeParser({"hmm": {"ok": True}})
        flow, inbox = make_capture_flow(parser)

        assert asyncio.run(flow.submit_text("hmm")) is None
        assert flow.draft is None
        assert titles(inbox) == ["Nothing to review"]

    def test_transport_error_notifies_and_clears_processing(self):
        flow, inbox = make_capture_flow(FakeParser({}, status_code=502))

        assert asyncio.run(flow.submit_text("coffee 120")) is None
        assert flow.is_processing is False
        assert flow.draft is None
        assert inbox.items[0].variant == NotificationVariant.DESTRUCTIVE

    def test_latest_received_parse_wins(self):
        parser = FakeParser(
            {
                "coffee 120": parser_reply(120, 0.9),
                "lunch 300": parser_reply(300, 0.9),
            },
            delays={"coffee 120": 0.05},
        )
        flow, _ = make_capture_flow(parser)

        async def scenario():
            await asyncio.gather(flow.submit_text("coffee 120"), flow.submit_text("lunch 300"))

        asyncio.run(scenario())
        # "coffee 120" was sent first but answered last
        assert flow.draft.amount == Decimal("120")
        assert flow.is_processing is False

    def test_discard(self):
        parser = FakeParser({"coffee 120": parser_reply(120, 0.9)})
        storage = InMemoryExpenseStorage()
        flow, _ = make_capture_flow(parser, storage)

        async def scenario():
            await flow.submit_text("coffee 120")
            await flow.discard()
            return await storage.list_expenses("user-1", today=TODAY)

        assert asyncio.run(scenario()) == []
        assert flow.draft is None
        assert flow.message == ""

    def test_save_failure_keeps_draft(self):
        parser = FakeParser({"coffee 120": parser_reply(120, 0.9)})
        flow, inbox = make_capture_flow(parser, FailingStorage(fail_save=True))

        async def scenario():
            await flow.submit_text("coffee 120")
            return await flow.save()

        assert asyncio.run(scenario()) is None
        assert flow.is_saving is False
        assert flow.draft is not None
        assert inbox.items[-1].variant == NotificationVariant.DESTRUCTIVE

    def test_save_without_draft(self):
        flow, _ = make_capture_flow(FakeParser({}))
        assert asyncio.run(flow.save()) is None


class TestVoiceCapture:

    def test_recorded_clip_is_parsed(self):
        parser = FakeParser({"audio": parser_reply(45, 0.8, category="Travel")})
        flow, _ = make_capture_flow(parser)

        draft = asyncio.run(flow.record(RecordedClipDevice(b"voice-bytes", audio_format="wav")))
        assert draft.category == "Travel"
        assert parser.requests[0]["audio_format"] == "wav"
        assert "text" not in parser.requests[0]
        assert flow.is_recording is False

    def test_manual_stop(self):
        parser = FakeParser({"audio": parser_reply(45, 0.8)})
        flow, _ = make_capture_flow(parser)

        async def scenario():
            assert await flow.start_recording(StreamingMicrophone())
            assert flow.is_recording
            await asyncio.sleep(0.02)
            return await flow.stop_recording()

        draft = asyncio.run(scenario())
        assert draft.amount == Decimal("45")
        assert flow.is_recording is False

    def test_auto_stop_submits_clip(self):
        parser = FakeParser({"audio": parser_reply(45, 0.8)})
        audit_logger = AuditLogger()
        flow, _ = make_capture_flow(parser, max_seconds=0.03, audit_logger=audit_logger)

        draft = asyncio.run(flow.record(StreamingMicrophone()))
        assert draft.amount == Decimal("45")
        stopped = [
            e for e in audit_logger.recent_events
            if e.event_type == AuditEventType.RECORDING_STOPPED
        ]
        assert stopped[0].details["reason"] == "auto_stop"

    def test_stop_when_not_recording(self):
        flow, _ = make_capture_flow(FakeParser({}))
        assert asyncio.run(flow.stop_recording()) is None

    def test_microphone_unavailable(self):
        parser = FakeParser({})
        flow, inbox = make_capture_flow(parser)

        assert asyncio.run(flow.start_recording(RecordedClipDevice(None))) is False
        assert titles(inbox) == ["Error"]
        assert inbox.items[0].description == "Failed to access microphone"
        assert parser.requests == []


class TestAuthRequired:

    def test_capture_requires_owner(self):
        flow, inbox = make_capture_flow(FakeParser({}), owner_id=None)
        with pytest.raises(AuthRequiredError):
            asyncio.run(flow.submit_text("coffee 120"))
        assert titles(inbox) == ["Sign in required"]

    def test_dashboard_requires_owner(self):
        flow, _ = make_dashboard_flow(InMemoryExpenseStorage(), owner_id=None)
        with pytest.raises(AuthRequiredError):
            asyncio.run(flow.mount())
        assert flow.scheduler.is_mounted is False

    def test_audit_trail_records_auth_failure(self):
        audit_logger = AuditLogger()
        flow, _ = make_capture_flow(FakeParser({}), owner_id=None, audit_logger=audit_logger)
        with pytest.raises(AuthRequiredError):
            asyncio.run(flow.submit_text("coffee 120"))
        event = audit_logger.recent_events[0]
        assert event.event_type == AuditEventType.AUTH_REQUIRED


def seed(storage, *records):
    async def _seed():
        for record in records:
            await storage.save_expense(record)
    asyncio.run(_seed())


def make_record(amount, days_ago=0, category=None, owner_id="user-1"):
    return ExpenseRecord(
        owner_id=owner_id,
        amount=Decimal(amount),
        date=TODAY - timedelta(days=days_ago),
        category=category,
    )


class TestDashboard:

    def test_refresh_builds_view(self):
        storage = InMemoryExpenseStorage()
        seed(
            storage,
            make_record("100", 1, "Food"),
            make_record("50", 2),
            make_record("999", 0, owner_id="user-2"),
        )
        flow, _ = make_dashboard_flow(storage)

        assert asyncio.run(flow.refresh()) is True
        assert flow.view.total_spend == Decimal("150")
        assert flow.view.transaction_count == 2
        assert flow.is_loading is False
        assert flow.last_refresh is not None
        assert {c.category for c in flow.view.top_categories} == {"Food", "Uncategorized"}

    def test_window_change_refetches(self):
        storage = InMemoryExpenseStorage()
        seed(storage, make_record("10", 1), make_record("20", 40))
        flow, _ = make_dashboard_flow(storage)

        async def scenario():
            await flow.refresh()
            all_time = flow.view.transaction_count
            await flow.set_window(TimeWindow.LAST_7_DAYS)
            return all_time

        assert asyncio.run(scenario()) == 2
        assert flow.view.transaction_count == 1

    def test_window_change_restarts_timer(self):
        storage = InMemoryExpenseStorage()
        flow, _ = make_dashboard_flow(storage, interval=10)

        async def scenario():
            await flow.mount()
            await asyncio.sleep(0.01)
            await flow.set_window(TimeWindow.LAST_30_DAYS)
            await asyncio.sleep(0.01)
            ticks = flow.scheduler.tick_count
            await flow.teardown()
            return ticks

        assert asyncio.run(scenario()) == 2

    def test_mount_refreshes_periodically(self):
        storage = InMemoryExpenseStorage()
        flow, _ = make_dashboard_flow(storage, interval=0.02)

        async def scenario():
            await flow.mount()
            await asyncio.sleep(0.03)
            await storage.save_expense(make_record("5"))
            await asyncio.sleep(0.05)
            await flow.teardown()

        asyncio.run(scenario())
        assert flow.view.transaction_count == 1

    def test_refresh_failure_keeps_previous_view(self):
        storage = FailingStorage()
        seed(storage, make_record("10"))
        flow, inbox = make_dashboard_flow(storage)

        async def scenario():
            await flow.refresh()
            storage.fail_list = True
            return await flow.refresh()

        assert asyncio.run(scenario()) is False
        assert flow.view.total_spend == Decimal("10")
        assert titles(inbox) == ["Error"]
        assert inbox.items[0].description == "Failed to fetch expenses"


class TestDelete:

    def test_delete_requires_confirmation(self):
        storage = InMemoryExpenseStorage()
        record = make_record("10")
        seed(storage, record)
        flow, _ = make_dashboard_flow(storage)

        async def scenario():
            deleted = await flow.delete(record.id)
            remaining = await storage.list_expenses("user-1", today=TODAY)
            return deleted, remaining

        deleted, remaining = asyncio.run(scenario())
        assert deleted is False
        assert remaining == [record]

    def test_confirmed_delete_refetches(self):
        storage = InMemoryExpenseStorage()
        keep, drop = make_record("10"), make_record("20")
        seed(storage, keep, drop)
        flow, inbox = make_dashboard_flow(storage)

        async def scenario():
            await flow.refresh()
            return await flow.delete(drop.id, confirmed=True)

        assert asyncio.run(scenario()) is True
        assert flow.records == [keep]
        assert flow.view.total_spend == Decimal("10")
        assert inbox.items[-1].description == "Expense deleted"

    def test_delete_missing_id_succeeds(self):
        storage = InMemoryExpenseStorage()
        record = make_record("10")
        seed(storage, record)
        flow, inbox = make_dashboard_flow(storage)

        assert asyncio.run(flow.delete(uuid4(), confirmed=True)) is True
        assert flow.records == [record]
        assert inbox.items[-1].variant == NotificationVariant.DEFAULT

    def test_delete_failure(self):
        storage = FailingStorage(fail_delete=True)
        record = make_record("10")
        seed(storage, record)
        flow, inbox = make_dashboard_flow(storage)

        assert asyncio.run(flow.delete(record.id, confirmed=True)) is False
        assert inbox.items[-1].description == "Failed to delete expense"

    @pytest.mark.parametrize("refresh_first", [True, False])
    def test_concurrent_refresh_never_restores_deleted_record(self, refresh_first):
        storage = InMemoryExpenseStorage(latency=0.02)
        keep, drop = make_record("10"), make_record("20")
        seed(storage, keep, drop)
        flow, _ = make_dashboard_flow(storage)

        async def scenario():
            delete = flow.delete(drop.id, confirmed=True)
            if refresh_first:
                await asyncio.gather(flow.refresh(), delete)
            else:
                await asyncio.gather(delete, flow.refresh())

        asyncio.run(scenario())
        assert flow.records == [keep]

    def test_scheduled_ticks_during_delete(self):
        storage = InMemoryExpenseStorage(latency=0.01)
        keep, drop = make_record("10"), make_record("20")
        seed(storage, keep, drop)
        flow, _ = make_dashboard_flow(storage, interval=0.005)

        async def scenario():
            await flow.mount()
            await asyncio.sleep(0.015)
            await flow.delete(drop.id, confirmed=True)
            await asyncio.sleep(0.05)
            await flow.teardown()

        asyncio.run(scenario())
        assert flow.records == [keep]
