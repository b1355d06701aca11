"""
Main Orchestrator for Voice Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Capture (phrase or voice -> parse -> confidence gate -> save)
2. Dashboard (query -> aggregate -> periodic refresh, delete)

DESIGN DECISION: The orchestrator is where user actions end.
- Known failures (device, transport, persistence, auth) become a
  notification, an audit event, and a reset of the busy flags
- Nothing is retried automatically; the user retries
- AuthRequiredError is also re-raised so the UI can send the user to sign in
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.expense import (
    AggregatedView,
    ExpenseDraft,
    ExpenseRecord,
    ParseInput,
    ParseResponse,
    ReviewDecision,
    TextInput,
    TimeWindow,
)
from expense_tracker.models.notification import (
    Notification,
    NotificationInbox,
    Notifier,
)
from expense_tracker.queries import AggregationEngine
from expense_tracker.scheduling import RefreshScheduler
from expense_tracker.services.audio import (
    AudioCapture,
    AudioClip,
    DeviceUnavailableError,
    MicrophoneDevice,
)
from expense_tracker.services.auth import AuthProvider, AuthRequiredError
from expense_tracker.services.parser import ParseRequestClient, TransportError
from expense_tracker.services.storage import (
    ExpenseStorageInterface,
    GoogleSheetsExpenseStorage,
    InMemoryExpenseStorage,
    PersistenceError,
)
from expense_tracker.validation import ConfidenceGate, finalize_draft


logger = structlog.get_logger(__name__)


class ExpenseCaptureFlow:
    """
    Orchestrates one user's Add Expense screen.

    Flow:
    1. Input     -> typed phrase, or a voice clip (auto-stops after a limit)
    2. Parse     -> one request to the parsing webhook
    3. Gate      -> low confidence highlights the review card
    4. Save      -> defaults filled once, record inserted
       Discard   -> draft dropped

    The draft always reflects the most recently received parse. A save
    uses the draft as it is at the moment Save is pressed.
    """

    def __init__(
        self,
        auth: AuthProvider,
        parser_client: ParseRequestClient,
        storage: ExpenseStorageInterface,
        gate: Optional[ConfidenceGate] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
        default_currency: Optional[str] = None,
        max_recording_seconds: Optional[float] = None,
        today: Callable[[], date] = date.today,
    ):
        app_settings = get_settings().app
        self._auth = auth
        self._parser = parser_client
        self._storage = storage
        self._gate = gate or ConfidenceGate(app_settings.review_confidence_threshold)
        self._audit_logger = audit_logger or AuditLogger()
        self._notify = notifier or NotificationInbox()
        self._default_currency = default_currency or app_settings.default_currency
        self._max_recording_seconds = max_recording_seconds
        self._today = today

        # Screen state
        self.message: str = ""
        self.response: Optional[ParseResponse] = None
        self.draft: Optional[ExpenseDraft] = None
        self.decision: Optional[ReviewDecision] = None
        self.is_saving = False
        self.correlation_id = create_correlation_id()

        self._in_flight = 0
        self._capture: Optional[AudioCapture] = None
        self._voice_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._in_flight > 0

    @property
    def is_recording(self) -> bool:
        return self._capture is not None and self._capture.is_recording

    @property
    def requires_review(self) -> bool:
        return self.decision is ReviewDecision.REQUIRE_REVIEW

    # ------------------------------------------------------------------
    # Text input
    # ------------------------------------------------------------------

    async def submit_text(self, text: str) -> Optional[ExpenseDraft]:
        """
        Send a typed phrase for parsing.

        Blank input is ignored. Returns the new draft, or None when nothing
        usable came back (the user has been notified).
        """
        self.message = text
        if not text or not text.strip():
            return None
        owner_id = await self._require_owner("parse")
        return await self._submit(TextInput(text=text), owner_id, source_text=text.strip())

    # ------------------------------------------------------------------
    # Voice input
    # ------------------------------------------------------------------

    async def start_recording(self, device: MicrophoneDevice) -> bool:
        """
        Open the microphone and start recording.

        The clip is submitted automatically once recording stops, whether
        by stop_recording() or by the auto-stop limit.

        Returns False if already recording or the device is unavailable.
        """
        owner_id = await self._require_owner("record")
        if self.is_recording:
            return False

        capture = AudioCapture(device, max_seconds=self._max_recording_seconds)
        try:
            await capture.start()
        except DeviceUnavailableError as e:
            self._notify(Notification.error("Failed to access microphone"))
            await self._audit_logger.log(
                AuditEventBuilder.device_unavailable(owner_id, str(e), self.correlation_id)
            )
            return False

        self._capture = capture
        self._voice_task = asyncio.create_task(self._finish_voice(capture, owner_id))
        await self._audit_logger.log(
            AuditEventBuilder.recording_started(owner_id, self.correlation_id)
        )
        return True

    async def stop_recording(self) -> Optional[ExpenseDraft]:
        """
        Stop the current recording and wait for its parse.

        A no-op (returns None) when nothing is recording, e.g. because the
        auto-stop already fired.
        """
        if not self.is_recording:
            return None
        await self._capture.stop()
        return await self.wait_for_voice()

    async def wait_for_voice(self) -> Optional[ExpenseDraft]:
        """Wait until the pending voice clip has been stopped and parsed."""
        task = self._voice_task
        if task is None:
            return None
        return await task

    async def record(self, device: MicrophoneDevice) -> Optional[ExpenseDraft]:
        """Record until the device or the auto-stop ends it, then parse."""
        if not await self.start_recording(device):
            return None
        return await self.wait_for_voice()

    async def _finish_voice(
        self,
        capture: AudioCapture,
        owner_id: str,
    ) -> Optional[ExpenseDraft]:
        try:
            clip: AudioClip = await capture.wait_clip()
        except DeviceUnavailableError as e:
            self._notify(Notification.error(str(e)))
            await self._audit_logger.log(
                AuditEventBuilder.device_unavailable(owner_id, str(e), self.correlation_id)
            )
            return None
        finally:
            if self._capture is capture:
                self._capture = None

        await self._audit_logger.log(
            AuditEventBuilder.recording_stopped(
                owner_id, clip.stop_reason.value, len(clip.data), self.correlation_id
            )
        )
        if clip.is_empty:
            self._notify(Notification.error("No audio was recorded. Please try again."))
            return None
        return await self._submit(clip.to_input(), owner_id)

    # ------------------------------------------------------------------
    # Parse
    # ------------------------------------------------------------------

    async def _submit(
        self,
        parse_input: ParseInput,
        owner_id: str,
        source_text: Optional[str] = None,
    ) -> Optional[ExpenseDraft]:
        await self._audit_logger.log(
            AuditEventBuilder.parse_requested(owner_id, parse_input.kind, self.correlation_id)
        )

        self._in_flight += 1
        try:
            response = await self._parser.submit(
                parse_input, self._parser.build_context(owner_id)
            )
        except TransportError as e:
            self._notify(Notification.error(str(e)))
            await self._audit_logger.log(
                AuditEventBuilder.parse_failed(owner_id, str(e), self.correlation_id)
            )
            return None
        finally:
            self._in_flight -= 1

        return await self._apply(response, owner_id, source_text)

    async def _apply(
        self,
        response: ParseResponse,
        owner_id: str,
        source_text: Optional[str],
    ) -> Optional[ExpenseDraft]:
        """Replace the current draft with the newly received parse."""
        self.response = response
        await self._audit_logger.log(
            AuditEventBuilder.parse_received(
                owner_id, response.expense_id, response.confidence, self.correlation_id
            )
        )

        if response.parsed is None:
            self.draft = None
            self.decision = None
            self._notify(Notification.info(
                "Nothing to review",
                "No expense details were found. Please rephrase and try again.",
            ))
            return None

        self.draft = ExpenseDraft.from_response(
            response,
            source_text=source_text,
            default_currency=self._default_currency,
        )
        self.decision = self._gate.evaluate(self.draft.ai_confidence)

        if self.decision is ReviewDecision.REQUIRE_REVIEW:
            self._notify(Notification.info(
                "Low confidence",
                "Please review and confirm the parsed data before saving.",
            ))
            await self._audit_logger.log(
                AuditEventBuilder.review_required(
                    owner_id,
                    self.draft.ai_confidence,
                    self._gate.threshold,
                    self.correlation_id,
                )
            )
        return self.draft

    # ------------------------------------------------------------------
    # Save / discard
    # ------------------------------------------------------------------

    async def save(self) -> Optional[ExpenseRecord]:
        """
        Persist the current draft.

        Allowed under REQUIRE_REVIEW too - the gate never blocks saving.
        """
        draft = self.draft
        if draft is None:
            return None
        owner_id = await self._require_owner("save")

        record = finalize_draft(draft, owner_id, today=self._today())
        self.is_saving = True
        try:
            saved = await self._storage.save_expense(record)
        except PersistenceError as e:
            self._notify(Notification.error(str(e) or "Failed to save expense"))
            await self._audit_logger.log(
                AuditEventBuilder.save_failed(owner_id, str(e), self.correlation_id)
            )
            return None
        finally:
            self.is_saving = False

        self._notify(Notification.info("Success", "Expense saved successfully"))
        await self._audit_logger.log(
            AuditEventBuilder.expense_saved(
                saved.id, owner_id, str(saved.amount), saved.currency, self.correlation_id
            )
        )

        # A newer parse that arrived while saving stays on screen
        if self.draft is draft:
            self._reset()
        return saved

    async def discard(self) -> None:
        """Drop the draft and the typed phrase without saving."""
        had_draft = self.draft is not None
        self._reset()
        if had_draft:
            await self._audit_logger.log(
                AuditEventBuilder.draft_discarded(
                    await self._auth.get_current_owner(), self.correlation_id
                )
            )

    def _reset(self) -> None:
        self.message = ""
        self.response = None
        self.draft = None
        self.decision = None
        self.correlation_id = create_correlation_id()

    async def _require_owner(self, action: str) -> str:
        try:
            return await self._auth.require_owner()
        except AuthRequiredError as e:
            self._notify(Notification.error(str(e), title="Sign in required"))
            await self._audit_logger.log(AuditEventBuilder.auth_required(action))
            raise


class DashboardFlow:
    """
    Orchestrates one mounted dashboard.

    - mount(): refresh now, then every interval (one timer per dashboard)
    - set_window(): change the window, refresh now, restart the interval
    - delete(): confirmed delete followed by its own refresh
    - teardown(): cancel the timer

    Refreshes and deletes are serialized by a lock, so a scheduled tick can
    never publish a list fetched before a delete that finished after it.
    Each successful refresh replaces the records and the view wholesale.
    """

    def __init__(
        self,
        auth: AuthProvider,
        storage: ExpenseStorageInterface,
        engine: Optional[AggregationEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
        window: Optional[TimeWindow] = None,
        refresh_interval_seconds: Optional[float] = None,
        query_limit: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        dashboard_settings = get_settings().dashboard
        self._auth = auth
        self._storage = storage
        self._engine = engine or AggregationEngine(dashboard_settings.top_category_count)
        self._audit_logger = audit_logger or AuditLogger()
        self._notify = notifier or NotificationInbox()
        self._query_limit = query_limit or dashboard_settings.query_limit
        self._today = today
        self._lock = asyncio.Lock()

        self.window = window or TimeWindow(dashboard_settings.default_window)
        self.records: list[ExpenseRecord] = []
        self.view = AggregatedView()
        self.last_refresh: Optional[datetime] = None
        self.is_loading = True

        self.scheduler = RefreshScheduler(
            self.refresh,
            interval_seconds=(
                refresh_interval_seconds
                if refresh_interval_seconds is not None
                else dashboard_settings.refresh_interval_seconds
            ),
        )

    async def mount(self) -> None:
        await self._require_owner("dashboard")
        self.scheduler.mount()

    async def teardown(self) -> None:
        await self.scheduler.teardown()

    async def set_window(self, window: TimeWindow) -> None:
        self.window = window
        if self.scheduler.is_mounted:
            await self.scheduler.restart()
        else:
            await self.refresh()

    async def refresh(self) -> bool:
        """Fetch the owner's expenses and recompute the view."""
        owner_id = await self._require_owner("dashboard")
        async with self._lock:
            return await self._refresh_locked(owner_id)

    async def delete(self, expense_id: UUID, confirmed: bool = False) -> bool:
        """
        Delete an expense the user has explicitly confirmed, then re-fetch.

        Deleting an expense that is already gone counts as success.
        """
        if not confirmed:
            return False
        owner_id = await self._require_owner("delete")

        async with self._lock:
            try:
                await self._storage.delete_expense(expense_id, owner_id)
            except PersistenceError as e:
                self._notify(Notification.error("Failed to delete expense"))
                await self._audit_logger.log(
                    AuditEventBuilder.delete_failed(expense_id, owner_id, str(e))
                )
                return False

            self._notify(Notification.info("Success", "Expense deleted"))
            await self._audit_logger.log(
                AuditEventBuilder.expense_deleted(expense_id, owner_id)
            )
            await self._refresh_locked(owner_id)
        return True

    async def _refresh_locked(self, owner_id: str) -> bool:
        try:
            records = await self._storage.list_expenses(
                owner_id,
                window=self.window,
                today=self._today(),
                limit=self._query_limit,
            )
        except PersistenceError as e:
            self._notify(Notification.error("Failed to fetch expenses"))
            await self._audit_logger.log(
                AuditEventBuilder.refresh_failed(owner_id, str(e))
            )
            return False
        finally:
            self.is_loading = False

        self.records = records
        self.view = self._engine.aggregate(records)
        self.last_refresh = datetime.now(timezone.utc)
        await self._audit_logger.log(
            AuditEventBuilder.dashboard_refreshed(owner_id, self.window.value, len(records))
        )
        return True

    async def _require_owner(self, action: str) -> str:
        try:
            return await self._auth.require_owner()
        except AuthRequiredError as e:
            self._notify(Notification.error(str(e), title="Sign in required"))
            await self._audit_logger.log(AuditEventBuilder.auth_required(action))
            raise


def create_storage() -> ExpenseStorageInterface:
    """Build the configured expense store, falling back to memory."""
    backend = get_settings().app.storage_backend
    if backend == "google_sheets":
        try:
            return GoogleSheetsExpenseStorage()
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend=backend, error=str(e))
    return InMemoryExpenseStorage()


def create_app_components(
    auth: AuthProvider,
    storage: Optional[ExpenseStorageInterface] = None,
    notifier: Optional[Notifier] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[ExpenseCaptureFlow, DashboardFlow]:
    """
    Factory function to create the flows for one user session.

    Args:
        auth: Identity of the session's user
        storage: Expense store (defaults to the configured backend)
        notifier: Where notifications go (defaults to an inbox per flow)
        audit_logger: Shared audit logger

    Returns:
        (capture_flow, dashboard_flow)
    """
    storage = storage or create_storage()
    audit_logger = audit_logger or AuditLogger()

    capture_flow = ExpenseCaptureFlow(
        auth=auth,
        parser_client=ParseRequestClient(),
        storage=storage,
        audit_logger=audit_logger,
        notifier=notifier,
    )
    dashboard_flow = DashboardFlow(
        auth=auth,
        storage=storage,
        audit_logger=audit_logger,
        notifier=notifier,
    )
    return capture_flow, dashboard_flow
