"""Dispatcher: runs change detection and reminder scheduling as one pass."""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from eventwatch.config import EngineSettings, get_settings
from eventwatch.domain.bus import EventBus
from eventwatch.domain.events import YouWereRegistered, YouWereUnregistered
from eventwatch.domain.handlers import HandlerRegistry
from eventwatch.domain.models import (
    DEFAULT_EVENT_NAME,
    CurrentUser,
    DiagnosticsSnapshot,
    EventInstance,
    RunReport,
    ScheduleState,
)
from eventwatch.domain.ports import Clock, EventSource, IdentityProvider, NotificationSink
from eventwatch.logging import get_logger
from eventwatch.repos.rules import RuleStore
from eventwatch.repos.schedule_state import ScheduleStateStore
from eventwatch.repos.snapshots import SnapshotStore
from eventwatch.services.changes import ChangeDetector, DetectionResult
from eventwatch.services.reminders import ReminderScheduler, ScheduleResult

logger = get_logger(__name__)


class Dispatcher:
    """Composes the stores, detector and scheduler behind one façade.

    Build one instance per process. It owns the in-process view of the live
    reminder ids and the last run time; the persisted schedule state is the
    fallback when nothing has run in this process yet.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        snapshot_store: SnapshotStore,
        schedule_store: ScheduleStateStore,
        identity: IdentityProvider,
        sink: NotificationSink,
        clock: Clock,
        settings: EngineSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.rule_store = rule_store
        self.snapshot_store = snapshot_store
        self.schedule_store = schedule_store
        self.identity = identity
        self.sink = sink
        self.clock = clock
        self.bus = bus or EventBus()
        self.handlers = HandlerRegistry(
            bus=self.bus,
            sink=sink,
            change_id_offset=self.settings.change_id_offset,
            change_id_modulus=self.settings.change_id_modulus,
        )
        self.detector = ChangeDetector()
        self.scheduler = ReminderScheduler(
            sink=sink,
            id_offset=self.settings.reminder_id_offset,
            staleness_window=timedelta(minutes=self.settings.staleness_window_minutes),
        )
        self._live_ids: list[int] = []
        self._last_run_at: datetime | None = None

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def run_pass(
        self, events: list[EventInstance], now: datetime | None = None
    ) -> RunReport:
        """Detect changes, deliver them, then (re)schedule reminders."""
        now = now or self.clock.now()
        with structlog.contextvars.bound_contextvars(pass_at=now.isoformat()):
            logger.info("pass_started", events=len(events))

            rules = await self.rule_store.load_rules()
            previous = await self.snapshot_store.load()
            user = await self._current_user()

            try:
                detection = self.detector.detect(events, previous, user, rules)
            except Exception as e:
                logger.error("change_detection_failed", error=str(e))
                detection = None

            emitted = 0
            if detection is not None:
                await self.snapshot_store.save(detection.snapshots)
                emitted = await self._deliver(detection)

            state = await self._schedule_state()
            try:
                scheduled = await self.scheduler.schedule(events, rules, now, state)
            except Exception as e:
                logger.error("reminder_scheduling_failed", error=str(e))
                scheduled = ScheduleResult(live_ids=list(state.notification_ids))
            await self.schedule_store.save(
                ScheduleState(notification_ids=scheduled.live_ids, last_run_at=now)
            )
            self._live_ids = scheduled.live_ids
            self._last_run_at = now

            report = RunReport(
                changes_emitted=emitted,
                reminders_scheduled=len(scheduled.scheduled),
                failed_events=detection.failed_event_ids if detection else [],
                ran_at=now,
            )
            logger.info(
                "pass_completed",
                changes_emitted=report.changes_emitted,
                reminders_scheduled=report.reminders_scheduled,
                failed_events=len(report.failed_events),
            )
            return report

    async def run_from_source(
        self, source: EventSource, now: datetime | None = None
    ) -> RunReport:
        """Fetch today plus the configured days ahead, then run a pass.

        A failed fetch leaves all persisted state untouched.
        """
        now = now or self.clock.now()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=self.settings.fetch_days_ahead, hours=23, minutes=59)
        try:
            events = await source.fetch_instances(start, end)
        except Exception as e:
            logger.error("event_fetch_failed", error=str(e))
            return RunReport(ran_at=now)
        return await self.run_pass(events, now)

    # ------------------------------------------------------------------
    # Direct actions
    # ------------------------------------------------------------------

    async def notify_registration(
        self, event_id: int, registered: bool, display_name: str | None = None
    ) -> int | None:
        """Show an immediate notice for a registration the user just made.

        Returns the notification id, or None when the sink rejected it.
        """
        change_type = YouWereRegistered if registered else YouWereUnregistered
        change = change_type(
            event_id=event_id, display_name=display_name or DEFAULT_EVENT_NAME
        )
        try:
            await self.bus.publish(change)
        except Exception as e:
            logger.warning(
                "registration_notice_failed", event_id=event_id, error=str(e)
            )
            return None
        return self.handlers.notification_id_for(event_id)

    async def clear_scheduled(self) -> int:
        """Cancel every tracked reminder. Returns how many were cancelled."""
        state = await self._schedule_state()
        cancelled = await self.scheduler.cancel_all(state.notification_ids)
        await self.schedule_store.save(
            ScheduleState(notification_ids=[], last_run_at=state.last_run_at)
        )
        self._live_ids = []
        logger.info("scheduled_reminders_cleared", cancelled=cancelled)
        return cancelled

    async def get_diagnostics(self) -> DiagnosticsSnapshot:
        try:
            enabled = await self.sink.are_enabled()
        except Exception as e:
            logger.warning("sink_status_failed", error=str(e))
            enabled = False

        state = await self._schedule_state()
        rules = await self.rule_store.stored_rules()
        snapshots = await self.snapshot_store.load()
        return DiagnosticsSnapshot(
            notifications_enabled=enabled,
            scheduled_count=len(state.notification_ids),
            scheduled_ids=sorted(state.notification_ids),
            last_run_at=state.last_run_at,
            rule_count=len(rules),
            snapshot_count=len(snapshots),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _current_user(self) -> CurrentUser:
        try:
            return await self.identity.current_user()
        except Exception as e:
            logger.warning("identity_lookup_failed", error=str(e))
            return CurrentUser()

    async def _schedule_state(self) -> ScheduleState:
        """In-process state when this process has run, else the persisted one."""
        state = await self.schedule_store.load()
        if self._last_run_at is None:
            return state
        try:
            newer = state.last_run_at is None or self._last_run_at >= state.last_run_at
        except TypeError:
            newer = True
        if newer:
            return ScheduleState(
                notification_ids=list(self._live_ids), last_run_at=self._last_run_at
            )
        return state

    async def _deliver(self, detection: DetectionResult) -> int:
        emitted = 0
        for change in detection.changes:
            try:
                await self.bus.publish(change)
            except Exception as e:
                logger.warning(
                    "change_delivery_failed",
                    kind=type(change).__name__,
                    event_id=change.event_id,
                    error=str(e),
                )
                continue
            emitted += 1
        return emitted
