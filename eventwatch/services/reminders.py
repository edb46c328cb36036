"""Service for scheduling reminders ahead of upcoming events."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from eventwatch.domain.events import format_time
from eventwatch.domain.models import (
    EventInstance,
    NotificationRequest,
    NotificationRule,
    ScheduledNotification,
    ScheduleState,
)
from eventwatch.domain.ports import NotificationSink
from eventwatch.logging import get_logger
from eventwatch.services.matching import matches

logger = get_logger(__name__)

DEFAULT_REMINDER_ID_OFFSET = 1000
DEFAULT_CHANGE_ID_OFFSET = 100_000
DEFAULT_CHANGE_ID_MODULUS = 10_000
DEFAULT_STALENESS_WINDOW = timedelta(minutes=5)


def change_notification_id(
    event_id: int,
    offset: int = DEFAULT_CHANGE_ID_OFFSET,
    modulus: int = DEFAULT_CHANGE_ID_MODULUS,
) -> int:
    """Id for an immediate notification about *event_id*.

    Repeated notifications about the same event share one id and replace each
    other on the sink.
    """
    return (event_id % modulus) + offset


def lead_time_label(time_before: timedelta) -> str:
    """Phrase a lead time as "N hour(s) before" or "N minutes before"."""
    minutes = int(time_before.total_seconds() // 60)
    if minutes > 0 and minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour before" if hours == 1 else f"{hours} hours before"
    return f"{minutes} minutes before"


def reminder_body(event: EventInstance) -> str:
    time_str = format_time(event.since)
    location = (event.location_text or "").strip()
    if location:
        return f"{time_str} • {location}"
    return time_str


@dataclass
class ScheduleResult:
    """Outcome of one scheduling pass."""

    scheduled: list[ScheduledNotification] = field(default_factory=list)
    live_ids: list[int] = field(default_factory=list)
    failures: int = 0
    cleared: bool = False


class ReminderScheduler:
    """Turns (event, rule) pairs into future notifications on the sink.

    Reminder ids come from a counter that restarts at ``id_offset`` on every
    pass, so an unchanged event list produces the same ids and the sink
    replaces rather than duplicates them.
    """

    def __init__(
        self,
        sink: NotificationSink,
        id_offset: int = DEFAULT_REMINDER_ID_OFFSET,
        staleness_window: timedelta = DEFAULT_STALENESS_WINDOW,
    ) -> None:
        self.sink = sink
        self.id_offset = id_offset
        self.staleness_window = staleness_window

    async def schedule(
        self,
        events: list[EventInstance],
        rules: list[NotificationRule],
        now: datetime,
        state: ScheduleState,
    ) -> ScheduleResult:
        result = ScheduleResult()

        try:
            stale = (
                state.last_run_at is None
                or now - state.last_run_at > self.staleness_window
            )
        except Exception as e:
            logger.warning("schedule_state_unusable", error=str(e))
            stale = True
        if stale:
            await self.cancel_all(state.notification_ids)
            kept: list[int] = []
            result.cleared = True
        else:
            kept = list(state.notification_ids)

        next_id = self.id_offset
        for event in events:
            try:
                if event.is_cancelled or event.since is None or event.since <= now:
                    continue
            except Exception as e:
                logger.warning("reminder_event_failed", event_id=event.id, error=str(e))
                result.failures += 1
                continue

            for rule in rules:
                try:
                    if not matches(rule, event.event_type, event.trainer_ids):
                        continue
                    notify_time = event.since - rule.time_before
                    if notify_time <= now:
                        continue
                except Exception as e:
                    logger.warning(
                        "reminder_rule_failed",
                        event_id=event.id,
                        rule_id=rule.id,
                        error=str(e),
                    )
                    result.failures += 1
                    continue

                notification_id = next_id
                next_id += 1
                item = ScheduledNotification(
                    notification_id=notification_id,
                    event_id=event.id,
                    rule_id=rule.id,
                    time=notify_time,
                    title=f"{lead_time_label(rule.time_before)}: {event.display_name}",
                    body=reminder_body(event),
                )
                try:
                    await self.sink.show(
                        NotificationRequest(
                            notification_id=item.notification_id,
                            title=item.title,
                            body=item.body,
                            notify_at=item.time,
                            event_id=event.id,
                        )
                    )
                except Exception as e:
                    logger.warning(
                        "reminder_schedule_failed",
                        notification_id=notification_id,
                        event_id=event.id,
                        error=str(e),
                    )
                    result.failures += 1
                    continue

                result.scheduled.append(item)
                logger.debug(
                    "reminder_scheduled",
                    notification_id=notification_id,
                    event_id=event.id,
                    notify_at=notify_time.isoformat(),
                )

        result.live_ids = sorted(
            set(kept) | {item.notification_id for item in result.scheduled}
        )
        logger.info(
            "reminders_scheduled",
            events=len(events),
            scheduled=len(result.scheduled),
            failures=result.failures,
            cleared=result.cleared,
        )
        return result

    async def cancel_all(self, notification_ids: Iterable[int]) -> int:
        """Cancel every id on the sink. Returns how many cancels succeeded."""
        cancelled = 0
        for notification_id in notification_ids:
            try:
                await self.sink.cancel(notification_id)
            except Exception as e:
                logger.warning(
                    "reminder_cancel_failed",
                    notification_id=notification_id,
                    error=str(e),
                )
                continue
            cancelled += 1
        return cancelled
