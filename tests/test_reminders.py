"""Tests for reminder scheduling."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import NOW, RecordingSink
from eventwatch.domain.models import EventInstance, NotificationRule, ScheduleState
from eventwatch.services.reminders import (
    ReminderScheduler,
    change_notification_id,
    lead_time_label,
)

_HOUR = NotificationRule(id="hour", name="1 hour before", time_before=timedelta(hours=1))
_FIVE = NotificationRule(id="five", name="5 minutes before", time_before=timedelta(minutes=5))


def _make_event(**overrides) -> EventInstance:
    defaults = dict(
        id=1,
        name="Standard lesson",
        event_type="LESSON",
        since=NOW + timedelta(hours=3),
        until=NOW + timedelta(hours=4),
        location_text="Hall A",
    )
    defaults.update(overrides)
    return EventInstance(**defaults)


def _fresh_state() -> ScheduleState:
    return ScheduleState()


# ---------------------------------------------------------------------------
# Labels and ids
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "time_before, label",
    [
        (timedelta(hours=1), "1 hour before"),
        (timedelta(hours=2), "2 hours before"),
        (timedelta(minutes=5), "5 minutes before"),
        (timedelta(minutes=90), "90 minutes before"),
    ],
)
def test_lead_time_label(time_before, label):
    assert lead_time_label(time_before) == label


def test_change_ids_fold_event_id():
    assert change_notification_id(42) == 100_042
    assert change_notification_id(10_042) == change_notification_id(42)
    assert change_notification_id(42, offset=500, modulus=100) == 542


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_schedules_one_reminder_per_matching_rule():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    event = _make_event()

    result = await scheduler.schedule([event], [_HOUR, _FIVE], NOW, _fresh_state())

    assert [r.notification_id for r in sink.scheduled] == [1000, 1001]
    times = [r.notify_at for r in sink.scheduled]
    assert times == [event.since - timedelta(hours=1), event.since - timedelta(minutes=5)]
    assert sink.scheduled[0].title == "1 hour before: Standard lesson"
    assert sink.scheduled[0].body == "11:00 • Hall A"
    assert sink.scheduled[0].event_id == 1
    assert result.live_ids == [1000, 1001]


@pytest.mark.asyncio
async def test_too_late_reminder_is_skipped():
    """A 2h lead time for an event 30 minutes away produces nothing."""
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    rule = NotificationRule(name="2h", time_before=timedelta(hours=2))
    event = _make_event(since=NOW + timedelta(minutes=30))

    result = await scheduler.schedule([event], [rule], NOW, _fresh_state())

    assert result.scheduled == []
    assert sink.requests == []


@pytest.mark.asyncio
async def test_cancelled_past_and_undated_events_are_skipped():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    events = [
        _make_event(id=1, is_cancelled=True),
        _make_event(id=2, since=NOW - timedelta(hours=1)),
        _make_event(id=3, since=None),
    ]

    result = await scheduler.schedule(events, [_HOUR], NOW, _fresh_state())

    assert result.scheduled == []


@pytest.mark.asyncio
async def test_non_matching_rules_are_skipped():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    camps = NotificationRule(name="camps", time_before=timedelta(hours=1), event_types=["CAMP"])
    disabled = NotificationRule(name="off", time_before=timedelta(hours=1), enabled=False)

    result = await scheduler.schedule([_make_event()], [camps, disabled], NOW, _fresh_state())

    assert result.scheduled == []


@pytest.mark.asyncio
async def test_sink_failure_skips_only_that_request():
    sink = RecordingSink(fail_ids={1000})
    scheduler = ReminderScheduler(sink)

    result = await scheduler.schedule([_make_event()], [_HOUR, _FIVE], NOW, _fresh_state())

    assert result.failures == 1
    assert [s.notification_id for s in result.scheduled] == [1001]
    assert result.live_ids == [1001]


@pytest.mark.asyncio
async def test_rescheduling_is_deterministic():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    events = [_make_event(id=1), _make_event(id=2, since=NOW + timedelta(hours=5))]

    first = await scheduler.schedule(events, [_HOUR, _FIVE], NOW, _fresh_state())
    state = ScheduleState(notification_ids=first.live_ids, last_run_at=NOW)
    second = await scheduler.schedule(events, [_HOUR, _FIVE], NOW + timedelta(minutes=2), state)

    assert [(s.notification_id, s.time) for s in first.scheduled] == [
        (s.notification_id, s.time) for s in second.scheduled
    ]
    assert second.live_ids == first.live_ids


# ---------------------------------------------------------------------------
# Staleness window
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stale_ids_are_cancelled_first():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    state = ScheduleState(notification_ids=[1000, 1001, 1002], last_run_at=NOW - timedelta(minutes=10))

    result = await scheduler.schedule([_make_event()], [_HOUR], NOW, state)

    assert sink.cancelled == [1000, 1001, 1002]
    assert result.cleared is True
    assert result.live_ids == [1000]


@pytest.mark.asyncio
async def test_recent_ids_are_kept_within_window():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    state = ScheduleState(notification_ids=[1000, 1005], last_run_at=NOW - timedelta(minutes=2))

    result = await scheduler.schedule([_make_event()], [_HOUR], NOW, state)

    assert sink.cancelled == []
    assert result.cleared is False
    assert result.live_ids == [1000, 1005]


@pytest.mark.asyncio
async def test_first_run_clears_nothing_but_counts_as_stale():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink, id_offset=5000)

    result = await scheduler.schedule([_make_event()], [_HOUR], NOW, _fresh_state())

    assert result.cleared is True
    assert sink.cancelled == []
    assert result.live_ids == [5000]


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_event_with_naive_start_is_skipped_and_counted():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    naive = _make_event(id=2, since=datetime(2026, 6, 1, 12, 0))
    events = [_make_event(id=1), naive, _make_event(id=3, since=NOW + timedelta(hours=5))]

    result = await scheduler.schedule(events, [_HOUR], NOW, _fresh_state())

    assert result.failures == 1
    assert [s.event_id for s in result.scheduled] == [1, 3]
    assert result.live_ids == [1000, 1001]


@pytest.mark.asyncio
async def test_failing_rule_skips_only_that_pair():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    broken = NotificationRule.model_construct(
        id="broken", name="broken", enabled=True, time_before="ten minutes"
    )

    result = await scheduler.schedule([_make_event()], [broken, _HOUR], NOW, _fresh_state())

    assert result.failures == 1
    assert [(s.rule_id, s.notification_id) for s in result.scheduled] == [("hour", 1000)]


@pytest.mark.asyncio
async def test_unusable_last_run_counts_as_stale():
    sink = RecordingSink()
    scheduler = ReminderScheduler(sink)
    state = ScheduleState(notification_ids=[1000, 1001], last_run_at=datetime(2026, 6, 1, 7, 58))

    result = await scheduler.schedule([_make_event()], [_HOUR], NOW, state)

    assert result.cleared is True
    assert sink.cancelled == [1000, 1001]
    assert result.live_ids == [1000]
