"""Shared fakes and fixtures for the engine tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from eventwatch.adapters import StaticIdentityProvider
from eventwatch.config import EngineSettings
from eventwatch.domain.models import EventInstance, NotificationRequest
from eventwatch.errors import SinkError, StoreError
from eventwatch.repos.memory import InMemoryKeyValueStore
from eventwatch.repos.rules import RuleStore
from eventwatch.repos.schedule_state import ScheduleStateStore
from eventwatch.repos.snapshots import SnapshotStore
from eventwatch.services.dispatcher import Dispatcher

NOW = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)


class RecordingSink:
    """Notification sink that records requests and can reject chosen ids."""

    def __init__(self, fail_ids: set[int] | None = None, enabled: bool = True) -> None:
        self.fail_ids = fail_ids or set()
        self.enabled = enabled
        self.requests: list[NotificationRequest] = []
        self.cancelled: list[int] = []

    async def show(self, request: NotificationRequest) -> None:
        if request.notification_id in self.fail_ids:
            raise SinkError(f"rejected {request.notification_id}")
        self.requests.append(request)

    async def cancel(self, notification_id: int) -> None:
        self.cancelled.append(notification_id)

    async def are_enabled(self) -> bool:
        return self.enabled

    @property
    def immediate(self) -> list[NotificationRequest]:
        return [r for r in self.requests if r.notify_at is None]

    @property
    def scheduled(self) -> list[NotificationRequest]:
        return [r for r in self.requests if r.notify_at is not None]


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class FailingKeyValueStore:
    """Backend whose every call fails."""

    async def get(self, key: str) -> str | None:
        raise StoreError("backend unavailable")

    async def set(self, key: str, value: str) -> None:
        raise StoreError("backend unavailable")

    async def delete(self, key: str) -> None:
        raise StoreError("backend unavailable")


class FakeEventSource:
    def __init__(self, events: list[EventInstance] | None = None, error: Exception | None = None) -> None:
        self.events = events or []
        self.error = error
        self.calls: list[tuple[datetime, datetime]] = []

    async def fetch_instances(self, start: datetime, end: datetime) -> list[EventInstance]:
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return list(self.events)


@pytest.fixture()
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def dispatcher(kv, sink, clock):
    """Dispatcher wired to in-memory stores; the user is "Jane Doe"."""
    return Dispatcher(
        rule_store=RuleStore(kv),
        snapshot_store=SnapshotStore(kv),
        schedule_store=ScheduleStateStore(kv),
        identity=StaticIdentityProvider(person_id="Jane Doe", couple_ids=["Smith Doe"]),
        sink=sink,
        clock=clock,
        settings=EngineSettings(),
    )
