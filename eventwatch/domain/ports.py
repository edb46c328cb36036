"""Collaborator ports: the interfaces the engine consumes.

Core services depend on these protocols, never on a concrete backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from eventwatch.domain.models import CurrentUser, EventInstance, NotificationRequest


class EventSource(Protocol):
    """Fetches event instances for a date range."""

    async def fetch_instances(
        self, start: datetime, end: datetime
    ) -> list[EventInstance]: ...


class KeyValueStore(Protocol):
    """Durable string documents keyed by name.

    Implementations raise ``StoreError`` when the backend fails.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class IdentityProvider(Protocol):
    async def current_user(self) -> CurrentUser: ...


class NotificationSink(Protocol):
    """Displays notifications now or at a wall-clock time.

    ``show`` is idempotent per id: the same id replaces the earlier request.
    Implementations raise ``SinkError`` when a request is rejected.
    """

    async def show(self, request: NotificationRequest) -> None: ...

    async def cancel(self, notification_id: int) -> None: ...

    async def are_enabled(self) -> bool: ...


class Clock(Protocol):
    def now(self) -> datetime: ...
