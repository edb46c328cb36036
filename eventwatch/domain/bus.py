"""Simple in-process event bus with async handler support."""

from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Callable


class EventBus:
    """Publish/subscribe bus for change notifications.

    Handlers run in registration order. Coroutine handlers are awaited before
    the next handler starts. An exception raised by a handler propagates to
    the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable) -> None:
        self._subscribers[event_type].append(handler)

    async def publish(self, event: Any) -> None:
        for handler in self._subscribers.get(type(event), []):
            result = handler(event)
            if inspect.isawaitable(result):
                await result
