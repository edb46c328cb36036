"""Change-notification handlers, wired up when the dispatcher is built."""

from __future__ import annotations

from eventwatch.domain.bus import EventBus
from eventwatch.domain.events import (
    CHANGE_TYPES,
    ChangeNotification,
    DetailsChanged,
    EventCancelled,
    LocationChanged,
    TimeChanged,
    YouWereRegistered,
    YouWereUnregistered,
    format_time,
)
from eventwatch.domain.models import NotificationRequest
from eventwatch.domain.ports import NotificationSink
from eventwatch.logging import get_logger
from eventwatch.services.reminders import (
    DEFAULT_CHANGE_ID_MODULUS,
    DEFAULT_CHANGE_ID_OFFSET,
    change_notification_id,
)

logger = get_logger(__name__)


def render(change: ChangeNotification) -> tuple[str, str]:
    """Return the (title, body) shown for a change notification."""
    name = change.display_name

    if isinstance(change, EventCancelled):
        body = format_time(change.since)
        if change.location_text:
            body = f"{body} • {change.location_text}" if body else change.location_text
        return f"Event cancelled: {name}", body

    if isinstance(change, TimeChanged):
        return f"Time changed: {name}", f"{change.old_time} → {change.new_time}"

    if isinstance(change, LocationChanged):
        return f"Location changed: {name}", change.new_location or "No location"

    if isinstance(change, DetailsChanged):
        return f"Details changed: {name}", "Trainers were updated"

    if isinstance(change, YouWereRegistered):
        return "You were registered", name

    if isinstance(change, YouWereUnregistered):
        return "You were unregistered", name

    return f"Event changed: {name}", ""


class HandlerRegistry:
    """Delivers every change notification published on the bus to the sink."""

    def __init__(
        self,
        bus: EventBus,
        sink: NotificationSink,
        change_id_offset: int = DEFAULT_CHANGE_ID_OFFSET,
        change_id_modulus: int = DEFAULT_CHANGE_ID_MODULUS,
    ) -> None:
        self.bus = bus
        self.sink = sink
        self.change_id_offset = change_id_offset
        self.change_id_modulus = change_id_modulus
        self._register()

    def _register(self) -> None:
        for change_type in CHANGE_TYPES:
            self.bus.subscribe(change_type, self.on_change)

    def notification_id_for(self, event_id: int) -> int:
        return change_notification_id(
            event_id, self.change_id_offset, self.change_id_modulus
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def on_change(self, change: ChangeNotification) -> None:
        title, body = render(change)
        notification_id = self.notification_id_for(change.event_id)
        await self.sink.show(
            NotificationRequest(
                notification_id=notification_id,
                title=title,
                body=body,
                notify_at=None,
                event_id=change.event_id,
            )
        )
        logger.info(
            "change_notification_shown",
            kind=type(change).__name__,
            event_id=change.event_id,
            notification_id=notification_id,
        )
