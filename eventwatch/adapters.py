"""Default collaborator adapters: clock, identity and a logging sink."""

from __future__ import annotations

from datetime import datetime, timezone

from eventwatch.domain.models import CurrentUser, NotificationRequest
from eventwatch.logging import get_logger

logger = get_logger(__name__)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class StaticIdentityProvider:
    """Identity fixed at construction time (from settings or a login step)."""

    def __init__(self, person_id: str | None = None, couple_ids: list[str] | None = None) -> None:
        self.user = CurrentUser(person_id=person_id, couple_ids=couple_ids or [])

    async def current_user(self) -> CurrentUser:
        return self.user


class LogNotificationSink:
    """Notification sink for the "log" channel.

    Immediate notifications are logged and appended to ``shown``; future ones
    are kept in ``pending`` keyed by id, so re-issuing an id replaces it.
    """

    channel = "log"

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.pending: dict[int, NotificationRequest] = {}
        self.shown: list[NotificationRequest] = []

    async def show(self, request: NotificationRequest) -> None:
        if request.notify_at is None:
            self.pending.pop(request.notification_id, None)
            self.shown.append(request)
            logger.info(
                "notification_shown",
                channel=self.channel,
                notification_id=request.notification_id,
                title=request.title,
                body=request.body,
            )
            return

        self.pending[request.notification_id] = request
        logger.info(
            "notification_scheduled",
            channel=self.channel,
            notification_id=request.notification_id,
            notify_at=request.notify_at.isoformat(),
            title=request.title,
        )

    async def cancel(self, notification_id: int) -> None:
        self.pending.pop(notification_id, None)

    async def are_enabled(self) -> bool:
        return self.enabled
