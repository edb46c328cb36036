"""Change notifications emitted when a fetched event differs from its snapshot."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

TIME_FORMAT = "%H:%M"


def format_time(value: datetime | None) -> str:
    return value.strftime(TIME_FORMAT) if value is not None else ""


class ChangeNotification(BaseModel):
    """Common fields of every change notification."""

    event_id: int
    display_name: str


class EventCancelled(ChangeNotification):
    """Fired when an event flips from active to cancelled."""

    since: datetime | None = None
    location_text: str = ""


class TimeChanged(ChangeNotification):
    """Fired when the start or end of an event moved."""

    old_since: datetime | None = None
    new_since: datetime | None = None

    @property
    def old_time(self) -> str:
        return format_time(self.old_since)

    @property
    def new_time(self) -> str:
        return format_time(self.new_since)


class LocationChanged(ChangeNotification):
    """Fired when the location text of an event changed."""

    new_location: str = ""


class DetailsChanged(ChangeNotification):
    """Fired when the trainer line-up of an event changed."""


class YouWereRegistered(ChangeNotification):
    """Fired when the current user (or one of their couples) was added."""


class YouWereUnregistered(ChangeNotification):
    """Fired when the current user (or one of their couples) was removed."""


CHANGE_TYPES: tuple[type[ChangeNotification], ...] = (
    EventCancelled,
    TimeChanged,
    LocationChanged,
    DetailsChanged,
    YouWereRegistered,
    YouWereUnregistered,
)
