"""Domain models for event change detection and reminder scheduling."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field, field_serializer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


DEFAULT_EVENT_NAME = "Event"


# ---------------------------------------------------------------------------
# Fetched event instances
# ---------------------------------------------------------------------------


class Person(BaseModel):
    id: str | None = None
    name: str = ""


class Couple(BaseModel):
    id: str | None = None
    man_surname: str = ""
    woman_surname: str = ""


class Registration(BaseModel):
    """A registration is either a single person or a couple."""

    person: Person | None = None
    couple: Couple | None = None


class Trainer(BaseModel):
    id: str | None = None
    name: str = ""


class EventInstance(BaseModel):
    """One concrete occurrence of an event, as returned by the event source."""

    id: int
    is_cancelled: bool = False
    since: datetime | None = None
    until: datetime | None = None
    name: str | None = None
    event_type: str | None = None
    location_text: str | None = None
    trainers: list[Trainer] = Field(default_factory=list)
    registrations: list[Registration] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name
        return DEFAULT_EVENT_NAME

    @property
    def trainer_ids(self) -> list[str]:
        return [t.id for t in self.trainers if t.id and t.id.strip()]


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class EventSnapshot(BaseModel):
    """Minimal state of an event instance as seen on the previous pass."""

    id: int
    since: datetime | None = None
    until: datetime | None = None
    location_text: str = ""
    is_cancelled: bool = False
    trainers_fingerprint: str = "[]"
    registrations_fingerprint: frozenset[str] = Field(default_factory=frozenset)

    @field_serializer("registrations_fingerprint")
    def _sorted_keys(self, keys: frozenset[str]) -> list[str]:
        return sorted(keys)


class NotificationRule(BaseModel):
    """User-configurable reminder policy.

    An empty or missing filter list matches everything on that dimension.
    """

    id: str = Field(default_factory=_new_id)
    name: str = "Default"
    enabled: bool = True
    time_before: timedelta = Field(default=timedelta(minutes=15), gt=timedelta(0))
    event_types: list[str] | None = None
    trainer_ids: list[str] | None = None


class ScheduledNotification(BaseModel):
    notification_id: int
    event_id: int
    rule_id: str
    time: datetime
    title: str
    body: str


class ScheduleState(BaseModel):
    """Live reminder ids and the time of the pass that scheduled them."""

    notification_ids: list[int] = Field(default_factory=list)
    last_run_at: datetime | None = None


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------


class NotificationRequest(BaseModel):
    """A request to the notification sink.

    ``notify_at`` of None means "show immediately". Issuing the same
    ``notification_id`` again replaces the earlier notification.
    """

    notification_id: int
    title: str
    body: str = ""
    notify_at: datetime | None = None
    event_id: int | None = None


class CurrentUser(BaseModel):
    """Participant identities of the signed-in user.

    ``person_id`` and ``couple_ids`` use the same form as registration keys:
    the person name and the ``"<man surname> <woman surname>"`` couple label.
    """

    person_id: str | None = None
    couple_ids: list[str] = Field(default_factory=list)

    @property
    def participant_keys(self) -> frozenset[str]:
        keys = set()
        if self.person_id and self.person_id.strip():
            keys.add(f"p:{self.person_id.strip()}")
        for couple_id in self.couple_ids:
            if couple_id and couple_id.strip():
                keys.add(f"c:{couple_id.strip()}")
        return frozenset(keys)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class RunReport(BaseModel):
    changes_emitted: int = 0
    reminders_scheduled: int = 0
    failed_events: list[int] = Field(default_factory=list)
    ran_at: datetime = Field(default_factory=_utcnow)


class DiagnosticsSnapshot(BaseModel):
    notifications_enabled: bool
    scheduled_count: int
    scheduled_ids: list[int] = Field(default_factory=list)
    last_run_at: datetime | None = None
    rule_count: int = 0
    snapshot_count: int = 0


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class RunPassRequest(BaseModel):
    events: list[EventInstance] = Field(default_factory=list)
    now: datetime | None = None


class RegistrationNoticeRequest(BaseModel):
    registered: bool
    display_name: str | None = None


class RegistrationNoticeResponse(BaseModel):
    notification_id: int
