"""Service for detecting changes between fetched events and their snapshots."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from eventwatch.domain.events import (
    ChangeNotification,
    DetailsChanged,
    EventCancelled,
    LocationChanged,
    TimeChanged,
    YouWereRegistered,
    YouWereUnregistered,
)
from eventwatch.domain.models import (
    CurrentUser,
    EventInstance,
    EventSnapshot,
    NotificationRule,
)
from eventwatch.logging import get_logger
from eventwatch.services.fingerprints import project
from eventwatch.services.matching import should_notify

logger = get_logger(__name__)


@dataclass
class DetectionResult:
    """Outcome of one detection pass."""

    changes: list[ChangeNotification] = field(default_factory=list)
    snapshots: list[EventSnapshot] = field(default_factory=list)
    failed_event_ids: list[int] = field(default_factory=list)


class ChangeDetector:
    """Diffs the current event list against the previous snapshots.

    Per event, the field checks run in a fixed order (cancelled, time,
    location, trainers) and stop at the first difference found, whether or
    not rule filtering lets that notification through. The registration check
    always runs and is not filtered by rules.
    """

    def detect(
        self,
        current_events: list[EventInstance],
        previous_snapshots: Mapping[int, EventSnapshot],
        user: CurrentUser,
        rules: list[NotificationRule],
    ) -> DetectionResult:
        result = DetectionResult()
        snapshots: dict[int, EventSnapshot] = {}
        user_keys = user.participant_keys

        for event in current_events:
            if event.since is None:
                continue

            try:
                snapshot = project(event)
            except Exception as e:
                logger.warning(
                    "event_projection_failed", event_id=event.id, error=str(e)
                )
                result.failed_event_ids.append(event.id)
                continue

            previous = previous_snapshots.get(event.id)
            if previous is None:
                # First sighting is the baseline, not a change.
                snapshots[event.id] = snapshot
                continue

            try:
                result.changes.extend(
                    self._compare(event, snapshot, previous, user_keys, rules)
                )
            except Exception as e:
                logger.warning(
                    "event_comparison_failed", event_id=event.id, error=str(e)
                )
                result.failed_event_ids.append(event.id)
                snapshots[event.id] = previous
                continue

            snapshots[event.id] = snapshot

        result.snapshots = list(snapshots.values())
        logger.info(
            "changes_detected",
            events=len(current_events),
            changes=len(result.changes),
            failed=len(result.failed_event_ids),
        )
        return result

    def _compare(
        self,
        event: EventInstance,
        current: EventSnapshot,
        previous: EventSnapshot,
        user_keys: frozenset[str],
        rules: list[NotificationRule],
    ) -> list[ChangeNotification]:
        changes: list[ChangeNotification] = []

        change = self._field_change(event, current, previous)
        if change is not None and should_notify(
            rules, event.event_type, event.trainer_ids
        ):
            changes.append(change)

        changes.extend(self._registration_changes(event, current, previous, user_keys))
        return changes

    @staticmethod
    def _field_change(
        event: EventInstance,
        current: EventSnapshot,
        previous: EventSnapshot,
    ) -> ChangeNotification | None:
        name = event.display_name

        if current.is_cancelled and not previous.is_cancelled:
            return EventCancelled(
                event_id=event.id,
                display_name=name,
                since=current.since,
                location_text=current.location_text,
            )
        if current.is_cancelled:
            return None

        if current.since != previous.since or current.until != previous.until:
            return TimeChanged(
                event_id=event.id,
                display_name=name,
                old_since=previous.since,
                new_since=current.since,
            )

        if current.location_text != previous.location_text:
            return LocationChanged(
                event_id=event.id,
                display_name=name,
                new_location=current.location_text,
            )

        if current.trainers_fingerprint != previous.trainers_fingerprint:
            return DetailsChanged(event_id=event.id, display_name=name)

        return None

    @staticmethod
    def _registration_changes(
        event: EventInstance,
        current: EventSnapshot,
        previous: EventSnapshot,
        user_keys: frozenset[str],
    ) -> list[ChangeNotification]:
        if not user_keys:
            return []

        added = current.registrations_fingerprint - previous.registrations_fingerprint
        removed = previous.registrations_fingerprint - current.registrations_fingerprint

        changes: list[ChangeNotification] = []
        if user_keys & added:
            changes.append(
                YouWereRegistered(event_id=event.id, display_name=event.display_name)
            )
        if user_keys & removed:
            changes.append(
                YouWereUnregistered(event_id=event.id, display_name=event.display_name)
            )
        return changes
