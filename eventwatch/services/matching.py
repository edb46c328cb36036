"""Rule evaluation against an event's type and trainers."""

from __future__ import annotations

from collections.abc import Iterable

from eventwatch.domain.models import NotificationRule


def matches(
    rule: NotificationRule,
    event_type: str | None,
    trainer_ids: Iterable[str] | None,
) -> bool:
    """Return True when *rule* applies to an event.

    An empty filter list passes its gate; the type gate compares without
    regard to case.
    """
    if not rule.enabled:
        return False

    if rule.event_types:
        if not event_type:
            return False
        wanted = event_type.casefold()
        if not any(t.casefold() == wanted for t in rule.event_types):
            return False

    if rule.trainer_ids:
        allowed = set(rule.trainer_ids)
        if not any(tid in allowed for tid in trainer_ids or ()):
            return False

    return True


def should_notify(
    rules: Iterable[NotificationRule],
    event_type: str | None,
    trainer_ids: Iterable[str] | None,
) -> bool:
    """True when any enabled rule matches (first match wins)."""
    trainer_ids = list(trainer_ids or ())
    return any(matches(rule, event_type, trainer_ids) for rule in rules)
