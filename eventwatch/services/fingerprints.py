"""Projection of fetched event instances into comparable snapshots.

All "might be missing" handling for nested event data lives here, so the
change detector only ever compares typed EventSnapshot values.
"""

from __future__ import annotations

import json

from eventwatch.domain.models import EventInstance, EventSnapshot, Registration, Trainer


def trainers_fingerprint(trainers: list[Trainer]) -> str:
    """JSON-encoded sorted list of trainer names; independent of input order."""
    names = sorted(t.name.strip() for t in trainers if t.name and t.name.strip())
    return json.dumps(names, ensure_ascii=False)


def registration_key(registration: Registration) -> str | None:
    """Normalized participant key, or None when the registration is blank.

    ``p:<name>`` for an individual, ``c:<man surname> <woman surname>`` for a
    couple.
    """
    if registration.person is not None:
        name = (registration.person.name or "").strip()
        return f"p:{name}" if name else None

    if registration.couple is not None:
        man = (registration.couple.man_surname or "").strip()
        woman = (registration.couple.woman_surname or "").strip()
        label = f"{man} {woman}".strip()
        return f"c:{label}" if label else None

    return None


def registrations_fingerprint(registrations: list[Registration]) -> frozenset[str]:
    keys = (registration_key(r) for r in registrations)
    return frozenset(k for k in keys if k)


def project(instance: EventInstance) -> EventSnapshot:
    """Build the snapshot stored for *instance* after this pass."""
    return EventSnapshot(
        id=instance.id,
        since=instance.since,
        until=instance.until,
        location_text=instance.location_text or "",
        is_cancelled=instance.is_cancelled,
        trainers_fingerprint=trainers_fingerprint(instance.trainers),
        registrations_fingerprint=registrations_fingerprint(instance.registrations),
    )
