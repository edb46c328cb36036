"""FastAPI application: entry point for the event change and reminder engine."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException, Response

from eventwatch.adapters import LogNotificationSink, StaticIdentityProvider, SystemClock
from eventwatch.config import get_settings
from eventwatch.domain.models import (
    DiagnosticsSnapshot,
    NotificationRule,
    RegistrationNoticeRequest,
    RegistrationNoticeResponse,
    RunPassRequest,
    RunReport,
)
from eventwatch.logging import setup_logging
from eventwatch.repos.files import JsonFileKeyValueStore
from eventwatch.repos.memory import InMemoryKeyValueStore
from eventwatch.repos.rules import RuleStore
from eventwatch.repos.schedule_state import ScheduleStateStore
from eventwatch.repos.snapshots import SnapshotStore
from eventwatch.services.dispatcher import Dispatcher

settings = get_settings()
setup_logging(json_output=settings.log_json, log_level=settings.log_level)

app = FastAPI(title="Event Change & Reminder Engine")

# ── Singletons (created at import time for simplicity) ────────────────
kv_store = (
    JsonFileKeyValueStore(settings.state_dir)
    if settings.state_dir
    else InMemoryKeyValueStore()
)
rule_store = RuleStore(kv_store)
snapshot_store = SnapshotStore(kv_store)
schedule_store = ScheduleStateStore(kv_store)
sink = LogNotificationSink()

dispatcher = Dispatcher(
    rule_store=rule_store,
    snapshot_store=snapshot_store,
    schedule_store=schedule_store,
    identity=StaticIdentityProvider(settings.person_id, settings.couple_ids),
    sink=sink,
    clock=SystemClock(),
    settings=settings,
)


# ── Routes ────────────────────────────────────────────────────────────


@app.post("/passes", response_model=RunReport)
async def run_pass(payload: RunPassRequest) -> RunReport:
    """Run change detection and reminder scheduling over a fetched event list."""
    return await dispatcher.run_pass(payload.events, payload.now)


@app.get("/diagnostics", response_model=DiagnosticsSnapshot)
async def get_diagnostics() -> DiagnosticsSnapshot:
    return await dispatcher.get_diagnostics()


@app.get("/rules", response_model=list[NotificationRule])
async def list_rules() -> list[NotificationRule]:
    """Return the rule list, creating the default rules on first use."""
    return await rule_store.load_rules()


@app.put("/rules/{rule_id}", response_model=list[NotificationRule])
async def upsert_rule(rule_id: str, rule: NotificationRule) -> list[NotificationRule]:
    """Create or replace a rule; returns the full rule list."""
    if rule.id != rule_id:
        raise HTTPException(status_code=400, detail="Rule id does not match path")
    return await rule_store.upsert_rule(rule)


@app.delete("/rules/{rule_id}", status_code=204)
async def delete_rule(rule_id: str) -> Response:
    if not await rule_store.remove_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return Response(status_code=204)


@app.post(
    "/events/{event_id}/registration", response_model=RegistrationNoticeResponse
)
async def notify_registration(
    event_id: int, body: RegistrationNoticeRequest
) -> RegistrationNoticeResponse:
    """Show an immediate notice after the user registered or unregistered."""
    notification_id = await dispatcher.notify_registration(
        event_id, body.registered, body.display_name
    )
    if notification_id is None:
        raise HTTPException(status_code=503, detail="Notification could not be shown")
    return RegistrationNoticeResponse(notification_id=notification_id)


@app.delete("/reminders")
async def clear_reminders() -> dict:
    """Cancel every scheduled reminder."""
    cancelled = await dispatcher.clear_scheduled()
    return {"cancelled": cancelled}
