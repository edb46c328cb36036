"""Persistence of the scheduled reminder ids and the last run time."""

from __future__ import annotations

from pydantic import ValidationError

from eventwatch.domain.models import ScheduleState
from eventwatch.domain.ports import KeyValueStore
from eventwatch.errors import DataError, StoreError
from eventwatch.logging import get_logger

logger = get_logger(__name__)

SCHEDULE_STATE_KEY = "scheduled_notifications_v1"


def decode_schedule_state(raw: str) -> ScheduleState:
    """Parse persisted schedule state, raising DataError when it is malformed."""
    try:
        return ScheduleState.model_validate_json(raw)
    except ValidationError as e:
        raise DataError(f"schedule state is malformed ({e.error_count()} errors)") from e


class ScheduleStateStore:
    def __init__(self, kv: KeyValueStore, key: str = SCHEDULE_STATE_KEY) -> None:
        self.kv = kv
        self.key = key

    async def load(self) -> ScheduleState:
        try:
            raw = await self.kv.get(self.key)
            return decode_schedule_state(raw) if raw else ScheduleState()
        except StoreError as e:
            logger.warning("schedule_state_load_failed", error=str(e))
        except DataError as e:
            logger.warning("schedule_state_corrupt", error=str(e))
        return ScheduleState()

    async def save(self, state: ScheduleState) -> bool:
        try:
            await self.kv.set(self.key, state.model_dump_json())
        except Exception as e:
            logger.error("schedule_state_save_failed", error=str(e))
            return False
        return True
