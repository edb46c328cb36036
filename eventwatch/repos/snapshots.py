"""Persistence of the per-event snapshots seen on the previous pass."""

from __future__ import annotations

from pydantic import TypeAdapter, ValidationError

from eventwatch.domain.models import EventSnapshot
from eventwatch.domain.ports import KeyValueStore
from eventwatch.errors import DataError, StoreError
from eventwatch.logging import get_logger

logger = get_logger(__name__)

SNAPSHOTS_KEY = "event_snapshots_v1"

_snapshot_list = TypeAdapter(list[EventSnapshot])


def decode_snapshots(raw: str) -> list[EventSnapshot]:
    """Parse a persisted snapshot set, raising DataError when it is malformed."""
    try:
        return _snapshot_list.validate_json(raw)
    except ValidationError as e:
        raise DataError(f"snapshot set is malformed ({e.error_count()} errors)") from e


class SnapshotStore:
    """Loads and replaces the full snapshot set.

    Unreadable data is treated as "no prior state". Save failures are logged
    and swallowed; the current pass still completes, only the next pass loses
    its history.
    """

    def __init__(self, kv: KeyValueStore, key: str = SNAPSHOTS_KEY) -> None:
        self.kv = kv
        self.key = key

    async def load(self) -> dict[int, EventSnapshot]:
        try:
            raw = await self.kv.get(self.key)
            snapshots = decode_snapshots(raw) if raw else []
        except StoreError as e:
            logger.warning("snapshot_load_failed", error=str(e))
            return {}
        except DataError as e:
            logger.warning("snapshot_data_corrupt", error=str(e))
            return {}

        return {snapshot.id: snapshot for snapshot in snapshots}

    async def save(self, snapshots: list[EventSnapshot]) -> bool:
        """Replace the persisted snapshot set. Returns False on failure."""
        try:
            await self.kv.set(self.key, _snapshot_list.dump_json(snapshots).decode())
        except Exception as e:
            logger.error("snapshot_save_failed", error=str(e), count=len(snapshots))
            return False
        logger.debug("snapshots_saved", count=len(snapshots))
        return True
