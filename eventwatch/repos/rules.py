"""Persistence of the ordered notification rule list."""

from __future__ import annotations

from datetime import timedelta

from pydantic import TypeAdapter, ValidationError

from eventwatch.domain.models import NotificationRule
from eventwatch.domain.ports import KeyValueStore
from eventwatch.errors import DataError, StoreError
from eventwatch.logging import get_logger

logger = get_logger(__name__)

RULES_KEY = "event_notification_rules_v1"

_rule_list = TypeAdapter(list[NotificationRule])


def default_rules() -> list[NotificationRule]:
    """The rule set created on first use: 1 hour and 5 minutes before."""
    return [
        NotificationRule(name="1 hour before", time_before=timedelta(hours=1)),
        NotificationRule(name="5 minutes before", time_before=timedelta(minutes=5)),
    ]


def decode_rules(raw: str) -> list[NotificationRule]:
    """Parse a persisted rule list, raising DataError when it is malformed."""
    try:
        return _rule_list.validate_json(raw)
    except ValidationError as e:
        raise DataError(f"rule list is malformed ({e.error_count()} errors)") from e


class RuleStore:
    """Best-effort store for NotificationRule lists.

    Read failures look like an empty list; write failures are logged and
    never raised.
    """

    def __init__(self, kv: KeyValueStore, key: str = RULES_KEY) -> None:
        self.kv = kv
        self.key = key

    async def stored_rules(self) -> list[NotificationRule]:
        """Return the persisted rules as they are, without creating defaults."""
        try:
            raw = await self.kv.get(self.key)
            return decode_rules(raw) if raw else []
        except StoreError as e:
            logger.warning("rules_load_failed", error=str(e))
        except DataError as e:
            logger.warning("rules_data_corrupt", error=str(e))
        return []

    async def load_rules(self) -> list[NotificationRule]:
        """Return the stored rules, creating the defaults when there are none."""
        rules = await self.stored_rules()
        if not rules:
            rules = default_rules()
            await self.save_rules(rules)
            logger.info("default_rules_created", count=len(rules))
        return rules

    async def save_rules(self, rules: list[NotificationRule]) -> bool:
        try:
            await self.kv.set(self.key, _rule_list.dump_json(rules).decode())
        except Exception as e:
            logger.error("rules_save_failed", error=str(e))
            return False
        return True

    async def upsert_rule(self, rule: NotificationRule) -> list[NotificationRule]:
        """Replace the rule with the same id, or append it."""
        rules = await self.stored_rules()
        for index, existing in enumerate(rules):
            if existing.id == rule.id:
                rules[index] = rule
                break
        else:
            rules.append(rule)
        await self.save_rules(rules)
        return rules

    async def remove_rule(self, rule_id: str) -> bool:
        """Delete a rule by id. Returns True when a rule was removed."""
        rules = await self.stored_rules()
        remaining = [r for r in rules if r.id != rule_id]
        if len(remaining) == len(rules):
            return False
        await self.save_rules(remaining)
        return True
