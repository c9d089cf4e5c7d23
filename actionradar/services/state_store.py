"""Persistence of the alert snapshot and ignore state between poll cycles.

Both mappings are stored as JSON in the ``persistent`` cache together with the
id of the user they belong to. A payload recorded for another user is never
returned, so a snapshot is only ever diffed against the same identity.
"""

import json
from logging import getLogger
from typing import Any

from actionradar.services.alerts import AlertSnapshot, AlertSnapshotEntry
from actionradar.services.cache import get_cache
from actionradar.services.gitlab.models import EntityKey
from actionradar.services.ignored_alerts import IgnoredAlertEntry, IgnoredAlertState
from actionradar.settings import settings

logger = getLogger(__name__)

SNAPSHOT_KEY = "radar:alert_snapshot"
IGNORED_KEY = "radar:ignored_alerts"


class AlertStateStore:
    """Loads and saves radar state through the ``persistent`` cache."""

    def __init__(self, cache_alias: str = "persistent", ttl: int | None = None) -> None:
        self.cache_alias = cache_alias
        self.ttl = ttl if ttl is not None else settings.cache_state_ttl

    async def _load_entries(self, key: str, user_id: int) -> dict[str, Any]:
        cache = get_cache(self.cache_alias)
        raw = await cache.get(key)
        if raw is None:
            return {}

        try:
            payload = json.loads(raw) if isinstance(raw, str) else raw
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Could not parse persisted state {key}: {e}")
            return {}

        if not isinstance(payload, dict) or payload.get("user_id") != user_id:
            logger.info(f"Discarding persisted state {key} recorded for a different user")
            return {}

        entries = payload.get("entries")
        return entries if isinstance(entries, dict) else {}

    async def _save_entries(self, key: str, user_id: int, entries: dict[str, Any]) -> None:
        cache = get_cache(self.cache_alias)
        await cache.set(key, json.dumps({"user_id": user_id, "entries": entries}), ttl=self.ttl)
        logger.debug(f"Persisted {len(entries)} entries to {key}")

    async def load_alert_snapshot(self, user_id: int) -> AlertSnapshot:
        snapshot: AlertSnapshot = {}
        for raw_key, value in (await self._load_entries(SNAPSHOT_KEY, user_id)).items():
            try:
                snapshot[EntityKey.parse(raw_key)] = AlertSnapshotEntry(
                    has_conflicts=value.get("has_conflicts") is True,
                    has_failed_ci=value.get("has_failed_ci") is True,
                )
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed snapshot entry {raw_key!r}: {e}")
        return snapshot

    async def save_alert_snapshot(self, user_id: int, snapshot: AlertSnapshot) -> None:
        entries = {
            str(key): {"has_conflicts": entry.has_conflicts, "has_failed_ci": entry.has_failed_ci}
            for key, entry in snapshot.items()
        }
        await self._save_entries(SNAPSHOT_KEY, user_id, entries)

    async def load_ignored_alerts(self, user_id: int) -> IgnoredAlertState:
        state: IgnoredAlertState = {}
        for raw_key, value in (await self._load_entries(IGNORED_KEY, user_id)).items():
            try:
                commit_signature = value["commit_signature"]
                if not isinstance(commit_signature, str):
                    raise ValueError("commit_signature must be a string")
                state[EntityKey.parse(raw_key)] = IgnoredAlertEntry(
                    commit_signature=commit_signature,
                    ignore_conflicts=value.get("ignore_conflicts") is True,
                    ignore_failed_ci=value.get("ignore_failed_ci") is True,
                )
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed ignore entry {raw_key!r}: {e}")
        return state

    async def save_ignored_alerts(self, user_id: int, state: IgnoredAlertState) -> None:
        entries = {
            str(key): {
                "commit_signature": entry.commit_signature,
                "ignore_conflicts": entry.ignore_conflicts,
                "ignore_failed_ci": entry.ignore_failed_ci,
            }
            for key, entry in state.items()
        }
        await self._save_entries(IGNORED_KEY, user_id, entries)
