"""One poll cycle of the radar and the state it leaves behind.

At most one cycle runs at a time: a cycle triggered while another is in flight
is dropped rather than queued. User-initiated suppression waits for the running
cycle instead, so the ignore state always has a single writer.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from logging import getLogger

import httpx
from pydantic import ValidationError

from actionradar.services.alerts import AlertDiff, AlertSnapshot, build_alert_snapshot, detect_alert_diff
from actionradar.services.gitlab.client import GitLabAPIClient, RemoteApiError
from actionradar.services.gitlab.health import build_health_signals
from actionradar.services.gitlab.lookups import EntityLookupCache, MergeRequestLookups
from actionradar.services.gitlab.models import EntityKey, MergeRequestHealth
from actionradar.services.gitlab.relevance import resolve_relevant_merge_requests
from actionradar.services.ignored_alerts import (
    ActiveIgnoredSignals,
    IgnoredAlertState,
    apply_ignored_alerts,
    clear_ignored_alert,
    ignore_alert,
)
from actionradar.services.notifications import (
    AlertEvent,
    AlertNotifier,
    TrayIndicator,
    build_alert_events,
    build_tray_indicator,
)
from actionradar.services.state_store import AlertStateStore

logger = getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    """Everything a successful cycle hands to the presentation and notification layers."""

    current_user_id: int
    all_assigned: list[MergeRequestHealth]
    assigned: list[MergeRequestHealth]
    review_requested: list[MergeRequestHealth]
    active_ignored_signals: dict[EntityKey, ActiveIgnoredSignals]
    ignored_state: IgnoredAlertState
    snapshot: AlertSnapshot
    alert_diff: AlertDiff = field(default_factory=AlertDiff)
    alert_events: list[AlertEvent] = field(default_factory=list)
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def tray_indicator(self) -> TrayIndicator:
        return build_tray_indicator(self.assigned, self.review_requested)

    def find_assigned(self, key: EntityKey) -> MergeRequestHealth | None:
        for item in self.all_assigned:
            if item.key == key:
                return item
        return None


def describe_error(error: Exception) -> str:
    """Human-readable message for a cycle-fatal error."""
    if isinstance(error, RemoteApiError):
        return str(error)
    if isinstance(error, httpx.HTTPError):
        return f"GitLab request failed: {error}"
    if isinstance(error, ValidationError):
        return "GitLab returned an unexpected response"
    return str(error) or error.__class__.__name__


class RadarPoller:
    """Owns the cycle guard, the last successful result and the persisted alert state."""

    def __init__(
        self,
        client: GitLabAPIClient,
        store: AlertStateStore | None = None,
        notifier: AlertNotifier | None = None,
        notifications_enabled: bool = True,
        include_latest_commit_at: bool = True,
    ) -> None:
        self.client = client
        self.store = store if store is not None else AlertStateStore()
        self.notifier = notifier
        self.notifications_enabled = notifications_enabled
        self.include_latest_commit_at = include_latest_commit_at
        self.last_result: CycleResult | None = None
        self.last_error: str | None = None
        self.is_loading = False
        self._guard = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._guard.locked()

    async def run_cycle(self, interactive: bool = False) -> CycleResult | None:
        """Run one poll cycle.

        Args:
            interactive: Whether the cycle was triggered by the user (shows loading)

        Returns:
            The new result, or None if the cycle was dropped or failed
        """
        if self._guard.locked():
            logger.info("Poll cycle already in progress, dropping trigger")
            return None

        async with self._guard:
            self.is_loading = interactive
            try:
                result = await self._run_cycle()
            except (RemoteApiError, httpx.HTTPError, ValidationError) as e:
                self.last_error = describe_error(e)
                logger.error(f"Poll cycle failed: {self.last_error}")
                return None
            finally:
                self.is_loading = False

            self.last_result = result
            self.last_error = None

        if result.alert_events and self.notifications_enabled and self.notifier is not None:
            await self.notifier.notify(result.alert_events)
        return result

    async def _run_cycle(self) -> CycleResult:
        start_time = time.time()
        lookups = MergeRequestLookups(self.client, EntityLookupCache())

        current_user = await self.client.get_current_user()
        user_id = current_user.id
        previous_snapshot = await self.store.load_alert_snapshot(user_id)
        previous_ignored = await self.store.load_ignored_alerts(user_id)

        relevant = await resolve_relevant_merge_requests(self.client, lookups, current_user=current_user)

        all_assigned, review_requested = await asyncio.gather(
            build_health_signals(
                relevant.assigned,
                user_id,
                lookups,
                include_latest_commit_at=self.include_latest_commit_at,
            ),
            build_health_signals(
                relevant.review_requested,
                user_id,
                lookups,
                include_reviewer_checks=True,
            ),
        )

        decision = apply_ignored_alerts(all_assigned, previous_ignored)
        assigned = decision.visible(all_assigned)
        alert_diff = detect_alert_diff(previous_snapshot, assigned)
        snapshot = build_alert_snapshot(assigned)

        await self.store.save_alert_snapshot(user_id, snapshot)
        await self.store.save_ignored_alerts(user_id, decision.next_state)

        result = CycleResult(
            current_user_id=user_id,
            all_assigned=all_assigned,
            assigned=assigned,
            review_requested=review_requested,
            active_ignored_signals=decision.active_signals,
            ignored_state=decision.next_state,
            snapshot=snapshot,
            alert_diff=alert_diff,
            alert_events=build_alert_events(alert_diff),
        )
        logger.info(
            f"Poll cycle completed in {time.time() - start_time:.2f}s: "
            f"{len(assigned)} assigned ({len(decision.ignored_keys)} ignored), "
            f"{len(review_requested)} review requested, {len(lookups.cache)} lookups, "
            f"{len(result.alert_events)} new alerts"
        )
        return result

    async def ignore_alert(self, key: EntityKey, ignore_conflicts: bool, ignore_failed_ci: bool) -> CycleResult:
        """Silence signals on an assigned merge request until its latest commit changes.

        Raises:
            KeyError: If no cycle has run yet or the merge request is not assigned
            ValueError: If neither signal is selected
        """
        async with self._guard:
            result = self._require_result()
            item = result.find_assigned(key)
            if item is None:
                raise KeyError(f"Merge request {key} is not in the assigned list")

            state = ignore_alert(result.ignored_state, item, ignore_conflicts, ignore_failed_ci)
            logger.info(f"Ignoring alerts for {key} (conflicts={ignore_conflicts}, failed_ci={ignore_failed_ci})")
            return await self._store_ignored_state(result, state)

    async def clear_ignored_alert(self, key: EntityKey) -> CycleResult:
        """Stop ignoring alerts for ``key``.

        Raises:
            KeyError: If no cycle has run yet
        """
        async with self._guard:
            result = self._require_result()
            logger.info(f"Clearing ignored alerts for {key}")
            return await self._store_ignored_state(result, clear_ignored_alert(result.ignored_state, key))

    def _require_result(self) -> CycleResult:
        if self.last_result is None:
            raise KeyError("No merge requests loaded yet")
        return self.last_result

    async def _store_ignored_state(self, result: CycleResult, state: IgnoredAlertState) -> CycleResult:
        """Persist ``state`` and re-filter the visible assigned list without re-diffing."""
        decision = apply_ignored_alerts(result.all_assigned, state)
        await self.store.save_ignored_alerts(result.current_user_id, decision.next_state)
        self.last_result = replace(
            result,
            assigned=decision.visible(result.all_assigned),
            active_ignored_signals=decision.active_signals,
            ignored_state=decision.next_state,
        )
        return self.last_result
