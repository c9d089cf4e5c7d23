"""Ignore a risk signal on a merge request until a new commit is pushed.

The transition function :func:`apply_ignored_alerts` is pure: it takes the
previous ignore state and the current (unfiltered) assigned health records and
returns the retained state plus which merge requests and signals are
suppressed this cycle.
"""

from dataclasses import dataclass, field

from actionradar.services.gitlab.models import EntityKey, MergeRequestHealth

NO_COMMIT_SIGNATURE = "no-commit"


@dataclass(frozen=True)
class IgnoredAlertEntry:
    commit_signature: str
    ignore_conflicts: bool
    ignore_failed_ci: bool


@dataclass(frozen=True)
class ActiveIgnoredSignals:
    ignore_conflicts: bool
    ignore_failed_ci: bool


IgnoredAlertState = dict[EntityKey, IgnoredAlertEntry]


@dataclass(frozen=True)
class IgnoreDecision:
    ignored_keys: set[EntityKey] = field(default_factory=set)
    active_signals: dict[EntityKey, ActiveIgnoredSignals] = field(default_factory=dict)
    next_state: IgnoredAlertState = field(default_factory=dict)

    def visible(self, items: list[MergeRequestHealth]) -> list[MergeRequestHealth]:
        """Filter out merge requests with an actively ignored signal."""
        return [item for item in items if item.key not in self.ignored_keys]


def to_commit_signature(latest_commit_at: str | None) -> str:
    """Signature used to detect new work; every unknown commit shares the sentinel."""
    trimmed = latest_commit_at.strip() if latest_commit_at else ""
    return trimmed or NO_COMMIT_SIGNATURE


def apply_ignored_alerts(items: list[MergeRequestHealth], previous_state: IgnoredAlertState) -> IgnoreDecision:
    """Carry forward ignore entries whose commit is unchanged and whose signal still holds.

    Entries are dropped once the latest commit signature changes or none of the
    ignored signals is true any more. Entries for merge requests absent from
    ``items`` are dropped as well.
    """
    decision = IgnoreDecision()

    for item in items:
        previous = previous_state.get(item.key)
        if previous is None:
            continue

        if previous.commit_signature != to_commit_signature(item.latest_commit_at):
            continue

        ignore_conflicts = previous.ignore_conflicts and item.has_conflicts
        ignore_failed_ci = previous.ignore_failed_ci and item.has_failed_ci
        if not ignore_conflicts and not ignore_failed_ci:
            continue

        decision.next_state[item.key] = previous
        decision.ignored_keys.add(item.key)
        decision.active_signals[item.key] = ActiveIgnoredSignals(
            ignore_conflicts=ignore_conflicts,
            ignore_failed_ci=ignore_failed_ci,
        )

    return decision


def ignore_alert(
    state: IgnoredAlertState,
    item: MergeRequestHealth,
    ignore_conflicts: bool,
    ignore_failed_ci: bool,
) -> IgnoredAlertState:
    """Record a user-initiated suppression against the item's current commit.

    Returns:
        A new state mapping; ``state`` is left untouched

    Raises:
        ValueError: If neither signal is selected
    """
    if not ignore_conflicts and not ignore_failed_ci:
        raise ValueError("Select at least one signal to ignore")

    next_state = dict(state)
    next_state[item.key] = IgnoredAlertEntry(
        commit_signature=to_commit_signature(item.latest_commit_at),
        ignore_conflicts=ignore_conflicts,
        ignore_failed_ci=ignore_failed_ci,
    )
    return next_state


def clear_ignored_alert(state: IgnoredAlertState, key: EntityKey) -> IgnoredAlertState:
    """Return a copy of ``state`` without the entry for ``key``."""
    return {entry_key: entry for entry_key, entry in state.items() if entry_key != key}
