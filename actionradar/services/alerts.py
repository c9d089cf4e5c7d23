"""Detect assigned merge requests that newly became risky since the last cycle."""

from dataclasses import dataclass, field

from actionradar.services.gitlab.models import EntityKey, MergeRequestHealth


@dataclass(frozen=True)
class AlertSnapshotEntry:
    has_conflicts: bool
    has_failed_ci: bool


AlertSnapshot = dict[EntityKey, AlertSnapshotEntry]


@dataclass(frozen=True)
class AlertDiff:
    newly_conflicted: list[MergeRequestHealth] = field(default_factory=list)
    newly_failed_ci: list[MergeRequestHealth] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.newly_conflicted and not self.newly_failed_ci


def build_alert_snapshot(items: list[MergeRequestHealth]) -> AlertSnapshot:
    """Capture the risk flags of ``items`` for diffing against the next cycle."""
    return {
        item.key: AlertSnapshotEntry(has_conflicts=item.has_conflicts, has_failed_ci=item.has_failed_ci)
        for item in items
    }


def detect_alert_diff(previous_snapshot: AlertSnapshot, current_items: list[MergeRequestHealth]) -> AlertDiff:
    """Return merge requests whose conflict or failed-CI flag turned true.

    A merge request missing from ``previous_snapshot`` counts as newly risky.
    """
    newly_conflicted: list[MergeRequestHealth] = []
    newly_failed_ci: list[MergeRequestHealth] = []

    for item in current_items:
        previous = previous_snapshot.get(item.key)
        if item.has_conflicts and not (previous and previous.has_conflicts):
            newly_conflicted.append(item)
        if item.has_failed_ci and not (previous and previous.has_failed_ci):
            newly_failed_ci.append(item)

    return AlertDiff(newly_conflicted=newly_conflicted, newly_failed_ci=newly_failed_ci)
