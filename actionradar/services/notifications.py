"""Alert events and tray summary handed to the desktop shell."""

from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Protocol

from rich.console import Console

from actionradar.services.alerts import AlertDiff
from actionradar.services.gitlab.models import EntityKey, MergeRequestHealth, ReviewStatus

logger = getLogger(__name__)

APP_TITLE = "GitLab Action Radar"
MAX_TRAY_COUNT = 99


class AlertKind(str, Enum):
    CONFLICT = "conflict"
    FAILED_CI = "failed_ci"


@dataclass(frozen=True)
class AlertEvent:
    """One interruptive notification about a merge request that newly became risky."""

    kind: AlertKind
    key: EntityKey
    iid: int
    title: str
    url: str
    open_tab: str = "assigned"

    @property
    def notification_title(self) -> str:
        if self.kind == AlertKind.CONFLICT:
            return "Merge conflict detected"
        return "CI pipeline failed"

    @property
    def notification_body(self) -> str:
        return f"!{self.iid} {self.title}"


def build_alert_events(diff: AlertDiff) -> list[AlertEvent]:
    """Turn a diff into events, conflicts first."""
    events: list[AlertEvent] = []
    for kind, items in ((AlertKind.CONFLICT, diff.newly_conflicted), (AlertKind.FAILED_CI, diff.newly_failed_ci)):
        for item in items:
            merge_request = item.merge_request
            events.append(
                AlertEvent(
                    kind=kind,
                    key=item.key,
                    iid=merge_request.iid,
                    title=merge_request.title,
                    url=merge_request.web_url,
                )
            )
    return events


@dataclass(frozen=True)
class TrayIndicator:
    conflict_count: int
    failed_ci_count: int
    review_pending_count: int
    actionable_total_count: int

    @property
    def title(self) -> str | None:
        """Badge text next to the tray icon, hidden when nothing is actionable."""
        if self.actionable_total_count <= 0:
            return None
        if self.actionable_total_count > MAX_TRAY_COUNT:
            return f"{MAX_TRAY_COUNT}+"
        return str(self.actionable_total_count)

    @property
    def tooltip(self) -> str:
        if self.actionable_total_count == 0:
            return f"{APP_TITLE}: no merge requests need attention"
        return (
            f"{APP_TITLE}: {self.actionable_total_count} total "
            f"(conflicts {self.conflict_count} / CI failed {self.failed_ci_count} / "
            f"review pending {self.review_pending_count})"
        )


def is_review_pending(item: MergeRequestHealth) -> bool:
    """Review-requested items count as pending unless the reviewer is waiting on the author."""
    if item.reviewer_checks is None:
        return True
    return item.reviewer_checks.review_status != ReviewStatus.WAITING_FOR_AUTHOR


def build_tray_indicator(
    visible_assigned: list[MergeRequestHealth],
    review_requested: list[MergeRequestHealth],
) -> TrayIndicator:
    """Summarize actionable signals for the tray icon.

    Args:
        visible_assigned: Assigned health records after ignored alerts are filtered
        review_requested: Review-requested health records
    """
    conflicted = {item.key for item in visible_assigned if item.has_conflicts}
    failed = {item.key for item in visible_assigned if item.has_failed_ci}
    review_pending = {item.key for item in review_requested if is_review_pending(item)}

    return TrayIndicator(
        conflict_count=len(conflicted),
        failed_ci_count=len(failed),
        review_pending_count=len(review_pending),
        actionable_total_count=len(conflicted | failed | review_pending),
    )


class AlertNotifier(Protocol):
    """Receives alert events at the end of a successful cycle."""

    async def notify(self, events: list[AlertEvent]) -> None: ...


class ConsoleNotifier:
    """Prints alert events to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def notify(self, events: list[AlertEvent]) -> None:
        for event in events:
            color = "yellow" if event.kind == AlertKind.CONFLICT else "red"
            self.console.print(f"[bold {color}]{event.notification_title}:[/bold {color}] {event.notification_body}")
            self.console.print(f"  [dim]{event.url}[/dim]")
        logger.debug(f"Printed {len(events)} alert events")
