from logging import getLogger
from urllib.parse import urlparse

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .gitlab.models import CiStatus, EntityKey, MergeRequest, MergeRequestHealth, ReviewStatus
from .ignored_alerts import ActiveIgnoredSignals
from .notifications import TrayIndicator

logger = getLogger(__name__)

MERGE_REQUEST_PATH_MARKERS = ("/-/merge_requests/", "/merge_requests/")


def get_project_label(merge_request: MergeRequest) -> str:
    """Human-readable project path of a merge request.

    Prefers ``references.full`` ("group/project!12"), then the path of
    ``web_url``, then the numeric project id.
    """
    reference = merge_request.references.full if merge_request.references else None
    if reference and "!" in reference:
        project = reference.split("!")[0]
        if project:
            return project

    path = urlparse(merge_request.web_url).path
    for marker in MERGE_REQUEST_PATH_MARKERS:
        if marker in path:
            project_path = path.split(marker)[0].lstrip("/")
            if project_path:
                return project_path

    return f"Project #{merge_request.project_id}"


def format_merge_request_tables(
    assigned: list[MergeRequestHealth],
    review_requested: list[MergeRequestHealth],
    active_ignored_signals: dict[EntityKey, ActiveIgnoredSignals] | None = None,
    tray: TrayIndicator | None = None,
    show_urls: bool = False,
    console: Console | None = None,
) -> None:
    """Display assigned and review-requested merge requests using Rich.

    Args:
        assigned: Visible assigned health records
        review_requested: Review-requested health records
        active_ignored_signals: Signals currently ignored, keyed by entity key
        tray: Tray summary shown as a header panel
        show_urls: Whether to display merge request URLs
        console: Console to print to (default: a new Console)
    """
    console = console or Console()

    if tray is not None:
        console.print(Panel(tray.tooltip, title="Summary", border_style="cyan"))

    if not assigned and not review_requested:
        console.print(
            Panel(
                "[green]No opened merge requests.[/green]",
                title="No Results",
                border_style="green",
            )
        )
        return

    console.print(_build_table("Assigned", assigned, show_urls, review_columns=False))
    console.print(_build_table("Review requested", review_requested, show_urls, review_columns=True))

    for key, signals in (active_ignored_signals or {}).items():
        console.print(f"[dim]Ignoring {format_ignored_signals(signals)} on {key} until a new commit[/dim]")


def _build_table(title: str, items: list[MergeRequestHealth], show_urls: bool, review_columns: bool) -> Table:
    table = Table(title=f"{title} ({len(items)})", show_header=True, header_style="bold magenta")
    table.add_column("Project", style="white")
    table.add_column("MR", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Signals", style="white")
    table.add_column("CI", style="white", no_wrap=True)
    if review_columns:
        table.add_column("Review", style="white", no_wrap=True)
    else:
        table.add_column("My MR", style="white")
    if show_urls:
        table.add_column("URL", style="dim")

    for item in items:
        merge_request = item.merge_request
        row = [
            get_project_label(merge_request),
            f"!{merge_request.iid}",
            merge_request.title,
            format_signal_badges(item),
            _format_ci_status(item.ci_status),
        ]
        if review_columns:
            row.append(_format_review_status(item.reviewer_checks.review_status) if item.reviewer_checks else "-")
        else:
            row.append(format_own_checks(item))
        if show_urls:
            row.append(merge_request.web_url)
        table.add_row(*row)

    return table


def format_signal_badges(item: MergeRequestHealth) -> str:
    badges = []
    if item.has_failed_ci:
        badges.append("[red]CI failure[/red]")
    if item.has_conflicts:
        badges.append("[yellow]Conflicts[/yellow]")
    if item.has_pending_approvals:
        badges.append("[blue]Pending approvals[/blue]")
    if not badges:
        badges.append("[green]Healthy[/green]")
    return " ".join(badges)


def format_own_checks(item: MergeRequestHealth) -> str:
    if not item.is_created_by_me or item.own_checks is None:
        return "-"
    checks = item.own_checks
    return " ".join(
        [
            "[green]Approved[/green]" if checks.is_approved else "[yellow]Not approved[/yellow]",
            "[red]Unresolved comments[/red]" if checks.has_unresolved_comments else "[green]Comments resolved[/green]",
        ]
    )


def format_ignored_signals(signals: ActiveIgnoredSignals) -> str:
    names = []
    if signals.ignore_conflicts:
        names.append("conflicts")
    if signals.ignore_failed_ci:
        names.append("failed CI")
    return ", ".join(names)


def _format_ci_status(status: CiStatus) -> str:
    color_map = {
        CiStatus.SUCCESS: "green",
        CiStatus.FAILED: "red",
        CiStatus.RUNNING: "cyan",
        CiStatus.PENDING: "yellow",
        CiStatus.CANCELED: "magenta",
    }

    color = color_map.get(status, "dim")
    return f"[{color}]{status.value}[/{color}]"


def _format_review_status(status: ReviewStatus) -> str:
    color_map = {
        ReviewStatus.NEW: "cyan",
        ReviewStatus.NEEDS_REVIEW: "yellow",
        ReviewStatus.WAITING_FOR_AUTHOR: "dim",
    }

    color = color_map[status]
    label = status.value.replace("_", " ")
    return f"[{color}]{label}[/{color}]"


def show_progress(message: str) -> Progress:
    """Create and return a progress spinner.

    Args:
        message: Message to display with spinner

    Returns:
        Progress context manager
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
    )
    progress.add_task(description=message, total=None)
    return progress
