import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from logging import getLogger
from typing import Any, TypeVar

import typer
from rich.console import Console

from .services.cache import configure_caches
from .services.formatter import format_ignored_signals, format_merge_request_tables, show_progress
from .services.gitlab.auth import GitLabClient
from .services.gitlab.models import EntityKey
from .services.notifications import ConsoleNotifier
from .services.poller import CycleResult, RadarPoller
from .settings import settings

# Configure caches on module load
configure_caches()

app = typer.Typer()
logger = getLogger(__name__)
console = Console()

T = TypeVar("T")

TOKEN_OPTION = typer.Option(None, "--token", help="GitLab Personal Access Token (overrides env var)")


def syncify(f: Callable[..., Any]) -> Callable[..., Any]:
    """This simple decorator converts an async function into a sync function,
    allowing it to work with Typer.
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


async def _with_poller(token: str | None, action: Callable[[RadarPoller], Awaitable[T]]) -> T:
    """Open an authenticated client, run ``action`` with a poller and close the client."""
    gitlab_client = GitLabClient(token_override=token).get_authenticated_client()
    async with gitlab_client:
        poller = RadarPoller(
            gitlab_client,
            notifier=ConsoleNotifier(console),
            notifications_enabled=settings.notifications_enabled,
            include_latest_commit_at=settings.include_latest_commit_at_for_assigned,
        )
        return await action(poller)


async def _run_interactive_cycle(poller: RadarPoller) -> CycleResult:
    with show_progress("Checking merge requests..."):
        result = await poller.run_cycle(interactive=True)
    if result is None:
        raise ValueError(poller.last_error or "Poll cycle did not run")
    return result


def _display(result: CycleResult, show_urls: bool = False) -> None:
    format_merge_request_tables(
        result.assigned,
        result.review_requested,
        active_ignored_signals=result.active_ignored_signals,
        tray=result.tray_indicator,
        show_urls=show_urls,
        console=console,
    )


@app.command(help=f"Display the current installed version of {settings.project_name}.")
def version() -> None:
    from . import __version__

    typer.echo(f"{settings.project_name} - {__version__}")


@app.command(help="Check assigned and review-requested merge requests once.")
@syncify
async def check(
    token: str | None = TOKEN_OPTION,
    show_urls: bool = typer.Option(False, "--show-urls", help="Display merge request URLs in output"),
) -> None:
    """Run one poll cycle and display the results."""
    try:
        result = await _with_poller(token, _run_interactive_cycle)
        _display(result, show_urls=show_urls)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Unexpected error during merge request check")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command(help="Keep polling merge requests and print alerts as they appear.")
@syncify
async def watch(
    token: str | None = TOKEN_OPTION,
    interval: int | None = typer.Option(
        None,
        "--interval",
        help="Seconds between poll cycles (default: POLL_INTERVAL_SECONDS)",
    ),
    max_cycles: int | None = typer.Option(None, "--max-cycles", help="Stop after this many cycles"),
) -> None:
    """Poll on a fixed interval until interrupted."""
    poll_interval = interval if interval is not None else settings.poll_interval_seconds

    async def poll_loop(poller: RadarPoller) -> None:
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            result = await poller.run_cycle()
            cycles += 1
            if result is not None:
                console.print(f"[dim]{result.completed_at:%H:%M:%S}[/dim] {result.tray_indicator.tooltip}")
            elif poller.last_error:
                console.print(f"[red]Error:[/red] {poller.last_error}")
            if max_cycles is None or cycles < max_cycles:
                await asyncio.sleep(poll_interval)

    try:
        await _with_poller(token, poll_loop)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command(help="Ignore conflict and/or failed CI alerts on an assigned merge request until its next commit.")
@syncify
async def ignore(
    project_id: int = typer.Argument(..., help="Project id of the merge request"),
    iid: int = typer.Argument(..., help="Merge request iid within the project"),
    conflicts: bool = typer.Option(False, "--conflicts", help="Ignore merge conflicts"),
    failed_ci: bool = typer.Option(False, "--failed-ci", help="Ignore failed CI"),
    token: str | None = TOKEN_OPTION,
) -> None:
    """Record an ignore entry against the merge request's current commit."""
    if not conflicts and not failed_ci:
        console.print("[red]Error:[/red] pass --conflicts and/or --failed-ci")
        raise typer.Exit(1)

    key = EntityKey(project_id=project_id, iid=iid)

    async def record(poller: RadarPoller) -> CycleResult:
        await _run_interactive_cycle(poller)
        return await poller.ignore_alert(key, ignore_conflicts=conflicts, ignore_failed_ci=failed_ci)

    try:
        result = await _with_poller(token, record)
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e.args[0] if e.args else e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    signals = result.active_ignored_signals.get(key)
    if signals is None:
        console.print(f"[yellow]{key} has none of the selected signals right now, nothing to ignore[/yellow]")
    else:
        console.print(f"Ignoring {format_ignored_signals(signals)} on {key} until a new commit")


@app.command(help="Stop ignoring alerts on a merge request.")
@syncify
async def unignore(
    project_id: int = typer.Argument(..., help="Project id of the merge request"),
    iid: int = typer.Argument(..., help="Merge request iid within the project"),
    token: str | None = TOKEN_OPTION,
) -> None:
    key = EntityKey(project_id=project_id, iid=iid)

    async def clear(poller: RadarPoller) -> CycleResult:
        await _run_interactive_cycle(poller)
        return await poller.clear_ignored_alert(key)

    try:
        await _with_poller(token, clear)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"Alerts on {key} are no longer ignored")


if __name__ == "__main__":
    app()
