# ABOUTME: Status display functions for sync sessions and stored credentials.
# ABOUTME: Provides Rich panels summarizing the session state machine and auth freshness.

from datetime import datetime

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from linkedin_sync.clock import as_utc
from linkedin_sync.models import SyncSession, SyncStatus
from linkedin_sync.sync import AuthStatus

STATUS_STYLES: dict[SyncStatus, str] = {
    SyncStatus.IDLE: "dim",
    SyncStatus.SYNCING: "cyan",
    SyncStatus.PAUSED: "yellow",
    SyncStatus.COMPLETED: "green",
    SyncStatus.ERROR: "red",
}


def _format_time(value: datetime | None) -> str:
    value = as_utc(value)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC") if value else "Never"


def display_session_status(session: SyncSession) -> Panel:
    """Display the persisted sync session.

    Args:
        session: The session to describe.

    Returns:
        Rich Panel with status, progress and the last outcome.
    """
    style = STATUS_STYLES.get(session.status, "white")

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Label", style="dim")
    table.add_column("Value")

    table.add_row("Status:", Text(session.status.value, style=f"bold {style}"))
    if session.trigger is not None:
        table.add_row("Trigger:", Text(session.trigger.value))
    total = session.progress_total if session.progress_total is not None else "?"
    table.add_row("Progress:", Text(f"{session.progress_current} / {total}"))
    table.add_row("Last Sync:", Text(_format_time(session.last_sync_at), style="cyan"))
    table.add_row("Total Synced:", Text(str(session.total_synced), style="green"))
    if session.last_error:
        table.add_row("Last Error:", Text(session.last_error, style="red"))

    return Panel(
        table,
        title="Sync Session",
        border_style=style if session.status != SyncStatus.IDLE else "blue",
        padding=(1, 2),
    )


def display_sync_summary(session: SyncSession, fetched: int, duration_seconds: float) -> Panel:
    """Display a summary panel after a sync finished.

    Args:
        session: The final session.
        fetched: Number of connections fetched in this run.
        duration_seconds: Time taken by the run.

    Returns:
        Rich Panel containing the summary.
    """
    if fetched == 0:
        result_text = "[yellow]No new connections[/yellow]"
    elif fetched == 1:
        result_text = "[green]1 connection synced[/green]"
    else:
        result_text = f"[green]{fetched} connections synced[/green]"

    content = Text()
    content.append("Status: ", style="dim")
    content.append(f"{session.status.value}\n", style=STATUS_STYLES.get(session.status, "white"))
    content.append("Results: ", style="dim")
    content.append_text(Text.from_markup(result_text))
    content.append("\n")
    content.append("Duration: ", style="dim")
    content.append(f"{duration_seconds:.2f}s", style="blue")

    return Panel(
        content,
        title="Sync Summary",
        border_style="green" if session.status == SyncStatus.COMPLETED else "yellow",
        padding=(1, 2),
    )


def display_auth_status(auth: AuthStatus, accounts: list[str]) -> Panel:
    """Display stored credentials and whether auto-sync would accept them."""
    content = Text()
    content.append("Accounts: ", style="dim")
    content.append(", ".join(accounts) if accounts else "None", style="cyan")
    content.append("\nCredentials: ", style="dim")
    if not auth.has_credentials:
        content.append("missing", style="red")
    else:
        content.append("stored", style="green")
        content.append("\nCSRF Token: ", style="dim")
        if auth.has_token:
            content.append("present", style="green")
        else:
            content.append("missing", style="red")
        content.append("\nCaptured: ", style="dim")
        content.append(_format_time(auth.captured_at), style="cyan")
        content.append("\nAuto-sync: ", style="dim")
        if auth.fresh_for_auto_sync:
            content.append("fresh", style="green")
        else:
            content.append("stale (auto-sync will be skipped)", style="yellow")

    return Panel(
        content,
        title="Authentication",
        border_style="green" if auth.has_token else "yellow",
        padding=(1, 2),
    )
