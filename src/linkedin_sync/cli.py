# ABOUTME: CLI for the LinkedIn connection sync engine using Typer.
# ABOUTME: Provides login, sync, daemon, enrich, quick-add, status and maintenance commands.

import asyncio
import json
import time
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from linkedin_sync.auth import (
    BrowserSessionRefresher,
    CredentialBag,
    CredentialStore,
    NoSessionError,
)
from linkedin_sync.config import Settings, get_settings
from linkedin_sync.database import DatabaseService
from linkedin_sync.database.stats import get_database_stats
from linkedin_sync.display import (
    ConnectionTable,
    display_access_denied,
    display_auth_status,
    display_error,
    display_login_help,
    display_network_error,
    display_rate_limit_exceeded,
    display_session_status,
    display_sync_summary,
)
from linkedin_sync.errors import LinkedInSyncError
from linkedin_sync.logging_config import setup_logging
from linkedin_sync.models import RateLimitCategory, SyncTrigger
from linkedin_sync.rate_limit import RateLimitDisplay, RateLimiter, RateLimitExceeded
from linkedin_sync.sync import (
    AutoSyncScheduler,
    ProgressEvent,
    SyncInProgressError,
    SyncOrchestrator,
    SyncPhase,
)
from linkedin_sync.voyager import PermanentAccessError, TransientFetchError
from linkedin_sync.voyager.normalizer import format_profile_date

app = typer.Typer(
    name="linkedin-sync",
    help="Sync your LinkedIn connections and their profiles into a local database.",
    add_completion=False,
)

console = Console()

TOS_WARNING_TEXT = """[bold yellow]⚠️  Terms of Service Warning[/bold yellow]

This tool calls LinkedIn's private Voyager API and may violate LinkedIn's Terms of Service.

[bold]By using this tool, you acknowledge that:[/bold]
• You are solely responsible for how you use this tool
• Your LinkedIn account may be restricted or banned
• This tool is provided "as-is" without any warranties
• The authors are not liable for any consequences of using this tool

[bold red]Use at your own risk.[/bold red]"""


def _check_tos_acceptance() -> bool:
    """Check and prompt for ToS acceptance if needed.

    Returns:
        True if ToS is accepted, False otherwise.
    """
    settings = get_settings()

    if settings.tos_accepted:
        return True

    console.print(Panel(TOS_WARNING_TEXT, title="LinkedIn Sync", border_style="yellow"))
    console.print()

    accepted = Confirm.ask("[bold]Do you accept these terms and wish to continue?[/bold]")

    if accepted:
        console.print("[green]Terms accepted. Proceeding...[/green]\n")
        return True
    console.print("[red]Terms declined. Exiting.[/red]")
    return False


def _open_database(settings: Settings) -> DatabaseService:
    db_service = DatabaseService(db_path=settings.db_path)
    db_service.init_db()
    return db_service


def _build_orchestrator(
    settings: Settings, account: str, recover: bool = True
) -> SyncOrchestrator:
    """Wire the orchestrator with its collaborators."""
    db_service = _open_database(settings)
    return SyncOrchestrator(
        db_service,
        settings,
        CredentialStore(settings.accounts_file),
        rate_limiter=RateLimiter(db_service, settings),
        refresher=BrowserSessionRefresher(),
        account_name=account,
        recover=recover,
    )


def _exit_with_error(error: Exception) -> NoReturn:
    """Render a sync engine error and exit with code 1."""
    if isinstance(error, SyncInProgressError):
        console.print(f"[yellow]{error}[/yellow]")
    elif isinstance(error, NoSessionError):
        console.print(display_error(error))
        console.print(display_login_help())
    elif isinstance(error, RateLimitExceeded):
        console.print(display_rate_limit_exceeded(error))
    elif isinstance(error, PermanentAccessError):
        console.print(display_access_denied(error))
    elif isinstance(error, TransientFetchError):
        console.print(display_network_error(error))
    else:
        console.print(display_error(error))
    raise typer.Exit(code=1)


def _describe_event(event: ProgressEvent) -> str:
    total = event.total if event.total is not None else "?"
    if event.phase == SyncPhase.FETCH:
        return f"Fetching connections... {event.current} / {total}"
    if event.phase == SyncPhase.ENRICH:
        return f"Enriching profiles... {event.current} / {total}"
    return f"Sync {event.status.value}..."


AccountOption = Annotated[
    str,
    typer.Option(
        "--account",
        "-a",
        help="Account name the credentials are stored under.",
    ),
]


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """LinkedIn connection sync CLI tool.

    Fetch your connections through LinkedIn's own API under strict rate
    limits, store them locally, and enrich them with full profiles.
    """
    setup_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        console.print("[dim]Use --help to see available commands.[/dim]")


def _load_headers_file(path: Path) -> tuple[dict[str, Any], dict[str, Any]]:
    """Read captured headers and cookies from a JSON file.

    Accepts either {"headers": {...}, "cookies": {...}} or a flat header map.
    """
    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("Headers file must contain a JSON object")
    if "headers" in data:
        return dict(data.get("headers") or {}), dict(data.get("cookies") or {})
    return data, {}


@app.command()
def login(
    account: AccountOption = "default",
    headers_file: Annotated[
        Path | None,
        typer.Option(
            "--headers-file",
            help="JSON file with captured request headers (and optionally cookies).",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
) -> None:
    """Store captured LinkedIn session headers for syncing.

    Securely stores the CSRF token, tracking headers and session cookies in
    the OS keyring.
    """
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    store = CredentialStore(settings.accounts_file)

    if headers_file is not None:
        try:
            headers, cookies = _load_headers_file(headers_file)
        except (json.JSONDecodeError, ValueError) as e:
            console.print(f"[red]Error: Could not read headers file: {e}[/red]")
            raise typer.Exit(code=1) from None
    else:
        console.print()
        console.print(display_login_help())
        console.print()
        token = Prompt.ask("[bold]Paste the csrf-token header[/bold]", password=True, default="")
        jsessionid = Prompt.ask(
            "[bold]Paste the JSESSIONID cookie[/bold]", password=True, default=""
        )
        li_at = Prompt.ask("[bold]Paste the li_at cookie[/bold]", password=True, default="")
        headers = {"csrf-token": token}
        cookies = {"JSESSIONID": jsessionid, "li_at": li_at}

    bag = CredentialBag.capture(headers, {k: v for k, v in cookies.items() if v})
    if not bag.has_token() and bag.cookie_token() is None:
        console.print("[red]Error: A csrf-token header or a JSESSIONID cookie is required.[/red]")
        raise typer.Exit(code=1)

    store.save(bag, account)
    console.print(
        f"[green]Success! Session stored for account '[bold]{account}[/bold]'.[/green]"
    )


@app.command()
def sync(account: AccountOption = "default") -> None:
    """Fetch all connections, store them, and enrich their profiles.

    Manual syncs always pull the full list under the bulk request budget.
    """
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    orchestrator = _build_orchestrator(settings, account)
    started = time.monotonic()

    with console.status("Starting sync...") as spinner:
        orchestrator.channel.subscribe(lambda event: spinner.update(_describe_event(event)))
        try:
            session = asyncio.run(orchestrator.start_sync(SyncTrigger.MANUAL))
        except LinkedInSyncError as e:
            spinner.stop()
            _exit_with_error(e)

    fetched = session.progress_current
    console.print(display_sync_summary(session, fetched, time.monotonic() - started))


@app.command()
def daemon(
    account: AccountOption = "default",
    interval_hours: Annotated[
        float | None,
        typer.Option("--interval-hours", help="Hours between automatic sync attempts."),
    ] = None,
    first_delay: Annotated[
        float,
        typer.Option("--first-delay", help="Seconds to wait before the first attempt."),
    ] = 60.0,
) -> None:
    """Run automatic incremental syncs on a fixed interval until interrupted.

    Attempts are skipped when the stored headers are older than a few minutes.
    """
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    orchestrator = _build_orchestrator(settings, account)
    interval = timedelta(hours=interval_hours or settings.auto_sync_interval_hours)
    scheduler = AutoSyncScheduler(
        orchestrator, interval=interval, first_delay=timedelta(seconds=first_delay)
    )

    console.print(f"[dim]Auto-sync every {interval}. Press Ctrl+C to stop.[/dim]")
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")


@app.command()
def enrich(
    account: AccountOption = "default",
    limit: Annotated[
        int | None,
        typer.Option("--limit", help="Maximum number of profiles to enrich."),
    ] = None,
) -> None:
    """Enrich stored contacts that still need their full profile."""
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    orchestrator = _build_orchestrator(settings, account)

    with console.status("Enriching profiles...") as spinner:
        orchestrator.channel.subscribe(lambda event: spinner.update(_describe_event(event)))
        try:
            session = asyncio.run(orchestrator.enrich_pending(limit))
        except LinkedInSyncError as e:
            spinner.stop()
            _exit_with_error(e)

    console.print(f"[green]Enrichment {session.status.value}.[/green]")


@app.command("quick-add")
def quick_add(
    profile: Annotated[str, typer.Argument(help="Profile URL or public identifier.")],
    account: AccountOption = "default",
) -> None:
    """Add or refresh a single contact with its full profile."""
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    orchestrator = _build_orchestrator(settings, account)

    try:
        detail = asyncio.run(orchestrator.quick_add(profile))
    except LinkedInSyncError as e:
        _exit_with_error(e)

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Label", style="dim")
    table.add_column("Value")
    table.add_row("Name:", f"[cyan]{detail.full_name}[/cyan]")
    table.add_row("Headline:", detail.headline or "")
    for experience in detail.experiences[:3]:
        start = format_profile_date(experience.start_date) or "?"
        end = format_profile_date(experience.end_date) or "present"
        table.add_row(
            "Experience:",
            f"{experience.title} @ {experience.organization} ({start} - {end})",
        )
    table.add_row("Skills:", ", ".join(skill.name for skill in detail.skills[:10]))
    console.print(Panel(table, title="Contact Added", border_style="green", padding=(1, 2)))


def _render_database_stats_panel(stats: dict[str, object]) -> Panel:
    """Render database statistics as a Rich Panel.

    Args:
        stats: Dictionary of database statistics from get_database_stats.

    Returns:
        Rich Panel containing formatted database statistics.
    """
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Label", style="dim")
    table.add_column("Value")

    table.add_row("Total Connections:", f"[cyan]{stats.get('total_connections', 0)}[/cyan]")
    table.add_row("Enriched Profiles:", f"[cyan]{stats.get('enriched_profiles', 0)}[/cyan]")
    table.add_row("Pending Enrichment:", f"[cyan]{stats.get('pending_enrichment', 0)}[/cyan]")
    table.add_row(
        "Unique Organizations:", f"[cyan]{stats.get('unique_organizations', 0)}[/cyan]"
    )
    table.add_row("Unique Locations:", f"[cyan]{stats.get('unique_locations', 0)}[/cyan]")

    return Panel(
        table,
        title="Database Statistics",
        border_style="blue",
        padding=(1, 2),
    )


@app.command()
def status(account: AccountOption = "default") -> None:
    """Show rate limits, sync session, database and account status."""
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    orchestrator = _build_orchestrator(settings, account, recover=False)
    db_service = _open_database(settings)

    rate_display = RateLimitDisplay(RateLimiter(db_service, settings))
    for category in RateLimitCategory:
        console.print(rate_display.render_status(category))
    console.print()

    console.print(display_session_status(orchestrator.get_status()))
    console.print()

    console.print(_render_database_stats_panel(get_database_stats(db_service)))
    console.print()

    accounts = CredentialStore(settings.accounts_file).list_accounts()
    console.print(display_auth_status(orchestrator.get_auth_status(), accounts))


@app.command("reset-limits")
def reset_limits(
    category: Annotated[
        RateLimitCategory | None,
        typer.Option("--category", "-c", help="Only reset this category."),
    ] = None,
) -> None:
    """Reset rate-limit counters. This cannot be undone."""
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    rate_limiter = RateLimiter(_open_database(settings), settings)
    rate_limiter.reset(category)
    scope = category.value if category is not None else "all categories"
    console.print(f"[green]Rate limits reset for {scope}.[/green]")


@app.command()
def connections(
    limit: Annotated[
        int,
        typer.Option("--limit", help="Maximum number of connections to show."),
    ] = 50,
    offset: Annotated[
        int,
        typer.Option("--offset", help="Number of connections to skip."),
    ] = 0,
) -> None:
    """List stored connections, most recently connected first."""
    if not _check_tos_acceptance():
        raise typer.Exit(code=1)

    settings = get_settings()
    stored = _open_database(settings).get_connections(limit=limit, offset=offset)

    if not stored:
        console.print("[yellow]No connections stored. Run 'linkedin-sync sync' first.[/yellow]")
        return

    console.print(ConnectionTable().render(stored, title="Connections"))


if __name__ == "__main__":
    app()
