# ABOUTME: Error display helpers for formatting error messages with Rich.
# ABOUTME: Provides user-friendly panels for missing sessions, rate limits, and API errors.

import traceback

from rich.panel import Panel
from rich.text import Text

from linkedin_sync.rate_limit import RateLimitDisplay, RateLimitExceeded


def display_error(error: Exception, verbose: bool = False) -> Panel:
    """Format an error as a Rich Panel.

    Args:
        error: The exception to display.
        verbose: If True, include full traceback information.

    Returns:
        A Rich Panel containing formatted error information.
    """
    error_type = type(error).__name__
    error_message = str(error)

    content = Text()
    content.append(f"{error_type}: ", style="bold red")
    content.append(error_message, style="red")

    if verbose:
        content.append("\n\n")
        content.append("Traceback:", style="dim")
        content.append("\n")
        tb_text = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        content.append(tb_text, style="dim")

    return Panel(
        content,
        title="Error",
        border_style="red",
        padding=(1, 2),
    )


def display_login_help() -> Panel:
    """Display help for capturing the headers the sync engine needs.

    Returns:
        A Rich Panel with step-by-step instructions.
    """
    help_text = """[bold cyan]How to capture your LinkedIn session:[/bold cyan]

1. Open your browser and log in to [link=https://www.linkedin.com]LinkedIn[/link]
2. Open DevTools (F12 or right-click → Inspect) and select the [bold]Network[/bold] tab
3. Visit [bold]My Network → Connections[/bold] and pick any request to [bold]/voyager/api/[/bold]
4. Copy the [bold yellow]csrf-token[/bold yellow] request header
   (optionally also x-li-track, x-li-page-instance and x-li-lang)
5. From [bold]Application → Cookies[/bold], copy [bold yellow]JSESSIONID[/bold yellow]
   and [bold yellow]li_at[/bold yellow]

[dim]Captured headers are only trusted by automatic syncs for a few minutes.[/dim]

[bold]Then run:[/bold]
  linkedin-sync login"""

    return Panel(
        Text.from_markup(help_text),
        title="Session Help",
        border_style="cyan",
        padding=(1, 2),
    )


def display_rate_limit_exceeded(error: RateLimitExceeded) -> Panel:
    """Display information about a request budget being used up.

    Args:
        error: The refusal raised by the rate limiter.

    Returns:
        A Rich Panel showing when the user can try again.
    """
    message = Text()
    message.append(f"{error}\n\n", style="bold red")
    message.append(
        f"The {error.scope.value} request budget protects your account from being flagged.\n",
        style="yellow",
    )
    message.append("It resets in ", style="dim")
    message.append(RateLimitDisplay.format_duration(error.retry_after), style="bold cyan")
    message.append(".\n\n", style="dim")
    message.append(
        "Syncs are never retried automatically; run the command again later.", style="dim"
    )

    return Panel(
        message,
        title="Rate Limit Exceeded",
        border_style="yellow",
        padding=(1, 2),
    )


def display_network_error(error: Exception) -> Panel:
    """Display a user-friendly message for network errors.

    Args:
        error: The network-related exception.

    Returns:
        A Rich Panel with retry suggestions.
    """
    message = Text()
    message.append("Network Error\n\n", style="bold red")
    message.append(f"{error}\n\n", style="red")
    message.append("Suggestions:\n", style="bold")
    message.append("• Check your internet connection\n", style="dim")
    message.append("• Try again in a few moments\n", style="dim")
    message.append("• LinkedIn may be temporarily unavailable", style="dim")

    return Panel(
        message,
        title="Connection Error",
        border_style="red",
        padding=(1, 2),
    )


def display_access_denied(error: Exception) -> Panel:
    """Display a message for a permanent 403/410 refusal."""
    message = Text()
    message.append(f"{error}\n\n", style="bold red")
    message.append("LinkedIn refused access. This is not retried.\n", style="yellow")
    message.append("Visit LinkedIn in your browser and capture a fresh session.", style="dim")

    return Panel(
        message,
        title="Access Denied",
        border_style="red",
        padding=(1, 2),
    )
