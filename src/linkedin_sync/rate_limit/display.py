# ABOUTME: Display helper for rate limiter status using Rich formatting.
# ABOUTME: Renders each category's hourly and daily budget as a dictionary or Rich panel.

from datetime import timedelta
from typing import Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from linkedin_sync.models import RateLimitCategory
from linkedin_sync.rate_limit.service import RateLimiter


class RateLimitDisplay:
    """Display helper for rate limiter status.

    Provides methods to format and render rate limit information
    for display in the CLI using Rich formatting.
    """

    WARNING_THRESHOLD = 5

    def __init__(self, rate_limiter: RateLimiter) -> None:
        """Initialize the display helper.

        Args:
            rate_limiter: The RateLimiter instance to get status from.
        """
        self._rate_limiter = rate_limiter

    @staticmethod
    def format_duration(delta: timedelta) -> str:
        """Format a duration as a human-readable string.

        Args:
            delta: Time remaining until a window rolls over.

        Returns:
            Human-readable string like "5h 23m" or "45m".
        """
        total_seconds = int(delta.total_seconds())

        if total_seconds <= 0:
            return "resetting soon"

        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60

        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    def get_status_dict(self, category: RateLimitCategory) -> dict[str, Any]:
        """Get the current status of one category as a dictionary.

        Args:
            category: The rate-limit category to describe.

        Returns:
            Dictionary containing:
                - category: The category value
                - max_per_hour / max_per_day: Configured limits
                - remaining_hourly / remaining_daily: Actions left in each window
                - hourly_reset_in / daily_reset_in: Time until each window rolls over
                - last_action_time: Datetime of the most recent action (or None)
                - is_warning: True if either window is below the warning threshold
        """
        limits = self._rate_limiter.limits_for(category)
        remaining = self._rate_limiter.remaining(category)
        reset_in = self._rate_limiter.reset_in(category)

        return {
            "category": category.value,
            "max_per_hour": limits.max_per_hour,
            "max_per_day": limits.max_per_day,
            "remaining_hourly": remaining.hourly,
            "remaining_daily": remaining.daily,
            "hourly_reset_in": reset_in.hourly,
            "daily_reset_in": reset_in.daily,
            "last_action_time": self._rate_limiter.last_action_at(category),
            "is_warning": min(remaining.hourly, remaining.daily) < self.WARNING_THRESHOLD,
        }

    def render_status(self, category: RateLimitCategory) -> Panel:
        """Render one category's status as a Rich Panel.

        Args:
            category: The rate-limit category to render.

        Returns:
            A Rich Panel containing the formatted status information.
        """
        status = self.get_status_dict(category)
        warning = status["is_warning"]
        value_style = "red bold" if warning else "green"

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Label", style="dim")
        table.add_column("Value")

        table.add_row(
            "This Hour:",
            Text(
                f"{status['remaining_hourly']} / {status['max_per_hour']} left",
                style=value_style,
            ),
        )
        table.add_row(
            "Today:",
            Text(f"{status['remaining_daily']} / {status['max_per_day']} left", style=value_style),
        )
        table.add_row(
            "Hour Resets In:",
            Text(self.format_duration(status["hourly_reset_in"]), style="cyan"),
        )
        table.add_row(
            "Day Resets In:",
            Text(self.format_duration(status["daily_reset_in"]), style="cyan"),
        )

        if status["last_action_time"]:
            last_action_str = status["last_action_time"].strftime("%Y-%m-%d %H:%M:%S UTC")
        else:
            last_action_str = "No actions yet"
        table.add_row("Last Action:", Text(last_action_str, style="dim"))

        title = f"Rate Limit: {status['category']}"
        if warning:
            if min(status["remaining_hourly"], status["remaining_daily"]) == 0:
                title = f"⚠️  Rate Limit Reached: {status['category']}"
            else:
                title = f"⚠️  Rate Limit Warning: {status['category']}"

        return Panel(
            table,
            title=title,
            border_style="red" if warning else "green",
            padding=(1, 2),
        )
