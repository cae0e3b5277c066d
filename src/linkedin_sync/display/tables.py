# ABOUTME: Rich table rendering for synced connections.
# ABOUTME: Provides ConnectionTable class for displaying stored contacts in formatted tables.

from rich.table import Table

from linkedin_sync.clock import as_utc
from linkedin_sync.models import Connection


class ConnectionTable:
    """Renders Connection data as Rich tables.

    Creates formatted tables with truncated long text, row numbers and an
    enrichment marker.
    """

    MAX_TITLE_LENGTH = 40
    MAX_ORGANIZATION_LENGTH = 25
    MAX_LOCATION_LENGTH = 20

    def _truncate(self, text: str | None, max_length: int) -> str:
        """Truncate text to max length with ellipsis.

        Args:
            text: The text to truncate, or None.
            max_length: Maximum length before truncation.

        Returns:
            Truncated text with ellipsis, or empty string if None.
        """
        if text is None:
            return ""
        if len(text) <= max_length:
            return text
        return text[: max_length - 3] + "..."

    def render(
        self,
        connections: list[Connection],
        title: str | None = None,
    ) -> Table:
        """Render connections as a Rich Table.

        Args:
            connections: List of Connection objects to display.
            title: Optional title for the table.

        Returns:
            Rich Table with formatted connection data.
        """
        table = Table(title=title, show_lines=False)

        table.add_column("#", style="dim", width=4)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Title", style="white", max_width=self.MAX_TITLE_LENGTH)
        table.add_column("Organization", style="magenta", max_width=self.MAX_ORGANIZATION_LENGTH)
        table.add_column("Location", style="green", max_width=self.MAX_LOCATION_LENGTH)
        table.add_column("Connected", style="blue", no_wrap=True)
        table.add_column("Enriched", width=8)

        for index, connection in enumerate(connections, start=1):
            connected_at = as_utc(connection.connected_at)
            table.add_row(
                str(index),
                connection.display_name,
                self._truncate(connection.title, self.MAX_TITLE_LENGTH),
                self._truncate(connection.organization, self.MAX_ORGANIZATION_LENGTH),
                self._truncate(connection.location_name, self.MAX_LOCATION_LENGTH),
                connected_at.strftime("%Y-%m-%d") if connected_at else "",
                "[yellow]pending[/yellow]" if connection.needs_enrichment else "[green]yes[/green]",
            )

        return table
