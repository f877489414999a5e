"""Console UI for terminal output using Rich."""

from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from paperpulse.models.watchlist import Watchlist
from paperpulse.services.enrichment_service import EnrichmentReport


class ConsoleUI:
    """Rich-based console UI for feeds, enrichment reports and watchlists."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    def info(self, message: str) -> None:
        """Print an info message."""
        self._console.print(message)

    def success(self, message: str) -> None:
        """Print a success message in green."""
        self._console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning message in yellow."""
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error message in red."""
        self._console.print(f"[red]Error:[/red] {message}")

    def ingest_complete(self, counts: dict[str, int]) -> None:
        """Print ingestion summary."""
        self._console.print(
            f"\n[green]Done.[/green] inserted [bold]{counts.get('inserted', 0)}[/bold], "
            f"updated {counts.get('updated', 0)}, unchanged {counts.get('unchanged', 0)}, "
            f"invalid {counts.get('invalid', 0)}"
        )

    def display_feed(self, items: list[dict[str, Any]], next_cursor: Optional[str]) -> None:
        """Display one feed page as a table.

        Args:
            items: Paper summaries (API shape)
            next_cursor: Cursor of the next page, if any
        """
        table = Table(title="Feed")
        table.add_column("#", justify="right")
        table.add_column("arXiv", no_wrap=True)
        table.add_column("Published", width=10)
        table.add_column("Title", overflow="fold")
        table.add_column("Score", justify="right")
        table.add_column("R/C/S/W", justify="right", no_wrap=True)
        table.add_column("Code", justify="center")
        table.add_column("Stars", justify="right")

        for i, item in enumerate(items, 1):
            score = item["score"]
            c = score["components"]
            table.add_row(
                str(i),
                item["arxivId"],
                (item.get("published") or "-")[:10],
                item["title"],
                f"{score['global']:.3f}",
                f"{c['recency']:.2f}/{c['code']:.2f}/{c['stars']:.2f}/{c['watchlist']:.2f}",
                "✓" if item["codeUrls"] else "-",
                str(item["repoStars"]) if item.get("repoStars") is not None else "-",
            )

        self._console.print(table)
        if not items:
            self._console.print("No papers found.")
        elif next_cursor:
            self._console.print(f"Next page: --cursor {next_cursor}")

    def display_report(self, report: EnrichmentReport) -> None:
        """Display an enrichment run summary."""
        table = Table(title=f"Enrichment ({report.started_at} → {report.finished_at})")
        table.add_column("arXiv", no_wrap=True)
        table.add_column("OK", justify="center")
        table.add_column("Detail", overflow="fold")
        for item in report.items:
            table.add_row(
                item.id,
                "[green]✓[/green]" if item.ok else "[red]✗[/red]",
                item.info if item.ok else f"[red]{item.error}[/red]",
            )
        self._console.print(table)
        self._console.print(
            f"Processed [bold]{report.processed}[/bold] of {len(report.items)} "
            f"(flags: {report.flags.to_dict()})"
        )

    def display_watchlists(self, watchlists: list[Watchlist]) -> None:
        table = Table(title="Watchlists")
        table.add_column("ID", no_wrap=True)
        table.add_column("Type")
        table.add_column("Name")
        table.add_column("Terms", overflow="fold")
        table.add_column("Categories", overflow="fold")
        for wl in watchlists:
            table.add_row(
                wl.id or "-",
                wl.type,
                wl.name,
                ", ".join(wl.terms),
                ", ".join(wl.categories) or "-",
            )
        self._console.print(table)
        if not watchlists:
            self._console.print("No watchlists yet. Add one with `paperpulse watchlist add`.")
