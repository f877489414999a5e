"""Command-line interface handlers."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from paperpulse.config import Settings
from paperpulse.console import ConsoleUI
from paperpulse.database.repository import PaperRepository
from paperpulse.exceptions import PaperPulseError, ValidationError
from paperpulse.models.paper import Paper
from paperpulse.services.candidate_service import (
    LIMIT_MAX,
    LIMIT_MIN,
    LOOKBACK_MAX,
    LOOKBACK_MIN,
    CandidateSelector,
    clamp_int,
)
from paperpulse.services.enrichment_service import EnrichmentFlags, build_enrichment_service
from paperpulse.services.feed_service import VIEWS, FeedQuery, FeedService
from paperpulse.services.watchlist_service import validate_watchlist
from paperpulse.utils.dates import utc_now

logger = logging.getLogger(__name__)

DEFAULT_USER = "local"


class PaperPulseCLI:
    """CLI application for paperpulse."""

    def __init__(self, settings: Optional[Settings] = None, ui: Optional[ConsoleUI] = None):
        """Initialize CLI with settings.

        Args:
            settings: Application settings (loaded from .metadata/ if not provided)
            ui: Console UI (tests pass one writing to a buffer)
        """
        self.settings = settings or Settings.load()
        self.ui = ui or ConsoleUI()
        self.repo = PaperRepository(self.settings.db_path)

    def cmd_ingest(self, path: Path) -> dict[str, int]:
        """Import papers from a JSON file (a list, or ``{"papers": [...]}``)."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        entries: Any = data.get("papers", []) if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ValidationError("Ingest file must hold a list of papers")

        counts = {"inserted": 0, "updated": 0, "unchanged": 0, "invalid": 0}
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                counts["invalid"] += 1
                self.ui.warning(f"Entry {index} is not an object; skipped")
                continue
            try:
                paper = Paper.from_dict(entry)
            except PaperPulseError as e:
                counts["invalid"] += 1
                self.ui.warning(str(e))
                continue
            counts[self.repo.upsert_paper(paper)] += 1
        self.ui.ingest_complete(counts)
        return counts

    def cmd_enrich(
        self,
        ids: Optional[str] = None,
        limit: Optional[int] = None,
        days: Optional[int] = None,
        readme: Optional[bool] = None,
        extract: Optional[bool] = None,
        benchmarks: Optional[bool] = None,
        workers: Optional[int] = None,
    ) -> None:
        """Run the enrichment pipeline over selected candidates."""
        cfg = self.settings.enrich
        n = clamp_int(limit, cfg.default_limit, LIMIT_MIN, LIMIT_MAX)
        lookback = clamp_int(days, cfg.default_lookback_days, LOOKBACK_MIN, LOOKBACK_MAX)
        flags = EnrichmentFlags(
            extract=cfg.run_extract if extract is None else extract,
            readme=cfg.fetch_readme if readme is None else readme,
            benchmark_lookup=cfg.run_benchmark_lookup if benchmarks is None else benchmarks,
        )

        candidates = CandidateSelector(self.repo).select(
            utc_now(),
            ids=ids,
            limit=n,
            lookback_days=lookback,
            skip_recently_enriched=cfg.skip_recently_enriched and not ids,
        )
        if not candidates:
            self.ui.warning("No candidate papers found.")
            return

        enricher = build_enrichment_service(self.settings, self.repo)
        with Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            console=self.ui.console,
        ) as progress:
            progress.add_task(f"Enriching {len(candidates)} papers...", total=None)
            report = enricher.run(
                candidates, flags, limit=n, lookback_days=lookback, workers=workers or cfg.workers
            )
        self.ui.display_report(report)

    def cmd_feed(
        self,
        view: Optional[str] = None,
        categories: Optional[str] = None,
        code_only: bool = False,
        has_weights: bool = False,
        with_benchmarks: bool = False,
        limit: int = 25,
        cursor: Optional[str] = None,
        user: Optional[str] = None,
    ) -> None:
        """Print one feed page."""
        query = FeedQuery.from_params(
            {
                "view": view,
                "categories": categories,
                "codeOnly": code_only,
                "hasWeights": has_weights,
                "withBenchmarks": with_benchmarks,
                "limit": limit,
                "cursor": cursor,
            },
            user_id=user,
        )
        page = FeedService(self.repo, self.settings.scoring).assemble(query, utc_now())
        self.ui.display_feed(page.items, page.next_cursor)

    def cmd_watchlist_add(
        self,
        user: str,
        kind: str,
        name: str,
        terms: list[str],
        categories: Optional[list[str]] = None,
    ) -> None:
        watchlist = validate_watchlist(
            {"type": kind, "name": name, "terms": terms, "categories": categories or []}
        )
        created = self.repo.create_watchlist(user, watchlist)
        self.ui.success(f"Watchlist created: {created.id}")

    def cmd_watchlist_list(self, user: str) -> None:
        self.ui.display_watchlists(self.repo.list_watchlists(user))

    def cmd_watchlist_remove(self, user: str, watchlist_id: str) -> None:
        if self.repo.delete_watchlist(user, watchlist_id):
            self.ui.success(f"Watchlist removed: {watchlist_id}")
        else:
            self.ui.warning(f"No watchlist {watchlist_id} for user {user}")


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="paperpulse",
        description="arXiv papers → enrichment → momentum-ranked feed",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Import papers from a JSON file")
    ingest_parser.add_argument("file", type=Path, help="JSON list of arXiv entries")

    # enrich command
    enrich_parser = subparsers.add_parser("enrich", help="Enrich and score candidate papers")
    enrich_parser.add_argument("--ids", help="Comma-separated arXiv ids or URLs")
    enrich_parser.add_argument(
        "--limit", type=int, help=f"Max candidates ({LIMIT_MIN}-{LIMIT_MAX})"
    )
    enrich_parser.add_argument(
        "--days", type=int, help=f"Lookback window in days ({LOOKBACK_MIN}-{LOOKBACK_MAX}, 0 = all)"
    )
    enrich_parser.add_argument(
        "--readme", action="store_true", default=None, help="Fetch GitHub READMEs"
    )
    enrich_parser.add_argument(
        "--no-extract", dest="extract", action="store_false", default=None,
        help="Skip structured extraction",
    )
    enrich_parser.add_argument(
        "--no-benchmarks", dest="benchmarks", action="store_false", default=None,
        help="Skip the Papers-with-Code lookup",
    )
    enrich_parser.add_argument("--workers", type=int, help="Parallel papers (default: 1)")

    # feed command
    feed_parser = subparsers.add_parser("feed", help="Show a feed page")
    feed_parser.add_argument("--view", choices=VIEWS, help="Time window / personalised view")
    feed_parser.add_argument("--categories", help="Comma-separated primary categories")
    feed_parser.add_argument("--code-only", action="store_true")
    feed_parser.add_argument("--has-weights", action="store_true")
    feed_parser.add_argument("--with-benchmarks", action="store_true")
    feed_parser.add_argument("--limit", type=int, default=25, help="Page size (1-50)")
    feed_parser.add_argument("--cursor", help="Cursor printed by the previous page")
    feed_parser.add_argument("--user", default=DEFAULT_USER, help="User id for for-you")

    # watchlist command
    wl_parser = subparsers.add_parser("watchlist", help="Manage watchlists")
    wl_parser.add_argument("--user", default=DEFAULT_USER, help="Owner user id")
    wl_sub = wl_parser.add_subparsers(dest="action", required=True)
    wl_add = wl_sub.add_parser("add", help="Create a watchlist")
    wl_add.add_argument("--type", dest="kind", default="keyword",
                        choices=["keyword", "author", "benchmark", "institution"])
    wl_add.add_argument("--name", required=True)
    wl_add.add_argument("terms", nargs="+", help="Terms to watch")
    wl_add.add_argument("--categories", nargs="*", default=[])
    wl_sub.add_parser("list", help="List watchlists")
    wl_remove = wl_sub.add_parser("remove", help="Delete a watchlist")
    wl_remove.add_argument("id")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the JSON API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    return parser


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )


def serve(host: str = "127.0.0.1", port: int = 8000, reload: bool = False) -> None:
    import uvicorn

    uvicorn.run("paperpulse.api.app:app", host=host, port=port, reload=reload)


def run_cli(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "serve":
        serve(args.host, args.port, args.reload)
        return 0

    ui = ConsoleUI()
    try:
        cli = PaperPulseCLI(ui=ui)
        if args.command == "ingest":
            cli.cmd_ingest(args.file)
        elif args.command == "enrich":
            cli.cmd_enrich(
                ids=args.ids,
                limit=args.limit,
                days=args.days,
                readme=args.readme,
                extract=args.extract,
                benchmarks=args.benchmarks,
                workers=args.workers,
            )
        elif args.command == "feed":
            cli.cmd_feed(
                view=args.view,
                categories=args.categories,
                code_only=args.code_only,
                has_weights=args.has_weights,
                with_benchmarks=args.with_benchmarks,
                limit=args.limit,
                cursor=args.cursor,
                user=args.user,
            )
        elif args.command == "watchlist":
            if args.action == "add":
                cli.cmd_watchlist_add(args.user, args.kind, args.name, args.terms, args.categories)
            elif args.action == "list":
                cli.cmd_watchlist_list(args.user)
            else:
                cli.cmd_watchlist_remove(args.user, args.id)
    except PaperPulseError as e:
        ui.error(str(e))
        return 1
    except (OSError, json.JSONDecodeError) as e:
        ui.error(f"Cannot read input: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run_cli())
