"""Feed assembly: keyset-paginated paper summaries with live re-ranking.

Rows are read in base order ``published_at DESC, id DESC``.  The cursor
``<timestamp>_<id>`` is the composite key of the last base-ordered row of
the previous page and is applied as a strict less-than.  Time window and
category filters run in SQL; code/weights/benchmark filters run on the
latest derived records, batch by batch, until one row more than the page
size survives, so that every page is full and pages never overlap.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from paperpulse.config import ScoringConfig
from paperpulse.database.repository import PaperRepository
from paperpulse.exceptions import InvalidCursorError, InvalidIdentifierError
from paperpulse.models.enrichment import (
    BenchmarkMapping,
    EnrichmentRecord,
    ScoreResult,
    StructuredExtraction,
)
from paperpulse.models.paper import Paper, PaperSignals
from paperpulse.models.watchlist import Watchlist
from paperpulse.services.candidate_service import as_bool, clamp_int
from paperpulse.services.scoring_service import score_paper
from paperpulse.services.watchlist_service import matching_watchlist_ids
from paperpulse.utils.dates import ensure_aware, format_timestamp, local_midnight
from paperpulse.utils.text import dedupe, normalize_arxiv_id, parse_identifier_list

logger = logging.getLogger(__name__)

VIEWS = ("today", "week", "for-you")
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 50
MIN_BATCH = 50
MAX_COMPARE = 2


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

def encode_cursor(published_at: str, paper_id: str) -> str:
    return f"{published_at}_{paper_id}"


def parse_cursor(cursor: Optional[str]) -> Optional[tuple[str, str]]:
    """Decode ``<timestamp>_<id>`` into a ``(timestamp, id)`` keyset key.

    Raises:
        InvalidCursorError: If the cursor is present but malformed
    """
    if not cursor:
        return None
    timestamp, sep, paper_id = cursor.partition("_")
    canonical = format_timestamp(timestamp) if timestamp else None
    if not sep or not paper_id or canonical is None:
        raise InvalidCursorError(f"Malformed cursor: {cursor!r}")
    return canonical, paper_id


# ---------------------------------------------------------------------------
# Query / page
# ---------------------------------------------------------------------------

@dataclass
class FeedQuery:
    """Feed filter parameters."""

    view: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    code_only: bool = False
    has_weights: bool = False
    with_benchmarks: bool = False
    limit: int = DEFAULT_PAGE_SIZE
    cursor: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any], user_id: Optional[str] = None) -> "FeedQuery":
        """Build from query-string values; unknown views mean no time window."""
        view = params.get("view")
        raw_categories = params.get("categories") or ""
        return cls(
            view=view if view in VIEWS else None,
            categories=[c.strip() for c in str(raw_categories).split(",") if c.strip()],
            code_only=as_bool(params.get("codeOnly", params.get("code")), False),
            has_weights=as_bool(params.get("hasWeights", params.get("weights")), False),
            with_benchmarks=as_bool(
                params.get("withBenchmarks", params.get("benchmarks")), False
            ),
            limit=clamp_int(params.get("limit"), DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE),
            cursor=params.get("cursor") or None,
            user_id=user_id,
        )


@dataclass
class FeedPage:
    items: list[dict[str, Any]]
    next_cursor: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {"items": self.items, "nextCursor": self.next_cursor}


@dataclass
class _Row:
    paper: Paper
    enrichment: Optional[EnrichmentRecord]
    structured: Optional[StructuredExtraction]


def window_start(view: Optional[str], now: datetime) -> Optional[str]:
    """Lower publish-time bound of a view (None = unbounded)."""
    if view == "today":
        return format_timestamp(local_midnight(now))
    if view == "week":
        return format_timestamp(ensure_aware(now) - timedelta(days=7))
    return None


def merged_code_urls(
    enrichment: Optional[EnrichmentRecord], structured: Optional[StructuredExtraction]
) -> list[str]:
    return dedupe(
        [*(enrichment.code_urls if enrichment else []),
         *(structured.code_urls if structured else [])]
    )


def passes_filters(query: FeedQuery, row: _Row) -> bool:
    if query.code_only and not merged_code_urls(row.enrichment, row.structured):
        return False
    if query.has_weights and not (row.enrichment and row.enrichment.has_weights):
        return False
    if query.with_benchmarks and not (row.structured and row.structured.benchmarks):
        return False
    return True


def build_summary(
    paper: Paper,
    enrichment: Optional[EnrichmentRecord],
    structured: Optional[StructuredExtraction],
    mapping: Optional[BenchmarkMapping],
    score: ScoreResult,
) -> dict[str, Any]:
    """Client shape of one feed item."""
    links = paper.links
    return {
        "arxivId": paper.arxiv_id,
        "title": paper.title,
        "authors": list(paper.authors),
        "categories": list(paper.categories),
        "primaryCategory": paper.primary_category,
        "published": paper.published_at,
        "updated": paper.updated_at or paper.published_at,
        "pdfUrl": links["pdf"],
        "codeUrls": merged_code_urls(enrichment, structured),
        "repoStars": enrichment.repo_stars if enrichment else None,
        "hasWeights": bool(enrichment and enrichment.has_weights),
        "method": structured.method if structured else None,
        "tasks": list(structured.tasks) if structured else [],
        "datasets": list(structured.datasets) if structured else [],
        "benchmarks": list(structured.benchmarks) if structured else [],
        "claimedSotaCount": len(structured.claimed_sota) if structured else 0,
        "score": score.to_dict(),
        "links": {
            "abs": links["abs"],
            "pdf": links["pdf"],
            "repo": enrichment.primary_repo if enrichment else None,
            "pwc": mapping.paper_url if mapping else None,
        },
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class FeedService:
    """Assembles feed pages and paper details."""

    def __init__(self, repository: PaperRepository, scoring: ScoringConfig):
        self.repository = repository
        self.scoring = scoring

    def _collect(self, query: FeedQuery, now: datetime) -> list[_Row]:
        """Filtered rows in base order, at most ``limit + 1`` of them."""
        wanted = query.limit + 1
        batch_size = max(wanted, MIN_BATCH)
        after = parse_cursor(query.cursor)
        since = window_start(query.view, now)

        collected: list[_Row] = []
        while len(collected) < wanted:
            batch = self.repository.find_feed_rows(
                batch_size, after=after, since=since, categories=query.categories
            )
            if not batch:
                break
            ids = [p.id for p in batch]
            enrichments = self.repository.latest_enrichments(ids)
            structured = self.repository.latest_structured(ids)
            for paper in batch:
                row = _Row(paper, enrichments.get(paper.id), structured.get(paper.id))
                if passes_filters(query, row):
                    collected.append(row)
                    if len(collected) >= wanted:
                        break
            last = batch[-1]
            after = (last.published_at, last.id)
            if len(batch) < batch_size:
                break
        return collected

    def assemble(self, query: FeedQuery, now: datetime) -> FeedPage:
        """Build one feed page.

        Args:
            query: Filters, page size, cursor and optional user id
            now: Reference time for windows and live recency

        Returns:
            FeedPage with summaries and the next cursor (None when exhausted)

        Raises:
            InvalidCursorError: If the cursor is malformed
        """
        collected = self._collect(query, now)
        page = collected[: query.limit]
        next_cursor = None
        if len(collected) > query.limit and page:
            last = page[-1].paper
            next_cursor = encode_cursor(last.published_at, last.id)  # type: ignore[arg-type]
        if not page:
            return FeedPage(items=[], next_cursor=None)

        ids = [row.paper.id for row in page]
        mappings = self.repository.latest_mappings(ids)
        stored = self.repository.scores_for(ids)
        watchlists: list[Watchlist] = []
        if query.view == "for-you" and query.user_id:
            watchlists = self.repository.list_watchlists(query.user_id)

        scored: list[tuple[_Row, ScoreResult]] = []
        for row in page:
            mapping = mappings.get(row.paper.id)
            record = stored.get(row.paper.id)
            if watchlists or record is None:
                signals = PaperSignals.from_records(
                    row.paper, row.enrichment, row.structured, mapping
                )
                score = score_paper(signals, watchlists, self.scoring, now)
            else:
                score = record.to_result()
            scored.append((row, score))

        if query.view == "for-you":
            # sorted() is stable with reverse=True, so ties keep base order
            scored = sorted(scored, key=lambda item: item[1].global_score, reverse=True)

        items = [
            build_summary(
                row.paper, row.enrichment, row.structured, mappings.get(row.paper.id), score
            )
            for row, score in scored
        ]
        return FeedPage(items=items, next_cursor=next_cursor)

    def paper_detail(
        self, arxiv_id: str, now: datetime, user_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """Summary of one paper plus claims, leaderboards and watchlist hits.

        Returns:
            Detail dict, or None when the paper is unknown

        Raises:
            InvalidIdentifierError: If *arxiv_id* is malformed
        """
        base_id = normalize_arxiv_id(arxiv_id)
        if base_id is None:
            raise InvalidIdentifierError(f"Invalid arXiv identifier: {arxiv_id!r}")
        paper = self.repository.find_by_arxiv_id(base_id)
        if paper is None:
            return None

        ids = [paper.id]
        enrichment = self.repository.latest_enrichments(ids).get(paper.id)
        structured = self.repository.latest_structured(ids).get(paper.id)
        mapping = self.repository.latest_mappings(ids).get(paper.id)
        watchlists = self.repository.list_watchlists(user_id) if user_id else []

        signals = PaperSignals.from_records(paper, enrichment, structured, mapping)
        record = self.repository.scores_for(ids).get(paper.id)
        if watchlists or record is None:
            score = score_paper(signals, watchlists, self.scoring, now)
        else:
            score = record.to_result()

        detail = build_summary(paper, enrichment, structured, mapping, score)
        detail.update({
            "abstract": paper.abstract,
            "repoLicense": enrichment.repo_license if enrichment else None,
            "readmeExcerpt": enrichment.readme_excerpt if enrichment else None,
            "claimedSota": [
                {"benchmark": c.benchmark, "metric": c.metric, "value": c.value, "split": c.split}
                for c in (structured.claimed_sota if structured else [])
            ],
            "params": structured.params if structured else None,
            "tokens": structured.tokens if structured else None,
            "compute": structured.compute if structured else None,
            "pwc": {
                "found": mapping.found,
                "paperUrl": mapping.paper_url,
                "repoUrl": mapping.repo_url,
                "repoStars": mapping.repo_stars,
                "searchUrl": mapping.search_url,
                "leaderboards": [
                    {"label": link.label, "url": link.url} for link in mapping.leaderboard_links
                ],
            } if mapping else None,
            "matchedWatchlists": matching_watchlist_ids(signals, watchlists),
        })
        return detail

    def compare(self, ids: str, now: datetime) -> list[dict[str, Any]]:
        """Side-by-side summaries of up to ``MAX_COMPARE`` papers.

        Items follow the request order; unknown papers come back as
        ``{"arxivId", "found": False}``.

        Raises:
            InvalidIdentifierError: If no id is given or one is malformed
        """
        requested = parse_identifier_list(ids or "")[:MAX_COMPARE]
        if not requested:
            raise InvalidIdentifierError(f"Provide 1 to {MAX_COMPARE} arXiv ids")

        papers = {p.arxiv_id: p for p in self.repository.find_by_arxiv_ids(requested)}
        paper_ids = [p.id for p in papers.values()]
        enrichments = self.repository.latest_enrichments(paper_ids)
        structured = self.repository.latest_structured(paper_ids)
        mappings = self.repository.latest_mappings(paper_ids)
        stored = self.repository.scores_for(paper_ids)

        items: list[dict[str, Any]] = []
        for base_id in requested:
            paper = papers.get(base_id)
            if paper is None:
                items.append({"arxivId": base_id, "found": False})
                continue
            enrichment = enrichments.get(paper.id)
            extraction = structured.get(paper.id)
            mapping = mappings.get(paper.id)
            record = stored.get(paper.id)
            if record is None:
                signals = PaperSignals.from_records(paper, enrichment, extraction, mapping)
                score = score_paper(signals, [], self.scoring, now)
            else:
                score = record.to_result()
            summary = build_summary(paper, enrichment, extraction, mapping, score)
            summary["found"] = True
            items.append(summary)
        return items
