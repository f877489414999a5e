"""Per-paper enrichment orchestration.

For each candidate paper:

1. scrape the ar5iv mirror for GitHub links;
2. pick the first link that parses as ``owner/repo`` as the primary repo;
3. fetch GitHub metadata, and the README when asked (weights heuristic);
4. run structured extraction on title + abstract when asked;
5. look the paper up on Papers-with-Code when asked;
6. append the derived rows and upsert the global score.

Adapter failures degrade to missing signals.  Only a failed extraction
fails the paper, and a failed paper never stops the batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Optional

from paperpulse.config import Settings
from paperpulse.database.repository import PaperRepository
from paperpulse.models.enrichment import (
    BenchmarkMapping,
    EnrichmentRecord,
    ScoreRecord,
    StructuredExtraction,
)
from paperpulse.models.paper import Paper, PaperSignals
from paperpulse.services.benchmark_service import BenchmarkService
from paperpulse.services.extraction_service import ExtractionService
from paperpulse.services.github_service import (
    GitHubService,
    RepoMeta,
    RepoReadme,
    detect_weights,
    parse_github_repo,
)
from paperpulse.services.http import PoliteClient
from paperpulse.services.mirror_service import MirrorService
from paperpulse.services.scoring_service import score_paper
from paperpulse.utils.dates import format_timestamp, utc_now
from paperpulse.utils.text import dedupe

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentFlags:
    """Which optional steps a run performs."""

    extract: bool = True
    readme: bool = False
    benchmark_lookup: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "extract": self.extract,
            "readme": self.readme,
            "benchmarkLookup": self.benchmark_lookup,
        }


@dataclass
class ItemResult:
    """Outcome of one paper in a run."""

    id: str
    ok: bool
    info: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "ok": self.ok}
        if self.info is not None:
            data["info"] = self.info
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class EnrichmentReport:
    """Summary returned by a batch run."""

    started_at: str
    finished_at: str
    limit: int
    lookback_days: int
    flags: EnrichmentFlags
    items: list[ItemResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for item in self.items if item.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "limit": self.limit,
            "lookbackDays": self.lookback_days,
            "flags": self.flags.to_dict(),
            "processed": self.processed,
            "items": [item.to_dict() for item in self.items],
        }


class EnrichmentService:
    """Runs the enrichment pipeline over candidate papers."""

    def __init__(
        self,
        repository: PaperRepository,
        mirror: MirrorService,
        github: GitHubService,
        extractor: ExtractionService,
        benchmarks: BenchmarkService,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize enrichment service.

        Args:
            repository: Persistence layer
            mirror: ar5iv scraper
            github: GitHub client
            extractor: Structured extractor
            benchmarks: Papers-with-Code client
            settings: Application settings (scoring constants)
            clock: Time source; tests pass a fixed clock
        """
        self.repository = repository
        self.mirror = mirror
        self.github = github
        self.extractor = extractor
        self.benchmarks = benchmarks
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Single paper
    # ------------------------------------------------------------------

    def enrich_paper(self, paper: Paper, flags: EnrichmentFlags) -> str:
        """Enrich, persist and score one paper.

        Returns:
            Short human-readable summary for the run report

        Raises:
            ExtractionError: If extraction was requested and failed
        """
        scraped = self.mirror.fetch_code_links(paper.arxiv_id).value or []

        repo = next((r for r in map(parse_github_repo, scraped) if r), None)
        meta: Optional[RepoMeta] = None
        readme: Optional[RepoReadme] = None
        if repo is not None:
            meta = self.github.fetch_meta(*repo).value
            if flags.readme:
                readme = self.github.fetch_readme(*repo).value

        structured: Optional[StructuredExtraction] = None
        if flags.extract:
            structured = self.extractor.extract(paper.id, paper.title, paper.abstract)

        code_urls = dedupe([*scraped, *(structured.code_urls if structured else [])])

        mapping: Optional[BenchmarkMapping] = None
        if flags.benchmark_lookup:
            outcome = self.benchmarks.fetch_mapping(paper.id, paper.arxiv_id)
            if outcome.is_ok:
                mapping = outcome.value

        enrichment = self.repository.insert_enrichment(
            EnrichmentRecord(
                paper_id=paper.id,
                code_urls=code_urls,
                primary_repo=f"{repo[0]}/{repo[1]}" if repo else None,
                repo_stars=meta.stars if meta else None,
                repo_license=meta.license if meta else None,
                has_weights=detect_weights(readme.text) if readme else None,
                readme_excerpt=readme.excerpt if readme else None,
                readme_sha=readme.sha if readme else None,
            )
        )
        if structured is not None:
            self.repository.insert_structured(structured)
        if mapping is not None:
            self.repository.insert_benchmark_mapping(mapping)

        signals = PaperSignals.from_records(paper, enrichment, structured, mapping)
        score = score_paper(signals, [], self.settings.scoring, self.clock())
        self.repository.upsert_score(
            ScoreRecord(
                paper_id=paper.id,
                global_score=score.global_score,
                components=score.components,
                updated_at=format_timestamp(self.clock()),
            )
        )

        info = f"{len(code_urls)} code urls"
        if mapping is not None:
            info += "; pwc" if mapping.found else "; pwc not found"
        return info

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def _process(self, paper: Paper, flags: EnrichmentFlags) -> ItemResult:
        try:
            info = self.enrich_paper(paper, flags)
        except Exception as e:
            logger.error("Enrichment failed for %s: %s", paper.arxiv_id, e)
            return ItemResult(id=paper.arxiv_id, ok=False, error=str(e) or type(e).__name__)
        logger.info("Enriched %s: %s", paper.arxiv_id, info)
        return ItemResult(id=paper.arxiv_id, ok=True, info=info)

    def run(
        self,
        candidates: list[Paper],
        flags: EnrichmentFlags,
        limit: int,
        lookback_days: int,
        workers: int = 1,
    ) -> EnrichmentReport:
        """Enrich every candidate and collect per-item outcomes.

        Args:
            candidates: Papers to process (from CandidateSelector)
            flags: Optional steps to run
            limit: Echoed in the report
            lookback_days: Echoed in the report
            workers: 1 processes sequentially; more uses a bounded thread pool

        Returns:
            EnrichmentReport with items in candidate order
        """
        started_at = format_timestamp(self.clock())
        if flags.extract and not self.extractor.available:
            logger.warning("No active LLM profile; structured extraction disabled for this run")
            flags = replace(flags, extract=False)

        if workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                items = list(executor.map(lambda p: self._process(p, flags), candidates))
        else:
            items = [self._process(p, flags) for p in candidates]

        report = EnrichmentReport(
            started_at=started_at,  # type: ignore[arg-type]
            finished_at=format_timestamp(self.clock()),  # type: ignore[arg-type]
            limit=limit,
            lookback_days=lookback_days,
            flags=flags,
            items=items,
        )
        logger.info("Enrichment run finished: %d/%d ok", report.processed, len(items))
        return report


def build_enrichment_service(settings: Settings, repository: PaperRepository) -> EnrichmentService:
    """Wire real adapters from settings, one polite client per source."""
    cfg = settings.enrich

    def client(source: str) -> PoliteClient:
        return PoliteClient(
            source,
            user_agent=cfg.user_agent,
            timeout=cfg.request_timeout,
            attempts=cfg.retry_attempts,
            base_delay=cfg.retry_base_delay,
            min_interval=cfg.polite_delay,
        )

    return EnrichmentService(
        repository=repository,
        mirror=MirrorService(client("ar5iv")),
        github=GitHubService(client("github"), token=cfg.github_token),
        extractor=ExtractionService(settings.active_llm, timeout=cfg.request_timeout),
        benchmarks=BenchmarkService(client("paperswithcode"), token=cfg.pwc_token),
        settings=settings,
    )
