"""Paper data model."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from paperpulse.exceptions import InvalidIdentifierError
from paperpulse.utils.dates import format_timestamp
from paperpulse.utils.text import (
    clean_abstract,
    clean_title,
    dedupe,
    normalize_arxiv_id,
    parse_version,
)

if TYPE_CHECKING:
    from paperpulse.models.enrichment import (
        BenchmarkMapping,
        EnrichmentRecord,
        StructuredExtraction,
    )

ARXIV_ABS_URL = "https://arxiv.org/abs/{id}"
ARXIV_PDF_URL = "https://arxiv.org/pdf/{id}.pdf"


@dataclass
class Paper:
    """Represents an arXiv paper, keyed by its version-stripped identifier."""

    arxiv_id: str
    title: str
    abstract: str = ""
    authors: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    primary_category: Optional[str] = None
    published_at: Optional[str] = None
    updated_at: Optional[str] = None
    abs_url: Optional[str] = None
    pdf_url: Optional[str] = None
    latest_version: int = 1

    # Database fields (set after persistence)
    id: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def links(self) -> dict[str, str]:
        """Abstract and PDF links, falling back to the canonical arXiv URLs."""
        return {
            "abs": self.abs_url or ARXIV_ABS_URL.format(id=self.arxiv_id),
            "pdf": self.pdf_url or ARXIV_PDF_URL.format(id=self.arxiv_id),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Paper":
        """Build a paper from an ingestion payload (arXiv search item shape).

        Accepts ``arxivId``/``arxiv_id``, ``summary``/``abstract`` and
        ``published``/``publishedAt`` spellings.
        """
        raw_id = str(data.get("arxivId") or data.get("arxiv_id") or "").strip()
        base_id = normalize_arxiv_id(raw_id)
        if base_id is None:
            raise InvalidIdentifierError(f"Invalid arXiv identifier: {raw_id!r}")

        categories = [str(c) for c in data.get("categories") or [] if c]
        published = format_timestamp(data.get("published") or data.get("publishedAt"))
        updated = format_timestamp(data.get("updated") or data.get("updatedAt")) or published
        return cls(
            arxiv_id=base_id,
            title=clean_title(data.get("title")),
            abstract=clean_abstract(data.get("abstract") or data.get("summary")),
            authors=[str(a).strip() for a in data.get("authors") or [] if str(a).strip()],
            categories=categories,
            primary_category=data.get("primaryCategory")
            or data.get("primary_category")
            or (categories[0] if categories else None),
            published_at=published,
            updated_at=updated,
            abs_url=data.get("absUrl") or data.get("abs_url"),
            pdf_url=data.get("pdfUrl") or data.get("pdf_url"),
            latest_version=parse_version(raw_id),
        )


@dataclass
class PaperSignals:
    """Everything the scorer and the watchlist matcher look at for one paper.

    Built by merging the paper with its latest derived records.
    """

    title: str = ""
    abstract: str = ""
    authors: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    published_at: Optional[str] = None
    code_urls: list[str] = field(default_factory=list)
    has_weights: Optional[bool] = None
    repo_stars: Optional[int] = None
    benchmarks: list[str] = field(default_factory=list)

    @classmethod
    def from_records(
        cls,
        paper: Paper,
        enrichment: Optional["EnrichmentRecord"] = None,
        structured: Optional["StructuredExtraction"] = None,
        mapping: Optional["BenchmarkMapping"] = None,
    ) -> "PaperSignals":
        """Merge a paper with its latest enrichment, extraction and mapping.

        Code URLs are the ordered union of scraped and extracted links;
        stars come from GitHub, falling back to the Papers-with-Code repo.
        """
        code_urls = dedupe(
            [*(enrichment.code_urls if enrichment else []),
             *(structured.code_urls if structured else [])]
        )
        stars = enrichment.repo_stars if enrichment else None
        if stars is None and mapping is not None:
            stars = mapping.repo_stars
        return cls(
            title=paper.title,
            abstract=paper.abstract,
            authors=list(paper.authors),
            categories=list(paper.categories),
            published_at=paper.published_at,
            code_urls=code_urls,
            has_weights=enrichment.has_weights if enrichment else None,
            repo_stars=stars,
            benchmarks=list(structured.benchmarks) if structured else [],
        )
