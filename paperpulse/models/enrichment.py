"""Derived records produced by the enrichment pipeline.

``EnrichmentRecord``, ``StructuredExtraction`` and ``BenchmarkMapping`` rows
are appended on every run; readers always take the newest row per paper.
``ScoreRecord`` is the exception: one row per paper, overwritten.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class EnrichmentRecord:
    """Code-availability signals for one paper (ar5iv links + GitHub)."""

    paper_id: str
    code_urls: list[str] = field(default_factory=list)
    primary_repo: Optional[str] = None
    repo_stars: Optional[int] = None
    repo_license: Optional[str] = None
    has_weights: Optional[bool] = None
    readme_excerpt: Optional[str] = None
    readme_sha: Optional[str] = None

    id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class ClaimedSota:
    """A state-of-the-art claim stated explicitly in an abstract."""

    benchmark: str
    metric: Optional[str] = None
    value: Optional[str] = None
    split: Optional[str] = None


@dataclass
class StructuredExtraction:
    """Fields pulled from title + abstract by the language model."""

    paper_id: str
    method: Optional[str] = None
    tasks: list[str] = field(default_factory=list)
    datasets: list[str] = field(default_factory=list)
    benchmarks: list[str] = field(default_factory=list)
    claimed_sota: list[ClaimedSota] = field(default_factory=list)
    code_urls: list[str] = field(default_factory=list)
    params: Optional[float] = None   # billions of parameters
    tokens: Optional[float] = None   # billions of training tokens
    compute: Optional[str] = None

    id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class LeaderboardLink:
    """A task/dataset leaderboard the paper reports results on."""

    label: str
    url: str


@dataclass
class BenchmarkMapping:
    """Papers-with-Code mapping for one paper."""

    paper_id: str
    found: bool
    search_url: str
    paper_url: Optional[str] = None
    repo_url: Optional[str] = None
    repo_stars: Optional[int] = None
    leaderboard_links: list[LeaderboardLink] = field(default_factory=list)

    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        """Content hash; identical re-runs collide on (paper_id, fingerprint)."""
        payload = {
            "found": self.found,
            "paper_url": self.paper_url,
            "repo_url": self.repo_url,
            "repo_stars": self.repo_stars,
            "search_url": self.search_url,
            "links": [asdict(link) for link in self.leaderboard_links],
        }
        blob = json.dumps(payload, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()


@dataclass
class ScoreComponents:
    """The four explainable parts of a momentum score, each in [0, 1]."""

    recency: float = 0.0
    code: float = 0.0
    stars: float = 0.0
    watchlist: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ScoreComponents":
        data = data or {}
        return cls(
            recency=float(data.get("recency") or 0.0),
            code=float(data.get("code") or 0.0),
            stars=float(data.get("stars") or 0.0),
            watchlist=float(data.get("watchlist") or 0.0),
        )


@dataclass
class ScoreResult:
    """Global score plus its components."""

    global_score: float
    components: ScoreComponents

    def to_dict(self) -> dict[str, Any]:
        return {"global": self.global_score, "components": self.components.to_dict()}


@dataclass
class ScoreRecord:
    """Stored global (non-personalised) score of a paper."""

    paper_id: str
    global_score: float
    components: ScoreComponents
    updated_at: Optional[str] = None

    def to_result(self) -> ScoreResult:
        return ScoreResult(global_score=self.global_score, components=self.components)
