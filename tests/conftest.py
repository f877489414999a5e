import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
import requests

from paperpulse.config import EnrichConfig, ScoringConfig, Settings
from paperpulse.database.repository import PaperRepository
from paperpulse.exceptions import ExtractionError
from paperpulse.models.enrichment import BenchmarkMapping, StructuredExtraction
from paperpulse.models.paper import Paper
from paperpulse.services.enrichment_service import EnrichmentService
from paperpulse.services.github_service import RepoMeta, RepoReadme
from paperpulse.services.http import AdapterOutcome, PoliteClient
from paperpulse.utils.dates import format_timestamp

NOW = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def ts(days_ago: float = 0.0, now: datetime = NOW) -> str:
    return format_timestamp(now - timedelta(days=days_ago))


def make_paper(
    arxiv_id: str,
    published_at: Optional[str] = None,
    id: Optional[str] = None,
    title: str = "A paper",
    abstract: str = "",
    authors: Optional[list[str]] = None,
    categories: Optional[list[str]] = None,
    version: int = 1,
) -> Paper:
    categories = categories or ["cs.LG"]
    return Paper(
        arxiv_id=arxiv_id,
        title=title,
        abstract=abstract,
        authors=authors or [],
        categories=categories,
        primary_category=categories[0],
        published_at=published_at or ts(),
        latest_version=version,
        id=id,
    )


# ---------------------------------------------------------------------------
# Storage / settings
# ---------------------------------------------------------------------------

@pytest.fixture
def repo(tmp_path):
    return PaperRepository(tmp_path / "test.db")


@pytest.fixture
def settings(tmp_path):
    Settings.reset()
    s = Settings(
        db_path=tmp_path / "test.db",
        metadata_dir=tmp_path / ".metadata",
        scoring=ScoringConfig(),
        enrich=EnrichConfig(),
    )
    yield s
    Settings.reset()


# ---------------------------------------------------------------------------
# HTTP stubs
# ---------------------------------------------------------------------------

def make_response(
    status: int = 200,
    json_body: Any = None,
    text: str = "",
    headers: Optional[dict[str, str]] = None,
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    body = json.dumps(json_body) if json_body is not None else text
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers.update(headers or {})
    return resp


class StubSession:
    """Stands in for ``requests.Session``.

    Either replays a queue of responses/exceptions, or answers from a
    ``{url: response}`` routing table (404 for unknown URLs).
    """

    def __init__(self, responses=None, routes=None):
        self.headers: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self._queue = list(responses or [])
        self._routes = routes

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self._routes is not None:
            return self._routes[url] if url in self._routes else make_response(404)
        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(sleeps):
    def factory(session: StubSession, source: str = "test", attempts: int = 3) -> PoliteClient:
        return PoliteClient(
            source,
            user_agent="paperpulse-tests",
            timeout=5,
            attempts=attempts,
            base_delay=0.6,
            session=session,
            sleep=sleeps.append,
        )

    return factory


# ---------------------------------------------------------------------------
# Fake adapters for the orchestrator
# ---------------------------------------------------------------------------

class FakeMirror:
    def __init__(self, links=None, degraded=False):
        self.links = links or {}
        self.degraded = degraded
        self.calls: list[str] = []

    def fetch_code_links(self, arxiv_id):
        self.calls.append(arxiv_id)
        if self.degraded:
            return AdapterOutcome.degraded("HTTP 503", fallback=[])
        return AdapterOutcome.ok(list(self.links.get(arxiv_id, [])))


class FakeGitHub:
    def __init__(self, stars=None, readme_text=None, fail=False):
        self.stars = stars or {}
        self.readme_text = readme_text
        self.fail = fail
        self.meta_calls: list[tuple[str, str]] = []
        self.readme_calls: list[tuple[str, str]] = []

    def fetch_meta(self, owner, repo):
        self.meta_calls.append((owner, repo))
        if self.fail:
            return AdapterOutcome.degraded("github: HTTP 500")
        return AdapterOutcome.ok(
            RepoMeta(
                owner=owner,
                repo=repo,
                full_name=f"{owner}/{repo}",
                url=f"https://github.com/{owner}/{repo}",
                stars=self.stars.get(f"{owner}/{repo}", 10),
                license="MIT",
            )
        )

    def fetch_readme(self, owner, repo):
        self.readme_calls.append((owner, repo))
        if self.readme_text is None:
            return AdapterOutcome.degraded("no README")
        return AdapterOutcome.ok(RepoReadme(path="README.md", sha="abc123", text=self.readme_text))


class FakeExtractor:
    def __init__(self, results=None, failing=(), available=True):
        self.results = results or {}
        self.failing = set(failing)
        self._available = available
        self.calls: list[tuple[str, str]] = []

    @property
    def available(self):
        return self._available

    def extract(self, paper_id, title, abstract):
        self.calls.append((title, abstract))
        if title in self.failing:
            raise ExtractionError("Model reply is not JSON")
        template = self.results.get(title)
        if template is None:
            return StructuredExtraction(paper_id=paper_id)
        return StructuredExtraction(
            paper_id=paper_id,
            method=template.method,
            tasks=list(template.tasks),
            datasets=list(template.datasets),
            benchmarks=list(template.benchmarks),
            claimed_sota=list(template.claimed_sota),
            code_urls=list(template.code_urls),
        )


class FakeBenchmarks:
    def __init__(self, found=True, repo_stars=None, degraded=False):
        self.found = found
        self.repo_stars = repo_stars
        self.degraded = degraded

    def fetch_mapping(self, paper_id, arxiv_id):
        search_url = f"https://paperswithcode.com/search?q=arXiv%3A{arxiv_id}"
        if self.degraded:
            return AdapterOutcome.degraded(
                "paperswithcode: HTTP 503",
                fallback=BenchmarkMapping(paper_id=paper_id, found=False, search_url=search_url),
            )
        if not self.found:
            return AdapterOutcome.ok(
                BenchmarkMapping(paper_id=paper_id, found=False, search_url=search_url)
            )
        return AdapterOutcome.ok(
            BenchmarkMapping(
                paper_id=paper_id,
                found=True,
                search_url=search_url,
                paper_url=f"https://paperswithcode.com/paper/{arxiv_id}",
                repo_url="https://github.com/pwc/repo",
                repo_stars=self.repo_stars,
            )
        )


@pytest.fixture
def build_enricher(repo, settings):
    def factory(mirror=None, github=None, extractor=None, benchmarks=None) -> EnrichmentService:
        return EnrichmentService(
            repository=repo,
            mirror=mirror or FakeMirror(),
            github=github or FakeGitHub(),
            extractor=extractor or FakeExtractor(),
            benchmarks=benchmarks or FakeBenchmarks(),
            settings=settings,
            clock=lambda: NOW,
        )

    return factory
