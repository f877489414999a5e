"""Papers-with-Code client: arXiv id → paper, top repository, leaderboards."""

import logging
from typing import Any, Optional
from urllib.parse import quote

from paperpulse.exceptions import ExternalServiceError, PermanentServiceError
from paperpulse.models.enrichment import BenchmarkMapping, LeaderboardLink
from paperpulse.services.http import AdapterOutcome, PoliteClient, describe_error
from paperpulse.utils.text import strip_version

logger = logging.getLogger(__name__)

PWC_API = "https://paperswithcode.com/api/v1"
PWC_WEB = "https://paperswithcode.com"
MAX_LEADERBOARD_LINKS = 8


def build_search_url(arxiv_id: str) -> str:
    """Deterministic fallback: PwC search for ``arXiv:<base id>``."""
    return f"{PWC_WEB}/search?q={quote('arXiv:' + strip_version(arxiv_id), safe='')}"


def absolutize(path: Any) -> Optional[str]:
    if not isinstance(path, str) or not path.strip():
        return None
    path = path.strip()
    if path.lower().startswith(("http://", "https://")):
        return path
    return PWC_WEB + ("" if path.startswith("/") else "/") + path


def _results(payload: Any) -> list[dict[str, Any]]:
    """Rows of a paginated PwC reply.

    Raises:
        PermanentServiceError: If the payload is not ``{"results": [...]}``
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise PermanentServiceError("paperswithcode", "reply has no results list")
    return [r for r in payload["results"] if isinstance(r, dict)]


def _stars(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def leaderboard_links(results: list[dict[str, Any]]) -> list[LeaderboardLink]:
    """Build deduplicated ``task — dataset`` links from PwC result rows.

    Slugged pairs link to the SOTA table, others to a search; at most
    ``MAX_LEADERBOARD_LINKS`` are kept.
    """
    links: list[LeaderboardLink] = []
    seen: set[tuple[str, str]] = set()
    for row in results:
        task = row.get("task")
        dataset = row.get("dataset")
        if not isinstance(task, dict) or not isinstance(dataset, dict):
            continue
        task_name = str(task.get("name") or "").strip()
        ds_name = str(dataset.get("name") or "").strip()
        if not task_name or not ds_name or (task_name, ds_name) in seen:
            continue
        seen.add((task_name, ds_name))

        task_slug = str(task.get("slug") or "").strip()
        ds_slug = str(dataset.get("slug") or "").strip()
        if task_slug and ds_slug:
            url = f"{PWC_WEB}/sota/{quote(task_slug, safe='')}-on-{quote(ds_slug, safe='')}"
        else:
            url = f"{PWC_WEB}/search?q={quote(f'{task_name} {ds_name}', safe='')}"
        links.append(LeaderboardLink(label=f"{task_name} — {ds_name}", url=url))
        if len(links) >= MAX_LEADERBOARD_LINKS:
            break
    return links


class BenchmarkService:
    """Service for the Papers-with-Code REST API."""

    def __init__(self, client: PoliteClient, token: Optional[str] = None):
        """Initialize benchmark service.

        Args:
            client: PoliteClient configured for the PwC source
            token: Optional API token
        """
        self.client = client
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Token {token}"

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self.client.get_json(f"{PWC_API}{path}", params=params, headers=self._headers)

    def find_paper(self, arxiv_id: str) -> Optional[dict[str, Any]]:
        """Return the PwC paper for a base id, preferring an exact id match."""
        results = _results(self._get("/papers/", params={"arxiv_id": arxiv_id}))
        if not results:
            return None
        wanted = arxiv_id.strip().lower()
        for paper in results:
            if str(paper.get("arxiv_id") or "").strip().lower() == wanted:
                return paper
        return results[0]

    def top_repository(self, pwc_id: str) -> Optional[dict[str, Any]]:
        """Most-starred repository linked to a PwC paper; None on any failure."""
        try:
            results = _results(self._get(f"/papers/{quote(pwc_id, safe='')}/repositories/"))
        except ExternalServiceError as e:
            logger.warning("PwC repositories unavailable for %s: %s", pwc_id, e)
            return None
        if not results:
            return None
        return max(results, key=lambda r: _stars(r.get("stars")) or 0)

    def leaderboards(self, pwc_id: str) -> list[LeaderboardLink]:
        """Leaderboard links for a PwC paper; empty on any failure."""
        try:
            results = _results(self._get(f"/papers/{quote(pwc_id, safe='')}/results/"))
        except ExternalServiceError as e:
            logger.warning("PwC results unavailable for %s: %s", pwc_id, e)
            return []
        return leaderboard_links(results)

    def lookup(self, paper_id: str, arxiv_id: str) -> BenchmarkMapping:
        """Map an arXiv paper to its PwC entry.

        Args:
            paper_id: Internal paper id the mapping belongs to
            arxiv_id: arXiv identifier (version suffix ignored)

        Returns:
            BenchmarkMapping; ``found`` is False when PwC has no such paper

        Raises:
            ExternalServiceError: If the paper lookup itself fails or the
                reply does not have the expected shape
        """
        base_id = strip_version(arxiv_id)
        search_url = build_search_url(base_id)
        paper = self.find_paper(base_id)
        if paper is None:
            return BenchmarkMapping(paper_id=paper_id, found=False, search_url=search_url)

        pwc_id = paper.get("id")
        if not isinstance(pwc_id, str) or not pwc_id.strip():
            raise PermanentServiceError("paperswithcode", "paper entry has no id")
        repo = self.top_repository(pwc_id) or {}
        repo_url = repo.get("url")
        return BenchmarkMapping(
            paper_id=paper_id,
            found=True,
            search_url=search_url,
            paper_url=absolutize(paper.get("url")),
            repo_url=repo_url if isinstance(repo_url, str) and repo_url else None,
            repo_stars=_stars(repo.get("stars")),
            leaderboard_links=self.leaderboards(pwc_id),
        )

    def fetch_mapping(self, paper_id: str, arxiv_id: str) -> AdapterOutcome[BenchmarkMapping]:
        """Lookup wrapped as an outcome; failures degrade to not found."""
        try:
            return AdapterOutcome.ok(self.lookup(paper_id, arxiv_id))
        except ExternalServiceError as e:
            logger.warning("PwC lookup failed for %s: %s", arxiv_id, e)
            fallback = BenchmarkMapping(
                paper_id=paper_id, found=False, search_url=build_search_url(arxiv_id)
            )
            return AdapterOutcome.degraded(describe_error(e), fallback=fallback)
