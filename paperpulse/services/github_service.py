"""GitHub REST v3 client: repository metadata and README."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote, urlparse

from paperpulse.exceptions import ExternalServiceError, PermanentServiceError
from paperpulse.services.http import (
    AdapterOutcome,
    PoliteClient,
    describe_error,
    raise_for_status,
)
from paperpulse.utils.dates import format_timestamp

logger = logging.getLogger(__name__)

GH_API = "https://api.github.com"
GH_WEB = "https://github.com"
README_EXCERPT_CHARS = 1200

_NAME = r"[a-z0-9_.-]+"
SHORTHAND_RE = re.compile(rf"^(?:github:|gh:)?({_NAME})/({_NAME}?)(?:\.git)?$", re.IGNORECASE)
SSH_RE = re.compile(rf"^git@github\.com:({_NAME})/({_NAME}?)(?:\.git)?$", re.IGNORECASE)
WEIGHTS_RE = re.compile(r"(?:checkpoint|weights|\.safetensors|\.pt|\.bin)", re.IGNORECASE)


def parse_github_repo(value: str) -> Optional[tuple[str, str]]:
    """Parse a GitHub URL or shorthand into ``(owner, repo)``.

    Supports ``https://github.com/o/r[/tree/...]``, ``www.github.com``,
    ``git@github.com:o/r.git`` and ``github:o/r`` / ``gh:o/r`` / ``o/r``.
    """
    s = str(value or "").strip()
    if not s:
        return None

    for pattern in (SHORTHAND_RE, SSH_RE):
        match = pattern.match(s)
        if match and match.group(2):
            return match.group(1), match.group(2)

    parsed = urlparse(s)
    if parsed.scheme not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host != "github.com":
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], re.sub(r"\.git$", "", parts[1], flags=re.IGNORECASE)
    if not owner or not repo:
        return None
    return owner, repo


def canonical_repo_url(owner: str, repo: str) -> str:
    """``https://github.com/<owner>/<repo>``."""
    return f"{GH_WEB}/{owner}/{repo}"


def detect_weights(readme_text: str) -> bool:
    """Heuristic: does a README mention distributable checkpoints/weights?"""
    return bool(WEIGHTS_RE.search(readme_text or ""))


@dataclass
class RepoMeta:
    """Subset of the GitHub repository resource we keep."""

    owner: str
    repo: str
    full_name: str
    url: str
    description: Optional[str] = None
    homepage: Optional[str] = None
    default_branch: Optional[str] = None
    stars: Optional[int] = None
    forks: Optional[int] = None
    open_issues: Optional[int] = None
    topics: list[str] = field(default_factory=list)
    license: Optional[str] = None   # SPDX id
    archived: bool = False
    last_push_at: Optional[str] = None


@dataclass
class RepoReadme:
    """Decoded README of a repository."""

    path: str
    sha: str
    text: str

    @property
    def excerpt(self) -> str:
        return self.text[:README_EXCERPT_CHARS]


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_repo_meta(owner: str, repo: str, data: dict[str, Any]) -> RepoMeta:
    """Map a ``GET /repos/{owner}/{repo}`` payload to :class:`RepoMeta`."""
    license_info = data.get("license") or {}
    spdx = license_info.get("spdx_id") if isinstance(license_info, dict) else None
    topics = data.get("topics")
    return RepoMeta(
        owner=owner,
        repo=repo,
        full_name=str(data.get("full_name") or f"{owner}/{repo}"),
        url=str(data.get("html_url") or canonical_repo_url(owner, repo)),
        description=data.get("description"),
        homepage=data.get("homepage"),
        default_branch=data.get("default_branch"),
        stars=_to_int(data.get("stargazers_count")),
        forks=_to_int(data.get("forks_count")),
        open_issues=_to_int(data.get("open_issues_count")),
        topics=[str(t) for t in topics] if isinstance(topics, list) else [],
        license=spdx if isinstance(spdx, str) and spdx != "NOASSERTION" else None,
        archived=bool(data.get("archived")),
        last_push_at=format_timestamp(data.get("pushed_at")),
    )


def decode_readme(data: dict[str, Any]) -> Optional[RepoReadme]:
    """Decode a ``GET /repos/{owner}/{repo}/readme`` payload."""
    content = str(data.get("content") or "")
    if not content:
        return None
    try:
        raw = base64.b64decode("".join(content.split()))
    except (binascii.Error, ValueError) as e:
        raise PermanentServiceError("github", "README is not valid base64") from e
    return RepoReadme(
        path=str(data.get("path") or "README.md"),
        sha=str(data.get("sha") or ""),
        text=raw.decode("utf-8", errors="replace"),
    )


class GitHubService:
    """Service for the GitHub REST API."""

    def __init__(self, client: PoliteClient, token: Optional[str] = None):
        """Initialize GitHub service.

        Args:
            client: PoliteClient configured for the GitHub source
            token: Optional personal access token (raises rate limits)
        """
        self.client = client
        self._headers = {"Accept": "application/vnd.github+json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def lookup(self, owner: str, repo: str) -> RepoMeta:
        """Fetch repository metadata.

        Raises:
            ExternalServiceError: On API errors
        """
        url = f"{GH_API}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
        data = self.client.get_json(url, headers=self._headers)
        if not isinstance(data, dict):
            raise PermanentServiceError("github", "unexpected repository payload")
        return parse_repo_meta(owner, repo, data)

    def readme(self, owner: str, repo: str, ref: Optional[str] = None) -> Optional[RepoReadme]:
        """Fetch and decode the README; None when the repository has none.

        Raises:
            ExternalServiceError: On API errors other than 404
        """
        url = f"{GH_API}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/readme"
        response = self.client.get(
            url, params={"ref": ref} if ref else None, headers=self._headers
        )
        if response.status_code == 404:
            return None
        raise_for_status("github", response)
        try:
            data = response.json()
        except ValueError as e:
            raise PermanentServiceError("github", "malformed README response") from e
        return decode_readme(data) if isinstance(data, dict) else None

    # -- outcome wrappers used by the orchestrator ----------------------------

    def fetch_meta(self, owner: str, repo: str) -> AdapterOutcome[RepoMeta]:
        """Repository metadata; failures degrade to no metadata."""
        try:
            return AdapterOutcome.ok(self.lookup(owner, repo))
        except ExternalServiceError as e:
            logger.warning("GitHub metadata unavailable for %s/%s: %s", owner, repo, e)
            return AdapterOutcome.degraded(describe_error(e))

    def fetch_readme(self, owner: str, repo: str) -> AdapterOutcome[RepoReadme]:
        """README; failures degrade to no README."""
        try:
            readme = self.readme(owner, repo)
        except ExternalServiceError as e:
            logger.warning("GitHub README unavailable for %s/%s: %s", owner, repo, e)
            return AdapterOutcome.degraded(describe_error(e))
        if readme is None:
            return AdapterOutcome.degraded("no README")
        return AdapterOutcome.ok(readme)
