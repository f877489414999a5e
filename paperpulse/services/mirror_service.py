"""ar5iv mirror scraper: discover code-repository links in a paper's HTML."""

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from paperpulse.exceptions import ExternalServiceError
from paperpulse.services.github_service import canonical_repo_url, parse_github_repo
from paperpulse.services.http import AdapterOutcome, PoliteClient, describe_error
from paperpulse.utils.text import dedupe

logger = logging.getLogger(__name__)

AR5IV_HTML_URL = "https://ar5iv.org/html/{id}"
AR5IV_BASE = "https://ar5iv.org"
CODE_HOST = "github.com"
TRAILING_PUNCTUATION = "),.;"


def extract_code_links(html: str) -> list[str]:
    """Return GitHub links found in ``href`` attributes, in document order.

    Protocol-relative links become ``https:``, trailing punctuation is
    stripped, fragments dropped, and links that parse as ``owner/repo`` are
    normalised to the repository root.  Duplicates (exact string) are removed.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    found: list[str] = []
    for anchor in soup.find_all(href=True):
        raw = str(anchor["href"]).strip()
        if f"{CODE_HOST}/" not in raw.lower():
            continue
        link = normalize_link(raw)
        if link:
            found.append(link)
    return dedupe(found)


def normalize_link(raw: str) -> Optional[str]:
    """Normalise one scraped GitHub href; None when it is not a GitHub URL."""
    href = raw.split("#", 1)[0].strip()
    if href.startswith("//"):
        href = "https:" + href
    href = href.rstrip(TRAILING_PUNCTUATION)
    absolute = urljoin(AR5IV_BASE, href)
    host = (urlparse(absolute).hostname or "").lower()
    if not (host == CODE_HOST or host.endswith("." + CODE_HOST)):
        return None
    repo = parse_github_repo(absolute)
    if repo:
        return canonical_repo_url(*repo)
    return absolute


class MirrorService:
    """Fetches ar5iv HTML renderings and scrapes code links from them."""

    def __init__(self, client: PoliteClient):
        """Initialize mirror service.

        Args:
            client: PoliteClient configured for the ar5iv source
        """
        self.client = client

    def fetch_code_links(self, arxiv_id: str) -> AdapterOutcome[list[str]]:
        """Scrape GitHub links for a base arXiv id.

        Any failure (non-2xx, network) degrades to an empty list.
        """
        url = AR5IV_HTML_URL.format(id=arxiv_id)
        try:
            response = self.client.get(
                url, headers={"Accept": "text/html,application/xhtml+xml"}
            )
        except ExternalServiceError as e:
            logger.warning("ar5iv fetch failed for %s: %s", arxiv_id, e)
            return AdapterOutcome.degraded(describe_error(e), fallback=[])

        if not 200 <= response.status_code < 300:
            logger.warning("ar5iv returned %d for %s", response.status_code, arxiv_id)
            return AdapterOutcome.degraded(f"HTTP {response.status_code}", fallback=[])

        return AdapterOutcome.ok(extract_code_links(response.text))
