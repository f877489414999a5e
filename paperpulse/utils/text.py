"""Text utilities: arXiv identifiers, term matching and abstract cleanup."""

import html
import re
from typing import Iterable, Optional, Union

from bs4 import BeautifulSoup

from paperpulse.exceptions import InvalidIdentifierError

# New-style arXiv ids: YYMM.NNNN or YYMM.NNNNN, optional version suffix
ARXIV_ID_RE = re.compile(r"^(\d{4}\.\d{4,5})(?:v(\d+))?$", re.IGNORECASE)
ARXIV_URL_RE = re.compile(
    r"arxiv\.org/(?:abs|pdf)/(\d{4}\.\d{4,5})(?:v(\d+))?", re.IGNORECASE
)
VERSION_SUFFIX_RE = re.compile(r"v\d+$", re.IGNORECASE)


def strip_version(arxiv_id: str) -> str:
    """Remove a trailing ``vN`` version suffix (``2501.12345v2`` → ``2501.12345``)."""
    return VERSION_SUFFIX_RE.sub("", str(arxiv_id).strip())


def parse_version(arxiv_id: str) -> int:
    """Return the version number of an arXiv id, 1 when unversioned."""
    match = ARXIV_ID_RE.match(str(arxiv_id).strip())
    if match and match.group(2):
        return int(match.group(2))
    return 1


def normalize_arxiv_id(value: str) -> Optional[str]:
    """Accept a raw id, a versioned id or an abs/pdf URL; return the base id.

    Returns None when the value is not recognisable.
    """
    s = str(value or "").strip()
    if not s:
        return None
    url_match = ARXIV_URL_RE.search(s)
    if url_match:
        return url_match.group(1)
    raw_match = ARXIV_ID_RE.match(s)
    if raw_match:
        return raw_match.group(1)
    return None


def parse_identifier_list(raw: Union[str, Iterable[str]]) -> list[str]:
    """Parse a comma-separated (or iterable) id batch into unique base ids.

    Order of first appearance is kept.

    Raises:
        InvalidIdentifierError: If any entry is not a valid arXiv identifier
    """
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    ids: list[str] = []
    seen: set[str] = set()
    for part in parts:
        part = str(part).strip()
        if not part:
            continue
        base = normalize_arxiv_id(part)
        if base is None:
            raise InvalidIdentifierError(f"Invalid arXiv identifier: {part!r}")
        if base not in seen:
            seen.add(base)
            ids.append(base)
    return ids


def dedupe(items: Iterable[str]) -> list[str]:
    """Deduplicate by exact string match, keeping first-seen order."""
    return list(dict.fromkeys(i for i in items if i))


def normalize_name(name: str) -> str:
    """Lowercase and collapse whitespace for author-name comparison."""
    return " ".join(str(name or "").lower().split())


def includes_token(haystack: str, needle: str) -> bool:
    """Whole-word, case-insensitive containment of *needle* in *haystack*.

    Multi-word needles are allowed; boundaries are any non-word character or
    the ends of the string.
    """
    if not haystack or not needle:
        return False
    pattern = re.compile(r"(^|\W)" + re.escape(needle) + r"(?=\W|$)", re.IGNORECASE)
    return pattern.search(haystack) is not None


def clean_abstract(text: Optional[str]) -> str:
    """Strip markup and entities from an abstract and normalise whitespace."""
    if not text:
        return ""
    text = BeautifulSoup(html.unescape(text), "html.parser").get_text(" ")
    text = re.sub(r"^\s*abstract[\s.:;—–-]*", "", text, flags=re.IGNORECASE)
    return " ".join(text.split()).strip()


def clean_title(text: Optional[str]) -> str:
    """Collapse whitespace (arXiv titles wrap across lines)."""
    if not text:
        return "(no title)"
    return " ".join(html.unescape(text).split()) or "(no title)"
