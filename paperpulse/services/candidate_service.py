"""Candidate selection for enrichment runs."""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union

from paperpulse.database.repository import PaperRepository
from paperpulse.models.paper import Paper
from paperpulse.utils.dates import ensure_aware, format_timestamp, parse_timestamp
from paperpulse.utils.text import parse_identifier_list

logger = logging.getLogger(__name__)

LIMIT_MIN, LIMIT_MAX = 1, 200
LOOKBACK_MIN, LOOKBACK_MAX = 0, 60


def clamp_int(value: Any, default: int, lo: int, hi: int) -> int:
    """Parse an integer query value and clamp it to ``[lo, hi]``."""
    if value is None or value == "":
        return default
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, n))


def as_bool(value: Any, default: bool) -> bool:
    """Interpret ``1/true/yes/on`` and ``0/false/no/off`` query values."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    return default


class CandidateSelector:
    """Chooses which papers an enrichment run processes. Read-only."""

    def __init__(self, repository: PaperRepository):
        self.repository = repository

    def select(
        self,
        now: datetime,
        ids: Optional[Union[str, Iterable[str]]] = None,
        limit: int = 30,
        lookback_days: int = 7,
        skip_recently_enriched: bool = False,
    ) -> list[Paper]:
        """Select candidate papers.

        Args:
            now: Reference time for the lookback window
            ids: Explicit identifiers (comma string or iterable); bare,
                versioned or arxiv.org URLs are all accepted
            limit: Cap on window-mode results
            lookback_days: Window size in days; 0 disables the time filter
            skip_recently_enriched: Drop papers enriched after the window start

        Returns:
            Papers, newest published first

        Raises:
            InvalidIdentifierError: If an explicit identifier is malformed
        """
        now = ensure_aware(now)
        cutoff = now - timedelta(days=lookback_days) if lookback_days > 0 else None

        if ids:
            base_ids = parse_identifier_list(ids)
            candidates = self.repository.find_by_arxiv_ids(base_ids)
            missing = set(base_ids) - {p.arxiv_id for p in candidates}
            if missing:
                logger.info("Unknown identifiers skipped: %s", ", ".join(sorted(missing)))
        else:
            candidates = self.repository.find_recent(limit)
            if cutoff is not None:
                since = format_timestamp(cutoff)
                candidates = [p for p in candidates if (p.published_at or "") >= since]
            candidates = candidates[:limit]

        if skip_recently_enriched and cutoff is not None:
            candidates = self._drop_recently_enriched(candidates, cutoff)
        return candidates

    def _drop_recently_enriched(self, candidates: list[Paper], cutoff: datetime) -> list[Paper]:
        last_enriched = self.repository.latest_enrichment_times([p.id for p in candidates])
        kept = []
        for paper in candidates:
            last = parse_timestamp(last_enriched.get(paper.id))
            if last is None or last < cutoff:
                kept.append(paper)
        if len(kept) < len(candidates):
            logger.info("Skipping %d recently enriched papers", len(candidates) - len(kept))
        return kept
