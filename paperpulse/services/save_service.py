"""Per-user reading list: queued → saved → reading → done."""

import logging
from typing import Any, Optional

from paperpulse.database.repository import PaperRepository
from paperpulse.exceptions import InvalidIdentifierError, ValidationError
from paperpulse.models.save import SAVE_STATUSES, SavedPaper
from paperpulse.utils.text import normalize_arxiv_id

logger = logging.getLogger(__name__)


def next_status(current: Optional[str]) -> str:
    """Cycle to the next reading status; new entries start at ``queued``."""
    if current not in SAVE_STATUSES:
        return SAVE_STATUSES[0]
    return SAVE_STATUSES[(SAVE_STATUSES.index(current) + 1) % len(SAVE_STATUSES)]


def parse_status(value: Any) -> Optional[str]:
    """Validate an optional status value.

    Raises:
        ValidationError: If *value* is set but not a known status
    """
    if value is None or value == "":
        return None
    if value not in SAVE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SAVE_STATUSES)}")
    return value


class SaveService:
    """Reading-list operations on top of the repository."""

    def __init__(self, repository: PaperRepository):
        self.repository = repository

    def _paper_id(self, arxiv_id: Any) -> Optional[str]:
        base_id = normalize_arxiv_id(str(arxiv_id or ""))
        if base_id is None:
            raise InvalidIdentifierError(f"Invalid arXiv identifier: {arxiv_id!r}")
        paper = self.repository.find_by_arxiv_id(base_id)
        return paper.id if paper else None

    def list_saves(
        self, user_id: str, status: Any = None, arxiv_id: Optional[str] = None
    ) -> list[SavedPaper]:
        """Entries of a user, optionally filtered by status and paper.

        An unknown paper yields an empty list.
        """
        wanted = parse_status(status)
        paper_id = None
        if arxiv_id:
            paper_id = self._paper_id(arxiv_id)
            if paper_id is None:
                return []
        return self.repository.list_saves(user_id, status=wanted, paper_id=paper_id)

    def save(self, user_id: str, arxiv_id: Any, status: Any = None) -> Optional[SavedPaper]:
        """Add or update an entry.

        Without *status*, an existing entry moves to the next status and a
        new one starts at ``queued``.

        Returns:
            The stored entry, or None when the paper is unknown

        Raises:
            ValidationError: On a malformed id or status
        """
        wanted = parse_status(status)
        paper_id = self._paper_id(arxiv_id)
        if paper_id is None:
            return None
        if wanted is None:
            existing = self.repository.get_save(user_id, paper_id)
            wanted = next_status(existing.status if existing else None)
        saved = self.repository.upsert_save(user_id, paper_id, wanted)
        logger.debug("User %s set %s to %s", user_id, saved.arxiv_id, saved.status)
        return saved

    def remove(
        self, user_id: str, save_id: Optional[str] = None, arxiv_id: Optional[str] = None
    ) -> Optional[bool]:
        """Remove an entry by save id or arXiv id.

        Returns:
            True when removed, False when nothing matched, None when the
            paper is unknown

        Raises:
            ValidationError: If neither key is given, or the id is malformed
        """
        if save_id:
            return self.repository.delete_save(user_id, save_id=save_id)
        if not arxiv_id:
            raise ValidationError("Provide an id or an arxivId")
        paper_id = self._paper_id(arxiv_id)
        if paper_id is None:
            return None
        return self.repository.delete_save(user_id, paper_id=paper_id)
