"""Reading-list entry data model."""

from dataclasses import dataclass
from typing import Any, Optional

SAVE_STATUSES: tuple[str, ...] = ("queued", "saved", "reading", "done")


@dataclass
class SavedPaper:
    """A paper on a user's reading list."""

    paper_id: str
    status: str = "queued"
    arxiv_id: Optional[str] = None
    title: Optional[str] = None

    # Database fields (set after persistence)
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_client(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "createdAt": self.created_at,
            "arxivId": self.arxiv_id,
            "title": self.title,
        }
