"""Watchlist data model."""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

WatchlistType = Literal["keyword", "author", "benchmark", "institution"]
WATCHLIST_TYPES: tuple[str, ...] = ("keyword", "author", "benchmark", "institution")


@dataclass
class Watchlist:
    """A user-owned list of terms to boost in the personalised feed."""

    type: WatchlistType
    name: str
    terms: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    # Database fields (set after persistence)
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_client(self) -> dict[str, Any]:
        """Client shape ``{id, type, name, terms, categories, createdAt}``."""
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "terms": list(self.terms),
            "categories": list(self.categories),
            "createdAt": self.created_at,
        }
