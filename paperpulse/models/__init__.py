"""Data models."""

from paperpulse.models.enrichment import (
    BenchmarkMapping,
    ClaimedSota,
    EnrichmentRecord,
    LeaderboardLink,
    ScoreComponents,
    ScoreRecord,
    ScoreResult,
    StructuredExtraction,
)
from paperpulse.models.paper import Paper, PaperSignals
from paperpulse.models.save import SAVE_STATUSES, SavedPaper
from paperpulse.models.watchlist import WATCHLIST_TYPES, Watchlist

__all__ = [
    "BenchmarkMapping",
    "ClaimedSota",
    "EnrichmentRecord",
    "LeaderboardLink",
    "Paper",
    "PaperSignals",
    "SAVE_STATUSES",
    "SavedPaper",
    "ScoreComponents",
    "ScoreRecord",
    "ScoreResult",
    "StructuredExtraction",
    "WATCHLIST_TYPES",
    "Watchlist",
]
