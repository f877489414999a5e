"""Application state shared by the API routers."""

from typing import Optional

from paperpulse.config import Settings
from paperpulse.database.repository import PaperRepository
from paperpulse.services.candidate_service import CandidateSelector
from paperpulse.services.enrichment_service import (
    EnrichmentService,
    build_enrichment_service,
)
from paperpulse.services.feed_service import FeedService
from paperpulse.services.save_service import SaveService


# ============================================================================
# Global State
# ============================================================================


class AppState:
    """Mutable singleton holding all runtime services."""

    settings: Optional[Settings] = None
    repo: Optional[PaperRepository] = None
    feed: FeedService
    selector: CandidateSelector
    enricher: EnrichmentService
    saves: SaveService

    @property
    def ready(self) -> bool:
        return self.repo is not None


state = AppState()


def init_state(
    settings: Settings,
    repo: Optional[PaperRepository] = None,
    enricher: Optional[EnrichmentService] = None,
) -> AppState:
    """(Re)build every service from *settings*.

    Tests pass a temporary repository and an enricher wired to fake adapters.
    """
    state.settings = settings
    state.repo = repo or PaperRepository(settings.db_path)
    state.feed = FeedService(state.repo, settings.scoring)
    state.selector = CandidateSelector(state.repo)
    state.saves = SaveService(state.repo)
    state.enricher = enricher or build_enrichment_service(settings, state.repo)
    return state


def reset_state() -> None:
    state.settings = None
    state.repo = None
