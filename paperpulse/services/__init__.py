"""Service layer."""

from paperpulse.services.benchmark_service import BenchmarkService
from paperpulse.services.candidate_service import CandidateSelector
from paperpulse.services.enrichment_service import EnrichmentService
from paperpulse.services.extraction_service import ExtractionService
from paperpulse.services.feed_service import FeedService
from paperpulse.services.github_service import GitHubService
from paperpulse.services.mirror_service import MirrorService
from paperpulse.services.save_service import SaveService

__all__ = [
    "BenchmarkService",
    "CandidateSelector",
    "EnrichmentService",
    "ExtractionService",
    "FeedService",
    "GitHubService",
    "MirrorService",
    "SaveService",
]
