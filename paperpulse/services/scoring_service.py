"""Momentum scoring.

Four components, each in [0, 1]:

* recency   – ``2 ** (-age_days / half_life)``
* code      – base if any code URL, plus a bonus when weights are published
* stars     – ``sqrt(min(stars, cap) / cap)``
* watchlist – ``1 - exp(-points / max_watch_boost)``

The global score is their weighted sum.  Every function here is pure; *now*
is always passed in.
"""

import math
from datetime import datetime
from typing import Iterable, Optional, Union

from paperpulse.config import ScoringConfig
from paperpulse.models.enrichment import ScoreComponents, ScoreResult
from paperpulse.models.paper import PaperSignals
from paperpulse.models.watchlist import Watchlist
from paperpulse.services.watchlist_service import watchlist_points
from paperpulse.utils.dates import ensure_aware, parse_timestamp

SECONDS_PER_DAY = 86400.0


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if value != value:
        return 0.0
    return 0.0 if value < 0 else 1.0 if value > 1 else float(value)


def recency_score(
    published_at: Union[str, datetime, None],
    now: datetime,
    half_life_days: float = 5.0,
) -> float:
    """Exponential decay by age; future dates count as age 0."""
    published = parse_timestamp(published_at)
    if published is None:
        return 0.0
    age_days = max(0.0, (ensure_aware(now) - published).total_seconds() / SECONDS_PER_DAY)
    if age_days <= 0:
        return 1.0
    return clamp01(2 ** (-age_days / max(1e-6, half_life_days)))


def code_score(
    code_urls: Optional[list[str]],
    has_weights: Optional[bool],
    base: float = 0.7,
    weights_bonus: float = 0.3,
) -> float:
    if not code_urls:
        return 0.0
    score = base + (weights_bonus if has_weights else 0.0)
    return clamp01(min(1.0, score))


def stars_score(stars: Optional[float], cap: float = 1500.0) -> float:
    """Square-root compression of star counts against a cap."""
    try:
        n = float(stars)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(n) or n <= 0:
        return 0.0
    return clamp01(math.sqrt(min(n, cap) / max(1.0, cap)))


def watchlist_score(
    signals: PaperSignals,
    watchlists: Iterable[Watchlist],
    config: ScoringConfig,
) -> float:
    points = watchlist_points(signals, watchlists, config)
    if points <= 0:
        return 0.0
    return clamp01(1 - math.exp(-points / max(1e-6, config.max_watch_boost)))


def combine(components: ScoreComponents, config: ScoringConfig) -> float:
    """Weighted sum of the components, clamped."""
    w = config.weights
    return clamp01(
        w.recency * components.recency
        + w.code * components.code
        + w.stars * components.stars
        + w.watchlist * components.watchlist
    )


def score_paper(
    signals: PaperSignals,
    watchlists: Iterable[Watchlist],
    config: ScoringConfig,
    now: datetime,
) -> ScoreResult:
    """Compute the momentum score of a paper.

    Args:
        signals: Merged paper + latest derived records
        watchlists: Watchlists to personalise with (empty for the global score)
        config: Scoring constants
        now: Reference time for recency

    Returns:
        ScoreResult with the global score and its four components
    """
    components = ScoreComponents(
        recency=recency_score(signals.published_at, now, config.half_life_days),
        code=code_score(
            signals.code_urls, signals.has_weights, config.code_base, config.has_weights_bonus
        ),
        stars=stars_score(signals.repo_stars, config.stars_cap),
        watchlist=watchlist_score(signals, watchlists, config),
    )
    return ScoreResult(global_score=combine(components, config), components=components)


def recompute_with_stars(
    previous: ScoreResult, stars: Optional[float], config: ScoringConfig
) -> ScoreResult:
    """Refresh only the stars component of an existing score."""
    components = ScoreComponents(
        recency=previous.components.recency,
        code=previous.components.code,
        stars=stars_score(stars, config.stars_cap),
        watchlist=previous.components.watchlist,
    )
    return ScoreResult(global_score=combine(components, config), components=components)


def score_sort_key(result: Optional[ScoreResult]) -> float:
    """Sort key for descending order (use with ``reverse=True``); unscored last."""
    return result.global_score if result is not None else -1.0
