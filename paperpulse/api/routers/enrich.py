"""Enrichment trigger (scheduled job endpoint)."""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse

from paperpulse.api.state import state
from paperpulse.services.candidate_service import (
    LIMIT_MAX,
    LIMIT_MIN,
    LOOKBACK_MAX,
    LOOKBACK_MIN,
    as_bool,
    clamp_int,
)
from paperpulse.services.enrichment_service import EnrichmentFlags
from paperpulse.utils.dates import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_WORKERS = 8


def _authorized(secret: Optional[str], header_secret: Optional[str], authorization: Optional[str]) -> bool:
    if not secret:
        return True
    supplied = header_secret
    if not supplied and authorization and authorization.lower().startswith("bearer "):
        supplied = authorization[7:].strip()
    return bool(supplied) and hmac.compare_digest(supplied, secret)


@router.post("/api/cron/enrich")
def run_enrichment(
    ids: Optional[str] = None,
    limit: Optional[str] = None,
    days: Optional[str] = None,
    extract: Optional[str] = None,
    readme: Optional[str] = None,
    benchmarks: Optional[str] = None,
    workers: Optional[str] = None,
    x_cron_secret: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
):
    """Select candidates and enrich them; always 200 with per-item outcomes."""
    cfg = state.settings.enrich
    if not _authorized(cfg.cron_secret, x_cron_secret, authorization):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    n = clamp_int(limit, cfg.default_limit, LIMIT_MIN, LIMIT_MAX)
    lookback = clamp_int(days, cfg.default_lookback_days, LOOKBACK_MIN, LOOKBACK_MAX)
    flags = EnrichmentFlags(
        extract=as_bool(extract, cfg.run_extract),
        readme=as_bool(readme, cfg.fetch_readme),
        benchmark_lookup=as_bool(benchmarks, cfg.run_benchmark_lookup),
    )
    candidates = state.selector.select(
        utc_now(),
        ids=ids.strip() if ids else None,
        limit=n,
        lookback_days=lookback,
        skip_recently_enriched=cfg.skip_recently_enriched and not ids,
    )
    logger.info("Enrichment requested for %d candidates", len(candidates))
    report = state.enricher.run(
        candidates,
        flags,
        limit=n,
        lookback_days=lookback,
        workers=clamp_int(workers, cfg.workers, 1, MAX_WORKERS),
    )
    return JSONResponse(report.to_dict())
