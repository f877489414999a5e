"""Feed, paper detail and comparison endpoints."""

from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from paperpulse.api.state import state
from paperpulse.services.feed_service import FeedQuery
from paperpulse.utils.dates import utc_now

router = APIRouter()


@router.get("/api/papers")
def list_papers(request: Request, x_user_id: Optional[str] = Header(default=None)):
    """Cursor-paginated feed.

    Query parameters: ``view``, ``categories``, ``codeOnly``, ``hasWeights``,
    ``withBenchmarks``, ``limit`` and ``cursor``.
    """
    query = FeedQuery.from_params(request.query_params, user_id=x_user_id)
    page = state.feed.assemble(query, utc_now())
    return JSONResponse(
        page.to_dict(),
        headers={"Cache-Control": "private, max-age=60" if x_user_id else "public, max-age=60"},
    )


@router.get("/api/papers/{arxiv_id:path}")
def paper_detail(arxiv_id: str, x_user_id: Optional[str] = Header(default=None)):
    """One paper with claims, leaderboards and matching watchlists."""
    detail = state.feed.paper_detail(arxiv_id, utc_now(), user_id=x_user_id)
    if detail is None:
        return JSONResponse({"error": "Paper not found"}, status_code=404)
    return JSONResponse(detail)


@router.get("/api/compare")
def compare_papers(ids: str = ""):
    """Up to two papers side by side (``?ids=2401.00001,2401.00002``)."""
    items = state.feed.compare(ids, utc_now())
    return JSONResponse({"items": items}, headers={"Cache-Control": "public, max-age=90"})
