"""Reading-list endpoints (``X-User-Id`` required)."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Header
from fastapi.responses import JSONResponse

from paperpulse.api.state import state

router = APIRouter()


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _paper_not_found() -> JSONResponse:
    return JSONResponse({"error": "Paper not found"}, status_code=404)


@router.get("/api/user/save")
def list_saves(
    status: Optional[str] = None,
    arxivId: Optional[str] = None,
    x_user_id: Optional[str] = Header(default=None),
):
    if not x_user_id:
        return _unauthorized()
    saves = state.saves.list_saves(x_user_id, status=status, arxiv_id=arxivId)
    return JSONResponse({"items": [s.to_client() for s in saves]})


@router.post("/api/user/save")
def save_paper(
    body: dict[str, Any] = Body(...),
    x_user_id: Optional[str] = Header(default=None),
):
    """Add, re-status or (``remove: true``) drop a paper.

    Without ``status`` the entry cycles queued → saved → reading → done.
    """
    if not x_user_id:
        return _unauthorized()
    if body.get("remove"):
        removed = state.saves.remove(x_user_id, arxiv_id=body.get("arxivId"))
        if removed is None:
            return _paper_not_found()
        return JSONResponse({"ok": True, "removed": removed})

    saved = state.saves.save(x_user_id, body.get("arxivId"), status=body.get("status"))
    if saved is None:
        return _paper_not_found()
    return JSONResponse({"item": saved.to_client()})


@router.delete("/api/user/save")
def delete_save(
    id: Optional[str] = None,
    arxivId: Optional[str] = None,
    x_user_id: Optional[str] = Header(default=None),
):
    if not x_user_id:
        return _unauthorized()
    removed = state.saves.remove(x_user_id, save_id=id, arxiv_id=arxivId)
    if removed is None:
        return _paper_not_found()
    return JSONResponse({"ok": True, "removed": removed})
