"""Watchlist CRUD and user data deletion (``X-User-Id`` required)."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Header
from fastapi.responses import JSONResponse

from paperpulse.api.state import state
from paperpulse.services.watchlist_service import validate_watchlist

router = APIRouter()


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def _not_found() -> JSONResponse:
    return JSONResponse({"error": "Watchlist not found"}, status_code=404)


@router.get("/api/user/watchlists")
def list_watchlists(x_user_id: Optional[str] = Header(default=None)):
    if not x_user_id:
        return _unauthorized()
    return JSONResponse({"items": [w.to_client() for w in state.repo.list_watchlists(x_user_id)]})


@router.post("/api/user/watchlists")
def create_watchlist(
    body: dict[str, Any] = Body(...),
    x_user_id: Optional[str] = Header(default=None),
):
    """Create a watchlist.  Returns the created record."""
    if not x_user_id:
        return _unauthorized()
    watchlist = validate_watchlist(body)
    created = state.repo.create_watchlist(x_user_id, watchlist)
    return JSONResponse(created.to_client(), status_code=201)


@router.patch("/api/user/watchlists/{watchlist_id}")
def update_watchlist(
    watchlist_id: str,
    body: dict[str, Any] = Body(...),
    x_user_id: Optional[str] = Header(default=None),
):
    """Partially update an owned watchlist."""
    if not x_user_id:
        return _unauthorized()
    existing = state.repo.get_watchlist(x_user_id, watchlist_id)
    if existing is None:
        return _not_found()
    updated = validate_watchlist(body, existing=existing)
    state.repo.update_watchlist(updated)
    return JSONResponse(updated.to_client())


@router.delete("/api/user/watchlists/{watchlist_id}")
def delete_watchlist(watchlist_id: str, x_user_id: Optional[str] = Header(default=None)):
    if not x_user_id:
        return _unauthorized()
    if not state.repo.delete_watchlist(x_user_id, watchlist_id):
        return _not_found()
    return JSONResponse({"ok": True})


@router.delete("/api/user")
def delete_user(x_user_id: Optional[str] = Header(default=None)):
    """Delete all data owned by the user."""
    if not x_user_id:
        return _unauthorized()
    removed = state.repo.delete_user_data(x_user_id)
    return JSONResponse({
        "ok": True,
        "watchlistsDeleted": removed["watchlists"],
        "savesDeleted": removed["saves"],
    })
