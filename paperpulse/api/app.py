"""FastAPI application: feed, compare, enrichment trigger, watchlists, reading list."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from paperpulse import __version__
from paperpulse.api.routers import enrich, papers, saves, watchlists
from paperpulse.api.state import init_state, state
from paperpulse.config import Settings
from paperpulse.exceptions import ValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup (unless a test already did)."""
    if not state.ready:
        init_state(Settings.load())
    logger.info("paperpulse API ready (db=%s)", state.settings.db_path)
    yield


app = FastAPI(title="paperpulse", version=__version__, lifespan=lifespan)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.get("/health")
async def health():
    return {"ok": True, "version": __version__}


app.include_router(papers.router)
app.include_router(enrich.router)
app.include_router(watchlists.router)
app.include_router(saves.router)
