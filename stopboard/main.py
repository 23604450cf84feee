from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stopboard.adapters.api.controllers.board import router as board_router
from stopboard.adapters.api.controllers.departures import router as departures_router
from stopboard.adapters.api.controllers.places import router as places_router
from stopboard.adapters.api.dependencies import get_config, get_refresh_controller
from stopboard.domain.exceptions import StopboardError


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # A configured board refreshes from startup; otherwise POST /board starts it.
    cfg = get_config()
    if cfg.stop:
        get_refresh_controller().start_auto_refresh(
            cfg.refresh_interval_ms, immediate=True
        )
    try:
        yield
    finally:
        if get_refresh_controller.cache_info().currsize:
            await get_refresh_controller().stop_auto_refresh()


app = FastAPI(title="Stopboard", lifespan=lifespan)
app.include_router(places_router)
app.include_router(departures_router)
app.include_router(board_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Ensure API errors are JSON so board clients can display them."""

    logging.getLogger("uvicorn.error").exception(
        "Unhandled exception", extra={"path": str(request.url.path)}
    )

    revealable = (StopboardError, FileNotFoundError, ValueError)
    if isinstance(exc, revealable) or get_config().reveal_errors:
        detail = str(exc) or exc.__class__.__name__
    else:
        detail = "Internal Server Error"

    return JSONResponse(status_code=500, content={"detail": detail})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
