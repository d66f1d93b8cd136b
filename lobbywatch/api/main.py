"""
lobbywatch.api.main — FastAPI application entry point
======================================================

Read-only HTTP view over the lobby store.

Run with::

    uvicorn lobbywatch.api.main:app --port 8000

or ``python -m lobbywatch.api.main`` to use ``api_port`` from config.yaml.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from lobbywatch.api.deps import get_config, get_engine  # noqa: E402
from lobbywatch.api.routes.lobbies import router as lobbies_router  # noqa: E402
from lobbywatch.api.routes.maps import router as maps_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed CORS origins from ``CORS_ALLOW_ORIGINS`` (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Lobbywatch API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Lobbywatch API shutting down")


app = FastAPI(
    title="Lobbywatch API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(lobbies_router, prefix="/api")
app.include_router(maps_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_config().api_port)
