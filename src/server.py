"""Diagnostics API for the dental voice receptionist.

Run with:
    uvicorn src.server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response

from src.api.routes import router
from src.config import SERVER_HOST, SERVER_PORT
from src.services.business_config import BusinessConfigLoader
from src.services.metrics import metrics

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create the config loader once and share it through app state."""
    application.state.config_loader = BusinessConfigLoader()
    logger.info("Diagnostics API ready.")
    yield
    metrics.flush()


app = FastAPI(
    title="Dental Voice Agent Diagnostics",
    description="Inspect the configuration a dental voice receptionist call would use.",
    version="1.0.0",
    lifespan=lifespan,
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Dental Voice Agent Diagnostics",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting diagnostics API on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run("src.server:app", host=SERVER_HOST, port=SERVER_PORT, reload=True)
