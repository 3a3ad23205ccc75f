"""Main entry point for the open letter application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from open_letter import __version__
from open_letter.api.v1 import admin_router, dump_router, signatures_router
from open_letter.core.settings import settings
from open_letter.db.session import create_tables
from open_letter.services.dump_scheduler import DumpRefreshWorker
from open_letter.services.nationstates import get_nationstates_client

logger = logging.getLogger(__name__)

DESCRIPTION = "Open letter signed by NationStates nations"

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description=DESCRIPTION,
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(signatures_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(dump_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_create_tables:
        create_tables()
    if settings.dump_refresh_enabled:
        worker = DumpRefreshWorker()
        await worker.start()
        app.state.dump_worker = worker
        logger.info(
            "Scheduled dump refresh every %.1f hours, first run in %.0fs",
            settings.dump_refresh_interval_hours,
            worker.initial_delay_seconds,
        )
    else:
        app.state.dump_worker = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    worker: DumpRefreshWorker | None = getattr(app.state, "dump_worker", None)
    if worker:
        await worker.stop()
    await get_nationstates_client().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": f"{settings.app_name} API",
        "version": __version__,
        "description": DESCRIPTION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run("open_letter.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
