"""
FastAPI entrypoint for the Reelsmith API.

* Block upload/render, item script/render and voice routes live under /v1
* The CLI (reelsmith.pipelines.run_pipeline) drives the same services
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reelsmith.api.routes_blocks import router as blocks_router
from reelsmith.api.routes_items import router as items_router
from reelsmith.api.routes_voices import router as voices_router
from reelsmith.core.config import settings
from reelsmith.core.logging_config import get_logger, setup_logging
from reelsmith.pipelines.factory import get_services
from reelsmith.utils.error_handler import get_degradation_counts

# Setup logging
setup_logging(log_level=settings.log_level, log_file=settings.log_file, serialize=settings.log_json)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info("=" * 60)
    app.state.services = get_services(settings, logger)
    app.state.engine_available = await app.state.services["media_processor"].check_availability()
    yield
    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Reelsmith - renders, captions and stitches short vertical videos from blocks",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(blocks_router)
app.include_router(items_router)
app.include_router(voices_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "endpoints": {
            "upload_block_media": "/v1/blocks/{block_id}/upload",
            "render_block": "/v1/blocks/{block_id}/generate",
            "plan_script": "/v1/items/{item_id}/script",
            "render_item": "/v1/items/{item_id}/render",
            "clone_voice": "/v1/voices/clone",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "engine_available": getattr(app.state, "engine_available", None),
        "degradations": get_degradation_counts(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reelsmith.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
