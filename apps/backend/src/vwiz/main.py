"""Main entry point for the render server."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from vwiz.api.routes import health, renders
from vwiz.config import Settings, settings
from vwiz.jobs.queue import RenderQueue
from vwiz.jobs.registry import JobRegistry
from vwiz.services.interfaces import ICompositionEngine
from vwiz.services.remotion import RemotionEngine

logger = logging.getLogger(__name__)


def build_render_queue(app_settings: Settings, engine: ICompositionEngine) -> RenderQueue:
    """Wire a RenderQueue with a fresh registry from settings."""
    retention = None
    if app_settings.job_retention_seconds is not None:
        retention = timedelta(seconds=app_settings.job_retention_seconds)

    return RenderQueue(
        registry=JobRegistry(),
        engine=engine,
        renders_dir=app_settings.renders_dir.resolve(),
        public_url=app_settings.public_url,
        files_path=app_settings.files_path,
        render_timeout=app_settings.render_timeout_seconds,
        retention=retention,
        sweep_interval=app_settings.retention_sweep_interval_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Prepare the engine and start the render queue; stop it on shutdown."""
    app_settings: Settings = app.state.settings
    app_settings.ensure_directories()

    engine = await RemotionEngine.prepare(app_settings)
    queue = build_render_queue(app_settings, engine)
    queue.start()
    app.state.render_queue = queue
    logger.info("Ready to accept render jobs at %s/renders", app_settings.public_url)

    try:
        yield
    finally:
        await queue.stop()


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are client errors (400), never jobs."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Create and configure the FastAPI application."""
    from vwiz import __version__

    app = FastAPI(
        title="Video Wizard Render Server",
        description="Sequential render queue for caption compositions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include API routes
    app.include_router(health.router)
    app.include_router(renders.router)

    # Serve rendered videos
    app.mount(
        app_settings.files_path,
        StaticFiles(directory=app_settings.renders_dir, check_dir=False),
        name="files",
    )

    return app


app = create_app()


def main() -> None:
    """Run the application."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.ensure_directories()
    uvicorn.run(
        "vwiz.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
