"""
Switchyard Server

FastAPI application exposing the engine over HTTP on localhost.
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from switchyard import __version__
from switchyard.api import api_router
from switchyard.config import Settings
from switchyard.core.engine import Engine
from switchyard.lib.logger import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings or Settings()
    app.state.settings = settings

    setup_logging(level=settings.log_level, format_string=settings.log_format)

    logger.info("Starting Switchyard server...")
    logger.info(f"Primary source: {settings.primary_source}")
    logger.info(f"Bundle root: {settings.bundle_root_path}")

    engine = Engine(settings)
    await engine.start(watch=app.state.watch)
    app.state.engine = engine

    logger.info("Server ready")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.stop()
    app.state.engine = None


def create_app(settings: Optional[Settings] = None, watch: bool = True) -> FastAPI:
    """Build the application; settings are resolved at startup when not given."""
    app = FastAPI(
        title="Switchyard",
        description="Model switching, MCP server and skill management for Claude Code",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.watch = watch
    app.state.engine = None

    app.include_router(api_router)

    @app.get("/")
    async def root():
        """Root endpoint - returns server info."""
        return {
            "name": "Switchyard",
            "version": __version__,
            "status": "running",
        }

    return app


app = create_app()


def main(settings: Optional[Settings] = None):
    """Main entry point."""
    settings = settings or Settings()

    print(f"""
===============================================================
                         Switchyard
===============================================================
  Server:  http://{settings.host}:{settings.port}
  Skills:  {str(settings.bundle_root_path)[:45]}
---------------------------------------------------------------
  API Endpoints:
    GET  /api/health           - Health check
    GET  /api/mcps             - List MCP servers
    POST /api/mcps             - Add MCP server
    GET  /api/skills           - List skills
    POST /api/skills/:id/sync/:target - Sync skill to a tool
    GET  /api/models/current   - Current model
    POST /api/models/switch    - Switch model
===============================================================
    """)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
