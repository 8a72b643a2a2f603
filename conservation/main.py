"""
FastAPI application entry point.
Conservation Alert Service
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conservation import __version__
from conservation.config import get_settings
from conservation.api.routes import router
from conservation.core.mongodb_client import close_mongodb_client
from conservation.services import Services, build_services


# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built service container (built at startup if not provided)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.
        Handles startup and shutdown events.
        """
        # Startup
        logger.info("Starting Conservation Alert API...")
        logger.info(f"API Version: {__version__}")
        app.state.services = services or build_services()

        try:
            app.state.services.repository.ping()
            app.state.services.repository.ensure_indexes()
            logger.info("MongoDB connection established")
        except Exception as e:
            logger.warning(f"MongoDB connection failed: {e}")
            logger.warning("API will start but database operations will fail")

        yield

        # Shutdown
        logger.info("Shutting down Conservation Alert API...")
        if services is None:
            close_mongodb_client()
        logger.info("Cleanup complete")

    app = FastAPI(
        title="Conservation Alert API",
        description="""
    Conservation alerts for insurance agents

    Turns carrier lapse and cancellation notices into tracked alerts:
    - **Fireworks AI** extracts the client, policy and reason from the notice
    - **MongoDB** holds agents, clients, alerts and the notification log
    - Outreach goes out by **Expo push** and **Twilio SMS** on a drip schedule

    ## Quick Start

    1. POST `{"rawText": ...}` to `/api/conservation/create`
    2. Call `/api/cron/conservation-outreach` every 30 minutes
    """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Conservation Alert API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "conservation.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
