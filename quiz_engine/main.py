#!/usr/bin/env python3
"""
Quiz Engine
Main application entry point and configuration
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .config import get_settings
from .backend.app import create_app
from .backend.database.connection import (
    init_database,
    check_database_health,
    close_database_connections
)
from .backend.utils.helpers import setup_logging

# Configure logging
logger = logging.getLogger(__name__)

# Global app instance
app_instance: Optional[FastAPI] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""

    # Startup
    logger.info("🚀 Starting Quiz Engine...")

    await init_database()

    logger.info("🎉 Application startup complete!")

    yield

    # Shutdown
    logger.info("🛑 Shutting down application...")
    await close_database_connections()
    logger.info("✅ Application shutdown complete")


def create_main_app() -> FastAPI:
    """Create and configure the main FastAPI application"""

    settings = get_settings()

    main_app = FastAPI(
        title=settings.APP_NAME,
        description="Quiz attempt lifecycle and auto-grading service",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
        openapi_url="/api/openapi.json" if settings.DEBUG else None
    )

    # Mount the backend API
    backend_app = create_app()
    main_app.mount("/api", backend_app)

    # Health check endpoint
    @main_app.get("/health")
    async def health_check():
        """Application health check endpoint"""
        database = await check_database_health()
        return {
            "status": database["status"],
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "database": database["database"]
        }

    return main_app


async def run_server():
    """Run the server"""
    settings = get_settings()

    config = uvicorn.Config(
        app="quiz_engine.main:app_instance",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS,
        log_level="info" if settings.DEBUG else "warning",
        access_log=settings.DEBUG,
        loop="asyncio"
    )

    server = uvicorn.Server(config)
    await server.serve()


def main():
    """Main entry point"""
    setup_logging()

    settings = get_settings()
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except Exception as e:
        logger.error(f"Application failed to start: {e}")
        sys.exit(1)


# Create app instance for uvicorn
app_instance = create_main_app()

if __name__ == "__main__":
    main()
