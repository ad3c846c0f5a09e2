"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS
and the signed session carrying flash messages), and includes all routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from githarbor.core.database import init_db
from githarbor.core.logging_config import get_logger, setup_logging
from githarbor.workers.base import wait_for_pending_jobs

from .api import health
from .api.projects import merge_requests, pipelines
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Creates the tables of a local SQLite database on startup and lets running
    background merges finish on shutdown.
    """
    # Startup
    try:
        logger.info("Starting up GitHarbor Server...")
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down GitHarbor Server...")
    await wait_for_pending_jobs(timeout=settings.git_timeout)


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    GitHarbor Server

    Merge requests for bare git repositories: branch comparison, diffs, commits,
    merging, merge when the build succeeds and CI pipeline status.
    """,
    version=constant.API_VERSION,
    lifespan=lifespan,
)

setup_exception_handlers(app)

cors = settings.cors
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors.origins,
    allow_credentials=cors.allow_credentials,
    allow_methods=cors.allow_methods,
    allow_headers=cors.allow_headers,
)
app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)

app.include_router(health.router, tags=["health"])
app.include_router(merge_requests.router)
app.include_router(pipelines.router)
