"""FastAPI application entry point.

This module wires together the API routers, configures middleware and
startup tasks, and exposes the ASGI application object used by the
server.
"""

import logging
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import AppConfig, get_config
from app.crud import reconcile_family_links
from app.database import async_session, create_db_and_tables
from app.errors import FamilyAppError
from app.routes import auth, posts, profile

config = get_config()

# The log level comes from configuration so deployments can adjust
# verbosity without code changes.
logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Family Moments API")

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Create tables and repair any half-written family joins."""

    await create_db_and_tables()
    async with async_session() as session:
        repaired = await reconcile_family_links(session)
    if repaired:
        logger.warning("Repaired %d one-sided family links", repaired)
    logger.info("Started in %s environment", config.environment)


app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(posts.router)


@app.get("/health")
async def health(app_config: AppConfig = Depends(get_config)):
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": app_config.environment,
    }


@app.exception_handler(FamilyAppError)
async def family_app_error_handler(request: Request, exc: FamilyAppError):
    """Render domain errors raised by the service layer."""
    if exc.status_code >= 500:
        logger.error("%s during request %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
