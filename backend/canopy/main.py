"""
Canopy Backend: FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn canopy.main:app), and
       by the test suite with its own AppContext.
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Request ID → Access Log → GZip → CORS      │
    │                                                          │
    │  Routers (/api):                                         │
    │    likes, flags, tags, items, operations, memberships,   │
    │    actions, members, publications        + /health       │
    │                                                          │
    │  Exception Handlers:                                     │
    │    CanopyError → its status_code │ Exception → 500       │
    │                                                          │
    │  app.state.context: AppContext (services, task queue)    │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (fail fast on inconsistent limits)
    3. Build the AppContext (unless one was injected) and start the bulk
       task queue workers

    Shutdown:
    1. Drain the bulk task queue (up to WORKER_SHUTDOWN_TIMEOUT)
    2. Dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from canopy import __version__
from canopy.config import settings
from canopy.context import AppContext, build_context
from canopy.database import async_session_factory, dispose_engine, engine
from canopy.exceptions import CanopyError
from canopy.middleware.logging import RequestLoggingMiddleware
from canopy.middleware.request_id import RequestIDMiddleware, request_id_var
from canopy.routes import (
    actions,
    flags,
    health,
    items,
    likes,
    members,
    memberships,
    operations,
    publications,
    tags,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: Optional[str] = None) -> None:
    """
    Configures the root logger once for the whole process.

    Format: 2026-01-15T12:00:00 [INFO] canopy.services.planner: message
    """
    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Access lines come from canopy.access; SQL echo only when asked for
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

def _lifespan(injected: Optional[AppContext]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ── Startup ───────────────────────────────────────────────────────
        setup_logging()
        logger.info("=" * 60)
        logger.info("Canopy Backend %s starting up...", __version__)

        ctx = injected or build_context(settings, async_session_factory, engine)
        # Inconsistent limits would make the bulk size thresholds meaningless
        ctx.settings.validate_required_for_production()

        app.state.context = ctx
        await ctx.task_queue.start(ctx.bulk.process)

        logger.info(
            "Tree limits: %d levels, %d children per folder, %d targets per bulk request",
            ctx.settings.max_tree_levels,
            ctx.settings.max_number_of_children,
            ctx.settings.max_targets_for_modify_request,
        )
        logger.info("=" * 60)

        yield

        # ── Shutdown ──────────────────────────────────────────────────────
        logger.info("Canopy Backend shutting down...")
        await ctx.task_queue.stop()
        if injected is None:
            await dispose_engine(ctx.engine)
        logger.info("Shutdown complete.")

    return lifespan


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Every CanopyError answers with its own status code and the body
    {"error", "message", "details", "request_id"}. `details` is only sent for
    4xx errors; 5xx responses never carry internal context.
    """

    @app.exception_handler(CanopyError)
    async def handle_canopy_error(request: Request, exc: CanopyError):
        rid = request_id_var.get("")
        content = {"error": exc.code, "message": exc.message, "request_id": rid}
        if exc.status_code < 500:
            content["details"] = exc.context
            logger.info("[%s] %s: %s", rid, exc.code, exc.message)
        else:
            logger.error("[%s] %s: %s | Context: %s", rid, exc.code, exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace goes to the log, the client gets the request id."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Assembles the application.

    Args:
        context: prebuilt AppContext (tests); when omitted the lifespan builds
                 one from the module settings and engine.
    """
    app = FastAPI(
        title="Canopy API",
        description=(
            "Multi-tenant content tree: items in folders, inherited memberships, "
            "visibility tags, bulk move / copy / delete."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_lifespan(context),
    )
    if context is not None:
        app.state.context = context

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Static /items/... and /members/... paths before the /{id} ones
    app.include_router(likes.router)
    app.include_router(flags.router)
    app.include_router(tags.router)
    app.include_router(items.router)
    app.include_router(operations.router)
    app.include_router(memberships.router)
    app.include_router(actions.router)
    app.include_router(members.router)
    app.include_router(publications.router)
    app.include_router(health.router)

    return app


app = create_app()
