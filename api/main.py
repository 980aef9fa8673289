"""
api/main.py -- FastAPI application entry point for BookOrbit.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware  -- adds CORS headers for the configured browser origins
  2. log_requests    -- one log line per request with status and latency

Lifespan handles startup (engine, stores, identity verifier) and shutdown
(dispose engine) symmetrically. Stores receive the engine explicitly; nothing
reaches for a module-level database handle.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.routes.books import router as books_router
from api.routes.orders import router as orders_router
from api.routes.users import router as users_router
from auth.verifier import build_verifier
from catalog.store import CatalogStore
from core.config import get_settings
from core.database import create_db_engine, ping
from core.errors import BookOrbitError
from orders.store import OrderLedger
from users.store import UserDirectory

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bookorbit.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared engine and wire every component onto app.state.

    Startup order matters: the Catalog Store needs the User Directory for
    role lookups, so users are built first.
    """
    logger.info("BookOrbit API starting up")
    engine = create_db_engine(_settings.database_url)
    if ping(engine):
        logger.info("Database ping OK")
    else:
        logger.warning("Database ping failed -- requests will return 500 until it recovers")
    app.state.engine = engine
    app.state.users = UserDirectory(engine)
    app.state.catalog = CatalogStore(engine, app.state.users)
    app.state.orders = OrderLedger(engine)
    app.state.verifier = build_verifier(_settings)
    logger.info("Identity provider: %s", _settings.identity_provider)

    yield

    engine.dispose()
    logger.info("BookOrbit API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="BookOrbit API",
    description="Book catalog and order management for BookOrbit.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time around call_next gives latency on every response.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, tags=["Users"])
app.include_router(books_router, tags=["Books"])
app.include_router(orders_router, tags=["Orders"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the API as {"message": str}. No structured error codes
# are exposed to clients.
# ---------------------------------------------------------------------------


@app.exception_handler(BookOrbitError)
async def bookorbit_error_handler(request: Request, exc: BookOrbitError) -> JSONResponse:
    """Unauthorized 401, InvalidInput 400, Forbidden 403, NotFound 404, InvalidState 400, Internal 500."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or a body that is not an object -- bad input, 400."""
    logger.info("Rejected request body on %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"message": "Invalid request body"})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes (404), wrong methods (405) and any explicit HTTPException."""
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ---------------------------------------------------------------------------
# Liveness and health
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "BookOrbit server is running ✅"


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok" if ping(request.app.state.engine) else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )
