"""
GlobalAid Connect prediction API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups, builds
the prediction pipeline objects, and loads the crisis feed on startup.

Extension points:
  - Add new route groups with app.include_router() below
  - Swap pipeline collaborators (sources, model client) where
    app.state.orchestrator is built
  - Change startup behaviour in the lifespan context manager
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from aidconnect.core.config import settings
from aidconnect.core.rate_limit import limiter
from aidconnect.routes.crises import router as crises_router
from aidconnect.routes.health import router as health_router
from aidconnect.routes.predictions import router as predictions_router
from aidconnect.services.crisis_feed import CrisisFeed, CrisisFeedError
from aidconnect.services.orchestrator import PredictionOrchestrator

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage startup and shutdown lifecycle.

    Code before `yield` runs on startup; code after runs on shutdown.
    A feed failure at startup is not fatal: the API serves an empty
    crisis list until POST /api/v1/crises/refresh succeeds.
    """
    logger.info("Starting GlobalAid Connect prediction API (env: %s)", settings.environment)
    if settings.crisis_feed_autoload:
        try:
            await app.state.crisis_feed.refresh()
        except CrisisFeedError as exc:
            logger.warning("Crisis feed unavailable at startup: %s. Serving an empty list.", exc)
    yield
    logger.info("Shutting down GlobalAid Connect prediction API")


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="GlobalAid Connect Prediction API",
    description=(
        "Active crisis feed and live crisis impact predictions. "
        "Predictions are model-generated — treat them as guidance, not fact."
    ),
    version="0.1.0",
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)

# ─── Pipeline ──────────────────────────────────────────────────────────────────
# One feed + one orchestrator per app; routes reach them via core/dependencies.py.
app.state.crisis_feed = CrisisFeed()
app.state.orchestrator = PredictionOrchestrator(app.state.crisis_feed)

# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Attach the limiter to app state so slowapi can find it.
# Routes opt-in with @limiter.limit("N/minute") + request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(crises_router)
app.include_router(predictions_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "GlobalAid Connect Prediction API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
