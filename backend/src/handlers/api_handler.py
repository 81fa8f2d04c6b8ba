"""Main FastAPI application handler for Lambda deployment."""

import logging
import os
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from handlers.runtime import (
    get_aggregator,
    get_conditions_store,
    get_ledger,
    get_park_loader,
    get_publisher,
    reset_services,
)
from models.park import Park
from services.errors import ConcurrentModificationError, RateLimited, ValidationRejected
from services.ingestion_service import ReportIngestionService
from services.reputation_service import LEADERBOARD_PERIODS, level_progress
from services.static_json_generator import park_summary
from utils.cache import (
    CACHE_CONTROL_PRIVATE,
    CACHE_CONTROL_PUBLIC,
    CACHE_CONTROL_PUBLIC_LONG,
    cached_conditions,
    cached_estimates,
    cached_leaderboard,
    cached_parks,
    invalidate_conditions,
)
from utils.time_utils import now_utc

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="ParkCheck API",
    description="Crowd-sourced park conditions and dry-out estimates",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log all API requests with timing for CloudWatch monitoring."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    # Log slow requests (>1s) at WARNING level for monitoring
    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


def get_ingestion_service() -> ReportIngestionService:
    return ReportIngestionService(
        get_park_loader().slugs(),
        get_aggregator(),
        get_ledger(),
        weather_provider=_read_weather,
    )


def _read_weather():
    if not os.environ.get("WEBSITE_BUCKET"):
        return None
    return get_publisher().read_weather()


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Reports


@app.post("/api/v1/reports", status_code=status.HTTP_201_CREATED)
async def submit_report(payload: Any = Body(...)):
    """Submit a condition report; returns the park's updated conditions."""
    try:
        conditions = get_ingestion_service().submit(payload, now_utc())
    except RateLimited as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=e.reason)
    except ValidationRejected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason)
    except ConcurrentModificationError as e:
        logger.error("Report submission lost write race: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Park is busy, please retry",
        )
    except Exception as e:
        logger.error("Failed to submit report: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit report",
        )

    invalidate_conditions()
    return conditions.to_record()


# MARK: - Parks


@cached_parks
def _get_parks_cached() -> list[Park]:
    return get_park_loader().get_parks()


@cached_conditions
def _get_conditions_cached(slug: str) -> dict:
    return get_conditions_store().get(slug).to_record()


def _get_park_or_404(slug: str) -> Park:
    park = get_park_loader().get_park(slug)
    if not park:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Park {slug} not found",
        )
    return park


@app.get("/api/v1/parks")
async def get_parks(response: Response):
    """All parks with their current composite conditions."""
    try:
        parks = _get_parks_cached()
        summaries = []
        for park in parks:
            summary = park_summary(park, None)
            summary.update(
                {
                    k: v
                    for k, v in _get_conditions_cached(park.slug).items()
                    if k in ("compositeStatus", "avgSurface", "avgCrowd", "lastReportAt")
                }
            )
            summaries.append(summary)
    except Exception as e:
        logger.error("Failed to list parks: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve parks",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return {"parks": summaries, "count": len(summaries)}


@app.get("/api/v1/parks/{slug}/conditions")
async def get_park_conditions(slug: str, response: Response):
    """Current conditions record for one park."""
    _get_park_or_404(slug)
    try:
        conditions = _get_conditions_cached(slug)
    except Exception as e:
        logger.error("Failed to get conditions for %s: %s", slug, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve conditions",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return conditions


# MARK: - Reporters


@cached_leaderboard
def _get_leaderboard_cached(period: str, limit: int) -> list[dict]:
    ledger = get_ledger()
    if ledger is None:
        return []
    return [p.to_record() for p in ledger.leaderboard(period, now_utc(), limit)]


@app.get("/api/v1/reporters")
async def get_reporters(
    response: Response,
    period: str = Query("all", description="Leaderboard window: all, month or week"),
    limit: int = Query(50, ge=1, le=500),
):
    """Reporter leaderboard ordered by reputation."""
    if period not in LEADERBOARD_PERIODS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid period. Must be one of: {', '.join(LEADERBOARD_PERIODS)}",
        )
    try:
        reporters = _get_leaderboard_cached(period, limit)
    except Exception as e:
        logger.error("Failed to build leaderboard: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve reporters",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return {"period": period, "reporters": reporters, "count": len(reporters)}


@app.get("/api/v1/reporters/{reporter_id}")
async def get_reporter(reporter_id: str, response: Response):
    """One reporter's profile with progress toward the next level."""
    ledger = get_ledger()
    profile = ledger.get_profile(reporter_id) if ledger else None
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reporter {reporter_id} not found",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
    record = profile.to_record()
    record["levelProgress"] = level_progress(profile.reputation).to_record()
    return record


# MARK: - Weather


@cached_estimates
def _get_estimates_cached() -> dict | None:
    estimates = get_publisher().read_dry_estimates()
    return estimates.to_record() if estimates else None


@app.get("/api/v1/dry-estimates")
async def get_dry_estimates(response: Response):
    """Latest dry-out estimates for all parks."""
    try:
        estimates = _get_estimates_cached()
    except Exception as e:
        logger.error("Failed to read dry estimates: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve dry estimates",
        )
    if estimates is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No dry estimates available yet",
        )

    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
    return estimates


@app.get("/api/v1/parks/{slug}")
async def get_park(slug: str, response: Response):
    """Static attributes of one park."""
    park = _get_park_or_404(slug)
    response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC_LONG
    return park.to_record()


api_handler = Mangum(app, lifespan="off")

__all__ = ["app", "api_handler", "reset_services"]
