"""FastAPI application: cron ingestion trigger and AI-guarded routes.

Process-wide state (database connection, rate limiter, response cache) is
created once in the lifespan and reached through ``request.app.state``.
"""

import logging
import os
import secrets
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from jobsweep import __version__
from jobsweep.core.config import Settings
from jobsweep.core.db import count_active_listings, get_active_listings, get_recent_runs, init_db
from jobsweep.core.errors import ResearchUnavailable
from jobsweep.core.schemas import RateLimitDecision, Source
from jobsweep.pipeline.cache import ResponseCache
from jobsweep.pipeline.normalizer import comparison_key
from jobsweep.pipeline.orchestrator import run_ingestion
from jobsweep.pipeline.rate_limiter import RateLimiter
from jobsweep.pipeline.store import ListingStore
from jobsweep.research import CompanyResearch, ResearchProvider, get_provider, research_company
from jobsweep.sources import SourceClient, build_clients

logger = logging.getLogger(__name__)

RESEARCH_ROUTE_KEY = "company-research"
RATE_LIMIT_MESSAGE = "You've reached the limit for this feature. Please try again later."


class IngestionRequest(BaseModel):
    """Optional body for the ingestion trigger."""

    locations: list[str] | None = None


class ResearchRequest(BaseModel):
    company: str = Field(min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})


def is_authorized(authorization: str | None, secret: str | None) -> bool:
    """Check a ``Bearer <secret>`` header in constant time. No secret, no access."""
    if not secret or not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return secrets.compare_digest(token.strip().encode(), secret.encode())


def rate_limited(route_key: str) -> Callable[[Request], RateLimitDecision]:
    """Dependency factory that charges one attempt and rejects limited callers with 429."""

    def dependency(request: Request) -> RateLimitDecision:
        settings: Settings = request.app.state.settings
        identity = request.headers.get(settings.api.identity_header) or None
        decision: RateLimitDecision = request.app.state.rate_limiter.check_and_consume(
            identity, route_key,
        )
        if decision.limited:
            retry_after = max(0, int(decision.reset_at.timestamp() - time.time()))
            raise HTTPException(
                status_code=429,
                detail=RATE_LIMIT_MESSAGE,
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                    "X-RateLimit-Reset": str(int(decision.reset_at.timestamp())),
                },
            )
        return decision

    return dependency


def create_app(
    settings: Settings,
    *,
    clients: list[SourceClient] | None = None,
    research_provider: ResearchProvider | None = None,
    cron_secret: str | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the application.

    ``clients``, ``research_provider`` and ``rate_limiter`` default to what the
    settings describe; tests inject fakes. ``cron_secret`` defaults to the
    environment variable named in ``settings.api.cron_secret_env``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        conn = init_db(settings.database.path)
        app.state.settings = settings
        app.state.store = ListingStore(conn)
        app.state.clients = clients if clients is not None else build_clients(settings)
        app.state.rate_limiter = rate_limiter or RateLimiter.from_config(settings.rate_limit)
        app.state.cache = ResponseCache(
            settings.cache.ttl_seconds, max_entries=settings.cache.max_entries,
        )
        app.state.research_provider = research_provider
        app.state.cron_secret = (
            cron_secret if cron_secret is not None
            else os.environ.get(settings.api.cron_secret_env, "")
        )
        try:
            yield
        finally:
            conn.close()

    app = FastAPI(title="jobsweep", version=__version__, lifespan=lifespan)

    def cron_authorized(request: Request) -> bool:
        return is_authorized(request.headers.get("authorization"), request.app.state.cron_secret)

    async def trigger_ingestion(request: Request, locations: list[str] | None) -> JSONResponse:
        try:
            result = await run_ingestion(
                request.app.state.settings,
                request.app.state.clients,
                request.app.state.store,
                locations=locations or None,
            )
        except Exception as e:
            logger.exception("Ingestion run failed")
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

        return JSONResponse(content={"success": True, "results": result.summary()})

    @app.get("/api/cron/bulk-download-jobs")
    async def bulk_download_get(
        request: Request,
        location: list[str] | None = Query(default=None),
    ) -> JSONResponse:
        if not cron_authorized(request):
            logger.warning("Rejected ingestion trigger with missing or bad secret")
            return _unauthorized()
        return await trigger_ingestion(request, location)

    @app.post("/api/cron/bulk-download-jobs")
    async def bulk_download_post(request: Request) -> JSONResponse:
        # Body is parsed only after the secret checks out.
        if not cron_authorized(request):
            logger.warning("Rejected ingestion trigger with missing or bad secret")
            return _unauthorized()

        raw = await request.body()
        try:
            body = IngestionRequest.model_validate_json(raw) if raw.strip() else IngestionRequest()
        except ValidationError as e:
            logger.warning("Rejected ingestion trigger body: %s", e.errors()[:1])
            return JSONResponse(
                status_code=422, content={"success": False, "error": "Invalid request body"},
            )
        return await trigger_ingestion(request, body.locations)

    @app.get("/api/cron/runs")
    async def recent_runs(
        request: Request,
        limit: int = Query(default=10, ge=1, le=100),
    ) -> JSONResponse:
        if not cron_authorized(request):
            return _unauthorized()
        runs = get_recent_runs(request.app.state.store.conn, limit=limit)
        return JSONResponse(content={"count": len(runs), "runs": runs})

    @app.get("/api/jobs")
    async def list_active_jobs(
        request: Request,
        source: Source | None = None,
        location: str | None = None,
        keyword: str | None = None,
        limit: int = Query(default=50, ge=1, le=500),
    ) -> dict[str, Any]:
        listings = get_active_listings(
            request.app.state.store.conn,
            source=source,
            location=location,
            keyword=keyword,
            limit=limit,
        )
        return {"count": len(listings), "listings": listings}

    @app.post("/api/company/research")
    async def company_research(
        request: Request,
        body: ResearchRequest,
        decision: RateLimitDecision = Depends(rate_limited(RESEARCH_ROUTE_KEY)),
    ) -> JSONResponse:
        state = request.app.state
        cache: ResponseCache = state.cache
        cache_key = f"research:{comparison_key(body.company)}|{comparison_key(body.location)}"

        async def fetch() -> CompanyResearch:
            provider = state.research_provider or get_provider(state.settings.research.provider)
            return await run_in_threadpool(
                research_company,
                provider,
                body.company,
                body.location,
                state.settings.research.model,
            )

        try:
            report: CompanyResearch = await cache.get_or_fetch(cache_key, fetch)
        except (ResearchUnavailable, ValueError, ImportError) as e:
            logger.warning("Company research failed for '%s': %s", body.company, e)
            raise HTTPException(
                status_code=502, detail="Company research is temporarily unavailable.",
            ) from e

        return JSONResponse(
            content={"success": True, "research": report.model_dump()},
            headers={
                "X-RateLimit-Limit": str(decision.limit),
                "X-RateLimit-Remaining": str(decision.remaining),
            },
        )

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        state = request.app.state
        state.rate_limiter.purge_expired()
        return {
            "status": "ok",
            "active_listings": count_active_listings(state.store.conn),
            "cache": state.cache.stats(),
            "rate_limit_keys": len(state.rate_limiter),
        }

    return app
