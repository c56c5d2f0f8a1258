#!/usr/bin/env python3
"""
castbid API server.
"""

import logging
from datetime import datetime, timezone

import aiohttp
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from castbid import __version__
from castbid.analytics.identity import IdentityNotFoundError, InvalidIdentityError

from .config import get_cors_origins, get_settings
from .database import check_database_connection
from .routes.analytics import router as analytics_router
from .routes.auctions import router as auctions_router
from .routes.sync import router as sync_router
from .services.profiles import ProfileProvider
from .services.result_cache import ResultCache

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="castbid API",
    description="Cast auction bids, leaderboards and simp analytics",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auctions_router)
app.include_router(analytics_router)
app.include_router(sync_router)


@app.exception_handler(InvalidIdentityError)
async def invalid_identity_handler(request: Request, exc: InvalidIdentityError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(IdentityNotFoundError)
async def identity_not_found_handler(request: Request, exc: IdentityNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    app.state.http_session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=10))
    app.state.result_cache = ResultCache(redis_client, ttl=settings.result_cache_ttl)
    app.state.profiles = ProfileProvider(
        app.state.http_session,
        settings.neynar_api_key,
        redis_client=redis_client,
        base_url=settings.neynar_base_url,
        ttl=settings.profile_cache_ttl,
    )
    if not settings.neynar_api_key:
        logger.warning("NEYNAR_API_KEY not set, profiles will only come from cache")
    logger.info(f"🚀 castbid API {__version__} started")


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.http_session.close()
    await app.state.result_cache.close()


@app.get("/")
async def root():
    return {
        "name": "castbid API",
        "version": __version__,
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if not await check_database_connection():
        status["status"] = "unhealthy"
        status["database"] = "unhealthy"
        return JSONResponse(status_code=503, content=status)
    status["database"] = "healthy"
    return status


def main():
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
