"""
FastAPI dependencies for shared clients held on app.state.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .services.analytics_service import AnalyticsService
from .services.profiles import ProfileProvider
from .services.result_cache import ResultCache


def get_result_cache(request: Request) -> ResultCache:
    return request.app.state.result_cache


def get_profile_provider(request: Request) -> ProfileProvider:
    return request.app.state.profiles


def get_analytics_service(
    db: AsyncSession = Depends(get_db),
    cache: ResultCache = Depends(get_result_cache),
    profiles: ProfileProvider = Depends(get_profile_provider),
) -> AnalyticsService:
    return AnalyticsService(db, cache, profiles)
