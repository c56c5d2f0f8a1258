#!/usr/bin/env python3
"""
Bidder, creator and global analytics endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from castbid.analytics.engine import Period
from castbid.analytics.identity import IdentityNotFoundError, InvalidIdentityError, parse_identity

from ..deps import get_analytics_service
from ..services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])
logger = logging.getLogger(__name__)


@router.get("/stats")
async def get_global_stats(service: AnalyticsService = Depends(get_analytics_service)):
    """Totals across every bidder and auction"""
    try:
        return await service.global_stats()
    except Exception as e:
        logger.error(f"Error fetching global stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch stats")


@router.get("/top-bidders")
async def get_top_bidders(
    period: Period = Query(Period.ALL_TIME, description="day, week, month or all-time"),
    limit: int = Query(50, ge=1, le=200),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Leaderboard ranked by bid count, then volume"""
    try:
        return await service.leaderboard(period, limit)
    except Exception as e:
        logger.error(f"Error fetching leaderboard for {period.value}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch leaderboard")


@router.get("/simp-level/{fid}")
async def get_simp_level(fid: str, service: AnalyticsService = Depends(get_analytics_service)):
    try:
        return await service.simp_profile(fid)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error fetching simp level for {fid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch simp level")


@router.get("/simp-battles")
async def get_simp_battle(
    fid1: Optional[str] = None,
    user1: Optional[str] = None,
    fid2: Optional[str] = None,
    user2: Optional[str] = None,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Head-to-head comparison; each side is a fid or a username"""
    try:
        first = parse_identity(fid=fid1, username=user1)
        second = parse_identity(fid=fid2, username=user2)
        return await service.head_to_head(first, second)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error comparing {fid1 or user1} vs {fid2 or user2}: {e}")
        raise HTTPException(status_code=500, detail="Failed to compare users")


@router.get("/outbid-history/{fid}")
async def get_outbid_history(
    fid: str,
    limit: int = Query(10, ge=1, le=50),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return await service.outbid_history(fid, limit)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error fetching outbid history for {fid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch outbid history")


@router.get("/creator-stats/{fid}")
async def get_creator_stats(fid: str, service: AnalyticsService = Depends(get_analytics_service)):
    try:
        return await service.creator_stats(fid)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error fetching creator stats for {fid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch creator stats")


@router.get("/hot-users")
async def get_hot_users(
    limit: int = Query(10, ge=1, le=50),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Creators ranked by revenue"""
    try:
        return await service.hot_creators(limit)
    except Exception as e:
        logger.error(f"Error fetching hot users: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch hot users")


@router.get("/trending")
async def get_trending(
    limit: int = Query(10, ge=1, le=50),
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return await service.trending(limit)
    except Exception as e:
        logger.error(f"Error fetching trending auctions: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch trending auctions")


@router.get("/hot-casts")
async def get_hot_casts(
    limit: int = Query(10, ge=1, le=50),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Auctions with the highest bids and their top three bidders"""
    try:
        return await service.hot_casts(limit)
    except Exception as e:
        logger.error(f"Error fetching hot casts: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch hot casts")


@router.get("/user/{fid}")
async def get_user_history(fid: str, service: AnalyticsService = Depends(get_analytics_service)):
    """A bidder's bids, newest first, joined with their auctions"""
    try:
        return await service.user_history(fid)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error fetching bid history for {fid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user history")


@router.get("/hall-of-shame/{fid}")
async def get_hall_of_shame(fid: str, service: AnalyticsService = Depends(get_analytics_service)):
    try:
        return await service.hall_of_shame(fid)
    except (InvalidIdentityError, IdentityNotFoundError):
        raise
    except Exception as e:
        logger.error(f"Error fetching hall of shame for {fid}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user profile")
