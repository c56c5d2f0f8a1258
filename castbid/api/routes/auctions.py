#!/usr/bin/env python3
"""
Auction listing, detail and recent bid activity.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from castbid.analytics.engine import usdc_to_cents
from castbid.indexer.contracts import format_cast_hash
from castbid.indexer.lifecycle import effective_state

from ..database import DatabaseQueries, get_db
from ..deps import get_profile_provider
from ..services.profiles import ProfileProvider

router = APIRouter(tags=["auctions"])
logger = logging.getLogger(__name__)


def _auction_payload(row) -> dict:
    m = row._mapping
    state = effective_state(m['state'], m['end_time'])
    return {
        "id": m['id'],
        "cast_hash": m['cast_hash'],
        "creator_address": m['creator_address'],
        "creator_fid": m['creator_fid'],
        "min_bid_cents": usdc_to_cents(m['min_bid']),
        "end_time": m['end_time'],
        "state": int(state),
        "state_label": state.label,
        "protocol_fee_bps": m['protocol_fee_bps'],
        "created_at": m['created_at'],
        "winner_fid": m['winner_fid'],
        "winning_bid_cents": usdc_to_cents(m['winning_bid']) if m['winning_bid'] is not None else None,
    }


def _bid_payload(row) -> dict:
    m = row._mapping
    return {
        "id": m['id'],
        "auction_id": m['auction_id'],
        "cast_hash": m['cast_hash'],
        "bidder_address": m['bidder_address'],
        "bidder_fid": m['bidder_fid'],
        "amount_cents": usdc_to_cents(m['amount']),
        "timestamp": m['timestamp'],
        "transaction_hash": m['transaction_hash'],
        "block_number": m['block_number'],
    }


@router.get("/auctions")
async def get_auctions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileProvider = Depends(get_profile_provider),
):
    """Auctions newest first"""
    try:
        rows = await DatabaseQueries.get_auctions(db, limit, offset)
        users = await profiles.get_users(row._mapping['creator_fid'] for row in rows)
        casts = await profiles.get_casts(row._mapping['cast_hash'] for row in rows)

        auctions = []
        for row in rows:
            payload = _auction_payload(row)
            payload["bid_count"] = int(row._mapping['bid_count'] or 0)
            payload["highest_bid_cents"] = usdc_to_cents(row._mapping['highest_bid'])
            payload["creator_profile"] = users.get(payload['creator_fid'])
            payload["cast"] = casts.get(payload['cast_hash'])
            auctions.append(payload)
        return {"auctions": auctions}
    except Exception as e:
        logger.error(f"Error fetching auctions: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch auctions")


@router.get("/auctions/{cast_hash}")
async def get_auction(
    cast_hash: str,
    db: AsyncSession = Depends(get_db),
    profiles: ProfileProvider = Depends(get_profile_provider),
):
    """One auction with its bids, highest first"""
    try:
        canonical = format_cast_hash(cast_hash)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid cast hash: {cast_hash}")

    try:
        auction = await DatabaseQueries.get_auction_by_cast_hash(db, canonical)
    except Exception as e:
        logger.error(f"Error fetching auction {canonical}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch auction")
    if auction is None:
        raise HTTPException(status_code=404, detail="Auction not found")

    try:
        bids = await DatabaseQueries.get_auction_bids(db, auction._mapping['id'])
        fids = [auction._mapping['creator_fid']] + [b._mapping['bidder_fid'] for b in bids]
        users = await profiles.get_users(fids)

        payload = _auction_payload(auction)
        payload["creator_profile"] = users.get(payload['creator_fid'])
        payload["cast"] = await profiles.get_cast(canonical)
        payload["bids"] = [
            {**_bid_payload(b), "bidder_profile": users.get(b._mapping['bidder_fid'])}
            for b in bids
        ]
        return payload
    except Exception as e:
        logger.error(f"Error fetching bids for {canonical}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch auction")


@router.get("/analytics/recent-activity")
async def get_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    profiles: ProfileProvider = Depends(get_profile_provider),
):
    try:
        rows = await DatabaseQueries.get_recent_bids(db, limit)
        users = await profiles.get_users(row._mapping['bidder_fid'] for row in rows)
        return {
            "activity": [
                {**_bid_payload(row), "bidder_profile": users.get(row._mapping['bidder_fid'])}
                for row in rows
            ]
        }
    except Exception as e:
        logger.error(f"Error fetching recent activity: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch recent activity")
