#!/usr/bin/env python3
"""
Database connection and session management for FastAPI.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from castbid.analytics.engine import AuctionRecord, BidRecord, UserStats

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_async_engine(
    settings.async_database_url,
    echo=settings.sql_debug,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=3600,  # Recycle connections after 1 hour
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db():
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is working"""
    try:
        async with AsyncSessionLocal() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


_BID_COLUMNS = """
    b.id, b.auction_id, b.bidder_fid, b.bidder_address, b.amount, b.timestamp,
    b.transaction_hash, b.block_number, a.creator_fid, a.cast_hash
"""

_AUCTION_COLUMNS = """
    a.id, a.cast_hash, a.creator_fid, a.state, a.end_time, a.protocol_fee_bps,
    a.winning_bid, a.winner_fid, a.created_at, a.min_bid
"""


def bid_record(row) -> BidRecord:
    m = row._mapping
    return BidRecord(
        id=m['id'],
        auction_id=m['auction_id'],
        bidder_fid=int(m['bidder_fid']),
        bidder_address=m['bidder_address'],
        amount=int(m['amount']),
        timestamp=m['timestamp'],
        creator_fid=int(m['creator_fid']) if m['creator_fid'] is not None else None,
        cast_hash=m['cast_hash'],
        transaction_hash=m['transaction_hash'],
        block_number=int(m['block_number']) if m['block_number'] is not None else None,
    )


def auction_record(row) -> AuctionRecord:
    m = row._mapping
    return AuctionRecord(
        id=m['id'],
        cast_hash=m['cast_hash'],
        creator_fid=int(m['creator_fid']),
        state=int(m['state']),
        end_time=m['end_time'],
        protocol_fee_bps=int(m['protocol_fee_bps'] or 0),
        winning_bid=int(m['winning_bid']) if m['winning_bid'] is not None else None,
        winner_fid=int(m['winner_fid']) if m['winner_fid'] is not None else None,
        created_at=m['created_at'],
        min_bid=int(m['min_bid'] or 0),
    )


class DatabaseQueries:
    """Centralized read queries; aggregation happens in castbid.analytics"""

    @staticmethod
    async def load_bids(db: AsyncSession, since: Optional[datetime] = None,
                        bidder_fids: Optional[List[int]] = None) -> List[BidRecord]:
        filters = []
        params = {}
        if since is not None:
            filters.append("b.timestamp >= :since")
            params["since"] = since
        if bidder_fids:
            filters.append("b.bidder_fid = ANY(:bidder_fids)")
            params["bidder_fids"] = list(bidder_fids)
        where = f"WHERE {' AND '.join(filters)}" if filters else ""

        query = text(f"""
            SELECT {_BID_COLUMNS}
            FROM bids b
            JOIN auctions a ON a.id = b.auction_id
            {where}
            ORDER BY b.timestamp, b.block_number, b.log_index
        """)
        result = await db.execute(query, params)
        return [bid_record(row) for row in result.fetchall()]

    @staticmethod
    async def load_bids_in_auctions_of(db: AsyncSession, fid: int) -> List[BidRecord]:
        """Every bid in every auction the given fid has bid in"""
        query = text(f"""
            SELECT {_BID_COLUMNS}
            FROM bids b
            JOIN auctions a ON a.id = b.auction_id
            WHERE b.auction_id IN (SELECT auction_id FROM bids WHERE bidder_fid = :fid)
            ORDER BY b.timestamp, b.block_number, b.log_index
        """)
        result = await db.execute(query, {"fid": fid})
        return [bid_record(row) for row in result.fetchall()]

    @staticmethod
    async def load_creator_bids(db: AsyncSession, creator_fid: int) -> List[BidRecord]:
        query = text(f"""
            SELECT {_BID_COLUMNS}
            FROM bids b
            JOIN auctions a ON a.id = b.auction_id
            WHERE a.creator_fid = :creator_fid
        """)
        result = await db.execute(query, {"creator_fid": creator_fid})
        return [bid_record(row) for row in result.fetchall()]

    @staticmethod
    async def load_bids_for_auctions(db: AsyncSession, auction_ids: List[int]) -> List[BidRecord]:
        if not auction_ids:
            return []
        query = text(f"""
            SELECT {_BID_COLUMNS}
            FROM bids b
            JOIN auctions a ON a.id = b.auction_id
            WHERE b.auction_id = ANY(:auction_ids)
            ORDER BY b.timestamp, b.block_number, b.log_index
        """)
        result = await db.execute(query, {"auction_ids": list(auction_ids)})
        return [bid_record(row) for row in result.fetchall()]

    @staticmethod
    async def load_bidder_totals(db: AsyncSession, since: Optional[datetime] = None) -> Dict[int, UserStats]:
        """Per-bidder totals aggregated in SQL, volume counted per (bidder, auction) maximum"""
        where = "WHERE timestamp >= :since" if since is not None else ""
        params = {"since": since} if since is not None else {}
        query = text(f"""
            WITH units AS (
                SELECT
                    bidder_fid,
                    auction_id,
                    MAX(amount) AS unit,
                    COUNT(*) AS bid_count,
                    MIN(timestamp) AS first_bid,
                    MAX(timestamp) AS last_bid
                FROM bids
                {where}
                GROUP BY bidder_fid, auction_id
            )
            SELECT
                bidder_fid,
                COUNT(*) AS auctions_participated,
                SUM(bid_count) AS total_bids,
                SUM(unit) AS total_volume,
                MAX(unit) AS highest_bid,
                MIN(first_bid) AS first_bid_at,
                MAX(last_bid) AS last_bid_at
            FROM units
            GROUP BY bidder_fid
        """)
        result = await db.execute(query, params)

        totals = {}
        for row in result.fetchall():
            m = row._mapping
            fid = int(m['bidder_fid'])
            totals[fid] = UserStats(
                fid=fid,
                auctions_participated=int(m['auctions_participated']),
                total_bids=int(m['total_bids']),
                total_volume=int(m['total_volume']),
                highest_bid=int(m['highest_bid']),
                first_bid_at=m['first_bid_at'],
                last_bid_at=m['last_bid_at'],
            )
        return totals

    @staticmethod
    async def top_auction_ids_by_highest_bid(db: AsyncSession, limit: int = 10) -> List[int]:
        query = text("""
            SELECT auction_id
            FROM bids
            GROUP BY auction_id
            ORDER BY MAX(amount) DESC, COUNT(*) DESC, auction_id
            LIMIT :limit
        """)
        result = await db.execute(query, {"limit": limit})
        return [row[0] for row in result.fetchall()]

    @staticmethod
    async def load_auctions(db: AsyncSession, creator_fid: Optional[int] = None,
                            auction_ids: Optional[List[int]] = None) -> List[AuctionRecord]:
        filters = []
        params = {}
        if creator_fid is not None:
            filters.append("a.creator_fid = :creator_fid")
            params["creator_fid"] = creator_fid
        if auction_ids is not None:
            filters.append("a.id = ANY(:auction_ids)")
            params["auction_ids"] = list(auction_ids)
        where = f"WHERE {' AND '.join(filters)}" if filters else ""

        query = text(f"SELECT {_AUCTION_COLUMNS} FROM auctions a {where}")
        result = await db.execute(query, params)
        return [auction_record(row) for row in result.fetchall()]

    @staticmethod
    async def get_auctions(db: AsyncSession, limit: int = 20, offset: int = 0):
        """Auctions newest first with bid count and highest bid"""
        query = text("""
            SELECT a.*, COUNT(b.id) AS bid_count, MAX(b.amount) AS highest_bid
            FROM auctions a
            LEFT JOIN bids b ON a.id = b.auction_id
            GROUP BY a.id
            ORDER BY a.created_at DESC
            LIMIT :limit OFFSET :offset
        """)
        result = await db.execute(query, {"limit": limit, "offset": offset})
        return result.fetchall()

    @staticmethod
    async def get_auction_by_cast_hash(db: AsyncSession, cast_hash: str):
        query = text("SELECT * FROM auctions WHERE cast_hash = :cast_hash")
        result = await db.execute(query, {"cast_hash": cast_hash})
        return result.fetchone()

    @staticmethod
    async def get_auction_bids(db: AsyncSession, auction_id: int):
        query = text("""
            SELECT * FROM bids
            WHERE auction_id = :auction_id
            ORDER BY amount DESC, timestamp ASC
        """)
        result = await db.execute(query, {"auction_id": auction_id})
        return result.fetchall()

    @staticmethod
    async def get_recent_bids(db: AsyncSession, limit: int = 20):
        query = text("""
            SELECT b.*
            FROM bids b
            ORDER BY b.timestamp DESC
            LIMIT :limit
        """)
        result = await db.execute(query, {"limit": limit})
        return result.fetchall()
