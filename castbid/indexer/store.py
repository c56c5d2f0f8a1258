#!/usr/bin/env python3
"""
PostgreSQL writes for the projected auction/bid/transfer model.

Every write is either insert-or-ignore on a natural key or a guarded update,
so replaying a window never produces duplicate or regressed rows.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from .errors import TransportError

logger = logging.getLogger(__name__)


def connect(database_url: str):
    """Autocommit connection: each statement is durable once execute() returns"""
    try:
        conn = psycopg2.connect(database_url, cursor_factory=RealDictCursor)
    except psycopg2.OperationalError as e:
        raise TransportError(f"Failed to connect to database: {e}") from e
    conn.autocommit = True
    return conn


@contextmanager
def db_cursor(conn):
    try:
        with conn.cursor() as cursor:
            yield cursor
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        raise TransportError(f"Database unavailable: {e}") from e


class ProjectionStore:
    """Idempotent writes against auctions, bids and transfers"""

    def __init__(self, conn):
        self.conn = conn

    def find_auction(self, cast_hash: str) -> Optional[Dict[str, Any]]:
        with db_cursor(self.conn) as cursor:
            cursor.execute(
                "SELECT id, cast_hash, state, end_time, winner_fid FROM auctions WHERE cast_hash = %s",
                (cast_hash,)
            )
            row = cursor.fetchone()
            return dict(row) if row else None

    def insert_auction(self, auction: Dict[str, Any]) -> bool:
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                INSERT INTO auctions (
                    cast_hash, creator_address, creator_fid, min_bid,
                    min_bid_increment_bps, protocol_fee_bps, duration,
                    extension, extension_threshold, end_time,
                    transaction_hash, block_number, authorizer, state, created_at
                ) VALUES (
                    %(cast_hash)s, %(creator_address)s, %(creator_fid)s, %(min_bid)s,
                    %(min_bid_increment_bps)s, %(protocol_fee_bps)s, %(duration)s,
                    %(extension)s, %(extension_threshold)s, %(end_time)s,
                    %(transaction_hash)s, %(block_number)s, %(authorizer)s, %(state)s, %(created_at)s
                )
                ON CONFLICT (cast_hash) DO NOTHING
            """, auction)
            return cursor.rowcount == 1

    def insert_bid(self, bid: Dict[str, Any]) -> bool:
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                INSERT INTO bids (
                    auction_id, cast_hash, bidder_address, bidder_fid,
                    amount, transaction_hash, log_index, block_number, authorizer, timestamp
                ) VALUES (
                    %(auction_id)s, %(cast_hash)s, %(bidder_address)s, %(bidder_fid)s,
                    %(amount)s, %(transaction_hash)s, %(log_index)s, %(block_number)s,
                    %(authorizer)s, %(timestamp)s
                )
                ON CONFLICT (transaction_hash, log_index) DO NOTHING
            """, bid)
            return cursor.rowcount == 1

    def update_auction_state(self, auction_id: int, expected_state: int, new_state: int,
                             winner_address: Optional[str] = None, winner_fid: Optional[int] = None,
                             winning_bid: Optional[int] = None) -> bool:
        """Compare-and-set on state so concurrent runs cannot apply a transition twice"""
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                UPDATE auctions
                SET state = %s,
                    winner_address = %s,
                    winner_fid = %s,
                    winning_bid = %s
                WHERE id = %s AND state = %s
            """, (new_state, winner_address, winner_fid, winning_bid, auction_id, expected_state))
            return cursor.rowcount == 1

    def extend_auction(self, auction_id: int, new_end_time: datetime, active_state: int) -> bool:
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                UPDATE auctions
                SET end_time = %s
                WHERE id = %s AND state = %s AND end_time < %s
            """, (new_end_time, auction_id, active_state, new_end_time))
            return cursor.rowcount == 1

    def insert_transfer(self, transfer: Dict[str, Any]) -> bool:
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                INSERT INTO transfers (
                    from_address, to_address, token_id, is_p2p,
                    transaction_hash, log_index, block_number, timestamp
                ) VALUES (
                    %(from_address)s, %(to_address)s, %(token_id)s, %(is_p2p)s,
                    %(transaction_hash)s, %(log_index)s, %(block_number)s, %(timestamp)s
                )
                ON CONFLICT (transaction_hash, token_id) DO NOTHING
            """, transfer)
            return cursor.rowcount == 1
