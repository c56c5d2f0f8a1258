"""
Per-stream sync cursors: the last block whose events are fully projected.
"""

import logging

from .store import db_cursor

logger = logging.getLogger(__name__)


class SyncCursorStore:
    """One row per stream; the stored block never moves backwards"""

    def __init__(self, conn):
        self.conn = conn

    def get(self, stream_id: str) -> int:
        with db_cursor(self.conn) as cursor:
            cursor.execute(
                "SELECT last_block_number FROM sync_cursors WHERE stream_id = %s",
                (stream_id,)
            )
            row = cursor.fetchone()
            return int(row['last_block_number']) if row else 0

    def set(self, stream_id: str, block_number: int) -> None:
        """Only call once every event up to block_number has been projected"""
        with db_cursor(self.conn) as cursor:
            cursor.execute("""
                INSERT INTO sync_cursors (stream_id, last_block_number, last_sync_time)
                VALUES (%s, %s, NOW())
                ON CONFLICT (stream_id) DO UPDATE SET
                    last_block_number = GREATEST(sync_cursors.last_block_number, EXCLUDED.last_block_number),
                    last_sync_time = NOW()
            """, (stream_id, block_number))
        logger.debug(f"Cursor {stream_id} -> {block_number}")
