"""
Auction lifecycle rules.

Stored states only ever move forward: ACTIVE -> one of the terminal states.
ENDED is never written; it is read-time state derived from end_time.
"""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional

from .errors import IllegalTransitionError


class AuctionState(IntEnum):
    NONE = 0
    ACTIVE = 1
    ENDED = 2
    SETTLED = 3
    CANCELLED = 4
    RECOVERED = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()


TERMINAL_STATES = frozenset({AuctionState.SETTLED, AuctionState.CANCELLED, AuctionState.RECOVERED})


def is_terminal(state: int) -> bool:
    return AuctionState(state) in TERMINAL_STATES


def effective_state(stored: int, end_time: Optional[datetime], now: Optional[datetime] = None) -> AuctionState:
    """State as seen by readers: an ACTIVE auction past its end time reads as ENDED"""
    state = AuctionState(stored)
    if state in TERMINAL_STATES:
        return state
    if end_time is None:
        return state
    now = now or datetime.now(timezone.utc)
    if _aware(end_time) <= _aware(now):
        return AuctionState.ENDED
    return AuctionState.ACTIVE


def check_transition(current: int, target: int) -> bool:
    """
    Validate a stored-state write.

    Returns True when the write must be applied, False when it is a replay of
    the state already stored. Raises IllegalTransitionError otherwise.
    """
    current = AuctionState(current)
    target = AuctionState(target)

    if target not in TERMINAL_STATES:
        raise IllegalTransitionError(current, target)
    if current == target:
        return False
    if current in TERMINAL_STATES:
        raise IllegalTransitionError(current, target)
    return True


def _aware(dt: datetime) -> datetime:
    # naive timestamps come back from TIMESTAMP columns and are UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
