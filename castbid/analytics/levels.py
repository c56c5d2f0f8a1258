"""
Gamified simp levels, achievements and milestones.

All thresholds on volume are in USDC base units (6 decimals) unless the
name says USD.
"""

from dataclasses import dataclass
from typing import List, Optional, Union

USDC_UNIT = 1_000_000


@dataclass(frozen=True)
class SimpLevel:
    level: str
    emoji: str
    min_bids: int


# Highest first; the first entry whose threshold is met wins
SIMP_LEVELS = (
    SimpLevel('Omega Simp', '🌟', 1000),
    SimpLevel('Ultra Simp', '💎', 500),
    SimpLevel('Giga Simp', '👑', 100),
    SimpLevel('Mega Simp', '🔥', 50),
    SimpLevel('Super Simp', '💪', 20),
    SimpLevel('Simp Pro', '⭐', 10),
    SimpLevel('Simp', '💖', 5),
    SimpLevel('Simp Rookie', '🌱', 0),
)

NOT_A_SIMP = SimpLevel('Not a simp yet', '🤔', 0)

BID_MILESTONES = (1, 5, 10, 20, 50, 100, 500, 1000)
VOLUME_MILESTONES_USD = (10, 50, 100, 500, 1000, 5000, 10000)


@dataclass(frozen=True)
class Achievement:
    name: str
    emoji: str
    description: str


@dataclass(frozen=True)
class Milestone:
    name: str
    requirement: Union[int, str]
    current: Union[int, float]
    type: str


def simp_level(total_bids: int) -> SimpLevel:
    for level in SIMP_LEVELS:
        if total_bids >= level.min_bids:
            return level
    return SIMP_LEVELS[-1]


def achievements(total_bids: int, total_volume: int, highest_bid: int) -> List[Achievement]:
    earned = []
    if total_bids >= 1:
        earned.append(Achievement('First Steps', '👣', 'Placed first bid'))
    if total_bids >= 10:
        earned.append(Achievement('Getting Serious', '💯', '10 bids placed'))
    if total_bids >= 50:
        earned.append(Achievement('Dedicated Simp', '🎯', '50 bids placed'))
    if total_bids >= 100:
        earned.append(Achievement('Century Club', '💯', '100 bids placed'))
    if total_volume >= 100 * USDC_UNIT:
        earned.append(Achievement('Big Spender', '💰', '$100+ spent'))
    if total_volume >= 1000 * USDC_UNIT:
        earned.append(Achievement('Whale', '🐋', '$1000+ spent'))
    if highest_bid >= 50 * USDC_UNIT:
        earned.append(Achievement('High Roller', '🎰', '$50+ single bid'))
    return earned


def next_milestone(total_bids: int, total_volume: int) -> Milestone:
    """Next bid-count milestone, then volume, then the legendary sentinel"""
    next_bids = _first_above(BID_MILESTONES, total_bids)
    if next_bids is not None:
        name = 'Place your first bid' if total_bids == 0 else f'Reach {next_bids} total bids'
        return Milestone(name, next_bids, total_bids, 'bids')

    volume_usd = total_volume / USDC_UNIT
    next_volume = _first_above(VOLUME_MILESTONES_USD, volume_usd)
    if next_volume is not None:
        return Milestone(f'Spend ${next_volume} total', next_volume, volume_usd, 'volume')

    return Milestone('Legendary Status', '∞', total_bids, 'legendary')


def _first_above(ladder, value) -> Optional[int]:
    for threshold in ladder:
        if threshold > value:
            return threshold
    return None
