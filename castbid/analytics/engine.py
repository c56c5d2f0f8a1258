#!/usr/bin/env python3
"""
Aggregation rules over indexed bids and auctions.

Volume is always counted per (bidder, auction) as the bidder's highest bid in
that auction: a bidder raising their own bid from $1 to $3 contributed $3, not
$6. Bid counts are raw. Everything here is pure; callers load the snapshots.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from castbid.indexer.lifecycle import AuctionState, effective_state


@dataclass(frozen=True)
class BidRecord:
    auction_id: int
    bidder_fid: int
    amount: int
    timestamp: datetime
    creator_fid: Optional[int] = None
    cast_hash: Optional[str] = None
    bidder_address: Optional[str] = None
    id: Optional[int] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class AuctionRecord:
    id: int
    cast_hash: str
    creator_fid: int
    state: int
    end_time: Optional[datetime] = None
    protocol_fee_bps: int = 0
    winning_bid: Optional[int] = None
    winner_fid: Optional[int] = None
    created_at: Optional[datetime] = None
    min_bid: int = 0


class Period(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL_TIME = "all-time"

    @property
    def days(self) -> Optional[int]:
        return {Period.DAY: 1, Period.WEEK: 7, Period.MONTH: 30}.get(self)

    def since(self, now: datetime) -> Optional[datetime]:
        return None if self.days is None else now - timedelta(days=self.days)


def usdc_to_cents(amount) -> int:
    """USDC base units (6 decimals) to cents, rounding half up"""
    if amount is None:
        return 0
    cents = Decimal(str(amount)) / Decimal(10000)
    return int(cents.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _now(now: Optional[datetime]) -> datetime:
    return _aware(now) if now else datetime.now(timezone.utc)


def filter_period(bids: Iterable[BidRecord], period: Period, now: Optional[datetime] = None) -> List[BidRecord]:
    since = period.since(_now(now))
    if since is None:
        return list(bids)
    return [bid for bid in bids if _aware(bid.timestamp) >= since]


def volume_units(bids: Iterable[BidRecord]) -> Dict[Tuple[int, int], int]:
    """(bidder_fid, auction_id) -> highest bid amount"""
    units: Dict[Tuple[int, int], int] = {}
    for bid in bids:
        key = (bid.bidder_fid, bid.auction_id)
        if bid.amount > units.get(key, -1):
            units[key] = bid.amount
    return units


# ---------------------------------------------------------------------------
# Bidder statistics
# ---------------------------------------------------------------------------

@dataclass
class UserStats:
    fid: int
    auctions_participated: int = 0
    total_bids: int = 0
    total_volume: int = 0
    highest_bid: int = 0
    first_bid_at: Optional[datetime] = None
    last_bid_at: Optional[datetime] = None


def aggregate_bidders(bids: Iterable[BidRecord]) -> Dict[int, UserStats]:
    bids = list(bids)
    stats: Dict[int, UserStats] = {}

    for bid in bids:
        s = stats.setdefault(bid.bidder_fid, UserStats(fid=bid.bidder_fid))
        s.total_bids += 1
        s.highest_bid = max(s.highest_bid, bid.amount)
        if s.first_bid_at is None or bid.timestamp < s.first_bid_at:
            s.first_bid_at = bid.timestamp
        if s.last_bid_at is None or bid.timestamp > s.last_bid_at:
            s.last_bid_at = bid.timestamp

    for (fid, _auction_id), unit in volume_units(bids).items():
        stats[fid].auctions_participated += 1
        stats[fid].total_volume += unit

    return stats


def user_stats(bids: Iterable[BidRecord], fid: int) -> Optional[UserStats]:
    """None when the user has never bid"""
    return aggregate_bidders(bid for bid in bids if bid.bidder_fid == fid).get(fid)


@dataclass
class CreatorSupport:
    creator_fid: int
    auctions_bid_on: int = 0
    total_spent: int = 0
    total_bids: int = 0
    highest_bid: int = 0


def top_creators(bids: Iterable[BidRecord], fid: int, limit: int = 5) -> List[CreatorSupport]:
    """Creators a bidder backs most: auctions bid on, then amount spent"""
    own = [bid for bid in bids if bid.bidder_fid == fid and bid.creator_fid is not None]
    creator_of = {bid.auction_id: bid.creator_fid for bid in own}

    support: Dict[int, CreatorSupport] = {}
    for bid in own:
        support.setdefault(bid.creator_fid, CreatorSupport(creator_fid=bid.creator_fid)).total_bids += 1
    for (_fid, auction_id), unit in volume_units(own).items():
        s = support[creator_of[auction_id]]
        s.auctions_bid_on += 1
        s.total_spent += unit
        s.highest_bid = max(s.highest_bid, unit)

    ranked = sorted(support.values(), key=lambda s: (-s.auctions_bid_on, -s.total_spent, s.creator_fid))
    return ranked[:limit]


@dataclass
class LeaderboardEntry:
    rank: int
    stats: UserStats
    top_creators: List[CreatorSupport] = field(default_factory=list)


def leaderboard(bids: Iterable[BidRecord], period: Period = Period.ALL_TIME,
                now: Optional[datetime] = None, limit: int = 50) -> List[LeaderboardEntry]:
    """
    Bidders ranked by total bids, then total volume, then fid ascending.

    The bid set is restricted to the period before anything is aggregated, so
    volume units are the per-auction maximum within the window.
    """
    scoped = filter_period(bids, period, now)
    ranked = sorted(aggregate_bidders(scoped).values(), key=lambda s: (-s.total_bids, -s.total_volume, s.fid))

    return [
        LeaderboardEntry(rank=i, stats=s, top_creators=top_creators(scoped, s.fid))
        for i, s in enumerate(ranked[:limit], start=1)
    ]


@dataclass
class Ranking:
    bid_rank: int
    volume_rank: int
    total_bidders: int
    percentile: float


def rank_bidder(bids: Iterable[BidRecord], fid: int) -> Optional[Ranking]:
    """Competition ranks (ties share a rank) by bids and by volume"""
    return rank_among(aggregate_bidders(bids), fid)


def rank_among(stats: Dict[int, UserStats], fid: int) -> Optional[Ranking]:
    """Same as rank_bidder, over per-bidder totals that were aggregated elsewhere"""
    target = stats.get(fid)
    if target is None:
        return None

    total = len(stats)
    bid_rank = 1 + sum(1 for s in stats.values() if s.total_bids > target.total_bids)
    volume_rank = 1 + sum(1 for s in stats.values() if s.total_volume > target.total_volume)
    return Ranking(
        bid_rank=bid_rank,
        volume_rank=volume_rank,
        total_bidders=total,
        percentile=percentile(bid_rank, total),
    )


def percentile(rank: int, total: int) -> float:
    """(total - rank + 1) / total * 100, one decimal"""
    if total <= 0:
        return 0.0
    value = Decimal((total - rank + 1) * 100) / Decimal(total)
    return float(value.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Global and creator statistics
# ---------------------------------------------------------------------------

@dataclass
class GlobalStats:
    unique_bidders: int
    total_bids: int
    total_volume: int
    highest_bid: int
    active_auctions: int
    ended_auctions: int
    total_auctions: int


def count_by_effective_state(auctions: Iterable[AuctionRecord], now: Optional[datetime] = None) -> Tuple[int, int, int]:
    """(active, ended, total) where ended covers every non-active effective state"""
    now = _now(now)
    active = total = 0
    for auction in auctions:
        total += 1
        if effective_state(auction.state, auction.end_time, now) == AuctionState.ACTIVE:
            active += 1
    return active, total - active, total


def global_stats(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord],
                 now: Optional[datetime] = None) -> GlobalStats:
    return global_stats_from_totals(aggregate_bidders(bids), auctions, now)


def global_stats_from_totals(bidders: Dict[int, UserStats], auctions: Iterable[AuctionRecord],
                             now: Optional[datetime] = None) -> GlobalStats:
    # a bidder's highest bid is also their largest volume unit
    active, ended, total = count_by_effective_state(auctions, now)
    return GlobalStats(
        unique_bidders=len(bidders),
        total_bids=sum(s.total_bids for s in bidders.values()),
        total_volume=sum(s.total_volume for s in bidders.values()),
        highest_bid=max((s.highest_bid for s in bidders.values()), default=0),
        active_auctions=active,
        ended_auctions=ended,
        total_auctions=total,
    )


@dataclass
class Supporter:
    bidder_fid: int
    bid_count: int = 0
    total_spent: int = 0
    highest_bid: int = 0


@dataclass
class AuctionSummary:
    auction_id: int
    cast_hash: str
    creator_fid: int
    state: AuctionState
    end_time: Optional[datetime]
    bid_count: int = 0
    unique_bidders: int = 0
    highest_bid: int = 0


@dataclass
class CreatorStats:
    creator_fid: int
    total_auctions: int
    active_auctions: int
    ended_auctions: int
    settled_auctions: int
    fees_earned: int
    unique_bidders: int
    bids_received: int
    revenue: int
    highest_bid: int
    average_bid: int
    top_supporters: List[Supporter] = field(default_factory=list)
    recent_auctions: List[AuctionSummary] = field(default_factory=list)


def summarize_auctions(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord],
                       now: Optional[datetime] = None) -> List[AuctionSummary]:
    now = _now(now)
    by_auction: Dict[int, List[BidRecord]] = defaultdict(list)
    for bid in bids:
        by_auction[bid.auction_id].append(bid)

    summaries = []
    for auction in auctions:
        auction_bids = by_auction.get(auction.id, [])
        summaries.append(AuctionSummary(
            auction_id=auction.id,
            cast_hash=auction.cast_hash,
            creator_fid=auction.creator_fid,
            state=effective_state(auction.state, auction.end_time, now),
            end_time=auction.end_time,
            bid_count=len(auction_bids),
            unique_bidders=len({b.bidder_fid for b in auction_bids}),
            highest_bid=max((b.amount for b in auction_bids), default=0),
        ))
    return summaries


def creator_stats(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], creator_fid: int,
                  now: Optional[datetime] = None, top: int = 10, recent: int = 5) -> CreatorStats:
    now = _now(now)
    own_auctions = [a for a in auctions if a.creator_fid == creator_fid]
    auction_ids = {a.id for a in own_auctions}
    received = [bid for bid in bids if bid.auction_id in auction_ids]
    units = volume_units(received)

    highest_per_auction: Dict[int, int] = {}
    for (_fid, auction_id), unit in units.items():
        highest_per_auction[auction_id] = max(highest_per_auction.get(auction_id, 0), unit)

    # fee = protocol_fee_bps * winning bid / 10000, settled auctions only
    fees = 0
    settled = 0
    for auction in own_auctions:
        if auction.state != AuctionState.SETTLED:
            continue
        settled += 1
        winning = auction.winning_bid if auction.winning_bid is not None else highest_per_auction.get(auction.id, 0)
        fees += auction.protocol_fee_bps * winning // 10000

    supporters: Dict[int, Supporter] = {}
    for bid in received:
        supporters.setdefault(bid.bidder_fid, Supporter(bidder_fid=bid.bidder_fid)).bid_count += 1
    for (fid, _auction_id), unit in units.items():
        supporters[fid].total_spent += unit
        supporters[fid].highest_bid = max(supporters[fid].highest_bid, unit)

    revenue = sum(units.values())
    active, ended, total = count_by_effective_state(own_auctions, now)
    recent_auctions = sorted(
        own_auctions,
        key=lambda a: (a.created_at or datetime.min.replace(tzinfo=timezone.utc), a.id),
        reverse=True,
    )[:recent]

    return CreatorStats(
        creator_fid=creator_fid,
        total_auctions=total,
        active_auctions=active,
        ended_auctions=ended,
        settled_auctions=settled,
        fees_earned=fees,
        unique_bidders=len(supporters),
        bids_received=len(received),
        revenue=revenue,
        highest_bid=max(units.values(), default=0),
        average_bid=_round_div(revenue, len(units)),
        top_supporters=sorted(supporters.values(), key=lambda s: (-s.total_spent, s.bidder_fid))[:top],
        recent_auctions=summarize_auctions(received, recent_auctions, now),
    )


@dataclass
class HotCreator:
    creator_fid: int
    auctions: int
    revenue: int
    unique_bidders: int
    bids_received: int
    highest_bid: int


def hot_creators(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], limit: int = 10) -> List[HotCreator]:
    """Creators ranked by revenue (sum of volume units across their auctions)"""
    creator_of = {a.id: a.creator_fid for a in auctions}
    auction_counts: Dict[int, int] = defaultdict(int)
    for creator in creator_of.values():
        auction_counts[creator] += 1

    received = [bid for bid in bids if bid.auction_id in creator_of]
    bidders: Dict[int, set] = defaultdict(set)
    counts: Dict[int, int] = defaultdict(int)
    for bid in received:
        creator = creator_of[bid.auction_id]
        bidders[creator].add(bid.bidder_fid)
        counts[creator] += 1

    revenue: Dict[int, int] = defaultdict(int)
    highest: Dict[int, int] = defaultdict(int)
    for (_fid, auction_id), unit in volume_units(received).items():
        creator = creator_of[auction_id]
        revenue[creator] += unit
        highest[creator] = max(highest[creator], unit)

    ranked = sorted(revenue.keys(), key=lambda c: (-revenue[c], c))
    return [
        HotCreator(
            creator_fid=c,
            auctions=auction_counts[c],
            revenue=revenue[c],
            unique_bidders=len(bidders[c]),
            bids_received=counts[c],
            highest_bid=highest[c],
        )
        for c in ranked[:limit]
    ]


def hot_auctions(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], now: Optional[datetime] = None,
                 window: timedelta = timedelta(hours=24), limit: int = 10) -> List[AuctionSummary]:
    """Auctions with the most bids inside the trailing window"""
    now = _now(now)
    since = now - window
    recent = [bid for bid in bids if _aware(bid.timestamp) >= since]
    active_ids = {bid.auction_id for bid in recent}
    summaries = summarize_auctions(recent, [a for a in auctions if a.id in active_ids], now)
    summaries.sort(key=lambda s: (-s.bid_count, -s.highest_bid, s.auction_id))
    return summaries[:limit]


@dataclass
class TopBidder:
    bidder_fid: int
    highest_bid: int = 0
    bid_count: int = 0


@dataclass
class HotCast:
    summary: AuctionSummary
    min_bid: int
    lowest_bid: int
    average_bid: int
    first_bid_at: datetime
    last_bid_at: datetime
    top_bidders: List[TopBidder] = field(default_factory=list)


def hot_casts(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], now: Optional[datetime] = None,
              limit: int = 10, top: int = 3) -> List[HotCast]:
    """Auctions with at least one bid, ranked by highest bid and then bid count"""
    now = _now(now)
    by_auction: Dict[int, List[BidRecord]] = defaultdict(list)
    for bid in bids:
        by_auction[bid.auction_id].append(bid)

    casts = []
    for auction in auctions:
        auction_bids = by_auction.get(auction.id)
        if not auction_bids:
            continue

        bidders: Dict[int, TopBidder] = {}
        for bid in auction_bids:
            t = bidders.setdefault(bid.bidder_fid, TopBidder(bidder_fid=bid.bidder_fid))
            t.bid_count += 1
            t.highest_bid = max(t.highest_bid, bid.amount)

        amounts = [bid.amount for bid in auction_bids]
        timestamps = [bid.timestamp for bid in auction_bids]
        casts.append(HotCast(
            summary=summarize_auctions(auction_bids, [auction], now)[0],
            min_bid=auction.min_bid,
            lowest_bid=min(amounts),
            average_bid=_round_div(sum(amounts), len(amounts)),
            first_bid_at=min(timestamps),
            last_bid_at=max(timestamps),
            top_bidders=sorted(bidders.values(), key=lambda t: (-t.highest_bid, -t.bid_count, t.bidder_fid))[:top],
        ))

    casts.sort(key=lambda c: (-c.summary.highest_bid, -c.summary.bid_count, c.summary.auction_id))
    return casts[:limit]


# ---------------------------------------------------------------------------
# Trending bidders
# ---------------------------------------------------------------------------

NEW_BIDDER_GROWTH = 999.0


@dataclass
class RisingBidder:
    fid: int
    recent_bids: int
    recent_volume: int
    previous_bids: int
    previous_volume: int
    growth_percentage: float

    @property
    def bid_increase(self) -> int:
        return self.recent_bids - self.previous_bids


def rising_bidders(bids: Iterable[BidRecord], now: Optional[datetime] = None, window: timedelta = timedelta(days=7),
                   min_recent_bids: int = 5, limit: int = 10) -> List[RisingBidder]:
    """
    Bidders whose bidding grew most from the previous window to the current one.

    Only bidders with more than `min_recent_bids` bids in the current window
    qualify. Growth is the percentage change in bid count; a bidder with no bids
    in the previous window gets NEW_BIDDER_GROWTH. Volume is counted in volume
    units within each window.
    """
    now = _now(now)
    start = now - window
    previous_start = start - window

    recent, previous = [], []
    for bid in bids:
        ts = _aware(bid.timestamp)
        if ts >= start:
            recent.append(bid)
        elif ts >= previous_start:
            previous.append(bid)

    recent_stats = aggregate_bidders(recent)
    previous_stats = aggregate_bidders(previous)

    rising = []
    for fid, current in recent_stats.items():
        if current.total_bids <= min_recent_bids:
            continue
        before = previous_stats.get(fid, UserStats(fid=fid))
        if before.total_bids == 0:
            growth = NEW_BIDDER_GROWTH
        else:
            change = Decimal((current.total_bids - before.total_bids) * 100) / Decimal(before.total_bids)
            growth = float(change.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))
        rising.append(RisingBidder(
            fid=fid,
            recent_bids=current.total_bids,
            recent_volume=current.total_volume,
            previous_bids=before.total_bids,
            previous_volume=before.total_volume,
            growth_percentage=growth,
        ))

    rising.sort(key=lambda r: (-r.growth_percentage, -r.recent_bids, r.fid))
    return rising[:limit]


# ---------------------------------------------------------------------------
# Bidder history and profile card
# ---------------------------------------------------------------------------

@dataclass
class BidWithAuction:
    bid: BidRecord
    auction: Optional[AuctionRecord]


def bid_history(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], fid: int,
                limit: Optional[int] = None) -> List[BidWithAuction]:
    """A bidder's bids newest first, each joined with its auction"""
    by_id = {a.id: a for a in auctions}
    own = sorted(
        (bid for bid in bids if bid.bidder_fid == fid),
        key=lambda b: (_aware(b.timestamp), b.id or 0),
        reverse=True,
    )
    if limit is not None:
        own = own[:limit]
    return [BidWithAuction(bid=bid, auction=by_id.get(bid.auction_id)) for bid in own]


@dataclass
class CastActivity:
    auction_id: int
    cast_hash: Optional[str]
    creator_fid: Optional[int]
    state: Optional[AuctionState]
    end_time: Optional[datetime]
    user_bid_count: int
    user_highest_bid: int
    first_bid_at: datetime
    last_bid_at: datetime
    auction_highest_bid: int
    auction_bid_count: int


@dataclass
class BidderProfile:
    fid: int
    stats: Optional[UserStats]
    ranking: Optional[Ranking]
    top_creators: List[CreatorSupport] = field(default_factory=list)
    most_bid_casts: List[CastActivity] = field(default_factory=list)
    recent_bids: List[BidWithAuction] = field(default_factory=list)


def bidder_profile(bids: Iterable[BidRecord], auctions: Iterable[AuctionRecord], bidders: Dict[int, UserStats],
                   fid: int, now: Optional[datetime] = None, creators: int = 10, casts: int = 5,
                   recent: int = 20) -> BidderProfile:
    """
    Consolidated profile of one bidder.

    `bids` must hold every bid in every auction the bidder joined, so the
    auction totals on each cast are complete. `bidders` holds per-bidder totals
    across all bidders and is only used for ranking.
    """
    now = _now(now)
    bids = list(bids)
    auctions = list(auctions)
    by_id = {a.id: a for a in auctions}
    own = [bid for bid in bids if bid.bidder_fid == fid]

    auction_bids: Dict[int, List[BidRecord]] = defaultdict(list)
    for bid in bids:
        auction_bids[bid.auction_id].append(bid)

    own_by_auction: Dict[int, List[BidRecord]] = defaultdict(list)
    for bid in own:
        own_by_auction[bid.auction_id].append(bid)

    activity = []
    for auction_id, mine in own_by_auction.items():
        auction = by_id.get(auction_id)
        everyone = auction_bids[auction_id]
        activity.append(CastActivity(
            auction_id=auction_id,
            cast_hash=auction.cast_hash if auction else mine[0].cast_hash,
            creator_fid=auction.creator_fid if auction else mine[0].creator_fid,
            state=effective_state(auction.state, auction.end_time, now) if auction else None,
            end_time=auction.end_time if auction else None,
            user_bid_count=len(mine),
            user_highest_bid=max(b.amount for b in mine),
            first_bid_at=min(b.timestamp for b in mine),
            last_bid_at=max(b.timestamp for b in mine),
            auction_highest_bid=max(b.amount for b in everyone),
            auction_bid_count=len(everyone),
        ))
    activity.sort(key=lambda c: (-c.user_bid_count, -c.user_highest_bid, c.auction_id))

    return BidderProfile(
        fid=fid,
        stats=user_stats(own, fid),
        ranking=rank_among(bidders, fid),
        top_creators=top_creators(own, fid, limit=creators),
        most_bid_casts=activity[:casts],
        recent_bids=bid_history(own, auctions, fid, limit=recent),
    )


# ---------------------------------------------------------------------------
# Head-to-head
# ---------------------------------------------------------------------------

@dataclass
class CommonAuction:
    auction_id: int
    cast_hash: Optional[str]
    creator_fid: Optional[int]
    user1_highest_bid: int
    user2_highest_bid: int
    user1_bid_count: int
    user2_bid_count: int


@dataclass
class BattleWinner:
    fid: int
    score: str


@dataclass
class HeadToHead:
    fid1: int
    fid2: int
    user1: Optional[UserStats]
    user2: Optional[UserStats]
    common_auctions: List[CommonAuction]
    winner: Optional[BattleWinner]


def determine_winner(user1: Optional[UserStats], user2: Optional[UserStats]) -> Optional[BattleWinner]:
    """
    Best of three over bid count, volume and highest single bid.

    Side one takes a point only when strictly ahead; an even criterion goes
    to side two. No winner when either side has never bid.
    """
    if user1 is None or user2 is None:
        return None

    score1 = score2 = 0
    for a, b in ((user1.total_bids, user2.total_bids),
                 (user1.total_volume, user2.total_volume),
                 (user1.highest_bid, user2.highest_bid)):
        if a > b:
            score1 += 1
        else:
            score2 += 1

    return BattleWinner(
        fid=user1.fid if score1 > score2 else user2.fid,
        score=f"{max(score1, score2)}-{min(score1, score2)}",
    )


def head_to_head(bids: Iterable[BidRecord], fid1: int, fid2: int) -> HeadToHead:
    pair = [bid for bid in bids if bid.bidder_fid in (fid1, fid2)]
    stats = aggregate_bidders(pair)

    per_side: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    info: Dict[int, BidRecord] = {}
    for bid in pair:
        per_side[(bid.auction_id, bid.bidder_fid)].append(bid.amount)
        info.setdefault(bid.auction_id, bid)

    shared = {a for (a, f) in per_side if f == fid1} & {a for (a, f) in per_side if f == fid2}
    common = [
        CommonAuction(
            auction_id=auction_id,
            cast_hash=info[auction_id].cast_hash,
            creator_fid=info[auction_id].creator_fid,
            user1_highest_bid=max(per_side[(auction_id, fid1)]),
            user2_highest_bid=max(per_side[(auction_id, fid2)]),
            user1_bid_count=len(per_side[(auction_id, fid1)]),
            user2_bid_count=len(per_side[(auction_id, fid2)]),
        )
        for auction_id in sorted(shared, reverse=True)
    ]

    user1, user2 = stats.get(fid1), stats.get(fid2)
    return HeadToHead(
        fid1=fid1,
        fid2=fid2,
        user1=user1,
        user2=user2,
        common_auctions=common,
        winner=determine_winner(user1, user2),
    )


def _round_div(numerator: int, denominator: int) -> int:
    if denominator == 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
