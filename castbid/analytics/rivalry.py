"""
Outbid relationships between bidders.

A later bid L outbids an earlier bid E in the same auction when L is strictly
later, strictly larger, from a different bidder, and no third bidder placed a
bid strictly between the two in time.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .engine import BidRecord


@dataclass(frozen=True)
class OutbidEvent:
    auction_id: int
    outbidder: int
    victim: int
    delta: int


@dataclass
class RivalSummary:
    fid: int
    times: int = 0
    total_delta: int = 0
    max_delta: int = 0


@dataclass
class BiggestRival:
    fid: int
    times_outbid_them: int
    times_outbid_by_them: int

    @property
    def total_interactions(self) -> int:
        return self.times_outbid_them + self.times_outbid_by_them


def outbid_events(bids: Iterable[BidRecord]) -> List[OutbidEvent]:
    by_auction: Dict[int, List[BidRecord]] = defaultdict(list)
    for bid in bids:
        by_auction[bid.auction_id].append(bid)

    events = []
    for auction_id, auction_bids in by_auction.items():
        ordered = sorted(auction_bids, key=lambda b: b.timestamp)
        n = len(ordered)
        for i, earlier in enumerate(ordered):
            # bidders seen strictly after `earlier` and strictly before the current `later`
            between = set()
            k = i + 1
            for j in range(i + 1, n):
                later = ordered[j]
                while k < n and ordered[k].timestamp < later.timestamp:
                    if ordered[k].timestamp > earlier.timestamp:
                        between.add(ordered[k].bidder_fid)
                    k += 1
                if later.timestamp <= earlier.timestamp:
                    continue
                if later.amount <= earlier.amount or later.bidder_fid == earlier.bidder_fid:
                    continue
                own = (earlier.bidder_fid in between) + (later.bidder_fid in between)
                if len(between) == own:
                    events.append(OutbidEvent(
                        auction_id=auction_id,
                        outbidder=later.bidder_fid,
                        victim=earlier.bidder_fid,
                        delta=later.amount - earlier.amount,
                    ))
    return events


def _summarize(events: Iterable[OutbidEvent], key) -> List[RivalSummary]:
    summaries: Dict[int, RivalSummary] = {}
    for event in events:
        fid = key(event)
        s = summaries.setdefault(fid, RivalSummary(fid=fid))
        s.times += 1
        s.total_delta += event.delta
        s.max_delta = max(s.max_delta, event.delta)
    return sorted(summaries.values(), key=lambda s: (-s.times, -s.total_delta, s.fid))


def victims(bids: Iterable[BidRecord], fid: int, limit: Optional[int] = 10) -> List[RivalSummary]:
    """Bidders that fid has outbid, most often first"""
    ranked = _summarize((e for e in outbid_events(bids) if e.outbidder == fid), lambda e: e.victim)
    return ranked if limit is None else ranked[:limit]


def rivals(bids: Iterable[BidRecord], fid: int, limit: Optional[int] = 10) -> List[RivalSummary]:
    """Bidders that have outbid fid, most often first"""
    ranked = _summarize((e for e in outbid_events(bids) if e.victim == fid), lambda e: e.outbidder)
    return ranked if limit is None else ranked[:limit]


def biggest_rival(bids: Iterable[BidRecord], fid: int) -> Optional[BiggestRival]:
    """The counterpart with the most combined outbids in either direction"""
    events = outbid_events(bids)
    outbid_them: Dict[int, int] = defaultdict(int)
    outbid_by_them: Dict[int, int] = defaultdict(int)
    for event in events:
        if event.outbidder == fid:
            outbid_them[event.victim] += 1
        elif event.victim == fid:
            outbid_by_them[event.outbidder] += 1

    candidates = set(outbid_them) | set(outbid_by_them)
    if not candidates:
        return None

    best = min(candidates, key=lambda other: (-(outbid_them[other] + outbid_by_them[other]), other))
    return BiggestRival(
        fid=best,
        times_outbid_them=outbid_them[best],
        times_outbid_by_them=outbid_by_them[best],
    )
