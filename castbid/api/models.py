#!/usr/bin/env python3
"""
Pydantic response models. Amounts are exposed in cents.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from castbid.analytics import engine, levels, rivalry
from castbid.analytics.engine import usdc_to_cents


class UserStatsModel(BaseModel):
    fid: int
    auctions_participated: int
    total_bids: int
    total_volume_cents: int
    highest_bid_cents: int
    first_bid_date: Optional[datetime] = None
    last_bid_date: Optional[datetime] = None

    @classmethod
    def from_stats(cls, stats: engine.UserStats) -> "UserStatsModel":
        return cls(
            fid=stats.fid,
            auctions_participated=stats.auctions_participated,
            total_bids=stats.total_bids,
            total_volume_cents=usdc_to_cents(stats.total_volume),
            highest_bid_cents=usdc_to_cents(stats.highest_bid),
            first_bid_date=stats.first_bid_at,
            last_bid_date=stats.last_bid_at,
        )


class CreatorSupportModel(BaseModel):
    creator_fid: int
    auctions_bid_on: int
    total_spent_cents: int
    total_bids: int
    profile: Optional[Dict[str, Any]] = None


class LeaderboardEntryModel(BaseModel):
    rank: int
    stats: UserStatsModel
    top_creators: List[CreatorSupportModel] = []
    profile: Optional[Dict[str, Any]] = None

    @classmethod
    def from_entry(cls, entry: engine.LeaderboardEntry, profiles: Dict[int, Dict[str, Any]]) -> "LeaderboardEntryModel":
        return cls(
            rank=entry.rank,
            stats=UserStatsModel.from_stats(entry.stats),
            top_creators=[
                CreatorSupportModel(
                    creator_fid=c.creator_fid,
                    auctions_bid_on=c.auctions_bid_on,
                    total_spent_cents=usdc_to_cents(c.total_spent),
                    total_bids=c.total_bids,
                    profile=profiles.get(c.creator_fid),
                )
                for c in entry.top_creators
            ],
            profile=profiles.get(entry.stats.fid),
        )


class LeaderboardResponse(BaseModel):
    period: str
    entries: List[LeaderboardEntryModel]


class GlobalStatsModel(BaseModel):
    unique_bidders: int
    total_bids: int
    total_volume_cents: int
    highest_bid_cents: int
    active_auctions: int
    ended_auctions: int
    total_auctions: int


class AchievementModel(BaseModel):
    name: str
    emoji: str
    description: str


class MilestoneModel(BaseModel):
    name: str
    requirement: Union[int, str]
    current: Union[int, float]
    type: str

    @classmethod
    def from_milestone(cls, milestone: levels.Milestone) -> "MilestoneModel":
        return cls(name=milestone.name, requirement=milestone.requirement,
                   current=milestone.current, type=milestone.type)


class RankModel(BaseModel):
    bid_rank: Optional[int] = None
    volume_rank: Optional[int] = None
    total_simps: int = 0


class SimpProfileResponse(BaseModel):
    fid: int
    profile: Optional[Dict[str, Any]] = None
    level: str
    emoji: str
    stats: Optional[UserStatsModel] = None
    rank: Optional[RankModel] = None
    percentile: Optional[float] = None
    achievements: List[AchievementModel] = []
    next_milestone: MilestoneModel


class BattleSide(BaseModel):
    fid: int
    profile: Optional[Dict[str, Any]] = None
    stats: Optional[UserStatsModel] = None


class CommonAuctionModel(BaseModel):
    cast_hash: Optional[str] = None
    creator_fid: Optional[int] = None
    user1_highest_bid_cents: int
    user2_highest_bid_cents: int
    user1_bid_count: int
    user2_bid_count: int


class WinnerModel(BaseModel):
    fid: int
    score: str


class HeadToHeadResponse(BaseModel):
    user1: BattleSide
    user2: BattleSide
    common_auctions: List[CommonAuctionModel]
    winner: Optional[WinnerModel] = None


class RivalModel(BaseModel):
    fid: int
    times: int
    total_outbid_cents: int
    max_outbid_cents: int
    profile: Optional[Dict[str, Any]] = None

    @classmethod
    def from_summary(cls, summary: rivalry.RivalSummary, profiles: Dict[int, Dict[str, Any]]) -> "RivalModel":
        return cls(
            fid=summary.fid,
            times=summary.times,
            total_outbid_cents=usdc_to_cents(summary.total_delta),
            max_outbid_cents=usdc_to_cents(summary.max_delta),
            profile=profiles.get(summary.fid),
        )


class BiggestRivalModel(BaseModel):
    fid: int
    times_outbid_them: int
    times_outbid_by_them: int
    total_interactions: int
    profile: Optional[Dict[str, Any]] = None


class OutbidHistoryResponse(BaseModel):
    fid: int
    victims: List[RivalModel]
    rivals: List[RivalModel]
    biggest_rival: Optional[BiggestRivalModel] = None


class SupporterModel(BaseModel):
    bidder_fid: int
    bid_count: int
    total_spent_cents: int
    highest_bid_cents: int
    profile: Optional[Dict[str, Any]] = None


class AuctionSummaryModel(BaseModel):
    cast_hash: str
    creator_fid: int
    state: int
    state_label: str
    end_time: Optional[datetime] = None
    bid_count: int
    unique_bidders: int
    highest_bid_cents: int
    cast: Optional[Dict[str, Any]] = None

    @classmethod
    def from_summary(cls, summary: engine.AuctionSummary, casts: Optional[Dict[str, Any]] = None) -> "AuctionSummaryModel":
        return cls(
            cast_hash=summary.cast_hash,
            creator_fid=summary.creator_fid,
            state=int(summary.state),
            state_label=summary.state.label,
            end_time=summary.end_time,
            bid_count=summary.bid_count,
            unique_bidders=summary.unique_bidders,
            highest_bid_cents=usdc_to_cents(summary.highest_bid),
            cast=(casts or {}).get(summary.cast_hash),
        )


class CreatorStatsResponse(BaseModel):
    creator_fid: int
    profile: Optional[Dict[str, Any]] = None
    total_auctions: int
    active_auctions: int
    ended_auctions: int
    settled_auctions: int
    total_fees_earned_cents: int
    unique_simps: int
    total_bids_received: int
    total_volume_cents: int
    highest_bid_received_cents: int
    average_bid_cents: int
    top_simps: List[SupporterModel]
    recent_auctions: List[AuctionSummaryModel]


class HotCreatorModel(BaseModel):
    creator_fid: int
    auctions: int
    revenue_cents: int
    unique_bidders: int
    bids_received: int
    highest_bid_cents: int
    profile: Optional[Dict[str, Any]] = None


class StreamSyncModel(BaseModel):
    stream: str
    cursor_in: int
    cursor_out: int
    windows: int
    outcomes: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None


class SyncResponse(BaseModel):
    success: bool
    streams: List[StreamSyncModel]


class HistoryBidModel(BaseModel):
    auction_id: int
    amount_cents: int
    timestamp: datetime
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    cast_hash: Optional[str] = None
    creator_fid: Optional[int] = None
    min_bid_cents: Optional[int] = None
    end_time: Optional[datetime] = None
    auction_state: Optional[int] = None
    cast: Optional[Dict[str, Any]] = None

    @classmethod
    def from_history(cls, item: engine.BidWithAuction, casts: Optional[Dict[str, Any]] = None) -> "HistoryBidModel":
        bid, auction = item.bid, item.auction
        cast_hash = auction.cast_hash if auction else bid.cast_hash
        return cls(
            auction_id=bid.auction_id,
            amount_cents=usdc_to_cents(bid.amount),
            timestamp=bid.timestamp,
            transaction_hash=bid.transaction_hash,
            block_number=bid.block_number,
            cast_hash=cast_hash,
            creator_fid=auction.creator_fid if auction else bid.creator_fid,
            min_bid_cents=usdc_to_cents(auction.min_bid) if auction else None,
            end_time=auction.end_time if auction else None,
            auction_state=auction.state if auction else None,
            cast=(casts or {}).get(cast_hash),
        )


class UserHistoryResponse(BaseModel):
    fid: int
    profile: Optional[Dict[str, Any]] = None
    stats: Optional[UserStatsModel] = None
    bids: List[HistoryBidModel]


class CastActivityModel(BaseModel):
    cast_hash: Optional[str] = None
    creator_fid: Optional[int] = None
    state: Optional[int] = None
    state_label: Optional[str] = None
    end_time: Optional[datetime] = None
    user_bid_count: int
    user_highest_bid_cents: int
    first_bid_time: datetime
    last_bid_time: datetime
    auction_highest_bid_cents: int
    total_auction_bids: int
    cast: Optional[Dict[str, Any]] = None
    creator_profile: Optional[Dict[str, Any]] = None


class HallOfShameResponse(BaseModel):
    fid: int
    profile: Optional[Dict[str, Any]] = None
    level: str
    emoji: str
    stats: Optional[UserStatsModel] = None
    rank: Optional[RankModel] = None
    top_creators: List[CreatorSupportModel] = []
    most_bid_casts: List[CastActivityModel] = []
    recent_bids: List[HistoryBidModel] = []


class TopBidderModel(BaseModel):
    bidder_fid: int
    highest_bid_cents: int
    bid_count: int
    profile: Optional[Dict[str, Any]] = None


class HotCastModel(AuctionSummaryModel):
    min_bid_cents: int
    lowest_bid_cents: int
    average_bid_cents: int
    first_bid_time: datetime
    last_bid_time: datetime
    creator_profile: Optional[Dict[str, Any]] = None
    top_bidders: List[TopBidderModel] = []


class RisingSimpModel(BaseModel):
    bidder_fid: int
    recent_bids: int
    recent_volume_cents: int
    previous_bids: int
    previous_volume_cents: int
    bid_increase: int
    growth_percentage: float
    profile: Optional[Dict[str, Any]] = None
