#!/usr/bin/env python3
"""
Analytics queries: load snapshots, aggregate with castbid.analytics, enrich
with profiles and cache the serialized response.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from castbid.analytics import engine, levels, rivalry
from castbid.analytics.engine import Period, usdc_to_cents
from castbid.analytics.identity import Identity, IdentityNotFoundError, parse_fid, resolve_identity

from ..database import DatabaseQueries
from ..models import (
    AchievementModel,
    AuctionSummaryModel,
    BattleSide,
    BiggestRivalModel,
    CastActivityModel,
    CommonAuctionModel,
    CreatorStatsResponse,
    CreatorSupportModel,
    GlobalStatsModel,
    HallOfShameResponse,
    HeadToHeadResponse,
    HistoryBidModel,
    HotCastModel,
    HotCreatorModel,
    LeaderboardEntryModel,
    LeaderboardResponse,
    MilestoneModel,
    OutbidHistoryResponse,
    RankModel,
    RisingSimpModel,
    RivalModel,
    SimpProfileResponse,
    SupporterModel,
    TopBidderModel,
    UserHistoryResponse,
    UserStatsModel,
    WinnerModel,
)
from .profiles import ProfileProvider
from .result_cache import ResultCache

logger = logging.getLogger(__name__)

RISING_WINDOW = timedelta(days=7)


class AnalyticsService:
    def __init__(self, db, cache: ResultCache, profiles: ProfileProvider,
                 queries=DatabaseQueries, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.cache = cache
        self.profiles = profiles
        self.queries = queries
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def leaderboard(self, period: Period = Period.ALL_TIME, limit: int = 50) -> Dict[str, Any]:
        async def compute():
            now = self.clock()
            bids = await self.queries.load_bids(self.db, since=period.since(now))
            entries = engine.leaderboard(bids, period, now=now, limit=limit)

            fids = {e.stats.fid for e in entries} | {c.creator_fid for e in entries for c in e.top_creators}
            users = await self.profiles.get_users(fids)
            return LeaderboardResponse(
                period=period.value,
                entries=[LeaderboardEntryModel.from_entry(e, users) for e in entries],
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("leaderboard", period.value, limit), compute)

    async def global_stats(self) -> Dict[str, Any]:
        async def compute():
            bidders = await self.queries.load_bidder_totals(self.db)
            auctions = await self.queries.load_auctions(self.db)
            stats = engine.global_stats_from_totals(bidders, auctions, now=self.clock())
            return GlobalStatsModel(
                unique_bidders=stats.unique_bidders,
                total_bids=stats.total_bids,
                total_volume_cents=usdc_to_cents(stats.total_volume),
                highest_bid_cents=usdc_to_cents(stats.highest_bid),
                active_auctions=stats.active_auctions,
                ended_auctions=stats.ended_auctions,
                total_auctions=stats.total_auctions,
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("stats"), compute)

    async def simp_profile(self, fid_value) -> Dict[str, Any]:
        """Level, rank, percentile, achievements and next milestone for one bidder"""
        fid = parse_fid(fid_value).fid

        async def compute():
            bids = await self.queries.load_bids(self.db, bidder_fids=[fid])
            stats = engine.user_stats(bids, fid)
            profile = await self.profiles.get_user(fid)

            if stats is None:
                return SimpProfileResponse(
                    fid=fid,
                    profile=profile,
                    level=levels.NOT_A_SIMP.level,
                    emoji=levels.NOT_A_SIMP.emoji,
                    next_milestone=MilestoneModel.from_milestone(levels.next_milestone(0, 0)),
                ).model_dump(mode='json')

            level = levels.simp_level(stats.total_bids)
            ranking = engine.rank_among(await self.queries.load_bidder_totals(self.db), fid)
            return SimpProfileResponse(
                fid=fid,
                profile=profile,
                level=level.level,
                emoji=level.emoji,
                stats=UserStatsModel.from_stats(stats),
                rank=RankModel(
                    bid_rank=ranking.bid_rank,
                    volume_rank=ranking.volume_rank,
                    total_simps=ranking.total_bidders,
                ),
                percentile=ranking.percentile,
                achievements=[
                    AchievementModel(name=a.name, emoji=a.emoji, description=a.description)
                    for a in levels.achievements(stats.total_bids, stats.total_volume, stats.highest_bid)
                ],
                next_milestone=MilestoneModel.from_milestone(
                    levels.next_milestone(stats.total_bids, stats.total_volume)
                ),
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("simp-level", fid), compute)

    async def head_to_head(self, first: Identity, second: Identity) -> Dict[str, Any]:
        # both identities resolve before any stats are loaded
        fid1 = await resolve_identity(first, self.profiles.lookup_fid)
        fid2 = await resolve_identity(second, self.profiles.lookup_fid)

        bids = await self.queries.load_bids(self.db, bidder_fids=[fid1, fid2])
        battle = engine.head_to_head(bids, fid1, fid2)
        users = await self.profiles.get_users([fid1, fid2])

        def side(fid, stats):
            return BattleSide(
                fid=fid,
                profile=users.get(fid),
                stats=UserStatsModel.from_stats(stats) if stats else None,
            )

        return HeadToHeadResponse(
            user1=side(fid1, battle.user1),
            user2=side(fid2, battle.user2),
            common_auctions=[
                CommonAuctionModel(
                    cast_hash=c.cast_hash,
                    creator_fid=c.creator_fid,
                    user1_highest_bid_cents=usdc_to_cents(c.user1_highest_bid),
                    user2_highest_bid_cents=usdc_to_cents(c.user2_highest_bid),
                    user1_bid_count=c.user1_bid_count,
                    user2_bid_count=c.user2_bid_count,
                )
                for c in battle.common_auctions
            ],
            winner=WinnerModel(fid=battle.winner.fid, score=battle.winner.score) if battle.winner else None,
        ).model_dump(mode='json')

    async def outbid_history(self, fid_value, limit: int = 10) -> Dict[str, Any]:
        fid = parse_fid(fid_value).fid

        async def compute():
            bids = await self.queries.load_bids_in_auctions_of(self.db, fid)
            victims = rivalry.victims(bids, fid, limit=limit)
            rivals = rivalry.rivals(bids, fid, limit=limit)
            biggest = rivalry.biggest_rival(bids, fid)

            fids = {s.fid for s in victims} | {s.fid for s in rivals}
            if biggest:
                fids.add(biggest.fid)
            users = await self.profiles.get_users(fids)

            return OutbidHistoryResponse(
                fid=fid,
                victims=[RivalModel.from_summary(s, users) for s in victims],
                rivals=[RivalModel.from_summary(s, users) for s in rivals],
                biggest_rival=BiggestRivalModel(
                    fid=biggest.fid,
                    times_outbid_them=biggest.times_outbid_them,
                    times_outbid_by_them=biggest.times_outbid_by_them,
                    total_interactions=biggest.total_interactions,
                    profile=users.get(biggest.fid),
                ) if biggest else None,
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("outbid-history", fid, limit), compute)

    async def creator_stats(self, fid_value) -> Dict[str, Any]:
        fid = parse_fid(fid_value).fid

        async def compute():
            bids = await self.queries.load_creator_bids(self.db, fid)
            auctions = await self.queries.load_auctions(self.db, creator_fid=fid)
            stats = engine.creator_stats(bids, auctions, fid, now=self.clock())

            users = await self.profiles.get_users([fid] + [s.bidder_fid for s in stats.top_supporters])
            casts = await self.profiles.get_casts(a.cast_hash for a in stats.recent_auctions)

            return CreatorStatsResponse(
                creator_fid=fid,
                profile=users.get(fid),
                total_auctions=stats.total_auctions,
                active_auctions=stats.active_auctions,
                ended_auctions=stats.ended_auctions,
                settled_auctions=stats.settled_auctions,
                total_fees_earned_cents=usdc_to_cents(stats.fees_earned),
                unique_simps=stats.unique_bidders,
                total_bids_received=stats.bids_received,
                total_volume_cents=usdc_to_cents(stats.revenue),
                highest_bid_received_cents=usdc_to_cents(stats.highest_bid),
                average_bid_cents=usdc_to_cents(stats.average_bid),
                top_simps=[
                    SupporterModel(
                        bidder_fid=s.bidder_fid,
                        bid_count=s.bid_count,
                        total_spent_cents=usdc_to_cents(s.total_spent),
                        highest_bid_cents=usdc_to_cents(s.highest_bid),
                        profile=users.get(s.bidder_fid),
                    )
                    for s in stats.top_supporters
                ],
                recent_auctions=[AuctionSummaryModel.from_summary(a, casts) for a in stats.recent_auctions],
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("creator-stats", fid), compute)

    async def hot_creators(self, limit: int = 10) -> Dict[str, Any]:
        async def compute():
            bids = await self.queries.load_bids(self.db)
            auctions = await self.queries.load_auctions(self.db)
            creators = engine.hot_creators(bids, auctions, limit=limit)
            users = await self.profiles.get_users(c.creator_fid for c in creators)
            return {
                "creators": [
                    HotCreatorModel(
                        creator_fid=c.creator_fid,
                        auctions=c.auctions,
                        revenue_cents=usdc_to_cents(c.revenue),
                        unique_bidders=c.unique_bidders,
                        bids_received=c.bids_received,
                        highest_bid_cents=usdc_to_cents(c.highest_bid),
                        profile=users.get(c.creator_fid),
                    ).model_dump(mode='json')
                    for c in creators
                ]
            }

        return await self.cache.get_or_compute(self.cache.key("hot-users", limit), compute)

    async def trending(self, limit: int = 10) -> Dict[str, Any]:
        """Most-bid auctions of the last day and bidders rising week over week"""
        async def compute():
            now = self.clock()
            # two rising windows back is the widest range either half needs
            bids = await self.queries.load_bids(self.db, since=now - 2 * RISING_WINDOW)
            auctions = await self.queries.load_auctions(self.db, auction_ids=sorted({b.auction_id for b in bids}))
            hot = engine.hot_auctions(bids, auctions, now=now, limit=limit)
            rising = engine.rising_bidders(bids, now=now, window=RISING_WINDOW, limit=limit)

            casts = await self.profiles.get_casts(a.cast_hash for a in hot)
            users = await self.profiles.get_users(r.fid for r in rising)
            return {
                "hot_auctions": [AuctionSummaryModel.from_summary(a, casts).model_dump(mode='json') for a in hot],
                "rising_simps": [
                    RisingSimpModel(
                        bidder_fid=r.fid,
                        recent_bids=r.recent_bids,
                        recent_volume_cents=usdc_to_cents(r.recent_volume),
                        previous_bids=r.previous_bids,
                        previous_volume_cents=usdc_to_cents(r.previous_volume),
                        bid_increase=r.bid_increase,
                        growth_percentage=r.growth_percentage,
                        profile=users.get(r.fid),
                    ).model_dump(mode='json')
                    for r in rising
                ],
            }

        return await self.cache.get_or_compute(self.cache.key("trending", limit), compute)

    async def hot_casts(self, limit: int = 10) -> Dict[str, Any]:
        """Auctions with the highest bids, with their top three bidders"""
        async def compute():
            auction_ids = await self.queries.top_auction_ids_by_highest_bid(self.db, limit)
            bids = await self.queries.load_bids_for_auctions(self.db, auction_ids)
            auctions = await self.queries.load_auctions(self.db, auction_ids=auction_ids)
            hot = engine.hot_casts(bids, auctions, now=self.clock(), limit=limit)

            fids = {c.summary.creator_fid for c in hot} | {t.bidder_fid for c in hot for t in c.top_bidders}
            users = await self.profiles.get_users(fids)
            casts = await self.profiles.get_casts(c.summary.cast_hash for c in hot)

            def model(c: engine.HotCast) -> HotCastModel:
                summary = AuctionSummaryModel.from_summary(c.summary, casts)
                return HotCastModel(
                    **summary.model_dump(),
                    min_bid_cents=usdc_to_cents(c.min_bid),
                    lowest_bid_cents=usdc_to_cents(c.lowest_bid),
                    average_bid_cents=usdc_to_cents(c.average_bid),
                    first_bid_time=c.first_bid_at,
                    last_bid_time=c.last_bid_at,
                    creator_profile=users.get(c.summary.creator_fid),
                    top_bidders=[
                        TopBidderModel(
                            bidder_fid=t.bidder_fid,
                            highest_bid_cents=usdc_to_cents(t.highest_bid),
                            bid_count=t.bid_count,
                            profile=users.get(t.bidder_fid),
                        )
                        for t in c.top_bidders
                    ],
                )

            return {"hot_casts": [model(c).model_dump(mode='json') for c in hot]}

        return await self.cache.get_or_compute(self.cache.key("hot-casts", limit), compute)

    async def user_history(self, fid_value) -> Dict[str, Any]:
        fid = parse_fid(fid_value).fid

        async def compute():
            bids = await self.queries.load_bids(self.db, bidder_fids=[fid])
            auctions = await self.queries.load_auctions(
                self.db, auction_ids=sorted({b.auction_id for b in bids}))
            stats = engine.user_stats(bids, fid)
            history = engine.bid_history(bids, auctions, fid)
            return UserHistoryResponse(
                fid=fid,
                profile=await self.profiles.get_user(fid),
                stats=UserStatsModel.from_stats(stats) if stats else None,
                bids=[HistoryBidModel.from_history(item) for item in history],
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("user", fid), compute)

    async def hall_of_shame(self, fid_value) -> Dict[str, Any]:
        """Consolidated bidder profile; IdentityNotFoundError when the fid has no profile and no bids"""
        fid = parse_fid(fid_value).fid

        async def compute():
            bids = await self.queries.load_bids_in_auctions_of(self.db, fid)
            profile = await self.profiles.get_user(fid)
            if profile is None and not any(b.bidder_fid == fid for b in bids):
                raise IdentityNotFoundError(str(fid))

            auctions = await self.queries.load_auctions(
                self.db, auction_ids=sorted({b.auction_id for b in bids}))
            bidders = await self.queries.load_bidder_totals(self.db)
            card = engine.bidder_profile(bids, auctions, bidders, fid, now=self.clock())

            creator_fids = {c.creator_fid for c in card.top_creators}
            creator_fids |= {c.creator_fid for c in card.most_bid_casts if c.creator_fid is not None}
            users = await self.profiles.get_users(creator_fids)
            casts = await self.profiles.get_casts(
                [c.cast_hash for c in card.most_bid_casts] + [r.bid.cast_hash for r in card.recent_bids])

            level = levels.simp_level(card.stats.total_bids) if card.stats else levels.NOT_A_SIMP
            return HallOfShameResponse(
                fid=fid,
                profile=profile,
                level=level.level,
                emoji=level.emoji,
                stats=UserStatsModel.from_stats(card.stats) if card.stats else None,
                rank=RankModel(
                    bid_rank=card.ranking.bid_rank,
                    volume_rank=card.ranking.volume_rank,
                    total_simps=card.ranking.total_bidders,
                ) if card.ranking else None,
                top_creators=[
                    CreatorSupportModel(
                        creator_fid=c.creator_fid,
                        auctions_bid_on=c.auctions_bid_on,
                        total_spent_cents=usdc_to_cents(c.total_spent),
                        total_bids=c.total_bids,
                        profile=users.get(c.creator_fid),
                    )
                    for c in card.top_creators
                ],
                most_bid_casts=[
                    CastActivityModel(
                        cast_hash=c.cast_hash,
                        creator_fid=c.creator_fid,
                        state=int(c.state) if c.state is not None else None,
                        state_label=c.state.label if c.state is not None else None,
                        end_time=c.end_time,
                        user_bid_count=c.user_bid_count,
                        user_highest_bid_cents=usdc_to_cents(c.user_highest_bid),
                        first_bid_time=c.first_bid_at,
                        last_bid_time=c.last_bid_at,
                        auction_highest_bid_cents=usdc_to_cents(c.auction_highest_bid),
                        total_auction_bids=c.auction_bid_count,
                        cast=casts.get(c.cast_hash),
                        creator_profile=users.get(c.creator_fid),
                    )
                    for c in card.most_bid_casts
                ],
                recent_bids=[HistoryBidModel.from_history(item, casts) for item in card.recent_bids],
            ).model_dump(mode='json')

        return await self.cache.get_or_compute(self.cache.key("hall-of-shame", fid), compute)
