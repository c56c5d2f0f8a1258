#!/usr/bin/env python3
"""
Tests for bid and auction aggregation rules
"""

from datetime import datetime, timedelta, timezone

import pytest

from castbid.analytics.engine import (
    NEW_BIDDER_GROWTH,
    AuctionRecord,
    BidRecord,
    Period,
    UserStats,
    _round_div,
    aggregate_bidders,
    bid_history,
    bidder_profile,
    count_by_effective_state,
    creator_stats,
    determine_winner,
    global_stats,
    head_to_head,
    hot_auctions,
    hot_casts,
    hot_creators,
    leaderboard,
    percentile,
    rank_among,
    rank_bidder,
    rising_bidders,
    top_creators,
    usdc_to_cents,
    user_stats,
)
from castbid.indexer.lifecycle import AuctionState

USD = 1_000_000
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
NOW = T0 + timedelta(days=10)


def bid(auction_id, fid, usd, minutes=0, creator_fid=100, at=None):
    return BidRecord(
        auction_id=auction_id,
        bidder_fid=fid,
        amount=int(usd * USD),
        timestamp=at or T0 + timedelta(minutes=minutes),
        creator_fid=creator_fid,
        cast_hash=f"0x{auction_id:040x}",
    )


def auction(id, creator_fid=100, state=AuctionState.ACTIVE, ends_in=timedelta(days=1), **kw):
    return AuctionRecord(
        id=id,
        cast_hash=f"0x{id:040x}",
        creator_fid=creator_fid,
        state=int(state),
        end_time=NOW + ends_in,
        **kw,
    )


class TestBidderAggregation:
    def test_raising_own_bid_counts_highest_only(self):
        stats = user_stats([bid(1, 7, 1, 0), bid(1, 7, 2, 1), bid(1, 7, 3, 2)], 7)

        assert stats.total_bids == 3
        assert stats.total_volume == 3 * USD
        assert stats.highest_bid == 3 * USD
        assert stats.auctions_participated == 1

    def test_volume_sums_across_auctions(self):
        stats = user_stats([bid(1, 7, 3), bid(2, 7, 2), bid(2, 7, 1.5)], 7)

        assert stats.total_volume == 5 * USD
        assert stats.auctions_participated == 2

    def test_first_and_last_bid_times(self):
        stats = user_stats([bid(1, 7, 1, 30), bid(2, 7, 1, 5), bid(1, 7, 2, 60)], 7)

        assert stats.first_bid_at == T0 + timedelta(minutes=5)
        assert stats.last_bid_at == T0 + timedelta(minutes=60)

    def test_unknown_bidder_has_no_stats(self):
        assert user_stats([bid(1, 7, 1)], 8) is None

    def test_other_bidders_do_not_leak_in(self):
        stats = aggregate_bidders([bid(1, 7, 1), bid(1, 8, 5)])
        assert stats[7].total_volume == 1 * USD
        assert stats[8].total_volume == 5 * USD


class TestLeaderboard:
    @pytest.fixture
    def bids(self):
        return [
            bid(1, 3, 1), bid(1, 3, 1), bid(1, 3, 1),
            bid(1, 2, 2), bid(2, 2, 3),
            bid(1, 4, 5), bid(1, 4, 4),
            bid(2, 1, 1), bid(2, 1, 2),
        ]

    def test_ranked_by_bids_then_volume_then_fid(self, bids):
        board = leaderboard(bids, now=NOW)

        assert [e.stats.fid for e in board] == [3, 2, 4, 1]
        assert [e.rank for e in board] == [1, 2, 3, 4]

    def test_limit(self, bids):
        assert [e.stats.fid for e in leaderboard(bids, now=NOW, limit=2)] == [3, 2]

    def test_period_restricts_before_aggregating(self):
        bids = [
            bid(1, 7, 5, at=NOW - timedelta(days=10)),
            bid(1, 7, 2, at=NOW - timedelta(hours=12)),
            bid(2, 8, 1, at=NOW - timedelta(days=3)),
        ]

        day = leaderboard(bids, Period.DAY, now=NOW)
        assert [(e.stats.fid, e.stats.total_volume) for e in day] == [(7, 2 * USD)]

        week = leaderboard(bids, Period.WEEK, now=NOW)
        assert {e.stats.fid for e in week} == {7, 8}

        month = leaderboard(bids, Period.MONTH, now=NOW)
        assert month[0].stats.fid == 7
        assert month[0].stats.total_volume == 5 * USD

    def test_naive_now_is_treated_as_utc(self):
        bids = [bid(1, 7, 1, at=NOW - timedelta(hours=1))]
        assert len(leaderboard(bids, Period.DAY, now=NOW.replace(tzinfo=None))) == 1

    def test_entries_carry_top_creators(self, bids):
        board = leaderboard(bids, now=NOW)
        assert board[0].top_creators[0].creator_fid == 100

    def test_period_values(self):
        assert Period("all-time") is Period.ALL_TIME
        assert Period.ALL_TIME.since(NOW) is None
        assert Period.WEEK.since(NOW) == NOW - timedelta(days=7)


class TestTopCreators:
    def test_ordered_by_auctions_then_spend(self):
        bids = [
            bid(1, 7, 1, creator_fid=100),
            bid(2, 7, 1, creator_fid=100),
            bid(2, 7, 2, creator_fid=100),
            bid(3, 7, 50, creator_fid=200),
            bid(3, 8, 60, creator_fid=200),
        ]
        ranked = top_creators(bids, 7)

        assert [c.creator_fid for c in ranked] == [100, 200]
        assert ranked[0].auctions_bid_on == 2
        assert ranked[0].total_bids == 3
        assert ranked[0].total_spent == 3 * USD
        assert ranked[0].highest_bid == 2 * USD
        assert ranked[1].total_spent == 50 * USD


class TestRanking:
    def test_ties_share_a_rank(self):
        bids = [bid(1, 1, 1), bid(1, 1, 2), bid(1, 1, 3), bid(2, 2, 1), bid(2, 2, 1), bid(2, 2, 1), bid(3, 3, 9)]

        first = rank_bidder(bids, 2)
        assert first.bid_rank == 1
        assert first.total_bidders == 3
        assert first.percentile == 100.0

        last = rank_bidder(bids, 3)
        assert last.bid_rank == 3
        assert last.volume_rank == 1
        assert last.percentile == 33.3

    def test_rank_among_precomputed_totals(self):
        totals = {
            1: UserStats(fid=1, total_bids=5, total_volume=10 * USD),
            2: UserStats(fid=2, total_bids=5, total_volume=20 * USD),
            3: UserStats(fid=3, total_bids=1, total_volume=30 * USD),
        }
        ranking = rank_among(totals, 2)

        assert (ranking.bid_rank, ranking.volume_rank, ranking.total_bidders) == (1, 2, 3)
        assert ranking.percentile == 100.0
        assert rank_among(totals, 99) is None

    def test_unknown_bidder_is_unranked(self):
        assert rank_bidder([bid(1, 1, 1)], 99) is None

    @pytest.mark.parametrize("rank,total,expected", [
        (1, 1, 100.0),
        (2, 3, 66.7),
        (1, 8, 100.0),
        (8, 8, 12.5),
        (1, 0, 0.0),
    ])
    def test_percentile(self, rank, total, expected):
        assert percentile(rank, total) == expected


class TestCents:
    @pytest.mark.parametrize("amount,cents", [
        (0, 0),
        (None, 0),
        (4_999, 0),
        (5_000, 1),
        (1_234_567, 123),
        (1_235_000, 124),
        (100 * USD, 10_000),
    ])
    def test_half_up(self, amount, cents):
        assert usdc_to_cents(amount) == cents

    def test_round_div_half_up(self):
        assert _round_div(5, 2) == 3
        assert _round_div(4, 3) == 1
        assert _round_div(1, 0) == 0


class TestGlobalStats:
    def test_effective_states_and_volume(self):
        auctions = [
            auction(1),
            auction(2, ends_in=-timedelta(minutes=1)),
            auction(3, state=AuctionState.SETTLED),
            auction(4, state=AuctionState.CANCELLED),
        ]
        bids = [bid(1, 7, 1), bid(1, 7, 4), bid(1, 8, 2), bid(3, 8, 10)]

        stats = global_stats(bids, auctions, now=NOW)

        assert (stats.active_auctions, stats.ended_auctions, stats.total_auctions) == (1, 3, 4)
        assert stats.unique_bidders == 2
        assert stats.total_bids == 4
        assert stats.total_volume == 16 * USD
        assert stats.highest_bid == 10 * USD

    def test_empty(self):
        stats = global_stats([], [], now=NOW)
        assert stats.total_volume == 0
        assert stats.highest_bid == 0
        assert count_by_effective_state([], NOW) == (0, 0, 0)


class TestCreatorStats:
    @pytest.fixture
    def auctions(self):
        return [
            auction(1, state=AuctionState.SETTLED, protocol_fee_bps=1000, winning_bid=10 * USD,
                    created_at=T0 + timedelta(hours=1)),
            auction(2, state=AuctionState.SETTLED, protocol_fee_bps=500, created_at=T0 + timedelta(hours=2)),
            auction(3, state=AuctionState.CANCELLED, protocol_fee_bps=1000, created_at=T0 + timedelta(hours=3)),
            auction(4, protocol_fee_bps=1000, created_at=T0 + timedelta(hours=4)),
            auction(5, creator_fid=200, state=AuctionState.SETTLED, protocol_fee_bps=1000, winning_bid=50 * USD),
        ]

    @pytest.fixture
    def bids(self):
        return [
            bid(1, 1, 4), bid(1, 1, 10), bid(1, 2, 6),
            bid(2, 2, 3),
            bid(5, 3, 50, creator_fid=200),
        ]

    def test_revenue_and_fees(self, bids, auctions):
        stats = creator_stats(bids, auctions, 100, now=NOW)

        assert stats.total_auctions == 4
        assert stats.active_auctions == 1
        assert stats.ended_auctions == 3
        assert stats.settled_auctions == 2
        # 10% of the recorded winning bid, 5% of the highest bid where none was recorded
        assert stats.fees_earned == 1_000_000 + 150_000
        assert stats.revenue == 19 * USD
        assert stats.highest_bid == 10 * USD
        assert stats.bids_received == 4
        assert stats.unique_bidders == 2
        assert stats.average_bid == 6_333_333

    def test_supporters_ranked_by_spend(self, bids, auctions):
        supporters = creator_stats(bids, auctions, 100, now=NOW).top_supporters

        assert [(s.bidder_fid, s.total_spent, s.bid_count) for s in supporters] == [
            (1, 10 * USD, 2),
            (2, 9 * USD, 2),
        ]

    def test_recent_auctions_newest_first(self, bids, auctions):
        recent = creator_stats(bids, auctions, 100, now=NOW, recent=2).recent_auctions

        assert [a.auction_id for a in recent] == [4, 3]
        assert recent[0].state == AuctionState.ACTIVE
        assert recent[1].state == AuctionState.CANCELLED

    def test_creator_without_auctions(self):
        stats = creator_stats([], [], 100, now=NOW)
        assert stats.total_auctions == 0
        assert stats.average_bid == 0
        assert stats.top_supporters == []


class TestHotLists:
    def test_hot_creators_by_revenue(self):
        auctions = [auction(1, 100), auction(2, 100), auction(3, 200), auction(4, 300)]
        bids = [
            bid(1, 7, 1), bid(1, 7, 2), bid(2, 8, 3),
            bid(3, 7, 5, creator_fid=200),
            bid(4, 9, 5, creator_fid=300),
        ]
        ranked = hot_creators(bids, auctions)

        assert [c.creator_fid for c in ranked] == [100, 200, 300]
        assert ranked[0].revenue == 5 * USD
        assert ranked[0].auctions == 2
        assert ranked[0].unique_bidders == 2
        assert ranked[0].bids_received == 3
        assert ranked[0].highest_bid == 3 * USD

    def test_hot_auctions_count_recent_bids_only(self):
        auctions = [auction(1), auction(2), auction(3)]
        recent = NOW - timedelta(hours=1)
        bids = [
            bid(1, 7, 1, at=recent), bid(1, 8, 2, at=recent),
            bid(2, 7, 1, at=recent), bid(2, 8, 2, at=recent), bid(2, 9, 3, at=recent),
            bid(3, 7, 1, at=NOW - timedelta(days=2)),
        ]
        hot = hot_auctions(bids, auctions, now=NOW)

        assert [(s.auction_id, s.bid_count) for s in hot] == [(2, 3), (1, 2)]
        assert hot[0].unique_bidders == 3

    def test_hot_casts_by_highest_bid(self):
        auctions = [auction(1, min_bid=USD), auction(2), auction(3)]
        bids = [
            bid(1, 7, 2), bid(1, 8, 4, minutes=1), bid(1, 7, 5, minutes=2), bid(1, 9, 1, minutes=3),
            bid(2, 7, 9),
        ]
        hot = hot_casts(bids, auctions, now=NOW)

        assert [c.summary.auction_id for c in hot] == [2, 1]
        busiest = hot[1]
        assert busiest.summary.bid_count == 4
        assert busiest.min_bid == USD
        assert busiest.lowest_bid == 1 * USD
        assert busiest.average_bid == 3 * USD
        assert busiest.first_bid_at == T0
        assert busiest.last_bid_at == T0 + timedelta(minutes=3)
        assert [(t.bidder_fid, t.highest_bid, t.bid_count) for t in busiest.top_bidders] == [
            (7, 5 * USD, 2), (8, 4 * USD, 1), (9, 1 * USD, 1),
        ]

    def test_hot_casts_limits(self):
        bids = [bid(1, 7, 2), bid(1, 8, 4), bid(1, 9, 1), bid(2, 7, 1)]
        hot = hot_casts(bids, [auction(1), auction(2)], now=NOW, limit=1, top=2)

        assert len(hot) == 1
        assert [t.bidder_fid for t in hot[0].top_bidders] == [8, 7]


class TestRisingBidders:
    def bids(self, fid, count, days_ago, first_auction):
        return [
            bid(first_auction + i, fid, 1, at=NOW - timedelta(days=days_ago, minutes=i))
            for i in range(count)
        ]

    def test_ranked_by_growth(self):
        bids = (
            self.bids(5, 6, 1, 100) + self.bids(5, 2, 8, 200) + self.bids(5, 3, 20, 300)
            + self.bids(6, 7, 2, 400)
            + self.bids(7, 5, 1, 500)
            + self.bids(8, 6, 3, 600) + self.bids(8, 6, 9, 700)
            + self.bids(9, 7, 1, 800) + self.bids(9, 3, 10, 900)
        )
        rising = rising_bidders(bids, now=NOW)

        assert [(r.fid, r.growth_percentage) for r in rising] == [
            (6, NEW_BIDDER_GROWTH), (5, 200.0), (9, 133.3), (8, 0.0),
        ]
        five = rising[1]
        assert (five.recent_bids, five.previous_bids, five.bid_increase) == (6, 2, 4)
        assert (five.recent_volume, five.previous_volume) == (6 * USD, 2 * USD)

    def test_volume_counts_highest_bid_per_auction(self):
        at = NOW - timedelta(hours=1)
        bids = [bid(1, 5, usd, at=at + timedelta(minutes=usd)) for usd in range(1, 7)]

        rising = rising_bidders(bids, now=NOW)

        assert rising[0].recent_bids == 6
        assert rising[0].recent_volume == 6 * USD

    def test_limit(self):
        bids = self.bids(5, 6, 1, 100) + self.bids(6, 7, 1, 200)
        assert [r.fid for r in rising_bidders(bids, now=NOW, limit=1)] == [6]


class TestBidderHistory:
    def test_newest_first_with_auction(self):
        auctions = [auction(1, min_bid=USD), auction(2)]
        bids = [bid(1, 7, 1), bid(2, 7, 3, minutes=10), bid(1, 8, 2, minutes=5), bid(3, 7, 4, minutes=20)]

        history = bid_history(bids, auctions, 7)

        assert [h.bid.auction_id for h in history] == [3, 2, 1]
        assert history[0].auction is None
        assert history[2].auction.min_bid == USD
        assert [h.bid.auction_id for h in bid_history(bids, auctions, 7, limit=1)] == [3]

    def test_profile_card(self):
        auctions = [auction(1, state=AuctionState.SETTLED), auction(2), auction(3, creator_fid=200)]
        bids = [
            bid(1, 7, 1), bid(1, 8, 2, minutes=1), bid(1, 7, 3, minutes=2),
            bid(2, 7, 1, minutes=3), bid(2, 9, 6, minutes=4),
            bid(3, 7, 2, minutes=5, creator_fid=200),
        ]
        # a bidder outside these auctions still counts for ranking
        totals = aggregate_bidders(bids + [bid(9, 10, 100, minutes=6)])

        card = bidder_profile(bids, auctions, totals, 7, now=NOW)

        assert (card.stats.total_bids, card.stats.total_volume) == (4, 6 * USD)
        assert (card.ranking.bid_rank, card.ranking.volume_rank, card.ranking.total_bidders) == (1, 2, 4)
        assert [c.creator_fid for c in card.top_creators] == [100, 200]
        assert [c.auction_id for c in card.most_bid_casts] == [1, 3, 2]

        first = card.most_bid_casts[0]
        assert (first.user_bid_count, first.user_highest_bid) == (2, 3 * USD)
        assert (first.auction_highest_bid, first.auction_bid_count) == (3 * USD, 3)
        assert first.state == AuctionState.SETTLED
        assert card.most_bid_casts[2].auction_highest_bid == 6 * USD
        assert [r.bid.auction_id for r in card.recent_bids] == [3, 2, 1, 1]

    def test_profile_card_without_bids(self):
        card = bidder_profile([], [], {}, 7, now=NOW)

        assert card.stats is None
        assert card.ranking is None
        assert card.most_bid_casts == []
        assert card.recent_bids == []


class TestHeadToHead:
    def stats(self, fid, bids, volume, highest):
        return UserStats(fid=fid, total_bids=bids, total_volume=volume, highest_bid=highest)

    def test_full_tie_goes_to_second_side(self):
        winner = determine_winner(self.stats(1, 5, 10, 5), self.stats(2, 5, 10, 5))
        assert winner.fid == 2
        assert winner.score == "3-0"

    def test_single_criterion_lead_loses(self):
        winner = determine_winner(self.stats(1, 6, 10, 5), self.stats(2, 5, 10, 5))
        assert winner.fid == 2
        assert winner.score == "2-1"

    def test_clean_sweep(self):
        winner = determine_winner(self.stats(1, 6, 11, 6), self.stats(2, 5, 10, 5))
        assert winner.fid == 1
        assert winner.score == "3-0"

    def test_no_winner_without_bids(self):
        assert determine_winner(self.stats(1, 1, 1, 1), None) is None

        result = head_to_head([bid(1, 7, 1)], 7, 8)
        assert result.user2 is None
        assert result.winner is None
        assert result.common_auctions == []

    def test_common_auctions(self):
        bids = [
            bid(1, 7, 1), bid(1, 8, 2), bid(1, 7, 3),
            bid(2, 7, 1),
            bid(3, 8, 4), bid(3, 7, 5),
            bid(4, 9, 1),
        ]
        result = head_to_head(bids, 7, 8)

        assert [c.auction_id for c in result.common_auctions] == [3, 1]
        first = result.common_auctions[1]
        assert (first.user1_highest_bid, first.user2_highest_bid) == (3 * USD, 2 * USD)
        assert (first.user1_bid_count, first.user2_bid_count) == (2, 1)
        assert result.user1.total_bids == 4
        assert result.winner.fid == 7
