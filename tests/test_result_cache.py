#!/usr/bin/env python3
"""
Tests for the time-bucketed analytics result cache
"""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from castbid.api.services.result_cache import ResultCache


@pytest.fixture
def client():
    redis = AsyncMock()
    redis.get.return_value = None
    return redis


@pytest.fixture
def cache(client):
    return ResultCache(client, ttl=240)


class TestKeys:
    def test_key_embeds_params_and_bucket(self, cache):
        assert cache.key("leaderboard", "week", 50, now=1000) == "leaderboard:week:50:4"

    def test_key_rolls_over_at_bucket_boundary(self, cache):
        assert cache.key("stats", now=959.9) == "stats:3"
        assert cache.key("stats", now=960) == "stats:4"


class TestReadThrough:
    async def test_miss_computes_and_stores(self, cache, client):
        compute = AsyncMock(return_value={"total": 3})

        assert await cache.get_or_compute("stats:4", compute) == {"total": 3}

        compute.assert_awaited_once()
        client.set.assert_awaited_once_with("stats:4", json.dumps({"total": 3}), ex=240)

    async def test_hit_skips_compute(self, cache, client):
        client.get.return_value = json.dumps({"total": 7})
        compute = AsyncMock()

        assert await cache.get_or_compute("stats:4", compute) == {"total": 7}
        compute.assert_not_awaited()

    async def test_redis_failure_degrades_to_compute(self, cache, client):
        client.get.side_effect = RedisConnectionError("down")
        client.set.side_effect = RedisConnectionError("down")
        compute = AsyncMock(return_value=[1, 2])

        assert await cache.get_or_compute("k", compute) == [1, 2]
        compute.assert_awaited_once()

    async def test_without_client(self):
        cache = ResultCache(None)
        compute = AsyncMock(return_value="fresh")

        assert await cache.get_or_compute("k", compute) == "fresh"
        assert await cache.get("k") is None
