#!/usr/bin/env python3
"""
Farcaster profile and cast enrichment via the Neynar API.

Records are cached in Redis per user (`user:{fid}`), per username
(`username:{name}`) and per cast (`cast:{hash}`).
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import aiohttp
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

USER_BATCH_SIZE = 100
CAST_BATCH_SIZE = 50


class ProfileProviderError(Exception):
    """Neynar could not be reached or answered with an unexpected status"""


def format_user(user: Dict[str, Any]) -> Dict[str, Any]:
    verified = (user.get('verified_addresses') or {}).get('eth_addresses') or []
    return {
        "fid": user.get('fid'),
        "username": user.get('username'),
        "displayName": user.get('display_name'),
        "pfpUrl": user.get('pfp_url'),
        "followerCount": user.get('follower_count'),
        "followingCount": user.get('following_count'),
        "bio": ((user.get('profile') or {}).get('bio') or {}).get('text'),
        "primaryAddress": verified[0] if verified else None,
        "powerBadge": bool(user.get('power_badge', False)),
    }


def format_cast(cast: Dict[str, Any]) -> Dict[str, Any]:
    first_embed = None
    embeds = cast.get('embeds') or []
    if embeds:
        embed = embeds[0]
        if embed.get('cast_id') or embed.get('cast'):
            quoted = embed.get('cast') or {}
            first_embed = {
                "type": "cast",
                "cast_hash": (embed.get('cast_id') or {}).get('hash') or quoted.get('hash'),
                "cast_text": quoted.get('text'),
                "cast_author": (quoted.get('author') or {}).get('username'),
            }
        elif embed.get('url'):
            content_type = ((embed.get('metadata') or {}).get('content_type') or '')
            first_embed = {
                "type": "image" if content_type.startswith('image/') else "url",
                "url": embed['url'],
                "metadata": embed.get('metadata'),
            }
        else:
            first_embed = embed

    return {
        "hash": cast.get('hash'),
        "text": cast.get('text') or '',
        "timestamp": cast.get('timestamp'),
        "firstEmbed": first_embed,
    }


def _batches(items: List[Any], size: int) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class ProfileProvider:
    """Neynar client with a Redis read-through cache"""

    def __init__(self, session: aiohttp.ClientSession, api_key: Optional[str], redis_client=None,
                 base_url: str = "https://api.neynar.com/v2", ttl: int = 3600):
        self.session = session
        self.api_key = api_key
        self.redis = redis_client
        self.base_url = base_url.rstrip('/')
        self.ttl = ttl

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _cache_get_many(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        if self.redis is None or not keys:
            return [None] * len(keys)
        try:
            values = await self.redis.mget(keys)
        except RedisError as e:
            logger.warning(f"Profile cache read failed: {e}")
            return [None] * len(keys)
        return [json.loads(v) if v else None for v in values]

    async def _cache_put(self, key: str, value: Dict[str, Any]) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, json.dumps(value), ex=self.ttl)
        except RedisError as e:
            logger.warning(f"Profile cache write failed for {key}: {e}")

    async def _get_json(self, path: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """Response body, or None on 404. Anything else that is not a 200 raises ProfileProviderError."""
        headers = {'x-api-key': self.api_key, 'x-neynar-experimental': 'false'}
        try:
            async with self.session.get(f"{self.base_url}{path}", params=params, headers=headers) as response:
                if response.status == 404:
                    return None
                if response.status != 200:
                    raise ProfileProviderError(f"Neynar {path} returned {response.status}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProfileProviderError(f"Neynar {path} request failed: {e}") from e

    async def _enrichment_json(self, path: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        # enrichment is best effort; a failed batch leaves those records out
        try:
            return await self._get_json(path, params)
        except ProfileProviderError as e:
            logger.error(str(e))
            return None

    async def get_users(self, fids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        fids = list(dict.fromkeys(int(f) for f in fids))
        if not fids:
            return {}

        users: Dict[int, Dict[str, Any]] = {}
        cached = await self._cache_get_many([f"user:{fid}" for fid in fids])
        missing = []
        for fid, value in zip(fids, cached):
            if value is not None:
                users[fid] = value
            else:
                missing.append(fid)

        if not missing or not self.enabled:
            return users

        for batch in _batches(missing, USER_BATCH_SIZE):
            data = await self._enrichment_json("/farcaster/user/bulk/", {"fids": ",".join(str(f) for f in batch)})
            if not data:
                continue
            for raw in data.get('users', []):
                user = format_user(raw)
                users[user['fid']] = user
                await self._cache_put(f"user:{user['fid']}", user)

        return users

    async def get_user(self, fid: int) -> Optional[Dict[str, Any]]:
        return (await self.get_users([fid])).get(int(fid))

    async def get_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        username = username.lower()
        cached = (await self._cache_get_many([f"username:{username}"]))[0]
        if cached is not None:
            return cached
        if not self.enabled:
            raise ProfileProviderError("Neynar API key is not configured; usernames cannot be resolved")

        data = await self._get_json("/farcaster/user/by_username/", {"username": username})
        if not data or not data.get('user'):
            return None

        user = format_user(data['user'])
        await self._cache_put(f"username:{username}", user)
        await self._cache_put(f"user:{user['fid']}", user)
        return user

    async def lookup_fid(self, username: str) -> Optional[int]:
        user = await self.get_user_by_username(username)
        return int(user['fid']) if user and user.get('fid') is not None else None

    async def get_casts(self, hashes: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        hashes = list(dict.fromkeys(h for h in hashes if h))
        if not hashes:
            return {}

        casts: Dict[str, Dict[str, Any]] = {}
        cached = await self._cache_get_many([f"cast:{h}" for h in hashes])
        missing = []
        for cast_hash, value in zip(hashes, cached):
            if value is not None:
                casts[cast_hash] = value
            else:
                missing.append(cast_hash)

        if not missing or not self.enabled:
            return casts

        for batch in _batches(missing, CAST_BATCH_SIZE):
            data = await self._enrichment_json("/farcaster/casts/", {"casts": ",".join(batch)})
            if not data:
                continue
            for result in (data.get('result') or {}).get('casts', []):
                cast = format_cast(result.get('cast') or result)
                casts[cast['hash']] = cast
                await self._cache_put(f"cast:{cast['hash']}", cast)

        return casts

    async def get_cast(self, cast_hash: str) -> Optional[Dict[str, Any]]:
        return (await self.get_casts([cast_hash])).get(cast_hash)
