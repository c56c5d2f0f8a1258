#!/usr/bin/env python3
"""
Manual sync trigger. Runs one indexer pass in a worker thread.
"""

import hmac
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.concurrency import run_in_threadpool

from castbid.indexer.indexer import DEFAULT_CONFIG_PATH, SyncRunner, build_runner, load_config

from ..config import Settings, get_settings
from ..models import StreamSyncModel, SyncResponse

router = APIRouter(tags=["sync"])
logger = logging.getLogger(__name__)


def get_runner_factory(settings: Settings = Depends(get_settings)) -> Callable[[], SyncRunner]:
    config_path = settings.indexer_config or DEFAULT_CONFIG_PATH
    return lambda: build_runner(load_config(config_path))


def _run_once(factory: Callable[[], SyncRunner]):
    runner = factory()
    try:
        return runner.run_sync()
    finally:
        runner.close()


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else None


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    runner_factory: Callable[[], SyncRunner] = Depends(get_runner_factory),
):
    if not settings.sync_token:
        raise HTTPException(status_code=503, detail="Manual sync is disabled")
    token = _bearer(authorization)
    if token is None or not hmac.compare_digest(token, settings.sync_token):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        results = await run_in_threadpool(_run_once, runner_factory)
    except Exception as e:
        logger.error(f"Sync error: {e}")
        raise HTTPException(status_code=500, detail="Sync failed")

    streams = [
        StreamSyncModel(
            stream=r.stream,
            cursor_in=r.cursor_in,
            cursor_out=r.cursor_out,
            windows=r.windows,
            outcomes=dict(r.outcomes),
            error=r.error,
        )
        for r in results.values()
    ]
    return SyncResponse(success=all(s.error is None for s in streams), streams=streams)
