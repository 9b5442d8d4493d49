"""Watch routes: start, list and stop per-market watchers.

Handlers stay thin; the registry owns every watcher's lifecycle.
"""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from kalshi_watch.deps import CredentialStoreDep, RegistryDep
from kalshi_watch.schemas import (Side, WatchConfig, WatcherStatus, WatchKey,
                                  WatchMode)
from kalshi_watch.services.trigger import trigger_price

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/watches", tags=["watches"])


class WatchResponse(BaseModel):
    """A registered watcher as seen by its user."""

    user_id: str
    ticker: str
    side: Side
    mode: WatchMode
    threshold_percent: float
    base_price: float
    trigger_price: float
    status: WatcherStatus


def _to_response(config: WatchConfig, status: WatcherStatus) -> WatchResponse:
    return WatchResponse(
        user_id=config.user_id,
        ticker=config.ticker,
        side=config.side,
        mode=config.mode,
        threshold_percent=config.threshold_percent,
        base_price=config.base_price,
        trigger_price=float(trigger_price(config)),
        status=status,
    )


@router.post("", status_code=201, response_model=WatchResponse)
async def start_watch(
    config: WatchConfig, registry: RegistryDep, store: CredentialStoreDep
) -> WatchResponse:
    """Start an alert or stop-loss watcher.

    An existing watcher for the same user, ticker and side is replaced.
    """
    credentials = await run_in_threadpool(store.get_credentials, config.user_id)
    if credentials is None:
        raise HTTPException(
            status_code=404, detail=f"No linked Kalshi account for {config.user_id}"
        )
    watcher = await registry.start(config, credentials)
    return _to_response(watcher.config, watcher.status)


@router.get("/{user_id}", response_model=list[WatchResponse])
def list_watches(user_id: str, registry: RegistryDep) -> list[WatchResponse]:
    """List the user's active watchers."""
    responses = []
    for key in registry.list(user_id):
        watcher = registry.get(key)
        if watcher is not None:
            responses.append(_to_response(watcher.config, watcher.status))
    return responses


@router.delete("/{user_id}/{ticker}/{side}")
async def stop_watch(user_id: str, ticker: str, side: Side, registry: RegistryDep) -> dict:
    """Stop one watcher."""
    key = WatchKey(user_id, ticker.strip().upper(), side)
    if not await registry.stop(key):
        raise HTTPException(status_code=404, detail=f"No active watch for {key}")
    return {"stopped": True}


@router.delete("/{user_id}")
async def stop_all_watches(user_id: str, registry: RegistryDep) -> dict:
    """Stop every watcher the user has."""
    return {"stopped": await registry.stop_all(user_id)}
