"""Linked-account routes: store or remove a user's Kalshi API credentials."""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field, SecretStr

from kalshi_watch.deps import CredentialStoreDep, RegistryDep

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/accounts", tags=["accounts"])


class LinkAccountRequest(BaseModel):
    """Kalshi API key id and RSA private key (PEM)."""

    api_key: str = Field(min_length=1)
    private_key: SecretStr


@router.put("/{user_id}")
def link_account(user_id: str, body: LinkAccountRequest, store: CredentialStoreDep) -> dict:
    """Link (or replace) the Kalshi account used by the user's watchers.

    Watchers that are already running keep the credentials they started with.
    """
    private_key = body.private_key.get_secret_value()
    if "PRIVATE KEY" not in private_key:
        raise HTTPException(status_code=422, detail="private_key must be a PEM encoded RSA key")
    store.link(user_id, body.api_key, private_key)
    return {"linked": True}


@router.delete("/{user_id}")
async def unlink_account(
    user_id: str, store: CredentialStoreDep, registry: RegistryDep
) -> dict:
    """Remove the user's credentials and stop all of their watchers."""
    if not await run_in_threadpool(store.unlink, user_id):
        raise HTTPException(status_code=404, detail=f"No linked account for {user_id}")
    stopped = await registry.stop_all(user_id)
    return {"unlinked": True, "stopped": stopped}
