"""FastAPI dependency injection: app.state holds singletons; Depends() resolves them.

No external DI container. Lifespan (main.py) creates the registry and the
credential store once and attaches them to app.state; these getters are used
by Depends().
"""
from typing import Annotated

from fastapi import Depends, Request

from kalshi_watch.db import CredentialStore
from kalshi_watch.services import WatcherRegistry


def get_registry(request: Request) -> WatcherRegistry:
    """Resolve the WatcherRegistry from app.state (created at startup)."""
    return request.app.state.registry


def get_credential_store(request: Request) -> CredentialStore:
    """Resolve the linked-account credential store from app.state."""
    return request.app.state.credential_store


# Type aliases for route injection
RegistryDep = Annotated[WatcherRegistry, Depends(get_registry)]
CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]
