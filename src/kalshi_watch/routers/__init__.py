"""API routers for the watcher service.

Includes routes for:
- /accounts - link and unlink Kalshi API credentials
- /watches - start, list and stop price alerts and stop-losses
"""
from kalshi_watch.routers.accounts import router as accounts_router
from kalshi_watch.routers.watches import router as watches_router

__all__ = [
    "accounts_router",
    "watches_router",
]
