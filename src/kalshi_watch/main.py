"""Main module for the Kalshi watcher service."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from kalshi_watch.config import Settings, get_settings
from kalshi_watch.db import (CredentialCipher, SqlCredentialStore,
                             create_db_engine, init_db)
from kalshi_watch.providers import KalshiClient
from kalshi_watch.routers import accounts_router, watches_router
from kalshi_watch.services import LogNotifier, Notifier, WebhookNotifier
from kalshi_watch.services.factory import create_watcher_registry

logger = logging.getLogger(__name__)


def build_notifier(settings: Settings) -> Notifier:
    """Webhook delivery when a URL is configured, log output otherwise."""
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url, timeout=settings.request_timeout)
    return LogNotifier()


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Create the client, notifier, registry and store at startup; close them on shutdown."""
    settings = get_settings()

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    credential_store = SqlCredentialStore(engine, CredentialCipher(settings.encryption_key))

    client = KalshiClient(settings.kalshi_base_url, timeout=settings.request_timeout)
    notifier = build_notifier(settings)
    registry = create_watcher_registry(client, notifier, stream_url=settings.stream_url)

    fastapi_app.state.registry = registry
    fastapi_app.state.credential_store = credential_store
    logger.info("Kalshi watcher ready (%s)", settings.kalshi_base_url)

    yield

    # Watchers close before the notifier and client they use
    await registry.close()
    for resource in (notifier, client):
        try:
            await resource.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing %s: %s", type(resource).__name__, exc)
    engine.dispose()


app = FastAPI(
    title="Kalshi Watch",
    description="Real-time Kalshi price alerts and stop-loss execution",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(accounts_router)
app.include_router(watches_router)


@app.get("/")
def health():
    """Return health check status."""
    return {"status": "ok"}


def run():
    """Run the server (uvicorn). Entry point for the ``kalshi-watch`` script."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("kalshi_watch.main:app", host=settings.host, port=settings.port)
