"""Factory for creating a WatcherRegistry wired to Kalshi streams and actions."""
from functools import partial

from kalshi_watch.providers.kalshi import KalshiClient, KalshiPriceStream
from kalshi_watch.schemas import Credentials, WatchConfig, WatchMode
from kalshi_watch.services.actions import AlertAction, StopLossAction
from kalshi_watch.services.notifier import Notifier
from kalshi_watch.services.registry import WatcherRegistry


def _kalshi_stream(url: str, config: WatchConfig, credentials: Credentials) -> KalshiPriceStream:
    return KalshiPriceStream(url, config.ticker, credentials)


def create_watcher_registry(
    client: KalshiClient,
    notifier: Notifier,
    *,
    stream_url: str,
) -> WatcherRegistry:
    """Create a WatcherRegistry backed by the Kalshi feed and REST client.

    Args:
        client: Signed REST client (market snapshots, positions, orders).
        notifier: Delivers the one message each fired watcher sends.
        stream_url: Kalshi WebSocket URL.

    Returns:
        A registry whose alert watchers notify and whose stop-loss watchers sell.
    """
    return WatcherRegistry(
        partial(_kalshi_stream, stream_url),
        {
            WatchMode.ALERT: AlertAction(notifier, client),
            WatchMode.STOP_LOSS: StopLossAction(notifier, client),
        },
    )
