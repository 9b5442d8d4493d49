"""Market access for the watcher service.

- KalshiClient: signed REST calls (market snapshot, positions, orders)
- KalshiPriceStream: one WebSocket session per watcher, ``market_ticker`` channel

Streams implement PriceStreamABC so the watcher engine can run against any
feed (tests use in-memory streams).

Example:
    stream = KalshiPriceStream(url, "TICKER-A", credentials)
    async with stream:
        async for tick in stream.ticks():
            print(f"{tick.ticker}: yes=${tick.yes_price} no=${tick.no_price}")
"""
from kalshi_watch.providers.core import PriceStreamABC
from kalshi_watch.providers.kalshi import KalshiClient, KalshiPriceStream

__all__ = [
    "KalshiClient",
    "KalshiPriceStream",
    "PriceStreamABC",
]
