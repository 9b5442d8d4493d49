"""Kalshi trade API: request signing, REST client and WebSocket price stream."""
from kalshi_watch.providers.kalshi.client import KalshiClient
from kalshi_watch.providers.kalshi.signer import sign_request
from kalshi_watch.providers.kalshi.stream import KalshiPriceStream

__all__ = ["KalshiClient", "KalshiPriceStream", "sign_request"]
