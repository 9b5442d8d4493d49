"""Kalshi WebSocket price stream for a single market ticker."""
import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import websockets
from websockets import ClientConnection

from kalshi_watch.config import WS_PATH
from kalshi_watch.providers.core.exceptions import (MessageParseError,
                                                    RequestSigningError,
                                                    StreamConnectionError)
from kalshi_watch.providers.core.stream_abc import PriceStreamABC
from kalshi_watch.providers.kalshi.dto import (ErrorMessage,
                                               SubscribedMessage,
                                               TickerUpdateMessage,
                                               decode_message,
                                               subscribe_command)
from kalshi_watch.providers.kalshi.signer import sign_request
from kalshi_watch.schemas import Credentials, PriceTick

logger = logging.getLogger(__name__)

Connect = Callable[..., Awaitable[ClientConnection]]

_command_ids = itertools.count(1)


class KalshiPriceStream(PriceStreamABC):
    """Streams ``market_ticker`` updates for one ticker.

    The handshake is signed with the watcher's credentials, which are released
    as soon as the signature is made. There is no reconnection: a dropped
    connection ends ``ticks()`` and with it the watcher.
    """

    def __init__(
        self,
        url: str,
        ticker: str,
        credentials: Credentials | None,
        *,
        connect: Connect = websockets.connect,
    ) -> None:
        """Initialize the stream (does not connect).

        Args:
            url: WebSocket URL, e.g. "wss://demo-api.kalshi.co/trade-api/ws/v2".
            ticker: Market ticker to subscribe to.
            credentials: Used once to sign the handshake; None skips auth headers.
            connect: Connection factory (tests inject a fake).
        """
        self._url = url
        self._ticker = ticker
        self._credentials = credentials
        self._connect = connect
        self._ws: ClientConnection | None = None
        self._closed = False

    @property
    def ticker(self) -> str:
        return self._ticker

    @property
    def closed(self) -> bool:
        return self._closed

    def _auth_headers(self) -> dict[str, str]:
        credentials, self._credentials = self._credentials, None
        if credentials is None:
            return {}
        try:
            return sign_request("GET", WS_PATH, credentials)
        except RequestSigningError as exc:
            raise StreamConnectionError(exc.reason) from exc

    async def open(self) -> None:
        if self._closed:
            raise StreamConnectionError("Stream was closed before it connected")
        headers = self._auth_headers()
        try:
            ws = await self._connect(self._url, additional_headers=headers)
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as exc:
            raise StreamConnectionError(
                f"Could not connect to price feed: {exc}"
            ) from exc
        if self._closed:
            # close() raced the handshake; don't leave the socket open.
            await ws.close()
            raise StreamConnectionError("Stream was closed while connecting")
        self._ws = ws
        logger.info("Price stream connected for %s", self._ticker)

        try:
            await ws.send(json.dumps(subscribe_command(next(_command_ids), self._ticker)))
        except websockets.ConnectionClosed as exc:
            raise StreamConnectionError(f"Connection closed during subscribe: {exc}") from exc

    async def ticks(self) -> AsyncIterator[PriceTick]:
        if self._ws is None:
            raise StreamConnectionError("Stream is not open")
        try:
            async for raw in self._ws:
                tick = self._handle_frame(raw)
                if tick is not None:
                    yield tick
        except websockets.ConnectionClosedError as exc:
            logger.warning("Price stream for %s dropped: %s", self._ticker, exc)
        finally:
            self._closed = True
            logger.info("Price stream closed for %s", self._ticker)

    def _handle_frame(self, raw: Any) -> PriceTick | None:
        """Decode one frame; return a tick only for updates on our ticker."""
        try:
            message = decode_message(raw)
        except MessageParseError as exc:
            logger.debug("Dropping frame on %s stream: %s", self._ticker, exc.reason)
            return None

        if isinstance(message, TickerUpdateMessage):
            if message.data.market_ticker != self._ticker:
                return None
            return message.data.to_tick()
        if isinstance(message, SubscribedMessage):
            logger.debug("Subscribed to %s: %s", self._ticker, message.msg)
        elif isinstance(message, ErrorMessage):
            logger.warning("Price feed error for %s: %s", self._ticker, message.msg)
        return None

    async def close(self) -> None:
        if self._closed and self._ws is None:
            return
        self._closed = True
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
