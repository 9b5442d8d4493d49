"""Shared fixtures: RSA credentials, in-memory streams, fake clients and notifiers."""
import asyncio
from collections.abc import Callable

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from kalshi_watch.providers.core.stream_abc import PriceStreamABC
from kalshi_watch.providers.kalshi.dto import KalshiOrderDTO
from kalshi_watch.schemas import (Credentials, MarketSnapshot, PriceTick,
                                  Side, WatchConfig, WatchMode,
                                  WatchNotification)
from kalshi_watch.services.actions import AlertAction, StopLossAction
from kalshi_watch.services.notifier import Notifier
from kalshi_watch.services.registry import WatcherRegistry


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate`` holds; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakePriceStream(PriceStreamABC):
    """Queue-backed stream: tests push ticks, ``close()`` ends iteration."""

    def __init__(self, ticker: str, *, open_error: Exception | None = None) -> None:
        self.ticker = ticker
        self.open_error = open_error
        self.close_gate: asyncio.Event | None = None
        self.opened = asyncio.Event()
        self.close_count = 0
        self._closed = False
        self._queue: asyncio.Queue[PriceTick | None] = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened.set()

    async def ticks(self):
        while not self._closed:
            tick = await self._queue.get()
            if tick is None:
                return
            yield tick

    def push(self, yes_price: float | None = None, no_price: float | None = None,
             ticker: str | None = None) -> None:
        self._queue.put_nowait(
            PriceTick(ticker=ticker or self.ticker, yes_price=yes_price, no_price=no_price)
        )

    def push_tick(self, tick: PriceTick) -> None:
        self._queue.put_nowait(tick)

    async def close(self) -> None:
        self.close_count += 1
        if self.close_gate is not None:
            await self.close_gate.wait()
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)


class FakeOrderClient:
    """Stands in for KalshiClient in the execution pipeline and alert action."""

    def __init__(self, position: int = 0, order_id: str = "O123") -> None:
        self.position = position
        self.order_id = order_id
        self.position_error: Exception | None = None
        self.order_error: Exception | None = None
        self.market_error: Exception | None = None
        self.position_gate: asyncio.Event | None = None
        self.position_calls: list[str] = []
        self.orders: list[tuple[str, Side, int]] = []
        self.market_calls: list[str] = []

    async def get_market(self, ticker: str, credentials: Credentials) -> MarketSnapshot:
        self.market_calls.append(ticker)
        if self.market_error is not None:
            raise self.market_error
        return MarketSnapshot(
            ticker=ticker, title="Will it rain?", event_ticker="EV-1", status="open"
        )

    async def get_position_size(self, ticker: str, credentials: Credentials) -> int:
        self.position_calls.append(ticker)
        if self.position_gate is not None:
            await self.position_gate.wait()
        if self.position_error is not None:
            raise self.position_error
        return self.position

    async def create_market_sell(
        self, ticker: str, side: Side, count: int, credentials: Credentials
    ) -> KalshiOrderDTO:
        self.orders.append((ticker, side, count))
        if self.order_error is not None:
            raise self.order_error
        return KalshiOrderDTO(order_id=self.order_id, status="executed", count=count)


class RecordingNotifier(Notifier):
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[str, WatchNotification]] = []

    async def deliver(self, user_id: str, notification: WatchNotification) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((user_id, notification))


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def credentials(private_pem) -> Credentials:
    return Credentials(api_key="key-123", private_key=private_pem)


@pytest.fixture
def order_client() -> FakeOrderClient:
    return FakeOrderClient(position=5)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def streams() -> list[FakePriceStream]:
    """Every stream the registry fixture created, in order."""
    return []


@pytest.fixture
async def registry(streams, order_client, notifier):
    def factory(config: WatchConfig, _credentials: Credentials) -> FakePriceStream:
        stream = FakePriceStream(config.ticker)
        streams.append(stream)
        return stream

    reg = WatcherRegistry(
        factory,
        {
            WatchMode.ALERT: AlertAction(notifier, order_client),
            WatchMode.STOP_LOSS: StopLossAction(notifier, order_client),
        },
    )
    yield reg
    await reg.close()


def make_config(
    mode: WatchMode = WatchMode.ALERT,
    *,
    user_id: str = "alice",
    ticker: str = "TICKER-A",
    side: Side = Side.YES,
    threshold: float = 10,
    base: float = 0.50,
) -> WatchConfig:
    return WatchConfig(
        user_id=user_id,
        ticker=ticker,
        side=side,
        mode=mode,
        threshold_percent=threshold,
        base_price=base,
    )
