"""Data Transfer Objects for Kalshi REST responses and WebSocket frames.

REST DTOs validate raw API payloads and produce runtime schemas. Stream frames
are decoded into a tagged union keyed on ``type``; unknown types are ignored
and malformed frames raise MessageParseError.
"""
import json
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Literal, Union

from pydantic import (AliasChoices, BaseModel, ConfigDict, Field,
                      TypeAdapter, ValidationError)

from kalshi_watch.providers.core.exceptions import MessageParseError
from kalshi_watch.schemas import MarketSnapshot, PriceTick
from kalshi_watch.utils import feed_price, parse_timestamp

TICKER_CHANNEL = "market_ticker"


class KalshiMarketDTO(BaseModel):
    """DTO for ``GET /markets/{ticker}`` (the ``market`` object)."""

    model_config = ConfigDict(extra="ignore")

    ticker: str
    title: str | None = None
    event_ticker: str | None = None
    status: str | None = None
    yes_price: float | None = None
    no_price: float | None = None
    last_price: float | None = None
    yes_price_dollars: str | None = None
    no_price_dollars: str | None = None
    last_price_dollars: str | None = None

    def to_snapshot(self) -> MarketSnapshot:
        """Build a MarketSnapshot with prices in dollars."""
        yes_price = feed_price(self.yes_price, self.yes_price_dollars)
        if yes_price is None:
            yes_price = feed_price(self.last_price, self.last_price_dollars)
        no_price = feed_price(self.no_price, self.no_price_dollars)
        if no_price is None and yes_price is not None:
            no_price = round(1 - yes_price, 4)
        return MarketSnapshot(
            ticker=self.ticker,
            title=self.title or "Unknown Market",
            event_ticker=self.event_ticker,
            status=self.status,
            yes_price=yes_price,
            no_price=no_price,
        )


class KalshiPositionDTO(BaseModel):
    """One entry of ``market_positions`` from ``GET /portfolio/positions``."""

    model_config = ConfigDict(extra="ignore")

    ticker: str
    position: int | None = None
    position_fp: str | None = None

    @property
    def size(self) -> int:
        """Whole contracts held; ``position_fp`` wins over ``position``."""
        if self.position_fp is not None:
            try:
                return int(Decimal(self.position_fp))
            except (InvalidOperation, ValueError):
                pass
        return self.position or 0


class KalshiPositionsDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    market_positions: list[KalshiPositionDTO] = Field(default_factory=list)
    cursor: str | None = None

    def size_for(self, ticker: str) -> int:
        """Position size for a ticker; 0 when there is no matching entry."""
        for position in self.market_positions:
            if position.ticker == ticker:
                return position.size
        return 0


class KalshiOrderDTO(BaseModel):
    """The ``order`` object returned by ``POST /portfolio/orders``."""

    model_config = ConfigDict(extra="ignore")

    order_id: str
    ticker: str | None = None
    side: str | None = None
    action: str | None = None
    status: str | None = None
    count: int | None = Field(
        default=None, validation_alias=AliasChoices("count", "quantity")
    )


# ---- WebSocket frames ----


class TickerData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    market_ticker: str
    yes_price: float | None = None
    no_price: float | None = None
    yes_price_dollars: str | None = None
    no_price_dollars: str | None = None
    ts: float | None = None

    def to_tick(self) -> PriceTick:
        """Integer ``*_price`` fields are cents; ``*_dollars`` strings win when sent."""
        return PriceTick(
            ticker=self.market_ticker,
            yes_price=feed_price(self.yes_price, self.yes_price_dollars),
            no_price=feed_price(self.no_price, self.no_price_dollars),
            timestamp=parse_timestamp(self.ts),
        )


class TickerUpdateMessage(BaseModel):
    type: Literal["market_ticker"]
    sid: int | None = None
    # The feed documents ``msg``; older bridges send ``data``.
    data: TickerData = Field(validation_alias=AliasChoices("data", "msg"))


class SubscribedMessage(BaseModel):
    type: Literal["subscribed"]
    id: int | None = None
    msg: dict[str, Any] = Field(default_factory=dict)


class ErrorMessage(BaseModel):
    type: Literal["error"]
    id: int | None = None
    msg: dict[str, Any] = Field(default_factory=dict)


StreamMessage = Annotated[
    Union[TickerUpdateMessage, SubscribedMessage, ErrorMessage],
    Field(discriminator="type"),
]

_stream_adapter: TypeAdapter[StreamMessage] = TypeAdapter(StreamMessage)
_KNOWN_TYPES = frozenset({"market_ticker", "subscribed", "error"})


def decode_message(raw: str | bytes) -> StreamMessage | None:
    """Decode one frame into a typed message.

    Returns None for message types this client does not handle.

    Raises:
        MessageParseError: The frame is not JSON or a known type has the wrong shape.
    """
    try:
        payload = json.loads(raw)
    except (ValueError, TypeError) as exc:
        raise MessageParseError(f"Frame is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageParseError("Frame is not a JSON object")
    if payload.get("type") not in _KNOWN_TYPES:
        return None
    try:
        return _stream_adapter.validate_python(payload)
    except ValidationError as exc:
        raise MessageParseError(
            f"Malformed {payload.get('type')} frame: {exc.error_count()} error(s)"
        ) from exc


def subscribe_command(command_id: int, ticker: str) -> dict[str, Any]:
    """Subscription request for one ticker on the market_ticker channel."""
    return {
        "id": command_id,
        "cmd": "subscribe",
        "params": {
            "channels": [TICKER_CHANNEL],
            "market_ticker": ticker,
        },
    }
