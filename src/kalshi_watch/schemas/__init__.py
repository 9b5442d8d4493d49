"""Pydantic schemas for watcher configuration and runtime events. Not persisted to DB."""
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import (BaseModel, ConfigDict, Field, SecretStr,
                      field_validator, model_validator)


class Side(str, Enum):
    """Contract side held / watched."""

    YES = "yes"
    NO = "no"


class WatchMode(str, Enum):
    """ALERT notifies on a rise; STOP_LOSS sells on a drop."""

    ALERT = "alert"
    STOP_LOSS = "stop_loss"


class WatcherStatus(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    TRIGGERED = "triggered"
    CLOSED = "closed"
    ERROR = "error"


class WatchKey(NamedTuple):
    """Registry key: at most one watcher per (user, market, side)."""

    user_id: str
    ticker: str
    side: Side

    def __str__(self) -> str:
        return f"{self.user_id}-{self.ticker}-{self.side.value}"


class Credentials(BaseModel):
    """Decrypted Kalshi API key pair; lives only as long as its watcher."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    private_key: SecretStr


class WatchConfig(BaseModel):
    """What to watch and when to fire."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    ticker: str = Field(min_length=1)
    side: Side
    mode: WatchMode
    threshold_percent: float = Field(ge=0.1, description="Move in percent, e.g. 10 for 10%")
    base_price: float = Field(gt=0, le=1, description="Entry/reference price in dollars")

    @field_validator("ticker")
    @classmethod
    def _upper_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _reachable_stop(self) -> "WatchConfig":
        # A drop of 100% or more would need a price at or below zero.
        if self.mode is WatchMode.STOP_LOSS and self.threshold_percent >= 100:
            raise ValueError("Stop-loss threshold must be below 100%")
        return self

    @property
    def key(self) -> WatchKey:
        return WatchKey(self.user_id, self.ticker, self.side)


class PriceTick(BaseModel):
    """One normalized market_ticker update (prices in dollars)."""

    ticker: str
    yes_price: float | None = None
    no_price: float | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def price_for(self, side: Side) -> float | None:
        """Price of the given side, or None when absent or non-positive."""
        price = self.yes_price if side is Side.YES else self.no_price
        if price is None or price <= 0:
            return None
        return price


class MarketSnapshot(BaseModel):
    """Market metadata from the REST API, used to enrich notifications."""

    ticker: str
    title: str = "Unknown Market"
    event_ticker: str | None = None
    status: str | None = None
    yes_price: float | None = None
    no_price: float | None = None


class ExecutionOutcome(str, Enum):
    FILLED = "filled"
    NO_POSITION = "no_position"
    FETCH_FAILED = "fetch_failed"
    ORDER_FAILED = "order_failed"
    CANCELLED = "cancelled"


class ExecutionResult(BaseModel):
    """Result of one stop-loss execution: an order, or a reason it did not happen."""

    outcome: ExecutionOutcome
    order_id: str | None = None
    quantity: int | None = None
    status: str | None = None
    error_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ExecutionOutcome.FILLED


class WatchNotification(BaseModel):
    """Structured direct-message payload summarizing a triggered watcher."""

    mode: WatchMode
    ticker: str
    side: Side
    entry_price: float
    threshold_percent: float
    trigger_price: float
    current_price: float
    change_percent: float
    yes_price: float | None = None
    no_price: float | None = None
    market: MarketSnapshot | None = None
    execution: ExecutionResult | None = None
    triggered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "Credentials",
    "ExecutionOutcome",
    "ExecutionResult",
    "MarketSnapshot",
    "PriceTick",
    "Side",
    "WatchConfig",
    "WatchKey",
    "WatchMode",
    "WatchNotification",
    "WatcherStatus",
]
