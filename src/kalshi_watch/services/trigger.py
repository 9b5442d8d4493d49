"""Trigger evaluation: pure decision logic for a watcher and one price tick.

Arithmetic is done in Decimal so boundary ticks behave as written: with a base
of 0.50 and a 10% threshold an alert fires at exactly 0.55 and a stop-loss at
exactly 0.45.
"""
from dataclasses import dataclass
from decimal import Decimal

from kalshi_watch.schemas import PriceTick, WatchConfig, WatchMode
from kalshi_watch.utils import to_decimal

_HUNDRED = Decimal(100)
_PERCENT_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class TriggerPolicy:
    """Rising (alert) or falling (stop-loss) comparison against a threshold price."""

    name: str
    direction: int  # +1 rising, -1 falling

    def threshold_price(self, base_price: Decimal, threshold_percent: Decimal) -> Decimal:
        return base_price * (1 + self.direction * threshold_percent / _HUNDRED)

    def crossed(self, price: Decimal, threshold_price: Decimal) -> bool:
        if self.direction > 0:
            return price >= threshold_price
        return price <= threshold_price


RISING = TriggerPolicy("rising", 1)
FALLING = TriggerPolicy("falling", -1)

POLICIES: dict[WatchMode, TriggerPolicy] = {
    WatchMode.ALERT: RISING,
    WatchMode.STOP_LOSS: FALLING,
}


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of evaluating one tick. ``price`` is None when the tick had no usable price."""

    armed: bool
    price: Decimal | None
    trigger_price: Decimal
    change_percent: Decimal | None


def trigger_price(config: WatchConfig) -> Decimal:
    """Price at which the watcher fires."""
    policy = POLICIES[config.mode]
    return policy.threshold_price(
        to_decimal(config.base_price), to_decimal(config.threshold_percent)
    )


def change_percent(base_price: float | Decimal, price: float | Decimal) -> Decimal:
    """Percent move from base to price, rounded to two places."""
    base = to_decimal(base_price)
    return ((to_decimal(price) - base) / base * _HUNDRED).quantize(_PERCENT_PLACES)


def evaluate(config: WatchConfig, tick: PriceTick) -> TriggerDecision:
    """Decide whether ``tick`` arms the watcher described by ``config``.

    Ticks for another ticker, or with an absent/zero price on the watched
    side, never arm.
    """
    threshold = trigger_price(config)
    observed = tick.price_for(config.side) if tick.ticker == config.ticker else None
    if observed is None:
        return TriggerDecision(False, None, threshold, None)

    price = to_decimal(observed)
    armed = POLICIES[config.mode].crossed(price, threshold)
    return TriggerDecision(armed, price, threshold, change_percent(config.base_price, price))
