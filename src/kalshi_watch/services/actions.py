"""What a watcher does once it fires: notify (alert) or sell then notify (stop-loss)."""
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol

from kalshi_watch.providers.core.error_mapper import ErrorMapper
from kalshi_watch.schemas import (Credentials, ExecutionResult,
                                  MarketSnapshot, PriceTick, WatchConfig,
                                  WatchNotification)
from kalshi_watch.services.notifier import Notifier
from kalshi_watch.services.pipeline import ExecutionPipeline, OrderClient
from kalshi_watch.services.trigger import TriggerDecision

logger = logging.getLogger(__name__)


class SnapshotClient(Protocol):
    async def get_market(self, ticker: str, credentials: Credentials) -> MarketSnapshot: ...


def build_notification(
    config: WatchConfig,
    tick: PriceTick,
    decision: TriggerDecision,
    *,
    market: MarketSnapshot | None = None,
    execution: ExecutionResult | None = None,
) -> WatchNotification:
    """Assemble the notification payload for a fired watcher."""
    return WatchNotification(
        mode=config.mode,
        ticker=config.ticker,
        side=config.side,
        entry_price=config.base_price,
        threshold_percent=config.threshold_percent,
        trigger_price=float(decision.trigger_price),
        current_price=float(decision.price),
        change_percent=float(decision.change_percent),
        yes_price=tick.yes_price,
        no_price=tick.no_price,
        market=market,
        execution=execution,
    )


class TriggerAction(ABC):
    """Runs once per watcher, after its stream has been closed."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier

    @abstractmethod
    async def __call__(
        self,
        config: WatchConfig,
        credentials: Credentials,
        tick: PriceTick,
        decision: TriggerDecision,
        cancelled: Callable[[], bool],
    ) -> None:
        """Act on a fired watcher and send exactly one notification."""


class AlertAction(TriggerAction):
    """Notify-only; market context is fetched best-effort to enrich the message."""

    def __init__(self, notifier: Notifier, client: SnapshotClient) -> None:
        super().__init__(notifier)
        self._client = client
        self._errors = ErrorMapper()

    async def _snapshot(self, config: WatchConfig, credentials: Credentials) -> MarketSnapshot | None:
        try:
            return await self._client.get_market(config.ticker, credentials)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning(
                "Market info for %s unavailable: %s", config.ticker, self._errors.describe(exc)
            )
            return None

    async def __call__(self, config, credentials, tick, decision, cancelled) -> None:
        logger.info(
            "Alert fired for %s at %s (trigger %s)", config.key, decision.price, decision.trigger_price
        )
        market = await self._snapshot(config, credentials)
        await self._notifier.notify(
            config.user_id, build_notification(config, tick, decision, market=market)
        )


class StopLossAction(TriggerAction):
    """Execute the stop-loss pipeline, then notify with its result."""

    def __init__(self, notifier: Notifier, client: OrderClient) -> None:
        super().__init__(notifier)
        self._client = client
        self._errors = ErrorMapper()

    async def __call__(self, config, credentials, tick, decision, cancelled) -> None:
        logger.info(
            "Stop loss fired for %s at %s (trigger %s)", config.key, decision.price, decision.trigger_price
        )
        pipeline = ExecutionPipeline(self._client, config, credentials, cancelled=cancelled)
        try:
            result = await pipeline.run()
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Stop-loss %s failed unexpectedly", config.key)
            result = pipeline.abort(self._errors.describe(exc))
        await self._notifier.notify(
            config.user_id, build_notification(config, tick, decision, execution=result)
        )
