"""Stop-loss execution pipeline: fetch position, submit a full-exit market sell.

States::

    ARMED -> FETCHING_POSITION -> SUBMITTING_ORDER -> FILLED
                               -> NO_POSITION | FETCH_FAILED
                                                -> ORDER_FAILED
    (any state before a side effect) -> CANCELLED

At most one order is submitted per pipeline and failures are never retried.
"""
import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from kalshi_watch.providers.core.exceptions import (OrderSubmissionError,
                                                    PositionFetchError)
from kalshi_watch.providers.kalshi.dto import KalshiOrderDTO
from kalshi_watch.schemas import (Credentials, ExecutionOutcome,
                                  ExecutionResult, Side, WatchConfig)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    ARMED = "armed"
    FETCHING_POSITION = "fetching_position"
    SUBMITTING_ORDER = "submitting_order"
    FILLED = "filled"
    NO_POSITION = "no_position"
    FETCH_FAILED = "fetch_failed"
    ORDER_FAILED = "order_failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {
        PipelineState.FILLED,
        PipelineState.NO_POSITION,
        PipelineState.FETCH_FAILED,
        PipelineState.ORDER_FAILED,
        PipelineState.CANCELLED,
    }
)


class OrderClient(Protocol):
    """The subset of KalshiClient the pipeline needs."""

    async def get_position_size(self, ticker: str, credentials: Credentials) -> int: ...

    async def create_market_sell(
        self, ticker: str, side: Side, count: int, credentials: Credentials
    ) -> KalshiOrderDTO: ...


class ExecutionPipeline:
    """Runs once for one triggered stop-loss watcher."""

    def __init__(
        self,
        client: OrderClient,
        config: WatchConfig,
        credentials: Credentials,
        *,
        cancelled: Callable[[], bool] = lambda: False,
    ) -> None:
        """Initialize the pipeline.

        Args:
            client: Signed REST client used for positions and orders.
            config: The triggered watcher's configuration.
            credentials: The watcher's credentials for the signed calls.
            cancelled: Checked before each side-effecting step; True aborts.
        """
        self._client = client
        self._config = config
        self._credentials = credentials
        self._cancelled = cancelled
        self.state = PipelineState.ARMED
        self._quantity: int | None = None

    def _transition(self, state: PipelineState) -> None:
        logger.info(
            "Stop-loss %s: %s -> %s", self._config.key, self.state.value, state.value
        )
        self.state = state

    def _finish(self, state: PipelineState, result: ExecutionResult) -> ExecutionResult:
        self._transition(state)
        return result

    def _cancel(self) -> ExecutionResult:
        return self._finish(
            PipelineState.CANCELLED,
            ExecutionResult(
                outcome=ExecutionOutcome.CANCELLED,
                error_reason="Stop loss was cancelled before the order was sent",
            ),
        )

    def abort(self, reason: str) -> ExecutionResult:
        """End the pipeline after an unexpected error escaped ``run``.

        An error while submitting keeps the quantity and reports ORDER_FAILED;
        anything earlier reports FETCH_FAILED.
        """
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Pipeline already finished (state={self.state.value})")
        if self.state is PipelineState.SUBMITTING_ORDER:
            return self._finish(
                PipelineState.ORDER_FAILED,
                ExecutionResult(
                    outcome=ExecutionOutcome.ORDER_FAILED,
                    quantity=self._quantity,
                    error_reason=reason,
                ),
            )
        return self._finish(
            PipelineState.FETCH_FAILED,
            ExecutionResult(outcome=ExecutionOutcome.FETCH_FAILED, error_reason=reason),
        )

    async def run(self) -> ExecutionResult:
        """Drive the pipeline to a terminal state and return its result."""
        if self.state is not PipelineState.ARMED:
            raise RuntimeError(f"Pipeline already ran (state={self.state.value})")
        config = self._config

        if self._cancelled():
            return self._cancel()
        self._transition(PipelineState.FETCHING_POSITION)
        try:
            quantity = await self._client.get_position_size(config.ticker, self._credentials)
        except PositionFetchError as exc:
            return self._finish(
                PipelineState.FETCH_FAILED,
                ExecutionResult(outcome=ExecutionOutcome.FETCH_FAILED, error_reason=exc.reason),
            )

        self._quantity = quantity
        if quantity <= 0:
            logger.warning("No open position for %s", config.key)
            return self._finish(
                PipelineState.NO_POSITION,
                ExecutionResult(
                    outcome=ExecutionOutcome.NO_POSITION,
                    quantity=0,
                    error_reason=f"No open {config.side.value.upper()} contracts on {config.ticker}",
                ),
            )

        if self._cancelled():
            return self._cancel()
        self._transition(PipelineState.SUBMITTING_ORDER)
        try:
            order = await self._client.create_market_sell(
                config.ticker, config.side, quantity, self._credentials
            )
        except OrderSubmissionError as exc:
            return self._finish(
                PipelineState.ORDER_FAILED,
                ExecutionResult(
                    outcome=ExecutionOutcome.ORDER_FAILED,
                    quantity=quantity,
                    error_reason=exc.reason,
                ),
            )

        logger.info("Stop-loss order %s placed for %s x%d", order.order_id, config.key, quantity)
        return self._finish(
            PipelineState.FILLED,
            ExecutionResult(
                outcome=ExecutionOutcome.FILLED,
                order_id=order.order_id,
                quantity=order.count if order.count is not None else quantity,
                status=order.status,
            ),
        )
