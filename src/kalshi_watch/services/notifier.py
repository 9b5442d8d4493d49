"""Direct-message notifications for triggered watchers.

Delivery is best-effort: ``Notifier.notify`` never raises, so a user with
direct messages disabled cannot stall a pipeline or leave a watcher behind.
"""
import logging
from abc import ABC, abstractmethod

import httpx

from kalshi_watch.providers.core.exceptions import NotificationDeliveryError
from kalshi_watch.schemas import (ExecutionOutcome, WatchMode,
                                  WatchNotification)
from kalshi_watch.utils import format_percent, format_price, format_quantity

logger = logging.getLogger(__name__)

_STOP_LOSS_TITLES = {
    ExecutionOutcome.FILLED: "POSITION CLOSED",
    ExecutionOutcome.NO_POSITION: "STOP LOSS TRIGGERED (no position)",
    ExecutionOutcome.CANCELLED: "STOP LOSS CANCELLED",
}


def _alert_lines(n: WatchNotification) -> list[str]:
    market = n.market
    side = n.side.value.upper()
    return [
        "PRICE ALERT TRIGGERED",
        "",
        f"Market: {market.title if market else n.ticker}",
        f"Ticker: {n.ticker}",
        f"Event: {(market.event_ticker if market else None) or 'N/A'}",
        "",
        f"Side: {side}",
        f"Entry price: {format_price(n.entry_price)}",
        f"Alert threshold: +{n.threshold_percent:g}%",
        f"Trigger price: {format_price(n.trigger_price)}",
        "",
        f"Current {side} price: {format_price(n.current_price)}",
        f"YES / NO: {format_price(n.yes_price)} / {format_price(n.no_price)}",
        f"Price change: {format_percent(n.change_percent)}",
        f"Market status: {(market.status if market else None) or 'UNKNOWN'}",
    ]


def _stop_loss_lines(n: WatchNotification) -> list[str]:
    execution = n.execution
    outcome = execution.outcome if execution else None
    title = _STOP_LOSS_TITLES.get(outcome, "STOP LOSS ERROR")
    side = n.side.value.upper()
    lines = [
        title,
        "",
        f"Ticker: {n.ticker}",
        f"Side held: {side}",
        f"Stop loss: -{n.threshold_percent:g}%",
        f"Entry price: {format_price(n.entry_price)}",
        f"Trigger price: {format_price(n.trigger_price)}",
        f"Current price: {format_price(n.current_price)}",
        f"Price change: {format_percent(n.change_percent)}",
        f"YES / NO: {format_price(n.yes_price)} / {format_price(n.no_price)}",
        "",
    ]
    if execution is None:
        lines.append("Error: execution did not run")
    elif execution.succeeded:
        lines += [
            f"Order ID: {execution.order_id}",
            f"Quantity sold: {format_quantity(execution.quantity)} contracts",
            f"Order status: {execution.status or 'PENDING'}",
        ]
    elif outcome is ExecutionOutcome.NO_POSITION:
        lines.append(f"Position not found: {execution.error_reason or 'no open contracts'}")
    else:
        lines.append(f"Error: {execution.error_reason or 'Unknown error'}")
    return lines


def render_notification(notification: WatchNotification) -> str:
    """Render the plain-text direct message for a notification."""
    if notification.mode is WatchMode.ALERT:
        lines = _alert_lines(notification)
    else:
        lines = _stop_loss_lines(notification)
    return "\n".join(lines).strip()


class Notifier(ABC):
    """Delivers notifications to a user. Subclasses implement ``deliver``."""

    async def notify(self, user_id: str, notification: WatchNotification) -> None:
        """Deliver a notification; failures are logged, never raised."""
        try:
            await self.deliver(user_id, notification)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning(
                "Could not deliver %s notification for %s to user %s: %s",
                notification.mode.value,
                notification.ticker,
                user_id,
                exc,
            )
        else:
            logger.info("Notified user %s about %s", user_id, notification.ticker)

    @abstractmethod
    async def deliver(self, user_id: str, notification: WatchNotification) -> None:
        """Send the notification.

        Raises:
            NotificationDeliveryError: The message could not be delivered.
        """

    async def close(self) -> None:
        """Release resources. Override if needed."""


class LogNotifier(Notifier):
    """Writes the rendered message to the log (used when no webhook is configured)."""

    async def deliver(self, user_id: str, notification: WatchNotification) -> None:
        logger.info("DM to %s:\n%s", user_id, render_notification(notification))


class WebhookNotifier(Notifier):
    """POSTs notifications to a chat bridge that relays them as direct messages."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def deliver(self, user_id: str, notification: WatchNotification) -> None:
        payload = {
            "user_id": user_id,
            "content": render_notification(notification),
            "notification": notification.model_dump(mode="json"),
        }
        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"Webhook delivery failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()
