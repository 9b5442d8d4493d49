"""Typed errors raised while watching markets and acting on triggers.

Every error carries a short user-facing ``reason``; errors local to one
watcher never propagate to the registry or to other watchers.
"""


class WatchError(Exception):
    """Base class for watcher, stream and execution errors."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StreamConnectionError(WatchError):
    """The price stream could not be opened (terminal for that watcher)."""


class MessageParseError(WatchError):
    """A stream frame could not be decoded; the frame is dropped."""


class RequestSigningError(WatchError):
    """The request could not be signed (e.g. unreadable private key)."""


class PositionFetchError(WatchError):
    """Fetching the open position failed (terminal for the pipeline)."""


class OrderSubmissionError(WatchError):
    """Submitting the exit order failed (terminal, never retried)."""


class ResponseFormatError(WatchError):
    """A Kalshi response body was not the JSON object the endpoint documents."""


class NotificationDeliveryError(WatchError):
    """The notification could not be delivered (logged and swallowed)."""
