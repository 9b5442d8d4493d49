"""Core provider abstractions."""
from kalshi_watch.providers.core.error_mapper import ErrorMapper
from kalshi_watch.providers.core.exceptions import (MessageParseError,
                                                    NotificationDeliveryError,
                                                    OrderSubmissionError,
                                                    PositionFetchError,
                                                    RequestSigningError,
                                                    ResponseFormatError,
                                                    StreamConnectionError,
                                                    WatchError)
from kalshi_watch.providers.core.stream_abc import PriceStreamABC

__all__ = [
    "ErrorMapper",
    "MessageParseError",
    "NotificationDeliveryError",
    "OrderSubmissionError",
    "PositionFetchError",
    "PriceStreamABC",
    "RequestSigningError",
    "ResponseFormatError",
    "StreamConnectionError",
    "WatchError",
]
