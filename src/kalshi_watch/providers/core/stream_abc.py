"""Abstract base class for per-watcher price streams."""
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from kalshi_watch.schemas import PriceTick


class PriceStreamABC(ABC):
    """One streaming session scoped to a single market ticker.

    Lifecycle: ``open()`` connects and subscribes, ``ticks()`` yields normalized
    ticks in arrival order until the stream closes, ``close()`` tears the
    connection down and is safe to call any number of times, from any task.
    """

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once close() has been called or the remote end went away."""

    @abstractmethod
    async def open(self) -> None:
        """Connect and send the subscription request.

        Raises:
            StreamConnectionError: The connection could not be established.
        """

    @abstractmethod
    def ticks(self) -> AsyncIterator[PriceTick]:
        """Yield ticks for the subscribed ticker until the stream closes."""

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection. Idempotent."""

    async def __aenter__(self) -> "PriceStreamABC":
        """Async context manager entry - opens the stream."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
