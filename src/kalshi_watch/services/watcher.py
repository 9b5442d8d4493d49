"""A single market watcher: one stream, one task, at most one trigger."""
import asyncio
import logging
from collections.abc import Callable

from kalshi_watch.providers.core.exceptions import StreamConnectionError
from kalshi_watch.providers.core.stream_abc import PriceStreamABC
from kalshi_watch.schemas import (Credentials, WatchConfig, WatcherStatus,
                                  WatchKey)
from kalshi_watch.services.actions import TriggerAction
from kalshi_watch.services.trigger import evaluate

logger = logging.getLogger(__name__)


class Watcher:
    """Watches one (user, ticker, side) and fires its action at most once.

    The watcher's task is the only writer of its status while running. The
    stream is closed before the action runs, and before ``on_closed`` hands
    the watcher back to the registry for removal.
    """

    def __init__(
        self,
        config: WatchConfig,
        credentials: Credentials,
        stream: PriceStreamABC,
        action: TriggerAction,
        on_closed: Callable[["Watcher"], None],
    ) -> None:
        self.config = config
        self.status = WatcherStatus.CONNECTING
        self._credentials: Credentials | None = credentials
        self._stream = stream
        self._action = action
        self._on_closed = on_closed
        self._cancelled = asyncio.Event()
        self._task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"Watcher({self.key}, mode={self.config.mode.value}, status={self.status.value})"

    @property
    def key(self) -> WatchKey:
        return self.config.key

    @property
    def cancelled(self) -> bool:
        """True once the watcher was stopped or superseded."""
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> None:
        """Schedule the watcher on the running event loop."""
        if self._task is not None:
            raise RuntimeError(f"{self!r} already started")
        self._task = asyncio.create_task(self._run(), name=f"watcher:{self.key}")

    async def _run(self) -> None:
        try:
            await self._stream.open()
            if self.cancelled:
                return
            self.status = WatcherStatus.ACTIVE
            logger.info("Watching %s (%s)", self.key, self.config.mode.value)

            async for tick in self._stream.ticks():
                if self.cancelled:
                    break
                decision = evaluate(self.config, tick)
                if not decision.armed:
                    continue
                self.status = WatcherStatus.TRIGGERED
                await self._stream.close()
                await self._action(
                    self.config,
                    self._credentials,
                    tick,
                    decision,
                    lambda: self._cancelled.is_set(),
                )
                break
        except StreamConnectionError as exc:
            self.status = WatcherStatus.ERROR
            logger.warning("Watcher %s could not connect: %s", self.key, exc.reason)
        except Exception:  # pylint: disable=broad-except
            self.status = WatcherStatus.ERROR
            logger.exception("Watcher %s failed", self.key)
        finally:
            await self._stream.close()
            self._credentials = None
            if self.status in (WatcherStatus.CONNECTING, WatcherStatus.ACTIVE):
                self.status = WatcherStatus.CLOSED
            logger.info("Watcher %s finished (%s)", self.key, self.status.value)
            self._on_closed(self)

    async def close(self) -> None:
        """Stop watching.

        Closes the stream and cancels the task, unless a trigger is already
        being handled: an in-flight action runs to completion but sees the
        cancellation flag before any further side effect.
        """
        self._cancelled.set()
        await self._stream.close()
        if (
            self._task is not None
            and not self._task.done()
            and self.status is not WatcherStatus.TRIGGERED
        ):
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the watcher's task has finished."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
