"""Watcher registry: owns the key -> watcher map and every watcher's lifecycle."""
import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable, Mapping

from kalshi_watch.providers.core.stream_abc import PriceStreamABC
from kalshi_watch.schemas import Credentials, WatchConfig, WatchKey, WatchMode
from kalshi_watch.services.actions import TriggerAction
from kalshi_watch.services.watcher import Watcher

logger = logging.getLogger(__name__)

StreamFactory = Callable[[WatchConfig, Credentials], PriceStreamABC]


class WatcherRegistry:
    """At most one live watcher per (user, ticker, side).

    Operations on one key are serialized with that key's lock; different
    keys never wait on each other. Watchers remove themselves
    through ``_discard`` when their task ends; removal only happens if the
    map still points at that same watcher, so a superseded watcher can never
    evict its replacement.
    """

    def __init__(
        self,
        stream_factory: StreamFactory,
        actions: Mapping[WatchMode, TriggerAction],
    ) -> None:
        """Initialize the registry.

        Args:
            stream_factory: Builds an unopened price stream for a watcher.
            actions: Trigger action per mode (alert, stop-loss).
        """
        missing = set(WatchMode) - set(actions)
        if missing:
            raise ValueError(f"No trigger action for: {', '.join(m.value for m in missing)}")
        self._stream_factory = stream_factory
        self._actions = dict(actions)
        self._watchers: dict[WatchKey, Watcher] = {}
        self._locks: defaultdict[WatchKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __len__(self) -> int:
        return len(self._watchers)

    def _discard(self, watcher: Watcher) -> None:
        if self._watchers.get(watcher.key) is watcher:
            del self._watchers[watcher.key]
            logger.info("Removed watcher %s", watcher.key)

    async def start(self, config: WatchConfig, credentials: Credentials) -> Watcher:
        """Start watching; an existing watcher for the same key is closed first.

        Returns:
            The new watcher (already scheduled, status CONNECTING).
        """
        async with self._locks[config.key]:
            existing = self._watchers.get(config.key)
            if existing is not None:
                logger.info("Superseding watcher %s", config.key)
                await existing.close()
                self._discard(existing)

            watcher = Watcher(
                config,
                credentials,
                self._stream_factory(config, credentials),
                self._actions[config.mode],
                on_closed=self._discard,
            )
            self._watchers[config.key] = watcher
            watcher.start()
            logger.info(
                "Started %s watcher %s (base %.4f, threshold %g%%)",
                config.mode.value,
                config.key,
                config.base_price,
                config.threshold_percent,
            )
            return watcher

    async def _stop_key(self, key: WatchKey, *, quiet: bool = False) -> Watcher | None:
        """Close and remove the watcher under ``key``; None if there was none."""
        async with self._locks[key]:
            watcher = self._watchers.get(key)
            if watcher is None:
                return None
            try:
                await watcher.close()
            except Exception as exc:  # pylint: disable=broad-except
                if not quiet:
                    raise
                logger.warning("Error closing watcher %s: %s", key, exc)
            self._discard(watcher)
            return watcher

    async def stop(self, key: WatchKey) -> bool:
        """Stop one watcher. Returns False if nothing was registered under ``key``."""
        return await self._stop_key(key) is not None

    async def stop_all(self, user_id: str) -> int:
        """Stop every watcher belonging to ``user_id``; returns how many were stopped."""
        keys = [key for key in self._watchers if key.user_id == user_id]
        stopped = await asyncio.gather(*(self._stop_key(key) for key in keys))
        return sum(1 for watcher in stopped if watcher is not None)

    def list(self, user_id: str) -> list[WatchKey]:
        """Keys of the user's live watchers."""
        return [key for key in self._watchers if key.user_id == user_id]

    def get(self, key: WatchKey) -> Watcher | None:
        return self._watchers.get(key)

    async def close(self) -> None:
        """Stop every watcher. Call from app lifespan shutdown."""
        stopped = await asyncio.gather(
            *(self._stop_key(key, quiet=True) for key in list(self._watchers))
        )
        watchers = [watcher for watcher in stopped if watcher is not None]
        # In-flight actions see the cancellation flag and finish their notification
        await asyncio.gather(*(w.wait_closed() for w in watchers))
        if watchers:
            logger.info("Closed %d watcher(s)", len(watchers))
