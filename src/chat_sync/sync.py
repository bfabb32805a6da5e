"""Shared polling machinery for the conversation, timeline and unread caches."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from .api_client import ChatApiClient, ChatApiError
from .cache import Snapshot, VersionedCache
from .notifications import Notifier
from .poller import PeriodicTask

logger = logging.getLogger(__name__)

T = TypeVar("T")
SnapshotListener = Callable[[Snapshot], None]


class PollingSynchronizer(Generic[T]):
    """Periodically fetch a resource and replace a :class:`VersionedCache`.

    Failed fetches leave the previous snapshot in place.
    """

    name = "sync"
    failure_title = "Failed to refresh"

    def __init__(
        self,
        client: ChatApiClient,
        interval_s: float,
        *,
        notifier: Notifier | None = None,
        scope: Optional[str] = None,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._listeners: List[SnapshotListener] = []
        self.cache: VersionedCache[T] = VersionedCache(scope)
        self.poller = PeriodicTask(self.name, interval_s, self._cycle)
        self.last_error: ChatApiError | None = None

    @property
    def snapshot(self) -> Snapshot:
        return self.cache.snapshot

    @property
    def loading(self) -> bool:
        return self.poller.in_flight

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()

    async def refresh(self) -> bool:
        """Run a cycle now and wait for it, superseding any in-flight fetch."""

        self.cache.invalidate()
        return await self.poller.run_now(force=True)

    def invalidate(self) -> None:
        """Discard any in-flight result and fetch again immediately."""

        self.cache.invalidate()
        self.poller.trigger(force=True)

    async def wait_idle(self) -> None:
        await self.poller.wait_idle()

    async def _fetch(self) -> Sequence[T]:
        raise NotImplementedError

    def _should_fetch(self) -> bool:
        return True

    async def _cycle(self) -> None:
        if not self._should_fetch():
            return
        ticket = self.cache.begin()
        try:
            items = await self._fetch()
        except ChatApiError as exc:
            self._record_failure(exc)
            return

        if not self.cache.commit(ticket, items):
            logger.debug("%s: discarding stale response (ticket %s)", self.name, ticket)
            return
        self.last_error = None
        snapshot = self.cache.snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _record_failure(self, exc: ChatApiError) -> None:
        first_failure = self.last_error is None
        self.last_error = exc
        logger.warning("%s: fetch failed, keeping previous snapshot: %s", self.name, exc)
        if first_failure and self._notifier is not None:
            self._notifier.error(self.failure_title, exc.message)
