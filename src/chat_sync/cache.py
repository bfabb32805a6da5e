from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Generic, Iterable, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """An immutable view of a cache at one applied fetch."""

    version: int
    items: Tuple[T, ...]
    scope: Optional[str] = None
    fetched_at: Optional[float] = None


class VersionedCache(Generic[T]):
    """Single-writer cache replaced wholesale on each successful fetch.

    Every fetch takes a ticket from :meth:`begin`. :meth:`commit` applies the
    result only when the ticket is newer than the last applied ticket and than
    the last :meth:`reset`/:meth:`invalidate`, so late responses are dropped.
    """

    def __init__(self, scope: Optional[str] = None, *, clock=time.monotonic) -> None:
        self._clock = clock
        self._issued = 0
        self._applied = 0
        self._floor = 0
        self._snapshot: Snapshot[T] = Snapshot(version=0, items=(), scope=scope)

    @property
    def snapshot(self) -> Snapshot[T]:
        return self._snapshot

    @property
    def items(self) -> Tuple[T, ...]:
        return self._snapshot.items

    @property
    def scope(self) -> Optional[str]:
        return self._snapshot.scope

    def begin(self) -> int:
        self._issued += 1
        return self._issued

    def is_current(self, ticket: int) -> bool:
        return ticket > self._floor and ticket > self._applied

    def commit(self, ticket: int, items: Iterable[T]) -> bool:
        if not self.is_current(ticket):
            return False
        self._applied = ticket
        self._snapshot = Snapshot(
            version=self._snapshot.version + 1,
            items=tuple(items),
            scope=self._snapshot.scope,
            fetched_at=self._clock(),
        )
        return True

    def invalidate(self) -> None:
        """Mark every outstanding ticket stale while keeping the items."""

        self._floor = self._issued

    def reset(self, scope: Optional[str] = None) -> None:
        """Drop the items, rescope, and mark every outstanding ticket stale."""

        self._floor = self._issued
        self._snapshot = Snapshot(version=self._snapshot.version + 1, items=(), scope=scope)
