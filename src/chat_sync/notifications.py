from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List

VARIANT_DEFAULT = "default"
VARIANT_DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notice:
    title: str
    description: str = ""
    variant: str = VARIANT_DEFAULT


Listener = Callable[[Notice], None]


class Notifier:
    """Non-blocking sink for user-visible notices."""

    def __init__(self, max_notices: int = 50) -> None:
        self._notices: Deque[Notice] = deque(maxlen=max_notices)
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return

    def notify(self, title: str, description: str = "", *, variant: str = VARIANT_DEFAULT) -> Notice:
        notice = Notice(title=title, description=description, variant=variant)
        self._notices.append(notice)
        for listener in list(self._listeners):
            listener(notice)
        return notice

    def error(self, title: str, description: str = "") -> Notice:
        return self.notify(title, description, variant=VARIANT_DESTRUCTIVE)

    def snapshot(self) -> list[Notice]:
        return list(self._notices)

    def clear(self) -> None:
        self._notices.clear()
