from __future__ import annotations

from typing import Sequence

from .api_client import ChatApiClient
from .notifications import Notifier
from .sync import PollingSynchronizer

DEFAULT_UNREAD_INTERVAL_S = 30.0


class UnreadCountSynchronizer(PollingSynchronizer[int]):
    """Polls the server's total unread count for the badge indicator."""

    name = "unread-count"
    failure_title = "Failed to load unread count"

    def __init__(
        self,
        client: ChatApiClient,
        interval_s: float = DEFAULT_UNREAD_INTERVAL_S,
        *,
        project_id: str | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        super().__init__(client, interval_s, notifier=notifier, scope=project_id)
        self.project_id = project_id

    @property
    def count(self) -> int:
        items = self.cache.items
        return items[0] if items else 0

    async def _fetch(self) -> Sequence[int]:
        return (await self._client.unread_count(project_id=self.project_id),)
