from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from .api_client import ChatApiClient
from .models import Message, MessageId
from .notifications import Notifier
from .sync import PollingSynchronizer

DEFAULT_TIMELINE_INTERVAL_S = 10.0


def message_sort_key(message: Message):
    return message.sort_key


def merge_messages(current: Iterable[Message], incoming: Iterable[Message]) -> List[Message]:
    """Merge two message sets into one ``(createdAt, id)``-ordered timeline.

    A message id present in both keeps the ``incoming`` copy, so read-state
    transitions replace the cached entry instead of duplicating it.
    """

    by_id: Dict[MessageId, Message] = {}
    for message in current:
        by_id[message.id] = message
    for message in incoming:
        by_id[message.id] = message
    return sorted(by_id.values(), key=message_sort_key)


class MessageTimelineSynchronizer(PollingSynchronizer[Message]):
    """Keeps the ordered timeline of the selected conversation.

    Only fetches while a conversation is selected. Selecting another
    conversation empties the timeline, cancels the fetch in flight and
    fetches the new one immediately; a late response for the previous
    selection is discarded by the cache ticket check.
    """

    name = "timeline"
    failure_title = "Failed to load messages"

    def __init__(
        self,
        client: ChatApiClient,
        interval_s: float = DEFAULT_TIMELINE_INTERVAL_S,
        *,
        project_id: str | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        super().__init__(client, interval_s, notifier=notifier)
        self.project_id = project_id
        self._conversation_id: str | None = None

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def messages(self) -> Sequence[Message]:
        return self.cache.items

    def select(self, conversation_id: str | None) -> None:
        if conversation_id == self._conversation_id:
            return
        self._conversation_id = conversation_id
        self.cache.reset(scope=conversation_id)
        self.last_error = None
        if conversation_id is not None and self.poller.running:
            self.poller.trigger(force=True)

    def _should_fetch(self) -> bool:
        return self._conversation_id is not None

    async def _fetch(self) -> Sequence[Message]:
        fetched = await self._client.list_messages(
            project_id=self.project_id,
            conversation_id=self._conversation_id,
        )
        return merge_messages((), fetched)
