from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .api_client import ChatApiClient
from .models import Conversation
from .notifications import Notifier
from .sync import PollingSynchronizer

DEFAULT_CONVERSATIONS_INTERVAL_S = 30.0


def filter_conversations(conversations: Iterable[Conversation], search: str | None) -> List[Conversation]:
    """Case-insensitive match on participant or project name, order preserved."""

    term = (search or "").strip().lower()
    if not term:
        return list(conversations)
    matches: List[Conversation] = []
    for conversation in conversations:
        if term in conversation.participant_name.lower():
            matches.append(conversation)
        elif conversation.project_name and term in conversation.project_name.lower():
            matches.append(conversation)
    return matches


def total_unread(conversations: Iterable[Conversation]) -> int:
    return sum(conversation.unread_count for conversation in conversations)


class ConversationListSynchronizer(PollingSynchronizer[Conversation]):
    """Keeps the conversation list for one scope, in server order."""

    name = "conversations"
    failure_title = "Failed to load conversations"

    def __init__(
        self,
        client: ChatApiClient,
        interval_s: float = DEFAULT_CONVERSATIONS_INTERVAL_S,
        *,
        project_id: str | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        super().__init__(client, interval_s, notifier=notifier, scope=project_id)
        self.project_id = project_id

    @property
    def conversations(self) -> Sequence[Conversation]:
        return self.cache.items

    def find(self, conversation_id: str | None) -> Optional[Conversation]:
        if conversation_id is None:
            return None
        for conversation in self.cache.items:
            if conversation.id == conversation_id:
                return conversation
        return None

    async def _fetch(self) -> Sequence[Conversation]:
        return await self._client.list_conversations(project_id=self.project_id)
