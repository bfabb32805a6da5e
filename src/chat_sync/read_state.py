from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List

from .api_client import ChatApiClient, ChatApiError
from .cache import Snapshot
from .models import Message, MessageId

logger = logging.getLogger(__name__)


def unread_messages(messages: Iterable[Message], current_user_id: str) -> List[Message]:
    """Messages still unread by ``current_user_id`` (their own never count)."""

    return [message for message in messages if not message.is_read and message.sender_id != current_user_id]


def count_unread(messages: Iterable[Message], current_user_id: str) -> int:
    return len(unread_messages(messages, current_user_id))


class ReadStateReconciler:
    """Marks fetched incoming messages as read.

    Runs after every applied timeline snapshot. Requests go out concurrently
    and are never retried here: a message whose request failed is still
    unread in the next fetch and gets targeted again then. The unread count
    itself is only ever taken from the server.
    """

    def __init__(self, client: ChatApiClient, current_user_id: str) -> None:
        self._client = client
        self.current_user_id = current_user_id
        self._inflight: Dict[MessageId, asyncio.Task] = {}
        self.failures = 0

    @property
    def pending_ids(self) -> List[MessageId]:
        return list(self._inflight)

    def on_timeline(self, snapshot: Snapshot) -> None:
        self.reconcile(snapshot.items)

    def reconcile(self, messages: Iterable[Message]) -> List[asyncio.Task]:
        issued: List[asyncio.Task] = []
        for message in unread_messages(messages, self.current_user_id):
            if message.id in self._inflight:
                continue
            task = asyncio.create_task(self._mark(message.id))
            self._inflight[message.id] = task
            issued.append(task)
        return issued

    async def _mark(self, message_id: MessageId) -> None:
        try:
            await self._client.mark_read(message_id)
        except ChatApiError as exc:
            self.failures += 1
            logger.info("mark-as-read for message %s failed, next refresh retries: %s", message_id, exc)
        finally:
            self._inflight.pop(message_id, None)

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.wait(list(self._inflight.values()))

    async def aclose(self) -> None:
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)
        self._inflight.clear()
