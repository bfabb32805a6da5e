from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from .api_client import ChatApiClient, ChatApiError
from .models import MESSAGE_TYPES, Attachment, Message
from .notifications import Notifier

logger = logging.getLogger(__name__)

REASON_EMPTY = "empty_message"
REASON_NO_CONVERSATION = "no_conversation"
REASON_ERROR = "error"


class Invalidatable(Protocol):
    def invalidate(self) -> None: ...


@dataclass
class ComposeBuffer:
    """The message input field."""

    text: str = ""

    def clear(self) -> None:
        self.text = ""


@dataclass(frozen=True)
class SendResult:
    ok: bool
    message: Optional[Message] = None
    reason: Optional[str] = None
    error: Optional[ChatApiError] = None


class SendPipeline:
    """Validate, submit, then force every dependent cache to re-fetch.

    Nothing is inserted locally; the sent message shows up through the next
    timeline fetch.
    """

    def __init__(
        self,
        client: ChatApiClient,
        *,
        selected_conversation: Callable[[], Optional[str]],
        project_id: str | None = None,
        compose: ComposeBuffer | None = None,
        targets: Sequence[Invalidatable] = (),
        notifier: Notifier | None = None,
    ) -> None:
        self._client = client
        self._selected_conversation = selected_conversation
        self.project_id = project_id
        self.compose = compose if compose is not None else ComposeBuffer()
        self._targets: List[Invalidatable] = list(targets)
        self._notifier = notifier

    def add_target(self, target: Invalidatable) -> None:
        self._targets.append(target)

    async def send(
        self,
        text: str | None = None,
        message_type: str = "text",
        attachments: Sequence[Attachment] | None = None,
        *,
        conversation_id: str | None = None,
    ) -> SendResult:
        if message_type not in MESSAGE_TYPES:
            raise ValueError(f"unknown message type: {message_type!r}")
        body = (self.compose.text if text is None else text).strip()
        if not body:
            return SendResult(ok=False, reason=REASON_EMPTY)
        target_conversation = conversation_id or self._selected_conversation()
        if not target_conversation:
            return SendResult(ok=False, reason=REASON_NO_CONVERSATION)

        try:
            created = await self._client.send_message(
                body,
                message_type=message_type,
                attachments=attachments,
                project_id=self.project_id,
                conversation_id=target_conversation,
            )
        except ChatApiError as exc:
            logger.warning("send to %s failed: %s", target_conversation, exc)
            if self._notifier is not None:
                self._notifier.error("Failed to send message", exc.message)
            return SendResult(ok=False, reason=REASON_ERROR, error=exc)

        self.compose.clear()
        for target in self._targets:
            target.invalidate()
        return SendResult(ok=True, message=created)
