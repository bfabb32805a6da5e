from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from .api_client import ChatApiClient, UploadFile
from .config import ChatSyncConfig
from .conversations import ConversationListSynchronizer, filter_conversations
from .models import Attachment, Conversation, Message
from .notifications import Notifier
from .read_state import ReadStateReconciler
from .send import ComposeBuffer, SendPipeline, SendResult
from .timefmt import format_relative
from .timeline import MessageTimelineSynchronizer
from .unread import UnreadCountSynchronizer
from .upload import AttachmentUploadPipeline, UploadResult


class ChatSession:
    """Conversation list, active timeline and send paths for one user and scope."""

    def __init__(
        self,
        client: ChatApiClient,
        current_user_id: str,
        *,
        project_id: str | None = None,
        config: ChatSyncConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        config = config or ChatSyncConfig()
        self.client = client
        self.current_user_id = current_user_id
        self.project_id = project_id
        self.notifier = notifier if notifier is not None else Notifier(config.max_notices)
        self.compose = ComposeBuffer()

        self.conversation_list = ConversationListSynchronizer(
            client,
            config.conversations_interval_s,
            project_id=project_id,
            notifier=self.notifier,
        )
        self.timeline = MessageTimelineSynchronizer(
            client,
            config.timeline_interval_s,
            project_id=project_id,
            notifier=self.notifier,
        )
        self.unread = UnreadCountSynchronizer(
            client,
            config.unread_interval_s,
            project_id=project_id,
            notifier=self.notifier,
        )
        self.reconciler = ReadStateReconciler(client, current_user_id)
        self.timeline.subscribe(self.reconciler.on_timeline)

        self.sender = SendPipeline(
            client,
            selected_conversation=lambda: self.timeline.conversation_id,
            project_id=project_id,
            compose=self.compose,
            targets=(self.timeline, self.conversation_list, self.unread),
            notifier=self.notifier,
        )
        self.uploader = AttachmentUploadPipeline(
            client,
            self.sender,
            selected_conversation=lambda: self.timeline.conversation_id,
            notifier=self.notifier,
        )

    @property
    def conversations(self) -> Sequence[Conversation]:
        return self.conversation_list.conversations

    @property
    def messages(self) -> Sequence[Message]:
        return self.timeline.messages

    @property
    def unread_count(self) -> int:
        return self.unread.count

    @property
    def selected_conversation_id(self) -> Optional[str]:
        return self.timeline.conversation_id

    @property
    def selected_conversation(self) -> Optional[Conversation]:
        return self.conversation_list.find(self.timeline.conversation_id)

    def start(self) -> None:
        self.conversation_list.start()
        self.unread.start()
        self.timeline.start()

    async def stop(self) -> None:
        await self.timeline.stop()
        await self.conversation_list.stop()
        await self.unread.stop()
        await self.reconciler.aclose()

    async def __aenter__(self) -> "ChatSession":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def select(self, conversation_id: str | None) -> None:
        self.timeline.select(conversation_id)

    async def send(
        self,
        text: str | None = None,
        message_type: str = "text",
        attachments: Sequence[Attachment] | None = None,
    ) -> SendResult:
        return await self.sender.send(text, message_type, attachments)

    async def upload(self, files: Sequence[UploadFile], conversation_id: str | None = None) -> UploadResult:
        return await self.uploader.upload(files, conversation_id)

    def filtered_conversations(self, search: str | None) -> List[Conversation]:
        return filter_conversations(self.conversation_list.conversations, search)

    def label(self, message: Message, now: datetime | None = None) -> str:
        return format_relative(message.created_at, now)
