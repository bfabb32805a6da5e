"""Polling client that keeps conversation and message caches in sync with a chat server."""

from .api_client import (
    ChatApiClient,
    ChatApiError,
    MalformedResponseError,
    TransportError,
    UnauthorizedError,
    UploadFile,
)
from .cache import Snapshot, VersionedCache
from .config import ChatSyncConfig, load_config
from .conversations import ConversationListSynchronizer, filter_conversations, total_unread
from .models import Attachment, Conversation, Message, SenderProfile
from .notifications import Notice, Notifier
from .poller import PeriodicTask
from .read_state import ReadStateReconciler, count_unread, unread_messages
from .send import ComposeBuffer, SendPipeline, SendResult
from .session import ChatSession
from .timefmt import format_relative
from .timeline import MessageTimelineSynchronizer, merge_messages
from .unread import UnreadCountSynchronizer
from .upload import AttachmentUploadPipeline, UploadResult

__all__ = [
    "Attachment",
    "AttachmentUploadPipeline",
    "ChatApiClient",
    "ChatApiError",
    "ChatSession",
    "ChatSyncConfig",
    "ComposeBuffer",
    "Conversation",
    "ConversationListSynchronizer",
    "MalformedResponseError",
    "Message",
    "MessageTimelineSynchronizer",
    "Notice",
    "Notifier",
    "PeriodicTask",
    "ReadStateReconciler",
    "SendPipeline",
    "SendResult",
    "SenderProfile",
    "Snapshot",
    "TransportError",
    "UnauthorizedError",
    "UnreadCountSynchronizer",
    "UploadFile",
    "UploadResult",
    "VersionedCache",
    "count_unread",
    "filter_conversations",
    "format_relative",
    "load_config",
    "merge_messages",
    "total_unread",
    "unread_messages",
]
