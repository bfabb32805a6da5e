from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

from .api_client import ChatApiClient, ChatApiError, UploadFile
from .models import Attachment
from .notifications import Notifier
from .send import REASON_ERROR, REASON_NO_CONVERSATION, SendPipeline, SendResult

logger = logging.getLogger(__name__)

REASON_NO_FILES = "no_files"
STAGE_UPLOAD = "upload"
STAGE_SEND = "send"


@dataclass(frozen=True)
class UploadResult:
    ok: bool
    attachments: Tuple[Attachment, ...] = field(default_factory=tuple)
    send: Optional[SendResult] = None
    stage: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[ChatApiError] = None
    # Uploaded but unreferenced because the follow-up send failed.
    orphaned: Tuple[Attachment, ...] = field(default_factory=tuple)


def summarize_files(count: int) -> str:
    return f"Sent {count} file(s)"


class AttachmentUploadPipeline:
    """Upload files, then send a ``file`` message that references them.

    The two steps are not atomic. When the send fails after a successful
    upload the files stay on the server unreferenced; they are reported as
    ``orphaned`` and left alone.
    """

    def __init__(
        self,
        client: ChatApiClient,
        sender: SendPipeline,
        *,
        selected_conversation: Callable[[], Optional[str]],
        notifier: Notifier | None = None,
    ) -> None:
        self._client = client
        self._sender = sender
        self._selected_conversation = selected_conversation
        self._notifier = notifier

    async def upload(self, files: Sequence[UploadFile], conversation_id: str | None = None) -> UploadResult:
        target_conversation = conversation_id or self._selected_conversation()
        if not target_conversation:
            return UploadResult(ok=False, reason=REASON_NO_CONVERSATION)
        if not files:
            return UploadResult(ok=False, reason=REASON_NO_FILES)

        try:
            attachments = tuple(await self._client.upload_attachments(target_conversation, files))
        except ChatApiError as exc:
            logger.warning("upload to %s failed: %s", target_conversation, exc)
            if self._notifier is not None:
                self._notifier.error("Upload failed", "Failed to upload files")
            return UploadResult(ok=False, stage=STAGE_UPLOAD, reason=REASON_ERROR, error=exc)

        result = await self._sender.send(
            summarize_files(len(files)),
            "file",
            attachments,
            conversation_id=target_conversation,
        )
        if not result.ok:
            logger.warning(
                "message for %d uploaded file(s) in %s was not created; attachments left orphaned: %s",
                len(attachments),
                target_conversation,
                [attachment.url for attachment in attachments],
            )
            return UploadResult(
                ok=False,
                attachments=attachments,
                send=result,
                stage=STAGE_SEND,
                reason=result.reason,
                error=result.error,
                orphaned=attachments,
            )
        return UploadResult(ok=True, attachments=attachments, send=result)
