"""Async chat API client on top of aiohttp."""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiohttp

from .models import Attachment, Conversation, Message, MessageId

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 15.0


class ChatApiError(Exception):
    def __init__(self, message: str, *, status: int | None = None, code: str | None = None):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{status}: {message}" if status is not None else message)


class UnauthorizedError(ChatApiError):
    pass


class TransportError(ChatApiError):
    pass


class MalformedResponseError(ChatApiError):
    pass


@dataclass(frozen=True)
class UploadFile:
    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Path | str) -> "UploadFile":
        file_path = Path(path).expanduser()
        content_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            name=file_path.name,
            content=file_path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        )


def _build_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}{path}"


def _query(**params: Any) -> Dict[str, str]:
    return {key: str(value) for key, value in params.items() if value is not None}


def _parse_error(status: int, raw: str) -> ChatApiError:
    code: str | None = None
    message = raw.strip() or "request failed"
    try:
        payload = json.loads(raw) if raw else None
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, dict):
        if isinstance(payload.get("code"), str):
            code = payload["code"]
        if isinstance(payload.get("message"), str):
            message = payload["message"]
    if status == 401:
        return UnauthorizedError(message, status=status, code=code or "unauthorized")
    return ChatApiError(message, status=status, code=code)


def _unwrap_list(payload: Any, *keys: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise MalformedResponseError("expected a list response")


class ChatApiClient:
    """REST client for the conversation, message and upload endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        session_token: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        session: aiohttp.ClientSession | None = None,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        self.base_url = base_url
        self.session_token = session_token
        self.timeout_s = timeout_s
        self.on_unauthorized = on_unauthorized
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
            self._owns_session = True
        return self._session

    def _headers(self) -> Dict[str, str]:
        if self.session_token:
            return {"Authorization": f"Bearer {self.session_token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, str] | None = None,
        json_body: Dict[str, Any] | None = None,
        data: aiohttp.FormData | None = None,
    ) -> Any:
        url = _build_url(self.base_url, path)
        try:
            async with self._get_session().request(
                method,
                url,
                params=params or None,
                json=json_body,
                data=data,
                headers=self._headers(),
            ) as response:
                raw = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"{method} {path} failed: {exc or type(exc).__name__}") from exc

        if status >= 400:
            logger.debug("%s %s -> %s", method, path, status)
            error = _parse_error(status, raw)
            if isinstance(error, UnauthorizedError) and self.on_unauthorized is not None:
                self.on_unauthorized()
            raise error
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"{method} {path} returned invalid JSON", status=status) from exc

    async def list_conversations(self, project_id: str | None = None) -> List[Conversation]:
        payload = await self._request("GET", "/conversations", params=_query(projectId=project_id))
        try:
            return [Conversation.from_json(item) for item in _unwrap_list(payload, "items", "conversations")]
        except (ValueError, TypeError) as exc:
            raise MalformedResponseError(f"malformed conversation list: {exc}") from exc

    async def list_messages(
        self,
        project_id: str | None = None,
        conversation_id: str | None = None,
    ) -> List[Message]:
        params = _query(projectId=project_id, conversationId=conversation_id)
        payload = await self._request("GET", "/messages", params=params)
        try:
            return [Message.from_json(item) for item in _unwrap_list(payload, "items", "messages")]
        except (ValueError, TypeError) as exc:
            raise MalformedResponseError(f"malformed message list: {exc}") from exc

    async def send_message(
        self,
        message: str,
        *,
        message_type: str = "text",
        attachments: Sequence[Attachment] | None = None,
        project_id: str | None = None,
        conversation_id: str | None = None,
    ) -> Message:
        body: Dict[str, Any] = {"message": message, "messageType": message_type}
        if attachments:
            body["attachments"] = [attachment.to_json() for attachment in attachments]
        if project_id is not None:
            body["projectId"] = project_id
        if conversation_id is not None:
            body["conversationId"] = conversation_id
        payload = await self._request("POST", "/messages", json_body=body)
        try:
            return Message.from_json(payload)
        except (ValueError, TypeError) as exc:
            raise MalformedResponseError(f"malformed created message: {exc}") from exc

    async def mark_read(self, message_id: MessageId) -> Optional[Message]:
        payload = await self._request("PUT", f"/messages/{message_id}/read")
        if not isinstance(payload, dict) or "id" not in payload:
            return None
        try:
            return Message.from_json(payload)
        except (ValueError, TypeError) as exc:
            raise MalformedResponseError(f"malformed read receipt: {exc}") from exc

    async def upload_attachments(self, conversation_id: str, files: Sequence[UploadFile]) -> List[Attachment]:
        form = aiohttp.FormData()
        for upload in files:
            form.add_field("files", upload.content, filename=upload.name, content_type=upload.content_type)
        payload = await self._request("POST", f"/upload/{conversation_id}", data=form)
        try:
            return [Attachment.from_json(item) for item in _unwrap_list(payload, "files", "items")]
        except (ValueError, TypeError) as exc:
            raise MalformedResponseError(f"malformed upload response: {exc}") from exc

    async def unread_count(self, project_id: str | None = None) -> int:
        payload = await self._request("GET", "/unread-count", params=_query(projectId=project_id))
        count = payload.get("count") if isinstance(payload, dict) else payload
        if isinstance(count, bool) or not isinstance(count, int):
            raise MalformedResponseError("malformed unread count")
        return max(0, count)
