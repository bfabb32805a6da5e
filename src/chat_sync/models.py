"""Conversation and message value objects parsed from chat API payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

MESSAGE_TYPES = ("text", "file", "image", "system")
ATTACHMENT_MESSAGE_TYPES = frozenset({"file", "image"})

MessageId = Union[int, str]


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime."""

    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _coerce_id(value: Any) -> MessageId:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid id: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value)
    if not text:
        raise ValueError("id must not be empty")
    return text


@dataclass(frozen=True)
class Attachment:
    url: str
    name: str
    size: Optional[int] = None

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "Attachment":
        if not isinstance(payload, dict):
            raise ValueError("attachment must be an object")
        url = payload.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("attachment url required")
        name = payload.get("name") or payload.get("originalName") or url.rsplit("/", 1)[-1]
        size = payload.get("size")
        if size is not None and (isinstance(size, bool) or not isinstance(size, int)):
            raise ValueError("attachment size must be an integer")
        return cls(url=url, name=str(name), size=size)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"url": self.url, "name": self.name}
        if self.size is not None:
            payload["size"] = self.size
        return payload


@dataclass(frozen=True)
class SenderProfile:
    id: str
    name: str
    email: Optional[str] = None
    role: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "SenderProfile":
        if not isinstance(payload, dict):
            raise ValueError("sender must be an object")
        sender_id = payload.get("id")
        if sender_id is None:
            raise ValueError("sender id required")
        email = _optional_str(payload.get("email"))
        name = payload.get("name")
        if not name:
            name = f"{payload.get('firstName') or ''} {payload.get('lastName') or ''}".strip()
        if not name:
            name = email or str(sender_id)
        return cls(
            id=str(sender_id),
            name=str(name),
            email=email,
            role=_optional_str(payload.get("role")),
            avatar=_optional_str(payload.get("avatar") or payload.get("profileImageUrl")),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar,
        }


@dataclass(frozen=True)
class Message:
    id: MessageId
    sender_id: str
    message: str
    created_at: datetime
    message_type: str = "text"
    is_read: bool = False
    project_id: Optional[str] = None
    conversation_id: Optional[str] = None
    attachments: Tuple[Attachment, ...] = field(default_factory=tuple)
    sender: Optional[SenderProfile] = None

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "Message":
        if not isinstance(payload, dict):
            raise ValueError("message must be an object")
        message_type = payload.get("messageType") or "text"
        if message_type not in MESSAGE_TYPES:
            raise ValueError(f"unknown message type: {message_type!r}")
        sender_id = payload.get("senderId")
        if sender_id is None:
            raise ValueError("senderId required")

        attachments: Tuple[Attachment, ...] = ()
        raw_attachments = payload.get("attachments")
        if message_type in ATTACHMENT_MESSAGE_TYPES and raw_attachments:
            if not isinstance(raw_attachments, list):
                raise ValueError("attachments must be a list")
            attachments = tuple(Attachment.from_json(item) for item in raw_attachments)

        is_read = payload.get("isRead")
        if is_read is None:
            is_read = False
        if not isinstance(is_read, bool):
            raise ValueError("isRead must be a boolean")
        sender_payload = payload.get("sender")
        return cls(
            id=_coerce_id(payload.get("id")),
            sender_id=str(sender_id),
            message=str(payload.get("message") or ""),
            created_at=parse_timestamp(payload.get("createdAt")),
            message_type=message_type,
            is_read=is_read,
            project_id=_optional_str(payload.get("projectId")),
            conversation_id=_optional_str(payload.get("conversationId")),
            attachments=attachments,
            sender=SenderProfile.from_json(sender_payload) if sender_payload else None,
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "senderId": self.sender_id,
            "message": self.message,
            "messageType": self.message_type,
            "isRead": self.is_read,
            "createdAt": format_timestamp(self.created_at),
        }
        if self.project_id is not None:
            payload["projectId"] = self.project_id
        if self.conversation_id is not None:
            payload["conversationId"] = self.conversation_id
        if self.attachments:
            payload["attachments"] = [attachment.to_json() for attachment in self.attachments]
        if self.sender is not None:
            payload["sender"] = self.sender.to_json()
        return payload

    @property
    def sort_key(self) -> Tuple[datetime, Tuple[int, Union[int, str]]]:
        # Numeric ids order numerically and ahead of string ids.
        if isinstance(self.id, int):
            return self.created_at, (0, self.id)
        return self.created_at, (1, self.id)


@dataclass(frozen=True)
class Conversation:
    id: str
    participant_id: str
    participant_name: str
    participant_role: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    last_message: Optional[Message] = None
    unread_count: int = 0
    is_online: bool = False

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "Conversation":
        if not isinstance(payload, dict):
            raise ValueError("conversation must be an object")
        conversation_id = payload.get("id")
        participant_id = payload.get("participantId")
        if not conversation_id or participant_id is None:
            raise ValueError("conversation id and participantId required")
        unread_count = payload.get("unreadCount") or 0
        if isinstance(unread_count, bool) or not isinstance(unread_count, int):
            raise ValueError("unreadCount must be an integer")
        last_message = payload.get("lastMessage")
        return cls(
            id=str(conversation_id),
            participant_id=str(participant_id),
            participant_name=str(payload.get("participantName") or participant_id),
            participant_role=_optional_str(payload.get("participantRole")),
            project_id=_optional_str(payload.get("projectId")),
            project_name=_optional_str(payload.get("projectName")),
            last_message=Message.from_json(last_message) if last_message else None,
            unread_count=max(0, unread_count),
            is_online=bool(payload.get("isOnline", False)),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "participantId": self.participant_id,
            "participantName": self.participant_name,
            "participantRole": self.participant_role,
            "projectId": self.project_id,
            "projectName": self.project_name,
            "lastMessage": self.last_message.to_json() if self.last_message else None,
            "unreadCount": self.unread_count,
            "isOnline": self.is_online,
        }
