"""Command line entry point for inspecting and driving chat conversations."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, TextIO

from .api_client import ChatApiClient, ChatApiError, UploadFile
from .cache import Snapshot
from .config import DEFAULT_SETTINGS_FILE, ChatSyncConfig, load_config, update_settings
from .conversations import filter_conversations
from .models import Conversation, Message
from .notifications import Notice, Notifier
from .send import SendPipeline
from .session import ChatSession
from .timefmt import format_relative
from .timeline import merge_messages
from .upload import AttachmentUploadPipeline

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def format_conversation(conversation: Conversation, now: datetime | None = None) -> str:
    parts = [conversation.id, conversation.participant_name]
    if conversation.participant_role:
        parts.append(f"({conversation.participant_role})")
    if conversation.project_name:
        parts.append(f"[{conversation.project_name}]")
    parts.append(f"unread={conversation.unread_count}")
    if conversation.last_message is not None:
        parts.append(format_relative(conversation.last_message.created_at, now))
    return " ".join(parts)


def format_message(message: Message, now: datetime | None = None) -> str:
    author = message.sender.name if message.sender is not None else message.sender_id
    line = f"[{format_relative(message.created_at, now)}] {author}: {message.message}"
    if message.attachments:
        names = ", ".join(attachment.name for attachment in message.attachments)
        line += f" <{names}>"
    return line


def _client(config: ChatSyncConfig, errors: TextIO) -> ChatApiClient:
    def _on_unauthorized() -> None:
        errors.write("session rejected (401); run `chat-sync configure --token ...` to sign in again\n")

    return ChatApiClient(
        config.base_url,
        session_token=config.session_token,
        timeout_s=config.request_timeout_s,
        on_unauthorized=_on_unauthorized,
    )


async def _run_conversations(args: argparse.Namespace, config: ChatSyncConfig, output: TextIO) -> int:
    async with _client(config, sys.stderr) as client:
        try:
            conversations = await client.list_conversations(project_id=config.project_id)
        except ChatApiError as exc:
            sys.stderr.write(f"failed to load conversations: {exc}\n")
            return EXIT_FAILURE
    now = datetime.now(timezone.utc)
    for conversation in filter_conversations(conversations, args.search):
        output.write(format_conversation(conversation, now) + "\n")
    return EXIT_OK


async def _run_messages(args: argparse.Namespace, config: ChatSyncConfig, output: TextIO) -> int:
    async with _client(config, sys.stderr) as client:
        try:
            fetched = await client.list_messages(project_id=config.project_id, conversation_id=args.conversation)
        except ChatApiError as exc:
            sys.stderr.write(f"failed to load messages: {exc}\n")
            return EXIT_FAILURE
    now = datetime.now(timezone.utc)
    for message in merge_messages((), fetched):
        output.write(format_message(message, now) + "\n")
    return EXIT_OK


def _print_notice(stream: TextIO) -> Callable[[Notice], None]:
    def _write(notice: Notice) -> None:
        detail = f": {notice.description}" if notice.description else ""
        stream.write(f"{notice.title}{detail}\n")

    return _write


async def _run_send(args: argparse.Namespace, config: ChatSyncConfig, output: TextIO) -> int:
    notifier = Notifier(config.max_notices)
    notifier.subscribe(_print_notice(sys.stderr))
    async with _client(config, sys.stderr) as client:
        pipeline = SendPipeline(
            client,
            selected_conversation=lambda: args.conversation,
            project_id=config.project_id,
            notifier=notifier,
        )
        result = await pipeline.send(" ".join(args.text))
    if not result.ok:
        if result.reason != "error":
            sys.stderr.write(f"message not sent: {result.reason}\n")
        return EXIT_FAILURE
    output.write(f"sent {result.message.id}\n")
    return EXIT_OK


async def _run_upload(args: argparse.Namespace, config: ChatSyncConfig, output: TextIO) -> int:
    try:
        files = [UploadFile.from_path(path) for path in args.files]
    except OSError as exc:
        sys.stderr.write(f"cannot read file: {exc}\n")
        return EXIT_USAGE
    notifier = Notifier(config.max_notices)
    notifier.subscribe(_print_notice(sys.stderr))
    async with _client(config, sys.stderr) as client:
        sender = SendPipeline(
            client,
            selected_conversation=lambda: args.conversation,
            project_id=config.project_id,
            notifier=notifier,
        )
        uploader = AttachmentUploadPipeline(
            client,
            sender,
            selected_conversation=lambda: args.conversation,
            notifier=notifier,
        )
        result = await uploader.upload(files)
    if result.orphaned:
        names = ", ".join(attachment.name for attachment in result.orphaned)
        sys.stderr.write(f"uploaded but not referenced by any message: {names}\n")
    if not result.ok:
        return EXIT_FAILURE
    output.write(f"sent {len(result.attachments)} file(s) as {result.send.message.id}\n")
    return EXIT_OK


async def _run_watch(args: argparse.Namespace, config: ChatSyncConfig, output: TextIO) -> int:
    if not config.user_id:
        sys.stderr.write("watch needs --user-id (or a configured user_id)\n")
        return EXIT_USAGE
    seen: set = set()

    def _print_conversations(snapshot: Snapshot) -> None:
        now = datetime.now(timezone.utc)
        output.write(f"-- conversations (v{snapshot.version})\n")
        for conversation in snapshot.items:
            output.write(format_conversation(conversation, now) + "\n")

    def _print_timeline(snapshot: Snapshot) -> None:
        now = datetime.now(timezone.utc)
        for message in snapshot.items:
            if message.id in seen:
                continue
            seen.add(message.id)
            output.write(format_message(message, now) + "\n")

    async with _client(config, sys.stderr) as client:
        session = ChatSession(client, config.user_id, project_id=config.project_id, config=config)
        session.notifier.subscribe(_print_notice(sys.stderr))
        session.conversation_list.subscribe(_print_conversations)
        session.timeline.subscribe(_print_timeline)
        session.select(args.conversation)
        async with session:
            if args.duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(args.duration)
    return EXIT_OK


def _run_configure(args: argparse.Namespace, output: TextIO) -> int:
    updates = {
        "base_url": args.base_url,
        "session_token": args.token,
        "user_id": args.user_id,
        "project_id": args.project_id,
    }
    try:
        update_settings(updates, args.settings)
    except ValueError as exc:
        sys.stderr.write(f"invalid settings: {exc}\n")
        return EXIT_USAGE
    output.write(f"settings saved to {Path(args.settings).expanduser()}\n")
    return EXIT_OK


_COMMANDS: Dict[str, Callable[[argparse.Namespace, ChatSyncConfig, TextIO], Awaitable[int]]] = {
    "conversations": _run_conversations,
    "messages": _run_messages,
    "send": _run_send,
    "upload": _run_upload,
    "watch": _run_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat-sync", description="Chat conversation sync client")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_FILE), help="Path to the settings file")
    parser.add_argument("--base-url", dest="base_url", default=None, help="Chat API root, e.g. https://host/api/chat")
    parser.add_argument("--token", default=None, help="Bearer session token")
    parser.add_argument("--user-id", dest="user_id", default=None, help="Current user id")
    parser.add_argument("--project-id", dest="project_id", default=None, help="Restrict to one project")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for stderr output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("configure", help="Persist connection settings")

    conversations_parser = subparsers.add_parser("conversations", help="List conversations")
    conversations_parser.add_argument("--search", default=None, help="Filter by participant or project name")

    messages_parser = subparsers.add_parser("messages", help="Print a conversation timeline")
    messages_parser.add_argument("conversation", help="Conversation id")

    send_parser = subparsers.add_parser("send", help="Send a text message")
    send_parser.add_argument("conversation", help="Conversation id")
    send_parser.add_argument("text", nargs="+", help="Message text")

    upload_parser = subparsers.add_parser("upload", help="Upload files and send them as a message")
    upload_parser.add_argument("conversation", help="Conversation id")
    upload_parser.add_argument("files", nargs="+", help="Files to upload")

    watch_parser = subparsers.add_parser("watch", help="Poll conversations and mark incoming messages read")
    watch_parser.add_argument("--conversation", default=None, help="Conversation to follow")
    watch_parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    return parser


def main(argv: List[str] | None = None, output: TextIO | None = None) -> int:
    """Entry point for CLI commands."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT, stream=sys.stderr)
    stream = output or sys.stdout

    if args.command == "configure":
        return _run_configure(args, stream)

    overrides = {
        "base_url": args.base_url,
        "session_token": args.token,
        "user_id": args.user_id,
        "project_id": args.project_id,
    }
    try:
        config = load_config(args.settings, overrides=overrides)
    except ValueError as exc:
        sys.stderr.write(f"invalid configuration: {exc}\n")
        return EXIT_USAGE
    if not config.base_url:
        sys.stderr.write("no base URL configured; pass --base-url or run `chat-sync configure`\n")
        return EXIT_USAGE

    try:
        return asyncio.run(_COMMANDS[args.command](args, config, stream))
    except KeyboardInterrupt:
        return EXIT_OK
