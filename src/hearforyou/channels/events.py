"""Channel bus event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from hearforyou.dialog.types import (
    Attachment,
    MediaAttachment,
    OutboundAction,
    PromptText,
    StructuredMenu,
)

InboundKind = Literal["message", "conversation_start"]


@dataclass(frozen=True)
class InboundMessage:
    """Message received from an external channel."""

    channel: str
    sender_id: str
    chat_id: str
    content: str = ""
    attachments: tuple[Attachment, ...] = ()
    kind: InboundKind = "message"
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def session_id(self) -> str:
        return f"{self.channel}:{self.chat_id}"


@dataclass(frozen=True)
class OutboundMessage:
    """Message to be delivered to one external channel."""

    channel: str
    chat_id: str
    content: str
    action: OutboundAction | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def split_session_id(session_id: str) -> tuple[str, str]:
    channel, _, chat_id = session_id.partition(":")
    return channel, chat_id


def render_text(action: OutboundAction) -> str:
    """Plain-text fallback for channels without rich rendering."""
    if isinstance(action, PromptText):
        return action.text
    if isinstance(action, StructuredMenu):
        lines = [line for line in (action.title, action.text) if line]
        lines.extend(f"- {button.title} ({button.value})" for button in action.buttons)
        return "\n".join(lines)
    if isinstance(action, MediaAttachment):
        return f"{action.name or action.content_type}: {action.url}"
    raise TypeError(f"unsupported outbound action {action!r}")
