"""Base channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from hearforyou.channels.bus import MessageBus
from hearforyou.channels.events import InboundKind, InboundMessage, OutboundMessage
from hearforyou.dialog.types import Attachment


class BaseChannel(ABC):
    """Abstract base class for channel adapters."""

    name: str = "base"

    def __init__(self, bus: MessageBus) -> None:
        self.bus = bus

    @abstractmethod
    async def start(self) -> None:
        """Start receiving messages and publish them on the bus."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop receiving messages."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver one outbound message to the user."""

    async def publish_inbound(
        self,
        chat_id: str,
        content: str = "",
        *,
        sender_id: str = "user",
        attachments: Sequence[Attachment] = (),
        kind: InboundKind = "message",
    ) -> None:
        await self.bus.publish_inbound(
            InboundMessage(
                channel=self.name,
                sender_id=sender_id,
                chat_id=chat_id,
                content=content,
                attachments=tuple(attachments),
                kind=kind,
            )
        )
