"""Channel adapters and bus exports."""

from hearforyou.channels.base import BaseChannel
from hearforyou.channels.bus import MessageBus
from hearforyou.channels.console import ConsoleChannel
from hearforyou.channels.events import InboundMessage, OutboundMessage, render_text
from hearforyou.channels.manager import ChannelManager

__all__ = [
    "BaseChannel",
    "ChannelManager",
    "ConsoleChannel",
    "InboundMessage",
    "MessageBus",
    "OutboundMessage",
    "render_text",
]
