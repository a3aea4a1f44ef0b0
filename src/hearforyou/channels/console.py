"""Interactive terminal channel."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from hearforyou.channels.base import BaseChannel
from hearforyou.channels.bus import MessageBus
from hearforyou.channels.events import OutboundMessage
from hearforyou.dialog.types import Attachment, MediaAttachment, PromptText, StructuredMenu

ATTACH_COMMAND = "/attach"


def parse_attachment(line: str) -> tuple[str, Attachment | None]:
    """Split `/attach <url|path> [text]` into the message text and its attachment."""
    if not line.startswith(ATTACH_COMMAND):
        return line, None
    parts = line[len(ATTACH_COMMAND) :].strip().split(maxsplit=1)
    if not parts:
        return "", None
    text = parts[1] if len(parts) > 1 else ""
    return text, build_attachment(parts[0])


def build_attachment(target: str) -> Attachment:
    """Turn a URL or a local path into an attachment reference."""
    if target.startswith(("http://", "https://", "file:")):
        url = target
        name = target.rsplit("/", 1)[-1]
    else:
        path = Path(target).expanduser().resolve()
        url = path.as_uri()
        name = path.name
    content_type = mimetypes.guess_type(name)[0] or ""
    return Attachment(url=url, content_type=content_type, name=name)


class ConsoleChannel(BaseChannel):
    """Read user lines with prompt_toolkit and render replies with rich."""

    name = "console"

    def __init__(
        self,
        bus: MessageBus,
        *,
        chat_id: str = "local",
        console: Console | None = None,
        prompt_session: PromptSession[str] | None = None,
    ) -> None:
        super().__init__(bus)
        self.chat_id = chat_id
        self.console = console or Console()
        self._prompt = prompt_session
        self._closed = asyncio.Event()

    @property
    def session_id(self) -> str:
        return f"{self.name}:{self.chat_id}"

    async def start(self) -> None:
        await self.publish_inbound(self.chat_id, kind="conversation_start")
        if self._prompt is None:
            self._prompt = PromptSession()
        while not self._closed.is_set():
            try:
                with patch_stdout(raw=True):
                    line = await self._prompt.prompt_async("> ")
            except (EOFError, KeyboardInterrupt):
                self._closed.set()
                break
            line = line.strip()
            if not line:
                continue
            text, attachment = parse_attachment(line)
            attachments = (attachment,) if attachment is not None else ()
            await self.publish_inbound(self.chat_id, text, attachments=attachments)

    async def stop(self) -> None:
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def send(self, message: OutboundMessage) -> None:
        self.render(message)
        if message.metadata.get("terminated"):
            self._closed.set()

    def render(self, message: OutboundMessage) -> None:
        action = message.action
        if isinstance(action, StructuredMenu):
            body = Text()
            for index, button in enumerate(action.buttons, start=1):
                if index > 1:
                    body.append("\n")
                body.append(f"{index}. {button.title}  ")
                body.append(button.value, style="dim")
            self.console.print(Panel(body, title=action.text or action.title, expand=False))
        elif isinstance(action, MediaAttachment):
            self.console.print(Text.assemble(("📎 ", ""), (action.name or action.content_type, "cyan"), f" {action.url}"))
        elif isinstance(action, PromptText):
            self.console.print(Text.assemble(("HearForYou: ", "bold yellow"), action.text))
        else:
            self.console.print(Text(message.content))
