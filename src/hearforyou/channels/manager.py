"""Channel manager."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from loguru import logger

from hearforyou.channels.base import BaseChannel
from hearforyou.channels.bus import MessageBus
from hearforyou.channels.events import InboundMessage, OutboundMessage, render_text, split_session_id
from hearforyou.dialog.types import TurnResult

if TYPE_CHECKING:
    from hearforyou.app.runtime import DialogRuntime


class ChannelManager:
    """Coordinate inbound routing and outbound dispatch for channels.

    Inbound messages of one session are processed strictly in arrival order;
    the blocking runtime call runs in a worker thread so other sessions keep
    flowing. Turn results pushed by the job poller thread are marshalled back
    onto the event loop before they reach the bus.
    """

    def __init__(self, bus: MessageBus, runtime: DialogRuntime) -> None:
        self.bus = bus
        self.runtime = runtime
        self._channels: dict[str, BaseChannel] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsub_inbound: Callable[[], None] | None = None
        self._unsub_outbound: Callable[[], None] | None = None

    def register(self, channel: BaseChannel) -> None:
        self._channels[channel.name] = channel

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._unsub_inbound = self.bus.on_inbound(self._handle_inbound)
        self._unsub_outbound = self.bus.on_outbound(self._handle_outbound)
        self.runtime.set_delivery(self._deliver_threadsafe)
        for channel in self._channels.values():
            self._tasks.append(asyncio.create_task(channel.start()))

    async def stop(self) -> None:
        self.runtime.set_delivery(None)
        for channel in self._channels.values():
            await channel.stop()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                continue
        self._tasks.clear()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._unsub_inbound is not None:
            self._unsub_inbound()
            self._unsub_inbound = None
        if self._unsub_outbound is not None:
            self._unsub_outbound()
            self._unsub_outbound = None
        self._loop = None

    async def drain(self) -> None:
        """Wait until every queued inbound message has been processed."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _track(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _handle_inbound(self, message: InboundMessage) -> None:
        self._track(self._process_inbound(message))

    async def _handle_outbound(self, message: OutboundMessage) -> None:
        await self._process_outbound(message)

    async def _process_inbound(self, message: InboundMessage) -> None:
        key = message.session_id
        lock = self._session_locks.setdefault(key, asyncio.Lock())
        async with lock:
            try:
                if message.kind == "conversation_start":
                    result = await asyncio.to_thread(self.runtime.start_conversation, key)
                else:
                    result = await asyncio.to_thread(
                        self.runtime.handle_input, key, message.content, message.attachments
                    )
            except Exception:
                logger.exception("channels.inbound.error session={}", key)
                return
            await self._publish(message.channel, message.chat_id, result)

    async def _publish(self, channel: str, chat_id: str, result: TurnResult) -> None:
        for action in result.actions:
            await self.bus.publish_outbound(
                OutboundMessage(
                    channel=channel,
                    chat_id=chat_id,
                    content=render_text(action),
                    action=action,
                    metadata={"session_id": f"{channel}:{chat_id}", "terminated": result.terminated},
                )
            )

    def _deliver_threadsafe(self, session_id: str, result: TurnResult) -> None:
        loop = self._loop
        if loop is None or not loop.is_running():
            logger.warning("channels.delivery.dropped session={} actions={}", session_id, len(result.actions))
            return
        channel, chat_id = split_session_id(session_id)
        loop.call_soon_threadsafe(lambda: self._track(self._publish(channel, chat_id, result)))

    async def _process_outbound(self, message: OutboundMessage) -> None:
        channel = self._channels.get(message.channel)
        if channel is None:
            logger.warning("channels.outbound.unknown channel={}", message.channel)
            return
        await channel.send(message)
