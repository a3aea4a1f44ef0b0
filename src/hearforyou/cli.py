"""Command line entry points."""

from __future__ import annotations

import asyncio
import queue
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from hearforyou.app import DialogRuntime, build_runtime
from hearforyou.channels import ChannelManager, ConsoleChannel, MessageBus, render_text
from hearforyou.channels.console import build_attachment
from hearforyou.config import load_settings
from hearforyou.dialog.types import TurnResult
from hearforyou.logging_utils import LogProfile, configure_logging

app = typer.Typer(
    name="hearforyou",
    help="Conversational assistant for translation, speech and OCR tasks.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _load_runtime(home: Path | None, *, profile: LogProfile = "default") -> DialogRuntime:
    settings = load_settings(home=home)
    configure_logging(profile=profile, level=settings.log_level)
    return build_runtime(settings)


async def _run_chat(runtime: DialogRuntime, chat_id: str) -> None:
    bus = MessageBus()
    manager = ChannelManager(bus, runtime)
    channel = ConsoleChannel(bus, chat_id=chat_id)
    manager.register(channel)
    await manager.start()
    try:
        await channel.wait_closed()
        await manager.drain()
    finally:
        await manager.stop()


@app.command()
def chat(
    chat_id: str = typer.Option("local", "--chat-id", help="Conversation id"),
    home: Path | None = typer.Option(None, "--home", help="State directory"),  # noqa: B008
) -> None:
    """Talk to the assistant in the terminal."""

    runtime = _load_runtime(home, profile="chat")
    with runtime:
        try:
            asyncio.run(_run_chat(runtime, chat_id))
        except KeyboardInterrupt:
            typer.echo("Interrupted.")


def _echo_actions(result: TurnResult) -> None:
    for action in result.actions:
        typer.echo(render_text(action))


@app.command()
def send(
    message: str = typer.Argument("", help="Message text"),
    chat_id: str = typer.Option("local", "--chat-id", help="Conversation id"),
    attach: list[str] | None = typer.Option(None, "--attach", "-a", help="Attachment URL or path"),  # noqa: B008
    home: Path | None = typer.Option(None, "--home", help="State directory"),  # noqa: B008
) -> None:
    """Send one message and print the replies, waiting for a started job to finish."""

    runtime = _load_runtime(home)
    session_key = f"cli:{chat_id}"
    delivered: queue.Queue[TurnResult] = queue.Queue()

    def deliver(key: str, result: TurnResult) -> None:
        if key == session_key:
            delivered.put(result)

    runtime.set_delivery(deliver)
    attachments = tuple(build_attachment(target) for target in attach or ())

    with runtime:
        result = runtime.handle_input(session_key, message, attachments)
        _echo_actions(result)
        # Job completions resume the flow on the poller thread.
        while result.suspended is not None:
            timeout = runtime.settings.job_timeout_seconds + runtime.settings.poll_interval_seconds * 2
            try:
                result = delivered.get(timeout=timeout)
            except queue.Empty:
                typer.echo("No reply received before the job timeout.", err=True)
                raise typer.Exit(1) from None
            _echo_actions(result)


@app.command()
def sessions(
    home: Path | None = typer.Option(None, "--home", help="State directory"),  # noqa: B008
) -> None:
    """List stored conversations."""

    runtime = _load_runtime(home)
    stored = runtime.sessions()
    if not stored:
        typer.echo("(no sessions)")
        return

    table = Table("Session", "Flow stack", "Step", "Pending job", "Updated")
    for session in sorted(stored, key=lambda item: item.key):
        frame = session.active_frame
        flow = runtime.engine.flow(frame.flow)
        pending = session.pending_job
        table.add_row(
            session.key,
            " > ".join(session.active_flow_stack),
            flow.step_name(frame.step_index),
            f"{pending.handle.service}:{pending.handle.job_id}" if pending else "-",
            session.updated_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    Console().print(table)
