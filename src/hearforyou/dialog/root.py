"""Top-level menu flow."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from hearforyou.dialog.flow import Flow, Step, StepContext
from hearforyou.dialog.matching import MenuTable, resolve_option
from hearforyou.dialog.types import (
    Advance,
    AwaitInput,
    EnterSubFlow,
    FlowId,
    MenuButton,
    StepResult,
    StructuredMenu,
)

GREETING = 'Come posso aiutarti?\n\nSe vuoi sapere cosa posso fare per te scrivi "menu"'
CLASSIFIER_NOTE = (
    "NOTE: LUIS is not configured. To enable all capabilities, set HEARFORYOU_LUIS_APP_ID, "
    "HEARFORYOU_LUIS_API_KEY and HEARFORYOU_LUIS_ENDPOINT."
)
UNKNOWN_COMMAND = "Sembra che tu abbia digitato un comando che non conosco!⛔ Riprova."
MENU_TITLE = "HearForYouBot menu"
MENU_PROMPT = "Seleziona un'opzione dal menu per proseguire!"
LOOP_PROMPT = 'Posso fare altro per te? Scrivi "menu" per tornare al menu principale.'


class RootFlow(Flow):
    """Greeting, main menu and dispatch into the task flows."""

    flow_id = FlowId.ROOT
    reentry_step = "menu"

    def __init__(self, table: MenuTable, *, classifier_configured: bool = True) -> None:
        self._table = table
        self._classifier_configured = classifier_configured
        super().__init__()

    def build_steps(self) -> Sequence[Step]:
        return (self.intro, self.menu, self.main_menu, self.option, self.loop)

    def intro(self, ctx: StepContext) -> StepResult:
        if not self._classifier_configured:
            ctx.say(CLASSIFIER_NOTE)
        return AwaitInput(GREETING)

    def menu(self, ctx: StepContext) -> StepResult:
        if resolve_option((self._table.menu,), ctx.text, ctx.intent) is not None:
            return Advance()
        ctx.say(UNKNOWN_COMMAND)
        return Advance(target="intro")

    def main_menu(self, ctx: StepContext) -> StepResult:
        buttons = tuple(MenuButton(title=option.title, value=option.commands[0]) for option in self._table.options)
        ctx.emit(StructuredMenu(title="", text=MENU_TITLE, buttons=buttons))
        return AwaitInput(MENU_PROMPT)

    def option(self, ctx: StepContext) -> StepResult:
        selected = resolve_option(self._table.options, ctx.text, ctx.intent)
        if selected is None or selected.target is None:
            ctx.say(UNKNOWN_COMMAND)
            return Advance(target="intro")
        logger.info("dialog.root.option selected={} target={}", selected.name, selected.target)
        return EnterSubFlow(selected.target)

    def loop(self, ctx: StepContext) -> StepResult:
        if ctx.returned is not None:
            logger.debug("dialog.root.returned value={!r}", ctx.returned)
        return AwaitInput(LOOP_PROMPT)
