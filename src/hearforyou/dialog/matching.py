"""Command literal and intent matching."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace

from hearforyou.dialog.types import FlowId, IntentMatch
from hearforyou.errors import ConfigurationError

IntentLookup = Callable[[], IntentMatch | None]


@dataclass(frozen=True)
class MenuOption:
    """One transition reachable by literal command or by intent."""

    name: str
    commands: tuple[str, ...]
    intent: str | None
    threshold: float
    target: FlowId | None = None
    title: str = ""

    def matches_literal(self, text: str | None) -> bool:
        return text is not None and text in self.commands

    def matches_intent(self, match: IntentMatch | None) -> bool:
        if match is None or self.intent is None:
            return False
        return match.label == self.intent and match.confidence >= self.threshold


def resolve_option(
    options: Sequence[MenuOption],
    text: str | None,
    lookup_intent: IntentLookup,
) -> MenuOption | None:
    """Return the first option satisfied by `text`.

    Literal commands are compared first and never touch the classifier; the
    intent is only looked up when no literal matched.
    """
    for option in options:
        if option.matches_literal(text):
            return option
    if not text or not any(option.intent for option in options):
        return None
    match = lookup_intent()
    for option in options:
        if option.matches_intent(match):
            return option
    return None


@dataclass(frozen=True)
class MenuTable:
    """Read-only routing table shared by every session."""

    exit: MenuOption
    menu: MenuOption
    options: tuple[MenuOption, ...]


EXIT_OPTION = MenuOption(name="exit", commands=("Esci",), intent="StopBot", threshold=0.7)
MENU_OPTION = MenuOption(name="menu", commands=("menu",), intent="Menu", threshold=0.8)

MAIN_MENU_OPTIONS: tuple[MenuOption, ...] = (
    MenuOption(
        name="translate",
        commands=("Traduci",),
        intent="Traduzione",
        threshold=0.7,
        target=FlowId.TRANSLATE,
        title="🌏Traduci un testo in altra lingua",
    ),
    MenuOption(
        name="speech_to_text",
        commands=("convertimi una registrazione in un testo", "Tradurre un file audio in testuale"),
        intent="AudioTesto",
        threshold=0.7,
        target=FlowId.SPEECH_TO_TEXT,
        title="📄Genera un file testuale a partire da un file audio",
    ),
    MenuOption(
        name="text_to_speech",
        commands=("generami un audio da un testo", "Tradurre un file testuale in audio"),
        intent="TestoAudio",
        threshold=0.7,
        target=FlowId.TEXT_TO_SPEECH,
        title="🔊Genera un file audio a partire da un file testuale",
    ),
    MenuOption(
        name="ocr",
        commands=("testo da immagine", "Prendere testo da immagine"),
        intent="TestoDaImmagine",
        threshold=0.7,
        target=FlowId.OCR,
        title="🖼Ricava il testo da un immagine",
    ),
)


def _with_threshold(option: MenuOption, thresholds: Mapping[str, float]) -> MenuOption:
    if option.intent is None or option.intent not in thresholds:
        return option
    value = float(thresholds[option.intent])
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"threshold for {option.intent} must be within [0, 1], got {value}")
    return replace(option, threshold=value)


def build_menu_table(thresholds: Mapping[str, float] | None = None) -> MenuTable:
    """Build the routing table, applying per-intent threshold overrides."""
    overrides = thresholds or {}
    return MenuTable(
        exit=_with_threshold(EXIT_OPTION, overrides),
        menu=_with_threshold(MENU_OPTION, overrides),
        options=tuple(_with_threshold(option, overrides) for option in MAIN_MENU_OPTIONS),
    )
