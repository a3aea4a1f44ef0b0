from __future__ import annotations

import pytest

from hearforyou.dialog.matching import MAIN_MENU_OPTIONS, MenuOption, build_menu_table, resolve_option
from hearforyou.dialog.types import FlowId, IntentMatch
from hearforyou.errors import ConfigurationError


def _no_lookup() -> IntentMatch | None:
    raise AssertionError("classifier must not be consulted")


def test_literal_match_skips_classifier() -> None:
    selected = resolve_option(MAIN_MENU_OPTIONS, "testo da immagine", _no_lookup)

    assert selected is not None
    assert selected.target is FlowId.OCR


def test_literal_is_case_sensitive() -> None:
    assert resolve_option(MAIN_MENU_OPTIONS, "traduci", lambda: None) is None


def test_literal_wins_over_intent_of_another_option() -> None:
    options = (
        MenuOption(name="a", commands=("alpha",), intent="A", threshold=0.5),
        MenuOption(name="b", commands=("beta",), intent="B", threshold=0.5),
    )

    selected = resolve_option(options, "beta", lambda: IntentMatch(label="A", confidence=0.99))

    assert selected is not None
    assert selected.name == "b"


def test_intent_threshold_is_inclusive() -> None:
    option = MenuOption(name="a", commands=("alpha",), intent="A", threshold=0.7)

    assert resolve_option((option,), "x", lambda: IntentMatch(label="A", confidence=0.7)) is option
    assert resolve_option((option,), "x", lambda: IntentMatch(label="A", confidence=0.6999)) is None
    assert resolve_option((option,), "x", lambda: IntentMatch(label="B", confidence=1.0)) is None
    assert resolve_option((option,), "x", lambda: None) is None


def test_empty_text_never_queries_classifier() -> None:
    assert resolve_option(MAIN_MENU_OPTIONS, "", _no_lookup) is None
    assert resolve_option(MAIN_MENU_OPTIONS, None, _no_lookup) is None


def test_menu_table_threshold_overrides() -> None:
    table = build_menu_table({"Traduzione": 0.9, "StopBot": 0.5})

    translate = next(option for option in table.options if option.target is FlowId.TRANSLATE)
    assert translate.threshold == 0.9
    assert table.exit.threshold == 0.5
    assert table.menu.threshold == 0.8


def test_menu_table_rejects_out_of_range_threshold() -> None:
    with pytest.raises(ConfigurationError):
        build_menu_table({"Menu": 1.5})


def test_intent_match_rejects_invalid_confidence() -> None:
    with pytest.raises(ValueError):
        IntentMatch(label="Menu", confidence=1.2)
