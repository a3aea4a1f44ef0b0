from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from hearforyou.app.bootstrap import build_clients, build_runtime, build_store
from hearforyou.app.store import InMemorySessionStore, JSONSessionStore
from hearforyou.config import Settings, load_settings
from hearforyou.dialog.root import CLASSIFIER_NOTE
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.types import PromptText
from hearforyou.logging_utils import configure_logging, current_session, session_context
from hearforyou.services import ImmediateJobClient, ReadApiClient


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HEARFORYOU_MAX_UNWIND_DEPTH", "5")
    monkeypatch.setenv("HEARFORYOU_INTENT_THRESHOLDS", '{"Traduzione": 0.9}')
    monkeypatch.setenv("HEARFORYOU_LUIS_APP_ID", "app")

    settings = load_settings(home=tmp_path, session_store="memory", log_level=None)

    assert settings.max_unwind_depth == 5
    assert settings.intent_thresholds == {"Traduzione": 0.9}
    assert settings.session_store == "memory"
    assert settings.log_level == "INFO"
    assert settings.resolve_home() == tmp_path.resolve()
    assert not settings.luis_configured


def test_build_store_follows_settings(tmp_path: Path) -> None:
    memory = build_store(Settings(_env_file=None, home=tmp_path, session_store="memory"))
    assert isinstance(memory, InMemorySessionStore)

    store = build_store(Settings(_env_file=None, home=tmp_path, session_store="json"))
    assert isinstance(store, JSONSessionStore)
    assert store.file_path == tmp_path.resolve() / "sessions.json"


def test_build_clients_covers_every_task_flow(settings: Settings) -> None:
    clients = build_clients(settings)

    assert set(clients) == {"translate", "speech_to_text", "text_to_speech", "ocr"}
    assert isinstance(clients["ocr"], ReadApiClient)
    for name in ("translate", "speech_to_text", "text_to_speech"):
        assert isinstance(clients[name], ImmediateJobClient)


def test_build_runtime_without_luis_uses_literal_matching(settings: Settings) -> None:
    runtime = build_runtime(settings)

    result = runtime.start_conversation("console:local")

    assert result.actions[0] == PromptText(CLASSIFIER_NOTE)
    assert runtime.handle_input("console:local", "menu").session.active_step_index == 2


def test_build_runtime_with_luis(settings: Settings) -> None:
    settings = settings.model_copy(
        update={"luis_app_id": "app", "luis_api_key": "key", "luis_endpoint": "https://luis.example"}
    )

    runtime = build_runtime(settings)

    assert PromptText(CLASSIFIER_NOTE) not in runtime.engine.start(ConversationSession.new("k")).actions


def test_session_context_tags_log_records() -> None:
    configure_logging(level="DEBUG")
    records: list[str] = []
    sink_id = logger.add(lambda message: records.append(message.record["extra"]["session"]), level="INFO")
    try:
        with session_context("console:abc"):
            assert current_session() == "console:abc"
            logger.info("inside")
        logger.info("outside")
    finally:
        logger.remove(sink_id)

    assert records == ["console:abc", "-"]
