from __future__ import annotations

import pytest

from hearforyou.dialog.engine import DialogEngine
from hearforyou.dialog.root import LOOP_PROMPT
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.subflows import JOB_FAILED, resolve_language
from hearforyou.dialog.types import (
    Attachment,
    FlowId,
    JobStatus,
    MediaAttachment,
    PromptText,
    TurnResult,
)


def _texts(result: TurnResult) -> list[str]:
    return [action.text for action in result.actions if isinstance(action, PromptText)]


def _enter(engine: DialogEngine, option: str) -> ConversationSession:
    session = engine.handle_message(ConversationSession.new("t:1"), "menu").session
    return engine.handle_message(session, option).session


@pytest.mark.parametrize(
    ("text", "code"),
    [
        ("inglese", "en"),
        ("  Francese ", "fr"),
        ("de", "de"),
        ("zh-hans", "zh-Hans"),
        ("klingon", None),
        ("", None),
        (None, None),
    ],
)
def test_resolve_language(text: str | None, code: str | None) -> None:
    assert resolve_language(text) == code


def test_translate_asks_text_again_when_empty(engine: DialogEngine) -> None:
    session = _enter(engine, "Traduci")

    result = engine.handle_message(session, "   ")

    assert _texts(result) == ["Non ho ricevuto nessun testo da tradurre.", "Scrivi il testo che vuoi tradurre:"]
    assert result.session.active_flow is FlowId.TRANSLATE
    assert result.session.active_step_index == 0


def test_translate_unknown_language_reprompts(engine: DialogEngine, clients) -> None:
    session = _enter(engine, "Traduci")
    session = engine.handle_message(session, "buongiorno").session

    result = engine.handle_message(session, "klingon")

    assert _texts(result)[0] == "Non conosco questa lingua⛔"
    assert _texts(result)[1].startswith("In quale lingua")
    assert result.session.active_frame.values["text"] == "buongiorno"
    assert result.suspended is None
    assert clients["translate"].submitted == []

    result = engine.handle_message(result.session, "spagnolo")
    assert result.suspended is not None
    assert clients["translate"].submitted[0].to == "es"


def test_speech_to_text_transcribes_attachment(engine: DialogEngine, clients) -> None:
    session = _enter(engine, "convertimi una registrazione in un testo")
    assert session.active_flow is FlowId.SPEECH_TO_TEXT

    audio = Attachment(url="https://example.com/voice.ogg", content_type="audio/ogg", name="voice.ogg")
    suspended = engine.handle_message(session, "", [audio])
    assert clients["speech_to_text"].submitted == [audio]

    result = engine.handle_job_completion(suspended.session, suspended.suspended, JobStatus.done("ciao a tutti"))

    assert _texts(result) == ["Ecco il testo trascritto:\n\nciao a tutti", LOOP_PROMPT]
    assert result.session.depth == 1


def test_speech_to_text_without_audio_reprompts(engine: DialogEngine) -> None:
    session = _enter(engine, "convertimi una registrazione in un testo")

    result = engine.handle_message(session, "non ho file")

    assert _texts(result) == [
        "Non ho ricevuto nessun file audio.",
        "Inserisci un file audio (.wav o .ogg) da trascrivere:",
    ]
    assert result.session.active_flow is FlowId.SPEECH_TO_TEXT


def test_text_to_speech_returns_audio(engine: DialogEngine, clients) -> None:
    session = _enter(engine, "generami un audio da un testo")

    suspended = engine.handle_message(session, "ciao mondo")
    assert clients["text_to_speech"].submitted == ["ciao mondo"]

    result = engine.handle_job_completion(suspended.session, suspended.suspended, JobStatus.done("file:///tmp/a.mp3"))

    assert result.actions[0] == MediaAttachment(url="file:///tmp/a.mp3", content_type="audio/mpeg", name="audio.mp3")
    assert _texts(result) == ["Ecco il tuo file audio!🔊", LOOP_PROMPT]


def test_ocr_accepts_url_text(engine: DialogEngine, clients) -> None:
    session = _enter(engine, "testo da immagine")

    suspended = engine.handle_message(session, "https://example.com/sign.png")
    assert clients["ocr"].submitted == [Attachment(url="https://example.com/sign.png")]

    result = engine.handle_job_completion(suspended.session, suspended.suspended, JobStatus.done("STOP\nVIA ROMA"))
    assert _texts(result) == ["STOP\nVIA ROMA", LOOP_PROMPT]


def test_ocr_with_no_text_found(engine: DialogEngine) -> None:
    session = _enter(engine, "testo da immagine")
    suspended = engine.handle_message(session, "", [Attachment(url="https://example.com/blank.png")])

    result = engine.handle_job_completion(suspended.session, suspended.suspended, JobStatus.done(""))

    assert _texts(result) == ["Non ho trovato nessun testo nell'immagine.", LOOP_PROMPT]


def test_ocr_failure_reports_and_returns_to_root(engine: DialogEngine) -> None:
    session = _enter(engine, "testo da immagine")
    suspended = engine.handle_message(session, "https://example.com/sign.png")

    result = engine.handle_job_completion(suspended.session, suspended.suspended, JobStatus.failed("bad image"))

    assert _texts(result) == [JOB_FAILED, LOOP_PROMPT]
    assert result.session.active_flow_stack == [FlowId.ROOT]
