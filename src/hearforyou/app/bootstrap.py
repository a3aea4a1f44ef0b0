"""Runtime bootstrap helpers."""

from __future__ import annotations

from collections.abc import Mapping

import requests
from apscheduler.schedulers.base import BaseScheduler
from loguru import logger

from hearforyou.app.runtime import DialogRuntime
from hearforyou.app.store import InMemorySessionStore, JSONSessionStore, SessionStore
from hearforyou.config import Settings, load_settings
from hearforyou.dialog.engine import DialogEngine
from hearforyou.dialog.matching import build_menu_table
from hearforyou.dialog.root import RootFlow
from hearforyou.dialog.subflows import OcrFlow, SpeechToTextFlow, TextToSpeechFlow, TranslateFlow
from hearforyou.dialog.types import FlowId
from hearforyou.services import (
    ExternalJobClient,
    ImmediateJobClient,
    IntentClassifier,
    LuisClassifier,
    ReadApiClient,
    SpeechService,
    TranslatorService,
    UnconfiguredClassifier,
)


def build_store(settings: Settings) -> SessionStore:
    if settings.session_store == "memory":
        return InMemorySessionStore()
    return JSONSessionStore(settings.resolve_home() / "sessions.json")


def build_classifier(settings: Settings, http: requests.Session | None = None) -> IntentClassifier:
    if not settings.luis_configured:
        logger.warning("LUIS is not configured; only literal commands will be recognized")
        return UnconfiguredClassifier()
    return LuisClassifier(
        app_id=settings.luis_app_id,
        api_key=settings.luis_api_key,
        endpoint=settings.luis_endpoint,
        timeout_seconds=settings.request_timeout_seconds,
        session=http,
    )


def build_clients(settings: Settings, http: requests.Session | None = None) -> dict[str, ExternalJobClient]:
    """Create one job client per task flow, keyed by service name."""
    timeout = settings.request_timeout_seconds
    translator = TranslatorService(
        key=settings.translator_key,
        endpoint=settings.translator_endpoint,
        region=settings.translator_region,
        timeout_seconds=timeout,
        session=http,
    )
    speech = SpeechService(
        key=settings.speech_key,
        region=settings.speech_region,
        language=settings.speech_language,
        voice=settings.speech_voice,
        media_dir=settings.resolve_home() / "media",
        timeout_seconds=timeout,
        session=http,
    )
    clients: list[ExternalJobClient] = [
        ImmediateJobClient(FlowId.TRANSLATE.value, translator.translate),
        ImmediateJobClient(FlowId.SPEECH_TO_TEXT.value, speech.transcribe),
        ImmediateJobClient(FlowId.TEXT_TO_SPEECH.value, speech.synthesize),
        ReadApiClient(key=settings.vision_key, endpoint=settings.vision_endpoint, timeout_seconds=timeout, session=http),
    ]
    return {client.service: client for client in clients}


def build_engine(
    settings: Settings,
    classifier: IntentClassifier,
    clients: Mapping[str, ExternalJobClient],
) -> DialogEngine:
    table = build_menu_table(settings.intent_thresholds)
    flows = [
        RootFlow(table, classifier_configured=classifier.is_configured),
        TranslateFlow(clients[FlowId.TRANSLATE.value]),
        SpeechToTextFlow(clients[FlowId.SPEECH_TO_TEXT.value]),
        TextToSpeechFlow(clients[FlowId.TEXT_TO_SPEECH.value]),
        OcrFlow(clients[FlowId.OCR.value]),
    ]
    return DialogEngine(
        {flow.flow_id: flow for flow in flows},
        table,
        classifier,
        max_unwind_depth=settings.max_unwind_depth,
    )


def build_runtime(
    settings: Settings | None = None,
    *,
    store: SessionStore | None = None,
    scheduler: BaseScheduler | None = None,
) -> DialogRuntime:
    """Build the dialog runtime from settings and the environment."""

    settings = settings or load_settings()
    http = requests.Session()
    classifier = build_classifier(settings, http)
    clients = build_clients(settings, http)
    engine = build_engine(settings, classifier, clients)
    return DialogRuntime(
        settings,
        engine,
        store or build_store(settings),
        clients=clients,
        scheduler=scheduler,
    )
