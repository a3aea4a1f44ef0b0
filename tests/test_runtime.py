from __future__ import annotations

import threading
import time

import pytest

from hearforyou.app.poller import poll_job_id
from hearforyou.app.runtime import DialogRuntime
from hearforyou.app.store import InMemorySessionStore
from hearforyou.dialog.engine import APOLOGY, FAREWELL
from hearforyou.dialog.root import GREETING, LOOP_PROMPT, MENU_PROMPT
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.types import FlowId, IntentMatch, JobHandle, JobStatus, PromptText, TurnResult


def _texts(result: TurnResult) -> list[str]:
    return [action.text for action in result.actions if isinstance(action, PromptText)]


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def runtime(settings, engine, store, clients, scheduler) -> DialogRuntime:
    return DialogRuntime(settings, engine, store, clients=clients, scheduler=scheduler)


def _suspend_translation(runtime: DialogRuntime, key: str = "console:local") -> TurnResult:
    for text in ("menu", "Traduci", "buongiorno"):
        runtime.handle_input(key, text)
    return runtime.handle_input(key, "inglese")


def test_turns_are_persisted(runtime: DialogRuntime, store: InMemorySessionStore) -> None:
    result = runtime.handle_input("console:local", "menu")

    assert _texts(result) == [MENU_PROMPT]
    saved = store.get("console:local")
    assert saved is not None
    assert saved.model_dump() == result.session.model_dump()


def test_start_conversation_resets_session(runtime: DialogRuntime, store: InMemorySessionStore) -> None:
    runtime.handle_input("console:local", "menu")

    result = runtime.start_conversation("console:local")

    assert _texts(result) == [GREETING]
    saved = store.get("console:local")
    assert saved is not None
    assert saved.active_step_index == 0


def test_job_completion_is_delivered(runtime: DialogRuntime, store, clients, scheduler) -> None:
    delivered: list[tuple[str, TurnResult]] = []
    runtime.set_delivery(lambda key, result: delivered.append((key, result)))

    suspended = _suspend_translation(runtime)
    assert suspended.suspended is not None
    assert poll_job_id("console:local", suspended.suspended) in scheduler.jobs

    clients["translate"].statuses[suspended.suspended.job_id] = JobStatus.done("good morning")
    scheduler.run_pending()

    assert [key for key, _ in delivered] == ["console:local"]
    assert _texts(delivered[0][1]) == ["Ecco la traduzione:\n\ngood morning", LOOP_PROMPT]
    saved = store.get("console:local")
    assert saved is not None
    assert saved.pending_job is None
    assert saved.active_flow_stack == [FlowId.ROOT]
    assert scheduler.jobs == {}


def test_stale_completion_is_dropped(runtime: DialogRuntime, store) -> None:
    delivered: list[TurnResult] = []
    runtime.set_delivery(lambda key, result: delivered.append(result))
    _suspend_translation(runtime)
    before = store.get("console:local")
    assert before is not None

    outcome = runtime.handle_job_completion(
        "console:local", JobHandle(service="translate", job_id="old"), JobStatus.done("x")
    )

    assert outcome is None
    assert delivered == []
    after = store.get("console:local")
    assert after is not None
    assert after.model_dump() == before.model_dump()


def test_completion_for_unknown_session_is_dropped(runtime: DialogRuntime) -> None:
    assert runtime.handle_job_completion("nobody", JobHandle(service="ocr", job_id="1"), JobStatus.done("")) is None


def test_exit_deletes_session_and_stops_polling(runtime: DialogRuntime, store, scheduler) -> None:
    _suspend_translation(runtime)
    assert scheduler.jobs

    result = runtime.handle_input("console:local", "Esci")

    assert _texts(result) == [FAREWELL]
    assert store.get("console:local") is None
    assert scheduler.jobs == {}


def test_recover_rearms_pending_jobs(runtime: DialogRuntime, store, scheduler) -> None:
    session = ConversationSession.new("console:restored")
    session.push(FlowId.OCR).step_index = 1
    session.suspend(JobHandle(service="ocr", job_id="op-9"))
    store.save(session)
    store.save(ConversationSession.new("console:idle"))

    with runtime:
        assert scheduler.running
        assert list(scheduler.jobs) == [poll_job_id("console:restored", JobHandle(service="ocr", job_id="op-9"))]
    assert not scheduler.running


def test_unexpected_errors_become_apology(runtime: DialogRuntime, classifier, store) -> None:
    def broken(text: str) -> IntentMatch:
        raise RuntimeError("classifier crashed")

    classifier.query = broken

    result = runtime.handle_input("console:local", "ciao")

    assert _texts(result) == [APOLOGY]
    assert store.get("console:local") is None


def test_same_session_turns_do_not_interleave(runtime: DialogRuntime, classifier) -> None:
    active = 0
    peak = 0
    guard = threading.Lock()
    original = classifier.query

    def slow_query(text: str) -> IntentMatch:
        nonlocal active, peak
        with guard:
            active += 1
            peak = max(peak, active)
        time.sleep(0.05)
        with guard:
            active -= 1
        return original(text)

    classifier.query = slow_query
    threads = [threading.Thread(target=runtime.handle_input, args=("console:local", "ciao")) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
