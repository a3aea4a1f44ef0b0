from __future__ import annotations

from pathlib import Path

from hearforyou.app.store import InMemorySessionStore, JSONSessionStore
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.types import FlowId, JobHandle


def _suspended_session(key: str = "console:local") -> ConversationSession:
    session = ConversationSession.new(key)
    session.active_frame.step_index = 4
    frame = session.push(FlowId.TRANSLATE)
    frame.step_index = 2
    frame.values.update({"text": "buongiorno", "to": "en"})
    session.suspend(JobHandle(service="translate", job_id="abc"))
    return session


def test_json_store_survives_restart(tmp_path: Path) -> None:
    path = tmp_path / "state" / "sessions.json"
    original = _suspended_session()
    JSONSessionStore(path).save(original)

    reloaded = JSONSessionStore(path).get(original.key)

    assert reloaded is not None
    assert reloaded.model_dump() == original.model_dump()
    assert reloaded.active_flow is FlowId.TRANSLATE
    assert reloaded.pending_job is not None
    assert reloaded.pending_job.handle == JobHandle(service="translate", job_id="abc")


def test_json_store_delete_and_list(tmp_path: Path) -> None:
    store = JSONSessionStore(tmp_path / "sessions.json")
    store.save(ConversationSession.new("a"))
    store.save(ConversationSession.new("b"))

    store.delete("a")
    store.delete("missing")

    assert [session.key for session in store.sessions()] == ["b"]
    assert [session.key for session in JSONSessionStore(tmp_path / "sessions.json").sessions()] == ["b"]


def test_json_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")

    store = JSONSessionStore(path)

    assert store.sessions() == []
    assert store.get("anything") is None


def test_memory_store_returns_copies() -> None:
    store = InMemorySessionStore()
    session = ConversationSession.new("k")
    store.save(session)

    loaded = store.get("k")
    assert loaded is not None
    loaded.push(FlowId.OCR)

    stored = store.get("k")
    assert stored is not None
    assert stored.depth == 1
