"""Application runtime package."""

from hearforyou.app.bootstrap import build_runtime
from hearforyou.app.runtime import DialogRuntime
from hearforyou.app.store import InMemorySessionStore, JSONSessionStore, SessionStore

__all__ = ["DialogRuntime", "InMemorySessionStore", "JSONSessionStore", "SessionStore", "build_runtime"]
