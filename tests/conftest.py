from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from apscheduler.jobstores.base import JobLookupError

from hearforyou.app.bootstrap import build_engine
from hearforyou.config import Settings
from hearforyou.dialog.engine import DialogEngine
from hearforyou.dialog.types import FlowId, IntentMatch, JobHandle, JobStatus
from hearforyou.errors import ClassifierUnavailable, SubmissionRejected


class FakeClassifier:
    """Returns canned intents per exact text; everything else is the `None` intent."""

    is_configured = True

    def __init__(self, matches: dict[str, IntentMatch] | None = None, *, available: bool = True) -> None:
        self.matches = dict(matches or {})
        self.available = available
        self.calls: list[str] = []

    def query(self, text: str) -> IntentMatch:
        self.calls.append(text)
        if not self.available:
            raise ClassifierUnavailable("classifier offline")
        return self.matches.get(text, IntentMatch(label="None", confidence=0.0))


class FakeJobClient:
    def __init__(self, service: str, *, outcome: JobStatus | None = None) -> None:
        self.service = service
        self.outcome = outcome
        self.reject = False
        self.submitted: list[Any] = []
        self.statuses: dict[str, JobStatus] = {}
        self.polls: list[JobHandle] = []

    def submit(self, payload: Any) -> JobHandle:
        if self.reject:
            raise SubmissionRejected("payload rejected")
        self.submitted.append(payload)
        return JobHandle(service=self.service, job_id=f"{self.service}-{len(self.submitted)}")

    def poll(self, handle: JobHandle) -> JobStatus:
        self.polls.append(handle)
        if self.outcome is not None:
            return self.outcome
        return self.statuses.get(handle.job_id, JobStatus.pending())


class FakeScheduler:
    """Records interval jobs; tests fire them explicitly with `run_pending`."""

    def __init__(self) -> None:
        self.running = False
        self.jobs: dict[str, tuple[Callable[..., Any], list[Any], dict[str, Any]]] = {}

    def start(self) -> None:
        self.running = True

    def shutdown(self, wait: bool = True) -> None:
        self.running = False

    def add_job(self, func: Callable[..., Any], trigger: str, *, args: list[Any], id: str, **kwargs: Any) -> None:
        self.jobs[id] = (func, list(args), {"trigger": trigger, **kwargs})

    def remove_job(self, job_id: str) -> None:
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run_pending(self) -> list[Any]:
        return [func(*args) for func, args, _ in list(self.jobs.values())]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, home=tmp_path, session_store="memory")


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def clients() -> dict[str, FakeJobClient]:
    return {flow_id.value: FakeJobClient(flow_id.value) for flow_id in FlowId if flow_id is not FlowId.ROOT}


@pytest.fixture
def engine(settings: Settings, classifier: FakeClassifier, clients: dict[str, FakeJobClient]) -> DialogEngine:
    return build_engine(settings, classifier, clients)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
