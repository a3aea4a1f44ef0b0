"""Contracts for the external services the dialog depends on."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from hearforyou.dialog.types import IntentMatch, JobHandle, JobStatus
from hearforyou.errors import ClassifierUnavailable, ServiceError, SubmissionRejected


@runtime_checkable
class IntentClassifier(Protocol):
    """Black box returning the top intent label for a piece of text."""

    @property
    def is_configured(self) -> bool: ...

    def query(self, text: str) -> IntentMatch: ...


@runtime_checkable
class ExternalJobClient(Protocol):
    """Long-running work: submit once, then poll until done or failed."""

    service: str

    def submit(self, payload: Any) -> JobHandle: ...

    def poll(self, handle: JobHandle) -> JobStatus: ...


class UnconfiguredClassifier:
    """Classifier used when no backend is configured; literal commands still work."""

    is_configured = False

    def query(self, text: str) -> IntentMatch:
        raise ClassifierUnavailable("intent classifier is not configured")


class ImmediateJobClient:
    """Expose a synchronous service call through the submit/poll contract.

    The call runs at submit time and its outcome is parked until the first poll
    collects it, so synchronous services resume flows exactly like
    asynchronous jobs do.
    """

    def __init__(self, service: str, call: Callable[[Any], Any]) -> None:
        self.service = service
        self._call = call
        self._lock = threading.Lock()
        self._outcomes: dict[str, JobStatus] = {}

    def submit(self, payload: Any) -> JobHandle:
        try:
            result = self._call(payload)
        except SubmissionRejected:
            raise
        except ServiceError as exc:
            logger.warning("service.{}.call.failed error={}", self.service, exc)
            status = JobStatus.failed(str(exc))
        else:
            status = JobStatus.done(result)

        handle = JobHandle(service=self.service, job_id=uuid.uuid4().hex)
        with self._lock:
            self._outcomes[handle.job_id] = status
        return handle

    def poll(self, handle: JobHandle) -> JobStatus:
        with self._lock:
            status = self._outcomes.pop(handle.job_id, None)
        if status is None:
            return JobStatus.failed("job outcome is no longer available")
        return status
