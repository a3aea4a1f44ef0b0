"""Application runtime: session persistence, per-session ordering and job polling."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager

from apscheduler.schedulers.base import BaseScheduler
from loguru import logger

from hearforyou.app.poller import JobPoller
from hearforyou.app.store import SessionStore
from hearforyou.config import Settings
from hearforyou.dialog.engine import APOLOGY, DialogEngine
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.types import Attachment, JobHandle, JobStatus, PromptText, TurnResult
from hearforyou.errors import DialogError, StaleJobHandle
from hearforyou.logging_utils import session_context
from hearforyou.services.base import ExternalJobClient

Delivery = Callable[[str, TurnResult], None]


class DialogRuntime:
    """Runs engine turns against stored sessions.

    Turns for the same session key are serialized, whether they come from a
    channel or from the job poller thread. Results produced by job completions
    are pushed through the delivery callback set with `set_delivery`.
    """

    def __init__(
        self,
        settings: Settings,
        engine: DialogEngine,
        store: SessionStore,
        *,
        clients: Mapping[str, ExternalJobClient],
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.store = store
        self.poller = JobPoller(
            clients,
            self.handle_job_completion,
            interval_seconds=settings.poll_interval_seconds,
            timeout_seconds=settings.job_timeout_seconds,
            scheduler=scheduler,
        )
        self._deliver: Delivery | None = None
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def __enter__(self) -> DialogRuntime:
        self.poller.start()
        self.recover()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.poller.shutdown()

    def set_delivery(self, deliver: Delivery | None) -> None:
        self._deliver = deliver

    def sessions(self) -> list[ConversationSession]:
        return self.store.sessions()

    def recover(self) -> int:
        """Resume polling for every stored session that waits on a job."""
        count = 0
        for session in self.store.sessions():
            if session.pending_job is None:
                continue
            self.poller.watch(session.key, session.pending_job.handle, submitted_at=session.pending_job.submitted_at)
            count += 1
        if count:
            logger.info("runtime.recover pending_jobs={}", count)
        return count

    @contextmanager
    def _serialized(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with session_context(key), lock:
            yield

    def start_conversation(self, key: str) -> TurnResult:
        with self._serialized(key):
            previous = self.store.get(key)
            session = ConversationSession.new(key)
            try:
                result = self.engine.start(session)
            except Exception:
                logger.exception("runtime.start.error")
                return TurnResult(session=previous or session, actions=[PromptText(APOLOGY)])
            self._commit(previous, result)
            return result

    def handle_input(self, key: str, text: str | None, attachments: Sequence[Attachment] = ()) -> TurnResult:
        with self._serialized(key):
            previous = self.store.get(key)
            session = previous or ConversationSession.new(key)
            try:
                result = self.engine.handle_message(session, text, attachments)
            except DialogError as exc:
                logger.warning("runtime.input.rejected error={}", exc)
                return TurnResult(session=session)
            except Exception:
                logger.exception("runtime.input.error")
                return TurnResult(session=session, actions=[PromptText(APOLOGY)])
            self._commit(previous, result)
            return result

    def handle_job_completion(self, key: str, handle: JobHandle, outcome: JobStatus) -> TurnResult | None:
        """Resume `key` with a finished job outcome; stale outcomes are dropped."""
        with self._serialized(key):
            session = self.store.get(key)
            if session is None:
                logger.info("runtime.job.dropped reason=no_session service={} job_id={}", handle.service, handle.job_id)
                return None
            try:
                result = self.engine.handle_job_completion(session, handle, outcome)
            except StaleJobHandle as exc:
                logger.info("runtime.job.dropped reason=stale error={}", exc)
                return None
            except Exception:
                logger.exception("runtime.job.error service={} job_id={}", handle.service, handle.job_id)
                recovered = session.model_copy(deep=True)
                recovered.clear_pending()
                result = TurnResult(session=recovered, actions=[PromptText(APOLOGY)])
            self._commit(session, result)

        deliver = self._deliver
        if deliver is None:
            logger.warning("runtime.job.undelivered actions={}", len(result.actions))
        else:
            deliver(key, result)
        return result

    def _commit(self, previous: ConversationSession | None, result: TurnResult) -> None:
        session = result.session
        if previous is not None and previous.pending_job is not None:
            if session.pending_job is None or session.pending_job.handle != previous.pending_job.handle:
                self.poller.forget(session.key, previous.pending_job.handle)

        if session.terminated:
            self.store.delete(session.key)
            logger.info("runtime.session.closed")
            return

        self.store.save(session)
        if result.suspended is not None and session.pending_job is not None:
            self.poller.watch(session.key, result.suspended, submitted_at=session.pending_job.submitted_at)
