"""Poll pending external jobs and report their completion."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from contextlib import suppress
from datetime import UTC, datetime, timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from loguru import logger

from hearforyou.dialog.types import JobHandle, JobStatus
from hearforyou.errors import ServiceError
from hearforyou.logging_utils import session_context
from hearforyou.services.base import ExternalJobClient

CompletionCallback = Callable[[str, JobHandle, JobStatus], object]


def poll_job_id(session_key: str, handle: JobHandle) -> str:
    return f"poll:{session_key}:{handle.service}:{handle.job_id}"


class JobPoller:
    """Owns polling cadence for every suspended session.

    One interval job is scheduled per pending handle. When a poll reports
    `done` or `failed`, or the job outlives the timeout, the interval job is
    removed and the completion callback runs on the scheduler thread.
    """

    def __init__(
        self,
        clients: Mapping[str, ExternalJobClient],
        on_complete: CompletionCallback,
        *,
        interval_seconds: float = 1.0,
        timeout_seconds: float = 120.0,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self._clients = dict(clients)
        self._on_complete = on_complete
        self._interval = interval_seconds
        self._timeout = timedelta(seconds=timeout_seconds)
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            with suppress(Exception):
                self.scheduler.shutdown(wait=False)

    def watch(self, session_key: str, handle: JobHandle, *, submitted_at: datetime | None = None) -> None:
        submitted = submitted_at or datetime.now(UTC)
        self.scheduler.add_job(
            self.poll_once,
            trigger="interval",
            seconds=self._interval,
            args=[session_key, handle, submitted],
            id=poll_job_id(session_key, handle),
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            next_run_time=datetime.now(UTC),
        )
        logger.info("poller.watch session={} service={} job_id={}", session_key, handle.service, handle.job_id)

    def forget(self, session_key: str, handle: JobHandle) -> None:
        with suppress(JobLookupError):
            self.scheduler.remove_job(poll_job_id(session_key, handle))

    def poll_once(self, session_key: str, handle: JobHandle, submitted_at: datetime) -> JobStatus:
        with session_context(session_key):
            status = self._poll(handle, submitted_at)
            if not status.finished:
                return status

            self.forget(session_key, handle)
            logger.info("poller.finished service={} job_id={} state={}", handle.service, handle.job_id, status.state)
            try:
                self._on_complete(session_key, handle, status)
            except Exception:
                logger.exception("poller.completion.error service={} job_id={}", handle.service, handle.job_id)
            return status

    def _poll(self, handle: JobHandle, submitted_at: datetime) -> JobStatus:
        client = self._clients.get(handle.service)
        if client is None:
            logger.error("poller.unknown_service service={}", handle.service)
            return JobStatus.failed(f"unknown service {handle.service}")

        try:
            status = client.poll(handle)
        except ServiceError as exc:
            logger.warning("poller.poll.error service={} job_id={} error={}", handle.service, handle.job_id, exc)
            status = JobStatus.pending()

        if not status.finished and datetime.now(UTC) - submitted_at > self._timeout:
            logger.warning("poller.timeout service={} job_id={}", handle.service, handle.job_id)
            return JobStatus.failed("job timed out")
        return status
