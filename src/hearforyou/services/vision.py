"""Computer Vision Read API client for text recognition."""

from __future__ import annotations

from typing import Any

import requests
from loguru import logger

from hearforyou.dialog.types import Attachment, JobHandle, JobStatus
from hearforyou.errors import JobPollError, SubmissionRejected

ANALYZE_PATH = "/vision/v3.2/read/analyze"
RESULT_PATH = "/vision/v3.2/read/analyzeResults/{operation_id}"

# Status strings returned by the Read API. Casing is significant.
STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"


class ReadApiClient:
    """Submit images to the asynchronous Read operation and poll its status."""

    service = "ocr"

    def __init__(
        self,
        *,
        key: str | None,
        endpoint: str | None,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        self._key = key or ""
        self._endpoint = (endpoint or "").rstrip("/")
        self._timeout = timeout_seconds
        self._http = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {"Ocp-Apim-Subscription-Key": self._key}

    def submit(self, payload: Any) -> JobHandle:
        url = payload.url if isinstance(payload, Attachment) else str(payload or "")
        if not url:
            raise SubmissionRejected("no image url to analyze")
        if not (self._key and self._endpoint):
            raise SubmissionRejected("Computer Vision is not configured")

        try:
            response = self._http.post(
                self._endpoint + ANALYZE_PATH,
                json={"url": url},
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SubmissionRejected(f"read submission failed: {exc!s}") from exc
        if response.status_code >= 400:
            raise SubmissionRejected(f"read submission rejected with HTTP {response.status_code}")

        location = response.headers.get("Operation-Location", "")
        # Operation id is the last path segment of the operation location.
        operation_id = location.rstrip("/").split("/")[-1]
        if not operation_id:
            raise SubmissionRejected("read submission returned no operation location")
        logger.info("vision.read.submitted operation_id={}", operation_id)
        return JobHandle(service=self.service, job_id=operation_id)

    def poll(self, handle: JobHandle) -> JobStatus:
        try:
            response = self._http.get(
                self._endpoint + RESULT_PATH.format(operation_id=handle.job_id),
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise JobPollError(f"read status unavailable: {exc!s}") from exc

        status = payload.get("status")
        if status == STATUS_SUCCEEDED:
            return JobStatus.done(extract_text(payload.get("analyzeResult") or {}))
        if status == STATUS_FAILED:
            return JobStatus.failed("text recognition failed")
        return JobStatus.pending()


def extract_text(analyze_result: dict[str, Any]) -> str:
    """Join recognized words line by line, across every page."""
    lines: list[str] = []
    for page in analyze_result.get("readResults") or []:
        for line in page.get("lines") or []:
            words = line.get("words") or []
            if words:
                lines.append(" ".join(word.get("text", "") for word in words))
            elif line.get("text"):
                lines.append(line["text"])
    return "\n".join(lines)
