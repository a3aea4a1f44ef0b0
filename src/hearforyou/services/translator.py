"""Text translation service."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import requests
from loguru import logger

from hearforyou.errors import ServiceError, SubmissionRejected

API_VERSION = "3.0"


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    to: str


class TranslatorService:
    """Thin client for the Translator v3 `translate` operation."""

    def __init__(
        self,
        *,
        key: str | None,
        endpoint: str,
        region: str | None = None,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        self._key = key or ""
        self._endpoint = endpoint.rstrip("/")
        self._region = region
        self._timeout = timeout_seconds
        self._http = session or requests.Session()

    def translate(self, request: TranslationRequest) -> str:
        if not request.text.strip():
            raise SubmissionRejected("nothing to translate")
        if not self._key:
            raise SubmissionRejected("translator is not configured")

        headers = {
            "Ocp-Apim-Subscription-Key": self._key,
            "Content-type": "application/json",
            "X-ClientTraceId": str(uuid.uuid4()),
        }
        if self._region:
            headers["Ocp-Apim-Subscription-Region"] = self._region

        try:
            response = self._http.post(
                f"{self._endpoint}/translate",
                params={"api-version": API_VERSION, "to": request.to},
                headers=headers,
                json=[{"text": request.text}],
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ServiceError(f"translation request failed: {exc!s}") from exc
        if response.status_code == 400:
            raise SubmissionRejected("translation request rejected")
        if response.status_code >= 400:
            raise ServiceError(f"translation failed with HTTP {response.status_code}")

        try:
            body = response.json()
            translated = body[0]["translations"][0]["text"]
        except (ValueError, LookupError, TypeError) as exc:
            raise ServiceError("unexpected translation response") from exc
        logger.debug("translator.done to={} chars={}", request.to, len(translated))
        return str(translated)
