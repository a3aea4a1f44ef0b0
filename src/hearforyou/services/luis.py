"""LUIS prediction client."""

from __future__ import annotations

from typing import Any

import requests
from loguru import logger

from hearforyou.dialog.types import IntentMatch
from hearforyou.errors import ClassifierUnavailable

PREDICTION_PATH = "/luis/prediction/v3.0/apps/{app_id}/slots/production/predict"


class LuisClassifier:
    """Intent classifier backed by the LUIS v3 prediction endpoint."""

    def __init__(
        self,
        *,
        app_id: str | None,
        api_key: str | None,
        endpoint: str | None,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        self._app_id = app_id or ""
        self._api_key = api_key or ""
        self._endpoint = (endpoint or "").rstrip("/")
        self._timeout = timeout_seconds
        self._http = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self._app_id and self._api_key and self._endpoint)

    def query(self, text: str) -> IntentMatch:
        if not self.is_configured:
            raise ClassifierUnavailable("LUIS is not configured")

        url = self._endpoint + PREDICTION_PATH.format(app_id=self._app_id)
        try:
            response = self._http.get(
                url,
                params={"subscription-key": self._api_key, "query": text},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ClassifierUnavailable(f"LUIS query failed: {exc!s}") from exc

        match = parse_prediction(payload)
        logger.debug("luis.query label={} confidence={:.2f}", match.label, match.confidence)
        return match


def parse_prediction(payload: Any) -> IntentMatch:
    """Extract the top intent from a v3 prediction response."""
    prediction = payload.get("prediction") if isinstance(payload, dict) else None
    if not isinstance(prediction, dict):
        raise ClassifierUnavailable("LUIS response has no prediction")

    top = prediction.get("topIntent")
    intents = prediction.get("intents") or {}
    if not isinstance(top, str) or not isinstance(intents, dict):
        raise ClassifierUnavailable("LUIS response has no top intent")

    entry = intents.get(top)
    score = entry.get("score", 0.0) if isinstance(entry, dict) else 0.0
    confidence = min(max(float(score), 0.0), 1.0)
    return IntentMatch(label=top, confidence=confidence)
