"""Speech-to-text and text-to-speech services."""

from __future__ import annotations

import uuid
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname
from xml.sax.saxutils import escape

import requests
from loguru import logger

from hearforyou.dialog.types import Attachment
from hearforyou.errors import ServiceError, SubmissionRejected

STT_URL = "https://{region}.stt.speech.microsoft.com/speech/recognition/conversation/cognitiveservices/v1"
TTS_URL = "https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"
TTS_OUTPUT_FORMAT = "audio-16khz-32kbitrate-mono-mp3"
MAX_AUDIO_BYTES = 10_000_000
SUPPORTED_AUDIO_SUFFIXES = (".wav", ".ogg")


class SpeechService:
    """Short-audio recognition and neural voice synthesis over REST."""

    def __init__(
        self,
        *,
        key: str | None,
        region: str | None,
        language: str,
        voice: str,
        media_dir: Path,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        self._key = key or ""
        self._region = region or ""
        self._language = language
        self._voice = voice
        self._media_dir = media_dir
        self._timeout = timeout_seconds
        self._http = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self._key and self._region)

    def transcribe(self, attachment: Attachment) -> str:
        if not self.is_configured:
            raise SubmissionRejected("speech service is not configured")
        content_type = _audio_content_type(attachment)
        audio = self._download(attachment.url)

        try:
            response = self._http.post(
                STT_URL.format(region=self._region),
                params={"language": self._language},
                headers={"Ocp-Apim-Subscription-Key": self._key, "Content-Type": content_type},
                data=audio,
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ServiceError(f"speech recognition failed: {exc!s}") from exc

        status = body.get("RecognitionStatus")
        if status != "Success":
            raise ServiceError(f"speech recognition returned {status}")
        return str(body.get("DisplayText", ""))

    def synthesize(self, text: str) -> str:
        """Render `text` to an mp3 file and return its URI."""
        if not text.strip():
            raise SubmissionRejected("nothing to synthesize")
        if not self.is_configured:
            raise SubmissionRejected("speech service is not configured")

        ssml = (
            f"<speak version='1.0' xml:lang='{self._language}'>"
            f"<voice name='{self._voice}'>{escape(text)}</voice></speak>"
        )
        try:
            response = self._http.post(
                TTS_URL.format(region=self._region),
                headers={
                    "Ocp-Apim-Subscription-Key": self._key,
                    "Content-Type": "application/ssml+xml",
                    "X-Microsoft-OutputFormat": TTS_OUTPUT_FORMAT,
                    "User-Agent": "hearforyou",
                },
                data=ssml.encode("utf-8"),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceError(f"speech synthesis failed: {exc!s}") from exc

        self._media_dir.mkdir(parents=True, exist_ok=True)
        target = self._media_dir / f"{uuid.uuid4().hex}.mp3"
        target.write_bytes(response.content)
        logger.info("speech.tts.saved path={} bytes={}", target, len(response.content))
        return target.resolve().as_uri()

    def _download(self, url: str) -> bytes:
        if url.startswith("file:"):
            return _read_local(url)
        try:
            response = self._http.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SubmissionRejected(f"audio download failed: {exc!s}") from exc
        if len(response.content) > MAX_AUDIO_BYTES:
            raise SubmissionRejected("audio file is too large")
        return response.content


def _read_local(url: str) -> bytes:
    path = Path(url2pathname(urlparse(url).path))
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SubmissionRejected(f"audio file is not readable: {exc!s}") from exc
    if len(data) > MAX_AUDIO_BYTES:
        raise SubmissionRejected("audio file is too large")
    return data


def _audio_content_type(attachment: Attachment) -> str:
    name = (attachment.name or attachment.url).lower()
    if attachment.content_type.startswith("audio/ogg") or name.endswith(".ogg"):
        return "audio/ogg; codecs=opus"
    if attachment.content_type.startswith(("audio/wav", "audio/x-wav")) or name.endswith(".wav"):
        return "audio/wav; codecs=audio/pcm; samplerate=16000"
    raise SubmissionRejected(f"unsupported audio format, expected one of {', '.join(SUPPORTED_AUDIO_SUFFIXES)}")
