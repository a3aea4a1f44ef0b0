"""Single-purpose task flows entered from the main menu."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from loguru import logger

from hearforyou.dialog.flow import Flow, Step, StepContext
from hearforyou.dialog.types import (
    Advance,
    Attachment,
    AwaitInput,
    ExitSubFlow,
    FlowId,
    JobState,
    MediaAttachment,
    StepResult,
    Suspend,
)
from hearforyou.errors import SubmissionRejected
from hearforyou.services.translator import TranslationRequest

if TYPE_CHECKING:
    from hearforyou.services.base import ExternalJobClient

SUBMISSION_REJECTED = "Non riesco ad elaborare questa richiesta⛔ Controlla il contenuto e riprova dal menu."
JOB_FAILED = "Mi dispiace, l'elaborazione non è andata a buon fine⛔ Puoi riprovare dal menu."

LANGUAGES: dict[str, str] = {
    "inglese": "en",
    "english": "en",
    "italiano": "it",
    "francese": "fr",
    "tedesco": "de",
    "spagnolo": "es",
    "portoghese": "pt",
    "russo": "ru",
    "cinese": "zh-Hans",
    "giapponese": "ja",
    "arabo": "ar",
}


def resolve_language(text: str | None) -> str | None:
    """Map an Italian language name or a known language code to a translator code."""
    if not text:
        return None
    candidate = text.strip().casefold()
    if candidate in LANGUAGES:
        return LANGUAGES[candidate]
    for code in LANGUAGES.values():
        if candidate == code.casefold():
            return code
    return None


class TaskFlow(Flow):
    """A flow that hands one piece of work to an external job client."""

    def __init__(self, client: ExternalJobClient) -> None:
        self._client = client
        super().__init__()

    def submit(self, ctx: StepContext, payload: Any) -> StepResult:
        try:
            handle = ctx.submit(self._client, payload)
        except SubmissionRejected as exc:
            logger.warning("dialog.{}.submission.rejected error={}", self.flow_id, exc)
            ctx.say(SUBMISSION_REJECTED)
            return ExitSubFlow()
        logger.info("dialog.{}.submitted service={} job_id={}", self.flow_id, handle.service, handle.job_id)
        return Suspend(handle)

    def finish(self, ctx: StepContext, render: Callable[[Any], None]) -> StepResult:
        outcome = ctx.outcome
        if outcome is None or outcome.state is not JobState.DONE:
            logger.warning(
                "dialog.{}.job.failed error={}", self.flow_id, outcome.error if outcome else "missing outcome"
            )
            ctx.say(JOB_FAILED)
            return ExitSubFlow()
        render(outcome.result)
        return ExitSubFlow(outcome.result)


def _first_attachment(ctx: StepContext) -> Attachment | None:
    if ctx.attachments:
        return ctx.attachments[-1]
    text = (ctx.text or "").strip()
    if text.startswith(("http://", "https://")):
        return Attachment(url=text)
    return None


class TranslateFlow(TaskFlow):
    flow_id = FlowId.TRANSLATE

    def build_steps(self) -> Sequence[Step]:
        return (self.ask_text, self.ask_language, self.translate, self.report)

    def ask_text(self, ctx: StepContext) -> StepResult:
        return AwaitInput("Scrivi il testo che vuoi tradurre:")

    def ask_language(self, ctx: StepContext) -> StepResult:
        if ctx.text is not None:
            ctx.values["text"] = ctx.text
        if not ctx.values.get("text", "").strip():
            ctx.say("Non ho ricevuto nessun testo da tradurre.")
            return Advance(target="ask_text")
        return AwaitInput("In quale lingua vuoi tradurlo? (es. inglese, francese, tedesco, spagnolo)")

    def translate(self, ctx: StepContext) -> StepResult:
        code = resolve_language(ctx.text)
        if code is None:
            ctx.say("Non conosco questa lingua⛔")
            return Advance(target="ask_language")
        ctx.values["to"] = code
        return self.submit(ctx, TranslationRequest(text=ctx.values["text"], to=code))

    def report(self, ctx: StepContext) -> StepResult:
        return self.finish(ctx, lambda result: ctx.say(f"Ecco la traduzione:\n\n{result}"))


class SpeechToTextFlow(TaskFlow):
    flow_id = FlowId.SPEECH_TO_TEXT

    def build_steps(self) -> Sequence[Step]:
        return (self.ask_audio, self.transcribe, self.report)

    def ask_audio(self, ctx: StepContext) -> StepResult:
        return AwaitInput("Inserisci un file audio (.wav o .ogg) da trascrivere:")

    def transcribe(self, ctx: StepContext) -> StepResult:
        audio = _first_attachment(ctx)
        if audio is None:
            ctx.say("Non ho ricevuto nessun file audio.")
            return Advance(target="ask_audio")
        return self.submit(ctx, audio)

    def report(self, ctx: StepContext) -> StepResult:
        def render(result: Any) -> None:
            if result:
                ctx.say(f"Ecco il testo trascritto:\n\n{result}")
            else:
                ctx.say("Non ho riconosciuto nessuna parola nel file audio.")

        return self.finish(ctx, render)


class TextToSpeechFlow(TaskFlow):
    flow_id = FlowId.TEXT_TO_SPEECH

    def build_steps(self) -> Sequence[Step]:
        return (self.ask_text, self.synthesize, self.report)

    def ask_text(self, ctx: StepContext) -> StepResult:
        return AwaitInput("Scrivi il testo da convertire in audio:")

    def synthesize(self, ctx: StepContext) -> StepResult:
        if not (ctx.text or "").strip():
            ctx.say("Non ho ricevuto nessun testo.")
            return Advance(target="ask_text")
        return self.submit(ctx, ctx.text)

    def report(self, ctx: StepContext) -> StepResult:
        def render(result: Any) -> None:
            ctx.emit(MediaAttachment(url=str(result), content_type="audio/mpeg", name="audio.mp3"))
            ctx.say("Ecco il tuo file audio!🔊")

        return self.finish(ctx, render)


class OcrFlow(TaskFlow):
    flow_id = FlowId.OCR

    def build_steps(self) -> Sequence[Step]:
        return (self.ask_image, self.recognize, self.report)

    def ask_image(self, ctx: StepContext) -> StepResult:
        return AwaitInput("Inserisci un'immagine da cui ricavare un testo:")

    def recognize(self, ctx: StepContext) -> StepResult:
        image = _first_attachment(ctx)
        if image is None:
            ctx.say("Non ho ricevuto nessuna immagine.")
            return Advance(target="ask_image")
        return self.submit(ctx, image)

    def report(self, ctx: StepContext) -> StepResult:
        def render(result: Any) -> None:
            if result:
                ctx.say(str(result))
            else:
                ctx.say("Non ho trovato nessun testo nell'immagine.")

        return self.finish(ctx, render)
