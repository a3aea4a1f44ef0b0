"""Shared dialog dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from hearforyou.dialog.session import ConversationSession


class FlowId(StrEnum):
    """Closed set of flows the engine can run."""

    ROOT = "root"
    TRANSLATE = "translate"
    SPEECH_TO_TEXT = "speech_to_text"
    TEXT_TO_SPEECH = "text_to_speech"
    OCR = "ocr"


class JobState(StrEnum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class JobHandle(BaseModel):
    """Opaque reference to one external job."""

    model_config = ConfigDict(frozen=True)

    service: str
    job_id: str


class JobStatus(BaseModel):
    """Status of an external job as reported by its client."""

    model_config = ConfigDict(frozen=True)

    state: JobState
    result: Any = None
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.state is not JobState.PENDING

    @classmethod
    def pending(cls) -> JobStatus:
        return cls(state=JobState.PENDING)

    @classmethod
    def done(cls, result: Any = None) -> JobStatus:
        return cls(state=JobState.DONE, result=result)

    @classmethod
    def failed(cls, error: str) -> JobStatus:
        return cls(state=JobState.FAILED, error=error)


@dataclass(frozen=True)
class IntentMatch:
    """Top classifier label for one piece of user text."""

    label: str
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class Attachment:
    """Reference to a file the user sent along with a message."""

    url: str
    content_type: str = ""
    name: str = ""


# Step results


@dataclass(frozen=True)
class AwaitInput:
    prompt: str


@dataclass(frozen=True)
class Advance:
    target: str | None = None  # step name in the same flow, next step when None


@dataclass(frozen=True)
class EnterSubFlow:
    flow: FlowId


@dataclass(frozen=True)
class ExitSubFlow:
    value: Any = None


@dataclass(frozen=True)
class Terminate:
    pass


@dataclass(frozen=True)
class Suspend:
    handle: JobHandle


StepResult: TypeAlias = AwaitInput | Advance | EnterSubFlow | ExitSubFlow | Terminate | Suspend


# Outbound actions


@dataclass(frozen=True)
class PromptText:
    text: str


@dataclass(frozen=True)
class MenuButton:
    title: str
    value: str


@dataclass(frozen=True)
class StructuredMenu:
    title: str
    text: str
    buttons: tuple[MenuButton, ...] = ()


@dataclass(frozen=True)
class MediaAttachment:
    url: str
    content_type: str
    name: str = ""


OutboundAction: TypeAlias = PromptText | StructuredMenu | MediaAttachment


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one engine call: actions to deliver plus the new session state."""

    session: ConversationSession
    actions: list[OutboundAction] = field(default_factory=list)
    suspended: JobHandle | None = None

    @property
    def terminated(self) -> bool:
        return self.session.terminated
