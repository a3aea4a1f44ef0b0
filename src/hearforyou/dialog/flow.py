"""Flow base class and the per-step evaluation context."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from hearforyou.dialog.matching import IntentLookup
from hearforyou.dialog.session import ConversationSession, FlowFrame
from hearforyou.dialog.types import (
    Attachment,
    FlowId,
    IntentMatch,
    JobHandle,
    JobStatus,
    OutboundAction,
    PromptText,
    StepResult,
)
from hearforyou.errors import JobAlreadyPending

if TYPE_CHECKING:
    from hearforyou.services.base import ExternalJobClient


class StepContext:
    """What one step sees while it is evaluated."""

    def __init__(
        self,
        session: ConversationSession,
        frame: FlowFrame,
        *,
        actions: list[OutboundAction],
        lookup_intent: IntentLookup,
        text: str | None = None,
        attachments: Sequence[Attachment] = (),
        outcome: JobStatus | None = None,
        returned: Any = None,
    ) -> None:
        self.session = session
        self.frame = frame
        self.text = text
        self.attachments = tuple(attachments)
        self.outcome = outcome
        self.returned = returned
        self._actions = actions
        self._lookup_intent = lookup_intent

    @property
    def values(self) -> dict[str, Any]:
        return self.frame.values

    def emit(self, action: OutboundAction) -> None:
        self._actions.append(action)

    def say(self, text: str) -> None:
        self.emit(PromptText(text))

    def intent(self) -> IntentMatch | None:
        return self._lookup_intent()

    def submit(self, client: ExternalJobClient, payload: Any) -> JobHandle:
        """Submit work to `client`; at most one job may be pending per session."""
        if self.session.pending_job is not None:
            raise JobAlreadyPending(f"session {self.session.key} already has a pending job")
        return client.submit(payload)


Step = Callable[[StepContext], StepResult]


class Flow(ABC):
    """A named, ordered sequence of steps."""

    flow_id: ClassVar[FlowId]
    # Step re-entered when input arrives after the last step; None exits the flow.
    reentry_step: ClassVar[str | None] = None

    def __init__(self) -> None:
        self._steps: tuple[Step, ...] = tuple(self.build_steps())
        if not self._steps:
            raise ValueError(f"flow {self.flow_id} has no steps")
        self._index = {step.__name__: idx for idx, step in enumerate(self._steps)}

    @abstractmethod
    def build_steps(self) -> Sequence[Step]:
        """Return the flow's steps in evaluation order."""

    def __len__(self) -> int:
        return len(self._steps)

    def index_of(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"flow {self.flow_id} has no step named {name!r}") from None

    def step_name(self, index: int) -> str:
        return self._steps[index].__name__

    def run_step(self, index: int, ctx: StepContext) -> StepResult:
        return self._steps[index](ctx)
