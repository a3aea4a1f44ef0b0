"""Per-conversation dialog state."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from hearforyou.dialog.types import FlowId, JobHandle
from hearforyou.errors import JobAlreadyPending


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FlowFrame(BaseModel):
    """One entry of the flow stack."""

    flow: FlowId
    step_index: int = 0
    values: dict[str, Any] = Field(default_factory=dict)


class PendingJob(BaseModel):
    handle: JobHandle
    submitted_at: datetime = Field(default_factory=_utcnow)


class ConversationSession(BaseModel):
    """Durable pointer into the flow/step state of one conversation.

    The root frame sits at the bottom of `stack` and is never popped. The
    model holds no live resources, so a session read back from disk can be
    resumed as is, including a sub-flow suspended on an external job.
    """

    key: str
    stack: list[FlowFrame] = Field(default_factory=lambda: [FlowFrame(flow=FlowId.ROOT)])
    pending_job: PendingJob | None = None
    terminated: bool = False
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def new(cls, key: str) -> ConversationSession:
        return cls(key=key)

    @property
    def active_flow_stack(self) -> list[FlowId]:
        return [frame.flow for frame in self.stack]

    @property
    def active_frame(self) -> FlowFrame:
        return self.stack[-1]

    @property
    def active_flow(self) -> FlowId:
        return self.active_frame.flow

    @property
    def active_step_index(self) -> int:
        return self.active_frame.step_index

    @property
    def depth(self) -> int:
        return len(self.stack)

    def push(self, flow: FlowId) -> FlowFrame:
        frame = FlowFrame(flow=flow)
        self.stack.append(frame)
        return frame

    def pop(self) -> FlowFrame:
        if len(self.stack) <= 1:
            raise IndexError("the root flow cannot be popped")
        return self.stack.pop()

    def suspend(self, handle: JobHandle) -> None:
        if self.pending_job is not None:
            raise JobAlreadyPending(
                f"session {self.key} already waits on {self.pending_job.handle.service}:{self.pending_job.handle.job_id}"
            )
        self.pending_job = PendingJob(handle=handle)

    def clear_pending(self) -> None:
        self.pending_job = None

    def terminate(self) -> None:
        self.stack = [FlowFrame(flow=FlowId.ROOT)]
        self.pending_job = None
        self.terminated = True

    def touch(self) -> None:
        self.updated_at = _utcnow()
