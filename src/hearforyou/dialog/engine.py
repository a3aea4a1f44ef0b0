"""Dialog engine: resumes a session at its step and runs the evaluation loop."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from hearforyou.dialog.flow import Flow, StepContext
from hearforyou.dialog.matching import MenuTable, resolve_option
from hearforyou.dialog.session import ConversationSession
from hearforyou.dialog.types import (
    Advance,
    Attachment,
    AwaitInput,
    EnterSubFlow,
    ExitSubFlow,
    FlowId,
    IntentMatch,
    JobHandle,
    JobStatus,
    OutboundAction,
    PromptText,
    Suspend,
    Terminate,
    TurnResult,
)
from hearforyou.errors import (
    ClassifierUnavailable,
    DialogError,
    ExcessiveDialogRecursion,
    StaleJobHandle,
    UnknownFlowError,
)
from hearforyou.services.base import IntentClassifier

FAREWELL = "Spero di esserti stato d'aiuto! Ciao, alla prossima!👋"
STILL_WORKING = "Sto ancora elaborando la tua richiesta⏳ Attendi qualche istante."
APOLOGY = "Mi dispiace, qualcosa è andato storto. Riprova tra poco."

DEFAULT_MAX_UNWIND_DEPTH = 32


@dataclass
class _Turn:
    """Mutable bookkeeping for one engine call."""

    classifier: IntentClassifier
    limit: int
    text: str | None = None
    actions: list[OutboundAction] = field(default_factory=list)
    evaluations: int = 0
    _classified: bool = False
    _intent: IntentMatch | None = None

    def intent(self) -> IntentMatch | None:
        if not self._classified:
            self._classified = True
            self._intent = self._classify()
        return self._intent

    def _classify(self) -> IntentMatch | None:
        if not self.text or not self.text.strip():
            return None
        try:
            match = self.classifier.query(self.text)
        except ClassifierUnavailable as exc:
            logger.warning("dialog.classifier.unavailable error={}", exc)
            return None
        logger.debug("dialog.classifier.match label={} confidence={:.2f}", match.label, match.confidence)
        return match

    def count(self) -> None:
        self.evaluations += 1
        if self.evaluations > self.limit:
            raise ExcessiveDialogRecursion(self.limit)


class DialogEngine:
    """Root orchestrator shared by every conversation.

    The engine holds no per-conversation state. Each call works on a copy of
    the session it is given and returns the new state, so a failed turn leaves
    the caller's session exactly as it was.
    """

    def __init__(
        self,
        flows: Mapping[FlowId, Flow],
        table: MenuTable,
        classifier: IntentClassifier,
        *,
        max_unwind_depth: int = DEFAULT_MAX_UNWIND_DEPTH,
    ) -> None:
        missing = [flow_id for flow_id in FlowId if flow_id not in flows]
        if missing:
            raise UnknownFlowError(f"no flow registered for {', '.join(missing)}")
        for flow_id, flow in flows.items():
            if flow.flow_id is not flow_id:
                raise UnknownFlowError(f"flow {flow.flow_id} registered under {flow_id}")
        if flows[FlowId.ROOT].reentry_step is None:
            raise UnknownFlowError("the root flow must declare a re-entry step")
        self._flows = dict(flows)
        self._table = table
        self._classifier = classifier
        self._max_unwind_depth = max_unwind_depth

    @property
    def table(self) -> MenuTable:
        return self._table

    def flow(self, flow_id: FlowId) -> Flow:
        try:
            return self._flows[flow_id]
        except KeyError:
            raise UnknownFlowError(str(flow_id)) from None

    def start(self, session: ConversationSession) -> TurnResult:
        """Begin the root flow from its first step and show the greeting."""
        working = ConversationSession.new(session.key)
        turn = self._new_turn()
        logger.info("dialog.start session={}", session.key)
        return self._run(session, working, turn, lambda: self._drive(working, turn, 0))

    def handle_message(
        self,
        session: ConversationSession,
        text: str | None,
        attachments: Sequence[Attachment] = (),
    ) -> TurnResult:
        """Feed one user message to the step after the one the session waits on."""
        if session.terminated:
            session = ConversationSession.new(session.key)
        working = session.model_copy(deep=True)
        turn = self._new_turn(text)
        logger.info(
            "dialog.message session={} flow={} step={} pending={}",
            session.key,
            session.active_flow,
            session.active_step_index,
            session.pending_job is not None,
        )

        if resolve_option((self._table.exit,), text, turn.intent) is not None:
            turn.actions.append(PromptText(FAREWELL))
            working.terminate()
            working.touch()
            logger.info("dialog.exit session={}", session.key)
            return TurnResult(session=working, actions=turn.actions)

        if session.pending_job is not None:
            return TurnResult(session=session, actions=[PromptText(STILL_WORKING)])

        index = working.active_step_index + 1
        return self._run(
            session,
            working,
            turn,
            lambda: self._drive(working, turn, index, text=text, attachments=attachments),
        )

    def handle_job_completion(
        self,
        session: ConversationSession,
        handle: JobHandle,
        outcome: JobStatus,
    ) -> TurnResult:
        """Resume the step after the suspended one with the job outcome."""
        pending = session.pending_job
        if session.terminated or pending is None or pending.handle != handle:
            raise StaleJobHandle(f"session {session.key} is not waiting on {handle.service}:{handle.job_id}")
        if not outcome.finished:
            raise ValueError("job completion requires a done or failed outcome")

        working = session.model_copy(deep=True)
        working.clear_pending()
        fallback = working.model_copy(deep=True)
        turn = self._new_turn()
        index = working.active_step_index + 1
        logger.info("dialog.job.completed session={} service={} state={}", session.key, handle.service, outcome.state)
        return self._run(
            fallback,
            working,
            turn,
            lambda: self._drive(working, turn, index, outcome=outcome),
        )

    def _new_turn(self, text: str | None = None) -> _Turn:
        return _Turn(classifier=self._classifier, limit=self._max_unwind_depth, text=text)

    def _run(
        self,
        stable: ConversationSession,
        working: ConversationSession,
        turn: _Turn,
        drive: Callable[[], JobHandle | None],
    ) -> TurnResult:
        try:
            suspended = drive()
        except ExcessiveDialogRecursion as exc:
            logger.error("dialog.turn.aborted session={} error={}", stable.key, exc)
            return TurnResult(session=stable, actions=[PromptText(APOLOGY)])
        working.touch()
        return TurnResult(session=working, actions=turn.actions, suspended=suspended)

    def _drive(
        self,
        working: ConversationSession,
        turn: _Turn,
        index: int,
        *,
        text: str | None = None,
        attachments: Sequence[Attachment] = (),
        outcome: JobStatus | None = None,
    ) -> JobHandle | None:
        returned: Any = None
        while True:
            turn.count()
            frame = working.active_frame
            flow = self.flow(frame.flow)

            if index >= len(flow):
                if working.depth == 1:
                    index = flow.index_of(flow.reentry_step or flow.step_name(0))
                else:
                    working.pop()
                    index = working.active_step_index
                    continue

            frame.step_index = index
            ctx = StepContext(
                working,
                frame,
                actions=turn.actions,
                lookup_intent=turn.intent,
                text=text,
                attachments=attachments,
                outcome=outcome,
                returned=returned,
            )
            result = flow.run_step(index, ctx)
            logger.debug("dialog.step flow={} step={} result={}", flow.flow_id, flow.step_name(index), result)
            text, attachments, outcome, returned = None, (), None, None

            if isinstance(result, AwaitInput):
                turn.actions.append(PromptText(result.prompt))
                return None
            if isinstance(result, Suspend):
                working.suspend(result.handle)
                return result.handle
            if isinstance(result, Terminate):
                working.terminate()
                return None
            if isinstance(result, Advance):
                index = flow.index_of(result.target) if result.target else index + 1
                continue
            if isinstance(result, EnterSubFlow):
                self.flow(result.flow)
                frame.step_index = index + 1
                working.push(result.flow)
                index = 0
                continue
            if isinstance(result, ExitSubFlow):
                if working.depth == 1:
                    raise DialogError("the root flow cannot exit")
                working.pop()
                index = working.active_step_index
                returned = result.value
                continue
            raise DialogError(f"unsupported step result {result!r}")
