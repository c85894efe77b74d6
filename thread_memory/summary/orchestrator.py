"""
Summarization orchestrator: one message pair in, at most one summary version out.

Pipeline per pair:
    load summary -> idempotency guard -> settings -> message pair -> prompt
    -> credential -> extraction -> merge -> conditional commit -> audit event

There is no lock. The store's conditional write detects a concurrent commit
for the same thread; the loser reloads and re-merges the same candidate,
up to ``max_commit_attempts`` times.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from thread_memory.config.settings import EngineCfg
from thread_memory.telemetry import log_step, new_run_id
from .errors import (
    ConcurrentUpdateFailure,
    CredentialMissing,
    MessagePairNotFound,
    StoreUnavailable,
    SummarizationError,
    ThreadNotFound,
    VersionConflict,
)
from .extraction import ExtractionClient
from .merge import merge_summary
from .prompts import DEFAULT_PROMPT
from .schemas import (
    MemorySettings,
    Message,
    SummarizationCandidate,
    SummarizationResult,
    Summary,
    SummaryDiff,
    SummaryEvent,
    SummaryPrompt,
)

if TYPE_CHECKING:
    from thread_memory.persist import EventLog, MemorySettingsStore, MessageStore, SummaryStore


logger = logging.getLogger(__name__)


@dataclass
class _PairRun:
    """Mutable bookkeeping for one process_pair call."""

    run_id: str
    thread_id: str
    user_msg_id: str
    assistant_msg_id: str
    attempt: int = 0
    model: Optional[str] = None
    candidate: Optional[SummarizationCandidate] = None
    timings: dict = field(default_factory=dict)

    @property
    def window(self) -> List[str]:
        return [self.user_msg_id, self.assistant_msg_id]

    def step(self, name: str, started: float) -> None:
        ms = (time.perf_counter() - started) * 1000
        self.timings[name] = self.timings.get(name, 0.0) + ms
        log_step(self.run_id, name, ms, {"thread_id": self.thread_id, "attempt": self.attempt})


def already_incorporated(summary: Optional[Summary], assistant_msg_id: str) -> bool:
    """
    True if the pair ending in ``assistant_msg_id`` is already in ``summary``.

    Checks last_message_id and, for older re-deliveries, the message ids
    recorded in the retained merge deltas.
    """
    if summary is None:
        return False
    if summary.last_message_id == assistant_msg_id:
        return True
    return any(d.details.get("message_id") == assistant_msg_id for d in summary.deltas)


class SummarizationOrchestrator:
    """
    Coordinates store, settings, messages, extraction and the event log.

    Collaborators are injected; the orchestrator holds no per-thread state
    between calls, so one instance can serve many threads concurrently.
    """

    def __init__(
        self,
        summaries: SummaryStore,
        events: EventLog,
        settings: MemorySettingsStore,
        messages: MessageStore,
        extractor: ExtractionClient,
        engine: Optional[EngineCfg] = None,
    ):
        self.summaries = summaries
        self.events = events
        self.settings = settings
        self.messages = messages
        self.extractor = extractor
        self.engine = engine or EngineCfg()

        if self.engine.max_commit_attempts < 1:
            raise ValueError("max_commit_attempts must be at least 1")

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def process_pair(self, thread_id: str, user_msg_id: str, assistant_msg_id: str) -> SummarizationResult:
        """
        Fold one user/assistant pair into the thread's summary.

        Safe to call repeatedly with the same arguments: a pair already
        incorporated yields a ``duplicate`` result and a reconcile event.

        Returns:
            SummarizationResult; engine failures are reported in it (and in
            an ``error`` event), never raised
        """
        run = _PairRun(
            run_id=new_run_id(),
            thread_id=thread_id,
            user_msg_id=user_msg_id,
            assistant_msg_id=assistant_msg_id,
        )

        try:
            return self._process(run)
        except SummarizationError as e:
            logger.warning(f"Summarization failed for thread {thread_id} ({e.code}): {e}")
            self._append_event(SummaryEvent(
                thread_id=thread_id,
                event_type="error",
                details={"code": e.code, "error": str(e), "attempt": run.attempt},
                window_message_ids=run.window,
            ))
            return SummarizationResult(
                success=False,
                status="failed",
                thread_id=thread_id,
                error=str(e),
                error_code=e.code,
                attempts=run.attempt,
            )

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    def _process(self, run: _PairRun) -> SummarizationResult:
        for attempt in range(1, self.engine.max_commit_attempts + 1):
            run.attempt = attempt

            started = time.perf_counter()
            current = self.summaries.get(run.thread_id)
            run.step("load", started)

            if already_incorporated(current, run.assistant_msg_id):
                return self._reconcile(run, current)

            if run.candidate is None:
                disabled = self._prepare(run, current)
                if disabled is not None:
                    return disabled

            started = time.perf_counter()
            outcome = merge_summary(
                current,
                run.candidate,
                thread_id=run.thread_id,
                message_id=run.assistant_msg_id,
                delta_cap=self.engine.delta_cap,
            )
            run.step("merge", started)

            started = time.perf_counter()
            try:
                stored = self.summaries.put(
                    run.thread_id,
                    current.version if current else None,
                    outcome.summary,
                )
            except VersionConflict as e:
                run.step("commit", started)
                logger.info(f"{e}; retrying (attempt {attempt}/{self.engine.max_commit_attempts})")
                continue
            run.step("commit", started)

            return self._audit(run, current, stored, outcome.diff)

        raise ConcurrentUpdateFailure(run.thread_id, self.engine.max_commit_attempts)

    def _prepare(self, run: _PairRun, current: Optional[Summary]) -> Optional[SummarizationResult]:
        """
        Resolve settings, messages, prompt and credential, then extract.

        Stores the candidate on ``run``. Returns a ``disabled`` result
        instead when the owner has summarization turned off.
        """
        owner = self.messages.get_thread_owner(run.thread_id)
        if owner is None:
            raise ThreadNotFound(run.thread_id)

        memory_settings = self.settings.get_memory_settings(owner)
        if not memory_settings.use_summarization:
            logger.debug(f"Summarization disabled for user {owner}")
            return SummarizationResult(
                success=True,
                status="disabled",
                thread_id=run.thread_id,
                summary=current,
                attempts=run.attempt,
            )

        user_msg, assistant_msg = self._resolve_pair(run)
        prompt = self._resolve_prompt(memory_settings)
        run.model = prompt.model

        api_key = None
        if self.extractor.requires_credential:
            api_key = self.settings.get_api_key(owner)
            if not api_key:
                raise CredentialMissing(owner)

        started = time.perf_counter()
        try:
            run.candidate = self.extractor.extract(
                current,
                user_msg.content,
                assistant_msg.content,
                prompt,
                api_key=api_key,
            )
        finally:
            run.step("extract", started)
        return None

    def _resolve_pair(self, run: _PairRun) -> Tuple[Message, Message]:
        found = {m.id: m for m in self.messages.get_messages(run.window)}
        user_msg = found.get(run.user_msg_id)
        assistant_msg = found.get(run.assistant_msg_id)

        missing = [mid for mid, msg in ((run.user_msg_id, user_msg), (run.assistant_msg_id, assistant_msg)) if msg is None]
        if missing:
            raise MessagePairNotFound(f"Message(s) not found: {', '.join(missing)}")

        if user_msg.role != "user" or assistant_msg.role != "assistant":
            raise MessagePairNotFound(
                f"Not a user->assistant pair: {user_msg.id} is '{user_msg.role}', "
                f"{assistant_msg.id} is '{assistant_msg.role}'"
            )
        if user_msg.thread_id != run.thread_id or assistant_msg.thread_id != run.thread_id:
            raise MessagePairNotFound(f"Message pair does not belong to thread {run.thread_id}")
        if user_msg.position >= assistant_msg.position:
            raise MessagePairNotFound(f"Assistant message {assistant_msg.id} precedes user message {user_msg.id}")

        return user_msg, assistant_msg

    def _resolve_prompt(self, memory_settings: MemorySettings) -> SummaryPrompt:
        """User's chosen prompt, else the active prompt, else the built-in default."""
        prompt = None
        if memory_settings.summarization_prompt_id:
            prompt = self.settings.get_prompt(memory_settings.summarization_prompt_id)
        if prompt is None:
            prompt = self.settings.get_active_prompt()
        if prompt is None:
            prompt = DEFAULT_PROMPT

        model = memory_settings.summarization_model or prompt.model
        return prompt.model_copy(update={"model": model})

    # ------------------------------------------------------------------ #
    # Outcomes
    # ------------------------------------------------------------------ #

    def _reconcile(self, run: _PairRun, current: Summary) -> SummarizationResult:
        self._append_event(SummaryEvent(
            thread_id=run.thread_id,
            event_type="reconcile",
            from_version=current.version,
            to_version=current.version,
            details={"reason": "already_processed", "last_message_id": current.last_message_id},
            window_message_ids=run.window,
        ))
        return SummarizationResult(
            success=True,
            status="duplicate",
            thread_id=run.thread_id,
            summary=current,
            changes=SummaryDiff(),
            attempts=run.attempt,
        )

    def _audit(
        self,
        run: _PairRun,
        previous: Optional[Summary],
        stored: Summary,
        diff: SummaryDiff,
    ) -> SummarizationResult:
        status = "created" if previous is None else "updated"

        started = time.perf_counter()
        self._append_event(SummaryEvent(
            thread_id=run.thread_id,
            event_type=status,
            from_version=previous.version if previous else None,
            to_version=stored.version,
            details={
                "added": diff.added,
                "updated": diff.updated,
                "removed": diff.removed,
                "attempts": run.attempt,
                "model": run.model,
            },
            window_message_ids=run.window,
        ))
        run.step("audit", started)

        return SummarizationResult(
            success=True,
            status=status,
            thread_id=run.thread_id,
            summary=stored,
            changes=diff,
            attempts=run.attempt,
        )

    def _append_event(self, event: SummaryEvent) -> None:
        # Any summary write is already committed here
        try:
            self.events.append(event)
        except StoreUnavailable as e:
            logger.error(f"Failed to log {event.event_type} event for thread {event.thread_id}: {e}")
