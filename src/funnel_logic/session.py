"""
Session Progress Tracker

Holds the state of one respondent's pass through a funnel and exposes
the transition API used by the presentation layer.

State is an immutable SessionState snapshot. The pure functions
advance() and retreat() compute new snapshots; SessionTracker wraps
them, keeps the latest snapshot and emits analytics events.

Variables are recomputed on every submission by replaying the mutation
rules of the navigation path (visit history plus the submitted page)
from the declared defaults. Resubmitting the same answers therefore
leaves variables unchanged, and changing an answer on a revisited page
re-evaluates the rules that depended on it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from funnel_logic.config import Settings
from funnel_logic.evaluator import EvaluationContext
from funnel_logic.events import AnswerRecord, AnswerSink, Event, EventSink, EventType, NullSink
from funnel_logic.model import Block, Funnel
from funnel_logic.navigation import COMPLETE, next_page, previous_position, visible_blocks
from funnel_logic.rules import Phase, resolve
from funnel_logic.templates import resolve_blocks
from funnel_logic.variables import VariableStore

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Raised when a session operation violates the session lifecycle."""
    pass


class SessionCompleteError(SessionError):
    """Raised when submit_page() or go_back() is called on a completed session."""
    pass


class SessionStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of one session.

    Properties:
        answers: block id -> latest answer
        variables: VariableStore
        visited_page_ids: Pages submitted so far, oldest first
        current_page_id: Page being shown (None once complete)
        status: SessionStatus
    """

    answers: Mapping[str, Any] = field(default_factory=dict)
    variables: VariableStore = field(default_factory=lambda: VariableStore.initialize(()))
    visited_page_ids: Tuple[str, ...] = ()
    current_page_id: Optional[str] = None
    status: SessionStatus = SessionStatus.IN_PROGRESS

    @classmethod
    def start(cls, funnel: Funnel) -> SessionState:
        first = funnel.first_page_id
        return cls(
            variables=VariableStore.initialize(funnel.variables),
            current_page_id=first,
            status=SessionStatus.IN_PROGRESS if first is not None else SessionStatus.COMPLETE,
        )

    @property
    def is_complete(self) -> bool:
        return self.status is SessionStatus.COMPLETE


@dataclass(frozen=True)
class NavigationDecision:
    """
    Result of a page submission.

    Properties:
        next_page_id: Page to show next, or COMPLETE
        state: Snapshot after the transition
        submitted_page_id: Page the answers were recorded against
        accepted_answers: Answers that were merged (unknown blocks dropped)
        redirect_url: Set when the submitted page ends the funnel with a redirect
        diagnostics: Rule and variable anomalies met during evaluation
    """

    next_page_id: str
    state: SessionState
    submitted_page_id: str
    accepted_answers: Mapping[str, Any] = field(default_factory=dict)
    redirect_url: Optional[str] = None
    diagnostics: Tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return self.next_page_id == COMPLETE


def merge_answers(
    funnel: Funnel,
    answers: Mapping[str, Any],
    submitted: Mapping[str, Any],
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Merge submitted answers over the existing ones.

    Returns:
        (merged answers, accepted subset of submitted)
        Answers for unknown or non-input blocks are dropped.
    """
    blocks = funnel.blocks_by_id()
    merged = dict(answers)
    accepted: Dict[str, Any] = {}
    for block_id, value in submitted.items():
        block = blocks.get(block_id)
        if block is None:
            logger.warning("Ignoring answer for unknown block %s", block_id)
            continue
        if not block.is_input:
            logger.warning("Ignoring answer for %s block %s", block.type.value, block_id)
            continue
        merged[block_id] = value
        accepted[block_id] = value
    return merged, accepted


def replay_variables(
    funnel: Funnel,
    path: Sequence[str],
    answers: Mapping[str, Any],
) -> Tuple[VariableStore, Tuple[str, ...]]:
    """Variables after applying the mutation rules of each page on path, in order."""
    store = VariableStore.initialize(funnel.variables)
    diagnostics: List[str] = []
    for page_id in path:
        outcome = resolve(funnel.rules, page_id, EvaluationContext(answers, store), Phase.MUTATION)
        store = store.apply(outcome.variable_writes)
        diagnostics.extend(outcome.diagnostics)
    diagnostics.extend(store.diagnostics)
    return store, tuple(diagnostics)


def hidden_targets_for(
    funnel: Funnel,
    path: Sequence[str],
    answers: Mapping[str, Any],
    variables: VariableStore,
) -> FrozenSet[str]:
    """Union of the hide effects of every page on path."""
    context = EvaluationContext(answers, variables)
    hidden = set()
    for page_id in dict.fromkeys(path):
        hidden |= resolve(funnel.rules, page_id, context, Phase.VISIBILITY).hidden_targets
    return frozenset(hidden)


def _path_for(state: SessionState, page_id: str) -> Tuple[str, ...]:
    """
    Navigation path ending with page_id.

    Resubmitting a page already in the history truncates the history to
    just before its latest visit.
    """
    visited = state.visited_page_ids
    if page_id != state.current_page_id and page_id in visited:
        position = len(visited) - 1 - visited[::-1].index(page_id)
        return visited[:position] + (page_id,)
    return visited + (page_id,)


def advance(
    funnel: Funnel,
    state: SessionState,
    page_id: str,
    answers: Mapping[str, Any],
    honor_jumps: bool = True,
) -> NavigationDecision:
    """
    Compute the snapshot after submitting answers for page_id.

    Raises:
        SessionCompleteError: If the session is already complete
    """
    if state.is_complete:
        raise SessionCompleteError("Session is already complete")

    if funnel.get_page(page_id) is None:
        logger.warning("Submitted page %s is not part of funnel %s, using current page %s",
                       page_id, funnel.id, state.current_page_id)
        page_id = state.current_page_id

    merged, accepted = merge_answers(funnel, state.answers, answers)
    path = _path_for(state, page_id)

    variables, diagnostics = replay_variables(funnel, path, merged)

    context = EvaluationContext(merged, variables)
    visibility = resolve(funnel.rules, page_id, context, Phase.VISIBILITY)
    hidden = hidden_targets_for(funnel, path, merged, variables)

    redirect_url = funnel.get_page(page_id).properties.redirect_url
    if redirect_url:
        target = COMPLETE
    else:
        jump_to = visibility.jump_to if honor_jumps else None
        target = next_page(funnel.pages, page_id, hidden, jump_to=jump_to)

    new_state = SessionState(
        answers=merged,
        variables=variables,
        visited_page_ids=path,
        current_page_id=None if target == COMPLETE else target,
        status=SessionStatus.COMPLETE if target == COMPLETE else SessionStatus.IN_PROGRESS,
    )
    return NavigationDecision(
        next_page_id=target,
        state=new_state,
        submitted_page_id=page_id,
        accepted_answers=accepted,
        redirect_url=redirect_url,
        diagnostics=diagnostics + visibility.diagnostics,
    )


def retreat(funnel: Funnel, state: SessionState) -> Tuple[SessionState, Optional[str]]:
    """
    Compute the snapshot after going back one visible page.

    Answers and variables are kept. When the history is exhausted the
    state is returned unchanged with None.

    Raises:
        SessionCompleteError: If the session is already complete
    """
    if state.is_complete:
        raise SessionCompleteError("Session is already complete")

    path = state.visited_page_ids + ((state.current_page_id,) if state.current_page_id else ())
    hidden = hidden_targets_for(funnel, path, state.answers, state.variables)
    position = previous_position(funnel.pages, state.visited_page_ids, hidden)
    if position is None:
        return state, None

    page_id = state.visited_page_ids[position]
    new_state = replace(
        state,
        visited_page_ids=state.visited_page_ids[:position],
        current_page_id=page_id,
    )
    return new_state, page_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionTracker:
    """
    Stateful wrapper around one respondent's session.

    Usage:
        tracker = SessionTracker(funnel, visitor_id="v1", event_sink=sink)
        tracker.start()
        decision = tracker.submit_page("p1", {"choice": "no"})
        if decision.complete:
            ...

    Callers serialize calls to one tracker; it does no locking.
    """

    def __init__(
        self,
        funnel: Funnel,
        session_id: Optional[str] = None,
        visitor_id: Optional[str] = None,
        event_sink: Optional[EventSink] = None,
        answer_sink: Optional[AnswerSink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.funnel = funnel
        self.session_id = session_id or uuid.uuid4().hex
        self.visitor_id = visitor_id or uuid.uuid4().hex
        self.event_sink = event_sink or NullSink()
        self.answer_sink = answer_sink or NullSink()
        self.settings = settings or Settings()
        self._clock = clock
        self._state = SessionState.start(funnel)
        self._started = False
        self._page_started_at: Optional[datetime] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_page_id(self) -> Optional[str]:
        return self._state.current_page_id

    @property
    def is_complete(self) -> bool:
        return self._state.is_complete

    @property
    def answers(self) -> Mapping[str, Any]:
        return self._state.answers

    @property
    def variables(self) -> VariableStore:
        return self._state.variables

    @property
    def visited_page_ids(self) -> Tuple[str, ...]:
        return self._state.visited_page_ids

    def hidden_targets(self) -> FrozenSet[str]:
        path = self._state.visited_page_ids
        if self._state.current_page_id is not None:
            path = path + (self._state.current_page_id,)
        return hidden_targets_for(self.funnel, path, self._state.answers, self._state.variables)

    def visible_blocks(self) -> List[Block]:
        """
        Blocks of the current page that are not hidden, ready to render.

        {{var:...}} and {{block:...}} references in block properties are
        filled from the current variables and answers.
        """
        page = self.funnel.get_page(self._state.current_page_id)
        if page is None:
            return []
        context = EvaluationContext(self._state.answers, self._state.variables)
        return resolve_blocks(visible_blocks(page, self.hidden_targets()), context)

    def start(self) -> Optional[str]:
        """Emit the start and first page-view events. Safe to call once or more."""
        if self._started or self.is_complete:
            return self.current_page_id
        self._started = True
        self._page_started_at = self._clock()
        self._emit(EventType.FUNNEL_START)
        self._emit_page_view(from_page_id=None)
        return self.current_page_id

    def submit_page(self, page_id: str, answers: Mapping[str, Any]) -> NavigationDecision:
        """
        Record answers for a page and move on.

        Raises:
            SessionCompleteError: If the session is already complete
        """
        if self.is_complete:
            logger.error("submit_page(%s) on completed session %s", page_id, self.session_id)
            raise SessionCompleteError(f"Session {self.session_id} is already complete")

        if not self._started:
            self.start()

        decision = advance(self.funnel, self._state, page_id, answers, honor_jumps=self.settings.honor_jumps)
        self._state = decision.state

        now = self._clock()
        duration = (now - self._page_started_at).total_seconds() if self._page_started_at else 0.0
        self._page_started_at = now
        self._after_submit(decision, duration)
        return decision

    def go_back(self) -> Optional[str]:
        """
        Return to the previous visible page.

        Returns:
            The page now shown, or None when there is nothing to go back to

        Raises:
            SessionCompleteError: If the session is already complete
        """
        if self.is_complete:
            logger.error("go_back() on completed session %s", self.session_id)
            raise SessionCompleteError(f"Session {self.session_id} is already complete")

        from_page_id = self._state.current_page_id
        self._state, page_id = retreat(self.funnel, self._state)
        if page_id is not None:
            self._page_started_at = self._clock()
            self._emit_page_view(from_page_id=from_page_id)
        return page_id

    def _after_submit(self, decision: NavigationDecision, duration: float) -> None:
        page = self.funnel.get_page(decision.submitted_page_id)
        records = [
            AnswerRecord(self.session_id, page.id, block_id, value, duration)
            for block_id, value in decision.accepted_answers.items()
        ]
        if records:
            try:
                self.answer_sink.record(records)
            except Exception:
                logger.exception("Answer sink failed for session %s", self.session_id)

        depth = len(decision.state.visited_page_ids)
        self._emit(EventType.PAGE_COMPLETE, page_id=page.id, page_name=page.name,
                   page_depth=depth, duration=duration)
        for block_id in decision.accepted_answers:
            block = page.get_block(block_id) or self.funnel.get_block(block_id)
            self._emit(EventType.QUESTION_ANSWER, page_id=page.id, page_name=page.name,
                       page_depth=depth, block_id=block_id, block_type=block.type.value,
                       duration=duration)

        if decision.complete:
            self._emit(EventType.FUNNEL_COMPLETE)
        else:
            self._emit_page_view(from_page_id=page.id)

    def _emit_page_view(self, from_page_id: Optional[str]) -> None:
        page = self.funnel.get_page(self._state.current_page_id)
        if page is None:
            return
        self._emit(EventType.PAGE_VIEW, page_id=page.id, page_name=page.name,
                   page_depth=len(self._state.visited_page_ids) + 1, from_page_id=from_page_id)

    def _emit(self, event_type: EventType, **details: Any) -> None:
        if not self.settings.events_enabled:
            return
        event = Event(
            type=event_type,
            funnel_id=self.funnel.id,
            funnel_version=self.funnel.version,
            session_id=self.session_id,
            visitor_id=self.visitor_id,
            timestamp=self._clock(),
            **details,
        )
        try:
            self.event_sink.emit(event)
        except Exception:
            logger.exception("Event sink failed for %s event", event_type.value)
