"""
Tests for the Session Progress Tracker

These tests verify:
    - Skip, back and variable scenarios on a three-page funnel
    - Lifecycle: operations on a completed session fail
    - Idempotent resubmission
    - Unknown blocks are ignored
    - Immutable snapshots from advance() / retreat()
    - Events and answer records emitted to sinks
"""

from datetime import datetime, timezone

import pytest
from funnel_logic.conditions import Operand, eq, gt
from funnel_logic.config import Settings
from funnel_logic.events import CollectingSink, EventSink, EventType
from funnel_logic.model import (
    Action,
    ActionType,
    ActionValue,
    Block,
    BlockType,
    Funnel,
    Page,
    PageProperties,
    Rule,
    Target,
    TargetType,
    ValueSource,
    VariableDeclaration,
)
from funnel_logic.navigation import COMPLETE
from funnel_logic.session import (
    SessionCompleteError,
    SessionError,
    SessionState,
    SessionStatus,
    SessionTracker,
    advance,
    retreat,
)


def choice_is(value: str):
    return eq(Operand.block("choice"), Operand.constant(value))


def build_funnel(rules=(), variables=(), p3_properties=None) -> Funnel:
    return Funnel(
        id="f1",
        version=3,
        pages=(
            Page("P1", name="First", blocks=(
                Block("title", BlockType.HEADING),
                Block("choice", BlockType.MULTIPLE_CHOICE),
            )),
            Page("P2", name="Second", blocks=(Block("details", BlockType.TEXT_INPUT),)),
            Page("P3", name="Third", blocks=(Block("email", BlockType.TEXT_INPUT),),
                 properties=p3_properties or PageProperties()),
        ),
        rules=tuple(rules),
        variables=tuple(variables),
    )


def hide_p2_when_no() -> Rule:
    return Rule("P1", condition=choice_is("no"), actions=(Action(ActionType.HIDE, Target(TargetType.PAGE, "P2")),))


def score_10_when_yes() -> Rule:
    return Rule(
        "P1",
        condition=choice_is("yes"),
        actions=(Action(ActionType.SET, Target(TargetType.VARIABLE, "score"), ActionValue(ValueSource.CONSTANT, 10)),),
    )


FIXED_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def build_tracker(funnel, **kwargs) -> SessionTracker:
    kwargs.setdefault("clock", lambda: FIXED_TIME)
    return SessionTracker(funnel, session_id="s1", visitor_id="v1", **kwargs)


class TestSkipScenario:
    """Pages P1, P2, P3; a rule on P1 hides P2 when choice == "no"."""

    def test_no_skips_p2(self):
        tracker = build_tracker(build_funnel([hide_p2_when_no()]))
        decision = tracker.submit_page("P1", {"choice": "no"})
        assert decision.next_page_id == "P3"
        assert tracker.current_page_id == "P3"

    def test_yes_goes_to_p2(self):
        tracker = build_tracker(build_funnel([hide_p2_when_no()]))
        assert tracker.submit_page("P1", {"choice": "yes"}).next_page_id == "P2"

    def test_back_from_p3_skips_hidden_p2(self):
        tracker = build_tracker(build_funnel([hide_p2_when_no()]))
        tracker.submit_page("P1", {"choice": "no"})
        assert tracker.go_back() == "P1"
        assert tracker.current_page_id == "P1"
        assert tracker.answers == {"choice": "no"}

    def test_back_keeps_variables(self):
        tracker = build_tracker(build_funnel([score_10_when_yes()], [VariableDeclaration("score")]))
        tracker.submit_page("P1", {"choice": "yes"})
        tracker.go_back()
        assert tracker.variables.get("score") == 10

    def test_back_at_start_returns_none(self):
        tracker = build_tracker(build_funnel())
        assert tracker.go_back() is None
        assert tracker.current_page_id == "P1"


class TestVariableScenario:
    """A rule sets score to 10 when choice == "yes"."""

    def build(self):
        return build_tracker(build_funnel([score_10_when_yes()], [VariableDeclaration("score", default=0)]))

    def test_score_set(self):
        tracker = self.build()
        tracker.submit_page("P1", {"choice": "yes"})
        assert tracker.variables.get("score") == 10

    def test_score_reverts_on_revisit(self):
        tracker = self.build()
        tracker.submit_page("P1", {"choice": "yes"})
        assert tracker.go_back() == "P1"
        tracker.submit_page("P1", {"choice": "no"})
        assert tracker.variables.get("score") == 0

    def test_resubmitting_earlier_page_without_back(self):
        """Submitting an already visited page rewinds history to it."""
        tracker = self.build()
        tracker.submit_page("P1", {"choice": "yes"})
        decision = tracker.submit_page("P1", {"choice": "no"})
        assert tracker.variables.get("score") == 0
        assert decision.state.visited_page_ids == ("P1",)

    def test_arithmetic_does_not_double_count(self):
        rule = Rule("P1", actions=(
            Action(ActionType.ADD, Target(TargetType.VARIABLE, "score"), ActionValue(ValueSource.CONSTANT, 5)),
        ))
        tracker = build_tracker(build_funnel([rule], [VariableDeclaration("score")]))
        tracker.submit_page("P1", {"choice": "a"})
        tracker.go_back()
        tracker.submit_page("P1", {"choice": "a"})
        assert tracker.variables.get("score") == 5


class TestIdempotence:

    def test_same_answer_twice(self):
        funnel = build_funnel([hide_p2_when_no(), score_10_when_yes()], [VariableDeclaration("score")])
        state = SessionState.start(funnel)
        first = advance(funnel, state, "P1", {"choice": "yes"})
        second = advance(funnel, first.state, "P1", {"choice": "yes"})
        assert first.next_page_id == second.next_page_id == "P2"
        assert first.state.variables == second.state.variables
        assert first.state.visited_page_ids == second.state.visited_page_ids


class TestLifecycle:

    def complete_tracker(self):
        tracker = build_tracker(build_funnel())
        tracker.submit_page("P1", {"choice": "x"})
        tracker.submit_page("P2", {"details": "d"})
        decision = tracker.submit_page("P3", {"email": "a@b.co"})
        assert decision.complete
        return tracker

    def test_reaches_complete(self):
        tracker = self.complete_tracker()
        assert tracker.is_complete
        assert tracker.state.status is SessionStatus.COMPLETE
        assert tracker.current_page_id is None
        assert tracker.visited_page_ids == ("P1", "P2", "P3")

    def test_submit_after_complete_raises(self):
        tracker = self.complete_tracker()
        with pytest.raises(SessionCompleteError):
            tracker.submit_page("P3", {"email": "other@b.co"})
        assert tracker.visited_page_ids == ("P1", "P2", "P3")
        assert tracker.answers["email"] == "a@b.co"

    def test_go_back_after_complete_raises(self):
        tracker = self.complete_tracker()
        with pytest.raises(SessionError):
            tracker.go_back()

    def test_pure_functions_raise_too(self):
        funnel = build_funnel()
        done = SessionState(status=SessionStatus.COMPLETE)
        with pytest.raises(SessionCompleteError):
            advance(funnel, done, "P1", {})
        with pytest.raises(SessionCompleteError):
            retreat(funnel, done)

    def test_empty_funnel_starts_complete(self):
        tracker = build_tracker(Funnel(id="empty"))
        assert tracker.is_complete

    def test_redirect_page_completes(self):
        tracker = build_tracker(build_funnel(p3_properties=PageProperties(redirect_url="https://shop.example")))
        tracker.submit_page("P1", {})
        decision = tracker.submit_page("P3", {})
        assert decision.complete
        assert decision.redirect_url == "https://shop.example"


class TestInputHandling:

    def test_unknown_blocks_ignored(self):
        tracker = build_tracker(build_funnel())
        decision = tracker.submit_page("P1", {"choice": "a", "ghost": 1})
        assert tracker.answers == {"choice": "a"}
        assert decision.accepted_answers == {"choice": "a"}

    def test_presentational_blocks_ignored(self):
        tracker = build_tracker(build_funnel())
        tracker.submit_page("P1", {"title": "hello"})
        assert "title" not in tracker.answers

    def test_later_answers_overwrite(self):
        tracker = build_tracker(build_funnel())
        tracker.submit_page("P1", {"choice": "a"})
        tracker.go_back()
        tracker.submit_page("P1", {"choice": "b"})
        assert tracker.answers["choice"] == "b"

    def test_unknown_page_uses_current(self):
        tracker = build_tracker(build_funnel())
        decision = tracker.submit_page("nope", {"choice": "a"})
        assert decision.submitted_page_id == "P1"
        assert decision.next_page_id == "P2"

    def test_gt_against_string_answer_does_not_block(self):
        rule = Rule("P1", condition=gt(Operand.block("choice"), Operand.constant(5)),
                    actions=(Action(ActionType.HIDE, Target(TargetType.PAGE, "P2")),))
        tracker = build_tracker(build_funnel([rule]))
        assert tracker.submit_page("P1", {"choice": "many"}).next_page_id == "P2"

    def test_undeclared_variable_write_is_diagnostic(self):
        rule = Rule("P1", actions=(
            Action(ActionType.SET, Target(TargetType.VARIABLE, "ghost"), ActionValue(ValueSource.CONSTANT, 1)),
        ))
        tracker = build_tracker(build_funnel([rule]))
        decision = tracker.submit_page("P1", {})
        assert "ghost" not in tracker.variables
        assert any("ghost" in message for message in decision.diagnostics)


class TestNavigationFeatures:

    def test_jump(self):
        rule = Rule("P1", actions=(Action(ActionType.JUMP, Target(TargetType.PAGE, "P3")),))
        tracker = build_tracker(build_funnel([rule]))
        assert tracker.submit_page("P1", {}).next_page_id == "P3"

    def test_jump_ignored_when_disabled(self):
        rule = Rule("P1", actions=(Action(ActionType.JUMP, Target(TargetType.PAGE, "P3")),))
        tracker = build_tracker(build_funnel([rule]), settings=Settings(honor_jumps=False))
        assert tracker.submit_page("P1", {}).next_page_id == "P2"

    def test_hidden_block_on_next_page(self):
        rule = Rule("P1", actions=(Action(ActionType.HIDE, Target(TargetType.BLOCK, "details")),))
        tracker = build_tracker(build_funnel([rule]))
        assert tracker.submit_page("P1", {}).next_page_id == "P3"

    def test_visible_blocks_of_current_page(self):
        rule = Rule("P1", actions=(Action(ActionType.HIDE, Target(TargetType.BLOCK, "title")),))
        tracker = build_tracker(build_funnel([rule]))
        assert [b.id for b in tracker.visible_blocks()] == ["choice"]

    def test_all_pages_hidden_completes(self):
        rule = Rule("P1", actions=(
            Action(ActionType.HIDE, Target(TargetType.PAGE, "P2")),
            Action(ActionType.HIDE, Target(TargetType.PAGE, "P3")),
        ))
        tracker = build_tracker(build_funnel([rule]))
        assert tracker.submit_page("P1", {}).next_page_id == COMPLETE

    def test_advance_returns_new_snapshot(self):
        funnel = build_funnel([hide_p2_when_no()])
        state = SessionState.start(funnel)
        decision = advance(funnel, state, "P1", {"choice": "no"})
        assert state.visited_page_ids == ()
        assert state.answers == {}
        assert decision.state.visited_page_ids == ("P1",)
        back_state, page_id = retreat(funnel, decision.state)
        assert page_id == "P1"
        assert decision.state.current_page_id == "P3"
        assert back_state.visited_page_ids == ()


class FailingSink(EventSink):
    def emit(self, event):
        raise RuntimeError("queue down")


class TestEvents:

    def test_event_sequence(self):
        sink = CollectingSink()
        tracker = build_tracker(build_funnel([hide_p2_when_no()]), event_sink=sink, answer_sink=sink)
        tracker.start()
        tracker.submit_page("P1", {"choice": "no"})
        tracker.submit_page("P3", {"email": "a@b.co"})

        types = [event.type for event in sink.events]
        assert types == [
            EventType.FUNNEL_START,
            EventType.PAGE_VIEW,
            EventType.PAGE_COMPLETE,
            EventType.QUESTION_ANSWER,
            EventType.PAGE_VIEW,
            EventType.PAGE_COMPLETE,
            EventType.QUESTION_ANSWER,
            EventType.FUNNEL_COMPLETE,
        ]
        second_view = sink.of_type(EventType.PAGE_VIEW)[1]
        assert second_view.page_id == "P3"
        assert second_view.from_page_id == "P1"
        assert second_view.page_depth == 2
        assert all(event.funnel_version == 3 and event.session_id == "s1" for event in sink.events)

    def test_answer_records(self):
        sink = CollectingSink()
        tracker = build_tracker(build_funnel(), answer_sink=sink)
        tracker.submit_page("P1", {"choice": "x", "ghost": 1})
        assert [(a.block_id, a.value, a.page_id) for a in sink.answers] == [("choice", "x", "P1")]

    def test_sink_failure_does_not_block_navigation(self):
        tracker = build_tracker(build_funnel(), event_sink=FailingSink())
        assert tracker.submit_page("P1", {}).next_page_id == "P2"

    def test_events_disabled(self):
        sink = CollectingSink()
        tracker = build_tracker(build_funnel(), event_sink=sink, settings=Settings(events_enabled=False))
        tracker.start()
        tracker.submit_page("P1", {})
        assert sink.events == []

    def test_event_to_dict(self):
        sink = CollectingSink()
        tracker = build_tracker(build_funnel(), event_sink=sink)
        tracker.start()
        data = sink.events[0].to_dict()
        assert data["type"] == "funnel_start"
        assert data["timestamp"] == FIXED_TIME.isoformat()
        assert "page_id" not in data
