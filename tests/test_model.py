"""
Tests for the funnel model objects

These tests verify:
    - Basic model creation
    - Lookup helpers on Funnel and Page
    - Input vs presentational blocks
    - Auto-advance behaviour of pages
"""

import pytest
from funnel_logic.conditions import ALWAYS
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


def build_funnel() -> Funnel:
    return Funnel(
        id="f1",
        pages=(
            Page("p1", blocks=(Block("choice", BlockType.MULTIPLE_CHOICE),)),
            Page("p2", blocks=(Block("title", BlockType.HEADING), Block("email", BlockType.TEXT_INPUT))),
        ),
        rules=(
            Rule("p1", actions=(Action(ActionType.HIDE, Target(TargetType.PAGE, "p2")),)),
            Rule("p2"),
            Rule("p1"),
        ),
        variables=(VariableDeclaration("score"),),
    )


class TestBlock:

    def test_input_blocks(self):
        for block_type in (BlockType.TEXT_INPUT, BlockType.MULTIPLE_CHOICE, BlockType.PICTURE_CHOICE,
                           BlockType.DROPDOWN, BlockType.SLIDER):
            assert Block("b", block_type).is_input

    def test_presentational_blocks(self):
        for block_type in (BlockType.HEADING, BlockType.PARAGRAPH, BlockType.IMAGE, BlockType.SPACER,
                           BlockType.HTML, BlockType.LOADER, BlockType.GAUGE, BlockType.LIST):
            assert not Block("b", block_type).is_input

    def test_block_immutable(self):
        block = Block("b", BlockType.HEADING)
        with pytest.raises(AttributeError):
            block.id = "c"


class TestPage:

    def test_defaults(self):
        page = Page("p1")
        assert page.blocks == ()
        assert page.properties == PageProperties()
        assert page.properties.redirect_url is None

    def test_get_block(self):
        page = Page("p1", blocks=(Block("a", BlockType.HEADING), Block("b", BlockType.TEXT_INPUT)))
        assert page.get_block("b").type is BlockType.TEXT_INPUT
        assert page.get_block("missing") is None
        assert page.block_ids == ["a", "b"]

    def test_single_choice_auto_advances(self):
        page = Page("p", blocks=(Block("c", BlockType.MULTIPLE_CHOICE, {"multiple": False}),))
        assert page.auto_advances()

    def test_multi_select_needs_button(self):
        page = Page("p", blocks=(Block("c", BlockType.MULTIPLE_CHOICE, {"multiple": True}),))
        assert not page.auto_advances()

    def test_loader_auto_advances(self):
        page = Page("p", blocks=(Block("l", BlockType.LOADER), Block("h", BlockType.HEADING)))
        assert page.auto_advances()

    def test_several_inputs_need_button(self):
        page = Page("p", blocks=(Block("d", BlockType.DROPDOWN), Block("t", BlockType.TEXT_INPUT)))
        assert not page.auto_advances()

    def test_slider_does_not_block_auto_advance(self):
        page = Page("p", blocks=(Block("d", BlockType.DROPDOWN), Block("s", BlockType.SLIDER)))
        assert page.auto_advances()

    def test_slider_alone_needs_button(self):
        assert not Page("p", blocks=(Block("s", BlockType.SLIDER),)).auto_advances()

    def test_text_input_needs_button(self):
        assert not Page("p", blocks=(Block("t", BlockType.TEXT_INPUT),)).auto_advances()


class TestAction:

    def test_mutation_and_visibility_kinds(self):
        hide = Action(ActionType.HIDE, Target(TargetType.BLOCK, "b"))
        add = Action(ActionType.ADD, Target(TargetType.VARIABLE, "score"), ActionValue(ValueSource.CONSTANT, 1))
        assert hide.is_visibility and not hide.is_mutation
        assert add.is_mutation and not add.is_visibility
        assert hide.condition is None


class TestFunnel:

    def test_rule_default_condition_is_always(self):
        assert Rule("p1").condition == ALWAYS

    def test_get_page_and_index(self):
        funnel = build_funnel()
        assert funnel.get_page("p2").id == "p2"
        assert funnel.get_page("p9") is None
        assert funnel.page_index("p2") == 1
        assert funnel.page_index("p9") is None
        assert funnel.first_page_id == "p1"

    def test_get_block_searches_all_pages(self):
        funnel = build_funnel()
        assert funnel.get_block("email").type is BlockType.TEXT_INPUT
        assert funnel.get_block("nope") is None
        assert set(funnel.blocks_by_id()) == {"choice", "title", "email"}

    def test_rules_for_page_keeps_declared_order(self):
        funnel = build_funnel()
        rules = funnel.rules_for_page("p1")
        assert rules == [funnel.rules[0], funnel.rules[2]]

    def test_get_variable(self):
        funnel = build_funnel()
        assert funnel.get_variable("score").default == 0
        assert funnel.get_variable("missing") is None

    def test_empty_funnel_has_no_first_page(self):
        assert Funnel(id="empty").first_page_id is None
