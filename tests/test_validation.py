"""
Tests for answer validation helpers.
"""

import pytest
from funnel_logic.model import Block, BlockType
from funnel_logic.validation import validate_block, validate_blocks


def text(validations) -> Block:
    return Block("t", BlockType.TEXT_INPUT, {}, validations)


class TestValidateBlock:

    @pytest.mark.parametrize("value", [None, "", []])
    def test_required(self, value):
        assert validate_block(text({"required": True}), value) == "Required"

    def test_required_false_is_skipped(self):
        assert validate_block(text({"required": False}), None) is None

    def test_email(self):
        block = text({"email": True})
        assert validate_block(block, "jo@acme.io") is None
        assert validate_block(block, "not-an-email") == "Invalid email"
        assert validate_block(block, "") is None

    def test_lengths_accept_camel_case(self):
        block = text({"minLength": 2, "maxLength": 4})
        assert validate_block(block, "a") == "Min 2 characters"
        assert validate_block(block, "abcde") == "Max 4 characters"
        assert validate_block(block, "abc") is None

    def test_choices(self):
        block = Block("c", BlockType.MULTIPLE_CHOICE, {"multiple": True}, {"min_choices": 1, "max_choices": 2})
        assert validate_block(block, []) == "Select at least 1"
        assert validate_block(block, ["a", "b", "c"]) == "Select at most 2"
        assert validate_block(block, ["a"]) is None

    def test_numeric_range(self):
        block = Block("s", BlockType.SLIDER, {}, {"min": 0, "max": 10})
        assert validate_block(block, 11) == "Max 10"
        assert validate_block(block, -1) == "Min 0"
        assert validate_block(block, "5") is None
        assert validate_block(block, None) is None

    def test_pattern(self):
        block = text({"pattern": r"^\d{5}$"})
        assert validate_block(block, "12345") is None
        assert validate_block(block, "1234") == "Invalid format"

    def test_unknown_validation_ignored(self):
        assert validate_block(text({"sparkly": True}), "x") is None


def test_validate_blocks_skips_presentational():
    blocks = [
        Block("h", BlockType.HEADING, {}, {"required": True}),
        Block("email", BlockType.TEXT_INPUT, {}, {"required": True, "email": True}),
        Block("name", BlockType.TEXT_INPUT, {}, {"required": True}),
    ]
    errors = validate_blocks(blocks, {"email": "bad", "name": "Jo"})
    assert errors == {"email": "Invalid email"}
