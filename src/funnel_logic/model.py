"""
Core Funnel Model Objects

Defines the fundamental data structures of a funnel definition.

These are pure data classes representing:
    - Blocks (questions and content units)
    - Pages (ordered steps)
    - Variable declarations (typed session slots)
    - Actions and Rules (conditional effects)
    - Funnels (root container)

ARCHITECTURAL RULE:
    These objects:
        - Are immutable (frozen dataclasses, tuples for sequences)
        - Are fully serializable
        - Represent structure, not behavior
    A Funnel is treated as read-only for the lifetime of a session.

ID NAMESPACE:
    Page ids and block ids share one namespace. Hide actions record bare
    ids, so a block named like a page would hide that page too.
    analyze_funnel() reports such collisions as duplicate ids.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .conditions import ALWAYS, Condition


class BlockType(Enum):
    """Closed set of block kinds a page can hold."""

    TEXT_INPUT = "text_input"
    MULTIPLE_CHOICE = "multiple_choice"
    PICTURE_CHOICE = "picture_choice"
    DROPDOWN = "dropdown"
    SLIDER = "slider"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    IMAGE = "image"
    GAUGE = "gauge"
    LIST = "list"
    LOADER = "loader"
    SPACER = "spacer"
    HTML = "html"


INPUT_BLOCK_TYPES = frozenset({
    BlockType.TEXT_INPUT,
    BlockType.MULTIPLE_CHOICE,
    BlockType.PICTURE_CHOICE,
    BlockType.DROPDOWN,
    BlockType.SLIDER,
})

# Inputs counted by Page.auto_advances(); sliders are excluded.
AUTO_ADVANCE_INPUT_TYPES = INPUT_BLOCK_TYPES - {BlockType.SLIDER}


@dataclass(frozen=True)
class Block:
    """
    A single question or content unit within a Page.

    Properties:
        id:
            Stable identifier, referenced by conditions and hide actions
        type:
            BlockType tag
        properties:
            Type-specific configuration (labels, options, multiple, ...)
        validations:
            Answer constraints (required, email, max_length, ...)
            Checked by funnel_logic.validation, never by the engine

    ARCHITECTURAL RULE:
        Only input blocks produce answers.
        Presentational blocks are ignored when answers are merged.
    """

    id: str
    type: BlockType
    properties: Mapping[str, Any] = field(default_factory=dict)
    validations: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_input(self) -> bool:
        return self.type in INPUT_BLOCK_TYPES

    @property
    def is_multiple(self) -> bool:
        return bool(self.properties.get("multiple", False))


@dataclass(frozen=True)
class PageProperties:
    """Button behaviour and exit options for a page."""

    button_text: str = "Continue"
    redirect_url: Optional[str] = None


@dataclass(frozen=True)
class Page:
    """
    Ordered step in a funnel.

    Properties:
        id: Stable identifier, referenced by rules
        name: Human-readable label (used in analytics)
        blocks: Ordered blocks on the page
        properties: PageProperties
    """

    id: str
    name: str = ""
    blocks: Tuple[Block, ...] = ()
    properties: PageProperties = field(default_factory=PageProperties)

    @property
    def block_ids(self) -> List[str]:
        return [block.id for block in self.blocks]

    def get_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def auto_advances(self) -> bool:
        """
        Whether the page moves on without an explicit "next" click.

        A page with more than one text, choice or dropdown input always
        needs the button; sliders are not counted. Otherwise it advances
        when it holds a loader, a dropdown, or a single-select choice block.
        """
        inputs = [block for block in self.blocks if block.type in AUTO_ADVANCE_INPUT_TYPES]
        if len(inputs) > 1:
            return False

        for block in self.blocks:
            if block.type in (BlockType.LOADER, BlockType.DROPDOWN):
                return True
            if block.type in (BlockType.MULTIPLE_CHOICE, BlockType.PICTURE_CHOICE) and not block.is_multiple:
                return True
        return False


class VariableType(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class VariableDeclaration:
    """
    Declares a session variable.

    Properties:
        name: Variable identifier (e.g., "score")
        data_type: VariableType
        default: Value the variable holds when a session starts
    """

    name: str
    data_type: VariableType = VariableType.NUMBER
    default: Any = 0


class ActionType(Enum):
    """
    Effects a rule can produce.

    HIDE and JUMP are visibility effects.
    SET and the arithmetic kinds are mutation effects on a variable.
    """

    HIDE = "hide"
    JUMP = "jump"
    SET = "set"
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"


VISIBILITY_ACTIONS = frozenset({ActionType.HIDE, ActionType.JUMP})
MUTATION_ACTIONS = frozenset({
    ActionType.SET,
    ActionType.ADD,
    ActionType.SUBTRACT,
    ActionType.MULTIPLY,
    ActionType.DIVIDE,
})


class TargetType(Enum):
    PAGE = "page"
    BLOCK = "block"
    VARIABLE = "variable"


@dataclass(frozen=True)
class Target:
    """What an action affects: a page, a block, or a variable."""

    type: TargetType
    value: str


class ValueSource(Enum):
    CONSTANT = "constant"
    VARIABLE = "variable"


@dataclass(frozen=True)
class ActionValue:
    """Operand of a mutation action: a literal or another variable."""

    source: ValueSource
    value: Any


@dataclass(frozen=True)
class Action:
    """
    Effect applied when a rule matches.

    Properties:
        type:
            ActionType
        target:
            Page/block for HIDE and JUMP, variable for mutations
        value:
            Operand for mutations (None for HIDE/JUMP)
        condition:
            Optional guard checked after the rule's own condition.
            None means the action always applies when its rule fires.

    Example:
        Add 10 to "score":

        Action(
            type=ActionType.ADD,
            target=Target(TargetType.VARIABLE, "score"),
            value=ActionValue(ValueSource.CONSTANT, 10),
        )
    """

    type: ActionType
    target: Target
    value: Optional[ActionValue] = None
    condition: Optional[Condition] = None

    @property
    def is_mutation(self) -> bool:
        return self.type in MUTATION_ACTIONS

    @property
    def is_visibility(self) -> bool:
        return self.type in VISIBILITY_ACTIONS


@dataclass(frozen=True)
class Rule:
    """
    Associates a page with a condition and ordered actions.

    Properties:
        page_id:
            Page whose evaluation triggers this rule
        condition:
            Trigger condition; defaults to ALWAYS
        actions:
            Applied in declared order when the condition holds

    INVARIANTS:
        - Rules for the same page are evaluated in declared order
        - Later writes to the same target override earlier ones
    """

    page_id: str
    condition: Condition = ALWAYS
    actions: Tuple[Action, ...] = ()


@dataclass(frozen=True)
class Funnel:
    """
    Root container for a funnel definition.

    Everything the engine needs for one session is derivable from this
    object alone. It is loaded once (see funnel_logic.serialization) and
    never modified while a session runs.

    Properties:
        id: Funnel identifier
        version: Published version number
        pages: Ordered pages
        rules: Ordered rules
        variables: Declared variables
        metadata: Arbitrary key-value pairs (use sparingly)

    INVARIANTS (checked by funnel_logic.analyzer, not enforced here):
        - Page and block ids are unique
        - Rule page ids and action targets exist
        - Condition references resolve
    """

    id: str
    version: int = 1
    pages: Tuple[Page, ...] = ()
    rules: Tuple[Rule, ...] = ()
    variables: Tuple[VariableDeclaration, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)

    def get_page(self, page_id: str) -> Optional[Page]:
        """
        Retrieve a page by ID.

        Returns:
            Page object or None if not found
        """
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def page_index(self, page_id: str) -> Optional[int]:
        for index, page in enumerate(self.pages):
            if page.id == page_id:
                return index
        return None

    def get_block(self, block_id: str) -> Optional[Block]:
        """
        Retrieve a block by ID, searching every page.

        Returns:
            Block object or None if not found
        """
        for page in self.pages:
            block = page.get_block(block_id)
            if block is not None:
                return block
        return None

    def blocks_by_id(self) -> Dict[str, Block]:
        return {block.id: block for page in self.pages for block in page.blocks}

    def get_variable(self, name: str) -> Optional[VariableDeclaration]:
        for declaration in self.variables:
            if declaration.name == name:
                return declaration
        return None

    def rules_for_page(self, page_id: str) -> List[Rule]:
        """Rules triggered by the given page, in declared order."""
        return [rule for rule in self.rules if rule.page_id == page_id]

    @property
    def first_page_id(self) -> Optional[str]:
        return self.pages[0].id if self.pages else None
