"""
Condition System for Funnel Logic

All branching conditions (rule triggers, action guards) are represented
as small Abstract Syntax Trees, never as strings.

This ensures:
    - Type safety
    - Serialization capability
    - Composability for analysis

ARCHITECTURAL RULE:
    Condition objects are structure only.
    Evaluation lives in funnel_logic.evaluator.
"""

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple


class Condition(ABC):
    """
    Base class for all condition nodes.

    Intentionally minimal. It exists to give the condition hierarchy
    a common type.

    DO NOT:
        - Add evaluation logic here (belongs in evaluator)
        - Add analysis logic here (belongs in analyzer)
    """
    pass


class OperandType(Enum):
    """Where an operand takes its value from."""

    BLOCK = "block"
    VARIABLE = "variable"
    CONSTANT = "constant"


@dataclass(frozen=True)
class Operand:
    """
    A single value slot inside a comparison.

    Examples:
        Operand(OperandType.BLOCK, "choice")      latest answer for block "choice"
        Operand(OperandType.VARIABLE, "score")    current value of variable "score"
        Operand(OperandType.CONSTANT, "no")       the literal "no"

    Properties:
        type: OperandType
        value: Block id, variable name, or the literal value itself

    IMPORTANT:
        Block and variable operands are references only.
        Whether they resolve is decided at evaluation time.
    """

    type: OperandType
    value: Any

    @classmethod
    def block(cls, block_id: str) -> "Operand":
        return cls(OperandType.BLOCK, block_id)

    @classmethod
    def variable(cls, name: str) -> "Operand":
        return cls(OperandType.VARIABLE, name)

    @classmethod
    def constant(cls, value: Any) -> "Operand":
        return cls(OperandType.CONSTANT, value)


class ComparisonOperator(Enum):
    """
    Comparison operators supported in conditions.

    Every operator here must be meaningful against respondent answers
    and unambiguous across block types.
    """

    EQUALS = "eq"
    NOT_EQUALS = "neq"
    GREATER_THAN = "gt"
    GREATER_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_EQUAL = "lte"
    CONTAINS = "contains"
    IS_EMPTY = "is_empty"
    ALWAYS = "always"


# Number of operands each comparison consumes.
OPERATOR_ARITY = {
    ComparisonOperator.EQUALS: 2,
    ComparisonOperator.NOT_EQUALS: 2,
    ComparisonOperator.GREATER_THAN: 2,
    ComparisonOperator.GREATER_EQUAL: 2,
    ComparisonOperator.LESS_THAN: 2,
    ComparisonOperator.LESS_EQUAL: 2,
    ComparisonOperator.CONTAINS: 2,
    ComparisonOperator.IS_EMPTY: 1,
    ComparisonOperator.ALWAYS: 0,
}


class LogicalOperator(Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Comparison(Condition):
    """
    Compares operands with a single operator.

    Example:
        choice == "no"

    Becomes:
        Comparison(
            operator=ComparisonOperator.EQUALS,
            operands=(Operand.block("choice"), Operand.constant("no")),
        )

    Properties:
        operator: ComparisonOperator enum
        operands: Tuple of Operand, length given by OPERATOR_ARITY

    IMPORTANT:
        A comparison with the wrong number of operands is still a valid
        object. It evaluates to False rather than raising.
    """

    operator: ComparisonOperator
    operands: Tuple[Operand, ...] = ()


@dataclass(frozen=True)
class LogicalCondition(Condition):
    """
    Composes child conditions with AND / OR.

    Example:
        (score > 5 AND choice == "yes") OR plan is empty

    Children are evaluated left-to-right with short-circuiting.
    """

    operator: LogicalOperator
    conditions: Tuple[Condition, ...] = ()


ALWAYS = Comparison(ComparisonOperator.ALWAYS)


def eq(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.EQUALS, (left, right))


def neq(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.NOT_EQUALS, (left, right))


def gt(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.GREATER_THAN, (left, right))


def gte(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.GREATER_EQUAL, (left, right))


def lt(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.LESS_THAN, (left, right))


def lte(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.LESS_EQUAL, (left, right))


def contains(left: Operand, right: Operand) -> Comparison:
    return Comparison(ComparisonOperator.CONTAINS, (left, right))


def is_empty(operand: Operand) -> Comparison:
    return Comparison(ComparisonOperator.IS_EMPTY, (operand,))


def all_of(*conditions: Condition) -> LogicalCondition:
    return LogicalCondition(LogicalOperator.AND, tuple(conditions))


def any_of(*conditions: Condition) -> LogicalCondition:
    return LogicalCondition(LogicalOperator.OR, tuple(conditions))
