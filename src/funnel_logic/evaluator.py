"""
Condition Evaluator

Pure evaluation of a Condition tree against the answers and variables
of one session.

Coercion rules (fixed ahead of time):
    - Numbers and plain decimal strings ("12", "-0.5") compare numerically
    - Other strings ("NaN", "inf", "1_0", " 5 ") compare case-sensitively
    - Booleans only equal booleans
    - Lists (multi-select answers) compare as sets; a scalar against a
      list compares by membership
    - Ordering operators need two numeric operands, otherwise False

A condition that cannot be evaluated is False. Evaluation never raises.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Set

from funnel_logic.conditions import (
    Comparison,
    ComparisonOperator,
    Condition,
    LogicalCondition,
    LogicalOperator,
    Operand,
    OperandType,
    OPERATOR_ARITY,
)

logger = logging.getLogger(__name__)


class _Absent:
    """Value of a reference that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


@dataclass(frozen=True)
class EvaluationContext:
    """
    What a condition is evaluated against.

    Properties:
        answers: block id -> latest answer
        variables: variable name -> current value (a dict or VariableStore)
    """

    answers: Mapping[str, Any] = field(default_factory=dict)
    variables: Any = field(default_factory=dict)


def resolve_operand(operand: Operand, context: EvaluationContext) -> Any:
    """Value of an operand, or ABSENT when the reference does not resolve."""
    if operand.type is OperandType.CONSTANT:
        return operand.value
    if operand.type is OperandType.BLOCK:
        value = context.answers.get(operand.value, ABSENT)
        return ABSENT if value is None else value
    if operand.type is OperandType.VARIABLE:
        if operand.value in context.variables:
            value = context.variables.get(operand.value)
            return ABSENT if value is None else value
        return ABSENT
    return ABSENT


NUMERIC_LITERAL = re.compile(r"-?[0-9]+(\.[0-9]+)?")


def parse_numeric(value: str) -> Optional[float]:
    """Number held in a plain decimal literal such as "12" or "-0.5", else None."""
    if not NUMERIC_LITERAL.fullmatch(value):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return parse_numeric(value)
    return None


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _key(value: Any) -> Any:
    """Hashable, coercion-aware key used for set comparison."""
    number = _as_number(value)
    if number is not None:
        return ("n", number)
    if isinstance(value, bool):
        return ("b", value)
    if isinstance(value, str):
        return ("s", value)
    return ("r", repr(value))


def _keys(values: Iterable[Any]) -> Set[Any]:
    return {_key(v) for v in values}


def _scalar_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    left_number, right_number = _as_number(left), _as_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return left == right


def _equals(left: Any, right: Any) -> bool:
    if left is ABSENT or right is ABSENT:
        return False
    if _is_list(left) and _is_list(right):
        return _keys(left) == _keys(right)
    if _is_list(left):
        return any(_scalar_equals(item, right) for item in left)
    if _is_list(right):
        return any(_scalar_equals(left, item) for item in right)
    return _scalar_equals(left, right)


def _contains(left: Any, right: Any) -> bool:
    if left is ABSENT or right is ABSENT:
        return False
    if _is_list(left):
        if _is_list(right):
            return _keys(right) <= _keys(left)
        return any(_scalar_equals(item, right) for item in left)
    if isinstance(left, str) and isinstance(right, str):
        return right in left
    return False


def _is_empty(value: Any) -> bool:
    if value is ABSENT or value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if _is_list(value):
        return len(value) == 0
    return False


def _ordered(operator: ComparisonOperator, left: Any, right: Any) -> bool:
    left_number, right_number = _as_number(left), _as_number(right)
    if left_number is None or right_number is None:
        return False
    if operator is ComparisonOperator.GREATER_THAN:
        return left_number > right_number
    if operator is ComparisonOperator.GREATER_EQUAL:
        return left_number >= right_number
    if operator is ComparisonOperator.LESS_THAN:
        return left_number < right_number
    return left_number <= right_number


def _evaluate_comparison(condition: Comparison, context: EvaluationContext) -> bool:
    operator = condition.operator
    if operator is ComparisonOperator.ALWAYS:
        return True

    arity = OPERATOR_ARITY[operator]
    if len(condition.operands) < arity:
        logger.debug("Comparison %s has %d operand(s), needs %d", operator.value, len(condition.operands), arity)
        return False

    values = [resolve_operand(operand, context) for operand in condition.operands[:arity]]

    if operator is ComparisonOperator.IS_EMPTY:
        return _is_empty(values[0])

    left, right = values
    if operator is ComparisonOperator.EQUALS:
        return _equals(left, right)
    if operator is ComparisonOperator.NOT_EQUALS:
        return not _equals(left, right)
    if operator is ComparisonOperator.CONTAINS:
        return _contains(left, right)
    return _ordered(operator, left, right)


def _evaluate(condition: Condition, context: EvaluationContext) -> bool:
    if isinstance(condition, Comparison):
        return _evaluate_comparison(condition, context)

    if isinstance(condition, LogicalCondition):
        if condition.operator is LogicalOperator.AND:
            return all(_evaluate(child, context) for child in condition.conditions)
        if condition.operator is LogicalOperator.OR:
            return any(_evaluate(child, context) for child in condition.conditions)

    logger.debug("Unsupported condition %r evaluates to False", condition)
    return False


def evaluate(condition: Optional[Condition], context: EvaluationContext) -> bool:
    """
    Evaluate a condition tree.

    Args:
        condition: Condition to evaluate. None counts as "always".
        context: Answers and variables of the session

    Returns:
        True if the condition holds. Malformed conditions are False.
    """
    if condition is None:
        return True
    try:
        return _evaluate(condition, context)
    except Exception:
        logger.debug("Condition %r could not be evaluated", condition, exc_info=True)
        return False


def referenced_blocks(condition: Optional[Condition]) -> Set[str]:
    """All block ids a condition reads."""
    return _references(condition, OperandType.BLOCK)


def referenced_variables(condition: Optional[Condition]) -> Set[str]:
    """All variable names a condition reads."""
    return _references(condition, OperandType.VARIABLE)


def _references(condition: Optional[Condition], kind: OperandType) -> Set[str]:
    if condition is None:
        return set()
    if isinstance(condition, Comparison):
        return {str(o.value) for o in condition.operands if o.type is kind}
    if isinstance(condition, LogicalCondition):
        found: Set[str] = set()
        for child in condition.conditions:
            found |= _references(child, kind)
        return found
    return set()
