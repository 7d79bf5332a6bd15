"""
Rule Engine

Evaluates the rules attached to one page and collects their effects:
    - hidden targets (pages and blocks)
    - variable writes (last write wins per variable)
    - the jump target, if any (first matching jump wins)

resolve() is deterministic and never mutates its inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from funnel_logic.evaluator import EvaluationContext, evaluate, parse_numeric
from funnel_logic.model import Action, ActionType, Rule, TargetType, ValueSource
from funnel_logic.variables import VariableStore

logger = logging.getLogger(__name__)


class Phase(Enum):
    """
    Which effects a pass collects.

    MUTATION runs after a page is submitted and yields variable writes.
    VISIBILITY runs before the following page renders and yields hide/jump.
    """

    MUTATION = "mutation"
    VISIBILITY = "visibility"


@dataclass(frozen=True)
class RuleOutcome:
    """Effects collected from one resolve() pass."""

    hidden_targets: FrozenSet[str] = frozenset()
    variable_writes: Mapping[str, Any] = field(default_factory=dict)
    jump_to: Optional[str] = None
    diagnostics: Tuple[str, ...] = ()


def _variable_values(variables: Any) -> Dict[str, Any]:
    if isinstance(variables, VariableStore):
        return variables.values()
    return dict(variables)


def _number(value: Any) -> Any:
    """Arithmetic view of a value; anything non-numeric counts as 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        number = parse_numeric(value)
        if number is None:
            return 0
        return number if "." in value else int(value)
    return 0


def _mutate(action: Action, running: Mapping[str, Any]) -> Any:
    name = action.target.value
    operand = action.value
    if operand.source is ValueSource.VARIABLE:
        raw = running.get(operand.value)
    else:
        raw = operand.value

    if action.type is ActionType.SET:
        return raw

    base = _number(running.get(name))
    amount = _number(raw)
    if action.type is ActionType.ADD:
        return base + amount
    if action.type is ActionType.SUBTRACT:
        return base - amount
    if action.type is ActionType.MULTIPLY:
        return base * amount
    # DIVIDE: division by zero leaves the value unchanged
    if amount == 0:
        return base
    return base / amount


def _wanted(action: Action, phase: Optional[Phase]) -> bool:
    if phase is Phase.MUTATION:
        return action.is_mutation
    if phase is Phase.VISIBILITY:
        return action.is_visibility
    return True


def resolve(
    rules: Iterable[Rule],
    page_id: str,
    context: EvaluationContext,
    phase: Optional[Phase] = None,
) -> RuleOutcome:
    """
    Collect the effects of every rule attached to page_id.

    Args:
        rules: All rules of the funnel, in declared order
        page_id: Page being evaluated; rules for other pages do not fire
        context: Answers and variables to evaluate against
        phase: Restrict to mutation or visibility effects (None for both)

    Returns:
        RuleOutcome. Conditions and action guards see variables as
        updated by earlier actions of the same pass.
    """
    hidden = set()
    writes: Dict[str, Any] = {}
    jump_to: Optional[str] = None
    diagnostics = []

    running = _variable_values(context.variables)
    answers = context.answers

    for index, rule in enumerate(rules):
        if rule.page_id != page_id:
            continue

        current = EvaluationContext(answers=answers, variables=running)
        if not evaluate(rule.condition, current):
            logger.debug("Rule #%d on page %s did not match", index, page_id)
            continue
        logger.debug("Rule #%d on page %s matched", index, page_id)

        for action in rule.actions:
            if not _wanted(action, phase):
                continue
            if action.condition is not None:
                guard_context = EvaluationContext(answers=answers, variables=running)
                if not evaluate(action.condition, guard_context):
                    continue

            target = action.target
            if action.type is ActionType.HIDE:
                if target.type in (TargetType.PAGE, TargetType.BLOCK):
                    hidden.add(target.value)
                else:
                    diagnostics.append(f"hide action on page {page_id} targets a {target.type.value}")

            elif action.type is ActionType.JUMP:
                if target.type is not TargetType.PAGE:
                    diagnostics.append(f"jump action on page {page_id} targets a {target.type.value}")
                elif jump_to is None:
                    jump_to = target.value

            else:
                if target.type is not TargetType.VARIABLE or action.value is None:
                    diagnostics.append(
                        f"{action.type.value} action on page {page_id} needs a variable target and a value"
                    )
                    continue
                value = _mutate(action, running)
                running[target.value] = value
                writes[target.value] = value

    for message in diagnostics:
        logger.warning(message)

    return RuleOutcome(
        hidden_targets=frozenset(hidden),
        variable_writes=writes,
        jump_to=jump_to,
        diagnostics=tuple(diagnostics),
    )
