"""
Block template resolution.

Block properties may embed references to the session's data:

    {{var:plan}}     current value of variable "plan"
    {{block:email}}  latest answer to block "email"

Rendering rules:
    - Missing or None values render as ""
    - Lists (multi-select answers) are joined with ", "
    - Booleans render as "true"/"false", whole floats without ".0"

Strings are resolved wherever they sit inside the properties, including
nested lists and mappings. Blocks are never modified in place; resolved
copies are returned.
"""

import re
from dataclasses import replace
from typing import Any, Iterable, List

from funnel_logic.evaluator import EvaluationContext
from funnel_logic.model import Block

TEMPLATE_PATTERN = re.compile(r"\{\{(var|block):([^}]+)\}\}")


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(_render(item) for item in value)
    return str(value)


def resolve_template(template: str, context: EvaluationContext) -> str:
    """Replace every {{var:...}} / {{block:...}} reference in a string."""

    def substitute(match: "re.Match[str]") -> str:
        kind, key = match.group(1), match.group(2).strip()
        source = context.variables if kind == "var" else context.answers
        return _render(source.get(key))

    return TEMPLATE_PATTERN.sub(substitute, template)


def resolve_value(value: Any, context: EvaluationContext) -> Any:
    """Resolve templates in a string, or recursively in a list or mapping."""
    if isinstance(value, str):
        return resolve_template(value, context)
    if isinstance(value, (list, tuple)):
        return type(value)(resolve_value(item, context) for item in value)
    if isinstance(value, dict):
        return {key: resolve_value(item, context) for key, item in value.items()}
    return value


def resolve_block(block: Block, context: EvaluationContext) -> Block:
    return replace(block, properties=resolve_value(dict(block.properties), context))


def resolve_blocks(blocks: Iterable[Block], context: EvaluationContext) -> List[Block]:
    return [resolve_block(block, context) for block in blocks]
