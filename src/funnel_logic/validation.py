"""
Answer validation helpers.

Checks submitted answers against the `validations` declared on each
block. The presentation layer runs this before calling submit_page();
the session tracker itself trusts its input.

Supported validations:
    required, email, min_length, max_length, min_choices, max_choices,
    min, max, pattern
(camelCase spellings such as maxLength are accepted as well)
"""

import re
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from funnel_logic.model import Block

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_ALIASES = {
    "minLength": "min_length",
    "maxLength": "max_length",
    "minChoices": "min_choices",
    "maxChoices": "max_choices",
}


def _empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, tuple)) and len(value) == 0)


def _count(value: Any) -> int:
    if isinstance(value, (list, tuple)):
        return len(value)
    return 0 if _empty(value) else 1


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _required(value: Any, param: Any) -> Optional[str]:
    return "Required" if _empty(value) else None


def _email(value: Any, param: Any) -> Optional[str]:
    if _empty(value):
        return None
    return None if _EMAIL_RE.match(str(value)) else "Invalid email"


def _min_length(value: Any, param: Any) -> Optional[str]:
    if _empty(value):
        return None
    return None if len(str(value)) >= param else f"Min {param} characters"


def _max_length(value: Any, param: Any) -> Optional[str]:
    if _empty(value):
        return None
    return None if len(str(value)) <= param else f"Max {param} characters"


def _min_choices(value: Any, param: Any) -> Optional[str]:
    return None if _count(value) >= param else f"Select at least {param}"


def _max_choices(value: Any, param: Any) -> Optional[str]:
    return None if _count(value) <= param else f"Select at most {param}"


def _min(value: Any, param: Any) -> Optional[str]:
    if value is None:
        return None
    number = _to_float(value)
    return None if number is not None and number >= param else f"Min {param}"


def _max(value: Any, param: Any) -> Optional[str]:
    if value is None:
        return None
    number = _to_float(value)
    return None if number is not None and number <= param else f"Max {param}"


def _pattern(value: Any, param: Any) -> Optional[str]:
    if _empty(value):
        return None
    return None if re.search(param, str(value)) else "Invalid format"


VALIDATORS: Dict[str, Callable[[Any, Any], Optional[str]]] = {
    "required": _required,
    "email": _email,
    "min_length": _min_length,
    "max_length": _max_length,
    "min_choices": _min_choices,
    "max_choices": _max_choices,
    "min": _min,
    "max": _max,
    "pattern": _pattern,
}


def validate_block(block: Block, value: Any) -> Optional[str]:
    """First validation error for a block's answer, or None."""
    for key, param in block.validations.items():
        if param is False or param is None:
            continue
        validator = VALIDATORS.get(_ALIASES.get(key, key))
        if validator is None:
            continue
        error = validator(value, param)
        if error:
            return error
    return None


def validate_blocks(blocks: Iterable[Block], answers: Mapping[str, Any]) -> Dict[str, str]:
    """
    Validate the answers for a set of (visible) blocks.

    Returns:
        block id -> error message; empty when everything is valid
    """
    errors: Dict[str, str] = {}
    for block in blocks:
        if not block.is_input:
            continue
        error = validate_block(block, answers.get(block.id))
        if error:
            errors[block.id] = error
    return errors
