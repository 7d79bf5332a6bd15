"""
Serialization helpers for funnel definitions and session snapshots.

Provides JSON/YAML round-trip via an intermediate dict representation.
Loading validates the shape of a definition once, up front, so the
evaluation path can trust the objects it receives.

Dict shapes follow the stored funnel documents:

    condition:  {"op": "eq", "vars": [{"type": "block", "value": "q1"},
                                      {"type": "constant", "value": "no"}]}
                {"op": "and", "vars": [<condition>, ...]}
    action:     {"type": "hide", "condition": <condition>,
                 "details": {"target": {"type": "page", "value": "p2"}}}
                {"type": "jump", "details": {"to": {"type": "page", "value": "p4"}}}
                {"type": "add", "details": {"target": {"type": "variable", "value": "score"},
                                            "value": {"type": "constant", "value": 10}}}
    rule:       {"page_id": "p1", "condition": <condition>, "actions": [<action>, ...]}
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import yaml

from funnel_logic.conditions import (
    ALWAYS,
    Comparison,
    ComparisonOperator,
    Condition,
    LogicalCondition,
    LogicalOperator,
    Operand,
    OperandType,
)
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
    VariableType,
)
from funnel_logic.session import SessionState, SessionStatus
from funnel_logic.variables import VariableStore


class DefinitionError(Exception):
    """Raised when a funnel definition cannot be loaded."""
    pass


_LOGICAL_OPS = {op.value for op in LogicalOperator}


def condition_to_dict(condition: Condition | None) -> Any:
    if condition is None:
        return None
    if isinstance(condition, Comparison):
        data: Dict[str, Any] = {"op": condition.operator.value}
        if condition.operator is not ComparisonOperator.ALWAYS:
            data["vars"] = [{"type": o.type.value, "value": o.value} for o in condition.operands]
        return data
    if isinstance(condition, LogicalCondition):
        return {
            "op": condition.operator.value,
            "vars": [condition_to_dict(child) for child in condition.conditions],
        }
    raise TypeError(f"Unsupported Condition type: {type(condition)}")


def condition_from_dict(d: Any) -> Condition | None:
    if d is None:
        return None
    if not isinstance(d, dict):
        raise DefinitionError(f"Condition must be a mapping, got {type(d).__name__}")

    op = d.get("op")
    if op in _LOGICAL_OPS:
        children = tuple(condition_from_dict(child) for child in d.get("vars", []))
        return LogicalCondition(LogicalOperator(op), children)

    try:
        operator = ComparisonOperator(op)
    except ValueError:
        raise DefinitionError(f"Unsupported condition operator: {op!r}")

    operands = []
    for var in d.get("vars", []):
        try:
            operands.append(Operand(OperandType(var["type"]), var.get("value")))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise DefinitionError(f"Invalid operand {var!r}: {e}")
    return Comparison(operator, tuple(operands))


def action_to_dict(a: Action) -> Dict[str, Any]:
    details: Dict[str, Any] = {}
    target = {"type": a.target.type.value, "value": a.target.value}
    if a.type is ActionType.JUMP:
        details["to"] = target
    else:
        details["target"] = target
    if a.value is not None:
        details["value"] = {"type": a.value.source.value, "value": a.value.value}

    data: Dict[str, Any] = {"type": a.type.value, "details": details}
    if a.condition is not None:
        data["condition"] = condition_to_dict(a.condition)
    return data


def action_from_dict(d: Dict[str, Any]) -> Action:
    try:
        action_type = ActionType(d["type"])
    except (KeyError, ValueError):
        raise DefinitionError(f"Unsupported action type: {d.get('type')!r}")

    details = d.get("details") or {}
    keys = ("to", "target") if action_type is ActionType.JUMP else ("target", "to")
    raw_target = next((details[key] for key in keys if details.get(key)), None)
    if not raw_target:
        raise DefinitionError(f"{action_type.value} action has no target")
    try:
        target = Target(TargetType(raw_target["type"]), raw_target["value"])
    except (KeyError, ValueError, TypeError) as e:
        raise DefinitionError(f"Invalid action target {raw_target!r}: {e}")

    value = None
    raw_value = details.get("value")
    if raw_value is not None:
        try:
            value = ActionValue(ValueSource(raw_value["type"]), raw_value["value"])
        except (KeyError, ValueError, TypeError) as e:
            raise DefinitionError(f"Invalid action value {raw_value!r}: {e}")

    return Action(
        type=action_type,
        target=target,
        value=value,
        condition=condition_from_dict(d.get("condition")),
    )


def rule_to_dict(r: Rule) -> Dict[str, Any]:
    return {
        "page_id": r.page_id,
        "condition": condition_to_dict(r.condition),
        "actions": [action_to_dict(a) for a in r.actions],
    }


def rule_from_dict(d: Dict[str, Any]) -> Rule:
    page_id = d.get("page_id", d.get("pageId"))
    if not page_id:
        raise DefinitionError(f"Rule has no page id: {d!r}")
    condition = condition_from_dict(d.get("condition"))
    return Rule(
        page_id=page_id,
        condition=condition if condition is not None else ALWAYS,
        actions=tuple(action_from_dict(a) for a in d.get("actions", [])),
    )


def block_to_dict(b: Block) -> Dict[str, Any]:
    return {
        "id": b.id,
        "type": b.type.value,
        "properties": dict(b.properties),
        "validations": dict(b.validations),
    }


def block_from_dict(d: Dict[str, Any]) -> Block:
    try:
        block_type = BlockType(d["type"])
    except (KeyError, ValueError):
        raise DefinitionError(f"Unsupported block type: {d.get('type')!r}")
    if not d.get("id"):
        raise DefinitionError(f"Block has no id: {d!r}")
    return Block(
        id=d["id"],
        type=block_type,
        properties=dict(d.get("properties") or {}),
        validations=dict(d.get("validations") or {}),
    )


def page_to_dict(p: Page) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "blocks": [block_to_dict(b) for b in p.blocks],
        "properties": {
            "button_text": p.properties.button_text,
            "redirect_url": p.properties.redirect_url,
        },
    }


def page_from_dict(d: Dict[str, Any]) -> Page:
    if not d.get("id"):
        raise DefinitionError(f"Page has no id: {d!r}")
    props = d.get("properties") or {}
    return Page(
        id=d["id"],
        name=d.get("name", ""),
        blocks=tuple(block_from_dict(b) for b in d.get("blocks", [])),
        properties=PageProperties(
            button_text=props.get("button_text", props.get("buttonText", "Continue")),
            redirect_url=props.get("redirect_url", props.get("redirectUrl")),
        ),
    )


def variable_to_dict(v: VariableDeclaration) -> Dict[str, Any]:
    return {"name": v.name, "data_type": v.data_type.value, "default": v.default}


def _infer_variable_type(value: Any) -> VariableType:
    if isinstance(value, bool):
        return VariableType.BOOLEAN
    if isinstance(value, (int, float)):
        return VariableType.NUMBER
    return VariableType.STRING


def variables_from_data(data: Any) -> List[VariableDeclaration]:
    """
    Accepts either a list of declarations or a plain {name: default} mapping.
    """
    if not data:
        return []
    if isinstance(data, dict):
        return [
            VariableDeclaration(name=name, data_type=_infer_variable_type(default), default=default)
            for name, default in data.items()
        ]
    declarations = []
    for d in data:
        try:
            data_type = VariableType(d.get("data_type", "number"))
        except ValueError:
            raise DefinitionError(f"Unsupported variable type: {d.get('data_type')!r}")
        if not d.get("name"):
            raise DefinitionError(f"Variable has no name: {d!r}")
        declarations.append(VariableDeclaration(name=d["name"], data_type=data_type, default=d.get("default")))
    return declarations


def funnel_to_dict(f: Funnel) -> Dict[str, Any]:
    return {
        "id": f.id,
        "version": f.version,
        "pages": [page_to_dict(p) for p in f.pages],
        "rules": [rule_to_dict(r) for r in f.rules],
        "variables": [variable_to_dict(v) for v in f.variables],
        "metadata": dict(f.metadata),
    }


def funnel_from_dict(d: Dict[str, Any]) -> Funnel:
    """
    Build a Funnel from its dict form.

    Raises:
        DefinitionError: If the definition is malformed
    """
    if not isinstance(d, dict):
        raise DefinitionError("Funnel definition must be a mapping")
    try:
        return Funnel(
            id=d.get("id", ""),
            version=int(d.get("version", 1)),
            pages=tuple(page_from_dict(p) for p in d.get("pages", [])),
            rules=tuple(rule_from_dict(r) for r in d.get("rules", [])),
            variables=tuple(variables_from_data(d.get("variables"))),
            metadata=dict(d.get("metadata") or {}),
        )
    except DefinitionError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise DefinitionError(f"Malformed funnel definition: {e}")


def funnel_to_json(f: Funnel) -> str:
    return json.dumps(funnel_to_dict(f), sort_keys=True)


def funnel_from_json(s: str) -> Funnel:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise DefinitionError(f"Invalid JSON: {e}")
    return funnel_from_dict(d)


def funnel_to_yaml(f: Funnel) -> str:
    return yaml.safe_dump(funnel_to_dict(f))


def funnel_from_yaml(s: str) -> Funnel:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise DefinitionError(f"Invalid YAML: {e}")
    return funnel_from_dict(d)


def session_state_to_dict(state: SessionState) -> Dict[str, Any]:
    return {
        "answers": dict(state.answers),
        "variables": state.variables.values(),
        "visited_page_ids": list(state.visited_page_ids),
        "current_page_id": state.current_page_id,
        "status": state.status.value,
    }


def session_state_from_dict(funnel: Funnel, d: Dict[str, Any]) -> SessionState:
    """
    Restore a snapshot; variable values are reapplied over the funnel's declarations.

    Raises:
        DefinitionError: If the snapshot is malformed
    """
    if not isinstance(d, dict):
        raise DefinitionError("Session snapshot must be a mapping")
    try:
        status = SessionStatus(d.get("status", SessionStatus.IN_PROGRESS.value))
    except ValueError:
        raise DefinitionError(f"Unsupported session status: {d.get('status')!r}")
    try:
        variables = VariableStore.initialize(funnel.variables).apply(d.get("variables") or {})
        return SessionState(
            answers=dict(d.get("answers") or {}),
            variables=variables,
            visited_page_ids=tuple(d.get("visited_page_ids") or ()),
            current_page_id=d.get("current_page_id"),
            status=status,
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise DefinitionError(f"Malformed session snapshot: {e}")
