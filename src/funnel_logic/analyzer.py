"""
Funnel Analyzer: publish-time diagnostics for funnel definitions.

This module provides lightweight analysis of Funnel objects:
    - Reference checks (rule pages, action targets, condition operands)
    - Variable inventory (undeclared, unused, type mismatches)
    - Jump structure (backward jumps that can loop)
    - Condition complexity metrics

IMPORTANT: The runtime engine stays permissive and never calls this.
It is meant for the publish step, which can refuse or warn.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from funnel_logic.conditions import Comparison, Condition, LogicalCondition
from funnel_logic.evaluator import referenced_blocks, referenced_variables
from funnel_logic.model import ActionType, Funnel, TargetType, ValueSource, VariableType


def _condition_depth(condition: Optional[Condition]) -> int:
    if condition is None:
        return 0
    if isinstance(condition, LogicalCondition):
        return 1 + max((_condition_depth(child) for child in condition.conditions), default=0)
    if isinstance(condition, Comparison):
        return 1
    return 0


@dataclass
class FunnelReport:
    """Analysis report for a funnel definition."""

    funnel_id: str
    total_pages: int = 0
    total_blocks: int = 0
    total_rules: int = 0
    total_variables: int = 0

    duplicate_ids: Set[str] = field(default_factory=set)
    unknown_rule_pages: Set[str] = field(default_factory=set)
    unknown_targets: Set[str] = field(default_factory=set)
    unknown_blocks: Set[str] = field(default_factory=set)
    undeclared_variables: Set[str] = field(default_factory=set)
    unused_variables: Set[str] = field(default_factory=set)
    variable_usage: Dict[str, int] = field(default_factory=dict)

    backward_jumps: List[Tuple[str, str]] = field(default_factory=list)
    has_cycles: bool = False

    max_condition_depth: int = 0

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)

    @property
    def ok(self) -> bool:
        return not self.warnings


def analyze_funnel(funnel: Funnel) -> FunnelReport:
    """
    Check a funnel definition for inconsistencies.

    Returns a FunnelReport with metrics and warnings.
    """
    report = FunnelReport(funnel_id=funnel.id)

    blocks = [block for page in funnel.pages for block in page.blocks]
    report.total_pages = len(funnel.pages)
    report.total_blocks = len(blocks)
    report.total_rules = len(funnel.rules)
    report.total_variables = len(funnel.variables)

    page_index = {page.id: index for index, page in enumerate(funnel.pages)}
    block_page = {block.id: page.id for page in funnel.pages for block in page.blocks}
    block_by_id = {block.id: block for block in blocks}
    declared = {v.name: v for v in funnel.variables}

    # =========================================================================
    # 1. IDENTIFIERS
    # =========================================================================

    counts = Counter([page.id for page in funnel.pages] + [block.id for block in blocks])
    report.duplicate_ids = {identifier for identifier, count in counts.items() if count > 1}

    # =========================================================================
    # 2. RULES AND ACTIONS
    # =========================================================================

    usage: Dict[str, int] = defaultdict(int)

    for rule in funnel.rules:
        if rule.page_id not in page_index:
            report.unknown_rule_pages.add(rule.page_id)

        conditions = [rule.condition] + [a.condition for a in rule.actions if a.condition is not None]
        for condition in conditions:
            report.max_condition_depth = max(report.max_condition_depth, _condition_depth(condition))
            for name in referenced_variables(condition):
                usage[name] += 1
            for block_id in referenced_blocks(condition):
                if block_id not in block_by_id:
                    report.unknown_blocks.add(block_id)
                    continue
                if not block_by_id[block_id].is_input:
                    report.add_warning(f"Condition on page {rule.page_id} reads non-input block {block_id}")
                rule_position = page_index.get(rule.page_id)
                answer_position = page_index[block_page[block_id]]
                if rule_position is not None and answer_position > rule_position:
                    report.add_warning(
                        f"Rule on page {rule.page_id} reads block {block_id}, answered later on "
                        f"{block_page[block_id]}"
                    )

        for action in rule.actions:
            target = action.target
            if action.type is ActionType.HIDE:
                if target.value not in page_index and target.value not in block_by_id:
                    report.unknown_targets.add(target.value)
            elif action.type is ActionType.JUMP:
                if target.value not in page_index:
                    report.unknown_targets.add(target.value)
                elif rule.page_id in page_index and page_index[target.value] <= page_index[rule.page_id]:
                    report.backward_jumps.append((rule.page_id, target.value))
            else:
                if target.type is not TargetType.VARIABLE:
                    report.add_warning(f"{action.type.value} action on page {rule.page_id} does not target a variable")
                    continue
                usage[target.value] += 1
                declaration = declared.get(target.value)
                if declaration is not None and action.type is not ActionType.SET \
                        and declaration.data_type is not VariableType.NUMBER:
                    report.add_warning(
                        f"Arithmetic '{action.type.value}' on {declaration.data_type.value} variable {target.value}"
                    )
                if action.value is not None and action.value.source is ValueSource.VARIABLE:
                    usage[str(action.value.value)] += 1

    report.variable_usage = dict(usage)
    report.undeclared_variables = set(usage) - set(declared)
    report.unused_variables = set(declared) - set(usage)
    report.has_cycles = bool(report.backward_jumps)

    # =========================================================================
    # 3. WARNING FLAGS
    # =========================================================================

    if report.duplicate_ids:
        report.add_warning(f"Duplicate ids: {', '.join(sorted(report.duplicate_ids))}")

    if report.unknown_rule_pages:
        report.add_warning(f"Rules on unknown pages: {', '.join(sorted(report.unknown_rule_pages))}")

    if report.unknown_targets:
        report.add_warning(f"Actions target unknown pages or blocks: {', '.join(sorted(report.unknown_targets))}")

    if report.unknown_blocks:
        report.add_warning(f"Conditions read unknown blocks: {', '.join(sorted(report.unknown_blocks))}")

    if report.undeclared_variables:
        report.add_warning(f"Undeclared variables: {', '.join(sorted(report.undeclared_variables))}")

    if report.unused_variables:
        report.add_warning(f"Unused variables: {', '.join(sorted(report.unused_variables))}")

    if report.has_cycles:
        loops = ", ".join(f"{source} -> {target}" for source, target in report.backward_jumps)
        report.add_warning(f"Backward jumps can loop: {loops}")

    if report.max_condition_depth > 5:
        report.add_warning(f"High condition complexity: max depth {report.max_condition_depth}")

    return report
