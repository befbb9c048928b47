"""Workflow validation, run when a workflow graph is saved.

Execution never depends on validation: the engine tolerates every anomaly
reported here. Only problems that make the saved graph ambiguous are errors;
everything the engine degrades gracefully on is a warning.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional, Set

from ..nodes.registry import is_node_type_registered
from .conditions import OPERATORS
from .graph import RULE, WorkflowDefinition
from .safe_eval import validate_expression


class ValidationError:
    """Workflow validation error.

    Attributes:
        code: Error code
        message: Error message
        severity: Error severity (error or warning)
        node_ids: List of affected node IDs
        context: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        severity: str,
        node_ids: List[str],
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.severity = severity
        self.node_ids = node_ids
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "node_ids": self.node_ids,
            "context": self.context,
        }


class ValidationResult:
    """Workflow validation result.

    Attributes:
        valid: Whether workflow is valid
        errors: List of validation errors
        warnings: List of validation warnings
    """

    def __init__(self, valid: bool, errors: List[ValidationError], warnings: List[ValidationError]):
        self.valid = valid
        self.errors = errors
        self.warnings = warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _warning(code: str, message: str, node_ids: List[str], **context: Any) -> ValidationError:
    return ValidationError(code, message, "warning", node_ids, context)


def _error(code: str, message: str, node_ids: List[str], **context: Any) -> ValidationError:
    return ValidationError(code, message, "error", node_ids, context)


def find_routing_cycles(workflow: WorkflowDefinition) -> List[List[str]]:
    """Cycles in the routing table, each as a closed node path."""
    routing = workflow.routing_table()
    cycles: List[List[str]] = []
    seen: Set[tuple] = set()
    visited: Set[str] = set()
    path: List[str] = []
    on_path: Set[str] = set()

    def dfs(node_id: str) -> None:
        if node_id in on_path:
            cycle = path[path.index(node_id):] + [node_id]
            key = tuple(sorted(cycle[:-1]))
            if key not in seen:
                seen.add(key)
                cycles.append(cycle)
            return
        if node_id in visited:
            return
        visited.add(node_id)
        path.append(node_id)
        on_path.add(node_id)
        for target in routing[node_id].targets():
            dfs(target)
        path.pop()
        on_path.discard(node_id)

    for node_id in routing:
        dfs(node_id)
    return cycles


def validate_workflow(workflow: WorkflowDefinition) -> ValidationResult:
    """Validate a workflow graph.

    Errors:
    - DUPLICATE_NODE_ID: two nodes share an id
    - INVALID_EXPRESSION: a rule expression that cannot be parsed

    Warnings:
    - UNKNOWN_ROUTE_TARGET: next/trueNext/falseNext names no node
    - UNKNOWN_NODE_TYPE: node type has no handler (runs as generic)
    - EMPTY_RULE_NODE: rule node with neither rules nor expression
    - UNKNOWN_OPERATOR: condition operator that always evaluates false
    - ROUTING_CYCLE: routing loops back on itself (bounded by the ceilings)
    """
    errors: List[ValidationError] = []
    warnings: List[ValidationError] = []

    counts = Counter(node.id for node in workflow.nodes)
    for node_id, count in counts.items():
        if count > 1:
            errors.append(_error(
                "DUPLICATE_NODE_ID",
                f"Node id '{node_id}' is used by {count} nodes",
                [node_id],
                count=count,
            ))

    node_ids = set(counts)
    for node in workflow.nodes:
        for role, ref in node.routing_references().items():
            if ref not in (None, "") and str(ref) not in node_ids:
                warnings.append(_warning(
                    "UNKNOWN_ROUTE_TARGET",
                    f"Node '{node.id}' {role} references unknown node '{ref}'",
                    [node.id],
                    role=role,
                    target=ref,
                ))

        if not is_node_type_registered(node.type):
            warnings.append(_warning(
                "UNKNOWN_NODE_TYPE",
                f"Node '{node.id}' has unregistered type '{node.type}' and runs as a generic step",
                [node.id],
                node_type=node.type,
            ))

        rules = node.config.get("rules")
        for rule in rules if isinstance(rules, list) else []:
            operator = rule.get("operator") if isinstance(rule, dict) else None
            if operator != "exists" and operator not in OPERATORS:
                warnings.append(_warning(
                    "UNKNOWN_OPERATOR",
                    f"Node '{node.id}' uses unknown operator {operator!r}",
                    [node.id],
                    operator=operator,
                ))

        if node.type != RULE:
            continue

        expression = node.config.get("expression")
        has_expression = isinstance(expression, str) and bool(expression.strip())
        if not rules and not has_expression:
            warnings.append(_warning(
                "EMPTY_RULE_NODE",
                f"Rule node '{node.id}' has no rules; every row takes the true branch",
                [node.id],
            ))
        if has_expression:
            problems = validate_expression(expression)
            if problems:
                errors.append(_error(
                    "INVALID_EXPRESSION",
                    f"Rule node '{node.id}' has an invalid expression",
                    [node.id],
                    expression=expression,
                    problems=problems,
                ))

    for cycle in find_routing_cycles(workflow):
        warnings.append(_warning(
            "ROUTING_CYCLE",
            f"Routing cycle: {' -> '.join(cycle)}",
            cycle[:-1],
            cycle_path=cycle,
        ))

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
