"""Built-in node handlers.

Registered on import of `invoiceflow.nodes`:
- generic / input: pass rows through and continue at `next`
- rule (alias condition): split rows into true/false branches
- approval: attach assignees and record a pending decision
- export: record the export target and end the path
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..engine.conditions import evaluate_condition
from ..engine.graph import WorkflowNode
from ..engine.safe_eval import evaluate_expression
from ..engine.steps import Decision, RunStep
from ..engine.transforms import Row
from .registry import BaseNodeHandler, ExecutionContext, NodeOutcome, register_node_type

logger = logging.getLogger(__name__)

_CONDITION_SCHEMA = {
    "type": "object",
    "properties": {
        "field": {"type": "string"},
        "operator": {"type": "string"},
        "value": {},
    },
    "required": ["field", "operator"],
}

_ROW_MAPPING_SCHEMA = {
    "type": "object",
    "description": "Field assignments applied before the node; '$.path' copies a row value",
}


def _rule_list(node: WorkflowNode) -> Optional[List[Mapping[str, Any]]]:
    rules = node.config.get("rules")
    if not isinstance(rules, list):
        return None
    return [rule for rule in rules if isinstance(rule, Mapping)]


@register_node_type(
    node_type="generic",
    display_name="Step",
    description="Passes rows through unchanged (after any field assignments)",
    category="flow",
    config_schema={
        "type": "object",
        "properties": {
            "next": {"type": "string"},
            "set": _ROW_MAPPING_SCHEMA,
        },
    },
)
class GenericNodeHandler(BaseNodeHandler):
    def apply(
        self,
        node: WorkflowNode,
        rows: List[Row],
        input_rows: List[Row],
        context: ExecutionContext,
    ) -> NodeOutcome:
        step = RunStep(
            node_id=node.id,
            decision=Decision.APPROVED,
            acted_at=context.now(),
            meta={"executed": True, "input": input_rows, "output": rows},
        )
        return NodeOutcome(step=step, rows=rows)


@register_node_type(
    node_type="input",
    display_name="Invoice Input",
    description="Entry point that receives the invoice rows",
    category="flow",
    config_schema={
        "type": "object",
        "properties": {
            "next": {"type": "string"},
            "set": _ROW_MAPPING_SCHEMA,
        },
    },
)
class InputNodeHandler(GenericNodeHandler):
    pass


@register_node_type(
    node_type="rule",
    display_name="Rule",
    description="Routes each row to the true or false branch",
    category="routing",
    config_schema={
        "type": "object",
        "properties": {
            "rules": {"type": "array", "items": _CONDITION_SCHEMA},
            "expression": {"type": "string"},
            "trueNext": {"type": "string"},
            "falseNext": {"type": "string"},
        },
    },
    aliases=("condition",),
)
class RuleNodeHandler(BaseNodeHandler):
    """Partitions rows by the node's condition chain.

    A row passes when every condition in `rules` holds. A non-empty
    `expression` replaces the chain result for each row.
    """

    def matches(self, node: WorkflowNode, row: Row) -> bool:
        result = True
        for rule in _rule_list(node) or []:
            passed = evaluate_condition(rule, row)
            logger.debug(
                f"Rule '{node.id}': {rule.get('field')} {rule.get('operator')} "
                f"{rule.get('value')!r} -> {passed}"
            )
            if not passed:
                result = False
                break

        expression = node.config.get("expression")
        if isinstance(expression, str) and expression.strip():
            result = evaluate_expression(expression, row)
            logger.debug(f"Rule '{node.id}': expression {expression!r} -> {result}")
        return result

    def apply(
        self,
        node: WorkflowNode,
        rows: List[Row],
        input_rows: List[Row],
        context: ExecutionContext,
    ) -> NodeOutcome:
        true_rows: List[Row] = []
        false_rows: List[Row] = []
        for row in rows:
            (true_rows if self.matches(node, row) else false_rows).append(row)

        logger.info(
            f"Rule '{node.id}' split {len(rows)} row(s): "
            f"{len(true_rows)} true, {len(false_rows)} false"
        )

        step = RunStep(
            node_id=node.id,
            decision=Decision.APPROVED,
            acted_at=context.now(),
            meta={
                "input": input_rows,
                "output": {"true": true_rows, "false": false_rows},
                "branch": {"true": len(true_rows), "false": len(false_rows)},
            },
        )
        return NodeOutcome(step=step, rows=rows, split=(true_rows, false_rows))


@register_node_type(
    node_type="approval",
    display_name="Approval",
    description="Assigns reviewers and waits for a decision",
    category="review",
    config_schema={
        "type": "object",
        "properties": {
            "rules": {
                "type": "array",
                "items": {
                    **_CONDITION_SCHEMA,
                    "properties": {
                        **_CONDITION_SCHEMA["properties"],
                        "assignee": {"type": "string"},
                    },
                },
            },
            "assignee": {"type": "string"},
            "next": {"type": "string"},
        },
    },
)
class ApprovalNodeHandler(BaseNodeHandler):
    def assignees_for(self, node: WorkflowNode, row: Row) -> List[Any]:
        rules = _rule_list(node)
        if rules is None:
            static = node.config.get("assignee")
            return [static] if static else []

        assignees = []
        for rule in rules:
            assignee = rule.get("assignee")
            if assignee and evaluate_condition(rule, row):
                assignees.append(assignee)
        return assignees

    def apply(
        self,
        node: WorkflowNode,
        rows: List[Row],
        input_rows: List[Row],
        context: ExecutionContext,
    ) -> NodeOutcome:
        output = [{**row, "assignees": self.assignees_for(node, row)} for row in rows]
        step = RunStep(
            node_id=node.id,
            decision=Decision.PENDING,
            acted_at=None,
            meta={"approval": True, "input": input_rows, "output": output},
        )
        return NodeOutcome(step=step, rows=output)


@register_node_type(
    node_type="export",
    display_name="Export",
    description="Ends a path and exports its rows",
    category="output",
    config_schema={
        "type": "object",
        "properties": {
            "exportType": {"type": "string", "enum": ["csv", "json", "webhook", "none"]},
            "target": {"type": "string"},
        },
    },
)
class ExportNodeHandler(BaseNodeHandler):
    def apply(
        self,
        node: WorkflowNode,
        rows: List[Row],
        input_rows: List[Row],
        context: ExecutionContext,
    ) -> NodeOutcome:
        export_type = node.setting("exportType", "export_type", "type", "format", default="none")
        target = node.setting("target", "url", "destination")

        if export_type == "webhook" and target:
            logger.info(f"Export '{node.id}' notifying {target} with {len(rows)} row(s)")
            context.dispatch(target, {"payload": rows})

        export: Dict[str, Any] = {"export_type": export_type, "target": target}
        step = RunStep(
            node_id=node.id,
            decision=Decision.APPROVED,
            acted_at=context.now(),
            meta={"export": export, "input": input_rows, "output": rows},
        )
        return NodeOutcome(step=step, rows=rows)
