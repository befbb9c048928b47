"""Workflow Executor

Walks a WorkflowDefinition over a set of invoice rows and records one
RunStep per visited node.

Traversal follows the routing table, never the canvas edges. A rule node
splits the rows and each non-empty branch with a destination is executed as
its own frame, starting at that destination. The leaf rows of the branches
that ran become the frame's result. Export nodes always end a frame.

Each frame is bounded by `max_steps` node visits and branch nesting is
bounded by `max_depth`. Hitting either bound ends that path, logs a
warning and marks the result as truncated; it is never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .. import nodes  # noqa: F401 - registers the built-in node types
from ..nodes.registry import ExecutionContext, get_node_handler, utcnow
from ..notify import Notifier, NullNotifier
from ..settings import MAX_BRANCH_DEPTH, MAX_TRAVERSAL_STEPS
from .graph import BranchTarget, LinearTarget, WorkflowDefinition
from .steps import Decision, RunStep
from .transforms import Row, apply_output_mapping

logger = logging.getLogger(__name__)

WorkflowLike = Union[WorkflowDefinition, Mapping[str, Any]]


@dataclass
class ExecutionResult:
    """Outcome of one engine call.

    Attributes:
        status: Engine status (always "approved")
        steps: Step log in visit order, nested branch steps inline
        rows: Leaf rows of the traversal
        truncated: True when a traversal or nesting ceiling cut a path short
    """

    status: str
    steps: List[RunStep] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "steps": [step.to_dict() for step in self.steps],
            "rows": self.rows,
            "truncated": self.truncated,
        }


@dataclass
class _Trace:
    steps: List[RunStep] = field(default_factory=list)
    truncated: bool = False


def normalize_rows(data: Any) -> List[Row]:
    """Coerce engine input into a list of fresh row dicts."""
    if data is None:
        return [{}]
    if isinstance(data, Mapping):
        return [dict(data)]
    if not isinstance(data, (list, tuple)):
        logger.warning(f"Unsupported input of type {type(data).__name__}; using an empty row")
        return [{}]

    rows: List[Row] = []
    for index, row in enumerate(data):
        if isinstance(row, Mapping):
            rows.append(dict(row))
        else:
            logger.warning(f"Input row {index} is not a mapping; replaced with an empty row")
            rows.append({})
    return rows


class WorkflowEngine:
    """Executes workflow definitions against invoice rows."""

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_steps: int = MAX_TRAVERSAL_STEPS,
        max_depth: int = MAX_BRANCH_DEPTH,
    ):
        self.context = ExecutionContext(
            notifier=notifier if notifier is not None else NullNotifier(),
            clock=clock or utcnow,
        )
        self.max_steps = max_steps
        self.max_depth = max_depth

    def execute(
        self,
        workflow: WorkflowLike,
        rows: Any = None,
        start_node_id: Optional[str] = None,
    ) -> ExecutionResult:
        """Execute a workflow.

        Args:
            workflow: Definition, or its stored/posted dict form
            rows: One row, a list of rows, or None for a single empty row
            start_node_id: Node to start at instead of the entry node

        Returns:
            ExecutionResult with the step log and leaf rows
        """
        if not isinstance(workflow, WorkflowDefinition):
            workflow = WorkflowDefinition.from_dict(workflow)
        rows = normalize_rows(rows)

        if start_node_id is not None:
            start = workflow.get_node(start_node_id)
        else:
            start = workflow.entry_node()
        if start is None:
            logger.info(
                f"Workflow '{workflow.name or workflow.id}' has no start node"
                f"{f' {start_node_id!r}' if start_node_id else ''}; nothing to execute"
            )
            return ExecutionResult(status=Decision.APPROVED.value, rows=rows)

        logger.info(
            f"Executing workflow '{workflow.name or workflow.id}' from '{start.id}' "
            f"with {len(workflow.nodes)} node(s) over {len(rows)} row(s)"
        )
        trace = _Trace()
        leaf_rows = self._run_frame(workflow, rows, start.id, 0, trace)

        return ExecutionResult(
            status=Decision.APPROVED.value,
            steps=trace.steps,
            rows=leaf_rows,
            truncated=trace.truncated,
        )

    def _run_frame(
        self,
        workflow: WorkflowDefinition,
        rows: List[Row],
        node_id: Optional[str],
        depth: int,
        trace: _Trace,
    ) -> List[Row]:
        current = node_id
        visits = 0

        while current is not None:
            if visits >= self.max_steps:
                logger.warning(
                    f"Traversal ceiling of {self.max_steps} steps reached at node "
                    f"'{current}'; ending path"
                )
                trace.truncated = True
                break
            visits += 1

            node = workflow.get_node(current)
            if node is None:
                break

            mapped = apply_output_mapping(node, rows)
            outcome = get_node_handler(node.type).apply(node, mapped, rows, self.context)
            trace.steps.append(outcome.step)
            rows = outcome.rows

            target = workflow.next_target(node.id)
            if outcome.split is not None:
                rows = self._run_branches(workflow, rows, outcome.split, target, depth, trace)
                break

            current = target.next_id if isinstance(target, LinearTarget) else None

        return rows

    def _run_branches(self, workflow, rows, split, target, depth, trace) -> List[Row]:
        if not isinstance(target, BranchTarget):
            return rows

        merged: List[Row] = []
        ran = False
        for branch_rows, destination in zip(split, (target.true_next, target.false_next)):
            if not branch_rows or destination is None:
                continue
            if depth + 1 > self.max_depth:
                logger.warning(
                    f"Branch nesting ceiling of {self.max_depth} reached; "
                    f"skipping branch to '{destination}'"
                )
                trace.truncated = True
                continue
            ran = True
            merged.extend(self._run_frame(workflow, branch_rows, destination, depth + 1, trace))

        return merged if ran else rows


def execute_workflow(
    workflow: WorkflowLike,
    rows: Any = None,
    start_node_id: Optional[str] = None,
    *,
    notifier: Optional[Notifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ExecutionResult:
    """Execute a workflow with a default engine."""
    engine = WorkflowEngine(notifier=notifier, clock=clock)
    return engine.execute(workflow, rows, start_node_id=start_node_id)
