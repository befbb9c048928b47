"""Run Aggregator

Turns engine results into a Run: one outcome row per input row, a run
status, the CSV export and an audit snapshot of the workflow.

Bulk input (a list of rows) runs the engine once per row so one row's
routing never affects another's. Each outcome row is the input row plus:

- approval: decision of the row's decisive step
- status: "approved" when that decision is approved, else "not approved"
- assignees: recovered from the decisive step's output by natural key
- export_format / export_destination: from the first export step

The decisive step is the first approval or export step the row reached,
falling back to the first step with a pending, approved or rejected
decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from ..engine.executor import ExecutionResult, WorkflowEngine
from ..engine.graph import WorkflowDefinition
from ..engine.steps import SETTLED_DECISIONS, Decision, RunStep
from ..settings import NATURAL_KEY
from .csv_output import to_csv

logger = logging.getLogger(__name__)

RunInput = Union[Mapping[str, Any], List[Mapping[str, Any]]]


@dataclass
class CompanyContext:
    """Tenant identity passed through into run meta."""

    company_id: Optional[str] = None
    company_name: Optional[str] = None


@dataclass
class Run:
    """One execution of a workflow against one or more rows.

    Attributes:
        workflow_id: Workflow that was executed
        steps: Concatenated step logs of every engine call
        status: pending | approved | rejected
        started_at: When aggregation started
        finished_at: When aggregation (or a later step action) finished
        meta: output_csv, company identity, workflow snapshot
        invoice_id: Source invoice id for single-row runs
        id: Persistent id, set once stored
    """

    workflow_id: Optional[str]
    steps: List[RunStep] = field(default_factory=list)
    status: str = Decision.PENDING.value
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    invoice_id: Optional[str] = None
    id: Optional[str] = None

    @property
    def output_csv(self) -> Optional[str]:
        return self.meta.get("output_csv")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "invoice_id": self.invoice_id,
            "steps": [step.to_dict() for step in self.steps],
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "meta": self.meta,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Run":
        def timestamp(value: Any) -> Optional[datetime]:
            if isinstance(value, str):
                return datetime.fromisoformat(value)
            return value

        return cls(
            id=data.get("id"),
            workflow_id=data.get("workflow_id"),
            invoice_id=data.get("invoice_id"),
            steps=[RunStep.from_dict(s) for s in data.get("steps") or []],
            status=data.get("status", Decision.PENDING.value),
            started_at=timestamp(data.get("started_at")),
            finished_at=timestamp(data.get("finished_at")),
            meta=dict(data.get("meta") or {}),
        )


# ─── Per-row outcome ────────────────────────────────────────────────


def decisive_step(steps: List[RunStep]) -> Optional[RunStep]:
    """First approval or export step, else the first settled step."""
    for step in steps:
        if step.meta.get("approval") or step.meta.get("export"):
            return step
    for step in steps:
        if step.decision in SETTLED_DECISIONS:
            return step
    return None


def _recover_assignees(step: RunStep, row: Mapping[str, Any], natural_key: str) -> List[Any]:
    output = step.meta.get("output")
    if not isinstance(output, list):
        return []
    key_value = row.get(natural_key)
    for candidate in output:
        if isinstance(candidate, Mapping) and candidate.get(natural_key) == key_value:
            assignees = candidate.get("assignees")
            return list(assignees) if isinstance(assignees, list) else []
    return []


def build_outcome_row(
    row: Mapping[str, Any],
    result: ExecutionResult,
    natural_key: str = NATURAL_KEY,
) -> Dict[str, Any]:
    """Input row annotated with its approval, assignees and export target."""
    outcome = dict(row)

    step = decisive_step(result.steps)
    if step is not None:
        outcome["approval"] = step.decision.value
        outcome["status"] = "approved" if step.decision == Decision.APPROVED else "not approved"
        outcome["assignees"] = _recover_assignees(step, row, natural_key)

    for candidate in result.steps:
        export = candidate.meta.get("export")
        if export:
            outcome["export_format"] = export.get("export_type")
            outcome["export_destination"] = export.get("target")
            break

    return outcome


# ─── Aggregation ────────────────────────────────────────────────────


def aggregate_run(
    workflow: Union[WorkflowDefinition, Mapping[str, Any]],
    data: RunInput,
    company: Optional[CompanyContext] = None,
    *,
    engine: Optional[WorkflowEngine] = None,
    natural_key: str = NATURAL_KEY,
) -> Run:
    """Execute a workflow against one row or a batch and build the Run.

    Args:
        workflow: Workflow definition (or its dict form)
        data: A single row or a list of rows
        company: Tenant identity copied into run meta
        engine: Engine to use (default engine when omitted)
        natural_key: Row field used to match rows back to step output

    Returns:
        Run (not yet persisted)
    """
    if not isinstance(workflow, WorkflowDefinition):
        workflow = WorkflowDefinition.from_dict(workflow)
    engine = engine or WorkflowEngine()
    started_at = engine.context.now()

    steps: List[RunStep] = []
    outcome_rows: List[Dict[str, Any]] = []

    if isinstance(data, (list, tuple)):
        for row in data:
            row = dict(row) if isinstance(row, Mapping) else {}
            result = engine.execute(workflow, row)
            outcome_rows.append(build_outcome_row(row, result, natural_key))
            steps.extend(result.steps)
        all_approved = all(r.get("status") == "approved" for r in outcome_rows)
        status = Decision.APPROVED.value if all_approved else Decision.PENDING.value
        invoice_id = None
    else:
        row = dict(data) if isinstance(data, Mapping) else {}
        result = engine.execute(workflow, row)
        outcome_rows.append(build_outcome_row(row, result, natural_key))
        steps.extend(result.steps)
        status = result.status
        invoice_id = row.get("_id") or row.get(natural_key)
        if invoice_id is not None:
            invoice_id = str(invoice_id)

    meta: Dict[str, Any] = {}
    output_csv = to_csv(outcome_rows)
    if output_csv:
        meta["output_csv"] = output_csv
    if company is not None and company.company_id:
        meta["company_id"] = company.company_id
    if company is not None and company.company_name:
        meta["company_name"] = company.company_name
    meta["workflow"] = workflow.snapshot()

    logger.info(
        f"Run of workflow '{workflow.name or workflow.id}' over {len(outcome_rows)} row(s) "
        f"finished with status {status} ({len(steps)} step(s))"
    )

    return Run(
        workflow_id=workflow.id,
        invoice_id=invoice_id,
        steps=steps,
        status=status,
        started_at=started_at,
        finished_at=engine.context.now(),
        meta=meta,
    )
