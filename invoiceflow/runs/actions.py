"""Reviewer actions on run steps.

A reviewer approves or rejects one step of a stored run. When the workflow
is supplied the engine is then re-run over the whole workflow with an empty
row and the new steps are appended to the run's log. The recorded decision
does not steer that re-run.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from ..engine.executor import WorkflowEngine
from ..engine.graph import WorkflowDefinition
from ..engine.steps import Decision
from .aggregator import Run

logger = logging.getLogger(__name__)

ACTIONS = {
    "approve": Decision.APPROVED,
    "reject": Decision.REJECTED,
}


class StepActionError(Exception):
    """Base class for step action failures."""


class StepNotFound(StepActionError):
    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Step {index} not found")


class InvalidStepAction(StepActionError):
    def __init__(self, action: Any):
        self.action = action
        super().__init__(f"Invalid action {action!r}; expected one of {sorted(ACTIONS)}")


class StepNotAssigned(StepActionError):
    def __init__(self, index: int, actor_id: Optional[str]):
        self.index = index
        self.actor_id = actor_id
        super().__init__(f"Step {index} is not assigned to {actor_id!r}")


def apply_step_action(
    run: Run,
    index: int,
    action: str,
    *,
    comment: Optional[str] = None,
    actor_id: Optional[str] = None,
    workflow: Union[WorkflowDefinition, Mapping[str, Any], None] = None,
    engine: Optional[WorkflowEngine] = None,
) -> Run:
    """Record a decision on a step and continue the run.

    Args:
        run: Run to update (modified in place)
        index: Position of the step in the run's log
        action: "approve" or "reject"
        comment: Reviewer comment stored on the step
        actor_id: Acting user; must match the step's assignee when it has one
        workflow: Workflow to re-run after the decision, if any
        engine: Engine to use for the re-run

    Returns:
        The updated run

    Raises:
        StepNotFound: No step at that index
        StepNotAssigned: The step is assigned to someone else
        InvalidStepAction: Unknown action
    """
    if not 0 <= index < len(run.steps):
        raise StepNotFound(index)
    step = run.steps[index]

    if step.assignee_id is not None and str(step.assignee_id) != str(actor_id):
        raise StepNotAssigned(index, actor_id)

    decision = ACTIONS.get(action)
    if decision is None:
        raise InvalidStepAction(action)

    engine = engine or WorkflowEngine()
    step.decision = decision
    step.comment = comment
    step.acted_at = engine.context.now()
    logger.info(f"Step {index} ({step.node_id}) of run {run.id} marked {decision.value}")

    if workflow is None:
        return run

    result = engine.execute(workflow, {})
    run.steps.extend(result.steps)
    run.status = result.status
    if result.status in (Decision.APPROVED.value, Decision.REJECTED.value):
        run.finished_at = engine.context.now()
    return run
