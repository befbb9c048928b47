"""Workflow Engine: graph model, condition and expression evaluation, execution."""

from .conditions import Condition, evaluate_condition
from .safe_eval import SafeEvalError, evaluate_expression, safe_eval, validate_expression
from .steps import Decision, RunStep
from .graph import (
    BranchTarget,
    LinearTarget,
    NextTarget,
    TerminalTarget,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)
from .transforms import apply_output_mapping
from .executor import ExecutionResult, WorkflowEngine, execute_workflow
from .validation import ValidationError, ValidationResult, validate_workflow

__all__ = [
    "Condition",
    "evaluate_condition",
    "SafeEvalError",
    "evaluate_expression",
    "safe_eval",
    "validate_expression",
    "Decision",
    "RunStep",
    "BranchTarget",
    "LinearTarget",
    "NextTarget",
    "TerminalTarget",
    "WorkflowDefinition",
    "WorkflowEdge",
    "WorkflowNode",
    "apply_output_mapping",
    "ExecutionResult",
    "WorkflowEngine",
    "execute_workflow",
    "ValidationError",
    "ValidationResult",
    "validate_workflow",
]
