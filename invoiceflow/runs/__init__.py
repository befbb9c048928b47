"""Runs: aggregation of engine results, CSV output, and reviewer step actions."""

from .csv_output import to_csv
from .aggregator import CompanyContext, Run, aggregate_run, build_outcome_row, decisive_step
from .actions import (
    InvalidStepAction,
    StepActionError,
    StepNotAssigned,
    StepNotFound,
    apply_step_action,
)

__all__ = [
    "to_csv",
    "CompanyContext",
    "Run",
    "aggregate_run",
    "build_outcome_row",
    "decisive_step",
    "InvalidStepAction",
    "StepActionError",
    "StepNotAssigned",
    "StepNotFound",
    "apply_step_action",
]
