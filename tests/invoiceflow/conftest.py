"""Shared fixtures for engine tests: fixed clock and the reference workflows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from invoiceflow.engine import WorkflowEngine

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def amount_router_workflow() -> Dict[str, Any]:
    """input -> rule(amount > 1000) -> approval (true) / export (false)."""
    return {
        "id": "wf-amount",
        "name": "Amount router",
        "status": "published",
        "is_active": True,
        "created_by": "user-1",
        "company_id": "acme",
        "nodes": [
            {"id": "in", "type": "input", "config": {"next": "check"}},
            {
                "id": "check",
                "type": "rule",
                "config": {
                    "rules": [{"field": "amount", "operator": ">", "value": 1000}],
                    "trueNext": "review",
                    "falseNext": "out",
                },
            },
            {
                "id": "review",
                "type": "approval",
                "config": {
                    "rules": [
                        {"field": "amount", "operator": ">", "value": 1000, "assignee": "cfo"},
                    ],
                },
            },
            {
                "id": "out",
                "type": "export",
                "config": {"exportType": "csv", "target": "s3://exports/invoices"},
            },
        ],
        "edges": [
            {"id": "e1", "source": "in", "target": "check"},
            {"id": "e2", "source": "check", "target": "review", "label": "true"},
            {"id": "e3", "source": "check", "target": "out", "label": "false"},
        ],
    }


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def engine() -> WorkflowEngine:
    return WorkflowEngine(clock=fixed_clock)


@pytest.fixture
def amount_workflow() -> Dict[str, Any]:
    return amount_router_workflow()
