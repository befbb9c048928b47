"""Tests for workflow execution.

Covers traversal from the entry node, rule branching with explicit branch
start nodes, branch merging, approval and export nodes, the traversal and
nesting ceilings, and determinism under a fixed clock.
"""

import logging

import pytest

from invoiceflow.engine import (
    Decision,
    WorkflowDefinition,
    WorkflowEngine,
    execute_workflow,
)
from invoiceflow.engine.executor import normalize_rows


class Recorder:
    def __init__(self):
        self.calls = []

    def notify(self, url, payload):
        self.calls.append((url, payload))


def node_ids(result):
    return [step.node_id for step in result.steps]


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------


class TestNormalizeRows:

    def test_single_mapping_is_wrapped(self):
        assert normalize_rows({"a": 1}) == [{"a": 1}]

    def test_none_is_one_empty_row(self):
        assert normalize_rows(None) == [{}]

    def test_non_mapping_rows_replaced(self):
        assert normalize_rows([{"a": 1}, "junk", 3]) == [{"a": 1}, {}, {}]

    def test_rows_are_copied(self):
        row = {"a": 1}
        assert normalize_rows([row])[0] is not row


# ---------------------------------------------------------------------------
# Entry and empty workflows
# ---------------------------------------------------------------------------


class TestEntry:

    def test_empty_workflow_is_approved_with_no_steps(self, engine):
        result = engine.execute({"nodes": [], "edges": []}, [{"amount": 1}])
        assert result.status == "approved"
        assert result.steps == []
        assert result.truncated is False

    def test_unknown_start_node(self, engine, amount_workflow):
        result = engine.execute(amount_workflow, [{}], start_node_id="ghost")
        assert result.status == "approved"
        assert result.steps == []

    def test_starts_at_input_node(self, engine):
        wf = {"nodes": [
            {"id": "g", "type": "generic"},
            {"id": "in", "type": "input", "config": {"next": "g"}},
        ]}
        assert node_ids(engine.execute(wf, {})) == ["in", "g"]

    def test_starts_at_first_node_without_input(self, engine):
        wf = {"nodes": [{"id": "a", "config": {"next": "b"}}, {"id": "b"}]}
        assert node_ids(engine.execute(wf, {})) == ["a", "b"]

    def test_explicit_start_node(self, engine, amount_workflow):
        result = engine.execute(amount_workflow, [{"amount": 5}], start_node_id="out")
        assert node_ids(result) == ["out"]

    def test_accepts_definition_instance(self, engine, amount_workflow):
        wf = WorkflowDefinition.from_dict(amount_workflow)
        assert node_ids(engine.execute(wf, [{"amount": 5}])) == ["in", "check", "out"]


# ---------------------------------------------------------------------------
# Rule branching
# ---------------------------------------------------------------------------


class TestBranching:

    def test_amount_router_split(self, engine, amount_workflow, fixed_now):
        rows = [{"amount": 1500, "invoice_id": 1}, {"amount": 500, "invoice_id": 2}]
        result = engine.execute(amount_workflow, rows)

        assert result.status == "approved"
        assert node_ids(result) == ["in", "check", "review", "out"]

        rule_step = result.steps[1]
        assert rule_step.decision == Decision.APPROVED
        assert rule_step.meta["branch"] == {"true": 1, "false": 1}

        review = result.steps[2]
        assert review.decision == Decision.PENDING
        assert review.acted_at is None
        assert review.meta["output"] == [{"amount": 1500, "invoice_id": 1, "assignees": ["cfo"]}]

        export = result.steps[3]
        assert export.decision == Decision.APPROVED
        assert export.acted_at == fixed_now
        assert export.meta["export"] == {"export_type": "csv", "target": "s3://exports/invoices"}
        assert export.meta["output"] == [{"amount": 500, "invoice_id": 2}]

    def test_merged_leaf_rows(self, engine, amount_workflow):
        rows = [{"amount": 1500, "invoice_id": 1}, {"amount": 500, "invoice_id": 2}]
        result = engine.execute(amount_workflow, rows)
        assert result.rows == [
            {"amount": 1500, "invoice_id": 1, "assignees": ["cfo"]},
            {"amount": 500, "invoice_id": 2},
        ]

    def test_true_branch_steps_come_first(self, engine, amount_workflow):
        rows = [{"amount": 10}, {"amount": 5000}]
        assert node_ids(engine.execute(amount_workflow, rows)) == ["in", "check", "review", "out"]

    def test_empty_branch_is_not_executed(self, engine, amount_workflow):
        result = engine.execute(amount_workflow, [{"amount": 10}])
        assert node_ids(result) == ["in", "check", "out"]

    def test_branch_never_restarts_at_entry(self, engine):
        wf = {"nodes": [
            {"id": "in", "type": "input", "config": {"next": "r"}},
            {"id": "r", "type": "rule", "config": {"trueNext": "tail"}},
            {"id": "tail", "type": "generic"},
        ]}
        assert node_ids(engine.execute(wf, [{}])) == ["in", "r", "tail"]

    def test_rule_without_destinations_passes_rows_through(self, engine):
        wf = {"nodes": [{"id": "r", "type": "rule", "config": {"trueNext": "ghost"}}]}
        rows = [{"a": 1}, {"a": 2}]
        result = engine.execute(wf, rows)
        assert node_ids(result) == ["r"]
        assert result.rows == rows

    def test_rows_on_branch_without_destination_are_dropped(self, engine):
        wf = {"nodes": [
            {"id": "r", "type": "rule", "config": {
                "rules": [{"field": "keep", "operator": "==", "value": True}],
                "trueNext": "out",
            }},
            {"id": "out", "type": "export"},
        ]}
        result = engine.execute(wf, [{"keep": True}, {"keep": False}])
        assert result.rows == [{"keep": True}]

    def test_rule_frame_ends_after_branching(self, engine):
        wf = {"nodes": [
            {"id": "r", "type": "condition", "config": {"trueNext": "a", "next": "b"}},
            {"id": "a", "type": "generic"},
            {"id": "b", "type": "generic"},
        ]}
        assert node_ids(engine.execute(wf, [{}])) == ["r", "a"]

    def test_nested_rules(self, engine):
        wf = {"nodes": [
            {"id": "r1", "type": "rule", "config": {
                "rules": [{"field": "amount", "operator": ">", "value": 100}],
                "trueNext": "r2", "falseNext": "small",
            }},
            {"id": "r2", "type": "rule", "config": {
                "rules": [{"field": "amount", "operator": ">", "value": 1000}],
                "trueNext": "large", "falseNext": "medium",
            }},
            {"id": "small", "type": "export", "config": {"exportType": "csv"}},
            {"id": "medium", "type": "export", "config": {"exportType": "json"}},
            {"id": "large", "type": "approval", "config": {"assignee": "cfo"}},
        ]}
        rows = [{"amount": 50}, {"amount": 500}, {"amount": 5000}]
        result = engine.execute(wf, rows)
        assert node_ids(result) == ["r1", "r2", "large", "medium", "small"]
        assert result.rows == [
            {"amount": 5000, "assignees": ["cfo"]},
            {"amount": 500},
            {"amount": 50},
        ]


# ---------------------------------------------------------------------------
# Linear flow, transforms, approvals and exports
# ---------------------------------------------------------------------------


class TestLinearFlow:

    def test_transform_applies_before_node(self, engine):
        wf = {"nodes": [
            {"id": "in", "type": "input", "config": {"next": "r", "set": {"total": "$.amount"}}},
            {"id": "r", "type": "rule", "config": {
                "rules": [{"field": "total", "operator": ">", "value": 10}],
                "trueNext": "out",
            }},
            {"id": "out", "type": "export"},
        ]}
        result = engine.execute(wf, {"amount": 20})
        assert result.steps[0].meta["input"] == [{"amount": 20}]
        assert result.steps[0].meta["output"] == [{"amount": 20, "total": 20}]
        assert result.rows == [{"amount": 20, "total": 20}]

    def test_approval_continues_at_next(self, engine):
        wf = {"nodes": [
            {"id": "a", "type": "approval", "config": {"assignee": "bob", "next": "out"}},
            {"id": "out", "type": "export"},
        ]}
        result = engine.execute(wf, {})
        assert node_ids(result) == ["a", "out"]
        assert result.rows == [{"assignees": ["bob"]}]

    def test_approval_without_next_ends_frame(self, engine):
        wf = {"nodes": [{"id": "a", "type": "approval"}, {"id": "b"}]}
        assert node_ids(engine.execute(wf, {})) == ["a"]

    def test_export_is_terminal(self, engine):
        wf = {"nodes": [
            {"id": "out", "type": "export", "config": {"next": "after"}},
            {"id": "after"},
        ]}
        assert node_ids(engine.execute(wf, {})) == ["out"]

    def test_unknown_type_runs_as_generic(self, engine):
        wf = {"nodes": [{"id": "s", "type": "notify_slack", "config": {"next": "t"}}, {"id": "t"}]}
        result = engine.execute(wf, {})
        assert node_ids(result) == ["s", "t"]
        assert result.steps[0].meta["executed"] is True

    def test_webhook_export(self, fixed_now):
        notifier = Recorder()
        wf = {"nodes": [{"id": "out", "type": "export", "config": {
            "exportType": "webhook", "target": "https://hooks.example.com/invoices",
        }}]}
        result = execute_workflow(wf, [{"invoice_id": 9}], notifier=notifier, clock=lambda: fixed_now)
        assert notifier.calls == [("https://hooks.example.com/invoices", {"payload": [{"invoice_id": 9}]})]
        assert result.steps[0].decision == Decision.APPROVED

    def test_inputs_never_mutated(self, engine, amount_workflow):
        rows = [{"amount": 1500, "invoice_id": 1}]
        engine.execute(amount_workflow, rows)
        assert rows == [{"amount": 1500, "invoice_id": 1}]


# ---------------------------------------------------------------------------
# Ceilings
# ---------------------------------------------------------------------------


class TestCeilings:

    def test_linear_cycle_hits_traversal_ceiling(self, clock, caplog):
        engine = WorkflowEngine(clock=clock, max_steps=25)
        wf = {"nodes": [
            {"id": "a", "config": {"next": "b"}},
            {"id": "b", "config": {"next": "a"}},
        ]}
        with caplog.at_level(logging.WARNING, logger="invoiceflow.engine.executor"):
            result = engine.execute(wf, {})
        assert len(result.steps) == 25
        assert result.truncated is True
        assert "Traversal ceiling" in caplog.text

    def test_default_ceiling(self, engine):
        wf = {"nodes": [{"id": "loop", "config": {"next": "loop"}}]}
        result = engine.execute(wf, {})
        assert len(result.steps) == 2000
        assert result.truncated is True

    def test_rule_cycle_hits_nesting_ceiling(self, clock):
        engine = WorkflowEngine(clock=clock, max_depth=5)
        wf = {"nodes": [{"id": "r", "type": "rule", "config": {"trueNext": "r"}}]}
        result = engine.execute(wf, [{}])
        # Entry frame plus five nested frames
        assert node_ids(result) == ["r"] * 6
        assert result.truncated is True

    def test_normal_run_not_truncated(self, engine, amount_workflow):
        assert engine.execute(amount_workflow, [{"amount": 1}]).truncated is False


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestDeterminism:

    def test_same_inputs_same_steps(self, engine, amount_workflow):
        rows = [{"amount": 1500, "invoice_id": 1}, {"amount": 500, "invoice_id": 2}]
        first = engine.execute(amount_workflow, rows)
        second = engine.execute(amount_workflow, rows)
        assert first.steps == second.steps
        assert first.status == second.status
        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize("amounts", [[], [1], [2000, 1, 1001, 1000]])
    def test_every_row_reaches_one_leaf(self, engine, amount_workflow, amounts):
        rows = [{"amount": a, "invoice_id": i} for i, a in enumerate(amounts)]
        result = engine.execute(amount_workflow, rows)
        assert sorted(r["invoice_id"] for r in result.rows) == list(range(len(amounts)))
