"""Run step records produced by the execution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Decision(str, Enum):
    """Outcome recorded on a run step."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


# Decisions that can settle a row's outcome
SETTLED_DECISIONS = frozenset({Decision.PENDING, Decision.APPROVED, Decision.REJECTED})


@dataclass
class RunStep:
    """One node application in a run's step log.

    Attributes:
        node_id: Node that produced the step
        decision: Step decision
        acted_at: When the decision was made (None while pending)
        meta: Node-specific detail; always carries `input` and `output`
        comment: Reviewer comment set by a step action
        assignee_id: User allowed to act on the step, if restricted
    """

    node_id: str
    decision: Decision
    acted_at: Optional[datetime] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    comment: Optional[str] = None
    assignee_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "node_id": self.node_id,
            "decision": self.decision.value,
            "acted_at": self.acted_at.isoformat() if self.acted_at else None,
            "meta": self.meta,
        }
        if self.comment is not None:
            data["comment"] = self.comment
        if self.assignee_id is not None:
            data["assignee_id"] = self.assignee_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunStep":
        acted_at = data.get("acted_at")
        if isinstance(acted_at, str):
            acted_at = datetime.fromisoformat(acted_at)
        return cls(
            node_id=data.get("node_id", ""),
            decision=Decision(data.get("decision", Decision.PENDING.value)),
            acted_at=acted_at,
            meta=dict(data.get("meta") or {}),
            comment=data.get("comment"),
            assignee_id=data.get("assignee_id"),
        )
