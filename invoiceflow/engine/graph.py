"""Workflow Graph Model

Declarative workflow definition as saved by the workflow builder: a list of
typed nodes, each carrying its own configuration, plus the canvas edges.

Routing never follows the edge list. Each node names its successors in its
own config (`next`, `trueNext`, `falseNext`), and those references are
resolved once, when the definition is built, into a routing table of
NextTarget values:

- BranchTarget: rule/condition nodes (true and false destinations)
- LinearTarget: input, approval, and generic nodes (single `next`)
- TerminalTarget: export nodes (always end a path)

Edges are kept for UI and audit fidelity only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Node types with engine semantics. Anything else behaves as "generic".
INPUT = "input"
RULE = "rule"
APPROVAL = "approval"
EXPORT = "export"
GENERIC = "generic"

_TYPE_ALIASES = {"condition": RULE}


def normalize_node_type(node_type: Optional[str]) -> str:
    """Lowercase a node type and fold aliases ("condition" -> "rule")."""
    normalized = (node_type or "").strip().lower() or GENERIC
    return _TYPE_ALIASES.get(normalized, normalized)


@dataclass
class WorkflowNode:
    """A single workflow node.

    Attributes:
        id: Node identifier, unique within the workflow
        type: Normalized node type
        config: Type-specific configuration
        label: Display label from the builder
        data: Raw builder payload the config was taken from
    """

    id: str
    type: str = GENERIC
    config: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("node id cannot be empty")
        self.type = normalize_node_type(self.type)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorkflowNode":
        """Build a node from either builder or flat format.

        Builder format keeps configuration under `data.config` (or directly
        in `data`); flat format uses a top-level `config`.
        """
        data = raw.get("data")
        data = dict(data) if isinstance(data, Mapping) else {}

        config = raw.get("config")
        if isinstance(data.get("config"), Mapping) and data["config"]:
            config = data["config"]
        elif not isinstance(config, Mapping) or not config:
            config = data

        return cls(
            id=str(raw.get("id") or ""),
            type=raw.get("type") or GENERIC,
            config=dict(config),
            label=raw.get("label") or data.get("label"),
            data=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Stored form. A row mapping found only in `data` moves into config."""
        config = dict(self.config)
        if not any(key in config for key in ("set", "output")):
            for key in ("set", "output"):
                value = self.data.get(key)
                if isinstance(value, Mapping) and value:
                    config[key] = dict(value)
                    break
        node: Dict[str, Any] = {"id": self.id, "type": self.type, "config": config}
        if self.label is not None:
            node["label"] = self.label
        return node

    def setting(self, *keys: str, default: Any = None) -> Any:
        """First truthy config value among synonymous keys."""
        for key in keys:
            value = self.config.get(key)
            if value:
                return value
        return default

    @property
    def output_mapping(self) -> Optional[Mapping[str, Any]]:
        """The node's `set` (or `output`) row mapping, if configured."""
        for source in (self.config, self.data):
            for key in ("set", "output"):
                value = source.get(key)
                if isinstance(value, Mapping) and value:
                    return value
        return None

    def routing_references(self) -> Dict[str, Any]:
        """Raw successor references from config, keyed by role."""
        if self.type == RULE:
            return {
                "trueNext": self.setting("trueNext", "true_next"),
                "falseNext": self.setting("falseNext", "false_next"),
            }
        if self.type == EXPORT:
            return {}
        return {"next": self.config.get("next")}


@dataclass
class WorkflowEdge:
    """Canvas edge between two nodes. Not used for routing."""

    source: str
    target: str
    id: Optional[str] = None
    label: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorkflowEdge":
        data = raw.get("data")
        return cls(
            source=str(raw.get("source") or ""),
            target=str(raw.get("target") or ""),
            id=raw.get("id"),
            label=raw.get("label"),
            data=dict(data) if isinstance(data, Mapping) else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        edge: Dict[str, Any] = {"source": self.source, "target": self.target}
        for key in ("id", "label"):
            if getattr(self, key) is not None:
                edge[key] = getattr(self, key)
        if self.data:
            edge["data"] = self.data
        return edge


# ─── Routing ────────────────────────────────────────────────────────


class NextTarget:
    """Where traversal goes after a node."""

    def targets(self) -> List[str]:
        return []


@dataclass(frozen=True)
class LinearTarget(NextTarget):
    next_id: Optional[str] = None

    def targets(self) -> List[str]:
        return [self.next_id] if self.next_id else []


@dataclass(frozen=True)
class BranchTarget(NextTarget):
    true_next: Optional[str] = None
    false_next: Optional[str] = None

    def targets(self) -> List[str]:
        return [t for t in (self.true_next, self.false_next) if t]


@dataclass(frozen=True)
class TerminalTarget(NextTarget):
    pass


def resolve_next_target(node: WorkflowNode, node_ids: Mapping[str, Any]) -> NextTarget:
    """Resolve a node's config references into a NextTarget.

    References to ids outside the workflow resolve to "no target".
    """

    def resolve(role: str) -> Optional[str]:
        ref = node.routing_references().get(role)
        if ref in (None, ""):
            return None
        ref = str(ref)
        if ref not in node_ids:
            logger.warning(
                f"Node '{node.id}' {role} references unknown node '{ref}'; branch terminates"
            )
            return None
        return ref

    if node.type == RULE:
        return BranchTarget(true_next=resolve("trueNext"), false_next=resolve("falseNext"))
    if node.type == EXPORT:
        return TerminalTarget()
    return LinearTarget(next_id=resolve("next"))


@dataclass
class WorkflowDefinition:
    """A workflow as handed to the engine.

    Attributes:
        nodes: Nodes in declaration order
        edges: Canvas edges (audit only)
        id: Persistent workflow id
        name: Workflow name
        status: draft | published
        is_active: Whether the workflow accepts runs
        created_by: Owner user id
        company_id: Owning company
    """

    nodes: List[WorkflowNode] = field(default_factory=list)
    edges: List[WorkflowEdge] = field(default_factory=list)
    id: Optional[str] = None
    name: Optional[str] = None
    status: str = "draft"
    is_active: bool = True
    created_by: Optional[str] = None
    company_id: Optional[str] = None

    _nodes_by_id: Dict[str, WorkflowNode] = field(init=False, repr=False, compare=False)
    _routing: Dict[str, NextTarget] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Later declarations win on duplicate ids; validation reports them
        self._nodes_by_id = {node.id: node for node in self.nodes}
        self._routing = {
            node_id: resolve_next_target(node, self._nodes_by_id)
            for node_id, node in self._nodes_by_id.items()
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorkflowDefinition":
        """Build a definition from stored or posted JSON (camelCase keys accepted)."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if raw.get(key) is not None:
                    return raw[key]
            return default

        return cls(
            nodes=[WorkflowNode.from_dict(n) for n in raw.get("nodes") or []],
            edges=[WorkflowEdge.from_dict(e) for e in raw.get("edges") or []],
            id=pick("id", "_id"),
            name=pick("name"),
            status=pick("status", default="draft"),
            is_active=bool(pick("is_active", "isActive", default=True)),
            created_by=pick("created_by", "createdBy"),
            company_id=pick("company_id", "companyId"),
        )

    def get_node(self, node_id: Optional[str]) -> Optional[WorkflowNode]:
        if node_id is None:
            return None
        return self._nodes_by_id.get(node_id)

    def entry_node(self) -> Optional[WorkflowNode]:
        """First input node, else the first declared node."""
        for node in self.nodes:
            if node.type == INPUT:
                return node
        return self.nodes[0] if self.nodes else None

    def next_target(self, node_id: str) -> NextTarget:
        return self._routing.get(node_id, TerminalTarget())

    def routing_table(self) -> Dict[str, NextTarget]:
        return dict(self._routing)

    def snapshot(self) -> Dict[str, Any]:
        """Structural copy stored with each run for audit and replay."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "company_id": self.company_id,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
