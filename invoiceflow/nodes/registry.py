"""Node Type Registry

Maps node types to the handler that applies them to a row set. Handlers
register themselves with a decorator; the engine looks them up by the
node's normalized type and falls back to the generic handler for anything
unregistered.

Key Components:
- NodeDefinition: Metadata for a node type (shown in the builder palette)
- BaseNodeHandler: Interface every handler implements
- NodeOutcome: What a handler hands back to the engine
- register_node_type: Decorator for registering handlers
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from ..engine.graph import GENERIC, WorkflowNode, normalize_node_type
from ..engine.steps import RunStep
from ..engine.transforms import Row
from ..notify import Notifier, NullNotifier

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseNodeHandler")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NodeDefinition:
    """Metadata definition for a node type.

    Attributes:
        node_type: Unique identifier for the node type (e.g., "approval")
        display_name: Human-readable name for UI display
        description: Brief description of node behaviour
        category: Category for grouping (e.g., "routing", "review", "output")
        config_schema: JSON schema describing the node's config
        aliases: Other type names handled the same way
    """

    node_type: str
    display_name: str
    description: str
    category: str
    config_schema: Dict[str, Any]
    aliases: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.node_type:
            raise ValueError("node_type cannot be empty")
        if not self.display_name:
            raise ValueError("display_name cannot be empty")
        if not isinstance(self.config_schema, dict):
            raise ValueError("config_schema must be a dictionary")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_type": self.node_type,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category,
            "config_schema": self.config_schema,
            "aliases": list(self.aliases),
        }


@dataclass
class ExecutionContext:
    """Collaborators a handler may use while applying a node."""

    notifier: Notifier = field(default_factory=NullNotifier)
    clock: Callable[[], datetime] = utcnow

    def now(self) -> datetime:
        return self.clock()

    def dispatch(self, url: str, payload: Dict[str, Any]) -> None:
        """Hand a payload to the notifier; failures are logged and dropped."""
        try:
            self.notifier.notify(url, payload)
        except Exception as e:
            logger.warning(f"Export notification to {url} dropped: {e}")


@dataclass
class NodeOutcome:
    """Result of applying one node to a row set.

    Attributes:
        step: The step to append to the log
        rows: Row set after the node
        split: (true_rows, false_rows) for branching nodes, else None
    """

    step: RunStep
    rows: List[Row]
    split: Optional[Tuple[List[Row], List[Row]]] = None


class BaseNodeHandler(ABC):
    """Applies one node type to a row set."""

    node_type: str = ""

    @abstractmethod
    def apply(
        self,
        node: WorkflowNode,
        rows: List[Row],
        input_rows: List[Row],
        context: ExecutionContext,
    ) -> NodeOutcome:
        """Apply the node.

        Args:
            node: The node being visited
            rows: Rows after the node's output mapping
            input_rows: Rows as they arrived at the node (for the step log)
            context: Clock and notifier

        Returns:
            NodeOutcome with the step and resulting rows
        """
        pass


# Global registry for node types
NODE_REGISTRY: Dict[str, NodeDefinition] = {}
NODE_HANDLERS: Dict[str, BaseNodeHandler] = {}


def register_node_type(
    node_type: str,
    display_name: str,
    description: str,
    category: str,
    config_schema: Dict[str, Any],
    aliases: Tuple[str, ...] = (),
) -> Callable[[Type[T]], Type[T]]:
    """Decorator to register a node handler.

    Example:
        @register_node_type(
            node_type="export",
            display_name="Export",
            description="Ends a path and exports its rows",
            category="output",
            config_schema={"type": "object", "properties": {...}},
        )
        class ExportNodeHandler(BaseNodeHandler):
            def apply(self, node, rows, input_rows, context):
                ...
    """

    def decorator(cls: Type[T]) -> Type[T]:
        definition = NodeDefinition(
            node_type=node_type,
            display_name=display_name,
            description=description,
            category=category,
            config_schema=config_schema,
            aliases=aliases,
        )
        handler = cls()
        handler.node_type = node_type

        NODE_REGISTRY[node_type] = definition
        for name in (node_type, *aliases):
            NODE_HANDLERS[name] = handler

        logger.debug(f"Registered node type: {node_type} ({display_name})")
        return cls

    return decorator


def get_node_handler(node_type: str) -> BaseNodeHandler:
    """Handler for a node type, falling back to the generic handler."""
    handler = NODE_HANDLERS.get(normalize_node_type(node_type))
    if handler is None:
        handler = NODE_HANDLERS[GENERIC]
    return handler


def get_node_definition(node_type: str) -> Optional[NodeDefinition]:
    return NODE_REGISTRY.get(normalize_node_type(node_type))


def list_node_types() -> List[NodeDefinition]:
    """List all registered node types."""
    return list(NODE_REGISTRY.values())


def is_node_type_registered(node_type: str) -> bool:
    return normalize_node_type(node_type) in NODE_HANDLERS
