"""Node handlers. Importing this package registers the built-in node types."""

from . import base  # noqa: F401
from .registry import (
    NODE_HANDLERS,
    NODE_REGISTRY,
    BaseNodeHandler,
    ExecutionContext,
    NodeDefinition,
    NodeOutcome,
    get_node_definition,
    get_node_handler,
    is_node_type_registered,
    list_node_types,
    register_node_type,
)

__all__ = [
    "NODE_HANDLERS",
    "NODE_REGISTRY",
    "BaseNodeHandler",
    "ExecutionContext",
    "NodeDefinition",
    "NodeOutcome",
    "get_node_definition",
    "get_node_handler",
    "is_node_type_registered",
    "list_node_types",
    "register_node_type",
]
