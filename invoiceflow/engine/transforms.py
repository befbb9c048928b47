"""Row transforms applied before a node is evaluated.

A node may declare a `set` (or `output`) mapping of field -> value. Each row
is shallow-copied and the mapping applied to the copy:

    {"set": {"reviewed": true, "vendor_name": "$.vendor.name"}}

Values starting with "$." are references resolved against the original row
(exact keys, dotted path); anything else is assigned as-is. A failing
transform leaves that row unmodified and never stops traversal.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from .graph import WorkflowNode

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

REFERENCE_PREFIX = "$."


def resolve_reference(row: Mapping[str, Any], path: str) -> Any:
    """Follow an exact-key dotted path; missing segments yield None."""
    current: Any = row
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _apply_mapping(node_id: str, mapping: Mapping[str, Any], row: Row) -> Row:
    updated = dict(row)
    try:
        for key, value in mapping.items():
            if isinstance(value, str) and value.startswith(REFERENCE_PREFIX):
                updated[key] = resolve_reference(row, value[len(REFERENCE_PREFIX):])
            else:
                updated[key] = value
    except Exception as e:
        logger.debug(f"Transform on node '{node_id}' failed, row left unchanged: {e}")
        return dict(row)
    return updated


def apply_output_mapping(node: WorkflowNode, rows: List[Row]) -> List[Row]:
    """Return new rows with the node's output mapping applied."""
    mapping = node.output_mapping
    if not mapping:
        return [dict(row) for row in rows]
    return [_apply_mapping(node.id, mapping, row) for row in rows]
