"""Invoice approval workflow engine.

Subpackages:
- engine: Condition evaluation, workflow graph model, and traversal
- nodes: Node type registry and built-in node handlers (rule, approval, export)
- runs: Run aggregation, CSV output, and step actions
"""
