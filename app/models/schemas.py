"""Pydantic request/response models for the invoice workflow API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class NodeDataRequest(BaseModel):
    """Node data in builder format."""
    label: Optional[str] = None
    config: dict = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class NodeRequest(BaseModel):
    """Workflow node in API request.

    Supports both formats:
    - Builder: node.data.label, node.data.config (or config fields directly in data)
    - Flat: node.config
    """
    id: str = Field(..., min_length=1)
    type: str
    label: Optional[str] = None
    position: Optional[dict] = None
    data: Optional[NodeDataRequest] = None
    config: dict = Field(default_factory=dict)


class EdgeRequest(BaseModel):
    """Canvas edge. Stored for the builder, not used for routing."""
    id: Optional[str] = None
    source: str
    target: str
    label: Optional[str] = None


class CreateWorkflowRequest(BaseModel):
    """Request to create a workflow."""
    name: str = Field(..., min_length=1)
    company_id: Optional[str] = None
    created_by: Optional[str] = None
    status: str = "draft"
    is_active: bool = True
    nodes: List[NodeRequest] = Field(default_factory=list)
    edges: List[EdgeRequest] = Field(default_factory=list)


class UpdateWorkflowRequest(BaseModel):
    """Request to update a workflow. Omitted fields are left unchanged."""
    name: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None
    nodes: Optional[List[NodeRequest]] = None
    edges: Optional[List[EdgeRequest]] = None


class ValidationErrorResponse(BaseModel):
    """Single validation error/warning."""
    code: str
    message: str
    severity: str
    node_ids: List[str]
    context: dict


class WorkflowResponse(BaseModel):
    """Workflow data in API response."""
    id: str
    company_id: Optional[str]
    name: str
    status: str
    is_active: bool
    created_by: Optional[str]
    nodes: List[dict]
    edges: List[dict]
    created_at: str
    updated_at: str
    warnings: List[ValidationErrorResponse] = Field(default_factory=list)


class NodeTypeResponse(BaseModel):
    """Node type definition for the builder palette."""
    node_type: str
    display_name: str
    description: str
    category: str
    config_schema: dict
    aliases: List[str] = Field(default_factory=list)


class RunRequest(BaseModel):
    """Request to run a workflow over one invoice or a batch."""
    input: Union[Dict[str, Any], List[Dict[str, Any]]] = Field(
        default_factory=dict, description="One invoice row or a list of rows",
    )
    company_id: Optional[str] = None
    company_name: Optional[str] = None


class RunStepResponse(BaseModel):
    """One entry of a run's step log."""
    node_id: str
    decision: str
    acted_at: Optional[str] = None
    meta: dict = Field(default_factory=dict)
    comment: Optional[str] = None
    assignee_id: Optional[str] = None


class RunResponse(BaseModel):
    """Workflow run in API response."""
    id: str
    workflow_id: str
    invoice_id: Optional[str]
    status: str
    steps: List[RunStepResponse]
    meta: Optional[dict]
    company_id: Optional[str]
    company_name: Optional[str]
    started_at: str
    finished_at: Optional[str]


class StepActionRequest(BaseModel):
    """Reviewer decision on a run step."""
    action: str = Field(..., description="approve | reject")
    comment: Optional[str] = None
    actor_id: Optional[str] = None
