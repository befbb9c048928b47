"""Workflow CRUD and run-trigger API endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from invoiceflow.engine import WorkflowDefinition, WorkflowEngine, WorkflowNode, validate_workflow
from invoiceflow.engine.validation import ValidationResult
from invoiceflow.logging_config import get_api_logger
from invoiceflow.nodes import list_node_types
from invoiceflow.notify import get_default_notifier
from invoiceflow.runs import CompanyContext, aggregate_run

from ..database import get_session
from app.models.db import WorkflowModel
from app.models.schemas import (
    CreateWorkflowRequest,
    EdgeRequest,
    NodeRequest,
    NodeTypeResponse,
    RunRequest,
    RunResponse,
    UpdateWorkflowRequest,
    ValidationErrorResponse,
    WorkflowResponse,
)
from app.repositories.run import RunRepository
from app.repositories.workflow import WorkflowRepository
from app.routes.runs import run_to_response

logger = get_api_logger()

router = APIRouter(prefix="/api/workflows", tags=["workflows"])

WORKFLOW_STATUSES = ("draft", "published")


# --- Helper functions ---


def _workflow_to_response(wf: WorkflowModel, validation: Optional[ValidationResult] = None) -> WorkflowResponse:
    """Convert ORM WorkflowModel to API response."""
    warnings = []
    if validation is not None:
        warnings = [ValidationErrorResponse(**w.to_dict()) for w in validation.warnings]
    return WorkflowResponse(
        id=wf.id,
        company_id=wf.company_id,
        name=wf.name,
        status=wf.status,
        is_active=wf.is_active,
        created_by=wf.created_by,
        nodes=wf.nodes or [],
        edges=wf.edges or [],
        created_at=wf.created_at.isoformat() if wf.created_at else "",
        updated_at=wf.updated_at.isoformat() if wf.updated_at else "",
        warnings=warnings,
    )


def _parse_graph(nodes: List[NodeRequest], edges: List[EdgeRequest]) -> Dict[str, Any]:
    """Normalize builder nodes to the stored {id, type, config, label} form.

    Raises:
        ValueError: A node has an empty id
    """
    stored_nodes = []
    for n in nodes:
        node = WorkflowNode.from_dict(n.model_dump(exclude_none=True)).to_dict()
        if n.position is not None:
            node["position"] = n.position
        stored_nodes.append(node)
    return {
        "nodes": stored_nodes,
        "edges": [e.model_dump(exclude_none=True) for e in edges],
    }


def _validate_graph(graph: Dict[str, Any]) -> ValidationResult:
    """Validate a parsed graph; errors abort the save with 422."""
    result = validate_workflow(WorkflowDefinition.from_dict(graph))
    if not result.valid:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Workflow graph validation failed",
                "errors": [e.to_dict() for e in result.errors],
            },
        )
    for warning in result.warnings:
        logger.info(f"Workflow graph warning {warning.code}: {warning.message}")
    return result


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in WORKFLOW_STATUSES:
        raise HTTPException(status_code=400, detail="status must be draft or published")


# --- Node types ---


@router.get("/node-types", response_model=List[NodeTypeResponse])
async def get_node_types():
    """List registered node types for the builder palette."""
    return [NodeTypeResponse(**definition.to_dict()) for definition in list_node_types()]


# --- CRUD Endpoints ---


@router.post("", response_model=WorkflowResponse, status_code=201)
async def create_workflow(
    payload: CreateWorkflowRequest,
    session: AsyncSession = Depends(get_session),
):
    """Create a new workflow."""
    _check_status(payload.status)
    try:
        graph = _parse_graph(payload.nodes, payload.edges)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    validation = _validate_graph(graph)

    repo = WorkflowRepository(session)
    workflow = await repo.create(
        name=payload.name,
        nodes=graph["nodes"],
        edges=graph["edges"],
        company_id=payload.company_id,
        created_by=payload.created_by,
        status=payload.status,
        is_active=payload.is_active,
    )
    logger.info(f"Created workflow {workflow.id} ({workflow.name})")
    return _workflow_to_response(workflow, validation)


@router.get("", response_model=List[WorkflowResponse])
async def list_workflows(
    company_id: Optional[str] = Query(None, description="Only workflows of this company"),
    session: AsyncSession = Depends(get_session),
):
    """List workflows, newest first."""
    repo = WorkflowRepository(session)
    workflows = await repo.list(company_id=company_id)
    return [_workflow_to_response(wf) for wf in workflows]


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Get a single workflow by ID."""
    repo = WorkflowRepository(session)
    workflow = await repo.get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return _workflow_to_response(workflow)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    payload: UpdateWorkflowRequest,
    session: AsyncSession = Depends(get_session),
):
    """Update workflow metadata and/or its graph.

    A new graph is validated before it is saved.
    """
    repo = WorkflowRepository(session)
    workflow = await repo.get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")

    updates = payload.model_dump(exclude={"nodes", "edges"}, exclude_none=True)
    _check_status(updates.get("status"))

    validation = None
    if payload.nodes is not None or payload.edges is not None:
        nodes = payload.nodes
        if nodes is None:
            nodes = [NodeRequest(**n) for n in workflow.nodes or []]
        edges = payload.edges
        if edges is None:
            edges = [EdgeRequest(**e) for e in workflow.edges or []]
        try:
            graph = _parse_graph(nodes, edges)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        validation = _validate_graph(graph)
        updates.update(graph)

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    workflow = await repo.update(workflow_id, **updates)
    return _workflow_to_response(workflow, validation)


@router.delete("/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Delete a workflow and its runs."""
    repo = WorkflowRepository(session)
    deleted = await repo.delete(workflow_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Workflow not found")


# --- Execution ---


@router.post("/{workflow_id}/run", response_model=RunResponse, status_code=201)
async def run_workflow(
    workflow_id: str,
    payload: RunRequest,
    session: AsyncSession = Depends(get_session),
):
    """Run a workflow over one invoice row or a batch of rows."""
    workflow = await WorkflowRepository(session).get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    if not workflow.is_active:
        raise HTTPException(status_code=400, detail="Workflow is not active")

    company = CompanyContext(
        company_id=payload.company_id or workflow.company_id,
        company_name=payload.company_name,
    )
    engine = WorkflowEngine(notifier=get_default_notifier())
    # aggregate_run is synchronous
    run = await run_in_threadpool(
        aggregate_run, workflow.to_definition_dict(), payload.input, company, engine=engine,
    )

    model = await RunRepository(session).create(run)
    logger.info(f"Run {model.id} of workflow {workflow_id} stored with status {model.status}")
    return run_to_response(model)
