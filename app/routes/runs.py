"""Workflow run API endpoints: listing, reviewer actions, CSV download."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from invoiceflow.engine import WorkflowEngine
from invoiceflow.logging_config import get_api_logger
from invoiceflow.notify import get_default_notifier
from invoiceflow.runs import (
    InvalidStepAction,
    StepNotAssigned,
    StepNotFound,
    apply_step_action,
)

from ..database import get_session
from app.models.db import WorkflowRunModel
from app.models.schemas import RunResponse, RunStepResponse, StepActionRequest
from app.repositories.run import RunRepository, to_run
from app.repositories.workflow import WorkflowRepository

logger = get_api_logger()

router = APIRouter(prefix="/api/runs", tags=["runs"])


def run_to_response(model: WorkflowRunModel) -> RunResponse:
    """Convert ORM WorkflowRunModel to API response."""
    return RunResponse(
        id=model.id,
        workflow_id=model.workflow_id,
        invoice_id=model.invoice_id,
        status=model.status,
        steps=[RunStepResponse(**step) for step in model.steps or []],
        meta=model.meta,
        company_id=model.company_id,
        company_name=model.company_name,
        started_at=model.started_at.isoformat() if model.started_at else "",
        finished_at=model.finished_at.isoformat() if model.finished_at else None,
    )


@router.get("", response_model=List[RunResponse])
async def list_runs(
    company_id: Optional[str] = Query(None),
    company_name: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    """List recent runs, newest first, for a company."""
    runs = await RunRepository(session).list(company_id=company_id, company_name=company_name)
    return [run_to_response(r) for r in runs]


@router.get("/{run_id}", response_model=RunResponse)
async def get_run(
    run_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Get a single run by ID."""
    model = await RunRepository(session).get(run_id)
    if not model:
        raise HTTPException(status_code=404, detail="Run not found")
    return run_to_response(model)


@router.post("/{run_id}/steps/{index}/action", response_model=RunResponse)
async def act_on_step(
    run_id: str,
    index: int,
    payload: StepActionRequest,
    session: AsyncSession = Depends(get_session),
):
    """Approve or reject a run step, then continue the run."""
    repo = RunRepository(session)
    model = await repo.get(run_id)
    if not model:
        raise HTTPException(status_code=404, detail="Run not found")

    workflow = await WorkflowRepository(session).get(model.workflow_id)
    run = to_run(model)
    try:
        await run_in_threadpool(
            apply_step_action,
            run,
            index,
            payload.action,
            comment=payload.comment,
            actor_id=payload.actor_id,
            workflow=workflow.to_definition_dict() if workflow else None,
            engine=WorkflowEngine(notifier=get_default_notifier()),
        )
    except StepNotAssigned as e:
        raise HTTPException(status_code=403, detail=str(e))
    except (StepNotFound, InvalidStepAction) as e:
        raise HTTPException(status_code=400, detail=str(e))

    model = await repo.save(model, run)
    logger.info(f"Run {run_id} step {index} {payload.action}; run status {model.status}")
    return run_to_response(model)


@router.get("/{run_id}/download")
async def download_run_csv(
    run_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Download the run's output CSV."""
    model = await RunRepository(session).get(run_id)
    output_csv = (model.meta or {}).get("output_csv") if model else None
    if not output_csv:
        raise HTTPException(status_code=404, detail="CSV not found for this run")
    return Response(
        content=output_csv,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=run_{model.id}.csv"},
    )
