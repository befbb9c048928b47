"""Repository layer for workflow runs.

Converts between the engine's Run value and WorkflowRunModel rows.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db import WorkflowRunModel
from invoiceflow.runs import Run
from invoiceflow.engine.steps import RunStep
from invoiceflow.settings import RUN_LIST_LIMIT


def to_run(model: WorkflowRunModel) -> Run:
    """Build the engine-side Run from a stored row."""
    return Run(
        id=model.id,
        workflow_id=model.workflow_id,
        invoice_id=model.invoice_id,
        steps=[RunStep.from_dict(s) for s in model.steps or []],
        status=model.status,
        started_at=model.started_at,
        finished_at=model.finished_at,
        meta=dict(model.meta or {}),
    )


class RunRepository:
    """Data access layer for workflow runs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, run: Run) -> WorkflowRunModel:
        """Persist a freshly aggregated run.

        Company identity is copied out of the run meta onto the row so runs
        can be listed per tenant.
        """
        meta = run.meta or {}
        model = WorkflowRunModel(
            workflow_id=run.workflow_id,
            invoice_id=run.invoice_id,
            status=run.status,
            steps=[step.to_dict() for step in run.steps],
            meta=meta or None,
            company_id=meta.get("company_id"),
            company_name=meta.get("company_name"),
            finished_at=run.finished_at,
        )
        if run.started_at is not None:
            model.started_at = run.started_at
        self.session.add(model)
        await self.session.flush()
        run.id = model.id
        return model

    async def get(self, run_id: str) -> Optional[WorkflowRunModel]:
        """Get a run by ID."""
        result = await self.session.execute(
            select(WorkflowRunModel).where(WorkflowRunModel.id == run_id)
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        company_id: Optional[str] = None,
        company_name: Optional[str] = None,
        limit: int = RUN_LIST_LIMIT,
    ) -> List[WorkflowRunModel]:
        """List runs newest first.

        Filters by company id when given, else by company name.
        """
        query = select(WorkflowRunModel)
        if company_id:
            query = query.where(WorkflowRunModel.company_id == company_id)
        elif company_name:
            query = query.where(WorkflowRunModel.company_name == company_name)
        query = query.order_by(WorkflowRunModel.created_at.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save(self, model: WorkflowRunModel, run: Run) -> WorkflowRunModel:
        """Write a run's steps, status and finish time back to its row."""
        model.steps = [step.to_dict() for step in run.steps]
        model.status = run.status
        model.finished_at = run.finished_at
        await self.session.flush()
        return model
