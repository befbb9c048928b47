"""Repository layer for workflow definitions.

Provides async CRUD operations for WorkflowModel.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db import WorkflowModel, WorkflowRunModel


class WorkflowRepository:
    """Data access layer for workflows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        nodes: Optional[List[Dict[str, Any]]] = None,
        edges: Optional[List[Dict[str, Any]]] = None,
        company_id: Optional[str] = None,
        created_by: Optional[str] = None,
        status: str = "draft",
        is_active: bool = True,
    ) -> WorkflowModel:
        """Create a new workflow.

        Args:
            name: Workflow name
            nodes: Builder nodes
            edges: Canvas edges
            company_id: Owning company
            created_by: Owner user id
            status: draft | published
            is_active: Whether the workflow accepts runs

        Returns:
            Created WorkflowModel
        """
        workflow = WorkflowModel(
            name=name,
            nodes=nodes or [],
            edges=edges or [],
            company_id=company_id,
            created_by=created_by,
            status=status,
            is_active=is_active,
        )
        self.session.add(workflow)
        await self.session.flush()
        return workflow

    async def get(self, workflow_id: str) -> Optional[WorkflowModel]:
        """Get a workflow by ID."""
        result = await self.session.execute(
            select(WorkflowModel).where(WorkflowModel.id == workflow_id)
        )
        return result.scalar_one_or_none()

    async def list(self, company_id: Optional[str] = None) -> List[WorkflowModel]:
        """List workflows, newest first, optionally for one company."""
        query = select(WorkflowModel)
        if company_id:
            query = query.where(WorkflowModel.company_id == company_id)
        query = query.order_by(WorkflowModel.updated_at.desc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, workflow_id: str, **kwargs: Any) -> Optional[WorkflowModel]:
        """Update a workflow with arbitrary fields.

        Returns:
            Updated WorkflowModel or None if not found
        """
        workflow = await self.get(workflow_id)
        if not workflow:
            return None

        for key, value in kwargs.items():
            if hasattr(workflow, key):
                setattr(workflow, key, value)

        await self.session.flush()
        return workflow

    async def delete(self, workflow_id: str) -> bool:
        """Delete a workflow and its runs.

        Returns:
            True if deleted, False if not found
        """
        workflow = await self.get(workflow_id)
        if not workflow:
            return False

        await self.session.execute(
            delete(WorkflowRunModel).where(WorkflowRunModel.workflow_id == workflow_id)
        )
        await self.session.delete(workflow)
        await self.session.flush()
        return True
