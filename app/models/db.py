"""SQLAlchemy ORM models for the invoice workflow service.

Tables:
- workflows: Approval workflow definitions (builder nodes + edges)
- workflow_runs: One record per execution, with its full step log
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _gen_uuid() -> str:
    return str(uuid.uuid4())


# ─── Workflow Definition ─────────────────────────────────────────────


class WorkflowModel(Base):
    """Persistent approval workflow.

    Nodes and edges are stored as the builder sends them; routing is read
    from each node's config when the workflow is executed.
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_gen_uuid)
    company_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="draft",
        comment="draft | published",
    )

    nodes: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    edges: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    runs: Mapped[List["WorkflowRunModel"]] = relationship(
        back_populates="workflow", cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_workflows_company_id", "company_id"),
        Index("ix_workflows_updated_at", "updated_at"),
    )

    def to_definition_dict(self) -> Dict[str, Any]:
        """Dict form accepted by WorkflowDefinition.from_dict."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "company_id": self.company_id,
            "nodes": self.nodes or [],
            "edges": self.edges or [],
        }


# ─── Workflow Run ────────────────────────────────────────────────────


class WorkflowRunModel(Base):
    """Record of a single workflow execution over one or more invoices."""

    __tablename__ = "workflow_runs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_gen_uuid)
    workflow_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False,
    )
    invoice_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending",
        comment="pending | approved | rejected",
    )

    steps: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, comment="Append-only step log",
    )
    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON, nullable=True, comment="output_csv, company identity, workflow snapshot",
    )

    # Denormalized from meta for tenant-filtered listing
    company_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    workflow: Mapped["WorkflowModel"] = relationship(back_populates="runs")

    __table_args__ = (
        Index("ix_runs_workflow_id", "workflow_id"),
        Index("ix_runs_company_id", "company_id"),
        Index("ix_runs_company_name", "company_name"),
        Index("ix_runs_created_at", "created_at"),
    )
