"""Execution database models."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from relayflow.database import Base
from .schemas import ExecutionStatus, NodeLogStatus, TriggerSource


class ExecutionRecordModel(Base):
    """One workflow run."""

    __tablename__ = "executions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    workflow_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[ExecutionStatus] = mapped_column(
        SQLEnum(ExecutionStatus),
        default=ExecutionStatus.PENDING,
        nullable=False,
    )
    trigger_source: Mapped[TriggerSource] = mapped_column(
        SQLEnum(TriggerSource),
        default=TriggerSource.MANUAL,
        nullable=False,
    )
    trigger_payload: Mapped[Optional[Any]] = mapped_column(JSON)
    attempt: Mapped[int] = mapped_column(Integer, default=1)
    error: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    logs: Mapped[List["NodeLogModel"]] = relationship(
        "NodeLogModel",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="NodeLogModel.sequence",
    )

    __table_args__ = (
        Index("ix_executions_user_workflow", "user_id", "workflow_id"),
    )

    def __repr__(self) -> str:
        return f"<ExecutionRecordModel(id={self.id}, status={self.status})>"


class NodeLogModel(Base):
    """Append-only node log row."""

    __tablename__ = "execution_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    execution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("executions.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    node_id: Mapped[str] = mapped_column(String(128), nullable=False)
    node_type: Mapped[str] = mapped_column(String(64), nullable=False)
    node_label: Mapped[str] = mapped_column(String(255), default="")
    status: Mapped[NodeLogStatus] = mapped_column(SQLEnum(NodeLogStatus), nullable=False)
    input: Mapped[Optional[Any]] = mapped_column(JSON)
    output: Mapped[Optional[Any]] = mapped_column(JSON)
    error: Mapped[Optional[str]] = mapped_column(Text)
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    iteration: Mapped[Optional[int]] = mapped_column(Integer)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=0)

    execution: Mapped[ExecutionRecordModel] = relationship(
        "ExecutionRecordModel", back_populates="logs"
    )
