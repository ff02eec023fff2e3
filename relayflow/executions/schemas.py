"""Execution record schemas and status machine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionStatus(str, Enum):
    """Execution status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.SUCCESS, ExecutionStatus.FAILED)

    def can_transition_to(self, target: "ExecutionStatus") -> bool:
        """Statuses only move forward: pending -> running -> success|failed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.FAILED},
    ExecutionStatus.RUNNING: {ExecutionStatus.SUCCESS, ExecutionStatus.FAILED},
    ExecutionStatus.SUCCESS: set(),
    ExecutionStatus.FAILED: set(),
}


class NodeLogStatus(str, Enum):
    """Outcome of one node execution attempt."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class TriggerSource(str, Enum):
    """What started a run."""
    MANUAL = "manual"
    WEBHOOK = "webhook"
    SCHEDULED = "scheduled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeLog(BaseModel):
    """Log entry for one node execution attempt."""

    model_config = ConfigDict(use_enum_values=False)

    node_id: str
    node_type: str
    node_label: str = ""
    status: NodeLogStatus
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    attempt_number: int = 1
    iteration: Optional[int] = Field(default=None, description="Loop index when run inside a loop body")
    start_time: datetime = Field(default_factory=utcnow)
    end_time: datetime = Field(default_factory=utcnow)
    duration: int = Field(default=0, description="Duration in milliseconds")


class ExecutionRecord(BaseModel):
    """Persisted status and log of one workflow run."""

    id: str
    workflow_id: str
    user_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    trigger_payload: Any = None
    trigger_source: TriggerSource = TriggerSource.MANUAL
    attempt: int = 1
    logs: List[NodeLog] = Field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)

    def apply_status(self, status: ExecutionStatus, at: Optional[datetime] = None) -> None:
        """Move to ``status`` and stamp timing fields.

        Callers are expected to have checked the transition.
        """
        at = at or utcnow()
        self.status = status
        if status == ExecutionStatus.RUNNING:
            self.start_time = at
            self.end_time = None
            self.duration = None
        elif status.is_terminal:
            self.end_time = at
            if self.start_time:
                self.duration = int((self.end_time - self.start_time).total_seconds() * 1000)
