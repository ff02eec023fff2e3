"""Live progress publishing for workflow executions.

Events are routed to the owning user only. Publishers are fire-and-forget
from the executor's point of view: it wraps every call and never lets a
publisher failure change the outcome of a run.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

from relayflow.config import settings

logger = structlog.get_logger()


class ProgressEventType(str, Enum):
    """Types of progress events."""
    EXECUTION_STARTED = "execution:started"
    EXECUTION_PROGRESS = "execution:progress"
    NODE_COMPLETED = "execution:node-completed"
    EXECUTION_COMPLETED = "execution:completed"


@dataclass
class ProgressEvent:
    """Represents a progress event during execution."""
    execution_id: str
    user_id: str
    event_type: ProgressEventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "event_id": self.event_id,
            "execution_id": self.execution_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


class ProgressPublisher(ABC):
    """Receives run lifecycle events keyed by owning user."""

    async def emit_started(self, execution_id: str, workflow_id: str, user_id: str) -> None:
        await self.publish(ProgressEvent(
            execution_id=execution_id,
            user_id=user_id,
            event_type=ProgressEventType.EXECUTION_STARTED,
            data={"workflow_id": workflow_id},
        ))

    async def emit_progress(
        self, execution_id: str, completed: int, total: int, user_id: str
    ) -> None:
        await self.publish(ProgressEvent(
            execution_id=execution_id,
            user_id=user_id,
            event_type=ProgressEventType.EXECUTION_PROGRESS,
            data={
                "completed": completed,
                "total": total,
                "percentage": (completed / total * 100) if total > 0 else 0.0,
            },
        ))

    async def emit_node_completed(
        self,
        execution_id: str,
        node_id: str,
        node_type: str,
        status: str,
        user_id: str,
    ) -> None:
        await self.publish(ProgressEvent(
            execution_id=execution_id,
            user_id=user_id,
            event_type=ProgressEventType.NODE_COMPLETED,
            data={"node_id": node_id, "node_type": node_type, "status": status},
        ))

    async def emit_completed(
        self,
        execution_id: str,
        status: str,
        user_id: str,
        workflow_id: Optional[str] = None,
    ) -> None:
        await self.publish(ProgressEvent(
            execution_id=execution_id,
            user_id=user_id,
            event_type=ProgressEventType.EXECUTION_COMPLETED,
            data={"status": status, "workflow_id": workflow_id},
        ))

    @abstractmethod
    async def publish(self, event: ProgressEvent) -> None:
        """Deliver one event."""


class NullProgressPublisher(ProgressPublisher):
    """Discards every event."""

    async def publish(self, event: ProgressEvent) -> None:
        return None


class InMemoryProgressPublisher(ProgressPublisher):
    """Keeps events in memory, grouped by user."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    async def publish(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def events_for(self, user_id: str) -> List[ProgressEvent]:
        return [event for event in self.events if event.user_id == user_id]

    @property
    def event_types(self) -> List[str]:
        return [event.event_type.value for event in self.events]


class RedisProgressPublisher(ProgressPublisher):
    """Publishes events on a per-user Redis pub/sub channel."""

    def __init__(self, redis_client=None, channel_prefix: Optional[str] = None):
        if redis_client is None:
            from relayflow.core.redis_client import get_redis_client
            redis_client = get_redis_client()
        self.redis = redis_client
        self.channel_prefix = channel_prefix or settings.progress_channel_prefix

    def channel_for(self, user_id: str) -> str:
        return f"{self.channel_prefix}:{user_id}"

    async def publish(self, event: ProgressEvent) -> None:
        await self.redis.publish(
            self.channel_for(event.user_id),
            json.dumps(event.to_dict(), default=str),
        )
