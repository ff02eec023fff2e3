"""Execution records, log sinks and progress publishing."""

from .exceptions import ExecutionNotFoundError, InvalidStatusTransitionError
from .progress import (
    InMemoryProgressPublisher,
    NullProgressPublisher,
    ProgressEvent,
    ProgressEventType,
    ProgressPublisher,
    RedisProgressPublisher,
)
from .schemas import (
    ExecutionRecord,
    ExecutionStatus,
    NodeLog,
    NodeLogStatus,
    TriggerSource,
)
from .store import ExecutionStore, InMemoryExecutionStore, SQLExecutionStore

__all__ = [
    "ExecutionNotFoundError",
    "InvalidStatusTransitionError",
    "InMemoryProgressPublisher",
    "NullProgressPublisher",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressPublisher",
    "RedisProgressPublisher",
    "ExecutionRecord",
    "ExecutionStatus",
    "NodeLog",
    "NodeLogStatus",
    "TriggerSource",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "SQLExecutionStore",
]
