"""Execution log sinks.

A store owns ExecutionRecords: it creates them in ``pending``, appends
node logs in order, and enforces the one-way status machine.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog
from sqlalchemy import func, select
from pydantic_core import to_jsonable_python
from sqlalchemy.orm import selectinload

from relayflow.database import DatabaseManager
from .exceptions import ExecutionNotFoundError, InvalidStatusTransitionError
from .models import ExecutionRecordModel, NodeLogModel
from .schemas import (
    ExecutionRecord,
    ExecutionStatus,
    NodeLog,
    TriggerSource,
    utcnow,
)

logger = structlog.get_logger()


class ExecutionStore(ABC):
    """Narrow persistence interface consumed by the executor."""

    @abstractmethod
    async def create_record(
        self,
        workflow_id: str,
        user_id: str,
        trigger_payload: Any = None,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
        attempt: int = 1,
    ) -> ExecutionRecord:
        """Create a record in ``pending``."""

    @abstractmethod
    async def append_log(self, execution_id: str, log: NodeLog) -> None:
        """Append one node log entry."""

    @abstractmethod
    async def set_status(self, execution_id: str, status: ExecutionStatus) -> ExecutionRecord:
        """Advance the status machine."""

    @abstractmethod
    async def set_error(self, execution_id: str, error: Dict[str, Any]) -> None:
        """Attach a structured failure diagnostic."""

    @abstractmethod
    async def get_record(self, execution_id: str) -> ExecutionRecord:
        """Load a record with its logs."""

    @abstractmethod
    async def list_records(
        self, user_id: str, workflow_id: Optional[str] = None
    ) -> List[ExecutionRecord]:
        """List a user's records, newest first."""


def _check_transition(execution_id: str, current: ExecutionStatus, target: ExecutionStatus) -> None:
    if not current.can_transition_to(target):
        raise InvalidStatusTransitionError(execution_id, current.value, target.value)


class InMemoryExecutionStore(ExecutionStore):
    """Process-local store, used by tests and the CLI."""

    def __init__(self):
        self.records: Dict[str, ExecutionRecord] = {}

    def _get(self, execution_id: str) -> ExecutionRecord:
        record = self.records.get(execution_id)
        if record is None:
            raise ExecutionNotFoundError(execution_id)
        return record

    async def create_record(
        self,
        workflow_id: str,
        user_id: str,
        trigger_payload: Any = None,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
        attempt: int = 1,
    ) -> ExecutionRecord:
        record = ExecutionRecord(
            id=str(uuid4()),
            workflow_id=workflow_id,
            user_id=user_id,
            trigger_payload=trigger_payload,
            trigger_source=trigger_source,
            attempt=attempt,
        )
        self.records[record.id] = record
        return record

    async def append_log(self, execution_id: str, log: NodeLog) -> None:
        self._get(execution_id).logs.append(log)

    async def set_status(self, execution_id: str, status: ExecutionStatus) -> ExecutionRecord:
        record = self._get(execution_id)
        _check_transition(execution_id, record.status, status)
        record.apply_status(status)
        return record

    async def set_error(self, execution_id: str, error: Dict[str, Any]) -> None:
        self._get(execution_id).error = error

    async def get_record(self, execution_id: str) -> ExecutionRecord:
        return self._get(execution_id)

    async def list_records(
        self, user_id: str, workflow_id: Optional[str] = None
    ) -> List[ExecutionRecord]:
        records = [
            record for record in self.records.values()
            if record.user_id == user_id and (workflow_id is None or record.workflow_id == workflow_id)
        ]
        return sorted(records, key=lambda record: record.created_at, reverse=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_schema(model: ExecutionRecordModel) -> ExecutionRecord:
    return ExecutionRecord(
        id=model.id,
        workflow_id=model.workflow_id,
        user_id=model.user_id,
        status=model.status,
        trigger_payload=model.trigger_payload,
        trigger_source=model.trigger_source,
        attempt=model.attempt,
        error=model.error,
        start_time=_as_utc(model.start_time),
        end_time=_as_utc(model.end_time),
        duration=model.duration,
        created_at=_as_utc(model.created_at) or utcnow(),
        logs=[
            NodeLog(
                node_id=row.node_id,
                node_type=row.node_type,
                node_label=row.node_label or "",
                status=row.status,
                input=row.input,
                output=row.output,
                error=row.error,
                attempt_number=row.attempt_number,
                iteration=row.iteration,
                start_time=_as_utc(row.start_time),
                end_time=_as_utc(row.end_time),
                duration=row.duration,
            )
            for row in model.logs
        ],
    )


class SQLExecutionStore(ExecutionStore):
    """Store backed by the ``executions`` and ``execution_logs`` tables."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def _load(self, session, execution_id: str) -> ExecutionRecordModel:
        result = await session.execute(
            select(ExecutionRecordModel)
            .options(selectinload(ExecutionRecordModel.logs))
            .where(ExecutionRecordModel.id == execution_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            raise ExecutionNotFoundError(execution_id)
        return model

    async def create_record(
        self,
        workflow_id: str,
        user_id: str,
        trigger_payload: Any = None,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
        attempt: int = 1,
    ) -> ExecutionRecord:
        async with self.db.session() as session:
            model = ExecutionRecordModel(
                id=str(uuid4()),
                workflow_id=workflow_id,
                user_id=user_id,
                status=ExecutionStatus.PENDING,
                trigger_payload=to_jsonable_python(trigger_payload, fallback=str),
                trigger_source=trigger_source,
                attempt=attempt,
                created_at=utcnow(),
            )
            session.add(model)
            await session.commit()
            return ExecutionRecord(
                id=model.id,
                workflow_id=workflow_id,
                user_id=user_id,
                trigger_payload=trigger_payload,
                trigger_source=trigger_source,
                attempt=attempt,
                created_at=model.created_at,
            )

    async def append_log(self, execution_id: str, log: NodeLog) -> None:
        async with self.db.session() as session:
            exists = await session.get(ExecutionRecordModel, execution_id)
            if exists is None:
                raise ExecutionNotFoundError(execution_id)
            count = await session.scalar(
                select(func.count(NodeLogModel.id)).where(NodeLogModel.execution_id == execution_id)
            )
            session.add(NodeLogModel(
                execution_id=execution_id,
                sequence=count or 0,
                node_id=log.node_id,
                node_type=log.node_type,
                node_label=log.node_label,
                status=log.status,
                input=to_jsonable_python(log.input, fallback=str),
                output=to_jsonable_python(log.output, fallback=str),
                error=log.error,
                attempt_number=log.attempt_number,
                iteration=log.iteration,
                start_time=log.start_time,
                end_time=log.end_time,
                duration=log.duration,
            ))
            await session.commit()

    async def set_status(self, execution_id: str, status: ExecutionStatus) -> ExecutionRecord:
        async with self.db.session() as session:
            model = await self._load(session, execution_id)
            _check_transition(execution_id, model.status, status)
            now = utcnow()
            model.status = status
            if status == ExecutionStatus.RUNNING:
                model.start_time = now
                model.end_time = None
                model.duration = None
            elif status.is_terminal:
                model.end_time = now
                started = _as_utc(model.start_time)
                if started:
                    model.duration = int((now - started).total_seconds() * 1000)
            await session.commit()
            return _to_schema(model)

    async def set_error(self, execution_id: str, error: Dict[str, Any]) -> None:
        async with self.db.session() as session:
            model = await session.get(ExecutionRecordModel, execution_id)
            if model is None:
                raise ExecutionNotFoundError(execution_id)
            model.error = to_jsonable_python(error, fallback=str)
            await session.commit()

    async def get_record(self, execution_id: str) -> ExecutionRecord:
        async with self.db.session() as session:
            return _to_schema(await self._load(session, execution_id))

    async def list_records(
        self, user_id: str, workflow_id: Optional[str] = None
    ) -> List[ExecutionRecord]:
        async with self.db.session() as session:
            query = (
                select(ExecutionRecordModel)
                .options(selectinload(ExecutionRecordModel.logs))
                .where(ExecutionRecordModel.user_id == user_id)
                .order_by(ExecutionRecordModel.created_at.desc())
            )
            if workflow_id is not None:
                query = query.where(ExecutionRecordModel.workflow_id == workflow_id)
            result = await session.execute(query)
            return [_to_schema(model) for model in result.scalars().all()]
