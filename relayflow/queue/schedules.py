"""Cron schedules realized as Celery beat entries."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from celery import Celery
from celery.schedules import crontab
from croniter import croniter
from pydantic import BaseModel, Field

from relayflow.config import settings
from relayflow.exceptions import NotFoundError, ValidationError
from relayflow.executions.schemas import TriggerSource
from relayflow.worker import celery_app
from .tasks import EXECUTE_WORKFLOW_TASK

logger = structlog.get_logger()


class ScheduleInfo(BaseModel):
    """A workflow's recurring trigger."""

    workflow_id: str
    user_id: str
    cron_expression: str
    enabled: bool = True
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def job_key(self) -> str:
        return schedule_key(self.workflow_id)


def schedule_key(workflow_id: str) -> str:
    """Stable beat entry name; re-registering a workflow replaces its entry."""
    return f"schedule_{workflow_id}"


def validate_cron(expression: str) -> str:
    """Return the normalized expression or raise ``ValidationError``."""
    normalized = " ".join((expression or "").split())
    if len(normalized.split(" ")) != 5 or not croniter.is_valid(normalized):
        raise ValidationError(f"Invalid cron expression: {expression!r}")
    return normalized


def next_run_at(expression: str, base: Optional[datetime] = None) -> datetime:
    """Next fire time of ``expression`` after ``base`` (default now, UTC)."""
    base = base or datetime.now(timezone.utc)
    return croniter(validate_cron(expression), base).get_next(datetime)


def to_crontab(expression: str) -> crontab:
    minute, hour, day_of_month, month_of_year, day_of_week = validate_cron(expression).split(" ")
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


class ScheduleRegistry:
    """Keeps workflow schedules in sync with the Celery beat schedule."""

    def __init__(self, app: Optional[Celery] = None):
        self.app = app or celery_app
        self._schedules: Dict[str, ScheduleInfo] = {}
        self.logger = logger.bind(component="schedules")

    @property
    def beat_schedule(self) -> dict:
        if self.app.conf.beat_schedule is None:
            self.app.conf.beat_schedule = {}
        return self.app.conf.beat_schedule

    def register(self, workflow_id: str, user_id: str, cron_expression: str) -> ScheduleInfo:
        """Create or replace the schedule for ``workflow_id``."""
        expression = validate_cron(cron_expression)
        existing = self._schedules.get(workflow_id)

        info = ScheduleInfo(
            workflow_id=workflow_id,
            user_id=user_id,
            cron_expression=expression,
            last_run_at=existing.last_run_at if existing else None,
            next_run_at=next_run_at(expression),
        )
        self._schedules[workflow_id] = info
        self._install(info)

        self.logger.info(
            "Registered schedule",
            workflow_id=workflow_id,
            cron=expression,
            next_run_at=info.next_run_at.isoformat(),
            replaced=existing is not None,
        )
        return info

    def remove(self, workflow_id: str) -> bool:
        removed = self._schedules.pop(workflow_id, None)
        self.beat_schedule.pop(schedule_key(workflow_id), None)
        if removed:
            self.logger.info("Removed schedule", workflow_id=workflow_id)
        return removed is not None

    def toggle(self, workflow_id: str, enabled: bool) -> ScheduleInfo:
        info = self.get(workflow_id)
        info.enabled = enabled
        if enabled:
            info.next_run_at = next_run_at(info.cron_expression)
            self._install(info)
        else:
            info.next_run_at = None
            self.beat_schedule.pop(info.job_key, None)
        self.logger.info("Toggled schedule", workflow_id=workflow_id, enabled=enabled)
        return info

    def record_run(self, workflow_id: str, at: Optional[datetime] = None) -> ScheduleInfo:
        """Stamp a fired schedule and compute its next fire time."""
        info = self.get(workflow_id)
        at = at or datetime.now(timezone.utc)
        info.last_run_at = at
        info.next_run_at = next_run_at(info.cron_expression, at) if info.enabled else None
        return info

    def get(self, workflow_id: str) -> ScheduleInfo:
        info = self._schedules.get(workflow_id)
        if info is None:
            raise NotFoundError(f"Schedule for workflow {workflow_id} not found")
        return info

    def list_schedules(self, user_id: Optional[str] = None) -> List[ScheduleInfo]:
        return [
            info for info in self._schedules.values()
            if user_id is None or info.user_id == user_id
        ]

    def _install(self, info: ScheduleInfo) -> None:
        self.beat_schedule[info.job_key] = {
            "task": EXECUTE_WORKFLOW_TASK,
            "schedule": to_crontab(info.cron_expression),
            "kwargs": {
                "workflow_id": info.workflow_id,
                "user_id": info.user_id,
                "trigger_payload": {},
                "trigger_source": TriggerSource.SCHEDULED.value,
            },
            "options": {"queue": settings.workflow_queue},
        }
