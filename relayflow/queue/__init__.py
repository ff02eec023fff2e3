"""Job dispatch: queued workflow runs and cron schedules."""

from .schedules import (
    ScheduleInfo,
    ScheduleRegistry,
    next_run_at,
    schedule_key,
    to_crontab,
    validate_cron,
)
from .tasks import (
    EXECUTE_WORKFLOW_TASK,
    enqueue_workflow_run,
    execute_workflow_task,
    retry_countdown,
)

__all__ = [
    "ScheduleInfo",
    "ScheduleRegistry",
    "next_run_at",
    "schedule_key",
    "to_crontab",
    "validate_cron",
    "EXECUTE_WORKFLOW_TASK",
    "enqueue_workflow_run",
    "execute_workflow_task",
    "retry_countdown",
]
