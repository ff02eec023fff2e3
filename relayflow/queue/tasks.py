"""Celery tasks for workflow runs.

Retries are run-level: a redelivered run starts again from the first
node with a fresh context and the next attempt number.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog
from celery import Task

from relayflow.config import settings
from relayflow.dependencies import executor_session
from relayflow.executions.schemas import TriggerSource
from relayflow.workflows.exceptions import WorkflowValidationError
from relayflow.worker import celery_app

logger = structlog.get_logger()

EXECUTE_WORKFLOW_TASK = "relayflow.execute_workflow"

# Structural problems fail the same way on every attempt
NON_RETRYABLE_ERRORS = (WorkflowValidationError,)


def retry_countdown(retries: int) -> int:
    """Seconds to wait before the next attempt (exponential, capped)."""
    return min(
        settings.execution_retry_backoff * (2 ** retries),
        settings.execution_retry_backoff_max,
    )


class WorkflowTask(Task):
    """Base class for workflow tasks with lifecycle logging."""

    def before_start(self, task_id, args, kwargs):
        logger.info(
            "Starting workflow task",
            task_id=task_id,
            task_name=self.name,
            workflow_id=kwargs.get("workflow_id"),
            attempt=self.request.retries + 1,
        )

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(
            "Workflow task completed successfully",
            task_id=task_id,
            task_name=self.name,
            result=retval,
        )

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "Workflow task failed",
            task_id=task_id,
            task_name=self.name,
            error=str(exc),
            execution_id=getattr(exc, "execution_id", None),
        )

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(
            "Retrying workflow task",
            task_id=task_id,
            task_name=self.name,
            error=str(exc),
            retry_count=self.request.retries,
        )


async def run_workflow(
    workflow_id: str,
    user_id: str,
    trigger_payload: Any,
    trigger_source: str,
    attempt: int,
) -> str:
    """Execute one run attempt against the configured stores."""
    async with executor_session() as executor:
        return await executor.execute_workflow(
            workflow_id,
            user_id,
            trigger_payload=trigger_payload,
            attempt=attempt,
            trigger_source=TriggerSource(trigger_source),
        )


@celery_app.task(
    bind=True,
    base=WorkflowTask,
    name=EXECUTE_WORKFLOW_TASK,
    queue=settings.workflow_queue,
    max_retries=max(settings.execution_max_attempts - 1, 0),
    time_limit=settings.max_execution_time,
    soft_time_limit=settings.max_execution_time - 60,
)
def execute_workflow_task(
    self,
    workflow_id: str,
    user_id: str,
    trigger_payload: Optional[Dict[str, Any]] = None,
    trigger_source: str = TriggerSource.MANUAL.value,
) -> Dict[str, Any]:
    """Run a workflow; redeliver failed runs with exponential backoff."""
    attempt = self.request.retries + 1

    try:
        execution_id = asyncio.run(run_workflow(
            workflow_id,
            user_id,
            trigger_payload if trigger_payload is not None else {},
            trigger_source,
            attempt,
        ))
    except NON_RETRYABLE_ERRORS:
        raise
    except Exception as e:
        if attempt < settings.execution_max_attempts:
            countdown = retry_countdown(self.request.retries)
            logger.warning(
                "Workflow run failed, scheduling retry",
                workflow_id=workflow_id,
                execution_id=getattr(e, "execution_id", None),
                attempt=attempt,
                countdown=countdown,
                error=str(e),
            )
            raise self.retry(exc=e, countdown=countdown)
        logger.error(
            "Workflow run failed after all attempts",
            workflow_id=workflow_id,
            execution_id=getattr(e, "execution_id", None),
            attempts=attempt,
            error=str(e),
        )
        raise

    return {"execution_id": execution_id, "status": "success", "attempt": attempt}


def enqueue_workflow_run(
    workflow_id: str,
    user_id: str,
    trigger_payload: Optional[Dict[str, Any]] = None,
    trigger_source: TriggerSource = TriggerSource.MANUAL,
):
    """Queue a run for a manual or webhook trigger."""
    result = execute_workflow_task.apply_async(
        kwargs={
            "workflow_id": workflow_id,
            "user_id": user_id,
            "trigger_payload": trigger_payload if trigger_payload is not None else {},
            "trigger_source": TriggerSource(trigger_source).value,
        },
        queue=settings.workflow_queue,
    )
    logger.info(
        "Workflow run queued",
        workflow_id=workflow_id,
        task_id=result.id,
        trigger_source=TriggerSource(trigger_source).value,
    )
    return result
