"""Celery worker entry point."""

import sys

import structlog
from celery import Celery
from rich.console import Console

from relayflow.config import settings

logger = structlog.get_logger()
console = Console()

celery_app = Celery(
    "relayflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["relayflow.queue.tasks"],
)

celery_app.conf.update(
    task_serializer=settings.celery_task_serializer,
    accept_content=settings.celery_accept_content,
    result_serializer=settings.celery_result_serializer,
    timezone=settings.celery_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.max_execution_time,
    task_soft_time_limit=settings.max_execution_time - 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
    beat_schedule={},
)


def main(concurrency: int = 4, loglevel: str = "info"):
    """Start a worker consuming the workflow queue."""
    console.print(f"Starting {settings.app_name} Celery worker...")

    try:
        celery_app.worker_main([
            "worker",
            f"--loglevel={loglevel}",
            f"--concurrency={concurrency}",
            f"--queues={settings.workflow_queue}",
        ])
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error("Worker error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
