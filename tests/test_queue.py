"""Test workflow run dispatch and schedules."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from celery import Celery
from celery.exceptions import Retry

from relayflow.config import settings
from relayflow.exceptions import NotFoundError, ValidationError
from relayflow.executor.errors import NodeExecutionError
from relayflow.queue import (
    EXECUTE_WORKFLOW_TASK,
    ScheduleRegistry,
    enqueue_workflow_run,
    execute_workflow_task,
    next_run_at,
    retry_countdown,
    schedule_key,
    to_crontab,
    validate_cron,
)
from relayflow.workflows import WorkflowValidationError


def run_task(retries=0, **kwargs):
    """Run the task body with a request carrying ``retries``."""
    execute_workflow_task.push_request(retries=retries)
    try:
        return execute_workflow_task.run(workflow_id="wf-1", user_id="user-1", **kwargs)
    finally:
        execute_workflow_task.pop_request()


@pytest.fixture
def run_workflow():
    with patch("relayflow.queue.tasks.run_workflow", new_callable=AsyncMock) as mock:
        mock.return_value = "exec-1"
        yield mock


@pytest.fixture
def retry():
    with patch.object(execute_workflow_task, "retry", side_effect=Retry()) as mock:
        yield mock


@pytest.mark.unit
class TestExecuteWorkflowTask:

    def test_task_name(self):
        assert execute_workflow_task.name == EXECUTE_WORKFLOW_TASK
        assert execute_workflow_task.max_retries == settings.execution_max_attempts - 1

    def test_successful_run(self, run_workflow):
        result = run_task(trigger_payload={"a": 1})

        assert result == {"execution_id": "exec-1", "status": "success", "attempt": 1}
        run_workflow.assert_awaited_once_with("wf-1", "user-1", {"a": 1}, "manual", 1)

    def test_attempt_follows_retries(self, run_workflow):
        result = run_task(retries=1, trigger_source="scheduled")

        assert result["attempt"] == 2
        run_workflow.assert_awaited_once_with("wf-1", "user-1", {}, "scheduled", 2)

    def test_failure_is_retried_with_backoff(self, run_workflow, retry):
        error = NodeExecutionError("boom", node_id="n1", node_type="http")
        run_workflow.side_effect = error

        with pytest.raises(Retry):
            run_task(retries=0)

        retry.assert_called_once_with(exc=error, countdown=retry_countdown(0))

    def test_last_attempt_is_not_retried(self, run_workflow, retry):
        run_workflow.side_effect = NodeExecutionError("boom", node_id="n1", node_type="http")

        with pytest.raises(NodeExecutionError):
            run_task(retries=settings.execution_max_attempts - 1)

        retry.assert_not_called()

    def test_validation_errors_are_not_retried(self, run_workflow, retry):
        run_workflow.side_effect = WorkflowValidationError("Workflow has invalid edges")

        with pytest.raises(WorkflowValidationError):
            run_task()

        retry.assert_not_called()

    def test_retry_countdown_grows_and_caps(self):
        base = settings.execution_retry_backoff

        assert retry_countdown(0) == base
        assert retry_countdown(1) == base * 2
        assert retry_countdown(2) == base * 4
        assert retry_countdown(50) == settings.execution_retry_backoff_max


@pytest.mark.unit
def test_enqueue_workflow_run():
    with patch.object(execute_workflow_task, "apply_async", return_value=Mock(id="task-1")) as apply:
        result = enqueue_workflow_run("wf-1", "user-1", {"x": 1}, trigger_source="webhook")

    assert result.id == "task-1"
    apply.assert_called_once_with(
        kwargs={
            "workflow_id": "wf-1",
            "user_id": "user-1",
            "trigger_payload": {"x": 1},
            "trigger_source": "webhook",
        },
        queue=settings.workflow_queue,
    )


@pytest.mark.unit
class TestCron:

    @pytest.mark.parametrize("expression", ["* * * * *", "*/15 9-17 * * 1-5", "0  0 1 1 *"])
    def test_valid_expressions(self, expression):
        assert len(validate_cron(expression).split(" ")) == 5

    @pytest.mark.parametrize("expression", ["", "* * * *", "0 0 * * * *", "61 * * * *", "every day"])
    def test_invalid_expressions(self, expression):
        with pytest.raises(ValidationError):
            validate_cron(expression)

    def test_next_run_at(self):
        base = datetime(2026, 1, 1, 8, 30, tzinfo=timezone.utc)

        assert next_run_at("0 9 * * *", base) == datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_to_crontab(self):
        schedule = to_crontab("*/15 9 * * *")

        assert schedule.minute == {0, 15, 30, 45}
        assert schedule.hour == {9}


@pytest.mark.unit
class TestScheduleRegistry:

    @pytest.fixture
    def registry(self):
        return ScheduleRegistry(app=Celery("test-schedules"))

    def test_register_installs_beat_entry(self, registry):
        info = registry.register("wf-1", "user-1", "0 9 * * *")

        entry = registry.beat_schedule[schedule_key("wf-1")]
        assert entry["task"] == EXECUTE_WORKFLOW_TASK
        assert entry["kwargs"]["trigger_source"] == "scheduled"
        assert entry["kwargs"]["user_id"] == "user-1"
        assert entry["options"] == {"queue": settings.workflow_queue}
        assert info.enabled is True
        assert info.next_run_at is not None

    def test_register_replaces_existing(self, registry):
        registry.register("wf-1", "user-1", "0 9 * * *")
        registry.register("wf-1", "user-1", "30 10 * * *")

        assert len(registry.beat_schedule) == 1
        assert registry.get("wf-1").cron_expression == "30 10 * * *"
        assert registry.beat_schedule["schedule_wf-1"]["schedule"].hour == {10}

    def test_register_rejects_bad_cron(self, registry):
        with pytest.raises(ValidationError):
            registry.register("wf-1", "user-1", "not cron")

        assert registry.beat_schedule == {}

    def test_toggle(self, registry):
        registry.register("wf-1", "user-1", "0 9 * * *")

        disabled = registry.toggle("wf-1", False)
        assert disabled.next_run_at is None
        assert "schedule_wf-1" not in registry.beat_schedule

        enabled = registry.toggle("wf-1", True)
        assert enabled.next_run_at is not None
        assert "schedule_wf-1" in registry.beat_schedule

    def test_record_run(self, registry):
        registry.register("wf-1", "user-1", "0 * * * *")
        fired = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        info = registry.record_run("wf-1", at=fired)

        assert info.last_run_at == fired
        assert info.next_run_at == datetime(2026, 3, 1, 13, 0, tzinfo=timezone.utc)

    def test_remove_and_list(self, registry):
        registry.register("wf-1", "user-1", "0 9 * * *")
        registry.register("wf-2", "user-2", "0 9 * * *")

        assert [info.workflow_id for info in registry.list_schedules("user-2")] == ["wf-2"]
        assert registry.remove("wf-1") is True
        assert registry.remove("wf-1") is False
        assert schedule_key("wf-1") not in registry.beat_schedule

        with pytest.raises(NotFoundError):
            registry.get("wf-1")
