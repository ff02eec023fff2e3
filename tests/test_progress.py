"""Test progress publishers."""

import json
from unittest.mock import AsyncMock

import pytest

from relayflow.executions import (
    InMemoryProgressPublisher,
    NullProgressPublisher,
    ProgressEventType,
    RedisProgressPublisher,
)


@pytest.mark.unit
class TestInMemoryProgressPublisher:

    async def test_lifecycle_events(self):
        publisher = InMemoryProgressPublisher()

        await publisher.emit_started("exec-1", "wf-1", "user-1")
        await publisher.emit_progress("exec-1", 1, 4, "user-1")
        await publisher.emit_node_completed("exec-1", "n1", "http", "success", "user-1")
        await publisher.emit_completed("exec-1", "success", "user-1", workflow_id="wf-1")

        started, progress, node, completed = publisher.events
        assert started.event_type == ProgressEventType.EXECUTION_STARTED
        assert started.data == {"workflow_id": "wf-1"}
        assert progress.data == {"completed": 1, "total": 4, "percentage": 25.0}
        assert node.data == {"node_id": "n1", "node_type": "http", "status": "success"}
        assert completed.data == {"status": "success", "workflow_id": "wf-1"}

    async def test_progress_with_no_nodes(self):
        publisher = InMemoryProgressPublisher()

        await publisher.emit_progress("exec-1", 0, 0, "user-1")

        assert publisher.events[0].data["percentage"] == 0.0

    async def test_events_grouped_by_user(self):
        publisher = InMemoryProgressPublisher()

        await publisher.emit_started("exec-1", "wf-1", "user-1")
        await publisher.emit_started("exec-2", "wf-1", "user-2")

        assert [event.execution_id for event in publisher.events_for("user-2")] == ["exec-2"]

    async def test_null_publisher_discards(self):
        await NullProgressPublisher().emit_started("exec-1", "wf-1", "user-1")


@pytest.mark.unit
class TestRedisProgressPublisher:

    async def test_publishes_to_user_channel(self):
        redis = AsyncMock()
        publisher = RedisProgressPublisher(redis_client=redis, channel_prefix="progress")

        await publisher.emit_node_completed("exec-1", "n1", "slack", "failed", "user-9")

        channel, payload = redis.publish.await_args.args
        assert channel == "progress:user-9"
        message = json.loads(payload)
        assert message["execution_id"] == "exec-1"
        assert message["event_type"] == "execution:node-completed"
        assert message["data"]["status"] == "failed"
        assert "timestamp" in message

    async def test_default_channel_prefix(self):
        publisher = RedisProgressPublisher(redis_client=AsyncMock())

        assert publisher.channel_for("user-1").endswith(":user-1")
