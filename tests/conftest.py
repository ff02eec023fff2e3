"""Pytest configuration and fixtures."""

from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from relayflow.executions import InMemoryExecutionStore, InMemoryProgressPublisher
from relayflow.executor.context import ExecutionContext
from relayflow.executor.engine import WorkflowExecutor
from relayflow.nodes import NodeHandler, NodeResult, create_default_registry
from relayflow.nodes.control import DelayHandler
from relayflow.workflows import EdgeSpec, InMemoryWorkflowStore, NodeSpec, WorkflowGraph


USER_ID = "user-1"
WORKFLOW_ID = "wf-1"


def make_node(node_id: str, node_type: str, label: str = "", **config) -> NodeSpec:
    return NodeSpec(id=node_id, type=node_type, label=label or node_id, config=config)


def make_edge(source: str, target: str, handle: Optional[str] = None) -> EdgeSpec:
    return EdgeSpec(id=f"{source}->{target}", source=source, target=target, source_handle=handle)


def make_graph(nodes: List[NodeSpec], edges: List[EdgeSpec] = None, name: str = "Test") -> WorkflowGraph:
    return WorkflowGraph(name=name, nodes=nodes, edges=edges or [])


class StubHandler(NodeHandler):
    """Handler returning a canned result and recording what it saw."""

    node_type = "stub"

    def __init__(
        self,
        output: Any = None,
        success: bool = True,
        error: Optional[str] = None,
        continue_on_error: bool = False,
        raises: Optional[Exception] = None,
        on_call: Optional[Callable[[Dict[str, Any], ExecutionContext], Any]] = None,
    ):
        super().__init__()
        self.output = output if output is not None else {}
        self.success = success
        self.error = error
        self.continue_on_error = continue_on_error
        self.raises = raises
        self.on_call = on_call
        self.calls: List[Dict[str, Any]] = []
        self.variables_seen: List[Dict[str, Any]] = []

    async def execute(self, config, context):
        self.calls.append(config)
        self.variables_seen.append(dict(context.variables))
        if self.on_call is not None:
            self.on_call(config, context)
        if self.raises is not None:
            raise self.raises
        return await super().execute(config, context)

    async def run(self, config, context):
        if self.success:
            return NodeResult.ok(self.output)
        return NodeResult.fail(
            self.error or "stub failure", continue_on_error=self.continue_on_error
        )


class FailingPublisher(InMemoryProgressPublisher):
    async def publish(self, event):
        raise ConnectionError("pub/sub unavailable")


class ExecutorHarness:
    """Executor wired to in-memory collaborators."""

    def __init__(self):
        self.workflow_store = InMemoryWorkflowStore()
        self.execution_store = InMemoryExecutionStore()
        self.publisher = InMemoryProgressPublisher()
        self.registry = create_default_registry()
        self.sleep = AsyncMock()
        self.registry.register("delay", DelayHandler(sleep=self.sleep))
        self.executor = WorkflowExecutor(
            workflow_store=self.workflow_store,
            execution_store=self.execution_store,
            registry=self.registry,
            publisher=self.publisher,
        )

    def stub(self, node_type: str, **kwargs) -> StubHandler:
        handler = StubHandler(**kwargs)
        self.registry.register(node_type, handler)
        return handler

    async def run(self, graph: WorkflowGraph, trigger: Any = None, attempt: int = 1):
        self.workflow_store.save(WORKFLOW_ID, USER_ID, graph)
        execution_id = await self.executor.execute_workflow(
            WORKFLOW_ID, USER_ID, trigger_payload=trigger, attempt=attempt
        )
        return await self.execution_store.get_record(execution_id)

    def only_record(self):
        records = list(self.execution_store.records.values())
        assert len(records) == 1
        return records[0]


@pytest.fixture
def harness():
    return ExecutorHarness()


@pytest.fixture
def context():
    return ExecutionContext(user_id=USER_ID, trigger={"source": "test"}, execution_id="exec-1")
