"""Workflow execution engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog

from relayflow.executions.progress import NullProgressPublisher, ProgressPublisher
from relayflow.executions.schemas import (
    ExecutionStatus,
    NodeLog,
    NodeLogStatus,
    TriggerSource,
    utcnow,
)
from relayflow.executions.store import ExecutionStore
from relayflow.nodes.base import NodeResult
from relayflow.nodes.registry import NodeHandlerRegistry, create_default_registry
from relayflow.workflows.exceptions import WorkflowNotFoundError, WorkflowValidationError
from relayflow.workflows.schemas import (
    EdgeSpec,
    NodeSpec,
    WorkflowGraph,
    find_dangling_edges,
    find_duplicate_node_ids,
)
from relayflow.workflows.store import WorkflowStore
from .context import ExecutionContext
from .errors import (
    MissingHandlerError,
    WorkflowExecutionError,
    node_error_for,
)
from .graph import GraphIndex, order
from .resolver import resolve_deep

logger = structlog.get_logger()


@dataclass
class RunState:
    """Bookkeeping for one walk over a graph."""

    execution_id: str
    workflow_id: str
    user_id: str
    attempt: int
    context: ExecutionContext
    index: GraphIndex
    total: int = 0
    statuses: Dict[str, NodeLogStatus] = field(default_factory=dict)
    branches: Dict[str, str] = field(default_factory=dict)
    completed: List[str] = field(default_factory=list)
    executed: int = 0
    current_node: Optional[NodeSpec] = None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


class WorkflowExecutor:
    """Runs a stored workflow graph node by node.

    The walk is strictly sequential. Condition nodes exclude the branch
    they did not choose, loop nodes repeat the nodes downstream of them
    once per item, and a failure either continues (``continueOnError``)
    or aborts the run. Fatal errors are persisted on the execution
    record and re-raised so the job queue can redeliver the run.
    """

    def __init__(
        self,
        workflow_store: WorkflowStore,
        execution_store: ExecutionStore,
        registry: Optional[NodeHandlerRegistry] = None,
        publisher: Optional[ProgressPublisher] = None,
    ):
        self.workflow_store = workflow_store
        self.execution_store = execution_store
        self.registry = registry or create_default_registry()
        self.publisher = publisher or NullProgressPublisher()
        self.logger = logger.bind(component="executor")

    async def execute_workflow(
        self,
        workflow_id: str,
        user_id: str,
        trigger_payload: Any = None,
        attempt: int = 1,
        trigger_source: TriggerSource = TriggerSource.MANUAL,
    ) -> str:
        """Execute a workflow and return the execution record id."""
        trigger_payload = trigger_payload if trigger_payload is not None else {}
        record = await self.execution_store.create_record(
            workflow_id,
            user_id,
            trigger_payload=trigger_payload,
            trigger_source=TriggerSource(trigger_source),
            attempt=attempt,
        )
        execution_id = record.id
        log = self.logger.bind(
            execution_id=execution_id, workflow_id=workflow_id, attempt=attempt
        )

        await self.execution_store.set_status(execution_id, ExecutionStatus.RUNNING)
        await self._publish("emit_started", execution_id, workflow_id, user_id)
        log.info("Starting workflow execution", trigger_source=TriggerSource(trigger_source).value)

        context = ExecutionContext(
            user_id=user_id, trigger=trigger_payload, execution_id=execution_id
        )
        run: Optional[RunState] = None

        try:
            graph = await self._load_graph(workflow_id, user_id)
            node_order = self._order(graph, workflow_id)
            log.info("Node order computed", order=node_order)

            run = RunState(
                execution_id=execution_id,
                workflow_id=workflow_id,
                user_id=user_id,
                attempt=attempt,
                context=context,
                index=GraphIndex(graph.nodes, graph.edges),
                total=len(node_order),
            )
            await self._walk(node_order, run)

        except Exception as e:
            await self._fail(e, execution_id, workflow_id, user_id, attempt, context, run)
            raise

        await self.execution_store.set_status(execution_id, ExecutionStatus.SUCCESS)
        await self._publish(
            "emit_completed",
            execution_id,
            ExecutionStatus.SUCCESS.value,
            user_id,
            workflow_id=workflow_id,
        )
        log.info("Workflow execution completed", nodes_executed=run.executed)
        return execution_id

    async def _load_graph(self, workflow_id: str, user_id: str) -> WorkflowGraph:
        try:
            graph = await self.workflow_store.load_graph(workflow_id, user_id)
        except WorkflowNotFoundError as e:
            raise WorkflowExecutionError(
                str(e), workflow_id=workflow_id, error_code="WORKFLOW_NOT_FOUND"
            )

        if not graph.nodes:
            raise WorkflowExecutionError(
                "Workflow has no nodes to execute",
                workflow_id=workflow_id,
                error_code="EMPTY_WORKFLOW",
            )

        duplicates = find_duplicate_node_ids(graph)
        if duplicates:
            raise WorkflowValidationError("Workflow has duplicate node ids", errors=duplicates)

        dangling = find_dangling_edges(graph)
        if dangling:
            raise WorkflowValidationError("Workflow has invalid edges", errors=dangling)

        return graph

    def _order(self, graph: WorkflowGraph, workflow_id: str) -> List[str]:
        node_order = order(graph.nodes, graph.edges)
        if not node_order:
            raise WorkflowExecutionError(
                "No executable nodes found",
                workflow_id=workflow_id,
                error_code="EMPTY_WORKFLOW",
            )
        return node_order

    async def _walk(self, sequence: Sequence[str], run: RunState) -> None:
        """Execute ``sequence`` in order, expanding loops as they start."""
        remaining = list(sequence)
        position = 0

        while position < len(remaining):
            node_id = remaining[position]
            position += 1
            node = run.index.get_node(node_id)

            if not self._is_reachable(node_id, run):
                await self._record_skipped(node, run, reason="branch not taken")
                continue

            body: List[str] = []
            if node.type == "loop":
                upcoming = remaining[position:]
                body = run.index.body_of(node_id, upcoming)
                # Body nodes may also read from nodes outside the loop; those run first
                prerequisites = run.index.dependencies_outside(body, upcoming)
                taken = set(body) | set(prerequisites)
                remaining = remaining[:position] + [
                    candidate for candidate in upcoming if candidate not in taken
                ]
                if prerequisites:
                    await self._walk(prerequisites, run)

            loop_depth = len(run.context.loop_stack)
            result = await self._execute_node(node, run)

            if node.type != "loop":
                continue

            if result.success and len(run.context.loop_stack) > loop_depth:
                await self._run_loop(node, body, run)
            else:
                for body_node_id in body:
                    await self._record_skipped(
                        run.index.get_node(body_node_id), run, reason="loop did not start"
                    )

    async def _run_loop(self, loop_node: NodeSpec, body: List[str], run: RunState) -> None:
        """Walk ``body`` once per item of the frame the loop node pushed."""
        context = run.context
        frame = context.current_loop
        log = self.logger.bind(execution_id=run.execution_id, node_id=loop_node.id)
        log.debug("Running loop body", item_count=frame.count, body=body)

        try:
            for item_index in range(frame.count):
                frame.advance_to(item_index)
                context.clear_node_outputs(body)
                for body_node_id in body:
                    run.statuses.pop(body_node_id, None)
                    run.branches.pop(body_node_id, None)
                await self._walk(body, run)
        finally:
            context.pop_loop()

        log.debug("Loop finished", iterations=frame.count)

    def _is_reachable(self, node_id: str, run: RunState) -> bool:
        """A node with inputs runs when at least one incoming edge is live."""
        incoming = run.index.incoming_edges(node_id)
        if not incoming:
            return True
        return any(self._edge_is_live(edge, run) for edge in incoming)

    def _edge_is_live(self, edge: EdgeSpec, run: RunState) -> bool:
        status = run.statuses.get(edge.source)
        if status is None or status == NodeLogStatus.SKIPPED:
            return False

        source = run.index.get_node(edge.source)
        if edge.source_handle is None or source is None or not source.is_branching:
            return True

        return run.branches.get(edge.source) == str(edge.source_handle)

    async def _execute_node(self, node: NodeSpec, run: RunState) -> NodeResult:
        context = run.context
        run.current_node = node
        iteration = context.current_loop.current_index if context.current_loop else None
        log = self.logger.bind(
            execution_id=run.execution_id,
            node_id=node.id,
            node_type=node.type,
            iteration=iteration,
        )

        await self._publish(
            "emit_progress", run.execution_id, run.executed, run.total, run.user_id
        )

        resolved = resolve_deep(node.config, context)
        try:
            handler = self.registry.get(node.type)
        except MissingHandlerError as e:
            e.node_id = node.id
            e.details["node_id"] = node.id
            raise

        log.debug("Executing node")
        loop_depth = len(context.loop_stack)
        start_time = utcnow()
        try:
            result = await handler.execute(resolved, context)
        except Exception as e:
            log.exception("Node handler raised")
            result = NodeResult.fail(
                str(e) or e.__class__.__name__,
                error_code=getattr(e, "error_code", None),
            )
        end_time = utcnow()
        duration = int((end_time - start_time).total_seconds() * 1000)
        run.executed += 1

        if not result.success:
            # A failed loop node must not leave a frame behind
            while len(context.loop_stack) > loop_depth:
                context.pop_loop()

        node_log = NodeLog(
            node_id=node.id,
            node_type=node.type,
            node_label=node.label,
            status=NodeLogStatus.SUCCESS if result.success else NodeLogStatus.FAILED,
            input=resolved,
            output=result.output,
            error=None if result.success else (result.error or "Node execution failed"),
            attempt_number=run.attempt,
            iteration=iteration,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
        )

        if result.success:
            context.set_node_output(node.id, result.output)
            run.statuses[node.id] = NodeLogStatus.SUCCESS
            if node.is_branching and isinstance(result.output, dict):
                run.branches[node.id] = str(result.output.get("branch"))
            run.completed.append(node.id)
            await self.execution_store.append_log(run.execution_id, node_log)
            log.info("Node completed", duration_ms=duration)
            await self._publish(
                "emit_node_completed",
                run.execution_id,
                node.id,
                node.type,
                NodeLogStatus.SUCCESS.value,
                run.user_id,
            )
            return result

        message = node_log.error
        await self.execution_store.append_log(run.execution_id, node_log)
        continue_on_error = result.continue_on_error or (
            isinstance(resolved, dict) and _truthy(resolved.get("continueOnError"))
        )

        if not continue_on_error:
            log.error("Node failed", error=message, error_code=result.error_code)
            raise node_error_for(result.error_code, message, node.id, node.type)

        context.set_node_output(node.id, {"error": True, "message": message})
        run.statuses[node.id] = NodeLogStatus.FAILED
        run.completed.append(node.id)
        log.warning("Node failed, continuing", error=message, error_code=result.error_code)
        await self._publish(
            "emit_node_completed",
            run.execution_id,
            node.id,
            node.type,
            NodeLogStatus.FAILED.value,
            run.user_id,
        )
        return result

    async def _record_skipped(self, node: NodeSpec, run: RunState, reason: str) -> None:
        context = run.context
        now = utcnow()
        run.statuses[node.id] = NodeLogStatus.SKIPPED
        await self.execution_store.append_log(run.execution_id, NodeLog(
            node_id=node.id,
            node_type=node.type,
            node_label=node.label,
            status=NodeLogStatus.SKIPPED,
            attempt_number=run.attempt,
            iteration=context.current_loop.current_index if context.current_loop else None,
            start_time=now,
            end_time=now,
        ))
        self.logger.debug(
            "Node skipped",
            execution_id=run.execution_id,
            node_id=node.id,
            reason=reason,
        )

    async def _fail(
        self,
        error: Exception,
        execution_id: str,
        workflow_id: str,
        user_id: str,
        attempt: int,
        context: ExecutionContext,
        run: Optional[RunState],
    ) -> None:
        """Persist the diagnostic for a fatal error and mark the run failed."""
        error.execution_id = execution_id

        failed_node_id = getattr(error, "node_id", None)
        failed_node_type = getattr(error, "node_type", None)
        if failed_node_id is None and run is not None and run.current_node is not None:
            failed_node_id = run.current_node.id
            failed_node_type = run.current_node.type

        payload = {
            "message": getattr(error, "message", None) or str(error),
            "error_type": error.__class__.__name__,
            "error_code": getattr(error, "error_code", None),
            "failed_node_id": failed_node_id,
            "failed_node_type": failed_node_type,
            "completed_nodes": list(run.completed) if run is not None else [],
            "context": context.snapshot(),
            "attempt": attempt,
        }

        self.logger.error(
            "Workflow execution failed",
            execution_id=execution_id,
            workflow_id=workflow_id,
            error=payload["message"],
            error_type=payload["error_type"],
            failed_node_id=failed_node_id,
            attempt=attempt,
        )

        try:
            await self.execution_store.set_error(execution_id, payload)
            await self.execution_store.set_status(execution_id, ExecutionStatus.FAILED)
        except Exception:
            self.logger.exception(
                "Failed to persist execution failure", execution_id=execution_id
            )

        await self._publish(
            "emit_completed",
            execution_id,
            ExecutionStatus.FAILED.value,
            user_id,
            workflow_id=workflow_id,
        )

    async def _publish(self, method: str, *args, **kwargs) -> None:
        """Call a publisher method; publisher failures never affect the run."""
        try:
            await getattr(self.publisher, method)(*args, **kwargs)
        except Exception as e:
            self.logger.warning("Progress publish failed", method=method, error=str(e))
