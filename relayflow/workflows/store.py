"""Workflow storage collaborators.

The executor only needs ``load_graph``; everything else here exists so
that stores can be populated in tests and from the CLI.
"""

from abc import ABC, abstractmethod
from typing import Dict, Tuple

import structlog
from sqlalchemy import select

from relayflow.database import DatabaseManager
from .exceptions import WorkflowNotFoundError
from .models import Workflow
from .schemas import WorkflowGraph

logger = structlog.get_logger()


class WorkflowStore(ABC):
    """Read access to stored workflow graphs."""

    @abstractmethod
    async def load_graph(self, workflow_id: str, user_id: str) -> WorkflowGraph:
        """Return a snapshot of the workflow or raise ``WorkflowNotFoundError``."""


class InMemoryWorkflowStore(WorkflowStore):
    """Dictionary-backed store keyed by ``(workflow_id, user_id)``."""

    def __init__(self):
        self._graphs: Dict[Tuple[str, str], WorkflowGraph] = {}

    def save(self, workflow_id: str, user_id: str, graph: WorkflowGraph) -> None:
        self._graphs[(workflow_id, user_id)] = graph

    async def load_graph(self, workflow_id: str, user_id: str) -> WorkflowGraph:
        graph = self._graphs.get((workflow_id, user_id))
        if graph is None:
            raise WorkflowNotFoundError(workflow_id, user_id)
        return graph


class SQLWorkflowStore(WorkflowStore):
    """Workflow store backed by the ``workflows`` table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def save(self, user_id: str, graph: WorkflowGraph, workflow_id: str = None) -> str:
        """Insert or replace a workflow and return its id."""
        async with self.db.session() as session:
            workflow = await session.get(Workflow, workflow_id) if workflow_id else None
            if workflow is None:
                workflow = Workflow(user_id=user_id)
                if workflow_id:
                    workflow.id = workflow_id
                session.add(workflow)
            workflow.name = graph.name
            workflow.nodes = [node.model_dump() for node in graph.nodes]
            workflow.edges = [edge.model_dump(by_alias=True) for edge in graph.edges]
            await session.commit()
            return workflow.id

    async def load_graph(self, workflow_id: str, user_id: str) -> WorkflowGraph:
        async with self.db.session() as session:
            result = await session.execute(
                select(Workflow).where(Workflow.id == workflow_id, Workflow.user_id == user_id)
            )
            workflow = result.scalar_one_or_none()

        if workflow is None:
            raise WorkflowNotFoundError(workflow_id, user_id)

        return WorkflowGraph(
            name=workflow.name,
            nodes=workflow.nodes or [],
            edges=workflow.edges or [],
        )
