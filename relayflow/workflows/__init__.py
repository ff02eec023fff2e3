"""Workflow graph definitions and storage."""

from .exceptions import WorkflowNotFoundError, WorkflowValidationError
from .schemas import (
    BRANCHING_NODE_TYPES,
    SUPPORTED_NODE_TYPES,
    EdgeSpec,
    NodeSpec,
    WorkflowGraph,
    find_dangling_edges,
    find_duplicate_node_ids,
    validate_workflow_structure,
)
from .store import InMemoryWorkflowStore, SQLWorkflowStore, WorkflowStore

__all__ = [
    "WorkflowNotFoundError",
    "WorkflowValidationError",
    "BRANCHING_NODE_TYPES",
    "SUPPORTED_NODE_TYPES",
    "EdgeSpec",
    "NodeSpec",
    "WorkflowGraph",
    "find_dangling_edges",
    "find_duplicate_node_ids",
    "validate_workflow_structure",
    "InMemoryWorkflowStore",
    "SQLWorkflowStore",
    "WorkflowStore",
]
