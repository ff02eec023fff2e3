"""Workflow graph schemas."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


SUPPORTED_NODE_TYPES = frozenset({
    "trigger",
    "http",
    "delay",
    "condition",
    "ifElse",
    "variable",
    "loop",
    "slack",
    "email",
    "sheets",
    "webhook",
})

# Node types whose outgoing edges may carry a branch handle
BRANCHING_NODE_TYPES = frozenset({"condition", "ifElse"})


class NodeSpec(BaseModel):
    """One step of a workflow graph."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Node id, unique within the graph")
    type: str = Field(..., description="Handler discriminator")
    label: str = Field(default="", description="Display label")
    config: Dict[str, Any] = Field(default_factory=dict, description="Raw node configuration")

    @model_validator(mode="before")
    @classmethod
    def flatten_editor_shape(cls, data: Any) -> Any:
        """Accept the editor's ``{id, type, data: {type, label, config}}`` shape."""
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            return data
        inner = data["data"]
        flattened = {key: value for key, value in data.items() if key not in ("data", "position")}
        if inner.get("type"):
            flattened["type"] = inner["type"]
        if "label" in inner and "label" not in data:
            flattened["label"] = inner.get("label") or ""
        if "config" in inner and "config" not in data:
            flattened["config"] = inner.get("config") or {}
        return flattened

    @property
    def is_branching(self) -> bool:
        return self.type in BRANCHING_NODE_TYPES


class EdgeSpec(BaseModel):
    """Directed link between two nodes."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", description="Edge id")
    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_handle: Optional[str] = Field(
        default=None, alias="sourceHandle", description="Branch handle ('true'/'false')"
    )


class WorkflowGraph(BaseModel):
    """Immutable snapshot of a workflow taken at run start."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="", description="Workflow name")
    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]


def validate_workflow_structure(graph: WorkflowGraph) -> Tuple[bool, List[str]]:
    """Check a graph for structural problems.

    Returns a ``(valid, errors)`` pair; the graph is never mutated.
    """
    errors: List[str] = []

    if not graph.name:
        errors.append("Workflow must have a name")

    if not graph.nodes:
        errors.append("Workflow must have at least one node")

    errors.extend(find_duplicate_node_ids(graph))

    node_ids = set()
    for node in graph.nodes:
        if node.id in node_ids:
            continue
        if node.type not in SUPPORTED_NODE_TYPES:
            errors.append(f"Node {node.id} has unsupported type {node.type}")
        node_ids.add(node.id)

    errors.extend(find_dangling_edges(graph, node_ids))

    return not errors, errors


def find_duplicate_node_ids(graph: WorkflowGraph) -> List[str]:
    """One error for each repeat of an already used node id."""
    seen = set()
    errors = []
    for node in graph.nodes:
        if node.id in seen:
            errors.append(f"Duplicate node id {node.id}")
        seen.add(node.id)
    return errors


def find_dangling_edges(graph: WorkflowGraph, node_ids: Optional[set] = None) -> List[str]:
    """List edges whose endpoints are missing from the graph."""
    known = node_ids if node_ids is not None else {node.id for node in graph.nodes}
    errors = []
    for index, edge in enumerate(graph.edges):
        if edge.source not in known or edge.target not in known:
            errors.append(
                f"Edge {edge.id or index} references non-existent node(s): "
                f"{edge.source} -> {edge.target}"
            )
    return errors
