"""Graph ordering and reachability for workflow graphs."""

from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Set

import networkx as nx
import structlog

from relayflow.workflows.schemas import EdgeSpec, NodeSpec
from .errors import CycleError

logger = structlog.get_logger()


def order(nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]) -> List[str]:
    """Return node ids in a dependency-respecting order (Kahn's algorithm).

    Ties among ready nodes are broken by their position in ``nodes`` so
    the same graph always yields the same order. Raises ``CycleError``
    without returning a partial order when the graph is cyclic.
    """
    position = {node.id: index for index, node in enumerate(nodes)}
    in_degree: Dict[str, int] = {node.id: 0 for node in nodes}
    successors: Dict[str, List[str]] = {node.id: [] for node in nodes}

    for edge in edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in in_degree:
                # Endpoints outside the node list still take part in ordering
                position[endpoint] = len(position)
                in_degree[endpoint] = 0
                successors[endpoint] = []
        successors[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(node_id for node_id in in_degree if in_degree[node_id] == 0)
    result: List[str] = []

    while queue:
        current = queue.popleft()
        result.append(current)
        ready = []
        for neighbor in successors[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                ready.append(neighbor)
        queue.extend(sorted(ready, key=position.__getitem__))

    if len(result) != len(in_degree):
        raise CycleError(cycle_path=find_cycle(nodes, edges))

    return result


def find_cycle(nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]) -> List[str]:
    """Return one cycle as a closed path of node ids, or ``[]``."""
    graph = build_graph(nodes, edges)
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return []
    return [source for source, _ in cycle] + [cycle[0][0]]


def build_graph(nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]) -> nx.DiGraph:
    """Build a networkx graph carrying node specs and edge handles."""
    graph = nx.DiGraph()
    for node in nodes:
        graph.add_node(node.id, spec=node)
    for edge in edges:
        graph.add_edge(edge.source, edge.target, handle=edge.source_handle, edge_id=edge.id)
    return graph


class GraphIndex:
    """Lookup tables over a graph snapshot used while walking a run."""

    def __init__(self, nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec]):
        self.nodes: Dict[str, NodeSpec] = {node.id: node for node in nodes}
        self.graph = build_graph(nodes, edges)
        self.incoming: Dict[str, List[EdgeSpec]] = {node.id: [] for node in nodes}
        for edge in edges:
            self.incoming.setdefault(edge.target, []).append(edge)
        self._descendants: Dict[str, Set[str]] = {}
        self._ancestors: Dict[str, Set[str]] = {}

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        return self.nodes.get(node_id)

    def incoming_edges(self, node_id: str) -> List[EdgeSpec]:
        return self.incoming.get(node_id, [])

    def descendants(self, node_id: str) -> Set[str]:
        """All nodes reachable from ``node_id`` (cached)."""
        if node_id not in self._descendants:
            self._descendants[node_id] = nx.descendants(self.graph, node_id)
        return self._descendants[node_id]

    def body_of(self, node_id: str, sequence: Iterable[str]) -> List[str]:
        """The part of ``sequence`` reachable from ``node_id``, in order."""
        reachable = self.descendants(node_id)
        return [candidate for candidate in sequence if candidate in reachable]

    def ancestors(self, node_id: str) -> Set[str]:
        """All nodes ``node_id`` depends on (cached)."""
        if node_id not in self._ancestors:
            self._ancestors[node_id] = nx.ancestors(self.graph, node_id)
        return self._ancestors[node_id]

    def dependencies_outside(self, body: Sequence[str], sequence: Iterable[str]) -> List[str]:
        """Nodes of ``sequence`` outside ``body`` that some body node depends on, in order."""
        members = set(body)
        required: Set[str] = set()
        for node_id in body:
            required |= self.ancestors(node_id)
        return [
            candidate for candidate in sequence
            if candidate in required and candidate not in members
        ]
