"""Test workflow graph schemas and stores."""

import pytest

from relayflow.database import DatabaseManager
from relayflow.workflows import (
    InMemoryWorkflowStore,
    NodeSpec,
    SQLWorkflowStore,
    WorkflowGraph,
    WorkflowNotFoundError,
    find_dangling_edges,
    validate_workflow_structure,
)

from conftest import make_edge, make_graph, make_node


@pytest.mark.unit
class TestNodeSpec:

    def test_editor_shape_is_flattened(self):
        node = NodeSpec.model_validate({
            "id": "n1",
            "type": "custom",
            "position": {"x": 10, "y": 20},
            "data": {"type": "http", "label": "Fetch", "config": {"url": "https://x.test"}},
        })

        assert node.type == "http"
        assert node.label == "Fetch"
        assert node.config == {"url": "https://x.test"}

    def test_flat_shape(self):
        node = NodeSpec.model_validate({"id": "n1", "type": "delay", "config": {"duration": 1}})

        assert node.label == ""
        assert node.config == {"duration": 1}

    @pytest.mark.parametrize("node_type,branching", [
        ("condition", True),
        ("ifElse", True),
        ("loop", False),
    ])
    def test_is_branching(self, node_type, branching):
        assert make_node("n", node_type).is_branching is branching

    def test_edge_accepts_source_handle_alias(self):
        graph = WorkflowGraph.model_validate({
            "name": "g",
            "nodes": [{"id": "a", "type": "condition"}, {"id": "b", "type": "trigger"}],
            "edges": [{"id": "e1", "source": "a", "target": "b", "sourceHandle": "true"}],
        })

        assert graph.edges[0].source_handle == "true"


@pytest.mark.unit
class TestValidateWorkflowStructure:

    def test_valid_graph(self):
        graph = make_graph(
            [make_node("t", "trigger"), make_node("h", "http")], [make_edge("t", "h")]
        )

        assert validate_workflow_structure(graph) == (True, [])

    def test_collects_all_problems(self):
        graph = WorkflowGraph(
            name="",
            nodes=[make_node("a", "trigger"), make_node("a", "http"), make_node("b", "teleport")],
            edges=[make_edge("a", "ghost")],
        )

        valid, errors = validate_workflow_structure(graph)

        assert valid is False
        assert "Workflow must have a name" in errors
        assert "Duplicate node id a" in errors
        assert "Node b has unsupported type teleport" in errors
        assert any("ghost" in error for error in errors)

    def test_empty_graph(self):
        valid, errors = validate_workflow_structure(make_graph([]))

        assert not valid
        assert "Workflow must have at least one node" in errors

    def test_dangling_edges(self):
        graph = make_graph([make_node("a", "trigger")], [make_edge("ghost", "a")])

        assert find_dangling_edges(graph) == [
            "Edge ghost->a references non-existent node(s): ghost -> a"
        ]


@pytest.mark.integration
class TestWorkflowStores:

    async def test_in_memory_store_is_scoped_to_user(self):
        store = InMemoryWorkflowStore()
        graph = make_graph([make_node("t", "trigger")])
        store.save("wf-1", "user-1", graph)

        assert await store.load_graph("wf-1", "user-1") is graph
        with pytest.raises(WorkflowNotFoundError):
            await store.load_graph("wf-1", "user-2")

    async def test_sql_store_round_trip(self, tmp_path):
        db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path}/workflows.db")
        await db.initialize(create_tables=True)
        try:
            store = SQLWorkflowStore(db)
            graph = make_graph(
                [make_node("c", "condition", expression="1 > 0"), make_node("t", "trigger")],
                [make_edge("c", "t", "true")],
                name="Stored",
            )

            workflow_id = await store.save("user-1", graph)
            loaded = await store.load_graph(workflow_id, "user-1")

            assert loaded.name == "Stored"
            assert loaded.node_ids == ["c", "t"]
            assert loaded.nodes[0].config == {"expression": "1 > 0"}
            assert loaded.edges[0].source_handle == "true"
            with pytest.raises(WorkflowNotFoundError):
                await store.load_graph(workflow_id, "user-2")
        finally:
            await db.close()
