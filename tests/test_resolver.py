"""Test template resolution."""

import pytest

from relayflow.executor.context import ExecutionContext, LoopFrame
from relayflow.executor.resolver import NOT_FOUND, resolve, resolve_deep, resolve_path


@pytest.fixture
def ctx():
    context = ExecutionContext(user_id="user-1", trigger={"body": {"email": "a@b.c"}})
    context.variables.update({"x": 5, "name": "Ada", "empty": None, "flag": True})
    context.set_node_output("http", {"total": 42, "items": [{"name": "first"}, {"name": "second"}]})
    return context


@pytest.mark.unit
class TestResolve:
    """Test string interpolation."""

    def test_variable(self, ctx):
        assert resolve("{{variables.x}}", ctx) == "5"

    def test_variable_singular_root(self, ctx):
        assert resolve("{{variable.name}}", ctx) == "Ada"

    def test_missing_variable_left_verbatim(self, ctx):
        assert resolve("{{variables.missing}}", ctx) == "{{variables.missing}}"

    def test_explicit_null_is_rendered(self, ctx):
        assert resolve("value={{variables.empty}}", ctx) == "value=null"

    def test_null_intermediate_is_not_found(self, ctx):
        assert resolve("{{variables.empty.deeper}}", ctx) == "{{variables.empty.deeper}}"

    def test_boolean_rendering(self, ctx):
        assert resolve("{{variables.flag}}", ctx) == "true"

    def test_several_references(self, ctx):
        assert resolve("Hi {{variables.name}}, total {{http.total}}", ctx) == "Hi Ada, total 42"

    def test_whitespace_inside_braces(self, ctx):
        assert resolve("{{ variables.x }}", ctx) == "5"

    def test_trigger_root(self, ctx):
        assert resolve("{{trigger.body.email}}", ctx) == "a@b.c"

    def test_node_output_with_output_segment(self, ctx):
        assert resolve("{{http.output.total}}", ctx) == "42"

    def test_node_output_with_own_output_key(self, ctx):
        ctx.set_node_output("wrapped", {"output": {"total": 7}, "total": 1})
        assert resolve("{{wrapped.output.total}}", ctx) == "7"

    def test_list_index_segment(self, ctx):
        assert resolve("{{http.items.1.name}}", ctx) == "second"

    def test_dict_rendered_as_compact_json(self, ctx):
        assert resolve("{{http.items.0}}", ctx) == '{"name":"first"}'

    def test_unknown_node_left_verbatim(self, ctx):
        assert resolve("{{nope.value}}", ctx) == "{{nope.value}}"

    def test_fully_resolved_string_is_unchanged(self, ctx):
        once = resolve("Total: {{http.total}}", ctx)
        assert resolve(once, ctx) == once

    def test_non_string_passthrough(self, ctx):
        assert resolve(12, ctx) == 12


@pytest.mark.unit
class TestLoopResolution:
    """Test the loop scope overlay."""

    def test_loop_item_inside_loop(self, ctx):
        frame = LoopFrame(items=[1, 2, 3])
        frame.advance_to(2)
        ctx.push_loop(frame)

        assert resolve("{{loop.item}}", ctx) == "3"
        assert resolve("{{loop.index}}", ctx) == "2"
        assert resolve("{{loop.count}}", ctx) == "3"

    def test_loop_item_outside_loop(self, ctx):
        assert resolve("{{loop.item}}", ctx) == "{{loop.item}}"

    def test_loop_variable_alias(self, ctx):
        ctx.push_loop(LoopFrame(items=[{"id": "inv-1"}], loop_variable="invoice"))

        assert resolve("{{loop.invoice.id}}", ctx) == "inv-1"
        assert resolve("{{loop.item.id}}", ctx) == "inv-1"

    def test_nested_loops_read_top_frame(self, ctx):
        ctx.push_loop(LoopFrame(items=["outer"]))
        ctx.push_loop(LoopFrame(items=["inner"]))

        assert resolve("{{loop.item}}", ctx) == "inner"
        ctx.pop_loop()
        assert resolve("{{loop.item}}", ctx) == "outer"

    def test_unknown_loop_key(self, ctx):
        ctx.push_loop(LoopFrame(items=[1]))
        assert resolve_path("loop.other", ctx) is NOT_FOUND


@pytest.mark.unit
class TestResolveDeep:
    """Test recursive resolution of node configs."""

    def test_single_reference_keeps_native_type(self, ctx):
        assert resolve_deep("{{http.output.total}}", ctx) == 42
        assert resolve_deep("{{http.items}}", ctx) == [{"name": "first"}, {"name": "second"}]

    def test_nested_structures(self, ctx):
        config = {
            "url": "https://api.test/{{variables.name}}",
            "headers": {"X-Count": "{{variables.x}}"},
            "list": ["{{trigger.body.email}}", 3, None],
            "timeout": 10,
        }

        assert resolve_deep(config, ctx) == {
            "url": "https://api.test/Ada",
            "headers": {"X-Count": 5},
            "list": ["a@b.c", 3, None],
            "timeout": 10,
        }

    def test_unresolved_single_reference_left_verbatim(self, ctx):
        assert resolve_deep("{{variables.missing}}", ctx) == "{{variables.missing}}"

    def test_explicit_null_single_reference(self, ctx):
        assert resolve_deep("{{variables.empty}}", ctx) is None

    def test_input_not_mutated(self, ctx):
        config = {"a": ["{{variables.x}}"]}
        resolve_deep(config, ctx)
        assert config == {"a": ["{{variables.x}}"]}
