"""
Tests for the built-in block library
"""
import math

import pytest

from blockflow.core.execution.context import GLOBAL_STATE_KEY
from blockflow.core.execution.engine import ExecutionEngine
from blockflow.core.execution.nodes import create_default_registry, register_builtin_blocks
from blockflow.core.execution.nodes.coerce import loose_equals, strict_equals, to_number, to_text
from blockflow.core.types import BlockCategory, RenderResult, RunStatus

from conftest import connect, element, graph


async def run(registry, elements, connections=(), variables=None, **options):
    engine = ExecutionEngine(*graph(elements, connections), registry)
    return await engine.execute(options or None, variables=variables)


class TestLibrary:
    """Contents of the default registry"""

    def test_block_counts(self, builtin_registry):
        stats = builtin_registry.get_stats()
        assert stats["total_blocks"] == 38
        assert stats["category_counts"] == {"data": 16, "control": 8, "math": 8, "io": 2, "logic": 4}

    def test_registering_twice_is_harmless(self, builtin_registry):
        register_builtin_blocks(builtin_registry)
        assert len(builtin_registry) == 38

    def test_every_block_renders_its_defaults(self, builtin_registry):
        for block in builtin_registry.get_all():
            result = block.definition.render(block.definition.get_default_props())
            assert isinstance(result, RenderResult), block.type
            assert result.label

    def test_renders(self, builtin_registry):
        assert builtin_registry.get("print").render({"message": "hi"}) == RenderResult(label="PRINT", content="hi")
        assert builtin_registry.get("add").render({"a": 2}).content == "2 + 0"
        assert builtin_registry.get("variable").render({"name": "x", "value": 3}) == \
            RenderResult(label="VAR", content="x", value="3")

    def test_array_pop_ports_do_not_clash(self, builtin_registry):
        definition = builtin_registry.get("array_pop")
        assert definition.inputs == ("array",)
        assert definition.outputs == ("remaining", "item")

    def test_categories(self, builtin_registry):
        logic = [block.type for block in builtin_registry.get_by_category(BlockCategory.LOGIC)]
        assert logic == ["compare", "and", "or", "not"]

    def test_default_registries_are_independent(self):
        first = create_default_registry()
        second = create_default_registry()
        first.unregister("print")
        assert "print" in second


class TestMath:
    """Arithmetic blocks"""

    @pytest.mark.asyncio
    async def test_add_feeds_print(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("add", "add", a=2, b=3), element("out", "print")],
            [connect("c1", "add", "out", to_input="message")],
        )
        assert state.status is RunStatus.COMPLETED
        assert state.element_states["add"] == {"result": 5, "sum": 5}
        assert state.element_states["out"]["output"] == "5"
        assert any(entry.endswith("[out] Output: 5") for entry in state.execution_log)

    @pytest.mark.asyncio
    async def test_chained_arithmetic(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("m", "multiply", a=4, b="2.5"), element("s", "subtract", b=1)],
            [connect("c1", "m", "s", from_output="product", to_input="a")],
        )
        assert state.element_states["s"]["difference"] == 9.0

    @pytest.mark.asyncio
    async def test_divide_by_zero(self, builtin_registry):
        state = await run(builtin_registry, [element("d", "divide", a=1, b=0)])
        assert state.element_states["d"]["quotient"] == math.inf
        assert "result" not in state.element_states["d"]

    @pytest.mark.asyncio
    async def test_modulo(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("m1", "modulo", a=-7, b=3), element("m2", "modulo", a=5, b=0)],
        )
        assert state.element_states["m1"]["remainder"] == -1
        assert math.isnan(state.element_states["m2"]["remainder"])

    @pytest.mark.asyncio
    async def test_modulo_of_infinite_quotient(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("d", "divide", a=1, b=0), element("m", "modulo", b=3)],
            [connect("c1", "d", "m", from_output="quotient", to_input="a")],
        )
        assert state.status is RunStatus.COMPLETED
        assert math.isnan(state.element_states["m"]["remainder"])

    @pytest.mark.asyncio
    async def test_modulo_of_nan(self, builtin_registry):
        state = await run(builtin_registry, [element("m", "modulo", a="abc", b=3)])
        assert state.status is RunStatus.COMPLETED
        assert math.isnan(state.element_states["m"]["remainder"])

    @pytest.mark.asyncio
    async def test_random_in_range(self, builtin_registry):
        state = await run(builtin_registry, [element("r", "random", min=5, max=7)])
        assert state.element_states["r"]["value"] in (5, 6, 7)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("low, high", [("abc", 10), (0, "inf")])
    async def test_random_with_unreadable_bounds(self, builtin_registry, low, high):
        state = await run(builtin_registry, [element("r", "random", min=low, max=high)])
        assert state.status is RunStatus.COMPLETED
        assert math.isnan(state.element_states["r"]["value"])

    @pytest.mark.asyncio
    async def test_assign_blocks(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("a", "add_assign", target=10, value=5), element("m", "multiply_assign", target=3, value=4)],
        )
        assert state.element_states["a"]["result"] == 15
        assert state.element_states["m"]["result"] == 12


class TestLogic:
    """Comparison and boolean blocks"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("op, a, b, expected", [
        ("==", 2, "2", True),
        ("===", 2, "2", False),
        ("!=", 1, 2, True),
        ("<", "3", 10, True),
        (">=", 2, 2, True),
        ("??", 1, 1, False),
    ])
    async def test_compare(self, builtin_registry, op, a, b, expected):
        state = await run(builtin_registry, [element("c", "compare", a=a, b=b, operator=op)])
        assert state.element_states["c"]["result"] is expected

    @pytest.mark.asyncio
    async def test_boolean_operators(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("and", "and", a=1, b=0), element("or", "or", a=0, b="x"), element("not", "not", value=0)],
        )
        assert state.element_states["and"]["result"] is False
        assert state.element_states["or"]["result"] is True
        assert state.element_states["not"]["result"] is True


class TestControl:
    """Branching and loops"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("condition, taken, skipped", [(True, "yes", "no"), (0, "no", "yes")])
    async def test_if_routes_one_branch(self, builtin_registry, condition, taken, skipped):
        state = await run(
            builtin_registry,
            [element("if", "if", condition=condition), element("yes", "print"), element("no", "print")],
            [
                connect("c1", "if", "yes", from_output="true", to_input="message"),
                connect("c2", "if", "no", from_output="false", to_input="message"),
            ],
        )
        assert taken in state.processed_elements
        assert skipped not in state.processed_elements

    @pytest.mark.asyncio
    async def test_for_range(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("for", "for_range", start=0, end=3), element("body", "function")],
            [connect("c1", "for", "body", from_output="body")],
        )
        loop_state = state.element_states["for"]
        assert loop_state["body"] == {"index": 2, "iteration": 3}
        assert loop_state["done"] == {"iterations": 3, "finalValue": 3}
        # The body element runs once per run
        assert state.element_states["body"]["output"] == {"index": 0, "iteration": 1}
        assert sum("For loop iteration" in entry for entry in state.execution_log) == 3

    @pytest.mark.asyncio
    async def test_for_range_counts_down(self, builtin_registry):
        state = await run(builtin_registry, [element("for", "for_range", start=3, end=0, step=-1)])
        assert state.element_states["for"]["done"] == {"iterations": 3, "finalValue": 0}

    @pytest.mark.asyncio
    async def test_for_range_zero_step(self, builtin_registry):
        state = await run(builtin_registry, [element("for", "for_range", step=0)])
        assert state.element_states["for"] == {"done": {"error": "Invalid step value"}}

    @pytest.mark.asyncio
    async def test_for_range_iteration_cap(self, builtin_registry):
        state = await run(builtin_registry, [element("for", "for_range", start=0, end=5000)])
        assert state.element_states["for"]["done"]["iterations"] == 1000

    @pytest.mark.asyncio
    async def test_while_loop_safety_limit(self, builtin_registry):
        state = await run(builtin_registry, [element("w", "while_loop", condition=True, maxIterations=3)])
        assert state.element_states["w"]["done"] == {"iterations": 3}
        assert any("safety limit" in entry for entry in state.execution_log)

    @pytest.mark.asyncio
    async def test_while_loop_false_condition(self, builtin_registry):
        state = await run(builtin_registry, [element("w", "while_loop", condition=False)])
        assert state.element_states["w"] == {"done": {"iterations": 0}}

    @pytest.mark.asyncio
    async def test_loop_over_items(self, builtin_registry):
        state = await run(builtin_registry, [element("l", "loop", items=["a", "b"])])
        assert state.element_states["l"]["item"] == "b"

    @pytest.mark.asyncio
    async def test_return_and_if_assign(self, builtin_registry):
        state = await run(
            builtin_registry,
            [
                element("r", "return", value=42),
                element("ia", "if_assign", condition=False, trueValue="t", falseValue="f"),
            ],
        )
        assert state.element_states["r"] == {"return": 42}
        assert state.element_states["ia"]["result"] == "f"

    @pytest.mark.asyncio
    async def test_delay(self, builtin_registry):
        state = await run(builtin_registry, [element("d", "delay", ms=10)])
        assert state.element_states["d"]["done"] is True


class TestData:
    """Variables, arrays, objects and counters"""

    @pytest.mark.asyncio
    async def test_set_then_get_variable(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("set", "set_variable", name="x", value=7), element("get", "get_variable", name="x")],
            [connect("c1", "set", "get")],
        )
        assert state.element_states[GLOBAL_STATE_KEY] == {"x": 7}
        assert state.element_states["get"]["value"] == 7

    @pytest.mark.asyncio
    async def test_variable_falls_back_to_name(self, builtin_registry):
        state = await run(builtin_registry, [element("v", "variable", name="label")])
        assert state.element_states["v"]["value"] == "label"

    @pytest.mark.asyncio
    async def test_array_pop(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("arr", "array", items=[1, 2, 3]), element("pop", "array_pop"), element("out", "print")],
            [
                connect("c1", "arr", "pop", to_input="array"),
                connect("c2", "pop", "out", from_output="item", to_input="message"),
            ],
        )
        assert state.element_states["pop"]["remaining"] == [1, 2]
        assert state.element_states["pop"]["item"] == 3
        assert state.element_states["out"]["output"] == "3"
        # The source array is not mutated
        assert state.element_states["arr"]["items"] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_array_pop_empty(self, builtin_registry):
        state = await run(builtin_registry, [element("pop", "array_pop", array=[])])
        assert state.element_states["pop"] == {"remaining": [], "item": None}

    @pytest.mark.asyncio
    async def test_array_get_set_push(self, builtin_registry):
        state = await run(
            builtin_registry,
            [
                element("get", "array_get", array=[5, 6], index=1),
                element("miss", "array_get", array=[5, 6], index=9),
                element("set", "array_set", array=[1], index=2, value="x"),
                element("push", "array_push", array=[1], item=2),
            ],
        )
        assert state.element_states["get"]["value"] == 6
        assert state.element_states["miss"]["value"] is None
        assert state.element_states["set"]["result"] == [1, None, "x"]
        assert state.element_states["push"]["result"] == [1, 2]

    @pytest.mark.asyncio
    async def test_objects(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("obj", "object", properties={"a": 1}), element("set", "object_set", key="b", value=2),
             element("get", "object_get", key="b")],
            [connect("c1", "obj", "set", to_input="object"), connect("c2", "set", "get", to_input="object")],
        )
        assert state.element_states["set"]["result"] == {"a": 1, "b": 2}
        assert state.element_states["get"]["value"] == 2

    @pytest.mark.asyncio
    async def test_counters(self, builtin_registry):
        state = await run(
            builtin_registry,
            [
                element("c", "counter", value=5, step=2),
                element("inc", "counter_increment", initialValue=10),
                element("reset", "counter_reset", value=3),
            ],
        )
        assert state.element_states["c"]["count"] == 7
        assert state.element_states["inc"]["count"] == 11
        assert state.element_states["reset"]["count"] == 3

    @pytest.mark.asyncio
    async def test_string_concat(self, builtin_registry):
        state = await run(builtin_registry, [element("s", "string_concat", left="a", right=1, separator="-")])
        assert state.element_states["s"]["result"] == "a-1"

    @pytest.mark.asyncio
    async def test_comment_emits_nothing(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("note", "comment", text="todo"), element("out", "print")],
            [connect("c1", "note", "out")],
        )
        assert state.processed_elements == {"note"}


class TestIO:
    """Print and prompt"""

    @pytest.mark.asyncio
    async def test_prompt_reads_variables(self, builtin_registry):
        state = await run(
            builtin_registry,
            [element("ask", "prompt", variable="name"), element("out", "print")],
            [connect("c1", "ask", "out", from_output="value", to_input="message")],
            variables={"name": "Ada"},
        )
        assert state.element_states["ask"]["value"] == "Ada"
        assert state.element_states["out"]["output"] == "Ada"

    @pytest.mark.asyncio
    async def test_prompt_falls_back_to_default(self, builtin_registry):
        state = await run(builtin_registry, [element("ask", "prompt", default="guest")])
        assert state.element_states["ask"]["value"] == "guest"

    @pytest.mark.asyncio
    async def test_print_default_message(self, builtin_registry):
        state = await run(builtin_registry, [element("out", "print")])
        assert state.element_states["out"] == {"output": "Hello World"}


class TestCoercion:
    """Value conversion helpers"""

    def test_to_number(self):
        assert to_number(None, 7) == 7
        assert to_number(True) == 1
        assert to_number(" 12 ") == 12
        assert to_number("1.5") == 1.5
        assert to_number("") == 0
        assert math.isnan(to_number("abc"))
        assert math.isnan(to_number([1]))

    def test_to_text(self):
        assert to_text(None) == "null"
        assert to_text(False) == "false"
        assert to_text(2.0) == "2"
        assert to_text(math.inf) == "Infinity"
        assert to_text([1, "a"]) == '[1,"a"]'

    def test_equality(self):
        assert loose_equals(1, "1")
        assert loose_equals(None, None)
        assert not loose_equals(None, 0)
        assert strict_equals(1, 1.0)
        assert not strict_equals(1, "1")
