"""
Logic blocks
Comparison and boolean operators
"""
from typing import Any, Callable, Dict
import operator

from ...types import BlockCategory
from ..context import ExecutionContext
from ..registry import BlockRegistry
from .coerce import loose_equals, strict_equals, to_json, to_number, to_text


def _numeric(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    return lambda a, b: op(to_number(a), to_number(b))


COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": loose_equals,
    "===": strict_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "!==": lambda a, b: not strict_equals(a, b),
    "<": _numeric(operator.lt),
    "<=": _numeric(operator.le),
    ">": _numeric(operator.gt),
    ">=": _numeric(operator.ge),
}


def register(registry: BlockRegistry) -> None:
    """Register the logic blocks"""

    @registry.block(
        "compare",
        display_name="Compare",
        category=BlockCategory.LOGIC,
        inputs=["a", "b"],
        outputs=["result"],
        default_props={"operator": "=="},
        description="Compares two values",
        render=lambda props: {"label": "CMP", "content": f"a {props.get('operator') or '=='} b"},
    )
    async def compare(ctx: ExecutionContext):
        a = ctx.inputs.get("a")
        b = ctx.inputs.get("b")
        op = ctx.inputs.get("operator") or "=="
        comparator = COMPARATORS.get(op) if isinstance(op, str) else None
        # Unknown operators compare false
        result = bool(comparator(a, b)) if comparator else False
        ctx.set_value("result", result)
        ctx.log(f"{to_json(a)} {op} {to_json(b)} = {to_text(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "and",
        display_name="AND",
        category=BlockCategory.LOGIC,
        inputs=["a", "b"],
        outputs=["result"],
        description="Logical AND operation",
        render=lambda props: {"label": "AND", "content": "a && b"},
    )
    async def and_block(ctx: ExecutionContext):
        a = bool(ctx.inputs.get("a"))
        b = bool(ctx.inputs.get("b"))
        result = a and b
        ctx.set_value("result", result)
        ctx.log(f"{to_text(a)} AND {to_text(b)} = {to_text(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "or",
        display_name="OR",
        category=BlockCategory.LOGIC,
        inputs=["a", "b"],
        outputs=["result"],
        description="Logical OR operation",
        render=lambda props: {"label": "OR", "content": "a || b"},
    )
    async def or_block(ctx: ExecutionContext):
        a = bool(ctx.inputs.get("a"))
        b = bool(ctx.inputs.get("b"))
        result = a or b
        ctx.set_value("result", result)
        ctx.log(f"{to_text(a)} OR {to_text(b)} = {to_text(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "not",
        display_name="NOT",
        category=BlockCategory.LOGIC,
        inputs=["value"],
        outputs=["result"],
        description="Logical NOT operation",
        render=lambda props: {"label": "NOT", "content": "!value"},
    )
    async def not_block(ctx: ExecutionContext):
        value = bool(ctx.inputs.get("value"))
        result = not value
        ctx.set_value("result", result)
        ctx.log(f"NOT {to_text(value)} = {to_text(result)}")
        yield ctx.emit("result", result)
