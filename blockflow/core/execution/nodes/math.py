"""
Math blocks
Arithmetic, compound assignment and random numbers
"""
import math
import random

from ...types import BlockCategory
from ..context import ExecutionContext
from ..registry import BlockRegistry
from .coerce import to_number, to_text


def _binary_render(label: str, symbol: str, default_a, default_b):
    def render(props):
        a = props.get("a")
        b = props.get("b")
        a = default_a if a is None else a
        b = default_b if b is None else b
        return {"label": label, "content": f"{to_text(a)} {symbol} {to_text(b)}"}
    return render


def register(registry: BlockRegistry) -> None:
    """Register the math blocks"""

    @registry.block(
        "add",
        display_name="Add",
        category=BlockCategory.MATH,
        inputs=["a", "b"],
        outputs=["sum"],
        default_props={"a": 0, "b": 0},
        description="Adds two numbers",
        render=_binary_render("ADD", "+", 0, 0),
    )
    async def add(ctx: ExecutionContext):
        a = to_number(ctx.inputs.get("a"), 0)
        b = to_number(ctx.inputs.get("b"), 0)
        total = a + b
        ctx.set_value("result", total)
        ctx.log(f"{to_text(a)} + {to_text(b)} = {to_text(total)}")
        yield ctx.emit("sum", total)

    @registry.block(
        "add_assign",
        display_name="Add Assign",
        category=BlockCategory.MATH,
        inputs=["target", "value"],
        outputs=["result"],
        description="Adds value to target (target += value)",
        render=lambda props: {"label": "+=", "content": "target += value"},
    )
    async def add_assign(ctx: ExecutionContext):
        target = to_number(ctx.inputs.get("target"), 0)
        value = to_number(ctx.inputs.get("value"), 0)
        result = target + value
        ctx.set_value("result", result)
        ctx.log(f"Add assign: {to_text(target)} += {to_text(value)} = {to_text(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "subtract",
        display_name="Subtract",
        category=BlockCategory.MATH,
        inputs=["a", "b"],
        outputs=["difference"],
        default_props={"a": 0, "b": 0},
        description="Subtracts two numbers",
        render=_binary_render("SUB", "-", 0, 0),
    )
    async def subtract(ctx: ExecutionContext):
        a = to_number(ctx.inputs.get("a"), 0)
        b = to_number(ctx.inputs.get("b"), 0)
        difference = a - b
        ctx.set_value("result", difference)
        ctx.log(f"{to_text(a)} - {to_text(b)} = {to_text(difference)}")
        yield ctx.emit("difference", difference)

    @registry.block(
        "multiply",
        display_name="Multiply",
        category=BlockCategory.MATH,
        inputs=["a", "b"],
        outputs=["product"],
        default_props={"a": 1, "b": 1},
        description="Multiplies two numbers",
        render=_binary_render("MUL", "×", 1, 1),
    )
    async def multiply(ctx: ExecutionContext):
        a = to_number(ctx.inputs.get("a"), 1)
        b = to_number(ctx.inputs.get("b"), 1)
        product = a * b
        ctx.set_value("result", product)
        ctx.log(f"{to_text(a)} × {to_text(b)} = {to_text(product)}")
        yield ctx.emit("product", product)

    @registry.block(
        "multiply_assign",
        display_name="Multiply Assign",
        category=BlockCategory.MATH,
        inputs=["target", "value"],
        outputs=["result"],
        description="Multiplies target by value (target *= value)",
        render=lambda props: {"label": "*=", "content": "target *= value"},
    )
    async def multiply_assign(ctx: ExecutionContext):
        target = to_number(ctx.inputs.get("target"), 1)
        value = to_number(ctx.inputs.get("value"), 1)
        result = target * value
        ctx.set_value("result", result)
        ctx.log(f"Multiply assign: {to_text(target)} *= {to_text(value)} = {to_text(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "divide",
        display_name="Divide",
        category=BlockCategory.MATH,
        inputs=["a", "b"],
        outputs=["quotient"],
        default_props={"a": 1, "b": 1},
        description="Divides two numbers",
        render=_binary_render("DIV", "÷", 1, 1),
    )
    async def divide(ctx: ExecutionContext):
        a = to_number(ctx.inputs.get("a"), 1)
        b = to_number(ctx.inputs.get("b"), 1)
        if b == 0:
            ctx.log("Cannot divide by zero")
            yield ctx.emit("quotient", math.inf)
            return
        quotient = a / b
        ctx.set_value("result", quotient)
        ctx.log(f"{to_text(a)} ÷ {to_text(b)} = {to_text(quotient)}")
        yield ctx.emit("quotient", quotient)

    @registry.block(
        "modulo",
        display_name="Modulo",
        category=BlockCategory.MATH,
        inputs=["a", "b"],
        outputs=["remainder"],
        default_props={"a": 10, "b": 3},
        description="Returns remainder of division",
        render=_binary_render("MOD", "%", 10, 3),
    )
    async def modulo(ctx: ExecutionContext):
        a = to_number(ctx.inputs.get("a"), 10)
        b = to_number(ctx.inputs.get("b"), 3)
        if b == 0:
            ctx.log("Cannot modulo by zero")
            yield ctx.emit("remainder", math.nan)
            return
        if math.isinf(a) or math.isnan(a) or math.isnan(b):
            remainder = math.nan
        else:
            # Remainder takes the sign of the dividend
            remainder = math.fmod(a, b)
            if isinstance(a, int) and isinstance(b, int):
                remainder = int(remainder)
        ctx.set_value("result", remainder)
        ctx.log(f"{to_text(a)} % {to_text(b)} = {to_text(remainder)}")
        yield ctx.emit("remainder", remainder)

    @registry.block(
        "random",
        display_name="Random",
        category=BlockCategory.MATH,
        inputs=["min", "max"],
        outputs=["value"],
        default_props={"min": 0, "max": 100},
        description="Generates random number",
        render=lambda props: {
            "label": "RND",
            "content": f"{to_text(props.get('min', 0))}-{to_text(props.get('max', 100))}",
        },
    )
    async def random_block(ctx: ExecutionContext):
        low = to_number(ctx.inputs.get("min"), 0)
        high = to_number(ctx.inputs.get("max"), 100)
        if math.isfinite(low) and math.isfinite(high):
            value = math.floor(random.random() * (high - low + 1)) + low
        else:
            value = math.nan
        ctx.set_value("result", value)
        ctx.log(f"Random({to_text(low)}, {to_text(high)}) = {to_text(value)}")
        yield ctx.emit("value", value)
