"""
Control flow blocks
Branching, loops, return and delay
"""
import asyncio

from ...types import BlockCategory
from ..context import ExecutionContext
from ..registry import BlockRegistry
from .coerce import to_json, to_number, to_text

# Iteration cap for for_range
MAX_RANGE_ITERATIONS = 1000


def register(registry: BlockRegistry) -> None:
    """Register the control flow blocks"""

    @registry.block(
        "function",
        display_name="Function",
        category=BlockCategory.CONTROL,
        inputs=["input"],
        outputs=["output"],
        default_props={"name": "fn", "params": ""},
        description="Function definition block",
        render=lambda props: {"label": "FN", "content": to_text(props.get("name") or "function")},
    )
    async def function(ctx: ExecutionContext):
        value = ctx.inputs.get("input")
        ctx.set_value("result", value)
        ctx.log(f"Function {to_text(ctx.inputs.get('name'))}: processing input")
        yield ctx.emit("output", value)

    @registry.block(
        "if",
        display_name="If",
        category=BlockCategory.CONTROL,
        inputs=["condition"],
        outputs=["true", "false"],
        default_props={"condition": True},
        description="Conditional branching",
        render=lambda props: {"label": "IF", "content": f"condition: {to_text(bool(props.get('condition')))}"},
    )
    async def if_block(ctx: ExecutionContext):
        condition = ctx.inputs.get("condition")
        ctx.log(f"If condition: {to_text(bool(condition))}")
        yield ctx.emit("true" if condition else "false", condition)

    @registry.block(
        "if_assign",
        display_name="If Assign",
        category=BlockCategory.CONTROL,
        inputs=["condition", "trueValue", "falseValue"],
        outputs=["result"],
        description="Assigns different values based on condition",
        render=lambda props: {"label": "IF=", "content": "condition ? a : b"},
    )
    async def if_assign(ctx: ExecutionContext):
        condition = ctx.inputs.get("condition")
        result = ctx.inputs.get("trueValue") if condition else ctx.inputs.get("falseValue")
        ctx.set_value("result", result)
        ctx.log(f"If assign: condition={to_text(bool(condition))}, result={to_json(result)}")
        yield ctx.emit("result", result)

    @registry.block(
        "loop",
        display_name="Loop",
        category=BlockCategory.CONTROL,
        inputs=["items"],
        outputs=["item"],
        default_props={"count": 3},
        description="Iterates over collection",
        render=lambda props: {"label": "LOOP", "content": f"×{to_text(props.get('count', '∞'))}"},
    )
    async def loop(ctx: ExecutionContext):
        items = ctx.inputs.get("items")
        if isinstance(items, list):
            for i, item in enumerate(items):
                ctx.log(f"Loop iteration {i + 1}/{len(items)}")
                yield ctx.emit("item", item)
        else:
            count = to_number(ctx.inputs.get("count"), 3)
            i = 0
            while i < count:
                ctx.log(f"Loop iteration {i + 1}/{to_text(count)}")
                yield ctx.emit("item", i)
                i += 1

    @registry.block(
        "while_loop",
        display_name="While Loop",
        category=BlockCategory.CONTROL,
        inputs=["condition"],
        outputs=["body", "done"],
        default_props={"maxIterations": 100},
        description="Loops while condition is true",
        render=lambda props: {"label": "WHILE", "content": f"max: {to_text(props.get('maxIterations', 100))}"},
    )
    async def while_loop(ctx: ExecutionContext):
        max_iterations = to_number(ctx.inputs.get("maxIterations"), 100)
        iterations = 0
        while iterations < max_iterations:
            condition = ctx.inputs.get("condition")
            if not condition:
                break
            iterations += 1
            ctx.log(f"While loop iteration {iterations}")
            yield ctx.emit("body", {"iteration": iterations, "condition": condition})
            if iterations >= max_iterations:
                ctx.log(f"While loop terminated after {to_text(max_iterations)} iterations (safety limit)")
                break
        ctx.log(f"While loop completed after {iterations} iterations")
        yield ctx.emit("done", {"iterations": iterations})

    @registry.block(
        "for_range",
        display_name="For Range",
        category=BlockCategory.CONTROL,
        inputs=["start", "end", "step"],
        outputs=["body", "done"],
        default_props={"start": 0, "end": 10, "step": 1},
        description="Loops from start to end with step",
        render=lambda props: {
            "label": "FOR",
            "content": f"{to_text(props.get('start', 0))}..{to_text(props.get('end', 10))}",
        },
    )
    async def for_range(ctx: ExecutionContext):
        start = to_number(ctx.inputs.get("start"), 0)
        end = to_number(ctx.inputs.get("end"), 10)
        step = to_number(ctx.inputs.get("step"), 1)

        if step == 0:
            ctx.log("Step cannot be zero")
            yield ctx.emit("done", {"error": "Invalid step value"})
            return

        current = start
        iterations = 0
        while (current < end if step > 0 else current > end) and iterations < MAX_RANGE_ITERATIONS:
            iterations += 1
            ctx.log(f"For loop iteration {iterations}: i = {to_text(current)}")
            yield ctx.emit("body", {"index": current, "iteration": iterations})
            current += step

        ctx.log(f"For loop completed after {iterations} iterations")
        yield ctx.emit("done", {"iterations": iterations, "finalValue": current})

    @registry.block(
        "return",
        display_name="Return",
        category=BlockCategory.CONTROL,
        inputs=["value"],
        default_props={"value": None},
        description="Returns a value from function",
        render=lambda props: {"label": "RETURN", "content": to_text(props.get("value"))},
    )
    async def return_block(ctx: ExecutionContext):
        value = ctx.inputs.get("value")
        ctx.log(f"Return: {to_json(value)}")
        ctx.set_value("return", value)

    @registry.block(
        "delay",
        display_name="Delay",
        category=BlockCategory.CONTROL,
        inputs=["trigger"],
        outputs=["done"],
        default_props={"ms": 1000},
        description="Delays execution for specified time",
        render=lambda props: {"label": "DELAY", "content": f"{to_text(props.get('ms', 1000))}ms"},
    )
    async def delay(ctx: ExecutionContext):
        ms = to_number(ctx.inputs.get("ms"), 1000)
        ctx.log(f"Delaying for {to_text(ms)}ms")
        await asyncio.sleep(ms / 1000 if ms > 0 else 0)
        ctx.log("Delay completed")
        yield ctx.emit("done", True)
