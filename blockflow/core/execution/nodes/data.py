"""
Data blocks
Variables, arrays, objects, counters and strings
"""
from typing import Any, Mapping

from ...types import BlockCategory
from ..context import ExecutionContext
from ..registry import BlockRegistry
from .coerce import to_json, to_number, to_text


def _is_object(value: Any) -> bool:
    return isinstance(value, Mapping)


def register(registry: BlockRegistry) -> None:
    """Register the data blocks"""

    @registry.block(
        "variable",
        display_name="Variable",
        category=BlockCategory.DATA,
        outputs=["value"],
        default_props={"name": "var", "value": 0},
        description="Stores a single value",
        render=lambda props: {
            "label": "VAR",
            "content": to_text(props.get("name") or "variable"),
            "value": "" if props.get("value") is None else to_text(props.get("value")),
        },
    )
    async def variable(ctx: ExecutionContext):
        value = ctx.get_input("value", ctx.get_input("name", "undefined"))
        ctx.set_value("value", value)
        ctx.log(f"Variable value: {to_text(value)}")
        yield ctx.emit("value", value)

    @registry.block(
        "set_variable",
        display_name="Set Variable",
        category=BlockCategory.DATA,
        inputs=["target", "value"],
        outputs=["result"],
        default_props={"name": "myVar"},
        description="Assigns a value to a variable",
        render=lambda props: {"label": "SET", "content": f"{props.get('name') or 'var'} = ?"},
    )
    async def set_variable(ctx: ExecutionContext):
        name = to_text(ctx.inputs.get("name") or ctx.inputs.get("target") or "variable")
        value = ctx.inputs.get("value")
        # Shared slot read back by get_variable
        ctx.set_global(name, value)
        ctx.set_value("result", value)
        ctx.log(f"Set {name} = {to_json(value)}")
        yield ctx.emit("result", value)

    @registry.block(
        "get_variable",
        display_name="Get Variable",
        category=BlockCategory.DATA,
        outputs=["value"],
        default_props={"name": "myVar"},
        description="Gets the current value of a variable",
        render=lambda props: {"label": "GET", "content": to_text(props.get("name") or "var")},
    )
    async def get_variable(ctx: ExecutionContext):
        name = to_text(ctx.inputs.get("name") or "variable")
        value = ctx.get_global(name)
        ctx.set_value("value", value)
        ctx.log(f"Get {name} = {to_json(value)}")
        yield ctx.emit("value", value)

    @registry.block(
        "array",
        display_name="Array",
        category=BlockCategory.DATA,
        outputs=["items"],
        default_props={"items": [1, 2, 3]},
        description="Stores an array of values",
        render=lambda props: {
            "label": "ARRAY",
            "content": f"[{len(props['items']) if isinstance(props.get('items'), (list, tuple)) else 0}]",
        },
    )
    async def array(ctx: ExecutionContext):
        items = ctx.get_input("items", [1, 2, 3])
        ctx.set_value("items", items)
        ctx.log(f"Array with {len(items) if isinstance(items, list) else 0} items")
        yield ctx.emit("items", items)

    @registry.block(
        "array_push",
        display_name="Array Push",
        category=BlockCategory.DATA,
        inputs=["array", "item"],
        outputs=["result"],
        description="Adds an item to the end of an array",
        render=lambda props: {"label": "PUSH", "content": "array.push(item)"},
    )
    async def array_push(ctx: ExecutionContext):
        source = ctx.inputs.get("array")
        item = ctx.inputs.get("item")
        result = [*source, item] if isinstance(source, list) else [item]
        ctx.set_value("result", result)
        ctx.log(f"Pushed {to_json(item)} to array (length: {len(result)})")
        yield ctx.emit("result", result)

    @registry.block(
        "array_pop",
        display_name="Array Pop",
        category=BlockCategory.DATA,
        inputs=["array"],
        outputs=["remaining", "item"],
        description="Removes and returns the last item from an array",
        render=lambda props: {"label": "POP", "content": "array.pop()"},
    )
    async def array_pop(ctx: ExecutionContext):
        source = ctx.inputs.get("array")
        if not isinstance(source, list) or not source:
            ctx.log("Cannot pop from empty or non-array")
            yield ctx.emit("remaining", source)
            yield ctx.emit("item", None)
            return

        remaining = list(source)
        item = remaining.pop()
        ctx.set_value("remaining", remaining)
        ctx.set_value("item", item)
        ctx.log(f"Popped {to_json(item)} from array")
        yield ctx.emit("remaining", remaining)
        yield ctx.emit("item", item)

    @registry.block(
        "array_get",
        display_name="Array Get",
        category=BlockCategory.DATA,
        inputs=["array", "index"],
        outputs=["value"],
        default_props={"index": 0},
        description="Gets an item from an array by index",
        render=lambda props: {"label": "GET", "content": f"array[{to_text(props.get('index', 0))}]"},
    )
    async def array_get(ctx: ExecutionContext):
        source = ctx.inputs.get("array")
        index = to_number(ctx.inputs.get("index"), 0)
        value = None
        if isinstance(source, list) and float(index).is_integer() and 0 <= index < len(source):
            value = source[int(index)]
        ctx.set_value("value", value)
        ctx.log(f"Get array[{to_text(index)}] = {to_json(value)}")
        yield ctx.emit("value", value)

    @registry.block(
        "array_set",
        display_name="Array Set",
        category=BlockCategory.DATA,
        inputs=["array", "index", "value"],
        outputs=["result"],
        default_props={"index": 0},
        description="Sets an item in an array by index",
        render=lambda props: {"label": "SET", "content": f"array[{to_text(props.get('index', 0))}] = ?"},
    )
    async def array_set(ctx: ExecutionContext):
        source = ctx.inputs.get("array")
        index = to_number(ctx.inputs.get("index"), 0)
        value = ctx.inputs.get("value")
        result = list(source) if isinstance(source, list) else []
        if index >= 0 and float(index).is_integer():
            position = int(index)
            # Pad with None up to the target index
            result.extend([None] * (position + 1 - len(result)))
            result[position] = value
        ctx.set_value("result", result)
        ctx.log(f"Set array[{to_text(index)}] = {to_json(value)}")
        yield ctx.emit("result", result)

    @registry.block(
        "object",
        display_name="Object",
        category=BlockCategory.DATA,
        outputs=["object"],
        default_props={"properties": {}},
        description="Creates an object with properties",
        render=lambda props: {"label": "OBJ", "content": f"{{{len(props.get('properties') or {})}}}"},
    )
    async def object_block(ctx: ExecutionContext):
        properties = ctx.get_input("properties", {})
        ctx.set_value("object", properties)
        count = len(properties) if _is_object(properties) else 0
        ctx.log(f"Object created with {count} properties")
        yield ctx.emit("object", properties)

    @registry.block(
        "object_get",
        display_name="Object Get",
        category=BlockCategory.DATA,
        inputs=["object", "key"],
        outputs=["value"],
        default_props={"key": "property"},
        description="Gets a property value from an object",
        render=lambda props: {"label": "GET", "content": f"obj.{props.get('key') or 'prop'}"},
    )
    async def object_get(ctx: ExecutionContext):
        source = ctx.inputs.get("object")
        key = to_text(ctx.get_input("key", "property"))
        value = source.get(key) if _is_object(source) else None
        ctx.set_value("value", value)
        ctx.log(f"Get object.{key} = {to_json(value)}")
        yield ctx.emit("value", value)

    @registry.block(
        "object_set",
        display_name="Object Set",
        category=BlockCategory.DATA,
        inputs=["object", "key", "value"],
        outputs=["result"],
        default_props={"key": "property"},
        description="Sets a property value on an object",
        render=lambda props: {"label": "SET", "content": f"obj.{props.get('key') or 'prop'} = ?"},
    )
    async def object_set(ctx: ExecutionContext):
        source = ctx.inputs.get("object")
        key = to_text(ctx.get_input("key", "property"))
        value = ctx.inputs.get("value")
        result = dict(source) if _is_object(source) else {}
        result[key] = value
        ctx.set_value("result", result)
        ctx.log(f"Set object.{key} = {to_json(value)}")
        yield ctx.emit("result", result)

    @registry.block(
        "counter",
        display_name="Counter",
        category=BlockCategory.DATA,
        inputs=["increment"],
        outputs=["count"],
        default_props={"value": 0, "step": 1},
        description="Incremental counter",
        render=lambda props: {"label": "COUNT", "content": to_text(props.get("value", 0))},
    )
    async def counter(ctx: ExecutionContext):
        current = ctx.get_value("count")
        if current is None:
            current = to_number(ctx.inputs.get("value"), 0)
        step = to_number(ctx.inputs.get("step"), 1)
        count = current + step
        ctx.set_value("count", count)
        ctx.log(f"Counter: {to_text(current)} → {to_text(count)}")
        yield ctx.emit("count", count)

    @registry.block(
        "counter_increment",
        display_name="Increment Counter",
        category=BlockCategory.DATA,
        inputs=["trigger", "step"],
        outputs=["count"],
        default_props={"initialValue": 0, "step": 1},
        description="Increments a counter each time it receives input",
        render=lambda props: {
            "label": "INC",
            "content": f"+{to_text(props.get('step', 1))}",
            "value": to_text(props.get("initialValue", 0)),
        },
    )
    async def counter_increment(ctx: ExecutionContext):
        step = to_number(ctx.get_input("step", ctx.inputs.get("initialStep")), 1)
        current = ctx.get_value("count")
        if current is None:
            current = to_number(ctx.inputs.get("initialValue"), 0)
        count = current + step
        ctx.set_value("count", count)
        ctx.log(f"Counter: {to_text(current)} + {to_text(step)} = {to_text(count)}")
        yield ctx.emit("count", count)

    @registry.block(
        "counter_reset",
        display_name="Reset Counter",
        category=BlockCategory.DATA,
        inputs=["trigger"],
        outputs=["count"],
        default_props={"value": 0},
        description="Resets a counter to a specific value",
        render=lambda props: {"label": "RESET", "content": f"reset to {to_text(props.get('value', 0))}"},
    )
    async def counter_reset(ctx: ExecutionContext):
        value = to_number(ctx.inputs.get("value"), 0)
        ctx.set_value("count", value)
        ctx.log(f"Counter reset to {to_text(value)}")
        yield ctx.emit("count", value)

    @registry.block(
        "string_concat",
        display_name="String Concat",
        category=BlockCategory.DATA,
        inputs=["left", "right"],
        outputs=["result"],
        default_props={"separator": ""},
        description="Concatenates two strings",
        render=lambda props: {"label": "CONCAT", "content": f'"{props.get("separator") or ""}"'},
    )
    async def string_concat(ctx: ExecutionContext):
        left = to_text(ctx.get_input("left", ""))
        right = to_text(ctx.get_input("right", ""))
        separator = to_text(ctx.get_input("separator", ""))
        result = f"{left}{separator}{right}"
        ctx.set_value("result", result)
        ctx.log(f'Concat: "{left}" + "{separator}" + "{right}" = "{result}"')
        yield ctx.emit("result", result)

    @registry.block(
        "comment",
        display_name="Comment",
        category=BlockCategory.DATA,
        default_props={"text": "Comment..."},
        description="Documentation comment block",
        render=lambda props: {"label": "//", "content": to_text(props.get("text") or "Comment...")},
    )
    async def comment(ctx: ExecutionContext):
        ctx.log(f"Comment: {to_text(ctx.get_input('text', 'Comment'))}")
