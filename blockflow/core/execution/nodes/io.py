"""
I/O blocks
Print writes to the run log; prompt reads run variables
"""
from ...types import BlockCategory
from ....utils.logger import get_logger
from ..context import ExecutionContext
from ..registry import BlockRegistry
from .coerce import to_text

logger = get_logger(__name__)


def register(registry: BlockRegistry) -> None:
    """Register the I/O blocks"""

    @registry.block(
        "print",
        display_name="Print",
        category=BlockCategory.IO,
        inputs=["message"],
        default_props={"message": "Hello World"},
        description="Outputs message to console",
        render=lambda props: {"label": "PRINT", "content": to_text(props.get("message") or "output")},
    )
    async def print_block(ctx: ExecutionContext):
        message = to_text(ctx.get_input("message", "Hello World"))
        logger.info(f"PRINT: {message}")
        ctx.set_value("output", message)
        ctx.log(f"Output: {message}")

    @registry.block(
        "prompt",
        display_name="Input",
        category=BlockCategory.IO,
        inputs=["prompt"],
        outputs=["value"],
        default_props={"prompt": "Enter value:", "variable": "input", "default": ""},
        description="Gets user input",
        render=lambda props: {"label": "INPUT", "content": to_text(props.get("prompt") or "input")},
    )
    async def prompt(ctx: ExecutionContext):
        """
        Answer the prompt from the run's variables

        Looks up the ``variable`` prop in the variables passed to execute(),
        falling back to the ``default`` prop when it is missing or empty.
        """
        prompt_text = to_text(ctx.get_input("prompt", "Enter value:"))
        name = to_text(ctx.get_input("variable", "input"))
        answer = ctx.variables.get(name)
        if answer is None or answer == "":
            answer = ctx.get_input("default", "")
        value = to_text(answer)
        logger.debug(f"{prompt_text} -> {value!r}")
        ctx.set_value("result", value)
        ctx.log(f'Input: "{value}"')
        yield ctx.emit("value", value)
