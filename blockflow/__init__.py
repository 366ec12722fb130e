"""
Blockflow: block type registry and dataflow execution engine for visual
block programs
"""
from .core import (
    BlockCategory,
    ConnectionData,
    ElementData,
    ExecutionState,
    Program,
    RenderResult,
    RunStatus,
    load_program,
    save_program,
)
from .core.execution import (
    BlockDefinition,
    BlockRegistry,
    BlockflowError,
    ExecutionContext,
    ExecutionEngine,
    ExecutionOptions,
    create_default_registry,
    execute_program,
    register_builtin_blocks,
)

__version__ = "0.1.0"

__all__ = [
    "BlockCategory",
    "ConnectionData",
    "ElementData",
    "ExecutionState",
    "Program",
    "RenderResult",
    "RunStatus",
    "load_program",
    "save_program",
    "BlockDefinition",
    "BlockRegistry",
    "BlockflowError",
    "ExecutionContext",
    "ExecutionEngine",
    "ExecutionOptions",
    "create_default_registry",
    "execute_program",
    "register_builtin_blocks",
]
