"""
Core of Blockflow: configuration, data types, program documents and the
execution engine
"""
from .config import Config
from .types import (
    BlockCategory,
    BlockValidationResult,
    ConnectionData,
    ElementData,
    ExecutionState,
    RenderResult,
    RunStatus,
)
from .program import Program, load_program, save_program

__all__ = [
    "Config",
    "BlockCategory",
    "BlockValidationResult",
    "ConnectionData",
    "ElementData",
    "ExecutionState",
    "RenderResult",
    "RunStatus",
    "Program",
    "load_program",
    "save_program",
]
