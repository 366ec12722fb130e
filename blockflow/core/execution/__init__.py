"""
Execution Engine for Blockflow
Block type registry and the dataflow engine that runs block graphs
"""
from .context import Emission, ExecutionContext, GLOBAL_STATE_KEY
from .engine import ExecutionEngine, execute_program
from .errors import (
    BlockExecutionError,
    BlockflowError,
    BudgetExceededError,
    ConcurrencyError,
    ConstructionError,
    DuplicateBlockError,
    ExecutionError,
    ExecutionTimeoutError,
    GraphValidationError,
    RegistrationError,
)
from .nodes import create_default_registry, register_builtin_blocks
from .options import ExecutionOptions
from .registry import BlockDefinition, BlockRegistry, RegisteredBlock
from .report import ProgramReport, check_program

__all__ = [
    'ExecutionEngine',
    'execute_program',
    'ExecutionOptions',
    'ExecutionContext',
    'Emission',
    'GLOBAL_STATE_KEY',
    'BlockDefinition',
    'BlockRegistry',
    'RegisteredBlock',
    'ProgramReport',
    'check_program',
    'create_default_registry',
    'register_builtin_blocks',
    'BlockflowError',
    'RegistrationError',
    'DuplicateBlockError',
    'ExecutionError',
    'ConstructionError',
    'ConcurrencyError',
    'GraphValidationError',
    'BlockExecutionError',
    'BudgetExceededError',
    'ExecutionTimeoutError',
]
