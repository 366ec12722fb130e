"""
Exception hierarchy for the block registry and execution engine
"""
from typing import Optional


class BlockflowError(Exception):
    """Base class for all Blockflow errors"""
    pass


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class RegistrationError(BlockflowError, ValueError):
    """Raised when a block type or definition is rejected by the registry"""
    pass


class DuplicateBlockError(RegistrationError):
    """Raised when a type name is re-registered with a different definition"""

    def __init__(self, block_type: str):
        super().__init__(
            f'Block type "{block_type}" already registered with different definition. '
            "Use unregister() first to replace, or choose a different type name."
        )
        self.block_type = block_type


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ExecutionError(BlockflowError):
    """Base class for errors raised by the execution engine"""
    pass


class ConstructionError(ExecutionError, TypeError):
    """Raised when an engine is built from missing or malformed graph data"""
    pass


class ConcurrencyError(ExecutionError, RuntimeError):
    """Raised when execute() is called while a run is already in progress"""
    pass


class GraphValidationError(ExecutionError, ValueError):
    """Raised by the pre-run gate for unknown block types or rejected props"""

    def __init__(self, message: str, element_id: Optional[str] = None, block_type: Optional[str] = None):
        super().__init__(message)
        self.element_id = element_id
        self.block_type = block_type


class BlockExecutionError(ExecutionError, RuntimeError):
    """Raised when a block's own logic fails; the original error is __cause__"""

    def __init__(self, message: str, element_id: Optional[str] = None, block_type: Optional[str] = None):
        super().__init__(message)
        self.element_id = element_id
        self.block_type = block_type


class BudgetExceededError(ExecutionError, RuntimeError):
    """Raised when a run needs more visit attempts than max_steps allows"""

    def __init__(self, steps: int, max_steps: int):
        super().__init__(f"Maximum execution steps exceeded ({steps} > {max_steps})")
        self.steps = steps
        self.max_steps = max_steps


class ExecutionTimeoutError(ExecutionError, TimeoutError):
    """Raised when a run (or a single block) outlives its time budget"""

    def __init__(self, message: str, timeout_ms: float, element_id: Optional[str] = None):
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.element_id = element_id
