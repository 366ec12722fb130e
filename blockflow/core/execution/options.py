"""
Run options for the execution engine
"""
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import Config


class ExecutionOptions(BaseModel):
    """
    Budgets and callbacks for one engine run

    Times are in milliseconds. Field names also accept the editor's
    camelCase spelling (maxSteps, onElementStart, ...).
    """
    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        arbitrary_types_allowed=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    max_execution_time: float = Field(
        default_factory=lambda: Config.MAX_EXECUTION_TIME,
        gt=0,
        le=Config.MAX_EXECUTION_TIME_LIMIT,
        description="Time budget for the whole run (ms)"
    )
    max_steps: int = Field(
        default_factory=lambda: Config.MAX_STEPS,
        gt=0,
        le=Config.MAX_STEPS_LIMIT,
        description="Maximum number of element visit attempts"
    )
    step_delay: float = Field(
        default_factory=lambda: Config.STEP_DELAY,
        ge=0,
        le=Config.STEP_DELAY_LIMIT,
        description="Pause after each element completes (ms)"
    )
    block_timeout: float = Field(
        default_factory=lambda: Config.BLOCK_TIMEOUT,
        gt=0,
        le=Config.MAX_EXECUTION_TIME_LIMIT,
        description="Time limit for a block's own logic between emissions (ms)"
    )
    enable_cycle_detection: bool = Field(
        default=True,
        description="Log cycles and orphan elements before traversal"
    )

    # Callbacks
    on_element_start: Optional[Callable[[str], Any]] = None
    on_element_complete: Optional[Callable[[str], Any]] = None
    on_connection_traversed: Optional[Callable[[str], Any]] = None
    on_log: Optional[Callable[[str], Any]] = None
    on_error: Optional[Callable[..., Any]] = None

    @classmethod
    def coerce(cls, options: Union["ExecutionOptions", Mapping[str, Any], None]) -> "ExecutionOptions":
        """Accept an ExecutionOptions, a mapping of its fields, or None"""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(dict(options))

    def describe(self) -> str:
        """Budget summary for the run log"""
        return (
            f"max_execution_time={self.max_execution_time:g}ms, max_steps={self.max_steps}, "
            f"step_delay={self.step_delay:g}ms, block_timeout={self.block_timeout:g}ms"
        )
