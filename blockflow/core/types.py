"""
Type definitions for Blockflow

This module provides:
- Type aliases for common identifiers
- Enums for block categories and run status
- Dataclasses for graph elements, connections and run snapshots
- TypedDict for structured statistics
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, TypedDict, TypeAlias
import copy

from ..utils.serialization import make_serializable


# ============================================================================
# Type Aliases
# ============================================================================

ElementID: TypeAlias = str
ConnectionID: TypeAlias = str
BlockType: TypeAlias = str
PortName: TypeAlias = str

# Port used for a connection that names no target input
DEFAULT_INPUT_PORT: PortName = "input"


# ============================================================================
# Enums
# ============================================================================

class BlockCategory(str, Enum):
    """Palette category a block type belongs to"""
    DATA = "data"
    CONTROL = "control"
    MATH = "math"
    IO = "io"
    LOGIC = "logic"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class RunStatus(str, Enum):
    """Lifecycle of a single engine run"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


# ============================================================================
# Graph data
# ============================================================================

@dataclass(frozen=True)
class RenderResult:
    """Runtime-agnostic visual description of a block instance"""
    label: str
    content: str
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, "content": self.content}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class ElementData:
    """
    One graph node instance

    Position (x, y) is layout only and never affects execution.
    """
    id: ElementID
    type: BlockType
    x: float = 0.0
    y: float = 0.0
    props: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Element id must be a non-empty string")
        if not isinstance(self.type, str) or not self.type.strip():
            raise ValueError(f"Element type must be a non-empty string for element {self.id}")
        if isinstance(self.x, bool) or not isinstance(self.x, (int, float)) \
                or isinstance(self.y, bool) or not isinstance(self.y, (int, float)):
            raise ValueError(f"Element coordinates must be numbers for element {self.id}")
        if not isinstance(self.props, Mapping):
            raise ValueError(f"Element props must be a mapping for element {self.id}")
        # Copy so later edits by the graph owner can't leak into a run
        object.__setattr__(self, 'props', MappingProxyType(copy.deepcopy(dict(self.props))))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ElementData":
        if not isinstance(data, Mapping):
            raise ValueError("Element data must be a mapping")
        position = data.get('position') or {}
        return cls(
            id=data.get('id'),
            type=data.get('type'),
            x=data.get('x', position.get('x', 0.0)),
            y=data.get('y', position.get('y', 0.0)),
            props=data.get('props') or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'x': self.x,
            'y': self.y,
            'props': copy.deepcopy(dict(self.props)),
        }


@dataclass(frozen=True)
class ConnectionData:
    """
    One directed edge between two elements

    Endpoints may be unknown when the connection is created; they must
    resolve once an engine is built around it.
    """
    id: ConnectionID
    from_id: ElementID
    to_id: ElementID
    from_output: Optional[PortName] = None
    to_input: Optional[PortName] = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Connection id must be a non-empty string")
        if not isinstance(self.from_id, str) or not isinstance(self.to_id, str):
            raise ValueError(f"Connection from_id and to_id must be strings for connection {self.id}")
        if self.from_id == self.to_id:
            raise ValueError(f"Connection {self.id} cannot connect element {self.from_id} to itself")
        for port in (self.from_output, self.to_input):
            if port is not None and not isinstance(port, str):
                raise ValueError(f"Connection port names must be strings for connection {self.id}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConnectionData":
        """Build from snake_case keys or the editor's camelCase keys"""
        if not isinstance(data, Mapping):
            raise ValueError("Connection data must be a mapping")
        return cls(
            id=data.get('id'),
            from_id=data.get('from_id', data.get('fromId')),
            to_id=data.get('to_id', data.get('toId')),
            from_output=data.get('from_output', data.get('fromOutput')),
            to_input=data.get('to_input', data.get('toInput')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'id': self.id, 'from_id': self.from_id, 'to_id': self.to_id}
        if self.from_output is not None:
            data['from_output'] = self.from_output
        if self.to_input is not None:
            data['to_input'] = self.to_input
        return data


# ============================================================================
# Validation and statistics
# ============================================================================

@dataclass
class BlockValidationResult:
    """Result of checking a props mapping against a block type"""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


class RegistryStats(TypedDict):
    """Summary of a block registry"""
    total_blocks: int
    category_counts: Dict[str, int]
    average_inputs: float
    average_outputs: float


class ExecutionStats(TypedDict):
    """Counters for the current or last run of an engine"""
    total_elements: int
    processed_elements: int
    total_connections: int
    execution_time: float  # milliseconds
    step_count: int
    error_count: int
    success_count: int


# ============================================================================
# Run snapshot
# ============================================================================

@dataclass
class ExecutionState:
    """Snapshot of one engine run; every container is a private copy"""
    element_states: Dict[ElementID, Dict[str, Any]] = field(default_factory=dict)
    execution_log: List[str] = field(default_factory=list)
    is_running: bool = False
    status: RunStatus = RunStatus.IDLE
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    processed_elements: Set[ElementID] = field(default_factory=set)
    execution_order: List[ElementID] = field(default_factory=list)
    step_count: int = 0
    error_count: int = 0
    success_count: int = 0
    error: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        """Elapsed seconds, or None while the run has not finished"""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'is_running': self.is_running,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'duration': self.duration,
            'step_count': self.step_count,
            'error_count': self.error_count,
            'success_count': self.success_count,
            'error': self.error,
            'execution_order': list(self.execution_order),
            'processed_elements': sorted(self.processed_elements),
            'element_states': make_serializable(self.element_states),
            'execution_log': list(self.execution_log),
        }
