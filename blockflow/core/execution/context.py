"""
Execution context handed to block logic
"""
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional

from ..types import ElementID, PortName

# Element state slot shared by set_variable/get_variable style blocks
GLOBAL_STATE_KEY = "__global__"

# Limits on emitted values
MAX_EMIT_STRING_LENGTH = 100000
MAX_EMIT_ARRAY_LENGTH = 10000


class Emission(NamedTuple):
    """A value produced on an output port, to be fanned out by the engine"""
    port: PortName
    value: Any = None


def check_emission(emission: Any) -> Emission:
    """
    Validate something yielded/returned by block logic

    Accepts an Emission or a plain (port, value) pair.

    Raises:
        TypeError: If the item is not a (port, value) pair
        ValueError: If the port name or value is unacceptable
    """
    if not isinstance(emission, Emission):
        if not isinstance(emission, tuple) or len(emission) != 2:
            raise TypeError(f"Block logic must yield (port, value) pairs, got {emission!r}")
        emission = Emission(*emission)

    port, value = emission
    if not isinstance(port, str) or not port.strip():
        raise ValueError("Output name must be a non-empty string")
    # Guard against runaway values
    if isinstance(value, str) and len(value) > MAX_EMIT_STRING_LENGTH:
        raise ValueError(f"Output string value too large (max {MAX_EMIT_STRING_LENGTH} characters)")
    if isinstance(value, (list, tuple)) and len(value) > MAX_EMIT_ARRAY_LENGTH:
        raise ValueError(f"Output array too large (max {MAX_EMIT_ARRAY_LENGTH} elements)")
    return emission


class ExecutionContext:
    """
    Context passed to a block's execute() for one invocation

    Block logic reads ``inputs`` (values collected from upstream elements,
    with the element's own props merged on top), keeps scratch data in its
    state slot via get_value/set_value, writes to the run log via log(), and
    produces outputs by yielding ``emit(port, value)``. The engine records
    each emission and visits downstream elements before the block resumes.

    ``state`` and ``connections`` are read-only views that let a
    presentation layer mirror engine activity.
    """

    def __init__(
        self,
        element_id: ElementID,
        block_type: str,
        inputs: Dict[str, Any],
        props: Mapping[str, Any],
        element_states: Dict[ElementID, Dict[str, Any]],
        connections: Mapping[ElementID, List[ElementID]],
        variables: Mapping[str, Any],
        log: Callable[[str], None],
    ):
        self.element_id = element_id
        self.block_type = block_type
        self.inputs = inputs
        self.props = props
        self.variables = MappingProxyType(dict(variables))
        self._element_states = element_states
        self._connections = connections
        self._log = log

    @property
    def state(self) -> Mapping[ElementID, Mapping[str, Any]]:
        return MappingProxyType(self._element_states)

    @property
    def connections(self) -> Mapping[ElementID, List[ElementID]]:
        return MappingProxyType(self._connections)

    def _slot(self) -> Dict[str, Any]:
        return self._element_states.setdefault(self.element_id, {})

    def emit(self, port: PortName, value: Any = None) -> Emission:
        """
        Build an emission for ``port``; yield it (or return it in a list) to
        record the value and trigger the matching outgoing connections
        """
        return check_emission(Emission(port, value))

    def set_value(self, key: str, value: Any) -> None:
        """Write to this element's state slot"""
        if not isinstance(key, str) or not key.strip():
            raise ValueError("Key must be a non-empty string")
        self._slot()[key] = value

    def get_value(self, key: str, default: Any = None) -> Any:
        """Read from this element's state slot"""
        if not isinstance(key, str):
            raise TypeError("Key must be a string")
        return self._element_states.get(self.element_id, {}).get(key, default)

    def get_input(self, name: str, default: Any = None) -> Any:
        """Input value, or default when it is missing or None"""
        value = self.inputs.get(name)
        return default if value is None else value

    def set_global(self, name: str, value: Any) -> None:
        """Write a run-wide variable shared between blocks"""
        self._element_states.setdefault(GLOBAL_STATE_KEY, {})[name] = value

    def get_global(self, name: str, default: Any = None) -> Any:
        return self._element_states.get(GLOBAL_STATE_KEY, {}).get(name, default)

    def log(self, message: Any) -> None:
        """Append a message to the run log, tagged with this element's id"""
        self._log(f"[{self.element_id}] {message}")
