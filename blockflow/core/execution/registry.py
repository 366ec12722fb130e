"""
Block registry for execution engine
Maps block type strings to immutable block definitions
"""
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
import copy
import re

from ..types import BlockCategory, BlockValidationResult, RegistryStats, RenderResult
from ...utils.logger import get_logger
from .errors import DuplicateBlockError, RegistrationError

logger = get_logger(__name__)

# Block type names
MAX_TYPE_LENGTH = 50
TYPE_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9_-]*$')

# Definition fields
MAX_DISPLAY_NAME_LENGTH = 100
MAX_PORTS = 20
MAX_PORT_NAME_LENGTH = 50
MAX_COLOR_LENGTH = 20
MAX_ICON_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 500
MAX_VERSION_LENGTH = 20
MAX_AUTHOR_LENGTH = 100
DEFAULT_VERSION = "1.0.0"

# default_props copying
MAX_PROP_KEY_LENGTH = 100
MAX_PROP_STRING_LENGTH = 10000
MAX_PROP_ARRAY_LENGTH = 1000

# validate_block warnings
LARGE_STRING_WARNING = 100000
LARGE_ARRAY_WARNING = 10000

# Render results
MAX_LABEL_LENGTH = 100
MAX_CONTENT_LENGTH = 1000

CAPABILITIES = ('execute', 'validate', 'render')

ExecuteFn = Callable[..., Any]
ValidateFn = Callable[[Mapping[str, Any]], Optional[str]]
RenderFn = Callable[[Mapping[str, Any]], Any]


@dataclass(frozen=True)
class BlockDefinition:
    """
    Definition of a block type (like a class definition for graph elements)

    Authors fill in the metadata and any of the three capabilities:

    - execute(context): block logic. May be an async generator yielding
      ``context.emit(port, value)``, a coroutine or plain function returning
      an iterable of emissions (or None), or a plain generator.
    - validate(props): return an error message, or None when props are fine.
    - render(props): return a RenderResult or a mapping with label/content/value.

    Definitions stored in a registry always carry all three; capabilities the
    author left out are filled with defaults and ``supplied`` records which
    ones were provided. Their default_props are read-only all the way down;
    get_default_props() hands out a mutable copy.
    """
    display_name: str
    category: Union[BlockCategory, str]
    inputs: Sequence[str] = ()
    outputs: Sequence[str] = ()
    default_props: Mapping[str, Any] = field(default_factory=dict)
    execute: Optional[ExecuteFn] = None
    validate: Optional[ValidateFn] = None
    render: Optional[RenderFn] = None
    version: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    author: Optional[str] = None
    is_circular: bool = False
    supplied: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockDefinition":
        known = {f.name for f in fields(cls)} - {'supplied'}
        unknown = set(data) - known
        if unknown:
            raise RegistrationError(f"Unknown block definition fields: {', '.join(sorted(map(str, unknown)))}")
        try:
            return cls(**dict(data))
        except TypeError as e:
            raise RegistrationError(f"Invalid block definition: {e}") from e

    def get_default_props(self) -> Dict[str, Any]:
        """Mutable deep copy of the default props"""
        return _thaw(self.default_props)

    def has_capability(self, name: str) -> bool:
        return name in self.supplied


class RegisteredBlock(NamedTuple):
    """A (type, definition) pair as returned by listing methods"""
    type: str
    definition: BlockDefinition


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _validate_block_type(block_type: Any) -> None:
    if not isinstance(block_type, str):
        raise RegistrationError("Block type must be a string")
    if not block_type.strip():
        raise RegistrationError("Block type cannot be empty")
    if len(block_type) > MAX_TYPE_LENGTH:
        raise RegistrationError(f"Block type too long (max {MAX_TYPE_LENGTH} characters)")
    if not TYPE_PATTERN.match(block_type):
        raise RegistrationError(
            "Block type must start with letter and contain only alphanumeric, underscore, or dash characters"
        )


def _validate_optional_str(definition: BlockDefinition, name: str, max_length: int) -> None:
    value = getattr(definition, name)
    if value is None:
        return
    if not isinstance(value, str):
        raise RegistrationError(f"{name} must be a string if provided")
    if len(value) > max_length:
        raise RegistrationError(f"{name} too long (max {max_length} characters)")


def _validate_ports(kind: str, ports: Any) -> Tuple[str, ...]:
    if isinstance(ports, (str, bytes)) or not isinstance(ports, Sequence):
        raise RegistrationError(f"{kind} must be a sequence of port names")
    if len(ports) > MAX_PORTS:
        raise RegistrationError(f"Too many {kind} (max {MAX_PORTS})")
    for port in ports:
        if not isinstance(port, str) or not port.strip():
            raise RegistrationError(f"All {kind} must be non-empty strings")
        if len(port) > MAX_PORT_NAME_LENGTH:
            raise RegistrationError(f"{kind.capitalize()[:-1]} name too long (max {MAX_PORT_NAME_LENGTH} characters)")
    return tuple(ports)


def _validate_definition(block_type: str, definition: Any) -> None:
    if not isinstance(definition, BlockDefinition):
        raise RegistrationError("Block definition must be a BlockDefinition or a mapping")

    if not isinstance(definition.display_name, str) or not definition.display_name.strip():
        raise RegistrationError("display_name must be a non-empty string")
    if len(definition.display_name) > MAX_DISPLAY_NAME_LENGTH:
        raise RegistrationError(f"display_name too long (max {MAX_DISPLAY_NAME_LENGTH} characters)")

    if definition.category not in BlockCategory.values():
        raise RegistrationError(f"category must be one of: {', '.join(BlockCategory.values())}")

    inputs = _validate_ports('inputs', definition.inputs)
    outputs = _validate_ports('outputs', definition.outputs)
    if len(set(inputs)) != len(inputs):
        raise RegistrationError(f'Block type "{block_type}" has duplicate input names')
    if len(set(outputs)) != len(outputs):
        raise RegistrationError(f'Block type "{block_type}" has duplicate output names')
    conflicts = [name for name in inputs if name in outputs]
    if conflicts:
        raise RegistrationError(
            f'Block type "{block_type}" has conflicting input/output names: {", ".join(conflicts)}'
        )

    if not isinstance(definition.default_props, Mapping):
        raise RegistrationError("default_props must be a mapping if provided")
    if not isinstance(definition.is_circular, bool):
        raise RegistrationError("is_circular must be a boolean if provided")

    _validate_optional_str(definition, 'color', MAX_COLOR_LENGTH)
    _validate_optional_str(definition, 'icon', MAX_ICON_LENGTH)
    _validate_optional_str(definition, 'description', MAX_DESCRIPTION_LENGTH)
    _validate_optional_str(definition, 'version', MAX_VERSION_LENGTH)
    _validate_optional_str(definition, 'author', MAX_AUTHOR_LENGTH)

    for name in CAPABILITIES:
        value = getattr(definition, name)
        if value is not None and not callable(value):
            raise RegistrationError(f"{name} must be callable if provided")


def safe_copy_props(props: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep copy props, skipping bad keys and truncating oversized values"""
    result: Dict[str, Any] = {}
    for key, value in props.items():
        if not isinstance(key, str) or len(key) > MAX_PROP_KEY_LENGTH:
            logger.warning(f"Skipping default prop with invalid key: {key!r}")
            continue
        if isinstance(value, str):
            result[key] = value[:MAX_PROP_STRING_LENGTH]
        elif isinstance(value, (list, tuple)):
            result[key] = _thaw(tuple(value[:MAX_PROP_ARRAY_LENGTH]))
        else:
            result[key] = _thaw(value)
    return result


def _freeze(value: Any) -> Any:
    """Read-only view of copied props: mappings become proxies, lists and tuples tuples, sets frozensets"""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    return value


def _thaw(value: Any) -> Any:
    """Mutable deep copy of a value built by _freeze"""
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    if isinstance(value, frozenset):
        return set(value)
    return copy.deepcopy(value)


def _coerce_render_result(result: Any) -> RenderResult:
    """Check a render function's output and convert it to a RenderResult"""
    if isinstance(result, RenderResult):
        label, content, value = result.label, result.content, result.value
    elif isinstance(result, Mapping):
        label, content, value = result.get('label'), result.get('content'), result.get('value')
    else:
        raise ValueError("Render function must return a RenderResult or a mapping")

    if not isinstance(label, str):
        raise ValueError("Render result must have string label property")
    if not isinstance(content, str):
        raise ValueError("Render result must have string content property")
    if value is not None and not isinstance(value, str):
        raise ValueError("Render result value property must be string if provided")
    if len(label) > MAX_LABEL_LENGTH:
        raise ValueError(f"Render result label too long (max {MAX_LABEL_LENGTH} characters)")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValueError(f"Render result content too long (max {MAX_CONTENT_LENGTH} characters)")
    return RenderResult(label=label, content=content, value=value)


def _checked_render(render: RenderFn) -> Callable[[Mapping[str, Any]], RenderResult]:
    def render_block(props: Mapping[str, Any]) -> RenderResult:
        return _coerce_render_result(render(props))
    render_block.__wrapped__ = render
    return render_block


def _default_render(display_name: str, block_type: str) -> Callable[[Mapping[str, Any]], RenderResult]:
    content = block_type[:1].upper() + block_type[1:]

    def render_block(props: Mapping[str, Any]) -> RenderResult:
        return RenderResult(label=display_name, content=content)
    return render_block


async def _noop_execute(context: Any) -> None:
    return None


def _always_valid(props: Mapping[str, Any]) -> Optional[str]:
    return None


def _normalize(block_type: str, definition: BlockDefinition) -> BlockDefinition:
    """Build the frozen, defaulted definition stored in the registry"""
    supplied = frozenset(name for name in CAPABILITIES if getattr(definition, name) is not None)
    render = definition.render
    return replace(
        definition,
        category=BlockCategory(definition.category),
        inputs=tuple(definition.inputs),
        outputs=tuple(definition.outputs),
        default_props=_freeze(safe_copy_props(definition.default_props)),
        execute=definition.execute or _noop_execute,
        validate=definition.validate or _always_valid,
        render=_checked_render(render) if render else _default_render(definition.display_name, block_type),
        version=definition.version if definition.version is not None else DEFAULT_VERSION,
        description=(
            definition.description if definition.description is not None
            else f"{definition.display_name} block"
        ),
        supplied=supplied,
    )


def _definitions_equal(a: BlockDefinition, b: BlockDefinition) -> bool:
    """
    Compare two normalized definitions

    Metadata is compared by value, ports and default props structurally, and
    the capabilities only by presence: two definitions whose execute bodies
    differ are still considered equal.
    """
    metadata = ('display_name', 'category', 'is_circular', 'color', 'icon', 'description', 'version', 'author')
    if any(getattr(a, name) != getattr(b, name) for name in metadata):
        return False
    if a.inputs != b.inputs or a.outputs != b.outputs:
        return False
    if _thaw(a.default_props) != _thaw(b.default_props):
        return False
    return a.supplied == b.supplied


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class BlockRegistry:
    """
    Catalog of block types: type name -> immutable BlockDefinition

    The registry holds no execution state. Engines only read from it; there
    is no lock, so callers must not register, unregister or clear while a run
    that uses the registry is in progress.
    """

    def __init__(self) -> None:
        self._blocks: Dict[str, BlockDefinition] = {}

    def register(self, block_type: str, definition: Union[BlockDefinition, Mapping[str, Any]]) -> BlockDefinition:
        """
        Register a block type

        Args:
            block_type: Unique identifier (e.g., "add")
            definition: BlockDefinition, or a mapping of its fields

        Returns:
            The stored (normalized) definition

        Raises:
            RegistrationError: If the type or definition is invalid, or the
                render/validate smoke test fails
            DuplicateBlockError: If the type exists with a different definition
        """
        _validate_block_type(block_type)
        if isinstance(definition, Mapping):
            definition = BlockDefinition.from_dict(definition)
        _validate_definition(block_type, definition)

        normalized = _normalize(block_type, definition)

        existing = self._blocks.get(block_type)
        if existing is not None:
            if not _definitions_equal(existing, normalized):
                raise DuplicateBlockError(block_type)
            logger.debug(f"Block type {block_type} re-registered with identical definition")
            return existing

        self._smoke_test(block_type, normalized)
        self._blocks[block_type] = normalized
        logger.debug(f"Registered block type {block_type} ({normalized.category.value})")
        return normalized

    def block(self, block_type: str, **definition_fields: Any) -> Callable[[ExecuteFn], ExecuteFn]:
        """Decorator: register the decorated function as a block's execute logic"""
        def decorator(func: ExecuteFn) -> ExecuteFn:
            self.register(block_type, BlockDefinition(execute=func, **definition_fields))
            return func
        return decorator

    def _smoke_test(self, block_type: str, definition: BlockDefinition) -> None:
        test_props = definition.get_default_props()
        try:
            definition.render(test_props)
        except Exception as e:
            raise RegistrationError(f'Render function test failed for block type "{block_type}": {e}') from e

        try:
            result = definition.validate(test_props)
        except Exception as e:
            raise RegistrationError(f'Validate function test failed for block type "{block_type}": {e}') from e
        if result is not None and not isinstance(result, str):
            raise RegistrationError(
                f'Validate function test failed for block type "{block_type}": '
                "Validate function must return string or None"
            )

    def get(self, block_type: str) -> Optional[BlockDefinition]:
        """Get the definition for a type, or None if not registered"""
        if not isinstance(block_type, str):
            raise TypeError("Block type must be a string")
        return self._blocks.get(block_type)

    def has(self, block_type: str) -> bool:
        if not isinstance(block_type, str):
            raise TypeError("Block type must be a string")
        return block_type in self._blocks

    def __contains__(self, block_type: object) -> bool:
        return isinstance(block_type, str) and block_type in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def get_types(self) -> Tuple[str, ...]:
        return tuple(self._blocks)

    def get_by_category(self, category: Union[BlockCategory, str]) -> Tuple[RegisteredBlock, ...]:
        if category not in BlockCategory.values():
            raise RegistrationError(f"Invalid category. Must be one of: {', '.join(BlockCategory.values())}")
        category = BlockCategory(category)
        return tuple(
            RegisteredBlock(block_type, definition)
            for block_type, definition in self._blocks.items()
            if definition.category == category
        )

    def get_all(self) -> Tuple[RegisteredBlock, ...]:
        return tuple(RegisteredBlock(block_type, definition) for block_type, definition in self._blocks.items())

    def get_stats(self) -> RegistryStats:
        """Counts per category and average port arity"""
        category_counts = {category: 0 for category in BlockCategory.values()}
        total_inputs = 0
        total_outputs = 0
        for definition in self._blocks.values():
            category_counts[definition.category.value] += 1
            total_inputs += len(definition.inputs)
            total_outputs += len(definition.outputs)

        total = len(self._blocks)
        return RegistryStats(
            total_blocks=total,
            category_counts=category_counts,
            average_inputs=round(total_inputs / total, 2) if total else 0,
            average_outputs=round(total_outputs / total, 2) if total else 0,
        )

    def unregister(self, block_type: str) -> bool:
        """Remove a block type; returns False if it was not registered"""
        if not isinstance(block_type, str):
            raise TypeError("Block type must be a string")
        removed = self._blocks.pop(block_type, None) is not None
        if removed:
            logger.debug(f"Unregistered block type {block_type}")
        return removed

    def clear(self, confirm: bool = False) -> None:
        """Remove every block type; requires confirm=True"""
        if confirm is not True:
            raise RegistrationError("Must explicitly confirm clear operation by passing confirm=True")
        self._blocks.clear()
        logger.debug("Cleared block registry")

    def validate_block(self, block_type: str, props: Mapping[str, Any]) -> BlockValidationResult:
        """
        Check props against a block type without running anything

        Args:
            block_type: Registered block type
            props: Element properties to check

        Returns:
            BlockValidationResult; missing default props and oversized
            values are warnings, validate() messages are errors
        """
        result = BlockValidationResult()

        definition = self._blocks.get(block_type) if isinstance(block_type, str) else None
        if definition is None:
            result.add_error(f'Block type "{block_type}" is not registered')
            return result

        try:
            message = definition.validate(props)
        except Exception as e:
            result.add_error(f"Validation error: {e}")
        else:
            if message:
                result.add_error(message)

        for key in definition.default_props:
            if key not in props:
                result.warnings.append(f"Missing optional property: {key}")

        for key, value in props.items():
            if not isinstance(key, str) or len(key) > MAX_PROP_KEY_LENGTH:
                result.add_error(f"Invalid property key: {key}")
                continue
            if isinstance(value, str) and len(value) > LARGE_STRING_WARNING:
                result.warnings.append(f"Property {key} has very large string value")
            if isinstance(value, (list, tuple)) and len(value) > LARGE_ARRAY_WARNING:
                result.warnings.append(f"Property {key} has very large array")

        return result
