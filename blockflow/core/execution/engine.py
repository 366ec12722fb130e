"""
Execution Engine for Blockflow
Runs block graphs: validates them against a registry, then walks them
depth-first from their entry points while block logic decides which
outgoing connections fire
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, Iterator, List, Mapping, Optional, Set, Union
import asyncio
import copy
import inspect
import time

from ..types import (
    ConnectionData,
    ConnectionID,
    DEFAULT_INPUT_PORT,
    ElementData,
    ElementID,
    ExecutionState,
    ExecutionStats,
    RunStatus,
)
from ...utils.logger import get_logger
from .context import ExecutionContext, check_emission
from .errors import (
    BlockExecutionError,
    BudgetExceededError,
    ConcurrencyError,
    ConstructionError,
    ExecutionTimeoutError,
    GraphValidationError,
)
from .options import ExecutionOptions
from .registry import BlockDefinition, BlockRegistry, safe_copy_props

logger = get_logger(__name__)

_EXHAUSTED = object()


async def _next_item(agen) -> Any:
    try:
        return await agen.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


class _EmissionSource:
    """
    Uniform stepping over whatever a block's execute() returned

    Async generators are advanced one emission at a time; coroutines are
    awaited once and their returned iterable replayed; plain generators and
    iterables are iterated; None means no emissions.
    """

    def __init__(self, result: Any):
        self._agen = None
        self._awaitable = None
        self._iterator: Optional[Iterator[Any]] = None
        if inspect.isasyncgen(result):
            self._agen = result
        elif inspect.isawaitable(result):
            self._awaitable = result
        elif result is not None:
            self._iterator = iter(result)

    async def next(self, timeout: float) -> Any:
        """Run block logic up to its next emission; _EXHAUSTED when done"""
        if self._agen is not None:
            return await asyncio.wait_for(_next_item(self._agen), timeout)
        if self._awaitable is not None:
            awaitable, self._awaitable = self._awaitable, None
            returned = await asyncio.wait_for(awaitable, timeout)
            self._iterator = iter(returned) if returned is not None else None
        if self._iterator is None:
            return _EXHAUSTED
        return next(self._iterator, _EXHAUSTED)

    async def close(self) -> None:
        if self._agen is not None:
            await self._agen.aclose()
        elif inspect.iscoroutine(self._awaitable):
            self._awaitable.close()
        elif inspect.isgenerator(self._iterator):
            self._iterator.close()


@dataclass
class _Frame:
    """One in-flight element invocation on the traversal stack"""
    element: ElementData
    definition: BlockDefinition
    source: _EmissionSource
    pending: Deque[ConnectionData] = field(default_factory=deque)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%H:%M:%S")


def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Invoke a user callback; a failing callback never breaks the run"""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        logger.warning(f"{getattr(callback, '__name__', 'callback')} raised {type(e).__name__}: {e}")


def _copy_value(value: Any) -> Any:
    """Deep copy of a state value; values that can't be copied (generators, locks) are shared"""
    try:
        return copy.deepcopy(value)
    except Exception as e:
        logger.debug(f"Sharing uncopyable state value {type(value).__name__}: {e}")
        return value


def _discard_result(task: "asyncio.Task") -> None:
    """Retrieve a cancelled traversal's outcome so asyncio doesn't warn"""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Abandoned traversal ended with {type(error).__name__}: {error}")


class ExecutionEngine:
    """
    Executes block graphs

    Features:
    - Validation gate against the block registry before anything runs
    - Entry point discovery with a fallback for fully cyclic graphs
    - Block-driven propagation: an element's outputs fire only when its
      logic emits, each emission fully resolving downstream before the
      block resumes
    - At-most-once execution per element and run, step and time budgets
    - Cooperative stop()

    One engine runs at most one execution at a time.
    """

    def __init__(
        self,
        elements: Mapping[ElementID, Union[ElementData, Mapping[str, Any]]],
        connections: Mapping[ConnectionID, Union[ConnectionData, Mapping[str, Any]]],
        registry: BlockRegistry,
    ):
        """
        Initialize execution engine

        Args:
            elements: element id -> ElementData (or its dict form)
            connections: connection id -> ConnectionData (or its dict form)
            registry: Block registry used to resolve element types

        Raises:
            ConstructionError: If the collections are missing or malformed,
                or a connection references an unknown element
        """
        if not isinstance(elements, Mapping):
            raise ConstructionError("Elements must be a mapping of element id to element data")
        if not isinstance(connections, Mapping):
            raise ConstructionError("Connections must be a mapping of connection id to connection data")
        if not isinstance(registry, BlockRegistry):
            raise ConstructionError("A BlockRegistry instance is required")

        self.registry = registry
        self._elements: Dict[ElementID, ElementData] = {}
        self._connections: Dict[ConnectionID, ConnectionData] = {}
        try:
            for key, value in elements.items():
                element = value if isinstance(value, ElementData) else ElementData.from_dict(value)
                if key != element.id:
                    raise ConstructionError(f"Element key {key!r} does not match element id {element.id!r}")
                self._elements[key] = element
            for key, value in connections.items():
                connection = value if isinstance(value, ConnectionData) else ConnectionData.from_dict(value)
                if key != connection.id:
                    raise ConstructionError(f"Connection key {key!r} does not match connection id {connection.id!r}")
                self._connections[key] = connection
        except ValueError as e:
            raise ConstructionError(str(e)) from e

        for connection in self._connections.values():
            if connection.from_id not in self._elements:
                raise ConstructionError(f"Connection references non-existent from_id: {connection.from_id}")
            if connection.to_id not in self._elements:
                raise ConstructionError(f"Connection references non-existent to_id: {connection.to_id}")

        self._outgoing: Dict[ElementID, List[ConnectionData]] = {element_id: [] for element_id in self._elements}
        self._incoming: Dict[ElementID, List[ConnectionData]] = {element_id: [] for element_id in self._elements}
        for connection in self._connections.values():
            self._outgoing[connection.from_id].append(connection)
            self._incoming[connection.to_id].append(connection)

        self._options = ExecutionOptions()
        self._variables: Dict[str, Any] = {}
        self._traversal: Optional[asyncio.Future] = None
        self._is_running = False
        self._stop_requested = False
        self._status = RunStatus.IDLE
        self._element_states: Dict[ElementID, Dict[str, Any]] = {}
        self._execution_log: List[str] = []
        self._processed: Dict[ElementID, None] = {}  # ordered set
        self._step_count = 0
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None
        self._error: Optional[str] = None
        self._error_count = 0
        self._success_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def elements(self) -> Mapping[ElementID, ElementData]:
        return MappingProxyType(self._elements)

    @property
    def connections(self) -> Mapping[ConnectionID, ConnectionData]:
        return MappingProxyType(self._connections)

    @property
    def _active(self) -> bool:
        """True while traversal may start new visits"""
        return self._is_running and not self._stop_requested

    async def execute(
        self,
        options: Union[ExecutionOptions, Mapping[str, Any], None] = None,
        variables: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionState:
        """
        Run the graph once

        Args:
            options: ExecutionOptions (or a mapping of its fields)
            variables: Runtime variables visible to every block

        Returns:
            Snapshot of the finished run

        Raises:
            ConcurrencyError: If a run is already in progress (no state change)
            GraphValidationError, BlockExecutionError, BudgetExceededError,
            ExecutionTimeoutError: The run failed; get_execution_state()
                still shows everything recorded before the failure
        """
        options = ExecutionOptions.coerce(options)
        if self._is_running:
            error = ConcurrencyError("Execution already in progress - cannot start new execution")
            _invoke(options.on_error, error, None)
            raise error
        if self._traversal is not None and not self._traversal.done():
            error = ConcurrencyError("Previous execution is still shutting down - cannot start new execution")
            _invoke(options.on_error, error, None)
            raise error

        self.reset()
        self._options = options
        self._variables = dict(variables or {})
        self._is_running = True
        self._status = RunStatus.RUNNING
        self._start_time = time.time()

        logger.info(f"Executing program with {len(self._elements)} elements and {len(self._connections)} connections")
        self._log("Starting execution with options", options.describe())

        traversal = self._traversal = asyncio.ensure_future(self._execute_internal())
        try:
            done, _ = await asyncio.wait({traversal}, timeout=options.max_execution_time / 1000)
            if traversal not in done:
                # Halt the traversal at its current suspension point
                self._stop_requested = True
                traversal.cancel()
                traversal.add_done_callback(_discard_result)
                raise ExecutionTimeoutError(
                    f"Execution timeout after {options.max_execution_time:g}ms",
                    timeout_ms=options.max_execution_time,
                )
            traversal.result()
        except asyncio.CancelledError:
            self._stop_requested = True
            traversal.cancel()
            self._status = RunStatus.STOPPED
            self._log("Execution cancelled")
            raise
        except Exception as e:
            self._error_count += 1
            self._status = RunStatus.FAILED
            self._error = str(e)
            self._log(f"Execution failed: {e}")
            logger.error(f"Execution failed: {e}")
            self._notify('on_error', e, getattr(e, 'element_id', None))
            raise
        else:
            if self._stop_requested:
                self._status = RunStatus.STOPPED
                self._log(f"Execution stopped after processing {len(self._processed)} elements in {self._step_count} steps")
            else:
                self._status = RunStatus.COMPLETED
                self._success_count += 1
                self._log(
                    f"Execution completed successfully. Processed {len(self._processed)} elements "
                    f"in {self._step_count} steps"
                )
        finally:
            self._is_running = False
            self._stop_requested = False
            self._end_time = time.time()
            logger.info(f"Execution {self._status.value} in {self._end_time - self._start_time:.3f}s")

        return self.get_execution_state()

    def stop(self) -> None:
        """
        Request a cooperative stop

        In-flight block logic is not interrupted, but no new element visit
        or connection traversal starts once the flag is seen. is_running
        stays True until that in-flight logic has returned.
        """
        if self._is_running and not self._stop_requested:
            self._stop_requested = True
            self._log("Execution stopped by user request")

    def reset(self) -> None:
        """Discard all state from the previous run"""
        if self._is_running:
            raise ConcurrencyError("Cannot reset while execution is in progress - call stop() first")
        self._element_states = {}
        self._execution_log = []
        self._processed = {}
        self._step_count = 0
        self._start_time = None
        self._end_time = None
        self._error = None
        self._error_count = 0
        self._success_count = 0
        self._stop_requested = False
        self._status = RunStatus.IDLE

    def get_execution_state(self) -> ExecutionState:
        """Deep-copied snapshot of the current or last run"""
        return ExecutionState(
            element_states=self.get_element_states(),
            execution_log=list(self._execution_log),
            is_running=self._is_running,
            status=self._status,
            start_time=self._start_time,
            end_time=None if self._is_running else self._end_time,
            processed_elements=self.get_processed_elements(),
            execution_order=list(self._processed),
            step_count=self._step_count,
            error_count=self._error_count,
            success_count=self._success_count,
            error=self._error,
        )

    def get_execution_stats(self) -> ExecutionStats:
        if self._start_time is None:
            elapsed = 0.0
        else:
            end = time.time() if self._is_running or self._end_time is None else self._end_time
            elapsed = (end - self._start_time) * 1000
        return ExecutionStats(
            total_elements=len(self._elements),
            processed_elements=len(self._processed),
            total_connections=len(self._connections),
            execution_time=elapsed,
            step_count=self._step_count,
            error_count=self._error_count,
            success_count=self._success_count,
        )

    def get_element_states(self) -> Dict[ElementID, Dict[str, Any]]:
        return {
            element_id: {key: _copy_value(value) for key, value in slot.items()}
            for element_id, slot in self._element_states.items()
        }

    def get_processed_elements(self) -> Set[ElementID]:
        return set(self._processed)

    def find_entry_points(self) -> List[ElementID]:
        """Elements that are never the target of a connection, in element order"""
        return [element_id for element_id, incoming in self._incoming.items() if not incoming]

    def find_cycles(self) -> List[List[ElementID]]:
        """
        Depth-first scan for cycles

        Returns:
            Each cycle as a path that starts and ends on the same element
        """
        visited: Set[ElementID] = set()
        on_path: Set[ElementID] = set()
        cycles: List[List[ElementID]] = []

        for root in self._elements:
            if root in visited:
                continue
            # Iterative DFS: stack of (element, iterator over its successors)
            path: List[ElementID] = [root]
            visited.add(root)
            on_path.add(root)
            stack = [iter(self._outgoing[root])]
            while stack:
                connection = next(stack[-1], None)
                if connection is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                target = connection.to_id
                if target in on_path:
                    cycles.append(path[path.index(target):] + [target])
                elif target not in visited:
                    visited.add(target)
                    on_path.add(target)
                    path.append(target)
                    stack.append(iter(self._outgoing[target]))
        return cycles

    def find_orphans(self) -> List[ElementID]:
        """Elements touched by no connection"""
        return [
            element_id for element_id in self._elements
            if not self._incoming[element_id] and not self._outgoing[element_id]
        ]

    # ------------------------------------------------------------------
    # Run phases
    # ------------------------------------------------------------------

    async def _execute_internal(self) -> None:
        if self._options.enable_cycle_detection:
            self._log_diagnostics()
        self._validate_graph()

        if not self._elements:
            self._log("No elements to execute")
            return

        entry_points = self.find_entry_points()
        if not entry_points:
            fallback = next(iter(self._elements))
            self._log(f"No entry points found - falling back to element {fallback}")
            entry_points = [fallback]

        self._log(f"Starting execution from {len(entry_points)} entry point(s): {', '.join(entry_points)}")

        for entry_id in entry_points:
            if not self._active:
                break
            await self._traverse(entry_id)

    def _log_diagnostics(self) -> None:
        cycles = self.find_cycles()
        if cycles:
            self._log(f"Warning: Found {len(cycles)} cycles in the execution graph")
            for index, cycle in enumerate(cycles, start=1):
                self._log(f"Cycle {index}: {' -> '.join(cycle)}")
        orphans = self.find_orphans()
        if orphans:
            self._log(f"Found {len(orphans)} unconnected element(s): {', '.join(orphans)}")

    def _validate_graph(self) -> None:
        """Check every element before anything runs; the first failure aborts"""
        for element in self._elements.values():
            definition = self.registry.get(element.type)
            if definition is None:
                raise GraphValidationError(
                    f'Unknown block type "{element.type}" for element {element.id} - '
                    "ensure all required blocks are registered",
                    element_id=element.id,
                    block_type=element.type,
                )
            try:
                message = definition.validate(element.props)
            except Exception as e:
                raise GraphValidationError(
                    f"Validation error in element {element.id}: {e}",
                    element_id=element.id,
                    block_type=element.type,
                ) from e
            if message:
                raise GraphValidationError(
                    f"Validation error in element {element.id}: {message}",
                    element_id=element.id,
                    block_type=element.type,
                )

    async def _traverse(self, root_id: ElementID) -> None:
        """
        Depth-first traversal from one entry point

        The traversal keeps its own stack of in-flight element invocations.
        Each emission records its value, then every matching outgoing
        connection is visited (and fully resolved) before the emitting
        block is resumed.
        """
        root = await self._begin(root_id)
        if root is None:
            return
        stack: List[_Frame] = [root]
        try:
            while stack:
                frame = stack[-1]

                if frame.pending:
                    if not self._active:
                        frame.pending.clear()
                        continue
                    connection = frame.pending.popleft()
                    self._notify('on_connection_traversed', connection.id)
                    child = await self._begin(connection.to_id)
                    if child is not None:
                        stack.append(child)
                    continue

                emission = await self._advance(frame)
                if emission is _EXHAUSTED:
                    stack.pop()
                    await frame.source.close()
                    await self._complete(frame)
                    continue

                self._element_states.setdefault(frame.element.id, {})[emission.port] = emission.value
                frame.pending.extend(
                    connection for connection in self._outgoing[frame.element.id]
                    if connection.from_output is None or connection.from_output == emission.port
                )
        finally:
            for frame in reversed(stack):
                try:
                    await frame.source.close()
                except Exception as e:
                    logger.debug(f"Error closing block logic for element {frame.element.id}: {e}")

    async def _begin(self, element_id: ElementID) -> Optional[_Frame]:
        """Visit prologue: budget, dedup, context, and start of block logic"""
        self._step_count += 1
        if not self._active:
            return None
        if self._step_count > self._options.max_steps:
            raise BudgetExceededError(self._step_count, self._options.max_steps)
        if element_id in self._processed:
            return None

        element = self._elements.get(element_id)
        if element is None:
            raise GraphValidationError(f"Element not found: {element_id}", element_id=element_id)
        definition = self.registry.get(element.type)
        if definition is None:
            raise GraphValidationError(
                f"Unknown block type: {element.type} for element {element_id}",
                element_id=element_id,
                block_type=element.type,
            )

        self._processed[element_id] = None
        self._log(f"Executing element {element_id} ({element.type})")
        self._notify('on_element_start', element_id)

        context = self._create_context(element)
        try:
            source = _EmissionSource(definition.execute(context))
        except Exception as e:
            raise self._block_failure(element, e) from e
        return _Frame(element=element, definition=definition, source=source)

    async def _advance(self, frame: _Frame) -> Any:
        """Run a block until its next emission"""
        element = frame.element
        timeout_ms = self._options.block_timeout
        try:
            item = await frame.source.next(timeout_ms / 1000)
            if item is _EXHAUSTED:
                return item
            return check_emission(item)
        except asyncio.TimeoutError:
            message = f"Block execution timeout ({timeout_ms:g}ms) for element {element.id}"
            self._log(f"Error executing element {element.id} ({element.type}): {message}")
            raise ExecutionTimeoutError(message, timeout_ms=timeout_ms, element_id=element.id)
        except Exception as e:
            raise self._block_failure(element, e) from e

    async def _complete(self, frame: _Frame) -> None:
        if self._options.step_delay > 0 and self._active:
            await asyncio.sleep(self._options.step_delay / 1000)
        self._log(f"Completed element {frame.element.id}")
        self._notify('on_element_complete', frame.element.id)

    def _block_failure(self, element: ElementData, error: Exception) -> BlockExecutionError:
        message = f"Error executing element {element.id} ({element.type}): {error}"
        self._log(message)
        logger.debug(message, exc_info=True)
        return BlockExecutionError(message, element_id=element.id, block_type=element.type)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_context(self, element: ElementData) -> ExecutionContext:
        self._element_states.setdefault(element.id, {})
        inputs = self._collect_inputs(element.id)
        # Static props win over propagated values
        inputs.update(safe_copy_props(element.props))
        return ExecutionContext(
            element_id=element.id,
            block_type=element.type,
            inputs=inputs,
            props=element.props,
            element_states=self._element_states,
            connections=self._connection_map(),
            variables=self._variables,
            log=self._log,
        )

    def _collect_inputs(self, element_id: ElementID) -> Dict[str, Any]:
        """
        Latest upstream values, keyed by target port

        A connection naming its source port takes that port's value; other
        connections take the most recently added entry of the upstream slot.
        """
        inputs: Dict[str, Any] = {}
        for connection in self._incoming[element_id]:
            upstream = self._element_states.get(connection.from_id)
            if not upstream:
                continue
            if connection.from_output is not None and connection.from_output in upstream:
                value = upstream[connection.from_output]
            else:
                value = next(reversed(upstream.values()))
            inputs[connection.to_input or DEFAULT_INPUT_PORT] = value
        return inputs

    def _connection_map(self) -> Dict[ElementID, List[ElementID]]:
        return {
            element_id: [connection.to_id for connection in outgoing]
            for element_id, outgoing in self._outgoing.items()
            if outgoing
        }

    def _log(self, message: str, details: Optional[str] = None) -> None:
        """Append a timestamped entry to the run log"""
        entry = f"[{_timestamp()}] {message}"
        if details:
            entry = f"{entry} - {details}"
        self._execution_log.append(entry)
        logger.debug(entry)
        self._notify('on_log', entry)

    def _notify(self, callback_name: str, *args: Any) -> None:
        _invoke(getattr(self._options, callback_name), *args)


async def execute_program(
    elements: Mapping[ElementID, Union[ElementData, Mapping[str, Any]]],
    connections: Mapping[ConnectionID, Union[ConnectionData, Mapping[str, Any]]],
    options: Union[ExecutionOptions, Mapping[str, Any], None] = None,
    registry: Optional[BlockRegistry] = None,
    variables: Optional[Mapping[str, Any]] = None,
) -> ExecutionState:
    """
    Build an engine for the graph and run it once

    Args:
        elements: element id -> element
        connections: connection id -> connection
        options: Run options
        registry: Block registry (defaults to one with the built-in blocks)
        variables: Runtime variables for the run

    Returns:
        Snapshot of the finished run
    """
    if registry is None:
        from .nodes import create_default_registry
        registry = create_default_registry()
    engine = ExecutionEngine(elements, connections, registry)
    return await engine.execute(options, variables=variables)
