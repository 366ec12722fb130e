"""
Static checks for a program, without running it
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from ..types import ConnectionData, ConnectionID, ElementData, ElementID
from .engine import ExecutionEngine
from .errors import ConstructionError
from .registry import BlockRegistry


@dataclass
class ProgramReport:
    """Findings for one program: errors block a run, warnings don't"""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    entry_points: List[ElementID] = field(default_factory=list)
    cycles: List[List[ElementID]] = field(default_factory=list)
    orphans: List[ElementID] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'entry_points': list(self.entry_points),
            'cycles': [list(cycle) for cycle in self.cycles],
            'orphans': list(self.orphans),
        }


def check_program(
    elements: Mapping[ElementID, Union[ElementData, Mapping[str, Any]]],
    connections: Mapping[ConnectionID, Union[ConnectionData, Mapping[str, Any]]],
    registry: BlockRegistry,
) -> ProgramReport:
    """
    Check a program the way execute() would, collecting every problem

    Unlike the engine's validation gate, which stops at the first bad
    element, every element is checked with registry.validate_block().

    Args:
        elements: element id -> element
        connections: connection id -> connection
        registry: Registry to resolve block types against

    Returns:
        ProgramReport
    """
    report = ProgramReport()
    try:
        engine = ExecutionEngine(elements, connections, registry)
    except ConstructionError as e:
        report.errors.append(str(e))
        return report

    for element in engine.elements.values():
        result = registry.validate_block(element.type, element.props)
        report.errors.extend(f"{element.id}: {message}" for message in result.errors)
        report.warnings.extend(f"{element.id}: {message}" for message in result.warnings)

    report.entry_points = engine.find_entry_points()
    report.cycles = engine.find_cycles()
    report.orphans = engine.find_orphans()
    if engine.elements and not report.entry_points:
        report.warnings.append("No entry points found - execution starts at the first element")
    for cycle in report.cycles:
        report.warnings.append(f"Cycle: {' -> '.join(cycle)}")
    return report
