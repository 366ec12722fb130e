"""
Program documents
Load and save the editor's {"elements": [...], "connections": [...]} format
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union
import json

from ..utils.logger import get_logger
from .types import ConnectionData, ConnectionID, ElementData, ElementID

logger = get_logger(__name__)

PathLike = Union[str, Path]


def _entries(data: Mapping[str, Any], key: str) -> Iterable[Tuple[str, Any]]:
    """(label, entry) pairs from a list, or from a dict keyed by id"""
    value = data.get(key, [])
    if isinstance(value, Mapping):
        return ((f"{key} {entry_id!r}", entry) for entry_id, entry in value.items())
    if isinstance(value, list):
        return ((f"{key}[{index}]", entry) for index, entry in enumerate(value))
    raise ValueError(f"Program must contain a {key} array")


@dataclass
class Program:
    """An editor document: elements and connections, in document order"""
    elements: Dict[ElementID, ElementData] = field(default_factory=dict)
    connections: Dict[ConnectionID, ConnectionData] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Program":
        """
        Parse a program document

        Args:
            data: Mapping with "elements" and "connections", each a list of
                entries or a dict of entries keyed by id

        Returns:
            Program

        Raises:
            ValueError: If an entry is malformed or an id is used twice
        """
        if not isinstance(data, Mapping):
            raise ValueError("Program must be an object")

        program = cls()
        for label, entry in _entries(data, 'elements'):
            try:
                element = ElementData.from_dict(entry)
            except (ValueError, AttributeError) as e:
                raise ValueError(f"Invalid element at {label}: {e}") from e
            if element.id in program.elements:
                raise ValueError(f"Duplicate element id: {element.id}")
            program.elements[element.id] = element

        for label, entry in _entries(data, 'connections'):
            try:
                connection = ConnectionData.from_dict(entry)
            except ValueError as e:
                raise ValueError(f"Invalid connection at {label}: {e}") from e
            if connection.id in program.connections:
                raise ValueError(f"Duplicate connection id: {connection.id}")
            program.connections[connection.id] = connection

        return program

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            'elements': [element.to_dict() for element in self.elements.values()],
            'connections': [connection.to_dict() for connection in self.connections.values()],
        }

    def block_types(self) -> List[str]:
        """Distinct block types used, in first-use order"""
        return list(dict.fromkeys(element.type for element in self.elements.values()))


def load_program(path: PathLike) -> Program:
    """
    Read a program document from a JSON file

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON or not a valid program
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    program = Program.from_dict(data)
    logger.debug(f"Loaded {path}: {len(program.elements)} elements, {len(program.connections)} connections")
    return program


def save_program(program: Program, path: PathLike) -> None:
    """Write a program document as indented JSON"""
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(program.to_dict(), f, indent=2)
    logger.debug(f"Saved {path}")
