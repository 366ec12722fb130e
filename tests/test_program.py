"""
Tests for program documents, static program checks, serialization, config and logging
"""
import json
import logging
import math

import pytest

from blockflow.core.config import Config
from blockflow.core.execution.report import check_program
from blockflow.core.program import Program, load_program, save_program
from blockflow.core.types import ConnectionData, ElementData, ExecutionState, RunStatus
from blockflow.utils.logger import LOG_FORMAT, get_logger, setup_logger
from blockflow.utils.serialization import make_serializable

from conftest import connect, element, graph

DOCUMENT = {
    "elements": [
        {"id": "n", "type": "variable", "x": 10, "y": 20, "props": {"value": 3}},
        {"id": "p", "type": "print", "position": {"x": 200, "y": 20}},
    ],
    "connections": [
        {"id": "c1", "fromId": "n", "toId": "p", "toInput": "message"},
    ],
}


class TestGraphData:
    """ElementData and ConnectionData"""

    def test_element_from_dict(self):
        data = ElementData.from_dict({"id": "p", "type": "print", "position": {"x": 5, "y": 6}})
        assert (data.x, data.y) == (5, 6)
        assert dict(data.props) == {}

    def test_element_props_are_read_only(self):
        data = element("a", "add", a=1)
        with pytest.raises(TypeError):
            data.props["a"] = 2

    @pytest.mark.parametrize("fields", [
        {"id": "", "type": "add"},
        {"id": "a", "type": None},
        {"id": "a", "type": "add", "x": "left"},
        {"id": "a", "type": "add", "props": [1]},
    ])
    def test_invalid_elements(self, fields):
        with pytest.raises(ValueError):
            ElementData(**fields)

    def test_connection_camel_case(self):
        connection = ConnectionData.from_dict({"id": "c", "fromId": "a", "toId": "b", "fromOutput": "sum"})
        assert connection.from_output == "sum"
        assert connection.to_dict() == {"id": "c", "from_id": "a", "to_id": "b", "from_output": "sum"}

    def test_self_loop_rejected(self):
        with pytest.raises(ValueError, match="to itself"):
            ConnectionData(id="c", from_id="a", to_id="a")


class TestProgram:
    """Program documents"""

    def test_from_dict(self):
        program = Program.from_dict(DOCUMENT)
        assert list(program.elements) == ["n", "p"]
        assert program.elements["p"].x == 200
        assert program.connections["c1"].to_input == "message"
        assert program.block_types() == ["variable", "print"]

    def test_from_dict_keyed_by_id(self):
        program = Program.from_dict({
            "elements": {"a": {"id": "a", "type": "add"}},
            "connections": {},
        })
        assert list(program.elements) == ["a"]

    def test_duplicate_ids(self):
        with pytest.raises(ValueError, match="Duplicate element id: a"):
            Program.from_dict({"elements": [{"id": "a", "type": "add"}, {"id": "a", "type": "print"}]})

    def test_malformed_entry(self):
        with pytest.raises(ValueError, match=r"Invalid element at elements\[0\]"):
            Program.from_dict({"elements": ["not an object"]})
        with pytest.raises(ValueError, match="must contain a connections array"):
            Program.from_dict({"elements": [], "connections": "nope"})

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "program.json"
        save_program(Program.from_dict(DOCUMENT), path)

        saved = json.loads(path.read_text())
        assert saved["connections"] == [{"id": "c1", "from_id": "n", "to_id": "p", "to_input": "message"}]

        loaded = load_program(path)
        assert loaded.elements["n"].props["value"] == 3
        assert loaded.to_dict() == saved

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_program(path)


class TestCheckProgram:
    """Static program checks"""

    def test_valid_program(self, builtin_registry):
        program = Program.from_dict(DOCUMENT)
        report = check_program(program.elements, program.connections, builtin_registry)
        assert report.is_valid
        assert report.entry_points == ["n"]
        assert report.cycles == []
        assert report.orphans == []

    def test_collects_every_problem(self, registry):
        elements, connections = graph(
            [element("A", "relay"), element("B", "relay"), element("X", "bogus"), element("Y", "missing")],
            [connect("c1", "A", "B"), connect("c2", "B", "A")],
        )
        report = check_program(elements, connections, registry)

        assert not report.is_valid
        assert report.errors == [
            'X: Block type "bogus" is not registered',
            'Y: Block type "missing" is not registered',
        ]
        assert report.cycles == [["A", "B", "A"]]
        assert report.orphans == ["X", "Y"]
        assert "Cycle: A -> B -> A" in report.warnings

    def test_construction_problem_is_an_error(self, registry):
        elements, connections = graph([element("A", "source")], [connect("c1", "A", "gone")])
        report = check_program(elements, connections, registry)
        assert report.to_dict()["errors"] == ["Connection references non-existent to_id: gone"]


class TestSerialization:
    """JSON-safe run snapshots"""

    def test_make_serializable(self):
        value = {"inf": math.inf, "nan": math.nan, "items": (1, {2}), 3: object}
        result = make_serializable(value)
        assert result["inf"] == "Infinity"
        assert result["nan"] == "NaN"
        assert result["items"] == [1, [2]]
        assert result["3"].startswith("<")

    def test_depth_limit(self):
        nested = [[[["deep"]]]]
        assert make_serializable(nested, max_depth=2) == [["<max depth reached>"]]

    def test_state_to_dict(self):
        state = ExecutionState(
            element_states={"d": {"quotient": math.inf}},
            status=RunStatus.COMPLETED,
            start_time=10.0,
            end_time=10.5,
            processed_elements={"b", "a"},
        )
        data = state.to_dict()
        assert data["status"] == "completed"
        assert data["duration"] == 0.5
        assert data["processed_elements"] == ["a", "b"]
        assert data["element_states"] == {"d": {"quotient": "Infinity"}}
        json.dumps(data)


class TestConfig:
    """Environment configuration"""

    def test_defaults_are_valid(self):
        assert Config.validate() is True

    def test_out_of_range_value(self, monkeypatch):
        monkeypatch.setattr(Config, "MAX_STEPS", 0)
        assert Config.validate() is False


class TestLogging:
    """Module loggers"""

    def test_logger_named_after_module(self):
        logger = get_logger("blockflow.core.execution.engine")
        assert logger.name == "blockflow.engine"
        assert logger.propagate is False
        assert logger.handlers[0].formatter._fmt == LOG_FORMAT

    def test_setup_is_idempotent(self):
        logger = setup_logger("blockflow.logging_test", level=logging.WARNING)
        assert setup_logger("blockflow.logging_test") is logger
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
