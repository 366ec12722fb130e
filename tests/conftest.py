"""
Shared fixtures for Blockflow tests
"""
import asyncio

import pytest

from blockflow.core.execution.nodes import create_default_registry
from blockflow.core.execution.registry import BlockRegistry
from blockflow.core.types import ConnectionData, ElementData


def element(element_id, block_type, **props):
    """ElementData with props given as keyword arguments"""
    return ElementData(id=element_id, type=block_type, props=props)


def connect(connection_id, from_id, to_id, **ports):
    return ConnectionData(id=connection_id, from_id=from_id, to_id=to_id, **ports)


def graph(elements, connections=()):
    """(elements, connections) dicts keyed by id, as the engine takes them"""
    return {e.id: e for e in elements}, {c.id: c for c in connections}


@pytest.fixture
def registry():
    """Isolated registry with a few small test blocks"""
    registry = BlockRegistry()

    @registry.block("source", display_name="Source", category="data", outputs=["out"])
    async def source(ctx):
        yield ctx.emit("out", ctx.get_input("value", 1))

    @registry.block("relay", display_name="Relay", category="control", inputs=["input"], outputs=["out"])
    async def relay(ctx):
        yield ctx.emit("out", ctx.get_input("input"))

    @registry.block("sink", display_name="Sink", category="io", inputs=["input"])
    async def sink(ctx):
        ctx.set_value("received", ctx.inputs.get("input"))

    @registry.block("repeat", display_name="Repeat", category="control", outputs=["item"])
    async def repeat(ctx):
        for i in range(ctx.get_input("times", 3)):
            yield ctx.emit("item", i)

    @registry.block("sleeper", display_name="Sleeper", category="control", outputs=["out"])
    async def sleeper(ctx):
        await asyncio.sleep(ctx.get_input("seconds", 1))
        yield ctx.emit("out", "awake")

    return registry


@pytest.fixture
def builtin_registry():
    """Fresh registry with the built-in block library"""
    return create_default_registry()
