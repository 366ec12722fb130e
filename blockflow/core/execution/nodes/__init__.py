"""
Built-in block library for the execution engine
"""
from ..registry import BlockRegistry
from . import control, data, io, logic, math

BLOCK_MODULES = (data, control, math, logic, io)


def register_builtin_blocks(registry: BlockRegistry) -> BlockRegistry:
    """
    Register every built-in block type into a registry

    Registering twice is harmless: identical definitions are accepted as
    no-ops by the registry.

    Args:
        registry: Registry to populate

    Returns:
        The same registry
    """
    for module in BLOCK_MODULES:
        module.register(registry)
    return registry


def create_default_registry() -> BlockRegistry:
    """New registry holding the built-in blocks"""
    return register_builtin_blocks(BlockRegistry())


__all__ = [
    'BLOCK_MODULES',
    'register_builtin_blocks',
    'create_default_registry',
]
