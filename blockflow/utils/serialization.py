"""
Helpers for turning engine values into JSON-safe structures
"""
import math
from typing import Any, Mapping


def make_serializable(value: Any, max_depth: int = 8) -> Any:
    """
    Convert a value to be JSON-serializable.
    Filters out complex objects that can't be serialized.
    
    Args:
        value: Any Python value
        max_depth: Maximum recursion depth
        
    Returns:
        JSON-serializable version of the value
    """
    if max_depth <= 0:
        return "<max depth reached>"
    
    # Basic types are already serializable
    if value is None or isinstance(value, (bool, int, str)):
        return value
    
    # Strict JSON has no representation for inf/nan
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return value
    
    # Handle lists, tuples and sets
    if isinstance(value, (list, tuple, set, frozenset)):
        return [make_serializable(item, max_depth - 1) for item in value]
    
    # Handle dicts and other mappings
    if isinstance(value, Mapping):
        return {
            str(k): make_serializable(v, max_depth - 1)
            for k, v in value.items()
        }
    
    # For complex objects, return a placeholder with type info
    type_name = type(value).__name__
    module = type(value).__module__
    
    # Check if it has a string representation that's useful
    try:
        str_repr = str(value)
    except Exception:
        str_repr = ''
    if str_repr and len(str_repr) < 200 and not str_repr.startswith('<'):
        return f"<{type_name}: {str_repr}>"
    
    return f"<{module}.{type_name}>"
