"""
Value coercion shared by the built-in blocks

Programs saved by the editor carry loosely typed props (numbers as strings,
booleans as numbers), so the built-in blocks convert values the same
forgiving way the editor does.
"""
from typing import Any, Union
import json
import math

Number = Union[int, float]


def to_number(value: Any, default: Number = 0) -> Number:
    """
    Convert a value to a number

    None gives ``default``; booleans give 1/0; numeric strings are parsed
    (blank strings give 0); anything else that cannot be read as a number
    gives NaN.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def to_text(value: Any) -> str:
    """String form used in block logs and render content"""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (list, tuple, dict)):
        return to_json(value)
    return str(value)


def to_json(value: Any) -> str:
    """Compact JSON for log lines; unserializable values fall back to str()"""
    try:
        return json.dumps(value, default=str, separators=(',', ':'))
    except ValueError:
        return to_text(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def loose_equals(a: Any, b: Any) -> bool:
    """Equality that treats a number and its string spelling as equal"""
    if a is None or b is None:
        return a is None and b is None
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, bool) or isinstance(b, bool):
        return to_number(a) == to_number(b) if is_number(a) or is_number(b) else a == b
    return a == b


def strict_equals(a: Any, b: Any) -> bool:
    """Equality that also requires both values to be of the same kind"""
    if is_number(a) and is_number(b):
        return a == b
    return type(a) is type(b) and a == b
