"""
Structural helpers for schema-less JSON values (node parameters, run data).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Union

JSONValue = Union[None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]]


def deep_clone(value: Any) -> Any:
    """Copy a JSON value so no container is shared with the input."""
    if isinstance(value, dict):
        return {str(k): deep_clone(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_clone(v) for v in value]
    return value


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality. Booleans never equal numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict):
        if not isinstance(b, dict) or a.keys() != b.keys():
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


def walk_strings(value: Any, fn: Callable[[str], Any]) -> Any:
    """Return a copy of ``value`` with ``fn`` applied to every string leaf."""
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, dict):
        return {k: walk_strings(v, fn) for k, v in value.items()}
    if isinstance(value, list):
        return [walk_strings(v, fn) for v in value]
    return value
