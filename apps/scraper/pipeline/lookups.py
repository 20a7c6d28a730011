"""
Ordered fallback lookups.

A lookup is a pure function taking a source object and returning a value or
None. Lookups are evaluated in order and the first non-empty result wins.
"""

from typing import Any, Callable, Iterable

Lookup = Callable[[Any], Any]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def first_present(source: Any, lookups: Iterable[Lookup]) -> Any:
    """Return the first non-empty value produced by `lookups`, or None."""
    for lookup in lookups:
        try:
            value = lookup(source)
        except (KeyError, IndexError, TypeError, AttributeError):
            continue
        if not is_empty(value):
            return value
    return None


def dig(obj: Any, path: str) -> Any:
    """Follow a dotted key path through nested dicts; None when absent."""
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current

