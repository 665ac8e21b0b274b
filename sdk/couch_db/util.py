"""Small helpers shared by the endpoint modules."""

from __future__ import annotations

from typing import Any


def flat(*items: Any) -> list[Any]:
    """Flatten arguments which may each be None, a value, or a list/tuple of values."""
    result: list[Any] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, (list, tuple)):
            result.extend(flat(*item))
        else:
            result.append(item)
    return result


def to_int(value: Any) -> int:
    """Force a value into a JSON integer; CouchDB rejects "10" where 10 is expected."""
    if isinstance(value, bool):
        raise TypeError(f"Expected an integer, got {value!r}")
    return int(value)
