"""
Conversion registry for CouchDB values.

JSON and Python types do not line up: CouchDB sends timestamps as text or
epoch numbers, node names as strings, and expects booleans where Python
code happily passes 0 or "yes".  This module keeps two tables of
converters, keyed by a type tag:

- to_native: wire (JSON) value -> Python value, used on answers
- to_wire:   Python value -> wire (JSON) value, used on requests

A converter is called as ``converter(couch, field_name, value)``.  The couch
argument gives converters access to the client, which the "node" tag needs
to look up Node instances.

Example:
    >>> registry = ConversionRegistry()
    >>> job = {"start_time": "2024-03-01T10:00:00Z", "node": "couchdb@n1"}
    >>> registry.apply_to_native(couch, job, "isotime", "start_time", "update_time")
    >>> job["start_time"].year
    2024

Invariants:
    - Converting a field which is not present is a no-op; it is never added
    - An unknown tag is a no-op, not an error
    - Built-ins are seeded first, so user converters for the same tag win
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, MutableMapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable

import httpx

from .node import Node
from .version import ApiVersion

Converter = Callable[[Any, str, Any], Any]


def _isotime(couch: Any, name: str, value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _epoch(couch: Any, name: str, value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _epoch_to_wire(couch: Any, name: str, value: Any) -> Any:
    if not isinstance(value, datetime):
        return value
    stamp = value.timestamp()
    return int(stamp) if stamp.is_integer() else stamp


DEFAULT_TO_NATIVE: dict[str, Converter] = {
    "abs_uri": lambda couch, name, value: httpx.URL(value),
    "epoch": _epoch,
    "isotime": _isotime,
    "mailtime": lambda couch, name, value: parsedate_to_datetime(value),
    "version": lambda couch, name, value: ApiVersion.parse(value),
    "node": lambda couch, name, value: couch.node(value),
}

DEFAULT_TO_WIRE: dict[str, Converter] = {
    "bool": lambda couch, name, value: bool(value),
    "uri": lambda couch, name, value: str(value),
    "node": lambda couch, name, value: value.name if isinstance(value, Node) else None,
    "abs_uri": lambda couch, name, value: str(value),
    "version": lambda couch, name, value: str(value),
    "isotime": lambda couch, name, value: value.isoformat()
    if isinstance(value, datetime)
    else value,
    "epoch": _epoch_to_wire,
}


class ConversionRegistry:
    """Two tag-keyed converter tables, one per direction.

    Example:
        >>> registry = ConversionRegistry(to_native={"money": parse_money})
        >>> registry.register_to_wire("money", format_money)
    """

    def __init__(
        self,
        to_native: Mapping[str, Converter] | None = None,
        to_wire: Mapping[str, Converter] | None = None,
    ) -> None:
        """Initialize with the built-ins, overridden by the given tables.

        Args:
            to_native: Extra or replacement wire-to-Python converters
            to_wire: Extra or replacement Python-to-wire converters
        """
        self._to_native: dict[str, Converter] = {**DEFAULT_TO_NATIVE, **(to_native or {})}
        self._to_wire: dict[str, Converter] = {**DEFAULT_TO_WIRE, **(to_wire or {})}
        self._lock = threading.Lock()

    def register_to_native(self, tag: str, converter: Converter) -> None:
        """Install or replace a wire-to-Python converter."""
        with self._lock:
            self._to_native[tag] = converter

    def register_to_wire(self, tag: str, converter: Converter) -> None:
        """Install or replace a Python-to-wire converter."""
        with self._lock:
            self._to_wire[tag] = converter

    def has_to_native(self, tag: str) -> bool:
        return tag in self._to_native

    def has_to_wire(self, tag: str) -> bool:
        return tag in self._to_wire

    def to_native_tags(self) -> list[str]:
        return sorted(self._to_native)

    def to_wire_tags(self) -> list[str]:
        return sorted(self._to_wire)

    def apply_to_native(
        self,
        couch: Any,
        data: MutableMapping[str, Any],
        tag: str,
        *keys: str,
    ) -> MutableMapping[str, Any]:
        """Convert the named fields of data in place into Python values.

        Args:
            couch: Passed to each converter
            data: Structure to modify
            tag: Converter tag
            *keys: Names of the fields to convert; absent ones are skipped

        Returns:
            The same data mapping
        """
        converter = self._to_native.get(tag)
        if converter is None:
            return data

        for key in keys:
            if key in data:
                data[key] = converter(couch, key, data[key])
        return data

    def apply_to_wire(
        self,
        couch: Any,
        data: MutableMapping[str, Any],
        tag: str,
        *keys: str,
    ) -> MutableMapping[str, Any]:
        """Convert the named fields of data in place into JSON values.

        With the "bool" tag, every present field ends up a real boolean,
        whatever the (possibly user supplied) converter returned.
        """
        converter = self._to_wire.get(tag)
        if converter is None:
            return data

        for key in keys:
            if key in data:
                data[key] = converter(couch, key, data[key])

        if tag == "bool":
            for key in keys:
                if key in data:
                    data[key] = bool(data[key])
        return data

    def list_to_native(
        self,
        couch: Any,
        name: str,
        tag: str,
        values: Iterable[Any],
    ) -> list[Any]:
        """Convert a sequence of wire values, dropping those which convert to None."""
        converter = self._to_native.get(tag)
        if converter is None:
            return list(values)

        converted = (converter(couch, name, value) for value in values)
        return [value for value in converted if value is not None]
