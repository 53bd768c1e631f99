"""
Dotted field-path resolution against structured objects.

Paths look like "address.city". A leading "$." (JSONPath root marker) is
ignored. Each segment is looked up as a key on mappings and as an attribute on
other objects. Array indices and wildcards are not supported.

Validated objects are reached through a small FieldAccessor capability
(get/set by path) instead of ad-hoc reflection. Plain dicts and ordinary
objects get an accessor automatically via accessor_for(); a class that wants
full control implements FieldAccessor itself.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, MutableMapping
from typing import Any, List


class _Absent:
    """Marker for "no value at this path" (distinct from an explicit None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def split_path(path: str) -> List[str]:
    """Split a field path into segments, dropping a leading "$." marker."""
    if not path:
        return []
    if path.startswith("$."):
        path = path[2:]
    elif path == "$":
        return []
    return [segment for segment in path.split(".") if segment]


def _step(node: Any, segment: str) -> Any:
    if node is None or node is ABSENT:
        return ABSENT
    if isinstance(node, Mapping):
        return node.get(segment, ABSENT)
    if isinstance(node, (str, bytes, int, float, bool, list, tuple, set, frozenset)):
        return ABSENT
    if segment.startswith("_"):
        # Private attributes are not addressable by path
        return ABSENT
    return getattr(node, segment, ABSENT)


def resolve(root: Any, path: str) -> Any:
    """
    Resolve a dotted path against a nested mapping or object.

    Args:
        root: Object to read from
        path: Dotted field path, optionally prefixed with "$."

    Returns:
        The value at the path (which may be None), or ABSENT if any segment
        is missing
    """
    segments = split_path(path)
    if not segments:
        return ABSENT

    current = root
    for segment in segments:
        current = _step(current, segment)
        if current is ABSENT:
            return ABSENT
    return current


def set_nested_value(target: MutableMapping, path: str, value: Any) -> None:
    """
    Write value at path, creating intermediate dicts on demand.

    An existing value at the final segment is overwritten.

    Raises:
        ValueError: If the path is empty
        TypeError: If an intermediate node exists but is not a mapping
    """
    segments = split_path(path)
    if not segments:
        raise ValueError(f"Cannot set a value at empty path: {path!r}")

    current = target
    for segment in segments[:-1]:
        if segment not in current or current[segment] is None:
            current[segment] = {}
        current = current[segment]
        if not isinstance(current, MutableMapping):
            raise TypeError(
                f"Cannot set {path!r}: segment {segment!r} holds {type(current).__name__}, not a mapping"
            )
    current[segments[-1]] = value


class FieldAccessor(ABC):
    """Read/write access to an object's fields by dotted path."""

    @abstractmethod
    def get(self, path: str) -> Any:
        """Return the value at path, or ABSENT."""

    @abstractmethod
    def set(self, path: str, value: Any) -> None:
        """Write value at path."""


class MappingAccessor(FieldAccessor):
    """Accessor over a (possibly nested) mapping."""

    def __init__(self, data: Mapping):
        self._data = data

    def get(self, path: str) -> Any:
        return resolve(self._data, path)

    def set(self, path: str, value: Any) -> None:
        set_nested_value(self._data, path, value)

    def __repr__(self) -> str:
        return f"MappingAccessor({self._data!r})"


class ObjectAccessor(FieldAccessor):
    """Accessor over an object with attributes (mapping children allowed)."""

    def __init__(self, obj: Any):
        self._obj = obj

    def get(self, path: str) -> Any:
        return resolve(self._obj, path)

    def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        if not segments:
            raise ValueError(f"Cannot set a value at empty path: {path!r}")

        current = self._obj
        for i, segment in enumerate(segments[:-1]):
            if isinstance(current, MutableMapping):
                set_nested_value(current, ".".join(segments[i:]), value)
                return
            child = getattr(current, segment, None)
            if child is None:
                child = {}
                setattr(current, segment, child)
            current = child

        if isinstance(current, MutableMapping):
            current[segments[-1]] = value
        else:
            setattr(current, segments[-1], value)

    def __repr__(self) -> str:
        return f"ObjectAccessor({self._obj!r})"


def accessor_for(obj: Any) -> FieldAccessor:
    """Return the FieldAccessor for obj (obj itself if it already is one)."""
    if isinstance(obj, FieldAccessor):
        return obj
    if isinstance(obj, Mapping):
        return MappingAccessor(obj)
    return ObjectAccessor(obj)
