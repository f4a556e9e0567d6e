"""
Field path resolution against JSON documents.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from shared.errors import MalformedInputError

# Inputs treated as raw encoded JSON rather than already-parsed trees
RAW_DOCUMENT_TYPES = (bytes, bytearray, memoryview, str)

NULLABLE_VALID_KEY = "Valid"

# Value field names of the wrapped nullable types (NullTime, NullString, ...)
NULLABLE_VALUE_KEYS = frozenset({
    "Time", "String", "Bool", "Byte", "Int16", "Int32", "Int64", "Float64", "V",
})


class _Absent:
    """Marker for a path that does not exist in a document."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass(frozen=True)
class Nullable:
    """
    Value that may be explicitly unset.

    Encoded in documents as a two-key object holding a boolean ``Valid`` flag
    and the inner value, e.g. ``{"Time": "2010-11-01T02:04:05Z", "Valid": true}``.
    """

    valid: bool
    value: Any = None

    @classmethod
    def from_json(cls, obj: Any) -> Optional["Nullable"]:
        """Recognise a nullable wrapper, or return None for any other value."""
        if not isinstance(obj, dict) or len(obj) != 2:
            return None

        valid = obj.get(NULLABLE_VALID_KEY)
        if not isinstance(valid, bool):
            return None

        inner_key = next(key for key in obj if key != NULLABLE_VALID_KEY)
        if inner_key not in NULLABLE_VALUE_KEYS:
            return None

        return cls(valid=valid, value=obj[inner_key])

    def unwrap(self) -> Any:
        return self.value if self.valid else ABSENT


def _reject_constant(token: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {token}")


def load_json(raw: Any) -> Any:
    """Decode JSON text, rejecting the NaN and Infinity extensions."""
    return json.loads(raw, parse_constant=_reject_constant)


def parse_document(document: Any) -> Any:
    """
    Turn a document into a parsed JSON tree.

    bytes, bytearray, memoryview and str are decoded as JSON text; anything
    else is assumed to be parsed already and is returned unchanged.
    """
    if not isinstance(document, RAW_DOCUMENT_TYPES):
        return document

    if isinstance(document, memoryview):
        document = document.tobytes()

    try:
        return load_json(document)
    except ValueError as e:
        raise MalformedInputError(
            "Document is not valid JSON",
            details={"error": str(e)}
        ) from e


def _list_index(segment: str) -> Optional[int]:
    if segment.startswith("[") and segment.endswith("]"):
        segment = segment[1:-1]
    if segment.isascii() and segment.isdigit():
        return int(segment)
    return None


def resolve_path(document: Any, path: str) -> Any:
    """
    Locate the value at a dotted path such as ``user.address.city``.

    List elements are addressed by index (``items.0.name`` or
    ``items.[0].name``). Returns ABSENT when any segment is missing; a JSON
    null is returned as None.
    """
    current = document

    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, list):
            index = _list_index(segment)
            if index is None or index >= len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT

    return current


def resolve_value(document: Any, path: str) -> Any:
    """Resolve a path and unwrap a nullable wrapper found there."""
    value = resolve_path(document, path)

    nullable = Nullable.from_json(value)
    if nullable is not None:
        return nullable.unwrap()

    return value
