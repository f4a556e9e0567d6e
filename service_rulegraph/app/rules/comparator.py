"""
Value comparison for rule evaluation.

Ordering operators bring both sides into a common numeric form, trying JSON
numbers, RFC 3339 timestamps (as nanoseconds since the epoch) and numeric
strings in that order. Equality operators compare canonical JSON encodings
of the raw values instead and never coerce: the number 13 and the literal
"13" are different values.
"""

import json
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from shared.errors import CoercionError, UnknownOperationError


class Operation(str, Enum):
    """Comparison operators."""
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    GREATER_THAN = "greater_than"
    LOWER_THAN = "lower_than"

    @classmethod
    def parse(cls, value: Any) -> "Operation":
        """Return the operation named by value or raise UnknownOperationError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownOperationError(value) from None


_FLOAT_LITERAL = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE
)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?([Zz]|[+-]\d{2}:\d{2})"
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS_PER_SECOND = 10 ** 9


def parse_float(text: Any) -> Optional[float]:
    """Parse a floating point literal, or return None."""
    if not isinstance(text, str) or _FLOAT_LITERAL.fullmatch(text) is None:
        return None
    return float(text)


def datetime_to_nanos(moment: datetime) -> int:
    """Nanoseconds since the Unix epoch; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86400 + delta.seconds) * _NANOS_PER_SECOND + delta.microseconds * 1000


def parse_rfc3339(text: Any) -> Optional[int]:
    """Parse an RFC 3339 timestamp into nanoseconds since the epoch, or None."""
    if not isinstance(text, str):
        return None

    match = _RFC3339.fullmatch(text)
    if match is None:
        return None

    year, month, day, hour, minute, second, fraction, offset = match.groups()

    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        if offset_hours > 23 or offset_minutes > 59:
            return None
        sign = -1 if offset[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=offset_hours, minutes=offset_minutes))

    try:
        moment = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            tzinfo=tz
        )
    except ValueError:
        return None

    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return datetime_to_nanos(moment) + nanos


def _coerce_number(left: Any, right: str) -> Optional[Tuple[float, float]]:
    if isinstance(left, bool) or not isinstance(left, (int, float)):
        return None

    reference = parse_float(right)
    if reference is None:
        return None

    try:
        return float(left), reference
    except OverflowError:
        return None


def _coerce_timestamp(left: Any, right: str) -> Optional[Tuple[int, int]]:
    if isinstance(left, datetime):
        value = datetime_to_nanos(left)
    else:
        value = parse_rfc3339(left)
    if value is None:
        return None

    reference = parse_rfc3339(right)
    if reference is None:
        return None

    return value, reference


def _coerce_numeric_string(left: Any, right: str) -> Optional[Tuple[float, float]]:
    value = parse_float(left)
    if value is None:
        return None

    reference = parse_float(right)
    if reference is None:
        return None

    return value, reference


COERCIONS: Tuple[Callable[[Any, str], Optional[Tuple[Any, Any]]], ...] = (
    _coerce_number,
    _coerce_timestamp,
    _coerce_numeric_string,
)


def coerce(left: Any, right: str) -> Tuple[Any, Any]:
    """Bring a document value and a literal into a common ordered form."""
    for strategy in COERCIONS:
        pair = strategy(left, right)
        if pair is not None:
            return pair

    raise CoercionError(
        f"Cannot compare {type(left).__name__} value with {right!r}",
        details={"left_type": type(left).__name__, "right_side": right}
    )


def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset() == timedelta(0):
            return value.replace(tzinfo=None).isoformat() + "Z"
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_canonical(value: Any) -> bytes:
    """Canonical JSON encoding used for equality checks."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=_encode_default
    ).encode("ascii")


def values_equal(left: Any, right: str) -> bool:
    """Compare a document value and a literal by their canonical encodings."""
    return encode_canonical(left) == encode_canonical(right)


def compare(operation: Any, left: Any, right: str) -> bool:
    """Apply a comparison operation to a document value and a literal."""
    operation = Operation.parse(operation)

    if operation is Operation.EQUAL:
        return values_equal(left, right)

    if operation is Operation.NOT_EQUAL:
        return not values_equal(left, right)

    value, reference = coerce(left, right)

    if operation is Operation.GREATER_THAN:
        return value > reference

    return value < reference
