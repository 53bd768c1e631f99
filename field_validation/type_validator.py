"""
Type and constraint checks for field values.

check_type(value, field_type, params) answers one question: does a *present*
value conform to the declared type and its constraints? Required-ness is
decided elsewhere, so None always passes here. Date and time values must
already be parsed; strings are never converted.

Constraint parameters (typeValidationParams):

    String-like types:  minLength, maxLength, pattern (full match)
    Numeric types:      min, max (inclusive)
    ARRAY / MAP:        minSize, maxSize (inclusive)

A constraint that is absent is not checked. A constraint whose value is
malformed (e.g. min: "abc", or an invalid regex) fails that check instead of
raising.
"""

import array
import datetime
import logging
import re
import uuid
from collections.abc import Mapping, Sequence, Set
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping as MappingType, Optional
from urllib.parse import urlsplit

from .models import FieldType
from .path_resolver import ABSENT

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9+_.-]+@(.+)")
PHONE_PATTERN = re.compile(r"[0-9+\-(). \t]+")
UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)

INT_RANGES = {
    FieldType.INT32: (-(2 ** 31), 2 ** 31 - 1),
    FieldType.INT64: (-(2 ** 63), 2 ** 63 - 1),
}

_NO_PARAMS: MappingType[str, Any] = {}


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a number (or numeric string parameter) to a finite Decimal, else None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, int):
            result = Decimal(value)
        elif isinstance(value, (float, str)):
            result = Decimal(str(value).strip())
        else:
            return None
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def to_int(value: Any) -> Optional[int]:
    """Coerce a constraint parameter to an int; non-integral values give None."""
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def is_sequence_like(value: Any) -> bool:
    if isinstance(value, str):
        return False
    return isinstance(value, (Sequence, Set, bytearray, array.array))


# ---------------------------------------------------------------------------
# Constraint checks
# ---------------------------------------------------------------------------


def _check_bounds(measure, params: MappingType[str, Any], low_key: str, high_key: str, coerce) -> bool:
    for key, compare in ((low_key, lambda m, b: m >= b), (high_key, lambda m, b: m <= b)):
        if key not in params or params[key] is None:
            continue
        bound = coerce(params[key])
        if bound is None:
            logger.debug("Malformed constraint, failing check", extra={"constraint": key, "value": params[key]})
            return False
        if not compare(measure, bound):
            return False
    return True


def check_string_constraints(value: str, params: MappingType[str, Any]) -> bool:
    if not _check_bounds(len(value), params, "minLength", "maxLength", to_int):
        return False

    pattern = params.get("pattern")
    if pattern is not None:
        try:
            if re.fullmatch(str(pattern), value) is None:
                return False
        except re.error:
            logger.debug("Invalid pattern constraint, failing check", extra={"pattern": pattern})
            return False
    return True


def check_number_constraints(value: Decimal, params: MappingType[str, Any]) -> bool:
    return _check_bounds(value, params, "min", "max", to_decimal)


def check_size_constraints(size: int, params: MappingType[str, Any]) -> bool:
    return _check_bounds(size, params, "minSize", "maxSize", to_int)


# ---------------------------------------------------------------------------
# Per-type checks
# ---------------------------------------------------------------------------


def _check_string(value, params):
    return isinstance(value, str) and check_string_constraints(value, params)


def _check_integer(value, params, field_type):
    if not is_number(value):
        return False
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return False
    coerced = int(number)
    low, high = INT_RANGES[field_type]
    if not low <= coerced <= high:
        return False
    return check_number_constraints(Decimal(coerced), params)


def _check_decimal(value, params):
    if not is_number(value):
        return False
    number = to_decimal(value)
    return number is not None and check_number_constraints(number, params)


def _check_email(value, params):
    return (
        isinstance(value, str)
        and EMAIL_PATTERN.fullmatch(value) is not None
        and check_string_constraints(value, params)
    )


def _check_uuid(value, params):
    if not isinstance(value, str) or not UUID_PATTERN.fullmatch(value):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return check_string_constraints(value, params)


def _check_phone(value, params):
    return (
        isinstance(value, str)
        and PHONE_PATTERN.fullmatch(value) is not None
        and check_string_constraints(value, params)
    )


def _check_url(value, params):
    if not isinstance(value, str) or not value or value != value.strip():
        return False
    try:
        parts = urlsplit(value)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if not parts.scheme or not re.fullmatch(r"[A-Za-z][A-Za-z0-9+.-]*", parts.scheme):
        return False
    if not parts.netloc and not (parts.scheme == "file" and parts.path):
        return False
    return check_string_constraints(value, params)


def _check_object(value):
    if value is None:
        return True
    return not (
        isinstance(value, (bool, str, Mapping))
        or is_number(value)
        or is_sequence_like(value)
    )


def check_type(value: Any, field_type: Optional[FieldType], params: MappingType[str, Any] = None) -> bool:
    """
    Check that value conforms to field_type and its constraints.

    Args:
        value: The field value (None or ABSENT always passes)
        field_type: Declared type; None means no type check
        params: Constraint parameters (typeValidationParams)

    Returns:
        True if the value is acceptable
    """
    if value is None or value is ABSENT or field_type is None:
        return True
    params = params if params is not None else _NO_PARAMS

    if field_type is FieldType.STRING:
        return _check_string(value, params)
    if field_type in (FieldType.INT32, FieldType.INT64):
        return _check_integer(value, params, field_type)
    if field_type is FieldType.DECIMAL:
        return _check_decimal(value, params)
    if field_type is FieldType.BOOLEAN:
        return isinstance(value, bool)
    if field_type is FieldType.LOCAL_DATE:
        return isinstance(value, datetime.date) and not isinstance(value, datetime.datetime)
    if field_type is FieldType.LOCAL_DATE_TIME:
        return isinstance(value, datetime.datetime) and value.tzinfo is None
    if field_type is FieldType.ZONED_DATE_TIME:
        return isinstance(value, datetime.datetime) and value.utcoffset() is not None
    if field_type is FieldType.OBJECT:
        return _check_object(value)
    if field_type is FieldType.ARRAY:
        return is_sequence_like(value) and check_size_constraints(len(value), params)
    if field_type is FieldType.MAP:
        return isinstance(value, Mapping) and check_size_constraints(len(value), params)
    if field_type is FieldType.EMAIL:
        return _check_email(value, params)
    if field_type is FieldType.UUID:
        return _check_uuid(value, params)
    if field_type is FieldType.PHONE:
        return _check_phone(value, params)
    if field_type is FieldType.URL:
        return _check_url(value, params)
    return True
