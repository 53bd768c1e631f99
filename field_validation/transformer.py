"""
Schema-driven input transformation.

Wire formats such as JSON carry dates, and often numbers, as strings. Before
validating such input, transform() coerces every field whose rule declares a
type:

    INT32 / INT64       integral strings ("42") -> int
    DECIMAL             numeric strings ("9.99") -> Decimal
    BOOLEAN             "true" / "false" (any case) -> bool
    LOCAL_DATE          "2024-05-01" -> date
    LOCAL_DATE_TIME     "2024-05-01T09:30:00" -> naive datetime
    ZONED_DATE_TIME     "2024-05-01T09:30:00+02:00" or "...Z" -> aware datetime
    STRING              numbers -> str

A value that does not parse is left as it is, so validation still reports it
as invalid_type. When a rule has a fieldMapping, the coerced value is also
written to that path. The input is never modified.
"""

import copy
import datetime
import logging
import re
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from .models import FieldType, Schema
from .path_resolver import ABSENT, MappingAccessor, set_nested_value
from .type_validator import to_decimal

logger = logging.getLogger(__name__)

INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def _to_int(value):
    if isinstance(value, str) and INTEGER_PATTERN.fullmatch(value.strip()):
        return int(value.strip())
    return value


def _to_decimal(value):
    if isinstance(value, str):
        number = to_decimal(value)
        if number is not None:
            return number
    return value


def _to_bool(value):
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "false"):
            return text == "true"
    return value


def _to_str(value):
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return str(value)
    return value


def _parse_datetime(text: str) -> datetime.datetime:
    text = text.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(text)


def _to_date(value):
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
    return value


def _to_local_datetime(value):
    if isinstance(value, str):
        try:
            parsed = _parse_datetime(value)
        except ValueError:
            return value
        if parsed.tzinfo is None:
            return parsed
    return value


def _to_zoned_datetime(value):
    if isinstance(value, str):
        try:
            parsed = _parse_datetime(value)
        except ValueError:
            return value
        if parsed.utcoffset() is not None:
            return parsed
    return value


COERCERS: Dict[FieldType, Callable[[Any], Any]] = {
    FieldType.STRING: _to_str,
    FieldType.INT32: _to_int,
    FieldType.INT64: _to_int,
    FieldType.DECIMAL: _to_decimal,
    FieldType.BOOLEAN: _to_bool,
    FieldType.LOCAL_DATE: _to_date,
    FieldType.LOCAL_DATE_TIME: _to_local_datetime,
    FieldType.ZONED_DATE_TIME: _to_zoned_datetime,
}


def coerce_value(value: Any, field_type: Optional[FieldType]) -> Any:
    """Convert a wire value to field_type, or return it unchanged if it does not parse."""
    if value is None or value is ABSENT:
        return value
    coercer = COERCERS.get(field_type)
    if coercer is None:
        return value
    return coercer(value)


def transform(data: Mapping[str, Any], schema: Schema) -> Dict[str, Any]:
    """
    Coerce the fields of data to the types declared by schema.

    Args:
        data: Parsed input document (not modified)
        schema: Schema whose rules declare the field types

    Returns:
        A new dict with coerced values and fieldMapping copies
    """
    transformed = copy.deepcopy(dict(data))
    accessor = MappingAccessor(transformed)

    for field_path, rule in schema.rules.items():
        value = accessor.get(field_path)
        if value is None or value is ABSENT:
            continue

        coerced = coerce_value(value, rule.field_type)
        if coerced is not value:
            accessor.set(field_path, coerced)

        if rule.field_mapping:
            try:
                set_nested_value(transformed, rule.field_mapping, coerced)
            except (TypeError, ValueError) as e:
                logger.warning(
                    "Field mapping target not writable, skipping",
                    extra={
                        "schema_name": schema.name,
                        "field": field_path,
                        "field_mapping": rule.field_mapping,
                        "error": str(e),
                    },
                )

    return transformed
