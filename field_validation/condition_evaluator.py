"""
Required-ness predicates.

Everything here is a pure function of a root object (plus the rule's own
configuration). The emptiness rule in is_empty() is the single definition of
"populated" used throughout the library.
"""

import array
import logging
from collections.abc import Mapping, Sequence, Set
from typing import Any, Iterable, List

from .expression_evaluator import ExpressionEvaluator
from .models import string_form
from .path_resolver import ABSENT, FieldAccessor, accessor_for

logger = logging.getLogger(__name__)


def is_empty(value: Any) -> bool:
    """
    Return True if value counts as "not provided".

    - None / ABSENT: empty
    - str: empty iff blank after stripping whitespace
    - sequences, sets, mappings, bytes and arrays: empty iff length is 0
    - anything else: never empty
    """
    if value is None or value is ABSENT:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Sequence, Set, Mapping, bytes, bytearray, memoryview, array.array)):
        return len(value) == 0
    return False


def is_populated(value: Any) -> bool:
    return not is_empty(value)


def _accessor(root: Any) -> FieldAccessor:
    return accessor_for(root)


def depends_on_value(root: Any, depends_on_field: str, trigger_values: Iterable[str]) -> bool:
    """
    Required iff the referenced field is present and its string form is a trigger value.

    Misconfigured rules (no referenced field, no trigger values) are never required.
    """
    triggers = {string_form(v) for v in (trigger_values or ())}
    if not depends_on_field or not triggers:
        logger.debug(
            "Value-dependent rule misconfigured, treating as not required",
            extra={"depends_on_field": depends_on_field},
        )
        return False

    value = _accessor(root).get(depends_on_field)
    if value is None or value is ABSENT:
        return False
    return string_form(value) in triggers


def depends_on_presence(root: Any, depends_on_presence_of: str) -> bool:
    """Required iff the referenced field is populated."""
    if not depends_on_presence_of:
        logger.debug("Presence-dependent rule misconfigured, treating as not required")
        return False
    return is_populated(_accessor(root).get(depends_on_presence_of))


def unpopulated_group_members(root: Any, field: str, group_fields: Iterable[str]) -> List[str]:
    """
    Group members that must be reported for a populated `field`.

    Returns an empty list when `field` itself is empty or the group is empty.
    """
    members = [f for f in (group_fields or ()) if f and f != field]
    if not members:
        return []

    accessor = _accessor(root)
    if is_empty(accessor.get(field)):
        return []
    return [member for member in members if is_empty(accessor.get(member))]


def evaluate_condition(condition: str, root: Any, evaluator: ExpressionEvaluator) -> bool:
    """
    Evaluate a CONDITIONAL rule's expression, failing closed.

    A blank condition is False. Any exception raised by the evaluator is
    logged and treated as False, so a broken expression never blocks.
    """
    if not condition or not condition.strip():
        return False
    if root is None:
        return False
    try:
        return evaluator.evaluate(condition, root) is True
    except Exception as e:
        logger.warning(
            "Condition evaluation failed, treating field as not required",
            extra={"condition": condition, "error": f"{type(e).__name__}: {e}"},
        )
        return False
