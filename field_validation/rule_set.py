"""
RuleSet - one evaluation representation for both rule mechanisms.

Per-field registry rules (Schema/Rule) and declared cross-field rules
(DependsOnValue / DependsOnPresence / DependsOnGroup) are both compiled into a
flat tuple of CompiledRule entries before the engine runs. Each entry answers:

- which field path is checked
- when that field is required (a predicate over the root object)
- which message to report when it is required but empty
- optionally, which type and constraints a present value must satisfy

Declared rules are attached to a class with the validate_fields() decorator:

    @validate_fields(
        DependsOnValue("taxId", "userType", {"PREMIUM", "BUSINESS"},
                       "Tax ID is required for Premium and Business users"),
        *field_group(["creditCardNumber", "expiryDate", "cvv"]),
    )
    class UserRequest:
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Tuple

from .condition_evaluator import (
    depends_on_presence,
    depends_on_value,
    evaluate_condition,
    unpopulated_group_members,
)
from .expression_evaluator import ExpressionEvaluator
from .models import (
    DependsOnGroup,
    DependsOnPresence,
    DependsOnValue,
    FieldType,
    RequirementType,
    Schema,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_MESSAGE = "Field is required"
DEFAULT_TYPE_MESSAGE = "Invalid type. Expected: {field_type}"

FIELD_VALIDATIONS_ATTR = "__field_validations__"


def _never(root: Any) -> bool:
    return False


def _always(root: Any) -> bool:
    return True


@dataclass(frozen=True)
class CompiledRule:
    field: str
    required_when: Callable[[Any], bool] = _never
    required_message: str = DEFAULT_REQUIRED_MESSAGE
    field_type: Optional[FieldType] = None
    type_params: Mapping[str, Any] = field(default_factory=dict)
    type_message: Optional[str] = None
    # Group-derived rules: report each target field at most once
    dedupe: bool = False

    def invalid_type_message(self) -> str:
        return self.type_message or DEFAULT_TYPE_MESSAGE.format(field_type=self.field_type)


class RuleSet:
    """Ordered, immutable collection of compiled rules."""

    def __init__(self, rules: Iterable[CompiledRule] = (), name: str = None):
        self.rules: Tuple[CompiledRule, ...] = tuple(rules)
        self.name = name

    def __iter__(self) -> Iterator[CompiledRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def fields(self) -> List[str]:
        return list(dict.fromkeys(rule.field for rule in self.rules))

    def restrict(self, field_names: Optional[Iterable[str]]) -> "RuleSet":
        """Keep only rules for the given field paths (None keeps everything)."""
        if field_names is None:
            return self
        wanted = set(field_names)
        return RuleSet((r for r in self.rules if r.field in wanted), name=self.name)

    @classmethod
    def from_schema(cls, schema: Schema, evaluator: ExpressionEvaluator) -> "RuleSet":
        """
        Compile a registry schema.

        REQUIRED rules are always required, CONDITIONAL rules are required when
        their condition evaluates true (a blank condition never does), and
        OPTIONAL rules are never required. Type checks apply in every case.
        """
        compiled = []
        for field_path, rule in schema.rules.items():
            if rule.requirement_type is RequirementType.REQUIRED:
                required_when = _always
            elif rule.requirement_type is RequirementType.CONDITIONAL and (rule.condition or "").strip():
                required_when = _condition_predicate(rule.condition, evaluator)
            else:
                if rule.is_conditional():
                    logger.debug(
                        "Conditional rule without condition, treating as optional",
                        extra={"schema_name": schema.name, "field": field_path},
                    )
                required_when = _never

            compiled.append(
                CompiledRule(
                    field=field_path,
                    required_when=required_when,
                    required_message=rule.error_message or DEFAULT_REQUIRED_MESSAGE,
                    field_type=rule.field_type,
                    type_params=rule.type_params,
                    type_message=rule.error_message,
                )
            )
        return cls(compiled, name=schema.name)

    @classmethod
    def from_declared(cls, validations: Iterable[Any], name: str = None) -> "RuleSet":
        """
        Compile declared cross-field rules.

        A DependsOnGroup(field=F, group_fields=G) becomes one rule per member g
        of G: "g is required when F is populated", reported with F's message.
        """
        compiled = []
        for validation in validations:
            if isinstance(validation, DependsOnValue):
                compiled.append(
                    CompiledRule(
                        field=validation.field,
                        required_when=_value_predicate(validation),
                        required_message=validation.message,
                    )
                )
            elif isinstance(validation, DependsOnPresence):
                compiled.append(
                    CompiledRule(
                        field=validation.field,
                        required_when=_presence_predicate(validation),
                        required_message=validation.message,
                    )
                )
            elif isinstance(validation, DependsOnGroup):
                members = [m for m in validation.group_fields if m and m != validation.field]
                if not members:
                    logger.debug(
                        "Group rule has no other members, ignoring",
                        extra={"field": validation.field},
                    )
                for member in members:
                    compiled.append(
                        CompiledRule(
                            field=member,
                            required_when=_group_predicate(validation, member),
                            required_message=validation.message,
                            dedupe=True,
                        )
                    )
            else:
                raise TypeError(f"Unsupported field validation: {validation!r}")
        return cls(compiled, name=name)


def _condition_predicate(condition: str, evaluator: ExpressionEvaluator):
    def required_when(root):
        return evaluate_condition(condition, root, evaluator)

    return required_when


def _value_predicate(validation: DependsOnValue):
    def required_when(root):
        return depends_on_value(root, validation.depends_on_field, validation.trigger_values)

    return required_when


def _presence_predicate(validation: DependsOnPresence):
    def required_when(root):
        return depends_on_presence(root, validation.depends_on_presence_of)

    return required_when


def _group_predicate(validation: DependsOnGroup, member: str):
    def required_when(root):
        return member in unpopulated_group_members(root, validation.field, validation.group_fields)

    return required_when


# ---------------------------------------------------------------------------
# Declaration on classes
# ---------------------------------------------------------------------------


def validate_fields(*validations):
    """
    Class decorator declaring cross-field rules for a validated type.

    Accepts DependsOnValue / DependsOnPresence / DependsOnGroup instances, or
    lists of them (as returned by field_group()). Declarations inherited from
    base classes are kept and the new ones appended.
    """
    flattened = []
    for validation in validations:
        if isinstance(validation, (list, tuple)):
            flattened.extend(validation)
        else:
            flattened.append(validation)

    for validation in flattened:
        if not isinstance(validation, (DependsOnValue, DependsOnPresence, DependsOnGroup)):
            raise TypeError(f"Unsupported field validation: {validation!r}")

    def decorator(cls):
        inherited = tuple(getattr(cls, FIELD_VALIDATIONS_ATTR, ()))
        setattr(cls, FIELD_VALIDATIONS_ATTR, inherited + tuple(flattened))
        return cls

    return decorator


def declared_validations(obj_or_cls: Any) -> Tuple[Any, ...]:
    """Return the cross-field rules declared on an object's class (or a class)."""
    cls = obj_or_cls if isinstance(obj_or_cls, type) else type(obj_or_cls)
    return tuple(getattr(cls, FIELD_VALIDATIONS_ATTR, ()))
