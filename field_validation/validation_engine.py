"""
Validation Engine

Evaluates a compiled RuleSet against one root object and collects violations.

For each rule, in order:
    1. Required check: if the rule's predicate holds and the value is empty,
       report the required message and skip the type check.
    2. Type check: a non-null value must conform to the declared field type
       and its constraints.

Registry schemas and declared class rules both go through the same loop.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from .condition_evaluator import is_empty
from .exceptions import UnknownSchemaError, ValidationFailed
from .expression_evaluator import ExpressionEvaluator, SimpleExpressionEvaluator
from .models import Violation
from .path_resolver import ABSENT, FieldAccessor, accessor_for
from .rule_set import RuleSet, declared_validations
from .schema_registry import SchemaRegistry
from .type_validator import check_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationContext:
    """
    Binding of one root object to one rule set, for a single validate() call.

    Created fresh per call and passed explicitly, so concurrent calls never
    share state.
    """

    root: Any
    accessor: FieldAccessor
    rule_set: RuleSet
    schema_name: Optional[str] = None

    def get(self, field_path: str) -> Any:
        """Value at field_path, with ABSENT collapsed to None."""
        value = self.accessor.get(field_path)
        return None if value is ABSENT else value


class ValidationEngine:
    """Evaluates rule sets against objects and collects violations"""

    def __init__(
        self,
        registry: SchemaRegistry,
        evaluator: ExpressionEvaluator = None,
        strict_unknown_schema: bool = False,
    ):
        """
        Initialize validation engine.

        Args:
            registry: SchemaRegistry to look schemas up in
            evaluator: Expression evaluator for CONDITIONAL rules
                (defaults to SimpleExpressionEvaluator)
            strict_unknown_schema: Raise UnknownSchemaError for unknown schema
                names instead of returning no violations
        """
        self.registry = registry
        self.evaluator = evaluator or SimpleExpressionEvaluator()
        self.strict_unknown_schema = strict_unknown_schema

    def rule_set_for(self, schema_name: str) -> Optional[RuleSet]:
        """Compile the named schema, or None if the registry does not have it."""
        schema = self.registry.get_schema(schema_name)
        if schema is None:
            return None
        return RuleSet.from_schema(schema, self.evaluator)

    def validate(
        self, obj: Any, schema_name: str, field_names: Optional[Iterable[str]] = None
    ) -> List[Violation]:
        """
        Validate an object against a registry schema.

        Args:
            obj: Object to validate (mapping, plain object or FieldAccessor)
            schema_name: Name of the schema in the registry
            field_names: Optional subset of field paths to check (partial
                updates). Paths without a rule are ignored.

        Returns:
            List of violations, in schema rule order. An unknown schema name
            yields an empty list unless strict_unknown_schema is set.

        Raises:
            UnknownSchemaError: If the schema is unknown and strict mode is on
        """
        rule_set = self.rule_set_for(schema_name)
        if rule_set is None:
            if self.strict_unknown_schema:
                raise UnknownSchemaError(schema_name)
            logger.warning(
                "Unknown schema, no rules applied",
                extra={"schema_name": schema_name},
            )
            return []

        return self.validate_rule_set(obj, rule_set, field_names, schema_name=schema_name)

    def validate_declared(
        self,
        obj: Any,
        field_names: Optional[Iterable[str]] = None,
        validations: Optional[Iterable[Any]] = None,
    ) -> List[Violation]:
        """
        Validate the cross-field rules declared on obj's class.

        Args:
            obj: Object to validate
            field_names: Optional subset of field paths to check
            validations: Explicit declarations, for objects (e.g. dicts) whose
                class carries none

        Returns:
            List of violations
        """
        if validations is None:
            validations = declared_validations(obj)
        rule_set = RuleSet.from_declared(validations, name=type(obj).__name__)
        return self.validate_rule_set(obj, rule_set, field_names)

    def validate_rule_set(
        self,
        obj: Any,
        rule_set: RuleSet,
        field_names: Optional[Iterable[str]] = None,
        schema_name: str = None,
    ) -> List[Violation]:
        """Run a compiled rule set against obj."""
        if obj is None:
            return []

        context = ValidationContext(
            root=obj,
            accessor=accessor_for(obj),
            rule_set=rule_set.restrict(field_names),
            schema_name=schema_name,
        )

        violations: List[Violation] = []
        reported = set()
        for rule in context.rule_set:
            if rule.dedupe and rule.field in reported:
                continue

            value = context.get(rule.field)
            if rule.required_when(context.root) and is_empty(value):
                violations.append(Violation(rule.field, rule.required_message, "required"))
                reported.add(rule.field)
                continue

            if value is not None and rule.field_type is not None:
                if not check_type(value, rule.field_type, rule.type_params):
                    violations.append(
                        Violation(rule.field, rule.invalid_type_message(), "invalid_type")
                    )
                    reported.add(rule.field)

        if violations:
            logger.debug(
                "Validation produced violations",
                extra={
                    "schema_name": schema_name or rule_set.name,
                    "violation_count": len(violations),
                },
            )
        return violations

    def validate_and_throw(
        self, obj: Any, schema_name: str, field_names: Optional[Iterable[str]] = None
    ) -> None:
        """
        Validate and raise if anything failed.

        Raises:
            ValidationFailed: Carrying the full violation list
        """
        violations = self.validate(obj, schema_name, field_names)
        if violations:
            raise ValidationFailed(violations)
