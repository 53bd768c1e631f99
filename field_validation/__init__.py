"""
field-validation-lib: Schema-driven conditional field validation

This library validates structured objects against per-field rules with:
- Named schemas loaded at runtime from a directory or HTTP schema service
- REQUIRED / CONDITIONAL / OPTIONAL fields, with boolean condition expressions
- Typed checks (integers, decimals, dates, email, UUID, phone, URL, ...) and
  constraints (length, pattern, range, size)
- Declared cross-field rules (value-dependent, presence-dependent, groups)
- Per-schema and full refresh without restarting

Example:
    from field_validation import ValidationService

    service = ValidationService()
    violations = service.validate(request_data, "user_request_validation")
"""

from .api import ValidationService
from .exceptions import (
    SchemaDocumentError,
    SchemaSourceError,
    UnknownSchemaError,
    ValidationFailed,
)
from .models import (
    DependsOnGroup,
    DependsOnPresence,
    DependsOnValue,
    FieldType,
    RequirementType,
    Rule,
    Schema,
    Violation,
    errors_by_field,
    field_group,
)
from .rule_set import validate_fields

__version__ = "0.1.0"
__all__ = [
    "ValidationService",
    "SchemaDocumentError",
    "SchemaSourceError",
    "UnknownSchemaError",
    "ValidationFailed",
    "DependsOnGroup",
    "DependsOnPresence",
    "DependsOnValue",
    "FieldType",
    "RequirementType",
    "Rule",
    "Schema",
    "Violation",
    "errors_by_field",
    "field_group",
    "validate_fields",
]
