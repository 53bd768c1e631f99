"""
Data model for validation rules and schemas.

Two kinds of rule live here:

- Registry-driven per-field rules (Rule, grouped into a named Schema). These are
  data: they are loaded from a schema source at runtime and looked up by field
  path.
- Declared cross-field rules (DependsOnValue, DependsOnPresence, DependsOnGroup).
  These are fixed at authoring time and attached to a validated class with the
  validate_fields() decorator in rule_set.

Schema wire shape (one document per schema):

    {
      "schemaName": "user_request_validation",
      "rules": {
        "address.city": {
          "requirementType": "CONDITIONAL",
          "fieldType": "STRING",
          "condition": "country == 'US'",
          "errorMessage": "City is required for US addresses",
          "typeValidationParams": {"maxLength": 64},
          "fieldMapping": "$.shipping.city"
        }
      }
    }
"""

import enum
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from jsonschema import Draft7Validator

from .exceptions import SchemaDocumentError

logger = logging.getLogger(__name__)


class RequirementType(enum.Enum):
    REQUIRED = "REQUIRED"  # Always required
    CONDITIONAL = "CONDITIONAL"  # Required only when the condition holds
    OPTIONAL = "OPTIONAL"  # Never required, type still checked when present

    @classmethod
    def parse(cls, value: Optional[str]) -> "RequirementType":
        if isinstance(value, cls):
            return value
        if value is None or not str(value).strip():
            return cls.OPTIONAL
        return cls(str(value).strip().upper())


class FieldType(enum.Enum):
    STRING = "STRING"
    INT32 = "INT32"
    INT64 = "INT64"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    LOCAL_DATE = "LOCAL_DATE"
    LOCAL_DATE_TIME = "LOCAL_DATE_TIME"
    ZONED_DATE_TIME = "ZONED_DATE_TIME"
    OBJECT = "OBJECT"
    ARRAY = "ARRAY"
    MAP = "MAP"
    EMAIL = "EMAIL"
    UUID = "UUID"
    PHONE = "PHONE"
    URL = "URL"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["FieldType"]:
        """
        Parse a field type name.

        Canonical names are matched case-insensitively; a few common aliases
        are accepted. Unknown names return None, which means "no type check".
        """
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace("-", "_")
        key = _FIELD_TYPE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            logger.warning("Unknown field type, type check disabled", extra={"field_type": value})
            return None


_FIELD_TYPE_ALIASES = {
    "DATE": "LOCAL_DATE",
    "DATETIME": "LOCAL_DATE_TIME",
    "DATE_TIME": "LOCAL_DATE_TIME",
    "LOCALDATE": "LOCAL_DATE",
    "LOCALDATETIME": "LOCAL_DATE_TIME",
    "ZONED_DATETIME": "ZONED_DATE_TIME",
    "ZONEDDATETIME": "ZONED_DATE_TIME",
}


# JSON Schema for a single schema document. Field-type names are validated
# by FieldType.parse() rather than here so unknown names degrade gracefully.
SCHEMA_DOCUMENT_SCHEMA = {
    "type": "object",
    "required": ["schemaName", "rules"],
    "properties": {
        "schemaName": {"type": "string", "minLength": 1},
        "rules": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "requirementType": {
                        "type": ["string", "null"],
                        # Same leniency as RequirementType.parse(): any case, blank allowed
                        "pattern": r"^\s*(?i:%s)?\s*$"
                        % "|".join(t.value for t in RequirementType),
                    },
                    "fieldType": {"type": ["string", "null"]},
                    "condition": {"type": ["string", "null"]},
                    "errorMessage": {"type": ["string", "null"]},
                    "typeValidationParams": {"type": ["object", "null"]},
                    "fieldMapping": {"type": ["string", "null"]},
                },
            },
        },
    },
}

_document_validator = Draft7Validator(SCHEMA_DOCUMENT_SCHEMA)


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Rule:
    """One field's requirement kind, type, condition and constraints."""

    requirement_type: RequirementType = RequirementType.OPTIONAL
    field_type: Optional[FieldType] = None
    condition: Optional[str] = None
    error_message: Optional[str] = None
    type_params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    # Extra path the transformer copies this field's value to
    field_mapping: Optional[str] = None

    def __post_init__(self):
        # Keep the params read-only even when callers pass a plain dict
        if not isinstance(self.type_params, MappingProxyType):
            object.__setattr__(self, "type_params", _freeze(self.type_params))

    def is_required(self) -> bool:
        return self.requirement_type is RequirementType.REQUIRED

    def is_conditional(self) -> bool:
        return self.requirement_type is RequirementType.CONDITIONAL

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rule":
        return cls(
            requirement_type=RequirementType.parse(data.get("requirementType")),
            field_type=FieldType.parse(data.get("fieldType")),
            condition=data.get("condition"),
            error_message=data.get("errorMessage"),
            type_params=data.get("typeValidationParams") or {},
            field_mapping=data.get("fieldMapping"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requirementType": self.requirement_type.value,
            "fieldType": self.field_type.value if self.field_type else None,
            "condition": self.condition,
            "errorMessage": self.error_message,
            "typeValidationParams": dict(self.type_params),
            "fieldMapping": self.field_mapping,
        }


@dataclass(frozen=True)
class Schema:
    """Named, immutable collection of per-field rules keyed by field path."""

    name: str
    rules: Mapping[str, Rule] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        if not isinstance(self.rules, MappingProxyType):
            object.__setattr__(self, "rules", _freeze(self.rules))

    def get_rule(self, field_path: str) -> Optional[Rule]:
        return self.rules.get(field_path)

    @property
    def field_paths(self) -> List[str]:
        return list(self.rules.keys())

    @classmethod
    def from_dict(cls, document: Any, document_name: str = None) -> "Schema":
        """
        Build a Schema from its wire-shape document.

        Args:
            document: Parsed schema document (dict)
            document_name: Optional origin (file name, URL) for error messages

        Returns:
            Schema instance

        Raises:
            SchemaDocumentError: If the document does not match the wire shape
        """
        errors = sorted(_document_validator.iter_errors(document), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            error_path = " -> ".join(str(p) for p in first.path) if first.path else "root"
            raise SchemaDocumentError(
                f"Schema document invalid at {error_path}: {first.message}", document_name
            )

        rules = {
            field_path: Rule.from_dict(rule_data)
            for field_path, rule_data in document["rules"].items()
        }
        return cls(name=document["schemaName"], rules=rules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaName": self.name,
            "rules": {path: rule.to_dict() for path, rule in self.rules.items()},
        }


# ---------------------------------------------------------------------------
# Declared cross-field rules
# ---------------------------------------------------------------------------


def string_form(value: Any) -> str:
    """String used when matching a value against trigger values."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return value.name
    return str(value)


@dataclass(frozen=True)
class DependsOnValue:
    """`field` is required when `depends_on_field` equals one of `trigger_values`."""

    field: str
    depends_on_field: str
    trigger_values: FrozenSet[str]
    message: str = "Field validation failed"

    def __post_init__(self):
        object.__setattr__(self, "trigger_values", frozenset(string_form(v) for v in self.trigger_values))


@dataclass(frozen=True)
class DependsOnPresence:
    """`field` is required when `depends_on_presence_of` is populated."""

    field: str
    depends_on_presence_of: str
    message: str = "Field validation failed"


@dataclass(frozen=True)
class DependsOnGroup:
    """If `field` is populated, every field in `group_fields` must be populated."""

    field: str
    group_fields: Tuple[str, ...]
    message: str = "Field validation failed"

    def __post_init__(self):
        object.__setattr__(self, "group_fields", tuple(self.group_fields))


def field_group(
    fields: List[str], message: str = None, messages: Mapping[str, str] = None
) -> List[DependsOnGroup]:
    """
    Expand one group definition into the symmetric per-member declarations.

    Each member declares every other member as its group, so a violation is
    reported against whichever member is unpopulated.

    Args:
        fields: Group members, in reporting order
        message: Message used for every member (optional)
        messages: Per-member message overrides keyed by the populated member

    Returns:
        List of DependsOnGroup, one per member
    """
    messages = messages or {}
    members = list(dict.fromkeys(fields))
    declarations = []
    for member in members:
        text = messages.get(member) or message
        if text is None:
            text = f"All of {', '.join(members)} must be provided when {member} is provided"
        others = tuple(f for f in members if f != member)
        declarations.append(DependsOnGroup(field=member, group_fields=others, message=text))
    return declarations


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A (field path, message) pair reporting a failed check."""

    field: str
    message: str
    code: str = "required"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code}


def errors_by_field(violations: List[Violation]) -> Dict[str, str]:
    """Map field path -> message, keeping the first message for each field."""
    errors: Dict[str, str] = {}
    for violation in violations:
        errors.setdefault(violation.field, violation.message)
    return errors
