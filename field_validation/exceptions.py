"""Exception types raised by field-validation-lib."""

from typing import Dict, List


class SchemaDocumentError(ValueError):
    """A schema document does not match the expected wire shape."""

    def __init__(self, message: str, document_name: str = None):
        self.document_name = document_name
        if document_name:
            message = f"{document_name}: {message}"
        super().__init__(message)


class SchemaSourceError(RuntimeError):
    """The schema source could not be read."""


class UnknownSchemaError(LookupError):
    """Raised for an unknown schema name, only when strict mode is enabled."""

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        super().__init__(f"Unknown schema: {schema_name}")


class ValidationFailed(ValueError):
    """
    Aggregate validation failure carrying every violation found.

    Raised by the validate_and_throw() variants when the violation list
    is non-empty.
    """

    def __init__(self, violations: List):
        self.violations = list(violations)
        summary = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(f"Validation failed ({len(self.violations)} violations): {summary}")

    @property
    def errors(self) -> Dict[str, str]:
        """Field path -> message mapping (first message per field)."""
        from .models import errors_by_field

        return errors_by_field(self.violations)
