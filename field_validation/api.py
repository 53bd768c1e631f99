"""
Public API for field-validation-lib

This is the "front door" - the main entry point for all validation operations.
"""

import copy
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config_loader import ConfigLoader
from .exceptions import SchemaDocumentError, SchemaSourceError
from .expression_evaluator import ExpressionEvaluator
from .models import Schema, Violation, errors_by_field
from .path_resolver import ABSENT, accessor_for, split_path
from .schema_registry import SchemaRegistry
from .schema_source import SchemaSource, create_schema_source
from .transformer import transform
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)


class ValidationService:
    """
    Main validation service class.

    Validates objects against named field schemas held in a process-wide
    registry, plus the cross-field rules declared on validated classes.

    Auto-refresh: when registry.max_age_seconds is set, schemas are reloaded
    from the source once the cache gets older than that.

    Example:
        from field_validation import ValidationService

        service = ValidationService()
        violations = service.validate(request, "user_request_validation")

        # Partial update (PATCH): only the touched fields are checked
        updated, violations = service.apply_updates(
            current, {"address.city": "Springfield"}, "user_request_validation"
        )

        # Pick up edited schema documents
        service.refresh_schema("user_request_validation")
    """

    # Debounce interval: how often the staleness check runs (seconds)
    CHECK_INTERVAL = 300

    def __init__(
        self,
        config_path: Optional[str] = None,
        schema_source: Optional[SchemaSource] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
    ):
        """
        Initialize validation service.

        The service:
        1. Loads local-config.yaml (bundled, FIELD_VALIDATION_CONFIG, or config_path)
        2. Builds the schema source named in the config (unless one is passed in)
        3. Loads every schema into the registry
        4. Creates the batch worker pool if batch.max_workers > 1

        Args:
            config_path: Optional path to a local-config.yaml
            schema_source: Optional SchemaSource overriding the configured one
            evaluator: Optional expression evaluator for CONDITIONAL rules

        Raises:
            SchemaSourceError: If the initial schema load fails
            SchemaDocumentError: If a schema document is malformed
        """
        self.config_loader = ConfigLoader(config_path)
        self._max_age = self.config_loader.get_schema_max_age()
        self._pool: Optional[ThreadPoolExecutor] = None

        if schema_source is None:
            schema_source = create_schema_source(
                self.config_loader.get_schema_source_config(),
                base_dir=self.config_loader.config_dir,
            )
        self.schema_source = schema_source

        self.registry = SchemaRegistry(schema_source)
        self.registry.load()

        self.engine = ValidationEngine(
            self.registry,
            evaluator=evaluator,
            strict_unknown_schema=self.config_loader.get_strict_unknown_schema(),
        )

        self._last_check_time = time.time()
        self._create_pool()

    def _create_pool(self) -> None:
        """
        Create the thread pool used by batch_validate().

        No-op when batch.max_workers is 1. Validation reads only the immutable
        registry snapshot and per-call state, so threads need no coordination.
        """
        max_workers = self.config_loader.get_batch_max_workers()
        if max_workers <= 1:
            return
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="field-validation"
        )
        logger.debug("Batch worker pool created", extra={"max_workers": max_workers})

    def _check_and_reload_if_stale(self):
        """
        Reload all schemas if the cache is older than registry.max_age_seconds.

        Checks at most every CHECK_INTERVAL seconds. Disabled when the max age
        is 0.
        """
        if self._max_age <= 0:
            return
        now = time.time()

        # Debounce: Only check every CHECK_INTERVAL seconds
        if now - self._last_check_time < self.CHECK_INTERVAL:
            return

        self._last_check_time = now

        age = self.registry.get_age()
        if age is None or age > self._max_age:
            logger.info(
                "Schema cache stale, reloading",
                extra={"cache_age": age, "max_age": self._max_age},
            )
            try:
                self.refresh_all_schemas()
            except (SchemaSourceError, SchemaDocumentError) as e:
                logger.warning(
                    "Schema reload failed, serving cached schemas",
                    extra={"cache_age": age, "error": str(e)},
                )

    def validate(self, obj: Any, schema_name: str) -> List[Violation]:
        """
        Validate every field of an object against a schema.

        Args:
            obj: Object to validate (dict, plain object, or FieldAccessor)
            schema_name: Registry schema name (e.g. "user_request_validation")

        Returns:
            List of Violation(field, message, code). Empty when valid, when
            obj is None, or when the schema is unknown (non-strict mode).

        Raises:
            UnknownSchemaError: If the schema is unknown and
                validation.strict_unknown_schema is true

        Example:
            violations = service.validate({"country": "US"}, "user_request_validation")
            for v in violations:
                print(f"{v.field}: {v.message}")
        """
        self._check_and_reload_if_stale()
        return self.engine.validate(obj, schema_name)

    def validate_fields(
        self, obj: Any, schema_name: str, field_names: Iterable[str]
    ) -> List[Violation]:
        """
        Validate only the listed field paths (partial updates).

        Conditions still read the whole object, so "address.city" is checked
        against the object's current country. Paths without a rule are ignored.
        """
        self._check_and_reload_if_stale()
        return self.engine.validate(obj, schema_name, field_names=list(field_names))

    def validate_and_throw(
        self, obj: Any, schema_name: str, field_names: Optional[Iterable[str]] = None
    ) -> None:
        """
        Validate and raise if there are any violations.

        Raises:
            ValidationFailed: Carrying the violation list (and an errors mapping)
        """
        self._check_and_reload_if_stale()
        self.engine.validate_and_throw(obj, schema_name, field_names)

    def validate_declared(
        self,
        obj: Any,
        field_names: Optional[Iterable[str]] = None,
        validations: Optional[Iterable[Any]] = None,
    ) -> List[Violation]:
        """
        Validate the cross-field rules declared on obj's class.

        Args:
            obj: Instance of a class decorated with validate_fields()
            field_names: Optional subset of field paths to check
            validations: Explicit declarations (for dicts and undecorated classes)

        Returns:
            List of violations
        """
        return self.engine.validate_declared(obj, field_names, validations)

    def errors(self, obj: Any, schema_name: str) -> Dict[str, str]:
        """Field path -> message mapping for obj (first message per field)."""
        return errors_by_field(self.validate(obj, schema_name))

    def transform(self, data: Mapping[str, Any], schema_name: str) -> Dict[str, Any]:
        """
        Coerce wire values (ISO date strings, numeric strings) to the field
        types declared by a schema.

        Args:
            data: Parsed input document (not modified)
            schema_name: Schema whose rules declare the field types

        Returns:
            A coerced copy of data (an unchanged copy for unknown schemas)
        """
        self._check_and_reload_if_stale()
        schema = self.registry.get_schema(schema_name)
        if schema is None:
            logger.debug("No schema to transform with", extra={"schema_name": schema_name})
            return copy.deepcopy(dict(data))
        return transform(data, schema)

    def apply_updates(
        self,
        data: Mapping[str, Any],
        updates: Mapping[str, Any],
        schema_name: str,
        coerce: bool = False,
    ) -> Tuple[Dict[str, Any], List[Violation]]:
        """
        Apply a partial update and validate only the updated fields.

        The input is not modified: updates are written into a deep copy with
        intermediate objects created on demand.

        Args:
            data: Current object state (dict)
            updates: Field path -> new value (paths may carry a "$." prefix)
            schema_name: Schema to validate against
            coerce: Run transform() on the updated copy before validating

        Returns:
            (updated copy, violations for the updated paths)

        Example:
            updated, violations = service.apply_updates(
                {"country": "US", "address": {}},
                {"address.city": ""},
                "user_request_validation",
            )
            # violations == [Violation("address.city", "City is required for US addresses")]
        """
        updated = copy.deepcopy(dict(data or {}))
        accessor = accessor_for(updated)

        touched = []
        for path, value in updates.items():
            accessor.set(path, value)
            touched.append(".".join(split_path(path)))

        if coerce:
            updated = self.transform(updated, schema_name)

        violations = self.validate_fields(updated, schema_name, touched)
        logger.debug(
            "Applied updates",
            extra={
                "schema_name": schema_name,
                "updated_fields": touched,
                "violation_count": len(violations),
            },
        )
        return updated, violations

    def batch_validate(
        self, objects: List[Any], schema_name: str, id_fields: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Validate multiple objects against one schema.

        Args:
            objects: Objects to validate
            schema_name: Schema to use for all objects
            id_fields: Field paths used to build each result's entity_id

        Returns:
            List of per-object results, in input order:
                - entity_id: Extracted identifier ("unknown" if none)
                - schema_name: Schema used
                - violations: List of Violation

        Example:
            results = service.batch_validate(requests, "user_request_validation", ["id"])
            for result in results:
                if result["violations"]:
                    print(result["entity_id"], errors_by_field(result["violations"]))
        """
        self._check_and_reload_if_stale()
        id_fields = id_fields or []

        def validate_one(obj):
            return {
                "entity_id": self._extract_id(obj, id_fields),
                "schema_name": schema_name,
                "violations": self.engine.validate(obj, schema_name),
            }

        if self._pool is not None:
            # Futures are collected in input order, whichever finishes first
            futures = [self._pool.submit(validate_one, obj) for obj in objects]
            return [f.result() for f in futures]

        return [validate_one(obj) for obj in objects]

    def refresh_schema(self, schema_name: str) -> Optional[Schema]:
        """
        Re-fetch one schema from the source.

        Returns:
            The refreshed Schema, or None if the source no longer has it (it is
            then evicted)
        """
        return self.registry.refresh_schema(schema_name)

    def refresh_all_schemas(self) -> int:
        """
        Reload every schema from the source.

        Returns:
            Number of schemas now loaded
        """
        return self.registry.refresh_all()

    def get_schema(self, schema_name: str) -> Optional[Schema]:
        return self.registry.get_schema(schema_name)

    def list_schemas(self) -> List[str]:
        """Names of all loaded schemas, sorted."""
        self._check_and_reload_if_stale()
        return self.registry.schema_names()

    def get_cache_age(self) -> Optional[float]:
        """
        Get age of the schema cache in seconds.

        Returns:
            float: Seconds since the last load or refresh, or None if never loaded
        """
        return self.registry.get_age()

    def _extract_id(self, obj, id_fields):
        """
        Build an identifier from the given field paths.

        Returns:
            String identifier (joined with "-" if multiple fields), or
            "unknown" if none of the fields are present
        """
        accessor = accessor_for(obj)
        id_parts = []
        for field in id_fields:
            value = accessor.get(field)
            if value is not None and value is not ABSENT:
                id_parts.append(str(value))

        if not id_parts:
            return "unknown"

        return "-".join(id_parts)

    def close(self) -> None:
        """
        Shut down the batch worker pool.

        Safe to call multiple times or when no pool was created.
        """
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
