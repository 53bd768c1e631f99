"""
Tests for the validation engine against registry schemas.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from field_validation.exceptions import UnknownSchemaError, ValidationFailed
from field_validation.expression_evaluator import ExpressionEvaluator
from field_validation.models import Violation
from field_validation.schema_registry import SchemaRegistry
from field_validation.schema_source import InMemorySchemaSource
from field_validation.validation_engine import ValidationEngine


PROFILE = {
    "schemaName": "profile",
    "rules": {
        "age": {
            "requirementType": "REQUIRED",
            "fieldType": "INT32",
            "typeValidationParams": {"min": 0, "max": 120},
        },
        "nickname": {
            "requirementType": "OPTIONAL",
            "fieldType": "STRING",
            "typeValidationParams": {"minLength": 2},
        },
        "website": {"fieldType": "URL", "errorMessage": "Website must be a URL"},
    },
}

USER_REQUEST = {
    "schemaName": "user_request_validation",
    "rules": {
        "country": {
            "requirementType": "REQUIRED",
            "fieldType": "STRING",
            "errorMessage": "Country is required",
        },
        "address.city": {
            "requirementType": "CONDITIONAL",
            "fieldType": "STRING",
            "condition": "country == 'US'",
            "errorMessage": "City is required for US addresses",
        },
        "address.state": {
            "requirementType": "CONDITIONAL",
            "fieldType": "STRING",
            "condition": "country == 'US'",
            "errorMessage": "State is required for US addresses",
            "typeValidationParams": {"maxLength": 2},
        },
        "comment": {
            "requirementType": "CONDITIONAL",
            "fieldType": "STRING",
            "condition": "commentBy != null",
        },
        "commentBy": {
            "requirementType": "CONDITIONAL",
            "fieldType": "STRING",
            "condition": "comment != null",
            "typeValidationParams": {"minLength": 2},
        },
        "broken": {
            "requirementType": "CONDITIONAL",
            "condition": "country ==== 'US'",
        },
    },
}


class AlwaysTrue(ExpressionEvaluator):
    def evaluate(self, expression, context):
        return True


class Address:
    def __init__(self, city=None, state=None):
        self.city = city
        self.state = state


class Request:
    def __init__(self, country=None, address=None):
        self.country = country
        self.address = address


@pytest.fixture
def registry():
    registry = SchemaRegistry(InMemorySchemaSource([PROFILE, USER_REQUEST]))
    registry.load()
    return registry


@pytest.fixture
def engine(registry):
    return ValidationEngine(registry)


class TestRequiredAndType:
    """Test required-ness and type checks on a flat schema."""

    def test_valid_object(self, engine):
        """Test that a valid object has no violations."""
        assert engine.validate({"age": 30, "nickname": "Al"}, "profile") == []

    def test_out_of_range_is_invalid_type(self, engine):
        """Test that a range failure reports the type message."""
        assert engine.validate({"age": 150}, "profile") == [
            Violation("age", "Invalid type. Expected: INT32", "invalid_type")
        ]

    def test_null_required_field(self, engine):
        """Test that a null required field reports "Field is required"."""
        assert engine.validate({"age": None}, "profile") == [
            Violation("age", "Field is required", "required")
        ]

    def test_missing_required_field(self, engine):
        """Test that an absent required field is reported once."""
        violations = engine.validate({}, "profile")
        assert [v.field for v in violations] == ["age"]

    def test_optional_field_type_checked_when_present(self, engine):
        """Test that optional fields are still type-checked."""
        violations = engine.validate({"age": 1, "nickname": "A"}, "profile")
        assert violations == [Violation("nickname", "Invalid type. Expected: STRING", "invalid_type")]

    def test_optional_blank_string_not_required(self, engine):
        """Test that a blank optional field is not reported as missing."""
        violations = engine.validate({"age": 1, "nickname": ""}, "profile")
        assert [v.code for v in violations] == ["invalid_type"]

    def test_custom_message_for_type_failure(self, engine):
        """Test that errorMessage replaces the default type message."""
        violations = engine.validate({"age": 1, "website": "not a url"}, "profile")
        assert violations == [Violation("website", "Website must be a URL", "invalid_type")]

    def test_idempotent(self, engine):
        """Test that validating twice yields identical results."""
        data = {"age": 500, "nickname": "x", "website": "nope"}
        assert engine.validate(data, "profile") == engine.validate(data, "profile")

    def test_does_not_mutate_input(self, engine):
        """Test that validation is side-effect free."""
        data = {"country": "US"}
        engine.validate(data, "user_request_validation")
        assert data == {"country": "US"}


class TestConditional:
    """Test CONDITIONAL rules and nested paths."""

    def test_us_address_requires_city(self, engine):
        """Test that a null city is reported for US addresses."""
        violations = engine.validate(
            {"country": "US", "address": {"city": None, "state": "CA"}},
            "user_request_validation",
        )
        assert violations == [Violation("address.city", "City is required for US addresses")]

    def test_us_without_address(self, engine):
        """Test that a missing address object reports each nested field."""
        violations = engine.validate({"country": "US"}, "user_request_validation")
        assert [v.field for v in violations] == ["address.city", "address.state"]

    def test_non_us_not_required(self, engine):
        """Test that the condition gates the requirement."""
        assert engine.validate({"country": "FR"}, "user_request_validation") == []

    def test_type_constraint_on_conditional(self, engine):
        """Test that a present value is type-checked."""
        violations = engine.validate(
            {"country": "US", "address": {"city": "Austin", "state": "Texas"}},
            "user_request_validation",
        )
        assert violations == [
            Violation("address.state", "State is required for US addresses", "invalid_type")
        ]

    def test_mutual_conditions(self, engine):
        """Test fields that require each other."""
        violations = engine.validate({"country": "FR", "comment": "hi"}, "user_request_validation")
        assert violations == [Violation("commentBy", "Field is required")]

    def test_broken_condition_fails_closed(self, engine):
        """Test that an unparseable condition never requires its field."""
        violations = engine.validate({"country": "US", "address": {"city": "A", "state": "TX"}},
                                     "user_request_validation")
        assert violations == []

    def test_plain_objects(self, engine):
        """Test validating attribute-based objects."""
        violations = engine.validate(Request("US", Address(city="  ", state="NY")),
                                     "user_request_validation")
        assert [v.field for v in violations] == ["address.city"]

    def test_pluggable_evaluator(self, registry):
        """Test that the engine uses the injected evaluator."""
        engine = ValidationEngine(registry, evaluator=AlwaysTrue())
        violations = engine.validate({"country": "FR"}, "user_request_validation")
        assert [v.field for v in violations] == [
            "address.city", "address.state", "comment", "commentBy", "broken"
        ]


class TestFieldSubset:
    """Test partial validation."""

    def test_only_named_fields(self, engine):
        """Test that other fields are ignored."""
        violations = engine.validate({"country": "US"}, "user_request_validation",
                                     field_names=["address.city"])
        assert [v.field for v in violations] == ["address.city"]

    def test_unknown_field_names_ignored(self, engine):
        """Test that fields without rules are skipped."""
        assert engine.validate({}, "profile", field_names=["height"]) == []

    def test_empty_subset(self, engine):
        """Test that an empty subset checks nothing."""
        assert engine.validate({}, "profile", field_names=[]) == []


class TestUnknownSchemaAndNull:
    """Test permissive paths."""

    def test_unknown_schema_is_permissive(self, engine):
        """Test that an unknown schema yields no violations."""
        assert engine.validate({}, "does_not_exist") == []

    def test_unknown_schema_strict(self, registry):
        """Test that strict mode raises UnknownSchemaError."""
        engine = ValidationEngine(registry, strict_unknown_schema=True)
        with pytest.raises(UnknownSchemaError) as exc_info:
            engine.validate({}, "does_not_exist")
        assert exc_info.value.schema_name == "does_not_exist"

    def test_none_object(self, engine):
        """Test that a None object yields no violations."""
        assert engine.validate(None, "profile") == []


class TestValidateAndThrow:
    """Test validate_and_throw()."""

    def test_raises_with_all_violations(self, engine):
        """Test that the exception carries every violation."""
        with pytest.raises(ValidationFailed) as exc_info:
            engine.validate_and_throw({"country": "US"}, "user_request_validation")

        assert exc_info.value.errors == {
            "address.city": "City is required for US addresses",
            "address.state": "State is required for US addresses",
        }

    def test_silent_when_valid(self, engine):
        """Test that nothing is raised for a valid object."""
        engine.validate_and_throw({"age": 20}, "profile")


class TestIsolation:
    """Test concurrent validation calls."""

    def test_parallel_calls_do_not_leak(self, engine):
        """Test that each call sees only its own object."""
        objects = [{"country": "US"} if i % 2 else {"country": "FR"} for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda o: engine.validate(o, "user_request_validation"), objects))

        for obj, violations in zip(objects, results):
            expected = 2 if obj["country"] == "US" else 0
            assert len(violations) == expected
