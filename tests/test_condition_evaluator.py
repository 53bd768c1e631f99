"""
Tests for emptiness and required-ness predicates.
"""
import array
import enum

from field_validation.condition_evaluator import (
    depends_on_presence,
    depends_on_value,
    evaluate_condition,
    is_empty,
    is_populated,
    string_form,
    unpopulated_group_members,
)
from field_validation.expression_evaluator import ExpressionEvaluator, SimpleExpressionEvaluator
from field_validation.path_resolver import ABSENT


class UserType(enum.Enum):
    BASIC = 1
    PREMIUM = 2


class ExplodingEvaluator(ExpressionEvaluator):
    def evaluate(self, expression, context):
        raise RuntimeError("boom")


class TestIsEmpty:
    """Test the emptiness rule."""

    def test_none_and_absent(self):
        """Test that None and ABSENT are empty."""
        assert is_empty(None)
        assert is_empty(ABSENT)

    def test_strings(self):
        """Test that blank strings are empty and others are not."""
        assert is_empty("")
        assert is_empty("   \t")
        assert not is_empty(" x ")

    def test_collections(self):
        """Test that zero-length collections are empty."""
        assert is_empty([])
        assert is_empty(())
        assert is_empty(set())
        assert is_empty({})
        assert is_empty(b"")
        assert is_empty(array.array("i"))
        assert not is_empty([None])
        assert not is_empty({"k": None})
        assert not is_empty(array.array("i", [0]))

    def test_other_values_never_empty(self):
        """Test that numbers, booleans and objects are never empty."""
        assert not is_empty(0)
        assert not is_empty(0.0)
        assert not is_empty(False)
        assert not is_empty(object())

    def test_is_populated(self):
        """Test that is_populated is the negation."""
        assert is_populated("x")
        assert not is_populated("  ")


class TestStringForm:
    """Test string_form()."""

    def test_booleans_lowercase(self):
        """Test that booleans render as true/false."""
        assert string_form(True) == "true"
        assert string_form(False) == "false"

    def test_enum_uses_name(self):
        """Test that enums render by name."""
        assert string_form(UserType.PREMIUM) == "PREMIUM"

    def test_numbers(self):
        """Test that numbers use str()."""
        assert string_form(42) == "42"


class TestDependsOnValue:
    """Test value-dependent required-ness."""

    TRIGGERS = {"PREMIUM", "BUSINESS"}

    def test_trigger_value_requires(self):
        """Test that a trigger value makes the field required."""
        assert depends_on_value({"userType": "PREMIUM"}, "userType", self.TRIGGERS)
        assert depends_on_value({"userType": "BUSINESS"}, "userType", self.TRIGGERS)

    def test_other_value_does_not_require(self):
        """Test that non-trigger values never require."""
        assert not depends_on_value({"userType": "BASIC"}, "userType", self.TRIGGERS)

    def test_absent_or_null_does_not_require(self):
        """Test that a missing or null referenced field never requires."""
        assert not depends_on_value({}, "userType", self.TRIGGERS)
        assert not depends_on_value({"userType": None}, "userType", self.TRIGGERS)

    def test_string_equality_not_type_aware(self):
        """Test that matching uses the string form of the value."""
        assert depends_on_value({"tier": 2}, "tier", {"2"})
        assert depends_on_value({"flag": True}, "flag", {"true"})
        assert depends_on_value({"userType": UserType.PREMIUM}, "userType", self.TRIGGERS)

    def test_non_string_triggers(self):
        """Test that trigger values are rendered like field values."""
        assert depends_on_value({"flag": True}, "flag", {True})
        assert not depends_on_value({"flag": False}, "flag", {True})
        assert depends_on_value({"userType": UserType.BASIC}, "userType", {UserType.BASIC})

    def test_nested_reference(self):
        """Test that the referenced field may be a nested path."""
        assert depends_on_value({"account": {"type": "PREMIUM"}}, "account.type", self.TRIGGERS)

    def test_misconfigured_never_requires(self):
        """Test that empty triggers or field name are treated as satisfied."""
        assert not depends_on_value({"userType": "PREMIUM"}, "userType", set())
        assert not depends_on_value({"userType": "PREMIUM"}, "", self.TRIGGERS)


class TestDependsOnPresence:
    """Test presence-dependent required-ness."""

    def test_populated_requires(self):
        """Test that a populated reference makes the field required."""
        assert depends_on_presence({"shippingAddress": "1 Main St"}, "shippingAddress")

    def test_empty_or_absent_does_not_require(self):
        """Test that blank, null and missing references never require."""
        assert not depends_on_presence({"shippingAddress": "  "}, "shippingAddress")
        assert not depends_on_presence({"shippingAddress": None}, "shippingAddress")
        assert not depends_on_presence({}, "shippingAddress")

    def test_misconfigured_never_requires(self):
        """Test that a blank reference is treated as satisfied."""
        assert not depends_on_presence({"a": "x"}, "")


class TestGroupMembers:
    """Test unpopulated_group_members()."""

    def test_declaring_field_empty(self):
        """Test that nothing is reported when the declaring field is empty."""
        root = {"creditCardNumber": None, "expiryDate": None}
        assert unpopulated_group_members(root, "cvv", ["creditCardNumber", "expiryDate"]) == []

    def test_reports_each_unpopulated_member(self):
        """Test that every empty member is listed, in group order."""
        root = {"cvv": "123"}
        members = unpopulated_group_members(root, "cvv", ["creditCardNumber", "expiryDate"])
        assert members == ["creditCardNumber", "expiryDate"]

    def test_all_populated(self):
        """Test that a complete group reports nothing."""
        root = {"cvv": "123", "creditCardNumber": "4111", "expiryDate": "12/30"}
        assert unpopulated_group_members(root, "cvv", ["creditCardNumber", "expiryDate"]) == []

    def test_self_reference_ignored(self):
        """Test that the declaring field listed in its own group is skipped."""
        root = {"cvv": "123", "expiryDate": "12/30"}
        assert unpopulated_group_members(root, "cvv", ["cvv", "expiryDate"]) == []

    def test_empty_group(self):
        """Test that an empty group is treated as satisfied."""
        assert unpopulated_group_members({"cvv": "123"}, "cvv", []) == []


class TestEvaluateCondition:
    """Test evaluate_condition()."""

    def test_true_condition(self):
        """Test delegating a true condition."""
        evaluator = SimpleExpressionEvaluator()
        assert evaluate_condition("country == 'US'", {"country": "US"}, evaluator)

    def test_blank_condition_is_false(self):
        """Test that blank conditions are never true."""
        evaluator = SimpleExpressionEvaluator()
        assert not evaluate_condition("", {"country": "US"}, evaluator)
        assert not evaluate_condition("   ", {"country": "US"}, evaluator)

    def test_null_root_is_false(self):
        """Test that a null context is never true."""
        assert not evaluate_condition("country == 'US'", None, SimpleExpressionEvaluator())

    def test_evaluator_exception_fails_closed(self):
        """Test that an evaluator that raises yields False."""
        assert not evaluate_condition("country == 'US'", {"country": "US"}, ExplodingEvaluator())
