"""Tests for attribute value validation."""

import pytest

from pim_mcp.models import AttributeDefinition
from pim_mcp.validators import (
    ValidationLevel,
    format_validation_errors,
    has_blocking_errors,
    validate_attribute_value,
    validate_attributes,
)


def define(attribute_type, validations=None, **extra):
    payload = {"code": extra.pop("code", attribute_type), "type": attribute_type, **extra}
    if validations is not None:
        payload["validations"] = validations
    return AttributeDefinition.from_payload(payload)


def rules_of(definition, value):
    return [error.rule for error in validate_attribute_value(definition, value)]


class TestRequired:
    """Test required and empty values."""

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_required_empty_value(self, value):
        definition = define("text", isRequired=True, code="sku")
        errors = validate_attribute_value(definition, value)

        assert [e.rule for e in errors] == ["REQ_01"]
        assert errors[0].location == "attribute 'sku'"
        assert errors[0].level == ValidationLevel.ERROR

    def test_optional_empty_value_passes(self):
        assert rules_of(define("number", {"min": 5}), None) == []

    def test_empty_not_allowed_flags(self):
        assert rules_of(define("array", {"allowEmpty": False}), []) == ["ARR_05"]
        assert rules_of(define("object", {"allowEmptyObject": False}), {}) == ["OBJ_03"]
        assert rules_of(define("formula", {"allowEmptyFormula": False}), "") == ["FORM_01"]


class TestText:
    """Test text length, pattern and format checks."""

    def test_length_bounds(self):
        definition = define("text", {"minLength": 3, "maxLength": 5})
        assert rules_of(definition, "ab") == ["TEXT_01"]
        assert rules_of(definition, "abcdef") == ["TEXT_02"]
        assert rules_of(definition, "abcd") == []

    def test_pattern(self):
        definition = define("text", {"pattern": "^[A-Z]{2}-\\d+$"})
        assert rules_of(definition, "AB-12") == []
        assert rules_of(definition, "ab-12") == ["TEXT_03"]

    def test_broken_pattern_is_warning(self):
        errors = validate_attribute_value(define("text", {"pattern": "[a-"}), "abc")
        assert [e.rule for e in errors] == ["TEXT_04"]
        assert not has_blocking_errors(errors)

    def test_non_text_value(self):
        assert rules_of(define("text"), 42) == ["TEXT_00"]

    def test_email(self):
        definition = define("email")
        assert rules_of(definition, "name@example.com") == []
        errors = validate_attribute_value(definition, "not-an-email")
        assert errors[0].rule == "FMT_01"
        assert "name@example.com" in errors[0].suggestion

    def test_url_and_phone(self):
        assert rules_of(define("url"), "https://example.com/a") == []
        assert rules_of(define("url"), "example.com") == ["FMT_02"]
        assert rules_of(define("phone"), "+90 (212) 555-0101") == []
        assert rules_of(define("phone"), "call me") == ["FMT_03"]

    def test_rich_text_counts_plain_text(self):
        definition = define("rich_text", {"maxTextLength": 5, "allowedTags": ["b"]})
        assert rules_of(definition, "<b>hello</b>") == []
        assert rules_of(definition, "<i>hello world</i>") == ["RICH_01", "RICH_02"]


class TestNumbers:
    """Test numeric checks."""

    def test_range(self):
        definition = define("number", {"min": 1, "max": 10})
        assert rules_of(definition, 0.5) == ["NUM_01"]
        assert rules_of(definition, 11) == ["NUM_02"]
        assert rules_of(definition, 10) == []

    def test_integer(self):
        assert rules_of(define("integer"), 2.5) == ["NUM_03"]
        assert rules_of(define("decimal", {"isInteger": True}), 2.5) == ["NUM_03"]
        assert rules_of(define("decimal"), 2.5) == []

    def test_sign_flags(self):
        assert rules_of(define("number", {"isPositive": True}), -1) == ["NUM_04"]
        assert rules_of(define("number", {"isNegative": True}), 1) == ["NUM_05"]
        assert rules_of(define("number", {"isPositive": True}), 0) == ["NUM_06"]
        assert rules_of(define("number", {"isPositive": True, "isZero": True}), 0) == []

    def test_not_a_number(self):
        assert rules_of(define("number"), "abc") == ["NUM_00"]

    def test_rating(self):
        definition = define("rating", {"minRating": 1, "maxRating": 5})
        assert rules_of(definition, 6) == ["RATE_02"]
        assert rules_of(definition, 3.5) == ["RATE_03"]
        half = define("rating", {"maxRating": 5, "allowHalfStars": True})
        assert rules_of(half, 3.5) == []
        assert rules_of(half, 3.25) == ["RATE_03"]


class TestDates:
    """Test date checks."""

    def test_bounds(self):
        definition = define("date", {"minDate": "2024-02-01", "maxDate": "2024-02-29"})
        assert rules_of(definition, "2024-01-31") == ["DATE_01"]
        assert rules_of(definition, "2024-03-01") == ["DATE_02"]
        assert rules_of(definition, "2024-02-15") == []

    def test_invalid(self):
        assert rules_of(define("date"), "31/31/2024") == ["DATE_00"]


class TestChoices:
    """Test select and multiselect checks."""

    def test_unknown_option(self):
        definition = define("select", options=["S", "M", "L"])
        assert rules_of(definition, "M") == []
        assert rules_of(definition, "XL") == ["SEL_01"]
        assert rules_of(definition, ["S", "M"]) == ["SEL_04"]

    def test_selection_counts(self):
        definition = define(
            "multiselect", {"minSelections": 2, "maxSelections": 3}, options=["a", "b", "c", "d"]
        )
        assert rules_of(definition, ["a"]) == ["SEL_02"]
        assert rules_of(definition, ["a", "b", "c", "d"]) == ["SEL_03"]
        assert rules_of(definition, ["a", "b"]) == []


class TestComposites:
    """Test array, object and table checks."""

    def test_array(self):
        definition = define("array", {"minItems": 2, "uniqueItems": True, "itemType": "number"})
        assert rules_of(definition, [1]) == ["ARR_01"]
        assert rules_of(definition, [1, 1]) == ["ARR_03"]
        assert rules_of(definition, [1, "x"]) == ["ARR_04"]
        assert rules_of(definition, "1,2") == ["ARR_00"]

    def test_object(self):
        definition = define(
            "object",
            {
                "requiredProperties": ["name"],
                "strictMode": True,
                "jsonSchema": '{"properties": {"name": {}, "sku": {}}}',
            },
        )
        assert rules_of(definition, {"name": "x", "sku": "y"}) == []
        assert rules_of(definition, {"sku": "y", "extra": 1}) == ["OBJ_01", "OBJ_02"]

    def test_table_row_count(self):
        definition = define(
            "table", {"columns": [{"name": "a"}, {"name": "b"}], "minRows": 2, "maxRows": 3}
        )
        errors = validate_attribute_value(definition, [["1", "2"]])
        assert [e.rule for e in errors] == ["TBL_01"]
        assert "row count below minimum" in errors[0].message

        assert rules_of(definition, [["1", "2"]] * 4) == ["TBL_02"]

    def test_table_misaligned_rows_warn(self):
        definition = define("table", {"columns": [{"name": "a"}, {"name": "b"}]})
        errors = validate_attribute_value(definition, [["1"]])
        assert [e.rule for e in errors] == ["TBL_03"]
        assert errors[0].level == ValidationLevel.WARNING

    def test_table_shape(self):
        assert rules_of(define("table"), "rows") == ["TBL_00"]


class TestMiscTypes:
    """Test color, file, formula and boolean checks."""

    def test_color(self):
        assert rules_of(define("color", {"colorFormat": "hex"}), "#ff8800") == []
        assert rules_of(define("color", {"colorFormat": "hex"}), "rgb(1, 2, 3)") == ["COLOR_01"]
        assert rules_of(define("color"), "rgb(1, 2, 3)") == []

    def test_files(self):
        definition = define(
            "image", {"maxFiles": 1, "allowedExtensions": ["png"], "maxFileSize": 100}
        )
        files = [{"name": "a.jpg", "size": 500}, {"name": "b.png", "size": 10}]
        assert rules_of(definition, files) == ["FILE_01", "FILE_02", "FILE_03"]

    def test_formula_syntax(self):
        definition = define("formula", {"requireValidSyntax": True})
        assert rules_of(definition, "(a + b) * 2") == []
        assert rules_of(definition, "(a + b") == ["FORM_02"]

    def test_boolean(self):
        assert rules_of(define("boolean"), True) == []
        assert rules_of(define("boolean"), "yes") == ["BOOL_01"]


class TestRecordValidation:
    """Test validating several attributes at once."""

    def test_only_invalid_codes_reported(self):
        definitions = [
            define("text", isRequired=True, code="sku"),
            define("number", {"min": 0}, code="weight"),
            define("email", code="contact"),
        ]
        results = validate_attributes(definitions, {"weight": -1, "contact": "a@b.co"})

        assert set(results) == {"sku", "weight"}
        assert results["weight"][0].rule == "NUM_01"

    def test_report(self):
        assert format_validation_errors([]) == "✅ Validation passed!"

        errors = validate_attribute_value(define("text", isRequired=True, code="sku"), None)
        report = format_validation_errors(errors)
        assert "Found 1 validation error(s)" in report
        assert "[ERROR] REQ_01" in report
        assert "Location: attribute 'sku'" in report
