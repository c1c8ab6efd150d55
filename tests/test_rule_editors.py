"""Tests for validation rule editors."""

import pytest

from pim_mcp.models import AttributeDefinition, NumberRules, TableRules, TextRules
from pim_mcp.rule_editors import (
    NoRulesEditor,
    NumberRuleEditor,
    TableRuleEditor,
    get_editor,
    validate_schema_rules,
)
from pim_mcp.validators import ValidationLevel


class TestGetEditor:
    """Test editor lookup per attribute type."""

    def test_number_types_share_editor(self):
        assert isinstance(get_editor("integer"), NumberRuleEditor)
        assert isinstance(get_editor("decimal"), NumberRuleEditor)

    @pytest.mark.parametrize("attribute_type", ["boolean", "time", "json", "expression", "barcode", "qr"])
    def test_types_without_rules(self, attribute_type):
        """Test types without bespoke rules get the informational editor."""
        editor = get_editor(attribute_type)
        assert isinstance(editor, NoRulesEditor)
        assert "No validation rules" in editor.info

    def test_no_rules_editor_leaves_rule_unchanged(self):
        result = get_editor("boolean").edit(None, "anything", 5)
        assert result.rule.to_payload() == {}
        assert result.errors == []


class TestNumberRuleEditor:
    """Test number rule editing."""

    def test_min_greater_than_max_reports_both_fields(self):
        """Test {min: 10, max: 5} is stored and flagged on min and max."""
        editor = get_editor("number")
        result = editor.edit(NumberRules(min=10), "max", "5")

        assert result.rule.min == 10
        assert result.rule.max == 5
        assert set(result.field_errors) == {"min", "max"}
        assert not result.is_consistent

    def test_blank_input_clears_field(self):
        editor = get_editor("number")
        result = editor.edit(NumberRules(min=3), "min", "")
        assert result.rule.min is None

    def test_checkbox_input(self):
        result = get_editor("number").edit(None, "isInteger", "true")
        assert result.rule.is_integer is True

    def test_contradictory_sign_flags(self):
        errors = get_editor("number").check(NumberRules(is_positive=True, is_negative=True))
        assert {e.location for e in errors} == {"rule 'isPositive'", "rule 'isNegative'"}

    @pytest.mark.parametrize(
        "digits,expected_min,expected_max",
        [(1, 0, 9), (3, 100, 999), (11, 10_000_000_000, 99_999_999_999)],
    )
    def test_exact_digits(self, digits, expected_min, expected_max):
        result = NumberRuleEditor().exact_digits(None, digits)
        assert result.rule.min == expected_min
        assert result.rule.max == expected_max
        assert result.rule.is_integer is True

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError):
            get_editor("number").edit(None, "minRows", 1)


class TestOtherEditors:
    """Test cross-field checks of the remaining editors."""

    def test_text_lengths(self):
        errors = get_editor("text").check(TextRules(min_length=8, max_length=4))
        assert len(errors) == 2

    def test_invalid_pattern(self):
        errors = get_editor("text").check(TextRules(pattern="[a-"))
        assert [e.rule for e in errors] == ["RULE_TEXT_03"]

    def test_date_range(self):
        editor = get_editor("date")
        result = editor.edit({"minDate": "2024-06-01"}, "maxDate", "2024-01-01")
        assert result.rule.max_date == "2024-01-01"
        assert set(result.field_errors) == {"minDate", "maxDate"}

    def test_unparsable_date_reported_not_raised(self):
        """Test a non-ISO date is a field error and skips the range check."""
        errors = get_editor("date").check({"minDate": "soon", "maxDate": "2024-01-01"})

        assert [e.rule for e in errors] == ["RULE_DATE_02"]
        assert errors[0].location == "rule 'minDate'"

    def test_non_string_pattern_stored_as_text(self):
        result = get_editor("text").edit(None, "pattern", 123)
        assert result.rule.pattern == "123"
        assert result.errors == []

    def test_structured_json_schema_serialized(self):
        result = get_editor("object").edit(None, "jsonSchema", {"type": "object"})
        assert result.rule.json_schema == '{"type": "object"}'
        assert result.errors == []

    def test_select_negative_counts(self):
        errors = get_editor("multiselect").check({"minSelections": -1})
        assert errors and errors[0].rule == "RULE_SEL_02"

    def test_list_field_from_comma_text(self):
        result = get_editor("object").edit(None, "requiredProperties", "name, sku")
        assert result.rule.required_properties == ["name", "sku"]

    def test_object_schema_must_be_json(self):
        result = get_editor("object").edit(None, "jsonSchema", "{not json")
        assert result.errors[0].rule == "RULE_OBJ_01"

    def test_empty_rule(self):
        editor = get_editor("text")
        assert editor.is_empty(None)
        assert editor.check(None) == []
        assert not editor.is_empty(TextRules(min_length=1))


class TestTableRuleEditor:
    """Test table column editing."""

    def test_default_columns(self):
        columns = TableRuleEditor.default_columns()
        assert [c.width for c in columns] == [80, 100, 100]
        assert all(c.type == "number" for c in columns)

    def test_select_column_without_options(self):
        editor = TableRuleEditor()
        result = editor.add_column(TableRules(), {"name": "Finish", "type": "select"})

        assert [e.rule for e in result.errors] == ["RULE_TBL_05"]

        result = editor.add_option(result.rule, 0, "matte")
        assert result.rule.columns[0].options == ["matte"]
        assert result.errors == []

    def test_column_update_and_removal(self):
        editor = TableRuleEditor()
        rule = TableRules(columns=TableRuleEditor.default_columns())

        result = editor.update_column(rule, 0, "name", "")
        assert result.errors[0].rule == "RULE_TBL_03"

        result = editor.remove_column(result.rule, 0)
        assert len(result.rule.columns) == 2
        assert result.errors == []

    def test_row_bounds(self):
        result = TableRuleEditor().edit(TableRules(min_rows=5), "maxRows", "2")
        assert set(result.field_errors) == {"minRows", "maxRows"}


class TestSchemaRules:
    """Test authoring checks across a whole schema."""

    def test_errors_located_by_attribute(self):
        definitions = [
            AttributeDefinition.from_payload({"code": "qty", "type": "integer", "validations": {"min": 5, "max": 1}}),
            AttributeDefinition.from_payload({"code": "sku", "type": "text"}),
        ]
        errors = validate_schema_rules(definitions)

        assert len(errors) == 2
        assert all(e.location.startswith("attribute 'qty'") for e in errors)
        assert all(e.level == ValidationLevel.ERROR for e in errors)
