"""Tests for boundary value coercion and label resolution."""

from pim_mcp.coercion import (
    ValueCategory,
    category_for,
    coerce_value,
    default_value_for,
    to_list,
    to_number,
)
from pim_mcp.labels import get_entity_name, get_translated_text


class TestCoercion:
    """Test raw value conversion per attribute type."""

    def test_numbers(self):
        assert coerce_value("number", "42") == 42
        assert coerce_value("decimal", "3,5") == 3.5
        assert coerce_value("integer", "7.9") == 7
        assert coerce_value("number", "") is None
        assert coerce_value("number", "abc") is None

    def test_non_finite_numbers_rejected(self):
        assert to_number("inf") is None
        assert to_number("nan") is None

    def test_boolean(self):
        assert coerce_value("boolean", "yes") is True
        assert coerce_value("boolean", "0") is False
        assert coerce_value("boolean", "maybe") is None

    def test_temporal(self):
        assert coerce_value("date", "2024-03-05T10:00:00Z") == "2024-03-05"
        assert coerce_value("datetime", "2024-03-05T10:00:00Z") == "2024-03-05T10:00:00+00:00"
        assert coerce_value("time", "09:30") == "09:30:00"
        assert coerce_value("date", "not a date") is None

    def test_lists(self):
        assert coerce_value("multiselect", "a, b,,c") == ["a", "b", "c"]
        assert coerce_value("array", '["x", 1]') == ["x", 1]
        assert coerce_value("multiselect", "") == []
        assert to_list(None) == []

    def test_table_rows(self):
        assert coerce_value("table", [["1", "2"], ("3", "4")]) == [["1", "2"], ["3", "4"]]

    def test_object_and_json(self):
        assert coerce_value("object", '{"a": 1}') == {"a": 1}
        assert coerce_value("object", "{broken") is None
        assert coerce_value("json", "{broken") == "{broken"

    def test_unknown_type_is_text(self):
        assert coerce_value("hologram", 12) == "12"
        assert category_for("hologram") == ValueCategory.TEXT

    def test_categories(self):
        assert category_for("rating") == ValueCategory.NUMERIC
        assert category_for("multiselect") == ValueCategory.CHOICE
        assert category_for("table") == ValueCategory.COMPOSITE

    def test_defaults(self):
        assert default_value_for("text") == ""
        assert default_value_for("number") == 0
        assert default_value_for("boolean") is False
        assert default_value_for("multiselect") == []
        assert default_value_for("color") == "#000000"


class TestLabels:
    """Test localized label lookup order."""

    def test_language_then_fallback_then_first(self):
        name = {"translations": {"tr": "Renk", "de": "Farbe"}}
        assert get_translated_text(name, "tr") == "Renk"
        assert get_translated_text(name, "fr", "de") == "Farbe"
        assert get_translated_text(name, "fr", "es") == "Renk"

    def test_plain_string_passes_through(self):
        assert get_translated_text("Color", "tr") == "Color"

    def test_entity_name_falls_back_to_code_then_id(self):
        assert get_entity_name({"_id": "e1", "code": "SKU-1", "name": None}) == "SKU-1"
        assert get_entity_name({"_id": "e1"}) == "e1"
