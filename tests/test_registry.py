"""Tests for the renderer registry and the per-type renderers."""

from unittest.mock import Mock

import pytest

from pim_mcp.models import AttributeDefinition, AttributeType
from pim_mcp.registry import RendererRegistry, RenderMode, default_registry
from pim_mcp.renderers import DetailView, InputWidget, RendererSet, text_cell


@pytest.fixture
def registry():
    return default_registry()


def cell(attribute_type, value, attribute=None):
    return default_registry().resolve(attribute_type, RenderMode.CELL)(value, attribute)


class TestRendererRegistry:
    """Test type-to-renderer dispatch."""

    def test_all_types_registered(self, registry):
        """Test every attribute type has a renderer set."""
        for attribute_type in AttributeType:
            assert attribute_type in registry
        assert len(registry) == len(AttributeType)

    @pytest.mark.parametrize("mode", ["cell", "edit", "detail"])
    def test_unknown_type_resolves_to_text(self, registry, mode):
        """Test unknown types fall back to the text renderer in every mode."""
        assert registry.resolve("hologram", mode) is registry.resolve("text", mode)

    def test_unknown_mode_raises(self, registry):
        with pytest.raises(ValueError):
            registry.resolve("text", "preview")

    def test_register_new_type(self):
        """Test new types are added by registration."""
        registry = RendererRegistry()
        registry.register("text", default_registry().renderer_set("text"))
        custom = RendererSet(cell=Mock(return_value="custom"), edit=Mock(), detail=Mock())
        registry.register("sku", custom)

        assert registry.resolve("sku", RenderMode.CELL)(1) == "custom"
        assert "sku" in registry.types()


class TestCellRenderers:
    """Test cell mode output."""

    def test_empty_values_show_placeholder(self):
        for attribute_type in ("text", "number", "date", "multiselect", "table", "json"):
            assert cell(attribute_type, None) == "-"
        assert cell("text", "") == "-"
        assert cell("multiselect", []) == "-"

    def test_long_text_truncated(self):
        text = "x" * 60
        assert text_cell(text) == "x" * 50 + "..."
        assert text_cell("short") == "short"

    def test_boolean(self):
        assert cell("boolean", True) == "Yes"
        assert cell("boolean", False) == "No"

    def test_number_grouping(self):
        assert cell("number", 1234567) == "1,234,567"

    def test_date(self):
        assert cell("date", "2024-03-05") == "05 Mar 2024"

    def test_password_masked(self):
        assert "secret" not in cell("password", "secret")

    def test_table_summary(self):
        assert cell("table", [["a"], ["b"]]) == "2 rows"

    def test_rating_stars(self):
        assert cell("rating", 3) == "★★★☆☆"

    def test_select_uses_option_label(self):
        attribute = AttributeDefinition.from_payload(
            {
                "code": "color",
                "type": "multiselect",
                "options": [{"_id": "o1", "label": "Red"}, {"_id": "o2", "label": "Blue"}],
            }
        )
        assert cell("multiselect", ["o1", "o2"], attribute) == "Red, Blue"
        assert cell("select", "o3", attribute) == "o3"

    def test_json_compact(self):
        assert cell("json", {"a": 1}) == '{"a":1}'


class TestEditRenderers:
    """Test edit widgets coerce input before reporting changes."""

    def test_number_widget_coerces(self, registry):
        on_change = Mock()
        widget = registry.resolve("number", "edit")(None, on_change)

        assert isinstance(widget, InputWidget)
        assert widget.input_type == "number"
        assert widget.change("12.5")
        on_change.assert_called_once_with(12.5)

    def test_decimal_step(self, registry):
        widget = registry.resolve("decimal", "edit")(None, Mock())
        assert widget.step == 0.01

    def test_disabled_widget_never_reports(self, registry):
        on_change = Mock()
        widget = registry.resolve("text", "edit")("a", on_change, disabled=True)

        assert not widget.change("b")
        on_change.assert_not_called()

    def test_readonly_always_disabled(self, registry):
        widget = registry.resolve("readonly", "edit")("fixed", Mock())
        assert widget.disabled

    def test_select_options(self, registry):
        attribute = AttributeDefinition.from_payload(
            {"code": "size", "type": "select", "options": ["S", "M"]}
        )
        widget = registry.resolve("select", "edit")("S", Mock(), attribute=attribute)
        assert widget.options == [{"value": "S", "label": "S"}, {"value": "M", "label": "M"}]

    def test_table_widget_initializes_grid(self, registry):
        """Test a table edit widget seeds one empty row."""
        attribute = AttributeDefinition.from_payload(
            {
                "code": "dims",
                "type": "table",
                "validations": {"columns": [{"name": "a"}, {"name": "b"}, {"name": "c"}], "minRows": 1},
            }
        )
        on_change = Mock()
        widget = registry.resolve("table", "edit")([], on_change, attribute=attribute)

        assert widget.grid.rows == [["", "", ""]]
        on_change.assert_called_once_with([["", "", ""]])


class TestDetailRenderers:
    """Test detail views."""

    def test_detail_wraps_cell(self, registry):
        attribute = AttributeDefinition.from_payload(
            {
                "code": "weight",
                "type": "number",
                "isRequired": True,
                "name": {"translations": {"en": "Weight", "tr": "Ağırlık"}},
                "description": "Net weight",
            }
        )
        view = registry.resolve("number", "detail")(attribute, 1500, language="tr", error="too heavy")

        assert isinstance(view, DetailView)
        assert view.label == "Ağırlık"
        assert view.description == "Net weight"
        assert view.required
        assert view.body == "1,500"
        assert view.error == "too heavy"

    def test_detail_with_on_change_composes_widget(self, registry):
        attribute = AttributeDefinition(code="sku", type="text")
        view = registry.resolve("text", "detail")(attribute, "A-1", on_change=Mock())

        assert isinstance(view.body, InputWidget)
        assert view.label == "sku"
