"""Tests for the schema engine MCP tool routing."""

import pytest

from pim_mcp.engine_client import ENGINE_TOOLS, SchemaEngineClient

TABLE_ATTRIBUTE = {
    "code": "dims",
    "type": "table",
    "validations": {
        "columns": [{"name": "No.", "type": "number"}, {"name": "Note"}],
        "minRows": 1,
        "maxRows": 2,
    },
}

BRAND_RULE = {
    "targetItemTypeCode": "brand",
    "targetItemTypeName": "Brand",
    "association": "many-to-one",
    "cardinality": {"min": 1, "max": 1},
    "isRequired": True,
}


@pytest.fixture
def engine():
    return SchemaEngineClient()


class TestAttributeTools:
    """Test the attribute type, render and validation tools."""

    async def test_list_attribute_types(self, engine):
        result = await engine.call_endpoint("list_attribute_types", {})
        by_type = {entry["type"]: entry for entry in result["types"]}

        assert len(by_type) == 30
        assert "minRows" in by_type["table"]["rules"]
        assert not by_type["boolean"]["supports_rules"]

    async def test_render_cell(self, engine):
        result = await engine.call_endpoint(
            "render_attribute_value", {"type": "number", "value": 1234, "mode": "cell"}
        )
        assert result == {"success": True, "text": "1,234"}

    async def test_render_edit_with_input(self, engine):
        result = await engine.call_endpoint(
            "render_attribute_value", {"type": "number", "mode": "edit", "input": "12"}
        )
        assert result["changed_value"] == 12

    async def test_render_detail_needs_attribute(self, engine):
        result = await engine.call_endpoint("render_attribute_value", {"type": "text", "mode": "detail"})
        assert not result["success"]

    async def test_coerce(self, engine):
        result = await engine.call_endpoint("coerce_attribute_value", {"type": "richText", "value": 5})
        assert result["type"] == "rich_text"
        assert result["value"] == "5"

    async def test_validate_value(self, engine):
        result = await engine.call_endpoint(
            "validate_attribute_value",
            {"attribute": {"code": "qty", "type": "integer", "validations": {"max": 10}}, "value": 11},
        )
        assert not result["is_valid"]
        assert result["errors"][0]["rule"] == "NUM_02"
        assert "NUM_02" in result["report"]

    async def test_validate_rejects_bad_definition(self, engine):
        result = await engine.call_endpoint(
            "validate_attribute_value",
            {"attribute": {"code": "qty", "type": "text", "validations": {"minRows": 1}}, "value": "x"},
        )
        assert not result["success"]


class TestRuleTools:
    """Test rule checking and editing tools."""

    async def test_check_rules(self, engine):
        result = await engine.call_endpoint(
            "check_validation_rules", {"type": "number", "rules": {"min": 10, "max": 5}}
        )
        assert not result["is_consistent"]
        assert not result["is_empty"]

    async def test_check_rules_without_rule_support(self, engine):
        result = await engine.call_endpoint("check_validation_rules", {"type": "boolean"})
        assert result["is_consistent"]
        assert "info" in result

    async def test_edit_rule(self, engine):
        result = await engine.call_endpoint(
            "edit_validation_rule",
            {"type": "number", "rules": {"min": 10}, "field": "max", "value": "5"},
        )
        assert result["rules"] == {"min": 10, "max": 5}
        assert set(result["field_errors"]) == {"min", "max"}

    async def test_edit_rule_exact_digits(self, engine):
        result = await engine.call_endpoint(
            "edit_validation_rule", {"type": "integer", "action": "exact_digits", "value": 2}
        )
        assert result["rules"] == {"min": 10, "max": 99, "isInteger": True}

    async def test_edit_rule_structured_schema(self, engine):
        result = await engine.call_endpoint(
            "edit_validation_rule",
            {"type": "object", "field": "jsonSchema", "value": {"type": "object"}},
        )
        assert result["success"]
        assert result["rules"] == {"jsonSchema": '{"type": "object"}'}

    async def test_check_rules_with_unparsable_date(self, engine):
        result = await engine.call_endpoint(
            "check_validation_rules",
            {"type": "date", "rules": {"minDate": "soon", "maxDate": "2024-01-01"}},
        )
        assert not result["is_consistent"]
        assert result["errors"][0]["rule"] == "RULE_DATE_02"

    async def test_edit_rule_unknown_field(self, engine):
        result = await engine.call_endpoint(
            "edit_validation_rule", {"type": "text", "field": "minRows", "value": 1}
        )
        assert not result["success"]

    async def test_unsupported_action(self, engine):
        result = await engine.call_endpoint(
            "edit_validation_rule", {"type": "text", "action": "add_column"}
        )
        assert not result["success"]
        assert "not supported" in result["message"]


class TestTableGridSession:
    """Test the stateful table grid tools."""

    async def test_grid_flow(self, engine):
        opened = await engine.call_endpoint("open_table_grid", {"attribute": TABLE_ATTRIBUTE})
        grid_id = opened["grid_id"]

        assert opened["rows"] == [["", ""]]

        edited = await engine.call_endpoint(
            "table_grid_action", {"grid_id": grid_id, "action": "edit_cell", "row": 0, "column": 0, "value": "7"}
        )
        assert edited["applied"]
        assert edited["rows"] == [[7, ""]]

        added = await engine.call_endpoint("table_grid_action", {"grid_id": grid_id, "action": "add_row"})
        assert added["applied"]
        assert not added["can_add_row"]

        refused = await engine.call_endpoint("table_grid_action", {"grid_id": grid_id, "action": "add_row"})
        assert not refused["applied"]
        assert len(refused["rows"]) == 2

        closed = await engine.call_endpoint("close_session", {"session_id": grid_id})
        assert closed["success"]

        gone = await engine.call_endpoint("table_grid_action", {"grid_id": grid_id, "action": "get"})
        assert not gone["success"]

    async def test_non_table_attribute(self, engine):
        result = await engine.call_endpoint(
            "open_table_grid", {"attribute": {"code": "sku", "type": "text"}}
        )
        assert not result["success"]


class TestAssociationTools:
    """Test association validation and candidate selection tools."""

    async def test_validate_with_change(self, engine):
        result = await engine.call_endpoint(
            "validate_associations",
            {
                "rules": [BRAND_RULE],
                "selections": {},
                "change": {"association_key": "brand_many-to-one", "value": "b1"},
            },
        )
        assert result["isValid"]
        assert result["selections"] == {"brand_many-to-one": "b1"}

    async def test_validate_required(self, engine):
        result = await engine.call_endpoint("validate_associations", {"rules": [BRAND_RULE]})
        assert not result["isValid"]
        assert result["errors"][0]["message"] == "selection required for Brand"

    async def test_selection_needs_pim_client(self, engine):
        result = await engine.call_endpoint(
            "open_candidate_selection", {"rule": BRAND_RULE, "rule_code": "r1"}
        )
        assert not result["success"]

    async def test_selection_flow(self, collaborator):
        engine = SchemaEngineClient(pim_client=collaborator)
        opened = await engine.call_endpoint(
            "open_candidate_selection",
            {"rule": BRAND_RULE, "rule_code": "r1", "source_entity_id": "src"},
        )
        session_id = opened["session_id"]
        assert len(opened["candidates"]) == 5

        await engine.call_endpoint("toggle_candidate", {"session_id": session_id, "entity_id": "a"})
        toggled = await engine.call_endpoint("toggle_candidate", {"session_id": session_id, "entity_id": "b"})
        assert [e["id"] for e in toggled["selected"]] == ["b"]

        missing = await engine.call_endpoint("toggle_candidate", {"session_id": session_id, "entity_id": "zz"})
        assert not missing["success"]

        submitted = await engine.call_endpoint("submit_candidate_selection", {"session_id": session_id})
        assert submitted["success"]
        assert submitted["selected"] == []
        assert submitted["messages"][-1]["level"] == "success"
        collaborator.create_association.assert_awaited_once_with("src", "r1", ["b"])

    async def test_unknown_session(self, engine):
        result = await engine.call_endpoint("load_candidates", {"session_id": "selection_nope"})
        assert not result["success"]
        assert "not found" in result["message"]


async def test_unknown_tool(engine):
    with pytest.raises(ValueError, match="Unknown engine tool"):
        await engine.call_endpoint("launch_rocket", {})


def test_tool_list_is_unique():
    assert len(ENGINE_TOOLS) == len(set(ENGINE_TOOLS))
