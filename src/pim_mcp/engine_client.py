import logging
import uuid
from typing import Any, Dict, List, Optional

import pydantic

from .associations import update_selections, validate_associations
from .client import PimClient
from .coercion import category_for, coerce_value
from .labels import DEFAULT_LANGUAGE
from .models import (
    AssociationRule,
    AttributeDefinition,
    AttributeType,
    EmptyRules,
    TableRules,
    rule_model_for,
)
from .registry import RendererRegistry, RenderMode, default_registry
from .renderers import DetailView, InputWidget
from .rule_editors import NoRulesEditor, TableRuleEditor, get_editor, validate_schema_rules
from .selection import CandidateSelectionController
from .table_grid import TableGrid
from .validators import format_validation_errors, has_blocking_errors, validate_attribute_value

logger = logging.getLogger(__name__)

ENGINE_TOOLS = [
    "list_attribute_types",
    "render_attribute_value",
    "coerce_attribute_value",
    "validate_attribute_value",
    "check_validation_rules",
    "edit_validation_rule",
    "open_table_grid",
    "table_grid_action",
    "validate_associations",
    "open_candidate_selection",
    "load_candidates",
    "toggle_candidate",
    "select_all_candidates",
    "deselect_all_candidates",
    "submit_candidate_selection",
    "close_session",
]


def _errors_payload(errors) -> List[Dict[str, Any]]:
    return [error.to_dict() for error in errors]


def _grid_state(grid_id: str, grid: TableGrid, applied: Optional[bool] = None) -> Dict[str, Any]:
    state = {
        "success": True,
        "grid_id": grid_id,
        "columns": [column.model_dump(by_alias=True, exclude_none=True) for column in grid.columns],
        "rows": grid.rows,
        "can_add_row": grid.can_add_row(),
        "can_delete_row": grid.can_delete_row(),
        "error": grid.error,
    }
    if applied is not None:
        state["applied"] = applied
    return state


class SchemaEngineClient:
    """Runs the attribute schema and association engines as MCP tools.

    Table grids and candidate selections are stateful; they are kept in
    ``self._cache`` under generated ids until ``close_session`` is called.
    """

    def __init__(
        self,
        pim_client: Optional[PimClient] = None,
        language: str = DEFAULT_LANGUAGE,
        page_size: int = 10,
        registry: Optional[RendererRegistry] = None,
    ):
        self._pim = pim_client
        self.language = language
        self.page_size = page_size
        self._registry = registry or default_registry()
        self._cache: Dict[str, Any] = {}

    def _session(self, session_id: str, kind: type) -> Any:
        session = self._cache.get(session_id)
        return session if isinstance(session, kind) else None

    def _missing(self, session_id: str) -> Dict[str, Any]:
        return {
            "success": False,
            "message": f"Session '{session_id}' not found. It may have been closed; open a new one.",
            "session_id": session_id,
        }

    async def call_endpoint(
        self, tool_name: str, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Route tool calls to the schema and association engines.

        Raises:
            ValueError: If unknown tool name
        """
        language = arguments.get("language", self.language)

        if tool_name == "list_attribute_types":
            types = []
            for attribute_type in AttributeType:
                model = rule_model_for(attribute_type)
                types.append(
                    {
                        "type": attribute_type.value,
                        "category": category_for(attribute_type).value,
                        "rules": [
                            info.alias or name for name, info in model.model_fields.items()
                        ],
                        "supports_rules": model is not EmptyRules,
                    }
                )
            return {"success": True, "types": types}

        elif tool_name == "render_attribute_value":
            mode = RenderMode(arguments.get("mode", RenderMode.CELL.value))
            value = arguments.get("value")
            try:
                definition = (
                    AttributeDefinition.from_payload(arguments["attribute"])
                    if arguments.get("attribute")
                    else None
                )
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid attribute definition: {e}"}
            attribute_type = definition.type if definition else arguments.get("type", "text")
            renderer = self._registry.resolve(attribute_type, mode)

            if mode == RenderMode.CELL:
                return {"success": True, "text": renderer(value, definition, language)}

            changes: List[Any] = []
            if mode == RenderMode.EDIT:
                output = renderer(
                    value,
                    changes.append,
                    disabled=arguments.get("disabled", False),
                    attribute=definition,
                )
            else:
                if definition is None:
                    return {"success": False, "message": "Detail rendering needs an attribute definition"}
                output = renderer(
                    definition,
                    value,
                    language=language,
                    error=arguments.get("error"),
                    on_change=changes.append if arguments.get("editable") else None,
                    disabled=arguments.get("disabled", False),
                )

            widget = output if isinstance(output, InputWidget) else None
            if isinstance(output, DetailView) and isinstance(output.body, InputWidget):
                widget = output.body
            if widget is not None and "input" in arguments:
                widget.change(arguments["input"])

            response = {"success": True, "view": output.to_dict()}
            if changes:
                response["changed_value"] = changes[-1]
            return response

        elif tool_name == "coerce_attribute_value":
            attribute_type = arguments.get("type", "text")
            return {
                "success": True,
                "type": (AttributeType.parse(attribute_type) or AttributeType.TEXT).value,
                "category": category_for(attribute_type).value,
                "value": coerce_value(attribute_type, arguments.get("value")),
            }

        elif tool_name == "validate_attribute_value":
            try:
                definition = AttributeDefinition.from_payload(arguments["attribute"])
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid attribute definition: {e}"}
            errors = validate_attribute_value(definition, arguments.get("value"))
            return {
                "success": True,
                "is_valid": not has_blocking_errors(errors),
                "errors": _errors_payload(errors),
                "report": format_validation_errors(errors) if errors else "",
            }

        elif tool_name == "check_validation_rules":
            try:
                if "attributes" in arguments:
                    definitions = [
                        AttributeDefinition.from_payload(payload)
                        for payload in arguments["attributes"]
                    ]
                    errors = validate_schema_rules(definitions)
                    return {
                        "success": True,
                        "is_consistent": not has_blocking_errors(errors),
                        "errors": _errors_payload(errors),
                    }
                editor = get_editor(arguments.get("type", "text"))
                rule = editor.ensure_rule(arguments.get("rules"))
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid validation rules: {e}"}
            errors = editor.check(rule)
            response = {
                "success": True,
                "is_consistent": not has_blocking_errors(errors),
                "is_empty": editor.is_empty(rule),
                "errors": _errors_payload(errors),
            }
            if isinstance(editor, NoRulesEditor):
                response["info"] = editor.info
            return response

        elif tool_name == "edit_validation_rule":
            editor = get_editor(arguments.get("type", "text"))
            action = arguments.get("action", "set")
            try:
                rule = editor.ensure_rule(arguments.get("rules"))
                if action == "set":
                    result = editor.edit(rule, arguments["field"], arguments.get("value"))
                elif action == "exact_digits" and hasattr(editor, "exact_digits"):
                    result = editor.exact_digits(rule, arguments.get("value"))
                elif isinstance(editor, TableRuleEditor) and action in (
                    "add_column",
                    "remove_column",
                    "update_column",
                    "add_option",
                    "remove_option",
                    "update_option",
                ):
                    result = self._edit_table_rule(editor, rule, action, arguments)
                else:
                    return {
                        "success": False,
                        "message": f"Action '{action}' is not supported for type '{arguments.get('type', 'text')}'",
                    }
            except (pydantic.ValidationError, ValueError, KeyError) as e:
                return {"success": False, "message": f"Rule edit rejected: {e}"}

            response = {
                "success": True,
                "rules": result.rule.to_payload(),
                "errors": _errors_payload(result.errors),
                "field_errors": result.field_errors,
                "is_consistent": result.is_consistent,
            }
            if isinstance(editor, NoRulesEditor):
                response["info"] = editor.info
            return response

        elif tool_name == "open_table_grid":
            try:
                if arguments.get("attribute"):
                    definition = AttributeDefinition.from_payload(arguments["attribute"])
                    rules = definition.rules
                    if not isinstance(rules, TableRules):
                        return {
                            "success": False,
                            "message": f"Attribute '{definition.code}' is of type '{definition.type.value}', not table",
                        }
                else:
                    rules = TableRules.model_validate(arguments.get("rules") or {})
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid table rules: {e}"}

            rows = coerce_value(AttributeType.TABLE, arguments.get("value") or [])
            grid = TableGrid.from_rules(rules, rows=rows, disabled=arguments.get("disabled", False))
            grid.initialize()
            grid_id = f"grid_{uuid.uuid4()}"
            self._cache[grid_id] = grid
            logger.debug(f"Opened table grid {grid_id} with {len(grid.columns)} column(s)")
            return _grid_state(grid_id, grid)

        elif tool_name == "table_grid_action":
            grid_id = arguments["grid_id"]
            grid = self._session(grid_id, TableGrid)
            if grid is None:
                return self._missing(grid_id)

            action = arguments["action"]
            if action == "edit_cell":
                applied = grid.edit_cell(arguments["row"], arguments["column"], arguments.get("value"))
            elif action == "add_row":
                applied = grid.add_row()
            elif action == "delete_row":
                applied = grid.delete_row(arguments["row"])
            elif action == "get":
                applied = None
            else:
                return {"success": False, "message": f"Unknown table action '{action}'"}
            return _grid_state(grid_id, grid, applied)

        elif tool_name == "validate_associations":
            try:
                rules = [AssociationRule.model_validate(rule) for rule in arguments["rules"]]
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid association rules: {e}"}
            selections = dict(arguments.get("selections") or {})
            change = arguments.get("change")
            if change:
                rule = next((r for r in rules if r.key == change["association_key"]), None)
                if rule is None:
                    return {
                        "success": False,
                        "message": f"No association rule with key '{change['association_key']}'",
                    }
                selections = update_selections(selections, rule, change.get("value"))
            result = validate_associations(rules, selections)
            return {"success": True, "selections": selections, **result.to_dict()}

        elif tool_name == "open_candidate_selection":
            if self._pim is None:
                return {
                    "success": False,
                    "message": "PIM client not initialized. Please check your API credentials.",
                }
            try:
                rule = AssociationRule.model_validate(arguments["rule"])
            except pydantic.ValidationError as e:
                return {"success": False, "message": f"Invalid association rule: {e}"}
            controller = CandidateSelectionController(
                rule,
                arguments["rule_code"],
                source=self._pim,
                mutations=self._pim,
                source_entity_id=arguments.get("source_entity_id"),
                page_size=arguments.get("page_size", self.page_size),
                language=language,
            )
            session_id = f"selection_{uuid.uuid4()}"
            self._cache[session_id] = controller
            await controller.refresh_metadata()
            await controller.load_candidates(arguments.get("search_term"))
            return {"success": True, "session_id": session_id, **controller.to_dict()}

        elif tool_name in (
            "load_candidates",
            "toggle_candidate",
            "select_all_candidates",
            "deselect_all_candidates",
            "submit_candidate_selection",
        ):
            session_id = arguments["session_id"]
            controller = self._session(session_id, CandidateSelectionController)
            if controller is None:
                return self._missing(session_id)

            response: Dict[str, Any] = {"success": True, "session_id": session_id}
            if tool_name == "load_candidates":
                response["applied"] = await controller.load_candidates(
                    arguments.get("search_term"), arguments.get("page")
                )
            elif tool_name == "toggle_candidate":
                entity = self._find_candidate(controller, arguments)
                if entity is None:
                    return {
                        "success": False,
                        "message": f"Entity '{arguments.get('entity_id')}' is not among the loaded candidates",
                        "session_id": session_id,
                    }
                response["changed"] = controller.toggle(entity)
            elif tool_name == "select_all_candidates":
                response["added"] = controller.select_all()
            elif tool_name == "deselect_all_candidates":
                response["removed"] = controller.deselect_all()
            else:
                submitted = await controller.submit(
                    arguments.get("source_entity_id"), arguments.get("target_ids")
                )
                response["success"] = submitted
            response.update(controller.to_dict())
            controller.clear_messages()
            return response

        elif tool_name == "close_session":
            session_id = arguments["session_id"]
            if self._cache.pop(session_id, None) is None:
                return self._missing(session_id)
            return {"success": True, "session_id": session_id}

        else:
            raise ValueError(f"Unknown engine tool: {tool_name}")

    @staticmethod
    def _find_candidate(controller: CandidateSelectionController, arguments: Dict[str, Any]) -> Any:
        if arguments.get("entity"):
            return arguments["entity"]
        entity_id = arguments.get("entity_id")
        for entity in controller.candidates + controller.selected:
            if entity.id == entity_id:
                return entity
        return None

    @staticmethod
    def _edit_table_rule(editor: TableRuleEditor, rule: TableRules, action: str, arguments: Dict[str, Any]):
        index = arguments.get("column_index", 0)
        if action == "add_column":
            return editor.add_column(rule, arguments.get("column"))
        if action == "remove_column":
            return editor.remove_column(rule, index)
        if action == "update_column":
            return editor.update_column(rule, index, arguments["field"], arguments.get("value"))
        if action == "add_option":
            return editor.add_option(rule, index, arguments.get("value", ""))
        if action == "remove_option":
            return editor.remove_option(rule, index, arguments["option_index"])
        return editor.update_option(rule, index, arguments["option_index"], arguments.get("value", ""))
