#!/usr/bin/env python3

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import mcp.server.stdio
import mcp.types as types
from dotenv import load_dotenv
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .client import PimClient
from .engine_client import ENGINE_TOOLS, SchemaEngineClient
from .relationship_client import RelationshipClient

load_dotenv()

logger = logging.getLogger("pim-mcp")

server = Server("pim-mcp")

# Global client instances
pim_client: Optional[PimClient] = None
relationship_client: Optional[RelationshipClient] = None
engine_client: Optional[SchemaEngineClient] = None

ATTRIBUTE_SCHEMA = {
    "type": "object",
    "description": "Attribute definition: code, type, isRequired, options, validations, name, description",
}
RULES_SCHEMA = {
    "type": "object",
    "description": "Validation rules of the attribute type, camelCase keys (e.g. minLength, maxRows)",
}
ASSOCIATION_RULE_SCHEMA = {
    "type": "object",
    "description": "Association rule: targetItemTypeCode, association, cardinality {min, max}, isRequired, filterBy",
}
SESSION_SCHEMA = {"type": "string", "description": "Selection session ID"}


@server.list_tools()
async def handle_list_tools() -> List[types.Tool]:
    """List attribute engine, association engine and PIM API tools."""
    tools = [
        # Attribute schema engine tools
        types.Tool(
            name="list_attribute_types",
            description="List all attribute types with their value category and supported validation rule fields",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        types.Tool(
            name="render_attribute_value",
            description=(
                "Render an attribute value in cell, edit or detail mode. Unknown types render as text. "
                "Pass 'input' in edit mode to simulate typing into the widget and get the coerced value back."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "attribute": ATTRIBUTE_SCHEMA,
                    "type": {
                        "type": "string",
                        "description": "Attribute type, used when no attribute definition is given",
                    },
                    "value": {"description": "Current attribute value"},
                    "mode": {
                        "type": "string",
                        "enum": ["cell", "edit", "detail"],
                        "description": "Render mode (default: cell)",
                    },
                    "language": {"type": "string", "description": "Label language (e.g. 'en')"},
                    "input": {"description": "Raw input to feed into the edit widget"},
                    "editable": {
                        "type": "boolean",
                        "description": "Detail mode: render an edit widget instead of the cell text",
                    },
                    "disabled": {"type": "boolean", "description": "Render the widget disabled"},
                    "error": {"type": "string", "description": "Detail mode: error text to display"},
                },
                "required": [],
            },
        ),
        types.Tool(
            name="coerce_attribute_value",
            description="Convert a raw value (form input, string, JSON text) into the native value of an attribute type",
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "description": "Attribute type"},
                    "value": {"description": "Raw value"},
                },
                "required": ["type"],
            },
        ),
        types.Tool(
            name="validate_attribute_value",
            description="Validate a value against an attribute definition and its validation rules",
            inputSchema={
                "type": "object",
                "properties": {
                    "attribute": ATTRIBUTE_SCHEMA,
                    "value": {"description": "Value to validate"},
                },
                "required": ["attribute"],
            },
        ),
        types.Tool(
            name="check_validation_rules",
            description=(
                "Check authored validation rules for cross-field consistency (e.g. minLength > maxLength). "
                "Pass either 'type' and 'rules', or a list of 'attributes' to check a whole schema."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "description": "Attribute type"},
                    "rules": RULES_SCHEMA,
                    "attributes": {
                        "type": "array",
                        "items": ATTRIBUTE_SCHEMA,
                        "description": "Attribute definitions to check together",
                    },
                },
                "required": [],
            },
        ),
        types.Tool(
            name="edit_validation_rule",
            description=(
                "Edit one field of a validation rule from raw form input. Inconsistent rules are still stored; "
                "errors are returned per field. Number rules support action 'exact_digits'; table rules support "
                "column and option actions."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "type": {"type": "string", "description": "Attribute type"},
                    "rules": RULES_SCHEMA,
                    "action": {
                        "type": "string",
                        "enum": [
                            "set",
                            "exact_digits",
                            "add_column",
                            "remove_column",
                            "update_column",
                            "add_option",
                            "remove_option",
                            "update_option",
                        ],
                        "description": "Edit action (default: set)",
                    },
                    "field": {"type": "string", "description": "Rule field (set) or column field (update_column)"},
                    "value": {"description": "Raw input value"},
                    "column": {"type": "object", "description": "Column to add (add_column)"},
                    "column_index": {"type": "integer", "description": "Column index for column/option actions"},
                    "option_index": {"type": "integer", "description": "Option index for option actions"},
                },
                "required": ["type"],
            },
        ),
        types.Tool(
            name="open_table_grid",
            description="Open an editable grid for a table attribute value; returns a grid_id for table_grid_action",
            inputSchema={
                "type": "object",
                "properties": {
                    "attribute": ATTRIBUTE_SCHEMA,
                    "rules": RULES_SCHEMA,
                    "value": {"type": "array", "description": "Current rows (list of lists)"},
                    "disabled": {"type": "boolean", "description": "Open the grid read-only"},
                },
                "required": [],
            },
        ),
        types.Tool(
            name="table_grid_action",
            description="Edit a cell, add a row, delete a row or read the state of an open table grid",
            inputSchema={
                "type": "object",
                "properties": {
                    "grid_id": {"type": "string", "description": "Grid ID from open_table_grid"},
                    "action": {
                        "type": "string",
                        "enum": ["edit_cell", "add_row", "delete_row", "get"],
                    },
                    "row": {"type": "integer", "description": "Row index"},
                    "column": {"type": "integer", "description": "Column index"},
                    "value": {"description": "Cell value (edit_cell)"},
                },
                "required": ["grid_id", "action"],
            },
        ),
        # Association engine tools
        types.Tool(
            name="validate_associations",
            description=(
                "Validate association selections against cardinality rules. Selections map association keys "
                "('<targetItemTypeCode>_<association>') to an entity ID or a list of IDs."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "rules": {"type": "array", "items": ASSOCIATION_RULE_SCHEMA},
                    "selections": {"type": "object", "description": "Association key -> ID or list of IDs"},
                    "change": {
                        "type": "object",
                        "description": "Optional change to apply first: {association_key, value}; null or [] clears",
                    },
                },
                "required": ["rules"],
            },
        ),
        types.Tool(
            name="open_candidate_selection",
            description="Start picking target entities for an association rule; loads metadata and the first candidate page",
            inputSchema={
                "type": "object",
                "properties": {
                    "rule": ASSOCIATION_RULE_SCHEMA,
                    "rule_code": {"type": "string", "description": "Association rule code"},
                    "source_entity_id": {"type": "string", "description": "Source item ID"},
                    "search_term": {"type": "string", "description": "Initial search term"},
                    "page_size": {"type": "integer", "description": "Candidates per page"},
                    "language": {"type": "string", "description": "Label language"},
                },
                "required": ["rule", "rule_code"],
            },
        ),
        types.Tool(
            name="load_candidates",
            description="Search or page through candidates of a selection session",
            inputSchema={
                "type": "object",
                "properties": {
                    "session_id": SESSION_SCHEMA,
                    "search_term": {"type": "string", "description": "Search term"},
                    "page": {"type": "integer", "description": "Page number (1-based)"},
                },
                "required": ["session_id"],
            },
        ),
        types.Tool(
            name="toggle_candidate",
            description="Select or deselect a candidate; to-one rules replace the selection, to-many rules respect the max",
            inputSchema={
                "type": "object",
                "properties": {
                    "session_id": SESSION_SCHEMA,
                    "entity_id": {"type": "string", "description": "Candidate entity ID"},
                },
                "required": ["session_id", "entity_id"],
            },
        ),
        types.Tool(
            name="select_all_candidates",
            description="Select all visible candidates up to the rule's maximum (to-many rules only)",
            inputSchema={
                "type": "object",
                "properties": {"session_id": SESSION_SCHEMA},
                "required": ["session_id"],
            },
        ),
        types.Tool(
            name="deselect_all_candidates",
            description="Clear the selection of a selection session",
            inputSchema={
                "type": "object",
                "properties": {"session_id": SESSION_SCHEMA},
                "required": ["session_id"],
            },
        ),
        types.Tool(
            name="submit_candidate_selection",
            description="Create the association for the selected candidates; the selection is kept on failure",
            inputSchema={
                "type": "object",
                "properties": {
                    "session_id": SESSION_SCHEMA,
                    "source_entity_id": {"type": "string", "description": "Source item ID"},
                    "target_ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Explicit target IDs (default: current selection)",
                    },
                },
                "required": ["session_id"],
            },
        ),
        types.Tool(
            name="close_session",
            description="Close a table grid or selection session",
            inputSchema={
                "type": "object",
                "properties": {"session_id": {"type": "string", "description": "Grid or selection session ID"}},
                "required": ["session_id"],
            },
        ),
        # PIM API tools
        types.Tool(
            name="list_attributes",
            description="List attribute definitions",
            inputSchema={
                "type": "object",
                "properties": {"params": {"type": "object", "description": "Query parameters"}},
                "required": [],
            },
        ),
        types.Tool(
            name="get_attribute",
            description="Get an attribute definition by ID",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Attribute ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="list_item_types",
            description="List item types",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        types.Tool(
            name="get_item_type",
            description="Get an item type by ID",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Item type ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="list_items",
            description="List items",
            inputSchema={
                "type": "object",
                "properties": {"params": {"type": "object", "description": "Query parameters"}},
                "required": [],
            },
        ),
        types.Tool(
            name="get_item",
            description="Get an item by ID",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Item ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="get_association_rule",
            description="Get an association rule by code",
            inputSchema={
                "type": "object",
                "properties": {"code": {"type": "string", "description": "Association rule code"}},
                "required": ["code"],
            },
        ),
        types.Tool(
            name="get_filtered_items",
            description="Get the items an association rule allows for a source item, ranked by match score",
            inputSchema={
                "type": "object",
                "properties": {
                    "rule_code": {"type": "string", "description": "Association rule code"},
                    "source_item_id": {"type": "string", "description": "Source item ID"},
                    "params": {"type": "object", "description": "page, limit, searchQuery"},
                },
                "required": ["rule_code", "source_item_id"],
            },
        ),
        types.Tool(
            name="search_candidates",
            description="Search items of a target item type, filtered and paginated",
            inputSchema={
                "type": "object",
                "properties": {
                    "target_type_code": {"type": "string", "description": "Target item type code"},
                    "filter_by": {"type": "object", "description": "Extra query filters"},
                    "search_query": {"type": "string", "description": "Search text"},
                    "page": {"type": "integer", "description": "Page number (1-based)"},
                    "page_size": {"type": "integer", "description": "Items per page"},
                },
                "required": ["target_type_code"],
            },
        ),
        types.Tool(
            name="get_association_metadata",
            description="Get available/selected counts and validation status of an association rule for a source item",
            inputSchema={
                "type": "object",
                "properties": {
                    "rule_code": {"type": "string", "description": "Association rule code"},
                    "source_item_id": {"type": "string", "description": "Source item ID"},
                },
                "required": ["rule_code", "source_item_id"],
            },
        ),
        types.Tool(
            name="create_association",
            description="Associate target items with a source item through an association rule",
            inputSchema={
                "type": "object",
                "properties": {
                    "rule_code": {"type": "string", "description": "Association rule code"},
                    "source_item_id": {"type": "string", "description": "Source item ID"},
                    "target_item_ids": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["rule_code", "source_item_id", "target_item_ids"],
            },
        ),
        # Relationship tools
        types.Tool(
            name="relationship_list_types",
            description="List relationship types",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        types.Tool(
            name="relationship_get_type",
            description="Get a relationship type by ID",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Relationship type ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="relationship_create_type",
            description="Create a relationship type",
            inputSchema={
                "type": "object",
                "properties": {
                    "relationship_type": {
                        "type": "object",
                        "description": "code, name, isDirectional, allowedSourceTypes, allowedTargetTypes",
                    }
                },
                "required": ["relationship_type"],
            },
        ),
        types.Tool(
            name="relationship_update_type",
            description="Update a relationship type",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Relationship type ID"},
                    "updates": {"type": "object", "description": "Fields to update"},
                },
                "required": ["id", "updates"],
            },
        ),
        types.Tool(
            name="relationship_delete_type",
            description="Delete a relationship type",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Relationship type ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="relationship_get",
            description="Get a relationship by ID",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Relationship ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="relationship_list_by_entity",
            description="List the relationships of an entity",
            inputSchema={
                "type": "object",
                "properties": {
                    "entity_type": {"type": "string", "description": "Entity type"},
                    "entity_id": {"type": "string", "description": "Entity ID"},
                    "role": {"type": "string", "enum": ["source", "target", "any"]},
                },
                "required": ["entity_type", "entity_id"],
            },
        ),
        types.Tool(
            name="relationship_list_by_type",
            description="List relationships of a relationship type",
            inputSchema={
                "type": "object",
                "properties": {"type_id": {"type": "string", "description": "Relationship type ID"}},
                "required": ["type_id"],
            },
        ),
        types.Tool(
            name="relationship_create",
            description="Link two entities; the relationship type must allow the source and target types",
            inputSchema={
                "type": "object",
                "properties": {
                    "type_id": {"type": "string", "description": "Relationship type ID"},
                    "source_entity_id": {"type": "string"},
                    "source_entity_type": {"type": "string"},
                    "target_entity_id": {"type": "string"},
                    "target_entity_type": {"type": "string"},
                    "priority": {"type": "integer"},
                    "attributes": {"type": "object"},
                },
                "required": [
                    "type_id",
                    "source_entity_id",
                    "source_entity_type",
                    "target_entity_id",
                    "target_entity_type",
                ],
            },
        ),
        types.Tool(
            name="relationship_update",
            description="Update a relationship",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Relationship ID"},
                    "updates": {"type": "object", "description": "Fields to update"},
                },
                "required": ["id", "updates"],
            },
        ),
        types.Tool(
            name="relationship_delete",
            description="Delete a relationship",
            inputSchema={
                "type": "object",
                "properties": {"id": {"type": "string", "description": "Relationship ID"}},
                "required": ["id"],
            },
        ),
        types.Tool(
            name="relationship_cascade_delete",
            description="Delete an entity's outgoing relationships of a rule's target type, only if the rule declares cascadeDelete",
            inputSchema={
                "type": "object",
                "properties": {
                    "rule": ASSOCIATION_RULE_SCHEMA,
                    "entity_type": {"type": "string", "description": "Source entity type"},
                    "entity_id": {"type": "string", "description": "Source entity ID"},
                },
                "required": ["rule", "entity_type", "entity_id"],
            },
        ),
        types.Tool(
            name="relationship_change_status",
            description="Change the status of a relationship",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Relationship ID"},
                    "status": {
                        "type": "string",
                        "enum": ["active", "inactive", "pending", "archived"],
                    },
                },
                "required": ["id", "status"],
            },
        ),
    ]

    return tools


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: Dict[str, Any]
) -> List[types.TextContent]:
    """Handle tool calls to the local engines, the PIM API and the relationship service."""
    arguments = arguments or {}

    # Route engine tools to engine_client
    if name in ENGINE_TOOLS:
        if not engine_client:
            return [
                types.TextContent(
                    type="text",
                    text="Engine client not initialized.",
                )
            ]

        try:
            result = await engine_client.call_endpoint(name, arguments)
            return [types.TextContent(type="text", text=str(result))]
        except Exception as e:
            logger.error(f"Error calling {name}: {e}")
            return [
                types.TextContent(type="text", text=f"Error calling {name}: {str(e)}")
            ]

    # Route relationship tools to relationship_client
    if name.startswith("relationship_"):
        if not relationship_client:
            return [
                types.TextContent(
                    type="text",
                    text="Relationship client not initialized. Please check your API credentials.",
                )
            ]

        try:
            result = await relationship_client.call_endpoint(name, arguments)
            return [types.TextContent(type="text", text=str(result))]
        except Exception as e:
            logger.error(f"Error calling {name}: {e}")
            return [
                types.TextContent(type="text", text=f"Error calling {name}: {str(e)}")
            ]

    # Route all other tools to pim_client
    if not pim_client:
        return [
            types.TextContent(
                type="text",
                text="PIM client not initialized. Please check your API credentials.",
            )
        ]

    try:
        result = await pim_client.call_endpoint(name, arguments)
        return [types.TextContent(type="text", text=str(result))]
    except Exception as e:
        logger.error(f"Error calling {name}: {e}")
        return [types.TextContent(type="text", text=f"Error calling {name}: {str(e)}")]


def configure(
    api_key: Optional[str],
    api_url: str,
    language: str = "en",
    page_size: int = 10,
) -> None:
    """Create the global clients; remote clients only when an API key is given."""
    global pim_client, relationship_client, engine_client

    if api_key:
        pim_client = PimClient(api_key=api_key, api_url=api_url, language=language)
        relationship_client = RelationshipClient(api_key=api_key, base_url=api_url)
        logger.info(f"PIM clients initialized with API URL: {api_url}")
    else:
        pim_client = None
        relationship_client = None

    engine_client = SchemaEngineClient(
        pim_client=pim_client, language=language, page_size=page_size
    )


def read_settings() -> Dict[str, Any]:
    """Read server settings from the environment (and .env)."""
    try:
        page_size = int(os.getenv("PIM_PAGE_SIZE", "10"))
    except ValueError:
        logger.error("PIM_PAGE_SIZE must be an integer, using 10")
        page_size = 10

    return {
        "api_key": os.getenv("PIM_API_KEY"),
        "api_url": os.getenv("PIM_API_URL", "http://localhost:1903/api"),
        "language": os.getenv("PIM_LANGUAGE", "en"),
        "page_size": page_size,
    }


async def main():
    settings = read_settings()

    if not settings["api_key"]:
        logger.error(
            "PIM_API_KEY environment variable is required for PIM API tools; "
            "only local engine tools are available"
        )

    configure(**settings)

    # Run the server
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name="pim-mcp",
                server_version="0.1.0",
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )


def cli():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
