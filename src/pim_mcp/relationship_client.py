"""
Relationship service client for PIM MCP.

Handles API calls for relationship types (the directional link-kind catalogue)
and the concrete relationships between entities.
"""

from typing import Any, Dict, Optional

import httpx

from .client import unwrap
from .models import AssociationRule, Relationship, RelationshipStatus, RelationshipType
from .relationships import build_relationship, cascade_targets, change_status


class RelationshipClient:
    """Client for the PIM relationship endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "http://localhost:1903/api",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the relationship client.

        Args:
            api_key: PIM API key for authentication
            base_url: Base URL of the PIM API (default: http://localhost:1903/api)
            transport: Optional httpx transport, used to stub the backend
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.request(
                method, f"{self.base_url}{path}", headers=self.headers, **kwargs
            )
            response.raise_for_status()
            return unwrap(response.json()) if response.content else {}

    async def get_relationship_type(self, type_id: str) -> RelationshipType:
        return RelationshipType.model_validate(
            await self._send("GET", f"/relationship-types/{type_id}")
        )

    async def create_relationship(self, relationship: Relationship) -> Dict[str, Any]:
        return await self._send(
            "POST",
            "/relationships",
            json=relationship.model_dump(by_alias=True, exclude_none=True, mode="json"),
        )

    async def delete_relationship(self, relationship_id: str) -> Dict[str, Any]:
        return await self._send("DELETE", f"/relationships/{relationship_id}")

    async def change_relationship_status(
        self, relationship_id: str, status: Any
    ) -> Dict[str, Any]:
        status = RelationshipStatus(status)
        return await self._send(
            "PATCH", f"/relationships/{relationship_id}/status", json={"status": status.value}
        )

    async def call_endpoint(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        """
        Call a relationship endpoint based on the tool name.

        Args:
            tool_name: Name of the MCP tool being called
            arguments: Tool arguments containing request parameters

        Returns:
            API response data

        Raises:
            httpx.HTTPStatusError: If the API request fails
            ValueError: For unknown tools or statuses, or links the type forbids
        """
        # Relationship type catalogue
        if tool_name == "relationship_list_types":
            return await self._send("GET", "/relationship-types")

        elif tool_name == "relationship_get_type":
            return await self._send("GET", f"/relationship-types/{arguments['id']}")

        elif tool_name == "relationship_create_type":
            relationship_type = RelationshipType.model_validate(arguments["relationship_type"])
            return await self._send(
                "POST",
                "/relationship-types",
                json=relationship_type.model_dump(by_alias=True, exclude_none=True, mode="json"),
            )

        elif tool_name == "relationship_update_type":
            return await self._send(
                "PUT", f"/relationship-types/{arguments['id']}", json=arguments["updates"]
            )

        elif tool_name == "relationship_delete_type":
            return await self._send("DELETE", f"/relationship-types/{arguments['id']}")

        # Relationships
        elif tool_name == "relationship_get":
            return await self._send("GET", f"/relationships/{arguments['id']}")

        elif tool_name == "relationship_list_by_entity":
            return await self._send(
                "GET",
                f"/relationships/entities/{arguments['entity_type']}/{arguments['entity_id']}",
                params={"role": arguments.get("role", "any")},
            )

        elif tool_name == "relationship_list_by_type":
            return await self._send("GET", f"/relationships/by-type/{arguments['type_id']}")

        elif tool_name == "relationship_create":
            # Check the link against the type's allowed source/target types first
            relationship_type = await self.get_relationship_type(arguments["type_id"])
            relationship = build_relationship(
                relationship_type,
                source_entity_id=arguments["source_entity_id"],
                source_entity_type=arguments["source_entity_type"],
                target_entity_id=arguments["target_entity_id"],
                target_entity_type=arguments["target_entity_type"],
                priority=arguments.get("priority"),
                attributes=arguments.get("attributes"),
            )
            return await self.create_relationship(relationship)

        elif tool_name == "relationship_update":
            return await self._send(
                "PUT", f"/relationships/{arguments['id']}", json=arguments["updates"]
            )

        elif tool_name == "relationship_delete":
            return await self.delete_relationship(arguments["id"])

        elif tool_name == "relationship_cascade_delete":
            rule = AssociationRule.model_validate(arguments["rule"])
            links = await self._send(
                "GET",
                f"/relationships/entities/{arguments['entity_type']}/{arguments['entity_id']}",
                params={"role": "source"},
            )
            relationships = [Relationship.model_validate(link) for link in links or []]
            deleted = []
            for relationship_id in cascade_targets(rule, relationships):
                await self.delete_relationship(relationship_id)
                deleted.append(relationship_id)
            return {"deleted": deleted, "cascade": rule.cascade_delete}

        elif tool_name == "relationship_change_status":
            current = Relationship.model_validate(
                await self._send("GET", f"/relationships/{arguments['id']}")
            )
            updated = change_status(current, arguments["status"])
            if updated is current:
                return current.model_dump(by_alias=True, exclude_none=True, mode="json")
            return await self.change_relationship_status(arguments["id"], updated.status)

        else:
            raise ValueError(f"Unknown relationship tool: {tool_name}")
