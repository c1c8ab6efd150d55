import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .models import AssociationMetadata, AssociationOutcome, CandidatePage

logger = logging.getLogger(__name__)


def unwrap(payload: Any) -> Any:
    """Return ``data`` from a ``{success, data}`` envelope, else the payload itself."""
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        return payload["data"]
    return payload


class PimClient:
    """Client for the PIM backend API (items, attributes, association rules)."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "http://localhost:1903/api",
        language: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        if language:
            self.headers["Accept-Language"] = language

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make an HTTP request to the PIM API."""
        url = f"{self.api_url}{endpoint}"

        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.request(
                method=method, url=url, headers=self.headers, **kwargs
            )
            response.raise_for_status()
            return response.json() if response.content else {}

    # Candidate pool and association rule endpoints

    async def fetch_candidates(
        self,
        target_type_code: str,
        filter_by: Optional[Dict[str, Any]] = None,
        search_query: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> CandidatePage:
        params: Dict[str, Any] = {
            "itemType": target_type_code,
            "page": page,
            "limit": page_size,
        }
        if search_query:
            params["search"] = search_query
        for key, value in (filter_by or {}).items():
            params[key] = (
                json.dumps(value) if isinstance(value, (dict, list)) else value
            )

        payload = await self._request("GET", "/items", params=params)
        data = unwrap(payload)
        if isinstance(data, list):
            total = payload.get("total") if isinstance(payload, dict) else None
            if total is None and isinstance(payload, dict):
                total = (payload.get("pagination") or {}).get("total")
            return CandidatePage(items=data, total=total if total is not None else len(data))
        return CandidatePage.model_validate(data or {})

    async def fetch_metadata(
        self, source_entity_id: str, rule_code: str
    ) -> Optional[AssociationMetadata]:
        payload = await self._request(
            "GET", f"/association-rules/{rule_code}/metadata/{source_entity_id}"
        )
        if isinstance(payload, dict) and payload.get("success") is False:
            logger.error(f"Metadata for {rule_code}/{source_entity_id}: {payload.get('message')}")
            return None
        return AssociationMetadata.model_validate(unwrap(payload) or {})

    async def create_association(
        self, source_entity_id: str, rule_code: str, target_ids: List[str]
    ) -> AssociationOutcome:
        payload = await self._request(
            "POST",
            f"/association-rules/{rule_code}/associate/{source_entity_id}",
            json={"targetItemIds": list(target_ids)},
        )
        if not isinstance(payload, dict):
            return AssociationOutcome(success=True)
        return AssociationOutcome.model_validate({"success": True, **payload})

    async def get_filtered_items(
        self, rule_code: str, source_entity_id: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        return unwrap(
            await self._request(
                "GET",
                f"/association-rules/{rule_code}/items/{source_entity_id}",
                params=params or {},
            )
        )

    # Schema endpoints

    async def get_attribute(self, attribute_id: str) -> Dict[str, Any]:
        return unwrap(await self._request("GET", f"/attributes/{attribute_id}"))

    async def list_attributes(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return unwrap(await self._request("GET", "/attributes", params=params or {}))

    async def get_item_type(self, item_type_id: str) -> Dict[str, Any]:
        return unwrap(await self._request("GET", f"/itemTypes/{item_type_id}"))

    async def call_endpoint(
        self, tool_name: str, arguments: Dict[str, Any]
    ) -> Any:
        """Route tool calls to appropriate API endpoints."""

        # Schema endpoints
        if tool_name == "list_attributes":
            return await self.list_attributes(arguments.get("params"))

        elif tool_name == "get_attribute":
            return await self.get_attribute(arguments["id"])

        elif tool_name == "list_item_types":
            return unwrap(await self._request("GET", "/itemTypes"))

        elif tool_name == "get_item_type":
            return await self.get_item_type(arguments["id"])

        # Item endpoints
        elif tool_name == "list_items":
            return unwrap(
                await self._request("GET", "/items", params=arguments.get("params", {}))
            )

        elif tool_name == "get_item":
            item_id = arguments["id"]
            return unwrap(await self._request("GET", f"/items/{item_id}"))

        # Association rule endpoints
        elif tool_name == "get_association_rule":
            code = arguments["code"]
            return unwrap(await self._request("GET", f"/association-rules/{code}"))

        elif tool_name == "get_filtered_items":
            return await self.get_filtered_items(
                arguments["rule_code"],
                arguments["source_item_id"],
                arguments.get("params"),
            )

        elif tool_name == "search_candidates":
            candidates = await self.fetch_candidates(
                target_type_code=arguments["target_type_code"],
                filter_by=arguments.get("filter_by"),
                search_query=arguments.get("search_query"),
                page=arguments.get("page", 1),
                page_size=arguments.get("page_size", 10),
            )
            return candidates.model_dump(by_alias=True, mode="json")

        elif tool_name == "get_association_metadata":
            metadata = await self.fetch_metadata(
                arguments["source_item_id"], arguments["rule_code"]
            )
            return metadata.model_dump(by_alias=True) if metadata else {}

        elif tool_name == "create_association":
            outcome = await self.create_association(
                arguments["source_item_id"],
                arguments["rule_code"],
                arguments["target_item_ids"],
            )
            return outcome.model_dump(by_alias=True, exclude_none=True)

        else:
            raise ValueError(f"Unknown tool: {tool_name}")
