"""Pytest configuration and fixtures for PIM MCP tests."""

import pytest
from unittest.mock import AsyncMock

from pim_mcp.models import (
    AssociationMetadata,
    AssociationOutcome,
    AssociationRule,
    CandidatePage,
    Entity,
)


def make_entity(entity_id: str, name: str = None) -> Entity:
    return Entity.model_validate({"_id": entity_id, "code": entity_id.upper(), "name": name})


@pytest.fixture
def entities():
    """Five candidate entities a..e."""
    return [make_entity(entity_id, f"Item {entity_id}") for entity_id in "abcde"]


@pytest.fixture
def to_one_rule() -> AssociationRule:
    return AssociationRule.model_validate(
        {
            "targetItemTypeCode": "brand",
            "targetItemTypeName": "Brand",
            "association": "many-to-one",
            "cardinality": {"min": 1, "max": 1},
            "isRequired": True,
        }
    )


@pytest.fixture
def to_many_rule() -> AssociationRule:
    return AssociationRule.model_validate(
        {
            "targetItemTypeCode": "accessory",
            "targetItemTypeName": "Accessory",
            "association": "one-to-many",
            "cardinality": {"min": 0, "max": 3},
        }
    )


@pytest.fixture
def collaborator(entities):
    """Async candidate source and association mutations in one mock."""
    mock = AsyncMock()
    mock.fetch_candidates.return_value = CandidatePage(items=entities, total=len(entities))
    mock.fetch_metadata.return_value = AssociationMetadata(
        available_count=5, selected_count=0, can_add_more=True
    )
    mock.create_association.return_value = AssociationOutcome(success=True)
    return mock
