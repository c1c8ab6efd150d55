"""Directional relationship helpers: link checks, payloads, cascades, status."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import AssociationRule, Relationship, RelationshipStatus, RelationshipType

logger = logging.getLogger(__name__)


def _allowed(allowed_types: List[str], entity_type: str) -> bool:
    return not allowed_types or entity_type in allowed_types


def can_link(
    relationship_type: RelationshipType, source_type: str, target_type: str
) -> bool:
    """Whether ``relationship_type`` may connect ``source_type`` to ``target_type``.

    Empty allowed-type lists accept any type. Non-directional types also accept
    the reversed pair.
    """
    forward = _allowed(relationship_type.allowed_source_types, source_type) and _allowed(
        relationship_type.allowed_target_types, target_type
    )
    if forward or relationship_type.is_directional:
        return forward
    return _allowed(relationship_type.allowed_source_types, target_type) and _allowed(
        relationship_type.allowed_target_types, source_type
    )


def build_relationship(
    relationship_type: RelationshipType,
    source_entity_id: str,
    source_entity_type: str,
    target_entity_id: str,
    target_entity_type: str,
    priority: Optional[int] = None,
    attributes: Optional[Dict[str, Any]] = None,
) -> Relationship:
    if not can_link(relationship_type, source_entity_type, target_entity_type):
        raise ValueError(
            f"Relationship type '{relationship_type.code}' cannot link "
            f"{source_entity_type} to {target_entity_type}"
        )
    return Relationship(
        association_id=relationship_type.id or relationship_type.code,
        source_entity_id=source_entity_id,
        source_entity_type=source_entity_type,
        target_entity_id=target_entity_id,
        target_entity_type=target_entity_type,
        status=RelationshipStatus.ACTIVE,
        priority=priority,
        attributes=attributes or {},
    )


def cascade_targets(
    rule: AssociationRule, relationships: Iterable[Relationship]
) -> List[str]:
    """Ids of relationships deleted together with their source entity.

    Only rules declaring ``cascadeDelete`` cascade.
    """
    if not rule.cascade_delete:
        return []
    return [
        relationship.id
        for relationship in relationships
        if relationship.id and relationship.target_entity_type == rule.target_item_type_code
    ]


def change_status(relationship: Relationship, status: Any) -> Relationship:
    """Return a copy of ``relationship`` with a new status."""
    try:
        new_status = RelationshipStatus(status)
    except ValueError:
        raise ValueError(
            f"Unknown relationship status '{status}'. "
            f"Expected one of: {', '.join(s.value for s in RelationshipStatus)}"
        )
    if new_status == relationship.status:
        return relationship
    logger.debug(f"Relationship {relationship.id}: {relationship.status.value} -> {new_status.value}")
    return relationship.model_copy(update={"status": new_status})
