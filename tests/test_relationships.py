"""Tests for relationship helpers."""

import pytest

from pim_mcp.models import AssociationRule, Relationship, RelationshipStatus, RelationshipType
from pim_mcp.relationships import build_relationship, can_link, cascade_targets, change_status


@pytest.fixture
def belongs_to():
    return RelationshipType.model_validate(
        {
            "_id": "rt-1",
            "code": "belongs_to",
            "isDirectional": True,
            "allowedSourceTypes": ["product"],
            "allowedTargetTypes": ["category"],
        }
    )


def relationship(rel_id, target_type, status="active"):
    return Relationship.model_validate(
        {
            "_id": rel_id,
            "associationId": "rt-1",
            "sourceEntityId": "p1",
            "sourceEntityType": "product",
            "targetEntityId": f"t-{rel_id}",
            "targetEntityType": target_type,
            "status": status,
        }
    )


class TestCanLink:
    """Test allowed source/target checks."""

    def test_directional(self, belongs_to):
        assert can_link(belongs_to, "product", "category")
        assert not can_link(belongs_to, "category", "product")
        assert not can_link(belongs_to, "product", "brand")

    def test_non_directional_accepts_reverse(self, belongs_to):
        related = belongs_to.model_copy(update={"is_directional": False})
        assert can_link(related, "category", "product")

    def test_empty_lists_accept_anything(self):
        any_type = RelationshipType(code="related")
        assert can_link(any_type, "foo", "bar")


class TestBuildRelationship:
    """Test relationship payload construction."""

    def test_builds_active_relationship(self, belongs_to):
        built = build_relationship(belongs_to, "p1", "product", "c1", "category", priority=2)

        assert built.association_id == "rt-1"
        assert built.status == RelationshipStatus.ACTIVE
        assert built.priority == 2
        payload = built.model_dump(by_alias=True, exclude_none=True, mode="json")
        assert payload["sourceEntityId"] == "p1"
        assert payload["status"] == "active"

    def test_disallowed_pair_raises(self, belongs_to):
        with pytest.raises(ValueError, match="cannot link"):
            build_relationship(belongs_to, "c1", "category", "p1", "product")


class TestCascade:
    """Test cascade delete target selection."""

    def test_only_cascading_rules(self):
        rule = AssociationRule.model_validate(
            {"targetItemTypeCode": "variant", "association": "one-to-many", "cascadeDelete": True}
        )
        links = [relationship("r1", "variant"), relationship("r2", "category"), relationship("r3", "variant")]

        assert cascade_targets(rule, links) == ["r1", "r3"]
        assert cascade_targets(rule.model_copy(update={"cascade_delete": False}), links) == []


class TestChangeStatus:
    """Test status transitions."""

    def test_returns_copy(self):
        original = relationship("r1", "variant")
        archived = change_status(original, "archived")

        assert archived.status == RelationshipStatus.ARCHIVED
        assert original.status == RelationshipStatus.ACTIVE

    def test_same_status_is_unchanged(self):
        original = relationship("r1", "variant")
        assert change_status(original, RelationshipStatus.ACTIVE) is original

    def test_unknown_status(self):
        with pytest.raises(ValueError, match="Unknown relationship status"):
            change_status(relationship("r1", "variant"), "deleted")
