"""
Association cardinality validation.

A selections map holds, per association key (``<targetItemTypeCode>_<kind>``),
either a single entity id or a list of ids. ``validate_associations`` checks
the map against the association rules of the entity type:

1. required     - rule is required and nothing is selected
2. minimum      - a value is present but holds fewer than ``cardinality.min``
3. maximum      - more than ``cardinality.max`` selected

The count checks run only when the key holds a value. An absent key reports
the required error alone; an explicit empty list also fails the minimum check,
so a required rule may carry both errors.

Validation is pure: the same input always yields the same result.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import AssociationRule

Selections = Dict[str, Any]


@dataclass
class AssociationIssue:
    association_key: str
    rule: AssociationRule
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "associationKey": self.association_key,
            "targetItemTypeCode": self.rule.target_item_type_code,
            "association": self.rule.association.value,
            "message": self.message,
        }


@dataclass
class AssociationValidationResult:
    is_valid: bool = True
    errors: List[AssociationIssue] = field(default_factory=list)
    warnings: List[AssociationIssue] = field(default_factory=list)

    def errors_for(self, association_key: str) -> List[str]:
        return [e.message for e in self.errors if e.association_key == association_key]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def association_key(rule: AssociationRule) -> str:
    return rule.key


def selection_count(value: Any) -> int:
    """Number of selected entities in a selection slot."""
    if value is None:
        return 0
    if isinstance(value, (list, tuple, set)):
        return len(value)
    if isinstance(value, str) and value == "":
        return 0
    return 1


def validate_associations(
    rules: Iterable[AssociationRule], selections: Mapping[str, Any]
) -> AssociationValidationResult:
    """Check every rule's cardinality against the current selections."""
    result = AssociationValidationResult()

    for rule in rules:
        key = association_key(rule)
        value = selections.get(key)
        count = selection_count(value)

        if rule.is_required and count == 0:
            result.errors.append(
                AssociationIssue(key, rule, f"selection required for {rule.display_label}")
            )

        minimum = rule.cardinality.min
        if value is not None and minimum and count < minimum:
            result.errors.append(AssociationIssue(key, rule, f"minimum {minimum} required"))

        maximum = rule.cardinality.max
        if maximum is not None and maximum > 0 and count > maximum:
            result.errors.append(AssociationIssue(key, rule, f"maximum {maximum} exceeded"))
        elif rule.is_to_one and count > rule.effective_max:
            result.warnings.append(
                AssociationIssue(
                    key,
                    rule,
                    f"{rule.association.value} association holds {count} selections, only one is kept",
                )
            )

    result.is_valid = not result.errors
    return result


def update_selections(
    selections: Mapping[str, Any], rule: AssociationRule, value: Any
) -> Selections:
    """Return a new selections map with ``value`` stored under the rule's key.

    ``None`` and empty lists remove the key.
    """
    updated = dict(selections)
    key = association_key(rule)
    if value is None or (isinstance(value, (list, tuple)) and len(value) == 0):
        updated.pop(key, None)
    else:
        updated[key] = list(value) if isinstance(value, tuple) else value
    return updated


def split_rules(
    rules: Iterable[AssociationRule],
) -> Tuple[List[AssociationRule], List[AssociationRule]]:
    """Split rules into (required, optional), keeping their order."""
    required: List[AssociationRule] = []
    optional: List[AssociationRule] = []
    for rule in rules:
        (required if rule.is_required else optional).append(rule)
    return required, optional


def find_rule(rules: Iterable[AssociationRule], key: str) -> Optional[AssociationRule]:
    for rule in rules:
        if association_key(rule) == key:
            return rule
    return None
