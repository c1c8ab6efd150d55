"""
Candidate selection for one association rule.

The controller holds the picking state of a single relationship slot: the
visible candidate page, the entities picked so far and the last association
metadata. Candidates come from a ``source`` collaborator and associations are
created through a ``mutations`` collaborator; both are async and are usually
the same ``PimClient``.

Cardinality:
- to-one rules (one-to-one, many-to-one) hold at most one entity; picking
  another entity replaces the selection.
- to-many rules append up to ``cardinality.max``; picks past the cap are
  rejected with a warning and leave the selection unchanged.

Candidate fetches are guarded by a sequence number: only the response of the
most recently dispatched fetch is applied, older responses are dropped.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx
import pydantic

from .associations import AssociationValidationResult, validate_associations
from .labels import DEFAULT_LANGUAGE, get_entity_name
from .models import (
    AssociationMetadata,
    AssociationOutcome,
    AssociationRule,
    CandidatePage,
    Entity,
)

logger = logging.getLogger(__name__)


class CandidateSource(Protocol):
    async def fetch_candidates(
        self,
        target_type_code: str,
        filter_by: Dict[str, Any],
        search_query: Optional[str],
        page: int,
        page_size: int,
    ) -> Any: ...


class AssociationMutations(Protocol):
    async def fetch_metadata(self, source_entity_id: str, rule_code: str) -> Any: ...

    async def create_association(
        self, source_entity_id: str, rule_code: str, target_ids: List[str]
    ) -> Any: ...


@dataclass
class SelectionMessage:
    level: str  # "warning" | "info" | "success"
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"level": self.level, "text": self.text}


class CandidateSelectionController:
    """Selection state machine for one association rule."""

    def __init__(
        self,
        rule: AssociationRule,
        rule_code: str,
        source: CandidateSource,
        mutations: AssociationMutations,
        source_entity_id: Optional[str] = None,
        page_size: int = 10,
        language: str = DEFAULT_LANGUAGE,
    ):
        self.rule = rule
        self.rule_code = rule_code
        self.source = source
        self.mutations = mutations
        self.source_entity_id = source_entity_id
        self.page_size = page_size
        self.language = language

        self.selected: List[Entity] = []
        self.candidates: List[Entity] = []
        self.total = 0
        self.search_term = ""
        self.page = 1
        self.loading = False
        self.submitting = False
        self.metadata: Optional[AssociationMetadata] = None
        self.messages: List[SelectionMessage] = []
        self.error_message: Optional[str] = None

        self._dispatched = 0

    # =========================================================================
    # Candidates
    # =========================================================================

    async def load_candidates(
        self, search_term: Optional[str] = None, page: Optional[int] = None
    ) -> bool:
        """Fetch a candidate page; returns False when the response was not applied."""
        if search_term is not None and search_term != self.search_term:
            self.search_term = search_term
            self.page = 1
        if page is not None:
            self.page = max(1, page)

        self._dispatched += 1
        sequence = self._dispatched
        self.loading = True
        try:
            response = await self.source.fetch_candidates(
                target_type_code=self.rule.target_item_type_code,
                filter_by=dict(self.rule.filter_by),
                search_query=self.search_term or None,
                page=self.page,
                page_size=self.page_size,
            )
            page_data = (
                response
                if isinstance(response, CandidatePage)
                else CandidatePage.model_validate(response)
            )
        except (httpx.HTTPError, pydantic.ValidationError) as e:
            logger.error(f"Loading candidates for {self.rule.key} failed: {e}")
            if sequence == self._dispatched:
                self.error_message = f"Candidates could not be loaded: {e}"
            return False
        finally:
            if sequence == self._dispatched:
                self.loading = False

        if sequence != self._dispatched:
            logger.debug(
                f"Discarding stale candidate page {sequence} (latest {self._dispatched})"
            )
            return False

        self.candidates = list(page_data.items)
        self.total = page_data.total
        return True

    # =========================================================================
    # Selection
    # =========================================================================

    def is_selected(self, entity_id: str) -> bool:
        return any(entity.id == entity_id for entity in self.selected)

    @property
    def selected_ids(self) -> List[str]:
        return [entity.id for entity in self.selected]

    @property
    def can_add_more(self) -> bool:
        cap = self.rule.effective_max
        if cap is not None and len(self.selected) >= cap:
            return False
        if self.metadata is not None and not self.metadata.can_add_more:
            return False
        return True

    def toggle(self, entity: Any) -> bool:
        """Select or deselect ``entity``; returns True when the selection changed."""
        entity = entity if isinstance(entity, Entity) else Entity.model_validate(entity)

        if self.is_selected(entity.id):
            self.selected = [e for e in self.selected if e.id != entity.id]
            return True

        if self.rule.is_to_one:
            self.selected = [entity]
            return True

        if not self.can_add_more:
            self._reject(entity)
            return False

        self.selected = self.selected + [entity]
        return True

    def select_all(self) -> int:
        """Add every visible candidate up to the cap; returns how many were added."""
        if self.rule.is_to_one:
            return 0

        added = []
        for entity in self.candidates:
            if self.is_selected(entity.id) or any(a.id == entity.id for a in added):
                continue
            if not self._has_room(len(added)):
                self._reject(entity)
                break
            added.append(entity)

        if added:
            self.selected = self.selected + added
        return len(added)

    def deselect_all(self) -> int:
        count = len(self.selected)
        self.selected = []
        return count

    def _has_room(self, pending: int) -> bool:
        cap = self.rule.effective_max
        if cap is not None and len(self.selected) + pending >= cap:
            return False
        return self.metadata is None or self.metadata.can_add_more

    def _reject(self, entity: Entity) -> None:
        cap = self.rule.effective_max
        limit = f" (maximum {cap})" if cap is not None else ""
        text = f"No more {self.rule.display_label} can be added{limit}"
        logger.info(f"Rejected {entity.id} for {self.rule.key}: {text}")
        self.messages.append(SelectionMessage("warning", text))

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit(
        self,
        source_entity_id: Optional[str] = None,
        target_ids: Optional[List[str]] = None,
    ) -> bool:
        """Create the association for the current (or given) targets."""
        source_id = source_entity_id or self.source_entity_id
        if not source_id:
            raise ValueError("A source entity id is required to create an association")

        ids = list(target_ids) if target_ids is not None else self.selected_ids
        if not ids:
            self.messages.append(SelectionMessage("warning", "Select at least one item"))
            return False

        self.submitting = True
        try:
            response = await self.mutations.create_association(source_id, self.rule_code, ids)
        except httpx.HTTPError as e:
            logger.error(f"Creating association {self.rule_code} for {source_id} failed: {e}")
            self.error_message = f"Association could not be created: {e}"
            return False
        finally:
            self.submitting = False

        outcome = (
            response
            if isinstance(response, AssociationOutcome)
            else AssociationOutcome.model_validate(response)
        )
        if not outcome.success:
            self.error_message = outcome.message or "Association could not be created"
            return False

        self.selected = []
        self.error_message = None
        self.messages.append(SelectionMessage("success", "Association created"))
        await self.refresh_metadata(source_id)
        return True

    async def refresh_metadata(
        self, source_entity_id: Optional[str] = None
    ) -> Optional[AssociationMetadata]:
        source_id = source_entity_id or self.source_entity_id
        if not source_id:
            return self.metadata
        try:
            response = await self.mutations.fetch_metadata(source_id, self.rule_code)
        except httpx.HTTPError as e:
            logger.error(f"Loading association metadata for {source_id} failed: {e}")
            return self.metadata
        if response is not None:
            self.metadata = (
                response
                if isinstance(response, AssociationMetadata)
                else AssociationMetadata.model_validate(response)
            )
        return self.metadata

    # =========================================================================
    # Derived state
    # =========================================================================

    @property
    def validation(self) -> AssociationValidationResult:
        selections = {self.rule.key: self.selected_ids} if self.selected else {}
        return validate_associations([self.rule], selections)

    def dismiss_error(self) -> None:
        self.error_message = None

    def clear_messages(self) -> None:
        self.messages = []

    def to_dict(self) -> Dict[str, Any]:
        def summary(entity: Entity) -> Dict[str, Any]:
            return {
                "id": entity.id,
                "code": entity.code,
                "name": get_entity_name(entity, self.language),
                "matchScore": entity.match_score,
            }

        return {
            "associationKey": self.rule.key,
            "association": self.rule.association.value,
            "maxSelections": self.rule.effective_max,
            "searchTerm": self.search_term,
            "page": self.page,
            "total": self.total,
            "loading": self.loading,
            "submitting": self.submitting,
            "candidates": [
                {**summary(entity), "selected": self.is_selected(entity.id)}
                for entity in self.candidates
            ],
            "selected": [summary(entity) for entity in self.selected],
            "canAddMore": self.can_add_more,
            "metadata": self.metadata.model_dump(by_alias=True) if self.metadata else None,
            "validation": self.validation.to_dict(),
            "messages": [message.to_dict() for message in self.messages],
            "errorMessage": self.error_message,
        }
