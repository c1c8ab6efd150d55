"""
Type-dispatch registry: attribute type -> renderer set.

Lookups never fail on the type: unknown or unregistered types resolve to the
``text`` renderers. An unknown render mode is a programming error and raises
``ValueError``.

Usage:
    from pim_mcp.registry import RenderMode, default_registry

    cell = default_registry().resolve("rating", RenderMode.CELL)
    cell(4)  # "★★★★☆"
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .models import AttributeType
from .renderers import RendererSet, build_renderer_sets

logger = logging.getLogger(__name__)

Key = Union[AttributeType, str]


class RenderMode(str, Enum):
    CELL = "cell"
    EDIT = "edit"
    DETAIL = "detail"


class RendererRegistry:
    """Maps attribute types to their cell/edit/detail renderers."""

    def __init__(self, fallback: AttributeType = AttributeType.TEXT):
        self.fallback = fallback
        self._renderers: Dict[Key, RendererSet] = {}

    @staticmethod
    def _key(attribute_type: Any) -> Key:
        parsed = AttributeType.parse(attribute_type)
        if parsed is not None:
            return parsed
        return str(attribute_type).strip().lower()

    def register(self, attribute_type: Any, renderer_set: RendererSet) -> None:
        key = self._key(attribute_type)
        if key in self._renderers:
            logger.debug(f"Replacing renderers for '{key}'")
        self._renderers[key] = renderer_set

    def renderer_set(self, attribute_type: Any) -> RendererSet:
        key = self._key(attribute_type)
        renderer_set = self._renderers.get(key)
        if renderer_set is None:
            logger.debug(f"No renderers for '{key}', using '{self.fallback.value}'")
            renderer_set = self._renderers.get(self.fallback)
        if renderer_set is None:
            raise LookupError(f"Fallback type '{self.fallback.value}' has no renderers")
        return renderer_set

    def resolve(self, attribute_type: Any, mode: Union[RenderMode, str]) -> Callable:
        """Return the renderer for ``attribute_type`` in ``mode``."""
        mode = RenderMode(mode)
        return getattr(self.renderer_set(attribute_type), mode.value)

    def types(self) -> List[str]:
        return [key.value if isinstance(key, AttributeType) else key for key in self._renderers]

    def __contains__(self, attribute_type: Any) -> bool:
        return self._key(attribute_type) in self._renderers

    def __len__(self) -> int:
        return len(self._renderers)


_default_registry: Optional[RendererRegistry] = None


def default_registry() -> RendererRegistry:
    """Registry holding the built-in renderers of all attribute types."""
    global _default_registry
    if _default_registry is None:
        registry = RendererRegistry()
        for attribute_type, renderer_set in build_renderer_sets().items():
            registry.register(attribute_type, renderer_set)
        logger.debug(f"Registered renderers for {len(registry)} attribute types")
        _default_registry = registry
    return _default_registry
