"""
Conditional field resolution.

The cabin_type module branches on the selected cabin type: only a base subset
of its catalog is always shown, and each cabin type adds its own fields and
photos. Every other module resolves to its full catalog.
"""

from typing import Dict, Optional

from src.schemas.models import ModuleConfig, ResolvedModule
from src.schemas.registry import (
    CABIN_TYPE_FIELD,
    CABIN_TYPE_MODULE,
    SchemaRegistry,
    get_registry,
)

BASE_CABIN_FIELDS = ["cabin_type", "voltage_level", "installation_type", "grounding_system"]
BASE_CABIN_PHOTOS = [
    "cabin_external",
    "cabin_internal",
    "nameplate",
    "grounding_system",
    # globally mandatory photo types
    "fachada",
    "proximidade",
    "placa",
    "quadro_geral",
]


class ConditionalResolver:
    """Computes the effective field/photo set of a module for one governing value."""

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self.registry = registry or get_registry()

    def resolve(
        self,
        module: ModuleConfig,
        values: Optional[Dict[str, str]] = None,
        cabin_type: Optional[str] = None,
    ) -> ResolvedModule:
        """
        Resolve visible fields/photos and required field names.

        Args:
            module: Module whose catalog is resolved
            values: Stored values of that module (field name -> value)
            cabin_type: Governing cabin-type value; read from `values` when omitted

        Returns:
            ResolvedModule
        """
        values = values or {}

        if module.id != CABIN_TYPE_MODULE:
            return ResolvedModule(
                module_id=module.id,
                visible_fields=list(module.fields),
                visible_photos=list(module.photos),
                required_field_names=[f.name for f in module.required_fields],
            )

        if cabin_type is None:
            cabin_type = values.get(CABIN_TYPE_FIELD)
        cabin_config = self.registry.get_cabin_type(cabin_type)

        field_names = list(BASE_CABIN_FIELDS)
        photo_names = list(BASE_CABIN_PHOTOS)
        if cabin_config is not None:
            field_names.extend(cabin_config.conditional_items.fields)
            photo_names.extend(cabin_config.conditional_items.photos)

        # Catalog order is kept; names absent from the catalog are dropped
        visible_fields = [f for f in module.fields if f.name in field_names]
        visible_photos = [p for p in module.photos if p.name in photo_names]

        return ResolvedModule(
            module_id=module.id,
            visible_fields=visible_fields,
            visible_photos=visible_photos,
            required_field_names=[f.name for f in visible_fields if f.required],
            cabin_type_config=cabin_config,
        )

    def resolve_by_id(
        self,
        module_id: str,
        values: Optional[Dict[str, str]] = None,
        cabin_type: Optional[str] = None,
    ) -> ResolvedModule:
        return self.resolve(self.registry.require_module(module_id), values, cabin_type)


def resolve_module(
    module_id: str,
    values: Optional[Dict[str, str]] = None,
    cabin_type: Optional[str] = None,
    registry: Optional[SchemaRegistry] = None,
) -> ResolvedModule:
    """Convenience function for one-off resolution."""
    return ConditionalResolver(registry).resolve_by_id(module_id, values, cabin_type)
