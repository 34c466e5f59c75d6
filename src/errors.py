"""
Exception hierarchy for the inspection reporting core.
"""


class InspectionError(Exception):
    """Base class for all inspection-domain errors."""


class RegistryError(InspectionError):
    """Registry data on disk is malformed or inconsistent."""


class ModuleNotFoundInRegistry(InspectionError):
    """A module id has no ModuleConfig in the registry."""

    def __init__(self, module_id: str):
        super().__init__(f"Module not configured: {module_id}")
        self.module_id = module_id


class ChecklistItemNotFound(InspectionError):
    """An item id is not part of the active checklist template."""

    def __init__(self, item_id: str):
        super().__init__(f"Checklist item not found: {item_id}")
        self.item_id = item_id


class InspectionNotFound(InspectionError):
    def __init__(self, inspection_id: str):
        super().__init__(f"Inspection not found: {inspection_id}")
        self.inspection_id = inspection_id


class ArtifactStoreError(InspectionError):
    """Upload or listing against the artifact store failed."""


class RendererError(InspectionError):
    """The document renderer could not produce page bytes."""


class NotificationError(InspectionError):
    """A notification sink could not deliver a payload."""
