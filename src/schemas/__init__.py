"""
Pydantic schemas and the declarative registry for electrical inspections.
"""

from src.schemas.models import (
    ModuleFieldSpec,
    PhotoSpec,
    MeasurementSpec,
    ModuleConfig,
    CabinTypeConfig,
    ChecklistItem,
    ChecklistTemplate,
    ChecklistExecution,
    CorrectiveAction,
    WorkOrder,
    ValidationResult,
    ExportOptions,
    ExportResult,
    ReportObject,
)
from src.schemas.registry import SchemaRegistry, get_registry

__all__ = [
    "ModuleFieldSpec",
    "PhotoSpec",
    "MeasurementSpec",
    "ModuleConfig",
    "CabinTypeConfig",
    "ChecklistItem",
    "ChecklistTemplate",
    "ChecklistExecution",
    "CorrectiveAction",
    "WorkOrder",
    "ValidationResult",
    "ExportOptions",
    "ExportResult",
    "ReportObject",
    "SchemaRegistry",
    "get_registry",
]
