"""
Validation layer: conditional resolution, measurement tolerance, per-module
form checks and final report validation.
"""

from src.validation.conditional import ConditionalResolver, resolve_module
from src.validation.measurement import validate_measurement
from src.validation.module_validator import validate_module
from src.validation.final_report import FinalReportValidator, validate_final_report

__all__ = [
    "ConditionalResolver",
    "resolve_module",
    "validate_measurement",
    "validate_module",
    "FinalReportValidator",
    "validate_final_report",
]
