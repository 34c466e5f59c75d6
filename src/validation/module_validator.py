"""
Per-module form validation.

Runs while an inspector fills one module in. Messages are short labels meant
for an inline checklist, not full sentences.
"""

from typing import Dict, List, Optional

from src.schemas.models import ModuleValidation, OTHER_OPTION
from src.schemas.registry import SchemaRegistry, get_registry
from src.validation.conditional import ConditionalResolver
from utils.logger import setup_logger
from utils.config import config
from utils.validators import is_blank, parse_number, validate_time

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="VALIDATION"
)

MODULE_NOT_CONFIGURED = "Configuração do módulo não encontrada"


def _format_bound(value: float) -> str:
    return f"{value:g}"


def _unit_suffix(unit: Optional[str]) -> str:
    return f" {unit}" if unit else ""


def validate_module(
    module_id: str,
    values: Dict[str, str],
    other_values: Optional[Dict[str, str]] = None,
    photos: Optional[Dict[str, List[str]]] = None,
    registry: Optional[SchemaRegistry] = None,
) -> ModuleValidation:
    """
    Validate one module's form state.

    Args:
        module_id: Registry module id
        values: Field name -> entered value
        other_values: Field name -> free-text specification for "Outro" selections
        photos: Photo type -> captured photo references

    Returns:
        ModuleValidation with one message per problem, in catalog order
    """
    registry = registry or get_registry()
    other_values = other_values or {}
    photos = photos or {}

    module = registry.get_module(module_id)
    if module is None:
        return ModuleValidation(is_valid=False, errors=[MODULE_NOT_CONFIGURED])

    resolved = ConditionalResolver(registry).resolve(module, values)
    required = set(resolved.required_field_names)
    errors: List[str] = []

    for field in resolved.visible_fields:
        if field.name not in required or not field.is_visible(values):
            continue
        if field.type == "boolean":
            continue

        value = values.get(field.name)

        if field.type == "time" and not is_blank(value):
            ok, _, _ = validate_time(value)
            if not ok:
                errors.append(f"{field.label} (formato inválido - use HH:MM)")
                continue

        if is_blank(value):
            errors.append(field.label)
        elif value == OTHER_OPTION and field.has_other_option:
            if is_blank(other_values.get(field.name)):
                errors.append(f"{field.label} (especificação)")
        elif field.type == "number" and field.validation:
            number = parse_number(value)
            if number is None:
                errors.append(f"{field.label} (deve ser um número válido)")
                continue
            bounds = field.validation
            if bounds.min is not None and number < bounds.min:
                errors.append(
                    f"{field.label} (valor mínimo: {_format_bound(bounds.min)}{_unit_suffix(field.unit)})"
                )
            if bounds.max is not None and number > bounds.max:
                errors.append(
                    f"{field.label} (valor máximo: {_format_bound(bounds.max)}{_unit_suffix(field.unit)})"
                )

    for photo in resolved.visible_photos:
        if photo.required and not photos.get(photo.name):
            errors.append(photo.label)

    for measurement in module.measurements:
        reading = parse_number(values.get(measurement.storage_key))
        if reading is None or measurement.range is None:
            continue
        if not measurement.range.contains(reading):
            low = _format_bound(measurement.range.min) if measurement.range.min is not None else "-"
            high = _format_bound(measurement.range.max) if measurement.range.max is not None else "-"
            errors.append(f"{measurement.label} (fora da faixa {low}-{high} {measurement.unit})")

    if errors:
        logger.debug(f"Module {module_id} has {len(errors)} pending item(s)")

    return ModuleValidation(is_valid=not errors, errors=errors)
