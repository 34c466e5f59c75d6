"""
Final report validation.

Cross-checks everything stored for an inspection against the registry before a
report may be issued. Findings are collected in a single pass as tagged
diagnostics; a finding tagged critical blocks report generation outright,
everything else is advisory.

Validation never raises and never writes: any failure while reading the store
yields a fail-closed result.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

from src.schemas.models import (
    MediaRow,
    ModuleConfig,
    ModuleDataRow,
    OTHER_OPTION,
    ValidationResult,
)
from src.schemas.registry import SchemaRegistry, get_registry
from src.validation.conditional import ConditionalResolver
from utils.logger import setup_logger, set_request_id
from utils.config import config
from utils.validators import is_blank

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="VALIDATION"
)

AUTHORIZATION_FIELD = "authorization"
CONCLUSION_FIELD = "conclusion"
CLOSING_MODULE = "general_state"
UNTAGGED_PHOTO_BUCKET = "general"

VALIDATION_ERROR_SENTINEL = "Erro na validação"
SYSTEM_FAILURE_MESSAGE = "Falha na validação do sistema"


@dataclass
class Diagnostic:
    """One finding. Empty `missing`/`sentence` slots are not reported."""
    missing: str = ""
    sentence: str = ""
    critical: bool = False
    # the sentence goes to errors_sample; critical authorization findings skip it
    sample: bool = True


def index_module_rows(rows: List[ModuleDataRow]) -> Dict[str, Dict[str, str]]:
    """Group flat rows into module -> field -> value. Later rows win."""
    index: Dict[str, Dict[str, str]] = defaultdict(dict)
    for row in rows:
        index[row.module_type][row.field_name] = row.field_value
    return dict(index)


def group_media_by_photo_type(media: List[MediaRow]) -> Dict[str, List[MediaRow]]:
    grouped: Dict[str, List[MediaRow]] = defaultdict(list)
    for item in media:
        grouped[item.photo_type_for_file or UNTAGGED_PHOTO_BUCKET].append(item)
    return dict(grouped)


def fail_closed_result() -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        missing_fields=[VALIDATION_ERROR_SENTINEL],
        errors_sample=[SYSTEM_FAILURE_MESSAGE],
        critical_errors=[SYSTEM_FAILURE_MESSAGE],
    )


class FinalReportValidator:
    """
    Rule engine for report issuance.

    Checks, in registry order, every required module: presence, required
    fields (authorization and conclusion are critical), "Outro" specifications
    and required photos. Then the globally mandatory photo types.
    """

    def __init__(self, store, registry: Optional[SchemaRegistry] = None):
        self.store = store
        self.registry = registry or get_registry()
        self.resolver = ConditionalResolver(self.registry)
        self.logger = logger

    async def validate(self, inspection_id: str) -> ValidationResult:
        set_request_id(inspection_id)
        try:
            rows = await self.store.get_all_module_rows(inspection_id)
            media = await self.store.get_image_media(inspection_id)
            diagnostics = self.collect_diagnostics(rows, media)
        except Exception as e:
            self.logger.error(f"Final validation failed for {inspection_id}: {e}", exc_info=True)
            return fail_closed_result()

        result = self.to_result(diagnostics)
        self.logger.info(
            f"Validation of {inspection_id}: valid={result.is_valid}, "
            f"missing={len(result.missing_fields)}, critical={len(result.critical_errors)}"
        )
        return result

    def collect_diagnostics(
        self,
        rows: List[ModuleDataRow],
        media: List[MediaRow],
    ) -> List[Diagnostic]:
        """Single discovery pass over stored data. Pure: no I/O."""
        modules = index_module_rows(rows)
        photos_by_type = group_media_by_photo_type(media)
        diagnostics: List[Diagnostic] = []

        for module in self.registry.required_modules:
            values = modules.get(module.id, {})
            if not values:
                diagnostics.append(Diagnostic(
                    missing=f'Módulo "{module.title}"',
                    sentence=f'O módulo "{module.title}" é obrigatório e não foi preenchido.',
                ))
                continue
            diagnostics.extend(self._check_fields(module, values))
            diagnostics.extend(self._check_module_photos(module, values, media))

        for photo in self.registry.global_required_photos:
            if not photos_by_type.get(photo.name):
                diagnostics.append(Diagnostic(
                    missing=f'Foto "{photo.label}"',
                    sentence=f'A foto "{photo.label}" é obrigatória para o relatório.',
                ))

        return diagnostics

    def _check_fields(self, module: ModuleConfig, values: Dict[str, str]) -> List[Diagnostic]:
        found: List[Diagnostic] = []
        resolved = self.resolver.resolve(module, values)
        required = set(resolved.required_field_names)

        for field in resolved.visible_fields:
            if field.name not in required or not field.is_visible(values):
                continue
            value = values.get(field.name)

            if field.type == "boolean":
                if field.name == AUTHORIZATION_FIELD and value != "true":
                    found.append(Diagnostic(
                        missing=f'Autorização dos Responsáveis no módulo "{module.title}"',
                        sentence=(
                            f'A autorização dos responsáveis no módulo "{module.title}" '
                            f'é obrigatória para gerar o relatório.'
                        ),
                        critical=True,
                        sample=False,
                    ))
                continue

            if is_blank(value):
                found.append(Diagnostic(
                    missing=f'Campo "{field.label}" no módulo "{module.title}"',
                    sentence=f'O campo "{field.label}" no módulo "{module.title}" é obrigatório.',
                    critical=(field.name == CONCLUSION_FIELD and module.id == CLOSING_MODULE),
                ))
            elif value == OTHER_OPTION and field.has_other_option:
                if is_blank(values.get(field.other_field_name)):
                    found.append(Diagnostic(
                        missing=(
                            f'Campo "{field.label}" (especificação em "Outro") '
                            f'no módulo "{module.title}"'
                        ),
                        sentence=(
                            f'Por favor, especifique o campo "{field.label}" '
                            f'no módulo "{module.title}".'
                        ),
                    ))

        return found

    def _check_module_photos(
        self,
        module: ModuleConfig,
        values: Dict[str, str],
        media: List[MediaRow],
    ) -> List[Diagnostic]:
        found: List[Diagnostic] = []
        resolved = self.resolver.resolve(module, values)

        for photo in resolved.visible_photos:
            if not photo.required:
                continue
            matches = [
                m for m in media
                if m.module_type == module.id
                and (m.photo_type_for_file == photo.name or photo.name in m.file_name)
            ]
            if not matches:
                found.append(Diagnostic(
                    missing=f'Foto "{photo.label}"',
                    sentence=f'A foto "{photo.label}" é obrigatória para o relatório.',
                ))

        return found

    @staticmethod
    def to_result(diagnostics: List[Diagnostic]) -> ValidationResult:
        missing_fields: List[str] = []
        errors_sample: List[str] = []
        critical_errors: List[str] = []

        for diagnostic in diagnostics:
            if diagnostic.critical:
                critical_errors.append(diagnostic.sentence)
            if diagnostic.missing:
                missing_fields.append(diagnostic.missing)
            if diagnostic.sample:
                errors_sample.append(diagnostic.sentence)

        return ValidationResult(
            is_valid=not missing_fields and not critical_errors,
            missing_fields=missing_fields,
            errors_sample=errors_sample,
            critical_errors=critical_errors,
        )


async def validate_final_report(
    inspection_id: str,
    store,
    registry: Optional[SchemaRegistry] = None,
) -> ValidationResult:
    """
    Convenience function to validate an inspection for report issuance.

    Args:
        inspection_id: Inspection to validate
        store: Module data store exposing get_all_module_rows/get_image_media

    Returns:
        ValidationResult
    """
    return await FinalReportValidator(store, registry).validate(inspection_id)
