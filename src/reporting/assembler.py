"""
Canonical report assembly.

Builds the ReportObject from everything stored for an inspection. The same
object feeds the PDF renderer and the JSON export; the report mode is recorded
but never changes which data is collected.
"""

from datetime import datetime
from typing import Dict, List, Optional

from src.database.adapter import ModuleDataStore
from src.schemas.models import (
    ChecklistExecution,
    InspectionInfo,
    MaintenanceHistory,
    MediaRow,
    ModuleConfig,
    ModuleDataRow,
    OTHER_OPTION,
    ReportChecklist,
    ReportComponent,
    ReportInitialData,
    ReportMetadata,
    ReportObject,
    ReportTestResult,
    ReportTransformer,
)
from src.schemas.registry import (
    CABIN_TYPE_FIELD,
    CABIN_TYPE_MODULE,
    DEFAULT_CABIN_TYPE,
    SchemaRegistry,
    get_registry,
)
from src.validation.final_report import index_module_rows
from utils.logger import setup_logger
from utils.config import config
from utils.validators import is_blank, parse_number

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="REPORTS"
)

REPORT_TITLE = "RELATÓRIO DE INSPEÇÃO ELÉTRICA"
DEFAULT_CONCLUSION = "Conclusão não informada"
NOT_AVAILABLE = "N/A"

PROCEDURES_SECTION = "Procedimentos Iniciais"
EPCS_SECTION = "Equipamentos de Proteção Coletiva"
CHECKLIST_SECTION = "Checklist Preventivo"

EPC_PRESENT = "PRESENTE"
EPC_ABSENT = "AUSENTE NA INSTALAÇÃO"

EXECUTION_RESULTS = {
    "completed": "CONFORME",
    "failed": "NÃO CONFORME",
    "na": "N/A",
    "pending": "PENDENTE",
}


def _is_true(value: Optional[str]) -> bool:
    return value == "true"


def _display_value(values: Dict[str, str], name: str) -> str:
    """Stored value with the `Outro` sentinel replaced by its specification."""
    value = values.get(name) or ""
    if value == OTHER_OPTION and not is_blank(values.get(f"{name}_other")):
        return values[f"{name}_other"].strip()
    return value


def _as_int(value: Optional[str]) -> Optional[int]:
    number = parse_number(value)
    return int(number) if number is not None else None


class ReportAssembler:
    """Collects stored module data and media into a ReportObject."""

    def __init__(self, store: ModuleDataStore, registry: Optional[SchemaRegistry] = None):
        self.store = store
        self.registry = registry or get_registry()
        self.logger = logger

    async def assemble(self, inspection_id: str, mode: str = "compatibility") -> ReportObject:
        inspection = await self.store.require_inspection(inspection_id)
        rows = await self.store.get_all_module_rows(inspection_id)
        media = await self.store.get_image_media(inspection_id)
        executions = await self.store.get_executions(inspection_id)

        report = self.build(inspection, rows, media, executions, mode)
        self.logger.info(
            f"Report assembled for {inspection_id}: {len(report.checklists)} checklist entries, "
            f"{len(report.ensaios)} test groups, {len(report.anexos)} attachments"
        )
        return report

    def build(
        self,
        inspection: InspectionInfo,
        rows: List[ModuleDataRow],
        media: List[MediaRow],
        executions: Optional[List[ChecklistExecution]] = None,
        mode: str = "compatibility"
    ) -> ReportObject:
        """Pure assembly step; no store access."""
        data = index_module_rows(rows)
        photos = self._photos_by_module(media)

        conclusion = data.get("general_state", {}).get("conclusion")

        return ReportObject(
            metadados=ReportMetadata(
                titulo=REPORT_TITLE,
                subtitulo=f"Cliente: {inspection.client_name} - Local: {inspection.work_site}",
                data_emissao=datetime.now(),
                autor=config.report_author,
            ),
            dados_iniciais=self._initial_data(inspection, data),
            checklists=self._checklists(data, photos, executions or []),
            ensaios=self._tests(data),
            transformadores=self._transformers(data, photos),
            componentes=self._components(data, photos),
            conclusao=conclusion.strip() if not is_blank(conclusion) else DEFAULT_CONCLUSION,
            anexos=[item.file_path for item in media],
            maintenance_history=self._maintenance(data, photos),
            report_mode=mode,
        )

    @staticmethod
    def _photos_by_module(media: List[MediaRow]) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for item in media:
            grouped.setdefault(item.module_type, []).append(item.file_path)
        return grouped

    # ========================
    # Sections
    # ========================

    def _initial_data(self, inspection: InspectionInfo, data: Dict[str, Dict[str, str]]) -> ReportInitialData:
        client = data.get("client", {})
        grid = data.get("grid_connection", {})
        created = inspection.created_at.isoformat() if inspection.created_at else ""

        return ReportInitialData(
            cliente=client.get("client_name") or inspection.client_name,
            nome_fantasia=client.get("nome_fantasia"),
            endereco=client.get("endereco_completo") or inspection.work_site or "",
            horario_chegada=client.get("horario_chegada") or "",
            responsavel_local=client.get("responsavel_local") or "",
            data_execucao=client.get("data_execucao") or created,
            os_numero=client.get("os_number") or f"AUTO-{inspection.id[-8:]}",
            concessionaria=_display_value(grid, "concessionaria") or NOT_AVAILABLE,
            demanda_kw=parse_number(grid.get("demanda_kw")) or 0.0,
            codigo_consumidor=grid.get("codigo_consumidor") or NOT_AVAILABLE,
        )

    def _boolean_entries(
        self,
        module_id: str,
        section: str,
        values: Dict[str, str],
        photo_ids: List[str],
        yes: str,
        no: str
    ) -> List[ReportChecklist]:
        module = self.registry.get_module(module_id)
        if module is None:
            return []
        return [
            ReportChecklist(
                secao=section,
                descricao=spec.label,
                resultado=yes if _is_true(values.get(spec.name)) else no,
                foto_ids=photo_ids,
            )
            for spec in module.fields
            if spec.type == "boolean" and spec.name in values
        ]

    def _checklist_item_text(self, cabin_type: str) -> Dict[str, str]:
        template = (
            self.registry.get_checklist_template(cabin_type)
            or self.registry.get_checklist_template(DEFAULT_CABIN_TYPE)
        )
        return {item.id: item.acao_curta for item in template.items} if template else {}

    def _checklists(
        self,
        data: Dict[str, Dict[str, str]],
        photos: Dict[str, List[str]],
        executions: List[ChecklistExecution]
    ) -> List[ReportChecklist]:
        entries = self._boolean_entries(
            "procedures", PROCEDURES_SECTION, data.get("procedures", {}),
            photos.get("procedures", []), "SIM", "NÃO"
        )
        entries += self._boolean_entries(
            "epcs", EPCS_SECTION, data.get("epcs", {}),
            photos.get("epcs", []), EPC_PRESENT, EPC_ABSENT
        )

        if executions:
            cabin_type = data.get(CABIN_TYPE_MODULE, {}).get(CABIN_TYPE_FIELD)
            texts = self._checklist_item_text(cabin_type)
            latest: Dict[str, ChecklistExecution] = {}
            for execution in executions:
                latest[execution.checklist_item_id] = execution
            for item_id, execution in latest.items():
                entries.append(ReportChecklist(
                    secao=CHECKLIST_SECTION,
                    descricao=texts.get(item_id, item_id),
                    resultado=EXECUTION_RESULTS.get(execution.status, execution.status),
                    foto_ids=list(execution.photo_uris),
                ))

        return entries

    def _module_tests(self, module: ModuleConfig, values: Dict[str, str]) -> Optional[ReportTestResult]:
        parametros, valores, resultados = {}, {}, {}

        for spec in module.measurements:
            measured = parse_number(values.get(spec.storage_key))
            if measured is None:
                continue
            parametros[spec.label] = spec.unit
            valores[spec.label] = f"{measured:g} {spec.unit}"
            if spec.range is None:
                resultados[spec.label] = "Sem referência"
            else:
                resultados[spec.label] = "Dentro da faixa" if spec.range.contains(measured) else "Fora da faixa"

        if not valores:
            return None
        return ReportTestResult(
            tipo=module.title,
            parametros=parametros,
            valores=valores,
            resultados_normativos=resultados,
        )

    def _tests(self, data: Dict[str, Dict[str, str]]) -> List[ReportTestResult]:
        tests = []
        for module in self.registry.modules:
            if not module.measurements:
                continue
            result = self._module_tests(module, data.get(module.id, {}))
            if result is not None:
                tests.append(result)
        return tests

    def _transformers(
        self,
        data: Dict[str, Dict[str, str]],
        photos: Dict[str, List[str]]
    ) -> List[ReportTransformer]:
        values = data.get("transformers")
        if not values:
            return []

        module = self.registry.get_module("transformers")
        tests = self._module_tests(module, values) if module else None

        taps = {
            key: parse_number(values.get(field))
            for key, field in (
                ("posicoes", "tap_positions"),
                ("posicao_atual", "tap_current_position"),
                ("faixa_percentual", "tap_range_percent"),
            )
            if parse_number(values.get(field)) is not None
        }

        return [ReportTransformer(
            id="TR-1",
            fabricante=values.get("manufacturer") or "",
            serie=values.get("serial_number") or "",
            potencia_kva=parse_number(values.get("power_kva")),
            oleo_litros=parse_number(values.get("oil_volume_liters")),
            ano_fabricacao=_as_int(values.get("installation_year")),
            peso_kg=parse_number(values.get("weight_kg")),
            taps=taps,
            vazamento=_is_true(values.get("oil_leakage")),
            fotos=photos.get("transformers", []),
            ensaios=[tests] if tests else [],
        )]

    def _components(
        self,
        data: Dict[str, Dict[str, str]],
        photos: Dict[str, List[str]]
    ) -> List[ReportComponent]:
        values = data.get("component_irregularities", {})
        if not _is_true(values.get("has_irregularities")):
            return []

        parts = [
            values.get("irregularity_description"),
            f"Local: {values['location_description']}" if values.get("location_description") else None,
            f"Severidade: {values['severity']}" if values.get("severity") else None,
            f"Ação recomendada: {values['recommended_action']}" if values.get("recommended_action") else None,
        ]

        return [ReportComponent(
            tipo=_display_value(values, "component_type") or "Componente",
            descricao=". ".join(part.strip() for part in parts if part and part.strip()),
            irregularidade=True,
            fotos=photos.get("component_irregularities", []),
        )]

    def _maintenance(
        self,
        data: Dict[str, Dict[str, str]],
        photos: Dict[str, List[str]]
    ) -> MaintenanceHistory:
        values = data.get("maintenance", {})
        if not values:
            return MaintenanceHistory(no_history=True)

        return MaintenanceHistory(
            last_maintenance_date=values.get("last_maintenance"),
            last_actions_summary=_display_value(values, "maintenance_type") or None,
            maintenance_frequency=_display_value(values, "maintenance_frequency") or None,
            maintenance_company=values.get("maintenance_company"),
            next_maintenance_date=values.get("next_maintenance"),
            historical_documents=photos.get("maintenance", []),
            free_form_observations=values.get("maintenance_observations"),
        )


async def assemble_report(
    inspection_id: str,
    store: ModuleDataStore,
    mode: str = "compatibility",
    registry: Optional[SchemaRegistry] = None
) -> ReportObject:
    """Convenience wrapper around ReportAssembler."""
    return await ReportAssembler(store, registry).assemble(inspection_id, mode)
