"""
Pydantic schemas for the inspection domain.

Registry types (modules, fields, photos, measurements, cabin types, checklist
templates) are immutable once loaded. Result types (validation verdicts,
export results) are recomputed per call and never persisted.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OTHER_OPTION = "Outro"

FieldType = Literal[
    "text", "number", "boolean", "select", "measurement",
    "photo", "date", "time", "textarea",
]
MeasurementType = Literal[
    "voltage", "current", "temperature", "resistance", "frequency", "power", "other",
]
Criticality = Literal["baixa", "media", "alta"]
ChecklistCategory = Literal["visual", "medicao", "operacional", "seguranca"]
ExecutionStatus = Literal["pending", "completed", "failed", "na"]
CorrectiveStatus = Literal["pendente", "em_andamento", "concluida", "cancelada"]
Urgency = Literal["low", "medium", "high", "critical"]
ReportMode = Literal["compatibility", "enriched"]
ExportStatus = Literal["pending", "uploaded", "sending_email", "success", "failed"]


# ============================================================================
# SCHEMA REGISTRY TYPES
# ============================================================================

class NumericRange(BaseModel):
    """Inclusive numeric bounds; either side may be open."""
    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class FieldCondition(BaseModel):
    """Show a field only while another field of the module holds `value`."""
    model_config = ConfigDict(frozen=True)

    field: str
    value: Union[bool, str]

    def matches(self, values: Dict[str, str]) -> bool:
        stored = values.get(self.field)
        if stored is None:
            return False
        if isinstance(self.value, bool):
            return stored.strip().lower() == str(self.value).lower()
        return stored == self.value


class ModuleFieldSpec(BaseModel):
    """One input slot within a module."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique key within the module")
    label: str = Field(..., description="Display text, used verbatim in diagnostics")
    type: FieldType
    required: bool = False
    options: Optional[List[str]] = None
    unit: Optional[str] = None
    validation: Optional[NumericRange] = None
    conditional_on: Optional[FieldCondition] = None
    placeholder: Optional[str] = None

    @model_validator(mode="after")
    def check_select_options(self):
        if self.type == "select" and not self.options:
            raise ValueError(f"Select field '{self.name}' declares no options")
        return self

    @property
    def has_other_option(self) -> bool:
        return bool(self.options) and OTHER_OPTION in self.options

    @property
    def other_field_name(self) -> str:
        return f"{self.name}_other"

    def is_visible(self, values: Dict[str, str]) -> bool:
        """Evaluate the conditional predicate against the module's stored values."""
        if self.conditional_on is None:
            return True
        return self.conditional_on.matches(values)


class PhotoSpec(BaseModel):
    """A photographic evidence slot."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Photo-type key")
    label: str
    required: bool = False
    max_photos: int = Field(default=1, ge=1)
    description: Optional[str] = None


class MeasurementSpec(BaseModel):
    """A numeric probe reading."""
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    unit: str
    type: MeasurementType = "other"
    range: Optional[NumericRange] = None

    @property
    def storage_key(self) -> str:
        return f"measurement_{self.name}"


class ModuleConfig(BaseModel):
    """One inspection module."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    order: int
    required: bool = False
    fields: List[ModuleFieldSpec] = Field(default_factory=list)
    photos: List[PhotoSpec] = Field(default_factory=list)
    measurements: List[MeasurementSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_names(self):
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Module '{self.id}' has duplicate field names")
        return self

    @property
    def required_fields(self) -> List[ModuleFieldSpec]:
        return [f for f in self.fields if f.required]

    @property
    def required_photos(self) -> List[PhotoSpec]:
        return [p for p in self.photos if p.required]

    def get_field(self, name: str) -> Optional[ModuleFieldSpec]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def get_photo(self, name: str) -> Optional[PhotoSpec]:
        for photo in self.photos:
            if photo.name == name:
                return photo
        return None

    def get_measurement(self, name: str) -> Optional[MeasurementSpec]:
        for measurement in self.measurements:
            if measurement.name == name:
                return measurement
        return None


class ConditionalItems(BaseModel):
    model_config = ConfigDict(frozen=True)

    fields: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    checklist_items: List[str] = Field(default_factory=list)


class CabinTypeConfig(BaseModel):
    """Cabin-type variant with its legacy aliases and conditional items."""
    model_config = ConfigDict(frozen=True)

    type: str
    label: str
    description: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)
    conditional_items: ConditionalItems = Field(default_factory=ConditionalItems)
    modules: List[str] = Field(default_factory=list)

    def matches(self, value: str) -> bool:
        needle = value.strip().lower()
        if needle == self.type.lower():
            return True
        return any(needle == alias.lower() for alias in self.aliases)


# ============================================================================
# STORED ROWS
# ============================================================================

class ModuleDataRow(BaseModel):
    """One (inspection, module, field) -> value triple. Values are always strings."""
    model_config = ConfigDict(from_attributes=True)

    inspection_id: str
    module_type: str
    field_name: str
    field_value: Optional[str] = None
    field_type: str = "text"
    is_required: bool = False


class MediaRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    inspection_id: str
    module_type: str
    file_name: str
    file_path: str
    file_type: str = "image/jpeg"
    file_size: Optional[int] = None
    is_required: bool = False
    photo_type_for_file: Optional[str] = None
    created_at: Optional[datetime] = None


class InspectionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str = ""
    client_name: str = ""
    work_site: str = ""
    status: Literal["draft", "in_progress", "completed"] = "draft"
    progress: int = Field(default=0, ge=0, le=100)
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# CHECKLIST TYPES
# ============================================================================

class ChecklistItem(BaseModel):
    """One preventive-maintenance action within a cabin-type template."""
    model_config = ConfigDict(frozen=True)

    id: str
    acao_curta: str
    como_testar: str
    valor_esperado: Optional[str] = None
    unidade: Optional[str] = None
    tolerance_percent: Optional[float] = None
    metodo_medicao: Optional[str] = None
    campo_observacao: str
    foto_required: bool = False
    linked_ui_field: Optional[str] = None
    equipment_type: Optional[str] = None
    criticidade: Criticality
    categoria: ChecklistCategory
    frequencia_dias: int
    needs_review: bool = False


class ChecklistTriggers(BaseModel):
    model_config = ConfigDict(frozen=True)

    auto_os_generation: bool = True
    notification_rules: List[str] = Field(default_factory=list)
    cost_tracking: bool = False


class ChecklistTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    cabin_type: str
    equipment_category: str
    items: List[ChecklistItem]
    triggers: ChecklistTriggers = Field(default_factory=ChecklistTriggers)

    def get_item(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class NotificationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger: str = ""
    recipients: List[str]
    message_template: str
    urgency: Urgency = "medium"


class EscalationPolicy(BaseModel):
    """When a corrective action escalates to a work order."""
    model_config = ConfigDict(frozen=True)

    immediate_criticality: Criticality = "alta"
    with_photos_criticality: List[Criticality] = Field(default_factory=lambda: ["media", "alta"])

    def should_escalate(self, criticidade: str, fotos_before: List[str]) -> bool:
        if criticidade == self.immediate_criticality:
            return True
        return bool(fotos_before) and criticidade in self.with_photos_criticality


class MeasurementValidation(BaseModel):
    """Tolerance check outcome for one reading."""
    is_valid: bool
    deviation: float = Field(..., ge=0)
    message: str


class ChecklistExecution(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    inspection_id: str
    checklist_item_id: str
    status: ExecutionStatus
    measured_value: Optional[float] = None
    observation: str = ""
    photo_uris: List[str] = Field(default_factory=list)
    executed_at: Optional[datetime] = None
    executed_by: str = "current_user"
    validation_result: Optional[MeasurementValidation] = None


class CorrectiveAction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fault_id: str
    inspection_id: Optional[str] = None
    linked_checklist_id: str
    descricao: str
    criticidade: Criticality = "media"
    acao_tomada: Literal["temporaria", "permanente"] = "temporaria"
    materiais_usados: List[str] = Field(default_factory=list)
    custo_estimado: float = 0.0
    fotos_before: List[str] = Field(default_factory=list)
    fotos_after: List[str] = Field(default_factory=list)
    data_deteccao: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data_correcao: Optional[datetime] = None
    responsavel: str = ""
    status: CorrectiveStatus = "pendente"
    os_gerada: Optional[str] = None
    observacoes: Optional[str] = None


class WorkOrder(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    os_number: str
    inspection_id: str
    fault_id: str
    description: str
    priority: Literal["urgent", "normal", "low"]
    estimated_cost: float = 0.0
    status: str = "pending"
    created_at: Optional[datetime] = None


class ChecklistProgress(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    percentage: int = Field(default=0, ge=0, le=100)


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class NotificationPayload(BaseModel):
    type: str
    message: str
    recipients: List[str]
    urgency: Urgency = "medium"
    inspection_id: Optional[str] = None
    fault_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class NotificationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    delivery_id: Optional[str] = None


# ============================================================================
# VALIDATION RESULTS
# ============================================================================

class ValidationResult(BaseModel):
    """Final-report verdict. Only `critical_errors` blocks generation."""
    is_valid: bool
    missing_fields: List[str] = Field(default_factory=list)
    errors_sample: List[str] = Field(default_factory=list)
    critical_errors: List[str] = Field(default_factory=list)

    @property
    def blocks_generation(self) -> bool:
        return len(self.critical_errors) > 0


class ModuleValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class ResolvedModule(BaseModel):
    """Effective field/photo set of a module for one governing value."""
    module_id: str
    visible_fields: List[ModuleFieldSpec]
    visible_photos: List[PhotoSpec]
    required_field_names: List[str]
    cabin_type_config: Optional[CabinTypeConfig] = None


# ============================================================================
# EXPORT
# ============================================================================

class ExportOptions(BaseModel):
    mode: ReportMode = "compatibility"
    send_email: bool = False
    recipient_emails: List[str] = Field(default_factory=list)
    include_json: bool = True

    @field_validator("recipient_emails")
    @classmethod
    def strip_recipients(cls, v: List[str]) -> List[str]:
        return [email.strip() for email in v if email and email.strip()]


class ExportSuccess(BaseModel):
    success: Literal[True] = True
    pdf_url: str
    json_url: Optional[str] = None
    file_name: str
    version: int = Field(..., ge=1)
    export_log_id: str
    email_sent: bool = False
    warnings: List[str] = Field(default_factory=list)


class ExportFailure(BaseModel):
    success: Literal[False] = False
    error: str
    validation_errors: Optional[List[str]] = None
    critical_errors: Optional[List[str]] = None
    export_log_id: Optional[str] = None


ExportResult = Union[ExportSuccess, ExportFailure]


class RetryResult(BaseModel):
    success: bool
    export_log_id: str
    message: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None


class ExportLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    inspection_id: str
    user_id: Optional[str] = None
    report_type: Literal["PDF", "JSON"] = "PDF"
    file_name: str
    file_path: Optional[str] = None
    version: int
    exported_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    email_sent_at: Optional[datetime] = None
    email_delivered_at: Optional[datetime] = None
    recipient_emails: List[str] = Field(default_factory=list)
    status: ExportStatus = "pending"
    error_message: Optional[str] = None
    retry_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="export_metadata")


# ============================================================================
# CANONICAL REPORT OBJECT
# ============================================================================

class ReportMetadata(BaseModel):
    titulo: str
    subtitulo: str
    data_emissao: datetime
    autor: str


class ReportInitialData(BaseModel):
    cliente: str
    nome_fantasia: Optional[str] = None
    endereco: str = ""
    horario_chegada: str = ""
    responsavel_local: str = ""
    data_execucao: str = ""
    os_numero: str
    concessionaria: str = "N/A"
    demanda_kw: float = 0.0
    codigo_consumidor: str = "N/A"


class ReportChecklist(BaseModel):
    secao: str
    descricao: str
    resultado: Union[bool, str]
    foto_ids: List[str] = Field(default_factory=list)


class ReportTestResult(BaseModel):
    tipo: str
    parametros: Dict[str, Any] = Field(default_factory=dict)
    valores: Dict[str, Any] = Field(default_factory=dict)
    resultados_normativos: Dict[str, Any] = Field(default_factory=dict)


class ReportTransformer(BaseModel):
    id: str
    fabricante: str = ""
    oleo_litros: Optional[float] = None
    ano_fabricacao: Optional[int] = None
    serie: str = ""
    potencia_kva: Optional[float] = None
    peso_kg: Optional[float] = None
    taps: Dict[str, Any] = Field(default_factory=dict)
    vazamento: bool = False
    fotos: List[str] = Field(default_factory=list)
    ensaios: List[ReportTestResult] = Field(default_factory=list)


class ReportComponent(BaseModel):
    tipo: str
    descricao: str
    irregularidade: bool
    fotos: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)


class MaintenanceHistory(BaseModel):
    last_maintenance_date: Optional[str] = None
    last_actions_summary: Optional[str] = None
    maintenance_frequency: Optional[str] = None
    maintenance_company: Optional[str] = None
    next_maintenance_date: Optional[str] = None
    historical_documents: List[str] = Field(default_factory=list)
    no_history: bool = False
    free_form_observations: Optional[str] = None


class ReportObject(BaseModel):
    """Mode-independent snapshot of everything a report shows."""
    metadados: ReportMetadata
    dados_iniciais: ReportInitialData
    checklists: List[ReportChecklist] = Field(default_factory=list)
    ensaios: List[ReportTestResult] = Field(default_factory=list)
    transformadores: List[ReportTransformer] = Field(default_factory=list)
    componentes: List[ReportComponent] = Field(default_factory=list)
    conclusao: str
    anexos: List[str] = Field(default_factory=list)
    maintenance_history: Optional[MaintenanceHistory] = None
    report_mode: ReportMode = "compatibility"


__all__ = [
    "OTHER_OPTION",
    "NumericRange",
    "FieldCondition",
    "ModuleFieldSpec",
    "PhotoSpec",
    "MeasurementSpec",
    "ModuleConfig",
    "ConditionalItems",
    "CabinTypeConfig",
    "ModuleDataRow",
    "MediaRow",
    "InspectionInfo",
    "ChecklistItem",
    "ChecklistTriggers",
    "ChecklistTemplate",
    "NotificationRule",
    "EscalationPolicy",
    "MeasurementValidation",
    "ChecklistExecution",
    "CorrectiveAction",
    "WorkOrder",
    "ChecklistProgress",
    "NotificationPayload",
    "NotificationResult",
    "ValidationResult",
    "ModuleValidation",
    "ResolvedModule",
    "ExportOptions",
    "ExportSuccess",
    "ExportFailure",
    "ExportResult",
    "RetryResult",
    "ExportLogEntry",
    "ReportMetadata",
    "ReportInitialData",
    "ReportChecklist",
    "ReportTestResult",
    "ReportTransformer",
    "ReportComponent",
    "MaintenanceHistory",
    "ReportObject",
]
