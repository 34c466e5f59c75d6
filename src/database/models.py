"""
SQLAlchemy ORM models for inspections and everything hanging off them.

Field values are stored as strings; booleans as the literals "true"/"false".
Deleting an inspection deletes its module data, media, checklist executions,
corrective actions, work orders and export logs.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Float, DateTime,
    Text, Boolean, ForeignKey, JSON
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _children(target: str):
    return relationship(target, back_populates="inspection", cascade="all, delete-orphan")


class InspectionRecord(Base):
    """Main inspection record."""
    __tablename__ = "inspections"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, default="")
    client_name = Column(String, default="")
    work_site = Column(String, default="")
    status = Column(String, default="draft", nullable=False)  # draft, in_progress, completed
    progress = Column(Integer, default=0, nullable=False)
    user_id = Column(String)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    module_data = _children("ModuleDataRecord")
    media_files = _children("MediaFileRecord")
    checklist_executions = _children("ChecklistExecutionRecord")
    corrective_actions = _children("CorrectiveActionRecord")
    work_orders = _children("WorkOrderRecord")
    export_logs = _children("ExportLogRecord")


class ModuleDataRecord(Base):
    """One stored field value of one module."""
    __tablename__ = "module_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    module_type = Column(String, nullable=False, index=True)
    field_name = Column(String, nullable=False)
    field_value = Column(Text)
    field_type = Column(String, default="text")
    is_required = Column(Boolean, default=False)
    created_at = Column(DateTime, default=_utcnow)

    inspection = relationship("InspectionRecord", back_populates="module_data")


class MediaFileRecord(Base):
    """Photo or other media attached to a module."""
    __tablename__ = "media_files"

    id = Column(String, primary_key=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    module_type = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_type = Column(String, default="image/jpeg")
    file_size = Column(Integer)
    is_required = Column(Boolean, default=False)
    photo_type_for_file = Column(String, index=True)
    created_at = Column(DateTime, default=_utcnow)

    inspection = relationship("InspectionRecord", back_populates="media_files")


class ChecklistExecutionRecord(Base):
    __tablename__ = "checklist_executions"

    id = Column(String, primary_key=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    checklist_item_id = Column(String, nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, completed, failed, na
    measured_value = Column(Float)
    observation = Column(Text, default="")
    photo_uris = Column(JSON, default=list)
    executed_at = Column(DateTime, default=_utcnow)
    executed_by = Column(String, default="current_user")
    validation_result = Column(JSON)

    inspection = relationship("InspectionRecord", back_populates="checklist_executions")


class CorrectiveActionRecord(Base):
    __tablename__ = "corrective_actions"

    fault_id = Column(String, primary_key=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    linked_checklist_id = Column(String, nullable=False)
    descricao = Column(Text, nullable=False)
    criticidade = Column(String, default="media")  # baixa, media, alta
    acao_tomada = Column(String, default="temporaria")  # temporaria, permanente
    materiais_usados = Column(JSON, default=list)
    custo_estimado = Column(Float, default=0.0)
    fotos_before = Column(JSON, default=list)
    fotos_after = Column(JSON, default=list)
    data_deteccao = Column(DateTime, default=_utcnow)
    data_correcao = Column(DateTime)
    responsavel = Column(String, default="")
    status = Column(String, default="pendente")
    os_gerada = Column(String)
    observacoes = Column(Text)

    inspection = relationship("InspectionRecord", back_populates="corrective_actions")


class WorkOrderRecord(Base):
    __tablename__ = "work_orders"

    os_number = Column(String, primary_key=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    fault_id = Column(String, nullable=False, index=True)
    description = Column(Text)
    priority = Column(String, default="normal")  # urgent, normal, low
    estimated_cost = Column(Float, default=0.0)
    status = Column(String, default="pending")
    created_at = Column(DateTime, default=_utcnow)

    inspection = relationship("InspectionRecord", back_populates="work_orders")


class ExportLogRecord(Base):
    """Metadata of one report generation attempt."""
    __tablename__ = "export_logs"

    id = Column(String, primary_key=True)
    inspection_id = Column(String, ForeignKey("inspections.id"), nullable=False, index=True)
    user_id = Column(String)
    report_type = Column(String, default="PDF")  # PDF, JSON
    file_name = Column(String, nullable=False)
    file_path = Column(String)
    version = Column(Integer, nullable=False)

    exported_at = Column(DateTime, default=_utcnow)
    uploaded_at = Column(DateTime)
    email_sent_at = Column(DateTime)
    email_delivered_at = Column(DateTime)
    recipient_emails = Column(JSON, default=list)

    status = Column(String, default="pending")  # pending, uploaded, sending_email, success, failed
    error_message = Column(Text)
    retry_count = Column(Integer, default=0)

    # `metadata` is reserved on declarative classes
    export_metadata = Column("metadata", JSON, default=dict)

    inspection = relationship("InspectionRecord", back_populates="export_logs")
