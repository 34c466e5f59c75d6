"""
Repository for inspection persistence.

Synchronous SQLAlchemy access. Every method opens its own session and returns
pydantic snapshots, never live ORM objects.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from src.database.models import (
    Base,
    InspectionRecord,
    ModuleDataRecord,
    MediaFileRecord,
    ChecklistExecutionRecord,
    CorrectiveActionRecord,
    WorkOrderRecord,
    ExportLogRecord,
)
from src.errors import InspectionNotFound
from src.schemas.models import (
    ChecklistExecution,
    CorrectiveAction,
    ExportLogEntry,
    InspectionInfo,
    MediaRow,
    ModuleDataRow,
    WorkOrder,
)
from utils.logger import setup_logger
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="DATABASE"
)


def _export_log_columns(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map the public `metadata` key onto its ORM attribute."""
    values = dict(data)
    if "metadata" in values:
        values["export_metadata"] = values.pop("metadata") or {}
    return values


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False}
    )


# Create database engine
engine = create_db_engine(config.database_url, echo=config.database_echo)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class InspectionRepository:
    """Repository for inspection, module data, media, checklist and export-log rows."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal
        self.logger = logger

    def get_session(self) -> Session:
        """Get database session."""
        return self.session_factory()

    # ========================
    # Inspections
    # ========================

    def create_inspection(self, inspection_data: Dict[str, Any]) -> InspectionInfo:
        """
        Create a new inspection record.

        Args:
            inspection_data: Column values; `id` is required

        Returns:
            Snapshot of the created inspection
        """
        session = self.get_session()

        try:
            inspection = InspectionRecord(**inspection_data)
            session.add(inspection)
            session.commit()
            session.refresh(inspection)

            self.logger.info(f"Created inspection record: {inspection.id}")

            return InspectionInfo.model_validate(inspection)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to create inspection: {e}")
            raise

        finally:
            session.close()

    def get_inspection(self, inspection_id: str) -> Optional[InspectionInfo]:
        """Get inspection by ID."""
        session = self.get_session()

        try:
            inspection = session.get(InspectionRecord, inspection_id)
            return InspectionInfo.model_validate(inspection) if inspection else None

        finally:
            session.close()

    def list_inspections(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None
    ) -> List[InspectionInfo]:
        session = self.get_session()

        try:
            query = session.query(InspectionRecord)
            if status:
                query = query.filter(InspectionRecord.status == status)

            inspections = query.order_by(
                InspectionRecord.created_at.desc()
            ).limit(limit).offset(offset).all()

            return [InspectionInfo.model_validate(i) for i in inspections]

        finally:
            session.close()

    def update_inspection(self, inspection_id: str, **changes) -> InspectionInfo:
        session = self.get_session()

        try:
            inspection = session.get(InspectionRecord, inspection_id)
            if inspection is None:
                raise InspectionNotFound(inspection_id)

            for key, value in changes.items():
                setattr(inspection, key, value)
            inspection.updated_at = datetime.now(timezone.utc)

            session.commit()
            session.refresh(inspection)
            return InspectionInfo.model_validate(inspection)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to update inspection {inspection_id}: {e}")
            raise

        finally:
            session.close()

    def delete_inspection(self, inspection_id: str) -> bool:
        """Delete an inspection and every dependent row."""
        session = self.get_session()

        try:
            inspection = session.get(InspectionRecord, inspection_id)
            if inspection is None:
                return False

            session.delete(inspection)
            session.commit()
            self.logger.info(f"Deleted inspection: {inspection_id}")
            return True

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to delete inspection {inspection_id}: {e}")
            raise

        finally:
            session.close()

    # ========================
    # Module data
    # ========================

    def get_module_rows(self, inspection_id: str, module_type: str) -> List[ModuleDataRow]:
        session = self.get_session()

        try:
            rows = session.query(ModuleDataRecord).filter(
                ModuleDataRecord.inspection_id == inspection_id,
                ModuleDataRecord.module_type == module_type
            ).order_by(ModuleDataRecord.id).all()

            return [ModuleDataRow.model_validate(r) for r in rows]

        finally:
            session.close()

    def get_all_module_rows(self, inspection_id: str) -> List[ModuleDataRow]:
        session = self.get_session()

        try:
            rows = session.query(ModuleDataRecord).filter(
                ModuleDataRecord.inspection_id == inspection_id
            ).order_by(ModuleDataRecord.id).all()

            return [ModuleDataRow.model_validate(r) for r in rows]

        finally:
            session.close()

    def get_field_value(
        self,
        inspection_id: str,
        module_type: str,
        field_name: str
    ) -> Optional[str]:
        session = self.get_session()

        try:
            row = session.query(ModuleDataRecord).filter(
                ModuleDataRecord.inspection_id == inspection_id,
                ModuleDataRecord.module_type == module_type,
                ModuleDataRecord.field_name == field_name
            ).first()

            return row.field_value if row else None

        finally:
            session.close()

    def replace_module_rows(
        self,
        inspection_id: str,
        module_type: str,
        rows: Iterable[Dict[str, Any]]
    ) -> int:
        """
        Delete every stored row of a module, then insert `rows`.

        Returns:
            Number of rows inserted
        """
        session = self.get_session()

        try:
            session.query(ModuleDataRecord).filter(
                ModuleDataRecord.inspection_id == inspection_id,
                ModuleDataRecord.module_type == module_type
            ).delete(synchronize_session=False)

            count = 0
            for row in rows:
                session.add(ModuleDataRecord(
                    inspection_id=inspection_id,
                    module_type=module_type,
                    **row
                ))
                count += 1

            session.commit()
            self.logger.debug(f"Saved {count} field(s) for {inspection_id}/{module_type}")
            return count

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to save module {module_type} for {inspection_id}: {e}")
            raise

        finally:
            session.close()

    def get_modules_with_data(self, inspection_id: str) -> Set[str]:
        session = self.get_session()

        try:
            rows = session.query(ModuleDataRecord.module_type).filter(
                ModuleDataRecord.inspection_id == inspection_id
            ).distinct().all()

            return {r[0] for r in rows}

        finally:
            session.close()

    # ========================
    # Media
    # ========================

    def get_media(
        self,
        inspection_id: str,
        module_type: Optional[str] = None,
        images_only: bool = False
    ) -> List[MediaRow]:
        session = self.get_session()

        try:
            query = session.query(MediaFileRecord).filter(
                MediaFileRecord.inspection_id == inspection_id
            )
            if module_type:
                query = query.filter(MediaFileRecord.module_type == module_type)
            if images_only:
                query = query.filter(MediaFileRecord.file_type.like("image/%"))

            media = query.order_by(MediaFileRecord.created_at).all()
            return [MediaRow.model_validate(m) for m in media]

        finally:
            session.close()

    def add_media(self, media_data: Dict[str, Any]) -> MediaRow:
        session = self.get_session()

        try:
            media = MediaFileRecord(**media_data)
            session.add(media)
            session.commit()
            session.refresh(media)
            return MediaRow.model_validate(media)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to add media: {e}")
            raise

        finally:
            session.close()

    def delete_media(self, media_id: str) -> bool:
        session = self.get_session()

        try:
            media = session.get(MediaFileRecord, media_id)
            if media is None:
                return False
            session.delete(media)
            session.commit()
            return True

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to delete media {media_id}: {e}")
            raise

        finally:
            session.close()

    def delete_media_by_path(self, inspection_id: str, file_path: str) -> int:
        session = self.get_session()

        try:
            count = session.query(MediaFileRecord).filter(
                MediaFileRecord.inspection_id == inspection_id,
                MediaFileRecord.file_path == file_path
            ).delete(synchronize_session=False)
            session.commit()
            return count

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to delete media {file_path}: {e}")
            raise

        finally:
            session.close()

    # ========================
    # Checklist executions
    # ========================

    def save_execution(self, execution: ChecklistExecution) -> ChecklistExecution:
        session = self.get_session()

        try:
            session.merge(ChecklistExecutionRecord(**execution.model_dump()))
            session.commit()
            return execution

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to save checklist execution: {e}")
            raise

        finally:
            session.close()

    def get_executions(self, inspection_id: str) -> List[ChecklistExecution]:
        session = self.get_session()

        try:
            rows = session.query(ChecklistExecutionRecord).filter(
                ChecklistExecutionRecord.inspection_id == inspection_id
            ).order_by(ChecklistExecutionRecord.executed_at).all()

            return [ChecklistExecution.model_validate(r) for r in rows]

        finally:
            session.close()

    # ========================
    # Corrective actions
    # ========================

    def save_corrective_action(self, action: CorrectiveAction) -> CorrectiveAction:
        session = self.get_session()

        try:
            session.merge(CorrectiveActionRecord(**action.model_dump()))
            session.commit()
            return action

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to save corrective action {action.fault_id}: {e}")
            raise

        finally:
            session.close()

    def get_corrective_action(self, fault_id: str) -> Optional[CorrectiveAction]:
        session = self.get_session()

        try:
            record = session.get(CorrectiveActionRecord, fault_id)
            return CorrectiveAction.model_validate(record) if record else None

        finally:
            session.close()

    def list_corrective_actions(self, inspection_id: str) -> List[CorrectiveAction]:
        session = self.get_session()

        try:
            rows = session.query(CorrectiveActionRecord).filter(
                CorrectiveActionRecord.inspection_id == inspection_id
            ).order_by(CorrectiveActionRecord.data_deteccao).all()

            return [CorrectiveAction.model_validate(r) for r in rows]

        finally:
            session.close()

    # ========================
    # Work orders
    # ========================

    def create_work_order(self, work_order: WorkOrder) -> WorkOrder:
        """Insert a work order and link it back to its corrective action."""
        session = self.get_session()

        try:
            record = WorkOrderRecord(**work_order.model_dump(exclude_none=True))
            session.add(record)

            action = session.get(CorrectiveActionRecord, work_order.fault_id)
            if action is not None:
                action.os_gerada = work_order.os_number

            session.commit()
            session.refresh(record)
            return WorkOrder.model_validate(record)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to create work order {work_order.os_number}: {e}")
            raise

        finally:
            session.close()

    def list_work_orders(self, inspection_id: str) -> List[WorkOrder]:
        session = self.get_session()

        try:
            rows = session.query(WorkOrderRecord).filter(
                WorkOrderRecord.inspection_id == inspection_id
            ).order_by(WorkOrderRecord.created_at).all()

            return [WorkOrder.model_validate(r) for r in rows]

        finally:
            session.close()

    # ========================
    # Export logs
    # ========================

    def create_export_log(self, log_data: Dict[str, Any]) -> ExportLogEntry:
        session = self.get_session()

        try:
            values = _export_log_columns(log_data)
            values.setdefault("id", str(uuid.uuid4()))
            record = ExportLogRecord(**values)
            session.add(record)
            session.commit()
            session.refresh(record)

            self.logger.info(f"Created export log {record.id} (v{record.version})")
            return ExportLogEntry.model_validate(record)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to create export log: {e}")
            raise

        finally:
            session.close()

    def update_export_log(self, log_id: str, **changes) -> ExportLogEntry:
        session = self.get_session()

        try:
            record = session.get(ExportLogRecord, log_id)
            if record is None:
                raise KeyError(f"Export log not found: {log_id}")

            for key, value in _export_log_columns(changes).items():
                setattr(record, key, value)

            session.commit()
            session.refresh(record)
            return ExportLogEntry.model_validate(record)

        except Exception as e:
            session.rollback()
            self.logger.error(f"Failed to update export log {log_id}: {e}")
            raise

        finally:
            session.close()

    def get_export_log(self, log_id: str) -> Optional[ExportLogEntry]:
        session = self.get_session()

        try:
            record = session.get(ExportLogRecord, log_id)
            return ExportLogEntry.model_validate(record) if record else None

        finally:
            session.close()

    def list_export_logs(self, inspection_id: str) -> List[ExportLogEntry]:
        """Export logs of an inspection, newest version first."""
        session = self.get_session()

        try:
            rows = session.query(ExportLogRecord).filter(
                ExportLogRecord.inspection_id == inspection_id
            ).order_by(
                ExportLogRecord.version.desc(),
                ExportLogRecord.exported_at.desc()
            ).all()

            return [ExportLogEntry.model_validate(r) for r in rows]

        finally:
            session.close()


def init_database(bind: Optional[Engine] = None) -> bool:
    """Initialize database schema."""
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return False


def health_check_database(session_factory: Optional[sessionmaker] = None) -> bool:
    """Check database health."""
    try:
        session = (session_factory or SessionLocal)()
        session.query(InspectionRecord).first()
        session.close()
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# Note: init_database() should be called explicitly at app startup
