"""
Database module for inspection persistence.
"""

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
from src.database.repository import (
    InspectionRepository,
    create_db_engine,
    init_database,
    health_check_database,
)
from src.database.adapter import ModuleDataStore, ModuleValues

__all__ = [
    "Base",
    "InspectionRecord",
    "ModuleDataRecord",
    "MediaFileRecord",
    "ChecklistExecutionRecord",
    "CorrectiveActionRecord",
    "WorkOrderRecord",
    "ExportLogRecord",
    "InspectionRepository",
    "create_db_engine",
    "init_database",
    "health_check_database",
    "ModuleDataStore",
    "ModuleValues",
]
