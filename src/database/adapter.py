"""
Asynchronous module data store.

Wraps the synchronous repository so validation, checklist and export code can
await persistence. Each call runs on an executor thread; the adapter does no
validation of its own.
"""

import asyncio
import functools
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.database.repository import InspectionRepository
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
from src.schemas.registry import SchemaRegistry, get_registry
from utils.logger import setup_logger
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="DATABASE"
)

OTHER_SUFFIX = "_other"
MEASUREMENT_PREFIX = "measurement_"
UNTAGGED_PHOTO_BUCKET = "general"


@dataclass
class ModuleValues:
    """A module's stored rows split the way the form edits them."""
    values: Dict[str, str] = field(default_factory=dict)
    other_values: Dict[str, str] = field(default_factory=dict)
    measurements: Dict[str, str] = field(default_factory=dict)


def to_stored_value(value: Any) -> Optional[str]:
    """Stored form of a field value; None for blanks, which are not persisted."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or None


def photo_type_from_file_name(file_name: str) -> str:
    """`quadro_geral_1712345678901.jpg` -> `quadro_geral`."""
    stem = file_name.rsplit(".", 1)[0]
    if "_" not in stem:
        return UNTAGGED_PHOTO_BUCKET
    return stem.rsplit("_", 1)[0]


class ModuleDataStore:
    """Async facade over InspectionRepository."""

    def __init__(
        self,
        repository: Optional[InspectionRepository] = None,
        registry: Optional[SchemaRegistry] = None,
        executor=None
    ):
        self.repository = repository or InspectionRepository()
        self.registry = registry or get_registry()
        self._executor = executor
        self.logger = logger

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, functools.partial(func, *args, **kwargs)
        )

    # ========================
    # Inspections
    # ========================

    async def create_inspection(
        self,
        title: str = "",
        client_name: str = "",
        work_site: str = "",
        user_id: Optional[str] = None,
        inspection_id: Optional[str] = None
    ) -> InspectionInfo:
        return await self._run(self.repository.create_inspection, {
            "id": inspection_id or str(uuid.uuid4()),
            "title": title,
            "client_name": client_name,
            "work_site": work_site,
            "user_id": user_id,
        })

    async def get_inspection(self, inspection_id: str) -> Optional[InspectionInfo]:
        return await self._run(self.repository.get_inspection, inspection_id)

    async def require_inspection(self, inspection_id: str) -> InspectionInfo:
        inspection = await self.get_inspection(inspection_id)
        if inspection is None:
            raise InspectionNotFound(inspection_id)
        return inspection

    async def delete_inspection(self, inspection_id: str) -> bool:
        return await self._run(self.repository.delete_inspection, inspection_id)

    async def update_inspection_progress(self, inspection_id: str) -> InspectionInfo:
        """
        Recompute progress from required modules that hold any data.

        Status is `completed` at 100, `in_progress` above 0, else `draft`.
        """
        required = [m.id for m in self.registry.required_modules]
        with_data = await self._run(self.repository.get_modules_with_data, inspection_id)

        completed = sum(1 for module_id in required if module_id in with_data)
        progress = round(completed / len(required) * 100) if required else 0
        if progress == 100:
            status = "completed"
        elif progress > 0:
            status = "in_progress"
        else:
            status = "draft"

        return await self._run(
            self.repository.update_inspection, inspection_id, status=status, progress=progress
        )

    # ========================
    # Module data
    # ========================

    async def get_module_rows(self, inspection_id: str, module_type: str) -> List[ModuleDataRow]:
        return await self._run(self.repository.get_module_rows, inspection_id, module_type)

    async def get_all_module_rows(self, inspection_id: str) -> List[ModuleDataRow]:
        return await self._run(self.repository.get_all_module_rows, inspection_id)

    async def get_field_value(
        self,
        inspection_id: str,
        module_type: str,
        field_name: str
    ) -> Optional[str]:
        return await self._run(
            self.repository.get_field_value, inspection_id, module_type, field_name
        )

    async def get_module_values(self, inspection_id: str, module_type: str) -> ModuleValues:
        rows = await self.get_module_rows(inspection_id, module_type)
        result = ModuleValues()

        for row in rows:
            name = row.field_name
            if name.startswith(MEASUREMENT_PREFIX):
                result.measurements[name[len(MEASUREMENT_PREFIX):]] = row.field_value
            elif name.endswith(OTHER_SUFFIX):
                result.other_values[name[:-len(OTHER_SUFFIX)]] = row.field_value
            else:
                result.values[name] = row.field_value

        return result

    async def save_module_data(
        self,
        inspection_id: str,
        module_type: str,
        values: Dict[str, Any],
        other_values: Optional[Dict[str, Any]] = None,
        measurements: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Replace everything stored for one module.

        Blank values are skipped. "Outro" specifications are stored as
        `<field>_other`, readings as `measurement_<name>`. Progress of the
        inspection is recomputed afterwards.

        Returns:
            Number of rows written
        """
        module = self.registry.get_module(module_type)
        rows = []

        for name, raw in values.items():
            stored = to_stored_value(raw)
            if stored is None:
                continue
            spec = module.get_field(name) if module else None
            rows.append({
                "field_name": name,
                "field_value": stored,
                "field_type": spec.type if spec else "text",
                "is_required": bool(spec and spec.required),
            })

        for name, raw in (other_values or {}).items():
            stored = to_stored_value(raw)
            if stored is None:
                continue
            rows.append({
                "field_name": f"{name}{OTHER_SUFFIX}",
                "field_value": stored,
                "field_type": "text",
                "is_required": False,
            })

        for name, raw in (measurements or {}).items():
            stored = to_stored_value(raw)
            if stored is None:
                continue
            rows.append({
                "field_name": f"{MEASUREMENT_PREFIX}{name}",
                "field_value": stored,
                "field_type": "measurement",
                "is_required": False,
            })

        count = await self._run(
            self.repository.replace_module_rows, inspection_id, module_type, rows
        )
        await self.update_inspection_progress(inspection_id)
        return count

    # ========================
    # Media
    # ========================

    async def get_image_media(self, inspection_id: str) -> List[MediaRow]:
        return await self._run(self.repository.get_media, inspection_id, images_only=True)

    async def get_all_media(self, inspection_id: str) -> List[MediaRow]:
        return await self._run(self.repository.get_media, inspection_id)

    async def add_photo(
        self,
        inspection_id: str,
        module_type: str,
        photo_type: str,
        uri: str,
        file_size: int = 0
    ) -> MediaRow:
        """Attach a photo; the file is named `<photo_type>_<ms timestamp>.jpg`."""
        module = self.registry.get_module(module_type)
        spec = module.get_photo(photo_type) if module else None

        return await self._run(self.repository.add_media, {
            "id": str(uuid.uuid4()),
            "inspection_id": inspection_id,
            "module_type": module_type,
            "file_name": f"{photo_type}_{int(time.time() * 1000)}.jpg",
            "file_path": uri,
            "file_type": "image/jpeg",
            "file_size": file_size,
            "is_required": bool(spec and spec.required),
            "photo_type_for_file": photo_type,
        })

    async def remove_photo(self, inspection_id: str, uri: str) -> bool:
        removed = await self._run(self.repository.delete_media_by_path, inspection_id, uri)
        return removed > 0

    async def get_module_photos(self, inspection_id: str, module_type: str) -> Dict[str, List[str]]:
        """Photo references of a module grouped by photo type."""
        media = await self._run(
            self.repository.get_media, inspection_id, module_type, True
        )
        grouped: Dict[str, List[str]] = {}
        for item in media:
            photo_type = item.photo_type_for_file or photo_type_from_file_name(item.file_name)
            grouped.setdefault(photo_type, []).append(item.file_path)
        return grouped

    # ========================
    # Checklist
    # ========================

    async def save_execution(self, execution: ChecklistExecution) -> ChecklistExecution:
        return await self._run(self.repository.save_execution, execution)

    async def get_executions(self, inspection_id: str) -> List[ChecklistExecution]:
        return await self._run(self.repository.get_executions, inspection_id)

    async def save_corrective_action(self, action: CorrectiveAction) -> CorrectiveAction:
        return await self._run(self.repository.save_corrective_action, action)

    async def get_corrective_action(self, fault_id: str) -> Optional[CorrectiveAction]:
        return await self._run(self.repository.get_corrective_action, fault_id)

    async def list_corrective_actions(self, inspection_id: str) -> List[CorrectiveAction]:
        return await self._run(self.repository.list_corrective_actions, inspection_id)

    async def create_work_order(self, work_order: WorkOrder) -> WorkOrder:
        return await self._run(self.repository.create_work_order, work_order)

    async def list_work_orders(self, inspection_id: str) -> List[WorkOrder]:
        return await self._run(self.repository.list_work_orders, inspection_id)

    # ========================
    # Export logs
    # ========================

    async def create_export_log(self, log_data: Dict[str, Any]) -> ExportLogEntry:
        return await self._run(self.repository.create_export_log, log_data)

    async def update_export_log(self, log_id: str, **changes) -> ExportLogEntry:
        return await self._run(self.repository.update_export_log, log_id, **changes)

    async def get_export_log(self, log_id: str) -> Optional[ExportLogEntry]:
        return await self._run(self.repository.get_export_log, log_id)

    async def list_export_logs(self, inspection_id: str) -> List[ExportLogEntry]:
        return await self._run(self.repository.list_export_logs, inspection_id)
