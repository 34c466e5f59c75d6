"""
Preventive checklist engine.

Executes checklist items for one inspection, validates measurements, opens
corrective actions for failed items and escalates them to work orders. Alerts
go out through a NotificationSink; a failed delivery is logged and never
undoes the persisted state.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from src.checklist.rules import (
    CRITICAL_RULE,
    MEASUREMENT_RULE,
    create_webhook_payload,
    get_failure_notification,
    new_fault_id,
    new_os_number,
    should_generate_work_order,
    work_order_priority,
)
from src.database.adapter import ModuleDataStore
from src.errors import ChecklistItemNotFound, InspectionError
from src.notifications.sink import NotificationSink, get_notification_sink
from src.schemas.models import (
    ChecklistExecution,
    ChecklistItem,
    ChecklistProgress,
    ChecklistTemplate,
    CorrectiveAction,
    MeasurementValidation,
    NotificationPayload,
    WorkOrder,
)
from src.schemas.registry import (
    CABIN_TYPE_FIELD,
    CABIN_TYPE_MODULE,
    DEFAULT_CABIN_TYPE,
    SchemaRegistry,
    get_registry,
)
from src.validation.measurement import validate_measurement
from utils.logger import setup_logger, set_request_id
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="CHECKLIST"
)


class ChecklistEngine:
    """
    Checklist state and operations for a single inspection.

    Call `load()` once before reading progress; mutating operations reload
    what they change.
    """

    def __init__(
        self,
        inspection_id: str,
        store: ModuleDataStore,
        sink: Optional[NotificationSink] = None,
        registry: Optional[SchemaRegistry] = None
    ):
        self.inspection_id = inspection_id
        self.store = store
        self.sink = sink or get_notification_sink()
        self.registry = registry or get_registry()
        self.logger = logger

        self.cabin_type: str = DEFAULT_CABIN_TYPE
        self.template: Optional[ChecklistTemplate] = None
        self.executions: List[ChecklistExecution] = []
        self.corrective_actions: List[CorrectiveAction] = []
        self._loaded = False

    # ========================
    # Loading
    # ========================

    async def load(self) -> ChecklistTemplate:
        """Resolve the template from the stored cabin type and load history."""
        set_request_id(self.inspection_id)

        stored = await self.store.get_field_value(
            self.inspection_id, CABIN_TYPE_MODULE, CABIN_TYPE_FIELD
        )
        template = self.registry.get_checklist_template(stored)
        if template is None:
            if stored:
                self.logger.warning(
                    f"No checklist template for cabin type '{stored}', "
                    f"using {DEFAULT_CABIN_TYPE}"
                )
            template = self.registry.get_checklist_template(DEFAULT_CABIN_TYPE)

        self.template = template
        self.cabin_type = template.cabin_type
        self.executions = await self.store.get_executions(self.inspection_id)
        self.corrective_actions = await self.store.list_corrective_actions(self.inspection_id)
        self._loaded = True

        self.logger.info(
            f"Checklist loaded: {self.cabin_type}, {len(template.items)} items, "
            f"{len(self.executions)} executions"
        )
        return template

    async def _ensure_loaded(self):
        if not self._loaded:
            await self.load()

    @property
    def items(self) -> List[ChecklistItem]:
        return list(self.template.items) if self.template else []

    def get_item(self, item_id: str) -> ChecklistItem:
        item = self.template.get_item(item_id) if self.template else None
        if item is None:
            raise ChecklistItemNotFound(item_id)
        return item

    def latest_executions(self) -> Dict[str, ChecklistExecution]:
        """Most recent execution per item; re-executions supersede earlier ones."""
        latest: Dict[str, ChecklistExecution] = {}
        for execution in self.executions:
            latest[execution.checklist_item_id] = execution
        return latest

    # ========================
    # Execution
    # ========================

    async def execute_checklist_item(
        self,
        item_id: str,
        observation: str,
        measured_value: Optional[float] = None,
        photo_uris: Optional[Iterable[str]] = None,
        executed_by: str = "current_user"
    ) -> bool:
        """
        Record one execution of a checklist item.

        A measured value is validated against the item's expected value. An
        out-of-range reading fails the item, opens a corrective action and
        sends the most specific alert for it.

        Returns:
            True when the execution was persisted, False otherwise
        """
        try:
            await self._ensure_loaded()
            item = self.get_item(item_id)

            validation: Optional[MeasurementValidation] = None
            if measured_value is not None and item.valor_esperado:
                validation = validate_measurement(item, measured_value)
                if not validation.is_valid:
                    await self._notify_measurement(item, measured_value)

            status = "failed" if validation is not None and not validation.is_valid else "completed"

            execution = ChecklistExecution(
                id=str(uuid.uuid4()),
                inspection_id=self.inspection_id,
                checklist_item_id=item_id,
                status=status,
                measured_value=measured_value,
                observation=observation,
                photo_uris=list(photo_uris or []),
                executed_at=datetime.now(timezone.utc),
                executed_by=executed_by,
                validation_result=validation,
            )
            saved = await self.store.save_execution(execution)
            self.executions.append(saved)

            self.logger.info(f"Checklist item {item_id} executed: {status}")

            if status == "failed":
                fault_id = await self.create_automatic_corrective_action(
                    item_id, validation.message, item.criticidade
                )
                action = await self.store.get_corrective_action(fault_id) if fault_id else None
                if action is not None:
                    await self._notify_for_failure(action, item)

            return True

        except InspectionError as e:
            self.logger.error(f"Checklist item execution failed: {e}")
            return False
        except Exception as e:
            self.logger.error(f"Checklist item execution failed: {e}", exc_info=True)
            return False

    # ========================
    # Corrective actions
    # ========================

    async def create_automatic_corrective_action(
        self,
        item_id: str,
        description: str,
        criticality: str,
        before_photos: Iterable[str] = ()
    ) -> Optional[str]:
        """
        Open a temporary corrective action for a checklist item.

        Escalates to a work order when the escalation predicate holds.

        Returns:
            The new fault id, or None when the action could not be saved
        """
        try:
            await self._ensure_loaded()

            action = CorrectiveAction(
                fault_id=new_fault_id(),
                inspection_id=self.inspection_id,
                linked_checklist_id=item_id,
                descricao=description,
                criticidade=criticality,
                acao_tomada="temporaria",
                fotos_before=list(before_photos),
                data_deteccao=datetime.now(timezone.utc),
                status="pendente",
            )
            action = await self.store.save_corrective_action(action)
            self.corrective_actions.append(action)

            self.logger.info(
                f"Corrective action {action.fault_id} opened for {item_id} "
                f"({action.criticidade})"
            )

            if should_generate_work_order(action, self.registry):
                os_number = await self.generate_work_order(action.fault_id)
                if os_number:
                    action = action.model_copy(update={"os_gerada": os_number})
                await self._send_rule(action, CRITICAL_RULE)

            if action.criticidade == "alta" and action.fotos_before:
                await self._send_rule(
                    action, CRITICAL_RULE,
                    message=f"Ação corretiva crítica criada: {action.descricao}"
                )

            return action.fault_id

        except Exception as e:
            self.logger.error(f"Failed to create corrective action: {e}", exc_info=True)
            return None

    async def update_corrective_action(self, fault_id: str, **changes) -> bool:
        """
        Apply changes to a corrective action.

        A work order is generated when the updated action now qualifies for
        escalation and none exists yet.
        """
        try:
            current = await self.store.get_corrective_action(fault_id)
            if current is None:
                self.logger.warning(f"Corrective action not found: {fault_id}")
                return False

            changes.pop("fault_id", None)
            updated = CorrectiveAction(**{**current.model_dump(), **changes})
            updated = await self.store.save_corrective_action(updated)

            if should_generate_work_order(updated, self.registry) and not updated.os_gerada:
                await self.generate_work_order(fault_id)

            self.corrective_actions = await self.store.list_corrective_actions(self.inspection_id)
            return True

        except Exception as e:
            self.logger.error(f"Failed to update corrective action {fault_id}: {e}", exc_info=True)
            return False

    async def generate_work_order(self, fault_id: str) -> Optional[str]:
        """
        Create a work order for a corrective action and link it back.

        Returns:
            The OS number, or None on failure
        """
        try:
            action = await self.store.get_corrective_action(fault_id)
            if action is None:
                self.logger.warning(f"Cannot generate work order, action not found: {fault_id}")
                return None

            work_order = WorkOrder(
                os_number=new_os_number(),
                inspection_id=action.inspection_id or self.inspection_id,
                fault_id=fault_id,
                description=action.descricao,
                priority=work_order_priority(action.criticidade),
                estimated_cost=action.custo_estimado,
                status="pending",
            )
            work_order = await self.store.create_work_order(work_order)

            self.logger.info(f"Work order {work_order.os_number} generated ({work_order.priority})")
            return work_order.os_number

        except Exception as e:
            self.logger.error(f"Failed to generate work order for {fault_id}: {e}", exc_info=True)
            return None

    # ========================
    # Progress
    # ========================

    def get_checklist_progress(self) -> ChecklistProgress:
        total = len(self.items)
        statuses = [execution.status for execution in self.latest_executions().values()]
        completed = statuses.count("completed")
        failed = statuses.count("failed")

        return ChecklistProgress(
            total=total,
            completed=completed,
            failed=failed,
            pending=max(total - completed - failed, 0),
            percentage=round(completed / total * 100) if total else 0,
        )

    def get_items_requiring_correction(self) -> List[ChecklistItem]:
        latest = self.latest_executions()
        return [
            item for item in self.items
            if item.id in latest and latest[item.id].status == "failed"
        ]

    # ========================
    # Notifications
    # ========================

    async def _deliver(self, payload: Optional[NotificationPayload]):
        if payload is None:
            return
        result = await self.sink.send(payload)
        if not result.success:
            self.logger.warning(f"Notification '{payload.type}' not delivered: {result.error}")

    async def _send_rule(
        self,
        action: CorrectiveAction,
        rule_name: str,
        message: Optional[str] = None,
        urgency: Optional[str] = None
    ):
        payload = create_webhook_payload(
            action, rule_name, self.inspection_id, self.registry, urgency=urgency
        )
        if payload is not None and message:
            payload = payload.model_copy(update={"message": message})
        await self._deliver(payload)

    async def _notify_for_failure(self, action: CorrectiveAction, item: ChecklistItem):
        rule_name, urgency = get_failure_notification(action, item)
        if rule_name is not None:
            await self._send_rule(action, rule_name, urgency=urgency)

    async def _notify_measurement(self, item: ChecklistItem, measured_value: float):
        rule = self.registry.get_notification_rule(MEASUREMENT_RULE)
        if rule is None:
            return

        message = rule.message_template.format(
            item=item.acao_curta,
            value=f"{measured_value:g}",
            unit=item.unidade or "",
            expected=item.valor_esperado,
        )
        await self._deliver(NotificationPayload(
            type=MEASUREMENT_RULE,
            message=message,
            recipients=list(rule.recipients),
            urgency=rule.urgency,
            inspection_id=self.inspection_id,
            data={
                "item_id": item.id,
                "measured_value": measured_value,
                "expected": item.valor_esperado,
                "unit": item.unidade,
            },
        ))
