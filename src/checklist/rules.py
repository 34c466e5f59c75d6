"""
Escalation and notification rules for corrective actions.

Pure functions over CorrectiveAction records, so the same decision is reached
at creation time and on every later update.
"""

import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from src.schemas.models import (
    ChecklistItem,
    CorrectiveAction,
    NotificationPayload,
)
from src.schemas.registry import SchemaRegistry, get_registry

CRITICAL_RULE = "criticidade_alta_immediate"
MEASUREMENT_RULE = "measurement_out_of_range"
SAFETY_RULE = "safety_issue_detected"
STRUCTURAL_RULE = "structural_safety_issue"

PRIORITY_BY_CRITICALITY = {"alta": "urgent", "media": "normal"}


class _KeepMissing(dict):
    """format_map helper that leaves unknown placeholders untouched."""

    def __missing__(self, key):
        return "{" + key + "}"


def render_message(template: str, **context: Any) -> str:
    return template.format_map(_KeepMissing(context))


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def new_fault_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"fault_{_timestamp_ms()}_{suffix}"


def new_os_number() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"OS-{_timestamp_ms()}-{suffix}"


def work_order_priority(criticidade: str) -> str:
    return PRIORITY_BY_CRITICALITY.get(criticidade, "low")


def should_generate_work_order(
    action: CorrectiveAction,
    registry: Optional[SchemaRegistry] = None
) -> bool:
    """High criticality, or before-photos with medium/high criticality."""
    policy = (registry or get_registry()).escalation
    return policy.should_escalate(action.criticidade, action.fotos_before)


def get_failure_notification(
    action: CorrectiveAction,
    item: ChecklistItem
) -> Tuple[Optional[str], Optional[str]]:
    """
    Rule and urgency override for a freshly failed checklist item.

    Safety issues take precedence here, then structural, then critical.
    Returns (None, None) when nothing should be sent.
    """
    if item.categoria == "seguranca" and action.criticidade != "baixa":
        return SAFETY_RULE, "high" if action.criticidade == "alta" else "medium"
    if item.equipment_type == "poste" and action.criticidade == "alta":
        return STRUCTURAL_RULE, None
    if action.criticidade == "alta":
        return CRITICAL_RULE, None
    return None, None


def create_webhook_payload(
    action: CorrectiveAction,
    rule_name: str,
    inspection_id: str,
    registry: Optional[SchemaRegistry] = None,
    urgency: Optional[str] = None,
    **context: Any
) -> Optional[NotificationPayload]:
    """
    Build the notification payload of a rule for a corrective action.

    Returns None for unknown rule names.
    """
    rule = (registry or get_registry()).get_notification_rule(rule_name)
    if rule is None:
        return None

    detected: datetime = action.data_deteccao
    data: Dict[str, Any] = {
        "criticality": action.criticidade,
        "action_type": action.acao_tomada,
        "estimated_cost": action.custo_estimado,
        "responsible": action.responsavel,
        "detection_date": detected.isoformat() if detected else None,
    }

    return NotificationPayload(
        type=rule_name,
        message=render_message(rule.message_template, descricao=action.descricao, **context),
        recipients=list(rule.recipients),
        urgency=urgency or rule.urgency,
        inspection_id=inspection_id,
        fault_id=action.fault_id,
        data=data,
    )
