"""
Preventive checklists, corrective actions and work orders.
"""

from src.checklist.engine import ChecklistEngine
from src.checklist.rules import (
    create_webhook_payload,
    get_failure_notification,
    should_generate_work_order,
    work_order_priority,
)

__all__ = [
    "ChecklistEngine",
    "create_webhook_payload",
    "get_failure_notification",
    "should_generate_work_order",
    "work_order_priority",
]
