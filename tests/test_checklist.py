"""
Tests for the checklist engine and its escalation rules.
"""

import asyncio
import re
from datetime import datetime

from src.checklist.engine import ChecklistEngine
from src.checklist.rules import (
    CRITICAL_RULE,
    MEASUREMENT_RULE,
    SAFETY_RULE,
    STRUCTURAL_RULE,
    create_webhook_payload,
    get_failure_notification,
    new_fault_id,
    new_os_number,
    render_message,
    should_generate_work_order,
    work_order_priority,
)
from src.schemas.models import ChecklistItem, CorrectiveAction
from conftest import INSPECTION_ID, seed_inspection


def make_action(**overrides):
    data = dict(
        fault_id="fault_1_abc",
        inspection_id=INSPECTION_ID,
        linked_checklist_id="est_001",
        descricao="Poste inclinado",
        criticidade="alta",
        data_deteccao=datetime(2024, 3, 15, 10, 0),
    )
    data.update(overrides)
    return CorrectiveAction(**data)


def make_item(**overrides):
    data = dict(
        id="x_001",
        acao_curta="Verificar",
        como_testar="Visual",
        campo_observacao="Obs",
        criticidade="alta",
        categoria="visual",
        frequencia_dias=90,
    )
    data.update(overrides)
    return ChecklistItem(**data)


def loaded_engine(store, sink, inspection_id=INSPECTION_ID):
    engine = ChecklistEngine(inspection_id, store, sink=sink)
    asyncio.run(engine.load())
    return engine


class TestChecklistRules:
    """Tests for the pure escalation and notification rules."""

    def test_identifier_formats(self):
        assert re.fullmatch(r"fault_\d{13}_[a-z0-9]{9}", new_fault_id())
        assert re.fullmatch(r"OS-\d{13}-[A-Z0-9]{4}", new_os_number())

    def test_work_order_priority(self):
        assert work_order_priority("alta") == "urgent"
        assert work_order_priority("media") == "normal"
        assert work_order_priority("baixa") == "low"

    def test_escalation_predicate(self, registry):
        assert should_generate_work_order(make_action(criticidade="alta"), registry) is True
        assert should_generate_work_order(make_action(criticidade="media"), registry) is False
        assert should_generate_work_order(
            make_action(criticidade="media", fotos_before=["a.jpg"]), registry
        ) is True
        assert should_generate_work_order(
            make_action(criticidade="baixa", fotos_before=["a.jpg"]), registry
        ) is False

    def test_failure_notification_prefers_safety(self):
        pole = make_item(equipment_type="poste", categoria="seguranca")

        assert get_failure_notification(make_action(), pole) == (SAFETY_RULE, "high")
        assert get_failure_notification(make_action(criticidade="media"), pole) == (
            SAFETY_RULE, "medium"
        )
        assert get_failure_notification(make_action(), make_item(equipment_type="poste")) == (
            STRUCTURAL_RULE, None
        )
        assert get_failure_notification(make_action(), make_item()) == (CRITICAL_RULE, None)
        assert get_failure_notification(make_action(criticidade="media"), make_item()) == (
            None, None
        )

    def test_detection_time_defaults_to_aware_utc(self, registry):
        data = make_action().model_dump(exclude={"data_deteccao"})
        action = CorrectiveAction(**data)

        assert action.data_deteccao.tzinfo is not None
        assert action.data_deteccao.utcoffset().total_seconds() == 0

        payload = create_webhook_payload(action, STRUCTURAL_RULE, INSPECTION_ID, registry)
        assert payload.data["detection_date"].endswith("+00:00")

    def test_webhook_payload(self, registry):
        payload = create_webhook_payload(make_action(), STRUCTURAL_RULE, INSPECTION_ID, registry)

        assert payload.type == STRUCTURAL_RULE
        assert payload.message == "Problema estrutural crítico: Poste inclinado"
        assert payload.urgency == "critical"
        assert payload.recipients == ["structural_engineer", "supervisor"]
        assert payload.fault_id == "fault_1_abc"
        assert payload.data["criticality"] == "alta"
        assert payload.data["detection_date"] == "2024-03-15T10:00:00"

    def test_webhook_payload_urgency_override(self, registry):
        payload = create_webhook_payload(
            make_action(), SAFETY_RULE, INSPECTION_ID, registry, urgency="medium"
        )
        assert payload.urgency == "medium"

    def test_unknown_rule_has_no_payload(self, registry):
        assert create_webhook_payload(make_action(), "nope", INSPECTION_ID, registry) is None

    def test_render_message_keeps_unknown_placeholders(self):
        assert render_message("{descricao} em {local}", descricao="Falha") == "Falha em {local}"


class TestChecklistEngine:
    """Tests for ChecklistEngine against a seeded store."""

    def test_template_follows_stored_cabin_type(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        assert engine.cabin_type == "CONVENCIONAL"
        assert engine.get_item("iso_001").criticidade == "alta"

    def test_alias_cabin_type_selects_canonical_template(self, store, sink):
        modules = {"cabin_type": {"values": {"cabin_type": "Poste"}}}
        asyncio.run(seed_inspection(store, modules=modules, photos=[]))

        engine = loaded_engine(store, sink)
        assert engine.cabin_type == "ESTALEIRO"

    def test_unknown_cabin_type_falls_back(self, store, sink):
        modules = {"cabin_type": {"values": {"cabin_type": "Subestação Móvel"}}}
        asyncio.run(seed_inspection(store, modules=modules, photos=[]))

        engine = loaded_engine(store, sink)
        assert engine.cabin_type == "CONVENCIONAL"

    def test_completed_visual_item(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        ok = asyncio.run(engine.execute_checklist_item("vis_ext_002", "Fechaduras em ordem"))

        assert ok is True
        executions = asyncio.run(seeded_store.get_executions(INSPECTION_ID))
        assert [e.status for e in executions] == ["completed"]
        assert executions[0].validation_result is None
        assert sink.sent == []

    def test_reading_within_tolerance(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        asyncio.run(engine.execute_checklist_item("mt_003", "Fase R", measured_value=13900))

        execution = asyncio.run(seeded_store.get_executions(INSPECTION_ID))[0]
        assert execution.status == "completed"
        assert execution.measured_value == 13900
        assert execution.validation_result.is_valid is True

    def test_item_without_expected_value_skips_validation(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        asyncio.run(engine.execute_checklist_item("bt_006", "Corrente L1", measured_value=0))

        execution = asyncio.run(seeded_store.get_executions(INSPECTION_ID))[0]
        assert execution.status == "completed"
        assert execution.measured_value == 0
        assert execution.validation_result is None

    def test_medium_reading_out_of_range(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        ok = asyncio.run(engine.execute_checklist_item("mt_003", "Fase R", measured_value=12000))

        assert ok is True
        assert [p.type for p in sink.sent] == [MEASUREMENT_RULE]
        assert sink.sent[0].message == (
            "Medição fora da faixa: Medir tensão MT fase R = 12000 V (esperado: 13800)"
        )

        actions = asyncio.run(seeded_store.list_corrective_actions(INSPECTION_ID))
        assert len(actions) == 1
        assert actions[0].descricao == "Fora da faixa (13110.00 - 14490.00 V)"
        assert actions[0].acao_tomada == "temporaria"
        assert actions[0].status == "pendente"
        assert actions[0].os_gerada is None
        assert asyncio.run(seeded_store.list_work_orders(INSPECTION_ID)) == []

    def test_critical_reading_escalates(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        asyncio.run(engine.execute_checklist_item("iso_001", "Umidade alta", measured_value=200))

        assert [p.type for p in sink.sent] == [MEASUREMENT_RULE, CRITICAL_RULE, CRITICAL_RULE]

        orders = asyncio.run(seeded_store.list_work_orders(INSPECTION_ID))
        assert len(orders) == 1
        assert orders[0].priority == "urgent"

        action = asyncio.run(seeded_store.list_corrective_actions(INSPECTION_ID))[0]
        assert action.os_gerada == orders[0].os_number
        assert action.criticidade == "alta"

    def test_failed_delivery_keeps_state(self, seeded_store, failing_sink):
        engine = loaded_engine(seeded_store, failing_sink)

        ok = asyncio.run(engine.execute_checklist_item("iso_001", "", measured_value=200))

        assert ok is True
        assert len(failing_sink.sent) == 3
        assert len(asyncio.run(seeded_store.list_corrective_actions(INSPECTION_ID))) == 1

    def test_unknown_item_is_rejected(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        assert asyncio.run(engine.execute_checklist_item("nao_existe", "x")) is False
        assert asyncio.run(seeded_store.get_executions(INSPECTION_ID)) == []

    def test_progress_uses_latest_execution(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        asyncio.run(engine.execute_checklist_item("mt_003", "", measured_value=12000))
        failed = engine.get_checklist_progress()
        assert failed.failed == 1
        assert [item.id for item in engine.get_items_requiring_correction()] == ["mt_003"]

        asyncio.run(engine.execute_checklist_item("mt_003", "Reajustado", measured_value=13800))
        asyncio.run(engine.execute_checklist_item("vis_ext_001", "OK"))
        progress = engine.get_checklist_progress()

        total = len(engine.items)
        assert progress.total == total
        assert progress.completed == 2
        assert progress.failed == 0
        assert progress.pending == total - 2
        assert progress.percentage == round(2 / total * 100)
        assert engine.get_items_requiring_correction() == []

    def test_history_is_reloaded(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)
        asyncio.run(engine.execute_checklist_item("vis_ext_001", "OK"))

        fresh = loaded_engine(seeded_store, sink)
        assert fresh.get_checklist_progress().completed == 1

    def test_critical_action_with_photos_sends_extra_alert(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)

        fault_id = asyncio.run(engine.create_automatic_corrective_action(
            "grd_002", "Cabo de aterramento rompido", "alta", before_photos=["antes.jpg"]
        ))

        assert fault_id.startswith("fault_")
        assert [p.type for p in sink.sent] == [CRITICAL_RULE, CRITICAL_RULE]
        assert sink.sent[1].message == "Ação corretiva crítica criada: Cabo de aterramento rompido"

    def test_update_adds_work_order_when_escalating(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)
        fault_id = asyncio.run(engine.create_automatic_corrective_action(
            "lmp_001", "Isoladores sujos", "media"
        ))
        assert asyncio.run(seeded_store.list_work_orders(INSPECTION_ID)) == []

        ok = asyncio.run(engine.update_corrective_action(
            fault_id, fotos_before=["antes.jpg"], responsavel="Equipe B"
        ))

        assert ok is True
        orders = asyncio.run(seeded_store.list_work_orders(INSPECTION_ID))
        assert len(orders) == 1
        assert orders[0].priority == "normal"
        action = asyncio.run(seeded_store.get_corrective_action(fault_id))
        assert action.os_gerada == orders[0].os_number
        assert action.responsavel == "Equipe B"

    def test_update_does_not_duplicate_work_order(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)
        fault_id = asyncio.run(engine.create_automatic_corrective_action(
            "grd_002", "Cabo rompido", "alta"
        ))

        asyncio.run(engine.update_corrective_action(fault_id, status="em_andamento"))

        assert len(asyncio.run(seeded_store.list_work_orders(INSPECTION_ID))) == 1

    def test_update_unknown_action(self, seeded_store, sink):
        engine = loaded_engine(seeded_store, sink)
        assert asyncio.run(engine.update_corrective_action("fault_0_missing", status="concluida")) is False
