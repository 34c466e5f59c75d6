"""
Unit tests for measurement tolerance and per-module form validation.
"""

import math

import pytest

from src.schemas.models import ChecklistItem
from src.validation.measurement import (
    NO_EXPECTED_VALUE,
    NO_PARAMETERS,
    WITHIN_TOLERANCE,
    validate_measurement,
)
from src.validation.module_validator import MODULE_NOT_CONFIGURED, validate_module


def make_item(**overrides):
    data = dict(
        id="tst_001",
        acao_curta="Medir tensão",
        como_testar="Multímetro",
        campo_observacao="Valor medido",
        criticidade="media",
        categoria="medicao",
        frequencia_dias=90,
        valor_esperado="100",
        unidade="V",
        tolerance_percent=10,
    )
    data.update(overrides)
    return ChecklistItem(**data)


class TestValidateMeasurement:
    """Tests for validate_measurement."""

    def test_reading_within_tolerance(self):
        result = validate_measurement(make_item(), 105)

        assert result.is_valid is True
        assert result.deviation == pytest.approx(5)
        assert result.message == WITHIN_TOLERANCE

    def test_reading_outside_tolerance(self):
        result = validate_measurement(make_item(), 120)

        assert result.is_valid is False
        assert result.deviation == pytest.approx(20)
        assert result.message == "Fora da faixa (90.00 - 110.00 V)"

    def test_bounds_are_inclusive(self):
        assert validate_measurement(make_item(), 110).is_valid is True
        assert validate_measurement(make_item(), 90).is_valid is True

    def test_missing_tolerance_always_passes(self):
        result = validate_measurement(make_item(tolerance_percent=None), 999)

        assert result.is_valid is True
        assert result.deviation == 0
        assert result.message == NO_PARAMETERS

    def test_missing_expected_value_always_passes(self):
        result = validate_measurement(make_item(valor_esperado=None), 999)
        assert result.message == NO_PARAMETERS

    def test_range_shaped_expected_value_passes(self):
        result = validate_measurement(make_item(valor_esperado="75-100", unidade="%"), 10)

        assert result.is_valid is True
        assert result.message == NO_EXPECTED_VALUE

    def test_decimal_comma_expected_value(self):
        result = validate_measurement(make_item(valor_esperado="0,5", unidade="Ω"), 0.52)
        assert result.is_valid is True

    def test_zero_expected_value(self):
        item = make_item(valor_esperado="0", unidade="Ω")

        exact = validate_measurement(item, 0)
        assert exact.is_valid is True
        assert exact.deviation == 0

        off = validate_measurement(item, 0.3)
        assert off.is_valid is False
        assert math.isinf(off.deviation)

    def test_negative_expected_value_range_is_ordered(self):
        result = validate_measurement(make_item(valor_esperado="-10", unidade="°C"), -10.5)

        assert result.is_valid is True
        assert result.deviation == pytest.approx(5)

    def test_message_without_unit(self):
        result = validate_measurement(make_item(unidade=None), 50)
        assert result.message == "Fora da faixa (90.00 - 110.00)"


class TestValidateModule:
    """Tests for validate_module."""

    def test_unknown_module(self, registry):
        result = validate_module("no_such_module", {}, registry=registry)

        assert result.is_valid is False
        assert result.errors == [MODULE_NOT_CONFIGURED]

    def test_empty_client_module_lists_required_labels(self, registry):
        result = validate_module("client", {}, registry=registry)

        assert result.is_valid is False
        assert "Nome do Cliente" in result.errors
        assert "FOTO 1 - Fachada" in result.errors
        # booleans are never reported by the form validator
        assert "Autorização dos Responsáveis" not in result.errors

    def test_invalid_time_format(self, registry):
        result = validate_module("client", {"horario_chegada": "25:99"}, registry=registry)
        assert "Horário de Chegada (formato inválido - use HH:MM)" in result.errors

    def test_other_requires_specification(self, registry):
        values = {"concessionaria": "Outro"}

        result = validate_module("grid_connection", values, registry=registry)
        assert "Concessionária (especificação)" in result.errors

        result = validate_module(
            "grid_connection", values, other_values={"concessionaria": "Neoenergia"},
            registry=registry
        )
        assert "Concessionária (especificação)" not in result.errors

    def test_numeric_bounds(self, registry):
        low = validate_module("grid_connection", {"demanda_kw": "0"}, registry=registry)
        assert "Demanda Contratada (valor mínimo: 1 kW)" in low.errors

        high = validate_module("grid_connection", {"demanda_kw": "60000"}, registry=registry)
        assert "Demanda Contratada (valor máximo: 50000 kW)" in high.errors

        bad = validate_module("grid_connection", {"demanda_kw": "abc"}, registry=registry)
        assert "Demanda Contratada (deve ser um número válido)" in bad.errors

    def test_measurement_out_of_range(self, registry):
        result = validate_module("bt", {"measurement_voltage_l1": "1200"}, registry=registry)
        assert "Tensão L1-N (fora da faixa 0-1000 V)" in result.errors

    def test_cabin_fields_follow_selected_type(self, registry):
        result = validate_module("cabin_type", {"cabin_type": "SIMPLIFICADA"}, registry=registry)

        assert "Tipo de Fusível" in result.errors
        assert "Tipo de Disjuntor MT" not in result.errors

    def test_conditional_fields_hidden_until_enabled(self, registry):
        hidden = validate_module(
            "component_irregularities", {"has_irregularities": "false"}, registry=registry
        )
        assert hidden.is_valid is True

    def test_complete_module_is_valid(self, registry):
        values = {
            "concessionaria": "CPFL",
            "codigo_consumidor": "123",
            "demanda_kw": "300",
            "tariff_type": "Convencional",
        }
        photos = {"connection_point": ["a.jpg"], "meter": ["b.jpg"]}

        result = validate_module("grid_connection", values, photos=photos, registry=registry)

        assert result.is_valid is True
        assert result.errors == []
