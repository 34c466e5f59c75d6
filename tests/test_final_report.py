"""
Tests for final report validation.
"""

import asyncio
import copy

from src.validation.final_report import (
    Diagnostic,
    FinalReportValidator,
    SYSTEM_FAILURE_MESSAGE,
    VALIDATION_ERROR_SENTINEL,
    validate_final_report,
)
from conftest import INSPECTION_ID, VALID_MODULE_DATA, VALID_PHOTOS, seed_inspection


def modules_with(module_id, **changes):
    modules = copy.deepcopy(VALID_MODULE_DATA)
    modules[module_id]["values"].update(changes)
    return modules


class BrokenStore:
    async def get_all_module_rows(self, inspection_id):
        raise RuntimeError("connection reset")

    async def get_image_media(self, inspection_id):
        return []


class TestFinalReportValidation:
    """Tests for validate_final_report against a seeded store."""

    def test_complete_inspection_is_valid(self, seeded_store):
        result = asyncio.run(validate_final_report(INSPECTION_ID, seeded_store))

        assert result.is_valid is True
        assert result.missing_fields == []
        assert result.errors_sample == []
        assert result.critical_errors == []

    def test_validation_is_deterministic(self, seeded_store):
        first = asyncio.run(validate_final_report(INSPECTION_ID, seeded_store))
        second = asyncio.run(validate_final_report(INSPECTION_ID, seeded_store))
        assert first == second

    def test_missing_client_name(self, store):
        modules = modules_with("client", client_name="")
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.is_valid is False
        assert 'Campo "Nome do Cliente" no módulo "Cliente/Obra"' in result.missing_fields
        assert any(sentence.endswith("é obrigatório.") for sentence in result.errors_sample)
        assert result.critical_errors == []

    def test_authorization_not_granted_is_critical(self, store):
        modules = modules_with("client", authorization=False)
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.is_valid is False
        assert len(result.critical_errors) == 1
        assert "autorização" in result.critical_errors[0]
        assert 'Autorização dos Responsáveis no módulo "Cliente/Obra"' in result.missing_fields
        # the authorization sentence is reported only as critical
        assert result.critical_errors[0] not in result.errors_sample

    def test_absent_authorization_is_critical(self, store):
        modules = copy.deepcopy(VALID_MODULE_DATA)
        del modules["client"]["values"]["authorization"]
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))
        assert result.blocks_generation is True

    def test_blank_conclusion_is_critical(self, store):
        modules = modules_with("general_state", conclusion="   ")
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        sentence = 'O campo "Conclusão da Inspeção" no módulo "Estado Geral" é obrigatório.'
        assert result.critical_errors == [sentence]
        assert sentence in result.errors_sample
        assert 'Campo "Conclusão da Inspeção" no módulo "Estado Geral"' in result.missing_fields

    def test_other_option_needs_specification(self, store):
        modules = modules_with("grid_connection", concessionaria="Outro")
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.missing_fields == [
            'Campo "Concessionária" (especificação em "Outro") no módulo "Conexão Concessionária"'
        ]
        assert result.critical_errors == []

    def test_other_option_with_specification_is_valid(self, store):
        modules = modules_with("grid_connection", concessionaria="Outro")
        modules["grid_connection"]["other_values"] = {"concessionaria": "Neoenergia"}
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))
        assert result.is_valid is True

    def test_missing_facade_photo(self, store):
        photos = [p for p in VALID_PHOTOS if p != ("client", "fachada")]
        asyncio.run(seed_inspection(store, photos=photos))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.is_valid is False
        # reported by the client module and again by the global photo check
        assert result.missing_fields.count('Foto "FOTO 1 - Fachada"') == 2
        assert result.critical_errors == []

    def test_missing_module(self, store):
        modules = copy.deepcopy(VALID_MODULE_DATA)
        del modules["mt"]
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.missing_fields == ['Módulo "Média Tensão (MT)"']
        assert result.errors_sample == [
            'O módulo "Média Tensão (MT)" é obrigatório e não foi preenchido.'
        ]

    def test_cabin_type_photos_follow_selected_type(self, store):
        modules = modules_with("cabin_type", cabin_type="SIMPLIFICADA", fuse_type="NH 100A")
        asyncio.run(seed_inspection(store, modules=modules))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.missing_fields == ['Foto "Proteção por Fusíveis"']

    def test_diagnostics_follow_registry_order(self, store):
        modules = modules_with("client", client_name="")
        modules["general_state"]["values"]["overall_condition"] = ""
        photos = [p for p in VALID_PHOTOS if p != ("bt", "quadro_geral")]
        asyncio.run(seed_inspection(store, modules=modules, photos=photos))

        result = asyncio.run(validate_final_report(INSPECTION_ID, store))

        assert result.missing_fields == [
            'Campo "Nome do Cliente" no módulo "Cliente/Obra"',
            'Foto "FOTO 4 - Quadro Geral"',
            'Campo "Condição Geral da Instalação" no módulo "Estado Geral"',
            'Foto "FOTO 4 - Quadro Geral"',
        ]

    def test_unknown_inspection_reports_every_module(self, store, registry):
        result = asyncio.run(validate_final_report("does-not-exist", store))

        expected = len(registry.required_modules) + len(registry.global_required_photos)
        assert len(result.missing_fields) == expected
        assert result.is_valid is False

    def test_store_failure_fails_closed(self, registry):
        result = asyncio.run(FinalReportValidator(BrokenStore(), registry).validate(INSPECTION_ID))

        assert result.is_valid is False
        assert result.missing_fields == [VALIDATION_ERROR_SENTINEL]
        assert result.errors_sample == [SYSTEM_FAILURE_MESSAGE]
        assert result.critical_errors == [SYSTEM_FAILURE_MESSAGE]


class TestCollectDiagnostics:
    """Tests for the pure discovery pass."""

    def test_empty_inspection(self, registry):
        validator = FinalReportValidator(store=None, registry=registry)

        diagnostics = validator.collect_diagnostics([], [])

        assert len(diagnostics) == len(registry.required_modules) + 4
        assert not any(d.critical for d in diagnostics)

    def test_to_result_separates_critical(self):
        result = FinalReportValidator.to_result([
            Diagnostic(missing="a", sentence="A."),
            Diagnostic(missing="b", sentence="B.", critical=True, sample=False),
        ])

        assert result.missing_fields == ["a", "b"]
        assert result.errors_sample == ["A."]
        assert result.critical_errors == ["B."]
        assert result.is_valid is False
