"""
Tests for artifact naming, version discovery, report assembly and rendering.
"""

import asyncio
import copy
from datetime import datetime

import pytest

from src.errors import ArtifactStoreError
from src.reporting.assembler import (
    CHECKLIST_SECTION,
    DEFAULT_CONCLUSION,
    EPC_ABSENT,
    EPC_PRESENT,
    EPCS_SECTION,
    PROCEDURES_SECTION,
    assemble_report,
)
from src.reporting.pdf import render_report_pdf
from src.reporting.storage import LocalArtifactStore
from src.reporting.versioning import artifact_names, build_file_prefix, get_next_version
from src.schemas.models import ChecklistExecution
from conftest import INSPECTION_ID, VALID_MODULE_DATA, seed_inspection


class UnlistableStore:
    bucket = "reports"

    async def list(self, prefix=""):
        raise ArtifactStoreError("bucket offline")


@pytest.fixture
def artifacts(tmp_path):
    return LocalArtifactStore(root=tmp_path, bucket="reports", base_url="https://files.example.com")


class TestNaming:
    """Tests for artifact file names."""

    def test_prefix_from_client_and_date(self):
        assert build_file_prefix("ACME Energia Ltda.", "2024-03-15") == "ACME_Energia_Ltda_20240315"

    def test_prefix_accepts_brazilian_date(self):
        assert build_file_prefix("ACME", "15/03/2024") == "ACME_20240315"

    def test_prefix_falls_back_to_creation_date(self):
        created = datetime(2023, 12, 1, 9, 30)
        assert build_file_prefix("", None, created) == "cliente_20231201"

    def test_artifact_names(self):
        assert artifact_names("acme_20240315", 3) == (
            "acme_20240315_v3.pdf", "acme_20240315_v3.json"
        )


class TestVersionDiscovery:
    """Tests for get_next_version."""

    def test_empty_store_starts_at_one(self, artifacts):
        assert asyncio.run(get_next_version(artifacts, "acme_20240315")) == 1

    def test_next_after_highest_version(self, artifacts):
        async def scenario():
            await artifacts.upload("acme_20240315_v1.pdf", b"1", "application/pdf")
            await artifacts.upload("acme_20240315_v2.pdf", b"2", "application/pdf")
            await artifacts.upload("acme_20240315_v2.json", b"{}", "application/json")
            await artifacts.upload("acme_20240316_v7.pdf", b"7", "application/pdf")
            return await get_next_version(artifacts, "acme_20240315")

        assert asyncio.run(scenario()) == 3

    def test_listing_failure_starts_at_one(self):
        assert asyncio.run(get_next_version(UnlistableStore(), "acme_20240315")) == 1


class TestLocalArtifactStore:
    """Tests for the filesystem artifact store."""

    def test_upload_returns_public_url(self, artifacts, tmp_path):
        url = asyncio.run(artifacts.upload("a_v1.pdf", b"%PDF", "application/pdf"))

        assert url == "https://files.example.com/reports/a_v1.pdf"
        assert (tmp_path / "reports" / "a_v1.pdf").read_bytes() == b"%PDF"

    def test_existing_object_is_not_overwritten(self, artifacts, tmp_path):
        asyncio.run(artifacts.upload("a_v1.pdf", b"first", "application/pdf"))

        with pytest.raises(ArtifactStoreError):
            asyncio.run(artifacts.upload("a_v1.pdf", b"second", "application/pdf"))
        assert (tmp_path / "reports" / "a_v1.pdf").read_bytes() == b"first"

    def test_path_outside_bucket_rejected(self, artifacts):
        with pytest.raises(ArtifactStoreError):
            asyncio.run(artifacts.upload("../escape.pdf", b"x", "application/pdf"))

    def test_file_uri_without_base_url(self, tmp_path):
        store = LocalArtifactStore(root=tmp_path, bucket="reports", base_url="")
        assert store.public_url("a.pdf").startswith("file://")


class TestReportAssembler:
    """Tests for the canonical report object."""

    def test_initial_data(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))
        initial = report.dados_iniciais

        assert initial.cliente == "ACME Energia"
        assert initial.nome_fantasia == "ACME Fantasia"
        assert initial.os_numero == "OS-2024-001"
        assert initial.concessionaria == "CPFL"
        assert initial.demanda_kw == 300
        assert initial.data_execucao == "2024-03-15"
        assert report.conclusao == "Instalação em boas condições de operação."
        assert report.report_mode == "compatibility"

    def test_generated_os_number_and_other_specification(self, store):
        modules = copy.deepcopy(VALID_MODULE_DATA)
        del modules["client"]["values"]["os_number"]
        modules["grid_connection"]["values"]["concessionaria"] = "Outro"
        modules["grid_connection"]["other_values"] = {"concessionaria": "Neoenergia"}
        asyncio.run(seed_inspection(store, modules=modules))

        report = asyncio.run(assemble_report(INSPECTION_ID, store, mode="enriched"))

        assert report.dados_iniciais.os_numero == "AUTO-abcdef12"
        assert report.dados_iniciais.concessionaria == "Neoenergia"
        assert report.report_mode == "enriched"

    def test_procedures_and_epcs(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))

        procedures = [c for c in report.checklists if c.secao == PROCEDURES_SECTION]
        assert len(procedures) == 5
        assert all(c.resultado == "SIM" for c in procedures)

        epcs = {c.descricao: c.resultado for c in report.checklists if c.secao == EPCS_SECTION}
        assert epcs["Extintor de Incêndio"] == EPC_PRESENT
        assert epcs["Barreiras de Segurança"] == EPC_ABSENT

    def test_latest_checklist_execution_is_reported(self, seeded_store):
        async def scenario():
            for status in ("failed", "completed"):
                await seeded_store.save_execution(ChecklistExecution(
                    id=f"exec-{status}",
                    inspection_id=INSPECTION_ID,
                    checklist_item_id="mt_003",
                    status=status,
                    executed_at=datetime(2024, 3, 15, 10, 0 if status == "failed" else 5),
                ))
            return await assemble_report(INSPECTION_ID, seeded_store)

        report = asyncio.run(scenario())
        entries = [c for c in report.checklists if c.secao == CHECKLIST_SECTION]

        assert len(entries) == 1
        assert entries[0].descricao == "Medir tensão MT fase R"
        assert entries[0].resultado == "CONFORME"

    def test_measurement_tests(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))
        tests = {t.tipo: t for t in report.ensaios}

        assert set(tests) == {"Transformadores", "Média Tensão (MT)", "Baixa Tensão (BT)"}
        assert tests["Baixa Tensão (BT)"].valores["Tensão L1-N"] == "221 V"
        assert tests["Transformadores"].resultados_normativos["Temperatura do Óleo"] == "Dentro da faixa"

    def test_transformer(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))
        transformer = report.transformadores[0]

        assert transformer.id == "TR-1"
        assert transformer.fabricante == "WEG"
        assert transformer.potencia_kva == 500
        assert transformer.ano_fabricacao == 2010
        assert transformer.vazamento is False
        assert len(transformer.fotos) == 3

    def test_components_only_with_irregularities(self, store):
        modules = copy.deepcopy(VALID_MODULE_DATA)
        modules["component_irregularities"] = {"values": {
            "has_irregularities": True,
            "component_type": "Aterramento",
            "irregularity_description": "Haste corroída",
            "severity": "Alta",
        }}
        asyncio.run(seed_inspection(store, modules=modules))

        report = asyncio.run(assemble_report(INSPECTION_ID, store))

        assert len(report.componentes) == 1
        assert report.componentes[0].tipo == "Aterramento"
        assert report.componentes[0].descricao == "Haste corroída. Severidade: Alta"

    def test_no_components_by_default(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))
        assert report.componentes == []

    def test_maintenance_history(self, store):
        modules = copy.deepcopy(VALID_MODULE_DATA)
        del modules["maintenance"]
        del modules["general_state"]
        asyncio.run(seed_inspection(store, modules=modules))

        report = asyncio.run(assemble_report(INSPECTION_ID, store))

        assert report.maintenance_history.no_history is True
        assert report.conclusao == DEFAULT_CONCLUSION

    def test_attachments_list_every_photo(self, seeded_store):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store))
        assert len(report.anexos) == 20


class TestPdfRendering:
    """Smoke tests for the reportlab renderer."""

    @pytest.mark.parametrize("mode", ["compatibility", "enriched"])
    def test_renders_pdf_bytes(self, seeded_store, mode):
        report = asyncio.run(assemble_report(INSPECTION_ID, seeded_store, mode=mode))

        pdf = render_report_pdf(report)

        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000
