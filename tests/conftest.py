"""
Shared fixtures: temporary sqlite database, store, and a fully valid inspection.
"""

import asyncio

import pytest
from sqlalchemy.orm import sessionmaker

from src.database.adapter import ModuleDataStore
from src.database.repository import InspectionRepository, create_db_engine, init_database
from src.schemas.models import NotificationResult
from src.notifications.sink import LoggingNotificationSink, NotificationSink
from src.schemas.registry import get_registry

INSPECTION_ID = "insp-2024-0001-abcdef12"

VALID_MODULE_DATA = {
    "client": {
        "values": {
            "client_name": "ACME Energia",
            "client_site_name": "Planta Norte",
            "nome_fantasia": "ACME Fantasia",
            "endereco_completo": "Av. Industrial, 1000 - Campinas/SP",
            "responsavel_local": "joao.silva@acme.com.br",
            "horario_chegada": "08:30",
            "data_execucao": "2024-03-15",
            "report_type": "MANUTENÇÃO PREVENTIVA",
            "os_number": "OS-2024-001",
            "authorization": True,
        },
    },
    "cabin_type": {
        "values": {
            "cabin_type": "CONVENCIONAL",
            "voltage_level": "13.8 kV",
            "installation_type": "Aérea",
            "grounding_system": "TN-S",
            "mt_breaker_type": "Vácuo",
            "protection_relay": "Pextron URP 6000",
            "metering_system": "Medição indireta",
        },
    },
    "procedures": {
        "values": {
            "safety_equipment": True,
            "area_isolation": True,
            "voltage_verification": True,
            "grounding_installation": True,
            "signaling_protection": True,
        },
    },
    "maintenance": {
        "values": {
            "last_maintenance": "2023-09-10",
            "maintenance_frequency": "Anual",
            "maintenance_type": "Preventiva",
            "maintenance_company": "Joule Engenharia",
        },
    },
    "transformers": {
        "values": {
            "manufacturer": "WEG",
            "serial_number": "TR-998877",
            "power_kva": 500,
            "primary_voltage": 13800,
            "secondary_voltage": 380,
            "installation_year": 2010,
            "oil_leakage": False,
        },
        "measurements": {"insulation_primary": 2500, "temperature": 65},
    },
    "grid_connection": {
        "values": {
            "concessionaria": "CPFL",
            "codigo_consumidor": "123456789",
            "demanda_kw": 300,
            "tariff_type": "Horo-sazonal Verde",
        },
    },
    "mt": {
        "values": {
            "mt_voltage_level": "13.8 kV",
            "protection_type": "Disjuntor",
            "switchgear_type": "Cubículo Metálico",
        },
        "measurements": {"voltage_r": 13800, "voltage_s": 13750, "voltage_t": 13820},
    },
    "bt": {
        "values": {
            "bt_voltage_level": "380V",
            "distribution_type": "Radial",
            "main_breaker": "Disjuntor 800A",
        },
        "measurements": {"voltage_l1": 221, "voltage_l2": 219, "voltage_l3": 220},
    },
    "epcs": {
        "values": {
            "fire_extinguisher": True,
            "first_aid_kit": True,
            "safety_barriers": False,
        },
    },
    "general_state": {
        "values": {
            "overall_condition": "Boa",
            "compliance_status": "Conforme",
            "conclusion": "Instalação em boas condições de operação.",
        },
    },
    "reconnection": {
        "values": {
            "reconnection_authorized": True,
            "final_tests": True,
            "system_operational": True,
        },
    },
}

VALID_PHOTOS = [
    ("client", "fachada"),
    ("cabin_type", "cabin_external"),
    ("cabin_type", "cabin_internal"),
    ("cabin_type", "nameplate"),
    ("cabin_type", "grounding_system"),
    ("cabin_type", "mt_breaker"),
    ("cabin_type", "protection_panel"),
    ("cabin_type", "placa"),
    ("procedures", "safety_procedures"),
    ("transformers", "proximidade"),
    ("transformers", "transformer_nameplate"),
    ("transformers", "transformer_general"),
    ("grid_connection", "connection_point"),
    ("grid_connection", "meter"),
    ("mt", "mt_panel"),
    ("mt", "mt_protection"),
    ("bt", "quadro_geral"),
    ("bt", "bt_distribution"),
    ("epcs", "epcs_general"),
    ("general_state", "general_overview"),
]


async def seed_inspection(store, inspection_id=INSPECTION_ID, modules=None, photos=None):
    """Create an inspection and store module data and photos for it."""
    await store.create_inspection(
        title="Inspeção preventiva",
        client_name="ACME Energia",
        work_site="Planta Norte",
        user_id="user-1",
        inspection_id=inspection_id,
    )
    for module_id, data in (VALID_MODULE_DATA if modules is None else modules).items():
        await store.save_module_data(
            inspection_id,
            module_id,
            data.get("values", {}),
            data.get("other_values"),
            data.get("measurements"),
        )
    for module_id, photo_type in (VALID_PHOTOS if photos is None else photos):
        await store.add_photo(
            inspection_id,
            module_id,
            photo_type,
            f"file:///photos/{inspection_id}/{module_id}/{photo_type}.jpg",
            file_size=1024,
        )
    return inspection_id


class FailingSink(NotificationSink):
    """Sink whose deliveries always fail."""

    name = "failing"

    def __init__(self, error="SMTP indisponível"):
        self.error = error
        self.sent = []

    async def send(self, payload):
        self.sent.append(payload)
        return NotificationResult(success=False, error=self.error)


@pytest.fixture
def registry():
    return get_registry()


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'inspections.db'}")
    init_database(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return InspectionRepository(session_factory)


@pytest.fixture
def store(repository, registry):
    return ModuleDataStore(repository, registry)


@pytest.fixture
def seeded_store(store):
    """Store holding one inspection that passes final validation."""
    asyncio.run(seed_inspection(store))
    return store


@pytest.fixture
def sink():
    return LoggingNotificationSink()


@pytest.fixture
def failing_sink():
    return FailingSink()
