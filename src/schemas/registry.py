"""
Schema registry: the declarative catalog of inspection modules, cabin-type
variants and preventive checklist templates.

Loaded once from the YAML files under src/schemas/data and validated into
frozen pydantic models. Lookup only, no behavior beyond that.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from src.errors import ModuleNotFoundInRegistry, RegistryError
from src.schemas.models import (
    CabinTypeConfig,
    ChecklistTemplate,
    EscalationPolicy,
    ModuleConfig,
    NotificationRule,
    PhotoSpec,
)
from utils.logger import setup_logger
from utils.config import config

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="REGISTRY"
)

DATA_DIR = Path(__file__).parent / "data"
MODULES_PATH = DATA_DIR / "modules.yaml"
CHECKLISTS_PATH = DATA_DIR / "checklists.yaml"

# Module whose field/photo set branches on the selected cabin type
CABIN_TYPE_MODULE = "cabin_type"
CABIN_TYPE_FIELD = "cabin_type"
DEFAULT_CABIN_TYPE = "CONVENCIONAL"


def load_registry_file(path: Path) -> Dict[str, Any]:
    """Load one registry YAML file."""
    if not path.exists():
        raise RegistryError(f"Registry file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RegistryError(f"Could not parse {path.name}: {e}") from e

    if not isinstance(data, dict):
        raise RegistryError(f"{path.name} must contain a mapping at top level")
    return data


class SchemaRegistry:
    """Read-only lookup over modules, cabin types and checklist templates."""

    def __init__(
        self,
        modules: List[ModuleConfig],
        cabin_types: List[CabinTypeConfig],
        global_required_photos: List[PhotoSpec],
        checklist_templates: Dict[str, ChecklistTemplate],
        notification_rules: Dict[str, NotificationRule],
        escalation: EscalationPolicy,
    ):
        self._modules = sorted(modules, key=lambda m: m.order)
        self._by_id = {m.id: m for m in self._modules}
        self._cabin_types = list(cabin_types)
        self._global_photos = list(global_required_photos)
        self._templates = dict(checklist_templates)
        self._notification_rules = dict(notification_rules)
        self.escalation = escalation
        self._check_consistency()

    @classmethod
    def from_files(
        cls,
        modules_path: Path = MODULES_PATH,
        checklists_path: Path = CHECKLISTS_PATH,
    ) -> "SchemaRegistry":
        module_data = load_registry_file(modules_path)
        checklist_data = load_registry_file(checklists_path)

        try:
            modules = [ModuleConfig(**m) for m in module_data.get("modules", [])]
            cabin_types = [CabinTypeConfig(**c) for c in module_data.get("cabin_types", [])]
            global_photos = [
                PhotoSpec(**p) for p in module_data.get("global_required_photos", [])
            ]
            templates = {
                key: ChecklistTemplate(**tpl)
                for key, tpl in checklist_data.get("templates", {}).items()
            }
            rules = {
                key: NotificationRule(**rule)
                for key, rule in checklist_data.get("notification_rules", {}).items()
            }
            escalation = EscalationPolicy(**checklist_data.get("escalation", {}))
        except ValidationError as e:
            raise RegistryError(f"Invalid registry data: {e}") from e

        registry = cls(modules, cabin_types, global_photos, templates, rules, escalation)
        logger.info(
            f"Registry loaded: {len(modules)} modules, {len(cabin_types)} cabin types, "
            f"{len(templates)} checklist templates"
        )
        return registry

    def _check_consistency(self):
        if len(self._by_id) != len(self._modules):
            raise RegistryError("Duplicate module ids in registry")

        orders = [m.order for m in self._modules]
        if len(set(orders)) != len(orders):
            raise RegistryError("Module order values must be unique")

        cabin_module = self._by_id.get(CABIN_TYPE_MODULE)
        for cabin in self._cabin_types:
            for module_id in cabin.modules:
                if module_id not in self._by_id:
                    raise RegistryError(
                        f"Cabin type {cabin.type} references unknown module '{module_id}'"
                    )
            if cabin_module is None:
                continue
            for name in cabin.conditional_items.fields:
                if cabin_module.get_field(name) is None:
                    raise RegistryError(
                        f"Cabin type {cabin.type} references unknown field '{name}'"
                    )
            for name in cabin.conditional_items.photos:
                if cabin_module.get_photo(name) is None:
                    raise RegistryError(
                        f"Cabin type {cabin.type} references unknown photo '{name}'"
                    )

        for key, template in self._templates.items():
            for rule in template.triggers.notification_rules:
                if rule not in self._notification_rules:
                    raise RegistryError(
                        f"Template {key} references unknown notification rule '{rule}'"
                    )

    # ========================
    # Modules
    # ========================

    @property
    def modules(self) -> List[ModuleConfig]:
        """All modules in declaration order."""
        return list(self._modules)

    @property
    def required_modules(self) -> List[ModuleConfig]:
        return [m for m in self._modules if m.required]

    @property
    def module_ids(self) -> List[str]:
        return [m.id for m in self._modules]

    def get_module(self, module_id: str) -> Optional[ModuleConfig]:
        return self._by_id.get(module_id)

    def require_module(self, module_id: str) -> ModuleConfig:
        module = self._by_id.get(module_id)
        if module is None:
            raise ModuleNotFoundInRegistry(module_id)
        return module

    @property
    def global_required_photos(self) -> List[PhotoSpec]:
        """Photo types mandatory for every report, whatever the modules say."""
        return list(self._global_photos)

    # ========================
    # Cabin types
    # ========================

    @property
    def cabin_types(self) -> List[CabinTypeConfig]:
        return list(self._cabin_types)

    def get_cabin_type(self, value: Optional[str]) -> Optional[CabinTypeConfig]:
        """Find the cabin type for a canonical key or any legacy alias."""
        if not value or not value.strip():
            return None
        for cabin in self._cabin_types:
            if cabin.matches(value):
                return cabin
        return None

    def get_cabin_type_from_alias(self, value: Optional[str]) -> Optional[str]:
        cabin = self.get_cabin_type(value)
        return cabin.type if cabin else None

    def migrate_cabin_type(self, value: str) -> str:
        """Rewrite a legacy alias to its canonical key; unknown values pass through."""
        return self.get_cabin_type_from_alias(value) or value

    # ========================
    # Checklists
    # ========================

    def get_checklist_template(self, cabin_type: Optional[str]) -> Optional[ChecklistTemplate]:
        canonical = self.get_cabin_type_from_alias(cabin_type) if cabin_type else None
        return self._templates.get(canonical or cabin_type or "")

    def get_notification_rule(self, name: str) -> Optional[NotificationRule]:
        return self._notification_rules.get(name)

    @property
    def notification_rules(self) -> Dict[str, NotificationRule]:
        return dict(self._notification_rules)


@lru_cache(maxsize=1)
def get_registry() -> SchemaRegistry:
    """Process-wide registry, loaded on first use."""
    return SchemaRegistry.from_files()
