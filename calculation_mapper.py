"""
Project Calculation Mapping Module

This module handles:
- Mapping stored/submitted project payloads (camelCase, as saved by the
  quotation UI) to a validated ProjectDefinition
- Mapping equipment table rows to an EquipmentCatalog

Validation happens here, at the boundary: negative quantities, prices or
weights raise pydantic.ValidationError before anything reaches the engine.
"""

from typing import Dict, Any, Iterable, List, Optional
from decimal import Decimal
import logging

from pydantic import ValidationError

from calculation_models import (
    CustomEquipmentLine,
    CustomService,
    EquipmentCatalog,
    EquipmentCatalogItem,
    EquipmentCategory,
    ProjectDefinition,
    ProjectLine,
    RoleAssignment,
    ServiceKind,
    ServiceOption,
    ServiceSelection,
)

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to Decimal"""
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (ValueError, TypeError, ArithmeticError):
        return default


def safe_optional_decimal(value: Any) -> Optional[Decimal]:
    """Decimal, or None when the value is missing"""
    if value is None or value == "":
        return None
    return safe_decimal(value)


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if value is None or value == "":
        return default
    return str(value)


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int"""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off"}


def safe_bool(value: Any, default: bool = False) -> bool:
    """Safely convert value to bool; "false"/"0"/"no" strings are False"""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in TRUE_STRINGS:
            return True
        if key in FALSE_STRINGS:
            return False
        return default
    try:
        return bool(Decimal(str(value)))
    except (ValueError, TypeError, ArithmeticError):
        return default


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First key present in data (camelCase payload or snake_case record)"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# ============================================================================
# CATEGORY NORMALIZATION
# ============================================================================

# Map database values to enum values (handles variations in category names)
CATEGORY_MAPPING = {
    "void": EquipmentCategory.VOID,
    "void acoustics": EquipmentCategory.VOID,
    "speaker": EquipmentCategory.VOID,
    "accessory": EquipmentCategory.ACCESSORY,
    "accessories": EquipmentCategory.ACCESSORY,
    "custom": EquipmentCategory.CUSTOM,
}


def normalize_category(value: Any) -> EquipmentCategory:
    """
    Normalize a catalog category value.

    Unknown categories are treated as accessories so the item still prices;
    they just never appear on a Void purchase order.
    """
    key = safe_str(value).strip().lower()
    if key in CATEGORY_MAPPING:
        return CATEGORY_MAPPING[key]

    logger.warning(f"Unknown equipment category '{value}', treating as accessory")
    return EquipmentCategory.ACCESSORY


# ============================================================================
# CATALOG MAPPING
# ============================================================================

def map_catalog_row(row: Dict[str, Any]) -> EquipmentCatalogItem:
    """
    Map one equipment table row to EquipmentCatalogItem.

    The client price is msrpUSD; older rows only have clientUSD. Rows with
    neither fall back to the dealer price inside the model.
    """
    msrp = safe_optional_decimal(pick(row, "msrpUSD", "msrp_usd"))
    if msrp is None:
        msrp = safe_optional_decimal(pick(row, "clientUSD", "client_usd"))

    return EquipmentCatalogItem(
        code=safe_str(row.get("code")).strip(),
        name=safe_str(row.get("name")),
        dealer_usd=safe_decimal(pick(row, "dealerUSD", "dealer_usd")),
        msrp_usd=msrp,
        weight=safe_decimal(row.get("weight")),
        category=normalize_category(row.get("category")),
    )


def map_catalog_rows(rows: Iterable[Dict[str, Any]]) -> EquipmentCatalog:
    """
    Build an EquipmentCatalog from equipment rows.

    Inactive rows are left out. Rows that fail validation are logged and
    skipped: a broken catalog entry must not block pricing the other lines.
    """
    items: List[EquipmentCatalogItem] = []
    for row in rows:
        if not safe_bool(pick(row, "isActive", "is_active"), default=True):
            continue
        try:
            items.append(map_catalog_row(row))
        except ValidationError as e:
            logger.warning(f"Skipping invalid catalog row {row.get('code')!r}: {e.error_count()} error(s)")

    return EquipmentCatalog(items)


# ============================================================================
# PROJECT MAPPING
# ============================================================================

# payload key -> RoleAssignment field
ROLE_KEY_MAPPING = {
    "producer": "producer",
    "director": "director",
    "projectManager": "project_manager",
    "juniorProjectManager": "junior_project_manager",
    "accountant": "accountant",
    "logisticsManager": "logistics_manager",
    "noiseControlEngineer": "noise_control_engineer",
    "soundSystemDesigner": "sound_system_designer",
}

# payload key -> ServiceKind
SERVICE_KEY_MAPPING = {
    "commissioning": ServiceKind.COMMISSIONING,
    "noiseControl": ServiceKind.NOISE_CONTROL,
    "soundDesign": ServiceKind.SOUND_DESIGN,
}


def map_service_option(value: Any) -> ServiceOption:
    """
    Older projects store a plain boolean per service; newer ones store
    {"enabled": bool, "customValue": number}.
    """
    if isinstance(value, dict):
        return ServiceOption(
            enabled=safe_bool(value.get("enabled")),
            custom_value=safe_decimal(pick(value, "customValue", "custom_value")),
        )
    return ServiceOption(enabled=safe_bool(value))


def map_services(data: Dict[str, Any]) -> ServiceSelection:
    options = {}
    for payload_key, kind in SERVICE_KEY_MAPPING.items():
        value = pick(data, payload_key, kind.value, default=False)
        options[kind.value] = map_service_option(value)
    return ServiceSelection(**options)


def map_roles(data: Dict[str, Any]) -> RoleAssignment:
    roles = {}
    for payload_key, field_name in ROLE_KEY_MAPPING.items():
        roles[field_name] = safe_str(pick(data, payload_key, field_name)).strip()
    return RoleAssignment(**roles)


def map_project_payload(data: Dict[str, Any]) -> ProjectDefinition:
    """
    Map a project payload to ProjectDefinition.

    Args:
        data: Project dict as saved by the quotation UI (camelCase keys);
              snake_case keys are accepted as well

    Returns:
        ProjectDefinition ready for calculate_project_quote()

    Raises:
        pydantic.ValidationError: negative quantities/prices/weights or a
            discount outside 0..100
    """
    equipment = [
        ProjectLine(
            code=safe_str(line.get("code")).strip(),
            quantity=safe_int(line.get("quantity")),
        )
        for line in pick(data, "equipment", default=[])
    ]

    custom_equipment = [
        CustomEquipmentLine(
            name=safe_str(line.get("name")),
            price=safe_decimal(line.get("price")),
            weight=safe_decimal(pick(line, "weight", "quantity")),
        )
        for line in pick(data, "customEquipment", "custom_equipment", default=[])
    ]

    custom_services = [
        CustomService(
            name=safe_str(service.get("name")),
            price=safe_decimal(service.get("price")),
        )
        for service in pick(data, "customServices", "custom_services", default=[])
    ]

    return ProjectDefinition(
        project_name=safe_str(pick(data, "projectName", "project_name")),
        client_name=safe_str(pick(data, "clientName", "client_name")),
        equipment=equipment,
        custom_equipment=custom_equipment,
        services=map_services(pick(data, "services", default={})),
        custom_services=custom_services,
        roles=map_roles(pick(data, "roles", default={})),
        global_discount_percent=safe_decimal(pick(data, "globalDiscount", "global_discount_percent")),
    )


def project_to_payload(project: ProjectDefinition) -> Dict[str, Any]:
    """Inverse of map_project_payload, in the camelCase format the UI saves"""
    services = {}
    for payload_key, kind in SERVICE_KEY_MAPPING.items():
        option = project.services.option_for(kind)
        services[payload_key] = {"enabled": option.enabled, "customValue": str(option.custom_value)}

    roles = {
        payload_key: getattr(project.roles, field_name)
        for payload_key, field_name in ROLE_KEY_MAPPING.items()
    }

    return {
        "projectName": project.project_name,
        "clientName": project.client_name,
        "equipment": [{"code": line.code, "quantity": line.quantity} for line in project.equipment],
        "customEquipment": [
            {"name": line.name, "price": str(line.price), "weight": str(line.quantity)}
            for line in project.custom_equipment
        ],
        "globalDiscount": str(project.global_discount_percent),
        "services": services,
        "customServices": [
            {"name": service.name, "price": str(service.price)}
            for service in project.custom_services
        ],
        "roles": roles,
    }
