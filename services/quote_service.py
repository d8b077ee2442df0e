"""
Quote Service - runs the calculation engine against live catalog and config

- calculate_project(): price a ProjectDefinition
- calculate_and_save(): map a UI payload, price it and store both
- recalculate_saved_project(): re-price a stored project with today's catalog
"""

from typing import Any, Dict, Optional, Tuple
import logging

from calculation_engine import calculate_project_quote
from calculation_mapper import map_project_payload
from calculation_models import (
    CalculationResult,
    EquipmentCatalog,
    PricingConstants,
    ProjectDefinition,
)
from pricing_config import get_pricing_constants
from services.equipment_catalog_service import load_equipment_catalog
from services.project_store_service import SavedProject, get_project, save_project

logger = logging.getLogger(__name__)


def calculate_project(
    project: ProjectDefinition,
    catalog: Optional[EquipmentCatalog] = None,
    constants: Optional[PricingConstants] = None
) -> Optional[CalculationResult]:
    """
    Price a project.

    Args:
        project: Validated project definition
        catalog: Catalog snapshot (defaults to the active equipment table)
        constants: Pricing constants (defaults to get_pricing_constants())

    Returns:
        CalculationResult, or None for a project without equipment

    Raises:
        Exception: catalog read errors are propagated, never priced as an
                   empty catalog
    """
    if catalog is None:
        catalog = load_equipment_catalog()
    if constants is None:
        constants = get_pricing_constants()

    result = calculate_project_quote(project, catalog, constants)

    if result is not None and result.unresolved_codes:
        logger.warning(
            f"Project '{project.project_name}': {len(result.unresolved_codes)} unknown code(s) "
            f"skipped: {', '.join(result.unresolved_codes)}"
        )
    return result


def calculate_and_save(
    user_id: str,
    payload: Dict[str, Any],
    catalog: Optional[EquipmentCatalog] = None,
    constants: Optional[PricingConstants] = None
) -> Tuple[SavedProject, Optional[CalculationResult]]:
    """
    Map, price and save a project submitted by the UI.

    Raises:
        pydantic.ValidationError: invalid payload
        ValueError: missing project name
    """
    project = map_project_payload(payload)
    result = calculate_project(project, catalog, constants)
    saved = save_project(user_id, project, result)
    return saved, result


def recalculate_saved_project(
    project_id: str,
    user_id: str,
    catalog: Optional[EquipmentCatalog] = None,
    constants: Optional[PricingConstants] = None
) -> Optional[Tuple[SavedProject, Optional[CalculationResult]]]:
    """
    Re-price a stored project with the current catalog and constants and
    store the new result.

    Returns:
        (SavedProject, result), or None when the project does not exist
    """
    saved = get_project(project_id, user_id)
    if saved is None:
        logger.warning(f"Project {project_id} not found for recalculation")
        return None

    project = saved.to_project()
    result = calculate_project(project, catalog, constants)
    return save_project(user_id, project, result), result
