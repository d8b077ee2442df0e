"""
Equipment Catalog Service - reads the equipment table for the calculation engine

Provides:
- fetch_equipment_rows(): active equipment rows, optionally filtered
- list_equipment_categories(): distinct categories of active equipment
- load_equipment_catalog(): EquipmentCatalog snapshot for one calculation
- update_equipment_weights(): apply per-code weights from a supplier sheet

Pricing paths (load_equipment_catalog, update_equipment_weights) propagate
database errors; an empty catalog must never be mistaken for a failed read.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from calculation_mapper import escape_like, map_catalog_rows
from calculation_models import EquipmentCatalog, EquipmentCategory
from services.database import get_supabase

logger = logging.getLogger(__name__)

EQUIPMENT_TABLE = "equipment"


def _query_equipment(
    category: Optional[EquipmentCategory] = None,
    search: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Active equipment rows; database errors propagate"""
    supabase = get_supabase()

    query = supabase.table(EQUIPMENT_TABLE) \
        .select("*") \
        .eq("is_active", True)

    if category is not None:
        query = query.eq("category", category.value)

    if search:
        pattern = escape_like(search)
        query = query.or_(f"name.ilike.%{pattern}%,code.ilike.%{pattern}%")

    result = query.order("code").execute()
    return result.data or []


def fetch_equipment_rows(
    category: Optional[EquipmentCategory] = None,
    search: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Fetch active equipment rows for browsing.

    Args:
        category: Only rows of this category
        search: Case-insensitive substring match on name or code

    Returns:
        List of row dicts, empty on error
    """
    try:
        return _query_equipment(category, search)
    except Exception as e:
        logger.error(f"Error fetching equipment: {e}")
        return []


def list_equipment_categories() -> List[str]:
    """
    Distinct categories of active equipment, sorted.

    Returns:
        List of category values, empty on error
    """
    try:
        supabase = get_supabase()

        result = supabase.table(EQUIPMENT_TABLE) \
            .select("category") \
            .eq("is_active", True) \
            .execute()

        return sorted({row["category"] for row in result.data or [] if row.get("category")})

    except Exception as e:
        logger.error(f"Error listing equipment categories: {e}")
        return []


def load_equipment_catalog() -> EquipmentCatalog:
    """
    Snapshot of the active catalog, keyed by code.

    Raises:
        Exception: database errors are propagated
    """
    catalog = map_catalog_rows(_query_equipment())
    logger.info(f"Loaded equipment catalog with {len(catalog)} items")
    return catalog


def update_equipment_weights(
    weights: Dict[str, Decimal],
    default_weight: Optional[Decimal] = None
) -> Dict[str, int]:
    """
    Update catalog weights from a supplier weight sheet.

    Args:
        weights: code -> weight in kg (see services/equipment_export.read_weight_sheet)
        default_weight: Weight for catalog items missing from the sheet;
                        None leaves them unchanged

    Returns:
        Counts: {"updated": n, "defaulted": n, "unchanged": n}

    Raises:
        Exception: database errors are propagated
    """
    summary = {"updated": 0, "defaulted": 0, "unchanged": 0}
    supabase = get_supabase()

    for row in _query_equipment():
        code = row.get("code")
        if code in weights:
            new_weight = weights[code]
            counter = "updated"
        elif default_weight is not None:
            new_weight = default_weight
            counter = "defaulted"
        else:
            summary["unchanged"] += 1
            continue

        if Decimal(str(row.get("weight") or 0)) == new_weight:
            summary["unchanged"] += 1
            continue

        supabase.table(EQUIPMENT_TABLE) \
            .update({"weight": float(new_weight)}) \
            .eq("code", code) \
            .execute()
        summary[counter] += 1

    logger.info(
        f"Equipment weights: {summary['updated']} updated, "
        f"{summary['defaulted']} defaulted, {summary['unchanged']} unchanged"
    )
    return summary
