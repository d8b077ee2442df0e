"""
NogaHub Services

Supabase-backed catalog and project storage, quotation/PO document data
and Excel import/export around the calculation engine.
"""

from .database import get_supabase
from .equipment_catalog_service import (
    fetch_equipment_rows,
    list_equipment_categories,
    load_equipment_catalog,
    update_equipment_weights,
)
from .project_store_service import (
    SavedProject,
    save_project,
    find_project_by_name,
    get_project,
    get_project_stats,
    list_projects,
    delete_project,
)
from .equipment_export import create_equipment_excel, read_weight_sheet, parse_weight
from .document_data_mapper import (
    QuotationRow,
    QuotationDocument,
    PurchaseOrderRow,
    PurchaseOrderDocument,
    build_quotation_document,
    build_purchase_order,
    format_money,
)
from .quote_service import (
    calculate_project,
    calculate_and_save,
    recalculate_saved_project,
)

__all__ = [
    "get_supabase",
    # Equipment catalog
    "fetch_equipment_rows",
    "list_equipment_categories",
    "load_equipment_catalog",
    "update_equipment_weights",
    # Project store
    "SavedProject",
    "save_project",
    "find_project_by_name",
    "get_project",
    "get_project_stats",
    "list_projects",
    "delete_project",
    # Excel
    "create_equipment_excel",
    "read_weight_sheet",
    "parse_weight",
    # Documents
    "QuotationRow",
    "QuotationDocument",
    "PurchaseOrderRow",
    "PurchaseOrderDocument",
    "build_quotation_document",
    "build_purchase_order",
    "format_money",
    # Quotes
    "calculate_project",
    "calculate_and_save",
    "recalculate_saved_project",
]
