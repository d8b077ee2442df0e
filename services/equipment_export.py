"""
Equipment Excel Service

- create_equipment_excel(): catalog export (items sheet + summary sheet)
- read_weight_sheet(): per-code weights from the supplier's
  "Weights & Dimensions" product list
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Dict, List, Optional
import logging

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from calculation_mapper import pick, safe_decimal, safe_optional_decimal, safe_str

logger = logging.getLogger(__name__)


# Color definitions
HEADER_FILL = PatternFill(start_color="1F3864", end_color="1F3864", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=10)
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

# Header label, column width
EQUIPMENT_COLUMNS = [
    ("Item Code", 12),
    ("Item Name", 50),
    ("Category", 15),
    ("Weight (kg)", 12),
    ("MSRP USD", 12),
    ("Dealer Price USD", 15),
    ("Active", 8),
    ("Created At", 12),
    ("Updated At", 12),
]

# Supplier weight sheet headers
WEIGHT_SHEET_CODE_COLUMN = "Item No."
WEIGHT_SHEET_WEIGHT_COLUMN = "Weight"


def _format_date(value: Any) -> str:
    """ISO timestamp from the database -> DD.MM.YYYY, 'N/A' when missing"""
    if not value:
        return "N/A"
    if isinstance(value, datetime):
        return value.strftime("%d.%m.%Y")
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%d.%m.%Y")
    except ValueError:
        return str(value)


def _write_header(ws, headers: List[str], row: int = 1):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col)
        cell.value = header
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center', wrap_text=True)
        cell.border = THIN_BORDER


def create_equipment_excel(
    rows: List[Dict[str, Any]],
    export_date: Optional[datetime] = None
) -> bytes:
    """
    Export equipment rows to an Excel workbook.

    Sheets:
    - "Equipment Database": one row per item
    - "Summary": counts and weight statistics

    Args:
        rows: Equipment table rows (snake_case or camelCase keys)
        export_date: Timestamp written to the summary (defaults to now)

    Returns:
        Excel file as bytes
    """
    export_date = export_date or datetime.now()

    wb = Workbook()
    ws = wb.active
    ws.title = "Equipment Database"

    _write_header(ws, [label for label, _ in EQUIPMENT_COLUMNS])

    weights = []
    active_count = 0
    category_counts: Dict[str, int] = {}

    for row_idx, item in enumerate(rows, 2):
        is_active = bool(pick(item, "is_active", "isActive", default=True))
        msrp = safe_optional_decimal(pick(item, "msrp_usd", "msrpUSD"))
        weight = safe_decimal(item.get("weight"))
        category = safe_str(item.get("category"), "")

        values = [
            safe_str(item.get("code")),
            safe_str(item.get("name")),
            category,
            float(weight),
            float(msrp) if msrp is not None else "N/A",
            float(safe_decimal(pick(item, "dealer_usd", "dealerUSD"))),
            "Yes" if is_active else "No",
            _format_date(pick(item, "created_at", "createdAt")),
            _format_date(pick(item, "updated_at", "updatedAt")),
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = THIN_BORDER
            if col in (4, 5, 6) and not isinstance(value, str):
                cell.number_format = '#,##0.00'

        weights.append(weight)
        if is_active:
            active_count += 1
        category_counts[category] = category_counts.get(category, 0) + 1

    for col, (_, width) in enumerate(EQUIPMENT_COLUMNS, 1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = "A2"

    # ==================== SUMMARY SHEET ====================
    summary = wb.create_sheet("Summary")
    _write_header(summary, ["Metric", "Value"])

    total_weight = sum(weights, Decimal("0"))
    metrics = [
        ("Total Equipment Items", len(rows)),
        ("Active Items", active_count),
        ("Inactive Items", len(rows) - active_count),
        ("Void Category Items", category_counts.get("void", 0)),
        ("Accessory Category Items", category_counts.get("accessory", 0)),
        ("Export Date", export_date.strftime("%d.%m.%Y %H:%M")),
    ]
    if weights:
        metrics.extend([
            ("Lightest Item (kg)", float(min(weights))),
            ("Heaviest Item (kg)", float(max(weights))),
            ("Average Weight (kg)", round(float(total_weight / len(weights)), 2)),
            ("Total Weight (kg)", round(float(total_weight), 2)),
        ])

    for row_idx, (metric, value) in enumerate(metrics, 2):
        summary.cell(row=row_idx, column=1, value=metric).font = Font(bold=True)
        summary.cell(row=row_idx, column=2, value=value)

    summary.column_dimensions['A'].width = 25
    summary.column_dimensions['B'].width = 20

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    logger.info(f"Equipment export created with {len(rows)} items")
    return output.getvalue()


def parse_weight(value: Any) -> Optional[Decimal]:
    """Weight cell -> Decimal kg; accepts numbers and strings like '12.5 kg'"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    cleaned = str(value).strip()
    if cleaned.lower().endswith("kg"):
        cleaned = cleaned[:-2].strip()
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def read_weight_sheet(file_bytes: bytes) -> Dict[str, Decimal]:
    """
    Read per-code weights from the first sheet of a supplier workbook.

    Rows without a code or with a missing, unparseable or non-positive
    weight are ignored.

    Raises:
        ValueError: "Item No." or "Weight" header not found
    """
    wb = load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
    ws = wb.worksheets[0]
    rows = ws.iter_rows(values_only=True)

    headers = [safe_str(h).strip() for h in next(rows, ())]
    if WEIGHT_SHEET_CODE_COLUMN not in headers or WEIGHT_SHEET_WEIGHT_COLUMN not in headers:
        raise ValueError(
            f"Required columns ({WEIGHT_SHEET_CODE_COLUMN} or {WEIGHT_SHEET_WEIGHT_COLUMN}) not found in Excel file"
        )
    code_idx = headers.index(WEIGHT_SHEET_CODE_COLUMN)
    weight_idx = headers.index(WEIGHT_SHEET_WEIGHT_COLUMN)

    weights: Dict[str, Decimal] = {}
    for row in rows:
        if row is None or len(row) <= max(code_idx, weight_idx):
            continue
        code = safe_str(row[code_idx]).strip()
        weight = parse_weight(row[weight_idx])
        if code and weight is not None and weight > 0:
            weights[code] = weight

    wb.close()
    logger.info(f"Parsed {len(weights)} weights from weight sheet")
    return weights
