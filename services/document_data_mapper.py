"""
Document Data Mapper Service

Turns a CalculationResult into the data behind the two printed documents:
- Client quotation (JOD, final prices incl. freight/customs, VAT)
- Void UK purchase order (void-category lines only, dealer prices in USD)

This is the only place where engine values are rounded (2 dp, half-up).
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from calculation_engine import round_decimal
from calculation_models import (
    CalculationResult,
    EquipmentCategory,
    ProjectDefinition,
    ServiceKind,
)


LOCAL_CURRENCY = "JOD"
PO_DELIVERY_LEAD_DAYS = 42

SERVICE_LABELS = {
    ServiceKind.COMMISSIONING: "Sub-contracting Commissioning",
    ServiceKind.NOISE_CONTROL: "Noise Control Studies",
    ServiceKind.SOUND_DESIGN: "Sound System Design",
}

QUOTATION_TERMS = [
    "All prices are in Jordanian Dinars (JOD)",
    "Equipment prices include door-to-door delivery",
    "VAT is calculated as per Jordanian tax regulations",
    "Subject to ±10% change after technical study",
    "Payment terms: 90% down payment, 10% after project completion",
    "This quotation is valid for 30 days from the date of issue",
]


def format_money(value: Decimal, currency: str = LOCAL_CURRENCY) -> str:
    """Format amount for documents: 1,234.50 JOD / $1,234.50"""
    value = round_decimal(value)
    if currency == "USD":
        return f"${value:,.2f}"
    return f"{value:,.2f} {currency}"


# =============================================================================
# QUOTATION
# =============================================================================

@dataclass
class QuotationRow:
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal


@dataclass
class QuotationDocument:
    """Client quotation, all amounts in JOD rounded to 2 dp"""
    client_name: str
    project_name: str
    issue_date: date

    equipment_rows: List[QuotationRow] = field(default_factory=list)
    custom_equipment_rows: List[QuotationRow] = field(default_factory=list)
    service_rows: List[QuotationRow] = field(default_factory=list)

    equipment_subtotal: Decimal = Decimal("0")
    custom_equipment_subtotal: Decimal = Decimal("0")
    services_subtotal: Decimal = Decimal("0")
    subtotal_before_discount: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    vat_rate: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    currency: str = LOCAL_CURRENCY
    terms: List[str] = field(default_factory=lambda: list(QUOTATION_TERMS))

    @property
    def has_discount(self) -> bool:
        return self.discount_percent > 0


def build_quotation_document(
    result: CalculationResult,
    project: ProjectDefinition,
    issue_date: Optional[date] = None
) -> QuotationDocument:
    """
    Map a calculation to the client quotation.

    Service rows use the calculated cost (override or percentage), never a
    re-derived figure.
    """
    totals = result.totals

    equipment_rows = [
        QuotationRow(
            description=line.name,
            quantity=Decimal(line.quantity),
            unit_price=round_decimal(line.final_unit_price),
            total=round_decimal(line.final_line_total),
        )
        for line in result.equipment_lines
    ]

    custom_equipment_rows = [
        QuotationRow(
            description=line.name,
            quantity=line.quantity,
            unit_price=round_decimal(line.unit_price),
            total=round_decimal(line.line_total),
        )
        for line in result.custom_equipment_lines
    ]

    service_rows = []
    for service in result.services.standard:
        if not service.enabled:
            continue
        cost = round_decimal(service.cost)
        service_rows.append(QuotationRow(
            description=SERVICE_LABELS[service.service],
            quantity=Decimal("1"),
            unit_price=cost,
            total=cost,
        ))
    for custom in result.services.custom_services:
        price = round_decimal(custom.price)
        service_rows.append(QuotationRow(
            description=custom.name,
            quantity=Decimal("1"),
            unit_price=price,
            total=price,
        ))

    return QuotationDocument(
        client_name=project.client_name,
        project_name=project.project_name,
        issue_date=issue_date or date.today(),
        equipment_rows=equipment_rows,
        custom_equipment_rows=custom_equipment_rows,
        service_rows=service_rows,
        equipment_subtotal=round_decimal(totals.equipment_subtotal_before_discount),
        custom_equipment_subtotal=round_decimal(totals.custom_equipment_subtotal),
        services_subtotal=round_decimal(totals.services_total),
        subtotal_before_discount=round_decimal(totals.subtotal_before_discount),
        discount_percent=totals.discount_percent,
        discount_amount=round_decimal(totals.discount_amount),
        subtotal=round_decimal(totals.subtotal_after_discount),
        vat_rate=totals.vat_rate,
        tax=round_decimal(totals.tax),
        total=round_decimal(totals.grand_total),
    )


# =============================================================================
# PURCHASE ORDER
# =============================================================================

@dataclass
class PurchaseOrderRow:
    line_number: str  # "001", "002", ...
    code: str
    description: str
    quantity: int
    unit_price_usd: Decimal
    total_usd: Decimal


@dataclass
class PurchaseOrderDocument:
    """Purchase order to Void UK, dealer prices in USD"""
    po_number: str
    issue_date: date
    delivery_date: date
    rows: List[PurchaseOrderRow] = field(default_factory=list)
    total_usd: Decimal = Decimal("0")
    currency: str = "USD"


def make_po_number(issue_date: date) -> str:
    """YYYYMMDD + sequence 1"""
    return f"{issue_date:%Y%m%d}1"


def build_purchase_order(
    result: CalculationResult,
    issue_date: Optional[date] = None
) -> PurchaseOrderDocument:
    """
    Map a calculation to the Void UK purchase order.

    Only void-category lines are ordered from Void; accessories are sourced
    locally and do not appear.
    """
    issue_date = issue_date or date.today()

    rows = []
    total_usd = Decimal("0")
    void_lines = [line for line in result.equipment_lines if line.category == EquipmentCategory.VOID]

    for index, line in enumerate(void_lines, 1):
        line_total = line.dealer_price_usd * line.quantity
        total_usd += line_total
        rows.append(PurchaseOrderRow(
            line_number=f"{index:03d}",
            code=line.code,
            description=line.name,
            quantity=line.quantity,
            unit_price_usd=round_decimal(line.dealer_price_usd),
            total_usd=round_decimal(line_total),
        ))

    return PurchaseOrderDocument(
        po_number=make_po_number(issue_date),
        issue_date=issue_date,
        delivery_date=issue_date + timedelta(days=PO_DELIVERY_LEAD_DAYS),
        rows=rows,
        total_usd=round_decimal(total_usd),
    )
