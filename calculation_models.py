"""
NogaHub Quote Engine - Calculation Models
Pydantic models for project quotation inputs, pricing constants and results

All money values are Decimal. Catalog prices are USD; everything the engine
produces is in local currency (JOD) unless the field name says otherwise.
"""

from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field, validator


# Tolerance for "percentages must add up to 100%" checks on constants tables
SHARE_SUM_TOLERANCE = Decimal("0.000001")


class ReadOnlyDict(dict):
    """
    dict that refuses mutation.

    Mapping fields of frozen models hold one; frozen only blocks attribute
    assignment.
    """

    def _readonly(self, *args, **kwargs):
        raise TypeError(f"'{type(self).__name__}' object is read-only")

    __setitem__ = _readonly
    __delitem__ = _readonly
    __ior__ = _readonly
    clear = _readonly
    pop = _readonly
    popitem = _readonly
    setdefault = _readonly
    update = _readonly

    def __reduce__(self):
        return (type(self), (dict(self),))


# ============================================================================
# ENUMS
# ============================================================================

class EquipmentCategory(str, Enum):
    """Catalog item category"""
    VOID = "void"            # Void Acoustics products (purchase order lines)
    ACCESSORY = "accessory"  # Cables, switches, interfaces
    CUSTOM = "custom"        # Ad-hoc equipment entered per project


class ServiceKind(str, Enum):
    """Standard services offered on top of equipment"""
    COMMISSIONING = "commissioning"
    NOISE_CONTROL = "noise_control"
    SOUND_DESIGN = "sound_design"


class ProjectRole(str, Enum):
    """Role slots that receive a share of the project profit"""
    PRODUCER = "producer"
    DIRECTOR = "director"
    PROJECT_MANAGER = "project_manager"
    JUNIOR_PROJECT_MANAGER = "junior_project_manager"
    ACCOUNTANT = "accountant"
    LOGISTICS_MANAGER = "logistics_manager"
    NOISE_CONTROL_ENGINEER = "noise_control_engineer"
    SOUND_SYSTEM_DESIGNER = "sound_system_designer"


class ChargeBasis(str, Enum):
    """What a customs charge is computed on"""
    TAXABLE_AMOUNT = "taxable_amount"                        # dealer total + total shipping
    EQUIPMENT_DEALER_TOTAL = "equipment_dealer_total"
    SHIPPING_COST = "shipping_cost"                          # weight-based freight only
    FLAT = "flat"
    TAXABLE_PLUS_FIRST_CHARGE = "taxable_plus_first_charge"  # import VAT base


# Management buckets that a role slot can claim
MANAGEMENT_ROLE_BUCKETS = {
    ProjectRole.DIRECTOR: "director",
    ProjectRole.PROJECT_MANAGER: "project_manager",
    ProjectRole.JUNIOR_PROJECT_MANAGER: "junior_project_manager",
    ProjectRole.LOGISTICS_MANAGER: "logistics",
    ProjectRole.ACCOUNTANT: "accounting",
}

# Management bucket paid out to shareholders by ownership
MANAGEMENT_SHAREHOLDER_BUCKET = "shareholder"


# ============================================================================
# CATALOG MODELS
# ============================================================================

class EquipmentCatalogItem(BaseModel):
    """Single equipment catalog entry (read-only for the engine)"""
    code: str = Field(..., min_length=1, description="Unique item code")
    name: str = Field(..., description="Item name")
    dealer_usd: Decimal = Field(..., ge=0, description="Dealer cost in USD")
    msrp_usd: Optional[Decimal] = Field(default=None, ge=0, description="Client/MSRP price in USD")
    weight: Decimal = Field(default=Decimal("0"), ge=0, description="Weight per unit in kg")
    category: EquipmentCategory = Field(default=EquipmentCategory.VOID, description="Catalog category")

    class Config:
        frozen = True

    @property
    def client_price_usd(self) -> Decimal:
        """MSRP when the catalog has one, dealer cost otherwise"""
        if self.msrp_usd is None:
            return self.dealer_usd
        return self.msrp_usd


class EquipmentCatalog:
    """
    Immutable code -> item mapping.

    lookup() returns None for unknown codes; callers decide whether a miss is
    skipped or reported.
    """

    def __init__(self, items: Iterable[EquipmentCatalogItem] = ()):
        by_code = {}
        for item in items:
            by_code[item.code] = item
        self._items = MappingProxyType(by_code)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, EquipmentCatalogItem]) -> "EquipmentCatalog":
        return cls(mapping.values())

    def lookup(self, code: str) -> Optional[EquipmentCatalogItem]:
        return self._items.get(code)

    def items(self) -> List[EquipmentCatalogItem]:
        return list(self._items.values())

    def __contains__(self, code: object) -> bool:
        return code in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())


# ============================================================================
# PROJECT INPUT MODELS
# ============================================================================

class ProjectLine(BaseModel):
    """Catalog equipment line"""
    code: str = Field(..., description="Catalog item code")
    quantity: int = Field(..., ge=0, description="Number of units (0 lines are skipped)")


class CustomEquipmentLine(BaseModel):
    """
    Equipment that is not in the catalog.

    Stored projects keep the quantity in a field called "weight"; the alias
    keeps that wire format while the model exposes it as quantity.
    """
    name: str = Field(default="", description="Item name")
    price: Decimal = Field(..., ge=0, description="Unit price in local currency")
    quantity: Decimal = Field(..., ge=0, alias="weight", description="Units (stored as 'weight')")

    class Config:
        populate_by_name = True


class ServiceOption(BaseModel):
    """One standard service toggle"""
    enabled: bool = Field(default=False)
    custom_value: Decimal = Field(default=Decimal("0"), ge=0, description="Overrides the percentage price when > 0")


class ServiceSelection(BaseModel):
    """Standard services chosen for the project"""
    commissioning: ServiceOption = Field(default_factory=ServiceOption)
    noise_control: ServiceOption = Field(default_factory=ServiceOption)
    sound_design: ServiceOption = Field(default_factory=ServiceOption)

    def option_for(self, kind: ServiceKind) -> ServiceOption:
        return getattr(self, kind.value)


class CustomService(BaseModel):
    """Free-form service, added verbatim"""
    name: str = Field(default="")
    price: Decimal = Field(default=Decimal("0"), ge=0)


class RoleAssignment(BaseModel):
    """Person filling each role slot ('' = unassigned)"""
    producer: str = ""
    director: str = ""
    project_manager: str = ""
    junior_project_manager: str = ""
    accountant: str = ""
    logistics_manager: str = ""
    noise_control_engineer: str = ""
    sound_system_designer: str = ""

    def assignee(self, role: ProjectRole) -> Optional[str]:
        """Person in the slot, or None when the slot is empty"""
        person = (getattr(self, role.value) or "").strip()
        return person or None


class ProjectDefinition(BaseModel):
    """Everything the engine needs to price one project"""
    project_name: str = Field(default="")
    client_name: str = Field(default="")
    equipment: List[ProjectLine] = Field(default_factory=list)
    custom_equipment: List[CustomEquipmentLine] = Field(default_factory=list)
    services: ServiceSelection = Field(default_factory=ServiceSelection)
    custom_services: List[CustomService] = Field(default_factory=list)
    roles: RoleAssignment = Field(default_factory=RoleAssignment)
    global_discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Project discount %")

    class Config:
        json_schema_extra = {
            "example": {
                "project_name": "Rooftop Lounge",
                "client_name": "Amman Hospitality",
                "equipment": [{"code": "X100", "quantity": 2}],
                "custom_equipment": [{"name": "Rigging", "price": "120", "weight": "2"}],
                "services": {"commissioning": {"enabled": True, "custom_value": "0"}},
                "custom_services": [{"name": "Site survey", "price": "150"}],
                "roles": {"producer": "Nadeem", "project_manager": "Omar"},
                "global_discount_percent": "5"
            }
        }


# ============================================================================
# PRICING CONSTANTS
# ============================================================================

class CustomsCharge(BaseModel):
    """One line of the import customs/tax sheet"""
    code: str = Field(..., description="Customs line code")
    label: str = Field(default="")
    basis: ChargeBasis = Field(..., description="What the rate applies to")
    rate: Decimal = Field(default=Decimal("0"), ge=0, description="Fraction of the basis")
    amount: Decimal = Field(default=Decimal("0"), ge=0, description="Fixed amount for flat charges")
    is_vat: bool = Field(default=False, description="Import VAT, excluded from landed cost for profit")


def default_customs_charges() -> List[CustomsCharge]:
    """Customs sheet as applied by the clearance agent"""
    return [
        CustomsCharge(code="001", label="Customs duty", basis=ChargeBasis.TAXABLE_AMOUNT, rate=Decimal("0.05")),
        CustomsCharge(code="020", label="Import VAT", basis=ChargeBasis.TAXABLE_PLUS_FIRST_CHARGE,
                      rate=Decimal("0.16"), is_vat=True),
        CustomsCharge(code="215", label="Standards fee", basis=ChargeBasis.EQUIPMENT_DEALER_TOTAL, rate=Decimal("0.01")),
        CustomsCharge(code="301", label="Service fee", basis=ChargeBasis.FLAT, amount=Decimal("50")),
        CustomsCharge(code="111", label="Port fee", basis=ChargeBasis.SHIPPING_COST, rate=Decimal("0.003")),
        CustomsCharge(code="016", label="Stamp fee", basis=ChargeBasis.FLAT, amount=Decimal("23.2")),
        CustomsCharge(code="019", label="Declaration fee", basis=ChargeBasis.FLAT, amount=Decimal("25")),
        CustomsCharge(code="070", label="Special tax", basis=ChargeBasis.TAXABLE_AMOUNT, rate=Decimal("0.05")),
    ]


class ServicePercentages(BaseModel):
    """Standard service price as a fraction of equipment dealer cost"""
    commissioning: Decimal = Field(default=Decimal("0.06"), ge=0, le=1)
    noise_control: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)
    sound_design: Decimal = Field(default=Decimal("0.025"), ge=0, le=1)

    def percentage_for(self, kind: ServiceKind) -> Decimal:
        return getattr(self, kind.value)


class ProfitShares(BaseModel):
    """First-level split of the sales profit"""
    producer: Decimal = Field(default=Decimal("0.05"), ge=0, le=1)
    management: Decimal = Field(default=Decimal("0.30"), ge=0, le=1)
    retained: Decimal = Field(default=Decimal("0.05"), ge=0, le=1)
    shareholder: Decimal = Field(default=Decimal("0.60"), ge=0, le=1)


class ServiceFeeShares(BaseModel):
    """Professional fee paid out of a service's price"""
    noise_control_engineer: Decimal = Field(default=Decimal("0.50"), ge=0, le=1)
    sound_system_designer: Decimal = Field(default=Decimal("0.50"), ge=0, le=1)


def default_shareholder_ownership() -> Dict[str, Decimal]:
    """Void Acoustics Jordan shareholder distribution"""
    return {
        "Nadeem": Decimal("0.55"),
        "Issa": Decimal("0.225"),
        "Bakri": Decimal("0.225"),
    }


def default_management_split() -> Dict[str, Decimal]:
    """Operational buckets funded by the management fee"""
    return {
        "director": Decimal("0.20"),
        "project_manager": Decimal("0.25"),
        "junior_project_manager": Decimal("0.10"),
        "logistics": Decimal("0.10"),
        "accounting": Decimal("0.10"),
        "legal": Decimal("0.05"),
        "admin": Decimal("0.05"),
        "retained": Decimal("0.05"),
        "shareholder": Decimal("0.10"),
    }


def _check_sums_to_one(table: Dict[str, Decimal], name: str) -> Dict[str, Decimal]:
    if any(share < 0 for share in table.values()):
        raise ValueError(f"{name} shares cannot be negative")
    total = sum(table.values(), Decimal("0"))
    if abs(total - Decimal("1")) > SHARE_SUM_TOLERANCE:
        raise ValueError(f"{name} shares must add up to 100%, got {total * 100}%")
    return table


class PricingConstants(BaseModel):
    """
    Business-rule constants for one calculation.

    Defaults reproduce the rates used in the business report; every value can
    be overridden (see pricing_config.py) to price alternate scenarios.
    """
    exchange_rate: Decimal = Field(default=Decimal("0.71"), gt=0, description="USD -> JOD")
    shipping_rate_per_kg: Decimal = Field(default=Decimal("4.5"), ge=0, description="JOD per kg")

    # Flat fees added to freight
    clearance_fee: Decimal = Field(default=Decimal("35"), ge=0)
    transport_fee: Decimal = Field(default=Decimal("70"), ge=0)
    delivery_order_fee: Decimal = Field(default=Decimal("45"), ge=0)

    customs_charges: List[CustomsCharge] = Field(default_factory=default_customs_charges)
    vat_rate: Decimal = Field(default=Decimal("0.16"), ge=0, le=1, description="VAT on the client invoice")

    service_percentages: ServicePercentages = Field(default_factory=ServicePercentages)
    profit_shares: ProfitShares = Field(default_factory=ProfitShares)
    shareholder_ownership: Dict[str, Decimal] = Field(default_factory=default_shareholder_ownership)
    management_split: Dict[str, Decimal] = Field(default_factory=default_management_split)
    service_fee_shares: ServiceFeeShares = Field(default_factory=ServiceFeeShares)

    class Config:
        frozen = True

    @validator('customs_charges')
    def validate_customs_charges(cls, v):
        """The import VAT base needs a first charge to add to the taxable amount"""
        if v and v[0].basis == ChargeBasis.TAXABLE_PLUS_FIRST_CHARGE:
            raise ValueError("First customs charge cannot be computed on itself")
        return v

    @validator('shareholder_ownership')
    def validate_shareholder_ownership(cls, v):
        if not v:
            raise ValueError("At least one shareholder is required")
        return ReadOnlyDict(_check_sums_to_one(v, "Shareholder"))

    @validator('management_split')
    def validate_management_split(cls, v):
        required = set(MANAGEMENT_ROLE_BUCKETS.values()) | {MANAGEMENT_SHAREHOLDER_BUCKET}
        missing = required - set(v)
        if missing:
            raise ValueError(f"Management split is missing buckets: {', '.join(sorted(missing))}")
        return ReadOnlyDict(_check_sums_to_one(v, "Management"))


# ============================================================================
# CALCULATION OUTPUT MODELS
# ============================================================================

class EquipmentLineResult(BaseModel):
    """Priced catalog line (bill of quantities row)"""
    code: str
    name: str
    category: EquipmentCategory
    quantity: int
    weight: Decimal = Field(..., description="Weight per unit (kg)")
    weight_total: Decimal

    dealer_price_usd: Decimal
    client_price_usd: Decimal
    dealer_price_local: Decimal
    client_price_local: Decimal
    dealer_total_local: Decimal
    client_total_local: Decimal

    shipping_per_unit: Decimal = Field(..., description="Freight allocated by dealer-cost share")
    customs_per_unit: Decimal = Field(..., description="Customs (excl. import VAT) allocated by dealer-cost share")
    final_unit_price: Decimal = Field(..., description="Client price + shipping + customs per unit")
    final_line_total: Decimal

    class Config:
        frozen = True


class CustomEquipmentLineResult(BaseModel):
    """Priced custom line, no freight or customs"""
    code: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        frozen = True


class CustomsChargeResult(BaseModel):
    code: str
    label: str
    basis: ChargeBasis
    amount: Decimal
    is_vat: bool

    class Config:
        frozen = True


class LandedCostResult(BaseModel):
    """Freight, customs and door-to-door figures"""
    shipping_cost: Decimal
    clearance_fee: Decimal
    transport_fee: Decimal
    delivery_order_fee: Decimal
    total_shipping_cost: Decimal
    taxable_amount: Decimal
    customs_charges: List[CustomsChargeResult]
    import_vat: Decimal
    total_customs_incl_vat: Decimal
    total_customs_excl_vat: Decimal
    door_to_door_cost: Decimal
    door_to_door_cost_excl_vat: Decimal
    shipping_share: Decimal = Field(..., description="Total shipping / dealer total (0 when no dealer total)")
    customs_share: Decimal = Field(..., description="Customs excl. VAT / dealer total (0 when no dealer total)")

    class Config:
        frozen = True


class ServiceCostResult(BaseModel):
    service: ServiceKind
    enabled: bool
    percentage: Decimal
    custom_value: Decimal
    is_override: bool
    cost: Decimal

    class Config:
        frozen = True


class ServicesResult(BaseModel):
    standard: List[ServiceCostResult]
    custom_services: List[CustomService]
    standard_total: Decimal
    custom_total: Decimal
    total: Decimal

    class Config:
        frozen = True

    def cost_of(self, kind: ServiceKind) -> Decimal:
        for service in self.standard:
            if service.service == kind:
                return service.cost
        return Decimal("0")


class ProjectTotals(BaseModel):
    equipment_subtotal_before_discount: Decimal = Field(..., description="BOQ figure, never discounted")
    equipment_subtotal_after_discount: Decimal
    custom_equipment_subtotal: Decimal
    services_total: Decimal
    subtotal_before_discount: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    subtotal_after_discount: Decimal
    vat_rate: Decimal
    tax: Decimal
    grand_total: Decimal

    class Config:
        frozen = True


class ProfitDistribution(BaseModel):
    """Sales profit cascade and per-person payout"""
    sales_profit: Decimal
    producer_fee: Decimal
    management_fee: Decimal
    retained_earnings: Decimal
    shareholder_pool: Decimal
    shareholder_shares: Dict[str, Decimal]
    management_buckets: Dict[str, Decimal]
    management_shareholder_shares: Dict[str, Decimal]
    noise_control_engineer_fee: Decimal
    sound_designer_fee: Decimal

    role_fees: Dict[ProjectRole, Decimal] = Field(..., description="Fee bucket claimed by each role slot")
    unattributed_fees: Decimal = Field(..., description="Role buckets whose slot is empty")
    distribution: Dict[str, Decimal] = Field(..., description="Person -> total payout")

    class Config:
        frozen = True

    @validator(
        'shareholder_shares', 'management_buckets', 'management_shareholder_shares',
        'role_fees', 'distribution'
    )
    def freeze_mappings(cls, v):
        return ReadOnlyDict(v)


class CalculationResult(BaseModel):
    """Complete project calculation snapshot"""
    equipment_lines: List[EquipmentLineResult]
    custom_equipment_lines: List[CustomEquipmentLineResult]
    unresolved_codes: List[str] = Field(default_factory=list, description="Catalog codes that were skipped")

    equipment_dealer_total_usd: Decimal
    equipment_dealer_total: Decimal
    equipment_client_total: Decimal
    total_weight: Decimal

    landed_cost: LandedCostResult
    services: ServicesResult
    totals: ProjectTotals
    profit: ProfitDistribution

    class Config:
        frozen = True
