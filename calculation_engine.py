"""
NogaHub Quote Engine - Calculation Engine
Implements the 7-phase project costing and profit distribution logic.

CURRENCY HANDLING:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Catalog prices are USD. Phase 1 converts them to local currency (JOD) with
PricingConstants.exchange_rate; every later phase works in JOD. Custom
equipment, custom services and service overrides are entered in JOD already.
The only USD figure carried forward is the dealer total used on purchase
orders.

Flow:
1. Valuation         - resolve lines against the catalog, USD -> JOD, totals + weight
2. Landed cost       - freight from weight, flat fees, customs sheet, door-to-door
3. Cost allocation   - spread freight and customs (excl. import VAT) by dealer-cost share
4. Equipment pricing - BOQ totals, discount, custom equipment
5. Services          - percentage-of-dealer-cost or override, custom services
6. Project totals    - subtotal, discount, VAT, grand total
7. Profit            - producer/management/retained/shareholder cascade, role payouts
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Values are kept at full Decimal precision; rounding is a document concern
(see round_decimal and services/document_data_mapper.py).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional, Union
import logging

from calculation_models import (
    CalculationResult,
    ChargeBasis,
    CustomEquipmentLine,
    CustomEquipmentLineResult,
    CustomService,
    CustomsChargeResult,
    EquipmentCatalog,
    EquipmentCatalogItem,
    EquipmentLineResult,
    LandedCostResult,
    MANAGEMENT_ROLE_BUCKETS,
    MANAGEMENT_SHAREHOLDER_BUCKET,
    PricingConstants,
    ProfitDistribution,
    ProjectDefinition,
    ProjectLine,
    ProjectRole,
    ProjectTotals,
    RoleAssignment,
    ServiceCostResult,
    ServiceKind,
    ServicePercentages,
    ServiceSelection,
    ServicesResult,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP."""
    if decimal_places == 2:
        return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    elif decimal_places == 0:
        return value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    else:
        quantizer = Decimal(10) ** -decimal_places
        return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def as_catalog(
    catalog: Union[EquipmentCatalog, Mapping[str, EquipmentCatalogItem]]
) -> EquipmentCatalog:
    """Accept a prepared EquipmentCatalog or a plain code -> item mapping"""
    if isinstance(catalog, EquipmentCatalog):
        return catalog
    return EquipmentCatalog.from_mapping(catalog)


def safe_share(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator, 0 when there is nothing to divide by"""
    if denominator == 0:
        return ZERO
    return numerator / denominator


# ============================================================================
# PHASE 1: VALUATION
# ============================================================================

def phase1_valuation(
    lines: List[ProjectLine],
    catalog: EquipmentCatalog,
    exchange_rate: Decimal
) -> Dict[str, Any]:
    """
    Resolve equipment lines and accumulate dealer/client totals and weight.

    Lines whose code is not in the catalog, or whose quantity is not positive,
    contribute nothing. Unknown codes are reported in "unresolved_codes".
    """
    valuated = []
    unresolved_codes = []

    equipment_dealer_total = ZERO
    equipment_dealer_total_usd = ZERO
    equipment_client_total = ZERO
    total_weight = ZERO

    for line in lines:
        item = catalog.lookup(line.code)
        if item is None:
            if line.code not in unresolved_codes:
                unresolved_codes.append(line.code)
            logger.warning(f"Equipment code '{line.code}' not found in catalog, line skipped")
            continue
        if line.quantity <= 0:
            continue

        quantity = Decimal(line.quantity)
        dealer_price_local = item.dealer_usd * exchange_rate
        client_price_local = item.client_price_usd * exchange_rate
        dealer_total_local = dealer_price_local * quantity
        client_total_local = client_price_local * quantity
        weight_total = item.weight * quantity

        equipment_dealer_total += dealer_total_local
        equipment_dealer_total_usd += item.dealer_usd * quantity
        equipment_client_total += client_total_local
        total_weight += weight_total

        valuated.append({
            "item": item,
            "quantity": line.quantity,
            "dealer_price_local": dealer_price_local,
            "client_price_local": client_price_local,
            "dealer_total_local": dealer_total_local,
            "client_total_local": client_total_local,
            "weight_total": weight_total,
        })

    return {
        "lines": valuated,
        "unresolved_codes": unresolved_codes,
        "equipment_dealer_total": equipment_dealer_total,
        "equipment_dealer_total_usd": equipment_dealer_total_usd,
        "equipment_client_total": equipment_client_total,
        "total_weight": total_weight,
    }


# ============================================================================
# PHASE 2: LANDED COST
# ============================================================================

def phase2_landed_cost(
    total_weight: Decimal,
    equipment_dealer_total: Decimal,
    constants: PricingConstants
) -> Dict[str, Any]:
    """
    Freight, customs sheet and door-to-door cost.

    The import VAT line (is_vat) is kept apart: door_to_door_cost_excl_vat is
    the landed cost used for allocation and profit, because VAT is charged to
    the client again on the final invoice.
    """
    shipping_cost = total_weight * constants.shipping_rate_per_kg
    total_shipping_cost = (
        shipping_cost
        + constants.clearance_fee
        + constants.transport_fee
        + constants.delivery_order_fee
    )
    taxable_amount = equipment_dealer_total + total_shipping_cost

    bases = {
        ChargeBasis.TAXABLE_AMOUNT: taxable_amount,
        ChargeBasis.EQUIPMENT_DEALER_TOTAL: equipment_dealer_total,
        ChargeBasis.SHIPPING_COST: shipping_cost,
    }

    charges = []
    first_charge = ZERO
    for index, charge in enumerate(constants.customs_charges):
        if charge.basis == ChargeBasis.FLAT:
            amount = charge.amount
        elif charge.basis == ChargeBasis.TAXABLE_PLUS_FIRST_CHARGE:
            amount = (taxable_amount + first_charge) * charge.rate
        else:
            amount = bases[charge.basis] * charge.rate

        if index == 0:
            first_charge = amount

        charges.append(CustomsChargeResult(
            code=charge.code,
            label=charge.label,
            basis=charge.basis,
            amount=amount,
            is_vat=charge.is_vat,
        ))

    total_customs_incl_vat = sum((c.amount for c in charges), ZERO)
    total_customs_excl_vat = sum((c.amount for c in charges if not c.is_vat), ZERO)
    import_vat = sum((c.amount for c in charges if c.is_vat), ZERO)

    door_to_door_cost = equipment_dealer_total + total_shipping_cost + total_customs_incl_vat
    door_to_door_cost_excl_vat = equipment_dealer_total + total_shipping_cost + total_customs_excl_vat

    logger.debug(f"Equipment dealer total (JOD): {equipment_dealer_total}")
    logger.debug(f"Total shipping cost (JOD): {total_shipping_cost}")
    logger.debug(f"Total customs incl/excl VAT (JOD): {total_customs_incl_vat} / {total_customs_excl_vat}")
    logger.debug(f"Door to door cost (JOD): {door_to_door_cost}")

    return {
        "shipping_cost": shipping_cost,
        "total_shipping_cost": total_shipping_cost,
        "taxable_amount": taxable_amount,
        "charges": charges,
        "import_vat": import_vat,
        "total_customs_incl_vat": total_customs_incl_vat,
        "total_customs_excl_vat": total_customs_excl_vat,
        "door_to_door_cost": door_to_door_cost,
        "door_to_door_cost_excl_vat": door_to_door_cost_excl_vat,
    }


# ============================================================================
# PHASE 3: COST ALLOCATION
# ============================================================================

def phase3_cost_allocation(
    valuated_lines: List[Dict[str, Any]],
    equipment_dealer_total: Decimal,
    total_shipping_cost: Decimal,
    total_customs_excl_vat: Decimal
) -> Dict[str, Any]:
    """
    Attribute freight and customs back to each line by its dealer-cost share.

    shipping_share = total_shipping_cost / dealer_total
    customs_share  = total_customs_excl_vat / dealer_total
    Both are 0 when the dealer total is 0 (custom-equipment-only projects).
    """
    shipping_share = safe_share(total_shipping_cost, equipment_dealer_total)
    customs_share = safe_share(total_customs_excl_vat, equipment_dealer_total)

    lines = []
    for valuated in valuated_lines:
        item = valuated["item"]
        dealer_price_local = valuated["dealer_price_local"]
        client_price_local = valuated["client_price_local"]

        shipping_per_unit = dealer_price_local * shipping_share
        customs_per_unit = dealer_price_local * customs_share
        final_unit_price = client_price_local + shipping_per_unit + customs_per_unit
        final_line_total = final_unit_price * Decimal(valuated["quantity"])

        lines.append(EquipmentLineResult(
            code=item.code,
            name=item.name,
            category=item.category,
            quantity=valuated["quantity"],
            weight=item.weight,
            weight_total=valuated["weight_total"],
            dealer_price_usd=item.dealer_usd,
            client_price_usd=item.client_price_usd,
            dealer_price_local=dealer_price_local,
            client_price_local=client_price_local,
            dealer_total_local=valuated["dealer_total_local"],
            client_total_local=valuated["client_total_local"],
            shipping_per_unit=shipping_per_unit,
            customs_per_unit=customs_per_unit,
            final_unit_price=final_unit_price,
            final_line_total=final_line_total,
        ))

    return {
        "shipping_share": shipping_share,
        "customs_share": customs_share,
        "lines": lines,
    }


# ============================================================================
# PHASE 4: EQUIPMENT & CUSTOM EQUIPMENT PRICING
# ============================================================================

def phase4_equipment_pricing(
    equipment_lines: List[EquipmentLineResult],
    custom_equipment: List[CustomEquipmentLine],
    global_discount_percent: Decimal
) -> Dict[str, Any]:
    """
    BOQ totals and custom equipment.

    The BOQ subtotal is shown undiscounted; the discounted figure is only used
    for profit. Custom lines carry no freight or customs and need a name, a
    positive price and a positive quantity to count.
    """
    equipment_subtotal_before_discount = sum((line.final_line_total for line in equipment_lines), ZERO)
    equipment_subtotal_after_discount = (
        equipment_subtotal_before_discount * (ONE - global_discount_percent / HUNDRED)
    )

    custom_lines = []
    for index, custom in enumerate(custom_equipment):
        if not custom.name.strip() or custom.price <= 0 or custom.quantity <= 0:
            continue
        custom_lines.append(CustomEquipmentLineResult(
            code=f"CUSTOM-{index + 1}",
            name=custom.name,
            quantity=custom.quantity,
            unit_price=custom.price,
            line_total=custom.price * custom.quantity,
        ))

    custom_equipment_subtotal = sum((line.line_total for line in custom_lines), ZERO)

    return {
        "equipment_subtotal_before_discount": equipment_subtotal_before_discount,
        "equipment_subtotal_after_discount": equipment_subtotal_after_discount,
        "custom_lines": custom_lines,
        "custom_equipment_subtotal": custom_equipment_subtotal,
    }


# ============================================================================
# PHASE 5: SERVICES
# ============================================================================

def phase5_services(
    services: ServiceSelection,
    custom_services: List[CustomService],
    equipment_dealer_total: Decimal,
    percentages: ServicePercentages
) -> ServicesResult:
    """
    Standard services cost custom_value when it is > 0, otherwise a fixed
    percentage of the equipment dealer total. Custom services are added as-is.
    """
    standard = []
    for kind in ServiceKind:
        option = services.option_for(kind)
        percentage = percentages.percentage_for(kind)
        is_override = option.enabled and option.custom_value > 0

        if not option.enabled:
            cost = ZERO
        elif is_override:
            cost = option.custom_value
        else:
            cost = equipment_dealer_total * percentage

        standard.append(ServiceCostResult(
            service=kind,
            enabled=option.enabled,
            percentage=percentage,
            custom_value=option.custom_value,
            is_override=is_override,
            cost=cost,
        ))

    standard_total = sum((s.cost for s in standard), ZERO)
    custom_total = sum((s.price for s in custom_services), ZERO)

    return ServicesResult(
        standard=standard,
        custom_services=list(custom_services),
        standard_total=standard_total,
        custom_total=custom_total,
        total=standard_total + custom_total,
    )


# ============================================================================
# PHASE 6: PROJECT TOTALS
# ============================================================================

def phase6_project_totals(
    equipment_subtotal_before_discount: Decimal,
    equipment_subtotal_after_discount: Decimal,
    custom_equipment_subtotal: Decimal,
    services_total: Decimal,
    global_discount_percent: Decimal,
    vat_rate: Decimal
) -> ProjectTotals:
    """Subtotal, project discount, VAT and grand total"""
    subtotal_before_discount = equipment_subtotal_before_discount + custom_equipment_subtotal + services_total
    discount_amount = subtotal_before_discount * global_discount_percent / HUNDRED
    subtotal_after_discount = subtotal_before_discount - discount_amount
    tax = subtotal_after_discount * vat_rate

    return ProjectTotals(
        equipment_subtotal_before_discount=equipment_subtotal_before_discount,
        equipment_subtotal_after_discount=equipment_subtotal_after_discount,
        custom_equipment_subtotal=custom_equipment_subtotal,
        services_total=services_total,
        subtotal_before_discount=subtotal_before_discount,
        discount_percent=global_discount_percent,
        discount_amount=discount_amount,
        subtotal_after_discount=subtotal_after_discount,
        vat_rate=vat_rate,
        tax=tax,
        grand_total=subtotal_after_discount + tax,
    )


# ============================================================================
# PHASE 7: PROFIT & ROLE DISTRIBUTION
# ============================================================================

def phase7_profit_distribution(
    equipment_subtotal_after_discount: Decimal,
    door_to_door_cost_excl_vat: Decimal,
    services: ServicesResult,
    roles: RoleAssignment,
    constants: PricingConstants
) -> ProfitDistribution:
    """
    Cascade the sales profit into entity, shareholder and role buckets.

    Shareholders are paid their ownership share of the shareholder pool and of
    the management "shareholder" bucket whether or not they hold a role.
    A role bucket whose slot is empty is still computed but paid to nobody;
    it is reported in unattributed_fees and not redistributed.
    """
    shares = constants.profit_shares
    sales_profit = equipment_subtotal_after_discount - door_to_door_cost_excl_vat

    producer_fee = sales_profit * shares.producer
    management_fee = sales_profit * shares.management
    retained_earnings = sales_profit * shares.retained
    shareholder_pool = sales_profit * shares.shareholder

    shareholder_shares = {
        holder: shareholder_pool * ownership
        for holder, ownership in constants.shareholder_ownership.items()
    }

    management_buckets = {
        bucket: management_fee * share
        for bucket, share in constants.management_split.items()
    }
    management_shareholder_pool = management_buckets[MANAGEMENT_SHAREHOLDER_BUCKET]
    management_shareholder_shares = {
        holder: management_shareholder_pool * ownership
        for holder, ownership in constants.shareholder_ownership.items()
    }

    fee_shares = constants.service_fee_shares
    noise_control_engineer_fee = services.cost_of(ServiceKind.NOISE_CONTROL) * fee_shares.noise_control_engineer
    sound_designer_fee = services.cost_of(ServiceKind.SOUND_DESIGN) * fee_shares.sound_system_designer

    role_fees = {ProjectRole.PRODUCER: producer_fee}
    for role, bucket in MANAGEMENT_ROLE_BUCKETS.items():
        role_fees[role] = management_buckets[bucket]
    role_fees[ProjectRole.NOISE_CONTROL_ENGINEER] = noise_control_engineer_fee
    role_fees[ProjectRole.SOUND_SYSTEM_DESIGNER] = sound_designer_fee

    # Permanent owners first, then whoever fills each role slot
    distribution: Dict[str, Decimal] = {}
    for holder in constants.shareholder_ownership:
        distribution[holder] = shareholder_shares[holder] + management_shareholder_shares[holder]

    unattributed_fees = ZERO
    for role in ProjectRole:
        fee = role_fees[role]
        person = roles.assignee(role)
        if person is None:
            unattributed_fees += fee
            continue
        distribution[person] = distribution.get(person, ZERO) + fee

    logger.debug(f"Sales profit (JOD): {sales_profit}, unattributed role fees: {unattributed_fees}")

    return ProfitDistribution(
        sales_profit=sales_profit,
        producer_fee=producer_fee,
        management_fee=management_fee,
        retained_earnings=retained_earnings,
        shareholder_pool=shareholder_pool,
        shareholder_shares=shareholder_shares,
        management_buckets=management_buckets,
        management_shareholder_shares=management_shareholder_shares,
        noise_control_engineer_fee=noise_control_engineer_fee,
        sound_designer_fee=sound_designer_fee,
        role_fees=role_fees,
        unattributed_fees=unattributed_fees,
        distribution=distribution,
    )


# ============================================================================
# MAIN CALCULATION ORCHESTRATOR
# ============================================================================

def calculate_project_quote(
    project: ProjectDefinition,
    catalog: Union[EquipmentCatalog, Mapping[str, EquipmentCatalogItem]],
    constants: Optional[PricingConstants] = None
) -> Optional[CalculationResult]:
    """
    Calculate a complete project quotation.

    Returns None when the project has neither equipment nor custom equipment
    lines, so the caller can ask for input instead of showing a zero quote.
    The result depends only on the arguments.
    """
    if not project.equipment and not project.custom_equipment:
        logger.info("Project has no equipment, nothing to calculate")
        return None

    if constants is None:
        constants = PricingConstants()
    catalog = as_catalog(catalog)

    # PHASE 1: Valuation
    phase1 = phase1_valuation(project.equipment, catalog, constants.exchange_rate)

    # PHASE 2: Landed cost
    phase2 = phase2_landed_cost(
        phase1["total_weight"],
        phase1["equipment_dealer_total"],
        constants
    )

    # PHASE 3: Cost allocation
    phase3 = phase3_cost_allocation(
        phase1["lines"],
        phase1["equipment_dealer_total"],
        phase2["total_shipping_cost"],
        phase2["total_customs_excl_vat"]
    )

    # PHASE 4: Equipment pricing
    phase4 = phase4_equipment_pricing(
        phase3["lines"],
        project.custom_equipment,
        project.global_discount_percent
    )

    # PHASE 5: Services
    services = phase5_services(
        project.services,
        project.custom_services,
        phase1["equipment_dealer_total"],
        constants.service_percentages
    )

    # PHASE 6: Totals
    totals = phase6_project_totals(
        phase4["equipment_subtotal_before_discount"],
        phase4["equipment_subtotal_after_discount"],
        phase4["custom_equipment_subtotal"],
        services.total,
        project.global_discount_percent,
        constants.vat_rate
    )

    # PHASE 7: Profit distribution
    profit = phase7_profit_distribution(
        phase4["equipment_subtotal_after_discount"],
        phase2["door_to_door_cost_excl_vat"],
        services,
        project.roles,
        constants
    )

    landed_cost = LandedCostResult(
        shipping_cost=phase2["shipping_cost"],
        clearance_fee=constants.clearance_fee,
        transport_fee=constants.transport_fee,
        delivery_order_fee=constants.delivery_order_fee,
        total_shipping_cost=phase2["total_shipping_cost"],
        taxable_amount=phase2["taxable_amount"],
        customs_charges=phase2["charges"],
        import_vat=phase2["import_vat"],
        total_customs_incl_vat=phase2["total_customs_incl_vat"],
        total_customs_excl_vat=phase2["total_customs_excl_vat"],
        door_to_door_cost=phase2["door_to_door_cost"],
        door_to_door_cost_excl_vat=phase2["door_to_door_cost_excl_vat"],
        shipping_share=phase3["shipping_share"],
        customs_share=phase3["customs_share"],
    )

    return CalculationResult(
        equipment_lines=phase3["lines"],
        custom_equipment_lines=phase4["custom_lines"],
        unresolved_codes=phase1["unresolved_codes"],
        equipment_dealer_total_usd=phase1["equipment_dealer_total_usd"],
        equipment_dealer_total=phase1["equipment_dealer_total"],
        equipment_client_total=phase1["equipment_client_total"],
        total_weight=phase1["total_weight"],
        landed_cost=landed_cost,
        services=services,
        totals=totals,
        profit=profit,
    )


# ============================================================================
# EXPORT FOR USE IN API
# ============================================================================

__all__ = [
    'calculate_project_quote',
    'phase1_valuation',
    'phase2_landed_cost',
    'phase3_cost_allocation',
    'phase4_equipment_pricing',
    'phase5_services',
    'phase6_project_totals',
    'phase7_profit_distribution',
    'round_decimal',
]
