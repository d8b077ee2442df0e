"""
Pricing configuration - builds PricingConstants for the calculation engine

Resolution order (later wins):
1. PricingConstants defaults (business report rates)
2. JSON file named by PRICING_CONSTANTS_FILE (any subset of the fields)
3. Scalar env overrides: PRICING_EXCHANGE_RATE, PRICING_SHIPPING_RATE_PER_KG,
   PRICING_VAT_RATE

A malformed table is a configuration bug: loading raises instead of falling
back to defaults.
"""

import json
import logging
import os
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from calculation_models import PricingConstants

load_dotenv()

logger = logging.getLogger(__name__)

# Env var -> PricingConstants field
SCALAR_ENV_OVERRIDES = {
    "PRICING_EXCHANGE_RATE": "exchange_rate",
    "PRICING_SHIPPING_RATE_PER_KG": "shipping_rate_per_kg",
    "PRICING_VAT_RATE": "vat_rate",
}


def _read_constants_file(path: str) -> Dict[str, Any]:
    """Load a JSON overrides file; numbers are parsed as Decimal"""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh, parse_float=Decimal)
    if not isinstance(data, dict):
        raise ValueError(f"Pricing constants file {path} must contain a JSON object")
    return data


def _env_overrides() -> Dict[str, Decimal]:
    overrides = {}
    for env_name, field_name in SCALAR_ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            overrides[field_name] = Decimal(raw.strip())
        except InvalidOperation:
            raise ValueError(f"{env_name} must be a number, got '{raw}'")
    return overrides


def load_pricing_constants(
    constants_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> PricingConstants:
    """
    Build PricingConstants from file, environment and explicit overrides.

    Args:
        constants_file: JSON file path (defaults to PRICING_CONSTANTS_FILE)
        overrides: Field values applied last, e.g. {"exchange_rate": "0.709"}

    Raises:
        ValueError / pydantic.ValidationError for malformed configuration
    """
    values: Dict[str, Any] = {}

    path = constants_file or os.getenv("PRICING_CONSTANTS_FILE")
    if path:
        values.update(_read_constants_file(path))
        logger.info(f"Pricing constants loaded from {path}")

    values.update(_env_overrides())

    if overrides:
        values.update(overrides)

    return PricingConstants(**values)


@lru_cache()
def get_pricing_constants() -> PricingConstants:
    """Process-wide pricing constants (cached singleton)"""
    return load_pricing_constants()
