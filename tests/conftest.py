"""
Shared pytest fixtures for NogaHub quote engine tests.

Provides:
- Catalog, project and equipment-row factories
- In-memory Supabase client for the service tests
"""

import pytest
import os
import re
import sys
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment before importing services
os.environ["TESTING"] = "true"
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-key"

from calculation_models import (
    CustomEquipmentLine,
    CustomService,
    EquipmentCatalog,
    EquipmentCatalogItem,
    EquipmentCategory,
    PricingConstants,
    ProjectDefinition,
    ProjectLine,
    RoleAssignment,
    ServiceOption,
    ServiceSelection,
)


# ============================================================================
# FACTORIES
# ============================================================================

def make_uuid():
    """Generate a UUID string."""
    return str(uuid4())


def make_catalog_item(
    code="X100",
    name="Void X100 Loudspeaker",
    dealer_usd="100",
    msrp_usd="150",
    weight="10",
    category=EquipmentCategory.VOID
):
    """Create a catalog item; pass msrp_usd=None for dealer-priced items."""
    return EquipmentCatalogItem(
        code=code,
        name=name,
        dealer_usd=Decimal(dealer_usd),
        msrp_usd=Decimal(msrp_usd) if msrp_usd is not None else None,
        weight=Decimal(weight),
        category=category,
    )


def make_catalog(*items):
    """Catalog with X100, A200 (accessory, no MSRP) and S300 unless items are given."""
    if not items:
        items = (
            make_catalog_item(),
            make_catalog_item(
                code="A200", name="Speaker Cable 50m", dealer_usd="20",
                msrp_usd=None, weight="1", category=EquipmentCategory.ACCESSORY
            ),
            make_catalog_item(code="S300", name="Void S300 Subwoofer", dealer_usd="50", msrp_usd="80", weight="5"),
        )
    return EquipmentCatalog(items)


def make_project(
    equipment=(("X100", 2),),
    custom_equipment=(),
    services=None,
    custom_services=(),
    roles=None,
    discount="0",
    project_name="Rooftop Lounge",
    client_name="Amman Hospitality"
):
    """
    Create a ProjectDefinition.

    equipment: (code, quantity) pairs
    custom_equipment: (name, price, quantity) triples
    services: {"commissioning": ServiceOption(...), ...}
    custom_services: (name, price) pairs
    """
    return ProjectDefinition(
        project_name=project_name,
        client_name=client_name,
        equipment=[ProjectLine(code=code, quantity=qty) for code, qty in equipment],
        custom_equipment=[
            CustomEquipmentLine(name=name, price=Decimal(price), quantity=Decimal(qty))
            for name, price, qty in custom_equipment
        ],
        services=ServiceSelection(**(services or {})),
        custom_services=[CustomService(name=name, price=Decimal(price)) for name, price in custom_services],
        roles=roles or RoleAssignment(),
        global_discount_percent=Decimal(discount),
    )


def make_full_roles():
    """Every role slot filled, shareholders in some of them."""
    return RoleAssignment(
        producer="Nadeem",
        director="Issa",
        project_manager="Omar",
        junior_project_manager="Lina",
        accountant="Rania",
        logistics_manager="Sami",
        noise_control_engineer="Bakri",
        sound_system_designer="Omar",
    )


def make_equipment_row(
    code="X100",
    name="Void X100 Loudspeaker",
    dealer_usd=100,
    msrp_usd=150,
    weight=10,
    category="void",
    is_active=True
):
    """Create an equipment table row dict."""
    return {
        "id": make_uuid(),
        "code": code,
        "name": name,
        "dealer_usd": dealer_usd,
        "msrp_usd": msrp_usd,
        "weight": weight,
        "category": category,
        "is_active": is_active,
        "created_at": "2025-03-01T10:00:00+00:00",
        "updated_at": "2025-03-02T10:00:00+00:00",
    }


def enabled(custom_value="0"):
    """Enabled service option."""
    return ServiceOption(enabled=True, custom_value=Decimal(custom_value))


# ============================================================================
# SUPABASE MOCK
# ============================================================================

def _ilike(value, pattern):
    """Postgres ILIKE: % any run, _ one character, backslash escapes"""
    regex = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            regex.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            regex.append(".*")
        elif ch == "_":
            regex.append(".")
        else:
            regex.append(re.escape(ch))
    return value is not None and re.fullmatch("".join(regex), str(value), re.IGNORECASE | re.DOTALL) is not None


class MockSupabaseResponse:
    """Mock response from Supabase queries."""
    def __init__(self, data=None, error=None):
        self.data = data or []
        self.error = error


class MockSupabaseQuery:
    """In-memory Supabase query builder over a list of row dicts."""

    def __init__(self, rows):
        self._rows = rows
        self._filters = []
        self._action = "select"
        self._payload = None
        self._order = None
        self._range = None

    def select(self, columns="*"):
        return self

    def insert(self, data):
        self._action = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column, pattern):
        self._filters.append(lambda row: _ilike(row.get(column), pattern))
        return self

    def or_(self, expression):
        conditions = []
        for part in expression.split(","):
            column, _, pattern = part.split(".", 2)
            conditions.append((column, pattern))
        self._filters.append(lambda row: any(_ilike(row.get(c), p) for c, p in conditions))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._range = (0, count - 1)
        return self

    def execute(self):
        now = datetime.now().isoformat()
        matched = [row for row in self._rows if all(f(row) for f in self._filters)]

        if self._action == "insert":
            row = dict(self._payload)
            row.setdefault("id", make_uuid())
            row.setdefault("created_at", now)
            row.setdefault("updated_at", now)
            self._rows.append(row)
            return MockSupabaseResponse(data=[dict(row)])

        if self._action == "update":
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = now
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        if self._action == "delete":
            for row in matched:
                self._rows.remove(row)
            return MockSupabaseResponse(data=matched)

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self._range:
            start, end = self._range
            matched = matched[start:end + 1]
        return MockSupabaseResponse(data=[dict(row) for row in matched])


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name, data):
        """Set mock data for a table."""
        self._tables[table_name] = list(data)

    def rows(self, table_name):
        return self._tables.setdefault(table_name, [])

    def table(self, name):
        """Return a mock query for the table."""
        return MockSupabaseQuery(self.rows(name))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def constants():
    return PricingConstants()


@pytest.fixture
def mock_supabase():
    """Create an in-memory Supabase client."""
    return MockSupabaseClient()


@pytest.fixture(autouse=True)
def clear_pricing_env(monkeypatch):
    """Keep a developer's .env out of pricing tests."""
    for name in ("PRICING_CONSTANTS_FILE", "PRICING_EXCHANGE_RATE",
                 "PRICING_SHIPPING_RATE_PER_KG", "PRICING_VAT_RATE"):
        monkeypatch.delenv(name, raising=False)

    from pricing_config import get_pricing_constants
    get_pricing_constants.cache_clear()
    yield
    get_pricing_constants.cache_clear()
