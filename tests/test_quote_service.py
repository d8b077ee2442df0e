"""
Tests for Quote Service - engine wiring with catalog, constants and store
"""

import pytest
from unittest.mock import MagicMock, patch
from decimal import Decimal
from pydantic import ValidationError

from calculation_models import PricingConstants
from services.project_store_service import save_project
from services.quote_service import calculate_and_save, calculate_project, recalculate_saved_project
from conftest import make_catalog, make_catalog_item, make_equipment_row, make_project


USER_ID = "user-123"


@pytest.fixture
def store(mock_supabase):
    mock_supabase.set_table_data("equipment", [
        make_equipment_row(),
        make_equipment_row(code="S300", name="Void S300 Subwoofer", dealer_usd=50, msrp_usd=80, weight=5),
    ])
    with patch('services.project_store_service.get_supabase', return_value=mock_supabase), \
            patch('services.equipment_catalog_service.get_supabase', return_value=mock_supabase):
        yield mock_supabase


class TestCalculateProject:

    def test_uses_live_catalog_by_default(self, store):
        result = calculate_project(make_project())
        assert result.equipment_dealer_total == Decimal("142")

    def test_uses_configured_constants(self, store, monkeypatch):
        monkeypatch.setenv("PRICING_EXCHANGE_RATE", "1")

        result = calculate_project(make_project())
        assert result.equipment_dealer_total == Decimal("200")

    def test_explicit_catalog_and_constants(self):
        catalog = make_catalog(make_catalog_item(dealer_usd="10"))
        constants = PricingConstants(exchange_rate=Decimal("2"))

        result = calculate_project(make_project(), catalog, constants)
        assert result.equipment_dealer_total == Decimal("40")

    def test_unresolved_codes_logged(self, caplog):
        with caplog.at_level("WARNING", logger="services.quote_service"):
            result = calculate_project(make_project(equipment=(("GONE", 1), ("X100", 1))), make_catalog())

        assert result.unresolved_codes == ["GONE"]
        assert "GONE" in caplog.text

    def test_empty_project(self):
        assert calculate_project(make_project(equipment=()), make_catalog()) is None


class TestCalculateAndSave:

    def test_payload_priced_and_stored(self, store):
        saved, result = calculate_and_save(USER_ID, {
            "projectName": "Rooftop Lounge",
            "clientName": "Amman Hospitality",
            "equipment": [{"code": "X100", "quantity": 2}],
        })

        assert saved.total == result.totals.grand_total
        assert saved.to_result() == result
        assert len(store.rows("projects")) == 1

    def test_invalid_payload_not_saved(self, store):
        with pytest.raises(ValidationError):
            calculate_and_save(USER_ID, {"projectName": "Bad", "equipment": [{"code": "X100", "quantity": -2}]})

        assert store.rows("projects") == []


class TestRecalculate:

    def test_reprices_with_current_catalog(self, store):
        saved = save_project(USER_ID, make_project())
        assert not saved.is_calculated

        store.rows("equipment")[0]["dealer_usd"] = 200
        updated, result = recalculate_saved_project(saved.id, USER_ID)

        assert updated.id == saved.id
        assert result.equipment_dealer_total == Decimal("284")
        assert updated.to_result() == result

    def test_missing_project(self, store):
        assert recalculate_saved_project("missing", USER_ID) is None

    def test_catalog_error_keeps_stored_result(self, store):
        saved, result = calculate_and_save(USER_ID, {
            "projectName": "Rooftop Lounge",
            "clientName": "Amman Hospitality",
            "equipment": [{"code": "X100", "quantity": 2}],
        })
        failing = MagicMock()
        failing.table.side_effect = ConnectionError("connection refused")

        with patch('services.equipment_catalog_service.get_supabase', return_value=failing):
            with pytest.raises(ConnectionError):
                recalculate_saved_project(saved.id, USER_ID)

        row = store.rows("projects")[0]
        assert row["total"] == str(result.totals.grand_total)
        assert row["calculation_result"] == result.model_dump(mode="json")
