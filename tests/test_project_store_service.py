"""
Tests for Project Store Service - saving and loading quotation projects
"""

import pytest
from unittest.mock import patch, MagicMock
from decimal import Decimal

from calculation_engine import calculate_project_quote
from services.project_store_service import (
    SavedProject,
    _parse_project,
    delete_project,
    find_project_by_name,
    get_project,
    get_project_stats,
    list_projects,
    save_project,
)
from conftest import MockSupabaseQuery, enabled, make_catalog, make_full_roles, make_project


USER_ID = "user-123"
OTHER_USER_ID = "user-456"


@pytest.fixture
def store(mock_supabase):
    """Patch the service to use the in-memory client."""
    with patch('services.project_store_service.get_supabase', return_value=mock_supabase):
        yield mock_supabase


@pytest.fixture
def calculated():
    project = make_project(services={"commissioning": enabled()}, roles=make_full_roles(), discount="5")
    return project, calculate_project_quote(project, make_catalog())


class TestParsing:

    def test_parse_project(self):
        saved = _parse_project({
            "id": "proj-1",
            "user_id": USER_ID,
            "project_name": "Lobby",
            "client_name": None,
            "project_data": {"projectName": "Lobby"},
            "calculation_result": None,
            "total": "1250.5",
        })

        assert saved.client_name == ""
        assert saved.total == Decimal("1250.5")
        assert not saved.is_calculated
        assert saved.to_result() is None


class TestSaveProject:

    def test_create(self, store, calculated):
        project, result = calculated

        saved = save_project(USER_ID, project, result)

        assert saved.id
        assert saved.project_name == "Rooftop Lounge"
        assert saved.is_calculated
        assert saved.total == result.totals.grand_total
        assert len(store.rows("projects")) == 1

    def test_same_name_updates(self, store, calculated):
        project, result = calculated
        first = save_project(USER_ID, project)

        renamed_case = project.model_copy(update={"project_name": "ROOFTOP LOUNGE"})
        second = save_project(USER_ID, renamed_case, result)

        assert second.id == first.id
        assert len(store.rows("projects")) == 1
        assert second.is_calculated

    def test_other_client_creates_new(self, store, calculated):
        project, _ = calculated
        save_project(USER_ID, project)
        save_project(USER_ID, project.model_copy(update={"client_name": "Dead Sea Resort"}))

        assert len(store.rows("projects")) == 2

    def test_other_user_creates_new(self, store, calculated):
        project, _ = calculated
        save_project(USER_ID, project)
        save_project(OTHER_USER_ID, project)

        assert len(store.rows("projects")) == 2

    def test_name_required(self, store):
        with pytest.raises(ValueError):
            save_project(USER_ID, make_project(project_name="  "))

    def test_name_wildcards_match_literally(self, store):
        save_project(USER_ID, make_project(project_name="PX1", client_name="C"))
        saved = save_project(USER_ID, make_project(project_name="P_1", client_name="C"))

        assert saved.project_name == "P_1"
        assert sorted(row["project_name"] for row in store.rows("projects")) == ["PX1", "P_1"]

    def test_lookup_error_does_not_insert_duplicate(self, store, calculated):
        project, result = calculated
        save_project(USER_ID, project)

        with patch.object(MockSupabaseQuery, 'ilike', side_effect=TimeoutError("read timed out")):
            with pytest.raises(TimeoutError):
                save_project(USER_ID, project, result)

        rows = store.rows("projects")
        assert len(rows) == 1
        assert rows[0]["calculation_result"] is None

    @patch('services.project_store_service._lookup_by_name', return_value=None)
    @patch('services.project_store_service.get_supabase')
    def test_write_errors_propagate(self, mock_get_supabase, _mock_lookup):
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.table.return_value.insert.return_value.execute.side_effect = Exception("insert failed")

        with pytest.raises(Exception, match="insert failed"):
            save_project(USER_ID, make_project())


class TestLoadProject:

    def test_result_loaded_verbatim(self, store, calculated):
        project, result = calculated
        saved = save_project(USER_ID, project, result)

        loaded = get_project(saved.id, USER_ID)

        assert loaded.to_project() == project
        assert loaded.to_result() == result

    def test_load_does_not_recalculate(self, store, calculated):
        project, result = calculated
        saved = save_project(USER_ID, project, result)

        with patch('calculation_engine.calculate_project_quote') as mock_calculate:
            get_project(saved.id, USER_ID).to_result()
        mock_calculate.assert_not_called()

    def test_other_users_project_not_found(self, store, calculated):
        project, _ = calculated
        saved = save_project(USER_ID, project)

        assert get_project(saved.id, OTHER_USER_ID) is None

    @patch('services.project_store_service.get_supabase')
    def test_read_error_returns_none(self, mock_get_supabase):
        mock_get_supabase.side_effect = RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        assert get_project("proj-1", USER_ID) is None


class TestListAndDelete:

    @pytest.fixture
    def saved_projects(self, store):
        for name, client, user in [
            ("Rooftop Lounge", "Amman Hospitality", USER_ID),
            ("Lobby", "Dead Sea Resort", USER_ID),
            ("Club", "Aqaba Nights", OTHER_USER_ID),
        ]:
            save_project(user, make_project(project_name=name, client_name=client))
        return store

    def test_list_own_projects(self, saved_projects):
        names = {p.project_name for p in list_projects(USER_ID)}
        assert names == {"Rooftop Lounge", "Lobby"}

    def test_admin_sees_all(self, saved_projects):
        assert len(list_projects(USER_ID, is_admin=True)) == 3

    def test_search_matches_client(self, saved_projects):
        projects = list_projects(USER_ID, search="dead sea")
        assert [p.project_name for p in projects] == ["Lobby"]

    def test_pagination(self, saved_projects):
        assert len(list_projects(USER_ID, limit=1)) == 1
        assert len(list_projects(USER_ID, limit=1, offset=5)) == 0

    def test_find_by_name(self, saved_projects):
        assert find_project_by_name(USER_ID, "lobby", "dead sea resort").project_name == "Lobby"
        assert find_project_by_name(USER_ID, "Club", "Aqaba Nights") is None

    def test_delete(self, saved_projects):
        lobby = find_project_by_name(USER_ID, "Lobby", "Dead Sea Resort")

        assert delete_project(lobby.id, OTHER_USER_ID) is False
        assert delete_project(lobby.id, USER_ID) is True
        assert get_project(lobby.id, USER_ID) is None


class TestProjectStats:

    def test_counts_and_total_value(self, store, calculated):
        project, result = calculated
        save_project(USER_ID, project, result)
        save_project(USER_ID, make_project(project_name="Lobby", client_name="Dead Sea Resort"))
        save_project(OTHER_USER_ID, project, result)

        stats = get_project_stats(USER_ID)

        assert stats == {
            "total_projects": 2,
            "total_value": result.totals.grand_total,
            "calculated_projects": 1,
        }

    def test_no_projects(self, store):
        assert get_project_stats(USER_ID) == {
            "total_projects": 0,
            "total_value": Decimal("0"),
            "calculated_projects": 0,
        }

    @patch('services.project_store_service.get_supabase')
    def test_error_returns_zeros(self, mock_get_supabase):
        mock_get_supabase.return_value.table.side_effect = Exception("connection refused")

        stats = get_project_stats(USER_ID)
        assert stats["total_projects"] == 0
        assert stats["total_value"] == Decimal("0")
