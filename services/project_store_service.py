"""
Project Store Service - persistence for saved quotation projects

This module provides functions for the projects table:
- Save a project (create, or update the user's project with the same
  project and client name)
- Get / list / delete saved projects
- Per-user statistics (count, total value, calculated count)

A saved project keeps the definition in the UI payload format and the last
calculation result verbatim. Loading never recomputes; see
services/quote_service.recalculate_saved_project for that.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from calculation_mapper import (
    escape_like,
    map_project_payload,
    project_to_payload,
    safe_decimal,
    safe_str,
)
from calculation_models import CalculationResult, ProjectDefinition
from services.database import get_supabase

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SavedProject:
    """
    Represents a saved project.

    Maps to projects table in database.
    """
    id: str
    user_id: str
    project_name: str
    client_name: str = ""

    # UI payload (camelCase), see calculation_mapper.project_to_payload
    definition: Dict[str, Any] = field(default_factory=dict)

    # Last CalculationResult as JSON, None until calculated
    calculation_result: Optional[Dict[str, Any]] = None
    total: Decimal = Decimal("0")

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_calculated(self) -> bool:
        return self.calculation_result is not None

    def to_project(self) -> ProjectDefinition:
        """Validated ProjectDefinition for the stored payload"""
        return map_project_payload(self.definition)

    def to_result(self) -> Optional[CalculationResult]:
        """Stored result as a model, exactly as saved"""
        if self.calculation_result is None:
            return None
        return CalculationResult.model_validate(self.calculation_result)


def _parse_project(data: dict) -> SavedProject:
    """Parse database row into SavedProject object."""
    return SavedProject(
        id=data["id"],
        user_id=data["user_id"],
        project_name=data.get("project_name") or "",
        client_name=data.get("client_name") or "",
        definition=data.get("project_data") or {},
        calculation_result=data.get("calculation_result"),
        total=safe_decimal(data.get("total")),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


# =============================================================================
# CRUD
# =============================================================================

def _same_name(a: str, b: str) -> bool:
    return safe_str(a).strip().casefold() == safe_str(b).strip().casefold()


def _lookup_by_name(user_id: str, project_name: str, client_name: str) -> Optional[SavedProject]:
    """
    Case-insensitive exact project + client name match; database errors propagate.

    The ilike filter only narrows the candidates. Names are compared exactly
    afterwards, so '_' or '%' in a name never matches a different project.
    """
    supabase = get_supabase()

    result = supabase.table(PROJECTS_TABLE) \
        .select("*") \
        .eq("user_id", user_id) \
        .ilike("project_name", escape_like(project_name.strip())) \
        .execute()

    for row in result.data or []:
        if _same_name(row.get("project_name"), project_name) and _same_name(row.get("client_name"), client_name):
            return _parse_project(row)
    return None


def find_project_by_name(user_id: str, project_name: str, client_name: str) -> Optional[SavedProject]:
    """Case-insensitive project + client name match within one user's projects"""
    try:
        return _lookup_by_name(user_id, project_name, client_name)
    except Exception as e:
        logger.error(f"Error finding project '{project_name}': {e}")
        return None


def save_project(
    user_id: str,
    project: ProjectDefinition,
    result: Optional[CalculationResult] = None
) -> SavedProject:
    """
    Create a project, or update the user's project with the same name.

    Args:
        user_id: Owner UUID
        project: Project definition
        result: Calculation result to store alongside; None marks the
                project as not calculated

    Returns:
        SavedProject as stored

    Raises:
        ValueError: project name is empty
        Exception: database errors are propagated
    """
    if not project.project_name.strip():
        raise ValueError("Project name is required")

    row = {
        "user_id": user_id,
        "project_name": project.project_name,
        "client_name": project.client_name,
        "project_data": project_to_payload(project),
        "calculation_result": result.model_dump(mode="json") if result is not None else None,
        "total": str(result.totals.grand_total) if result is not None else "0",
    }

    supabase = get_supabase()
    existing = _lookup_by_name(user_id, project.project_name, project.client_name)

    if existing:
        response = supabase.table(PROJECTS_TABLE) \
            .update(row) \
            .eq("id", existing.id) \
            .eq("user_id", user_id) \
            .execute()
        logger.info(f"Project updated: {existing.id} ({project.project_name})")
    else:
        response = supabase.table(PROJECTS_TABLE).insert(row).execute()
        logger.info(f"Project created: {project.project_name}")

    if not response.data:
        raise RuntimeError(f"Saving project '{project.project_name}' returned no row")

    return _parse_project(response.data[0])


def get_project(project_id: str, user_id: str) -> Optional[SavedProject]:
    """
    Get a saved project owned by the user.

    Returns:
        SavedProject if found, None otherwise
    """
    try:
        supabase = get_supabase()

        result = supabase.table(PROJECTS_TABLE) \
            .select("*") \
            .eq("id", project_id) \
            .eq("user_id", user_id) \
            .execute()

        if result.data:
            return _parse_project(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error getting project {project_id}: {e}")
        return None


def list_projects(
    user_id: str,
    search: Optional[str] = None,
    is_admin: bool = False,
    limit: int = 10,
    offset: int = 0
) -> List[SavedProject]:
    """
    List saved projects, most recently updated first.

    Args:
        user_id: Requesting user
        search: Matches project or client name
        is_admin: Admins see every user's projects
        limit: Page size
        offset: Rows to skip
    """
    try:
        supabase = get_supabase()

        query = supabase.table(PROJECTS_TABLE).select("*")

        if not is_admin:
            query = query.eq("user_id", user_id)

        if search:
            pattern = escape_like(search)
            query = query.or_(f"project_name.ilike.%{pattern}%,client_name.ilike.%{pattern}%")

        result = query \
            .order("updated_at", desc=True) \
            .range(offset, offset + limit - 1) \
            .execute()

        return [_parse_project(row) for row in result.data or []]

    except Exception as e:
        logger.error(f"Error listing projects: {e}")
        return []


def get_project_stats(user_id: str) -> Dict[str, Any]:
    """
    Get saved project statistics for a user.

    Returns:
        Dict with statistics:
        - total_projects: Number of saved projects
        - total_value: Sum of stored grand totals (Decimal)
        - calculated_projects: Number with a stored calculation result
    """
    stats = {"total_projects": 0, "total_value": Decimal("0"), "calculated_projects": 0}

    try:
        supabase = get_supabase()

        result = supabase.table(PROJECTS_TABLE) \
            .select("id, total, calculation_result") \
            .eq("user_id", user_id) \
            .execute()

        for row in result.data or []:
            stats["total_projects"] += 1
            stats["total_value"] += safe_decimal(row.get("total"))
            if row.get("calculation_result") is not None:
                stats["calculated_projects"] += 1

        return stats

    except Exception as e:
        logger.error(f"Error getting project stats for {user_id}: {e}")
        return stats


def delete_project(project_id: str, user_id: str) -> bool:
    """
    Delete a saved project owned by the user.

    Returns:
        True if a row was deleted
    """
    supabase = get_supabase()

    result = supabase.table(PROJECTS_TABLE) \
        .delete() \
        .eq("id", project_id) \
        .eq("user_id", user_id) \
        .execute()

    deleted = bool(result.data)
    if deleted:
        logger.info(f"Project deleted: {project_id}")
    return deleted
