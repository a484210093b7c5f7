"""
Project routes for Renoir
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from supabase import Client

from auth.dependencies import get_current_user
from models.project import ProjectResponse
from services.clients import get_supabase
from services.errors import NotFoundError
from services.project_service import ProjectService
from services.storage_service import StorageService

router = APIRouter(prefix="/api/projects", tags=["Projects"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[ProjectResponse])
async def get_projects(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    """
    Get the user's projects, newest first
    """
    project_service = ProjectService(supabase)
    projects = await project_service.get_user_projects(current_user["id"], limit, offset)
    return [ProjectResponse(**{**project, "id": str(project["id"])}) for project in projects]


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    """
    Delete a project along with its stored images
    """
    project_service = ProjectService(supabase)
    deleted = await project_service.delete_project(project_id, current_user["id"], StorageService(supabase))
    if not deleted:
        raise NotFoundError("Project not found")

    return {"success": True}
