"""
Project service for Renoir database operations
"""
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import logging
from supabase import Client

from models.project import ProjectCreate
from services.errors import BookkeepingError
from services.storage_service import StorageService

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"


class ProjectService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    async def create_project(self, project_data: ProjectCreate) -> Dict[str, Any]:
        """
        Save a new project to the database

        Raises:
            BookkeepingError: If the row could not be written
        """
        try:
            data = project_data.model_dump()
            data["created_at"] = datetime.now(timezone.utc).isoformat()

            response = self.supabase.table(PROJECTS_TABLE).insert(data).execute()
        except Exception as e:
            logger.error(f"Error creating project: {str(e)}", exc_info=True)
            raise BookkeepingError("Failed to save project")

        if not response.data:
            logger.error(f"Project insert for user {project_data.user_id} returned no row")
            raise BookkeepingError("Failed to save project")

        logger.info(f"Saved project for user {project_data.user_id}")
        return response.data[0]

    async def get_user_projects(self, user_id: str, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """
        Get user's projects, newest first
        """
        response = (
            self.supabase.table(PROJECTS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return response.data or []

    async def get_project(self, project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get specific project by ID (with user ownership check)
        """
        response = (
            self.supabase.table(PROJECTS_TABLE)
            .select("id,user_id,input_image_url,output_image_url")
            .eq("id", project_id)
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
        return response.data if response else None

    async def delete_project(self, project_id: str, user_id: str, storage: StorageService) -> bool:
        """
        Delete a project and, best-effort, the images it references.

        Returns False if the project does not exist for this user.
        """
        project = await self.get_project(project_id, user_id)
        if not project:
            return False

        storage.remove_by_url(project.get("input_image_url"))
        storage.remove_by_url(project.get("output_image_url"))

        self.supabase.table(PROJECTS_TABLE).delete().eq("id", project_id).eq("user_id", user_id).execute()
        logger.info(f"Deleted project {project_id} for user {user_id}")
        return True
