"""
Project models for Renoir, one record per successful generation.
"""
from pydantic import BaseModel, Field
from typing import Optional


class ProjectCreate(BaseModel):
    """
    Model for creating a new project record in the database.
    """
    user_id: str
    input_image_url: str
    output_image_url: str
    prompt: str
    status: str = "completed"


class ProjectResponse(BaseModel):
    """
    Model for returning a project record to the frontend.
    """
    id: str
    user_id: str
    input_image_url: Optional[str] = None
    output_image_url: Optional[str] = None
    prompt: str
    status: str
    created_at: Optional[str] = None


class GenerationResult(BaseModel):
    success: bool = True
    outputImageUrl: str
    inputImageUrl: str
    modelUsed: str = Field(..., description="Model reference the image was generated with")
