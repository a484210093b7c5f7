import os
import time
import asyncio
import logging
from datetime import datetime
from typing import Optional

import replicate
from fastapi import FastAPI, Request, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
from supabase import Client

from routes.auth import router as auth_router
from routes.billing import router as billing_router
from routes.projects import router as projects_router

from auth.dependencies import get_current_user
from config.model_config import SUPPORTED_MODELS, compute_output_dimensions, list_available_models, resolve_model
from models.project import GenerationResult, ProjectCreate
from services.clients import get_replicate, get_supabase
from services.errors import NoUsableOutputError, RenoirError, ValidationFailed
from services.image_service import ImageService
from services.inference_service import InferenceService
from services.output_extraction import extract_output
from services.project_service import ProjectService
from services.storage_service import StorageService


# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(os.getenv("LOG_FILE", "renoir.log"))
    ]
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Renoir Backend",
    description="AI image editing with Stripe subscriptions and Supabase storage",
    version="1.0.0"
)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(billing_router)
app.include_router(projects_router)


@app.exception_handler(RenoirError)
async def renoir_error_handler(request: Request, exc: RenoirError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "available_models": list(SUPPORTED_MODELS.keys())
    }


@app.get("/api/models")
async def get_models():
    """Get the models users can pick from."""
    return {"models": list_available_models()}


@app.post("/api/generate", response_model=GenerationResult)
async def generate_image(
    image: Optional[UploadFile] = File(None),
    prompt: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    replicate_client: replicate.Client = Depends(get_replicate)
):
    """
    Edit an uploaded image with the selected model, store both images and
    record the result as a project.
    """
    request_id = f"{current_user['id']}_{int(time.time())}"
    logger.info(f"[Generation][{request_id}] Request from user: {current_user.get('email')}")
    start_time = time.time()

    if image is None or not prompt or not prompt.strip():
        raise ValidationFailed("Image and prompt are required")

    model_ref = resolve_model(model)
    if model_ref is None:
        logger.warning(f"[{request_id}] Unsupported model requested: {model}")
        raise ValidationFailed("Unsupported model selected")

    image_service = ImageService()
    storage_service = StorageService(supabase)

    raw_bytes = await image.read()
    if not raw_bytes:
        raise ValidationFailed("Image and prompt are required")
    image_bytes, content_type = image_service.normalize_upload(raw_bytes, image.content_type)

    input_image_url = await storage_service.upload_input(image_bytes, image.filename, content_type)

    dimensions = None
    if SUPPORTED_MODELS[model_ref]["preserves_aspect_ratio"]:
        size = image_service.read_dimensions(image_bytes)
        dimensions = compute_output_dimensions(*size) if size else None
        logger.info(f"[{request_id}] Output dimensions: {dimensions}")

    output = await InferenceService(replicate_client).run(model_ref, prompt, input_image_url, dimensions)

    if output is None or output == [] or output == "":
        logger.error(f"[{request_id}] Model returned no output")
        raise NoUsableOutputError("No output generated")

    # Draining a streamed file blocks on network reads
    extracted = await asyncio.to_thread(extract_output, output)
    if extracted is None:
        logger.error(f"[{request_id}] Could not find an image in model output: {output!r}")
        raise NoUsableOutputError("No image URL returned from the model")

    if extracted.data is not None:
        extracted.content_type = image_service.detect_content_type(extracted.data) or extracted.content_type

    output_image_url = await storage_service.persist_output(extracted)

    project_service = ProjectService(supabase)
    await project_service.create_project(ProjectCreate(
        user_id=current_user["id"],
        input_image_url=input_image_url,
        output_image_url=output_image_url,
        prompt=prompt,
    ))

    generation_time = int((time.time() - start_time) * 1000)
    logger.info(f"[{request_id}] Generation completed in {generation_time}ms with {model_ref}")

    return GenerationResult(
        outputImageUrl=output_image_url,
        inputImageUrl=input_image_url,
        modelUsed=model_ref,
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Renoir Backend API",
        "version": "1.0.0",
        "available_models": list(SUPPORTED_MODELS.keys()),
        "endpoints": {
            "generate": "/api/generate",
            "models": "/api/models",
            "projects": "/api/projects",
            "subscription": "/api/subscription",
            "checkout": "/api/create-subscription-checkout",
            "portal": "/api/create-portal-session",
            "stripe_webhook": "/api/webhooks/stripe",
            "health": "/health",
            "auth": "/auth"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
