"""
Model Configuration for Renoir

This module contains the centralized configuration for the image models users
can select on the dashboard, and the input each model expects.
"""

import math
from typing import Dict, List, Optional, Tuple, TypedDict


class ModelDefinition(TypedDict):
    """Type definition for a supported model."""
    name: str
    description: str
    preserves_aspect_ratio: bool


FLUX_KONTEXT = "black-forest-labs/flux-kontext-dev"
NANO_BANANA = "google/nano-banana"

# Centralized model configuration
SUPPORTED_MODELS: Dict[str, ModelDefinition] = {
    FLUX_KONTEXT: {
        "name": "Flux Kontext",
        "description": "Image editing that keeps the composition of the source image",
        "preserves_aspect_ratio": True,
    },
    NANO_BANANA: {
        "name": "Nano Banana",
        "description": "Google's fast multi-image editing model",
        "preserves_aspect_ratio": False,
    },
}

# Longest output side for models that echo the source aspect ratio
MAX_OUTPUT_SIZE = 1024


def resolve_model(model: Optional[str]) -> Optional[str]:
    """
    Resolve a client supplied model identifier to a supported model.

    Clients may send a versioned reference (``owner/name:version``), so the
    identifier is matched by containment.

    Returns:
        The canonical model reference, or None if the model is not supported
    """
    if not model:
        return None
    for model_ref in SUPPORTED_MODELS:
        if model_ref in model:
            return model_ref
    return None


def list_available_models() -> List[Dict[str, str]]:
    """Get the supported models formatted for frontend consumption."""
    return [
        {"id": model_ref, "name": model["name"], "description": model["description"]}
        for model_ref, model in SUPPORTED_MODELS.items()
    ]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_output_dimensions(width: int, height: int, max_size: int = MAX_OUTPUT_SIZE) -> Tuple[int, int]:
    """
    Scale the longer side of a source image to ``max_size`` keeping its ratio.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_size: Length of the longer output side

    Returns:
        Tuple of (width, height) for the model output
    """
    if width <= 0 or height <= 0:
        return max_size, max_size

    aspect_ratio = width / height
    # The short side is at least one pixel
    if aspect_ratio > 1:
        return max_size, max(1, _round_half_up(max_size / aspect_ratio))
    return max(1, _round_half_up(max_size * aspect_ratio)), max_size


def build_model_input(
    model_ref: str,
    prompt: str,
    image_url: str,
    dimensions: Optional[Tuple[int, int]] = None,
) -> Dict[str, object]:
    """
    Shape the Replicate input payload for a supported model.

    Raises:
        KeyError: If the model is not supported
    """
    if model_ref == FLUX_KONTEXT:
        width, height = dimensions or (MAX_OUTPUT_SIZE, MAX_OUTPUT_SIZE)
        return {
            "prompt": prompt,
            "input_image": image_url,
            "output_format": "jpg",
            "num_inference_steps": 30,
            "width": width,
            "height": height,
        }
    if model_ref == NANO_BANANA:
        return {
            "prompt": prompt,
            "image_input": [image_url] if image_url else [],
        }
    raise KeyError(f"Model '{model_ref}' not supported. Available models: {list(SUPPORTED_MODELS.keys())}")
