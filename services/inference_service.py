"""
Replicate inference for Renoir
"""
import asyncio
import logging
from typing import Any, Optional, Tuple

import replicate

from config.model_config import SUPPORTED_MODELS, build_model_input
from services.errors import ProviderBillingError, ProviderUnavailableError

logger = logging.getLogger(__name__)

# Replicate answers with these when the account is out of credit
BILLING_STATUS_CODES = (402, 422)


class InferenceService:
    def __init__(self, replicate_client: replicate.Client):
        self.client = replicate_client

    async def run(
        self,
        model_ref: str,
        prompt: str,
        image_url: str,
        dimensions: Optional[Tuple[int, int]] = None,
    ) -> Any:
        """
        Run a supported model against an uploaded image.

        Raises:
            ProviderBillingError: The provider refused the call for billing reasons
            ProviderUnavailableError: Any other provider failure
        """
        model_input = build_model_input(model_ref, prompt, image_url, dimensions)
        logger.info(f"Calling Replicate model {SUPPORTED_MODELS[model_ref]['name']} ({model_ref})")
        logger.debug(f"Replicate input: {model_input}")

        try:
            output = await asyncio.to_thread(self.client.run, model_ref, input=model_input)
        except Exception as e:
            status = getattr(e, "status", None)
            logger.error(f"Replicate API error (status={status}): {str(e)}", exc_info=True)

            if status in BILLING_STATUS_CODES:
                raise ProviderBillingError(
                    "The image generation provider requires credits. Please try again later.",
                    details="The provider rejected the request for billing reasons.",
                )
            raise ProviderUnavailableError(
                "Image generation service unavailable",
                details=f"Replicate API error: {str(e) or 'Unknown error'}. Please try again later.",
            )

        logger.info(f"Replicate returned output of type {type(output).__name__}")
        return output
